"""
    Immutable 3D points stored in the k-d tree.
"""

import math
import numbers

import numpy as np
import torch


class XYZPoint:
    __slots__ = ('_x', '_y', '_z')

    def __init__(self, x, y, z=0.0):
        """
        A point in 3D Euclidean space. 2D points are stored with z = 0.
        :param x: x coordinate.
        :param y: y coordinate.
        :param z: z coordinate, defaults to 0.
        """
        for coord in (x, y, z):
            if isinstance(coord, bool) or not isinstance(coord, numbers.Real):
                raise ValueError("point coordinates must be real numbers, got {!r}".format(coord))
            if not math.isfinite(coord):
                raise ValueError("point coordinates must be finite, got {!r}".format(coord))
        object.__setattr__(self, '_x', float(x))
        object.__setattr__(self, '_y', float(y))
        object.__setattr__(self, '_z', float(z))

    def __setattr__(self, name, value):
        raise AttributeError("XYZPoint is immutable")

    @property
    def x(self):
        return self._x

    @property
    def y(self):
        return self._y

    @property
    def z(self):
        return self._z

    def coord(self, axis):
        """
        Coordinate along the given axis (0 = x, 1 = y, 2 = z).
        """
        return (self._x, self._y, self._z)[axis]

    def as_tuple(self):
        return (self._x, self._y, self._z)

    def euclidean_distance(self, other):
        return math.sqrt((self._x - other.x)**2 + (self._y - other.y)**2 + (self._z - other.z)**2)

    def __eq__(self, other):
        if not isinstance(other, XYZPoint):
            return NotImplemented
        return self.as_tuple() == other.as_tuple()

    def __hash__(self):
        return hash(self.as_tuple())

    # Plain lexicographic ordering on (x, y, z)
    def __lt__(self, other):
        if not isinstance(other, XYZPoint):
            return NotImplemented
        return self.as_tuple() < other.as_tuple()

    def __le__(self, other):
        if not isinstance(other, XYZPoint):
            return NotImplemented
        return self.as_tuple() <= other.as_tuple()

    def __gt__(self, other):
        if not isinstance(other, XYZPoint):
            return NotImplemented
        return self.as_tuple() > other.as_tuple()

    def __ge__(self, other):
        if not isinstance(other, XYZPoint):
            return NotImplemented
        return self.as_tuple() >= other.as_tuple()

    def __iter__(self):
        return iter(self.as_tuple())

    def __repr__(self):
        return "XYZPoint({}, {}, {})".format(self._x, self._y, self._z)

    def __str__(self):
        return "({}, {}, {})".format(self._x, self._y, self._z)


def to_point(value):
    """
    Coerces a point-like value into an XYZPoint.
    :param value: XYZPoint, sequence of 2 or 3 numbers, numpy array or torch tensor of shape (2,)/(3,).
    :return: XYZPoint, or None if value is None.
    """
    if value is None or isinstance(value, XYZPoint):
        return value

    # Tensors and arrays are flattened to plain python floats first
    if isinstance(value, torch.Tensor):
        value = value.detach().cpu().reshape(-1).tolist()
    elif isinstance(value, np.ndarray):
        value = value.reshape(-1).tolist()

    try:
        coords = list(value)
    except TypeError:
        raise ValueError("point must be a sequence of 2 or 3 coordinates, got {!r}".format(value)) from None
    if len(coords) == 2:
        return XYZPoint(coords[0], coords[1])
    elif len(coords) == 3:
        return XYZPoint(coords[0], coords[1], coords[2])
    else:
        raise ValueError("point must have 2 or 3 coordinates, got {}".format(len(coords)))


def to_points(points):
    """
    Coerces a point cloud into a list of XYZPoints.
    :param points: Iterable of point-like values, or numpy array / torch tensor of shape (n, 2/3).
    :return: list of XYZPoint.
    """
    if points is None:
        return []
    if isinstance(points, torch.Tensor):
        points = points.detach().cpu().numpy()
    if isinstance(points, np.ndarray):
        if points.size == 0:
            return []
        if len(points.shape) != 2 or (points.shape[1] != 2 and points.shape[1] != 3):
            raise ValueError("points must be (n x 2/3), got shape {}".format(tuple(points.shape)))
        return [to_point(row) for row in points]

    converted = []
    for p in points:
        if p is None:
            raise ValueError("point cloud must not contain None")
        converted.append(to_point(p))
    return converted
