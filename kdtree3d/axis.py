"""
    Axis selection and per-axis point comparison.
"""

X_AXIS = 0
Y_AXIS = 1
Z_AXIS = 2

# Supported tree dimensionalities
VALID_K = (1, 2, 3)


def axis_for(depth, k):
    return depth % k


def compare(axis, a, b):
    """
    Compares two points along one axis with exact floating point ordering.
    :param axis: Axis index (X_AXIS, Y_AXIS or Z_AXIS).
    :param a: First XYZPoint.
    :param b: Second XYZPoint.
    :return: -1 if a < b, 1 if a > b and 0 if equal on that axis.
    """
    a_val = a.coord(axis)
    b_val = b.coord(axis)
    if a_val < b_val:
        return -1
    if a_val > b_val:
        return 1
    return 0


def compare_at(depth, k, a, b):
    return compare(axis_for(depth, k), a, b)
