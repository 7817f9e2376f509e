"""
    Brute force nearest neighbour search, used as a reference for the k-d tree.
"""

import torch

from kdtree3d.point import to_point, to_points


class nn:
    def __init__(self, dtype=torch.float64):
        self.dtype = dtype

    def find_knn(self, points, query, K):
        """
        Computes the K nearest neighbours of a single query point, plus any
        points tied with the K-th distance.
        :param points: Point cloud, anything accepted by to_points.
        :param query: Point-like query.
        :param K: Number of neighbours, K >= 1.
        :return: list of XYZPoints sorted by distance, then point order.
        """
        if K < 1:
            raise ValueError("K must be at least 1, got {}".format(K))
        point_list = to_points(points)
        if len(point_list) == 0:
            raise ValueError("cannot search an empty point cloud")
        query_point = to_point(query)
        if query_point is None:
            raise ValueError("query point must not be None")

        y = torch.tensor([p.as_tuple() for p in point_list], dtype=self.dtype)
        x = torch.tensor([query_point.as_tuple()], dtype=self.dtype)

        # Compute the Euclidean distances between the query and each point
        distances = torch.cdist(x, y, p=2, compute_mode='donot_use_mm_for_euclid_dist').squeeze(0)  # shape: (m,)

        # Distance of the K-th nearest point sets the cutoff
        sorted_distances, _ = torch.sort(distances)
        cutoff = sorted_distances[min(K, len(point_list)) - 1]
        keep = torch.nonzero(distances <= cutoff).squeeze(1).tolist()

        found = [(distances[i].item(), point_list[i]) for i in keep]
        found.sort(key=lambda item: (item[0], item[1]))
        return [p for _, p in found]
