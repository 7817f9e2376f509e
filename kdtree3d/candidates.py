"""
    Ordered set of nearest neighbour candidates used by the k-d tree search.
"""

import bisect
import math


class CandidateSet:
    def __init__(self, K):
        """
        Keeps the K nearest nodes seen so far, plus any nodes tied with the K-th distance.
        Entries are ordered by (distance, point, node index).
        :param K: Number of neighbours requested, K >= 1.
        """
        if K < 1:
            raise ValueError("K must be at least 1, got {}".format(K))
        self.K = K
        self.entries = []
        self.members = set()

    def __len__(self):
        return len(self.entries)

    def __contains__(self, index):
        return index in self.members

    def is_full(self):
        return len(self.entries) >= self.K

    def worst_distance(self):
        """
        Distance any new candidate has to match or beat to be kept.
        Infinite until K candidates are held.
        """
        if not self.is_full():
            return math.inf
        return self.entries[-1][0]

    def offer(self, index, point, distance):
        """
        Offers a node to the set.
        :param index: Arena index of the node, used for membership.
        :param point: XYZPoint stored at the node.
        :param distance: Distance from the node's point to the query.
        :return: True if the node is held by the set after the call. False covers both an
                 existing member and a node beyond the cutoff; callers may ignore it.
        """
        if index in self.members:
            return False
        if self.is_full() and distance > self.entries[-1][0]:
            return False

        bisect.insort(self.entries, (distance, point, index))
        self.members.add(index)
        self.__evict()
        return index in self.members

    def __evict(self):
        # Drop the whole group at the worst distance while K members remain without it
        while len(self.entries) > self.K:
            worst = self.entries[-1][0]
            first_worst = len(self.entries)
            while first_worst > 0 and self.entries[first_worst - 1][0] == worst:
                first_worst -= 1
            if first_worst < self.K:
                break
            for _, _, index in self.entries[first_worst:]:
                self.members.discard(index)
            del self.entries[first_worst:]

    def items(self):
        """
        (distance, point) pairs in ascending order.
        """
        return [(distance, point) for distance, point, _ in self.entries]

    def points(self):
        return [point for _, point, _ in self.entries]
