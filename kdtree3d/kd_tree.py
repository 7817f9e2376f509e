"""
    KD Tree with insertion, removal and K Nearest Neighbor Search
"""

import os.path as osp

import yaml

from kdtree3d.axis import VALID_K, axis_for, compare_at
from kdtree3d.candidates import CandidateSet
from kdtree3d.point import to_point, to_points
from kdtree3d.tree_printer import TreePrinter


class KdNode:
    def __init__(self, point, k=3, depth=0, parent=None):
        self.id = point
        self.k = k
        self.depth = depth
        # Parent and children are indices into the owning tree's node arena
        self.parent = parent
        self.lesser = None
        self.greater = None

    @property
    def axis(self):
        return axis_for(self.depth, self.k)

    def is_leaf(self):
        return self.lesser is None and self.greater is None

    def __str__(self):
        return "k={} depth={} id={}".format(self.k, self.depth, self.id)


class KdTree:
    def __init__(self, points=None, k=None, config_path=None, verbose=None):
        """
        k-d tree over 3D points. 2D points are stored with z = 0.
        :param points: Optional initial point cloud, an iterable of points or a
                        numpy array / torch tensor of shape (n, 2/3). Built by median splitting.
        :param k: Number of axes cycled through when splitting (1, 2 or 3).
                  If None, the value from the config file is used.
        :param config_path: Path to a yaml config file. If None, the packaged default is used.
        :param verbose: Overrides the config logging flag if not None.
        """
        if config_path is None:
            current_dir = osp.dirname(osp.abspath(__file__))
            # Get path to config file
            config_path = osp.join(current_dir, 'config', 'kdtree_config.yaml')

        def load_config(file_path):
            with open(file_path, 'r') as f:
                config = yaml.safe_load(f)
            return config

        # Load in config data from desired config path
        self.config = load_config(config_path)

        self.k = k if k is not None else self.config['kdtree']['parameters']['k']
        self.verbose = verbose if verbose is not None else self.config['kdtree']['logging']['verbose']
        if self.k not in VALID_K:
            raise ValueError("k must be one of {}, got {}".format(VALID_K, self.k))

        # Node arena, removed slots are recycled through the free list
        self.nodes = []
        self.free = []
        self.root_index = None
        self.size = 0

        point_list = to_points(points)
        if len(point_list) > 0:
            self.root_index = self._build_subtree(point_list, 0, None)
            self.size = len(point_list)
            if self.verbose:
                print("Built k-d tree with {} points, height {}".format(self.size, self.height()))

    # ------------------------------------------------------------------
    # Arena handling
    # ------------------------------------------------------------------
    def _new_node(self, point, depth, parent):
        node = KdNode(point, self.k, depth, parent)
        if self.free:
            index = self.free.pop()
            self.nodes[index] = node
        else:
            index = len(self.nodes)
            self.nodes.append(node)
        return index

    def _release_subtree(self, index):
        stack = [index]
        while stack:
            index = stack.pop()
            node = self.nodes[index]
            if node.lesser is not None:
                stack.append(node.lesser)
            if node.greater is not None:
                stack.append(node.greater)
            self.nodes[index] = None
            self.free.append(index)

    def node(self, index):
        """
        Node stored at an arena index, or None for an empty index.
        """
        if index is None:
            return None
        return self.nodes[index]

    @property
    def root(self):
        return self.node(self.root_index)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    def _build_subtree(self, points, depth, parent):
        """
        Builds a subtree by repeated median splitting.
        :param points: list of XYZPoints, may be empty.
        :param depth: Depth of the subtree root.
        :param parent: Arena index of the subtree root's parent, or None.
        :return: Arena index of the subtree root, or None if points is empty.
        """
        if not points:
            return None

        subtree_root = None
        # Each entry is (points, depth, parent index, child slot on parent)
        stack = [(list(points), depth, parent, None)]
        while stack:
            point_list, node_depth, parent_index, side = stack.pop()
            axis = axis_for(node_depth, self.k)

            # Stable sort on the split axis, so ties keep their input order
            point_list.sort(key=lambda point: point.coord(axis))
            median = len(point_list) // 2
            # Move past ties so everything after the median is strictly greater
            while median + 1 < len(point_list) and point_list[median + 1].coord(axis) == point_list[median].coord(axis):
                median += 1

            index = self._new_node(point_list[median], node_depth, parent_index)
            if side is None:
                subtree_root = index
            else:
                setattr(self.nodes[parent_index], side, index)

            if median + 1 < len(point_list):
                stack.append((point_list[median + 1:], node_depth + 1, index, 'greater'))
            if median > 0:
                stack.append((point_list[:median], node_depth + 1, index, 'lesser'))

        return subtree_root

    # ------------------------------------------------------------------
    # Insertion and lookup
    # ------------------------------------------------------------------
    def add(self, value):
        """
        Adds a point to the tree. The tree can hold multiple equal points.
        :param value: Point-like value.
        :return: True if the point was added, False if value is None.
        """
        point = to_point(value)
        if point is None:
            return False

        if self.root_index is None:
            self.root_index = self._new_node(point, 0, None)
            self.size += 1
            return True

        index = self.root_index
        while True:
            node = self.nodes[index]
            if compare_at(node.depth, node.k, point, node.id) <= 0:
                # Lesser
                if node.lesser is None:
                    node.lesser = self._new_node(point, node.depth + 1, index)
                    break
                index = node.lesser
            else:
                # Greater
                if node.greater is None:
                    node.greater = self._new_node(point, node.depth + 1, index)
                    break
                index = node.greater

        self.size += 1
        return True

    def _descend(self, point):
        """
        Walks down from the root towards point.
        :return: (index, found) where index is the matching node if found,
                 otherwise the last node visited before a missing child.
        """
        index = self.root_index
        while True:
            node = self.nodes[index]
            if node.id == point:
                return index, True
            if compare_at(node.depth, node.k, point, node.id) > 0:
                next_index = node.greater
            else:
                next_index = node.lesser
            if next_index is None:
                return index, False
            index = next_index

    def _find_index(self, point):
        if point is None or self.root_index is None:
            return None
        index, found = self._descend(point)
        return index if found else None

    def find(self, value):
        """
        Locates a point in the tree.
        :return: The KdNode holding the point, or None if not found.
        """
        return self.node(self._find_index(to_point(value)))

    def contains(self, value):
        return self.find(value) is not None

    def __contains__(self, value):
        return self.contains(value)

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------
    def _collect_subtree(self, index):
        """
        Pre-order list of the points below a node, not including the node itself.
        """
        points = []
        node = self.nodes[index]
        stack = [child for child in (node.greater, node.lesser) if child is not None]
        while stack:
            child = self.nodes[stack.pop()]
            points.append(child.id)
            if child.greater is not None:
                stack.append(child.greater)
            if child.lesser is not None:
                stack.append(child.lesser)
        return points

    def remove(self, value):
        """
        Removes the first occurrence of a point found in the tree. The subtree below
        the removed node is rebuilt in place from its remaining points.
        :param value: Point-like value.
        :return: True if a point was removed.
        """
        point = to_point(value)
        index = self._find_index(point)
        if index is None:
            return False

        node = self.nodes[index]
        parent, depth = node.parent, node.depth
        if parent is None:
            side = None
        elif self.nodes[parent].lesser == index:
            side = 'lesser'
        else:
            side = 'greater'

        remaining = self._collect_subtree(index)
        self._release_subtree(index)
        rebuilt = self._build_subtree(remaining, depth, parent)

        if side is None:
            self.root_index = rebuilt
        else:
            setattr(self.nodes[parent], side, rebuilt)
        self.size -= 1

        if self.verbose:
            print("Removed {} at depth {}, rebuilt {} points".format(point, depth, len(remaining)))
        return True

    # ------------------------------------------------------------------
    # Nearest neighbour search
    # ------------------------------------------------------------------
    def nearest_neighbour_search(self, K, value):
        """
        K Nearest Neighbor search.
        :param K: Number of neighbours to retrieve. More than K points are returned
                  when several are tied at the K-th distance.
        :param value: Point-like query.
        :return: list of XYZPoints sorted by distance to the query, then by point order.
        """
        if K < 1:
            raise ValueError("K must be at least 1, got {}".format(K))
        point = to_point(value)
        if point is None:
            raise ValueError("query point must not be None")
        if self.root_index is None:
            raise ValueError("cannot search an empty tree")

        # Find the closest leaf-like node
        current, _ = self._descend(point)

        candidates = CandidateSet(K)
        candidates.offer(current, self.nodes[current].id, self.nodes[current].id.euclidean_distance(point))

        # Go up the tree, looking for better solutions
        visited = 0
        searched = None
        index = current
        while index is not None:
            visited += self._search_node(point, index, candidates, searched)
            searched = index
            index = self.nodes[index].parent

        if self.verbose:
            print("KNN search for {} visited {} of {} nodes".format(point, visited, self.size))

        return candidates.points()

    def _search_node(self, point, index, candidates, searched):
        """
        Offers a node and the reachable part of its subtree to the candidate set.
        :param searched: Child index whose subtree is already searched, or None.
        :return: Number of nodes examined.
        """
        visited = 0
        # Each entry is (node index, distance from the query to the node's half-space)
        stack = [(index, 0.0)]
        while stack:
            index, bound = stack.pop()
            # Worst distance can only shrink after an entry is pushed, so check again
            if bound > candidates.worst_distance():
                continue

            node = self.nodes[index]
            visited += 1
            candidates.offer(index, node.id, node.id.euclidean_distance(point))
            worst = candidates.worst_distance()

            # Lesser holds coordinates <= the node's on this axis, greater holds the rest
            delta = point.coord(node.axis) - node.id.coord(node.axis)
            lesser = (node.lesser, max(delta, 0.0))
            greater = (node.greater, max(-delta, 0.0))
            near, far = (lesser, greater) if delta <= 0 else (greater, lesser)

            # Push far side first so the near side is searched first
            for child, child_bound in (far, near):
                if child is None or child == searched or child in candidates:
                    continue
                if child_bound <= worst:
                    stack.append((child, child_bound))

        return visited

    def nearest_neighbour(self, value):
        return self.nearest_neighbour_search(1, value)[0]

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    def __len__(self):
        return self.size

    def is_empty(self):
        return self.root_index is None

    def points(self):
        """
        Points in pre-order, lesser before greater.
        """
        points = []
        if self.root_index is None:
            return points
        stack = [self.root_index]
        while stack:
            node = self.nodes[stack.pop()]
            points.append(node.id)
            if node.greater is not None:
                stack.append(node.greater)
            if node.lesser is not None:
                stack.append(node.lesser)
        return points

    def __iter__(self):
        return iter(self.points())

    def height(self):
        if self.root_index is None:
            return 0
        height = 0
        stack = [(self.root_index, 1)]
        while stack:
            index, level = stack.pop()
            node = self.nodes[index]
            height = max(height, level)
            for child in (node.lesser, node.greater):
                if child is not None:
                    stack.append((child, level + 1))
        return height

    def validate(self):
        """
        Checks parent links, depths and the splitting invariant of every node.
        :return: True if the tree is structurally valid.
        """
        if self.root_index is None:
            return self.size == 0

        count = 0
        # Per-axis bounds inherited from ancestors: lower is exclusive, upper is inclusive
        inf = float('inf')
        stack = [(self.root_index, None, 0, [-inf] * 3, [inf] * 3)]
        while stack:
            index, parent, depth, lower, upper = stack.pop()
            node = self.nodes[index]
            count += 1
            if node.parent != parent or node.depth != depth or node.k != self.k:
                return False
            for axis in range(3):
                if not lower[axis] < node.id.coord(axis) <= upper[axis]:
                    return False

            axis = node.axis
            split = node.id.coord(axis)
            if node.lesser is not None:
                child_upper = list(upper)
                child_upper[axis] = min(upper[axis], split)
                stack.append((node.lesser, index, depth + 1, lower, child_upper))
            if node.greater is not None:
                child_lower = list(lower)
                child_lower[axis] = max(lower[axis], split)
                stack.append((node.greater, index, depth + 1, child_lower, upper))

        return count == self.size

    def __str__(self):
        return TreePrinter.get_string(self)


# Define main function to demo the KdTree
def main():
    points = [(2, 3), (5, 4), (9, 6), (4, 7), (8, 1), (7, 2)]
    tree = KdTree(points, k=2)
    print(tree)

    # K nearest neighbours of a query point
    query_point = (9, 2)
    print(tree.nearest_neighbour_search(1, query_point))
    print(tree.nearest_neighbour_search(3, query_point))

    tree.remove((7, 2))
    print(tree)
    print(tree.nearest_neighbour_search(1, query_point))

if __name__ == '__main__':
    main()
