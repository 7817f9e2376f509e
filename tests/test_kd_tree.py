"""
    Unit tests for kd_tree.py
"""
import math
import random

import numpy as np
import pytest
import torch

from kdtree3d.kd_tree import KdTree
from kdtree3d.point import XYZPoint


@pytest.fixture
def points():
    return [(2, 3, 0), (5, 4, 0), (9, 6, 0), (4, 7, 0), (8, 1, 0), (7, 2, 0)]


def random_points(seed, n, grid=None):
    rng = random.Random(seed)
    if grid is None:
        return [(rng.uniform(-10, 10), rng.uniform(-10, 10), rng.uniform(-10, 10)) for _ in range(n)]
    # Small integer grid, so many coordinates are tied
    return [(rng.randint(0, grid), rng.randint(0, grid), rng.randint(0, grid)) for _ in range(n)]


def test_nearest_neighbour(points):
    tree = KdTree(points, k=2)

    # Test nearest neighbour search for points
    query_point = (9, 2, 0)
    assert tree.nearest_neighbour_search(1, query_point) == [XYZPoint(8, 1, 0)]
    assert tree.nearest_neighbour(query_point) == XYZPoint(8, 1, 0)

    # Now, add a new point and test again
    tree.add((10, 2, 0))
    assert tree.nearest_neighbour(query_point) == XYZPoint(10, 2, 0)


def test_nearest_neighbour_default_k(points):
    tree = KdTree(points)
    assert tree.k == 3
    assert tree.nearest_neighbour_search(1, (9, 2, 0)) == [XYZPoint(8, 1, 0)]
    assert tree.validate()


def test_add_contains_remove():
    tree = KdTree()
    assert tree.is_empty()

    assert tree.add((1, 1, 1))
    assert tree.contains((1, 1, 1))
    assert len(tree) == 1

    assert tree.remove((1, 1, 1))
    assert not tree.contains((1, 1, 1))
    assert tree.is_empty()
    assert len(tree) == 0
    assert tree.root is None


def test_none_values(points):
    tree = KdTree(points)
    before = tree.points()

    assert not tree.add(None)
    assert not tree.contains(None)
    assert not tree.remove(None)
    assert tree.find(None) is None
    assert tree.points() == before


def test_missing_values(points):
    tree = KdTree(points)
    assert not tree.contains((1, 1, 0))
    assert not tree.remove((1, 1, 0))
    assert len(tree) == len(points)

    empty = KdTree()
    assert not empty.contains((1, 1, 0))
    assert not empty.remove((1, 1, 0))


def test_build_structure(points):
    tree = KdTree(points, k=2)

    # Median on x first, then on y
    root = tree.root
    assert root.id == XYZPoint(7, 2)
    assert root.depth == 0 and root.parent is None
    assert tree.node(root.lesser).id == XYZPoint(5, 4)
    assert tree.node(root.greater).id == XYZPoint(9, 6)
    assert tree.node(tree.node(root.greater).lesser).id == XYZPoint(8, 1)
    assert tree.node(tree.node(root.greater).greater) is None
    assert tree.height() == 3


def test_build_ties_go_lesser():
    # All points share x, so only the last of the tie run can be the split
    tree = KdTree([(1, 5), (1, 2), (1, 9), (1, 4)], k=2)
    assert tree.root.id == XYZPoint(1, 4)
    assert tree.root.greater is None
    assert tree.validate()
    for point in [(1, 5), (1, 2), (1, 9), (1, 4)]:
        assert tree.contains(point)


def test_add_routes_ties_lesser():
    tree = KdTree(k=2)
    tree.add((5, 5))
    tree.add((5, 1))
    tree.add((6, 0))
    assert tree.node(tree.root.lesser).id == XYZPoint(5, 1)
    assert tree.node(tree.root.greater).id == XYZPoint(6, 0)
    assert tree.node(tree.root.lesser).depth == 1
    assert tree.node(tree.root.lesser).parent == tree.root_index


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
@pytest.mark.parametrize("k", [1, 2, 3])
def test_axis_invariant_bulk(seed, k):
    tree = KdTree(random_points(seed, 200, grid=5), k=k)
    assert len(tree) == 200
    assert tree.validate()


@pytest.mark.parametrize("seed", [0, 1, 2, 3])
@pytest.mark.parametrize("k", [1, 2, 3])
def test_axis_invariant_insert(seed, k):
    tree = KdTree(k=k)
    for point in random_points(seed, 200, grid=5):
        assert tree.add(point)
    assert len(tree) == 200
    assert tree.validate()


@pytest.mark.parametrize("seed", [4, 5])
def test_insert_find_round_trip(seed):
    tree = KdTree(random_points(seed, 50))
    inserted = random_points(seed + 100, 100)
    for ii, point in enumerate(inserted):
        tree.add(point)
        assert tree.contains(point)
        # Earlier insertions stay findable
        for earlier in inserted[:ii]:
            assert tree.contains(earlier)


@pytest.mark.parametrize("seed", [6, 7, 8])
@pytest.mark.parametrize("grid", [None, 4])
def test_remove_all(seed, grid):
    cloud = random_points(seed, 120, grid=grid)
    tree = KdTree(cloud)
    rng = random.Random(seed)
    remaining = list(cloud)
    rng.shuffle(remaining)

    while remaining:
        point = remaining.pop()
        assert tree.remove(point)
        assert tree.validate()
        assert len(tree) == len(remaining)
        # Duplicates keep one occurrence findable
        assert tree.contains(point) == (point in remaining)

    assert tree.is_empty()


def test_remove_keeps_subtree(points):
    tree = KdTree(points, k=2)
    # Root removal rebuilds the whole tree from the other points
    assert tree.remove((7, 2, 0))
    assert len(tree) == 5
    assert tree.validate()
    for point in points:
        if point != (7, 2, 0):
            assert tree.contains(point)

    # Removing an inner node rebuilds only below it
    inner = tree.node(tree.root.lesser).id
    root_id = tree.root.id
    assert tree.remove(inner)
    assert tree.root.id == root_id
    assert tree.validate()
    assert sorted(tree.points()) == sorted(XYZPoint(*p) for p in points if p != (7, 2, 0) and XYZPoint(*p) != inner)


def test_remove_leaf(points):
    tree = KdTree(points, k=2)
    assert tree.remove((8, 1, 0))
    assert tree.node(tree.root.greater).lesser is None
    assert tree.validate()


def test_duplicates():
    tree = KdTree([(1, 1, 1), (2, 2, 2)])
    tree.add((1, 1, 1))
    assert len(tree) == 3
    assert tree.remove((1, 1, 1))
    assert tree.contains((1, 1, 1))
    assert tree.remove((1, 1, 1))
    assert not tree.contains((1, 1, 1))
    assert not tree.remove((1, 1, 1))
    assert len(tree) == 1


def test_arena_reuses_slots(points):
    tree = KdTree(points)
    slots = len(tree.nodes)
    tree.remove(tree.root.id)
    tree.add((0, 0, 0))
    assert len(tree.nodes) == slots


def test_deep_chain_does_not_recurse():
    # Sorted inserts along one axis produce a chain deeper than the recursion limit
    tree = KdTree(k=1)
    n = 2000
    for ii in range(n):
        tree.add((ii, 0, 0))
    assert tree.height() == n
    assert tree.validate()
    assert tree.nearest_neighbour_search(2, (1000.4, 0, 0)) == [XYZPoint(1000, 0, 0), XYZPoint(1001, 0, 0)]
    assert str(tree).count("\n") == n

    assert tree.remove((0, 0, 0))
    assert tree.validate()
    assert len(tree) == n - 1
    assert tree.height() < 20


def test_numpy_and_tensor_inputs(points):
    np_tree = KdTree(np.array(points, dtype=float))
    torch_tree = KdTree(torch.tensor(points, dtype=torch.float64))
    assert np_tree.points() == torch_tree.points() == KdTree(points).points()

    # 2D arrays pad z with zero
    tree = KdTree(np.array([[1.0, 2.0], [3.0, 4.0]]))
    assert tree.contains((1, 2, 0))
    assert tree.contains(np.array([3.0, 4.0]))
    assert tree.contains(torch.tensor([3.0, 4.0, 0.0]))


def test_invalid_inputs(points):
    with pytest.raises(ValueError):
        KdTree(np.zeros((4, 5)))
    with pytest.raises(ValueError):
        KdTree(points, k=4)
    with pytest.raises(ValueError):
        KdTree([(1, 2), None])
    tree = KdTree(points)
    with pytest.raises(ValueError):
        tree.add((1, 2, 3, 4))


def test_iteration_order(points):
    tree = KdTree(points, k=2)
    assert list(tree) == [XYZPoint(7, 2), XYZPoint(5, 4), XYZPoint(2, 3), XYZPoint(4, 7),
                          XYZPoint(9, 6), XYZPoint(8, 1)]
    assert XYZPoint(9, 6) in tree


def test_config_file(points, tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("kdtree:\n  parameters:\n    k: 2\n  logging:\n    verbose: False\n")
    tree = KdTree(points, config_path=str(config_file))
    assert tree.k == 2
    assert not tree.verbose

    # Explicit arguments win over the config file
    tree = KdTree(points, k=1, config_path=str(config_file))
    assert tree.k == 1


def test_verbose(points, capsys):
    tree = KdTree(points, verbose=True)
    tree.remove((7, 2, 0))
    tree.nearest_neighbour_search(2, (0, 0, 0))
    out = capsys.readouterr().out
    assert "Built k-d tree with 6 points" in out
    assert "Removed (7.0, 2.0, 0.0)" in out
    assert "KNN search for (0.0, 0.0, 0.0)" in out

    KdTree(points)
    assert capsys.readouterr().out == ""


def test_node_str(points):
    tree = KdTree(points, k=2)
    assert str(tree.root) == "k=2 depth=0 id=(7.0, 2.0, 0.0)"
    assert not tree.root.is_leaf()
    assert tree.root.axis == 0


@pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf])
def test_non_finite_points_rejected(points, bad):
    with pytest.raises(ValueError):
        KdTree(points + [(bad, 0, 0)])
    with pytest.raises(ValueError):
        KdTree(np.array([[0.0, 0.0, 0.0], [0.0, bad, 0.0]]))

    tree = KdTree(points)
    with pytest.raises(ValueError):
        tree.add((bad, 0, 0))
    assert len(tree) == len(points)
    assert tree.validate()
