import matplotlib.pyplot as plt

from kdtree3d.axis import X_AXIS, Y_AXIS
from kdtree3d.point import to_point


def _bounds(points, margin=1.0):
    x_vals = [point.x for point in points]
    y_vals = [point.y for point in points]
    return [min(x_vals) - margin, max(x_vals) + margin, min(y_vals) - margin, max(y_vals) + margin]


def plot_tree(tree, color='b', split_color='gray', ax=None, file_name=None):
    """
    Plots the x/y projection of the tree's points and its x and y split lines.
    Splits on z are not drawn. The tree is only read.
    :param tree: KdTree to plot.
    :param ax: Optional matplotlib axes, a new figure is made if None.
    :param file_name: If given, the figure is saved to this file.
    :return: The matplotlib axes.
    """
    if ax is None:
        plt.figure()
        ax = plt.gca()

    points = tree.points()
    if len(points) == 0:
        ax.set_title("Tree has no nodes.")
        if file_name is not None:
            plt.savefig(file_name)
        return ax

    ax.scatter([point.x for point in points], [point.y for point in points], marker='o', color=color)

    # Walk the tree carrying each node's region [x_min, x_max, y_min, y_max]
    stack = [(tree.root_index, _bounds(points))]
    while stack:
        index, region = stack.pop()
        node = tree.node(index)
        axis = node.axis
        lesser_region = list(region)
        greater_region = list(region)
        if axis == X_AXIS:
            ax.plot([node.id.x, node.id.x], [region[2], region[3]], color=split_color, linewidth=1)
            lesser_region[1] = node.id.x
            greater_region[0] = node.id.x
        elif axis == Y_AXIS:
            ax.plot([region[0], region[1]], [node.id.y, node.id.y], color=split_color, linewidth=1)
            lesser_region[3] = node.id.y
            greater_region[2] = node.id.y

        if node.lesser is not None:
            stack.append((node.lesser, lesser_region))
        if node.greater is not None:
            stack.append((node.greater, greater_region))

    x_min, x_max, y_min, y_max = _bounds(points)
    ax.set_xlim(x_min, x_max)
    ax.set_ylim(y_min, y_max)

    if file_name is not None:
        plt.savefig(file_name)
    return ax


def plot_knn(tree, query, neighbours, c_query='r', c_neighbours='g', file_name=None):
    """
    Plots the tree with a query point and its neighbours overlaid.
    """
    ax = plot_tree(tree)
    query = to_point(query)
    ax.scatter([query.x], [query.y], marker='x', color=c_query)
    ax.scatter([point.x for point in neighbours], [point.y for point in neighbours],
               marker='o', facecolors='none', edgecolors=c_neighbours, s=80)

    if file_name is not None:
        plt.savefig(file_name)
    return ax
