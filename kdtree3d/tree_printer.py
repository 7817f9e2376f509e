"""
    Text rendering of a k-d tree for debugging.
"""


class TreePrinter:
    @staticmethod
    def get_string(tree):
        """
        Renders the tree as an indented diagram, one node per line, lesser before greater.
        The tree is only read.
        :param tree: KdTree to render.
        :return: Diagram string.
        """
        if tree.root_index is None:
            return "Tree has no nodes."

        lines = []
        # Each entry is (node index, prefix, is last child)
        stack = [(tree.root_index, "", True)]
        while stack:
            index, prefix, is_tail = stack.pop()
            node = tree.node(index)

            connector = "└── " if is_tail else "├── "
            if node.parent is not None:
                side = "right" if tree.node(node.parent).greater == index else "left"
                lines.append("{}{}[{}] depth={} id={}".format(prefix, connector, side, node.depth, node.id))
            else:
                lines.append("{}{}depth={} id={}".format(prefix, connector, node.depth, node.id))

            children = [child for child in (node.lesser, node.greater) if child is not None]
            child_prefix = prefix + ("    " if is_tail else "│   ")
            # Pushed in reverse so the lesser child is printed first
            for position in reversed(range(len(children))):
                stack.append((children[position], child_prefix, position == len(children) - 1))

        return "\n".join(lines) + "\n"
