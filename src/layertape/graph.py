import logging
import rustworkx as rx
from .layer import Layer

logger = logging.getLogger(__name__)


class LayerGraph:
    """
    Directed graph view of a layer tree, with an edge from every operand to the
    layer that consumes it. A layer used in several places appears once.
    """
    __slots__ = ('graph', '_node_ids', 'root_id', '__weakref__')

    def __init__(self, root, check_for_cycles=True):
        if not isinstance(root, Layer):
            raise TypeError(f"root must be a Layer, got {type(root).__name__}")
        self.graph = rx.PyDiGraph()
        self._node_ids = {}
        self.root_id = self._add_layers(root)
        if check_for_cycles and self.check_cycle():
            raise RuntimeError("Cycle detected in layer graph.")
        logger.debug("Built %r", self)

    def _add_layers(self, root):
        root_id = self._add_layer(root)
        pending = [root]
        visited = set()
        while pending:
            layer = pending.pop()
            if id(layer) in visited:
                continue
            visited.add(id(layer))
            for operand in layer.operands:
                operand_id = self._add_layer(operand)
                self.graph.add_edge(operand_id, self._node_ids[id(layer)], None)
                pending.append(operand)
        return root_id

    def _add_layer(self, layer):
        node_id = self._node_ids.get(id(layer))
        if node_id is None:
            node_id = self.graph.add_node(layer)
            self._node_ids[id(layer)] = node_id
        return node_id

    def check_cycle(self):
        return not rx.is_directed_acyclic_graph(self.graph)

    def topological_layers(self):
        """Layers ordered so every operand comes before its consumers."""
        return [self.graph[i] for i in rx.topological_sort(self.graph)]

    def leaves(self):
        return [self.graph[i] for i in self.graph.node_indices() if self.graph.in_degree(i) == 0]

    def weights(self):
        from .layers import Weight
        return [layer for layer in self.topological_layers() if isinstance(layer, Weight)]

    @property
    def num_layers(self):
        return self.graph.num_nodes()

    @property
    def num_edges(self):
        return self.graph.num_edges()

    def __len__(self):
        return self.num_layers

    def __repr__(self):
        return f"LayerGraph(layers={self.num_layers}, edges={self.num_edges})"
