from __future__ import annotations

import logging
from dataclasses import dataclass

from onnxlower.errors import CompilerError, MalformedOperatorError, UnknownValueError, UnsupportedOperatorError
from onnxlower.ir import ComputeGraph
from onnxlower.source import SourceGraph
from onnxlower.statistics import Statistics

from .registry import LowerRegistry

logger = logging.getLogger(__name__)


@dataclass
class LoweringDispatcher:
    """Lowers a source graph into a fresh ComputeGraph.

    Nodes are processed in source order. The first node that no rule claims,
    or that the chosen rule rejects, aborts the whole unit: the caller gets an
    exception and never a partially lowered graph.
    """

    registry: LowerRegistry
    statistics: Statistics | None = None

    def lower(self, source: SourceGraph) -> ComputeGraph:
        graph = ComputeGraph(name=source.name)
        self._declare_inputs(source, graph)

        for node in source:
            rule, _ = self.registry.select(node)
            if rule is None:
                raise UnsupportedOperatorError(node)

            n_nodes, n_values = len(graph), len(graph.values)
            op = rule.activate(graph, node, source)
            if op is None:
                if (len(graph), len(graph.values)) != (n_nodes, n_values):
                    raise CompilerError(
                        f"rule {rule.name} rejected {node.kind!r} but modified the graph",
                        context={"rule": rule.name, "kind": node.kind},
                    )
                raise MalformedOperatorError(node, rule=rule.name)
            self._count(node.kind)

        for sv in source.outputs:
            if not graph.has_value(sv.name):
                raise UnknownValueError(sv.name)
            graph.mark_output(graph.add_value(sv.name, sv.dtype, sv.shape))

        logger.info(
            "lowered %s: %d source nodes -> %d compute nodes, %d values",
            source.name,
            len(source),
            len(graph),
            len(graph.values),
        )
        return graph

    @staticmethod
    def _declare_inputs(source: SourceGraph, graph: ComputeGraph) -> None:
        for name, data in source.initializers.items():
            graph.add_initializer(name, data)
        for sv in source.inputs:
            graph.mark_input(graph.add_value(sv.name, sv.dtype, sv.shape))

    def _count(self, kind: str) -> None:
        if self.statistics is None:
            return
        name = f"lower.{kind}"
        self.statistics.add_counter(name, f"number of lowered {kind} nodes")
        self.statistics.increase_counter(name)


def lower(source: SourceGraph, registry: LowerRegistry) -> ComputeGraph:
    return LoweringDispatcher(registry).lower(source)
