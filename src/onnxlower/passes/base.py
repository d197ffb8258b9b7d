from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from onnxlower.ir import ComputeGraph
    from onnxlower.source import SourceGraph


class PassResult(Enum):
    NO_CHANGE = "no_change"
    GRAPH_CHANGED = "graph_changed"
    ERROR = "error"


class GraphPass:
    """One transformation step over a (source graph, compute graph) pair.

    Passes keep no state between runs. `run` may report ERROR or raise
    PassError; either way the pipeline stops after this pass.
    """

    name: str = "pass"

    def run(self, source: SourceGraph, graph: ComputeGraph) -> PassResult:
        raise NotImplementedError

    @property
    def pass_name(self) -> str:
        return self.name if self.name != "pass" else self.__class__.__name__
