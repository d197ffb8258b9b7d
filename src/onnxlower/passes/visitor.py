from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .base import GraphPass, PassResult

if TYPE_CHECKING:
    from onnxlower.ir import ComputeGraph, ComputeOperator
    from onnxlower.ir import node as ops
    from onnxlower.source import SourceGraph


class ComputeVisitor:
    """Per-kind hook for backend-specific node mutation.

    `node.accept(visitor)` calls the method for the node's concrete kind.
    Every method falls back to `visit_operator`, so a visitor only overrides
    the kinds it cares about. Return True when the node was changed; raise
    PassError to reject a node.
    """

    def visit_operator(self, node: ComputeOperator) -> bool:
        return False

    def visit_abs(self, node: ops.Abs) -> bool:
        return self.visit_operator(node)

    def visit_relu(self, node: ops.Relu) -> bool:
        return self.visit_operator(node)

    def visit_sigmoid(self, node: ops.Sigmoid) -> bool:
        return self.visit_operator(node)

    def visit_softplus(self, node: ops.Softplus) -> bool:
        return self.visit_operator(node)

    def visit_hard_sigmoid(self, node: ops.HardSigmoid) -> bool:
        return self.visit_operator(node)

    def visit_identity(self, node: ops.Identity) -> bool:
        return self.visit_operator(node)

    def visit_add(self, node: ops.Add) -> bool:
        return self.visit_operator(node)

    def visit_mul(self, node: ops.Mul) -> bool:
        return self.visit_operator(node)

    def visit_mat_mul(self, node: ops.MatMul) -> bool:
        return self.visit_operator(node)

    def visit_gemm(self, node: ops.Gemm) -> bool:
        return self.visit_operator(node)

    def visit_conv(self, node: ops.Conv) -> bool:
        return self.visit_operator(node)

    def visit_reshape(self, node: ops.Reshape) -> bool:
        return self.visit_operator(node)

    def visit_transpose(self, node: ops.Transpose) -> bool:
        return self.visit_operator(node)


@dataclass
class VisitorPass(GraphPass):
    """Walks every node in order and lets the visitor handle it.

    The pass itself never looks at concrete node kinds.
    """

    visitor: ComputeVisitor
    name: str = "visitor"

    def run(self, source: SourceGraph, graph: ComputeGraph) -> PassResult:
        changed = False
        for node in graph:
            if node.accept(self.visitor):
                changed = True
        return PassResult.GRAPH_CHANGED if changed else PassResult.NO_CHANGE
