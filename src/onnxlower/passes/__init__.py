from .base import GraphPass, PassResult
from .cleanup import DeadValueElimination, EliminateIdentity, VerifyGraph
from .manager import FixedPoint, PassLog, PassManager, PassRecord, PipelineState
from .visitor import ComputeVisitor, VisitorPass

__all__ = [
    "GraphPass",
    "PassResult",
    "PassManager",
    "PassLog",
    "PassRecord",
    "PipelineState",
    "FixedPoint",
    "ComputeVisitor",
    "VisitorPass",
    "EliminateIdentity",
    "DeadValueElimination",
    "VerifyGraph",
]
