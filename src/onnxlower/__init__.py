"""onnx-lower: ONNX graph -> compute IR -> target passes.

The Python side is small and explicit: a typed compute IR, per-operator
lowering rules picked by match level, and an ordered pass pipeline with a
visitor hook for backend-specific mutation.
"""

from .config import CompilerConfig, load_config
from .driver import CompileResult, Compiler
from .errors import (
    CompilerError,
    DuplicateValueNameError,
    MalformedOperatorError,
    PassError,
    UnsupportedOperatorError,
)
from .ir import Attribute, AttrKind, ComputeGraph, IRValidationError, Value
from .lowering import LowerRegistry, LowerRule, LoweringDispatcher, MatchLevel
from .passes import ComputeVisitor, GraphPass, PassManager, PassResult, VisitorPass
from .source import SourceGraph, SourceNode, SourceValue

__all__ = [
    "CompilerConfig",
    "load_config",
    "Compiler",
    "CompileResult",
    "CompilerError",
    "DuplicateValueNameError",
    "MalformedOperatorError",
    "PassError",
    "UnsupportedOperatorError",
    "Attribute",
    "AttrKind",
    "ComputeGraph",
    "IRValidationError",
    "Value",
    "LowerRegistry",
    "LowerRule",
    "LoweringDispatcher",
    "MatchLevel",
    "ComputeVisitor",
    "GraphPass",
    "PassManager",
    "PassResult",
    "VisitorPass",
    "SourceGraph",
    "SourceNode",
    "SourceValue",
]
