from .attributes import AttrKind, Attribute, AttributeKindError
from .dtypes import DType, float32, int32, int64, unknown
from .graph import ComputeGraph
from .node import (
    Abs,
    Add,
    ComputeOperator,
    Conv,
    Gemm,
    HardSigmoid,
    Identity,
    IRValidationError,
    MatMul,
    Mul,
    Relu,
    Reshape,
    Sigmoid,
    Softplus,
    Transpose,
)
from .value import Shape, Value

__all__ = [
    "AttrKind",
    "Attribute",
    "AttributeKindError",
    "DType",
    "float32",
    "int32",
    "int64",
    "unknown",
    "ComputeGraph",
    "ComputeOperator",
    "IRValidationError",
    "Abs",
    "Add",
    "Conv",
    "Gemm",
    "HardSigmoid",
    "Identity",
    "MatMul",
    "Mul",
    "Relu",
    "Reshape",
    "Sigmoid",
    "Softplus",
    "Transpose",
    "Shape",
    "Value",
]
