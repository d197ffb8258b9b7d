"""Standard lowering rules: one per supported interchange-format operator."""

from __future__ import annotations

from typing import TYPE_CHECKING

from onnxlower.ir import (
    Abs,
    Add,
    Attribute,
    AttrKind,
    Conv,
    Gemm,
    HardSigmoid,
    Identity,
    MatMul,
    Mul,
    Relu,
    Reshape,
    Sigmoid,
    Softplus,
    Transpose,
)

from .rule import AttrSpec, StandardLower

if TYPE_CHECKING:
    from .registry import LowerRegistry


STANDARD_RULES: tuple[StandardLower, ...] = (
    StandardLower("Abs", Abs),
    StandardLower("Relu", Relu),
    StandardLower("Sigmoid", Sigmoid),
    StandardLower("Softplus", Softplus),
    StandardLower(
        "HardSigmoid",
        HardSigmoid,
        attrs={
            "alpha": AttrSpec(AttrKind.FLOAT, Attribute.float_(0.2)),
            "beta": AttrSpec(AttrKind.FLOAT, Attribute.float_(0.5)),
        },
    ),
    StandardLower("Identity", Identity),
    StandardLower("Add", Add),
    StandardLower("Mul", Mul),
    StandardLower("MatMul", MatMul),
    StandardLower(
        "Gemm",
        Gemm,
        attrs={
            "alpha": AttrSpec(AttrKind.FLOAT, Attribute.float_(1.0)),
            "beta": AttrSpec(AttrKind.FLOAT, Attribute.float_(1.0)),
            "transA": AttrSpec(AttrKind.INT, Attribute.int_(0)),
            "transB": AttrSpec(AttrKind.INT, Attribute.int_(0)),
        },
    ),
    StandardLower(
        "Conv",
        Conv,
        attrs={
            "auto_pad": AttrSpec(AttrKind.STRING, Attribute.string("NOTSET")),
            "dilations": AttrSpec(AttrKind.INTS),
            "group": AttrSpec(AttrKind.INT, Attribute.int_(1)),
            "kernel_shape": AttrSpec(AttrKind.INTS),
            "pads": AttrSpec(AttrKind.INTS),
            "strides": AttrSpec(AttrKind.INTS),
        },
    ),
    StandardLower("Reshape", Reshape, attrs={"allowzero": AttrSpec(AttrKind.INT, Attribute.int_(0))}),
    StandardLower("Transpose", Transpose, attrs={"perm": AttrSpec(AttrKind.INTS)}),
)


def register_standard_rules(registry: LowerRegistry) -> LowerRegistry:
    for rule in STANDARD_RULES:
        registry.register(rule)
    return registry
