from .base import GenericTarget, Target, TargetRegistry, register_target
from .int8 import CalibrationTable, Int8ReluLower, Int8Target, LegalizePass, UpdateCtablePass, UpdateCtableVisitor

__all__ = [
    "Target",
    "TargetRegistry",
    "register_target",
    "GenericTarget",
    "Int8Target",
    "Int8ReluLower",
    "CalibrationTable",
    "UpdateCtablePass",
    "UpdateCtableVisitor",
    "LegalizePass",
]
