"""
Backend target discovery and registration.
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING, Callable, Dict, List, Type, TypeVar

if TYPE_CHECKING:
    from onnxlower.lowering import LowerRegistry
    from onnxlower.passes import PassManager

T = TypeVar("T", bound="Target")


class Target(abc.ABC):
    """
    A backend plugs into the compiler in two places only:
    its own lowering rules (consulted before the standard ones) and its own
    passes (appended after the generic cleanup).
    """

    name: str = ""

    def register_lowers(self, registry: LowerRegistry) -> None:
        """Register backend-specific rules. Called before standard rules."""

    def add_passes(self, manager: PassManager) -> None:
        """Append backend-specific passes to the pipeline."""


class TargetRegistry:
    """
    Central registry of targets by name.
    """

    _targets: Dict[str, Type[Target]] = {}

    @classmethod
    def register(cls, name: str, target_cls: Type[Target]) -> None:
        cls._targets[name] = target_cls

    @classmethod
    def get_target(cls, name: str, **kwargs) -> Target:
        if name not in cls._targets:
            available = ", ".join(sorted(cls._targets))
            raise ValueError(f"Unknown target: '{name}'. Available: {available}")
        return cls._targets[name](**kwargs)

    @classmethod
    def available_targets(cls) -> List[str]:
        return sorted(cls._targets)


def register_target(name: str) -> Callable[[Type[T]], Type[T]]:
    def deco(target_cls: Type[T]) -> Type[T]:
        target_cls.name = name
        TargetRegistry.register(name, target_cls)
        return target_cls

    return deco


@register_target("generic")
class GenericTarget(Target):
    """No backend rules or passes: standard lowering plus generic cleanup."""
