from .dispatcher import LoweringDispatcher, lower
from .registry import LowerRegistry
from .rule import AttrSpec, LowerRule, MatchLevel, StandardLower
from .standards import STANDARD_RULES, register_standard_rules


def standard_registry() -> LowerRegistry:
    """A registry holding only the standard rules."""
    return register_standard_rules(LowerRegistry())


__all__ = [
    "AttrSpec",
    "LowerRegistry",
    "LowerRule",
    "LoweringDispatcher",
    "MatchLevel",
    "STANDARD_RULES",
    "StandardLower",
    "lower",
    "register_standard_rules",
    "standard_registry",
]
