from __future__ import annotations

import logging
from typing import Iterator

from onnxlower.source import SourceNode

from .rule import LowerRule, MatchLevel

logger = logging.getLogger(__name__)


class LowerRegistry:
    """Ordered collection of lowering rules.

    Selection is a pure function of the registered rules and the node: the
    highest match level wins, and among equal levels the rule registered
    first wins. Register backend rules before the standard set (or give them
    a higher level) to override standard lowering.

    The registry is read-only while a compilation is dispatching and may be
    shared by compilations that only read it.
    """

    def __init__(self) -> None:
        self._rules: list[LowerRule] = []

    def register(self, rule: LowerRule) -> LowerRule:
        self._rules.append(rule)
        return rule

    def extend(self, rules: "list[LowerRule] | tuple[LowerRule, ...]") -> None:
        for rule in rules:
            self.register(rule)

    def select(self, node: SourceNode) -> tuple[LowerRule | None, int]:
        best: LowerRule | None = None
        best_level: int = MatchLevel.NOT_ME
        for rule in self._rules:
            level = rule.is_me(node)
            # strict ">" keeps the first-registered rule on ties
            if level > best_level:
                best, best_level = rule, level
        if best is not None:
            logger.debug("%s %r -> %s (level %s)", node.kind, node.name, best.name, int(best_level))
        return best, best_level

    def __iter__(self) -> Iterator[LowerRule]:
        return iter(tuple(self._rules))

    def __len__(self) -> int:
        return len(self._rules)
