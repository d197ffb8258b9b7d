"""Compiler error taxonomy.

Every error carries a stable code plus a context dict so the invoking tool can
surface it verbatim. Errors are raised, never swallowed or retried here.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .ir.graph import ComputeGraph
    from .passes.manager import PassLog
    from .source import SourceNode


class ErrorCode(str, Enum):
    # 1xxx - lowering
    UNSUPPORTED_OPERATOR = "E1001"
    MALFORMED_OPERATOR = "E1002"

    # 2xxx - compute graph
    DUPLICATE_VALUE_NAME = "E2001"
    UNKNOWN_VALUE = "E2002"

    # 3xxx - passes
    PASS_FAILED = "E3001"

    # 4xxx - tooling
    CONFIG_INVALID = "E4001"
    STATISTICS_INVALID = "E4002"
    SOURCE_LOAD_FAILED = "E4003"

    # 9xxx - internal
    INTERNAL_ERROR = "E9001"


class CompilerError(Exception):
    """Base class for all compiler errors."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, *, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})

    def to_json(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "error": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }

    def format(self) -> str:
        """Plain multi-line representation."""
        lines = [
            f"{self.__class__.__name__}: {self.message}",
            f"  code: {self.code.value}",
        ]
        for k, v in self.context.items():
            lines.append(f"  {k}: {v}")
        return "\n".join(lines)


def _node_context(node: SourceNode) -> dict[str, Any]:
    return {
        "node": node.name or "<unnamed>",
        "kind": node.kind,
        "inputs": list(node.input_names),
        "outputs": list(node.output_names),
    }


class UnsupportedOperatorError(CompilerError):
    """No registered lowering rule claims a source node."""

    code = ErrorCode.UNSUPPORTED_OPERATOR

    def __init__(self, node: SourceNode) -> None:
        super().__init__(
            f"unsupported operator {node.kind!r} (node {node.name or '<unnamed>'!r})",
            context=_node_context(node),
        )
        self.node = node


class MalformedOperatorError(CompilerError):
    """A rule claims the node but its arity or names do not validate."""

    code = ErrorCode.MALFORMED_OPERATOR

    def __init__(self, node: SourceNode, *, rule: str | None = None) -> None:
        ctx = _node_context(node)
        if rule:
            ctx["rule"] = rule
        super().__init__(
            f"malformed operator {node.kind!r} (node {node.name or '<unnamed>'!r})",
            context=ctx,
        )
        self.node = node


class DuplicateValueNameError(CompilerError):
    """Two distinct values claim the same name with incompatible types."""

    code = ErrorCode.DUPLICATE_VALUE_NAME

    def __init__(self, name: str, existing: object, requested: object) -> None:
        super().__init__(
            f"value {name!r} already exists with dtype {existing}, requested {requested}",
            context={"value": name, "existing": str(existing), "requested": str(requested)},
        )
        self.name = name


class UnknownValueError(CompilerError, KeyError):
    code = ErrorCode.UNKNOWN_VALUE

    def __init__(self, name: str) -> None:
        super().__init__(f"no value named {name!r}", context={"value": name})
        self.name = name

    def __str__(self) -> str:
        return self.message


class PassError(CompilerError):
    """A pass reported a failure; the rest of the pipeline is aborted."""

    code = ErrorCode.PASS_FAILED

    def __init__(
        self,
        message: str,
        *,
        pass_name: str | None = None,
        node: str | None = None,
        log: PassLog | None = None,
        graph: ComputeGraph | None = None,
    ) -> None:
        ctx: dict[str, Any] = {}
        if pass_name:
            ctx["pass"] = pass_name
        if node:
            ctx["node"] = node
        super().__init__(message, context=ctx)
        self.pass_name = pass_name
        self.node = node
        self.log = log
        # state reached before the failure; for inspection only
        self.graph = graph


class ConfigError(CompilerError):
    code = ErrorCode.CONFIG_INVALID


class StatisticsError(CompilerError):
    code = ErrorCode.STATISTICS_INVALID


class SourceLoadError(CompilerError):
    code = ErrorCode.SOURCE_LOAD_FAILED


__all__ = [
    "ErrorCode",
    "CompilerError",
    "UnsupportedOperatorError",
    "MalformedOperatorError",
    "DuplicateValueNameError",
    "UnknownValueError",
    "PassError",
    "ConfigError",
    "StatisticsError",
    "SourceLoadError",
]
