from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterator, Sequence, Union

from onnxlower.errors import CompilerError, PassError
from onnxlower.ir import IRValidationError

from .base import GraphPass, PassResult

if TYPE_CHECKING:
    from onnxlower.ir import ComputeGraph
    from onnxlower.source import SourceGraph

logger = logging.getLogger(__name__)


class PipelineState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class PassRecord:
    name: str
    result: PassResult


@dataclass
class PassLog:
    """Pass-by-pass record of one pipeline run, in execution order."""

    records: list[PassRecord] = field(default_factory=list)

    def append(self, name: str, result: PassResult) -> None:
        self.records.append(PassRecord(name, result))

    @property
    def changed(self) -> bool:
        return any(r.result is PassResult.GRAPH_CHANGED for r in self.records)

    def names(self) -> list[str]:
        return [r.name for r in self.records]

    def __iter__(self) -> Iterator[PassRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def format(self) -> str:
        return "\n".join(f"{r.name}: {r.result.value}" for r in self.records)


@dataclass(frozen=True)
class FixedPoint:
    """A group of passes re-run until none of them changes the graph."""

    passes: tuple[GraphPass, ...]
    max_iterations: int = 8


Entry = Union[GraphPass, FixedPoint]


class PassManager:
    """Runs passes in exactly the order they were added.

    There is no dependency resolution: ordering is the pipeline author's
    responsibility. A pass that reports ERROR (or raises anything) stops the
    pipeline with a PassError; the compute graph keeps whatever state it
    reached and is tagged with ``graph.attrs["failed_pass"]`` so it is not
    mistaken for a finished graph.
    """

    def __init__(self, name: str = "pipeline") -> None:
        self.name = name
        self._entries: list[Entry] = []
        self.state = PipelineState.IDLE
        self.current: str | None = None

    def add(self, pass_: GraphPass) -> PassManager:
        self._entries.append(pass_)
        return self

    def add_fixed_point(self, passes: Sequence[GraphPass], max_iterations: int = 8) -> PassManager:
        if max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        self._entries.append(FixedPoint(tuple(passes), max_iterations))
        return self

    def __len__(self) -> int:
        return len(self._entries)

    def run(self, source: SourceGraph, graph: ComputeGraph) -> PassLog:
        log = PassLog()
        self.state = PipelineState.RUNNING
        for entry in self._entries:
            if isinstance(entry, FixedPoint):
                self._run_fixed_point(entry, source, graph, log)
            else:
                self._run_one(entry, source, graph, log)
        self.state = PipelineState.DONE
        self.current = None
        logger.info("%s: ran %d pass(es), changed=%s", self.name, len(log), log.changed)
        return log

    def _run_fixed_point(self, group: FixedPoint, source: SourceGraph, graph: ComputeGraph, log: PassLog) -> None:
        for i in range(group.max_iterations):
            changed = False
            for p in group.passes:
                if self._run_one(p, source, graph, log) is PassResult.GRAPH_CHANGED:
                    changed = True
            if not changed:
                logger.debug("%s: fixed point reached after %d iteration(s)", self.name, i + 1)
                return
        logger.warning(
            "%s: fixed-point group %s still changing after %d iterations",
            self.name,
            [p.pass_name for p in group.passes],
            group.max_iterations,
        )

    def _run_one(self, pass_: GraphPass, source: SourceGraph, graph: ComputeGraph, log: PassLog) -> PassResult:
        name = pass_.pass_name
        self.current = name
        try:
            result = pass_.run(source, graph)
        except PassError as exc:
            self._fail(name, graph, log)
            raise PassError(f"{name}: {exc.message}", pass_name=name, node=exc.node, log=log, graph=graph) from exc
        except (CompilerError, IRValidationError) as exc:
            self._fail(name, graph, log)
            raise PassError(f"{name}: {exc}", pass_name=name, log=log, graph=graph) from exc
        except Exception as exc:
            self._fail(name, graph, log)
            raise PassError(
                f"{name}: unexpected {type(exc).__name__}: {exc}", pass_name=name, log=log, graph=graph
            ) from exc

        if not isinstance(result, PassResult):
            self._fail(name, graph, log)
            raise TypeError(f"pass {name} returned {result!r}, expected a PassResult")
        if result is PassResult.ERROR:
            self._fail(name, graph, log)
            raise PassError(f"{name}: pass reported an error", pass_name=name, log=log, graph=graph)

        log.append(name, result)
        logger.debug("%s: %s -> %s", self.name, name, result.value)
        return result

    def _fail(self, name: str, graph: ComputeGraph, log: PassLog) -> None:
        log.append(name, PassResult.ERROR)
        graph.attrs["failed_pass"] = name
        self.state = PipelineState.FAILED
        logger.error("%s: pass %s failed, aborting pipeline", self.name, name)
