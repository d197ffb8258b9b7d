from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from .config import CompilerConfig
from .frontend import load_source
from .ir import ComputeGraph
from .lowering import LowerRegistry, LoweringDispatcher, register_standard_rules
from .passes import DeadValueElimination, EliminateIdentity, PassLog, PassManager, VerifyGraph
from .source import SourceGraph
from .statistics import AccessMode, Statistics
from .targets import Target, TargetRegistry

logger = logging.getLogger(__name__)


@dataclass
class CompileResult:
    graph: ComputeGraph
    log: PassLog
    target: str


@dataclass
class Compiler:
    """Lowers a source graph and runs the target's pass pipeline over it.

    Pipeline order:
    1. generic cleanup (EliminateIdentity, DeadValueElimination) to a fixed point
    2. the target's own passes
    3. VerifyGraph, when `config.verify` is set
    """

    config: CompilerConfig = field(default_factory=CompilerConfig)
    target: Target | None = None
    statistics: Statistics | None = None

    def __post_init__(self) -> None:
        if self.target is None:
            self.target = TargetRegistry.get_target(self.config.target)
        if self.statistics is None and self.config.statistics_path is not None:
            self.statistics = Statistics.open(self.config.statistics_path, AccessMode.READ_WRITE)
        self.registry = self.build_registry()

    def build_registry(self) -> LowerRegistry:
        registry = LowerRegistry()
        self.target.register_lowers(registry)
        register_standard_rules(registry)
        return registry

    def build_pipeline(self) -> PassManager:
        manager = PassManager(name=f"{self.target.name}-pipeline")
        manager.add_fixed_point(
            [EliminateIdentity(), DeadValueElimination()],
            max_iterations=self.config.max_fixed_point_iterations,
        )
        self.target.add_passes(manager)
        if self.config.verify:
            manager.add(VerifyGraph())
        return manager

    def lower(self, source: SourceGraph) -> ComputeGraph:
        return LoweringDispatcher(self.registry, self.statistics).lower(source)

    def compile(self, source: SourceGraph) -> CompileResult:
        graph = self.lower(source)
        log = self.build_pipeline().run(source, graph)
        if self.statistics is not None:
            self.statistics.sync()
        return CompileResult(graph=graph, log=log, target=self.target.name)

    def compile_file(self, path: Union[str, Path]) -> CompileResult:
        return self.compile(load_source(path, lower_subgraph=self.lower))
