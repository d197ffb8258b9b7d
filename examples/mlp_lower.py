from __future__ import annotations

import logging
import sys
from pathlib import Path

repo_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(repo_root / "src"))

import numpy as np

from onnxlower import Compiler, CompilerConfig, SourceGraph
from onnxlower.source import source_node, source_value

def build_2layer_mlp(hidden: int = 64) -> SourceGraph:
    rng = np.random.default_rng(0)
    return SourceGraph(
        name="mlp_2layer",
        nodes=[
            source_node("MatMul", ["x", "w1"], ["h1"], name="mm1"),
            source_node("Relu", ["h1"], ["a1"], name="relu1"),
            source_node("Identity", ["a1"], ["a1_copy"]),
            source_node("Gemm", ["a1_copy", "w2", "b2"], ["h2"], name="fc2", transB=1),
            source_node("Sigmoid", ["h2"], ["y"], name="sig"),
        ],
        inputs=[source_value("x", "float32", ("N", hidden))],
        outputs=[source_value("y", "float32")],
        initializers={
            "w1": rng.standard_normal((hidden, hidden)).astype(np.float32),
            "w2": rng.standard_normal((10, hidden)).astype(np.float32),
            "b2": np.zeros(10, dtype=np.float32),
        },
    )

def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")
    source = build_2layer_mlp()
    print(f"Source: {len(source)} nodes")

    compiler = Compiler(CompilerConfig())
    graph = compiler.lower(source)
    print("\nLowered:")
    print(graph.summary())

    result = compiler.compile(source)
    print("\nPipeline:")
    print(result.log.format())
    print("\nCompiled:")
    print(result.graph.summary())

if __name__ == "__main__":
    main()
