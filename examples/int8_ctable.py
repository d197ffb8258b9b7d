from __future__ import annotations

import sys
from pathlib import Path

repo_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(repo_root / "src"))

from onnxlower import Compiler, CompilerConfig, SourceGraph
from onnxlower.errors import PassError
from onnxlower.source import source_node, source_value

def build_graph(with_softplus: bool = False) -> SourceGraph:
    act = "Softplus" if with_softplus else "LeakyRelu"
    return SourceGraph(
        name="int8_demo",
        nodes=[
            source_node("Abs", ["x"], ["a"], name="abs"),
            source_node(act, ["a"], ["y"], name="act"),
        ],
        inputs=[source_value("x", "float32", (16,))],
        outputs=[source_value("y", "float32", (16,))],
        metadata={"ctable": {"x": 6.0, "a": 3.0, "y": 3.0}},
    )

def main() -> None:
    compiler = Compiler(CompilerConfig(target="int8"))

    result = compiler.compile(build_graph())
    for op in result.graph:
        attrs = ", ".join(f"{k}={a.value}" for k, a in op.attrs.items())
        print(f"- {op.name} ({op.kind}): {attrs}")

    print("\nWith an op the int8 target cannot run:")
    try:
        compiler.compile(build_graph(with_softplus=True))
    except PassError as exc:
        print(exc.format())

if __name__ == "__main__":
    main()
