import pytest

from onnxlower.errors import DuplicateValueNameError, MalformedOperatorError, UnknownValueError, UnsupportedOperatorError
from onnxlower.ir import Abs, Attribute, AttrKind, ComputeGraph, HardSigmoid, MatMul, float32
from onnxlower.lowering import (
    LowerRegistry,
    LowerRule,
    LoweringDispatcher,
    MatchLevel,
    StandardLower,
    standard_registry,
)
from onnxlower.source import SourceGraph, source_node, source_value
from onnxlower.statistics import Statistics


class TaggedAbsLower(LowerRule):
    """Claims Abs at a fixed level and tags the node it builds."""

    def __init__(self, tag: str, level: MatchLevel) -> None:
        self.tag = tag
        self.level = level

    def is_me(self, node):
        return self.level if node.kind == "Abs" else MatchLevel.NOT_ME

    def activate(self, graph, node, source):
        x = graph.get_value(node.input_names[0])
        y = graph.add_value(node.output_names[0], x.dtype, x.shape)
        return graph.add_operator(Abs, [x], [y], attrs={"tag": Attribute.string(self.tag)})


def abs_source() -> SourceGraph:
    return SourceGraph(
        nodes=[source_node("Abs", ["t0"], ["t1"], name="abs0")],
        inputs=[source_value("t0", "float32", (2, 3))],
        outputs=[source_value("t1", "float32", (2, 3))],
    )


def test_lower_single_abs() -> None:
    graph = LoweringDispatcher(standard_registry()).lower(abs_source())

    assert len(graph) == 1
    op = graph.nodes[0]
    assert isinstance(op, Abs)
    assert op.name == "abs0"
    assert [v.name for v in op.inputs] == ["t0"]
    assert [v.name for v in op.outputs] == ["t1"]
    assert op.attrs == {}
    assert graph.inputs == [graph.get_value("t0")]
    assert graph.outputs == [graph.get_value("t1")]
    assert graph.get_value("t1").dtype == float32
    graph.verify()


def test_custom_match_beats_standard() -> None:
    registry = LowerRegistry()
    registry.register(TaggedAbsLower("standard", MatchLevel.STANDARD))
    custom = registry.register(TaggedAbsLower("custom", MatchLevel.CUSTOM))

    node = abs_source().nodes[0]
    assert registry.select(node) == (custom, MatchLevel.CUSTOM)

    graph = LoweringDispatcher(registry).lower(abs_source())
    assert graph.nodes[0].attrs["tag"].as_string() == "custom"


def test_equal_levels_first_registered_wins() -> None:
    registry = LowerRegistry()
    registry.register(TaggedAbsLower("first", MatchLevel.STANDARD))
    registry.register(TaggedAbsLower("second", MatchLevel.STANDARD))

    graph = LoweringDispatcher(registry).lower(abs_source())
    assert graph.nodes[0].attrs["tag"].as_string() == "first"


def test_rules_answer_not_me_for_other_kinds() -> None:
    node = source_node("Relu", ["x"], ["y"])
    for rule in standard_registry():
        if rule.symbol != "Relu":
            assert rule.is_me(node) is MatchLevel.NOT_ME


def test_unclaimed_node_is_unsupported() -> None:
    source = SourceGraph(
        nodes=[source_node("Foo", ["x"], ["y"], name="foo0")],
        inputs=[source_value("x", "float32")],
    )
    with pytest.raises(UnsupportedOperatorError) as info:
        LoweringDispatcher(standard_registry()).lower(source)
    assert info.value.context["kind"] == "Foo"
    assert info.value.context["node"] == "foo0"


def test_abs_with_two_inputs_is_malformed_and_leaves_graph_untouched() -> None:
    source = SourceGraph(
        nodes=[source_node("Abs", ["a", "b"], ["y"])],
        inputs=[source_value("a", "float32"), source_value("b", "float32")],
    )
    rule = StandardLower("Abs", Abs)
    graph = ComputeGraph()
    graph.add_value("a", float32)
    graph.add_value("b", float32)
    before = (len(graph), len(graph.values))

    assert rule.activate(graph, source.nodes[0], source) is None
    assert (len(graph), len(graph.values)) == before

    with pytest.raises(MalformedOperatorError) as info:
        LoweringDispatcher(standard_registry()).lower(source)
    assert info.value.context["rule"] == "AbsLower"


def test_non_unique_output_name_is_malformed() -> None:
    source = SourceGraph(
        nodes=[
            source_node("Abs", ["x"], ["y"], name="first"),
            source_node("Relu", ["x"], ["y"], name="second"),
        ],
        inputs=[source_value("x", "float32")],
    )
    with pytest.raises(MalformedOperatorError) as info:
        LoweringDispatcher(standard_registry()).lower(source)
    assert info.value.node.name == "first"


def test_missing_input_value_is_malformed() -> None:
    source = SourceGraph(nodes=[source_node("Abs", ["ghost"], ["y"])])
    with pytest.raises(MalformedOperatorError):
        LoweringDispatcher(standard_registry()).lower(source)


def test_conflicting_declarations_raise_duplicate_value_name() -> None:
    source = SourceGraph(
        nodes=[source_node("Abs", ["x"], ["y"])],
        inputs=[source_value("x", "float32"), source_value("x", "int32")],
    )
    with pytest.raises(DuplicateValueNameError):
        LoweringDispatcher(standard_registry()).lower(source)


def test_lowering_stops_at_first_failure() -> None:
    stats = Statistics()
    source = SourceGraph(
        nodes=[
            source_node("Abs", ["x"], ["a"]),
            source_node("Foo", ["a"], ["b"]),
            source_node("Relu", ["b"], ["c"]),
        ],
        inputs=[source_value("x", "float32")],
    )
    with pytest.raises(UnsupportedOperatorError):
        LoweringDispatcher(standard_registry(), stats).lower(source)
    assert stats.counter("lower.Abs") == 1
    assert stats.counter("lower.Relu") is None


def test_hard_sigmoid_attributes_defaults_and_overrides() -> None:
    source = SourceGraph(
        nodes=[source_node("HardSigmoid", ["x"], ["y"], alpha=0.1)],
        inputs=[source_value("x", "float32", (4,))],
    )
    graph = LoweringDispatcher(standard_registry()).lower(source)
    op = graph.nodes[0]
    assert isinstance(op, HardSigmoid)
    assert op.attrs["alpha"].as_float() == pytest.approx(0.1)
    assert op.attrs["beta"].kind is AttrKind.FLOAT
    assert op.attrs["beta"].as_float() == pytest.approx(0.5)
    assert graph.get_value("y").shape == (4,)


def test_wrong_attribute_kind_is_malformed() -> None:
    source = SourceGraph(
        nodes=[source_node("HardSigmoid", ["x"], ["y"], alpha="big")],
        inputs=[source_value("x", "float32")],
    )
    with pytest.raises(MalformedOperatorError):
        LoweringDispatcher(standard_registry()).lower(source)


def test_matmul_output_shape_is_inferred() -> None:
    source = SourceGraph(
        nodes=[source_node("MatMul", ["a", "b"], ["y"])],
        inputs=[source_value("a", "float32", (4, 8)), source_value("b", "float32", (8, 2))],
    )
    graph = LoweringDispatcher(standard_registry()).lower(source)
    assert isinstance(graph.nodes[0], MatMul)
    y = graph.get_value("y")
    assert y.shape == (4, 2)
    assert y.dtype == float32


def test_matmul_k_mismatch_is_malformed() -> None:
    source = SourceGraph(
        nodes=[source_node("MatMul", ["a", "b"], ["y"])],
        inputs=[source_value("a", "float32", (4, 8)), source_value("b", "float32", (3, 2))],
    )
    with pytest.raises(MalformedOperatorError):
        LoweringDispatcher(standard_registry()).lower(source)


def test_gemm_accepts_optional_bias() -> None:
    source = SourceGraph(
        nodes=[
            source_node("Gemm", ["a", "w"], ["y0"], transB=1),
            source_node("Gemm", ["a", "w", "c"], ["y1"], transB=1),
        ],
        inputs=[
            source_value("a", "float32", (2, 3)),
            source_value("w", "float32", (5, 3)),
            source_value("c", "float32", (5,)),
        ],
    )
    graph = LoweringDispatcher(standard_registry()).lower(source)
    assert len(graph) == 2
    assert graph.get_value("y0").shape == (2, 5)
    assert graph.nodes[0].attrs["alpha"].as_float() == 1.0
    assert graph.nodes[1].attrs["transB"].as_int() == 1


def test_lowering_is_deterministic() -> None:
    source = SourceGraph(
        nodes=[
            source_node("MatMul", ["a", "b"], ["m"]),
            source_node("Relu", ["m"], ["r"]),
            source_node("Transpose", ["r"], ["t"], perm=[1, 0]),
        ],
        inputs=[source_value("a", "float32", (4, 8)), source_value("b", "float32", (8, 2))],
        outputs=[source_value("t")],
    )
    registry = standard_registry()
    first = LoweringDispatcher(registry).lower(source)
    second = LoweringDispatcher(registry).lower(source)

    assert first.summary() == second.summary()
    assert list(first.values) == list(second.values)
    assert first.get_value("t").shape == (2, 4)


def test_unproduced_graph_output_is_rejected() -> None:
    source = SourceGraph(
        nodes=[source_node("Abs", ["x"], ["y"])],
        inputs=[source_value("x", "float32")],
        outputs=[source_value("y"), source_value("z", "float32")],
    )
    with pytest.raises(UnknownValueError) as info:
        LoweringDispatcher(standard_registry()).lower(source)
    assert info.value.name == "z"
