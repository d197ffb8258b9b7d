import pytest

from onnxlower.errors import PassError, UnsupportedOperatorError
from onnxlower.ir import Relu
from onnxlower.lowering import LowerRegistry, LoweringDispatcher, MatchLevel, register_standard_rules, standard_registry
from onnxlower.passes import PassManager, PassResult
from onnxlower.source import SourceGraph, source_node, source_value
from onnxlower.targets import (
    CalibrationTable,
    GenericTarget,
    Int8ReluLower,
    Int8Target,
    TargetRegistry,
    UpdateCtablePass,
)
from onnxlower.targets.int8 import quantize_multiplier


def int8_registry() -> LowerRegistry:
    registry = LowerRegistry()
    Int8Target().register_lowers(registry)
    return register_standard_rules(registry)


def test_int8_relu_rule_wins_over_standard() -> None:
    node = source_node("Relu", ["x"], ["y"])
    rule, level = int8_registry().select(node)
    assert isinstance(rule, Int8ReluLower)
    assert level == MatchLevel.CUSTOM

    # registered after the standard set it still wins on level
    registry = register_standard_rules(LowerRegistry())
    registry.register(Int8ReluLower())
    assert isinstance(registry.select(node)[0], Int8ReluLower)


def test_relu_and_leaky_relu_lower_to_relu_with_slope() -> None:
    source = SourceGraph(
        nodes=[
            source_node("Relu", ["x"], ["a"]),
            source_node("LeakyRelu", ["a"], ["b"], alpha=0.2),
        ],
        inputs=[source_value("x", "float32", (8,))],
    )
    graph = LoweringDispatcher(int8_registry()).lower(source)

    relu, leaky = graph.nodes
    assert isinstance(relu, Relu) and isinstance(leaky, Relu)
    assert relu.attrs["negative_slope"].as_float() == 0.0
    assert leaky.attrs["negative_slope"].as_float() == pytest.approx(0.2)
    assert "alpha" not in leaky.attrs
    assert graph.get_value("b").shape == (8,)


def test_leaky_relu_without_backend_is_unsupported() -> None:
    source = SourceGraph(
        nodes=[source_node("LeakyRelu", ["x"], ["y"])],
        inputs=[source_value("x", "float32")],
    )
    with pytest.raises(UnsupportedOperatorError):
        LoweringDispatcher(standard_registry()).lower(source)


def test_quantize_multiplier() -> None:
    assert quantize_multiplier(2.0) == (64, 5)
    assert quantize_multiplier(0.5) == (64, 7)
    multiplier, shift = quantize_multiplier(1000.0)
    assert shift == 0
    assert multiplier == 127
    with pytest.raises(ValueError):
        quantize_multiplier(0.0)


def abs_relu_unit(ctable=None) -> tuple[SourceGraph, object]:
    source = SourceGraph(
        nodes=[
            source_node("Abs", ["x"], ["a"], name="abs"),
            source_node("Relu", ["a"], ["r"], name="relu"),
        ],
        inputs=[source_value("x", "float32", (4,))],
        outputs=[source_value("r", "float32", (4,))],
        metadata={} if ctable is None else {"ctable": ctable},
    )
    return source, LoweringDispatcher(int8_registry()).lower(source)


def test_update_ctable_writes_quantization_attributes() -> None:
    source, graph = abs_relu_unit({"x": 4.0, "a": 2.0, "r": 2.0})
    result = UpdateCtablePass().run(source, graph)
    assert result is PassResult.GRAPH_CHANGED

    abs_op = graph.find("abs")
    assert abs_op.attrs["threshold_x"].as_floats() == [4.0]
    assert abs_op.attrs["threshold_y"].as_float() == 2.0
    assert abs_op.attrs["multiplier"].as_int() == 64
    assert abs_op.attrs["right_shift"].as_int() == 5

    relu = graph.find("relu")
    assert relu.attrs["threshold_x"].as_floats() == [2.0]
    assert relu.attrs["threshold_y"].as_float() == 2.0
    assert "multiplier" not in relu.attrs

    # same table again: nothing left to change
    assert UpdateCtablePass().run(source, graph) is PassResult.NO_CHANGE


def test_update_ctable_prefers_explicit_table() -> None:
    source, graph = abs_relu_unit({"x": 4.0, "a": 2.0})
    table = CalibrationTable.from_dict({"x": 1.0, "a": 2.0})
    assert UpdateCtablePass(table).run(source, graph) is PassResult.GRAPH_CHANGED
    assert graph.find("abs").attrs["right_shift"].as_int() == 7


def test_update_ctable_skips_nodes_without_thresholds() -> None:
    source, graph = abs_relu_unit({"x": 4.0})
    assert UpdateCtablePass().run(source, graph) is PassResult.NO_CHANGE
    assert "threshold_x" not in graph.find("abs").attrs


def test_empty_ctable_is_no_change() -> None:
    source, graph = abs_relu_unit()
    assert UpdateCtablePass().run(source, graph) is PassResult.NO_CHANGE


def test_malformed_ctable_metadata() -> None:
    source, graph = abs_relu_unit([1.0, 2.0])
    with pytest.raises(PassError):
        UpdateCtablePass().run(source, graph)


def test_int8_legalize_rejects_softplus() -> None:
    source = SourceGraph(
        nodes=[source_node("Softplus", ["x"], ["y"], name="sp")],
        inputs=[source_value("x", "float32")],
    )
    graph = LoweringDispatcher(int8_registry()).lower(source)
    manager = PassManager()
    Int8Target().add_passes(manager)

    with pytest.raises(PassError) as info:
        manager.run(source, graph)
    assert info.value.pass_name == "int8-legalize"
    assert info.value.node == "sp"
    assert graph.attrs["failed_pass"] == "int8-legalize"


def test_target_registry() -> None:
    assert {"generic", "int8"} <= set(TargetRegistry.available_targets())
    assert isinstance(TargetRegistry.get_target("generic"), GenericTarget)

    table = CalibrationTable.from_dict({"x": 1.0})
    target = TargetRegistry.get_target("int8", table=table)
    assert isinstance(target, Int8Target)
    assert target.table is table
    assert target.name == "int8"

    with pytest.raises(ValueError, match="Unknown target"):
        TargetRegistry.get_target("does-not-exist")


def test_zero_threshold_leaves_node_unquantized() -> None:
    source, graph = abs_relu_unit()
    table = CalibrationTable.from_dict({"x": 1.0, "a": 0.0})
    manager = PassManager().add(UpdateCtablePass(table))

    log = manager.run(source, graph)

    assert log.records[-1].result is PassResult.GRAPH_CHANGED
    assert "multiplier" not in graph.find("abs").attrs
    # relu reads the zero threshold as its own scale
    assert graph.find("relu").attrs["threshold_y"].as_float() == 0.0


def test_negative_threshold_is_a_pass_error() -> None:
    source, graph = abs_relu_unit()
    table = CalibrationTable.from_dict({"x": 1.0, "a": -2.0})
    manager = PassManager().add(UpdateCtablePass(table))

    with pytest.raises(PassError) as info:
        manager.run(source, graph)
    assert info.value.pass_name == "update-ctable"
    assert info.value.node == "abs"
    assert graph.attrs["failed_pass"] == "update-ctable"
