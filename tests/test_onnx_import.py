import numpy as np
import onnx
import pytest
from onnx import TensorProto, helper, numpy_helper

from onnxlower.errors import SourceLoadError
from onnxlower.frontend import load_source, source_from_onnx
from onnxlower.ir import AttrKind, float32, int64
from onnxlower.lowering import LoweringDispatcher, standard_registry


def hard_sigmoid_model() -> onnx.ModelProto:
    x = helper.make_tensor_value_info("x", TensorProto.FLOAT, ["N", 4])
    y = helper.make_tensor_value_info("y", TensorProto.FLOAT, ["N", 4])
    node = helper.make_node("HardSigmoid", ["x"], ["y"], name="hs", alpha=0.3)
    graph = helper.make_graph([node], "hs_graph", [x], [y])
    model = helper.make_model(graph, producer_name="tests")
    helper.set_model_props(model, {"ctable": '{"x": 4.0, "y": 1.0}', "author": "me"})
    return model


def test_source_from_model() -> None:
    source = source_from_onnx(hard_sigmoid_model())

    assert source.name == "hs_graph"
    (node,) = source.nodes
    assert node.kind == "HardSigmoid"
    assert node.name == "hs"
    assert node.attributes["alpha"].kind is AttrKind.FLOAT
    assert node.attributes["alpha"].as_float() == pytest.approx(0.3)

    x = source.value("x")
    assert x.dtype == float32
    assert x.shape == ("N", 4)

    assert source.metadata["producer"] == "tests"
    assert source.metadata["ctable"] == {"x": 4.0, "y": 1.0}
    assert source.metadata["author"] == "me"
    assert "ai.onnx" in source.metadata["opsets"]


def test_imported_model_lowers() -> None:
    graph = LoweringDispatcher(standard_registry()).lower(source_from_onnx(hard_sigmoid_model()))
    op = graph.nodes[0]
    assert op.attrs["alpha"].as_float() == pytest.approx(0.3)
    assert op.attrs["beta"].as_float() == pytest.approx(0.5)
    assert graph.get_value("y").shape == ("N", 4)


def test_initializers_and_trailing_empty_inputs() -> None:
    a = helper.make_tensor_value_info("a", TensorProto.FLOAT, [2, 3])
    y = helper.make_tensor_value_info("y", TensorProto.FLOAT, [2, 5])
    w = numpy_helper.from_array(np.ones((5, 3), dtype=np.float32), name="w")
    node = helper.make_node("Gemm", ["a", "w", ""], ["y"], transB=1)
    model = helper.make_model(helper.make_graph([node], "gemm", [a], [y], initializer=[w]))

    source = source_from_onnx(model)
    assert source.nodes[0].input_names == ("a", "w")
    assert source.nodes[0].attributes["transB"].as_int() == 1
    assert source.value("w").dtype == float32
    assert source.value("w").shape == (5, 3)

    graph = LoweringDispatcher(standard_registry()).lower(source)
    assert "w" in graph.initializers
    assert graph.get_value("y").shape == (2, 5)
    graph.verify()


def test_list_and_tensor_attributes() -> None:
    x = helper.make_tensor_value_info("x", TensorProto.INT64, [2, 3])
    value = numpy_helper.from_array(np.arange(3, dtype=np.int64), name="v")
    nodes = [
        helper.make_node("Transpose", ["x"], ["t"], perm=[1, 0]),
        helper.make_node("Custom", ["t"], ["c"], value=value, names=["a", "b"]),
    ]
    graph = helper.make_graph(nodes, "attrs", [x], [])
    source = source_from_onnx(graph)

    assert source.value("x").dtype == int64
    assert source.nodes[0].attributes["perm"].as_ints() == [1, 0]
    custom = source.nodes[1].attributes
    assert custom["value"].kind is AttrKind.TENSOR
    np.testing.assert_array_equal(custom["value"].as_tensor(), np.arange(3))
    assert custom["names"].as_strings() == ["a", "b"]
    assert source.metadata == {}


def if_model() -> onnx.ModelProto:
    branch_in = helper.make_tensor_value_info("a", TensorProto.FLOAT, [1])
    branch_out = helper.make_tensor_value_info("b", TensorProto.FLOAT, [1])
    body = helper.make_node("Identity", ["a"], ["b"])
    branch = helper.make_graph([body], "branch", [branch_in], [branch_out])
    cond = helper.make_tensor_value_info("cond", TensorProto.BOOL, [])
    outer = helper.make_tensor_value_info("outer", TensorProto.FLOAT, [1])
    y = helper.make_tensor_value_info("y", TensorProto.FLOAT, [1])
    node = helper.make_node("If", ["cond"], ["y"], then_branch=branch, else_branch=branch)
    return helper.make_model(helper.make_graph([node], "if", [cond, outer], [y]))


def test_subgraph_needs_lowerer() -> None:
    with pytest.raises(SourceLoadError):
        source_from_onnx(if_model())


def test_subgraph_is_lowered() -> None:
    seen = []

    def lower(sub):
        seen.append(sub.name)
        return LoweringDispatcher(standard_registry()).lower(sub)

    source = source_from_onnx(if_model(), lower_subgraph=lower)
    attrs = source.nodes[0].attributes
    assert seen == ["branch", "branch"]
    assert attrs["then_branch"].kind is AttrKind.GRAPH
    assert attrs["then_branch"].as_graph().name == "branch"


def test_load_source(tmp_path) -> None:
    path = tmp_path / "model.onnx"
    onnx.save(hard_sigmoid_model(), str(path))
    source = load_source(path)
    assert [n.kind for n in source.nodes] == ["HardSigmoid"]

    with pytest.raises(SourceLoadError):
        load_source(tmp_path / "missing.onnx")

    garbage = tmp_path / "garbage.onnx"
    garbage.write_bytes(b"\x00not a model")
    with pytest.raises(SourceLoadError):
        load_source(garbage)
