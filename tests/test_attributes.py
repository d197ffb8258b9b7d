import numpy as np
import pytest

from onnxlower.ir import AttrKind, Attribute, AttributeKindError, ComputeGraph, float32


def test_ten_kinds() -> None:
	assert len(AttrKind) == 10
	assert sum(k.is_sequence for k in AttrKind) == 5
	assert AttrKind.FLOATS.element is AttrKind.FLOAT
	assert AttrKind.GRAPH.element is AttrKind.GRAPH


def test_scalar_payloads_are_normalized() -> None:
	f = Attribute.float_(1)
	assert f.as_float() == 1.0
	assert isinstance(f.as_float(), float)

	i = Attribute.int_(np.int64(3))
	assert i.as_int() == 3
	assert type(i.as_int()) is int


def test_reading_wrong_kind_fails() -> None:
	a = Attribute.int_(3)
	with pytest.raises(AttributeKindError):
		a.as_float()
	with pytest.raises(AttributeKindError):
		a.as_ints()


def test_kind_cannot_be_reassigned() -> None:
	a = Attribute.string("NOTSET")
	with pytest.raises(AttributeError):
		a.kind = AttrKind.INT  # type: ignore[misc]
	assert a.kind is AttrKind.STRING


def test_set_value_keeps_kind() -> None:
	a = Attribute.floats([1.0])
	a.set_value([2, 3.5])
	assert a.as_floats() == [2.0, 3.5]
	with pytest.raises(AttributeKindError):
		a.set_value("x")
	with pytest.raises(AttributeKindError):
		a.set_value(1.0)
	assert a.kind is AttrKind.FLOATS


def test_bool_is_not_an_integer() -> None:
	with pytest.raises(AttributeKindError):
		Attribute.int_(True)


def test_tensor_copy_is_deep() -> None:
	arr = np.arange(4, dtype=np.float32)
	a = Attribute.tensor(arr)
	c = a.copy()
	assert c == a
	c.as_tensor()[0] = 9.0
	assert arr[0] == 0.0
	assert c != a


def test_graph_attribute_is_copied_by_value() -> None:
	body = ComputeGraph(name="body")
	body.add_value("x", float32)
	a = Attribute.graph(body)

	c = a.copy()
	assert c.as_graph() is not body
	assert c.as_graph().has_value("x")
	assert c.as_graph().get_value("x") is not body.get_value("x")


def test_infer() -> None:
	assert Attribute.infer(1).kind is AttrKind.INT
	assert Attribute.infer(1.5).kind is AttrKind.FLOAT
	assert Attribute.infer("s").kind is AttrKind.STRING
	assert Attribute.infer(np.zeros(2)).kind is AttrKind.TENSOR
	assert Attribute.infer([1, 2]).kind is AttrKind.INTS
	assert Attribute.infer([1, 2.5]).kind is AttrKind.FLOATS
	assert Attribute.infer(["a", "b"]).kind is AttrKind.STRINGS
	assert Attribute.infer([np.zeros(1)]).kind is AttrKind.TENSORS
	with pytest.raises(AttributeKindError):
		Attribute.infer([])
	with pytest.raises(AttributeKindError):
		Attribute.infer(True)
