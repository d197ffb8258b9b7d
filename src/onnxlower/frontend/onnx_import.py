"""
ONNX front end: ModelProto / GraphProto -> SourceGraph.

Only builds the read-only view the dispatcher consumes; no operator semantics
live here.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import numpy as np
import onnx
from onnx import AttributeProto, numpy_helper, shape_inference
from onnx.shape_inference import InferenceError

from onnxlower.errors import SourceLoadError
from onnxlower.ir import Attribute, AttrKind, ComputeGraph
from onnxlower.ir.dtypes import DType, dtype_from_numpy, unknown
from onnxlower.source import SourceGraph, SourceNode, SourceValue

logger = logging.getLogger(__name__)

# Turns a nested SourceGraph (If/Loop/Scan bodies) into a ComputeGraph.
SubgraphLowerer = Callable[[SourceGraph], ComputeGraph]


def _elem_dtype(elem_type: int) -> DType:
    if elem_type == onnx.TensorProto.UNDEFINED:
        return unknown
    try:
        return dtype_from_numpy(onnx.helper.tensor_dtype_to_np_dtype(elem_type))
    except (KeyError, ValueError, TypeError):
        logger.warning("ONNX element type %s has no IR dtype; using unknown", elem_type)
        return unknown


def _source_value(info: onnx.ValueInfoProto) -> SourceValue:
    if not info.type.HasField("tensor_type"):
        return SourceValue(info.name)
    tensor_type = info.type.tensor_type
    shape = None
    if tensor_type.HasField("shape"):
        dims: list[Any] = []
        for dim in tensor_type.shape.dim:
            if dim.HasField("dim_value"):
                dims.append(int(dim.dim_value))
            elif dim.HasField("dim_param"):
                dims.append(dim.dim_param)
            else:
                dims.append(None)
        shape = tuple(dims)
    return SourceValue(info.name, _elem_dtype(tensor_type.elem_type), shape)


def _attribute(attr: AttributeProto, lower_subgraph: Optional[SubgraphLowerer]) -> Attribute:
    t = attr.type
    if t == AttributeProto.FLOAT:
        return Attribute(AttrKind.FLOAT, float(attr.f))
    if t == AttributeProto.INT:
        return Attribute(AttrKind.INT, int(attr.i))
    if t == AttributeProto.STRING:
        return Attribute(AttrKind.STRING, attr.s.decode("utf-8"))
    if t == AttributeProto.TENSOR:
        return Attribute(AttrKind.TENSOR, numpy_helper.to_array(attr.t))
    if t == AttributeProto.FLOATS:
        return Attribute(AttrKind.FLOATS, [float(x) for x in attr.floats])
    if t == AttributeProto.INTS:
        return Attribute(AttrKind.INTS, [int(x) for x in attr.ints])
    if t == AttributeProto.STRINGS:
        return Attribute(AttrKind.STRINGS, [s.decode("utf-8") for s in attr.strings])
    if t == AttributeProto.TENSORS:
        return Attribute(AttrKind.TENSORS, [numpy_helper.to_array(x) for x in attr.tensors])
    if t in (AttributeProto.GRAPH, AttributeProto.GRAPHS):
        if lower_subgraph is None:
            raise SourceLoadError(
                f"attribute {attr.name!r} holds a sub-graph but no sub-graph lowerer was given",
                context={"attribute": attr.name},
            )
        if t == AttributeProto.GRAPH:
            return Attribute(AttrKind.GRAPH, lower_subgraph(source_from_onnx(attr.g, lower_subgraph)))
        return Attribute(
            AttrKind.GRAPHS,
            [lower_subgraph(source_from_onnx(g, lower_subgraph)) for g in attr.graphs],
        )
    raise SourceLoadError(
        f"attribute {attr.name!r} has unsupported ONNX type {AttributeProto.AttributeType.Name(t)}",
        context={"attribute": attr.name},
    )


def _node(node: onnx.NodeProto, lower_subgraph: Optional[SubgraphLowerer]) -> SourceNode:
    # ONNX marks omitted optional inputs with "", trailing ones carry no meaning
    inputs = list(node.input)
    while inputs and not inputs[-1]:
        inputs.pop()
    return SourceNode(
        kind=node.op_type,
        input_names=tuple(inputs),
        output_names=tuple(node.output),
        attributes={a.name: _attribute(a, lower_subgraph) for a in node.attribute},
        name=node.name,
        domain=node.domain,
    )


def _metadata(model: onnx.ModelProto) -> Dict[str, Any]:
    meta: Dict[str, Any] = {
        "producer": model.producer_name or "",
        "opsets": {op.domain or "ai.onnx": op.version for op in model.opset_import},
    }
    for prop in model.metadata_props:
        value: Any = prop.value
        if prop.key == "ctable":
            try:
                value = json.loads(prop.value)
            except json.JSONDecodeError as exc:
                raise SourceLoadError("metadata 'ctable' is not valid JSON", context={"key": prop.key}) from exc
        meta[prop.key] = value
    return meta


def source_from_onnx(
    model: Union[onnx.ModelProto, onnx.GraphProto],
    lower_subgraph: Optional[SubgraphLowerer] = None,
) -> SourceGraph:
    """Build a SourceGraph from an in-memory ONNX model or graph."""

    if isinstance(model, onnx.ModelProto):
        graph = model.graph
        metadata = _metadata(model)
    else:
        graph = model
        metadata = {}

    initializers: Dict[str, np.ndarray] = {init.name: numpy_helper.to_array(init) for init in graph.initializer}
    return SourceGraph(
        nodes=tuple(_node(n, lower_subgraph) for n in graph.node),
        inputs=tuple(_source_value(v) for v in graph.input),
        outputs=tuple(_source_value(v) for v in graph.output),
        initializers=initializers,
        value_info={v.name: _source_value(v) for v in graph.value_info},
        name=graph.name or "graph",
        metadata=metadata,
    )


def load_source(
    path: Union[str, Path],
    *,
    infer_shapes: bool = True,
    lower_subgraph: Optional[SubgraphLowerer] = None,
) -> SourceGraph:
    """Load an .onnx file, optionally running ONNX shape inference first."""

    path = Path(path).expanduser().resolve()
    if not path.exists():
        raise SourceLoadError(f"model not found: {path}", context={"path": str(path)})
    try:
        model = onnx.load(str(path))
    except Exception as exc:
        raise SourceLoadError(f"failed to parse ONNX file: {path}", context={"path": str(path)}) from exc

    if infer_shapes:
        try:
            model = shape_inference.infer_shapes(model)
        except InferenceError:
            logger.warning("shape inference failed for %s; continuing without inferred shapes", path)

    return source_from_onnx(model, lower_subgraph)
