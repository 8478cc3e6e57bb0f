#!/usr/bin/env python3
"""
Utility helpers that turn an ONNX graph into graph_model.Node records:
- load_onnx
- infer_shapes
- build_name_maps
- tensor_shape
- get_parents_map
- topo_sort_nodes
- to_node
- graph_nodes
- setup_logger
"""
import logging
from typing import Any, Dict, List, Optional

import onnx
from onnx import checker, defs, helper, shape_inference

from graph_model import Argument, Node, TensorType

logger = logging.getLogger(__name__)

DEFAULT_DOMAINS = ("", "ai.onnx")
LOG_HANDLER_NAME = "onnx_macs"


def load_onnx(path: str) -> onnx.ModelProto:
    return onnx.load(path)


def infer_shapes(model: onnx.ModelProto) -> onnx.ModelProto:
    try:
        return shape_inference.infer_shapes(model)
    except (checker.ValidationError, shape_inference.InferenceError) as e:
        logger.warning("ONNX shape inference failed, using declared shapes only: %s", e)
        return model


def build_name_maps(model: onnx.ModelProto):
    g = model.graph
    value_info = {v.name: v for v in list(g.input) + list(g.value_info) + list(g.output)}
    initializers = {init.name: init for init in g.initializer}
    nodes = list(g.node)
    return nodes, value_info, initializers


def tensor_shape(value_info) -> Optional[List[Any]]:
    """
    Declared dims: int for fixed sizes, the symbol name for dim_param,
    None for unset dims. None when the tensor has no shape at all.
    """
    if not value_info.type.HasField("tensor_type"):
        return None
    ttype = value_info.type.tensor_type
    if not ttype.HasField("shape"):
        return None
    dims = []
    for d in ttype.shape.dim:
        if d.HasField("dim_value"):
            dims.append(int(d.dim_value))
        elif d.HasField("dim_param"):
            dims.append(d.dim_param)
        else:
            dims.append(None)
    return dims


def _tensor_type(tensor_name: str, value_info, initializers) -> TensorType:
    if tensor_name in initializers:
        init = initializers[tensor_name]
        return TensorType(shape=[int(d) for d in init.dims], name=tensor_name, dtype=init.data_type)
    if tensor_name in value_info:
        vi = value_info[tensor_name]
        dtype = vi.type.tensor_type.elem_type if vi.type.HasField("tensor_type") else None
        return TensorType(shape=tensor_shape(vi), name=tensor_name, dtype=dtype)
    return TensorType(shape=None, name=tensor_name)


def _slot_names(n: onnx.NodeProto):
    domain = "" if n.domain in DEFAULT_DOMAINS else n.domain
    if not defs.has(n.op_type, domain):
        return None, None
    schema = defs.get_schema(n.op_type, domain=domain)
    return [p.name for p in schema.inputs], [p.name for p in schema.outputs]


def _slot(names, i: int, fallback: str) -> str:
    if not names:
        return fallback
    # variadic parameters repeat the last formal name
    return names[min(i, len(names) - 1)]


def node_label(n: onnx.NodeProto, index: int) -> str:
    return n.name or f"{n.op_type}__{index}"


def to_node(n: onnx.NodeProto, value_info, initializers, index: int = 0) -> Node:
    in_names, out_names = _slot_names(n)
    inputs = []
    for i, t in enumerate(n.input):
        # "" marks an omitted optional input
        value = [_tensor_type(t, value_info, initializers)] if t else []
        inputs.append(Argument(name=_slot(in_names, i, t), value=value))
    outputs = []
    for i, t in enumerate(n.output):
        value = [_tensor_type(t, value_info, initializers)] if t else []
        outputs.append(Argument(name=_slot(out_names, i, t), value=value))

    type_name = n.op_type if n.domain in DEFAULT_DOMAINS else f"{n.domain}::{n.op_type}"
    attrs = {a.name: helper.get_attribute_value(a) for a in n.attribute}
    return Node(type_name=type_name, inputs=inputs, outputs=outputs,
                attributes=attrs, name=node_label(n, index))


def get_parents_map(nodes: List[onnx.NodeProto]) -> Dict[int, List[int]]:
    """Return a mapping node index -> list of parent node indices (by data dependency)."""
    # Map output tensor -> producer node index
    producer = {}
    for i, n in enumerate(nodes):
        for out in n.output:
            if out:
                producer[out] = i
    parents = {}
    for i, n in enumerate(nodes):
        parents[i] = [producer[inp] for inp in n.input if inp in producer and producer[inp] != i]
    return parents


def topo_sort_nodes(nodes: List[onnx.NodeProto]) -> List[int]:
    parents = get_parents_map(nodes)
    # Kahn's algorithm
    indeg = {i: len(ps) for i, ps in parents.items()}
    children = {i: [] for i in parents}
    for i, ps in parents.items():
        for p in ps:
            children[p].append(i)
    S = [i for i in reversed(range(len(nodes))) if indeg[i] == 0]
    order = []
    seen = set()
    while S:
        v = S.pop()
        order.append(v)
        seen.add(v)
        for w in children[v]:
            indeg[w] -= 1
            if indeg[w] == 0:
                S.append(w)
    # Append any remaining nodes (cycles) in file order
    order.extend(i for i in range(len(nodes)) if i not in seen)
    return order


def graph_nodes(model: onnx.ModelProto, run_shape_inference: bool = True) -> List[Node]:
    if run_shape_inference:
        model = infer_shapes(model)
    nodes, value_info, initializers = build_name_maps(model)
    return [to_node(nodes[i], value_info, initializers, i) for i in topo_sort_nodes(nodes)]


def setup_logger(verbose: bool = False) -> logging.Logger:
    lvl = logging.DEBUG if verbose else logging.INFO
    handler = logging.StreamHandler()
    handler.set_name(LOG_HANDLER_NAME)
    handler.setLevel(lvl)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
    root = logging.getLogger()
    root.setLevel(lvl)
    # repeated calls replace the handler instead of stacking another one
    for h in [h for h in root.handlers if h.get_name() == LOG_HANDLER_NAME]:
        root.removeHandler(h)
    root.addHandler(handler)
    return root
