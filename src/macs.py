#!/usr/bin/env python3
"""
Best-effort multiply-accumulate (MAC) estimate for a single graph node,
computed from declared shapes and attributes only:
- classify(type_name)
- resolve_operand(node, role)
- extract_shape(argument)
- infer_conv_output_shape / infer_dense_output_shape
- conv_macs / dense_macs
- calculate(node)
- format_macs(value)

Only convolution and dense (Linear/Gemm/MatMul) nodes are estimated. Any
missing piece of metadata yields None instead of an exception.
"""
import logging
import math
import numbers
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any, List, Optional, Union

logger = logging.getLogger(__name__)

# Dynamic or symbolic dimensions are counted as 1
DYNAMIC_DIM = 1

NAMESPACE_SEPARATORS = ("::", ".", "/")
WEIGHT_SUFFIX = "weight"
WEIGHT_SLOT_LABELS = frozenset({"w", "b"})


class OperatorFamily(Enum):
    CONVOLUTION = "convolution"
    DENSE_MATMUL = "dense_matmul"
    UNSUPPORTED = "unsupported"


class Role(Enum):
    PRIMARY_INPUT = "primary_input"
    WEIGHT = "weight"
    OUTPUT = "output"


CONV_NAMES = frozenset({"conv", "conv1d", "conv2d", "conv3d", "convolution"})
DENSE_NAMES = frozenset({"linear", "gemm", "matmul"})

_FAMILIES = {name: OperatorFamily.CONVOLUTION for name in CONV_NAMES}
_FAMILIES.update({name: OperatorFamily.DENSE_MATMUL for name in DENSE_NAMES})

Shape = List[int]
Number = Union[int, float]


def _as_list(x) -> Optional[list]:
    # numpy arrays and scalars
    if hasattr(x, "tolist"):
        x = x.tolist()
    if isinstance(x, Sequence) and not isinstance(x, (str, bytes)):
        return list(x)
    return None


def _seq(x) -> list:
    values = _as_list(x)
    return values if values is not None else []


def _is_int(v) -> bool:
    return isinstance(v, numbers.Integral) and not isinstance(v, bool)


def numel(shape: List[int]) -> int:
    """Product of all dimensions; a scalar shape [] has one element."""
    n = 1
    for d in shape:
        n *= d
    return n


# ---------------------------------------------------------------------------
# Operator classifier
# ---------------------------------------------------------------------------

def op_name(type_name) -> str:
    """Lower-cased operator name with any namespace prefix removed."""
    if not isinstance(type_name, str):
        return ""
    name = type_name
    for sep in NAMESPACE_SEPARATORS:
        name = name.rpartition(sep)[2]
    return name.strip().lower()


def classify(type_name) -> OperatorFamily:
    return _FAMILIES.get(op_name(type_name), OperatorFamily.UNSUPPORTED)


def node_type_name(node) -> Optional[str]:
    name = getattr(node, "type_name", None)
    if name is None:
        # viewer-style nodes carry a type object with a name
        t = getattr(node, "type", None)
        name = t if isinstance(t, str) else getattr(t, "name", None)
    return name if isinstance(name, str) else None


# ---------------------------------------------------------------------------
# Operand resolver
# ---------------------------------------------------------------------------

def _weight_by_name(node):
    for arg in _seq(getattr(node, "inputs", None)):
        name = getattr(arg, "name", None)
        if not isinstance(name, str):
            continue
        name = name.lower()
        if name.endswith(WEIGHT_SUFFIX) or name in WEIGHT_SLOT_LABELS:
            return arg
    return None


def _positional(slots: str, index: int):
    def rule(node):
        args = _seq(getattr(node, slots, None))
        return args[index] if index < len(args) else None
    rule.__name__ = "%s[%d]" % (slots, index)
    return rule


# Tried in order, first non-None wins
RESOLUTION_RULES = {
    Role.PRIMARY_INPUT: (_positional("inputs", 0),),
    Role.WEIGHT: (_weight_by_name, _positional("inputs", 1)),
    Role.OUTPUT: (_positional("outputs", 0),),
}


def resolve_operand(node, role: Role):
    for rule in RESOLUTION_RULES[role]:
        arg = rule(node)
        if arg is not None:
            return arg
    return None


# ---------------------------------------------------------------------------
# Shape extractor
# ---------------------------------------------------------------------------

def _dim(d) -> int:
    if _is_int(d):
        return int(d) if d >= 0 else DYNAMIC_DIM
    # integer-valued floats, e.g. from JSON decoders
    if isinstance(d, numbers.Real) and not isinstance(d, bool):
        if math.isfinite(d) and d >= 0 and d == int(d):
            return int(d)
    return DYNAMIC_DIM


def extract_shape(argument) -> Optional[Shape]:
    """
    Sanitized shape of the first tensor bound to the argument, or None when
    there is no tensor or it has no declared shape.
    """
    if argument is None:
        return None
    values = _seq(getattr(argument, "value", None))
    if not values:
        return None
    shape = getattr(values[0], "shape", None)
    if shape is None:
        # viewer-style values keep the shape on their type
        shape = getattr(getattr(values[0], "type", None), "shape", None)
    # viewer-style shapes wrap the dimension list
    dims = _as_list(getattr(shape, "dimensions", shape))
    if dims is None:
        return None
    return [_dim(d) for d in dims]


# ---------------------------------------------------------------------------
# Attributes
# ---------------------------------------------------------------------------

def get_attribute(node, *names):
    """First attribute present under any of the given names, else None."""
    attrs = getattr(node, "attributes", None)
    if isinstance(attrs, Mapping):
        for name in names:
            if name in attrs:
                return attrs[name]
        return None
    by_name = {}
    for attr in _seq(attrs):
        by_name.setdefault(getattr(attr, "name", None), getattr(attr, "value", None))
    for name in names:
        if name in by_name:
            return by_name[name]
    return None


def _ints(value) -> Optional[List[int]]:
    if hasattr(value, "tolist"):
        value = value.tolist()
    if _is_int(value):
        return [int(value)]
    values = _seq(value)
    if not values or not all(_is_int(v) for v in values):
        return None
    return [int(v) for v in values]


def _pair(value, default: int) -> Optional[List[int]]:
    if value is None:
        return [default, default]
    values = _ints(value)
    if values is None:
        return None
    if len(values) == 1:
        return values * 2
    return values if len(values) == 2 else None


def _total_padding(value) -> Optional[List[int]]:
    # [h, w] pads both ends, [h_begin, w_begin, h_end, w_end] as in ONNX
    if value is None:
        return [0, 0]
    values = _ints(value)
    if values is None:
        return None
    if len(values) in (1, 2):
        return [2 * p for p in _pair(values, 0)]
    if len(values) == 4:
        return [values[0] + values[2], values[1] + values[3]]
    return None


# ---------------------------------------------------------------------------
# Shape inference
# ---------------------------------------------------------------------------

def infer_conv_output_shape(input_shape: Optional[Shape], weight_shape: Optional[Shape],
                            stride=None, padding=None, dilation=None) -> Optional[Shape]:
    """
    Output [N, Cout, Hout, Wout] of a 2-D convolution over NCHW input with an
    OIHW weight. Each spatial axis uses
    floor((In + Pad - Dilation * (K - 1) - 1) / Stride + 1).
    """
    if input_shape is None or weight_shape is None:
        return None
    if len(input_shape) != 4 or len(weight_shape) != 4:
        return None
    strides = _pair(stride, 1)
    dilations = _pair(dilation, 1)
    pads = _total_padding(padding)
    if strides is None or dilations is None or pads is None:
        return None
    if min(strides) <= 0:
        return None

    n, _, h, w = input_shape
    cout, _, kh, kw = weight_shape
    spatial = []
    for size, pad, k, s, d in zip((h, w), pads, (kh, kw), strides, dilations):
        # no valid window positions gives an empty axis
        spatial.append(max((size + pad - d * (k - 1) - 1) // s + 1, 0))
    return [n, cout] + spatial


def infer_dense_output_shape(input_shape: Optional[Shape], weight_shape: Optional[Shape]) -> Optional[Shape]:
    """Input leading dims followed by weight[0] as out-features."""
    if input_shape is None or not weight_shape:
        return None
    return input_shape[:-1] + [weight_shape[0]]


# ---------------------------------------------------------------------------
# Cost model
# ---------------------------------------------------------------------------

def conv_macs(weight_shape: Optional[Shape], output_shape: Optional[Shape]) -> Optional[Number]:
    """
    numel(output) * (numel(weight) / Cout). Dividing by Cout leaves the
    per-output-channel kernel volume, so grouped weights need no group count.
    """
    if weight_shape is None or output_shape is None:
        return None
    if len(weight_shape) < 3 or len(output_shape) < 3:
        return None
    cout = weight_shape[0]
    if cout == 0:
        return None
    return numel(output_shape) * (numel(weight_shape) // cout)


def dense_macs(op: str, input_shape: Optional[Shape], weight_shape: Optional[Shape],
               output_shape: Optional[Shape]) -> Optional[Number]:
    """
    numel(output) * K. K is weight[1] for Linear ([out, in] weight) and the
    last input dimension for Gemm/MatMul; transpose flags are not read.
    """
    if output_shape is None:
        return None
    if op == "linear":
        if weight_shape is None or len(weight_shape) < 2:
            return None
        k = weight_shape[1]
    else:
        if not input_shape:
            return None
        k = input_shape[-1]
    return numel(output_shape) * k


def calculate(node) -> Optional[Number]:
    """MAC count for the node, or None when it cannot be determined."""
    type_name = node_type_name(node)
    family = classify(type_name)
    if family is OperatorFamily.UNSUPPORTED:
        logger.debug("no MAC estimate for unsupported op %r", type_name)
        return None

    input_shape = extract_shape(resolve_operand(node, Role.PRIMARY_INPUT))
    weight_shape = extract_shape(resolve_operand(node, Role.WEIGHT))
    output_shape = extract_shape(resolve_operand(node, Role.OUTPUT))

    if family is OperatorFamily.CONVOLUTION:
        if output_shape is None:
            output_shape = infer_conv_output_shape(
                input_shape, weight_shape,
                stride=get_attribute(node, "strides", "stride"),
                padding=get_attribute(node, "pads", "padding"),
                dilation=get_attribute(node, "dilations", "dilation"))
            logger.debug("%s: inferred conv output shape %s", type_name, output_shape)
        result = conv_macs(weight_shape, output_shape)
    else:
        if output_shape is None and weight_shape is not None:
            output_shape = infer_dense_output_shape(input_shape, weight_shape)
            logger.debug("%s: inferred dense output shape %s", type_name, output_shape)
        result = dense_macs(op_name(type_name), input_shape, weight_shape, output_shape)

    if result is None:
        logger.debug("%s: missing shapes (input=%s weight=%s output=%s)",
                     type_name, input_shape, weight_shape, output_shape)
    return result


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

UNITS = (("G", 1e9), ("M", 1e6), ("K", 1e3))


def format_macs(value: Optional[Any]) -> str:
    # NaN is how pandas stores a missing estimate
    if value is None or value != value:
        return ""
    for unit, scale in UNITS:
        if value >= scale:
            return "%.2f%s" % (value / scale, unit)
    return str(int(value))
