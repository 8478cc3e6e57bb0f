#!/usr/bin/env python3
"""
Plain node/argument/tensor-type records consumed by the MAC estimator.
Any parser may produce them; macs.py only reads attributes by name.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class TensorType:
    # None means the shape is unknown, [] means a scalar
    shape: Optional[List[Any]] = None
    name: Optional[str] = None
    dtype: Optional[int] = None


@dataclass
class Argument:
    name: Optional[str] = None
    value: List[TensorType] = field(default_factory=list)


@dataclass
class Node:
    type_name: Optional[str] = None
    inputs: List[Argument] = field(default_factory=list)
    outputs: List[Argument] = field(default_factory=list)
    attributes: Dict[str, Any] = field(default_factory=dict)
    name: Optional[str] = None


def tensor_arg(name: Optional[str], shape, tensor_name: Optional[str] = None) -> Argument:
    """Argument bound to a single tensor of the given shape."""
    return Argument(name=name, value=[TensorType(shape=shape, name=tensor_name)])
