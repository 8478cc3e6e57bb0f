import numpy as np
import onnx
import pytest
from onnx import TensorProto, helper, numpy_helper

OPSET = 13


def make_small_cnn(batch=1):
    """Conv(3->4, 3x3, pad 1) -> Relu -> Flatten -> Gemm(256->10) over 8x8 input."""
    x = helper.make_tensor_value_info("input", TensorProto.FLOAT, [batch, 3, 8, 8])
    y = helper.make_tensor_value_info("logits", TensorProto.FLOAT, [batch, 10])
    inits = [
        numpy_helper.from_array(np.zeros((4, 3, 3, 3), np.float32), "conv1.weight"),
        numpy_helper.from_array(np.zeros((4,), np.float32), "conv1.bias"),
        numpy_helper.from_array(np.zeros((256, 10), np.float32), "fc.weight"),
        numpy_helper.from_array(np.zeros((10,), np.float32), "fc.bias"),
    ]
    # listed out of order on purpose; graph_nodes sorts them
    nodes = [
        helper.make_node("Flatten", ["relu_out"], ["flat_out"], name="flatten"),
        helper.make_node("Conv", ["input", "conv1.weight", "conv1.bias"], ["conv_out"],
                         name="conv1", pads=[1, 1, 1, 1], strides=[1, 1]),
        helper.make_node("Relu", ["conv_out"], ["relu_out"], name="relu1"),
        helper.make_node("Gemm", ["flat_out", "fc.weight", "fc.bias"], ["logits"], name="fc"),
    ]
    graph = helper.make_graph(nodes, "small_cnn", [x], [y], initializer=inits)
    return helper.make_model(graph, opset_imports=[helper.make_opsetid("", OPSET)])


# Fixtures


@pytest.fixture
def small_cnn():
    return make_small_cnn()


@pytest.fixture
def small_cnn_dynamic_batch():
    return make_small_cnn(batch="N")


@pytest.fixture
def small_cnn_path(tmp_path, small_cnn):
    path = tmp_path / "small_cnn.onnx"
    onnx.save(small_cnn, str(path))
    return path
