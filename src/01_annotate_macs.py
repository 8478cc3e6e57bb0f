#!/usr/bin/env python3
"""
Annotates every node of an ONNX model with an estimated MAC count.
Writes node_macs.csv (one row per node, topological order).
Usage:
  python 01_annotate_macs.py --model resnet50-fp32.onnx
"""
import argparse
import pandas as pd
from macs import calculate, classify, extract_shape, format_macs, resolve_operand, Role
from utils_onnxgraph import load_onnx, graph_nodes, setup_logger

COLUMNS = ["op_name", "op_type", "family", "input_shape", "weight_shape",
           "output_shape", "macs", "macs_fmt"]


def shape_str(shape):
    if shape is None:
        return ""
    return "x".join(str(d) for d in shape)


def annotate(nodes):
    rows = []
    for n in nodes:
        macs = calculate(n)
        rows.append({
            "op_name": n.name,
            "op_type": n.type_name,
            "family": classify(n.type_name).value,
            "input_shape": shape_str(extract_shape(resolve_operand(n, Role.PRIMARY_INPUT))),
            "weight_shape": shape_str(extract_shape(resolve_operand(n, Role.WEIGHT))),
            "output_shape": shape_str(extract_shape(resolve_operand(n, Role.OUTPUT))),
            "macs": macs,
            "macs_fmt": format_macs(macs),
        })
    df = pd.DataFrame(rows, columns=COLUMNS)
    df["macs"] = pd.to_numeric(df["macs"])
    return df


def main(argv=None):
    ap = argparse.ArgumentParser()
    ap.add_argument("--model", required=True)
    ap.add_argument("--out", default="node_macs.csv")
    ap.add_argument("--no-infer-shapes", action="store_true",
                    help="Use only shapes declared in the file (skip ONNX shape inference)")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args(argv)
    setup_logger(args.verbose)

    model = load_onnx(args.model)
    nodes = graph_nodes(model, run_shape_inference=not args.no_infer_shapes)
    df = annotate(nodes)
    df.to_csv(args.out, index=False)
    known = df["macs"].notna().sum()
    print("Wrote %s (%d/%d nodes estimated, total %s MACs)"
          % (args.out, known, len(df), format_macs(df["macs"].sum())))


if __name__ == "__main__":
    main()
