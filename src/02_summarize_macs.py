#!/usr/bin/env python3
"""
Aggregates node_macs.csv by operator type: node count, estimated nodes, MACs and share of total.
Usage:
  python 02_summarize_macs.py --node_macs node_macs.csv
"""
import argparse
import pandas as pd
from macs import format_macs


def summarize(df):
    g = df.groupby("op_type", as_index=False).agg(
        nodes=("op_name", "size"),
        estimated=("macs", "count"),
        macs=("macs", "sum"),
    )
    total = g["macs"].sum()
    g["share"] = g["macs"] / total if total > 0 else 0.0
    g["macs_fmt"] = g["macs"].map(format_macs)
    return g.sort_values("macs", ascending=False).reset_index(drop=True)


def main(argv=None):
    ap = argparse.ArgumentParser()
    ap.add_argument("--node_macs", default="node_macs.csv")
    ap.add_argument("--out", default="macs_by_type.csv")
    args = ap.parse_args(argv)

    df = pd.read_csv(args.node_macs)
    summary = summarize(df)
    summary.to_csv(args.out, index=False)
    print("Wrote %s, total=%s MACs" % (args.out, format_macs(summary["macs"].sum())))


if __name__ == "__main__":
    main()
