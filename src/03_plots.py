#!/usr/bin/env python3
"""
Generates two plots:
- macs_by_type.png : total MACs per operator type
- top_nodes.png    : the N most expensive nodes
Rules: use matplotlib, one chart per figure, no seaborn, no explicit colors.
Usage:
  python 03_plots.py --node_macs node_macs.csv --top 20
"""
import argparse
from pathlib import Path
import pandas as pd, numpy as np
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt


def plot_by_type(df, path="macs_by_type.png"):
    plt.figure()
    by_type = df.groupby("op_type")["macs"].sum()
    by_type = by_type[by_type > 0].sort_values(ascending=False)
    idx = np.arange(len(by_type))
    plt.bar(idx, by_type.values / 1e6)
    plt.xticks(idx, [str(t) for t in by_type.index], rotation=45, ha="right")
    plt.ylabel("MACs (M)")
    plt.title("MACs per Operator Type")
    plt.tight_layout()
    plt.savefig(path, dpi=150, bbox_inches="tight")
    plt.close()


def plot_top_nodes(df, top, path="top_nodes.png"):
    plt.figure()
    d = df.dropna(subset=["macs"]).nlargest(top, "macs").iloc[::-1]
    y = np.arange(len(d))
    plt.barh(y, d["macs"].values / 1e6)
    plt.yticks(y, [str(o)[:30] for o in d["op_name"].values])
    plt.xlabel("MACs (M)")
    plt.title("Top %d Nodes by MACs" % len(d))
    plt.tight_layout()
    plt.savefig(path, dpi=150, bbox_inches="tight")
    plt.close()


def main(argv=None):
    ap = argparse.ArgumentParser()
    ap.add_argument("--node_macs", default="node_macs.csv")
    ap.add_argument("--top", type=int, default=20)
    ap.add_argument("--out_dir", default=".")
    args = ap.parse_args(argv)

    df = pd.read_csv(args.node_macs)
    out = Path(args.out_dir)
    plot_by_type(df, out / "macs_by_type.png")
    plot_top_nodes(df, args.top, out / "top_nodes.png")
    print("Wrote macs_by_type.png, top_nodes.png in %s" % out)


if __name__ == "__main__":
    main()
