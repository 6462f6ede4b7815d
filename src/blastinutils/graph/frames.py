# src/blastinutils/graph/frames.py

from __future__ import annotations
import json
import logging
import math
import sys
from pathlib import Path

import pandas as pd
import pandera as pa

from blastinutils.graph.builder import Graph

L = logging.getLogger(__name__)

__all__ = ["nodes_frame", "links_frame", "write_graph_json", "write_table"]

# e is only capped for evalue == 0; any finite score is a valid link
links_schema = pa.DataFrameSchema(
    {
        "s":      pa.Column(int, pa.Check.ge(0), coerce=True),
        "t":      pa.Column(int, pa.Check.ge(0), coerce=True),
        "e":      pa.Column(float, pa.Check(lambda s: s.map(math.isfinite)), coerce=True),
        "source": pa.Column(str),
        "target": pa.Column(str),
    },
    # one link per ordered pair
    unique=["s", "t"],
)

nodes_schema = pa.DataFrameSchema(
    {
        "id":   pa.Column(int, pa.Check.ge(0), unique=True, coerce=True),
        "node": pa.Column(str, unique=True),
    },
    strict=True,
    ordered=True,
)


def nodes_frame(graph: Graph) -> pd.DataFrame:
    """One row per node, ``id`` being the index links refer to."""
    df = pd.DataFrame({"id": range(len(graph.nodes)), "node": list(graph.nodes)})
    if df.empty:
        return df
    return nodes_schema.validate(df, lazy=True)


def links_frame(graph: Graph) -> pd.DataFrame:
    """Links as a DataFrame with node labels resolved; validated before return."""
    df = pd.DataFrame(
        [ln.as_dict() for ln in graph.links],
        columns=["s", "t", "e"],
    )
    df["source"] = [graph.nodes[i] for i in df["s"]]
    df["target"] = [graph.nodes[i] for i in df["t"]]
    if df.empty:
        return df
    return links_schema.validate(df, lazy=True)


def write_graph_json(graph: Graph, path: str | Path, *, indent: int | None = None) -> Path | None:
    """Dump ``{"nodes": [...], "links": [...]}``; ``"-"`` writes to stdout."""
    if str(path) == "-":
        json.dump(graph.to_dict(), sys.stdout, indent=indent)
        sys.stdout.write("\n")
        return None
    out = Path(path).expanduser()
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", encoding="utf-8") as fh:
        json.dump(graph.to_dict(), fh, indent=indent)
    L.info("graph JSON (%d nodes, %d links) -> %s", len(graph.nodes), len(graph.links), out)
    return out


def write_table(df: pd.DataFrame, path: str | Path, what: str = "graph") -> Path:
    """Write an already validated frame as TSV (no index column)."""
    out = Path(path).expanduser()
    out.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(out, sep="\t", index=False)
    L.info("%s table (%d rows) -> %s", what, len(df), out)
    return out

