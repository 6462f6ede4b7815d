"""
blastinutils.pipeline
Thin wrappers around the CLI stages.
Return an int exit-code (0 = success) & raise on fatal errors.
"""

from __future__ import annotations
from pathlib import Path
from typing import Union
import logging

from blastinutils.blast.run_blast import run_blastp, run_makeblastdb
from blastinutils.commands import CommandsToolKit
from blastinutils.graph.builder import DEFAULT_CHUNK_SIZE, Graph, MAX_LOG_EVALUE, NodesAndLinksBuilder, consume
from blastinutils.graph.frames import links_frame, nodes_frame, write_graph_json, write_table
from blastinutils.utility.progress import current_bar
from blastinutils.utility.utils import load_config

__all__ = [
    "run_makeblastdb_stage",
    "run_blastp_stage",
    "run_graph_stage",
    "graph_from_tsv",
]

PathLike = Union[str, Path]
L = logging.getLogger(__name__)


def _write_outputs(graph: Graph, out_json: PathLike | None,
                   links_tsv: PathLike | None = None,
                   nodes_tsv: PathLike | None = None) -> None:
    # tables are validated before anything touches disk
    tables = []
    if links_tsv:
        tables.append(("links", links_frame(graph), links_tsv))
    if nodes_tsv:
        tables.append(("nodes", nodes_frame(graph), nodes_tsv))

    if out_json:
        write_graph_json(graph, out_json)
    for what, df, path in tables:
        write_table(df, path, what)


# ───────────────────────────────────────────────────────── makeblastdb
def run_makeblastdb_stage(in_fasta: PathLike, out_prefix: PathLike, *,
                          toolkit: CommandsToolKit | None = None, cfg: dict | None = None) -> int:
    run_makeblastdb(in_fasta, out_prefix, toolkit=toolkit, cfg=cfg)
    return 0


# ───────────────────────────────────────────────────────── blastp -> graph
def run_blastp_stage(query_fa: PathLike, db: PathLike, *,
                     out_tsv: PathLike | None = None,
                     out_json: PathLike | None = None,
                     links_tsv: PathLike | None = None,
                     nodes_tsv: PathLike | None = None,
                     total: int | None = None,
                     toolkit: CommandsToolKit | None = None,
                     cfg: dict | None = None) -> int:
    """Search, build the graph while BLAST runs, write the requested outputs.

    Returns 0 on success, raises CorruptStreamError when BLAST output was bad.
    """
    cfg = load_config() if cfg is None else cfg
    builder = run_blastp(query_fa, db, out_tsv, toolkit=toolkit, total=total, cfg=cfg)
    builder.raise_for_errors()
    _write_outputs(builder.result(), out_json, links_tsv, nodes_tsv)
    return 0


# ───────────────────────────────────────────────────────── tabular file -> graph
def graph_from_tsv(tsv: PathLike, *,
                   max_log_evalue: float = MAX_LOG_EVALUE,
                   columns=None,
                   chunk_size: int = DEFAULT_CHUNK_SIZE) -> Graph:
    """Stream an existing BLAST tabular file through the builder."""
    builder = NodesAndLinksBuilder(max_log_evalue=max_log_evalue,
                                   **({"columns": columns} if columns else {}))
    bar = current_bar()
    tick = bar.update if bar is not None else None
    with open(tsv, "rb") as fh:
        consume(fh, builder, chunk_size=chunk_size, on_chunk=tick)
    L.info("graph from %s: %d nodes, %d links", tsv, len(builder.nodes), len(builder.links))
    return builder.result()


def run_graph_stage(tsv: PathLike, *,
                    out_json: PathLike | None = None,
                    links_tsv: PathLike | None = None,
                    nodes_tsv: PathLike | None = None,
                    max_log_evalue: float | None = None,
                    chunk_size: int | None = None,
                    cfg: dict | None = None) -> int:
    cfg = load_config() if cfg is None else cfg
    graph_cfg = cfg.get("graph", {})
    if max_log_evalue is None:
        max_log_evalue = graph_cfg.get("max_log_evalue", MAX_LOG_EVALUE)
    chunk_size = chunk_size or graph_cfg.get("chunk_size", DEFAULT_CHUNK_SIZE)

    graph = graph_from_tsv(tsv, max_log_evalue=max_log_evalue,
                           columns=CommandsToolKit.from_config(cfg).columns,
                           chunk_size=chunk_size)
    _write_outputs(graph, out_json, links_tsv, nodes_tsv)
    return 0
