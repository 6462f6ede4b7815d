# -- src/blastinutils/blast/run_blast.py ---------------
from __future__ import annotations
import logging, shutil, subprocess, tempfile
from contextlib import ExitStack
from pathlib import Path
from typing import Callable, Optional
from Bio import SeqIO
from blastinutils.commands import CommandsToolKit
from blastinutils.graph.builder import DEFAULT_CHUNK_SIZE, Graph, MAX_LOG_EVALUE, NodesAndLinksBuilder
from blastinutils.utility.progress import current_bar
from blastinutils.utility.utils import load_config

L = logging.getLogger(__name__)
PathLike = str | Path

__all__ = ["resolve_tool", "count_queries", "run_makeblastdb", "run_blastp", "run_blastp_graph"]


def resolve_tool(name: str, cfg: dict | None = None) -> str:
    """Path from ``tools.<name>`` in config.yaml, else whatever is on $PATH."""
    cfg = load_config() if cfg is None else cfg
    tool = cfg.get("tools", {}).get(name, name)
    if Path(tool).exists():
        return str(tool)
    found = shutil.which(tool)
    if found:
        return found
    raise FileNotFoundError(
        f"{name} not found. Install BLAST+ or set tools.{name} in config.yaml."
    )


def count_queries(query_fa: PathLike) -> int:
    """Number of FASTA records in *query_fa*; raises if there is nothing to search."""
    q = Path(query_fa)
    if not q.is_file():
        raise FileNotFoundError(q)
    total = sum(1 for _ in SeqIO.parse(q, "fasta"))
    if total == 0:
        raise ValueError(f"{q} contains no FASTA records - nothing to BLAST")
    return total


def run_makeblastdb(in_fasta: PathLike, out_prefix: PathLike, *,
                    toolkit: CommandsToolKit | None = None, cfg: dict | None = None) -> Path:
    """Index *in_fasta* as a BLAST database at *out_prefix* and return the prefix."""
    cfg = load_config() if cfg is None else cfg
    toolkit = toolkit or CommandsToolKit.from_config(cfg)

    fasta = Path(in_fasta)
    if not fasta.is_file():
        raise FileNotFoundError(fasta)
    out = Path(out_prefix)
    out.parent.mkdir(parents=True, exist_ok=True)

    cmd = toolkit.make_database_argv(fasta, out)
    cmd[0] = resolve_tool("makeblastdb", cfg)
    L.info("RUN makeblastdb: %s", toolkit.build_make_database_command(fasta, out))
    try:
        subprocess.run(cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
    except subprocess.CalledProcessError as exc:
        L.error("makeblastdb failed (exit %s):\n%s", exc.returncode, exc.stderr)
        raise
    L.info("makeblastdb finished OK -> %s", out)
    return out


def run_blastp(query_fa: PathLike, db: PathLike, out_tsv: PathLike | None = None, *,
               toolkit: CommandsToolKit | None = None,
               builder: NodesAndLinksBuilder | None = None,
               chunk_size: int | None = None,
               on_progress: Optional[Callable[[int], None]] = None,
               total: int | None = None,
               cfg: dict | None = None) -> NodesAndLinksBuilder:
    """
    Run blastp and stream its tabular stdout straight into a graph builder.

    Parameters:
    query_fa : PathLike
        Protein FASTA to search.
    db : PathLike
        BLAST database prefix (as given to makeblastdb -out).
    out_tsv : PathLike, optional
        Also keep a copy of the raw tabular output here.
    builder : NodesAndLinksBuilder, optional
        Builder to feed; a new one configured from config.yaml otherwise.
    on_progress : callable, optional
        Receives a 0-100 percentage of queries with at least one hit.
    total : int, optional
        Number of query records when the caller already counted them;
        the FASTA is parsed for it otherwise.

    The builder is returned closed. Corrupt lines do not stop the run; check
    ``builder.corrupt`` or use :func:`run_blastp_graph`.
    """
    cfg = load_config() if cfg is None else cfg
    toolkit = toolkit or CommandsToolKit.from_config(cfg)
    graph_cfg = cfg.get("graph", {})
    chunk_size = chunk_size or graph_cfg.get("chunk_size", DEFAULT_CHUNK_SIZE)
    if builder is None:
        builder = NodesAndLinksBuilder(
            max_log_evalue=graph_cfg.get("max_log_evalue", MAX_LOG_EVALUE),
            columns=toolkit.columns,
        )

    if total is None:
        total = count_queries(query_fa)

    # parent tqdm bar auto-callback
    parent_bar = current_bar()
    if on_progress is None and parent_bar is not None:
        on_progress = lambda pct: parent_bar.update(
            max(0, int(pct * total / 100) - parent_bar.n)
            )

    cmd = toolkit.blastp_argv(db, query_fa)
    cmd[0] = resolve_tool("blastp", cfg)
    L.info("RUN BLAST: %s", toolkit.build_blastp_command(db, query_fa, out_tsv or "-"))

    if on_progress:
        on_progress(0)

    with ExitStack() as stack:
        # stderr to a spool file so a chatty blastp cannot fill the pipe and stall us
        err_fh = stack.enter_context(tempfile.TemporaryFile())
        tee = None
        if out_tsv is not None:
            Path(out_tsv).parent.mkdir(parents=True, exist_ok=True)
            tee = stack.enter_context(open(out_tsv, "wb"))

        proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=err_fh)
        stack.callback(proc.wait)
        done = 0
        with proc.stdout:
            for chunk in iter(lambda: proc.stdout.read1(chunk_size), b""):
                if tee is not None:
                    tee.write(chunk)
                builder.feed(chunk)
                if on_progress and builder.query_count != done:
                    done = builder.query_count
                    on_progress(min(int(done / total * 100), 99))
        rc = proc.wait()

        if rc:
            err_fh.seek(0)
            stderr = err_fh.read().decode("utf-8", errors="replace")
            L.error("blastp failed (exit %s):\n%s", rc, stderr)
            raise subprocess.CalledProcessError(rc, cmd, stderr=stderr)

    builder.close()
    if on_progress:
        on_progress(100)

    L.info("BLAST finished OK: %d queries with hits, %d nodes, %d links",
           builder.query_count, len(builder.nodes), len(builder.links))
    return builder


def run_blastp_graph(query_fa: PathLike, db: PathLike, out_tsv: PathLike | None = None, **kw) -> Graph:
    """run_blastp, then fail with CorruptStreamError if any output line was bad."""
    builder = run_blastp(query_fa, db, out_tsv, **kw)
    builder.raise_for_errors()
    return builder.result()
