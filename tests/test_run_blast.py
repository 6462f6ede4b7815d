# tests/test_run_blast.py

"""
The runners are exercised against tiny shell stand-ins for blastp /
makeblastdb so the streaming path (pipe -> builder, tee to TSV, exit code
handling) is covered without BLAST+ installed. The last test uses the real
binaries and is skipped when they are missing.
"""

from __future__ import annotations

import shutil
import stat
import subprocess
from pathlib import Path

import pytest

pytest.importorskip("Bio")

from blastinutils.blast import run_blast as rb
from blastinutils.errors import CorruptStreamError
from blastinutils.graph.builder import Link

HITS = (
    "q1\ts1\t130\t51.471\t9.05e-42\t168\t136\n"
    "q1\ts2\t80\t40.0\t1e-5\t168\t100\n"
    "q2\ts1\t60\t35.0\t0\t90\t88\n"
)


def _script(path: Path, body: str) -> Path:
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IEXEC)
    return path


def _fasta(path: Path, n: int = 2) -> Path:
    path.write_text("".join(f">q{i + 1}\nMKV\n" for i in range(n)))
    return path


@pytest.fixture()
def fake_blastp(tmp_path):
    hits = tmp_path / "canned.tsv"
    hits.write_text(HITS)
    return _script(tmp_path / "blastp", f'cat "{hits}"\n')


def test_resolve_tool_prefers_config_path(tmp_path):
    exe = _script(tmp_path / "myblastp", "exit 0\n")
    assert rb.resolve_tool("blastp", {"tools": {"blastp": str(exe)}}) == str(exe)


def test_resolve_tool_missing(monkeypatch):
    monkeypatch.setattr(rb.shutil, "which", lambda _name: None)
    with pytest.raises(FileNotFoundError, match="tools.blastp"):
        rb.resolve_tool("blastp", {})


def test_count_queries(tmp_path):
    assert rb.count_queries(_fasta(tmp_path / "q.fa", 3)) == 3
    with pytest.raises(FileNotFoundError):
        rb.count_queries(tmp_path / "nope.fa")
    empty = tmp_path / "empty.fa"
    empty.write_text("")
    with pytest.raises(ValueError):
        rb.count_queries(empty)


def test_run_blastp_streams_into_builder(tmp_path, fake_blastp):
    progress = []
    out_tsv = tmp_path / "out" / "hits.tsv"
    builder = rb.run_blastp(
        _fasta(tmp_path / "q.fa"), "db", out_tsv,
        chunk_size=7,
        on_progress=progress.append,
        cfg={"tools": {"blastp": str(fake_blastp)}},
    )
    assert builder.closed and not builder.corrupt
    assert builder.nodes == ("q1", "s1", "s2", "q2")
    assert builder.links == (Link(0, 1, 41.04), Link(0, 2, 5.0), Link(3, 1, 200))
    assert out_tsv.read_text() == HITS
    assert progress[0] == 0 and progress[-1] == 100
    assert progress == sorted(progress)


def test_run_blastp_graph_raises_on_corrupt_output(tmp_path):
    exe = _script(tmp_path / "blastp", "printf 'q1\\ts1\\t130\\n'\n")
    with pytest.raises(CorruptStreamError) as excinfo:
        rb.run_blastp_graph(_fasta(tmp_path / "q.fa"), "db",
                            cfg={"tools": {"blastp": str(exe)}})
    assert excinfo.value.line == "q1\ts1\t130"


def test_run_blastp_nonzero_exit(tmp_path):
    exe = _script(tmp_path / "blastp", "echo 'BLAST Database error' >&2\nexit 2\n")
    with pytest.raises(subprocess.CalledProcessError) as excinfo:
        rb.run_blastp(_fasta(tmp_path / "q.fa"), "db", cfg={"tools": {"blastp": str(exe)}})
    assert excinfo.value.returncode == 2
    assert "BLAST Database error" in excinfo.value.stderr


def test_run_blastp_counted_total_skips_fasta_parse(tmp_path, fake_blastp, monkeypatch):
    def no_parse(query_fa):
        raise AssertionError("query FASTA parsed again")

    monkeypatch.setattr(rb, "count_queries", no_parse)
    progress = []
    builder = rb.run_blastp(_fasta(tmp_path / "q.fa"), "db", total=2,
                            on_progress=progress.append,
                            cfg={"tools": {"blastp": str(fake_blastp)}})
    assert builder.query_count == 2
    assert progress[-1] == 100


def test_run_blastp_uses_config_ceiling(tmp_path, fake_blastp):
    cfg = {"tools": {"blastp": str(fake_blastp)}, "graph": {"max_log_evalue": 300}}
    graph = rb.run_blastp_graph(_fasta(tmp_path / "q.fa"), "db", cfg=cfg)
    assert graph.links[-1] == Link(3, 1, 300)


def test_run_makeblastdb_passes_arguments(tmp_path):
    args_file = tmp_path / "args.txt"
    exe = _script(tmp_path / "makeblastdb", f'echo "$@" > "{args_file}"\n')
    fasta = _fasta(tmp_path / "db.fa")
    out = rb.run_makeblastdb(fasta, tmp_path / "db" / "prot", cfg={"tools": {"makeblastdb": str(exe)}})
    assert out == tmp_path / "db" / "prot"
    assert args_file.read_text().split() == ["-in", str(fasta), "-out", str(out), "-dbtype", "prot"]


def test_run_makeblastdb_failure(tmp_path):
    exe = _script(tmp_path / "makeblastdb", "echo bad fasta >&2\nexit 1\n")
    with pytest.raises(subprocess.CalledProcessError):
        rb.run_makeblastdb(_fasta(tmp_path / "db.fa"), tmp_path / "db",
                           cfg={"tools": {"makeblastdb": str(exe)}})


@pytest.mark.skipif(shutil.which("blastp") is None or shutil.which("makeblastdb") is None,
                    reason="BLAST+ not installed")
def test_real_blast_roundtrip(tmp_path):
    seqs = {
        "P1": "MKTAYIAKQRQISFVKSHFSRQLEERLGLIEVQAPILSRVGDGTQDNLSGAEKAVQVKVKALPDAQ",
        "P2": "MKTAYIAKQRQISFVKSHFSRQLEERLGLIEVQAPILSRVGDGTQDNLSGAEKAVQVKVKALPDAQ",
    }
    fasta = tmp_path / "prot.fa"
    fasta.write_text("".join(f">{k}\n{v}\n" for k, v in seqs.items()))
    db = rb.run_makeblastdb(fasta, tmp_path / "db" / "prot", cfg={})
    graph = rb.run_blastp_graph(fasta, db, cfg={})
    assert set(graph.nodes) == {"P1", "P2"}
    assert all(ln.e > 0 for ln in graph.links)
