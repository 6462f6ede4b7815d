from __future__ import annotations

import json
import stat
from pathlib import Path

import pytest

from blastinutils import pipeline
from blastinutils.errors import CorruptStreamError


def _blastp(tmp_path: Path, output: str) -> Path:
    canned = tmp_path / "canned.tsv"
    canned.write_text(output)
    exe = tmp_path / "blastp"
    exe.write_text(f'#!/bin/sh\ncat "{canned}"\n')
    exe.chmod(exe.stat().st_mode | stat.S_IEXEC)
    return exe


def test_run_graph_stage_writes_outputs(tmp_path: Path):
    tsv = tmp_path / "hits.tsv"
    tsv.write_text("X\tY\t1\t50\t1e-7\t10\t10\nY\tX\t1\t50\t1e-8\t10\t10\n")
    out_json = tmp_path / "graph.json"
    links = tmp_path / "links.tsv"
    rc = pipeline.run_graph_stage(tsv, out_json=out_json, links_tsv=links, cfg={})
    assert rc == 0
    assert json.loads(out_json.read_text()) == {
        "nodes": ["X", "Y"],
        "links": [{"s": 0, "t": 1, "e": 7.0}, {"s": 1, "t": 0, "e": 8.0}],
    }
    assert len(links.read_text().splitlines()) == 3


def test_run_graph_stage_respects_configured_columns(tmp_path: Path):
    tsv = tmp_path / "short.tsv"
    tsv.write_text("X\tY\t0\n")
    cfg = {"parse_blast": {"format": ["qseqid", "sseqid", "evalue"]}, "graph": {"max_log_evalue": 99}}
    out_json = tmp_path / "g.json"
    pipeline.run_graph_stage(tsv, out_json=out_json, cfg=cfg)
    assert json.loads(out_json.read_text())["links"] == [{"s": 0, "t": 1, "e": 99}]


def test_run_graph_stage_corrupt(tmp_path: Path):
    tsv = tmp_path / "bad.tsv"
    tsv.write_text("X\tY\t1\t50\t1e-7\t10\t10\n\nX\tZ\t1\t50\t1e-7\t10\t10\n")
    out_json = tmp_path / "graph.json"
    with pytest.raises(CorruptStreamError) as excinfo:
        pipeline.run_graph_stage(tsv, out_json=out_json, cfg={})
    assert excinfo.value.line == ""
    assert not out_json.exists()


def test_run_blastp_stage(tmp_path: Path):
    pytest.importorskip("Bio")
    exe = _blastp(tmp_path, "q1\ts1\t1\t50\t1e-30\t10\t10\n")
    fasta = tmp_path / "q.fa"
    fasta.write_text(">q1\nMKV\n")
    out_json = tmp_path / "graph.json"
    rc = pipeline.run_blastp_stage(fasta, "db", out_json=out_json, cfg={"tools": {"blastp": str(exe)}})
    assert rc == 0
    assert json.loads(out_json.read_text())["links"] == [{"s": 0, "t": 1, "e": 30.0}]


def test_run_blastp_stage_corrupt(tmp_path: Path):
    pytest.importorskip("Bio")
    exe = _blastp(tmp_path, "q1\ts1\n")
    fasta = tmp_path / "q.fa"
    fasta.write_text(">q1\nMKV\n")
    with pytest.raises(CorruptStreamError):
        pipeline.run_blastp_stage(fasta, "db", out_json=tmp_path / "g.json",
                                  cfg={"tools": {"blastp": str(exe)}})


def test_run_graph_stage_tables_keep_scores_above_ceiling(tmp_path: Path):
    tsv = tmp_path / "hits.tsv"
    tsv.write_text("A\tB\t900\t99.0\t1e-250\t500\t500\n")
    links, nodes = tmp_path / "links.tsv", tmp_path / "nodes.tsv"
    rc = pipeline.run_graph_stage(tsv, out_json=tmp_path / "g.json", links_tsv=links,
                                  nodes_tsv=nodes, cfg={"graph": {"max_log_evalue": 30}})
    assert rc == 0
    assert links.read_text().splitlines()[1] == "0\t1\t250.0\tA\tB"
    assert nodes.read_text().splitlines() == ["id\tnode", "0\tA", "1\tB"]


def test_invalid_table_leaves_no_json(tmp_path: Path, monkeypatch):
    def reject(graph):
        raise ValueError("bad links table")

    monkeypatch.setattr(pipeline, "links_frame", reject)
    tsv = tmp_path / "hits.tsv"
    tsv.write_text("X\tY\t1\t50\t1e-7\t10\t10\n")
    out_json = tmp_path / "graph.json"
    with pytest.raises(ValueError):
        pipeline.run_graph_stage(tsv, out_json=out_json, links_tsv=tmp_path / "links.tsv", cfg={})
    assert not out_json.exists()
