# src/blastinutils/commands.py
"""
Command-line templating for the BLAST+ tools.

Parameters are ordered ``(flag, value)`` pairs so the rendered command keeps
the order the caller gave, e.g. ``[("num_threads", 4), ("evalue", 1e-10)]``
-> `` -num_threads 4 -evalue 1e-10``.
"""

from __future__ import annotations
import copy
import logging
from typing import Any, Sequence

from blastinutils.parsing._parse import COLS

L = logging.getLogger(__name__)

__all__ = ["DEFAULTS", "CommandsToolKit", "format_value"]

ParamPairs = Sequence[Sequence[Any]]

OUTFMT = f'"6 {" ".join(COLS)}"'

DEFAULTS: dict[str, Any] = {
    "blastp": [
        ["num_threads", 4],
        ["outfmt", OUTFMT],
        ["evalue", 1],
        ["max_target_seqs", 1000],
    ],
    "makeblastdb": [
        ["dbtype", "prot"],
    ],
    "parse_blast": {
        "format": list(COLS),
    },
}


def format_value(value: Any) -> str:
    """Render a parameter value the way BLAST expects (1e-10, 4, prot)."""
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return str(value)


def _pair(param: Sequence[Any]) -> tuple[str, Any]:
    if len(param) == 1:
        return str(param[0]), None
    flag, value = param
    return str(flag), value


class CommandsToolKit:
    """Builds ``blastp`` and ``makeblastdb`` command lines from ordered params."""

    def __init__(self, params: dict | None = None) -> None:
        self.params = dict(params) if params is not None else {}
        self.params.setdefault("blastp", copy.deepcopy(DEFAULTS["blastp"]))
        self.params.setdefault("makeblastdb", copy.deepcopy(DEFAULTS["makeblastdb"]))
        self.params.setdefault("parse_blast", copy.deepcopy(DEFAULTS["parse_blast"]))

    @classmethod
    def from_config(cls, cfg: dict) -> "CommandsToolKit":
        """Pick the ``blastp`` / ``makeblastdb`` / ``parse_blast`` sections of config.yaml."""
        params = {k: cfg[k] for k in ("blastp", "makeblastdb", "parse_blast") if cfg.get(k)}
        return cls(params)

    def set_new_params(self, params: dict) -> None:
        self.params = params

    def get_params(self) -> dict:
        return self.params

    @property
    def columns(self) -> list[str]:
        return list(self.params.get("parse_blast", {}).get("format", COLS))

    # ── string commands (for logs, --dry-run, shells) ---------------
    def add_params(self, params: ParamPairs) -> str:
        additional = ""
        for param in params:
            flag, value = _pair(param)
            additional += f" -{flag}" if value is None else f" -{flag} {format_value(value)}"
        return additional

    def build_blastp_command(self, db, query, output_file, params: ParamPairs | None = None) -> str:
        if params is None:
            params = self.params["blastp"]
        command = f"blastp -db {db} -query {query} -out {output_file}"
        command += self.add_params(params)
        return command

    def build_make_database_command(self, in_file, out_file, params: ParamPairs | None = None) -> str:
        if params is None:
            params = self.params["makeblastdb"]
        command = f"makeblastdb -in {in_file} -out {out_file}"
        command += self.add_params(params)
        return command

    # ── argv commands (subprocess, no shell -> no outfmt quotes) -------
    def param_argv(self, params: ParamPairs) -> list[str]:
        argv: list[str] = []
        for param in params:
            flag, value = _pair(param)
            argv.append(f"-{flag}")
            if value is not None:
                text = format_value(value)
                if flag == "outfmt":
                    text = text.strip('"\'')
                argv.append(text)
        return argv

    def blastp_argv(self, db, query, output_file=None, params: ParamPairs | None = None) -> list[str]:
        """``output_file=None`` leaves -out off so BLAST writes to stdout."""
        if params is None:
            params = self.params["blastp"]
        argv = ["blastp", "-db", str(db), "-query", str(query)]
        if output_file is not None:
            argv += ["-out", str(output_file)]
        return argv + self.param_argv(params)

    def make_database_argv(self, in_file, out_file, params: ParamPairs | None = None) -> list[str]:
        if params is None:
            params = self.params["makeblastdb"]
        return ["makeblastdb", "-in", str(in_file), "-out", str(out_file)] + self.param_argv(params)

    def with_param(self, tool: str, flag: str, value: Any) -> list[list[Any]]:
        """Copy of the *tool* params with *flag* set (replaced in place or appended)."""
        out = [list(p) for p in self.params[tool]]
        for p in out:
            if str(p[0]) == flag:
                p[1:] = [value]
                return out
        out.append([flag, value])
        return out
