# ------ src/blastinutils/parsing/_parse.py -------------

from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Mapping, Sequence, Union

# BLAST -outfmt "6 qseqid sseqid bitscore pident evalue qlen length"
COLS = "qseqid sseqid bitscore pident evalue qlen length".split()
DEFAULT_COLUMNS: tuple[str, ...] = tuple(COLS)

# whole-field decimal literals only; "12abc", "nan" and "Inf" stay text
_INT_RX = re.compile(r"[+-]?\d+")
_FLOAT_RX = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

Value = Union[int, float, str]


def coerce_field(text: str) -> Value:
    """Return *text* as int/float when the whole field is numeric, else unchanged."""
    if _INT_RX.fullmatch(text):
        return int(text)
    if _FLOAT_RX.fullmatch(text):
        return float(text)
    return text


@dataclass(frozen=True)
class ParsedRecord:
    """One alignment row. ``fields`` holds coerced values, ``raw`` the original text."""

    fields: Mapping[str, Value]
    raw: Mapping[str, str] = field(repr=False)
    ok = True

    def __getitem__(self, key: str) -> Value:
        return self.fields[key]

    def as_dict(self) -> dict[str, Value]:
        return dict(self.fields)

    # identifiers always come back as the text BLAST wrote, even "123"
    @property
    def query_id(self) -> str:
        return self.raw["qseqid"]

    @property
    def subject_id(self) -> str:
        return self.raw["sseqid"]

    @property
    def bit_score(self) -> Value:
        return self.fields["bitscore"]

    @property
    def percent_identity(self) -> Value:
        return self.fields["pident"]

    @property
    def e_value(self) -> Value:
        return self.fields["evalue"]

    @property
    def query_length(self) -> Value:
        return self.fields["qlen"]

    @property
    def alignment_length(self) -> Value:
        return self.fields["length"]


@dataclass(frozen=True)
class MalformedLine:
    """A line whose field count does not match the column list."""

    line: str
    ok = False

    def __str__(self) -> str:
        return self.line


ParseResult = Union[ParsedRecord, MalformedLine]


def parse_tabular_line(line: str, columns: Sequence[str] = DEFAULT_COLUMNS) -> ParseResult:
    """
    Split one tab-separated BLAST row into a :class:`ParsedRecord`.

    A trailing ``\\n`` / ``\\r\\n`` is ignored. If the number of fields differs
    from ``len(columns)`` the line is handed back untouched as a
    :class:`MalformedLine`; nothing is raised.
    """
    parts = line.rstrip("\r\n").split("\t")
    if len(parts) != len(columns):
        return MalformedLine(line)

    raw = dict(zip(columns, parts))
    return ParsedRecord(fields={k: coerce_field(v) for k, v in raw.items()}, raw=raw)
