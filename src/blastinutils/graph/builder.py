# -------- src/blastinutils/graph/builder.py ----------

"""
Streaming BLAST tabular -> node/link graph.

Chunks arrive in whatever sizes the pipe or file hands out, so lines are
re-assembled in a pending buffer before they reach the parser. Nodes keep
first-seen order; each ordered (query, subject) pair keeps only its best
scoring link.
"""

from __future__ import annotations
import codecs
import logging
import math
from typing import BinaryIO, Callable, Iterable, NamedTuple, Optional, Sequence, Union

from blastinutils.errors import BuilderClosedError, CorruptStreamError
from blastinutils.parsing._parse import DEFAULT_COLUMNS, MalformedLine, ParsedRecord, parse_tabular_line

L = logging.getLogger(__name__)

__all__ = ["Link", "Graph", "NodesAndLinksBuilder", "transform_evalue", "consume"]

MAX_LOG_EVALUE = 200
DEFAULT_CHUNK_SIZE = 64 * 1024
REQUIRED_COLS = ("qseqid", "sseqid", "evalue")

Chunk = Union[bytes, bytearray, str, None]
ErrorCallback = Callable[[CorruptStreamError], None]


class Link(NamedTuple):
    s: int      # source node index
    t: int      # target node index
    e: float    # transformed e-value score

    def as_dict(self) -> dict:
        return {"s": self.s, "t": self.t, "e": self.e}


class Graph(NamedTuple):
    nodes: tuple[str, ...]
    links: tuple[Link, ...]

    def to_dict(self) -> dict:
        return {"nodes": list(self.nodes), "links": [ln.as_dict() for ln in self.links]}


def transform_evalue(evalue: float, max_log_evalue: float = MAX_LOG_EVALUE) -> float:
    """0 -> ceiling (BLAST underflow), otherwise -log10(evalue) to 2 decimals."""
    if evalue == 0:
        return max_log_evalue
    return round(-math.log10(evalue), 2)


class NodesAndLinksBuilder:
    """
    Incremental graph builder fed with raw BLAST output chunks.

    Call :meth:`feed` for every chunk and :meth:`close` once the stream ends.
    Lines that do not match the column list never raise here: they are
    logged, stored on :attr:`errors` and passed to ``on_error``. Callers that
    want a hard failure use :meth:`raise_for_errors` (or :func:`consume`).
    """

    def __init__(
        self,
        max_log_evalue: float = MAX_LOG_EVALUE,
        columns: Sequence[str] = DEFAULT_COLUMNS,
        on_error: Optional[ErrorCallback] = None,
        encoding: str = "utf-8",
    ) -> None:
        missing = [c for c in REQUIRED_COLS if c not in columns]
        if missing:
            raise ValueError(f"column list lacks required BLAST fields: {', '.join(missing)}")

        self.max_log_evalue = max_log_evalue
        self.columns = tuple(columns)
        self.on_error = on_error
        self.buffer = ""
        self.errors: list[CorruptStreamError] = []
        self.closed = False

        self._nodes: list[str] = []
        self._links: list[Link] = []
        self._node_index: dict[str, int] = {}
        self._link_index: dict[tuple[int, int], int] = {}
        self._queries: set[str] = set()
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")

    # ── public views -------------------------------------------------
    @property
    def nodes(self) -> tuple[str, ...]:
        return tuple(self._nodes)

    @property
    def links(self) -> tuple[Link, ...]:
        return tuple(self._links)

    @property
    def corrupt(self) -> bool:
        return bool(self.errors)

    @property
    def query_count(self) -> int:
        """Distinct query ids seen so far (drives progress reporting)."""
        return len(self._queries)

    def result(self) -> Graph:
        return Graph(self.nodes, self.links)

    def to_dict(self) -> dict:
        return self.result().to_dict()

    def raise_for_errors(self) -> None:
        if self.errors:
            raise self.errors[0]

    # ── graph mutation ----------------------------------------------
    def add_node(self, identifier: str) -> int:
        idx = self._node_index.get(identifier)
        if idx is None:
            idx = len(self._nodes)
            self._nodes.append(identifier)
            self._node_index[identifier] = idx
        return idx

    def add_link(self, record: ParsedRecord) -> Link:
        """Insert or upgrade the link for (query, subject); return the retained link."""
        link = Link(
            s=self._node_index[record.query_id],
            t=self._node_index[record.subject_id],
            e=transform_evalue(record.e_value, self.max_log_evalue),
        )
        key = (link.s, link.t)
        pos = self._link_index.get(key)
        if pos is None:
            self._link_index[key] = len(self._links)
            self._links.append(link)
            return link
        # ties keep the first link
        if self._links[pos].e < link.e:
            self._links[pos] = link
        return self._links[pos]

    # ── streaming -----------------------------------------------------
    def feed(self, chunk: Chunk) -> None:
        """
        Append *chunk* to the buffer and process every completed line.

        ``None`` or an empty chunk marks end-of-stream and behaves like close().
        """
        if self.closed:
            raise BuilderClosedError("cannot feed a closed NodesAndLinksBuilder")
        if not chunk:
            self.close()
            return
        if isinstance(chunk, str):
            # bytes still pending in the decoder came first
            self.buffer += self._decoder.decode(b"", final=True) + chunk
            self._decoder.reset()
        else:
            self.buffer += self._decoder.decode(bytes(chunk))

        lines = self.buffer.split("\n")
        self.buffer = lines.pop()
        for line in lines:
            self.process_line(line)

    def close(self) -> Graph:
        """Flush the last unterminated line and freeze the result. Safe to call twice."""
        if self.closed:
            return self.result()
        self.buffer += self._decoder.decode(b"", final=True)
        leftover, self.buffer = self.buffer, ""
        # a bare "\r" is what is left of a CRLF-terminated final line
        if leftover.strip("\r"):
            self.process_line(leftover)
        self.closed = True
        L.debug("graph closed: %d nodes, %d links, %d corrupt lines",
                len(self._nodes), len(self._links), len(self.errors))
        return self.result()

    def process_line(self, line: str) -> None:
        parsed = parse_tabular_line(line, self.columns)
        if isinstance(parsed, MalformedLine):
            self._signal(CorruptStreamError(parsed.line))
            return

        evalue = parsed.e_value
        if isinstance(evalue, str) or evalue < 0 or not math.isfinite(evalue):
            self._signal(CorruptStreamError(line, reason="BLAST e-value is not a finite non-negative number."))
            return

        self.add_node(parsed.query_id)
        self.add_node(parsed.subject_id)
        self._queries.add(parsed.query_id)
        self.add_link(parsed)

    def _signal(self, err: CorruptStreamError) -> None:
        L.error("%s", err)
        self.errors.append(err)
        if self.on_error is not None:
            self.on_error(err)

    # ── context-manager ---------------------------------------------
    def __enter__(self) -> "NodesAndLinksBuilder":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def _iter_chunks(source: Union[BinaryIO, Iterable[Chunk]], chunk_size: int) -> Iterable[Chunk]:
    if hasattr(source, "read"):
        return iter(lambda: source.read(chunk_size), source.read(0))
    return source


def consume(
    source: Union[BinaryIO, Iterable[Chunk]],
    builder: Optional[NodesAndLinksBuilder] = None,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    on_chunk: Optional[Callable[[int], None]] = None,
) -> NodesAndLinksBuilder:
    """
    Feed every chunk of *source* (file object or iterable) into *builder*,
    close it and return it.

    Raises CorruptStreamError if any line was not a valid record.
    """
    builder = builder or NodesAndLinksBuilder()
    for chunk in _iter_chunks(source, chunk_size):
        if not chunk:
            continue
        builder.feed(chunk)
        if on_chunk:
            on_chunk(len(chunk))
    builder.close()
    builder.raise_for_errors()
    return builder
