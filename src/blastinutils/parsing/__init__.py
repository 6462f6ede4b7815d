
# -----src/blastinutils/parsing/__init__.py -------------------

from ._parse import (  # noqa: F401
    COLS,
    DEFAULT_COLUMNS,
    MalformedLine,
    ParsedRecord,
    ParseResult,
    coerce_field,
    parse_tabular_line,
)

__all__ = [
    "COLS",
    "DEFAULT_COLUMNS",
    "MalformedLine",
    "ParsedRecord",
    "ParseResult",
    "coerce_field",
    "parse_tabular_line",
]
