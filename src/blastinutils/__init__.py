# Re-export the pieces most callers need so they can
# from blastinutils import NodesAndLinksBuilder, CommandsToolKit
from blastinutils.commands import CommandsToolKit
from blastinutils.errors import BlastinutilsError, BuilderClosedError, CorruptStreamError
from blastinutils.graph.builder import Graph, Link, NodesAndLinksBuilder, consume
from blastinutils.parsing._parse import MalformedLine, ParsedRecord, parse_tabular_line

__version__ = "0.1.0" # bump in version will update

__all__ = [
    "CommandsToolKit",
    "BlastinutilsError",
    "BuilderClosedError",
    "CorruptStreamError",
    "Graph",
    "Link",
    "NodesAndLinksBuilder",
    "consume",
    "MalformedLine",
    "ParsedRecord",
    "parse_tabular_line",
]
