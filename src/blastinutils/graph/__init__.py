
# -----src/blastinutils/graph/__init__.py -------------------

from .builder import (  # noqa: F401
    Graph,
    Link,
    MAX_LOG_EVALUE,
    NodesAndLinksBuilder,
    consume,
    transform_evalue,
)

__all__ = ["Graph", "Link", "MAX_LOG_EVALUE", "NodesAndLinksBuilder", "consume", "transform_evalue"]
