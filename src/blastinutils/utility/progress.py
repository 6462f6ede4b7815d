# src/blastinutils/utility/progress.py

from __future__ import annotations
from contextlib import contextmanager
from tqdm import tqdm
from typing import Iterator
import threading

_tls = threading.local()  # module-level, one per thread

@contextmanager
def stage_bar(total: int, *, desc: str = "", unit: str = "", unit_scale: bool = False) -> Iterator[tqdm]:
    """
    Yield a tqdm bar and remember it in a thread-local so nested helpers
    (run_blastp, the graph stage) can tick it without the caller passing it.
    """
    outer = getattr(_tls, "current", None)
    bar = tqdm(total=total, desc=desc, unit=unit, unit_scale=unit_scale, leave=False, ncols=80,
               bar_format=("{l_bar}{bar}| " "{n_fmt}/{total_fmt} " "[elapsed: {elapsed} < remaining: {remaining}]"),)
    _tls.current = bar

    try:
        yield bar
    finally:
        bar.close()
        _tls.current = outer # restore previous parent (or None)


def current_bar():
    """The innermost active stage_bar on this thread, or None."""
    return getattr(_tls, "current", None)
