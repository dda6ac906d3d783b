"""
Atomic export of tables.

Output is written to a temporary file next to the destination and moved
into place with ``os.replace()``, so a reader sees either the previous
export or the complete new one.
"""

from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator

import pandas as pd

__all__ = ['atomic_open', 'write_tsv']


@contextmanager
def atomic_open(path: str | os.PathLike) -> Iterator[IO[str]]:
    """Text handle whose content replaces *path* when the block exits cleanly.

    If the block raises, the destination is left untouched and the
    temporary file is removed.
    """
    path = Path(path)
    tmp = tempfile.NamedTemporaryFile(
        mode="w", dir=path.parent, prefix=f"{path.name}.", suffix=".tmp",
        delete=False, newline="",
    )
    try:
        with tmp:
            yield tmp
        os.replace(tmp.name, path)
    except BaseException:
        if os.path.exists(tmp.name):
            os.unlink(tmp.name)
        raise


def write_tsv(df: pd.DataFrame, path: str | os.PathLike) -> None:
    """Write *df* as tab-separated text without the index."""
    with atomic_open(path) as handle:
        df.to_csv(handle, sep='\t', index=False)
