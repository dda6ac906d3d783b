"""Utility modules for coexplorer."""

from coexplorer.utils.fileio import atomic_open, write_tsv

__all__ = [
    'atomic_open',
    'write_tsv',
]
