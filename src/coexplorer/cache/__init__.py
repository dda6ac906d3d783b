"""Memoizing asynchronous fetch cache shared by the ranking and plot pipelines."""

from coexplorer.cache.remote import (
    RemoteStatus,
    RemoteSnapshot,
    RemoteResult,
    MemoizedFetchCache,
    canonical_key,
    remote_data,
)

__all__ = [
    'RemoteStatus',
    'RemoteSnapshot',
    'RemoteResult',
    'MemoizedFetchCache',
    'canonical_key',
    'remote_data',
]
