"""
Co-expression ranking: p-value ordering plus FDR correction.

The p-value-ascending order produced here is the canonical order of the
ranked list. Q-values are assigned by position in that order, and consumers
rely on it for "first row" selection.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence
from weakref import WeakKeyDictionary

import pandas as pd

from coexplorer.cache.remote import MemoizedFetchCache, RemoteResult, RemoteSnapshot, remote_data
from coexplorer.core.models import CoExpressionKey, CoExpressionRow, CoExpressionWithQ
from coexplorer.core.reactive import Computed
from coexplorer.stats.fdr import calculate_q_values

logger = logging.getLogger(__name__)

__all__ = [
    'rank_coexpressions',
    'coexpressions_to_dataframe',
    'CoExpressionRanking',
]


def rank_coexpressions(
    rows: Sequence[CoExpressionRow],
    monotone: bool = False,
) -> List[CoExpressionWithQ]:
    """
    Sort rows by p-value and attach Benjamini-Hochberg q-values.

    The sort is stable, so rows with equal p-values keep their upstream
    relative order. Input rows are not modified; the same input always
    yields an equal output.

    Args:
        rows: Raw co-expression rows in upstream order.
        monotone: Passed through to ``calculate_q_values``.

    Returns:
        Rows with q-values, in ascending p-value order.
    """
    sorted_by_p = sorted(rows, key=lambda row: row.p_value)
    q_values = calculate_q_values([row.p_value for row in sorted_by_p], monotone=monotone)
    return [
        CoExpressionWithQ.from_row(row, float(q))
        for row, q in zip(sorted_by_p, q_values)
    ]


def coexpressions_to_dataframe(rows: Sequence[CoExpressionWithQ]) -> pd.DataFrame:
    """Tabular view of ranked rows, in the given order."""
    columns = ['entrez_gene_id', 'hugo_gene_symbol', 'spearmans_correlation', 'p_value', 'q_value']
    return pd.DataFrame(
        [
            (r.entrez_gene_id, r.hugo_gene_symbol, r.spearmans_correlation, r.p_value, r.q_value)
            for r in rows
        ],
        columns=columns,
    )


class CoExpressionRanking:
    """
    Fetch-then-rank pipeline over a co-expression cache.

    ``ranked(get_key)`` returns a derived snapshot that follows the key: when
    the reference gene, profile or scope changes, the new key is fetched
    through the cache and ranked again. Ranking is memoized per fetch handle,
    so re-reading an unchanged key returns the identical list object.

    Example:
        >>> ranking = CoExpressionRanking(coexpression_cache)
        >>> snapshot = ranking.ranked(lambda: CoExpressionKey(7157, "brca_rna_seq_v2_mrna"))
        >>> snapshot.get().status
        <RemoteStatus.PENDING: 'pending'>
    """

    def __init__(
        self,
        cache: MemoizedFetchCache[CoExpressionKey, List[CoExpressionRow]],
        monotone: bool = False,
    ):
        self.cache = cache
        self.monotone = monotone
        self._ranked: "WeakKeyDictionary[RemoteResult, List[CoExpressionWithQ]]" = WeakKeyDictionary()

    def rank(self, handle: RemoteResult[List[CoExpressionRow]]) -> List[CoExpressionWithQ]:
        """Ranked rows of a completed fetch, computed once per handle."""
        cached = self._ranked.get(handle)
        if cached is not None:
            return cached
        ranked = rank_coexpressions(handle.result, monotone=self.monotone)
        self._ranked[handle] = ranked
        logger.debug(f"Ranked {len(ranked)} co-expressions for {handle.key!r}")
        return ranked

    def ranked(
        self,
        get_key: Callable[[], Optional[CoExpressionKey]],
    ) -> Computed[RemoteSnapshot[List[CoExpressionWithQ]]]:
        """
        Derived ranked list for the key returned by *get_key*.

        *get_key* may return None to suspend fetching (e.g. while the view is
        hidden); the snapshot is then COMPLETE with an empty list.
        """

        def current_handle() -> Optional[RemoteResult[List[CoExpressionRow]]]:
            key = get_key()
            return None if key is None else self.cache.get(key)

        def await_():
            handle = current_handle()
            return [] if handle is None else [handle]

        def invoke() -> List[CoExpressionWithQ]:
            handle = current_handle()
            return [] if handle is None else self.rank(handle)

        return remote_data(await_, invoke, name="coexpressions_with_q_values")
