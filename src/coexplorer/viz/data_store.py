"""
Selection and filter state for the co-expression table.

The store owns the table mode (all / positive / negative correlations) and
the active sort, derives the sorted and filtered views of the ranked list,
and keeps one comparison gene highlighted once data is available.

Highlight ownership stays with the caller (``get_highlighted`` /
``set_highlighted``); the store only decides when to auto-select.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, List, Optional

from coexplorer.core.models import CoExpressionWithQ
from coexplorer.core.reactive import Computed, Observable, autorun, transaction, untracked

logger = logging.getLogger(__name__)

__all__ = ['TableMode', 'CoExpressionDataStore']

SortMetric = Callable[[CoExpressionWithQ], Any]


class TableMode(Enum):
    """Which rows the table offers for selection.

    A correlation of exactly zero counts as both positive and negative.
    """
    SHOW_ALL = "all"
    SHOW_POSITIVE = "positive"
    SHOW_NEGATIVE = "negative"


class CoExpressionDataStore:
    """
    Sorted, filtered and highlighted view over the ranked co-expression list.

    Args:
        get_data: Returns the current ranked list (canonical p-value order).
            Read inside derivations, so it may read observables.
        get_highlighted: Returns the highlighted row or None.
        set_highlighted: Stores a new highlighted row.
        sort_metric: Key function for the active sort. None keeps the
            canonical order of ``get_data``.
        sort_ascending: Sort direction for ``sort_metric``.

    Auto-highlight:
        When the ranked list is non-empty and nothing is highlighted, the
        first row of ``sorted_data`` (sort applied, table mode not applied)
        is highlighted. This fires once per new dataset: clearing the
        highlight while the same data is shown is respected until the data
        becomes empty or is replaced, or until ``rearm()`` is called.

    Call ``destroy()`` when the owning view goes away to dispose the
    auto-highlight reaction.
    """

    def __init__(
        self,
        get_data: Callable[[], List[CoExpressionWithQ]],
        get_highlighted: Callable[[], Optional[CoExpressionWithQ]],
        set_highlighted: Callable[[CoExpressionWithQ], None],
        sort_metric: Optional[SortMetric] = None,
        sort_ascending: bool = True,
    ):
        self._get_highlighted = get_highlighted
        self.set_highlighted = set_highlighted
        self._table_mode = Observable(TableMode.SHOW_ALL, name="table_mode")
        self._sort_metric = Observable(sort_metric, name="sort_metric")
        self._sort_ascending = Observable(sort_ascending, name="sort_ascending")

        self._all_data = Computed(get_data, name="all_data")
        self._sorted_data = Computed(self._sort, name="sorted_data")
        self._sorted_filtered_data = Computed(
            lambda: [d for d in self._sorted_data.get() if self.data_selector(d)],
            name="sorted_filtered_data",
        )

        self._armed = Observable(True, name="auto_highlight_armed")
        self._last_data: Optional[List[CoExpressionWithQ]] = None
        self._reaction_disposer = autorun(self._auto_highlight, name="auto_highlight")

    @property
    def table_mode(self) -> TableMode:
        return self._table_mode.get()

    @table_mode.setter
    def table_mode(self, mode: TableMode) -> None:
        self._table_mode.set(mode)

    def set_sort(self, metric: Optional[SortMetric], ascending: bool = True) -> None:
        with transaction():
            self._sort_metric.set(metric)
            self._sort_ascending.set(ascending)

    @property
    def all_data(self) -> List[CoExpressionWithQ]:
        return self._all_data.get()

    @property
    def sorted_data(self) -> List[CoExpressionWithQ]:
        return self._sorted_data.get()

    @property
    def sorted_filtered_data(self) -> List[CoExpressionWithQ]:
        return self._sorted_filtered_data.get()

    def visible_rows(self) -> List[CoExpressionWithQ]:
        """Rows passing the table mode, in the active sort order."""
        return self.sorted_filtered_data

    def get_highlighted(self) -> Optional[CoExpressionWithQ]:
        return self._get_highlighted()

    def data_selector(self, row: CoExpressionWithQ) -> bool:
        mode = self._table_mode.get()
        if mode is TableMode.SHOW_POSITIVE:
            return row.spearmans_correlation >= 0
        if mode is TableMode.SHOW_NEGATIVE:
            return row.spearmans_correlation <= 0
        return True

    def data_highlighter(self, row: CoExpressionWithQ) -> bool:
        """True for the row of the highlighted comparison gene, whatever the mode."""
        highlighted = self._get_highlighted()
        return highlighted is not None and row.entrez_gene_id == highlighted.entrez_gene_id

    def _sort(self) -> List[CoExpressionWithQ]:
        data = self._all_data.get()
        metric = self._sort_metric.get()
        if metric is None:
            return data
        return sorted(data, key=metric, reverse=not self._sort_ascending.get())

    def _auto_highlight(self) -> None:
        data = self._all_data.get()
        if data is not self._last_data:
            self._last_data = data
            self._armed.set(True)
        if not data:
            return

        sorted_data = self._sorted_data.get()
        if self._get_highlighted() is None and self._armed.get():
            logger.debug(f"Auto-highlighting {sorted_data[0].hugo_gene_symbol}")
            with untracked():
                self.set_highlighted(sorted_data[0])
        self._armed.set(False)

    def rearm(self) -> None:
        """Let the next empty highlight be filled again for the current data."""
        self._armed.set(True)

    def destroy(self) -> None:
        self._reaction_disposer()
