"""
View-model of the co-expression tab.

Wires the ranking pipeline, the selection store and the plot builder to the
current selection (reference gene, molecular profile, data scope, hidden
flag) and exposes everything a table/plot layer needs to render.

Usage:
    viz = CoExpressionViz(
        gene=Gene(7157, "TP53"),
        molecular_profile=profile,
        coexpression_cache=caches.coexpression,
        numeric_cache=caches.numeric,
        coverage_information=caches.coverage_information,
        study_to_mutation_profile=caches.study_to_mutation_profile,
        mutation_cache=caches.mutation,
    )
    viz.data_store.visible_rows()     # table rows
    viz.plot_data.get()               # RemoteSnapshot[List[PlotDatum]]
    viz.destroy()                     # when the view is torn down
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional

from coexplorer.cache.remote import MemoizedFetchCache, RemoteResult, RemoteSnapshot
from coexplorer.config import CoExpressionConfig, PlotState
from coexplorer.core.models import (
    CoExpressionKey,
    CoExpressionRow,
    CoExpressionWithQ,
    CoverageInformation,
    DataScope,
    Gene,
    MolecularProfile,
    Mutation,
    NumericGeneMolecularData,
    PlotDatum,
)
from coexplorer.core.reactive import Computed, Observable, transaction
from coexplorer.stats.ranking import CoExpressionRanking
from coexplorer.viz.data_store import CoExpressionDataStore, TableMode
from coexplorer.viz.plot_data import PlotDataBuilder

if TYPE_CHECKING:
    from coexplorer.io.cbioportal import CoExpressionCaches

logger = logging.getLogger(__name__)

__all__ = [
    'CoExpressionViz',
    'request_all_data_message',
    'show_log_scale_controls',
    'PLOT_ERROR_MESSAGE',
]

PLOT_ERROR_MESSAGE = "Error fetching data. Please refresh the page and try again."


def request_all_data_message(hugo_gene_symbol: str, threshold: float = 0.3) -> str:
    return (
        f"There are no genes with a Pearson or Spearman correlation with "
        f"{hugo_gene_symbol} of magnitude > {threshold:g}."
    )


def show_log_scale_controls(molecular_profile: MolecularProfile) -> bool:
    """Log scale only makes sense for raw RNA-seq values, not z-scores."""
    profile_id = molecular_profile.molecular_profile_id.lower()
    return "rna_seq" in profile_id and "zscore" not in profile_id


class CoExpressionViz:
    """
    Co-expression table and scatter plot state for one cohort.

    Args:
        gene: Reference gene.
        molecular_profile: Expression profile the correlations come from.
        coexpression_cache: Raw co-expression rows keyed by CoExpressionKey.
        numeric_cache: Numeric data keyed by gene and profile.
        coverage_information: Handle on profiling coverage.
        study_to_mutation_profile: Handle on the study -> mutation profile map.
        mutation_cache: Mutation calls keyed by gene; None disables the
            mutation overlay.
        plot_state: Plot display toggles.
        hidden: Whether the view starts hidden (no fetching while hidden).
        all_data_requested: Start with the all-genes scope.
        monotone_q_values: Use step-up BH q-values instead of per-rank ones.
    """

    def __init__(
        self,
        gene: Gene,
        molecular_profile: MolecularProfile,
        coexpression_cache: MemoizedFetchCache[CoExpressionKey, List[CoExpressionRow]],
        numeric_cache: MemoizedFetchCache[Mapping, List[NumericGeneMolecularData]],
        coverage_information: RemoteResult[CoverageInformation],
        study_to_mutation_profile: RemoteResult[Dict[str, MolecularProfile]],
        mutation_cache: Optional[MemoizedFetchCache[Mapping, List[Mutation]]] = None,
        plot_state: Optional[PlotState] = None,
        hidden: bool = False,
        all_data_requested: bool = True,
        monotone_q_values: bool = False,
    ):
        self.plot_state = plot_state or PlotState()
        self.mutation_cache = mutation_cache

        self._gene = Observable(gene, name="gene")
        self._molecular_profile = Observable(molecular_profile, name="molecular_profile")
        self._hidden = Observable(hidden, name="hidden")
        self._all_data_requested = Observable(all_data_requested, name="all_data_requested")
        # Only None before data first loads or right after the reference changes
        self._highlighted: Observable[Optional[CoExpressionWithQ]] = Observable(None, name="highlighted")
        self._last_coexpression_data: Optional[List[CoExpressionWithQ]] = None

        self.ranking = CoExpressionRanking(coexpression_cache, monotone=monotone_q_values)
        self.coexpressions_with_q_values = self.ranking.ranked(self._coexpression_key)

        self.data_store = CoExpressionDataStore(
            self._table_data,
            self._highlighted.get,
            self._highlighted.set,
        )

        self.plot_data_builder = PlotDataBuilder(
            numeric_cache,
            coverage_information,
            study_to_mutation_profile,
            mutation_cache=mutation_cache,
        )
        self.plot_data: Computed[RemoteSnapshot[List[PlotDatum]]] = self.plot_data_builder.plot_data(
            lambda: (self.gene, self.highlighted, self.molecular_profile, self.hidden)
        )

    @classmethod
    def from_config(
        cls,
        config: CoExpressionConfig,
        gene: Gene,
        molecular_profile: MolecularProfile,
        caches: CoExpressionCaches,
        hidden: bool = False,
    ) -> "CoExpressionViz":
        """View over *caches* using the plot, scope and q-value settings of *config*."""
        return cls(
            gene=gene,
            molecular_profile=molecular_profile,
            coexpression_cache=caches.coexpression,
            numeric_cache=caches.numeric,
            coverage_information=caches.coverage_information,
            study_to_mutation_profile=caches.study_to_mutation_profile,
            mutation_cache=caches.mutation,
            plot_state=config.plot,
            hidden=hidden,
            all_data_requested=config.all_data_requested,
            monotone_q_values=config.monotone_q_values,
        )

    # -- selection state ----------------------------------------------------

    @property
    def gene(self) -> Gene:
        return self._gene.get()

    @property
    def molecular_profile(self) -> MolecularProfile:
        return self._molecular_profile.get()

    @property
    def hidden(self) -> bool:
        return self._hidden.get()

    @property
    def all_data_requested(self) -> bool:
        return self._all_data_requested.get()

    @property
    def highlighted(self) -> Optional[CoExpressionWithQ]:
        return self._highlighted.get()

    def set_highlighted(self, row: Optional[CoExpressionWithQ]) -> None:
        self._highlighted.set(row)

    def set_hidden(self, hidden: bool) -> None:
        self._hidden.set(hidden)

    def select_table_mode(self, mode: TableMode) -> None:
        self.data_store.table_mode = mode

    def request_all_data(self) -> None:
        logger.info(f"Requesting co-expressions with all genes for {self.gene.hugo_gene_symbol}")
        self._all_data_requested.set(True)

    def set_reference(self, gene: Gene, molecular_profile: MolecularProfile) -> None:
        """Switch reference gene/profile; the highlight restarts from the new list."""
        with transaction():
            self._gene.set(gene)
            self._molecular_profile.set(molecular_profile)
            self._highlighted.set(None)
            # An unchanged key yields the same ranked list object
            self.data_store.rearm()

    # -- derived data -------------------------------------------------------

    @property
    def scope(self) -> DataScope:
        return DataScope.ALL if self.all_data_requested else DataScope.RESTRICTED

    def _coexpression_key(self) -> Optional[CoExpressionKey]:
        if self.hidden:
            return None
        return CoExpressionKey(
            entrez_gene_id=self.gene.entrez_gene_id,
            molecular_profile_id=self.molecular_profile.molecular_profile_id,
            scope=self.scope,
        )

    def _table_data(self) -> List[CoExpressionWithQ]:
        if self.hidden:
            # Keep the last list so the table keeps its position while hidden
            return self._last_coexpression_data or []
        snapshot = self.coexpressions_with_q_values.get()
        if snapshot.is_complete:
            self._last_coexpression_data = snapshot.result
            return snapshot.result
        return []

    @property
    def show_mutation_controls(self) -> bool:
        return self.mutation_cache is not None

    @property
    def show_log_scale_controls(self) -> bool:
        return show_log_scale_controls(self.molecular_profile)

    @property
    def plot_show_mutations(self) -> bool:
        return self.plot_state.plot_show_mutations and self.show_mutation_controls

    @property
    def plot_log_scale(self) -> bool:
        return self.plot_state.plot_log_scale and self.show_log_scale_controls

    @property
    def should_offer_all_data_request(self) -> bool:
        return (
            self.plot_data.get().is_complete
            and not self.data_store.all_data
            and not self.all_data_requested
        )

    @property
    def is_plot_loading(self) -> bool:
        if not self.data_store.all_data:
            return False
        return self.plot_data.get().is_pending or self.highlighted is None

    @property
    def plot_error_message(self) -> Optional[str]:
        return PLOT_ERROR_MESSAGE if self.plot_data.get().is_error else None

    def destroy(self) -> None:
        self.data_store.destroy()
