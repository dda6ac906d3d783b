"""
Cross-dataset join for the co-expression scatter plot.

Merges three independently fetched datasets for a (reference gene,
comparison gene, molecular profile) triple:

    1. Numeric expression of both genes (x = reference, y = comparison)
    2. Mutation calls of both genes (optional overlay)
    3. Profiling coverage plus the study -> mutation profile map

into one PlotDatum per sample measured for both genes.

Mutation status per side:
    MUTATED       - a mutation call exists for the sample and gene
    NOT_PROFILED  - no call, and the sample's study mutation profile did not
                    cover the gene in that sample (or the study has none)
    NOT_MUTATED   - no call in a covered sample

Gating:
    Nothing is fetched until a comparison gene is highlighted and the view is
    visible. The joined result is produced only when every required input is
    COMPLETE; a partial join is never emitted.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from coexplorer.cache.remote import (
    MemoizedFetchCache, RemoteResult, RemoteSnapshot, remote_data,
)
from coexplorer.core.models import (
    CoExpressionRow,
    CoverageInformation,
    Gene,
    MolecularProfile,
    Mutation,
    MutationStatus,
    NumericGeneMolecularData,
    PlotDatum,
    SampleKey,
)
from coexplorer.core.reactive import Computed

logger = logging.getLogger(__name__)

__all__ = [
    'compute_plot_data',
    'plot_data_to_dataframe',
    'PlotDataPromises',
    'PlotDataBuilder',
]

_SAMPLE_COLUMNS = ['study_id', 'sample_id']


def _expression_frame(
    molecular_data: Sequence[NumericGeneMolecularData],
    entrez_gene_id: int,
) -> pd.DataFrame:
    frame = pd.DataFrame(
        [
            (d.study_id, d.sample_id, d.patient_id, d.value)
            for d in molecular_data
            if d.entrez_gene_id == entrez_gene_id
        ],
        columns=_SAMPLE_COLUMNS + ['patient_id', 'value'],
    )
    return frame.drop_duplicates(subset=_SAMPLE_COLUMNS, keep='first')


def _mutation_status(
    sample_key: SampleKey,
    entrez_gene_id: int,
    mutated: Mapping[Tuple[SampleKey, int], List[str]],
    coverage_information: CoverageInformation,
    study_to_mutation_profile: Mapping[str, MolecularProfile],
) -> MutationStatus:
    if (sample_key, entrez_gene_id) in mutated:
        return MutationStatus.MUTATED
    profile = study_to_mutation_profile.get(sample_key[0])
    if profile is None or not coverage_information.is_profiled(
        sample_key, profile.molecular_profile_id, entrez_gene_id
    ):
        return MutationStatus.NOT_PROFILED
    return MutationStatus.NOT_MUTATED


def compute_plot_data(
    molecular_data: Sequence[NumericGeneMolecularData],
    mutations: Optional[Sequence[Mutation]],
    x_entrez_gene_id: int,
    y_entrez_gene_id: int,
    coverage_information: CoverageInformation,
    study_to_mutation_profile: Mapping[str, MolecularProfile],
) -> List[PlotDatum]:
    """
    Join expression, mutation and coverage data into scatter points.

    Samples are inner-joined on (study_id, sample_id) across the x and y
    expression sets: a sample missing either value is dropped. Output
    follows the order of the x expression data.

    Args:
        molecular_data: Numeric data for both genes, in any order.
        mutations: Mutation calls for both genes, or None when the mutation
            overlay is disabled (mutation fields are then left unset).
        x_entrez_gene_id: Reference gene.
        y_entrez_gene_id: Comparison gene.
        coverage_information: Profiling coverage per sample.
        study_to_mutation_profile: Mutation profile of each study.

    Returns:
        One PlotDatum per sample measured for both genes.
    """
    x_frame = _expression_frame(molecular_data, x_entrez_gene_id)
    y_frame = _expression_frame(molecular_data, y_entrez_gene_id)
    merged = x_frame.merge(
        y_frame[_SAMPLE_COLUMNS + ['value']],
        on=_SAMPLE_COLUMNS,
        how='inner',
        suffixes=('_x', '_y'),
    )

    mutated: Dict[Tuple[SampleKey, int], List[str]] = defaultdict(list)
    for mutation in mutations or []:
        mutated[(mutation.sample_key, mutation.entrez_gene_id)].append(mutation.protein_change)

    plot_data = []
    for row in merged.itertuples(index=False):
        sample_key = (row.study_id, row.sample_id)
        datum = dict(
            study_id=row.study_id,
            sample_id=row.sample_id,
            patient_id=row.patient_id,
            x_value=float(row.value_x),
            y_value=float(row.value_y),
        )
        if mutations is not None:
            for side, entrez_gene_id in (('x', x_entrez_gene_id), ('y', y_entrez_gene_id)):
                datum[f'{side}_mutation_status'] = _mutation_status(
                    sample_key, entrez_gene_id, mutated,
                    coverage_information, study_to_mutation_profile,
                )
                datum[f'{side}_mutations'] = ", ".join(
                    p for p in mutated.get((sample_key, entrez_gene_id), []) if p
                )
        plot_data.append(PlotDatum(**datum))

    logger.debug(
        f"Joined {len(plot_data)} samples "
        f"({len(x_frame)} x, {len(y_frame)} y) for {x_entrez_gene_id} vs {y_entrez_gene_id}"
    )
    return plot_data


def plot_data_to_dataframe(plot_data: Sequence[PlotDatum]) -> pd.DataFrame:
    """Tabular view of plot points; enum statuses become their string values."""
    columns = [
        'study_id', 'sample_id', 'patient_id', 'x_value', 'y_value',
        'x_mutation_status', 'y_mutation_status', 'x_mutations', 'y_mutations',
    ]
    return pd.DataFrame(
        [
            (
                d.study_id, d.sample_id, d.patient_id, d.x_value, d.y_value,
                d.x_mutation_status.value if d.x_mutation_status else None,
                d.y_mutation_status.value if d.y_mutation_status else None,
                d.x_mutations, d.y_mutations,
            )
            for d in plot_data
        ],
        columns=columns,
    )


@dataclass
class PlotDataPromises:
    """Fetch handles behind one scatter plot."""
    molecular_x: RemoteResult[List[NumericGeneMolecularData]]
    molecular_y: RemoteResult[List[NumericGeneMolecularData]]
    mutation_x: Optional[RemoteResult[List[Mutation]]] = None
    mutation_y: Optional[RemoteResult[List[Mutation]]] = None

    def all(self) -> List[RemoteResult]:
        handles = [self.molecular_x, self.molecular_y, self.mutation_x, self.mutation_y]
        return [h for h in handles if h is not None]


# The highlighted table row or a plain gene; only entrez_gene_id is read
ComparisonGene = Union[Gene, CoExpressionRow]
PlotInputs = Tuple[Gene, Optional[ComparisonGene], MolecularProfile, bool]


class PlotDataBuilder:
    """
    Fetch fan-out and gated join for the scatter plot.

    Args:
        numeric_cache: Numeric data keyed by
            {"entrez_gene_id", "molecular_profile_id"}.
        coverage_information: Handle on the cohort's profiling coverage.
        study_to_mutation_profile: Handle on the study -> mutation profile map.
        mutation_cache: Mutation calls keyed by {"entrez_gene_id"}. None
            disables the mutation overlay: no mutation fetch is issued and
            plot points carry no mutation status.

    Example:
        >>> builder = PlotDataBuilder(numeric_cache, coverage, study_map, mutation_cache)
        >>> snapshot = builder.build(tp53, highlighted_row, profile)
        >>> if snapshot.is_complete:
        ...     points = snapshot.result
    """

    def __init__(
        self,
        numeric_cache: MemoizedFetchCache[Mapping, List[NumericGeneMolecularData]],
        coverage_information: RemoteResult[CoverageInformation],
        study_to_mutation_profile: RemoteResult[Dict[str, MolecularProfile]],
        mutation_cache: Optional[MemoizedFetchCache[Mapping, List[Mutation]]] = None,
    ):
        self.numeric_cache = numeric_cache
        self.coverage_information = coverage_information
        self.study_to_mutation_profile = study_to_mutation_profile
        self.mutation_cache = mutation_cache

    @property
    def mutations_enabled(self) -> bool:
        return self.mutation_cache is not None

    def get_plot_data_promises(
        self,
        reference_gene: Gene,
        comparison_gene: ComparisonGene,
        molecular_profile: MolecularProfile,
    ) -> PlotDataPromises:
        """Request (or reuse) every per-gene fetch for the pair."""
        profile_id = molecular_profile.molecular_profile_id
        promises = PlotDataPromises(
            molecular_x=self.numeric_cache.get({
                "entrez_gene_id": reference_gene.entrez_gene_id,
                "molecular_profile_id": profile_id,
            }),
            molecular_y=self.numeric_cache.get({
                "entrez_gene_id": comparison_gene.entrez_gene_id,
                "molecular_profile_id": profile_id,
            }),
        )
        if self.mutation_cache is not None:
            # Mutation profiles are resolved per study, so only the gene keys the fetch
            promises.mutation_x = self.mutation_cache.get(
                {"entrez_gene_id": reference_gene.entrez_gene_id}
            )
            promises.mutation_y = self.mutation_cache.get(
                {"entrez_gene_id": comparison_gene.entrez_gene_id}
            )
        return promises

    def _awaited(
        self,
        reference_gene: Gene,
        comparison_gene: Optional[ComparisonGene],
        molecular_profile: MolecularProfile,
        hidden: bool,
    ) -> List[RemoteResult]:
        if hidden or comparison_gene is None:
            return []
        promises = self.get_plot_data_promises(reference_gene, comparison_gene, molecular_profile)
        return [self.coverage_information, self.study_to_mutation_profile] + promises.all()

    def _join(
        self,
        reference_gene: Gene,
        comparison_gene: Optional[ComparisonGene],
        molecular_profile: MolecularProfile,
        hidden: bool,
    ) -> List[PlotDatum]:
        if hidden or comparison_gene is None:
            return []
        promises = self.get_plot_data_promises(reference_gene, comparison_gene, molecular_profile)
        molecular_data = promises.molecular_x.result + promises.molecular_y.result
        mutations = None
        if self.mutations_enabled:
            mutations = promises.mutation_x.result + promises.mutation_y.result
        return compute_plot_data(
            molecular_data,
            mutations,
            reference_gene.entrez_gene_id,
            comparison_gene.entrez_gene_id,
            self.coverage_information.result,
            self.study_to_mutation_profile.result,
        )

    def build(
        self,
        reference_gene: Gene,
        comparison_gene: Optional[ComparisonGene],
        molecular_profile: MolecularProfile,
        hidden: bool = False,
    ) -> RemoteSnapshot[List[PlotDatum]]:
        """
        Current plot data for the pair.

        COMPLETE with an empty list when no comparison gene is given or the
        view is hidden (nothing is fetched). PENDING, with no result, until
        every required input has completed. ERROR as soon as any input fails.
        """
        inputs = (reference_gene, comparison_gene, molecular_profile, hidden)
        return self.plot_data(lambda: inputs).get()

    def plot_data(
        self,
        get_inputs: Callable[[], PlotInputs],
    ) -> Computed[RemoteSnapshot[List[PlotDatum]]]:
        """Derived plot data following *get_inputs* (reference, comparison, profile, hidden)."""
        return remote_data(
            lambda: self._awaited(*get_inputs()),
            lambda: self._join(*get_inputs()),
            name="plot_data",
        )
