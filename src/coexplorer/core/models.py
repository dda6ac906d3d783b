"""
Data model for co-expression ranking and plot preparation.

All records are immutable once fetched. Ranked rows carry their q-value as a
separate type so raw upstream rows are never mutated in place.

Sample identity:
    Samples are identified by the pair (study_id, sample_id). Sample ids are
    only unique within a study, so every join in this package keys on the pair.

Examples:
    >>> row = CoExpressionRow(7157, "TP53", spearmans_correlation=0.42, p_value=1e-5)
    >>> ranked = CoExpressionWithQ.from_row(row, q_value=3e-4)
    >>> ranked.entrez_gene_id
    7157
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

__all__ = [
    'Gene',
    'MolecularProfile',
    'CoExpressionRow',
    'CoExpressionWithQ',
    'DataScope',
    'CoExpressionKey',
    'NumericGeneMolecularData',
    'Mutation',
    'GenePanelData',
    'SampleCoverage',
    'CoverageInformation',
    'MutationStatus',
    'PlotDatum',
    'SampleKey',
]

SampleKey = Tuple[str, str]


@dataclass(frozen=True)
class Gene:
    """A gene identified by Entrez id and HUGO symbol."""
    entrez_gene_id: int
    hugo_gene_symbol: str


@dataclass(frozen=True)
class MolecularProfile:
    """An assay dataset within a study (e.g. RNA-seq z-scores)."""
    molecular_profile_id: str
    study_id: str = ""
    molecular_alteration_type: str = ""
    datatype: str = ""
    name: str = ""

    @classmethod
    def from_api(cls, record: Mapping[str, Any]) -> "MolecularProfile":
        return cls(
            molecular_profile_id=record["molecularProfileId"],
            study_id=record.get("studyId", ""),
            molecular_alteration_type=record.get("molecularAlterationType", ""),
            datatype=record.get("datatype", ""),
            name=record.get("name", ""),
        )


@dataclass(frozen=True)
class CoExpressionRow:
    """Correlation of one comparison gene against the reference gene."""
    entrez_gene_id: int
    hugo_gene_symbol: str
    spearmans_correlation: float
    p_value: float

    @classmethod
    def from_api(cls, record: Mapping[str, Any]) -> "CoExpressionRow":
        # Newer API versions report the gene as a generic genetic entity
        entrez_gene_id = record.get("entrezGeneId", record.get("geneticEntityId"))
        return cls(
            entrez_gene_id=int(entrez_gene_id),
            hugo_gene_symbol=record.get("hugoGeneSymbol", ""),
            spearmans_correlation=float(record["spearmansCorrelation"]),
            p_value=float(record["pValue"]),
        )


@dataclass(frozen=True)
class CoExpressionWithQ(CoExpressionRow):
    """A co-expression row after Benjamini-Hochberg correction."""
    q_value: float = 1.0

    @classmethod
    def from_row(cls, row: CoExpressionRow, q_value: float) -> "CoExpressionWithQ":
        return cls(
            entrez_gene_id=row.entrez_gene_id,
            hugo_gene_symbol=row.hugo_gene_symbol,
            spearmans_correlation=row.spearmans_correlation,
            p_value=row.p_value,
            q_value=q_value,
        )


class DataScope(Enum):
    """Which comparison genes the upstream co-expression query covers."""
    RESTRICTED = "restricted"
    ALL = "all"


@dataclass(frozen=True)
class CoExpressionKey:
    """Cache key for one co-expression query.

    The scope is part of the key: a restricted result set is never reused
    for an all-genes request even when gene and profile match.
    """
    entrez_gene_id: int
    molecular_profile_id: str
    scope: DataScope = DataScope.ALL


@dataclass(frozen=True)
class NumericGeneMolecularData:
    """One numeric measurement of a gene in a sample."""
    study_id: str
    sample_id: str
    entrez_gene_id: int
    value: float
    patient_id: str = ""
    molecular_profile_id: str = ""

    @property
    def sample_key(self) -> SampleKey:
        return (self.study_id, self.sample_id)

    @classmethod
    def from_api(cls, record: Mapping[str, Any]) -> "NumericGeneMolecularData":
        return cls(
            study_id=record["studyId"],
            sample_id=record["sampleId"],
            entrez_gene_id=int(record["entrezGeneId"]),
            value=float(record["value"]),
            patient_id=record.get("patientId", ""),
            molecular_profile_id=record.get("molecularProfileId", ""),
        )


@dataclass(frozen=True)
class Mutation:
    """A mutation call for a gene in a sample."""
    study_id: str
    sample_id: str
    entrez_gene_id: int
    protein_change: str = ""
    mutation_type: str = ""
    molecular_profile_id: str = ""

    @property
    def sample_key(self) -> SampleKey:
        return (self.study_id, self.sample_id)

    @classmethod
    def from_api(cls, record: Mapping[str, Any]) -> "Mutation":
        return cls(
            study_id=record["studyId"],
            sample_id=record["sampleId"],
            entrez_gene_id=int(record["entrezGeneId"]),
            protein_change=record.get("proteinChange") or "",
            mutation_type=record.get("mutationType") or "",
            molecular_profile_id=record.get("molecularProfileId", ""),
        )


@dataclass(frozen=True)
class GenePanelData:
    """Profiling record of a sample in one molecular profile.

    ``gene_panel_id`` is None for whole-exome/genome profiling, in which
    case every gene counts as covered.
    """
    molecular_profile_id: str
    gene_panel_id: Optional[str] = None
    profiled: bool = True


@dataclass
class SampleCoverage:
    """Which profiles covered a sample, per gene and for all genes."""
    by_gene: Dict[int, List[GenePanelData]] = field(default_factory=dict)
    all_genes: List[GenePanelData] = field(default_factory=list)


@dataclass
class CoverageInformation:
    """
    Per-sample profiling coverage.

    Used to tell "not mutated" apart from "not sequenced": a sample without
    a mutation call in a gene is only considered wild type when the study's
    mutation profile actually covered that gene in that sample.
    """
    samples: Dict[SampleKey, SampleCoverage] = field(default_factory=dict)

    def is_profiled(
        self,
        sample_key: SampleKey,
        molecular_profile_id: str,
        entrez_gene_id: int,
    ) -> bool:
        coverage = self.samples.get(sample_key)
        if coverage is None:
            return False
        candidates = coverage.all_genes + coverage.by_gene.get(entrez_gene_id, [])
        return any(
            d.profiled and d.molecular_profile_id == molecular_profile_id
            for d in candidates
        )


class MutationStatus(Enum):
    MUTATED = "mutated"
    NOT_MUTATED = "not_mutated"
    NOT_PROFILED = "not_profiled"


@dataclass(frozen=True)
class PlotDatum:
    """One scatter point: reference gene (x) against comparison gene (y).

    Mutation fields are None when the mutation overlay is disabled.
    """
    study_id: str
    sample_id: str
    x_value: float
    y_value: float
    patient_id: str = ""
    x_mutation_status: Optional[MutationStatus] = None
    y_mutation_status: Optional[MutationStatus] = None
    x_mutations: str = ""
    y_mutations: str = ""

    @property
    def sample_key(self) -> SampleKey:
        return (self.study_id, self.sample_id)
