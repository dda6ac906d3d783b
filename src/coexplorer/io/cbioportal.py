"""
cBioPortal REST sources for the co-expression view.

Implements the upstream fetchers the view consumes (co-expressions, numeric
molecular data, mutations, profiling coverage, study -> mutation profile map)
and binds them into memoizing caches.

API docs: https://www.cbioportal.org/api/swagger-ui/index.html

Examples:
    >>> client = CBioPortalClient()
    >>> cohort = Cohort(sample_lists={"brca_tcga": "brca_tcga_all"})
    >>> profile = MolecularProfile("brca_tcga_rna_seq_v2_mrna", study_id="brca_tcga")
    >>> caches = build_caches(client, cohort, profile)
    >>> handle = caches.coexpression.get(CoExpressionKey(7157, profile.molecular_profile_id))
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

import requests

from coexplorer.cache.remote import MemoizedFetchCache, RemoteResult
from coexplorer.config import ApiConfig, CoExpressionConfig
from coexplorer.core.models import (
    CoExpressionKey,
    CoExpressionRow,
    CoverageInformation,
    DataScope,
    GenePanelData,
    MolecularProfile,
    Mutation,
    NumericGeneMolecularData,
    SampleCoverage,
)

logger = logging.getLogger(__name__)

__all__ = [
    'MUTATION_ALTERATION_TYPE',
    'CBioPortalClient',
    'Cohort',
    'CoExpressionCaches',
    'build_caches',
]

MUTATION_ALTERATION_TYPE = "MUTATION_EXTENDED"


@dataclass
class Cohort:
    """Studies in the query, each with the sample list to analyze."""
    sample_lists: Dict[str, str] = field(default_factory=dict)

    @property
    def study_ids(self) -> List[str]:
        return list(self.sample_lists)


class CBioPortalClient:
    """
    Thin blocking client over the cBioPortal public API.

    HTTP failures raise ``requests.HTTPError``; inside a MemoizedFetchCache
    they surface as an ERROR result on the corresponding handle.
    """

    def __init__(
        self,
        config: Optional[ApiConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or ApiConfig()
        self.session = session or requests.Session()

    def _get(self, endpoint: str, params: Optional[dict] = None) -> Any:
        url = f"{self.config.base_url}{endpoint}"
        r = self.session.get(url, params=params or {}, timeout=self.config.timeout)
        r.raise_for_status()
        return r.json() if r.text else []

    def _post(self, endpoint: str, json_data: Any, params: Optional[dict] = None) -> Any:
        url = f"{self.config.base_url}{endpoint}"
        r = self.session.post(url, json=json_data, params=params or {}, timeout=self.config.timeout)
        r.raise_for_status()
        return r.json() if r.text else []

    def fetch_gene_symbols(self, entrez_gene_ids: Iterable[int]) -> Dict[int, str]:
        ids = sorted(set(entrez_gene_ids))
        if not ids:
            return {}
        genes = self._post(
            "/genes/fetch", [str(i) for i in ids], params={"geneIdType": "ENTREZ_GENE_ID"}
        )
        return {int(g["entrezGeneId"]): g["hugoGeneSymbol"] for g in genes}

    def fetch_coexpressions(
        self,
        entrez_gene_id: int,
        molecular_profile_id: str,
        sample_list_id: str,
        threshold: float,
    ) -> List[CoExpressionRow]:
        """Correlations of every gene in the profile with the reference gene."""
        records = self._post(
            "/molecular-profiles/co-expressions/fetch",
            {"entrezGeneId": entrez_gene_id, "sampleListId": sample_list_id},
            params={
                "molecularProfileIdA": molecular_profile_id,
                "molecularProfileIdB": molecular_profile_id,
                "threshold": threshold,
            },
        )
        missing = [
            int(r.get("entrezGeneId", r.get("geneticEntityId")))
            for r in records if not r.get("hugoGeneSymbol")
        ]
        symbols = self.fetch_gene_symbols(missing)
        rows = []
        for record in records:
            row = CoExpressionRow.from_api(record)
            if not row.hugo_gene_symbol:
                row = CoExpressionRow(
                    row.entrez_gene_id,
                    symbols.get(row.entrez_gene_id, str(row.entrez_gene_id)),
                    row.spearmans_correlation,
                    row.p_value,
                )
            rows.append(row)
        logger.info(
            f"Fetched {len(rows)} co-expressions for {entrez_gene_id} in "
            f"{molecular_profile_id} (threshold {threshold})"
        )
        return rows

    def fetch_numeric_data(
        self,
        entrez_gene_id: int,
        molecular_profile_id: str,
        sample_list_id: str,
    ) -> List[NumericGeneMolecularData]:
        records = self._post(
            f"/molecular-profiles/{molecular_profile_id}/molecular-data/fetch",
            {"entrezGeneIds": [entrez_gene_id], "sampleListId": sample_list_id},
            params={"projection": "SUMMARY"},
        )
        # Non-numeric values (e.g. "NA") carry no measurement
        data = []
        for record in records:
            try:
                data.append(NumericGeneMolecularData.from_api(record))
            except (TypeError, ValueError):
                continue
        return data

    def fetch_mutations(
        self,
        entrez_gene_id: int,
        mutation_profiles: Mapping[str, MolecularProfile],
        cohort: Cohort,
    ) -> List[Mutation]:
        """Mutation calls of one gene across every study with a mutation profile."""
        mutations: List[Mutation] = []
        for study_id, profile in mutation_profiles.items():
            sample_list_id = cohort.sample_lists.get(study_id)
            if sample_list_id is None:
                continue
            records = self._post(
                f"/molecular-profiles/{profile.molecular_profile_id}/mutations/fetch",
                {"entrezGeneIds": [entrez_gene_id], "sampleListId": sample_list_id},
                params={"projection": "SUMMARY"},
            )
            mutations.extend(Mutation.from_api(r) for r in records)
        return mutations

    def fetch_study_to_mutation_profile(self, study_ids: Iterable[str]) -> Dict[str, MolecularProfile]:
        ret: Dict[str, MolecularProfile] = {}
        for study_id in study_ids:
            for record in self._get(f"/studies/{study_id}/molecular-profiles"):
                if record.get("molecularAlterationType") == MUTATION_ALTERATION_TYPE:
                    ret[study_id] = MolecularProfile.from_api(record)
                    break
        return ret

    def fetch_gene_panel_genes(self, gene_panel_id: str) -> List[int]:
        panel = self._get(f"/gene-panels/{gene_panel_id}")
        return [int(g["entrezGeneId"]) for g in panel.get("genes", [])]

    def fetch_coverage_information(
        self,
        mutation_profiles: Mapping[str, MolecularProfile],
        cohort: Cohort,
    ) -> CoverageInformation:
        """
        Profiling coverage of every sample in each study's mutation profile.

        Samples profiled without a gene panel count as covered for all genes;
        panel samples are covered for the panel's genes only.
        """
        coverage = CoverageInformation()
        panel_genes: Dict[str, List[int]] = {}
        for study_id, profile in mutation_profiles.items():
            sample_list_id = cohort.sample_lists.get(study_id)
            if sample_list_id is None:
                continue
            records = self._post(
                f"/molecular-profiles/{profile.molecular_profile_id}/gene-panel-data/fetch",
                {"sampleListId": sample_list_id},
            )
            for record in records:
                key = (record["studyId"], record["sampleId"])
                sample = coverage.samples.setdefault(key, SampleCoverage())
                panel_id = record.get("genePanelId")
                datum = GenePanelData(
                    molecular_profile_id=record["molecularProfileId"],
                    gene_panel_id=panel_id,
                    profiled=bool(record.get("profiled", True)),
                )
                if not panel_id:
                    sample.all_genes.append(datum)
                    continue
                if panel_id not in panel_genes:
                    panel_genes[panel_id] = self.fetch_gene_panel_genes(panel_id)
                for entrez_gene_id in panel_genes[panel_id]:
                    sample.by_gene.setdefault(entrez_gene_id, []).append(datum)
        logger.info(f"Fetched coverage for {len(coverage.samples)} samples")
        return coverage


@dataclass
class CoExpressionCaches:
    """
    Every source the view consumes, bound to one cohort and profile.

    When ``build_caches`` created the worker pool itself, the bundle owns it:
    ``close()`` (or leaving a ``with`` block) shuts it down. A pool passed in
    by the caller is left to the caller.
    """
    coexpression: MemoizedFetchCache
    numeric: MemoizedFetchCache
    study_to_mutation_profile: RemoteResult
    coverage_information: RemoteResult
    mutation: Optional[MemoizedFetchCache] = None
    executor: Optional[Executor] = field(default=None, repr=False)

    @classmethod
    def from_config(
        cls,
        config: CoExpressionConfig,
        cohort: Cohort,
        molecular_profile: MolecularProfile,
        session: Optional[requests.Session] = None,
        with_mutations: bool = True,
    ) -> "CoExpressionCaches":
        """Client and caches built from the ``api`` section and ``max_workers``."""
        client = CBioPortalClient(config.api, session=session)
        return build_caches(
            client, cohort, molecular_profile,
            with_mutations=with_mutations,
            max_workers=config.max_workers,
        )

    def close(self, wait: bool = True) -> None:
        if self.executor is not None:
            self.executor.shutdown(wait=wait)
            self.executor = None

    def __enter__(self) -> "CoExpressionCaches":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def build_caches(
    client: CBioPortalClient,
    cohort: Cohort,
    molecular_profile: MolecularProfile,
    executor: Optional[Executor] = None,
    with_mutations: bool = True,
    max_workers: int = 8,
) -> CoExpressionCaches:
    """
    Bind the client's fetchers into memoizing caches.

    The study map is fetched once and shared: coverage and mutation fetches
    wait on it from their worker.
    """
    owned_executor = None
    if executor is None:
        executor = owned_executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="cbioportal"
        )
    sample_list_id = cohort.sample_lists[molecular_profile.study_id]
    threshold = client.config.restricted_threshold

    study_map_future = executor.submit(client.fetch_study_to_mutation_profile, cohort.study_ids)
    study_to_mutation_profile = RemoteResult(study_map_future, key="study_to_mutation_profile")
    coverage_information = RemoteResult(
        executor.submit(
            lambda: client.fetch_coverage_information(study_map_future.result(), cohort)
        ),
        key="coverage_information",
    )

    def fetch_coexpressions(key: CoExpressionKey) -> List[CoExpressionRow]:
        return client.fetch_coexpressions(
            key.entrez_gene_id,
            key.molecular_profile_id,
            sample_list_id,
            threshold=0.0 if key.scope is DataScope.ALL else threshold,
        )

    def fetch_numeric(key: Mapping[str, Any]) -> List[NumericGeneMolecularData]:
        return client.fetch_numeric_data(
            key["entrez_gene_id"], key["molecular_profile_id"], sample_list_id
        )

    def fetch_mutations(key: Mapping[str, Any]) -> List[Mutation]:
        return client.fetch_mutations(key["entrez_gene_id"], study_map_future.result(), cohort)

    return CoExpressionCaches(
        coexpression=MemoizedFetchCache(fetch_coexpressions, executor=executor, name="coexpression"),
        numeric=MemoizedFetchCache(fetch_numeric, executor=executor, name="numeric_data"),
        study_to_mutation_profile=study_to_mutation_profile,
        coverage_information=coverage_information,
        mutation=(
            MemoizedFetchCache(fetch_mutations, executor=executor, name="mutations")
            if with_mutations else None
        ),
        executor=owned_executor,
    )
