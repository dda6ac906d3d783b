"""
Pytest configuration and shared fixtures.

Fetches in the package run on a concurrent.futures Executor. Tests swap in
deterministic executors so PENDING states can be observed and completion is
delivered exactly when the test decides.
"""

from concurrent.futures import Executor, Future

import pytest

from coexplorer.cache.remote import MemoizedFetchCache, RemoteResult
from coexplorer.core.models import (
    CoExpressionRow,
    CoverageInformation,
    Gene,
    GenePanelData,
    MolecularProfile,
    Mutation,
    NumericGeneMolecularData,
    SampleCoverage,
)


class ImmediateExecutor(Executor):
    """Runs work synchronously inside submit()."""

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


class ManualExecutor(Executor):
    """Queues work until run_pending() is called."""

    def __init__(self):
        self.queue = []

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        self.queue.append((future, fn, args, kwargs))
        return future

    def run_pending(self):
        while self.queue:
            future, fn, args, kwargs = self.queue.pop(0)
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as exc:
                future.set_exception(exc)


class RecordingFetcher:
    """Fetch function that serves canned data and records every call."""

    def __init__(self, data, fail_for=()):
        self.data = data
        self.fail_for = set(fail_for)
        self.calls = []

    def __call__(self, key):
        self.calls.append(key)
        lookup = self._lookup_key(key)
        if lookup in self.fail_for:
            raise ConnectionError(f"upstream failure for {lookup}")
        return self.data.get(lookup, [])

    @staticmethod
    def _lookup_key(key):
        if isinstance(key, dict):
            return key["entrez_gene_id"]
        return key


# =============================================================================
# Domain fixtures
# =============================================================================

STUDY = "brca_tcga"
MUTATION_PROFILE = MolecularProfile(
    "brca_tcga_mutations", study_id=STUDY, molecular_alteration_type="MUTATION_EXTENDED"
)


@pytest.fixture
def manual_executor():
    return ManualExecutor()


@pytest.fixture
def immediate_executor():
    return ImmediateExecutor()


@pytest.fixture
def tp53():
    return Gene(7157, "TP53")


@pytest.fixture
def expression_profile():
    return MolecularProfile(
        "brca_tcga_rna_seq_v2_mrna", study_id=STUDY, molecular_alteration_type="MRNA_EXPRESSION"
    )


@pytest.fixture
def raw_coexpressions():
    """Upstream rows in fetch order (not sorted by p-value)."""
    return [
        CoExpressionRow(1956, "EGFR", -0.45, 0.03),
        CoExpressionRow(4609, "MYC", 0.30, 0.01),
        CoExpressionRow(672, "BRCA1", 0.0, 0.50),
        CoExpressionRow(5728, "PTEN", -0.20, 0.02),
    ]


def expression(entrez_gene_id, values):
    """Numeric data for one gene from {sample_id: value}."""
    return [
        NumericGeneMolecularData(STUDY, sample_id, entrez_gene_id, value, patient_id=f"P-{sample_id}")
        for sample_id, value in values.items()
    ]


@pytest.fixture
def numeric_data():
    return {
        7157: expression(7157, {"S1": 1.0, "S2": 2.0, "S3": 3.0}),
        4609: expression(4609, {"S2": 5.0, "S3": 6.0, "S4": 7.0}),
        1956: expression(1956, {"S1": 0.5}),
    }


@pytest.fixture
def mutation_data():
    return {
        7157: [Mutation(STUDY, "S2", 7157, protein_change="R175H")],
        4609: [],
    }


@pytest.fixture
def coverage_information():
    """S2 whole-exome; S3 on a panel that covers TP53 but not MYC."""
    panel = GenePanelData(MUTATION_PROFILE.molecular_profile_id, gene_panel_id="IMPACT341")
    return CoverageInformation(samples={
        (STUDY, "S2"): SampleCoverage(all_genes=[GenePanelData(MUTATION_PROFILE.molecular_profile_id)]),
        (STUDY, "S3"): SampleCoverage(by_gene={7157: [panel]}),
    })


@pytest.fixture
def study_to_mutation_profile():
    return {STUDY: MUTATION_PROFILE}


def make_cache(fetcher, executor, name="test"):
    return MemoizedFetchCache(fetcher, executor=executor, name=name)


def resolved(value, key=None):
    return RemoteResult.resolved(value, key=key)
