"""Tests for the cBioPortal client, using a mocked requests session."""

from unittest.mock import MagicMock

import pytest
import requests

from conftest import ImmediateExecutor
from coexplorer.config import ApiConfig, config_from_dict
from coexplorer.core.models import CoExpressionKey, DataScope, MolecularProfile, MutationStatus
from coexplorer.io.cbioportal import CBioPortalClient, CoExpressionCaches, Cohort, build_caches
from coexplorer.viz.plot_data import compute_plot_data

BASE = "https://portal.test/api"
STUDY = "brca_tcga"
PROFILE = MolecularProfile("brca_tcga_rna_seq_v2_mrna", study_id=STUDY)


def _response(payload, status=200):
    response = MagicMock()
    response.json.return_value = payload
    response.text = "" if payload is None else "payload"
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
    return response


def _routed_session(routes):
    """Session whose get/post answer by URL path (suffix after BASE)."""
    session = MagicMock()

    def answer(url, **kwargs):
        path = url[len(BASE):]
        if path not in routes:
            raise AssertionError(f"Unexpected request to {path}")
        return _response(routes[path])

    session.get.side_effect = answer
    session.post.side_effect = answer
    return session


@pytest.fixture
def routes():
    return {
        "/molecular-profiles/co-expressions/fetch": [
            {"entrezGeneId": 4609, "hugoGeneSymbol": "MYC", "spearmansCorrelation": 0.3, "pValue": 0.01},
            {"geneticEntityId": "1956", "spearmansCorrelation": -0.45, "pValue": 0.03},
        ],
        "/genes/fetch": [{"entrezGeneId": 1956, "hugoGeneSymbol": "EGFR"}],
        f"/molecular-profiles/{PROFILE.molecular_profile_id}/molecular-data/fetch": [
            {"studyId": STUDY, "sampleId": "S1", "patientId": "P1", "entrezGeneId": 7157, "value": 1.5},
            {"studyId": STUDY, "sampleId": "S2", "patientId": "P2", "entrezGeneId": 7157, "value": "NA"},
        ],
        f"/studies/{STUDY}/molecular-profiles": [
            {"molecularProfileId": "brca_tcga_rna_seq_v2_mrna", "studyId": STUDY,
             "molecularAlterationType": "MRNA_EXPRESSION"},
            {"molecularProfileId": "brca_tcga_mutations", "studyId": STUDY,
             "molecularAlterationType": "MUTATION_EXTENDED"},
        ],
        "/molecular-profiles/brca_tcga_mutations/mutations/fetch": [
            {"studyId": STUDY, "sampleId": "S1", "entrezGeneId": 7157, "proteinChange": "R175H",
             "molecularProfileId": "brca_tcga_mutations"},
        ],
        "/molecular-profiles/brca_tcga_mutations/gene-panel-data/fetch": [
            {"studyId": STUDY, "sampleId": "S1", "molecularProfileId": "brca_tcga_mutations",
             "profiled": True},
            {"studyId": STUDY, "sampleId": "S2", "molecularProfileId": "brca_tcga_mutations",
             "genePanelId": "IMPACT341", "profiled": True},
        ],
        "/gene-panels/IMPACT341": {"genePanelId": "IMPACT341", "genes": [{"entrezGeneId": 7157}]},
    }


@pytest.fixture
def session(routes):
    return _routed_session(routes)


@pytest.fixture
def client(session):
    return CBioPortalClient(ApiConfig(base_url=BASE, timeout=5.0), session=session)


@pytest.fixture
def cohort():
    return Cohort(sample_lists={STUDY: "brca_tcga_all"})


class TestCBioPortalClient:
    """Tests for the individual fetchers."""

    def test_coexpressions_resolve_missing_symbols(self, client, session):
        rows = client.fetch_coexpressions(7157, PROFILE.molecular_profile_id, "brca_tcga_all", 0.3)

        assert [(r.entrez_gene_id, r.hugo_gene_symbol) for r in rows] == [(4609, "MYC"), (1956, "EGFR")]
        _, kwargs = session.post.call_args_list[0]
        assert kwargs["json"] == {"entrezGeneId": 7157, "sampleListId": "brca_tcga_all"}
        assert kwargs["params"]["threshold"] == 0.3
        assert kwargs["params"]["molecularProfileIdA"] == PROFILE.molecular_profile_id
        assert kwargs["timeout"] == 5.0

    def test_numeric_data_skips_non_numeric(self, client):
        data = client.fetch_numeric_data(7157, PROFILE.molecular_profile_id, "brca_tcga_all")
        assert [(d.sample_id, d.value, d.patient_id) for d in data] == [("S1", 1.5, "P1")]

    def test_study_to_mutation_profile(self, client):
        mapping = client.fetch_study_to_mutation_profile([STUDY])
        assert mapping[STUDY].molecular_profile_id == "brca_tcga_mutations"

    def test_mutations_skip_studies_outside_cohort(self, client, cohort, session):
        profiles = {
            STUDY: MolecularProfile("brca_tcga_mutations", study_id=STUDY),
            "other": MolecularProfile("other_mutations", study_id="other"),
        }
        mutations = client.fetch_mutations(7157, profiles, cohort)

        assert [m.protein_change for m in mutations] == ["R175H"]
        assert session.post.call_count == 1

    def test_coverage_information(self, client, cohort, session):
        profiles = {STUDY: MolecularProfile("brca_tcga_mutations", study_id=STUDY)}
        coverage = client.fetch_coverage_information(profiles, cohort)

        assert coverage.is_profiled((STUDY, "S1"), "brca_tcga_mutations", 4609)
        assert coverage.is_profiled((STUDY, "S2"), "brca_tcga_mutations", 7157)
        assert not coverage.is_profiled((STUDY, "S2"), "brca_tcga_mutations", 4609)
        assert not coverage.is_profiled((STUDY, "S3"), "brca_tcga_mutations", 7157)

    def test_http_error_raises(self, cohort):
        session = MagicMock()
        session.get.return_value = _response([], status=503)
        client = CBioPortalClient(ApiConfig(base_url=BASE), session=session)

        with pytest.raises(requests.HTTPError):
            client.fetch_study_to_mutation_profile([STUDY])

    def test_empty_body(self, cohort):
        session = MagicMock()
        session.get.return_value = _response(None)
        client = CBioPortalClient(ApiConfig(base_url=BASE), session=session)
        assert client.fetch_study_to_mutation_profile([STUDY]) == {}


class TestBuildCaches:
    """Tests for binding the client into caches."""

    def test_scope_selects_threshold(self, client, cohort, session):
        caches = build_caches(client, cohort, PROFILE, executor=ImmediateExecutor())

        caches.coexpression.get(CoExpressionKey(7157, PROFILE.molecular_profile_id, DataScope.ALL))
        caches.coexpression.get(CoExpressionKey(7157, PROFILE.molecular_profile_id, DataScope.RESTRICTED))

        thresholds = [
            kwargs["params"]["threshold"]
            for args, kwargs in session.post.call_args_list
            if args[0].endswith("/co-expressions/fetch")
        ]
        assert thresholds == [0.0, 0.3]

    def test_end_to_end_mutation_status(self, client, cohort):
        caches = build_caches(client, cohort, PROFILE, executor=ImmediateExecutor())

        numeric = caches.numeric.get(
            {"entrez_gene_id": 7157, "molecular_profile_id": PROFILE.molecular_profile_id}
        )
        mutations = caches.mutation.get({"entrez_gene_id": 7157})

        assert caches.study_to_mutation_profile.is_complete
        assert caches.coverage_information.is_complete
        points = compute_plot_data(
            numeric.result,
            mutations.result,
            7157,
            7157,
            caches.coverage_information.result,
            caches.study_to_mutation_profile.result,
        )
        assert [(p.sample_id, p.x_mutation_status) for p in points] == [("S1", MutationStatus.MUTATED)]

    def test_without_mutations(self, client, cohort):
        caches = build_caches(client, cohort, PROFILE, executor=ImmediateExecutor(), with_mutations=False)
        assert caches.mutation is None

    def test_passed_executor_not_owned(self, client, cohort):
        caches = build_caches(client, cohort, PROFILE, executor=ImmediateExecutor())
        assert caches.executor is None
        caches.close()
        assert caches.numeric.get(
            {"entrez_gene_id": 7157, "molecular_profile_id": PROFILE.molecular_profile_id}
        ).is_complete

    def test_from_config_owns_and_closes_pool(self, session, cohort):
        config = config_from_dict({'api': {'base_url': BASE, 'timeout': 7}, 'max_workers': 2})

        with CoExpressionCaches.from_config(config, cohort, PROFILE, session=session) as caches:
            assert caches.executor._max_workers == 2
            numeric = caches.numeric.get(
                {"entrez_gene_id": 7157, "molecular_profile_id": PROFILE.molecular_profile_id}
            )

        assert caches.executor is None
        assert numeric.is_complete
        assert caches.study_to_mutation_profile.result[STUDY].molecular_profile_id == "brca_tcga_mutations"
        assert all(kwargs["timeout"] == 7 for _, kwargs in session.get.call_args_list)
        with pytest.raises(RuntimeError):
            caches.numeric.get({"entrez_gene_id": 4609, "molecular_profile_id": "other"})
