"""Tests for p-value ranking and the fetch-then-rank pipeline."""

import pytest

from conftest import RecordingFetcher, make_cache
from coexplorer.cache.remote import RemoteStatus
from coexplorer.core.models import CoExpressionKey, CoExpressionRow, CoExpressionWithQ, DataScope
from coexplorer.core.reactive import Observable
from coexplorer.stats.ranking import (
    CoExpressionRanking,
    coexpressions_to_dataframe,
    rank_coexpressions,
)


class TestRankCoexpressions:
    """Tests for rank_coexpressions()."""

    def test_sorted_by_p_value(self, raw_coexpressions):
        ranked = rank_coexpressions(raw_coexpressions)
        assert [r.hugo_gene_symbol for r in ranked] == ["MYC", "PTEN", "EGFR", "BRCA1"]
        assert all(isinstance(r, CoExpressionWithQ) for r in ranked)

    def test_q_values_follow_sorted_rank(self, raw_coexpressions):
        ranked = rank_coexpressions(raw_coexpressions)
        assert [r.q_value for r in ranked] == pytest.approx([0.04, 0.04, 0.04, 0.50])

    def test_stable_for_equal_p_values(self):
        rows = [
            CoExpressionRow(1, "A", 0.1, 0.2),
            CoExpressionRow(2, "B", 0.1, 0.01),
            CoExpressionRow(3, "C", 0.1, 0.01),
        ]
        ranked = rank_coexpressions(rows)
        assert [r.hugo_gene_symbol for r in ranked] == ["B", "C", "A"]
        # Same p-value, different rank -> different q
        assert ranked[0].q_value == pytest.approx(0.03)
        assert ranked[1].q_value == pytest.approx(0.015)

        reordered = rank_coexpressions([rows[0], rows[2], rows[1]])
        assert [r.hugo_gene_symbol for r in reordered] == ["C", "B", "A"]

    def test_idempotent(self, raw_coexpressions):
        assert rank_coexpressions(raw_coexpressions) == rank_coexpressions(raw_coexpressions)

    def test_input_untouched(self, raw_coexpressions):
        before = list(raw_coexpressions)
        rank_coexpressions(raw_coexpressions)
        assert raw_coexpressions == before

    def test_empty(self):
        assert rank_coexpressions([]) == []

    def test_dataframe(self, raw_coexpressions):
        df = coexpressions_to_dataframe(rank_coexpressions(raw_coexpressions))
        assert list(df.columns) == [
            'entrez_gene_id', 'hugo_gene_symbol', 'spearmans_correlation', 'p_value', 'q_value'
        ]
        assert df['hugo_gene_symbol'].iloc[0] == "MYC"


class TestCoExpressionRanking:
    """Tests for CoExpressionRanking over a memoizing cache."""

    @pytest.fixture
    def fetcher(self, raw_coexpressions):
        restricted = [r for r in raw_coexpressions if abs(r.spearmans_correlation) > 0.3]
        return RecordingFetcher({
            CoExpressionKey(7157, "prof", DataScope.ALL): raw_coexpressions,
            CoExpressionKey(7157, "prof", DataScope.RESTRICTED): restricted,
            CoExpressionKey(4609, "prof", DataScope.ALL): raw_coexpressions[:1],
        })

    def test_pending_then_complete(self, fetcher, manual_executor):
        ranking = CoExpressionRanking(make_cache(fetcher, manual_executor))
        snapshot = ranking.ranked(lambda: CoExpressionKey(7157, "prof"))

        assert snapshot.get().status is RemoteStatus.PENDING
        manual_executor.run_pending()

        result = snapshot.get()
        assert result.is_complete
        assert [r.hugo_gene_symbol for r in result.result] == ["MYC", "PTEN", "EGFR", "BRCA1"]

    def test_same_key_returns_same_list(self, fetcher, immediate_executor):
        ranking = CoExpressionRanking(make_cache(fetcher, immediate_executor))
        first = ranking.ranked(lambda: CoExpressionKey(7157, "prof")).get().result
        second = ranking.ranked(lambda: CoExpressionKey(7157, "prof")).get().result
        assert first is second
        assert len(fetcher.calls) == 1

    def test_scope_change_refetches(self, fetcher, immediate_executor):
        scope = Observable(DataScope.RESTRICTED)
        ranking = CoExpressionRanking(make_cache(fetcher, immediate_executor))
        snapshot = ranking.ranked(lambda: CoExpressionKey(7157, "prof", scope.get()))

        assert [r.hugo_gene_symbol for r in snapshot.get().result] == ["EGFR"]
        scope.set(DataScope.ALL)
        assert len(snapshot.get().result) == 4
        assert len(fetcher.calls) == 2

    def test_gene_change_refetches(self, fetcher, immediate_executor):
        gene = Observable(7157)
        ranking = CoExpressionRanking(make_cache(fetcher, immediate_executor))
        snapshot = ranking.ranked(lambda: CoExpressionKey(gene.get(), "prof"))

        assert len(snapshot.get().result) == 4
        gene.set(4609)
        assert [r.hugo_gene_symbol for r in snapshot.get().result] == ["EGFR"]

    def test_none_key_suspends_fetching(self, fetcher, immediate_executor):
        ranking = CoExpressionRanking(make_cache(fetcher, immediate_executor))
        snapshot = ranking.ranked(lambda: None).get()
        assert snapshot.is_complete
        assert snapshot.result == []
        assert fetcher.calls == []

    def test_fetch_error_propagates(self, immediate_executor):
        key = CoExpressionKey(7157, "prof")
        fetcher = RecordingFetcher({}, fail_for=[key])
        ranking = CoExpressionRanking(make_cache(fetcher, immediate_executor))

        snapshot = ranking.ranked(lambda: key).get()
        assert snapshot.is_error
        assert isinstance(snapshot.error, ConnectionError)
