"""Tests for supplier profile learning."""

from unittest.mock import patch

import pytest

from ledgerlearn.learning.supplier_profiles import SupplierProfileStore
from ledgerlearn.matching import BestScoreStrategy
from ledgerlearn.schemas import MAX_SUPPLIER_CONFIDENCE, SupplierCategory
from ledgerlearn.state_store import ConcurrentUpdateError

COMPANY_ID = "acme-ab"


def _assert_default_is_top(profile) -> None:
    top = max(profile.account_history, key=lambda h: h.count)
    assert profile.default_account == top.account
    assert profile.account_history[0].count == top.count


class TestRecord:
    """Tests for SupplierProfileStore.record()."""

    def test_first_booking_creates_profile(self, suppliers) -> None:
        profile = suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 499.0)

        assert profile.normalized_name == "telia sverige"
        assert profile.supplier_name == "Telia Sverige AB"
        assert profile.category == SupplierCategory.TELECOM
        assert profile.default_account == "6212"
        assert profile.default_vat_code == "25"
        assert profile.learning_stats.confidence_score == 0.5
        assert profile.learning_stats.total_transactions == 1
        assert profile.version == 1

    def test_repeated_supplier_confidence_rises(self, suppliers) -> None:
        """Five more approvals raise confidence monotonically, never above the cap."""
        profile = suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 499.0)
        assert profile.learning_stats.confidence_score == 0.5

        previous = profile.learning_stats.confidence_score
        for _ in range(5):
            profile = suppliers.record(
                COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 499.0
            )
            assert profile.learning_stats.confidence_score > previous
            assert profile.learning_stats.confidence_score <= MAX_SUPPLIER_CONFIDENCE
            previous = profile.learning_stats.confidence_score

        assert previous == pytest.approx(0.6)
        assert profile.learning_stats.total_transactions == 6
        assert profile.learning_stats.correct_predictions == 6

    def test_confidence_is_capped(self, suppliers) -> None:
        for _ in range(30):
            profile = suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0)
        assert profile.learning_stats.confidence_score == MAX_SUPPLIER_CONFIDENCE

    def test_correction_does_not_raise_confidence(self, suppliers) -> None:
        suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 499.0)
        profile = suppliers.record(
            COMPANY_ID, "Telia Sverige AB", "6214", "Internet", 299.0, was_correction=True
        )

        assert profile.learning_stats.confidence_score == 0.5
        assert profile.learning_stats.total_transactions == 2
        assert profile.learning_stats.correct_predictions == 1

    def test_correction_born_profile(self, suppliers) -> None:
        profile = suppliers.record(
            COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 499.0, was_correction=True
        )
        assert profile.learning_stats.confidence_score == 0.3
        assert profile.learning_stats.correct_predictions == 0

    def test_default_follows_most_used_account(self, suppliers) -> None:
        """After every record(), the default is the highest-count history entry."""
        bookings = ["6212", "6214", "6214", "6212", "6212", "6211"]
        for account in bookings:
            profile = suppliers.record(COMPANY_ID, "Telia Sverige AB", account, account, 100.0)
            _assert_default_is_top(profile)

        assert profile.default_account == "6212"
        assert [h.account for h in profile.account_history] == ["6212", "6214", "6211"]

    def test_tie_keeps_first_account(self, suppliers) -> None:
        suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 100.0)
        profile = suppliers.record(COMPANY_ID, "Telia Sverige AB", "6214", "Internet", 100.0)
        assert profile.default_account == "6212"

    def test_vat_code_and_cost_center_follow_default(self, suppliers) -> None:
        suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0)
        profile = suppliers.record(
            COMPANY_ID,
            "Telia Sverige AB",
            "6212",
            "Mobiltelefon",
            1.0,
            vat_code="12",
            cost_center="CC-10",
        )
        assert profile.default_vat_code == "12"
        assert profile.default_cost_center == "CC-10"

    def test_typical_amount_from_account_averages(self, suppliers) -> None:
        suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 100.0)
        suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 300.0)
        profile = suppliers.record(COMPANY_ID, "Telia Sverige AB", "6214", "Internet", 1000.0)

        amount = profile.patterns.typical_amount
        assert amount.min == 200.0
        assert amount.max == 1000.0
        assert amount.average == 600.0

    def test_seasonal_months(self, suppliers) -> None:
        suppliers.record(
            COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0, date="2024-12-05"
        )
        profile = suppliers.record(
            COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0, date="2024-03-01"
        )
        assert profile.patterns.seasonal_months == [3, 12]

    def test_empty_name_rejected(self, suppliers) -> None:
        with pytest.raises(ValueError):
            suppliers.record(COMPANY_ID, "AB", "6212", "Mobiltelefon", 1.0)

    def test_profile_is_persisted(self, suppliers) -> None:
        suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0)
        suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0)

        profile = suppliers.get(COMPANY_ID, "telia sverige")
        assert profile.learning_stats.total_transactions == 2
        assert profile.version == 2

    def test_lost_race_is_retried(self, store, suppliers) -> None:
        suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0)

        with patch.object(store, "update_supplier_profile", side_effect=[False, True]) as update:
            profile = suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0)

        assert update.call_count == 2
        assert profile.learning_stats.total_transactions == 2

    def test_gives_up_after_retries(self, store, suppliers) -> None:
        suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0)

        with patch.object(store, "update_supplier_profile", return_value=False):
            with pytest.raises(ConcurrentUpdateError) as exc_info:
                suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0)

        assert exc_info.value.attempts == 3
        assert exc_info.value.table == "supplier_profiles"


class TestCorrections:
    """Tests for apply_correction()."""

    def test_decay(self, suppliers) -> None:
        for _ in range(3):
            suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0)
        before = suppliers.get(COMPANY_ID, "telia sverige").learning_stats.confidence_score

        assert suppliers.apply_correction(COMPANY_ID, "telia sverige", "6212", "6214", "Internet")

        stats = suppliers.get(COMPANY_ID, "telia sverige").learning_stats
        assert stats.confidence_score == pytest.approx(before * 0.9)
        assert stats.confidence_score < before
        assert stats.corrections == 1
        assert stats.last_correction_at is not None

    def test_repeated_correction_id_decays_once(self, suppliers) -> None:
        suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0)

        assert suppliers.apply_correction(
            COMPANY_ID, "telia sverige", "6212", "6214", "Internet", correction_id="c-1"
        )
        assert not suppliers.apply_correction(
            COMPANY_ID, "telia sverige", "6212", "6214", "Internet", correction_id="c-1"
        )

        stats = suppliers.get(COMPANY_ID, "telia sverige").learning_stats
        assert stats.confidence_score == pytest.approx(0.45)
        assert stats.corrections == 1
        assert len(suppliers.list_corrections(COMPANY_ID)) == 1

    def test_correction_without_profile_is_audited(self, suppliers) -> None:
        assert suppliers.apply_correction(COMPANY_ID, "unknown", None, "6214", "Internet")
        assert suppliers.list_corrections(COMPANY_ID)[0].normalized_name == "unknown"


class TestLookup:
    """Tests for get(), aliases and find_similar()."""

    def test_get_missing(self, suppliers) -> None:
        assert suppliers.get(COMPANY_ID, "telia sverige") is None
        assert suppliers.get(COMPANY_ID, "") is None

    def test_alias_resolves_to_primary(self, suppliers) -> None:
        suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0)

        assert suppliers.add_alias(COMPANY_ID, "Telia Sverige AB", "Telia Company")

        profile = suppliers.get(COMPANY_ID, "telia company")
        assert profile.normalized_name == "telia sverige"
        assert "telia company" in profile.aliases

    def test_alias_booking_updates_primary(self, suppliers) -> None:
        suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0)
        suppliers.add_alias(COMPANY_ID, "Telia Sverige AB", "Telia Company")

        profile = suppliers.record(COMPANY_ID, "Telia Company", "6212", "Mobiltelefon", 1.0)

        assert profile.normalized_name == "telia sverige"
        assert profile.learning_stats.total_transactions == 2
        assert len(suppliers.list_profiles(COMPANY_ID)) == 1

    def test_alias_rejected(self, suppliers) -> None:
        suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0)

        assert not suppliers.add_alias(COMPANY_ID, "Unknown Supplier", "Telia Company")
        assert not suppliers.add_alias(COMPANY_ID, "Telia Sverige AB", "Telia Sverige")
        assert suppliers.add_alias(COMPANY_ID, "Telia Sverige AB", "Telia Company")
        assert not suppliers.add_alias(COMPANY_ID, "Telia Sverige AB", "Telia Company")

    def test_find_similar_two_tokens(self, suppliers) -> None:
        suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0)
        profile = suppliers.find_similar(COMPANY_ID, "telia sverige mobil")
        assert profile.normalized_name == "telia sverige"

    def test_find_similar_one_long_token(self, suppliers) -> None:
        suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0)
        assert suppliers.find_similar(COMPANY_ID, "sverige").normalized_name == "telia sverige"

    def test_find_similar_one_short_token(self, suppliers) -> None:
        """A single token of five characters is not enough."""
        suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0)
        assert suppliers.find_similar(COMPANY_ID, "telia") is None

    def test_find_similar_by_alias(self, suppliers) -> None:
        suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0)
        suppliers.add_alias(COMPANY_ID, "Telia Sverige AB", "Telia Company")

        profile = suppliers.find_similar(COMPANY_ID, "telia company")
        assert profile.normalized_name == "telia sverige"

    def test_find_similar_empty_query(self, suppliers) -> None:
        suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0)
        assert suppliers.find_similar(COMPANY_ID, "") is None
        assert suppliers.find_similar(COMPANY_ID, "   ") is None

    def test_find_similar_first_match_by_volume(self, suppliers) -> None:
        suppliers.record(COMPANY_ID, "Nordic Office Supply", "6110", "Kontorsmateriel", 1.0)
        for _ in range(3):
            suppliers.record(COMPANY_ID, "Nordic Office Partners", "6110", "Kontorsmateriel", 1.0)

        profile = suppliers.find_similar(COMPANY_ID, "nordic office")
        assert profile.normalized_name == "nordic office partners"

    def test_find_similar_with_best_score_strategy(self, store) -> None:
        """BestScoreStrategy without a score falls back to first match."""
        suppliers = SupplierProfileStore(store, strategy=BestScoreStrategy())
        suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0)
        assert suppliers.find_similar(COMPANY_ID, "sverige") is not None


class TestReporting:
    """Tests for list_profiles() and supplier_stats()."""

    def test_list_profiles_filters(self, suppliers) -> None:
        suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 1.0)
        suppliers.record(COMPANY_ID, "SAS Scandinavian Airlines", "5810", "Biljetter", 1.0)
        suppliers.record(COMPANY_ID, "SAS Scandinavian Airlines", "5810", "Biljetter", 1.0)

        travel = suppliers.list_profiles(COMPANY_ID, category=SupplierCategory.TRAVEL)
        assert [p.normalized_name for p in travel] == ["sas scandinavian airlines"]

        busy = suppliers.list_profiles(COMPANY_ID, min_transactions=2)
        assert len(busy) == 1

        by_name = suppliers.list_profiles(COMPANY_ID, sort_by="name")
        assert [p.normalized_name for p in by_name] == [
            "sas scandinavian airlines",
            "telia sverige",
        ]

    def test_supplier_stats(self, suppliers) -> None:
        suppliers.record(COMPANY_ID, "Telia Sverige AB", "6212", "Mobiltelefon", 100.0)
        suppliers.record(
            COMPANY_ID, "Telia Sverige AB", "6214", "Internet", 100.0, was_correction=True
        )
        suppliers.record(COMPANY_ID, "SAS Scandinavian Airlines", "5810", "Biljetter", 5000.0)

        stats = suppliers.supplier_stats(COMPANY_ID)
        assert stats["total_suppliers"] == 2
        assert stats["total_transactions"] == 3
        assert stats["learning_accuracy"] == 0.67
        assert stats["categories"] == {"TELECOM": 1, "TRAVEL": 1}
        assert stats["top_suppliers"][0]["normalized_name"] == "sas scandinavian airlines"

    def test_supplier_stats_empty(self, suppliers) -> None:
        stats = suppliers.supplier_stats(COMPANY_ID)
        assert stats["total_suppliers"] == 0
        assert stats["learning_accuracy"] == 0.0
