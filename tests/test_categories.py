"""Tests for the category classifier and chart of accounts."""

from ledgerlearn.learning.categories import (
    BAS_ACCOUNTS,
    CATEGORY_DEFAULTS,
    COMMON_ACCOUNTS,
    CategoryClassifier,
    account_name,
    common_accounts_text,
)
from ledgerlearn.schemas import SupplierCategory


class TestCategoryClassifier:
    """Tests for keyword classification."""

    def test_telecom(self) -> None:
        assert CategoryClassifier().classify("Telia Sverige AB") == SupplierCategory.TELECOM

    def test_travel(self) -> None:
        assert CategoryClassifier().classify("SAS Scandinavian Airlines") == SupplierCategory.TRAVEL

    def test_description_is_searched(self) -> None:
        classifier = CategoryClassifier()
        category = classifier.classify("Okänd Leverantör", "Github Team plan")
        assert category == SupplierCategory.IT_SERVICES

    def test_first_hit_in_table_order_wins(self) -> None:
        """IT services are listed before telecom."""
        assert CategoryClassifier().classify("Microsoft via Telia") == SupplierCategory.IT_SERVICES

    def test_unknown_is_other(self) -> None:
        assert CategoryClassifier().classify("Okänd Leverantör") == SupplierCategory.OTHER
        assert CategoryClassifier().classify(None) == SupplierCategory.OTHER

    def test_defaults_for(self) -> None:
        defaults = CategoryClassifier().defaults_for(SupplierCategory.TELECOM)
        assert defaults.account == "6211"
        assert defaults.vat_code == "25"
        assert defaults.account_name == "Fast telefoni"

    def test_display_name(self) -> None:
        assert CategoryClassifier().display_name(SupplierCategory.IT_SERVICES) == "IT & Programvara"

    def test_custom_keywords(self) -> None:
        classifier = CategoryClassifier(keywords=((SupplierCategory.PERSONNEL, ("friskvård",)),))
        assert classifier.classify("Friskvård Gym AB") == SupplierCategory.PERSONNEL


class TestChartOfAccounts:
    """Tests for BAS account lookups."""

    def test_every_category_has_defaults(self) -> None:
        assert set(CATEGORY_DEFAULTS) == set(SupplierCategory)

    def test_default_accounts_are_in_chart(self) -> None:
        for defaults in CATEGORY_DEFAULTS.values():
            assert defaults.account in BAS_ACCOUNTS

    def test_common_accounts_are_in_chart(self) -> None:
        assert all(number in BAS_ACCOUNTS for number in COMMON_ACCOUNTS)

    def test_account_name(self) -> None:
        assert account_name("6212") == "Mobiltelefon"
        assert account_name("9999") == "Konto 9999"

    def test_common_accounts_text(self) -> None:
        text = common_accounts_text()
        assert "6540: IT-tjänster" in text
        assert len(text.splitlines()) == len(COMMON_ACCOUNTS)
