"""
Supplier categories and the BAS chart of accounts.

The classifier is pure: it looks for known keywords in
"{supplier} {description}" and returns the first category whose keyword
appears, in table order. Each category maps to one default expense account
and VAT code.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..schemas.learning import SupplierCategory

# Version of the account tables below; part of the LLM cache key
CHART_VERSION = "bas-2024.1"

# BAS account number -> account name
BAS_ACCOUNTS: dict[str, str] = {
    "1220": "Inventarier och verktyg",
    "4010": "Inköp varor",
    "4400": "Förbrukningsmaterial",
    "5010": "Lokalhyra",
    "5020": "Hyra parkeringsplats",
    "5060": "Städning och renhållning",
    "5120": "El för fastighet",
    "5130": "Värme",
    "5410": "Förbrukningsinventarier",
    "5420": "Programvaror",
    "5611": "Drivmedel personbil",
    "5615": "Leasing personbil",
    "5800": "Resekostnader",
    "5810": "Biljetter",
    "5820": "Hyrbil",
    "5830": "Kost och logi",
    "5890": "Övriga resekostnader",
    "5900": "Reklam och PR",
    "5910": "Annonsering",
    "6010": "Kontorsmateriel",
    "6070": "Representation",
    "6071": "Representation, avdragsgill",
    "6072": "Representation, ej avdragsgill",
    "6110": "Kontorsmateriel och trycksaker",
    "6211": "Fast telefoni",
    "6212": "Mobiltelefon",
    "6214": "Internet",
    "6300": "Företagsförsäkringar",
    "6310": "Ansvarsförsäkring",
    "6420": "Ersättningar till revisor",
    "6530": "Redovisningstjänster",
    "6540": "IT-tjänster",
    "6550": "Konsultarvoden",
    "6570": "Banktjänster",
    "6580": "Advokat- och rättegångskostnader",
    "6991": "Övriga externa kostnader, avdragsgilla",
    "6993": "Övriga externa kostnader",
    "7010": "Löner till kollektivanställda",
    "7011": "Löner till tjänstemän",
    "7510": "Arbetsgivaravgifter",
    "7610": "Utbildning",
    "7690": "Övriga personalkostnader",
}

# Accounts listed in the account inference prompt
COMMON_ACCOUNTS: tuple[str, ...] = tuple(
    sorted(
        [
            "4010", "4400", "5010", "5060", "5120", "5130", "5410", "5420",
            "5611", "5615", "5810", "5820", "5830", "5890", "5900", "5910",
            "6010", "6070", "6212", "6214", "6300", "6420", "6530", "6540",
            "6550", "6570", "6580", "7010", "7011", "7510", "7610",
        ]
    )
)

# Keyword table, scanned in order; first hit wins
CATEGORY_KEYWORDS: tuple[tuple[SupplierCategory, tuple[str, ...]], ...] = (
    (
        SupplierCategory.IT_SERVICES,
        (
            "microsoft", "google", "amazon web", "aws", "adobe", "github", "slack",
            "zoom", "dropbox", "apple", "software", "it-", "data",
        ),
    ),
    (SupplierCategory.OFFICE_SUPPLIES, ("office depot", "staples", "lyreco", "kontorsmaterial")),
    (SupplierCategory.TELECOM, ("telia", "tele2", "tre", "telenor", "comviq")),
    (SupplierCategory.UTILITIES, ("vattenfall", "ellevio", "fortum", "eon", "stockholm exergi")),
    (
        SupplierCategory.TRAVEL,
        ("sas", "norwegian", "sj", "taxi", "uber", "bolt", "hotel", "scandic", "nordic choice"),
    ),
    (
        SupplierCategory.INSURANCE,
        ("if försäkring", "trygg-hansa", "länsförsäkring", "folksam"),
    ),
    (
        SupplierCategory.BANK_FINANCE,
        ("nordea", "handelsbanken", "seb", "swedbank", "danske bank"),
    ),
    (
        SupplierCategory.MARKETING,
        ("facebook", "instagram", "linkedin", "reklam", "media", "annons"),
    ),
    (
        SupplierCategory.PROFESSIONAL_SERVICES,
        ("advokatbyrå", "revision", "konsult", "deloitte", "pwc", "kpmg", "ey", "grant thornton"),
    ),
)


@dataclass(frozen=True)
class CategoryDefaults:
    """Default booking for a category."""

    account: str
    vat_code: str

    @property
    def account_name(self) -> str:
        return account_name(self.account)


CATEGORY_DEFAULTS: dict[SupplierCategory, CategoryDefaults] = {
    SupplierCategory.OFFICE_SUPPLIES: CategoryDefaults("6110", "25"),
    SupplierCategory.IT_SERVICES: CategoryDefaults("6540", "25"),
    SupplierCategory.PROFESSIONAL_SERVICES: CategoryDefaults("6550", "25"),
    SupplierCategory.RENT_FACILITIES: CategoryDefaults("5010", "0"),
    SupplierCategory.UTILITIES: CategoryDefaults("5020", "25"),
    SupplierCategory.TELECOM: CategoryDefaults("6211", "25"),
    SupplierCategory.TRAVEL: CategoryDefaults("5800", "25"),
    SupplierCategory.MARKETING: CategoryDefaults("5910", "25"),
    SupplierCategory.INSURANCE: CategoryDefaults("6310", "0"),
    SupplierCategory.BANK_FINANCE: CategoryDefaults("6570", "0"),
    SupplierCategory.PERSONNEL: CategoryDefaults("7690", "25"),
    SupplierCategory.EQUIPMENT: CategoryDefaults("5410", "25"),
    SupplierCategory.RAW_MATERIALS: CategoryDefaults("4010", "25"),
    SupplierCategory.SUBSCRIPTIONS: CategoryDefaults("6993", "25"),
    SupplierCategory.OTHER: CategoryDefaults("6993", "25"),
}

CATEGORY_DISPLAY_NAMES: dict[SupplierCategory, str] = {
    SupplierCategory.OFFICE_SUPPLIES: "Kontorsmaterial",
    SupplierCategory.IT_SERVICES: "IT & Programvara",
    SupplierCategory.PROFESSIONAL_SERVICES: "Konsulter & Tjänster",
    SupplierCategory.RENT_FACILITIES: "Lokaler & Hyra",
    SupplierCategory.UTILITIES: "El, Vatten & Värme",
    SupplierCategory.TELECOM: "Telefoni & Internet",
    SupplierCategory.TRAVEL: "Resor & Transport",
    SupplierCategory.MARKETING: "Marknadsföring",
    SupplierCategory.INSURANCE: "Försäkringar",
    SupplierCategory.BANK_FINANCE: "Bank & Finans",
    SupplierCategory.PERSONNEL: "Personal",
    SupplierCategory.EQUIPMENT: "Inventarier",
    SupplierCategory.RAW_MATERIALS: "Råvaror & Material",
    SupplierCategory.SUBSCRIPTIONS: "Prenumerationer",
    SupplierCategory.OTHER: "Övrigt",
}

DEFAULT_ACCOUNT = "4010"


def account_name(account: str) -> str:
    """Name of a BAS account, or a generic label for accounts outside the chart."""
    return BAS_ACCOUNTS.get(account, f"Konto {account}")


def common_accounts_text() -> str:
    """One "number: name" line per common account, for prompts."""
    return "\n".join(f"{number}: {BAS_ACCOUNTS[number]}" for number in COMMON_ACCOUNTS)


class CategoryClassifier:
    """Keyword-based supplier category detection."""

    def __init__(
        self,
        keywords: tuple[tuple[SupplierCategory, tuple[str, ...]], ...] = CATEGORY_KEYWORDS,
    ):
        self.keywords = keywords

    def classify(self, supplier: str | None, description: str | None = None) -> SupplierCategory:
        """Category of the first keyword found in "{supplier} {description}"."""
        text = f"{supplier or ''} {description or ''}".lower()
        for category, words in self.keywords:
            if any(word in text for word in words):
                return category
        return SupplierCategory.OTHER

    def defaults_for(self, category: SupplierCategory) -> CategoryDefaults:
        """Default account and VAT code for a category."""
        return CATEGORY_DEFAULTS[category]

    def display_name(self, category: SupplierCategory) -> str:
        return CATEGORY_DISPLAY_NAMES[category]
