"""
CLI main entry point.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from ..config import Config, ConfigValidationError, create_default_config, load_config
from ..documents import (
    DocumentJobAssembler,
    FilesystemPageSource,
    HttpPageSource,
    PageBoundaryClassifier,
    PageExtractionError,
    PageSource,
)
from ..inference import InferenceService
from ..learning import CategoryClassifier, LearningFeedbackLoop, PatternStore, SupplierProfileStore
from ..learning.categories import account_name
from ..prediction import AccountPredictionEngine
from ..schemas import SupplierCategory, Transaction
from ..state_store import ConcurrentUpdateError, StateStore

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _add_transaction_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--company", required=True, help="Company ID")
    parser.add_argument("--supplier", required=True, help="Supplier name as printed")
    parser.add_argument("--description", default="", help="Transaction description")
    parser.add_argument("--amount", type=float, default=0.0, help="Amount (SEK)")
    parser.add_argument("--date", help="Transaction date (YYYY-MM-DD)")


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="ledgerlearn",
        description="Split scanned uploads into jobs and predict GL accounts from review history",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # init command
    subparsers.add_parser("init", help="Write a default config file")

    # analyze command
    analyze_parser = subparsers.add_parser(
        "analyze", help="Detect documents in a multi-page upload and create jobs"
    )
    analyze_parser.add_argument("files", nargs="+", help="Upload file ref(s)")
    analyze_parser.add_argument("--company", required=True, help="Company ID")
    analyze_parser.add_argument(
        "--no-jobs",
        action="store_true",
        help="Only show the page analysis, do not create jobs",
    )

    # predict command
    predict_parser = subparsers.add_parser("predict", help="Predict the account for a transaction")
    _add_transaction_args(predict_parser)
    predict_parser.add_argument("--json", action="store_true", help="Print JSON")

    # approve command
    approve_parser = subparsers.add_parser(
        "approve", help="Learn from an approved or corrected booking"
    )
    _add_transaction_args(approve_parser)
    approve_parser.add_argument("--account", required=True, help="Approved account number")
    approve_parser.add_argument("--account-name", help="Account name (default: chart name)")
    approve_parser.add_argument(
        "--correction",
        action="store_true",
        help="The approved account differs from the predicted one",
    )
    approve_parser.add_argument("--original-account", help="Account that was predicted")
    approve_parser.add_argument("--correction-id", help="Idempotency key for the correction")
    approve_parser.add_argument("--vat-code", help="VAT code")
    approve_parser.add_argument("--cost-center", help="Cost center")

    # alias command
    alias_parser = subparsers.add_parser("alias", help="Register an alternative supplier name")
    alias_parser.add_argument("--company", required=True, help="Company ID")
    alias_parser.add_argument("primary", help="Known supplier name")
    alias_parser.add_argument("alias", help="Alternative name")

    # suppliers command
    suppliers_parser = subparsers.add_parser("suppliers", help="List learned supplier profiles")
    suppliers_parser.add_argument("--company", required=True, help="Company ID")
    suppliers_parser.add_argument(
        "--category",
        choices=[c.value for c in SupplierCategory],
        help="Only this category",
    )
    suppliers_parser.add_argument("--min-transactions", type=int, help="Minimum bookings")
    suppliers_parser.add_argument(
        "--sort",
        choices=["transactions", "last_used", "name"],
        default="transactions",
        help="Sort order (default: transactions)",
    )
    suppliers_parser.add_argument(
        "--stats", action="store_true", help="Show learning statistics instead"
    )

    # status command
    subparsers.add_parser("status", help="Show store and model status")

    return parser


def build_page_source(config: Config) -> PageSource:
    """Page source selected by config.pages.kind."""
    pages = config.pages
    if pages.kind == "http":
        return HttpPageSource(
            base_url=pages.base_url or "",
            token=pages.token,
            timeout=pages.timeout_seconds,
            max_retries=pages.max_retries,
            max_pages=pages.max_pages,
        )
    return FilesystemPageSource(root=pages.root, max_pages=pages.max_pages)


def cmd_init(config_path: Path) -> int:
    """Write a default config file."""
    if config_path.exists():
        print(f"❌ {config_path} already exists")
        return 1
    create_default_config(config_path)
    print(f"✓ Wrote {config_path}")
    return 0


def cmd_analyze(config: Config, files: list[str], company_id: str, create_jobs: bool) -> int:
    """Analyse uploads and create jobs."""
    store = StateStore(config.state_db_path)
    page_source = build_page_source(config)

    with InferenceService(config, store) as inference:
        classifier = PageBoundaryClassifier(
            page_source, inference, max_workers=config.llm.max_concurrent
        )
        assembler = DocumentJobAssembler(store)
        results = classifier.analyze_batch(files)

    failures = 0
    for file_ref in files:
        result = results[file_ref]
        if isinstance(result, Exception):
            print(f"❌ {result}")
            failures += 1
            continue

        print(
            f"📄 {file_ref}: {result.total_pages} page(s), "
            f"{result.documents_detected} document(s), {result.split_strategy.value}"
        )
        for page in result.pages:
            marker = "▶" if page.is_new_document else " "
            doc_type = page.document_type.value if page.document_type else "-"
            print(f"   {marker} p{page.page_number:<3} {doc_type:<15} {page.confidence:.2f}")

        if create_jobs:
            jobs = assembler.assemble(company_id, file_ref, Path(file_ref).name, result)
            for job in jobs:
                pages = ",".join(str(n) for n in job.page_numbers)
                print(f"   ✓ {job.id}  {job.file_name}  pages {pages}")

    return 1 if failures else 0


def cmd_predict(config: Config, transaction: Transaction, company_id: str, as_json: bool) -> int:
    """Predict an account."""
    store = StateStore(config.state_db_path)
    classifier = CategoryClassifier()

    with InferenceService(config, store) as inference:
        engine = AccountPredictionEngine(
            suppliers=SupplierProfileStore(store, classifier),
            patterns=PatternStore(store),
            classifier=classifier,
            inference=inference,
            config=config.prediction,
        )
        prediction = engine.predict(company_id, transaction)

    if as_json:
        print(json.dumps(prediction.to_dict(), indent=2, ensure_ascii=False))
        return 0

    print(f"\n🧾 {transaction.supplier}: {transaction.description} ({transaction.amount:.2f})")
    print("=" * 40)
    print(f"  Account:     {prediction.account} {prediction.account_name}")
    print(f"  Confidence:  {prediction.confidence:.0%}")
    print(f"  Source:      {prediction.source.value}")
    print(f"  Reasoning:   {prediction.reasoning}")
    if prediction.alternatives:
        print("  Alternatives:")
        for alt in prediction.alternatives:
            print(
                f"    - {alt.account} {alt.account_name} "
                f"({alt.confidence:.0%}, {alt.source.value})"
            )
    print()
    return 0


def cmd_approve(config: Config, parsed: argparse.Namespace, transaction: Transaction) -> int:
    """Feed an approval back into learning."""
    store = StateStore(config.state_db_path)
    classifier = CategoryClassifier()
    loop = LearningFeedbackLoop(SupplierProfileStore(store, classifier), PatternStore(store))

    try:
        outcome = loop.on_approval(
            parsed.company,
            transaction,
            parsed.account,
            parsed.account_name or account_name(parsed.account),
            was_correction=parsed.correction,
            original_account=parsed.original_account,
            vat_code=parsed.vat_code,
            cost_center=parsed.cost_center,
            correction_id=parsed.correction_id,
        )
    except ValueError as e:
        print(f"❌ {e}")
        return 1
    except ConcurrentUpdateError as e:
        print(f"❌ {e}")
        return 1

    profile = outcome.profile
    print(f"✓ Learned {parsed.account} for '{profile.supplier_name}'")
    print(f"  Default account:   {profile.default_account} {profile.default_account_name}")
    print(f"  Confidence:        {profile.learning_stats.confidence_score:.2f}")
    print(f"  Pattern success:   {outcome.pattern.success_rate:.2f}")
    if parsed.correction and not outcome.correction_recorded:
        print("  (correction already recorded)")
    return 0


def cmd_alias(config: Config, company_id: str, primary: str, alias: str) -> int:
    """Register a supplier alias."""
    store = StateStore(config.state_db_path)
    suppliers = SupplierProfileStore(store)

    if suppliers.add_alias(company_id, primary, alias):
        print(f"✓ '{alias}' now resolves to '{primary}'")
        return 0
    print("⚠️  Alias not added (unknown supplier or alias exists)")
    return 1


def cmd_suppliers(
    config: Config,
    company_id: str,
    category: str | None,
    min_transactions: int | None,
    sort_by: str,
    show_stats: bool,
) -> int:
    """List supplier profiles or learning statistics."""
    store = StateStore(config.state_db_path)
    classifier = CategoryClassifier()
    suppliers = SupplierProfileStore(store, classifier)

    if show_stats:
        stats = suppliers.supplier_stats(company_id)
        accuracy = PatternStore(store).accuracy_stats(company_id)
        print("\n📊 Learning Statistics")
        print("=" * 40)
        print(f"  Suppliers:           {stats['total_suppliers']}")
        print(f"  Transactions:        {stats['total_transactions']}")
        print(f"  Corrections:         {stats['total_corrections']}")
        print(f"  Supplier accuracy:   {stats['learning_accuracy']:.0%}")
        print(f"  Pattern accuracy:    {accuracy['accuracy']:.0%}")
        for name, count in sorted(stats["categories"].items()):
            print(f"    {name:<24} {count}")
        print()
        return 0

    profiles = suppliers.list_profiles(
        company_id,
        category=SupplierCategory(category) if category else None,
        min_transactions=min_transactions,
        sort_by=sort_by,
    )
    for profile in profiles:
        print(
            f"  {profile.supplier_name:<30} {profile.default_account} "
            f"{classifier.display_name(profile.category):<22} "
            f"{profile.learning_stats.total_transactions:>4} tx "
            f"{profile.learning_stats.confidence_score:.2f}"
        )
    print(f"\n✓ {len(profiles)} supplier(s)")
    return 0


def cmd_status(config: Config) -> int:
    """Show store and model status."""
    store = StateStore(config.state_db_path)
    stats = store.get_stats()

    print("\n📊 ledgerlearn Status")
    print("=" * 40)
    print(f"  Supplier profiles:      {stats['suppliers']}")
    print(f"  Supplier aliases:       {stats['aliases']}")
    print(f"  Transaction patterns:   {stats['patterns']}")
    print(f"  Corrections:            {stats['corrections']}")
    print(f"  Jobs:                   {stats['jobs']}")
    print(f"  Jobs processing:        {stats['jobs_processing']}")
    print(f"  LLM cache entries:      {stats['llm_cache_entries']}")
    print(f"  LLM:                    {'enabled' if config.llm.enabled else 'disabled'}")
    print(f"  Page source:            {config.pages.kind}")
    print()

    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init":
        return cmd_init(parsed.config)

    # Load config
    try:
        config = load_config(parsed.config)
        config.ensure_valid()
    except ConfigValidationError as e:
        print(f"❌ Invalid config: {e}")
        return 1
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    # Route to command
    if parsed.command == "analyze":
        try:
            return cmd_analyze(config, parsed.files, parsed.company, not parsed.no_jobs)
        except PageExtractionError as e:
            print(f"❌ {e}")
            return 1
    elif parsed.command in ("predict", "approve"):
        transaction = Transaction(
            supplier=parsed.supplier,
            description=parsed.description,
            amount=parsed.amount,
            date=parsed.date,
        )
        if parsed.command == "predict":
            return cmd_predict(config, transaction, parsed.company, parsed.json)
        return cmd_approve(config, parsed, transaction)
    elif parsed.command == "alias":
        return cmd_alias(config, parsed.company, parsed.primary, parsed.alias)
    elif parsed.command == "suppliers":
        return cmd_suppliers(
            config,
            parsed.company,
            parsed.category,
            parsed.min_transactions,
            parsed.sort,
            parsed.stats,
        )
    elif parsed.command == "status":
        return cmd_status(config)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
