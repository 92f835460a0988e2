#!/usr/bin/env python3
"""Command-line interface for reconciliation tools.

Usage:
    payment-reconciliation seed-demo
    payment-reconciliation run --format text
    payment-reconciliation run --provider stripe --output result.json
    payment-reconciliation stats
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from ..config import ReconciliationConfig
from ..database import DatabaseManager, TransactionRepository
from ..database.models import TransactionStatus
from ..exceptions import RunAlreadyInProgress
from ..providers import get_provider_gateway
from .engine import ReconciliationEngine
from .report import FORMATS, ReportGenerator

logger = logging.getLogger(__name__)

# Reference, amount, currency, status, hours since creation
DEMO_LEDGER = (
    ("PROV-001", "100.00", "USD", TransactionStatus.PENDING, 2),
    ("PROV-002", "250.50", "EUR", TransactionStatus.PENDING, 3),
    ("PROV-003", "1000.00", "GBP", TransactionStatus.PENDING, 4),
    ("PROV-004", "500.00", "USD", TransactionStatus.PENDING, 1),
    ("PROV-005", "75.00", "EUR", TransactionStatus.PENDING, 2),
    ("PROV-006", "200.00", "USD", TransactionStatus.PENDING, 0.5),
    ("PROV-007", "150.00", "USD", TransactionStatus.PENDING, 5),
    ("UNKNOWN-001", "300.00", "USD", TransactionStatus.PENDING, 6),
    ("UNKNOWN-002", "450.00", "EUR", TransactionStatus.PENDING, 7),
    ("PROV-100", "800.00", "USD", TransactionStatus.COMPLETED, 24),
    ("PROV-101", "125.00", "EUR", TransactionStatus.FAILED, 48),
)


async def seed_demo_async(repository: TransactionRepository) -> int:
    """Insert the demo ledger, skipping references that already exist.
    
    Returns:
        Number of transactions inserted.
    """
    now = datetime.utcnow()
    inserted = 0
    for reference, amount, currency, status, age_hours in DEMO_LEDGER:
        if await repository.fetch_by_provider_reference(reference):
            continue
        settled = status != TransactionStatus.PENDING
        await repository.create(
            provider_reference=reference,
            amount=Decimal(amount),
            currency=currency,
            provider_name="MockProvider",
            status=status,
            created_at=now - timedelta(hours=age_hours),
            reconciliation_attempts=1 if settled else 0,
            reconciled_at=now - timedelta(hours=age_hours - 1) if settled else None,
        )
        inserted += 1
    return inserted


async def run_command_async(args: argparse.Namespace, config: ReconciliationConfig) -> int:
    """Execute a parsed CLI command against the configured database.
    
    Returns:
        Exit code (0 success, 1 run finished with errors, 2 could not run).
    """
    db = DatabaseManager()
    await db.initialize()
    repository = TransactionRepository(db.session_factory)
    
    try:
        if args.command == "seed-demo":
            inserted = await seed_demo_async(repository)
            logger.info(f"Seeded {inserted} demo transactions")
            return 0
        
        provider = get_provider_gateway(args.provider or config.provider, config)
        engine = ReconciliationEngine(repository, provider, config)
        
        if args.command == "stats":
            stats = await engine.get_stats()
            print(json.dumps(stats.model_dump(), indent=2))
            return 0
        
        try:
            result = await engine.run_reconciliation()
        except RunAlreadyInProgress as e:
            logger.error(str(e))
            return 2
        
        output = ReportGenerator(result).render(
            format=args.format,
            include_details=not args.summary_only,
        )
        if args.output:
            with open(args.output, "w") as f:
                f.write(output)
            logger.info(f"Report written to {args.output}")
        else:
            print(output)
        
        if result.errors > 0:
            logger.warning(f"Reconciliation completed with {result.errors} errors")
            return 1
        return 0
    
    except Exception as e:
        logger.error(f"Reconciliation command failed: {e}")
        return 2
    finally:
        await db.shutdown()


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.
    
    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="payment-reconciliation",
        description="Reconcile pending ledger transactions against the payment provider.",
    )
    
    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    
    run_parser = subparsers.add_parser("run", help="Run one reconciliation pass")
    run_parser.add_argument(
        "--provider", "-p",
        choices=["mock", "stripe"],
        help="Provider to reconcile against (default: RECONCILIATION_PROVIDER or mock)",
    )
    run_parser.add_argument(
        "--output", "-o",
        help="Output file path (default: stdout)",
    )
    run_parser.add_argument(
        "--format", "-f",
        choices=FORMATS,
        default="json",
        help="Output format (default: json)",
    )
    run_parser.add_argument(
        "--summary-only",
        action="store_true",
        help="Only include summary statistics, not per-transaction errors",
    )
    
    stats_parser = subparsers.add_parser("stats", help="Print ledger counts by status")
    stats_parser.add_argument("--provider", "-p", choices=["mock", "stripe"])
    
    subparsers.add_parser("seed-demo", help="Insert the demo ledger transactions")
    
    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point for the CLI.
    
    Args:
        args: Optional list of command-line arguments (for testing).
    
    Returns:
        Exit code.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    
    parser = create_parser()
    parsed_args = parser.parse_args(args)
    
    if not parsed_args.command:
        parser.print_help()
        return 1
    
    try:
        config = ReconciliationConfig.from_env()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    
    return asyncio.run(run_command_async(parsed_args, config))


if __name__ == "__main__":
    sys.exit(main())
