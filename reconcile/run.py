# reconcile/run.py

import logging
from typing import Any, Dict, Iterable

from config.settings import CompareConfig
from reconcile.utils.classifier import classify
from reconcile.utils.errors import ComparisonFailure, ReconcileError
from reconcile.utils.loader import read_first_sheet
from reconcile.utils.matcher import match
from reconcile.utils.models import ComparisonReport, Side
from reconcile.utils.normalizer import normalize_rows
from reconcile.utils.report import build_report

logger = logging.getLogger(__name__)


def run_comparison(primary_rows: Iterable[Dict[str, Any]], secondary_rows: Iterable[Dict[str, Any]],
                   config: CompareConfig) -> ComparisonReport:
    """
    Compares the primary export (what should have been billed) against the
    secondary export (what was billed). Everything is built per call.
    """
    primary_rows = list(primary_rows)
    secondary_rows = list(secondary_rows)

    try:
        # Step 1: Normalize both sides into Visits
        primary, skipped_primary = normalize_rows(primary_rows, Side.PRIMARY, config.primary_columns)
        secondary, skipped_secondary = normalize_rows(secondary_rows, Side.SECONDARY, config.secondary_columns)

        # Step 2: Group secondary rows under each primary visit
        groups = match(primary, secondary, config)

        # Step 3: Classify, carrying the claimed secondary rows forward
        results = []
        consumed = frozenset()
        for group in groups:
            visit_results, consumed = classify(group.primary, group, config, consumed)
            results.extend(visit_results)
    except ReconcileError:
        raise
    except Exception as e:
        logger.error(f"Comparison failed: {e}", exc_info=True)
        raise ComparisonFailure(f"Error comparing files: {e}") from e

    # Step 4: Fold into the report
    report = build_report(results, skipped_primary + skipped_secondary,
                          primary_row_count=len(primary_rows), secondary_row_count=len(secondary_rows))
    logger.info(f"Comparison complete: {report.stats}")
    return report


def compare_files(primary_path: str, secondary_path: str, config: CompareConfig) -> ComparisonReport:
    primary_rows = read_first_sheet(primary_path)
    secondary_rows = read_first_sheet(secondary_path)
    return run_comparison(primary_rows, secondary_rows, config)
