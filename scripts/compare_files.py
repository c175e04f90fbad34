#!/usr/bin/env python3
"""
compare_files.py

Runs one billing comparison outside the portal. Reads the first sheet of
the primary (PMD/EPIC) and secondary (ECW) exports and prints the stats,
optionally writing the full report to .xlsx or .json.
"""
import os
import sys
import json
import logging
import argparse
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).resolve().parents[1]
sys.path.append(str(project_root))

from config.settings import PROFILES, build_config
from reconcile.run import compare_files
from reconcile.utils.errors import ReconcileError
from reconcile.utils.report import write_report_excel

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Compare a PMD/EPIC export against an ECW export')
    parser.add_argument('primary', help='Primary export (PMD or EPIC)')
    parser.add_argument('secondary', help='Secondary export (ECW)')
    parser.add_argument('--profile', default='epic', choices=sorted(PROFILES), help='Column layout and preset options')
    parser.add_argument('--match-key', choices=['exact-name', 'fuzzy-name', 'date-only'])
    parser.add_argument('--provider-match', choices=['exact', 'fuzzy', 'off'])
    parser.add_argument('--granularity', dest='missing_cpt_granularity', choices=['per-visit', 'per-code'])
    parser.add_argument('--name-threshold', type=float)
    parser.add_argument('--provider-threshold', type=float)
    parser.add_argument('--scorer', choices=['dice', 'token_sort'])
    parser.add_argument('--duplicate-key', choices=['with-name', 'without-name'])
    parser.add_argument('--output', help='Write the full report to this .xlsx or .json file')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    try:
        config = build_config(
            args.profile,
            match_key=args.match_key,
            provider_match=args.provider_match,
            missing_cpt_granularity=args.missing_cpt_granularity,
            name_threshold=args.name_threshold,
            provider_threshold=args.provider_threshold,
            scorer=args.scorer,
            duplicate_key=args.duplicate_key,
        )
        report = compare_files(args.primary, args.secondary, config)
    except ReconcileError as e:
        logger.error(f"Comparison failed: {e}")
        return 1

    for name, count in report.stats.items():
        print(f"{name}: {count}")

    if args.output:
        ext = os.path.splitext(args.output)[1].lower()
        if ext == '.json':
            with open(args.output, 'w') as f:
                json.dump(report.to_dict(), f, indent=2)
        else:
            write_report_excel(report, args.output)
        print(f"✅ Report written to {args.output}")

    return 0


if __name__ == '__main__':
    sys.exit(main())
