# reconcile/utils/report.py

from typing import Iterable, List

import pandas as pd

from reconcile.utils.models import Category, ClassificationResult, ComparisonReport, SkippedRow

BUCKETS = {
    Category.MATCHED: "matched",
    Category.MISSING: "missing",
    Category.DUPLICATE: "duplicates",
    Category.MISTAKE: "mistakes",
    Category.EXCLUDED: "excluded",
}


def build_report(results: Iterable[ClassificationResult], skipped: Iterable[SkippedRow],
                 primary_row_count: int = 0, secondary_row_count: int = 0) -> ComparisonReport:
    """Folds classification results into per-category buckets, keeping their order."""
    buckets = {name: [] for name in BUCKETS.values()}
    for result in results:
        buckets[BUCKETS[result.category]].append(result)
    return ComparisonReport(
        skipped=tuple(skipped),
        primary_row_count=primary_row_count,
        secondary_row_count=secondary_row_count,
        **{name: tuple(items) for name, items in buckets.items()},
    )


def _frame(records: List[dict]) -> pd.DataFrame:
    df = pd.DataFrame(records)
    for column in df.columns:
        df[column] = df[column].apply(lambda v: ", ".join(v) if isinstance(v, list) else v)
    return df


def write_report_excel(report: ComparisonReport, path: str):
    """One sheet per bucket plus a Stats sheet."""
    data = report.to_dict()
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame([data["stats"]]).to_excel(writer, sheet_name="Stats", index=False)
        for name in list(BUCKETS.values()) + ["skipped"]:
            _frame(data[name]).to_excel(writer, sheet_name=name.capitalize(), index=False)
