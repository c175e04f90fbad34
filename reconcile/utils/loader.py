# reconcile/utils/loader.py

import os
import logging
from typing import Any, Dict, List

import pandas as pd

from reconcile.utils.errors import SpreadsheetReadError

logger = logging.getLogger(__name__)


def read_first_sheet(path: str) -> List[Dict[str, Any]]:
    """
    Reads the first sheet of an Excel workbook (or a CSV file) into an
    ordered list of {column label: cell value} rows. Empty cells are None.
    """
    ext = os.path.splitext(str(path))[1].lower()
    try:
        if ext == ".csv":
            df = pd.read_csv(path, dtype=object)
        else:
            df = pd.read_excel(path, sheet_name=0, dtype=object)
    except Exception as e:
        raise SpreadsheetReadError(f"Could not read {os.path.basename(str(path))}: {e}") from e

    df.columns = [str(c).strip() for c in df.columns]
    df = df.astype(object).where(pd.notna(df), None)
    rows = df.to_dict(orient="records")
    logger.info(f"Read {len(rows)} rows from {os.path.basename(str(path))}")
    return rows
