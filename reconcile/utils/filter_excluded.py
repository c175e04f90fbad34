# reconcile/utils/filter_excluded.py

import os
import json
from pathlib import Path
from typing import FrozenSet, Iterable, List, Tuple
from dotenv import load_dotenv
from reconcile.utils.normalizer import clean_code

load_dotenv()
DATA_DIR = os.getenv("DATA_DIR", str(Path(__file__).resolve().parents[1] / "data"))
EXCLUDED_JSON_PATH = os.path.join(DATA_DIR, "excluded_codes.json")


def load_excluded_codes(path: str = EXCLUDED_JSON_PATH) -> FrozenSet[str]:
    """
    Self-pay / patient billing codes. The JSON maps each code to a label:
    {"excluded_codes": {"IMG1117": "...", ...}}
    """
    with open(path, 'r') as f:
        data = json.load(f)
    return frozenset(str(code).strip().upper() for code in data.get("excluded_codes", {}))


def is_excluded(code: str, excluded_codes: FrozenSet[str]) -> bool:
    if not excluded_codes:
        return False
    if code.strip().upper() in excluded_codes:
        return True
    # Annotated forms like "99999 (self pay)" only match digit-only codes
    return clean_code(code) in {c for c in excluded_codes if c.isdigit()}


def split_excluded(codes: Iterable[str], excluded_codes: FrozenSet[str]) -> Tuple[List[str], List[str]]:
    """
    Returns:
        (billable_codes, excluded_codes) with the original order kept
    """
    billable = []
    skipped = []
    for code in codes:
        if is_excluded(code, excluded_codes):
            skipped.append(code)
        else:
            billable.append(code)
    return billable, skipped
