# reconcile/utils/normalizer.py

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from reconcile.utils.dates import format_date
from reconcile.utils.errors import InputAccessError
from reconcile.utils.models import ColumnMap, PatientKey, ProviderName, Side, SkippedRow, Visit

logger = logging.getLogger(__name__)

NAME_TOKEN_SPLIT = re.compile(r"[ .\-]+")
PROVIDER_PUNCTUATION = re.compile(r"[-,.]")
ANNOTATION_RE = re.compile(r"\([^)]*\)")
DIAGNOSIS_RE = re.compile(r"\[(.*?)\]")

MAX_DIAGNOSIS_CODES = 2


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def cell_text(value: Any) -> str:
    """Cell as trimmed text. Whole floats lose their '.0' (99213.0 -> '99213')."""
    if is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _required(row: Dict[str, Any], column: Optional[str], row_number: int) -> Any:
    if not column:
        raise InputAccessError("No column configured", field=column, row_number=row_number)
    if column not in row:
        raise InputAccessError(f"Missing column '{column}'", field=column, row_number=row_number)
    return row[column]


def _optional(row: Dict[str, Any], column: Optional[str]) -> str:
    if not column:
        return ""
    return cell_text(row.get(column))


# ---------------------------------------------------------------------------
# Names
# ---------------------------------------------------------------------------

def fold_name_part(text: str) -> str:
    """Leading token of a name part, lowercased ('Smith-Jones' -> 'smith')."""
    if not text:
        return ""
    words = [w for w in NAME_TOKEN_SPLIT.split(text.strip()) if w]
    return words[0].lower() if words else ""


def fold_patient_name(full_name: str) -> PatientKey:
    parts = [p.strip() for p in full_name.split(",")]
    last = parts[0] if parts else ""
    first = parts[1] if len(parts) > 1 else ""
    return PatientKey(last_name=fold_name_part(last), first_name=fold_name_part(first))


def _patient(row: Dict[str, Any], column_map: ColumnMap, row_number: int) -> Tuple[PatientKey, str]:
    if column_map.patient_name:
        value = _required(row, column_map.patient_name, row_number)
        if not isinstance(value, str) or not value.strip():
            raise InputAccessError("Patient name is empty", field=column_map.patient_name, row_number=row_number)
        return fold_patient_name(value), value.strip()

    last = _required(row, column_map.patient_last, row_number)
    first = _required(row, column_map.patient_first, row_number)
    if not isinstance(last, str) or not last.strip():
        raise InputAccessError("Patient last name is empty", field=column_map.patient_last, row_number=row_number)
    first = first.strip() if isinstance(first, str) else ""
    key = PatientKey(last_name=fold_name_part(last), first_name=fold_name_part(first))
    return key, f"{last.strip()}, {first}".strip().rstrip(",")


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------

def clean_provider_text(text: str) -> str:
    text = PROVIDER_PUNCTUATION.sub("", text.lower())
    return " ".join(text.split())


def _last_from(text: str) -> str:
    return clean_provider_text(text.split(",")[0])


def _first_from(text: str) -> str:
    if "," in text:
        return clean_provider_text(text.split(",", 1)[1])
    words = text.split()
    return clean_provider_text(words[0]) if words else ""


def derive_provider(row: Dict[str, Any], column_map: ColumnMap) -> ProviderName:
    """
    Provider of record for a row. A filled midlevel override wins over the
    'Provider' column; exports that split the name over two columns are
    recombined. Absent or blank provider data gives an empty ProviderName.
    """
    midlevel = _optional(row, column_map.midlevel_override)
    if midlevel:
        return ProviderName(last_name=clean_provider_text(midlevel.split()[0]))

    provider = _optional(row, column_map.provider)
    if provider:
        return ProviderName(last_name=_last_from(provider))

    first = _optional(row, column_map.provider_first)
    last = _optional(row, column_map.provider_last)
    if first or last:
        return ProviderName(first_name=_first_from(first) if first else "",
                            last_name=_last_from(last) if last else "")

    hyphenated = _optional(row, column_map.provider_hyphenated)
    if hyphenated:
        parts = [p.strip().rstrip(",") for p in hyphenated.split("-")]
        return ProviderName(first_name=clean_provider_text(parts[0]),
                            last_name=clean_provider_text(parts[1]) if len(parts) > 1 else "")

    return ProviderName()


# ---------------------------------------------------------------------------
# Codes
# ---------------------------------------------------------------------------

def clean_code(code: Any) -> str:
    """
    Comparable form of a charge code: annotations in parentheses, whitespace
    and non-digits removed. Codes with no digits at all keep their letters.
    """
    text = ANNOTATION_RE.sub("", cell_text(code))
    digits = re.sub(r"\D", "", text)
    if digits:
        return digits
    return re.sub(r"[^A-Za-z0-9]", "", text).upper()


def collect_charge_codes(row: Dict[str, Any], column_map: ColumnMap, row_number: int) -> Tuple[str, ...]:
    if column_map.charge_codes and not any(c in row for c in column_map.charge_codes):
        raise InputAccessError(f"Missing column '{column_map.charge_codes[0]}'",
                               field=column_map.charge_codes[0], row_number=row_number)
    codes = [cell_text(row.get(column)) for column in column_map.charge_codes]
    return tuple(code for code in codes if code)


def extract_diagnosis_codes(text: str) -> Tuple[str, ...]:
    """'Sprain [S93.401A], Pain [M25.571]' -> ('S93.401A', 'M25.571')"""
    codes = [c.strip() for c in DIAGNOSIS_RE.findall(text or "")]
    return tuple(c for c in codes if c)[:MAX_DIAGNOSIS_CODES]


# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------

def normalize(raw_row: Dict[str, Any], side: str, column_map: ColumnMap, row_number: int = 0) -> Visit:
    """
    Maps one raw spreadsheet row to a Visit.

    Raises InputAccessError (or MalformedDateError) when the patient name
    or either date is absent or unusable.
    """
    patient_key, display_name = _patient(raw_row, column_map, row_number)
    dob = format_date(_required(raw_row, column_map.dob, row_number),
                      field=column_map.dob, row_number=row_number)
    service_date = format_date(_required(raw_row, column_map.service_date, row_number),
                               field=column_map.service_date, row_number=row_number)

    diagnosis_codes: Tuple[str, ...] = ()
    if side == Side.PRIMARY and column_map.diagnosis:
        diagnosis_codes = extract_diagnosis_codes(_optional(raw_row, column_map.diagnosis))

    icd_codes: Tuple[str, ...] = ()
    if side == Side.SECONDARY:
        icd_codes = tuple(c for c in (_optional(raw_row, col) for col in column_map.icd_codes) if c)

    return Visit(
        side=side,
        row_number=row_number,
        patient_key=patient_key,
        dob=dob,
        service_date=service_date,
        charge_codes=collect_charge_codes(raw_row, column_map, row_number),
        provider=derive_provider(raw_row, column_map),
        claim_number=_optional(raw_row, column_map.claim_number) or None,
        diagnosis_codes=diagnosis_codes,
        icd_codes=icd_codes,
        row_id=_optional(raw_row, column_map.row_id) or None,
        patient_name=display_name,
    )


def normalize_rows(rows: Iterable[Dict[str, Any]], side: str,
                   column_map: ColumnMap) -> Tuple[List[Visit], List[SkippedRow]]:
    """
    Normalizes every row of one source. Rows with an unusable name or date
    are skipped and reported instead of failing the batch.

    Row numbers follow the spreadsheet: the header is row 1.
    """
    visits = []
    skipped = []
    for idx, row in enumerate(rows):
        row_number = idx + 2
        try:
            visits.append(normalize(row, side, column_map, row_number=row_number))
        except InputAccessError as e:
            logger.warning(f"Skipping {side} row {row_number}: {e}")
            skipped.append(SkippedRow(side=side, row_number=row_number, field=e.field, reason=str(e)))
    return visits, skipped
