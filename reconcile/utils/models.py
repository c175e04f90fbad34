# reconcile/utils/models.py

from dataclasses import dataclass, field, asdict
from typing import List, Optional, Dict, Tuple, Any


class Side:
    PRIMARY = "PRIMARY"
    SECONDARY = "SECONDARY"


class Category:
    EXCLUDED = "EXCLUDED"
    MISSING = "MISSING"
    DUPLICATE = "DUPLICATE"
    MATCHED = "MATCHED"
    MISTAKE = "MISTAKE"


@dataclass(frozen=True)
class ColumnMap:
    """Column labels of one source export. Optional columns may be None."""
    dob: str
    service_date: str
    charge_codes: Tuple[str, ...]
    patient_name: Optional[str] = None  # "Last, First" in one cell
    patient_last: Optional[str] = None
    patient_first: Optional[str] = None
    row_id: Optional[str] = None
    provider: Optional[str] = None  # "Last, First"; text before the comma is used
    midlevel_override: Optional[str] = None
    provider_first: Optional[str] = None
    provider_last: Optional[str] = None
    provider_hyphenated: Optional[str] = None  # "First-Last"
    claim_number: Optional[str] = None
    diagnosis: Optional[str] = None
    icd_codes: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PatientKey:
    last_name: str = ""
    first_name: str = ""

    def as_text(self) -> str:
        """'last first' form used by the fuzzy scorers."""
        return f"{self.last_name} {self.first_name}".strip()


@dataclass(frozen=True)
class ProviderName:
    first_name: str = ""
    last_name: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.first_name or self.last_name)

    @property
    def is_full(self) -> bool:
        return bool(self.first_name and self.last_name)

    def tokens(self) -> List[str]:
        return [t for t in (self.first_name, self.last_name) if t]

    def as_text(self) -> str:
        return " ".join(self.tokens())


@dataclass(frozen=True)
class Visit:
    side: str
    row_number: int
    patient_key: PatientKey
    dob: str
    service_date: str
    charge_codes: Tuple[str, ...] = ()
    provider: ProviderName = field(default_factory=ProviderName)
    claim_number: Optional[str] = None
    diagnosis_codes: Tuple[str, ...] = ()
    icd_codes: Tuple[str, ...] = ()
    row_id: Optional[str] = None
    patient_name: str = ""


@dataclass(frozen=True)
class MatchKey:
    dob: str
    service_date: str
    patient_key: Optional[PatientKey] = None


@dataclass(frozen=True)
class MatchGroup:
    key: MatchKey
    primary: Visit
    candidates: Tuple[Visit, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.candidates


@dataclass(frozen=True)
class ClassificationResult:
    category: str
    row_number: int
    row_id: Optional[str] = None
    patient_name: str = ""
    dob: str = ""
    service_date: str = ""
    charge_codes: Tuple[str, ...] = ()
    claim_numbers: Tuple[str, ...] = ()
    primary_provider: str = ""
    secondary_provider: str = ""
    missing_codes: Tuple[str, ...] = ()
    missing_diagnosis_codes: Tuple[str, ...] = ()
    times_present: int = 0
    comment: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, tuple):
                data[key] = list(value)
        return data


@dataclass(frozen=True)
class SkippedRow:
    side: str
    row_number: int
    field: Optional[str]
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ComparisonReport:
    matched: Tuple[ClassificationResult, ...] = ()
    missing: Tuple[ClassificationResult, ...] = ()
    duplicates: Tuple[ClassificationResult, ...] = ()
    mistakes: Tuple[ClassificationResult, ...] = ()
    excluded: Tuple[ClassificationResult, ...] = ()
    skipped: Tuple[SkippedRow, ...] = ()
    primary_row_count: int = 0
    secondary_row_count: int = 0

    @property
    def stats(self) -> Dict[str, int]:
        return {
            "matched_count": len(self.matched),
            "missing_count": len(self.missing),
            "duplicate_count": len(self.duplicates),
            "mistake_count": len(self.mistakes),
            "excluded_count": len(self.excluded),
            "skipped_primary_count": sum(1 for s in self.skipped if s.side == Side.PRIMARY),
            "skipped_secondary_count": sum(1 for s in self.skipped if s.side == Side.SECONDARY),
            "primary_row_count": self.primary_row_count,
            "secondary_row_count": self.secondary_row_count,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matched": [r.to_dict() for r in self.matched],
            "missing": [r.to_dict() for r in self.missing],
            "duplicates": [r.to_dict() for r in self.duplicates],
            "mistakes": [r.to_dict() for r in self.mistakes],
            "excluded": [r.to_dict() for r in self.excluded],
            "skipped": [s.to_dict() for s in self.skipped],
            "stats": self.stats,
        }
