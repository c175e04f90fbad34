import os
import tempfile
from dataclasses import dataclass, replace, field
from typing import Any, Dict, FrozenSet, Optional, Tuple

from dotenv import load_dotenv

from reconcile.utils.errors import ConfigError
from reconcile.utils.filter_excluded import load_excluded_codes
from reconcile.utils.models import ColumnMap
from reconcile.utils.similarity import SCORERS

load_dotenv()

# Upload handling
UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(tempfile.gettempdir(), "reconcile_uploads"))
ALLOWED_EXTENSIONS = {".xlsx", ".xls", ".csv"}
CORS_ORIGIN = os.getenv("CORS_ORIGIN", "http://localhost:5173")

# Acceptable option values
MATCH_KEYS = ("exact-name", "fuzzy-name", "date-only")
PROVIDER_MATCHES = ("exact", "fuzzy", "off")
GRANULARITIES = ("per-visit", "per-code")
DUPLICATE_KEYS = ("with-name", "without-name")

# Environment names for each option; a set variable overrides the profile preset
ENV_OPTIONS = {
    "match_key": "RECONCILE_MATCH_KEY",
    "provider_match": "RECONCILE_PROVIDER_MATCH",
    "missing_cpt_granularity": "RECONCILE_MISSING_CPT_GRANULARITY",
    "name_threshold": "RECONCILE_NAME_THRESHOLD",
    "provider_threshold": "RECONCILE_PROVIDER_THRESHOLD",
    "scorer": "RECONCILE_SCORER",
    "duplicate_key": "RECONCILE_DUPLICATE_KEY",
}

# Source exports
EPIC_COLUMNS = ColumnMap(
    row_id="ID",
    patient_name="Patient Name",
    dob="DOB",
    service_date="Svc Date",
    charge_codes=("CPT Code",),
    diagnosis="Diagnosis",
    provider_first="Service Provider",
    provider_last="Billing Provider",
)

PMD_COLUMNS = ColumnMap(
    row_id="Visit ID",
    patient_last="Patient Last",
    patient_first="Patient First",
    dob="Patient DOB",
    service_date="Visit Date",
    charge_codes=("Charge1", "Charge2", "Charge3"),
    provider="Provider",
    midlevel_override="Midlevel Visit: Visit done in coordination with midlevel:",
)

ECW_COLUMNS = ColumnMap(
    patient_name="Patient",
    dob="Patient DOB",
    service_date="Start Date of Service",
    charge_codes=("CPT Code",),
    claim_number="Claim No",
    provider_last="Rendering Provider",
    provider_first="Resource Provider",
    icd_codes=("ICD1 Code", "ICD2 Code", "ICD3 Code", "ICD4 Code"),
)

# Against EPIC, ECW carries the provider as "First-Last" in Resource Provider
ECW_RESOURCE_COLUMNS = replace(ECW_COLUMNS, provider_last=None, provider_first=None,
                               provider_hyphenated="Resource Provider")


def _to_float(name: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number, got {value!r}")
    if not 0.0 <= number <= 1.0:
        raise ConfigError(f"{name} must be between 0 and 1, got {number}")
    return number


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class CompareConfig:
    primary_columns: ColumnMap
    secondary_columns: ColumnMap
    match_key: str = "exact-name"
    provider_match: str = "fuzzy"
    missing_cpt_granularity: str = "per-visit"
    name_threshold: float = 0.7
    provider_threshold: float = 0.7
    scorer: str = "dice"
    check_diagnosis: bool = False
    duplicate_key: str = "with-name"
    excluded_codes: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        self._check("match_key", MATCH_KEYS)
        self._check("provider_match", PROVIDER_MATCHES)
        self._check("missing_cpt_granularity", GRANULARITIES)
        self._check("duplicate_key", DUPLICATE_KEYS)
        self._check("scorer", tuple(SCORERS))
        object.__setattr__(self, "name_threshold", _to_float("name_threshold", self.name_threshold))
        object.__setattr__(self, "provider_threshold", _to_float("provider_threshold", self.provider_threshold))
        object.__setattr__(self, "check_diagnosis", _to_bool(self.check_diagnosis))
        object.__setattr__(self, "excluded_codes",
                           frozenset(str(c).strip().upper() for c in self.excluded_codes))

    def _check(self, name: str, allowed: Tuple[str, ...]):
        value = getattr(self, name)
        if value not in allowed:
            raise ConfigError(f"Invalid {name} '{value}'. Expected one of: {', '.join(allowed)}")

    def with_overrides(self, **overrides) -> "CompareConfig":
        """Copy with the given options replaced; None values are ignored."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        unknown = set(changes) - set(self.__dataclass_fields__)
        if unknown:
            raise ConfigError(f"Unknown option(s): {', '.join(sorted(unknown))}")
        return replace(self, **changes)

    def describe(self) -> Dict[str, Any]:
        return {
            "match_key": self.match_key,
            "provider_match": self.provider_match,
            "missing_cpt_granularity": self.missing_cpt_granularity,
            "name_threshold": self.name_threshold,
            "provider_threshold": self.provider_threshold,
            "scorer": self.scorer,
            "check_diagnosis": self.check_diagnosis,
            "duplicate_key": self.duplicate_key,
            "excluded_codes": sorted(self.excluded_codes),
        }


@dataclass(frozen=True)
class Profile:
    name: str
    primary_field: str
    secondary_field: str
    primary_columns: ColumnMap
    secondary_columns: ColumnMap
    options: Dict[str, Any]


PROFILES: Dict[str, Profile] = {
    "epic": Profile(
        name="epic",
        primary_field="epicFile",
        secondary_field="ecwFile",
        primary_columns=EPIC_COLUMNS,
        secondary_columns=ECW_RESOURCE_COLUMNS,
        options={"match_key": "exact-name", "provider_match": "fuzzy",
                 "missing_cpt_granularity": "per-code", "check_diagnosis": True},
    ),
    "hospital": Profile(
        name="hospital",
        primary_field="pmdFile",
        secondary_field="ecwFile",
        primary_columns=PMD_COLUMNS,
        secondary_columns=ECW_COLUMNS,
        options={"match_key": "exact-name", "provider_match": "off",
                 "missing_cpt_granularity": "per-visit"},
    ),
    "pmd": Profile(
        name="pmd",
        primary_field="pmdFile",
        secondary_field="ecwFile",
        primary_columns=PMD_COLUMNS,
        secondary_columns=ECW_COLUMNS,
        options={"match_key": "date-only", "provider_match": "exact",
                 "missing_cpt_granularity": "per-visit"},
    ),
    "duplicate": Profile(
        name="duplicate",
        primary_field="pmdFile",
        secondary_field="ecwFile",
        primary_columns=PMD_COLUMNS,
        secondary_columns=ECW_COLUMNS,
        options={"match_key": "exact-name", "provider_match": "off",
                 "missing_cpt_granularity": "per-code"},
    ),
}


def env_options() -> Dict[str, str]:
    return {option: os.getenv(var) for option, var in ENV_OPTIONS.items() if os.getenv(var)}


def get_profile(name: str) -> Profile:
    try:
        return PROFILES[name]
    except KeyError:
        raise ConfigError(f"Unknown profile '{name}'. Expected one of: {', '.join(PROFILES)}")


def build_config(profile_name: str, excluded_codes: Optional[FrozenSet[str]] = None, **overrides) -> CompareConfig:
    """
    Profile preset, then any RECONCILE_* environment variables, then the
    per-run overrides.
    """
    profile = get_profile(profile_name)
    if excluded_codes is None:
        excluded_codes = load_excluded_codes()
    options = {**profile.options, **env_options()}
    config = CompareConfig(
        primary_columns=profile.primary_columns,
        secondary_columns=profile.secondary_columns,
        excluded_codes=excluded_codes,
        **options,
    )
    return config.with_overrides(**overrides)
