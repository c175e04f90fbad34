import os
import sys
import pytest
from pathlib import Path

# Add the project root directory to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config.settings import (
    CompareConfig, ENV_OPTIONS, EPIC_COLUMNS, ECW_COLUMNS, ECW_RESOURCE_COLUMNS, PMD_COLUMNS,
)
from reconcile.utils.models import PatientKey, ProviderName, Side, Visit

EXCLUDED = frozenset({"IMG1117", "IMG256778", "IMG524", "99999"})
MIDLEVEL = "Midlevel Visit: Visit done in coordination with midlevel:"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep RECONCILE_* settings from a local .env out of the tests"""
    for var in ENV_OPTIONS.values():
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def epic_config():
    return CompareConfig(
        primary_columns=EPIC_COLUMNS,
        secondary_columns=ECW_RESOURCE_COLUMNS,
        match_key="exact-name",
        provider_match="fuzzy",
        missing_cpt_granularity="per-code",
        check_diagnosis=True,
        excluded_codes=EXCLUDED,
    )


@pytest.fixture
def hospital_config():
    return CompareConfig(
        primary_columns=PMD_COLUMNS,
        secondary_columns=ECW_COLUMNS,
        match_key="exact-name",
        provider_match="off",
        missing_cpt_granularity="per-visit",
        excluded_codes=EXCLUDED,
    )


@pytest.fixture
def make_visit():
    """Build Visits directly; secondary rows get one code each"""
    def _make(side=Side.PRIMARY, row_number=2, last="doe", first="jane", dob="02/18/1982",
              service_date="02/28/1982", codes=("99213",), provider=None, claim=None,
              diagnosis=(), icd=()):
        return Visit(
            side=side,
            row_number=row_number,
            patient_key=PatientKey(last_name=last, first_name=first),
            dob=dob,
            service_date=service_date,
            charge_codes=tuple(codes),
            provider=provider or ProviderName(first_name="john", last_name="smith"),
            claim_number=claim,
            diagnosis_codes=tuple(diagnosis),
            icd_codes=tuple(icd),
            row_id=str(row_number),
            patient_name=f"{last.title()}, {first.title()}",
        )
    return _make


@pytest.fixture
def epic_row():
    """Scenario A primary row"""
    return {
        "ID": 1,
        "Patient Name": "Doe, Jane",
        "DOB": 30000,
        "Svc Date": 30010,
        "CPT Code": "99213",
        "Diagnosis": None,
        "Service Provider": "Smith, John",
        "Billing Provider": "Smith, John",
    }


@pytest.fixture
def ecw_row():
    """Secondary row matching epic_row"""
    return {
        "Patient": "Doe, Jane",
        "Patient DOB": 30000,
        "Start Date of Service": 30010,
        "CPT Code": 99213,
        "Claim No": 555,
        "Resource Provider": "John-Smith",
        "ICD1 Code": None,
        "ICD2 Code": None,
        "ICD3 Code": None,
        "ICD4 Code": None,
    }


@pytest.fixture
def pmd_row():
    return {
        "Visit ID": "V1",
        "Patient Last": "Doe",
        "Patient First": "Jane",
        "Patient DOB": "02/18/1982",
        "Visit Date": 30010,
        "Charge1": "99213",
        "Charge2": "36415",
        "Charge3": "99214",
        "Provider": "Smith, John",
        MIDLEVEL: None,
    }


@pytest.fixture
def ecw_pmd_rows():
    """ECW rows for pmd_row: two of its three charges billed"""
    base = {
        "Patient": "DOE, JANE M",
        "Patient DOB": 30000,
        "Start Date of Service": "02/28/1982",
        "Rendering Provider": "Smith, John",
        "Resource Provider": "John",
    }
    return [
        {**base, "CPT Code": 99213, "Claim No": "C1"},
        {**base, "CPT Code": "36415", "Claim No": "C1"},
    ]
