# reconcile/utils/matcher.py

import logging
from typing import Dict, List

from config.settings import CompareConfig
from reconcile.utils.models import MatchGroup, MatchKey, PatientKey, Visit
from reconcile.utils.normalizer import clean_code
from reconcile.utils.similarity import get_scorer

logger = logging.getLogger(__name__)


def index_key(visit: Visit, config: CompareConfig) -> MatchKey:
    """
    exact-name indexes on (name, dob, service date). fuzzy-name and
    date-only index on the dates alone; fuzzy-name filters names afterwards.
    """
    if config.match_key == "exact-name":
        return MatchKey(dob=visit.dob, service_date=visit.service_date, patient_key=visit.patient_key)
    return MatchKey(dob=visit.dob, service_date=visit.service_date)


def build_index(secondary: List[Visit], config: CompareConfig) -> Dict[MatchKey, List[Visit]]:
    index: Dict[MatchKey, List[Visit]] = {}
    for visit in secondary:
        index.setdefault(index_key(visit, config), []).append(visit)
    logger.debug(f"Indexed {len(secondary)} secondary rows under {len(index)} keys ({config.match_key})")
    return index


def names_agree(a: PatientKey, b: PatientKey, config: CompareConfig) -> bool:
    if a == b:
        return True
    if config.match_key != "fuzzy-name":
        return False
    return get_scorer(config.scorer)(a.as_text(), b.as_text()) >= config.name_threshold


def match(primary: List[Visit], secondary: List[Visit], config: CompareConfig) -> List[MatchGroup]:
    """
    One MatchGroup per primary visit, in primary row order. Candidates keep
    secondary row order. A group with no candidates means the visit is
    missing from the secondary export.
    """
    index = build_index(secondary, config)
    groups = []
    for visit in primary:
        key = index_key(visit, config)
        candidates = index.get(key, [])
        if config.match_key == "fuzzy-name":
            key = MatchKey(dob=visit.dob, service_date=visit.service_date, patient_key=visit.patient_key)
            candidates = [c for c in candidates if names_agree(visit.patient_key, c.patient_key, config)]
        groups.append(MatchGroup(key=key, primary=visit, candidates=tuple(candidates)))
    return groups


def code_matches(code: str, candidate: Visit) -> bool:
    cleaned = clean_code(code)
    if not cleaned:
        return False
    return any(clean_code(c) == cleaned for c in candidate.charge_codes)
