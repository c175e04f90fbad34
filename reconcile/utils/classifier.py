# reconcile/utils/classifier.py

from collections import Counter
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Sequence, Tuple

from config.settings import CompareConfig
from reconcile.utils.filter_excluded import split_excluded
from reconcile.utils.matcher import code_matches
from reconcile.utils.models import Category, ClassificationResult, MatchGroup, ProviderName, Visit
from reconcile.utils.normalizer import clean_code
from reconcile.utils.similarity import get_scorer

# Provider comparison outcomes
PROVIDER_EXACT = "exact"
PROVIDER_PARTIAL = "partial"
PROVIDER_NONE = "none"
PROVIDER_NO_DATA = "no_data"
PROVIDER_SKIPPED = "skipped"

COMMENT_EXCLUDED = "Record for patient billing"
COMMENT_MISSING = "Record missing in ECW"
COMMENT_MATCHED = "Completely matched"
COMMENT_PARTIAL = "Partially matched providers"
COMMENT_DUPLICATE = "Duplicate record found in ECW"
REASON_PROVIDER = "providers not matched"


@dataclass(frozen=True)
class CodeOutcome:
    code: str
    row: Optional[Visit] = None
    provider: str = PROVIDER_SKIPPED

    @property
    def found(self) -> bool:
        return self.row is not None


def compare_providers(primary: ProviderName, secondary: ProviderName, config: CompareConfig) -> str:
    """
    Full names are compared whole. When one side only carries part of the
    name (a last name or a midlevel's first name), every word of it has to
    appear in the other side's name.
    """
    if config.provider_match == "off":
        return PROVIDER_SKIPPED
    if primary.is_empty or secondary.is_empty:
        return PROVIDER_NO_DATA

    fuzzy = config.provider_match == "fuzzy"
    scorer = get_scorer(config.scorer)

    if primary.is_full and secondary.is_full:
        a, b = primary.as_text(), secondary.as_text()
        if a == b:
            return PROVIDER_EXACT
        if fuzzy and scorer(a, b) >= config.provider_threshold:
            return PROVIDER_PARTIAL
        return PROVIDER_NONE

    partial, other = (secondary, primary) if primary.is_full else (primary, secondary)
    words = partial.as_text().split()
    other_words = other.as_text().split()
    if all(w in other_words for w in words):
        return PROVIDER_EXACT
    if fuzzy and all(max(scorer(w, o) for o in other_words) >= config.provider_threshold for w in words):
        return PROVIDER_PARTIAL
    return PROVIDER_NONE


def missing_diagnosis_codes(visit: Visit, rows: Sequence[Visit], config: CompareConfig) -> Tuple[str, ...]:
    """Primary diagnosis codes found in none of the rows' ICD columns."""
    if not config.check_diagnosis or not visit.diagnosis_codes or not rows:
        return ()
    billed = {code.upper() for row in rows for code in row.icd_codes}
    return tuple(code for code in visit.diagnosis_codes if code.upper() not in billed)


def _result(visit: Visit, category: str, **fields) -> ClassificationResult:
    return ClassificationResult(
        category=category,
        row_number=visit.row_number,
        row_id=visit.row_id,
        patient_name=visit.patient_name,
        dob=visit.dob,
        service_date=visit.service_date,
        primary_provider=visit.provider.as_text(),
        **fields,
    )


def _claims(rows: Sequence[Visit]) -> Tuple[str, ...]:
    claims = []
    for row in rows:
        if row.claim_number and row.claim_number not in claims:
            claims.append(row.claim_number)
    return tuple(claims)


def _ranked(candidates: Sequence[Visit], visit: Visit) -> List[Visit]:
    # Same-name rows first, otherwise secondary row order
    return sorted(candidates, key=lambda c: c.patient_key != visit.patient_key)


def _settle(reasons: List[str], visit: Visit, outcomes: List[CodeOutcome],
            missing_dx: Tuple[str, ...], charge_codes: Tuple[str, ...]) -> ClassificationResult:
    rows = [o.row for o in outcomes if o.found]
    mismatched = [o for o in outcomes if o.provider == PROVIDER_NONE]
    secondary_row = mismatched[0].row if mismatched else (rows[0] if rows else None)
    common = dict(
        charge_codes=charge_codes,
        claim_numbers=_claims(rows),
        secondary_provider=secondary_row.provider.as_text() if secondary_row else "",
    )

    if reasons:
        return _result(
            visit, Category.MISTAKE,
            missing_codes=tuple(o.code for o in outcomes if not o.found),
            missing_diagnosis_codes=missing_dx,
            comment="; ".join(reasons),
            **common,
        )

    partial = any(o.provider == PROVIDER_PARTIAL for o in outcomes)
    return _result(visit, Category.MATCHED, comment=COMMENT_PARTIAL if partial else COMMENT_MATCHED, **common)


def _reasons(outcomes: List[CodeOutcome], missing_dx: Tuple[str, ...]) -> List[str]:
    reasons = []
    missing = [o.code for o in outcomes if not o.found]
    if missing:
        reasons.append(f"missing CPT: {', '.join(missing)}")
    if any(o.provider == PROVIDER_NONE for o in outcomes):
        reasons.append(REASON_PROVIDER)
    reasons.extend(f"Missing code: {code}" for code in missing_dx)
    return reasons


def classify(visit: Visit, group: MatchGroup, config: CompareConfig,
             consumed: FrozenSet[int] = frozenset()) -> Tuple[List[ClassificationResult], FrozenSet[int]]:
    """
    Classifies one primary visit against its match group.

    `consumed` holds secondary row numbers already claimed earlier in the
    run; the returned set adds the rows this visit claimed. A secondary row
    is claimed once, by the first primary code that matches it.

    Returns:
        (results, consumed)
    """
    billable, excluded = split_excluded(visit.charge_codes, config.excluded_codes)
    results = [_result(visit, Category.EXCLUDED, charge_codes=(code,), comment=COMMENT_EXCLUDED)
               for code in excluded]
    if excluded and not billable:
        return results, consumed

    if group.is_empty:
        results.append(_result(visit, Category.MISSING, charge_codes=tuple(billable), comment=COMMENT_MISSING))
        return results, consumed

    if not billable:
        # Visit without charge codes: being present is all there is to check
        results.append(_result(visit, Category.MATCHED, claim_numbers=_claims(group.candidates),
                               comment=COMMENT_MATCHED))
        return results, consumed

    used = set(consumed)
    outcomes = []
    # Slots still to come per cleaned code; their rows are not duplicates
    remaining = Counter(clean_code(code) for code in billable)
    for code in billable:
        cleaned = clean_code(code)
        remaining[cleaned] -= 1
        hits = [c for c in _ranked(group.candidates, visit)
                if c.row_number not in used and code_matches(code, c)]
        if not hits:
            outcomes.append(CodeOutcome(code=code))
            continue

        first, rest = hits[0], hits[1:]
        if config.duplicate_key == "with-name":
            rest = [r for r in rest if r.patient_key == first.patient_key]
        extras = rest[remaining[cleaned]:]
        used.add(first.row_number)
        used.update(e.row_number for e in extras)
        for extra in extras:
            results.append(_result(
                visit, Category.DUPLICATE,
                charge_codes=(code,),
                claim_numbers=_claims([extra]),
                secondary_provider=extra.provider.as_text(),
                times_present=len(rest) + 1,
                comment=COMMENT_DUPLICATE,
            ))
        outcomes.append(CodeOutcome(code=code, row=first,
                                    provider=compare_providers(visit.provider, first.provider, config)))

    if config.missing_cpt_granularity == "per-visit":
        found_rows = [o.row for o in outcomes if o.found]
        missing_dx = missing_diagnosis_codes(visit, found_rows, config)
        results.append(_settle(_reasons(outcomes, missing_dx), visit, outcomes, missing_dx, tuple(billable)))
    else:
        for outcome in outcomes:
            missing_dx = missing_diagnosis_codes(visit, [outcome.row] if outcome.found else [], config)
            results.append(_settle(_reasons([outcome], missing_dx), visit, [outcome], missing_dx,
                                   (outcome.code,)))

    return results, frozenset(used)
