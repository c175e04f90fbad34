import pytest
from dataclasses import replace

from reconcile.utils.classifier import (
    PROVIDER_EXACT, PROVIDER_NO_DATA, PROVIDER_NONE, PROVIDER_PARTIAL, PROVIDER_SKIPPED,
    classify, compare_providers, missing_diagnosis_codes,
)
from reconcile.utils.matcher import match
from reconcile.utils.models import Category, ProviderName, Side


def _classify(primary, secondary, config):
    """Run match + classify over several visits, carrying claimed rows forward"""
    results = []
    consumed = frozenset()
    for group in match(primary, secondary, config):
        visit_results, consumed = classify(group.primary, group, config, consumed)
        results.extend(visit_results)
    return results


def _categories(results):
    return [r.category for r in results]


class TestProviders:

    def test_full_names_exact(self, epic_config):
        assert compare_providers(ProviderName("john", "smith"), ProviderName("john", "smith"),
                                 epic_config) == PROVIDER_EXACT

    def test_full_names_partial(self, epic_config):
        assert compare_providers(ProviderName("john", "smith"), ProviderName("jon", "smith"),
                                 epic_config) == PROVIDER_PARTIAL

    def test_full_names_exact_mode(self, epic_config):
        config = replace(epic_config, provider_match="exact")
        assert compare_providers(ProviderName("john", "smith"), ProviderName("jon", "smith"),
                                 config) == PROVIDER_NONE

    def test_last_name_only_against_full(self, epic_config):
        assert compare_providers(ProviderName(last_name="smith"), ProviderName("john", "smith"),
                                 epic_config) == PROVIDER_EXACT
        assert compare_providers(ProviderName(last_name="smyth"), ProviderName("mary", "jones"),
                                 epic_config) == PROVIDER_NONE

    def test_no_data(self, epic_config):
        assert compare_providers(ProviderName(), ProviderName("john", "smith"), epic_config) == PROVIDER_NO_DATA

    def test_off(self, hospital_config):
        assert compare_providers(ProviderName("a", "b"), ProviderName("c", "d"), hospital_config) == PROVIDER_SKIPPED


class TestScenarios:

    def test_matched_carries_claim(self, make_visit, epic_config):
        primary = make_visit()
        secondary = make_visit(side=Side.SECONDARY, claim="CLM-1")
        results = _classify([primary], [secondary], epic_config)

        assert _categories(results) == [Category.MATCHED]
        assert results[0].claim_numbers == ("CLM-1",)
        assert results[0].comment == "Completely matched"

    def test_empty_group_is_missing_only(self, make_visit, epic_config):
        primary = make_visit(codes=("99213", "36415"))
        secondary = make_visit(side=Side.SECONDARY, service_date="03/01/1982")
        results = _classify([primary], [secondary], epic_config)

        assert _categories(results) == [Category.MISSING]
        assert results[0].comment == "Record missing in ECW"
        assert results[0].charge_codes == ("99213", "36415")

    def test_provider_mismatch(self, make_visit, epic_config):
        primary = make_visit(codes=("99214",))
        secondary = make_visit(side=Side.SECONDARY, codes=("99214",),
                               provider=ProviderName("mary", "jones"), claim="C9")
        results = _classify([primary], [secondary], epic_config)

        assert _categories(results) == [Category.MISTAKE]
        assert "providers not matched" in results[0].comment
        assert results[0].primary_provider == "john smith"
        assert results[0].secondary_provider == "mary jones"
        assert results[0].claim_numbers == ("C9",)

    def test_partial_provider_still_matches(self, make_visit, epic_config):
        secondary = make_visit(side=Side.SECONDARY, provider=ProviderName("jon", "smith"))
        results = _classify([make_visit()], [secondary], epic_config)

        assert _categories(results) == [Category.MATCHED]
        assert results[0].comment == "Partially matched providers"

    def test_excluded_code_short_circuits(self, make_visit, epic_config):
        primary = make_visit(codes=("IMG1117",))
        secondary = make_visit(side=Side.SECONDARY, codes=("IMG1117",), provider=ProviderName("mary", "jones"))

        for rows in ([], [secondary]):
            results = _classify([primary], rows, epic_config)
            assert _categories(results) == [Category.EXCLUDED]
            assert results[0].comment == "Record for patient billing"

    def test_excluded_by_cleaned_code(self, make_visit, epic_config):
        results = _classify([make_visit(codes=(" 99999 (self pay)",))], [], epic_config)
        assert _categories(results) == [Category.EXCLUDED]

    def test_mixed_excluded_and_billable(self, make_visit, hospital_config):
        primary = make_visit(codes=("99999", "99213"))
        secondary = make_visit(side=Side.SECONDARY, codes=("99213",))
        results = _classify([primary], [secondary], hospital_config)

        assert _categories(results) == [Category.EXCLUDED, Category.MATCHED]
        assert results[1].charge_codes == ("99213",)


class TestDuplicates:

    def test_three_rows_one_code(self, make_visit, epic_config):
        secondary = [make_visit(side=Side.SECONDARY, row_number=n, claim=f"C{n}") for n in (2, 3, 4)]
        results = _classify([make_visit()], secondary, epic_config)

        assert sorted(_categories(results)) == sorted([Category.MATCHED, Category.DUPLICATE, Category.DUPLICATE])
        matched = [r for r in results if r.category == Category.MATCHED]
        duplicates = [r for r in results if r.category == Category.DUPLICATE]
        assert matched[0].claim_numbers == ("C2",)
        assert [d.claim_numbers for d in duplicates] == [("C3",), ("C4",)]
        assert all(d.times_present == 3 for d in duplicates)

    def test_consumed_rows_not_reused(self, make_visit, hospital_config):
        """Two identical primary rows and one billed row: never both missing"""
        primary = [make_visit(row_number=2), make_visit(row_number=3)]
        secondary = [make_visit(side=Side.SECONDARY, row_number=2, claim="C1")]
        results = _classify(primary, secondary, hospital_config)

        assert _categories(results) == [Category.MATCHED, Category.MISTAKE]
        assert results[1].comment == "missing CPT: 99213"

    def test_repeated_code_claims_one_row_per_slot(self, make_visit, hospital_config):
        """Charge1 and Charge2 both 99213, billed twice: both found, no duplicate"""
        primary = make_visit(codes=("99213", "99213"))
        secondary = [make_visit(side=Side.SECONDARY, row_number=n, claim=f"C{n}") for n in (2, 3)]

        results = _classify([primary], secondary, hospital_config)
        assert _categories(results) == [Category.MATCHED]
        assert results[0].claim_numbers == ("C2", "C3")

        per_code = _classify([primary], secondary, replace(hospital_config, missing_cpt_granularity="per-code"))
        assert _categories(per_code) == [Category.MATCHED, Category.MATCHED]

    def test_repeated_code_extra_row_is_duplicate(self, make_visit, hospital_config):
        primary = make_visit(codes=("99213", "99213"))
        secondary = [make_visit(side=Side.SECONDARY, row_number=n, claim=f"C{n}") for n in (2, 3, 4)]
        results = _classify([primary], secondary, hospital_config)

        assert _categories(results) == [Category.DUPLICATE, Category.MATCHED]
        assert results[0].claim_numbers == ("C4",)
        assert results[0].times_present == 3
        assert results[1].claim_numbers == ("C2", "C3")

    def test_date_only_duplicate_key(self, make_visit, hospital_config):
        config = replace(hospital_config, match_key="date-only")
        secondary = [
            make_visit(side=Side.SECONDARY, row_number=2, last="roe", first="richard", claim="R1"),
            make_visit(side=Side.SECONDARY, row_number=3, claim="D1"),
        ]

        with_name = _classify([make_visit()], secondary, config)
        assert _categories(with_name) == [Category.MATCHED]
        # The same-name row wins over earlier rows of other patients
        assert with_name[0].claim_numbers == ("D1",)

        without_name = _classify([make_visit()], secondary, replace(config, duplicate_key="without-name"))
        assert sorted(_categories(without_name)) == sorted([Category.DUPLICATE, Category.MATCHED])


class TestGranularity:

    def _rows(self, make_visit):
        primary = make_visit(codes=("99213", "36415", "99214"))
        secondary = [
            make_visit(side=Side.SECONDARY, row_number=2, codes=("99213",), claim="C1"),
            make_visit(side=Side.SECONDARY, row_number=3, codes=("36415",), claim="C1"),
        ]
        return primary, secondary

    def test_per_visit(self, make_visit, hospital_config):
        primary, secondary = self._rows(make_visit)
        results = _classify([primary], secondary, hospital_config)

        assert _categories(results) == [Category.MISTAKE]
        assert results[0].comment == "missing CPT: 99214"
        assert results[0].missing_codes == ("99214",)
        assert results[0].claim_numbers == ("C1",)

    def test_per_code(self, make_visit, hospital_config):
        primary, secondary = self._rows(make_visit)
        config = replace(hospital_config, missing_cpt_granularity="per-code")
        results = _classify([primary], secondary, config)

        assert _categories(results) == [Category.MATCHED, Category.MATCHED, Category.MISTAKE]
        assert [r.charge_codes for r in results] == [("99213",), ("36415",), ("99214",)]

    def test_missing_code_and_provider_combined(self, make_visit, hospital_config):
        primary, secondary = self._rows(make_visit)
        secondary[0] = replace(secondary[0], provider=ProviderName("mary", "jones"))
        config = replace(hospital_config, provider_match="exact")
        results = _classify([primary], secondary, config)

        assert _categories(results) == [Category.MISTAKE]
        assert results[0].comment == "missing CPT: 99214; providers not matched"


class TestDiagnosis:

    def test_missing_icd_code(self, make_visit, epic_config):
        primary = make_visit(diagnosis=("M25.571", "S93.401A"))
        secondary = make_visit(side=Side.SECONDARY, icd=("M25.571",))
        results = _classify([primary], [secondary], epic_config)

        assert _categories(results) == [Category.MISTAKE]
        assert results[0].comment == "Missing code: S93.401A"
        assert results[0].missing_diagnosis_codes == ("S93.401A",)

    def test_all_icd_codes_present(self, make_visit, epic_config):
        primary = make_visit(diagnosis=("M25.571",))
        secondary = make_visit(side=Side.SECONDARY, icd=("Z00.00", "m25.571"))
        assert missing_diagnosis_codes(primary, [secondary], epic_config) == ()

    def test_check_disabled(self, make_visit, hospital_config):
        primary = make_visit(diagnosis=("M25.571",))
        secondary = make_visit(side=Side.SECONDARY)
        assert missing_diagnosis_codes(primary, [secondary], hospital_config) == ()


@pytest.mark.parametrize("granularity", ["per-visit", "per-code"])
def test_excluded_never_reaches_other_buckets(make_visit, epic_config, granularity):
    config = replace(epic_config, missing_cpt_granularity=granularity)
    primary = make_visit(codes=("IMG524", "99213", "IMG256778"))
    secondary = make_visit(side=Side.SECONDARY, codes=("99214",))
    results = _classify([primary], [secondary], config)

    for result in results:
        if result.category != Category.EXCLUDED:
            assert "IMG524" not in result.charge_codes
            assert "IMG256778" not in result.charge_codes
    assert _categories(results).count(Category.EXCLUDED) == 2
