"""CEP region and shipping rule matching tests."""

from decimal import Decimal

import pytest

from app.services.regions import (
    RegionType,
    Rule,
    clean_cep,
    is_valid_cep,
    match_rule,
    region_matches,
    state_for_cep,
)

SP_CEP = "01310100"
RJ_CEP = "20040020"


class TestStateForCep:
    @pytest.mark.parametrize("cep,state", [
        ("01310-100", "SP"),
        ("20040-020", "RJ"),
        ("30130-000", "MG"),
        ("68900-000", "AP"),
        ("66010-000", "PA"),
        ("76800-000", "RO"),
        ("73700-000", "GO"),
        ("70040-010", "DF"),
        ("90010-000", "RS"),
    ])
    def test_known_ranges(self, cep, state):
        assert state_for_cep(cep) == state

    def test_out_of_range(self):
        assert state_for_cep("00000000") is None

    def test_no_digits(self):
        assert state_for_cep("abc") is None

    def test_clean_and_validate(self):
        assert clean_cep("01310-100") == SP_CEP
        assert is_valid_cep("01310-100")
        assert not is_valid_cep("1310-100")


class TestRegionMatches:
    def test_nationwide(self):
        assert region_matches(Rule("All"), RJ_CEP)

    def test_state(self):
        rule = Rule("SP only", region_type=RegionType.STATE, regions='["SP"]')
        assert region_matches(rule, SP_CEP)
        assert not region_matches(rule, RJ_CEP)

    def test_state_case_insensitive(self):
        rule = Rule("SP only", region_type=RegionType.STATE, regions='["sp"]')
        assert region_matches(rule, SP_CEP)

    def test_zip_range(self):
        rule = Rule("Centro", region_type=RegionType.ZIPCODE_RANGE, regions='["01000000-01999999"]')
        assert region_matches(rule, SP_CEP)
        assert not region_matches(rule, RJ_CEP)

    def test_zip_range_with_formatted_bounds(self):
        rule = Rule("Centro", region_type=RegionType.ZIPCODE_RANGE, regions='["01000-000-01999-999"]')
        assert region_matches(rule, SP_CEP)

    def test_malformed_payload_only_matches_nationwide(self):
        state_rule = Rule("Broken", region_type=RegionType.STATE, regions="SP,RJ")
        nationwide = Rule("Broken", region_type=RegionType.NATIONWIDE, regions="{oops")
        assert not region_matches(state_rule, SP_CEP)
        assert region_matches(nationwide, SP_CEP)

    def test_city_always_matches(self):
        rule = Rule("City", region_type=RegionType.CITY, regions='["Campinas"]')
        assert region_matches(rule, RJ_CEP)


class TestMatchRule:
    def test_highest_priority_wins(self):
        low = Rule("Low", priority=1, shipping_cost=Decimal("20"))
        high = Rule("High", priority=10, shipping_cost=Decimal("5"))
        result = match_rule([low, high], SP_CEP, Decimal("50"), Decimal("1"))
        assert result.rule.name == "High"

    def test_inactive_rules_ignored(self):
        off = Rule("Off", priority=10, is_active=False)
        on = Rule("On", priority=1)
        result = match_rule([off, on], SP_CEP, Decimal("50"), Decimal("1"))
        assert result.rule.name == "On"

    def test_region_checked_before_cart_value(self):
        rj = Rule("RJ promo", priority=5, region_type=RegionType.STATE,
                  regions='["RJ"]', min_cart_value=Decimal("50"))
        sp = Rule("SP promo", priority=4, region_type=RegionType.STATE,
                  regions='["SP"]', min_cart_value=Decimal("100"))
        result = match_rule([rj, sp], SP_CEP, Decimal("80"), Decimal("1"))
        assert result.rule is None
        assert result.promo_min_cart_value == Decimal("100")
        assert result.rejected == ["RJ promo", "SP promo"]

    def test_smallest_unmet_minimum_is_kept(self):
        a = Rule("A", priority=3, min_cart_value=Decimal("200"))
        b = Rule("B", priority=2, min_cart_value=Decimal("120"))
        result = match_rule([a, b], SP_CEP, Decimal("80"), Decimal("1"))
        assert result.promo_min_cart_value == Decimal("120")

    def test_weight_limits(self):
        light_only = Rule("Light", priority=5, max_weight=Decimal("2"))
        heavy = Rule("Heavy", priority=1, min_weight=Decimal("2"))
        result = match_rule([light_only, heavy], SP_CEP, Decimal("50"), Decimal("3.5"))
        assert result.rule.name == "Heavy"

    def test_max_cart_value(self):
        capped = Rule("Capped", priority=5, max_cart_value=Decimal("100"))
        result = match_rule([capped], SP_CEP, Decimal("150"), Decimal("1"))
        assert result.rule is None

    def test_no_rules(self):
        result = match_rule([], SP_CEP, Decimal("50"), Decimal("1"))
        assert result.rule is None
        assert result.promo_min_cart_value is None


class TestRuleCost:
    def test_flat_plus_per_kg(self):
        rule = Rule("Per kg", shipping_cost=Decimal("10"), cost_per_kg=Decimal("2.50"))
        assert rule.cost_for(Decimal("1.2")) == Decimal("13.00")

    def test_flat_only(self):
        assert Rule("Flat", shipping_cost=Decimal("9.9")).cost_for(Decimal("3")) == Decimal("9.90")
