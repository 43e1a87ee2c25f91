"""Tests for the plan registry: limits, features and upgrade suggestions."""

import pytest

from app.billing.plans import (
    PLAN_ORDER,
    PLANS,
    UNLIMITED,
    Feature,
    UsageType,
    can_batch_format,
    can_use_formatter,
    find_plan_with_limit,
    get_limit,
    get_plan,
    get_plan_hierarchy_level,
    has_feature,
    has_market_feature,
    is_within_limits,
    resolve_plan_name,
)


class TestPlanLookup:
    def test_unknown_plan_falls_back_to_starter(self) -> None:
        assert get_plan("platinum").name == "starter"
        assert get_plan(None).name == "starter"

    def test_plan_order_is_cheapest_first(self) -> None:
        assert PLAN_ORDER == ("starter", "growth", "scale", "enterprise")
        assert get_plan_hierarchy_level("starter") == 0
        assert get_plan_hierarchy_level("enterprise") == 3

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("growth", "growth"),
            ("  Scale ", "scale"),
            ({"tier": "growth", "since": "2024-01"}, "growth"),
            (None, "starter"),
            ("legacy-pro", "starter"),
            (42, "starter"),
        ],
    )
    def test_resolve_plan_name(self, raw, expected: str) -> None:
        assert resolve_plan_name(raw) == expected

    def test_every_plan_has_monthly_price_except_enterprise(self) -> None:
        assert PLANS["starter"].price_monthly_cents == 0
        assert PLANS["growth"].price_monthly_cents == 4900
        assert PLANS["scale"].price_monthly_cents == 14900
        assert PLANS["enterprise"].price_monthly_cents is None


class TestLimits:
    def test_monthly_quota_is_strictly_below_limit(self) -> None:
        assert is_within_limits("starter", UsageType.PITCHES, 9)
        assert not is_within_limits("starter", UsageType.PITCHES, 10)

    def test_per_request_rows_may_equal_limit(self) -> None:
        assert is_within_limits("starter", UsageType.BULK_UPLOAD_ROWS, 5)
        assert not is_within_limits("starter", UsageType.BULK_UPLOAD_ROWS, 6)
        assert is_within_limits("growth", UsageType.BULK_UPLOAD_ROWS, 50)

    def test_unlimited_short_circuits(self) -> None:
        assert get_limit("scale", UsageType.PITCHES) == UNLIMITED
        assert is_within_limits("scale", UsageType.PITCHES, 1_000_000)
        assert is_within_limits("enterprise", UsageType.BULK_UPLOAD_ROWS, 10_000)

    def test_unknown_usage_type_is_never_within_limits(self) -> None:
        assert get_limit("scale", "tokens") is None
        assert not is_within_limits("enterprise", "tokens", 0)

    def test_zero_limit_rejects_everything(self) -> None:
        assert not is_within_limits("starter", UsageType.MARKET_REPORTS, 0)

    @pytest.mark.parametrize(
        ("usage_type", "requested", "expected"),
        [
            (UsageType.PITCHES, 11, "growth"),
            (UsageType.PITCHES, 101, "scale"),
            (UsageType.BULK_UPLOAD_ROWS, 8, "growth"),
            (UsageType.BULK_UPLOAD_ROWS, 75, "scale"),
            (UsageType.BULK_UPLOAD_ROWS, 500, "enterprise"),
            (UsageType.MARKET_REPORTS, 1, "growth"),
        ],
    )
    def test_find_plan_with_limit(self, usage_type: UsageType, requested: int, expected: str) -> None:
        assert find_plan_with_limit(usage_type, requested) == expected

    @pytest.mark.parametrize("usage_type", list(UsageType))
    def test_suggested_plan_never_drops_as_requests_grow(self, usage_type: UsageType) -> None:
        finite = [get_limit(name, usage_type) for name in PLAN_ORDER]
        ceiling = max(limit for limit in finite if limit != UNLIMITED) + 2

        previous = 0
        for requested in range(ceiling + 1):
            plan = find_plan_with_limit(usage_type, requested)
            level = PLAN_ORDER.index(plan)
            assert level >= previous, f"{usage_type.value}: {requested} suggested {plan}"
            limit = get_limit(plan, usage_type)
            assert limit == UNLIMITED or limit >= requested or plan == PLAN_ORDER[-1]
            previous = level

    def test_find_plan_with_limit_unknown_type_suggests_top_plan(self) -> None:
        assert find_plan_with_limit("tokens", 1) == "enterprise"


class TestFeatures:
    def test_starter_features(self) -> None:
        assert not has_feature("starter", Feature.PPT_EXPORT)
        assert not has_feature("starter", Feature.WHITE_LABEL)
        assert not has_feature("starter", Feature.MARKET_REPORTS)
        assert not has_feature("starter", Feature.BATCH_FORMAT)
        assert has_feature("starter", Feature.BULK_UPLOAD)

    def test_growth_has_white_label_but_not_ppt(self) -> None:
        assert has_feature("growth", Feature.WHITE_LABEL)
        assert not has_feature("growth", Feature.PPT_EXPORT)

    def test_scale_has_ppt_export(self) -> None:
        assert has_feature("scale", Feature.PPT_EXPORT)

    def test_unknown_feature_is_false(self) -> None:
        assert not has_feature("enterprise", "teleportation")

    def test_formatters_by_plan(self) -> None:
        assert can_use_formatter("starter", "sales_pitch")
        assert not can_use_formatter("starter", "deck")
        assert can_use_formatter("growth", "linkedin")
        assert not can_use_formatter("growth", "proposal")
        assert can_use_formatter("scale", "proposal")

    def test_batch_format_sizes(self) -> None:
        assert not can_batch_format("starter", 1)
        assert can_batch_format("growth", 3)
        assert not can_batch_format("growth", 4)
        assert can_batch_format("scale", 7)

    def test_market_features(self) -> None:
        assert has_market_feature("starter", "basic_demographics")
        assert not has_market_feature("starter", "opportunity_score")
        assert has_market_feature("growth", "opportunity_score")
        assert not has_market_feature("growth", "pdf_export")
        assert has_market_feature("scale", "pdf_export")
