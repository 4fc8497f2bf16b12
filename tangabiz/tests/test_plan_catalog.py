"""Plan catalog data and limit comparisons."""

import pytest

from tangabiz.core.errors import NotFoundError
from tangabiz.features.plans.catalog import (
    PLANS,
    all_plans,
    format_limit,
    get_plan,
    is_limit_exceeded,
    limits_for,
    would_exceed_limit,
)
from tangabiz.models.plan import Feature, PlanId, UNLIMITED
from tangabiz.models.usage import ResourceKind


def test_catalog_has_three_plans():
    assert [p.id for p in all_plans()] == [PlanId.STARTER, PlanId.GROWTH, PlanId.ENTERPRISE]
    assert get_plan("growth").popular is True


def test_starter_limits():
    limits = limits_for(PlanId.STARTER)
    assert limits.max_products == 50
    assert limits.max_customers == 100
    assert limits.max_team_members == 2
    assert limits.max_monthly_sales == 500
    assert limits.max_locations == 1
    assert limits.limit_for(ResourceKind.SALES) == 500


def test_starter_features():
    features = limits_for("starter").features
    assert features.enabled(Feature.ANALYTICS)
    assert features.enabled(Feature.EXPORT_DATA)
    assert not features.enabled(Feature.ADVANCED_REPORTS)
    assert not features.enabled(Feature.EMAIL_MARKETING)
    assert not features.enabled("not_a_feature")


def test_growth_lacks_only_api_priority_forecasting():
    features = limits_for(PlanId.GROWTH).features
    disabled = {f for f in Feature if not features.enabled(f)}
    assert disabled == {Feature.API_ACCESS, Feature.PRIORITY_SUPPORT, Feature.SALES_FORECASTING}


def test_enterprise_is_unlimited_with_all_features():
    limits = limits_for(PlanId.ENTERPRISE)
    for kind in ResourceKind:
        assert limits.limit_for(kind) == UNLIMITED
    assert all(limits.features.enabled(f) for f in Feature)


def test_unknown_plan():
    assert get_plan("platinum") is None
    assert get_plan(None) is None
    with pytest.raises(NotFoundError):
        limits_for("platinum")


@pytest.mark.parametrize(
    "current,limit,expected",
    [(49, 50, False), (50, 50, True), (51, 50, True), (0, 0, True), (10**9, UNLIMITED, False)],
)
def test_is_limit_exceeded(current, limit, expected):
    assert is_limit_exceeded(current, limit) is expected


@pytest.mark.parametrize(
    "current,delta,limit,expected",
    [(49, 1, 50, False), (50, 1, 50, True), (48, 2, 50, False), (49, 2, 50, True), (0, 1, 0, True), (5, 100, UNLIMITED, False)],
)
def test_would_exceed_limit(current, delta, limit, expected):
    assert would_exceed_limit(current, delta, limit) is expected


def test_single_unit_request_matches_is_limit_exceeded():
    for limit in (0, 1, 2, 50):
        for current in range(0, limit + 2):
            assert would_exceed_limit(current, 1, limit) == is_limit_exceeded(current, limit)


def test_format_limit():
    assert format_limit(UNLIMITED) == "Unlimited"
    assert format_limit(5000) == "5,000"
    assert format_limit(2) == "2"


def test_plans_are_immutable():
    with pytest.raises(Exception):
        PLANS[PlanId.STARTER].limits.max_products = 10
