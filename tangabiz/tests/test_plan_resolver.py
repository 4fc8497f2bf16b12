"""Product mapping, trial window and effective plan resolution."""

from datetime import datetime, timedelta, timezone

import pytest

from tangabiz.core.config import Settings
from tangabiz.core.errors import UnknownProductError
from tangabiz.features.plans.resolver import (
    PlanState,
    build_product_plan_map,
    has_paid_plan,
    is_trial_active,
    resolve_effective_plan,
    resolve_plan_from_product,
    trial_days_remaining,
    trial_end_date,
)
from tangabiz.models.organization import Organization
from tangabiz.models.plan import PlanId, UNLIMITED


START = datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)


def _settings(**overrides) -> Settings:
    values = {
        "POLAR_STARTER_PRODUCT_ID": "prod_starter_m",
        "POLAR_GROWTH_PRODUCT_ID": "prod_growth_m",
        "POLAR_ENTERPRISE_PRODUCT_ID": "prod_ent_m",
        "POLAR_STARTER_YEARLY_PRODUCT_ID": "prod_starter_y",
        "POLAR_GROWTH_YEARLY_PRODUCT_ID": "",
        "POLAR_ENTERPRISE_YEARLY_PRODUCT_ID": "prod_ent_y",
    }
    values.update(overrides)
    return Settings(**values)


def _org(**fields) -> Organization:
    return Organization(id="org-1", name="Shop", **fields)


class TestProductMapping:
    def test_monthly_and_yearly_ids_map_to_plans(self):
        mapping = build_product_plan_map(_settings())
        assert resolve_plan_from_product("prod_starter_m", mapping) == PlanId.STARTER
        assert resolve_plan_from_product("prod_starter_y", mapping) == PlanId.STARTER
        assert resolve_plan_from_product("prod_growth_m", mapping) == PlanId.GROWTH
        assert resolve_plan_from_product("prod_ent_y", mapping) == PlanId.ENTERPRISE

    def test_blank_configured_ids_are_not_mapped(self):
        mapping = build_product_plan_map(_settings())
        assert "" not in mapping
        with pytest.raises(UnknownProductError):
            resolve_plan_from_product("", mapping)
        with pytest.raises(UnknownProductError):
            resolve_plan_from_product(None, mapping)

    def test_unknown_product_carries_id(self):
        mapping = build_product_plan_map(_settings())
        with pytest.raises(UnknownProductError) as exc_info:
            resolve_plan_from_product("prod_mystery", mapping)
        assert exc_info.value.product_id == "prod_mystery"
        assert exc_info.value.status_code == 502


class TestTrialWindow:
    def test_trial_end_is_three_days_after_start(self):
        assert trial_end_date(START) == START + timedelta(days=3)
        assert trial_end_date(None) is None

    def test_window_is_half_open(self):
        end = START + timedelta(days=3)
        assert is_trial_active(START, START)
        assert is_trial_active(START, end - timedelta(microseconds=1))
        assert not is_trial_active(START, end)
        assert not is_trial_active(None, START)

    def test_days_remaining_rounds_up_and_floors_at_zero(self):
        assert trial_days_remaining(START, START) == 3
        assert trial_days_remaining(START, START + timedelta(hours=1)) == 3
        assert trial_days_remaining(START, START + timedelta(days=2, hours=23)) == 1
        assert trial_days_remaining(START, START + timedelta(days=3)) == 0
        assert trial_days_remaining(START, START + timedelta(days=30)) == 0
        assert trial_days_remaining(None, START) == 0

    def test_naive_timestamps_are_treated_as_utc(self):
        naive_start = START.replace(tzinfo=None)
        assert is_trial_active(naive_start, START + timedelta(days=1))


class TestEffectivePlan:
    def test_paid_plan_wins(self):
        effective = resolve_effective_plan(_org(plan=PlanId.STARTER, plan_started_at=START), START + timedelta(days=60))
        assert effective.state == PlanState.PAID
        assert effective.plan_id == PlanId.STARTER
        assert effective.limits.max_products == 50
        assert effective.entitled

    def test_open_trial_grants_enterprise_limits(self):
        effective = resolve_effective_plan(_org(plan_started_at=START), START + timedelta(days=1))
        assert effective.state == PlanState.TRIAL
        assert effective.plan_id == PlanId.ENTERPRISE
        assert effective.limits.max_products == UNLIMITED
        assert effective.trial_ends_at == START + timedelta(days=3)

    def test_elapsed_trial_is_expired(self):
        effective = resolve_effective_plan(_org(plan_started_at=START), START + timedelta(days=3))
        assert effective.state == PlanState.EXPIRED
        assert effective.limits is None
        assert not effective.entitled

    def test_no_start_is_none(self):
        effective = resolve_effective_plan(_org(), START)
        assert effective.state == PlanState.NONE
        assert not effective.entitled

    @pytest.mark.parametrize("status", [None, "active", "trialing", "ACTIVE"])
    def test_active_statuses_keep_paid_plan(self, status):
        assert has_paid_plan(_org(plan=PlanId.GROWTH, subscription_status=status))

    @pytest.mark.parametrize("status", ["canceled", "past_due", "unpaid"])
    def test_lapsed_subscription_does_not_count(self, status):
        org = _org(plan=PlanId.GROWTH, plan_started_at=START, subscription_status=status)
        assert not has_paid_plan(org)
        # A lapsed subscription never falls back to a trial, even inside the window
        effective = resolve_effective_plan(org, START + timedelta(hours=1))
        assert effective.state == PlanState.EXPIRED

    def test_trial_plan_and_length_are_configurable(self):
        cfg = _settings(TRIAL_PLAN="growth", TRIAL_DURATION_DAYS=7)
        effective = resolve_effective_plan(_org(plan_started_at=START), START + timedelta(days=5), cfg)
        assert effective.state == PlanState.TRIAL
        assert effective.plan_id == PlanId.GROWTH
