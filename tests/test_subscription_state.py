"""Tests for the pure subscription state machine."""

from datetime import datetime, timezone

import pytest

from creator_billing.models.subscription import Plan, SubscriptionStatus
from creator_billing.services.subscription_state import (
    TRANSITIONS,
    WebhookEventType,
    as_utc,
    coerce_status,
    derive_flags,
    from_unix,
    plan_for_price,
)


class TestDeriveFlags:
    @pytest.mark.parametrize("status", list(SubscriptionStatus) + [None])
    def test_flags_are_mutually_exclusive(self, status):
        flags = derive_flags(status)
        assert not (flags.is_active and flags.is_suspended)
        assert flags.is_active == (status in ("active", "trialing"))
        assert flags.is_suspended == (status in ("past_due", "canceled"))

    def test_never_subscribed_is_neither(self):
        flags = derive_flags(None)
        assert flags.is_active is False
        assert flags.is_suspended is False

    def test_incomplete_is_neither(self):
        flags = derive_flags("incomplete")
        assert (flags.is_active, flags.is_suspended) == (False, False)

    def test_accepts_raw_strings(self):
        assert derive_flags("trialing").is_active is True
        assert derive_flags("canceled").is_suspended is True


class TestCoerceStatus:
    def test_known_statuses_pass_through(self):
        for status in SubscriptionStatus:
            assert coerce_status(status.value) is status

    def test_provider_only_statuses_are_mapped(self):
        assert coerce_status("unpaid") is SubscriptionStatus.PAST_DUE
        assert coerce_status("paused") is SubscriptionStatus.PAST_DUE
        assert coerce_status("incomplete_expired") is SubscriptionStatus.CANCELED

    def test_unknown_status_is_incomplete(self):
        assert coerce_status("something_new") is SubscriptionStatus.INCOMPLETE

    def test_none_stays_none(self):
        assert coerce_status(None) is None


class TestPlanLookup:
    def test_annual_price(self):
        # the env value carries a pasted "NAME=" prefix that must be stripped
        assert plan_for_price("price_annual") is Plan.ANNUAL

    def test_everything_else_is_monthly(self):
        assert plan_for_price("price_monthly") is Plan.MONTHLY
        assert plan_for_price("price_unknown") is Plan.MONTHLY
        assert plan_for_price(None) is Plan.MONTHLY


class TestTransitionTable:
    def test_every_handled_event_has_a_transition(self):
        assert set(TRANSITIONS) == set(WebhookEventType)

    def test_fixed_target_statuses(self):
        assert TRANSITIONS[WebhookEventType.SUBSCRIPTION_DELETED].status is SubscriptionStatus.CANCELED
        assert TRANSITIONS[WebhookEventType.INVOICE_PAYMENT_FAILED].status is SubscriptionStatus.PAST_DUE
        assert TRANSITIONS[WebhookEventType.INVOICE_PAYMENT_SUCCEEDED].status is SubscriptionStatus.ACTIVE

    def test_provider_copied_statuses(self):
        assert TRANSITIONS[WebhookEventType.CHECKOUT_COMPLETED].status is None
        assert TRANSITIONS[WebhookEventType.SUBSCRIPTION_UPDATED].status is None

    def test_only_checkout_touches_entitlements_and_role(self):
        for event_type, transition in TRANSITIONS.items():
            expected = event_type is WebhookEventType.CHECKOUT_COMPLETED
            assert transition.activate_entitlements is expected
            assert transition.promote_role is expected

    def test_only_checkout_creates_rows(self):
        for event_type, transition in TRANSITIONS.items():
            assert transition.upsert is (event_type is WebhookEventType.CHECKOUT_COMPLETED)

    def test_fields_written_per_event(self):
        updated = TRANSITIONS[WebhookEventType.SUBSCRIPTION_UPDATED]
        assert updated.copy_terms and updated.refresh_period and not updated.refetch_subscription

        renewal = TRANSITIONS[WebhookEventType.INVOICE_PAYMENT_SUCCEEDED]
        assert renewal.refetch_subscription and renewal.refresh_period and not renewal.copy_terms

        for event_type in (WebhookEventType.SUBSCRIPTION_DELETED, WebhookEventType.INVOICE_PAYMENT_FAILED):
            transition = TRANSITIONS[event_type]
            assert not (transition.refetch_subscription or transition.refresh_period or transition.copy_terms)


def test_time_helpers():
    assert from_unix(None) is None
    assert from_unix(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)
    naive = datetime(2026, 1, 1)
    assert as_utc(naive).tzinfo is timezone.utc
    assert as_utc(None) is None
