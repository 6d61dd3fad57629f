"""Tests for the Stripe wrapper: session parameters, error mapping, signature checks."""

import json
from unittest.mock import patch

import pytest
import stripe

from creator_billing.exceptions import ProviderError, SignatureVerificationError
from creator_billing.services.stripe_service import StripeService
from tests.factories import WEBHOOK_SECRET, sign


@pytest.fixture
def service():
    return StripeService(secret_key="sk_test_dummy", webhook_secret=WEBHOOK_SECRET)


@pytest.mark.asyncio
async def test_checkout_session_parameters(service):
    with patch.object(stripe.checkout.Session, "create", return_value={"id": "cs_1", "url": "https://x"}) as create:
        await service.create_checkout_session(
            price_id="price_monthly",
            user_id="u1",
            success_url="https://app/ok",
            cancel_url="https://app/cancel",
            trial_period_days=14,
        )

    params = create.call_args.kwargs
    assert params["mode"] == "subscription"
    assert params["line_items"] == [{"price": "price_monthly", "quantity": 1}]
    assert params["client_reference_id"] == "u1"
    assert params["metadata"] == {"user_id": "u1"}
    assert params["subscription_data"] == {"trial_period_days": 14, "metadata": {"user_id": "u1"}}
    assert "customer_email" not in params


@pytest.mark.asyncio
async def test_stripe_errors_become_provider_errors(service):
    error = stripe.InvalidRequestError("No such price: 'price_x'", param="line_items[0][price]")
    with patch.object(stripe.checkout.Session, "create", side_effect=error):
        with pytest.raises(ProviderError) as exc_info:
            await service.create_checkout_session(
                price_id="price_x",
                user_id="u1",
                success_url="https://app/ok",
                cancel_url="https://app/cancel",
                trial_period_days=14,
            )

    assert "No such price" in exc_info.value.message


@pytest.mark.asyncio
async def test_find_customer_by_email(service):
    with patch.object(stripe.Customer, "list", return_value={"data": [{"id": "cus_1"}]}):
        assert (await service.find_customer_by_email("u1@example.com"))["id"] == "cus_1"
    with patch.object(stripe.Customer, "list", return_value={"data": []}):
        assert await service.find_customer_by_email("nobody@example.com") is None


def test_missing_secret_key_is_a_provider_error():
    with patch("creator_billing.services.stripe_service.get_settings") as settings:
        settings.return_value.stripe_secret_key = ""
        with pytest.raises(ProviderError):
            StripeService().get_stripe_client()


class TestVerifyWebhook:
    def test_valid_signature_returns_decoded_event(self, service):
        body = json.dumps({"id": "evt_1", "type": "customer.created"})
        assert service.verify_webhook(body.encode(), sign(body)) == {"id": "evt_1", "type": "customer.created"}

    def test_missing_header(self, service):
        with pytest.raises(SignatureVerificationError):
            service.verify_webhook(b"{}", None)

    def test_wrong_secret(self, service):
        body = "{}"
        with pytest.raises(SignatureVerificationError):
            service.verify_webhook(body.encode(), sign(body, secret="whsec_other"))

    def test_stale_timestamp(self, service):
        body = "{}"
        with pytest.raises(SignatureVerificationError):
            service.verify_webhook(body.encode(), sign(body, timestamp=1))

    def test_signed_garbage_is_rejected(self, service):
        body = "not json"
        with pytest.raises(SignatureVerificationError):
            service.verify_webhook(body.encode(), sign(body))
