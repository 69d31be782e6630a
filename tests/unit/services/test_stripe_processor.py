# tests/unit/services/test_stripe_processor.py
from unittest.mock import MagicMock

import pytest
import stripe

from app.core.exceptions import PaymentProcessorError
from app.services.payments.factory import get_payment_processor
from app.services.payments.stripe_processor import StripePaymentProcessor


@pytest.mark.asyncio
async def test_create_refund_passes_idempotency_key(mocker):
    create = mocker.patch("stripe.Refund.create", return_value=MagicMock(id="re_1", status="succeeded", amount=22000))
    processor = StripePaymentProcessor(api_key="sk_test_123")

    result = await processor.create_refund("pi_1", 22000, metadata={"order_item_id": "i1"}, idempotency_key="refund-i1")

    assert result == {"id": "re_1", "status": "succeeded", "amount": 22000}
    create.assert_called_once_with(
        payment_intent="pi_1", amount=22000, metadata={"order_item_id": "i1"}, idempotency_key="refund-i1"
    )


@pytest.mark.asyncio
async def test_create_transfer_uses_configured_currency(mocker):
    create = mocker.patch(
        "stripe.Transfer.create", return_value=MagicMock(id="tr_1", amount=9451, destination="acct_1")
    )
    processor = StripePaymentProcessor(api_key="sk_test_123")

    result = await processor.create_transfer("acct_1", 9451, idempotency_key="payout-i1")

    assert result == {"id": "tr_1", "amount": 9451, "destination": "acct_1"}
    assert create.call_args.kwargs["currency"] == "usd"
    assert create.call_args.kwargs["idempotency_key"] == "payout-i1"


@pytest.mark.asyncio
async def test_retrieve_payment_intent(mocker):
    mocker.patch(
        "stripe.PaymentIntent.retrieve", return_value=MagicMock(id="pi_1", status="succeeded", amount=23218)
    )
    result = await StripePaymentProcessor(api_key="sk_test_123").retrieve_payment_intent("pi_1")
    assert result["status"] == "succeeded"


@pytest.mark.asyncio
async def test_stripe_errors_become_processor_errors(mocker):
    mocker.patch("stripe.Refund.create", side_effect=stripe.StripeError("Charge already refunded"))

    with pytest.raises(PaymentProcessorError):
        await StripePaymentProcessor(api_key="sk_test_123").create_refund("pi_1", 100)


def test_factory():
    assert isinstance(get_payment_processor(), StripePaymentProcessor)
    with pytest.raises(ValueError):
        get_payment_processor("paypal")


def test_stripe_requests_use_configured_timeout_and_retries(mocker):
    mocker.patch.object(stripe, "default_http_client", None)
    mocker.patch.object(stripe, "max_network_retries", 0)
    http_client = mocker.patch("stripe.RequestsClient")

    StripePaymentProcessor(api_key="sk_test_123")

    http_client.assert_called_once_with(timeout=30.0)
    assert stripe.default_http_client is http_client.return_value
    assert stripe.max_network_retries == 2
