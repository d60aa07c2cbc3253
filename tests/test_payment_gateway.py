from decimal import Decimal

import pytest

from academy.core.exceptions import GatewayError
from academy.services.payment_gateway import PaymentGatewayClient, compute_signature, to_minor_units

from tests.conftest import KEY_SECRET, WEBHOOK_SECRET, sign


def test_to_minor_units():
    assert to_minor_units(Decimal("10089.00")) == 1008900
    assert to_minor_units(Decimal("0.005")) == 1
    assert to_minor_units(Decimal("0")) == 0


def test_payment_signature(gateway):
    good = sign("order_1", "pay_1")

    assert gateway.verify_payment_signature("order_1", "pay_1", good)
    assert not gateway.verify_payment_signature("order_1", "pay_2", good)
    assert not gateway.verify_payment_signature("order_1", "pay_1", sign("order_1", "pay_1", "other"))
    assert not gateway.verify_payment_signature("order_1", "pay_1", "")


def test_webhook_signature(gateway):
    body = b'{"event":"payment.captured"}'

    assert gateway.verify_webhook_signature(body, compute_signature(WEBHOOK_SECRET, body))
    assert not gateway.verify_webhook_signature(body + b" ", compute_signature(WEBHOOK_SECRET, body))
    assert not gateway.verify_webhook_signature(body, "")


def test_webhook_rejected_without_secret(razorpay_client):
    gateway = PaymentGatewayClient("rzp_test_key", KEY_SECRET, client=razorpay_client)
    body = b"{}"

    assert not gateway.verify_webhook_signature(body, compute_signature("", body))


async def test_create_order_sends_minor_units(gateway, razorpay_client):
    order = await gateway.create_order(Decimal("120.50"), "USD", "FT2425F00001", {"k": "v"})

    assert order.id == "order_0001"
    assert order.amount == 12050
    assert razorpay_client.order.created[0]["notes"] == {"k": "v"}


async def test_create_order_without_id_is_gateway_error(gateway, monkeypatch, razorpay_client):
    monkeypatch.setattr(razorpay_client.order, "create", lambda data: {"error": "bad request"})

    with pytest.raises(GatewayError) as exc_info:
        await gateway.create_order(Decimal("1"), "INR", "FT2425G00001")

    assert exc_info.value.details == {"receipt": "FT2425G00001"}


async def test_sdk_exception_is_gateway_error(gateway, razorpay_client):
    razorpay_client.order.error = ConnectionError("refused")

    with pytest.raises(GatewayError) as exc_info:
        await gateway.create_order(Decimal("1"), "INR", "FT2425G00001")

    assert exc_info.value.details == {"operation": "order.create"}


async def test_get_order_payments(gateway, razorpay_client):
    razorpay_client.order.captured["order_9"] = [{"id": "pay_9", "status": "captured"}]

    assert await gateway.get_order_payments("order_9") == [{"id": "pay_9", "status": "captured"}]
    assert await gateway.get_order_payments("order_unknown") == []
