"""Unit tests for the T-Bank gateway client over an httpx mock transport."""

import hashlib
import json

import httpx
import pytest

from common.core.exceptions import GatewayError
from packages.billing.providers.payment.tbank_payment import (
    TBankPaymentGateway,
    generate_token,
)


def _gateway(handler) -> TBankPaymentGateway:
    return TBankPaymentGateway(
        terminal_key="TestTerminal",
        password="secret",
        api_url="https://gateway.test/v2/",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


class TestGenerateToken:
    def test_sorted_concatenation_with_password(self):
        payload = {"TerminalKey": "T", "Amount": 39000, "OrderId": "o-1"}
        expected = hashlib.sha256("39000o-1secretT".encode("utf-8")).hexdigest()
        assert generate_token(payload, "secret") == expected

    def test_nested_objects_and_token_are_excluded(self):
        base = {"TerminalKey": "T", "Amount": 100}
        with_extras = {**base, "Receipt": {"Email": "a@b.c"}, "DATA": {"x": 1}, "Token": "old"}
        assert generate_token(with_extras, "pw") == generate_token(base, "pw")

    def test_booleans_are_lowercase(self):
        token = generate_token({"Success": True}, "pw")
        assert token == hashlib.sha256("pwtrue".encode("utf-8")).hexdigest()


@pytest.mark.asyncio
class TestTBankPaymentGateway:
    async def test_create_charge_signs_request(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "Success": True,
                    "Status": "NEW",
                    "PaymentId": 3093639567,
                    "PaymentURL": "https://securepay.test/new/abc",
                },
            )

        intent = await _gateway(handler).create_charge(
            amount=39000,
            order_id="recurrent-1-user-1",
            description="Subscription",
            email="payer@example.com",
            recurrent=True,
            customer_key="user-1-abc",
        )

        assert captured["url"] == "https://gateway.test/v2/Init"
        body = captured["body"]
        assert body["Recurrent"] == "Y"
        assert body["Receipt"]["Items"][0]["Amount"] == 39000
        unsigned = {k: v for k, v in body.items() if k != "Token"}
        assert body["Token"] == generate_token(unsigned, "secret")
        assert intent.payment_id == "3093639567"
        assert intent.payment_url == "https://securepay.test/new/abc"

    async def test_init_rejection_raises(self):
        def handler(request):
            return httpx.Response(
                200, json={"Success": False, "ErrorCode": "204", "Message": "bad token"}
            )

        with pytest.raises(GatewayError) as exc_info:
            await _gateway(handler).create_charge(
                amount=100, order_id="o", description="d", email="e@example.com"
            )
        assert exc_info.value.error_code == "204"

    async def test_settle_returns_declined_result(self):
        def handler(request):
            assert request.url.path.endswith("/Charge")
            return httpx.Response(
                200,
                json={
                    "Success": False,
                    "Status": "REJECTED",
                    "PaymentId": "9001",
                    "ErrorCode": "51",
                    "Message": "insufficient_funds",
                },
            )

        result = await _gateway(handler).settle_recurrent_charge("9001", "rebill-1")

        assert result.success is False
        assert result.status == "REJECTED"
        assert result.error_code == "51"
        assert result.message == "insufficient_funds"

    async def test_settle_success_has_no_error_code(self):
        def handler(request):
            return httpx.Response(
                200,
                json={"Success": True, "Status": "CONFIRMED", "PaymentId": 9001, "ErrorCode": "0"},
            )

        result = await _gateway(handler).settle_recurrent_charge("9001", "rebill-1")
        assert result.success is True
        assert result.error_code is None
        assert result.payment_id == "9001"

    async def test_get_state(self):
        def handler(request):
            return httpx.Response(
                200,
                json={
                    "Success": True,
                    "Status": "CONFIRMED",
                    "PaymentId": "9001",
                    "Amount": 39000,
                    "RebillId": 7001,
                },
            )

        state = await _gateway(handler).get_charge_state("9001")
        assert state.status == "CONFIRMED"
        assert state.amount == 39000
        assert state.rebill_id == "7001"

    async def test_timeout_becomes_gateway_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(GatewayError) as exc_info:
            await _gateway(handler).settle_recurrent_charge("9001", "rebill-1")
        assert exc_info.value.status == "TIMEOUT"

    async def test_http_error_becomes_gateway_error(self):
        def handler(request):
            return httpx.Response(503, text="unavailable")

        with pytest.raises(GatewayError):
            await _gateway(handler).get_charge_state("9001")
