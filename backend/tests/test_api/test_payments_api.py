"""Integration tests for the checkout endpoints: order, verify, history and cancel."""

import hashlib
import hmac
import uuid
from unittest.mock import AsyncMock, patch

from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.billing.exceptions import GatewayError
from app.models.payment import Payment, PaymentStatus


def _remote_order(**kwargs):
    return {"id": f"order_{uuid.uuid4().hex[:14]}", "amount": kwargs["amount"], "currency": kwargs["currency"]}


def _signature(secret: str, order_id: str, payment_id: str) -> str:
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


class TestCreateOrderEndpoint:
    async def test_creates_order(self, client: AsyncClient, plans, coupon, auth_headers: dict, razorpay_keys):
        with patch(
            "app.services.payment_service.create_remote_order",
            new_callable=AsyncMock,
            side_effect=_remote_order,
        ):
            response = await client.post(
                "/api/v1/payments/order",
                json={"plan": "basic", "coupon_code": "SAVE20"},
                headers=auth_headers,
            )

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["amount"] == 800
        assert data["base_amount"] == 1000
        assert data["discount_amount"] == 200
        assert data["currency"] == "INR"
        assert data["key_id"] == razorpay_keys.razorpay_key_id
        assert data["order_id"].startswith("order_")

    async def test_not_configured(self, client: AsyncClient, plans, auth_headers: dict, monkeypatch):
        from app.config import settings

        monkeypatch.setattr(settings, "razorpay_key_id", "")
        response = await client.post("/api/v1/payments/order", json={"plan": "basic"}, headers=auth_headers)
        assert response.status_code == 500

    async def test_rejection_reason_surfaced(self, client: AsyncClient, plans, make_user, razorpay_keys):
        from app.auth.jwt import create_access_token

        user = await make_user(subscription_plan="premium", subscription_status="active")
        headers = {"Authorization": f"Bearer {create_access_token(str(user.id))}"}
        response = await client.post("/api/v1/payments/order", json={"plan": "basic"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Only upgrades are allowed"

    async def test_unknown_plan(self, client: AsyncClient, plans, auth_headers: dict, razorpay_keys):
        response = await client.post("/api/v1/payments/order", json={"plan": "platinum"}, headers=auth_headers)
        assert response.status_code == 404

    async def test_gateway_error_is_502(self, client: AsyncClient, plans, auth_headers: dict, razorpay_keys):
        with patch(
            "app.services.payment_service.create_remote_order",
            new_callable=AsyncMock,
            side_effect=GatewayError("GATEWAY_TIMEOUT", "Payment gateway timed out"),
        ):
            response = await client.post("/api/v1/payments/order", json={"plan": "basic"}, headers=auth_headers)
        assert response.status_code == 502
        assert response.json()["detail"] == "Payment gateway timed out"


class TestVerifyEndpoint:
    async def test_verify_activates(
        self, client: AsyncClient, plans, test_user, auth_headers: dict, make_payment, razorpay_keys
    ):
        payment = await make_payment(test_user, plan="premium", amount=2000)
        with patch("app.services.payment_service.fetch_payment", new_callable=AsyncMock, return_value=None):
            response = await client.post(
                "/api/v1/payments/verify",
                json={
                    "razorpay_order_id": payment.order_id,
                    "razorpay_payment_id": "pay_1",
                    "razorpay_signature": _signature(razorpay_keys.razorpay_key_secret, payment.order_id, "pay_1"),
                },
                headers=auth_headers,
            )

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["ok"] is True
        assert data["status"] == "paid"
        assert data["subscription"]["plan"] == "premium"

    async def test_bad_signature_persists_failure(
        self, client: AsyncClient, db_session: AsyncSession, plans, test_user, auth_headers: dict, make_payment, razorpay_keys
    ):
        payment = await make_payment(test_user)
        response = await client.post(
            "/api/v1/payments/verify",
            json={
                "razorpay_order_id": payment.order_id,
                "razorpay_payment_id": "pay_1",
                "razorpay_signature": "deadbeef",
            },
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Payment verification failed"

        result = await db_session.execute(select(Payment.status).where(Payment.id == payment.id))
        assert result.scalar_one() == "failed"


class TestHistoryAndCancel:
    async def test_lists_only_own_payments(
        self, client: AsyncClient, test_user, auth_headers: dict, make_user, make_payment
    ):
        mine = await make_payment(test_user)
        await make_payment(await make_user())

        response = await client.get("/api/v1/payments", headers=auth_headers)
        assert response.status_code == 200
        ids = [p["id"] for p in response.json()["payments"]]
        assert ids == [str(mine.id)]

    async def test_admin_lists_everything(
        self, client: AsyncClient, test_user, admin_headers: dict, make_user, make_payment
    ):
        await make_payment(test_user)
        await make_payment(await make_user())
        response = await client.get("/api/v1/payments/all", headers=admin_headers)
        assert len(response.json()["payments"]) == 2

    async def test_cancel_pending(self, client: AsyncClient, test_user, auth_headers: dict, make_payment):
        payment = await make_payment(test_user)
        response = await client.patch(f"/api/v1/payments/{payment.id}/cancel", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["payment"]["status"] == "cancelled"

    async def test_cancel_paid_is_noop(self, client: AsyncClient, test_user, auth_headers: dict, make_payment):
        payment = await make_payment(test_user, status=PaymentStatus.PAID)
        response = await client.patch(f"/api/v1/payments/{payment.id}/cancel", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["payment"]["status"] == "paid"

    async def test_cancel_unknown(self, client: AsyncClient, auth_headers: dict):
        response = await client.patch(f"/api/v1/payments/{uuid.uuid4()}/cancel", headers=auth_headers)
        assert response.status_code == 404
