"""Tests for the payment status transition table."""

import pytest

from app.billing.exceptions import InvalidPaymentTransition
from app.models.payment import Payment, PaymentStatus, can_transition


class TestTransitions:
    @pytest.mark.parametrize(
        ("current", "requested"),
        [
            (PaymentStatus.CREATED, PaymentStatus.PAID),
            (PaymentStatus.CREATED, PaymentStatus.FAILED),
            (PaymentStatus.CREATED, PaymentStatus.CANCELLED),
            (PaymentStatus.FAILED, PaymentStatus.PAID),
            (PaymentStatus.PAID, PaymentStatus.REFUNDED),
        ],
    )
    def test_allowed(self, current, requested):
        assert can_transition(current, requested) is True

    @pytest.mark.parametrize(
        ("current", "requested"),
        [
            (PaymentStatus.CANCELLED, PaymentStatus.PAID),
            (PaymentStatus.REFUNDED, PaymentStatus.PAID),
            (PaymentStatus.PAID, PaymentStatus.FAILED),
            (PaymentStatus.FAILED, PaymentStatus.FAILED),
            (PaymentStatus.FAILED, PaymentStatus.CANCELLED),
        ],
    )
    def test_rejected(self, current, requested):
        assert can_transition(current, requested) is False

    def test_transition_to_raises_on_illegal_move(self):
        payment = Payment(status=PaymentStatus.CANCELLED.value)
        with pytest.raises(InvalidPaymentTransition) as exc_info:
            payment.transition_to(PaymentStatus.PAID)
        assert exc_info.value.status_code == 409
        assert payment.status == "cancelled"
