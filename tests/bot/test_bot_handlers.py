"""Bot payment handlers with the reconciler and DB session patched out."""
import asyncio
from contextlib import contextmanager
from unittest.mock import AsyncMock, MagicMock, patch

from app.bot import main as bot_main
from app.services.payments.errors import OrderStateError
from app.services.payments.service import ConfirmResult


@contextmanager
def _fake_session():
    yield MagicMock()


def _pre_checkout(payload="order-1", amount=100, currency="XTR", user_id=42):
    query = MagicMock()
    query.id = "pcq-1"
    query.invoice_payload = payload
    query.total_amount = amount
    query.currency = currency
    query.from_user.id = user_id
    return query


def _payment_message(payload="order-1", charge_id="charge-1", user_id=42):
    message = MagicMock()
    message.answer = AsyncMock()
    message.from_user.id = user_id
    message.successful_payment.invoice_payload = payload
    message.successful_payment.telegram_payment_charge_id = charge_id
    return message


class TestPreCheckout:
    def test_approves_valid_order(self):
        bot = AsyncMock()
        with patch.object(bot_main, "get_db_session", _fake_session), patch.object(
            bot_main, "PaymentReconciler"
        ) as reconciler_cls:
            reconciler_cls.return_value.validate_pre_checkout.return_value = (True, "")
            asyncio.run(bot_main.handle_pre_checkout(_pre_checkout(), bot))

        reconciler_cls.return_value.validate_pre_checkout.assert_called_once_with(
            "order-1", total_amount=100, currency="XTR", telegram_user_id="42"
        )
        bot.answer_pre_checkout_query.assert_awaited_once_with("pcq-1", ok=True)

    def test_rejects_with_reason(self):
        bot = AsyncMock()
        with patch.object(bot_main, "get_db_session", _fake_session), patch.object(
            bot_main, "PaymentReconciler"
        ) as reconciler_cls:
            reconciler_cls.return_value.validate_pre_checkout.return_value = (False, "Amount mismatch")
            asyncio.run(bot_main.handle_pre_checkout(_pre_checkout(), bot))

        bot.answer_pre_checkout_query.assert_awaited_once_with("pcq-1", ok=False, error_message="Amount mismatch")

    def test_internal_error_still_answers(self):
        bot = AsyncMock()
        with patch.object(bot_main, "get_db_session", _fake_session), patch.object(
            bot_main, "PaymentReconciler"
        ) as reconciler_cls:
            reconciler_cls.return_value.validate_pre_checkout.side_effect = RuntimeError("db down")
            asyncio.run(bot_main.handle_pre_checkout(_pre_checkout(), bot))

        bot.answer_pre_checkout_query.assert_awaited_once_with(
            "pcq-1", ok=False, error_message=bot_main.PRE_CHECKOUT_INTERNAL_ERROR
        )


class TestSuccessfulPayment:
    def test_confirms_and_replies(self):
        message = _payment_message()
        order = MagicMock(reference_type="unlock")
        with patch.object(bot_main, "get_db_session", _fake_session), patch.object(
            bot_main, "PaymentReconciler"
        ) as reconciler_cls:
            reconciler_cls.return_value.confirm_order.return_value = ConfirmResult(order=order)
            asyncio.run(bot_main.handle_successful_payment(message))

        reconciler_cls.return_value.confirm_order.assert_called_once_with("order-1", provider_payment_id="charge-1")
        message.answer.assert_awaited_once_with(bot_main.SUCCESS_MESSAGES["unlock"])

    def test_duplicate_delivery_is_silent(self):
        message = _payment_message()
        order = MagicMock(reference_type="tip")
        with patch.object(bot_main, "get_db_session", _fake_session), patch.object(
            bot_main, "PaymentReconciler"
        ) as reconciler_cls:
            reconciler_cls.return_value.confirm_order.return_value = ConfirmResult(order=order, already_completed=True)
            asyncio.run(bot_main.handle_successful_payment(message))

        message.answer.assert_not_awaited()

    def test_unmatched_payment_mentions_charge_id(self):
        message = _payment_message(charge_id="charge-77")
        with patch.object(bot_main, "get_db_session", _fake_session), patch.object(
            bot_main, "PaymentReconciler"
        ) as reconciler_cls:
            reconciler_cls.return_value.confirm_order.side_effect = OrderStateError("Order is cancelled")
            asyncio.run(bot_main.handle_successful_payment(message))

        message.answer.assert_awaited_once()
        assert "charge-77" in message.answer.await_args.args[0]
