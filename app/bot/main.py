"""
Telegram bot using aiogram 3.x.
Payment side of the Mini App: answers pre_checkout_query for Stars invoices and
confirms orders on successful_payment. Polling only, no webhook handling.
"""
import asyncio
import logging

from aiogram import Bot, Dispatcher, F, Router
from aiogram.filters import CommandStart
from aiogram.types import ErrorEvent, Message, PreCheckoutQuery

from app.core.config import settings
from app.core.logging import configure_logging
from app.db.session import get_db_session
from app.services.payments.errors import OrderNotFoundError, OrderStateError, PaymentError
from app.services.payments.service import PaymentReconciler

configure_logging()
logger = logging.getLogger("bot")

router = Router()

PRE_CHECKOUT_INTERNAL_ERROR = "Internal error. Please try again later."

SUCCESS_MESSAGES = {
    "subscription": "✅ Subscription active. Enjoy the creator's posts!",
    "unlock": "✅ Post unlocked. Open the app to view it.",
    "tip": "✅ Tip sent. Thank you for supporting the creator!",
    "livestream": "✅ Ticket confirmed. See you at the livestream!",
}


@router.message(CommandStart())
async def cmd_start(message: Message):
    await message.answer(
        "👋 Welcome! Open the app to browse creators, subscribe and unlock posts with Telegram Stars."
    )


# ===========================================
# Telegram Payments: pre_checkout & successful_payment
# ===========================================

@router.pre_checkout_query()
async def handle_pre_checkout(pre_checkout: PreCheckoutQuery, bot: Bot):
    """Approve the charge only for a pending order that matches user, amount and currency."""
    telegram_id = str(pre_checkout.from_user.id)
    payload = pre_checkout.invoice_payload

    try:
        with get_db_session() as db:
            ok, error_msg = PaymentReconciler(db).validate_pre_checkout(
                payload,
                total_amount=pre_checkout.total_amount,
                currency=pre_checkout.currency,
                telegram_user_id=telegram_id,
            )

        if ok:
            await bot.answer_pre_checkout_query(pre_checkout.id, ok=True)
            logger.info("pre_checkout_approved", extra={"user_id": telegram_id, "order_id": payload})
        else:
            await bot.answer_pre_checkout_query(pre_checkout.id, ok=False, error_message=error_msg)
    except Exception:
        logger.exception("pre_checkout_error", extra={"user_id": telegram_id, "order_id": payload})
        await bot.answer_pre_checkout_query(
            pre_checkout.id, ok=False, error_message=PRE_CHECKOUT_INTERNAL_ERROR
        )


@router.message(F.successful_payment)
async def handle_successful_payment(message: Message):
    """Stars were charged: complete the order. Telegram may redeliver; repeats are no-ops."""
    payment_info = message.successful_payment
    telegram_id = str(message.from_user.id)
    order_id = payment_info.invoice_payload
    charge_id = payment_info.telegram_payment_charge_id

    try:
        with get_db_session() as db:
            result = PaymentReconciler(db).confirm_order(order_id, provider_payment_id=charge_id)
            reference_type = result.order.reference_type
            already_completed = result.already_completed
    except (OrderNotFoundError, OrderStateError) as e:
        # money was taken for an order we cannot complete: support refunds by charge id
        logger.error(
            "successful_payment_unmatched",
            extra={"order_id": order_id, "user_id": telegram_id, "charge_id": charge_id, "error": e.message},
        )
        await message.answer(
            f"⚠️ We could not match this payment to an order. Contact support with payment id: {charge_id}"
        )
        return
    except PaymentError as e:
        logger.error(
            "successful_payment_failed",
            extra={"order_id": order_id, "user_id": telegram_id, "charge_id": charge_id, "error": e.message},
        )
        await message.answer("⚠️ Payment received but processing failed. We will sort it out shortly.")
        return

    if already_completed:
        logger.info("successful_payment_duplicate", extra={"order_id": order_id, "charge_id": charge_id})
        return
    await message.answer(SUCCESS_MESSAGES.get(reference_type, "✅ Payment received."))


async def on_error(event: ErrorEvent, *args, **kwargs):
    """Global error handler."""
    logger.exception(
        "Error in handler",
        extra={"error": str(event.exception)},
    )


async def main():
    """Start the bot."""
    logger.info("Starting bot...")
    bot = Bot(token=settings.telegram_bot_token)
    dp = Dispatcher()
    dp.errors.register(on_error)
    dp.include_router(router)

    # Delete webhook if exists (we use polling)
    await bot.delete_webhook(drop_pending_updates=False)
    logger.info("Bot started successfully!")

    try:
        await dp.start_polling(
            bot,
            allowed_updates=["message", "pre_checkout_query"],
        )
    finally:
        await bot.session.close()


if __name__ == "__main__":
    asyncio.run(main())
