import logging
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from app.models.wallet import Wallet
from app.services.payments.errors import InsufficientFundsError

logger = logging.getLogger(__name__)


class WalletService:
    """
    Wallet balances change only through SQL-side increments (never read-modify-write),
    so settlements of different orders for the same user commute.
    """

    def __init__(self, db: DBSession):
        self.db = db

    def ensure(self, user_id: str) -> None:
        """Create the wallet if missing. Safe under concurrent creation (unique user_id)."""
        if self.db.query(Wallet.id).filter(Wallet.user_id == user_id).first():
            return
        try:
            with self.db.begin_nested():
                self.db.add(Wallet(user_id=user_id))
        except IntegrityError:
            logger.info("wallet_created_concurrently", extra={"user_id": user_id})

    def get(self, user_id: str) -> Wallet | None:
        return self.db.query(Wallet).filter(Wallet.user_id == user_id).one_or_none()

    def get_or_create(self, user_id: str) -> Wallet:
        self.ensure(user_id)
        return self.db.query(Wallet).filter(Wallet.user_id == user_id).one()

    def credit_earnings(self, user_id: str, amount: int) -> None:
        self.ensure(user_id)
        self.db.execute(
            update(Wallet)
            .where(Wallet.user_id == user_id)
            .values(
                stars_balance=Wallet.stars_balance + amount,
                total_earned=Wallet.total_earned + amount,
                updated_at=datetime.now(timezone.utc),
            )
        )

    def record_spend(self, user_id: str, amount: int) -> None:
        """Payer paid out-of-band (Stars invoice): only total_spent moves."""
        self.ensure(user_id)
        self.db.execute(
            update(Wallet)
            .where(Wallet.user_id == user_id)
            .values(
                total_spent=Wallet.total_spent + amount,
                updated_at=datetime.now(timezone.utc),
            )
        )

    def debit(self, user_id: str, amount: int) -> None:
        """Spend from stars_balance. Conditional update: nothing changes if the balance is short."""
        res = self.db.execute(
            update(Wallet)
            .where(Wallet.user_id == user_id, Wallet.stars_balance >= amount)
            .values(
                stars_balance=Wallet.stars_balance - amount,
                total_spent=Wallet.total_spent + amount,
                updated_at=datetime.now(timezone.utc),
            )
        )
        if res.rowcount == 0:
            raise InsufficientFundsError(
                "Insufficient balance",
                {"user_id": user_id, "amount": amount},
            )
