"""
Ledger posting for a settled order. Entries of one order always sum to zero:
the payer's debit equals the amount, creator + platform credits equal fee + net.
"""
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.ledger_entry import LedgerEntry
from app.models.order import Order


def build_ledger_entries(order: Order, platform_account_id: str) -> list[LedgerEntry]:
    entries = [
        LedgerEntry(
            order_id=order.id,
            user_id=order.user_id,
            amount=-order.amount,
            role="user",
            description=f"{order.reference_type} payment",
        )
    ]
    platform_credit = order.fee
    if order.creator_id:
        if order.net > 0:
            entries.append(
                LedgerEntry(
                    order_id=order.id,
                    user_id=order.creator_id,
                    amount=order.net,
                    role="creator",
                    description=f"{order.reference_type} earnings",
                )
            )
    else:
        # no payee: the platform keeps the whole amount
        platform_credit += order.net
    if platform_credit > 0:
        entries.append(
            LedgerEntry(
                order_id=order.id,
                user_id=platform_account_id,
                amount=platform_credit,
                role="platform",
                description="Platform fee" if order.creator_id else f"{order.reference_type} revenue",
            )
        )
    return entries


def get_entries(db: Session, order_id: str) -> list[LedgerEntry]:
    return (
        db.query(LedgerEntry)
        .filter(LedgerEntry.order_id == order_id)
        .order_by(LedgerEntry.created_at, LedgerEntry.role)
        .all()
    )


def ledger_sum(db: Session, order_id: str) -> int:
    total = db.query(func.coalesce(func.sum(LedgerEntry.amount), 0)).filter(LedgerEntry.order_id == order_id).scalar()
    return int(total)
