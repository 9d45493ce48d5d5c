"""WalletService: lazy creation, atomic increments, conditional debit."""
import pytest

from app.models.wallet import Wallet
from app.services.payments.errors import InsufficientFundsError
from app.services.wallets.service import WalletService


def test_get_or_create_is_idempotent(db):
    svc = WalletService(db)

    first = svc.get_or_create("user-1")
    second = svc.get_or_create("user-1")
    db.commit()

    assert first.id == second.id
    assert (first.stars_balance, first.total_earned, first.total_spent) == (0, 0, 0)
    assert db.query(Wallet).count() == 1


def test_credits_accumulate(db):
    svc = WalletService(db)
    svc.credit_earnings("creator-1", 85)
    svc.credit_earnings("creator-1", 34)
    svc.record_spend("fan-1", 100)
    db.commit()

    creator = svc.get("creator-1")
    assert (creator.stars_balance, creator.total_earned) == (119, 119)
    fan = svc.get("fan-1")
    assert (fan.stars_balance, fan.total_spent) == (0, 100)


def test_debit_never_goes_negative(db):
    svc = WalletService(db)
    svc.credit_earnings("user-1", 20)
    db.commit()

    svc.debit("user-1", 15)
    with pytest.raises(InsufficientFundsError):
        svc.debit("user-1", 15)
    db.commit()

    wallet = svc.get("user-1")
    assert (wallet.stars_balance, wallet.total_spent) == (5, 15)


def test_get_missing_wallet(db):
    assert WalletService(db).get("nobody") is None
