"""
Payout requests: reservation at request time, admin approval flow.
"""

from decimal import Decimal

import pytest

from app.core.exceptions import ValidationError, InsufficientBalanceError, InvalidTransitionError
from database import PayoutRequest, WalletTransaction
from services.bank_accounts import BankAccountService
from services.payout_service import PayoutService
from services.wallet_service import WalletService

IBAN = "TR330006100519786457841326"


@pytest.fixture
def funded_seller(db):
    """Kullanılabilir bakiyesi 500 TL olan satıcı + banka hesabı"""
    wallet = WalletService(db).get_wallet(1)
    wallet.balance = Decimal("500.00")
    account = BankAccountService(db).add(1, "Ziraat", IBAN, "Merkez Ecza Deposu")
    db.flush()
    return wallet, account


class TestCreateRequest:
    def test_amount_reserved_from_balance(self, db, funded_seller):
        wallet, account = funded_seller

        request = PayoutService(db).create_request(1, Decimal("200"), account.id, notes="Haftalık")

        assert request.status == "pending"
        assert request.amount == Decimal("200.00")
        assert wallet.balance == Decimal("300.00")
        tx = db.query(WalletTransaction).filter(WalletTransaction.payout_request_id == request.id).one()
        assert tx.type == "withdrawal"
        assert tx.direction == "debit"

    def test_over_balance_rejected_without_mutation(self, db, funded_seller):
        wallet, account = funded_seller

        with pytest.raises(InsufficientBalanceError) as exc:
            PayoutService(db).create_request(1, Decimal("500.01"), account.id)

        assert exc.value.available == Decimal("500.00")
        assert wallet.balance == Decimal("500.00")
        assert db.query(PayoutRequest).count() == 0
        assert db.query(WalletTransaction).count() == 0

    def test_below_minimum_rejected(self, db, funded_seller):
        _, account = funded_seller
        with pytest.raises(ValidationError):
            PayoutService(db).create_request(1, Decimal("99.99"), account.id)

    def test_foreign_bank_account_rejected(self, db, funded_seller):
        other = BankAccountService(db).add(2, "Garanti", "TR320010009999901234567890", "Başka Eczane")
        with pytest.raises(ValidationError):
            PayoutService(db).create_request(1, Decimal("150"), other.id)

    def test_single_open_request(self, db, funded_seller):
        _, account = funded_seller
        service = PayoutService(db)
        service.create_request(1, Decimal("150"), account.id)

        with pytest.raises(ValidationError):
            service.create_request(1, Decimal("150"), account.id)


class TestAdminFlow:
    def test_approve_then_complete(self, db, funded_seller):
        wallet, account = funded_seller
        service = PayoutService(db)
        request = service.create_request(1, Decimal("200"), account.id)

        service.approve(request.id, admin_id=9)
        service.complete(request.id, admin_id=9, transaction_reference="EFT-123")

        assert request.status == "completed"
        assert request.transaction_reference == "EFT-123"
        assert request.processed_by == 9
        assert wallet.withdrawn_balance == Decimal("200.00")
        assert wallet.balance == Decimal("300.00")

    def test_complete_requires_approval(self, db, funded_seller):
        _, account = funded_seller
        service = PayoutService(db)
        request = service.create_request(1, Decimal("200"), account.id)

        with pytest.raises(InvalidTransitionError):
            service.complete(request.id)

    def test_reject_restores_balance(self, db, funded_seller):
        wallet, account = funded_seller
        service = PayoutService(db)
        request = service.create_request(1, Decimal("200"), account.id)

        service.reject(request.id, admin_id=9, notes="IBAN sahibi uyuşmuyor")

        assert request.status == "rejected"
        assert request.admin_notes == "IBAN sahibi uyuşmuyor"
        assert wallet.balance == Decimal("500.00")
        types = [tx.type for tx in db.query(WalletTransaction).filter(WalletTransaction.payout_request_id == request.id)]
        assert sorted(types) == ["payout_reversal", "withdrawal"]

    def test_rejected_request_frees_slot(self, db, funded_seller):
        _, account = funded_seller
        service = PayoutService(db)
        first = service.create_request(1, Decimal("200"), account.id)
        service.reject(first.id)

        assert service.create_request(1, Decimal("200"), account.id).status == "pending"

    def test_completed_cannot_be_rejected(self, db, funded_seller):
        _, account = funded_seller
        service = PayoutService(db)
        request = service.create_request(1, Decimal("200"), account.id)
        service.approve(request.id)
        service.complete(request.id)

        with pytest.raises(InvalidTransitionError):
            service.reject(request.id)

    def test_statistics(self, db, funded_seller):
        _, account = funded_seller
        service = PayoutService(db)
        service.create_request(1, Decimal("150"), account.id)

        stats = service.statistics()

        assert stats["pending_count"] == 1
        assert stats["pending_amount"] == Decimal("150.00")
        assert stats["approved_count"] == 0
