"""
IBAN validation and seller bank accounts.
"""

from decimal import Decimal

import pytest

from app.core.exceptions import ValidationError, PermissionDeniedError
from database import BankAccount, PayoutRequest
from services.bank_accounts import BankAccountService, normalize_iban, validate_iban, validate_iban_checksum

VALID_IBANS = [
    "TR330006100519786457841326",
    "TR320010009999901234567890",
    "DE89370400440532013000",
    "GB82WEST12345698765432",
]


class TestIbanChecksum:
    def test_real_ibans_accepted(self):
        for iban in VALID_IBANS:
            assert validate_iban_checksum(iban), iban

    def test_every_single_digit_mutation_rejected(self):
        iban = VALID_IBANS[0]
        for position, char in enumerate(iban):
            if not char.isdigit():
                continue
            for digit in "0123456789":
                if digit == char:
                    continue
                mutated = iban[:position] + digit + iban[position + 1:]
                assert not validate_iban_checksum(mutated), mutated

    def test_formatting_normalized(self):
        assert normalize_iban("tr33 0006-1005 1978 6457 8413 26") == VALID_IBANS[0]
        assert validate_iban("tr33 0006 1005 1978 6457 8413 26") == VALID_IBANS[0]

    def test_malformed_rejected(self):
        assert not validate_iban_checksum("NOT-AN-IBAN")
        with pytest.raises(ValidationError):
            validate_iban("TR33000610051978645784132")  # 25 karakter
        with pytest.raises(ValidationError):
            validate_iban("TR330006100519786457841327")


class TestBankAccountService:
    def test_first_account_becomes_default(self, db):
        service = BankAccountService(db)
        first = service.add(1, "Ziraat", VALID_IBANS[0], "Merkez Eczanesi")
        second = service.add(1, "Garanti", VALID_IBANS[1], "Merkez Eczanesi")

        assert first.is_default is True
        assert second.is_default is False
        assert first.iban == VALID_IBANS[0]

    def test_duplicate_iban_rejected(self, db):
        service = BankAccountService(db)
        service.add(1, "Ziraat", VALID_IBANS[0], "Merkez Eczanesi")
        with pytest.raises(ValidationError):
            service.add(1, "Ziraat", VALID_IBANS[0].lower(), "Merkez Eczanesi")

    def test_set_default_moves_flag(self, db):
        service = BankAccountService(db)
        first = service.add(1, "Ziraat", VALID_IBANS[0], "Merkez Eczanesi")
        second = service.add(1, "Garanti", VALID_IBANS[1], "Merkez Eczanesi")

        service.set_default(second.id, 1)
        db.refresh(first)

        assert second.is_default is True
        assert first.is_default is False

    def test_other_seller_cannot_touch_account(self, db):
        account = BankAccountService(db).add(1, "Ziraat", VALID_IBANS[0], "Merkez Eczanesi")
        with pytest.raises(PermissionDeniedError):
            BankAccountService(db).set_default(account.id, 2)

    def test_delete_reassigns_default(self, db):
        service = BankAccountService(db)
        first = service.add(1, "Ziraat", VALID_IBANS[0], "Merkez Eczanesi")
        second = service.add(1, "Garanti", VALID_IBANS[1], "Merkez Eczanesi")

        service.delete(first.id, 1)

        accounts = service.list_accounts(1)
        assert [a.id for a in accounts] == [second.id]
        assert accounts[0].is_default is True

    def test_account_with_open_payout_cannot_be_deleted(self, db):
        account = BankAccountService(db).add(1, "Ziraat", VALID_IBANS[0], "Merkez Eczanesi")
        db.add(PayoutRequest(seller_id=1, bank_account_id=account.id, amount=Decimal("150"), status="pending"))
        db.flush()

        with pytest.raises(ValidationError):
            BankAccountService(db).delete(account.id, 1)
        assert db.query(BankAccount).count() == 1
