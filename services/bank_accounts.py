"""
Bank Account Service - IBAN doğrulama ve satıcı banka hesapları
"""
import logging
import re
from typing import List, Optional
from sqlalchemy.orm import Session

from database import BankAccount, PayoutRequest
from app.core.enums import PayoutStatus
from app.core.exceptions import ValidationError, NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)

IBAN_PATTERN = re.compile(r"^[A-Z]{2}[0-9]{2}[A-Z0-9]{4,30}$")
TR_IBAN_LENGTH = 26


def normalize_iban(iban: str) -> str:
    """Boşluk ve tireleri kaldırır, büyük harfe çevirir"""
    return re.sub(r"[\s\-]", "", iban or "").upper()


def validate_iban_checksum(iban: str) -> bool:
    """
    MOD97 kontrolü (ISO 13616)

    İlk 4 karakter sona taşınır, harfler A=10 ... Z=35 olarak sayıya çevrilir,
    sonuç mod 97 == 1 olmalıdır.
    """
    iban = normalize_iban(iban)
    if not IBAN_PATTERN.match(iban):
        return False

    rearranged = iban[4:] + iban[:4]
    digits = "".join(str(int(ch, 36)) for ch in rearranged)
    return int(digits) % 97 == 1


def validate_iban(iban: str) -> str:
    """
    IBAN'ı normalize edip doğrular

    Returns:
        Normalize IBAN

    Raises:
        ValidationError: Geçersiz format, uzunluk veya checksum
    """
    normalized = normalize_iban(iban)

    if not IBAN_PATTERN.match(normalized):
        raise ValidationError("Geçersiz IBAN formatı.")
    if normalized.startswith("TR") and len(normalized) != TR_IBAN_LENGTH:
        raise ValidationError(f"TR IBAN {TR_IBAN_LENGTH} karakter olmalıdır.")
    if not validate_iban_checksum(normalized):
        raise ValidationError("IBAN doğrulama hatası (checksum).")

    return normalized


class BankAccountService:
    """Satıcı banka hesapları"""

    def __init__(self, db: Session):
        self.db = db

    def list_accounts(self, seller_id: int) -> List[BankAccount]:
        return (
            self.db.query(BankAccount)
            .filter(BankAccount.seller_id == seller_id)
            .order_by(BankAccount.is_default.desc(), BankAccount.id)
            .all()
        )

    def get(self, account_id: int, seller_id: Optional[int] = None) -> BankAccount:
        account = self.db.query(BankAccount).filter(BankAccount.id == account_id).first()
        if account is None:
            raise NotFoundError("Banka hesabı bulunamadı.")
        if seller_id is not None and account.seller_id != seller_id:
            raise PermissionDeniedError("Bu banka hesabına erişim yetkiniz yok.")
        return account

    def add(
        self,
        seller_id: int,
        bank_name: str,
        iban: str,
        account_holder: str,
        swift_code: Optional[str] = None,
        is_default: bool = False,
    ) -> BankAccount:
        """Yeni hesap ekler (ilk hesap otomatik varsayılan olur)"""
        normalized = validate_iban(iban)

        if not (bank_name or "").strip():
            raise ValidationError("Banka adı gereklidir.")
        if not (account_holder or "").strip():
            raise ValidationError("Hesap sahibi gereklidir.")

        duplicate = self.db.query(BankAccount).filter(
            BankAccount.seller_id == seller_id,
            BankAccount.iban == normalized,
        ).first()
        if duplicate:
            raise ValidationError("Bu IBAN zaten kayıtlı.")

        has_accounts = self.db.query(BankAccount.id).filter(BankAccount.seller_id == seller_id).first() is not None
        make_default = is_default or not has_accounts

        if make_default:
            self._clear_default(seller_id)

        account = BankAccount(
            seller_id=seller_id,
            bank_name=bank_name.strip(),
            iban=normalized,
            account_holder=account_holder.strip(),
            swift_code=(swift_code or None) and swift_code.strip().upper(),
            is_default=make_default,
        )
        self.db.add(account)
        self.db.flush()

        logger.info(f"✅ Bank account added for seller {seller_id}: {normalized[:6]}****{normalized[-4:]}")
        return account

    def _clear_default(self, seller_id: int):
        self.db.query(BankAccount).filter(
            BankAccount.seller_id == seller_id,
            BankAccount.is_default.is_(True),
        ).update({BankAccount.is_default: False}, synchronize_session="fetch")

    def set_default(self, account_id: int, seller_id: int) -> BankAccount:
        account = self.get(account_id, seller_id)
        self._clear_default(seller_id)
        account.is_default = True
        self.db.flush()
        return account

    def delete(self, account_id: int, seller_id: int):
        """Açık ödeme talebinde kullanılan hesap silinemez"""
        account = self.get(account_id, seller_id)

        in_use = self.db.query(PayoutRequest.id).filter(
            PayoutRequest.bank_account_id == account.id,
            PayoutRequest.status.in_(PayoutStatus.open_statuses()),
        ).first()
        if in_use:
            raise ValidationError("Bekleyen ödeme talebinde kullanılan hesap silinemez.")

        was_default = account.is_default
        self.db.delete(account)
        self.db.flush()

        if was_default:
            replacement = (
                self.db.query(BankAccount)
                .filter(BankAccount.seller_id == seller_id)
                .order_by(BankAccount.id)
                .first()
            )
            if replacement:
                replacement.is_default = True
                self.db.flush()

        logger.info(f"Bank account {account_id} deleted for seller {seller_id}")
