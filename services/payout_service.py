"""
Payout Service - Satıcı ödeme talepleri
Talep anında kullanılabilir bakiye rezerve edilir (withdrawal),
red durumunda geri yüklenir (payout_reversal)
"""
import logging
from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import PayoutRequest, BankAccount
from app.core.config import Settings, get_settings
from app.core.enums import PayoutStatus, WalletTransactionType, Direction, BalanceType
from app.core.exceptions import (
    ValidationError,
    InsufficientBalanceError,
    NotFoundError,
    PermissionDeniedError,
    InvalidTransitionError,
)
from app.core.money import ZERO, money, to_decimal, format_try
from .wallet_service import WalletService

logger = logging.getLogger(__name__)


class PayoutService:
    """Ödeme talebi yaşam döngüsü: pending -> approved -> completed | rejected"""

    def __init__(self, db: Session, settings: Optional[Settings] = None, wallet_service: Optional[WalletService] = None):
        self.db = db
        self.settings = settings or get_settings()
        self.wallets = wallet_service or WalletService(db)

    @property
    def minimum_amount(self) -> Decimal:
        return money(self.settings.payout_minimum_amount)

    # ========================================================================
    # SELLER
    # ========================================================================

    def create_request(
        self,
        seller_id: int,
        amount,
        bank_account_id: int,
        notes: Optional[str] = None,
    ) -> PayoutRequest:
        """
        Yeni ödeme talebi

        Tüm kontroller bakiye değişmeden önce yapılır.

        Raises:
            ValidationError: Minimum tutar altı, hesap geçersiz veya açık talep mevcut
            InsufficientBalanceError: Tutar kullanılabilir bakiyeden büyük
        """
        amount = money(to_decimal(amount))

        if amount < self.minimum_amount:
            raise ValidationError(f"Minimum ödeme talebi tutarı {format_try(self.minimum_amount)}.")

        account = self.db.query(BankAccount).filter(BankAccount.id == bank_account_id).first()
        if account is None or account.seller_id != seller_id:
            raise ValidationError("Geçerli bir banka hesabı seçiniz.")

        open_request = self.db.query(PayoutRequest.id).filter(
            PayoutRequest.seller_id == seller_id,
            PayoutRequest.status.in_(PayoutStatus.open_statuses()),
        ).first()
        if open_request:
            raise ValidationError("Zaten bekleyen bir ödeme talebiniz var.")

        wallet = self.wallets.get_wallet(seller_id, lock=True)
        if amount > wallet.balance:
            raise InsufficientBalanceError(amount, wallet.balance)

        request = PayoutRequest(
            seller_id=seller_id,
            bank_account_id=account.id,
            amount=amount,
            status=PayoutStatus.PENDING.value,
            notes=notes,
        )
        self.db.add(request)
        self.db.flush()

        wallet.balance = money(wallet.balance - amount)
        self.wallets.record(wallet, WalletTransactionType.WITHDRAWAL, amount, Direction.DEBIT, BalanceType.AVAILABLE,
                            f"Ödeme talebi #{request.id}", payout_request_id=request.id)
        self.db.flush()

        logger.info(f"💸 Payout request created: {request.id} for seller {seller_id}, amount: {amount}")
        return request

    def seller_requests(self, seller_id: int, limit: int = 20) -> List[PayoutRequest]:
        return (
            self.db.query(PayoutRequest)
            .filter(PayoutRequest.seller_id == seller_id)
            .order_by(PayoutRequest.id.desc())
            .limit(limit)
            .all()
        )

    # ========================================================================
    # ADMIN
    # ========================================================================

    def get(self, request_id: int, seller_id: Optional[int] = None) -> PayoutRequest:
        request = self.db.query(PayoutRequest).filter(PayoutRequest.id == request_id).first()
        if request is None:
            raise NotFoundError("Ödeme talebi bulunamadı.")
        if seller_id is not None and request.seller_id != seller_id:
            raise PermissionDeniedError("Bu ödeme talebine erişim yetkiniz yok.")
        return request

    def _require(self, request: PayoutRequest, allowed: tuple, target: PayoutStatus):
        if request.status not in [s.value for s in allowed]:
            raise InvalidTransitionError(request.status, target.value)

    def approve(self, request_id: int, admin_id: Optional[int] = None, notes: Optional[str] = None) -> PayoutRequest:
        request = self.get(request_id)
        self._require(request, (PayoutStatus.PENDING,), PayoutStatus.APPROVED)

        request.status = PayoutStatus.APPROVED.value
        request.processed_by = admin_id
        request.processed_at = datetime.now(timezone.utc)
        if notes:
            request.admin_notes = notes
        self.db.flush()

        logger.info(f"✅ Payout request {request.id} approved by admin {admin_id}")
        return request

    def complete(
        self,
        request_id: int,
        admin_id: Optional[int] = None,
        transaction_reference: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> PayoutRequest:
        """Banka transferi yapıldıktan sonra (tutar talep anında düşülmüştü)"""
        request = self.get(request_id)
        self._require(request, (PayoutStatus.APPROVED,), PayoutStatus.COMPLETED)

        wallet = self.wallets.get_wallet(request.seller_id, lock=True)
        wallet.withdrawn_balance = money(wallet.withdrawn_balance + request.amount)

        request.status = PayoutStatus.COMPLETED.value
        request.processed_by = admin_id
        request.processed_at = datetime.now(timezone.utc)
        request.transaction_reference = transaction_reference
        if notes:
            request.admin_notes = notes
        self.db.flush()

        logger.info(f"✅ Payout request {request.id} completed, amount: {request.amount}")
        return request

    def reject(self, request_id: int, admin_id: Optional[int] = None, notes: Optional[str] = None) -> PayoutRequest:
        """Rezerve edilen tutar kullanılabilir bakiyeye geri döner"""
        request = self.get(request_id)
        self._require(request, (PayoutStatus.PENDING, PayoutStatus.APPROVED), PayoutStatus.REJECTED)

        wallet = self.wallets.get_wallet(request.seller_id, lock=True)
        wallet.balance = money(wallet.balance + request.amount)
        self.wallets.record(wallet, WalletTransactionType.PAYOUT_REVERSAL, request.amount, Direction.CREDIT,
                            BalanceType.AVAILABLE, f"Ödeme talebi #{request.id} reddedildi",
                            payout_request_id=request.id)

        request.status = PayoutStatus.REJECTED.value
        request.processed_by = admin_id
        request.processed_at = datetime.now(timezone.utc)
        request.admin_notes = notes
        self.db.flush()

        logger.info(f"❌ Payout request {request.id} rejected by admin {admin_id}")
        return request

    def list_requests(self, status: Optional[str] = None, limit: int = 100) -> List[PayoutRequest]:
        query = self.db.query(PayoutRequest)
        if status:
            query = query.filter(PayoutRequest.status == status)
        return query.order_by(PayoutRequest.created_at, PayoutRequest.id).limit(limit).all()

    def statistics(self, now: Optional[datetime] = None) -> Dict:
        """Admin paneli özet"""
        now = now or datetime.now(timezone.utc)
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        month_start = day_start.replace(day=1)

        def total(*filters) -> Decimal:
            value = self.db.query(func.coalesce(func.sum(PayoutRequest.amount), 0)).filter(*filters).scalar()
            return money(value or ZERO)

        pending = PayoutRequest.status == PayoutStatus.PENDING.value
        completed = PayoutRequest.status == PayoutStatus.COMPLETED.value

        return {
            'pending_count': self.db.query(func.count(PayoutRequest.id)).filter(pending).scalar() or 0,
            'pending_amount': total(pending),
            'approved_count': self.db.query(func.count(PayoutRequest.id)).filter(
                PayoutRequest.status == PayoutStatus.APPROVED.value
            ).scalar() or 0,
            'completed_today': total(completed, PayoutRequest.processed_at >= day_start,
                                     PayoutRequest.processed_at < day_start + timedelta(days=1)),
            'completed_this_month': total(completed, PayoutRequest.processed_at >= month_start),
        }
