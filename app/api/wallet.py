"""
Wallet Endpoints
Satıcı cüzdanı, hareketler, banka hesapları ve ödeme talepleri
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List
import logging

from app.models import (
    WalletResponse,
    WalletTransactionResponse,
    BankAccountCreate,
    BankAccountResponse,
    PayoutRequestCreate,
    PayoutRequestResponse,
)
from app.core.exceptions import MarketplaceError
from database import get_db
from services.wallet_service import WalletService
from services.payout_service import PayoutService
from services.bank_accounts import BankAccountService
from .deps import current_seller_id, http_error

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/wallet", tags=["Wallet"])


@router.get("", response_model=WalletResponse)
def wallet_summary(
    seller_id: int = Depends(current_seller_id),
    db: Session = Depends(get_db),
):
    """Kullanılabilir / bekleyen bakiye özeti"""
    summary = WalletService(db).summary(seller_id)
    # İlk erişimde cüzdan oluşturulmuş olabilir
    db.commit()
    return summary


@router.get("/transactions", response_model=List[WalletTransactionResponse])
def wallet_transactions(
    limit: int = Query(20, ge=1, le=200),
    seller_id: int = Depends(current_seller_id),
    db: Session = Depends(get_db),
):
    transactions = WalletService(db).transactions(seller_id, limit=limit)
    db.commit()
    return transactions


# ============================================================================
# PAYOUT REQUESTS
# ============================================================================

@router.get("/payout-requests", response_model=List[PayoutRequestResponse])
def list_payout_requests(
    limit: int = Query(20, ge=1, le=200),
    seller_id: int = Depends(current_seller_id),
    db: Session = Depends(get_db),
):
    return PayoutService(db).seller_requests(seller_id, limit=limit)


@router.post("/payout-requests", response_model=PayoutRequestResponse, status_code=201)
def create_payout_request(
    request: PayoutRequestCreate,
    seller_id: int = Depends(current_seller_id),
    db: Session = Depends(get_db),
):
    """
    Ödeme talebi oluşturur

    Tutar kullanılabilir bakiyeden hemen düşülür; red halinde geri eklenir.
    """
    try:
        payout = PayoutService(db).create_request(seller_id, request.amount, request.bank_account_id, request.notes)
        db.commit()
        db.refresh(payout)
        return payout
    except MarketplaceError as e:
        db.rollback()
        raise http_error(e)


# ============================================================================
# BANK ACCOUNTS
# ============================================================================

@router.get("/bank-accounts", response_model=List[BankAccountResponse])
def list_bank_accounts(
    seller_id: int = Depends(current_seller_id),
    db: Session = Depends(get_db),
):
    return BankAccountService(db).list_accounts(seller_id)


@router.post("/bank-accounts", response_model=BankAccountResponse, status_code=201)
def add_bank_account(
    request: BankAccountCreate,
    seller_id: int = Depends(current_seller_id),
    db: Session = Depends(get_db),
):
    try:
        account = BankAccountService(db).add(
            seller_id=seller_id,
            bank_name=request.bank_name,
            iban=request.iban,
            account_holder=request.account_holder,
            swift_code=request.swift_code,
            is_default=request.is_default,
        )
        db.commit()
        db.refresh(account)
        return account
    except MarketplaceError as e:
        db.rollback()
        raise http_error(e)


@router.post("/bank-accounts/{account_id}/default", response_model=BankAccountResponse)
def set_default_bank_account(
    account_id: int,
    seller_id: int = Depends(current_seller_id),
    db: Session = Depends(get_db),
):
    try:
        account = BankAccountService(db).set_default(account_id, seller_id)
        db.commit()
        db.refresh(account)
        return account
    except MarketplaceError as e:
        db.rollback()
        raise http_error(e)


@router.delete("/bank-accounts/{account_id}")
def delete_bank_account(
    account_id: int,
    seller_id: int = Depends(current_seller_id),
    db: Session = Depends(get_db),
):
    try:
        BankAccountService(db).delete(account_id, seller_id)
        db.commit()
    except MarketplaceError as e:
        db.rollback()
        raise http_error(e)

    return {"success": True, "message": "Banka hesabı silindi"}
