"""
Wallet Service - Satıcı cüzdanı ve hareket defteri
Ödeme onayı -> bekleyen bakiye, teslimat -> kullanılabilir bakiye
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional
from sqlalchemy.orm import Session

from database import SellerWallet, WalletTransaction, Order
from app.core.enums import WalletTransactionType, Direction, BalanceType
from app.core.money import ZERO, money

logger = logging.getLogger(__name__)


class WalletService:
    """Satıcı cüzdan işlemleri (çağıran transaction'ı commit eder)"""

    def __init__(self, db: Session):
        self.db = db

    # ========================================================================
    # WALLET
    # ========================================================================

    def get_wallet(self, seller_id: int, lock: bool = False) -> SellerWallet:
        """
        Satıcı cüzdanını getirir, yoksa oluşturur

        Args:
            lock: True ise SELECT ... FOR UPDATE
        """
        query = self.db.query(SellerWallet).filter(SellerWallet.seller_id == seller_id)
        if lock:
            query = query.with_for_update()

        wallet = query.first()
        if wallet is None:
            wallet = SellerWallet(
                seller_id=seller_id,
                balance=ZERO,
                pending_balance=ZERO,
                withdrawn_balance=ZERO,
                total_earned=ZERO,
                total_commission=ZERO,
            )
            self.db.add(wallet)
            self.db.flush()
            logger.info(f"Wallet created for seller {seller_id}")
        return wallet

    def record(
        self,
        wallet: SellerWallet,
        tx_type: WalletTransactionType,
        amount: Decimal,
        direction: Direction,
        balance_type: BalanceType,
        description: str,
        order_id: Optional[int] = None,
        order_item_id: Optional[int] = None,
        payout_request_id: Optional[int] = None,
    ) -> WalletTransaction:
        """Deftere hareket ekler (bakiyeye dokunmaz)"""
        tx = WalletTransaction(
            wallet_id=wallet.id,
            type=tx_type.value,
            amount=money(amount),
            direction=direction.value,
            balance_type=balance_type.value,
            description=description,
            order_id=order_id,
            order_item_id=order_item_id,
            payout_request_id=payout_request_id,
        )
        self.db.add(tx)
        return tx

    def _pending_net(self, wallet: SellerWallet, order_id: int) -> Decimal:
        """Siparişe ait bekleyen hareketlerin işaretli toplamı"""
        entries = self.db.query(WalletTransaction).filter(
            WalletTransaction.wallet_id == wallet.id,
            WalletTransaction.order_id == order_id,
            WalletTransaction.balance_type == BalanceType.PENDING.value,
        ).all()
        return money(sum((tx.signed_amount for tx in entries), ZERO))

    # ========================================================================
    # ORDER EVENTS
    # ========================================================================

    def credit_order(self, order: Order) -> int:
        """
        Ödemesi alınan siparişin kalemlerini satıcı cüzdanlarına (bekleyen) yazar

        Daha önce yazılmış kalemler atlanır.

        Returns:
            Yazılan kalem sayısı
        """
        credited = 0

        for item in order.items:
            already = self.db.query(WalletTransaction.id).filter(
                WalletTransaction.order_item_id == item.id,
                WalletTransaction.type == WalletTransactionType.SALE.value,
            ).first()
            if already:
                logger.info(f"Order item {item.id} already credited, skipping")
                continue

            wallet = self.get_wallet(item.seller_id, lock=True)
            label = f"Sipariş #{order.order_number}"

            self.record(wallet, WalletTransactionType.SALE, item.total_price, Direction.CREDIT,
                        BalanceType.PENDING, f"{label} - Satış", order.id, item.id)

            deductions = (
                (WalletTransactionType.COMMISSION, item.commission_amount, "Komisyon"),
                (WalletTransactionType.MARKETPLACE_FEE, item.marketplace_fee, "Hizmet Bedeli"),
                (WalletTransactionType.WITHHOLDING, item.withholding_tax, "Stopaj"),
                (WalletTransactionType.SHIPPING, item.shipping_cost_share, "Kargo"),
            )
            for tx_type, amount, text in deductions:
                if amount and amount > 0:
                    self.record(wallet, tx_type, amount, Direction.DEBIT,
                                BalanceType.PENDING, f"{label} - {text}", order.id, item.id)

            net = money(item.seller_payout_amount - (item.shipping_cost_share or ZERO))
            wallet.pending_balance = money(wallet.pending_balance + net)
            wallet.total_earned = money(wallet.total_earned + net)
            wallet.total_commission = money(wallet.total_commission + item.commission_amount)
            credited += 1

            logger.info(
                f"💰 Wallet credited: seller={item.seller_id} order={order.order_number} "
                f"sale={item.total_price} net={net}"
            )

        self.db.flush()
        return credited

    def release_order(self, order: Order) -> Decimal:
        """
        Teslim edilen siparişin bekleyen tutarlarını kullanılabilir bakiyeye aktarır

        Sipariş başına bir kez (funds_released_at).

        Returns:
            Aktarılan toplam tutar
        """
        if order.funds_released_at is not None:
            logger.info(f"Order {order.order_number} funds already released")
            return ZERO

        released = ZERO
        for seller_id in order.seller_ids():
            wallet = self.get_wallet(seller_id, lock=True)
            net = self._pending_net(wallet, order.id)
            if net <= 0:
                continue

            net = min(net, wallet.pending_balance)
            wallet.pending_balance = money(wallet.pending_balance - net)
            wallet.balance = money(wallet.balance + net)
            self.record(wallet, WalletTransactionType.RELEASE, net, Direction.CREDIT, BalanceType.AVAILABLE,
                        f"Sipariş #{order.order_number} - Teslimat sonrası aktarım", order.id)
            released += net
            logger.info(f"✅ Released {net} for seller {seller_id}, order {order.order_number}")

        order.funds_released_at = datetime.now(timezone.utc)
        self.db.flush()
        return money(released)

    def reverse_pending(self, order: Order) -> Decimal:
        """
        İade edilen siparişin henüz aktarılmamış tutarlarını geri alır

        Aktarılmış (released) siparişlerde hiçbir şey yapılmaz.
        """
        if order.funds_released_at is not None:
            logger.warning(f"Order {order.order_number} funds already released, nothing to reverse")
            return ZERO

        reversed_total = ZERO
        for seller_id in order.seller_ids():
            wallet = self.get_wallet(seller_id, lock=True)
            net = self._pending_net(wallet, order.id)
            if net <= 0:
                continue

            net = min(net, wallet.pending_balance)
            wallet.pending_balance = money(wallet.pending_balance - net)
            wallet.total_earned = money(wallet.total_earned - net)
            self.record(wallet, WalletTransactionType.REFUND, net, Direction.DEBIT, BalanceType.PENDING,
                        f"Sipariş #{order.order_number} - İade", order.id)
            reversed_total += net
            logger.info(f"↩️ Reversed pending {net} for seller {seller_id}, order {order.order_number}")

        self.db.flush()
        return money(reversed_total)

    # ========================================================================
    # READ
    # ========================================================================

    def summary(self, seller_id: int) -> Dict:
        wallet = self.get_wallet(seller_id)
        return {
            'seller_id': seller_id,
            'balance': wallet.balance,
            'pending_balance': wallet.pending_balance,
            'total_balance': wallet.total_balance,
            'withdrawn_balance': wallet.withdrawn_balance,
            'total_earned': wallet.total_earned,
            'total_commission': wallet.total_commission,
        }

    def transactions(self, seller_id: int, limit: int = 20) -> List[WalletTransaction]:
        wallet = self.get_wallet(seller_id)
        return (
            self.db.query(WalletTransaction)
            .filter(WalletTransaction.wallet_id == wallet.id)
            .order_by(WalletTransaction.id.desc())
            .limit(limit)
            .all()
        )
