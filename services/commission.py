"""
Commission / Split Calculator
Sipariş kalemi bazında komisyon, hizmet bedeli, stopaj ve satıcı hakedişi

Formüller (tüm tutarlar 2 hane, ROUND_HALF_UP):
- total_price          = unit_price × quantity
- commission_amount    = total_price × commission_rate / 100
- net_seller_amount    = total_price - commission_amount
- marketplace_fee      = total_price × marketplace_fee_rate / 100
- withholding_tax      = total_price × withholding_tax_rate / 100
- seller_payout_amount = net_seller_amount - withholding_tax - marketplace_fee
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Any

from app.core.exceptions import ValidationError
from app.core.money import ZERO, money, percent_of, to_decimal, format_try

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class CommissionRates:
    """Sipariş anında kaleme kopyalanan oranlar (yüzde)"""
    commission_rate: Decimal
    marketplace_fee_rate: Decimal = ZERO
    withholding_tax_rate: Decimal = ZERO


@dataclass(frozen=True)
class LineSplit:
    unit_price: Decimal
    quantity: int
    total_price: Decimal
    commission_rate: Decimal
    commission_amount: Decimal
    marketplace_fee: Decimal
    withholding_tax: Decimal
    shipping_cost_share: Decimal
    net_seller_amount: Decimal
    seller_payout_amount: Decimal

    def as_dict(self) -> Dict[str, Any]:
        return {
            'unit_price': self.unit_price,
            'quantity': self.quantity,
            'total_price': self.total_price,
            'commission_rate': self.commission_rate,
            'commission_amount': self.commission_amount,
            'marketplace_fee': self.marketplace_fee,
            'withholding_tax': self.withholding_tax,
            'shipping_cost_share': self.shipping_cost_share,
            'net_seller_amount': self.net_seller_amount,
            'seller_payout_amount': self.seller_payout_amount,
        }


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    total_commission: Decimal
    shipping_cost: Decimal
    total_amount: Decimal


def _validate_rate(name: str, rate: Decimal):
    if rate < 0 or rate > HUNDRED:
        raise ValidationError(f"{name} 0 ile 100 arasında olmalıdır: {rate}")


def calculate_line(
    unit_price,
    quantity: int,
    commission_rate,
    marketplace_fee_rate=ZERO,
    withholding_tax_rate=ZERO,
    shipping_cost_share=ZERO,
) -> LineSplit:
    """
    Tek sipariş kalemi için kesintileri hesaplar

    Args:
        unit_price: Birim fiyat (> 0)
        quantity: Adet (>= 0)
        commission_rate: Kategori komisyon oranı, yüzde [0, 100]
        marketplace_fee_rate: Pazaryeri hizmet bedeli oranı, yüzde
        withholding_tax_rate: Stopaj oranı, yüzde
        shipping_cost_share: Satıcıya düşen kargo payı (hakedişten ayrıca düşülür)

    Raises:
        ValidationError: Negatif adet, sıfır/negatif fiyat veya aralık dışı oran
    """
    unit_price = to_decimal(unit_price)
    commission_rate = to_decimal(commission_rate)
    marketplace_fee_rate = to_decimal(marketplace_fee_rate if marketplace_fee_rate is not None else ZERO)
    withholding_tax_rate = to_decimal(withholding_tax_rate if withholding_tax_rate is not None else ZERO)

    if quantity is None or int(quantity) != quantity or quantity < 0:
        raise ValidationError(f"Geçersiz adet: {quantity}")
    if unit_price <= 0:
        raise ValidationError(f"Birim fiyat sıfırdan büyük olmalıdır: {unit_price}")
    _validate_rate("Komisyon oranı", commission_rate)
    _validate_rate("Hizmet bedeli oranı", marketplace_fee_rate)
    _validate_rate("Stopaj oranı", withholding_tax_rate)

    shipping_share = money(shipping_cost_share or ZERO)
    if shipping_share < 0:
        raise ValidationError(f"Kargo payı negatif olamaz: {shipping_share}")

    total_price = money(unit_price * int(quantity))
    commission_amount = percent_of(total_price, commission_rate)
    net_seller_amount = total_price - commission_amount
    marketplace_fee = percent_of(total_price, marketplace_fee_rate)
    withholding_tax = percent_of(total_price, withholding_tax_rate)

    return LineSplit(
        unit_price=money(unit_price),
        quantity=int(quantity),
        total_price=total_price,
        commission_rate=commission_rate,
        commission_amount=commission_amount,
        marketplace_fee=marketplace_fee,
        withholding_tax=withholding_tax,
        shipping_cost_share=shipping_share,
        net_seller_amount=net_seller_amount,
        seller_payout_amount=net_seller_amount - withholding_tax - marketplace_fee,
    )


def aggregate(lines: Iterable, shipping_cost=ZERO) -> OrderTotals:
    """
    Kalemleri sipariş toplamına çevirir

    total_amount = subtotal + shipping_cost
    LineSplit veya OrderItem kabul eder (total_price / commission_amount alanları)
    """
    subtotal = ZERO
    total_commission = ZERO
    for line in lines:
        subtotal += to_decimal(line.total_price)
        total_commission += to_decimal(line.commission_amount)

    shipping_cost = money(shipping_cost or ZERO)
    return OrderTotals(
        subtotal=money(subtotal),
        total_commission=money(total_commission),
        shipping_cost=shipping_cost,
        total_amount=money(subtotal + shipping_cost),
    )


def resolve_rates(category, settings) -> CommissionRates:
    """
    Kategori + genel ayarlardan oranları belirler

    Kategori override'ı yoksa COMMISSION_MARKETPLACE_FEE_RATE / COMMISSION_WITHHOLDING_TAX_RATE
    """
    commission_rate = ZERO
    marketplace_fee_rate = None
    withholding_tax_rate = None

    if category is not None:
        commission_rate = to_decimal(category.commission_rate or ZERO)
        marketplace_fee_rate = category.marketplace_fee_rate
        withholding_tax_rate = category.withholding_tax_rate

    if marketplace_fee_rate is None:
        marketplace_fee_rate = settings.commission_marketplace_fee_rate
    if withholding_tax_rate is None:
        withholding_tax_rate = settings.commission_withholding_tax_rate

    return CommissionRates(
        commission_rate=commission_rate,
        marketplace_fee_rate=to_decimal(marketplace_fee_rate),
        withholding_tax_rate=to_decimal(withholding_tax_rate),
    )


def _rate_text(rate) -> str:
    text = f"{to_decimal(rate):.2f}".rstrip('0').rstrip('.')
    return text.replace('.', ',')


def _deduction(label: str, value: Decimal, rate: Optional[Decimal] = None, visible: bool = True) -> Dict[str, Any]:
    entry = {
        'label': label,
        'value': ZERO - value,
        'formatted': format_try(value, negative=True),
        'visible': visible,
    }
    if rate is not None:
        entry['rate'] = rate
    return entry


def financial_breakdown(items: List, rates: Optional[CommissionRates] = None) -> Dict[str, Any]:
    """
    Satıcı sipariş görünümü için kesinti özeti

    Returns:
        {
            'subtotal': {label, value, formatted},
            'deductions': [{label, value, formatted, rate?, visible}, ...],
            'total_deductions': {label, value, formatted},
            'net_amount': {label, value, formatted}
        }
    """
    subtotal = sum((to_decimal(i.total_price) for i in items), ZERO)
    commission = sum((to_decimal(i.commission_amount) for i in items), ZERO)
    marketplace_fee = sum((to_decimal(i.marketplace_fee or ZERO) for i in items), ZERO)
    withholding = sum((to_decimal(i.withholding_tax or ZERO) for i in items), ZERO)
    shipping = sum((to_decimal(i.shipping_cost_share or ZERO) for i in items), ZERO)

    # Tek kalemli siparişte komisyon oranı etikette gösterilir
    commission_rates = {to_decimal(i.commission_rate) for i in items}
    commission_rate = commission_rates.pop() if len(commission_rates) == 1 else None

    fee_rate = rates.marketplace_fee_rate if rates else None
    withholding_rate = rates.withholding_tax_rate if rates else None

    commission_label = "Kategori Komisyonu"
    if commission_rate is not None:
        commission_label += f" (%{_rate_text(commission_rate)})"
    fee_label = "Pazaryeri Hizmet Bedeli"
    if fee_rate is not None:
        fee_label += f" (%{_rate_text(fee_rate)})"
    withholding_label = "Stopaj"
    if withholding_rate is not None:
        withholding_label += f" (%{_rate_text(withholding_rate)})"

    deductions = [
        _deduction(commission_label, money(commission), commission_rate),
        _deduction(fee_label, money(marketplace_fee), fee_rate),
        _deduction(withholding_label, money(withholding), withholding_rate),
        _deduction("Kargo Payı", money(shipping), visible=shipping > 0),
    ]

    total_deductions = money(commission + marketplace_fee + withholding + shipping)
    net_amount = money(subtotal) - total_deductions

    return {
        'subtotal': {
            'label': "Ürün Toplamı",
            'value': money(subtotal),
            'formatted': format_try(subtotal),
        },
        'deductions': deductions,
        'total_deductions': {
            'label': "Toplam Kesinti",
            'value': ZERO - total_deductions,
            'formatted': format_try(total_deductions, negative=True),
        },
        'net_amount': {
            'label': "Net Hakediş",
            'value': net_amount,
            'formatted': format_try(net_amount),
        },
    }
