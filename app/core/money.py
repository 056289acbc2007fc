"""
Para birimi yardımcıları - 2 hane, yarım yukarı yuvarlama ve TL formatı
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """float değerler str üzerinden çevrilir (ikili yuvarlama hatası olmasın)"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def money(value: Number) -> Decimal:
    """Tutarı 2 haneye yuvarlar (ROUND_HALF_UP)"""
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def percent_of(amount: Number, rate: Number) -> Decimal:
    """amount × rate / 100, 2 haneye yuvarlanmış"""
    return money(to_decimal(amount) * to_decimal(rate) / Decimal(100))


def format_try(value: Number, negative: bool = False) -> str:
    """
    Türkiye formatında TL gösterimi

    Örnekler:
    - 1234.5 -> '₺1.234,50'
    - 20, negative=True -> '-₺20,00'
    """
    amount = money(value)
    sign = "-" if negative or amount < 0 else ""
    text = f"{abs(amount):,.2f}"  # 1,234.50
    text = text.replace(",", "X").replace(".", ",").replace("X", ".")
    return f"{sign}₺{text}"


def to_kurus(value: Number) -> int:
    """TL -> kuruş (PayTR tutarları kuruş cinsinden ister)"""
    return int((money(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_kurus(value: Number) -> Decimal:
    return money(to_decimal(value) / Decimal(100))


def api_amount(value: Number) -> str:
    """Sağlayıcı API'leri için '1234.50' biçimi"""
    return f"{money(value):.2f}"
