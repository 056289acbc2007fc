"""
Unit tests for the commission / split calculator.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.core.exceptions import ValidationError
from app.core.money import format_try, to_kurus, from_kurus
from services.commission import calculate_line, aggregate, resolve_rates, financial_breakdown


class TestCalculateLine:
    def test_two_unit_line_at_ten_percent(self):
        line = calculate_line(Decimal("100"), 2, Decimal("10"))

        assert line.total_price == Decimal("200.00")
        assert line.commission_amount == Decimal("20.00")
        assert line.net_seller_amount == Decimal("180.00")
        assert line.seller_payout_amount == Decimal("180.00")
        assert line.marketplace_fee == Decimal("0.00")
        assert line.withholding_tax == Decimal("0.00")

    def test_deductions_sum_back_to_total(self):
        cases = [
            ("33.33", 3, "12.5", "0.89", "1"),
            ("19.99", 7, "8", "0", "0"),
            ("1249.90", 1, "15", "0.89", "1"),
            ("0.01", 1, "10", "10", "10"),
        ]
        for price, qty, commission, fee, withholding in cases:
            line = calculate_line(price, qty, commission, fee, withholding)
            total = line.seller_payout_amount + line.commission_amount + line.marketplace_fee + line.withholding_tax
            assert total == line.total_price, (price, qty, commission, fee, withholding)

    def test_rounds_half_up_to_two_places(self):
        line = calculate_line("0.05", 1, "50")
        # 0.025 -> 0.03
        assert line.commission_amount == Decimal("0.03")
        assert line.net_seller_amount == Decimal("0.02")

    def test_marketplace_fee_and_withholding(self):
        line = calculate_line("1000", 1, "10", "0.89", "1")

        assert line.commission_amount == Decimal("100.00")
        assert line.marketplace_fee == Decimal("8.90")
        assert line.withholding_tax == Decimal("10.00")
        assert line.seller_payout_amount == Decimal("881.10")

    def test_zero_quantity_yields_zero_amounts(self):
        line = calculate_line("100", 0, "10")
        assert line.total_price == Decimal("0.00")
        assert line.commission_amount == Decimal("0.00")
        assert line.seller_payout_amount == Decimal("0.00")

    def test_float_inputs_do_not_leak_binary_error(self):
        line = calculate_line(0.1, 3, 10)
        assert line.total_price == Decimal("0.30")

    @pytest.mark.parametrize("price,qty,rate", [
        ("100", -1, "10"),
        ("0", 1, "10"),
        ("-5", 1, "10"),
        ("100", 1, "101"),
        ("100", 1, "-1"),
    ])
    def test_invalid_input_rejected(self, price, qty, rate):
        with pytest.raises(ValidationError):
            calculate_line(price, qty, rate)

    def test_invalid_fee_rate_rejected(self):
        with pytest.raises(ValidationError):
            calculate_line("100", 1, "10", marketplace_fee_rate="150")


class TestAggregate:
    def test_two_items_totals(self):
        lines = [calculate_line("100", 2, "10"), calculate_line("100", 2, "10")]
        totals = aggregate(lines)

        assert totals.subtotal == Decimal("400.00")
        assert totals.total_commission == Decimal("40.00")
        assert totals.shipping_cost == Decimal("0.00")
        assert totals.total_amount == Decimal("400.00")

    def test_shipping_added_to_total_only(self):
        totals = aggregate([calculate_line("50", 1, "10")], shipping_cost="29.90")

        assert totals.subtotal == Decimal("50.00")
        assert totals.total_amount == Decimal("79.90")

    def test_empty_order(self):
        totals = aggregate([])
        assert totals.subtotal == Decimal("0.00")
        assert totals.total_amount == Decimal("0.00")


class TestResolveRates:
    def test_category_rates_override_settings(self, settings):
        category = SimpleNamespace(commission_rate=Decimal("12"), marketplace_fee_rate=Decimal("0.5"),
                                   withholding_tax_rate=Decimal("2"))
        rates = resolve_rates(category, settings)

        assert rates.commission_rate == Decimal("12")
        assert rates.marketplace_fee_rate == Decimal("0.5")
        assert rates.withholding_tax_rate == Decimal("2")

    def test_settings_used_when_category_has_no_override(self, settings):
        configured = settings.model_copy(update={
            "commission_marketplace_fee_rate": Decimal("0.89"),
            "commission_withholding_tax_rate": Decimal("1"),
        })
        category = SimpleNamespace(commission_rate=Decimal("10"), marketplace_fee_rate=None,
                                   withholding_tax_rate=None)
        rates = resolve_rates(category, configured)

        assert rates.commission_rate == Decimal("10")
        assert rates.marketplace_fee_rate == Decimal("0.89")
        assert rates.withholding_tax_rate == Decimal("1")

    def test_missing_category_means_zero_commission(self, settings):
        assert resolve_rates(None, settings).commission_rate == Decimal("0")


class TestFinancialBreakdown:
    def test_single_rate_breakdown(self):
        breakdown = financial_breakdown([calculate_line("100", 2, "10")])

        assert breakdown["subtotal"]["value"] == Decimal("200.00")
        assert breakdown["subtotal"]["formatted"] == "₺200,00"

        commission = breakdown["deductions"][0]
        assert commission["label"] == "Kategori Komisyonu (%10)"
        assert commission["value"] == Decimal("-20.00")
        assert commission["formatted"] == "-₺20,00"

        assert breakdown["total_deductions"]["value"] == Decimal("-20.00")
        assert breakdown["net_amount"]["value"] == Decimal("180.00")
        assert breakdown["net_amount"]["formatted"] == "₺180,00"

    def test_zero_deductions_are_not_negative_zero(self):
        breakdown = financial_breakdown([calculate_line("100", 1, "10")])
        fee = breakdown["deductions"][1]
        assert fee["value"] == Decimal("0")
        assert not fee["value"].is_signed()

    def test_shipping_share_hidden_when_zero(self):
        breakdown = financial_breakdown([calculate_line("100", 1, "10")])
        shipping = breakdown["deductions"][-1]
        assert shipping["label"] == "Kargo Payı"
        assert shipping["visible"] is False

    def test_shipping_share_reduces_net(self):
        line = calculate_line("100", 1, "10", shipping_cost_share="15")
        breakdown = financial_breakdown([line])

        assert breakdown["deductions"][-1]["visible"] is True
        assert breakdown["net_amount"]["value"] == Decimal("75.00")

    def test_mixed_rates_omit_rate_from_label(self):
        breakdown = financial_breakdown([calculate_line("100", 1, "10"), calculate_line("100", 1, "15")])
        assert breakdown["deductions"][0]["label"] == "Kategori Komisyonu"
        assert "rate" not in breakdown["deductions"][0]


class TestMoneyHelpers:
    def test_format_try_uses_turkish_separators(self):
        assert format_try(Decimal("1234.5")) == "₺1.234,50"
        assert format_try(Decimal("20"), negative=True) == "-₺20,00"

    def test_kurus_conversion(self):
        assert to_kurus(Decimal("400.00")) == 40000
        assert to_kurus("19.995") == 2000
        assert from_kurus("12345") == Decimal("123.45")
