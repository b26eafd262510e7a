"""Tests for output formatting helpers."""

import pytest
from decimal import Decimal

from taponce.models import CommissionResult
from taponce.output import format_commission_breakdown, format_inr, to_money


class TestFormatting:

    @pytest.mark.parametrize("amount,expected", [
        ('699', '₹699'),
        ('1500', '₹1,500'),
        ('150000', '₹1,50,000'),
        ('12345678', '₹1,23,45,678'),
        ('699.5', '₹700'),
        ('-2500', '-₹2,500'),
    ])
    def test_format_inr(self, amount, expected):
        assert format_inr(Decimal(amount)) == expected

    def test_format_inr_with_paise(self):
        assert format_inr(Decimal('149.5'), decimals=2) == '₹149.50'

    def test_to_money_rounds_half_up(self):
        assert to_money(Decimal('0.005')) == 0.01
        assert to_money(Decimal('13.98')) == 13.98


class TestCommissionBreakdown:

    def test_with_bonus(self):
        result = CommissionResult(Decimal('100'), Decimal('49.5'), Decimal('149.5'), False)
        assert format_commission_breakdown(result) == '₹100 (base) + ₹49.50 (bonus) = ₹149.50'

    def test_base_only(self):
        result = CommissionResult(Decimal('100'), Decimal('0'), Decimal('100'), False)
        assert format_commission_breakdown(result) == '₹100 (base commission)'

    def test_below_msp(self):
        result = CommissionResult(Decimal('100'), Decimal('0'), Decimal('0'), True)
        assert format_commission_breakdown(result) == 'Below MSP - requires approval'
