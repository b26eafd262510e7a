"""
Unit Tests for Commission Calculator

Tests verify agent commission and parent override commission.
"""

import pytest
from decimal import Decimal
from taponce.calculators.commission import (
    CommissionCalculator,
    calculate_commission,
    calculate_override_commission,
)
from taponce.config import Settings
from taponce.errors import ValidationError


class TestAgentCommission:
    """Test the base + negotiation bonus formula."""

    @pytest.fixture
    def calculator(self):
        return CommissionCalculator()

    def test_sale_above_msp_earns_half_the_difference(self, calculator):
        """₹699 against ₹600 MSP: 100 + 99 * 0.5."""
        result = calculator.calculate(Decimal('699'), Decimal('600'), Decimal('100'))

        assert result.base_commission == Decimal('100')
        assert result.negotiation_bonus == Decimal('49.5')
        assert result.total_commission == Decimal('149.50')
        assert result.is_below_msp == False

    def test_sale_at_msp_earns_base_only(self, calculator):
        result = calculator.calculate(Decimal('600'), Decimal('600'), Decimal('100'))

        assert result.negotiation_bonus == Decimal('0')
        assert result.total_commission == Decimal('100')
        assert result.is_below_msp == False

    def test_sale_below_msp_earns_nothing_and_is_flagged(self, calculator):
        result = calculator.calculate(Decimal('550'), Decimal('600'), Decimal('100'))

        assert result.base_commission == Decimal('100')
        assert result.negotiation_bonus == Decimal('0')
        assert result.total_commission == Decimal('0')
        assert result.is_below_msp == True

    @pytest.mark.parametrize("base", ['50', '100', '250.75'])
    def test_below_msp_is_zero_regardless_of_base(self, calculator, base):
        result = calculator.calculate(Decimal('599.99'), Decimal('600'), Decimal(base))

        assert result.total_commission == Decimal('0')
        assert result.is_below_msp == True

    @pytest.mark.parametrize("sale_price,msp,base", [
        ('600.01', '600', '100'),
        ('1000', '600', '100'),
        ('1499.99', '799', '120'),
        ('5000', '1', '1'),
    ])
    def test_total_matches_formula(self, calculator, sale_price, msp, base):
        sale_price, msp, base = Decimal(sale_price), Decimal(msp), Decimal(base)
        result = calculator.calculate(sale_price, msp, base)

        assert result.total_commission == base + (sale_price - msp) * Decimal('0.5')
        assert result.is_below_msp == False

    def test_default_base_commission_is_100(self, calculator):
        result = calculator.calculate(Decimal('700'), Decimal('600'))

        assert result.base_commission == Decimal('100')
        assert result.total_commission == Decimal('150')

    def test_custom_bonus_rate_from_settings(self):
        calculator = CommissionCalculator(Settings(negotiation_bonus_rate=Decimal('0.25')))
        result = calculator.calculate(Decimal('700'), Decimal('600'), Decimal('100'))

        assert result.total_commission == Decimal('125')

    def test_commission_is_never_negative(self, calculator):
        for sale in ('1', '599', '600', '601'):
            result = calculator.calculate(Decimal(sale), Decimal('600'), Decimal('100'))
            assert result.total_commission >= 0

    @pytest.mark.parametrize("sale_price,msp,base", [
        ('0', '600', '100'),
        ('-10', '600', '100'),
        ('600', '0', '100'),
        ('600', '-1', '100'),
        ('600', '600', '0'),
    ])
    def test_non_positive_inputs_rejected(self, calculator, sale_price, msp, base):
        with pytest.raises(ValidationError):
            calculator.calculate(Decimal(sale_price), Decimal(msp), Decimal(base))

    def test_module_level_helper(self):
        result = calculate_commission(Decimal('699'), Decimal('600'))
        assert result.total_commission == Decimal('149.5')


class TestOverrideCommission:
    """Test the flat override credited to parent agents."""

    @pytest.fixture
    def calculator(self):
        return CommissionCalculator()

    def test_two_percent_of_sale_price(self, calculator):
        assert calculator.calculate_override(Decimal('1000')) == Decimal('20')

    @pytest.mark.parametrize("sale_price", ['0', '1', '699', '12345.67'])
    def test_matches_formula(self, calculator, sale_price):
        x = Decimal(sale_price)
        assert calculator.calculate_override(x) == x * Decimal('0.02')

    def test_independent_of_msp(self, calculator):
        """The override only looks at the sale price, even for below-MSP sales."""
        assert calculate_override_commission(Decimal('550')) == Decimal('11')

    def test_custom_rate(self, calculator):
        assert calculator.calculate_override(Decimal('1000'), Decimal('0.05')) == Decimal('50')

    def test_negative_sale_price_rejected(self, calculator):
        with pytest.raises(ValidationError):
            calculator.calculate_override(Decimal('-1'))

    def test_rate_above_one_rejected(self, calculator):
        with pytest.raises(ValidationError):
            calculator.calculate_override(Decimal('1000'), Decimal('1.5'))
