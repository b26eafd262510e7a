"""
Unit Tests for Input Validation and payload parsing
"""

import pytest
from decimal import Decimal
from taponce.errors import ValidationError
from taponce.models import (
    Agent,
    CardDesign,
    CreateOrderRequest,
    PaymentMethod,
    PaymentStatus,
    PayoutRequest,
    TransitionContext,
    parse_order_status,
    to_decimal,
)
from taponce.validators import InputValidator


@pytest.fixture
def validator():
    return InputValidator()


class TestParentLink:
    """Referral hierarchy must never contain cycles."""

    @pytest.fixture
    def directory(self):
        agents = {
            "root": Agent(id="root", full_name="Root", referral_code="ROOT1000"),
            "mid": Agent(id="mid", full_name="Mid", referral_code="MID1000", parent_agent_id="root"),
            "leaf": Agent(id="leaf", full_name="Leaf", referral_code="LEAF1000", parent_agent_id="mid"),
        }
        return agents.get

    def test_no_parent_is_fine(self, validator, directory):
        validator.validate_parent_link("new", None, directory)

    def test_existing_parent_is_fine(self, validator, directory):
        validator.validate_parent_link("new", "leaf", directory)

    def test_self_parent_rejected(self, validator, directory):
        with pytest.raises(ValidationError, match="own parent"):
            validator.validate_parent_link("root", "root", directory)

    def test_cycle_through_ancestors_rejected(self, validator, directory):
        """root -> leaf would make root its own grand-grandparent."""
        with pytest.raises(ValidationError, match="cycle"):
            validator.validate_parent_link("root", "leaf", directory)

    def test_unknown_parent_rejected(self, validator, directory):
        with pytest.raises(ValidationError, match="not found"):
            validator.validate_parent_link("new", "ghost", directory)


class TestOrderPayload:

    def test_from_dict_accepts_camel_case(self):
        request = CreateOrderRequest.from_dict({
            "cardDesignId": "d1",
            "salePrice": 699,
            "customerName": "Asha",
            "customerPhone": "9876543210",
            "customerEmail": "asha@example.com",
            "paymentStatus": "advance_paid",
        })

        assert request.card_design_id == "d1"
        assert request.sale_price == Decimal('699')
        assert request.payment_status == PaymentStatus.ADVANCE_PAID

    def test_float_prices_converted_exactly(self):
        request = CreateOrderRequest.from_dict({
            "card_design_id": "d1", "sale_price": 699.99,
            "customer_name": "Asha", "customer_phone": "9876543210", "customer_email": "",
        })
        assert request.sale_price == Decimal('699.99')

    def test_missing_sale_price_rejected(self):
        with pytest.raises(ValidationError, match="sale_price"):
            CreateOrderRequest.from_dict({"card_design_id": "d1"})

    def test_unknown_payment_status_rejected(self):
        with pytest.raises(ValidationError, match="payment_status"):
            CreateOrderRequest.from_dict({"card_design_id": "d1", "sale_price": 1, "payment_status": "later"})

    def test_numeric_phone_stored_as_text(self):
        request = CreateOrderRequest.from_dict({
            "card_design_id": "d1", "sale_price": 699,
            "customer_name": "Asha", "customer_phone": 9876543210,
        })
        assert request.customer_phone == "9876543210"

    def test_null_email_becomes_empty(self):
        request = CreateOrderRequest.from_dict({
            "card_design_id": "d1", "sale_price": 699,
            "customer_name": "Asha", "customer_phone": "9876543210", "customer_email": None,
        })
        assert request.customer_email == ""

    @pytest.mark.parametrize("field", ["customer_name", "customer_phone", "customer_email", "referral_code"])
    def test_structured_text_fields_rejected(self, field):
        data = {
            "card_design_id": "d1", "sale_price": 699,
            "customer_name": "Asha", "customer_phone": "9876543210",
        }
        data[field] = {"nested": True}
        with pytest.raises(ValidationError, match=field):
            CreateOrderRequest.from_dict(data)

    def test_validate_requires_customer(self, validator):
        request = CreateOrderRequest(
            card_design_id="d1", sale_price=Decimal('699'),
            customer_name="", customer_phone="9876543210", customer_email="",
        )
        with pytest.raises(ValidationError, match="customer_name"):
            validator.validate_create_order(request)

    def test_validate_rejects_zero_price(self, validator):
        request = CreateOrderRequest(
            card_design_id="d1", sale_price=Decimal('0'),
            customer_name="Asha", customer_phone="9876543210", customer_email="",
        )
        with pytest.raises(ValidationError):
            validator.validate_create_order(request)


class TestMiscParsing:

    @pytest.mark.parametrize("value", [None, True, "abc", "NaN", "Infinity"])
    def test_to_decimal_rejects_garbage(self, value):
        with pytest.raises(ValidationError):
            to_decimal(value, "amount")

    def test_parse_order_status(self):
        assert parse_order_status("ready_to_ship").value == "ready_to_ship"
        with pytest.raises(ValidationError):
            parse_order_status("lost_in_mail")

    def test_payout_request(self):
        request = PayoutRequest.from_dict({"amount": "250", "paymentMethod": "bank_transfer"})

        assert request.amount == Decimal('250')
        assert request.payment_method == PaymentMethod.BANK_TRANSFER

    def test_transition_context(self):
        context = TransitionContext.from_dict({"trackingNumber": "DTDC123", "adminNotes": "fragile"})

        assert context.tracking_number == "DTDC123"
        assert context.admin_notes == "fragile"

    def test_card_design_requires_positive_msp(self, validator):
        design = CardDesign.from_dict({"id": "d1", "name": "Matte Black", "baseMsp": 0})
        with pytest.raises(ValidationError):
            validator.validate_card_design(design)

    def test_card_design_missing_name_caught_by_validator(self, validator):
        design = CardDesign.from_dict({"id": "d1", "baseMsp": 600})
        with pytest.raises(ValidationError, match="name is required"):
            validator.validate_card_design(design)

    @pytest.mark.parametrize("value", ["many", 1.5, True, [3]])
    def test_card_design_total_sales_must_be_whole(self, value):
        with pytest.raises(ValidationError, match="total_sales"):
            CardDesign.from_dict({"id": "d1", "name": "Matte Black", "baseMsp": 600, "totalSales": value})

    def test_card_design_total_sales_cannot_be_negative(self, validator):
        design = CardDesign.from_dict({"id": "d1", "name": "Matte Black", "baseMsp": 600, "totalSales": -2})
        with pytest.raises(ValidationError, match="total_sales"):
            validator.validate_card_design(design)
