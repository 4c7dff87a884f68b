"""Redemption pricing and making-charge discount engine.

Converts accumulated scheme gold plus the desired jewellery into an itemised
invoice. The scheme discount is a rate on the accumulated gold value, bounded
twice:

- the rate itself is capped (standard cap, or the user-chosen cap for a
  premature redemption);
- the resulting amount is capped by the making charges on the overlap of
  owned and needed gold, and by the total making charges on the invoice.

The engine is a pure function. It performs no I/O and keeps no state, so
identical inputs always produce identical results.
"""
import logging
import math
from dataclasses import dataclass
from numbers import Real

from app.constants import (
    GST_RATE,
    MAKING_CHARGE_DISCOUNT_PERCENTAGE_ON_ACCUMULATED_GOLD,
    STANDARD_DISCOUNT_RATE_CAP,
    DEFAULT_PREMATURE_CAP_PERCENTAGE,
    PREMATURE_CAP_MIN_PERCENTAGE,
    PREMATURE_CAP_MAX_PERCENTAGE,
    RECONCILIATION_TOLERANCE,
    CURRENCY_DECIMALS,
    GRAMS_DECIMALS,
    RATE_DECIMALS,
)

logger = logging.getLogger(__name__)


class RedemptionValidationError(ValueError):
    """Raised when a redemption input fails its numeric or range check."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


@dataclass(frozen=True)
class SchemeConstants:
    """Deployment-wide scheme configuration."""
    gst_rate: float = GST_RATE
    making_charge_discount_percentage_on_accumulated_gold: float = (
        MAKING_CHARGE_DISCOUNT_PERCENTAGE_ON_ACCUMULATED_GOLD
    )
    standard_discount_rate_cap: float = STANDARD_DISCOUNT_RATE_CAP

    def to_dict(self) -> dict:
        return {
            'GST_RATE': self.gst_rate,
            'MAKING_CHARGE_DISCOUNT_PERCENTAGE_ON_ACCUMULATED_GOLD':
                self.making_charge_discount_percentage_on_accumulated_gold,
            'STANDARD_DISCOUNT_RATE_CAP': self.standard_discount_rate_cap,
        }


@dataclass(frozen=True)
class RedemptionInput:
    """Snapshot of everything needed to price one redemption."""
    accumulated_gold_grams: float
    intended_jewellery_weight: float
    current_gold_price: float
    making_charge_percentage: float
    is_premature_redemption: bool = False
    premature_redemption_cap_percentage: float = DEFAULT_PREMATURE_CAP_PERCENTAGE

    def to_dict(self) -> dict:
        return {
            'accumulated_gold_grams': self.accumulated_gold_grams,
            'intended_jewellery_weight': self.intended_jewellery_weight,
            'current_gold_price': self.current_gold_price,
            'making_charge_percentage': self.making_charge_percentage,
            'is_premature_redemption': self.is_premature_redemption,
            'premature_redemption_cap_percentage': self.premature_redemption_cap_percentage,
        }


@dataclass(frozen=True)
class RedemptionResult:
    """Fully itemised redemption invoice. Amounts are unrounded."""
    inputs: RedemptionInput
    constants: SchemeConstants

    # Gold analysis
    your_gold_value: float
    additional_gold_grams: float       # signed, negative means surplus
    additional_gold_value: float

    # Invoice
    base_jewellery_cost: float
    making_charges: float
    subtotal_before_gst: float
    gst_amount: float
    total_invoice: float
    gold_value_deduction: float

    # Discount
    potential_discount_rate: float
    applicable_cap_rate: float
    actual_applied_discount_rate: float
    raw_discount: float
    mc_on_overlap_portion: float
    final_making_charge_discount: float

    total_savings: float
    final_amount_to_pay: float

    # Reconciliation breakdown
    additional_gold_cost: float
    mc_on_additional_gold: float
    net_mc_on_accumulated_gold: float
    gst_component: float

    @property
    def applied_discount_cap_percentage(self) -> float:
        return self.applicable_cap_rate * 100

    @property
    def breakdown_total(self) -> float:
        return (
            self.additional_gold_cost +
            self.mc_on_additional_gold +
            self.net_mc_on_accumulated_gold +
            self.gst_component
        )

    @property
    def reconciliation_difference(self) -> float:
        return self.breakdown_total - self.final_amount_to_pay

    @property
    def breakdown_reconciles(self) -> bool:
        return abs(self.reconciliation_difference) <= RECONCILIATION_TOLERANCE

    @property
    def gold_position(self) -> str:
        """'shortfall' if more gold must be bought, 'surplus' if owned gold exceeds the jewellery."""
        if self.additional_gold_grams > 0:
            return 'shortfall'
        if self.additional_gold_grams < 0:
            return 'surplus'
        return 'exact'

    @property
    def surplus_gold_grams(self) -> float:
        return max(0.0, -self.additional_gold_grams)

    @property
    def surplus_gold_value(self) -> float:
        return self.surplus_gold_grams * self.inputs.current_gold_price

    def to_dict(self) -> dict:
        """Serialize for API responses and persistence, rounded for display."""
        return {
            'inputs': self.inputs.to_dict(),
            'constants': self.constants.to_dict(),
            'gold_analysis': {
                'you_have_grams': _grams(self.inputs.accumulated_gold_grams),
                'you_have_worth': _money(self.your_gold_value),
                'additional_gold_grams': _grams(self.additional_gold_grams),
                'additional_gold_value': _money(self.additional_gold_value),
                'position': self.gold_position,
                'surplus_gold_grams': _grams(self.surplus_gold_grams),
                'surplus_gold_value': _money(self.surplus_gold_value),
            },
            'invoice': {
                'base_jewellery_cost': _money(self.base_jewellery_cost),
                'making_charges': _money(self.making_charges),
                'subtotal_before_gst': _money(self.subtotal_before_gst),
                'gst_amount': _money(self.gst_amount),
                'total_invoice': _money(self.total_invoice),
                'gold_value_deduction': _money(self.gold_value_deduction),
                'making_charge_discount': _money(self.final_making_charge_discount),
                'total_savings': _money(self.total_savings),
            },
            'discount': {
                'potential_discount_rate': _rate(self.potential_discount_rate),
                'applicable_cap_rate': _rate(self.applicable_cap_rate),
                'applied_discount_cap_percentage': _rate(self.applied_discount_cap_percentage),
                'actual_applied_discount_rate': _rate(self.actual_applied_discount_rate),
                'raw_discount': _money(self.raw_discount),
                'mc_on_overlap_portion': _money(self.mc_on_overlap_portion),
                'final_making_charge_discount': _money(self.final_making_charge_discount),
            },
            'breakdown': {
                'additional_gold_cost': _money(self.additional_gold_cost),
                'mc_on_additional_gold': _money(self.mc_on_additional_gold),
                'net_mc_on_accumulated_gold': _money(self.net_mc_on_accumulated_gold),
                'gst': _money(self.gst_component),
                'total': _money(self.breakdown_total),
                'reconciles': self.breakdown_reconciles,
                'reconciliation_difference': _money(self.reconciliation_difference),
            },
            'final_amount_to_pay': _money(self.final_amount_to_pay),
        }


def _money(value: float) -> float:
    return round(value, CURRENCY_DECIMALS)


def _grams(value: float) -> float:
    return round(value, GRAMS_DECIMALS)


def _rate(value: float) -> float:
    return round(value, RATE_DECIMALS)


def _require_number(field: str, value) -> float:
    # bool is a Real subclass, but True/False are never a valid amount
    if isinstance(value, bool) or not isinstance(value, Real):
        raise RedemptionValidationError(field, f'{field} must be a number')
    try:
        value = float(value)
    except OverflowError:
        raise RedemptionValidationError(field, f'{field} must be a finite number')
    if not math.isfinite(value):
        raise RedemptionValidationError(field, f'{field} must be a finite number')
    return value


def validate_redemption_input(inputs: RedemptionInput) -> None:
    """Check every numeric input, raising on the first invalid field.

    Raises:
        RedemptionValidationError: naming the offending field.
    """
    accumulated = _require_number('accumulated_gold_grams', inputs.accumulated_gold_grams)
    if accumulated < 0:
        raise RedemptionValidationError(
            'accumulated_gold_grams', 'Accumulated gold cannot be negative'
        )

    weight = _require_number('intended_jewellery_weight', inputs.intended_jewellery_weight)
    if weight <= 0:
        raise RedemptionValidationError(
            'intended_jewellery_weight', 'Jewellery weight must be positive'
        )

    price = _require_number('current_gold_price', inputs.current_gold_price)
    if price <= 0:
        raise RedemptionValidationError(
            'current_gold_price', 'Gold price must be positive'
        )

    making_charge = _require_number('making_charge_percentage', inputs.making_charge_percentage)
    if making_charge < 0:
        raise RedemptionValidationError(
            'making_charge_percentage', 'Making charge cannot be negative'
        )

    if not isinstance(inputs.is_premature_redemption, bool):
        raise RedemptionValidationError(
            'is_premature_redemption', 'is_premature_redemption must be true or false'
        )

    cap = _require_number(
        'premature_redemption_cap_percentage', inputs.premature_redemption_cap_percentage
    )
    if not PREMATURE_CAP_MIN_PERCENTAGE <= cap <= PREMATURE_CAP_MAX_PERCENTAGE:
        raise RedemptionValidationError(
            'premature_redemption_cap_percentage',
            f'Premature redemption cap must be between {PREMATURE_CAP_MIN_PERCENTAGE} '
            f'and {PREMATURE_CAP_MAX_PERCENTAGE} percent',
        )


def calculate_redemption(
    inputs: RedemptionInput,
    constants: SchemeConstants | None = None,
) -> RedemptionResult:
    """Price a redemption of accumulated gold into jewellery.

    Args:
        inputs: Fully resolved input snapshot
        constants: Scheme constants (defaults to the built-in values)

    Returns:
        Immutable RedemptionResult with every intermediate amount

    Raises:
        RedemptionValidationError: if any input is non-finite or out of range.
            Nothing is computed in that case.
    """
    if constants is None:
        constants = SchemeConstants()

    validate_redemption_input(inputs)

    acc = float(inputs.accumulated_gold_grams)
    ijw = float(inputs.intended_jewellery_weight)
    price = float(inputs.current_gold_price)
    mc_fraction = float(inputs.making_charge_percentage) / 100

    # 1. Gold valuation
    your_gold_value = acc * price

    # 2. Gold gap (grams stay signed)
    additional_gold_grams = ijw - acc
    additional_gold_value = additional_gold_grams * price if additional_gold_grams > 0 else 0.0

    # 3. Base invoice
    base_jewellery_cost = ijw * price
    making_charges = mc_fraction * base_jewellery_cost
    subtotal_before_gst = base_jewellery_cost + making_charges
    gst_amount = constants.gst_rate * subtotal_before_gst
    total_invoice = subtotal_before_gst + gst_amount

    # 4. Accumulated gold is credited in full
    gold_value_deduction = your_gold_value

    # 5. Discount rate
    potential_discount_rate = (
        mc_fraction * constants.making_charge_discount_percentage_on_accumulated_gold
    )
    if inputs.is_premature_redemption:
        applicable_cap_rate = float(inputs.premature_redemption_cap_percentage) / 100
    else:
        applicable_cap_rate = constants.standard_discount_rate_cap
    actual_applied_discount_rate = max(0.0, min(potential_discount_rate, applicable_cap_rate))

    # 6. Raw discount
    raw_discount = actual_applied_discount_rate * your_gold_value

    # 7. Practical caps: overlap making charges, then invoice making charges
    mc_on_overlap_portion = mc_fraction * (min(acc, ijw) * price)
    final_making_charge_discount = max(
        0.0, min(raw_discount, mc_on_overlap_portion, making_charges)
    )

    # 8. Savings and payable
    total_savings = gold_value_deduction + final_making_charge_discount
    if not all(math.isfinite(v) for v in (total_invoice, total_savings, total_invoice - total_savings)):
        raise RedemptionValidationError(
            'current_gold_price', 'Gold price and jewellery weight are too large to price'
        )
    final_amount_to_pay = max(0.0, total_invoice - total_savings)

    # 9. Breakdown
    mc_on_additional_gold = mc_fraction * additional_gold_value
    net_mc_on_accumulated_gold = max(0.0, mc_on_overlap_portion - final_making_charge_discount)

    result = RedemptionResult(
        inputs=inputs,
        constants=constants,
        your_gold_value=your_gold_value,
        additional_gold_grams=additional_gold_grams,
        additional_gold_value=additional_gold_value,
        base_jewellery_cost=base_jewellery_cost,
        making_charges=making_charges,
        subtotal_before_gst=subtotal_before_gst,
        gst_amount=gst_amount,
        total_invoice=total_invoice,
        gold_value_deduction=gold_value_deduction,
        potential_discount_rate=potential_discount_rate,
        applicable_cap_rate=applicable_cap_rate,
        actual_applied_discount_rate=actual_applied_discount_rate,
        raw_discount=raw_discount,
        mc_on_overlap_portion=mc_on_overlap_portion,
        final_making_charge_discount=final_making_charge_discount,
        total_savings=total_savings,
        final_amount_to_pay=final_amount_to_pay,
        additional_gold_cost=additional_gold_value,
        mc_on_additional_gold=mc_on_additional_gold,
        net_mc_on_accumulated_gold=net_mc_on_accumulated_gold,
        gst_component=gst_amount,
    )

    logger.debug(
        f"Redemption priced: invoice={total_invoice:.2f} "
        f"discount={final_making_charge_discount:.2f} payable={final_amount_to_pay:.2f}"
    )
    return result
