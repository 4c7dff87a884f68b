"""Tests for the redemption pricing engine."""
import dataclasses
import itertools
import math

import pytest

from app.constants import STANDARD_DISCOUNT_RATE_CAP
from app.services.redemption import (
    RedemptionInput,
    RedemptionResult,
    RedemptionValidationError,
    SchemeConstants,
    calculate_redemption,
    validate_redemption_input,
)


def make_inputs(**overrides) -> RedemptionInput:
    values = {
        'accumulated_gold_grams': 5,
        'intended_jewellery_weight': 6,
        'current_gold_price': 7000,
        'making_charge_percentage': 18,
        'is_premature_redemption': False,
    }
    values.update(overrides)
    return RedemptionInput(**values)


class TestScenarioStandardRedemption:
    """5g owned, 6g wanted at 7000/g with 18% making charge."""

    def test_gold_valuation(self, scenario_a_inputs):
        """Accumulated gold and the shortfall are valued at the redemption rate."""
        result = calculate_redemption(scenario_a_inputs)
        assert result.your_gold_value == pytest.approx(35000)
        assert result.additional_gold_grams == pytest.approx(1)
        assert result.additional_gold_value == pytest.approx(7000)

    def test_invoice(self, scenario_a_inputs):
        """Invoice is jewellery cost plus making charges plus 3% GST."""
        result = calculate_redemption(scenario_a_inputs)
        assert result.base_jewellery_cost == pytest.approx(42000)
        assert result.making_charges == pytest.approx(7560)
        assert result.subtotal_before_gst == pytest.approx(49560)
        assert result.gst_amount == pytest.approx(1486.8)
        assert result.total_invoice == pytest.approx(51046.8)
        assert result.gold_value_deduction == pytest.approx(35000)

    def test_discount_rate_below_standard_cap(self, scenario_a_inputs):
        """Half of 18% is 9%, under the 12% standard cap."""
        result = calculate_redemption(scenario_a_inputs)
        assert result.potential_discount_rate == pytest.approx(0.09)
        assert result.applicable_cap_rate == pytest.approx(0.12)
        assert result.actual_applied_discount_rate == pytest.approx(0.09)
        assert result.applied_discount_cap_percentage == pytest.approx(12)

    def test_discount_amount(self, scenario_a_inputs):
        """Raw discount is under both practical caps so it applies in full."""
        result = calculate_redemption(scenario_a_inputs)
        assert result.raw_discount == pytest.approx(3150)
        assert result.mc_on_overlap_portion == pytest.approx(6300)
        assert result.final_making_charge_discount == pytest.approx(3150)

    def test_final_amount(self, scenario_a_inputs):
        """Payable is the invoice less gold value and discount."""
        result = calculate_redemption(scenario_a_inputs)
        assert result.total_savings == pytest.approx(38150)
        assert result.final_amount_to_pay == pytest.approx(12896.8)

    def test_breakdown_sums_to_final_amount(self, scenario_a_inputs):
        """Breakdown terms reconcile with the payable amount."""
        result = calculate_redemption(scenario_a_inputs)
        assert result.additional_gold_cost == pytest.approx(7000)
        assert result.mc_on_additional_gold == pytest.approx(1260)
        assert result.net_mc_on_accumulated_gold == pytest.approx(3150)
        assert result.gst_component == pytest.approx(1486.8)
        assert result.breakdown_total == pytest.approx(result.final_amount_to_pay)
        assert result.breakdown_reconciles is True
        assert result.gold_position == 'shortfall'


class TestScenarioPrematureRedemption:
    """Premature redemption uses the user-chosen cap instead of the standard one."""

    def test_low_cap_limits_rate(self):
        """A 5% cap is below the 9% potential rate."""
        result = calculate_redemption(make_inputs(
            is_premature_redemption=True,
            premature_redemption_cap_percentage=5,
        ))
        assert result.applicable_cap_rate == pytest.approx(0.05)
        assert result.actual_applied_discount_rate == pytest.approx(0.05)
        assert result.raw_discount == pytest.approx(1750)
        assert result.final_making_charge_discount == pytest.approx(1750)
        assert result.total_savings == pytest.approx(36750)
        assert result.final_amount_to_pay == pytest.approx(14296.8)

    def test_high_cap_does_not_raise_rate(self):
        """A cap above the potential rate leaves the potential rate in place."""
        result = calculate_redemption(make_inputs(
            is_premature_redemption=True,
            premature_redemption_cap_percentage=50,
        ))
        assert result.actual_applied_discount_rate == pytest.approx(0.09)

    def test_zero_cap_removes_discount(self):
        """A 0% cap yields no making-charge discount."""
        result = calculate_redemption(make_inputs(
            is_premature_redemption=True,
            premature_redemption_cap_percentage=0,
        ))
        assert result.final_making_charge_discount == 0
        assert result.final_amount_to_pay == pytest.approx(51046.8 - 35000)

    def test_cap_ignored_when_not_premature(self):
        """The premature cap has no effect on a standard redemption."""
        low = calculate_redemption(make_inputs(premature_redemption_cap_percentage=1))
        default = calculate_redemption(make_inputs())
        assert low.final_amount_to_pay == default.final_amount_to_pay


class TestScenarioZeroMakingCharge:
    """No making charge means no discount."""

    def test_only_gold_value_reduces_invoice(self):
        """Payable is invoice with GST less gold value."""
        result = calculate_redemption(make_inputs(making_charge_percentage=0))
        assert result.potential_discount_rate == 0
        assert result.making_charges == 0
        assert result.final_making_charge_discount == 0
        assert result.total_invoice == pytest.approx(43260)
        assert result.final_amount_to_pay == pytest.approx(8260)


class TestSurplusGold:
    """Owning more gold than the jewellery needs."""

    def test_additional_grams_stay_signed(self):
        """Surplus is reported as negative additional grams with zero value."""
        result = calculate_redemption(make_inputs(accumulated_gold_grams=8))
        assert result.additional_gold_grams == pytest.approx(-2)
        assert result.additional_gold_value == 0
        assert result.gold_position == 'surplus'
        assert result.surplus_gold_grams == pytest.approx(2)
        assert result.surplus_gold_value == pytest.approx(14000)

    def test_payable_clamped_to_zero(self):
        """Surplus gold value can exceed the invoice; payable floors at zero."""
        result = calculate_redemption(make_inputs(accumulated_gold_grams=8))
        assert result.raw_discount == pytest.approx(5040)
        assert result.mc_on_overlap_portion == pytest.approx(7560)
        assert result.final_making_charge_discount == pytest.approx(5040)
        assert result.final_amount_to_pay == 0

    def test_breakdown_flagged_as_not_reconciling(self):
        """The breakdown omits the surplus credit, so it no longer sums to the payable."""
        result = calculate_redemption(make_inputs(accumulated_gold_grams=8))
        assert result.additional_gold_cost == 0
        assert result.mc_on_additional_gold == 0
        assert result.net_mc_on_accumulated_gold == pytest.approx(2520)
        assert result.breakdown_total == pytest.approx(4006.8)
        assert result.reconciliation_difference == pytest.approx(4006.8)
        assert result.breakdown_reconciles is False

    def test_overlap_cap_binds_for_large_surplus(self):
        """Discount is limited to making charges on the jewellery's own gold."""
        result = calculate_redemption(make_inputs(accumulated_gold_grams=20))
        assert result.raw_discount == pytest.approx(12600)
        assert result.final_making_charge_discount == pytest.approx(7560)
        assert result.final_making_charge_discount == pytest.approx(result.making_charges)
        assert result.net_mc_on_accumulated_gold == pytest.approx(0)

    def test_exact_match(self):
        """Owning exactly the jewellery weight needs no additional gold."""
        result = calculate_redemption(make_inputs(accumulated_gold_grams=6))
        assert result.additional_gold_grams == 0
        assert result.additional_gold_value == 0
        assert result.gold_position == 'exact'
        assert result.breakdown_reconciles is True


class TestNoAccumulatedGold:
    """A calculation with nothing saved yet."""

    def test_pays_full_invoice(self):
        """Zero accumulated gold earns no deduction and no discount."""
        result = calculate_redemption(make_inputs(accumulated_gold_grams=0))
        assert result.your_gold_value == 0
        assert result.final_making_charge_discount == 0
        assert result.final_amount_to_pay == pytest.approx(result.total_invoice)
        assert result.breakdown_reconciles is True


class TestValidation:
    """Invalid inputs fail before any computation."""

    @pytest.mark.parametrize('field,value', [
        ('current_gold_price', 0),
        ('current_gold_price', -7000),
        ('intended_jewellery_weight', 0),
        ('accumulated_gold_grams', -0.001),
        ('making_charge_percentage', -1),
        ('premature_redemption_cap_percentage', 101),
        ('premature_redemption_cap_percentage', -1),
    ])
    def test_out_of_range(self, field, value):
        """Out-of-range values raise naming the field."""
        with pytest.raises(RedemptionValidationError) as excinfo:
            calculate_redemption(make_inputs(**{field: value}))
        assert excinfo.value.field == field

    @pytest.mark.parametrize('value', [math.nan, math.inf, -math.inf])
    def test_non_finite(self, value):
        """NaN and infinity are rejected."""
        with pytest.raises(RedemptionValidationError) as excinfo:
            calculate_redemption(make_inputs(current_gold_price=value))
        assert excinfo.value.field == 'current_gold_price'

    @pytest.mark.parametrize('value', ['7000', None, True])
    def test_non_numeric(self, value):
        """Strings, None and booleans are not numbers to the engine."""
        with pytest.raises(RedemptionValidationError):
            calculate_redemption(make_inputs(current_gold_price=value))

    def test_huge_integer_rejected(self):
        """Integers too large for a float are not finite amounts."""
        with pytest.raises(RedemptionValidationError) as excinfo:
            calculate_redemption(make_inputs(accumulated_gold_grams=10 ** 400))
        assert excinfo.value.field == 'accumulated_gold_grams'
        assert 'finite' in excinfo.value.message

    def test_overflowing_invoice_rejected(self):
        """Finite inputs whose invoice overflows are rejected, not priced at zero."""
        with pytest.raises(RedemptionValidationError) as excinfo:
            calculate_redemption(make_inputs(intended_jewellery_weight=10, current_gold_price=1e308))
        assert excinfo.value.field == 'current_gold_price'

    def test_first_invalid_field_reported(self):
        """Accumulated gold is checked before price."""
        with pytest.raises(RedemptionValidationError) as excinfo:
            validate_redemption_input(make_inputs(accumulated_gold_grams=-1, current_gold_price=0))
        assert excinfo.value.field == 'accumulated_gold_grams'

    def test_premature_flag_must_be_bool(self):
        """A truthy string is not accepted as the premature flag."""
        with pytest.raises(RedemptionValidationError) as excinfo:
            calculate_redemption(make_inputs(is_premature_redemption='yes'))
        assert excinfo.value.field == 'is_premature_redemption'

    def test_is_value_error(self):
        """Validation errors are ValueErrors for generic callers."""
        with pytest.raises(ValueError):
            calculate_redemption(make_inputs(current_gold_price=0))


class TestProperties:
    """Invariants that hold for every valid input."""

    GRID = list(itertools.product(
        [0, 2.5, 6, 9.75],            # accumulated grams
        [1, 6, 10],                   # jewellery weight
        [18, 30],                     # making charge %
        [False, True],                # premature
    ))

    @pytest.mark.parametrize('acc,ijw,mc,premature', GRID)
    def test_invariants(self, acc, ijw, mc, premature):
        """Payable non-negative and discount bounded by both practical caps."""
        result = calculate_redemption(make_inputs(
            accumulated_gold_grams=acc,
            intended_jewellery_weight=ijw,
            making_charge_percentage=mc,
            is_premature_redemption=premature,
            premature_redemption_cap_percentage=7,
        ))
        assert result.final_amount_to_pay >= 0
        assert 0 <= result.final_making_charge_discount <= result.making_charges + 1e-9
        assert result.final_making_charge_discount <= result.mc_on_overlap_portion + 1e-9
        assert result.actual_applied_discount_rate <= result.applicable_cap_rate
        if result.additional_gold_grams >= 0:
            assert result.breakdown_total == pytest.approx(result.final_amount_to_pay)

    def test_rate_monotonic_and_capped(self):
        """Raising the making charge never lowers the potential rate; applied rate stops at 12%."""
        rates = [
            calculate_redemption(make_inputs(making_charge_percentage=mc))
            for mc in (0, 10, 18, 24, 30, 50)
        ]
        potentials = [r.potential_discount_rate for r in rates]
        assert potentials == sorted(potentials)
        assert rates[-1].potential_discount_rate == pytest.approx(0.25)
        assert rates[-1].actual_applied_discount_rate == pytest.approx(STANDARD_DISCOUNT_RATE_CAP)
        assert rates[4].actual_applied_discount_rate == pytest.approx(STANDARD_DISCOUNT_RATE_CAP)

    def test_idempotent(self, scenario_a_inputs):
        """Same inputs give identical results."""
        assert calculate_redemption(scenario_a_inputs) == calculate_redemption(scenario_a_inputs)

    def test_result_is_immutable(self, scenario_a_inputs):
        """Results cannot be modified after construction."""
        result = calculate_redemption(scenario_a_inputs)
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.final_amount_to_pay = 0


class TestSchemeConstants:
    """Custom constants flow through the calculation."""

    def test_custom_gst(self, scenario_a_inputs):
        """A 5% GST rate changes tax and payable."""
        result = calculate_redemption(scenario_a_inputs, SchemeConstants(gst_rate=0.05))
        assert result.gst_amount == pytest.approx(2478)
        assert result.final_amount_to_pay == pytest.approx(49560 + 2478 - 38150)

    def test_custom_standard_cap(self, scenario_a_inputs):
        """Lowering the standard cap below 9% limits the rate."""
        result = calculate_redemption(scenario_a_inputs, SchemeConstants(standard_discount_rate_cap=0.04))
        assert result.actual_applied_discount_rate == pytest.approx(0.04)
        assert result.final_making_charge_discount == pytest.approx(1400)

    def test_to_dict_names(self):
        """Constants serialize under their configuration option names."""
        assert SchemeConstants().to_dict() == {
            'GST_RATE': 0.03,
            'MAKING_CHARGE_DISCOUNT_PERCENTAGE_ON_ACCUMULATED_GOLD': 0.50,
            'STANDARD_DISCOUNT_RATE_CAP': 0.12,
        }


class TestResultSerialization:
    """RedemptionResult.to_dict output."""

    def test_sections_and_rounding(self, scenario_a_inputs):
        """Amounts are grouped by section and rounded to paise."""
        data = calculate_redemption(scenario_a_inputs).to_dict()
        assert set(data) == {
            'inputs', 'constants', 'gold_analysis', 'invoice',
            'discount', 'breakdown', 'final_amount_to_pay',
        }
        assert data['final_amount_to_pay'] == 12896.8
        assert data['invoice']['gst_amount'] == 1486.8
        assert data['discount']['actual_applied_discount_rate'] == 0.09
        assert data['breakdown']['reconciles'] is True
        assert data['inputs']['accumulated_gold_grams'] == 5

    def test_surplus_serialization(self):
        """Surplus shows negative additional grams and a positive surplus."""
        data = calculate_redemption(make_inputs(accumulated_gold_grams=8)).to_dict()
        assert data['gold_analysis']['additional_gold_grams'] == -2
        assert data['gold_analysis']['surplus_gold_grams'] == 2
        assert data['gold_analysis']['position'] == 'surplus'
        assert data['breakdown']['reconciles'] is False

    def test_result_type(self, scenario_a_inputs):
        assert isinstance(calculate_redemption(scenario_a_inputs), RedemptionResult)
