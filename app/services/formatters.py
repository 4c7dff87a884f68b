"""Display formatting for rupee amounts and gram weights.

Uses Indian digit grouping: the last three digits form one group and the
rest are grouped in twos (12,34,567.89).
"""
import math

from app.constants import CURRENCY_SYMBOL


def _group_indian(integer_digits: str) -> str:
    if len(integer_digits) <= 3:
        return integer_digits
    head, tail = integer_digits[:-3], integer_digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ','.join(groups + [tail])


def _is_missing(value) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def format_number(value: float | None, fraction_digits: int = 2) -> str:
    """Format a number with Indian grouping and fixed decimals.

    None and NaN render as '0'.
    """
    if _is_missing(value):
        return '0'
    sign = '-' if value < 0 else ''
    text = f'{abs(value):.{fraction_digits}f}'
    if fraction_digits > 0:
        integer_part, fraction_part = text.split('.')
        return f'{sign}{_group_indian(integer_part)}.{fraction_part}'
    return f'{sign}{_group_indian(text)}'


def format_currency(amount: float | None) -> str:
    """Format a rupee amount, e.g. 1234567.891 -> '₹12,34,567.89'.

    None and NaN render as '₹0.00'.
    """
    if _is_missing(amount):
        return f'{CURRENCY_SYMBOL}0.00'
    if amount < 0:
        return f'-{CURRENCY_SYMBOL}{format_number(-amount, 2)}'
    return f'{CURRENCY_SYMBOL}{format_number(amount, 2)}'


def format_grams(value: float | None) -> str:
    """Format a gold weight to three decimals with a unit suffix."""
    return f'{format_number(value, 3)} g'


def format_percentage(rate: float | None) -> str:
    """Format a 0..1 rate as a percentage, e.g. 0.09 -> '9.00%'."""
    if _is_missing(rate):
        return '0.00%'
    return f'{rate * 100:.2f}%'


def format_redemption_display(result) -> dict:
    """Build the formatted strings a UI shows for a RedemptionResult."""
    additional_grams = result.additional_gold_grams
    if result.gold_position == 'surplus':
        need_text = f'Surplus of {format_grams(abs(additional_grams))}'
    elif result.gold_position == 'exact':
        need_text = 'No additional gold needed'
    else:
        need_text = f'Need {format_grams(additional_grams)} more'

    return {
        'you_have': format_grams(result.inputs.accumulated_gold_grams),
        'you_have_worth': format_currency(result.your_gold_value),
        'additional_gold': need_text,
        'additional_gold_worth': format_currency(result.additional_gold_value),
        'base_jewellery_cost': format_currency(result.base_jewellery_cost),
        'making_charges': format_currency(result.making_charges),
        'subtotal_before_gst': format_currency(result.subtotal_before_gst),
        'gst_amount': format_currency(result.gst_amount),
        'total_invoice': format_currency(result.total_invoice),
        'gold_value_deduction': format_currency(result.gold_value_deduction),
        'making_charge_discount': format_currency(result.final_making_charge_discount),
        'applied_discount_rate': format_percentage(result.actual_applied_discount_rate),
        'applied_discount_cap': format_percentage(result.applicable_cap_rate),
        'total_savings': format_currency(result.total_savings),
        'final_amount_to_pay': format_currency(result.final_amount_to_pay),
    }
