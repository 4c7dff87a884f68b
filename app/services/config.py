"""Configuration service for scheme constants and app settings."""
import os

from app.constants import (
    GST_RATE,
    MAKING_CHARGE_DISCOUNT_PERCENTAGE_ON_ACCUMULATED_GOLD,
    STANDARD_DISCOUNT_RATE_CAP,
    DEFAULT_PREMATURE_CAP_PERCENTAGE,
    PREMATURE_CAP_MIN_PERCENTAGE,
    PREMATURE_CAP_MAX_PERCENTAGE,
)
from app.services.redemption import SchemeConstants

# Recognised scheme constant options and their built-in defaults
SCHEME_CONSTANT_OPTIONS = {
    'GST_RATE': GST_RATE,
    'MAKING_CHARGE_DISCOUNT_PERCENTAGE_ON_ACCUMULATED_GOLD': MAKING_CHARGE_DISCOUNT_PERCENTAGE_ON_ACCUMULATED_GOLD,
    'STANDARD_DISCOUNT_RATE_CAP': STANDARD_DISCOUNT_RATE_CAP,
}


def _read_fraction(name: str, default: float) -> float:
    """Read a 0..1 fraction from the environment."""
    raw = os.environ.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f'{name} must be a number, got {raw!r}')
    if not 0 <= value <= 1:
        raise ValueError(f'{name} must be between 0 and 1, got {value}')
    return value


def get_scheme_constants() -> SchemeConstants:
    """Build SchemeConstants from env vars, falling back to the built-in values.

    Controlled by GST_RATE, MAKING_CHARGE_DISCOUNT_PERCENTAGE_ON_ACCUMULATED_GOLD
    and STANDARD_DISCOUNT_RATE_CAP (all fractions, e.g. 0.03 for 3%).

    Raises:
        ValueError: if a configured value is malformed or outside 0..1.
    """
    values = {
        name: _read_fraction(name, default)
        for name, default in SCHEME_CONSTANT_OPTIONS.items()
    }
    return SchemeConstants(
        gst_rate=values['GST_RATE'],
        making_charge_discount_percentage_on_accumulated_gold=values[
            'MAKING_CHARGE_DISCOUNT_PERCENTAGE_ON_ACCUMULATED_GOLD'
        ],
        standard_discount_rate_cap=values['STANDARD_DISCOUNT_RATE_CAP'],
    )


def get_default_premature_cap_percentage() -> float:
    """Get the premature cap the calculator starts from.

    Controlled by DEFAULT_PREMATURE_CAP_PERCENTAGE env var (default: 11).
    """
    value = float(os.environ.get('DEFAULT_PREMATURE_CAP_PERCENTAGE', DEFAULT_PREMATURE_CAP_PERCENTAGE))
    return min(max(value, PREMATURE_CAP_MIN_PERCENTAGE), PREMATURE_CAP_MAX_PERCENTAGE)


def get_data_dir() -> str:
    """Get the directory holding the SQLite records database."""
    return os.environ.get('DATA_DIR', os.path.join(os.path.dirname(__file__), '..', '..', 'data'))


def get_calculator_config(constants: SchemeConstants, default_premature_cap_percentage: float) -> dict:
    """Get the calculator settings a client needs to render its form."""
    return {
        'constants': constants.to_dict(),
        'default_premature_cap_percentage': default_premature_cap_percentage,
        'max_premature_cap_percentage': round(constants.standard_discount_rate_cap * 100, 4),
    }
