"""Shared constants for the gold scheme redemption calculator."""

# GST applied to the pre-tax jewellery invoice (3%)
GST_RATE = 0.03

# Scheme offers 50% of the making charge % as a potential discount rate
# on the accumulated gold value
MAKING_CHARGE_DISCOUNT_PERCENTAGE_ON_ACCUMULATED_GOLD = 0.50

# Standard (matured) redemption discount rate is capped at 12%
STANDARD_DISCOUNT_RATE_CAP = 0.12

# Default premature redemption cap shown on the calculator slider (percent)
DEFAULT_PREMATURE_CAP_PERCENTAGE = 11

# Bounds for the user-adjustable premature cap (percent)
PREMATURE_CAP_MIN_PERCENTAGE = 0
PREMATURE_CAP_MAX_PERCENTAGE = 100

# Breakdown is considered reconciled within one paisa
RECONCILIATION_TOLERANCE = 0.01

# ============================================================
# Scheme record-keeping
# ============================================================

INVESTMENT_TYPES = {
    'monthly': 'Monthly',
    'lumpsum': 'Lumpsum',
}
DEFAULT_INVESTMENT_TYPE = 'monthly'

SCHEME_STATUSES = {
    'ongoing': 'Ongoing',
    'matured': 'Matured',
    'redeemed': 'Redeemed',
    'closed': 'Closed',
}
DEFAULT_SCHEME_STATUS = 'ongoing'

# Statuses a user may set directly; 'redeemed' is only reached via redemption
MANUAL_STATUS_TRANSITIONS = {
    'ongoing': ('matured', 'closed'),
    'matured': ('ongoing', 'closed'),
}

# Schemes in these statuses no longer accept transactions
FROZEN_SCHEME_STATUSES = ('redeemed', 'closed')

# Display rounding
CURRENCY_DECIMALS = 2
GRAMS_DECIMALS = 4
RATE_DECIMALS = 6

CURRENCY_SYMBOL = '₹'
