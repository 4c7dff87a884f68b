"""Scheme, transaction and redemption records.

A scheme accumulates gold through transactions (each buys
invested_amount / gold_rate grams). Scheme totals are recomputed from the
transactions after every change. Redeeming a scheme prices the redemption
with its accumulated gold and stores the result verbatim.
"""
import json
import logging
import math
from datetime import date, datetime
from typing import Optional

from app.constants import (
    INVESTMENT_TYPES,
    SCHEME_STATUSES,
    DEFAULT_SCHEME_STATUS,
    MANUAL_STATUS_TRANSITIONS,
    FROZEN_SCHEME_STATUSES,
    DEFAULT_PREMATURE_CAP_PERCENTAGE,
)
from .redemption import RedemptionInput, SchemeConstants, calculate_redemption
from .time_provider import TimeProvider, get_now, get_today

logger = logging.getLogger(__name__)


class SchemeError(Exception):
    """Base exception for scheme record errors."""
    pass


class SchemeValidationError(SchemeError):
    """Scheme or transaction input is invalid."""
    pass


class SchemeNotFoundError(SchemeError):
    """Scheme or transaction does not exist."""
    pass


class SchemeStateError(SchemeError):
    """Operation not allowed in the scheme's current status."""
    pass


def _positive(field: str, value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SchemeValidationError(f'{field} must be a number')
    try:
        value = float(value)
    except OverflowError:
        raise SchemeValidationError(f'{field} must be a positive number')
    if not math.isfinite(value) or value <= 0:
        raise SchemeValidationError(f'{field} must be a positive number')
    return value


def _as_date(field: str, value, time_provider: Optional[TimeProvider] = None) -> str:
    """Normalise a date, ISO string or None (today) to an ISO date string."""
    if value is None or value == '':
        return get_today(time_provider).isoformat()
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    try:
        return datetime.strptime(str(value), '%Y-%m-%d').date().isoformat()
    except ValueError:
        raise SchemeValidationError(f'{field} must use YYYY-MM-DD format')


def _row_to_scheme(row) -> dict:
    return {
        'id': row['id'],
        'scheme_name': row['scheme_name'],
        'investment_type': row['investment_type'],
        'start_date': row['start_date'],
        'total_invested_amount': round(row['total_invested_amount'], 2),
        'total_accumulated_gold_grams': round(row['total_accumulated_gold_grams'], 4),
        'status': row['status'],
        'status_label': SCHEME_STATUSES.get(row['status'], row['status']),
        'created_at': row['created_at'],
    }


def _row_to_transaction(row) -> dict:
    return {
        'id': row['id'],
        'scheme_id': row['scheme_id'],
        'date': row['date'],
        'invested_amount': round(row['invested_amount'], 2),
        'gold_rate': round(row['gold_rate'], 2),
        'gold_purchased_grams': round(row['gold_purchased_grams'], 4),
    }


def _row_to_redemption(row) -> dict:
    return {
        'scheme_id': row['scheme_id'],
        'redeemed_at': row['redeemed_at'],
        'inputs': json.loads(row['inputs_json']),
        'result': json.loads(row['result_json']),
        'final_amount_to_pay': row['final_amount_to_pay'],
    }


def _fetch_scheme_row(db, scheme_id: int):
    row = db.execute('SELECT * FROM schemes WHERE id = ?', (scheme_id,)).fetchone()
    if row is None:
        raise SchemeNotFoundError(f'Scheme {scheme_id} not found')
    return row


def _require_mutable(row) -> None:
    if row['status'] in FROZEN_SCHEME_STATUSES:
        raise SchemeStateError(
            f"Scheme {row['id']} is {row['status']} and can no longer be changed"
        )


def _recompute_totals(db, scheme_id: int) -> None:
    db.execute('''
        UPDATE schemes SET
            total_invested_amount = (
                SELECT COALESCE(SUM(invested_amount), 0) FROM transactions WHERE scheme_id = ?
            ),
            total_accumulated_gold_grams = (
                SELECT COALESCE(SUM(gold_purchased_grams), 0) FROM transactions WHERE scheme_id = ?
            )
        WHERE id = ?
    ''', (scheme_id, scheme_id, scheme_id))


def create_scheme(
    db,
    scheme_name: str,
    investment_type: str,
    initial_investment_amount: float,
    gold_rate: float,
    start_date=None,
    time_provider: Optional[TimeProvider] = None,
) -> dict:
    """Create a scheme along with its first gold purchase.

    Args:
        db: SQLite connection
        scheme_name: Display name (required, trimmed)
        investment_type: 'monthly' or 'lumpsum'
        initial_investment_amount: First month's or lumpsum amount
        gold_rate: Gold price per gram at purchase time
        start_date: Scheme start date (default: today)

    Returns:
        The created scheme dict
    """
    name = (scheme_name or '').strip() if isinstance(scheme_name, str) else ''
    if not name:
        raise SchemeValidationError('Scheme name is required')
    if investment_type not in INVESTMENT_TYPES:
        raise SchemeValidationError(
            f"Invalid investment type: {investment_type}. Must be one of: {', '.join(INVESTMENT_TYPES)}"
        )
    amount = _positive('initial_investment_amount', initial_investment_amount)
    rate = _positive('gold_rate', gold_rate)
    start = _as_date('start_date', start_date, time_provider)
    created_at = get_now(time_provider).isoformat()

    cursor = db.execute('''
        INSERT INTO schemes (scheme_name, investment_type, start_date, status, created_at)
        VALUES (?, ?, ?, ?, ?)
    ''', (name, investment_type, start, DEFAULT_SCHEME_STATUS, created_at))
    scheme_id = cursor.lastrowid

    db.execute('''
        INSERT INTO transactions (scheme_id, date, invested_amount, gold_rate, gold_purchased_grams, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
    ''', (scheme_id, start, amount, rate, amount / rate, created_at))
    _recompute_totals(db, scheme_id)
    db.commit()

    logger.info(f"Created scheme {scheme_id} ({investment_type}) with initial investment {amount:.2f}")
    return _row_to_scheme(_fetch_scheme_row(db, scheme_id))


def list_schemes(db) -> list[dict]:
    """List all schemes, newest first."""
    rows = db.execute('SELECT * FROM schemes ORDER BY created_at DESC, id DESC').fetchall()
    return [_row_to_scheme(row) for row in rows]


def list_transactions(db, scheme_id: int) -> list[dict]:
    """List a scheme's transactions in date order."""
    _fetch_scheme_row(db, scheme_id)
    rows = db.execute(
        'SELECT * FROM transactions WHERE scheme_id = ? ORDER BY date, id',
        (scheme_id,)
    ).fetchall()
    return [_row_to_transaction(row) for row in rows]


def get_scheme(db, scheme_id: int) -> dict:
    """Get a scheme with its transactions and saved redemption (if any)."""
    scheme = _row_to_scheme(_fetch_scheme_row(db, scheme_id))
    scheme['transactions'] = list_transactions(db, scheme_id)
    scheme['redemption'] = get_redemption(db, scheme_id)
    return scheme


def add_transaction(
    db,
    scheme_id: int,
    invested_amount: float,
    gold_rate: float,
    txn_date=None,
    time_provider: Optional[TimeProvider] = None,
    commit: bool = True,
) -> dict:
    """Record a gold purchase and refresh the scheme totals.

    Pass commit=False to batch several purchases into one transaction.
    """
    row = _fetch_scheme_row(db, scheme_id)
    _require_mutable(row)
    amount = _positive('invested_amount', invested_amount)
    rate = _positive('gold_rate', gold_rate)
    txn_day = _as_date('date', txn_date, time_provider)

    cursor = db.execute('''
        INSERT INTO transactions (scheme_id, date, invested_amount, gold_rate, gold_purchased_grams, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
    ''', (scheme_id, txn_day, amount, rate, amount / rate, get_now(time_provider).isoformat()))
    _recompute_totals(db, scheme_id)
    if commit:
        db.commit()

    logger.info(f"Scheme {scheme_id}: added transaction {cursor.lastrowid} ({amount:.2f} @ {rate:.2f}/g)")
    txn = db.execute('SELECT * FROM transactions WHERE id = ?', (cursor.lastrowid,)).fetchone()
    return _row_to_transaction(txn)


def _fetch_transaction_row(db, scheme_id: int, txn_id: int):
    row = db.execute(
        'SELECT * FROM transactions WHERE id = ? AND scheme_id = ?',
        (txn_id, scheme_id)
    ).fetchone()
    if row is None:
        raise SchemeNotFoundError(f'Transaction {txn_id} not found in scheme {scheme_id}')
    return row


def update_transaction(
    db,
    scheme_id: int,
    txn_id: int,
    invested_amount: float,
    gold_rate: float,
    txn_date=None,
    time_provider: Optional[TimeProvider] = None,
) -> dict:
    """Edit a transaction; purchased grams are re-derived from amount and rate.

    A missing txn_date keeps the transaction's current date.
    """
    _require_mutable(_fetch_scheme_row(db, scheme_id))
    existing = _fetch_transaction_row(db, scheme_id, txn_id)
    amount = _positive('invested_amount', invested_amount)
    rate = _positive('gold_rate', gold_rate)
    txn_day = existing['date'] if txn_date in (None, '') else _as_date('date', txn_date, time_provider)

    db.execute('''
        UPDATE transactions
        SET date = ?, invested_amount = ?, gold_rate = ?, gold_purchased_grams = ?
        WHERE id = ?
    ''', (txn_day, amount, rate, amount / rate, txn_id))
    _recompute_totals(db, scheme_id)
    db.commit()

    logger.info(f"Scheme {scheme_id}: updated transaction {txn_id}")
    return _row_to_transaction(_fetch_transaction_row(db, scheme_id, txn_id))


def delete_transaction(db, scheme_id: int, txn_id: int) -> None:
    """Delete a transaction and refresh the scheme totals."""
    _require_mutable(_fetch_scheme_row(db, scheme_id))
    _fetch_transaction_row(db, scheme_id, txn_id)

    db.execute('DELETE FROM transactions WHERE id = ?', (txn_id,))
    _recompute_totals(db, scheme_id)
    db.commit()
    logger.info(f"Scheme {scheme_id}: deleted transaction {txn_id}")


def update_scheme_status(db, scheme_id: int, status: str) -> dict:
    """Move a scheme between ongoing, matured and closed.

    'redeemed' is only reachable through redeem_scheme().
    """
    row = _fetch_scheme_row(db, scheme_id)
    if status not in SCHEME_STATUSES:
        raise SchemeValidationError(f'Invalid status: {status}')

    current = row['status']
    if status == current:
        return _row_to_scheme(row)
    allowed = MANUAL_STATUS_TRANSITIONS.get(current, ())
    if status not in allowed:
        raise SchemeStateError(f'Cannot change scheme status from {current} to {status}')

    db.execute('UPDATE schemes SET status = ? WHERE id = ?', (status, scheme_id))
    db.commit()
    logger.info(f"Scheme {scheme_id}: status {current} -> {status}")
    return _row_to_scheme(_fetch_scheme_row(db, scheme_id))


def redeem_scheme(
    db,
    scheme_id: int,
    intended_jewellery_weight: float,
    current_gold_price: float,
    making_charge_percentage: float,
    is_premature_redemption: bool = False,
    premature_redemption_cap_percentage: float = DEFAULT_PREMATURE_CAP_PERCENTAGE,
    constants: Optional[SchemeConstants] = None,
    time_provider: Optional[TimeProvider] = None,
) -> dict:
    """Price and save the redemption of a scheme's accumulated gold.

    Raises:
        SchemeNotFoundError: unknown scheme
        SchemeStateError: scheme already redeemed/closed, or holds no gold
        RedemptionValidationError: invalid jewellery, price or charge inputs
    """
    row = _fetch_scheme_row(db, scheme_id)
    _require_mutable(row)
    accumulated = row['total_accumulated_gold_grams']
    if accumulated <= 0:
        raise SchemeStateError(f'Scheme {scheme_id} has no accumulated gold to redeem')

    inputs = RedemptionInput(
        accumulated_gold_grams=accumulated,
        intended_jewellery_weight=intended_jewellery_weight,
        current_gold_price=current_gold_price,
        making_charge_percentage=making_charge_percentage,
        is_premature_redemption=is_premature_redemption,
        premature_redemption_cap_percentage=premature_redemption_cap_percentage,
    )
    result = calculate_redemption(inputs, constants)
    redeemed_at = get_now(time_provider).isoformat()

    db.execute('''
        INSERT INTO redemptions (scheme_id, redeemed_at, inputs_json, result_json, final_amount_to_pay)
        VALUES (?, ?, ?, ?, ?)
    ''', (
        scheme_id,
        redeemed_at,
        json.dumps(inputs.to_dict()),
        json.dumps(result.to_dict()),
        round(result.final_amount_to_pay, 2),
    ))
    db.execute("UPDATE schemes SET status = 'redeemed' WHERE id = ?", (scheme_id,))
    db.commit()

    logger.info(
        f"Scheme {scheme_id} redeemed: {accumulated:.4f}g into {inputs.intended_jewellery_weight}g jewellery, "
        f"payable {result.final_amount_to_pay:.2f}"
    )
    return get_redemption(db, scheme_id)


def get_redemption(db, scheme_id: int) -> Optional[dict]:
    """Get the saved redemption for a scheme, or None if not redeemed."""
    row = db.execute('SELECT * FROM redemptions WHERE scheme_id = ?', (scheme_id,)).fetchone()
    if row is None:
        return None
    return _row_to_redemption(row)
