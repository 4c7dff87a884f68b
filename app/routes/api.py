"""API routes for redemption pricing and scheme records."""
import math

from flask import Blueprint, jsonify, request, current_app

from app.db import get_db
from app.constants import DEFAULT_INVESTMENT_TYPE, INVESTMENT_TYPES, SCHEME_STATUSES
from app.services.config import get_calculator_config
from app.services.formatters import format_currency, format_grams, format_redemption_display
from app.services.redemption import (
    RedemptionInput,
    RedemptionValidationError,
    calculate_redemption,
)
from app.services import schemes as scheme_service
from app.services.schemes import (
    SchemeValidationError,
    SchemeNotFoundError,
    SchemeStateError,
)

api_bp = Blueprint('api', __name__)

TRUE_VALUES = ('1', 'true', 'yes', 'on')
FALSE_VALUES = ('0', 'false', 'no', 'off', '')


class InvalidFieldError(ValueError):
    """A request field is missing or cannot be parsed."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


def _get_json_body() -> dict:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise InvalidFieldError('body', 'Request body must be a JSON object')
    return body


def _parse_number(body: dict, field: str, required: bool = True, default=None) -> float | None:
    """Parse a numeric field sent either as a JSON number or a decimal string."""
    if field not in body or body[field] is None:
        if required:
            raise InvalidFieldError(field, f'{field} is required')
        return default

    value = body[field]
    if isinstance(value, bool):
        raise InvalidFieldError(field, f'{field} must be a number')
    if isinstance(value, (int, float)):
        try:
            parsed = float(value)
        except OverflowError:
            raise InvalidFieldError(field, f'{field} must be a finite number')
        if not math.isfinite(parsed):
            raise InvalidFieldError(field, f'{field} must be a finite number')
        return parsed
    if isinstance(value, str):
        text = value.strip()
        if not text:
            if required:
                raise InvalidFieldError(field, f'{field} is required')
            return default
        try:
            parsed = float(text)
        except ValueError:
            raise InvalidFieldError(field, f'{field} must be a number')
        if not math.isfinite(parsed):
            raise InvalidFieldError(field, f'{field} must be a finite number')
        return parsed
    raise InvalidFieldError(field, f'{field} must be a number')


def _parse_bool(body: dict, field: str, default: bool = False) -> bool:
    value = body.get(field, default)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_VALUES:
            return True
        if lowered in FALSE_VALUES:
            return False
    raise InvalidFieldError(field, f'{field} must be true or false')


def _parse_redemption_options(body: dict) -> dict:
    """Parse the jewellery and pricing fields shared by calculate and redeem."""
    return {
        'intended_jewellery_weight': _parse_number(body, 'intended_jewellery_weight'),
        'current_gold_price': _parse_number(body, 'current_gold_price'),
        'making_charge_percentage': _parse_number(body, 'making_charge_percentage'),
        'is_premature_redemption': _parse_bool(body, 'is_premature_redemption'),
        'premature_redemption_cap_percentage': _parse_number(
            body,
            'premature_redemption_cap_percentage',
            required=False,
            default=current_app.config['DEFAULT_PREMATURE_CAP_PERCENTAGE'],
        ),
    }


def _scheme_constants():
    return current_app.config['SCHEME_CONSTANTS']


@api_bp.errorhandler(InvalidFieldError)
@api_bp.errorhandler(RedemptionValidationError)
def _handle_invalid_field(error):
    current_app.logger.warning(f"Rejected request field {error.field}: {error.message}")
    return jsonify({'error': error.message, 'field': error.field}), 400


@api_bp.errorhandler(SchemeValidationError)
def _handle_scheme_validation(error):
    return jsonify({'error': str(error)}), 400


@api_bp.errorhandler(SchemeNotFoundError)
def _handle_scheme_not_found(error):
    return jsonify({'error': str(error)}), 404


@api_bp.errorhandler(SchemeStateError)
def _handle_scheme_state(error):
    return jsonify({'error': str(error)}), 409


@api_bp.route('/constants')
def constants():
    """Return scheme constants and calculator form settings.

    Returns:
        JSON with GST rate, discount percentage, standard cap, plus the
        default and maximum premature cap the calculator slider uses.
    """
    config = get_calculator_config(
        _scheme_constants(), current_app.config['DEFAULT_PREMATURE_CAP_PERCENTAGE']
    )
    config['investment_types'] = INVESTMENT_TYPES
    config['scheme_statuses'] = SCHEME_STATUSES
    return jsonify(config)


@api_bp.route('/redemption/calculate', methods=['POST'])
def redemption_calculate():
    """Price a redemption without saving it.

    Request body:
    {
        "accumulated_gold_grams": "5.208",
        "intended_jewellery_weight": 6.094,
        "current_gold_price": 7000,
        "making_charge_percentage": 18,
        "is_premature_redemption": false,
        "premature_redemption_cap_percentage": 11
    }

    Numbers may be sent as decimal strings.
    """
    body = _get_json_body()
    options = _parse_redemption_options(body)
    inputs = RedemptionInput(
        accumulated_gold_grams=_parse_number(body, 'accumulated_gold_grams'),
        **options,
    )
    result = calculate_redemption(inputs, _scheme_constants())

    response = result.to_dict()
    response['display'] = format_redemption_display(result)
    return jsonify(response)


def _scheme_with_display(scheme: dict) -> dict:
    scheme['display'] = {
        'total_invested_amount': format_currency(scheme['total_invested_amount']),
        'total_accumulated_gold_grams': format_grams(scheme['total_accumulated_gold_grams']),
    }
    return scheme


@api_bp.route('/schemes', methods=['GET'])
def list_schemes():
    """List all saved schemes."""
    schemes = [_scheme_with_display(s) for s in scheme_service.list_schemes(get_db())]
    return jsonify({'schemes': schemes, 'count': len(schemes)})


@api_bp.route('/schemes', methods=['POST'])
def create_scheme():
    """Create a scheme with its first gold purchase.

    Request body:
    {
        "scheme_name": "Wedding fund",
        "investment_type": "monthly",
        "initial_investment_amount": "10000",
        "gold_rate": "7000",
        "start_date": "2026-01-05"
    }
    """
    body = _get_json_body()
    scheme = scheme_service.create_scheme(
        get_db(),
        scheme_name=body.get('scheme_name'),
        investment_type=body.get('investment_type', DEFAULT_INVESTMENT_TYPE),
        initial_investment_amount=_parse_number(body, 'initial_investment_amount'),
        gold_rate=_parse_number(body, 'gold_rate'),
        start_date=body.get('start_date'),
    )
    return jsonify(_scheme_with_display(scheme)), 201


@api_bp.route('/schemes/<int:scheme_id>', methods=['GET'])
def get_scheme(scheme_id):
    """Return a scheme with its transactions and saved redemption."""
    return jsonify(_scheme_with_display(scheme_service.get_scheme(get_db(), scheme_id)))


@api_bp.route('/schemes/<int:scheme_id>', methods=['PATCH'])
def update_scheme(scheme_id):
    """Update a scheme's status (ongoing, matured or closed)."""
    body = _get_json_body()
    status = body.get('status')
    if not status:
        raise InvalidFieldError('status', 'status is required')
    scheme = scheme_service.update_scheme_status(get_db(), scheme_id, status)
    return jsonify(_scheme_with_display(scheme))


@api_bp.route('/schemes/<int:scheme_id>/transactions', methods=['POST'])
def add_transaction(scheme_id):
    """Record a gold purchase into a scheme."""
    body = _get_json_body()
    txn = scheme_service.add_transaction(
        get_db(),
        scheme_id,
        invested_amount=_parse_number(body, 'invested_amount'),
        gold_rate=_parse_number(body, 'gold_rate'),
        txn_date=body.get('date'),
    )
    return jsonify(txn), 201


@api_bp.route('/schemes/<int:scheme_id>/transactions/<int:txn_id>', methods=['PUT'])
def update_transaction(scheme_id, txn_id):
    """Edit a transaction's amount, gold rate and date."""
    body = _get_json_body()
    txn = scheme_service.update_transaction(
        get_db(),
        scheme_id,
        txn_id,
        invested_amount=_parse_number(body, 'invested_amount'),
        gold_rate=_parse_number(body, 'gold_rate'),
        txn_date=body.get('date'),
    )
    return jsonify(txn)


@api_bp.route('/schemes/<int:scheme_id>/transactions/<int:txn_id>', methods=['DELETE'])
def delete_transaction(scheme_id, txn_id):
    """Delete a transaction."""
    scheme_service.delete_transaction(get_db(), scheme_id, txn_id)
    return '', 204


@api_bp.route('/schemes/<int:scheme_id>/redeem', methods=['POST'])
def redeem_scheme(scheme_id):
    """Calculate and save the redemption of a scheme's accumulated gold.

    Request body is the calculate body without accumulated_gold_grams,
    which comes from the scheme.
    """
    body = _get_json_body()
    redemption = scheme_service.redeem_scheme(
        get_db(),
        scheme_id,
        constants=_scheme_constants(),
        **_parse_redemption_options(body),
    )
    return jsonify(redemption), 201


@api_bp.route('/schemes/<int:scheme_id>/redemption', methods=['GET'])
def get_redemption(scheme_id):
    """Return the saved redemption for a scheme."""
    db = get_db()
    scheme_service.get_scheme(db, scheme_id)
    redemption = scheme_service.get_redemption(db, scheme_id)
    if redemption is None:
        return jsonify({'error': f'Scheme {scheme_id} has not been redeemed'}), 404
    return jsonify(redemption)
