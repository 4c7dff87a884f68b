"""Flask CLI commands for database management, imports and quick calculations."""
import csv
import json
import click
from flask import current_app
from flask.cli import with_appcontext

from app.db import get_db, init_db, get_db_path
from app.services.formatters import format_redemption_display
from app.services.redemption import (
    RedemptionInput,
    RedemptionValidationError,
    calculate_redemption,
)
from app.services.schemes import SchemeError, SchemeValidationError, add_transaction


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Initialize the SQLite database with schema."""
    init_db()
    click.echo(f'Initialized database at {get_db_path()}')


@click.command('calculate')
@click.option('--accumulated', 'accumulated_gold_grams', type=float, required=True,
              help='Accumulated scheme gold (grams)')
@click.option('--weight', 'intended_jewellery_weight', type=float, required=True,
              help='Desired jewellery weight (grams)')
@click.option('--price', 'current_gold_price', type=float, required=True,
              help='Gold rate at redemption (per gram)')
@click.option('--making-charge', 'making_charge_percentage', type=float, required=True,
              help='Making charge percentage, e.g. 18')
@click.option('--premature', 'is_premature_redemption', is_flag=True,
              help='Redeeming before scheme maturity')
@click.option('--cap', 'premature_redemption_cap_percentage', type=float, default=None,
              help='Discount cap percentage for premature redemption')
@click.option('--json', 'as_json', is_flag=True, help='Print the full result as JSON')
@with_appcontext
def calculate_command(accumulated_gold_grams, intended_jewellery_weight, current_gold_price,
                      making_charge_percentage, is_premature_redemption,
                      premature_redemption_cap_percentage, as_json):
    """Price a redemption and print the invoice."""
    if premature_redemption_cap_percentage is None:
        premature_redemption_cap_percentage = current_app.config['DEFAULT_PREMATURE_CAP_PERCENTAGE']

    inputs = RedemptionInput(
        accumulated_gold_grams=accumulated_gold_grams,
        intended_jewellery_weight=intended_jewellery_weight,
        current_gold_price=current_gold_price,
        making_charge_percentage=making_charge_percentage,
        is_premature_redemption=is_premature_redemption,
        premature_redemption_cap_percentage=premature_redemption_cap_percentage,
    )
    try:
        result = calculate_redemption(inputs, current_app.config['SCHEME_CONSTANTS'])
    except RedemptionValidationError as e:
        raise click.BadParameter(e.message, param_hint=e.field)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    display = format_redemption_display(result)
    rows = [
        ('You have', f"{display['you_have']} ({display['you_have_worth']})"),
        ('Additional gold', f"{display['additional_gold']} ({display['additional_gold_worth']})"),
        ('Jewellery cost', display['base_jewellery_cost']),
        ('Making charges', display['making_charges']),
        ('Subtotal', display['subtotal_before_gst']),
        ('GST', display['gst_amount']),
        ('Total invoice', display['total_invoice']),
        ('Gold value deduction', f"-{display['gold_value_deduction']}"),
        ('MC discount', f"-{display['making_charge_discount']} "
                        f"(rate {display['applied_discount_rate']}, cap {display['applied_discount_cap']})"),
        ('Final amount to pay', display['final_amount_to_pay']),
    ]
    width = max(len(label) for label, _ in rows)
    for label, value in rows:
        click.echo(f'{label.ljust(width)}  {value}')
    if not result.breakdown_reconciles:
        click.echo('Note: gold surplus, breakdown is approximate')


@click.command('import-transactions-csv')
@click.argument('scheme_id', type=int)
@click.argument('csv_path', type=click.Path(exists=True))
@with_appcontext
def import_transactions_csv_command(scheme_id, csv_path):
    """Import gold purchases into a scheme from a CSV file.

    CSV format: date,invested_amount,gold_rate
    Example: 2026-01-05,10000,7000
    """
    try:
        count = import_transactions_csv(scheme_id, csv_path)
    except SchemeError as e:
        raise click.ClickException(str(e))
    click.echo(f'Imported {count} transactions into scheme {scheme_id} from {csv_path}')


def import_transactions_csv(scheme_id: int, csv_path: str) -> int:
    """Import transactions from CSV file. Returns count of records imported.

    All rows are committed together; any bad row rolls the import back.

    Raises:
        SchemeError: if the scheme cannot take purchases or a row is invalid.
    """
    db = get_db()
    count = 0

    try:
        with open(csv_path, 'r', newline='', encoding='utf-8') as f:
            reader = csv.DictReader(f)
            for line_no, row in enumerate(reader, start=2):
                try:
                    amount = float(row['invested_amount'])
                    rate = float(row['gold_rate'])
                except (KeyError, TypeError, ValueError):
                    raise SchemeValidationError(
                        f'{csv_path}:{line_no}: invested_amount and gold_rate must be numbers'
                    )
                try:
                    add_transaction(db, scheme_id, amount, rate,
                                    txn_date=row.get('date') or None, commit=False)
                except SchemeValidationError as e:
                    raise SchemeValidationError(f'{csv_path}:{line_no}: {e}')
                count += 1

        db.execute(
            "INSERT OR REPLACE INTO meta (key, value, updated_at) VALUES (?, ?, datetime('now'))",
            ('last_transactions_import', csv_path)
        )
    except SchemeError:
        db.rollback()
        raise

    db.commit()
    return count


def register_cli(app):
    """Register CLI commands with the Flask app."""
    app.cli.add_command(init_db_command)
    app.cli.add_command(calculate_command)
    app.cli.add_command(import_transactions_csv_command)
