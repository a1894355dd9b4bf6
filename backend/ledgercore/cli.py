# Overview: Flask CLI command groups for tenant bootstrap, chart seeding and ledger inspection.

# backend/ledgercore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP (PowerShell: $env:FLASK_APP="ledgercore:create_app").
# - Use: python -m flask <group> <command> [options]
#
# Organization management (MULTI-TENANT):
# - python -m flask orgs list
#   List all organizations.
# - python -m flask orgs create --name "Acme Corp" --code "ACME" [--currency PHP]
#   Create a new organization (tenant); currency defaults to USD.
#
# Chart of accounts:
# - python -m flask accounts seed --org-id 1
#   Create the default chart of accounts (idempotent).
# - python -m flask accounts list --org-id 1
#   List active accounts.
#
# Stock ledger:
# - python -m flask ledger balance --org-id 1 --item-code SKU-1 --warehouse-code MAIN
#   Show the current quantity, valuation rate and stock value.
# - python -m flask ledger valuation --org-id 1 [--warehouse-code MAIN]
#   Stock valuation per item and warehouse.
# - python -m flask ledger verify --org-id 1
#   Audit running balances and journal balances (exit code 1 on violations).

import click
from flask.cli import with_appcontext

from .amounts import quantize
from .extensions import db
from .models import Item, Organization, Warehouse
from .services import account_service, journal_service, ledger_service, valuation_service


@click.group('orgs')
def orgs_group():
    """Organization (tenant) management commands."""


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    """List all organizations."""
    orgs = db.session.query(Organization).order_by(Organization.id).all()

    if not orgs:
        click.echo("No organizations found.")
        return

    click.echo("\n" + "="*76)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Cur':<5} {'Active':<8} {'Warehouses'}")
    click.echo("="*76)

    for org in orgs:
        warehouse_count = db.session.query(Warehouse).filter_by(org_id=org.id).count()
        active_str = "Yes" if org.is_active else "No"
        click.echo(
            f"{org.id:<5} {org.name:<30} {org.code or '-':<15} {org.currency_code:<5} {active_str:<8} {warehouse_count}"
        )

    click.echo("="*76 + "\n")


@orgs_group.command('create')
@click.option('--name', required=True, help='Organization name')
@click.option('--code', required=True, help='Short code (unique)')
@click.option('--currency', default='USD', show_default=True, help='ISO 4217 currency code')
@with_appcontext
def create_org_cli(name, code, currency):
    """Create a new organization (tenant)."""
    existing = db.session.query(Organization).filter_by(code=code).first()
    if existing:
        click.echo(f"FAIL Organization with code '{code}' already exists")
        return

    currency = currency.strip().upper()
    if len(currency) != 3 or not currency.isalpha():
        click.echo(f"FAIL '{currency}' is not a 3-letter currency code")
        return

    org = Organization(name=name, code=code, currency_code=currency, is_active=True)
    db.session.add(org)
    db.session.commit()

    click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code}, Currency: {org.currency_code})")


@click.group('accounts')
def accounts_group():
    """Chart of accounts commands."""


@accounts_group.command('seed')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@with_appcontext
def seed_accounts_cli(org_id):
    """Create the default chart of accounts for an organization."""
    org = db.session.query(Organization).filter_by(id=org_id).first()
    if not org:
        click.echo(f"FAIL Organization ID {org_id} not found")
        return

    created = account_service.seed_default_chart(org_id)
    db.session.commit()

    if created:
        click.echo(f"PASS Created {len(created)} accounts for '{org.name}'")
    else:
        click.echo(f"PASS Chart of accounts already complete for '{org.name}'")


@accounts_group.command('list')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@with_appcontext
def list_accounts_cli(org_id):
    """List active accounts of an organization."""
    accounts = account_service.list_accounts(org_id)
    if not accounts:
        click.echo("No accounts found.")
        return

    for account in accounts:
        system = " [system]" if account.is_system_account else ""
        click.echo(f"{account.account_number:<8} {account.account_name:<36} {account.account_type}{system}")


@click.group('ledger')
def ledger_group():
    """Stock ledger inspection and audit commands."""


def _lookup_item_and_warehouse(org_id, item_code, warehouse_code):
    item = db.session.query(Item).filter_by(org_id=org_id, item_code=item_code).first()
    warehouse = db.session.query(Warehouse).filter_by(org_id=org_id, code=warehouse_code).first()
    return item, warehouse


@ledger_group.command('balance')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--item-code', required=True, help='Item code')
@click.option('--warehouse-code', required=True, help='Warehouse code')
@with_appcontext
def ledger_balance_cli(org_id, item_code, warehouse_code):
    """Show the current balance of one item in one warehouse."""
    item, warehouse = _lookup_item_and_warehouse(org_id, item_code, warehouse_code)
    if not item:
        click.echo(f"FAIL Item '{item_code}' not found in organization {org_id}")
        return
    if not warehouse:
        click.echo(f"FAIL Warehouse '{warehouse_code}' not found in organization {org_id}")
        return

    balance = ledger_service.get_latest_balance(org_id, item.id, warehouse.id)
    click.echo(
        f"{item.item_code} @ {warehouse.code}: qty={quantize(balance.quantity)} "
        f"rate={quantize(balance.valuation_rate)} value={quantize(balance.stock_value)} seq={balance.sequence_no}"
    )


@ledger_group.command('valuation')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--warehouse-code', help='Restrict to one warehouse')
@with_appcontext
def ledger_valuation_cli(org_id, warehouse_code):
    """Stock valuation per item and warehouse."""
    warehouse_id = None
    if warehouse_code:
        warehouse = db.session.query(Warehouse).filter_by(org_id=org_id, code=warehouse_code).first()
        if not warehouse:
            click.echo(f"FAIL Warehouse '{warehouse_code}' not found in organization {org_id}")
            return
        warehouse_id = warehouse.id

    report = valuation_service.stock_valuation(org_id, warehouse_id=warehouse_id)
    for row in report["rows"]:
        click.echo(
            f"{row['item_code']:<16} {row['warehouse_code']:<10} "
            f"{row['quantity']:>14} {row['valuation_rate']:>14} {row['stock_value']:>16}"
        )
    click.echo(f"Total stock value: {report['total_value']} {report['currency_code'] or ''}".rstrip())


@ledger_group.command('verify')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.pass_context
@with_appcontext
def ledger_verify_cli(ctx, org_id):
    """Audit running balances and journal balances for an organization."""
    failures = 0

    for item_id, warehouse_id in ledger_service.ledger_keys(org_id):
        broken = ledger_service.verify_running_balance(org_id, item_id, warehouse_id)
        if broken:
            failures += 1
            click.echo(
                f"FAIL Running balance broken for item {item_id} warehouse {warehouse_id} "
                f"at sequence {', '.join(str(s) for s in broken)}"
            )

    for problem in journal_service.verify_journal_balances(org_id):
        failures += 1
        click.echo(
            f"FAIL Journal {problem['journal_code']} unbalanced: "
            f"debit {problem['line_debit']} / credit {problem['line_credit']}"
        )

    if failures:
        click.echo(f"FAIL {failures} problem(s) found")
        ctx.exit(1)

    click.echo("PASS Stock ledger and journals are consistent")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(orgs_group)
    app.cli.add_command(accounts_group)
    app.cli.add_command(ledger_group)
