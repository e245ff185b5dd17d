"""Ledger integrity check command."""

import click

from campaignledger.cli.error_handling import handle_domain_error
from campaignledger.domain.errors import DomainError
from campaignledger.domain.integrity import LedgerIntegrityChecker


@click.command("check")
@click.option("--campaign", "campaign_id", help="Only check this campaign")
@click.option("--invoice", "invoice_id", help="Only check this invoice")
@click.pass_context
def check_ledger(ctx, campaign_id, invoice_id):
    """Verify invoice totals and invoice membership.

    Exits with status 1 when a violation is found.
    """
    checker = LedgerIntegrityChecker(ctx.obj["db"])
    try:
        if invoice_id:
            violations = checker.check_invoice_by_id(invoice_id)
        else:
            violations = checker.check(campaign_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not violations:
        click.echo("Ledger is consistent.")
        return

    click.echo(f"Found {len(violations)} problem(s):", err=True)
    for violation in violations:
        click.echo(f"  [{violation.rule}] {violation.message}", err=True)
    ctx.exit(1)


def register_commands(cli: click.Group) -> None:
    """Register check command with main CLI."""
    cli.add_command(check_ledger)
