"""Tests for CLI commands."""

import re
from datetime import date
from decimal import Decimal

import pytest

from campaignledger.cli.main import cli
from campaignledger.domain.entities import Collection, InvoiceStatus


def _created_id(output: str) -> str:
    match = re.search(r"\(ID: ([0-9a-f]+)\)", output)
    assert match, output
    return match.group(1)


@pytest.fixture
def run(cli_runner, temp_db):
    """Invoke the CLI against the temporary database."""

    def invoke(*args):
        return cli_runner.invoke(cli, ["--db-path", temp_db.database_path, *args])

    return invoke


def test_full_workflow(run, temp_db):
    """Test complete workflow: campaign → line items → invoice → adjust → move → status → check."""
    result = run("campaign", "create", "Spring Launch", "--status", "active", "--start-date", "2024-03-01")
    assert result.exit_code == 0, result.output
    assert "Created campaign 'Spring Launch'" in result.output
    campaign_id = _created_id(result.output)

    line_item_ids = []
    for name, booked, actual, adjustment in [
        ("Homepage takeover", "10000", "11000", "500"),
        ("Pre-roll video", "5000", "4800", "(200)"),
        ("Newsletter", "1,000", "$1,000.00", "0"),
    ]:
        result = run(
            "line-item", "create", campaign_id, name,
            "--booked", booked, "--actual", actual, "--adjustment", adjustment,
        )
        assert result.exit_code == 0, result.output
        line_item_ids.append(_created_id(result.output))

    result = run(
        "invoice", "create", campaign_id, line_item_ids[0], line_item_ids[1],
        "--client-name", "Acme Corp", "--client-email", "billing@acme.test",
        "--issue-date", "2024-04-01",
    )
    assert result.exit_code == 0, result.output
    assert "Created invoice INV-000001" in result.output
    assert "Total 16,100.00 USD" in result.output
    invoice_id = _created_id(result.output)
    assert temp_db.get_by_id(Collection.INVOICES, invoice_id).due_date == date(2024, 5, 1)

    result = run(
        "invoice", "create", campaign_id, line_item_ids[2],
        "--client-name", "Acme Corp", "--client-email", "billing@acme.test",
    )
    assert result.exit_code == 0, result.output
    second_id = _created_id(result.output)

    result = run("line-item", "adjust", line_item_ids[0], "750", "--comment", "Make-good", "--user", "alice")
    assert result.exit_code == 0, result.output
    assert "changed from 500.00 to 750.00 (adjustment_updated)" in result.output

    result = run("invoice", "move", invoice_id, second_id, line_item_ids[1], "--user", "bob")
    assert result.exit_code == 0, result.output
    assert "moved from invoice INV-000001 to INV-000002" in result.output

    result = run("invoice", "status", invoice_id, "paid", "--paid-date", "2024-05-02")
    assert result.exit_code == 0, result.output
    assert "is now paid (paid 2024-05-02)" in result.output

    result = run("changelog", "list", "--invoice", second_id)
    assert result.exit_code == 0, result.output
    assert "line_item_moved" in result.output
    assert "INV-000001 -> INV-000002" in result.output

    result = run("check")
    assert result.exit_code == 0, result.output
    assert "Ledger is consistent." in result.output

    invoice = temp_db.get_by_id(Collection.INVOICES, invoice_id)
    assert invoice.total_amount == Decimal("11750.00")
    assert invoice.status == InvoiceStatus.PAID


def test_adjust_blocked_on_sent_invoice(run, ledger_service, invoice, line_items):
    ledger_service.update_invoice_status(invoice.id, InvoiceStatus.SENT)

    result = run("line-item", "adjust", line_items[0], "100")

    assert result.exit_code == 1
    assert "cannot be edited" in result.output
    assert "'sent'" in result.output


def test_invoice_create_rejects_invoiced_items(run, campaign, invoice, line_items):
    result = run(
        "invoice", "create", campaign.id, line_items[0],
        "--client-name", "Acme Corp", "--client-email", "billing@acme.test",
    )

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert line_items[0] in result.output


def test_unknown_invoice_is_reported(run):
    for args in (["invoice", "show", "missing"], ["invoice", "recompute", "missing"], ["check", "--invoice", "missing"]):
        result = run(*args)
        assert result.exit_code == 1
        assert "Invoice missing not found" in result.output


def test_paid_date_requires_paid_status(run, invoice):
    result = run("invoice", "status", invoice.id, "sent", "--paid-date", "2024-05-02")

    assert result.exit_code == 1
    assert "--paid-date only applies" in result.output


def test_paid_status_requires_date(run, invoice):
    result = run("invoice", "status", invoice.id, "paid")

    assert result.exit_code == 1
    assert "paid date is required" in result.output


def test_invalid_amount(run, campaign):
    result = run("line-item", "create", campaign.id, "Banner", "--booked", "lots", "--actual", "1")

    assert result.exit_code == 1
    assert "Invalid booked amount" in result.output


def test_invoice_list_pages_with_cursor(run, ledger_service, catalog_service, campaign):
    for n in range(3):
        item = catalog_service.create_line_item(campaign.id, f"Item {n}", Decimal("10"), Decimal("10"))
        ledger_service.create_invoice_from_line_items(
            campaign.id,
            [item],
            client_name=f"Client {n}",
            client_email="billing@example.test",
            issue_date=date(2024, 1, 1),
            due_date=date(2024, 2, 1),
        )

    first = run("invoice", "list", "--page-size", "2")
    assert first.exit_code == 0, first.output
    assert "3 matching, 2 shown" in first.output
    cursor = re.search(r"Next page: --cursor (\S+)", first.output).group(1)

    second = run("invoice", "list", "--page-size", "2", "--cursor", cursor)
    assert second.exit_code == 0, second.output
    assert "3 matching, 1 shown" in second.output
    assert "INV-000001" in second.output
    assert "Next page" not in second.output


def test_invoice_list_filters(run, ledger_service, invoice):
    ledger_service.update_invoice_status(invoice.id, InvoiceStatus.OVERDUE)

    overdue = run("invoice", "list", "--status", "overdue", "--status", "sent", "--client", "acme")
    drafts = run("invoice", "list", "--status", "draft")

    assert invoice.invoice_number in overdue.output
    assert "(before text search)" in overdue.output
    assert "No invoices found." in drafts.output


def test_line_item_list_uninvoiced(run, catalog_service, campaign, invoice):
    catalog_service.create_line_item(campaign.id, "Loose item", Decimal("1"), Decimal("1"))

    result = run("line-item", "list", "--uninvoiced", "--campaign", campaign.id)

    assert result.exit_code == 0, result.output
    assert "Loose item" in result.output
    assert "L1 Homepage takeover" not in result.output
    assert "1 matching" in result.output


def test_list_rejects_period_with_dates(run):
    result = run("changelog", "list", "--period", "this-month", "--start-date", "2024-01-01")

    assert result.exit_code == 1
    assert "cannot be combined" in result.output


def test_campaign_show(run, campaign, invoice):
    result = run("campaign", "show", campaign.id)

    assert result.exit_code == 0, result.output
    assert "Campaign: Campaign C" in result.output
    assert "Line items (2)" in result.output
    assert invoice.invoice_number in result.output


def test_metrics_command(run, ledger_service, invoice):
    ledger_service.update_invoice_status(invoice.id, InvoiceStatus.PAID, paid_date=date(2024, 5, 2))

    result = run("metrics")

    assert result.exit_code == 0, result.output
    assert "16,100.00" in result.output
    assert "2024-05" in result.output


def test_check_reports_violations(run, temp_db, invoice):
    from campaignledger.database.batch import WriteBatch

    temp_db.commit_batch(WriteBatch().update(Collection.INVOICES, invoice.id, {"total_amount": Decimal("1")}))

    result = run("check")

    assert result.exit_code == 1
    assert "[totals]" in result.output


def test_help_does_not_open_store(cli_runner, tmp_path):
    db_path = tmp_path / "never.db"

    result = cli_runner.invoke(cli, ["--db-path", str(db_path), "--help"])

    assert result.exit_code == 0
    assert "invoice" in result.output
    assert not db_path.exists()
