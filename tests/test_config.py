"""Tests for environment-driven settings."""

import pytest

from campaignledger.config import LedgerSettings
from campaignledger.database.factories import create_sqlite_database
from campaignledger.domain.entities import InvoiceStatus
from campaignledger.domain.errors import ValidationError


def test_defaults_from_empty_environment():
    settings = LedgerSettings.from_env({})

    assert settings == LedgerSettings()
    assert settings.max_any_of == 10
    assert settings.invoice_prefix == "INV"
    assert settings.editable_statuses == frozenset({InvoiceStatus.DRAFT, InvoiceStatus.OVERDUE})


def test_reads_every_variable():
    settings = LedgerSettings.from_env(
        {
            "CAMPAIGNLEDGER_DB_PATH": "/tmp/ledger.db",
            "CAMPAIGNLEDGER_MAX_ANY_OF": "30",
            "CAMPAIGNLEDGER_PAGE_SIZE": "25",
            "CAMPAIGNLEDGER_STORE_TIMEOUT": "0.5",
            "CAMPAIGNLEDGER_INVOICE_PREFIX": "BILL",
            "CAMPAIGNLEDGER_EDITABLE_STATUSES": "Draft, sent",
        }
    )

    assert settings.database_path == "/tmp/ledger.db"
    assert settings.max_any_of == 30
    assert settings.default_page_size == 25
    assert settings.store_timeout == 0.5
    assert settings.invoice_prefix == "BILL"
    assert settings.editable_statuses == frozenset({InvoiceStatus.DRAFT, InvoiceStatus.SENT})


@pytest.mark.parametrize(
    "name, value",
    [
        ("CAMPAIGNLEDGER_MAX_ANY_OF", "many"),
        ("CAMPAIGNLEDGER_MAX_ANY_OF", "0"),
        ("CAMPAIGNLEDGER_PAGE_SIZE", "-1"),
        ("CAMPAIGNLEDGER_STORE_TIMEOUT", "soon"),
        ("CAMPAIGNLEDGER_EDITABLE_STATUSES", "draft,archived"),
    ],
)
def test_invalid_values_are_rejected(name, value):
    with pytest.raises(ValidationError, match=name):
        LedgerSettings.from_env({name: value})


def test_factory_uses_settings_database_path(tmp_path):
    db_path = str(tmp_path / "configured.db")

    db = create_sqlite_database(settings=LedgerSettings(database_path=db_path))
    db.disconnect()

    assert db.database_url == f"sqlite:///{db_path}"
    assert (tmp_path / "configured.db").exists()


def test_factory_argument_wins_over_settings(tmp_path):
    explicit = str(tmp_path / "explicit.db")

    db = create_sqlite_database(explicit, settings=LedgerSettings(database_path=str(tmp_path / "other.db")))
    db.disconnect()

    assert db.database_url == f"sqlite:///{explicit}"
    assert db.max_any_of == 10
