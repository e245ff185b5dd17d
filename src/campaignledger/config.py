"""Runtime settings, read from CAMPAIGNLEDGER_* environment variables."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from campaignledger.domain.entities import InvoiceStatus
from campaignledger.domain.errors import ValidationError

ENV_PREFIX = "CAMPAIGNLEDGER_"


def default_database_path() -> str:
    """Return ~/.campaignledger/ledger.db, creating the directory."""
    db_dir = Path.home() / ".campaignledger"
    db_dir.mkdir(exist_ok=True)
    return str(db_dir / "ledger.db")


@dataclass(frozen=True)
class LedgerSettings:
    """Store capabilities and ledger policy.

    ``max_any_of`` is a capability of the backing store, not a domain rule,
    which is why it lives here instead of in the planner.
    """

    database_path: Optional[str] = None
    max_any_of: int = 10
    default_page_size: int = 10
    store_timeout: float = 5.0
    invoice_prefix: str = "INV"
    editable_statuses: frozenset[InvoiceStatus] = field(
        default_factory=lambda: frozenset({InvoiceStatus.DRAFT, InvoiceStatus.OVERDUE})
    )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "LedgerSettings":
        """Build settings from the environment, falling back to defaults.

        Raises:
            ValidationError: If a variable holds an invalid value
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def read_int(name: str, default: int) -> int:
            raw = env.get(ENV_PREFIX + name)
            if raw is None or raw == "":
                return default
            try:
                value = int(raw)
            except ValueError:
                raise ValidationError(f"{ENV_PREFIX}{name} must be an integer, got '{raw}'")
            if value < 1:
                raise ValidationError(f"{ENV_PREFIX}{name} must be positive, got {value}")
            return value

        timeout_raw = env.get(ENV_PREFIX + "STORE_TIMEOUT")
        store_timeout = defaults.store_timeout
        if timeout_raw:
            try:
                store_timeout = float(timeout_raw)
            except ValueError:
                raise ValidationError(f"{ENV_PREFIX}STORE_TIMEOUT must be a number, got '{timeout_raw}'")

        editable = defaults.editable_statuses
        statuses_raw = env.get(ENV_PREFIX + "EDITABLE_STATUSES")
        if statuses_raw:
            try:
                editable = frozenset(
                    InvoiceStatus(part.strip().lower()) for part in statuses_raw.split(",") if part.strip()
                )
            except ValueError:
                raise ValidationError(
                    f"{ENV_PREFIX}EDITABLE_STATUSES contains an unknown status: '{statuses_raw}'"
                )

        return cls(
            database_path=env.get(ENV_PREFIX + "DB_PATH") or None,
            max_any_of=read_int("MAX_ANY_OF", defaults.max_any_of),
            default_page_size=read_int("PAGE_SIZE", defaults.default_page_size),
            store_timeout=store_timeout,
            invoice_prefix=env.get(ENV_PREFIX + "INVOICE_PREFIX") or defaults.invoice_prefix,
            editable_statuses=editable,
        )
