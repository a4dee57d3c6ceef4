"""
Offer roster reader.

Turns an uploaded roster (.csv or .xlsx) into OfferImportRow values for
LifecycleService.import_offers.  Headers are matched case-insensitively;
spaces and underscores are interchangeable.  Blank rows are skipped.
Rows with an email but no application number are kept with an empty
number so the import reports them.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from admissions_ingestion.adapters.base import SourceAdapter
from admissions_ingestion.adapters.csv_adapter import CsvSourceAdapter
from admissions_ingestion.adapters.xlsx_adapter import XlsxSourceAdapter
from admissions_kernel.logging_config import get_logger
from admissions_kernel.services.lifecycle_service import OfferImportRow

logger = get_logger("ingestion.roster")

_ADAPTERS: dict[str, type] = {
    ".csv": CsvSourceAdapter,
    ".xlsx": XlsxSourceAdapter,
}

_NUMBER_HEADERS = ("application_number", "application_no", "app_no")
_EMAIL_HEADERS = ("email", "email_address")


def _key(header: str) -> str:
    return re.sub(r"[\s_]+", "_", str(header).strip().lower())


def adapter_for(path: Path) -> SourceAdapter:
    """Adapter chosen by file suffix.  Raises ValueError for anything else."""
    try:
        return _ADAPTERS[path.suffix.lower()]()
    except KeyError:
        raise ValueError(
            f"Unsupported roster format {path.suffix or '(none)'!r}; expected .csv or .xlsx"
        ) from None


def _pick(record: dict[str, str], names: tuple[str, ...]) -> str:
    for name in names:
        value = record.get(name)
        if value:
            return value
    return ""


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def read_offer_roster(
    path: str | Path,
    options: dict[str, Any] | None = None,
) -> list[OfferImportRow]:
    """Read roster rows from ``path``.

    Raises ValueError when the format is unsupported or no application
    number column is present.
    """
    source = Path(path)
    adapter = adapter_for(source)
    opts = options or {}

    rows: list[OfferImportRow] = []
    header_checked = False
    for raw in adapter.read(source, opts):
        record = {_key(k): _text(v) for k, v in raw.items()}
        if not header_checked:
            if not any(name in record for name in _NUMBER_HEADERS):
                raise ValueError(
                    f"Roster {source.name} has no application number column"
                )
            header_checked = True

        number = _pick(record, _NUMBER_HEADERS)
        email = _pick(record, _EMAIL_HEADERS) or None
        if not number and email is None:
            continue
        rows.append(OfferImportRow(application_number=number, email=email))

    logger.info(
        "offer_roster_read",
        extra={"roster": source.name, "row_count": len(rows)},
    )
    return rows
