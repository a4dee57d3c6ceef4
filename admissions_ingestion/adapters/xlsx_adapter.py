"""
XLSX source adapter for admission rosters exported from spreadsheets.

Supports:
  - sheet by index (0-based) or name
  - header row by index, or auto-detect (first row naming an application
    number or email column)
  - skip_rows before the header
  - normalizes cell values (strip, blank -> empty string, 2024.0 -> 2024)
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Iterator

import openpyxl

from admissions_ingestion.adapters.base import SourceProbe

# Normalized (lower, single-spaced) header names that mark a roster header row
_HEADER_KEYWORDS = frozenset({
    "application_number",
    "application number",
    "application no",
    "app no",
    "email",
    "email address",
})

_MAX_HEADER_SEARCH = 15


def _normalize_header_cell(value: Any) -> str:
    if value is None:
        return ""
    return re.sub(r"\s+", " ", str(value)).strip()


def _cell_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, float) and value == int(value):
        return int(value)
    if isinstance(value, str):
        return value.strip()
    return value


def _detect_header_row(rows: list[tuple[Any, ...]]) -> int:
    for index, row in enumerate(rows[:_MAX_HEADER_SEARCH]):
        names = {_normalize_header_cell(v).lower() for v in row}
        if names & _HEADER_KEYWORDS:
            return index
    return 0


def _headers(row: tuple[Any, ...]) -> list[str]:
    headers: list[str] = []
    for position, value in enumerate(row):
        key = _normalize_header_cell(value) or f"Column_{position + 1}"
        base, suffix = key, 0
        while key in headers:
            suffix += 1
            key = f"{base}_{suffix}"
        headers.append(key)
    return headers


class XlsxSourceAdapter:
    """
    Read .xlsx files as one dict per row.

    source_options:
      sheet: 0-based sheet index (int) or sheet name (str).  Default: active sheet.
      skip_rows: rows to skip at the top of the sheet.  Default: 0.
      header_row: 0-based header row index (after skip_rows).  Disables auto-detect.
    """

    def _load_rows(self, source_path: Path, options: dict[str, Any]) -> tuple[list[str], list[tuple]]:
        wb = openpyxl.load_workbook(source_path, read_only=True, data_only=True)
        try:
            sheet = self._get_sheet(wb, options)
            skip_rows = int(options.get("skip_rows", 0))
            rows = list(sheet.iter_rows(min_row=1 + skip_rows, values_only=True))
        finally:
            wb.close()

        if not rows:
            return [], []
        header_index = options.get("header_row")
        hi = int(header_index) if header_index is not None else _detect_header_row(rows)
        return _headers(rows[hi]), rows[hi + 1:]

    def read(self, source_path: Path, options: dict[str, Any]) -> Iterator[dict[str, Any]]:
        headers, rows = self._load_rows(source_path, options)
        for row in rows:
            values = [_cell_value(v) for v in row[: len(headers)]]
            if not any(v != "" for v in values):
                continue
            yield dict(zip(headers, values))

    def probe(self, source_path: Path, options: dict[str, Any]) -> SourceProbe:
        headers, rows = self._load_rows(source_path, options)
        sample = []
        count = 0
        for row in rows:
            values = [_cell_value(v) for v in row[: len(headers)]]
            if not any(v != "" for v in values):
                continue
            count += 1
            if len(sample) < 5:
                sample.append(dict(zip(headers, values)))
        return SourceProbe(
            row_count=count,
            columns=tuple(headers),
            sample_rows=tuple(sample),
        )

    def _get_sheet(self, wb: Any, options: dict[str, Any]) -> Any:
        sheet_ref = options.get("sheet")
        if sheet_ref is None:
            return wb.active
        if isinstance(sheet_ref, int):
            return wb.worksheets[sheet_ref]
        return wb[sheet_ref]
