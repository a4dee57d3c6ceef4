"""Source adapters for roster files (file I/O only, no DB)."""

from admissions_ingestion.adapters.base import SourceAdapter, SourceProbe
from admissions_ingestion.adapters.csv_adapter import CsvSourceAdapter
from admissions_ingestion.adapters.xlsx_adapter import XlsxSourceAdapter

__all__ = [
    "SourceAdapter",
    "SourceProbe",
    "CsvSourceAdapter",
    "XlsxSourceAdapter",
]
