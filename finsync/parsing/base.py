"""
Base Classes for CSV Import

Bank CSV exports are parsed row by row into CsvRow records (amounts in
integer cents) and then converted to Unified Transactions.

A row that fails to parse is skipped with a warning and counted in the
metadata; the rest of the file is still imported.
"""
import io
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from finsync.common.logging_config import get_logger
from finsync.common.models import Transaction
from finsync.core.hashing import transaction_id

logger = get_logger(__name__)

CSV_SEPARATOR = ';'
MAX_SKIPPED_DETAILS = 50
LINE_COLUMN = '__line__'


@dataclass
class CsvRow:
    """One parsed CSV line. amount_cents is signed, negative = debit."""
    account_id: str
    booking_date: str
    amount_cents: int
    description: str
    counterparty: str = ''
    category: Optional[str] = None
    value_date: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    def to_transaction(self, currency: str = 'EUR') -> Transaction:
        date = self.value_date or self.booking_date
        amount = self.amount_cents / 100
        return Transaction(
            id=transaction_id(self.account_id, date, amount, self.description, self.counterparty),
            account_id=self.account_id,
            date=date,
            booking_date=self.booking_date,
            amount=amount,
            currency=currency,
            description=self.description,
            counterparty=self.counterparty,
            category=self.category,
            raw=self.raw or None,
        )


def parse_german_date(value: str) -> str:
    """
    "31.01.25" or "31.01.2025" -> "2025-01-31"
    """
    value = (value or '').strip()
    for fmt in ('%d.%m.%Y', '%d.%m.%y'):
        try:
            return datetime.strptime(value, fmt).date().isoformat()
        except ValueError:
            continue
    raise ValueError(f"Invalid date: {value!r}")


def read_csv_text(source) -> str:
    """
    Accepts a path, raw bytes or a file-like object.
    Bank exports come either as UTF-8 (with BOM) or as Latin-1.
    """
    if hasattr(source, 'read'):
        data = source.read()
    elif isinstance(source, (bytes, bytearray)):
        data = bytes(source)
    elif isinstance(source, (str, os.PathLike)):
        with open(source, 'rb') as f:
            data = f.read()
    else:
        raise TypeError(f"Unsupported CSV source: {type(source).__name__}")

    if isinstance(data, str):
        return data
    try:
        return data.decode('utf-8-sig')
    except UnicodeDecodeError:
        return data.decode('latin-1')


def _split_header(line: str) -> List[str]:
    return [cell.strip().strip('"').strip() for cell in line.split(CSV_SEPARATOR)]


def find_header_line(text: str, required_columns: Sequence[str]) -> Optional[int]:
    """Index of the first line containing every required column, skipping export preambles."""
    required = set(required_columns)
    for index, line in enumerate(text.splitlines()):
        if required.issubset(_split_header(line)):
            return index
    return None


def _numbered_body(lines: List[str], header_index: int) -> str:
    """
    Header and data lines with the 1-based source line number prepended as
    an extra first column, so skipped rows can be reported by line.
    """
    numbered = [f"{LINE_COLUMN}{CSV_SEPARATOR}{lines[header_index]}"]
    for number, line in enumerate(lines[header_index + 1:], start=header_index + 2):
        if line.strip():
            numbered.append(f"{number}{CSV_SEPARATOR}{line}")
    return "\n".join(numbered)


def _line_number(value: Any) -> Optional[int]:
    value = str(value).strip() if value is not None else ''
    return int(value) if value.isdigit() else None


class BaseCsvParser(ABC):
    """
    Abstract Base Class for bank CSV export parsers.

    Subclasses declare the header columns that identify their format and
    implement parse_row().
    """
    bank_name: str = 'Unknown Bank'
    institution_id: str = ''
    required_columns: Tuple[str, ...] = ()

    def matches(self, text: str) -> bool:
        return find_header_line(text, self.required_columns) is not None

    def parse(self, source, account_id: str) -> Tuple[List[CsvRow], Dict[str, Any]]:
        """
        Parse a CSV export.

        Returns:
            Tuple[List[CsvRow], Dict]: (rows, metadata) where metadata counts
            total, parsed and skipped rows.
        """
        text = read_csv_text(source)
        header_index = find_header_line(text, self.required_columns)
        if header_index is None:
            raise ValueError(f"{self.bank_name} header not found (expected columns: {', '.join(self.required_columns)})")

        overlong: List[List[str]] = []

        def on_bad_line(fields: List[str]) -> None:
            # Row with more fields than the header: drop it, report below
            overlong.append(fields)
            return None

        df = pd.read_csv(
            io.StringIO(_numbered_body(text.splitlines(), header_index)),
            sep=CSV_SEPARATOR,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            engine='python',
            on_bad_lines=on_bad_line,
        )
        df.columns = [str(c).strip() for c in df.columns]
        expected_fields = len(df.columns) - 1

        rows: List[CsvRow] = []
        skipped: List[Dict[str, Any]] = []

        def skip(line_number: Optional[int], error: str) -> None:
            logger.warning(
                "Invalid CSV row skipped.",
                parser=self.__class__.__name__,
                line=line_number,
                error=error,
            )
            if len(skipped) < MAX_SKIPPED_DETAILS:
                skipped.append({'line': line_number, 'error': error})

        for fields in overlong:
            skip(_line_number(fields[0] if fields else None),
                 f"Expected {expected_fields} fields, found {len(fields) - 1}")

        for record in df.to_dict(orient='records'):
            line_number = _line_number(record.pop(LINE_COLUMN, None))
            record = {k: (v.strip() if isinstance(v, str) else v) for k, v in record.items()}
            try:
                rows.append(self.parse_row(record, account_id))
            except (ValueError, KeyError) as e:
                skip(line_number, str(e))

        skipped.sort(key=lambda s: s['line'] or 0)
        rows_total = len(df) + len(overlong)
        metadata = {
            'bank': self.bank_name,
            'institution_id': self.institution_id,
            'rows_total': rows_total,
            'rows_parsed': len(rows),
            'rows_skipped': rows_total - len(rows),
            'skipped': skipped,
        }
        logger.info("CSV parsed.", **metadata)
        return rows, metadata

    @abstractmethod
    def parse_row(self, record: Dict[str, str], account_id: str) -> CsvRow:
        """
        Convert one CSV record. Raise ValueError for an invalid row.
        """
        raise NotImplementedError

    @staticmethod
    def cell(record: Dict[str, Any], column: str, required: bool = False) -> str:
        """Column value as a stripped string; short rows yield NaN, read as empty."""
        value = record.get(column)
        value = value.strip() if isinstance(value, str) else ''
        if required and not value:
            raise ValueError(f"Missing value for column '{column}'")
        return value

    def to_transactions(self, rows: Sequence[CsvRow]) -> List[Transaction]:
        return [row.to_transaction() for row in rows]
