"""
CSV import for bank exports.

- Bank CSV parsers (DKB, Deutsche Bank)
- Header-based format detection
- Conversion of parsed rows to Unified Transactions
"""
from typing import Any, Dict, List, Optional, Tuple

from finsync.common.models import Transaction

from .base import BaseCsvParser, CsvRow, read_csv_text
from .banks import PARSERS, DkbCsvParser, DeutscheBankCsvParser, detect_parser, get_parser
from .exceptions import UnsupportedCsvFormatError


def parse_csv_export(source, account_id: str, format_id: Optional[str] = None,
                     filename: Optional[str] = None) -> Tuple[List[Transaction], Dict[str, Any]]:
    """
    Read a bank CSV export and return (transactions, metadata).

    The format is detected from the header unless format_id is given.
    """
    text = read_csv_text(source)
    parser = get_parser(format_id) if format_id else detect_parser(text, filename=filename)
    rows, metadata = parser.parse(text.encode('utf-8'), account_id)
    metadata['filename'] = filename
    return parser.to_transactions(rows), metadata


__all__ = [
    'BaseCsvParser', 'CsvRow', 'PARSERS', 'DkbCsvParser', 'DeutscheBankCsvParser',
    'UnsupportedCsvFormatError', 'detect_parser', 'get_parser', 'parse_csv_export',
]
