from typing import Optional

from ..base import BaseCsvParser, read_csv_text
from ..exceptions import UnsupportedCsvFormatError
from .dkb_csv import DkbCsvParser
from .deutsche_bank_csv import DeutscheBankCsvParser

PARSERS = {
    'dkb': DkbCsvParser,
    'deutsche_bank': DeutscheBankCsvParser,
}


def get_parser(format_id: str) -> BaseCsvParser:
    parser_cls = PARSERS.get(format_id)
    if parser_cls is None:
        raise UnsupportedCsvFormatError(f"Unknown CSV format '{format_id}'", tried=list(PARSERS))
    return parser_cls()


def detect_parser(text: str, filename: Optional[str] = None) -> BaseCsvParser:
    """First parser whose header columns appear in the file."""
    for parser_cls in PARSERS.values():
        parser = parser_cls()
        if parser.matches(text):
            return parser

    raise UnsupportedCsvFormatError(
        "CSV format not recognised",
        filename=filename,
        tried=list(PARSERS),
        sample_text=text[:200],
    )


__all__ = ['PARSERS', 'get_parser', 'detect_parser', 'read_csv_text', 'DkbCsvParser', 'DeutscheBankCsvParser']
