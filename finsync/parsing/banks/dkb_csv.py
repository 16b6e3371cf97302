"""
DKB CSV Export Parser

Online banking export ("Umsätze" as CSV). The file starts with a few
preamble lines (account, period, balance) before the header:

    "Buchungsdatum";"Wertstellung";"Status";"Zahlungspflichtige*r";"Zahlungsempfänger*in";"Verwendungszweck";"Umsatztyp";"IBAN";"Betrag (€)";...
    "31.01.25";"31.01.25";"Gebucht";"Max Mustermann";"REWE Markt";"Einkauf";"Ausgang";"DE..";"-23,45";...
"""
from typing import Dict

from finsync.common.numbers import parse_german_amount_cents
from ..base import BaseCsvParser, CsvRow, parse_german_date

STATUSES = ('Gebucht', 'Vorgemerkt')


class DkbCsvParser(BaseCsvParser):
    bank_name = "Deutsche Kreditbank (DKB)"
    institution_id = "dkb"
    required_columns = (
        'Buchungsdatum',
        'Status',
        'Zahlungspflichtige*r',
        'Zahlungsempfänger*in',
        'Betrag (€)',
    )

    def parse_row(self, record: Dict[str, str], account_id: str) -> CsvRow:
        status = self.cell(record, 'Status', required=True)
        if status not in STATUSES:
            raise ValueError(f"Unknown status: {status!r}")

        booking_date = parse_german_date(self.cell(record, 'Buchungsdatum', required=True))
        value_date_str = self.cell(record, 'Wertstellung')
        value_date = parse_german_date(value_date_str) if value_date_str else None
        amount_cents = parse_german_amount_cents(self.cell(record, 'Betrag (€)', required=True))

        payer = self.cell(record, 'Zahlungspflichtige*r')
        payee = self.cell(record, 'Zahlungsempfänger*in')
        # Same rule as the API: the other side of the booking
        counterparty = payee if amount_cents < 0 else payer

        return CsvRow(
            account_id=account_id,
            booking_date=booking_date,
            value_date=value_date,
            amount_cents=amount_cents,
            description=self.cell(record, 'Verwendungszweck'),
            counterparty=counterparty,
            raw={
                'source': 'csv',
                'format': self.institution_id,
                'status': status,
                'attributes': {
                    'creditor': {'name': payee},
                    'debtor': {'name': payer},
                },
            },
        )
