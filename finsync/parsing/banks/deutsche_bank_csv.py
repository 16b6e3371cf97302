"""
Deutsche Bank CSV Export Parser

Debits and credits come in separate Soll/Haben columns, dates as
DD.MM.YYYY. Older exports name the counterparty column
"Begünstigter / Auftraggeber" instead of "Auftraggeber".
"""
from typing import Dict

from finsync.common.numbers import parse_german_amount_cents
from ..base import BaseCsvParser, CsvRow, parse_german_date

COUNTERPARTY_COLUMNS = ('Auftraggeber', 'Begünstigter / Auftraggeber')


class DeutscheBankCsvParser(BaseCsvParser):
    bank_name = "Deutsche Bank"
    institution_id = "deutsche_bank"
    required_columns = ('Buchungstag', 'Soll', 'Haben')

    def _amount_cents(self, record: Dict[str, str]) -> int:
        debit = self.cell(record, 'Soll')
        credit = self.cell(record, 'Haben')

        debit_cents = parse_german_amount_cents(debit) if debit else 0
        if debit_cents != 0:
            return -abs(debit_cents)

        credit_cents = parse_german_amount_cents(credit) if credit else 0
        if not debit and not credit:
            raise ValueError("Both Soll and Haben are empty")
        return abs(credit_cents)

    def parse_row(self, record: Dict[str, str], account_id: str) -> CsvRow:
        booking_date = parse_german_date(self.cell(record, 'Buchungstag', required=True))
        value_str = self.cell(record, 'Wert')
        value_date = parse_german_date(value_str) if value_str else None
        amount_cents = self._amount_cents(record)

        counterparty = ''
        for column in COUNTERPARTY_COLUMNS:
            counterparty = self.cell(record, column)
            if counterparty:
                break

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
                'row': {k: v for k, v in record.items() if isinstance(v, str) and v},
            },
        )
