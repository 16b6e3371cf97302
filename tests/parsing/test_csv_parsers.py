"""
Unit Tests for the bank CSV export parsers.
"""
import pytest

from finsync.common.models import Account
from finsync.core.sync import SyncOrchestrator
from finsync.parsing import (
    DeutscheBankCsvParser,
    DkbCsvParser,
    UnsupportedCsvFormatError,
    detect_parser,
    get_parser,
    parse_csv_export,
)
from finsync.parsing.base import parse_german_date, read_csv_text
from finsync.storage import MemoryLedgerStore

ACCOUNT_ID = "dkb_acc1"

DKB_CSV = (
    '"Girokonto";"DE02120300000000202051"\n'
    '"Zeitraum:";"01.01.2025 - 31.01.2025"\n'
    '"Kontostand vom 31.01.2025:";"1.234,56 €"\n'
    '""\n'
    '"Buchungsdatum";"Wertstellung";"Status";"Zahlungspflichtige*r";"Zahlungsempfänger*in";'
    '"Verwendungszweck";"Umsatztyp";"IBAN";"Betrag (€)"\n'
    '"30.01.25";"31.01.25";"Gebucht";"Max Mustermann";"REWE Markt GmbH";"Einkauf";"Ausgang";"DE00";"-23,45"\n'
    '"28.01.25";"28.01.25";"Gebucht";"Arbeitgeber AG";"Max Mustermann";"Gehalt Januar";"Eingang";"DE11";"2.500,00"\n'
    '"27.01.25";"27.01.25";"Vorgemerkt";"Max Mustermann";"Max Mustermann";"Umbuchung";"Ausgang";"DE22";"-100,00"\n'
    '"26.01.25";"26.01.25";"Gebucht";"Max Mustermann";"Aral";"Tanken";"Ausgang";"DE33";"abc"\n'
)

DEUTSCHE_BANK_CSV = (
    "Umsätze Girokonto;Zeitraum: 01.01.2025 - 31.01.2025\n"
    "\n"
    "Buchungstag;Wert;Umsatzart;Begünstigter / Auftraggeber;Verwendungszweck;Soll;Haben;Währung\n"
    "15.01.2025;15.01.2025;Lastschrift;Stadtwerke München;Strom Januar;-85,20;;EUR\n"
    "20.01.2025;20.01.2025;Gutschrift;Arbeitgeber AG;Gehalt;;3.100,00;EUR\n"
    "21.01.2025;21.01.2025;Info;Bank;Hinweis;;;EUR\n"
    "Kontostand;31.01.2025;;;;1.234,56;EUR\n"
)


# ============================================================================
# TEST: DKB
# ============================================================================

class TestDkbCsvParser:

    def test_parses_rows_after_preamble(self):
        rows, metadata = DkbCsvParser().parse(DKB_CSV.encode("utf-8"), ACCOUNT_ID)

        assert len(rows) == 3
        first = rows[0]
        assert first.booking_date == "2025-01-30"
        assert first.value_date == "2025-01-31"
        assert first.amount_cents == -2345
        assert first.counterparty == "REWE Markt GmbH"
        assert first.description == "Einkauf"

        # Credits take the payer as counterparty
        assert rows[1].amount_cents == 250000
        assert rows[1].counterparty == "Arbeitgeber AG"

    def test_invalid_row_is_skipped_and_counted(self):
        _, metadata = DkbCsvParser().parse(DKB_CSV.encode("utf-8"), ACCOUNT_ID)

        assert metadata["rows_total"] == 4
        assert metadata["rows_parsed"] == 3
        assert metadata["rows_skipped"] == 1
        assert metadata["skipped"][0]["line"] == 9
        assert "abc" in metadata["skipped"][0]["error"]

    def test_row_with_extra_fields_is_skipped(self):
        lines = DKB_CSV.splitlines()
        lines[6] += ';"stray"'
        text = "\n".join(lines[:8]) + "\n"

        rows, metadata = DkbCsvParser().parse(text.encode("utf-8"), ACCOUNT_ID)

        assert [r.description for r in rows] == ["Einkauf", "Umbuchung"]
        assert metadata["rows_total"] == 3
        assert metadata["rows_parsed"] == 2
        assert metadata["rows_skipped"] == 1
        assert metadata["skipped"] == [{"line": 7, "error": "Expected 9 fields, found 10"}]

    def test_skipped_lines_keep_source_numbers(self):
        lines = DKB_CSV.splitlines()
        lines[5] += ';"stray"'
        _, metadata = DkbCsvParser().parse(("\n".join(lines) + "\n").encode("utf-8"), ACCOUNT_ID)

        assert [s["line"] for s in metadata["skipped"]] == [6, 9]
        assert metadata["rows_parsed"] == 2

    def test_pending_rows_keep_status(self):
        rows, _ = DkbCsvParser().parse(DKB_CSV.encode("utf-8"), ACCOUNT_ID)
        assert [r.raw["status"] for r in rows] == ["Gebucht", "Gebucht", "Vorgemerkt"]

    def test_unknown_status_is_rejected(self):
        text = DKB_CSV.replace('"Vorgemerkt"', '"Storniert"')
        _, metadata = DkbCsvParser().parse(text.encode("utf-8"), ACCOUNT_ID)
        assert metadata["rows_parsed"] == 2

    def test_to_transactions(self):
        parser = DkbCsvParser()
        rows, _ = parser.parse(DKB_CSV.encode("utf-8"), ACCOUNT_ID)
        debit, credit, _ = parser.to_transactions(rows)

        assert debit.date == "2025-01-31"
        assert debit.booking_date == "2025-01-30"
        assert debit.amount == -23.45
        assert debit.direction == "debit"
        assert debit.account_id == ACCOUNT_ID
        assert credit.amount == 2500.0
        assert credit.direction == "credit"

    def test_missing_header(self):
        with pytest.raises(ValueError, match="header not found"):
            DkbCsvParser().parse(b"Datum;Betrag\n01.01.2025;1,00\n", ACCOUNT_ID)


# ============================================================================
# TEST: DEUTSCHE BANK
# ============================================================================

class TestDeutscheBankCsvParser:

    def test_soll_and_haben(self):
        rows, metadata = DeutscheBankCsvParser().parse(DEUTSCHE_BANK_CSV.encode("utf-8"), "db_acc1")

        assert [r.amount_cents for r in rows] == [-8520, 310000]
        assert rows[0].counterparty == "Stadtwerke München"
        assert rows[0].booking_date == "2025-01-15"
        assert rows[1].description == "Gehalt"
        assert rows[0].raw["format"] == "deutsche_bank"
        assert rows[0].raw["row"]["Soll"] == "-85,20"
        assert "Haben" not in rows[0].raw["row"]

        # Empty Soll/Haben and the balance footer
        assert metadata["rows_skipped"] == 2

    def test_positive_soll_is_still_a_debit(self):
        text = DEUTSCHE_BANK_CSV.replace("-85,20", "85,20")
        rows, _ = DeutscheBankCsvParser().parse(text.encode("utf-8"), "db_acc1")
        assert rows[0].amount_cents == -8520

    def test_latin1_export(self):
        rows, _ = DeutscheBankCsvParser().parse(DEUTSCHE_BANK_CSV.encode("latin-1"), "db_acc1")
        assert rows[0].counterparty == "Stadtwerke München"


# ============================================================================
# TEST: DETECTION AND ENTRY POINT
# ============================================================================

class TestDetection:

    def test_detect_parser(self):
        assert isinstance(detect_parser(DKB_CSV), DkbCsvParser)
        assert isinstance(detect_parser(DEUTSCHE_BANK_CSV), DeutscheBankCsvParser)

    def test_unknown_format(self):
        with pytest.raises(UnsupportedCsvFormatError) as excinfo:
            detect_parser("Datum;Betrag\n01.01.2025;1,00\n", filename="export.csv")

        assert excinfo.value.filename == "export.csv"
        assert excinfo.value.tried == ["dkb", "deutsche_bank"]
        assert "export.csv" in str(excinfo.value)

    def test_get_parser(self):
        assert isinstance(get_parser("dkb"), DkbCsvParser)
        with pytest.raises(UnsupportedCsvFormatError):
            get_parser("sparkasse")

    def test_parse_csv_export(self):
        transactions, metadata = parse_csv_export(DKB_CSV.encode("utf-8"), ACCOUNT_ID, filename="umsaetze.csv")

        assert len(transactions) == 3
        assert metadata["filename"] == "umsaetze.csv"
        assert metadata["institution_id"] == "dkb"

    def test_parse_csv_export_with_explicit_format(self, tmp_path):
        path = tmp_path / "db.csv"
        path.write_bytes(DEUTSCHE_BANK_CSV.encode("utf-8"))

        transactions, metadata = parse_csv_export(str(path), "db_acc1", format_id="deutsche_bank")

        assert [t.amount for t in transactions] == [-85.2, 3100.0]
        assert metadata["bank"] == "Deutsche Bank"

    def test_read_csv_text_strips_bom(self):
        assert read_csv_text("\ufeffBuchungstag".encode("utf-8")) == "Buchungstag"

    @pytest.mark.parametrize("value,expected", [
        ("31.01.25", "2025-01-31"),
        ("31.01.2025", "2025-01-31"),
    ])
    def test_german_dates(self, value, expected):
        assert parse_german_date(value) == expected

    def test_invalid_german_date(self):
        with pytest.raises(ValueError):
            parse_german_date("2025-01-31")


# ============================================================================
# TEST: IMPORT INTO THE LEDGER
# ============================================================================

class TestCsvImport:

    def test_import_tags_transfers_and_is_idempotent(self, account):
        store = MemoryLedgerStore()
        orchestrator = SyncOrchestrator(store)

        transactions, _ = parse_csv_export(DKB_CSV.encode("utf-8"), account.id)
        first = orchestrator.import_transactions(account, transactions, source_id="csv:dkb")
        again, _ = parse_csv_export(DKB_CSV.encode("utf-8"), account.id)
        second = orchestrator.import_transactions(account, again, source_id="csv:dkb")

        assert first.status == "success"
        assert first.new_transactions == 3
        assert second.new_transactions == 0

        stored = {t.description: t for t in store.read().transactions}
        assert stored["Umbuchung"].category == "internal-transfer"
        assert stored["Einkauf"].category == "Groceries"
        assert stored["Gehalt Januar"].category == "Income"

    def test_imported_account_is_stored(self):
        store = MemoryLedgerStore()
        account = Account(id="db_acc1", external_id="acc1", institution_id="deutsche_bank", name="Girokonto")
        transactions, _ = parse_csv_export(DEUTSCHE_BANK_CSV.encode("utf-8"), account.id)

        SyncOrchestrator(store).import_transactions(account, transactions, source_id="csv:deutsche_bank")

        ledger = store.read()
        assert [a.id for a in ledger.accounts] == ["db_acc1"]
        assert len(ledger.transactions) == 2
