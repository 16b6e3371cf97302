from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from finsync.api.state import AppState, get_app_state
from finsync.common.logging_config import get_logger
from finsync.common.models import Account
from finsync.parsing import UnsupportedCsvFormatError, detect_parser, get_parser
from finsync.parsing.base import read_csv_text

logger = get_logger(__name__)
router = APIRouter()


@router.post("/csv")
async def import_csv(
    file: UploadFile = File(...),
    account_id: str = Form(...),
    csv_format: Optional[str] = Form(default=None),
    account_name: Optional[str] = Form(default=None),
    holder_name: Optional[str] = Form(default=None),
    state: AppState = Depends(get_app_state),
):
    """
    Import a bank CSV export into the ledger.

    Invalid rows are skipped and reported; the rest of the file is imported.
    """
    try:
        logger.info(f"CSV import started: {file.filename}", account_id=account_id, csv_format=csv_format)
        text = read_csv_text(await file.read())

        try:
            parser = get_parser(csv_format) if csv_format else detect_parser(text, filename=file.filename)
        except UnsupportedCsvFormatError as e:
            raise ValueError(str(e)) from e

        rows, parse_metadata = parser.parse(text.encode('utf-8'), account_id)
        if not rows:
            raise ValueError(f"No valid transactions found in {file.filename}")

        account = Account(
            id=account_id,
            external_id=account_id,
            institution_id=parser.institution_id,
            name=account_name or f"{parser.bank_name} CSV import",
            holder_name=holder_name,
        )
        metadata = state.orchestrator.import_transactions(
            account,
            parser.to_transactions(rows),
            source_id=f"csv:{parser.institution_id}",
        )

        logger.info(
            f"CSV import finished: {file.filename}",
            status=metadata.status,
            new_transactions=metadata.new_transactions,
            rows_skipped=parse_metadata['rows_skipped'],
        )
        return {
            "filename": file.filename,
            "format": parser.institution_id,
            "sync": metadata.to_dict(),
            "parse": parse_metadata,
        }

    except ValueError as ve:
        logger.warning(f"CSV import validation error: {ve}")
        raise HTTPException(status_code=400, detail=str(ve))
    except Exception as e:
        logger.error(f"Internal error during CSV import: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")
