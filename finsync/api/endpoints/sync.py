from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from finsync.adapters import list_adapters
from finsync.adapters.base import BankCredentials
from finsync.api.state import AppState, get_app_state
from finsync.common.logging_config import get_logger

logger = get_logger(__name__)
router = APIRouter()


class SyncRequest(BaseModel):
    """Optional session values; when absent the configured credentials are used."""
    cookie: Optional[str] = Field(default=None, repr=False)
    xsrf_token: Optional[str] = Field(default=None, repr=False)


@router.get("/institutions")
def get_institutions():
    return list_adapters()


@router.post("/{institution_id}")
def trigger_sync(institution_id: str, body: Optional[SyncRequest] = None, state: AppState = Depends(get_app_state)):
    try:
        adapter = state.adapter_factory(institution_id)

        if body and body.cookie:
            credentials = BankCredentials(cookie=body.cookie, xsrf_token=body.xsrf_token)
        else:
            try:
                credentials = state.settings.credentials_for(institution_id)
            except KeyError as e:
                raise ValueError(e.args[0]) from e

        logger.info("Sync requested.", institution_id=institution_id)
        metadata = state.orchestrator.sync(adapter, credentials)
        return metadata.to_dict()

    except ValueError as ve:
        logger.warning(f"Sync request rejected: {ve}", institution_id=institution_id)
        raise HTTPException(status_code=400, detail=str(ve))
    except Exception as e:
        logger.error(f"Internal error during sync: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


@router.get("/history")
def get_sync_history(institution_id: Optional[str] = None, limit: int = 50, state: AppState = Depends(get_app_state)):
    """Most recent attempts first."""
    ledger = state.store.read()
    history = [
        s for s in ledger.sync_history
        if not institution_id or s.institution_id == institution_id
    ]
    history.sort(key=lambda s: s.last_sync_at, reverse=True)
    return [s.to_dict() for s in history[:limit]]
