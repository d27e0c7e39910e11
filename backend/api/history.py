"""History API endpoints."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from api.helpers import get_history_service, get_snaptrade_client, provider_http_error
from database import get_db
from integrations.exceptions import ProviderError
from integrations.snaptrade_client import SnapTradeClient
from schemas import CaptureResponse, HistorySnapshotResponse
from services.history_service import HistoryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/history", tags=["history"])


@router.post("/capture", response_model=CaptureResponse)
def capture_history(
    db: Session = Depends(get_db),
    client: SnapTradeClient = Depends(get_snaptrade_client),
    history_service: HistoryService = Depends(get_history_service),
):
    """Capture today's balances into the history log.

    Running this more than once on the same day replaces that day's rows.

    Raises:
        HTTPException:
            - 502 Bad Gateway: Provider authentication or connection error
    """
    try:
        accounts = client.list_accounts()
        result = history_service.capture(db, accounts)
    except ProviderError as e:
        raise provider_http_error(e, "capturing history")

    return CaptureResponse(
        snapshot_date=result.snapshot_date,
        state=result.state.value,
        rows_written=result.rows_written,
        rows_replaced=result.rows_replaced,
        failed_account_ids=result.failed_account_ids,
    )


@router.get("", response_model=list[HistorySnapshotResponse])
def list_history(
    start: Optional[date] = None,
    end: Optional[date] = None,
    account_id: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """List history rows in log order, optionally filtered by date range or account."""
    if start and end and start > end:
        raise HTTPException(status_code=400, detail="start must be on or before end")
    return HistoryService.list_history(db, start=start, end=end, account_id=account_id)
