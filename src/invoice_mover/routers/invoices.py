from typing import Any, Dict

from fastapi import (
    APIRouter,
    Depends,
    Path,
    Query,
    Response,
    status
)

from invoice_mover.adapters.base import TrackingStore
from invoice_mover.errors import NotFoundError
from invoice_mover.routers.dependencies import get_orchestrator, get_tracking_store
from invoice_mover.schemas import InvoiceRecordResponse, RecordKey, parse_date
from invoice_mover.services.orchestrator import MoveOrchestrator

router = APIRouter()

DATE_QUERY = Query(..., description="Invoice date, yyyy/MM/dd")


def record_key(file_name: str, date: str) -> RecordKey:
    return RecordKey(file_name=file_name, date=parse_date(date))


@router.get("/invoices/{file_name}", response_model=InvoiceRecordResponse)
async def get_invoice(
    file_name: str = Path(..., description="Name of the invoice file"),
    date: str = DATE_QUERY,
    tracking_store: TrackingStore = Depends(get_tracking_store),
):
    """Return the tracking record of one invoice file."""
    key = record_key(file_name, date)
    record = tracking_store.get(key)
    if record is None:
        raise NotFoundError(f"There is no tracking record {key}")
    return InvoiceRecordResponse.from_record(record)


@router.delete("/invoices/{file_name}")
async def delete_invoice(
    file_name: str = Path(..., description="Name of the invoice file"),
    date: str = DATE_QUERY,
    tracking_store: TrackingStore = Depends(get_tracking_store),
):
    """
    Delete the tracking record of one invoice file.

    The object itself is left where it is. Deleting a record that does not exist
    is a no-op.
    """
    tracking_store.delete(record_key(file_name, date))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/invoices/{file_name}/move")
async def move_invoice(
    file_name: str = Path(..., description="Name of the invoice file"),
    date: str = DATE_QUERY,
    force: bool = Query(False, description="Move even if the moving time has not been reached"),
    orchestrator: MoveOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """Attempt the move of one invoice file now."""
    result = orchestrator.attempt_move(record_key(file_name, date), force=force)
    return result.to_dict()


@router.post("/reconcile")
async def reconcile(orchestrator: MoveOrchestrator = Depends(get_orchestrator)) -> Dict[str, Any]:
    """Run the catch-up scan and return its report."""
    return orchestrator.catch_up_scan().to_dict()
