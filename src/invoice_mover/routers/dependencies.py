from fastapi import Request

from invoice_mover.adapters.base import TrackingStore
from invoice_mover.services.orchestrator import MoveOrchestrator


def get_orchestrator(request: Request) -> MoveOrchestrator:
    state = request.app.state
    if state.orchestrator is None:
        state.orchestrator = state.factory.orchestrator()
    return state.orchestrator


def get_tracking_store(request: Request) -> TrackingStore:
    state = request.app.state
    if state.tracking_store is None:
        state.tracking_store = state.factory.tracking_store()
    return state.tracking_store
