"""
Pipeline services: ingestion of uploaded invoice files and move orchestration.
"""
from invoice_mover.services.ingestion import IngestionHandler, IngestionResult
from invoice_mover.services.orchestrator import ConsumedMessage, MoveOrchestrator

__all__ = ["IngestionHandler", "IngestionResult", "MoveOrchestrator", "ConsumedMessage"]
