"""Pipeline stages, run in order by the campaign orchestrator."""

from .acquisition import AcquisitionResult, SourceAcquisitionStage
from .persistence import LeadPersistence, PersistenceResult
from .scoring import LeadScorer, ScoringResponseError, ScoringResult

__all__ = [
    "AcquisitionResult",
    "LeadPersistence",
    "LeadScorer",
    "PersistenceResult",
    "ScoringResponseError",
    "ScoringResult",
    "SourceAcquisitionStage",
]
