from .errors import (
    AvailabilityCheckError,
    CatalogError,
    PersistenceError,
    QuotaExhausted,
    TransientTransportError,
    ValidationRunActive,
)
from .types import Candidate, CandidateIdentity, MediaGroup, ObservableSignals

__all__ = [
    "AvailabilityCheckError",
    "Candidate",
    "CandidateIdentity",
    "CatalogError",
    "MediaGroup",
    "ObservableSignals",
    "PersistenceError",
    "QuotaExhausted",
    "TransientTransportError",
    "ValidationRunActive",
]
