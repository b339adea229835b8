"""
Résultats typés des opérations du workflow.

Chaque opération publique retourne un résultat (jamais une exception générique)
pour qu'un appelant traitant un lot puisse continuer après un échec isolé.
"""

import enum
from typing import List, Literal, Optional

from pydantic import BaseModel, field_validator

from tripshare.schemas.trip import ActorRef, TripResponse


class Outcome(str, enum.Enum):
    OK = "ok"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    ALREADY_RESOLVED = "already_resolved"
    ALREADY_CONSUMED = "already_consumed"
    ILLEGAL_TRANSITION = "illegal_transition"
    EXPIRED = "expired"


class TripActionResult(BaseModel):
    """Résultat d'une action sur un trajet (soumission, approbation, dérogation...)."""
    outcome: Outcome
    message: str
    trip: Optional[TripResponse] = None
    warnings: List[str] = []

    @property
    def ok(self) -> bool:
        return self.outcome == Outcome.OK


class AdminOverrideRequest(BaseModel):
    action: Literal["approve", "reject"]
    reason: str
    actor: ActorRef

    @field_validator("reason")
    @classmethod
    def reason_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Une justification est obligatoire pour une dérogation.")
        return v.strip()


class ExpirySweepResult(BaseModel):
    expired_trip_ids: List[str] = []
    skipped_trip_ids: List[str] = []
    warnings: List[str] = []


class ReminderSweepResult(BaseModel):
    reminded_trip_ids: List[str] = []
    warnings: List[str] = []


class ExceptionQueue(BaseModel):
    """File d'exceptions admin : trajets nécessitant une attention particulière."""
    urgent: List[TripResponse] = []
    stale: List[TripResponse] = []
    auto_approved: List[TripResponse] = []


class PendingBadge(BaseModel):
    pending_count: int
    urgent_count: int
    expired_count: int
