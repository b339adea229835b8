"""
Schémas Pydantic pour les propositions de regroupement.
"""

import datetime as dt
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel

from tripshare.schemas.trip import ActorRef
from tripshare.schemas.workflow import Outcome


class ProposalResponse(BaseModel):
    id: str
    trip_ids: List[str]
    departure_date: dt.date
    departure_location: str
    destination: str
    proposed_departure_time: dt.time
    vehicle_type: str
    member_count: int
    total_distance_km: float
    estimated_savings: float
    savings_percentage: float
    explanation: Optional[str]
    status: str
    created_by: str
    resolved_by: Optional[str]
    resolution_note: Optional[str] = None
    created_at: Optional[datetime]
    resolved_at: Optional[datetime]
    reverted_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class OptimizationSweepResult(BaseModel):
    """Rapport d'un balayage de regroupement."""
    candidate_count: int = 0
    proposals: List[ProposalResponse] = []
    solo_trip_ids: List[str] = []
    conflicts: List[str] = []
    warnings: List[str] = []


class ProposalActionResult(BaseModel):
    outcome: Outcome
    message: str
    proposal: Optional[ProposalResponse] = None
    warnings: List[str] = []

    @property
    def ok(self) -> bool:
        return self.outcome == Outcome.OK


class ProposalDecision(BaseModel):
    action: Literal["approve", "reject"]
    actor: ActorRef
    note: Optional[str] = None


class ProposalRevert(BaseModel):
    actor: ActorRef
    reason: str
