"""
Schémas Pydantic pour le journal d'audit.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from tripshare.schemas.trip import ActorRef


class AuditAction:
    """Types d'actions journalisées."""
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    EXPIRE = "expire"
    CANCEL = "cancel"
    REMIND = "remind"
    REISSUE_LINK = "reissue_link"
    ADMIN_OVERRIDE = "admin_override"
    OPTIMIZATION_PROPOSED = "optimization_proposed"
    OPTIMIZATION_APPROVED = "optimization_approved"
    OPTIMIZATION_REJECTED = "optimization_rejected"
    OPTIMIZATION_REVERTED = "optimization_reverted"
    MARKED_SOLO = "marked_solo"
    VEHICLE_ASSIGNED = "vehicle_assigned"
    STATUS_MIGRATED = "status_migrated"
    REJECTED_ACTION = "rejected_action"  # Tentative refusée (conflit, jeton expiré...)


class AuditEntryCreate(BaseModel):
    trip_id: str
    action: str
    actor_email: str
    actor_name: Optional[str] = None
    actor_role: Optional[str] = None
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    notes: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def for_actor(cls, actor: ActorRef, **kwargs) -> "AuditEntryCreate":
        """Construit une entrée en reprenant l'identité et les métadonnées client de l'acteur."""
        return cls(
            actor_email=actor.email,
            actor_name=actor.name,
            actor_role=actor.role,
            ip_address=actor.ip_address,
            user_agent=actor.user_agent,
            **kwargs,
        )


class AuditEntryResponse(BaseModel):
    id: int
    trip_id: str
    action: str
    actor_email: str
    actor_name: Optional[str]
    actor_role: Optional[str]
    old_status: Optional[str]
    new_status: Optional[str]
    notes: Optional[str]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}
