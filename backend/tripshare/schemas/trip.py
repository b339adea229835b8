"""
Schémas Pydantic pour les trajets.

Note : on importe datetime en tant que module (dt) pour éviter le conflit de nommage
entre les champs `*_date`/`*_time` et les types `datetime.date`/`datetime.time`.
"""

import datetime as dt
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, field_validator, model_validator

from tripshare.models.trip_status import TripStatus


class SubmitterRef(BaseModel):
    """Identité du demandeur, transmise explicitement par l'appelant."""
    user_id: str
    email: str
    name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def email_has_at(cls, v: str) -> str:
        if "@" not in v:
            raise ValueError("Adresse email invalide.")
        return v.strip().lower()


class ActorRef(BaseModel):
    """Auteur d'une action (aucune session implicite dans le cœur métier)."""
    email: str
    name: Optional[str] = None
    role: Literal["user", "manager", "admin", "system"] = "user"
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


SYSTEM_ACTOR = ActorRef(email="system@tripshare.local", name="Planificateur", role="system")


class TripSubmit(BaseModel):
    departure_location: str
    destination: str
    departure_date: dt.date
    departure_time: dt.time
    return_date: dt.date
    return_time: dt.time
    purpose: Optional[str] = None
    cc_emails: List[str] = []

    @field_validator("departure_location", "destination")
    @classmethod
    def location_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le lieu de départ et la destination sont obligatoires.")
        return v.strip()

    @field_validator("cc_emails")
    @classmethod
    def cc_are_emails(cls, v: List[str]) -> List[str]:
        for email in v:
            if "@" not in email:
                raise ValueError(f"Adresse en copie invalide : {email}")
        return [e.strip().lower() for e in v]

    @model_validator(mode="after")
    def return_after_departure(self):
        departure = datetime.combine(self.departure_date, self.departure_time)
        back = datetime.combine(self.return_date, self.return_time)
        if back < departure:
            raise ValueError("Le retour ne peut pas précéder le départ.")
        return self

    @property
    def departure_at(self) -> datetime:
        return datetime.combine(self.departure_date, self.departure_time)


class TripSubmitRequest(BaseModel):
    """Corps de requête HTTP : trajet + identité du demandeur."""
    submitter: SubmitterRef
    trip: TripSubmit


class TripResponse(BaseModel):
    id: str
    user_id: str
    user_email: str
    user_name: Optional[str]
    departure_location: str
    destination: str
    departure_date: dt.date
    departure_time: dt.time
    return_date: dt.date
    return_time: dt.time
    purpose: Optional[str] = None
    cc_emails: List[str] = []
    status: TripStatus                 # Statut effectif (expiration dérivée à la lecture)
    stored_status: TripStatus          # Statut persisté
    manager_approval_status: Optional[str] = None
    manager_email: Optional[str] = None
    rejection_reason: Optional[str] = None
    is_urgent: bool
    auto_approved: bool
    auto_approved_reason: Optional[str] = None
    data_type: str
    optimized_group_id: Optional[str] = None
    parent_trip_id: Optional[str] = None
    original_departure_time: Optional[dt.time] = None
    vehicle_type: Optional[str] = None
    assigned_vehicle_id: Optional[str] = None
    submitted_at: datetime


class CancelRequest(BaseModel):
    actor: ActorRef
    reason: Optional[str] = None
