"""
Schémas Pydantic pour l'affectation manuelle des véhicules.
"""

from typing import Optional

from pydantic import BaseModel

from tripshare.schemas.trip import ActorRef


class VehicleResponse(BaseModel):
    id: str
    plate_number: str
    vehicle_type: str
    capacity: int
    driver_name: Optional[str]
    status: str

    model_config = {"from_attributes": True}


class VehicleAssign(BaseModel):
    vehicle_id: str
    actor: ActorRef
    notes: Optional[str] = None
