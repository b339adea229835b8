"""
Schémas Pydantic pour la vérification du manager déclaré par un utilisateur.
"""

from typing import List, Optional

from pydantic import BaseModel, field_validator

from tripshare.schemas.workflow import Outcome


class ManagerDeclare(BaseModel):
    user_id: str
    manager_email: str
    manager_name: Optional[str] = None

    @field_validator("manager_email")
    @classmethod
    def email_has_at(cls, v: str) -> str:
        if "@" not in v:
            raise ValueError("Adresse email du manager invalide.")
        return v.strip().lower()


class ManagerVerificationResult(BaseModel):
    outcome: Outcome
    message: str
    user_id: Optional[str] = None
    manager_email: Optional[str] = None
    warnings: List[str] = []
