"""
User / actor models
"""
from pydantic import BaseModel
from typing import Optional
from enum import Enum


class UserRole(str, Enum):
    """Roles a support desk user can hold"""
    ADMIN = "admin"
    AGENT = "agent"
    CUSTOMER = "customer"


class Actor(BaseModel):
    """Authenticated caller, decoded from the bearer token"""
    id: str
    role: UserRole
    email: Optional[str] = None
    name: Optional[str] = None
    company_id: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "id": "665f1c2e9b1e8a0012345678",
                "role": "customer",
                "email": "jane@acme.com",
                "name": "Jane Doe",
                "company_id": "665f1c2e9b1e8a0087654321",
            }
        }
