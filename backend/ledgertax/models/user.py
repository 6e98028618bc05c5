"""
Caller identity models
"""

from pydantic import BaseModel
from typing import Optional
from enum import Enum


class UserRole(str, Enum):
    """Organization roles"""
    ADMIN = "admin"
    ACCOUNTANT = "accountant"
    EMPLOYEE = "employee"


class TokenData(BaseModel):
    """Claims carried by an access token"""
    user_id: str
    organization_id: str
    role: UserRole
    email: Optional[str] = None
