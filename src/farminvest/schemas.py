from datetime import datetime
from decimal import Decimal
from typing import Any, List, Literal, Mapping

from pydantic import BaseModel, Field


class APIError(BaseModel):
    error: str = Field(..., description="Human readable error message")


class APIValidationErrors(BaseModel):
    errors: List[str] = Field(..., description="Every validation problem found in the request body")


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=2, description="Display name (trimmed)")
    email: str = Field(..., description="Email address (lower-cased)")
    password: str = Field(..., min_length=6, description="Password (min 6 chars)")

    @classmethod
    def from_body(cls, body: Mapping[str, Any]) -> "RegisterRequest":
        """Build from a body that already passed validate_registration."""
        return cls(name=body["name"].strip(), email=body["email"].lower(), password=body["password"])


class LoginRequest(BaseModel):
    email: str = Field(..., description="Email address (lower-cased)")
    password: str = Field(..., description="Password")

    @classmethod
    def from_body(cls, body: Mapping[str, Any]) -> "LoginRequest":
        return cls(email=body["email"].lower(), password=body["password"])


class InvestmentCreate(BaseModel):
    farmer_name: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, description="Invested amount (> 0)")
    crop: str = Field(..., min_length=1)

    @classmethod
    def from_body(cls, body: Mapping[str, Any], amount: Decimal) -> "InvestmentCreate":
        """Build from a body that already passed validate_investment."""
        return cls(farmer_name=body["farmer_name"].strip(), amount=amount, crop=body["crop"].strip())


class UserPublic(BaseModel):
    id: int
    name: str
    email: str


class UserProfile(UserPublic):
    created_at: datetime


class AuthResponse(BaseModel):
    message: str
    user: UserPublic
    token: str = Field(..., description="Bearer token, valid for 7 days")


class MeResponse(BaseModel):
    user: UserProfile


class Investment(BaseModel):
    id: int
    farmer_name: str
    amount: float
    crop: str
    created_at: datetime


class HealthStatus(BaseModel):
    status: Literal["ok", "error"]
    timestamp: str = Field(..., description="ISO-8601 UTC time of the check")
    database: Literal["connected", "disconnected"]
