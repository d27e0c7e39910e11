"""Pydantic schemas for account endpoints."""

from pydantic import BaseModel, ConfigDict


class AccountResponse(BaseModel):
    """Schema for a linked brokerage account."""

    id: str
    name: str
    institution: str
    sync_state: str
    account_number: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ConnectUrlResponse(BaseModel):
    """Connection-portal URL for linking a brokerage."""

    redirect_uri: str
