"""
Database Schemas for the TesfaFund backend

Each Pydantic model below maps to a MongoDB collection. The collection name is the
lowercased class name by convention:
- Recipient -> "recipient"
- Campaign -> "campaign"
- Donation -> "donation"

Documents are keyed by "_id" holding a UUID string; models expose it as `id`.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class Recipient(BaseModel):
    """
    Recipients collection schema
    Collection: "recipient"
    """
    id: Optional[str] = Field(None, description="UUID of the recipient")
    first_name: str = Field(..., min_length=1, description="First name")
    middle_name: Optional[str] = Field(None, description="Middle name")
    last_name: str = Field(..., min_length=1, description="Last name")
    email: str = Field(..., min_length=3, description="Email address, stored lower-cased")
    password_hash: str = Field(..., description="Hashed password")


class Campaign(BaseModel):
    """
    Campaigns collection schema
    Collection: "campaign"
    """
    id: Optional[str] = Field(None, description="UUID of the campaign")
    title: str = Field(..., min_length=1, description="Campaign title")
    description: Optional[str] = Field(None, description="Campaign description")
    fundraising_goal: int = Field(..., ge=0, description="Target amount to raise")
    recipient_id: str = Field(..., description="Recipient id as string")


class Donation(BaseModel):
    """
    Donations collection schema
    Collection: "donation"
    """
    id: Optional[str] = Field(None, description="UUID of the donation")
    amount: int = Field(..., gt=0, description="Donation amount")
    timestamp: Optional[datetime] = Field(None, description="UTC time the donation was made")
    campaign_id: str = Field(..., description="Campaign id as string")


class DonationProgress(BaseModel):
    """Derived summary, never persisted."""
    campaign_id: str
    total_donations: int = 0
    fundraising_goal: int = 0
    progress_percentage: float = 0.0


# -------------------------
# Filters
# -------------------------

class RecipientFilter(BaseModel):
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None


class CampaignFilter(BaseModel):
    title: Optional[str] = None
    recipient_id: Optional[str] = None
    min_fundraising_goal: Optional[int] = Field(None, ge=0)
    max_fundraising_goal: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def check_goal_range(self):
        if (
            self.min_fundraising_goal is not None
            and self.max_fundraising_goal is not None
            and self.min_fundraising_goal > self.max_fundraising_goal
        ):
            raise ValueError("Min fundraising goal cannot be greater than max fundraising goal.")
        return self


class DonationFilter(BaseModel):
    campaign_id: Optional[str] = None
    min_amount: Optional[int] = Field(None, ge=0)
    max_amount: Optional[int] = Field(None, ge=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @model_validator(mode="after")
    def check_amount_range(self):
        if self.min_amount is not None and self.max_amount is not None and self.min_amount > self.max_amount:
            raise ValueError("Min amount cannot be greater than max amount.")
        return self


# -------------------------
# API payloads
# -------------------------

class RecipientCreate(BaseModel):
    first_name: str = Field(..., min_length=1)
    middle_name: Optional[str] = None
    last_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password_hash: str


class RecipientOut(BaseModel):
    """Recipient as returned by the API; the password hash stays server-side."""
    id: str
    first_name: str
    middle_name: Optional[str] = None
    last_name: str
    email: str


class CampaignCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    fundraising_goal: int = Field(..., ge=0)
    recipient_id: str


class DonationCreate(BaseModel):
    amount: int = Field(..., gt=0)
    campaign_id: str
