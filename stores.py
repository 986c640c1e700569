"""
Data-access stores for recipients, campaigns and donations.

Each store wraps one MongoDB collection of the shared database handle. The
cross-entity checks (campaign needs recipient, donation needs campaign,
deletes blocked by dependents) are done here, by fetching the referenced
record and handing it to the matching precondition in `rules`.

Checks are check-then-write with no transaction around them: a concurrent
delete between the check and the insert is not detected.
"""

import logging
import re
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel
from pymongo.database import Database
from pymongo.errors import PyMongoError

import rules
from database import CAMPAIGNS, DONATIONS, RECIPIENTS
from errors import StoreError
from schemas import (
    Campaign,
    CampaignFilter,
    Donation,
    DonationFilter,
    DonationProgress,
    Recipient,
    RecipientFilter,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


# -------------------------
# Document helpers
# -------------------------

@contextmanager
def store_errors(action: str):
    """Log driver failures and re-raise them as a generic StoreError."""
    try:
        yield
    except PyMongoError as e:
        logger.error(f"Failed to {action}: {e}")
        raise StoreError(f"Failed to {action}.") from e


def new_id() -> str:
    return str(uuid.uuid4())


def to_document(model: BaseModel) -> Dict[str, Any]:
    doc = model.model_dump(exclude={"id"})
    if getattr(model, "id", None):
        doc["_id"] = model.id
    return doc


def from_document(model_cls: Type[M], doc: Optional[Dict[str, Any]]) -> Optional[M]:
    if doc is None:
        return None
    data = dict(doc)
    data["id"] = str(data.pop("_id"))
    return model_cls(**data)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def contains(value: str) -> Dict[str, str]:
    # substring match, user input is not a pattern
    return {"$regex": re.escape(value), "$options": "i"}


# -------------------------
# Query builders
# -------------------------

def recipient_query(filters: Optional[RecipientFilter]) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if filters is None:
        return query
    for field in ("first_name", "middle_name", "last_name", "email"):
        value = getattr(filters, field)
        if value:
            query[field] = contains(value)
    return query


def campaign_query(filters: Optional[CampaignFilter]) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    if filters is None:
        return query
    if filters.title:
        query["title"] = contains(filters.title)
    if filters.recipient_id:
        query["recipient_id"] = filters.recipient_id
    goal = {}
    if filters.min_fundraising_goal is not None:
        goal["$gte"] = filters.min_fundraising_goal
    if filters.max_fundraising_goal is not None:
        goal["$lte"] = filters.max_fundraising_goal
    if goal:
        query["fundraising_goal"] = goal
    return query


def donation_query(filters: Optional[DonationFilter]) -> Dict[str, Any]:
    """
    Build the donation query.

    end_date covers the whole end day: anything before midnight of the
    following day, in end_date's own offset, matches whatever time of
    day end_date carries.
    """
    query: Dict[str, Any] = {}
    if filters is None:
        return query
    if filters.campaign_id:
        query["campaign_id"] = filters.campaign_id
    amount = {}
    if filters.min_amount is not None:
        amount["$gte"] = filters.min_amount
    if filters.max_amount is not None:
        amount["$lte"] = filters.max_amount
    if amount:
        query["amount"] = amount
    stamp = {}
    if filters.start_date is not None:
        stamp["$gte"] = as_utc(filters.start_date)
    if filters.end_date is not None:
        day = filters.end_date.replace(hour=0, minute=0, second=0, microsecond=0)
        stamp["$lt"] = as_utc(day + timedelta(days=1))
    if stamp:
        query["timestamp"] = stamp
    return query


# -------------------------
# Stores
# -------------------------

class RecipientStore:
    def __init__(self, db: Database, campaigns: Optional["CampaignStore"] = None):
        self.collection = db[RECIPIENTS]
        self.campaigns = campaigns

    def create_recipient(self, recipient: Recipient) -> Recipient:
        recipient = recipient.model_copy(update={
            "id": recipient.id or new_id(),
            "email": recipient.email.lower(),
        })
        with store_errors("create recipient"):
            self.collection.insert_one(to_document(recipient))
        logger.info(f"Created recipient {recipient.id}")
        return recipient

    def get_recipient_by_id(self, recipient_id: Optional[str]) -> Optional[Recipient]:
        if not recipient_id:
            return None
        with store_errors("read recipient"):
            doc = self.collection.find_one({"_id": recipient_id})
        return from_document(Recipient, doc)

    def update_recipient(self, recipient_id: str, recipient: Recipient) -> Optional[Recipient]:
        """Replace the whole document. None when nothing matched or nothing changed."""
        if not recipient_id:
            return None
        recipient = recipient.model_copy(update={"id": recipient_id, "email": recipient.email.lower()})
        doc = to_document(recipient)
        doc.pop("_id", None)
        with store_errors("update recipient"):
            result = self.collection.replace_one({"_id": recipient_id}, doc)
        if result.modified_count == 0:
            return None
        logger.info(f"Updated recipient {recipient_id}")
        return recipient

    def delete_recipient(self, recipient_id: str) -> bool:
        rules.require_no_campaigns(self.campaigns.has_campaigns_for_recipient(recipient_id), recipient_id)
        with store_errors("delete recipient"):
            result = self.collection.delete_one({"_id": recipient_id})
        if result.deleted_count == 0:
            return False
        logger.info(f"Deleted recipient {recipient_id}")
        return True

    def get_all_recipients(self, filters: Optional[RecipientFilter] = None) -> List[Recipient]:
        with store_errors("list recipients"):
            docs = list(self.collection.find(recipient_query(filters)))
        return [from_document(Recipient, d) for d in docs]


class CampaignStore:
    def __init__(
        self,
        db: Database,
        recipients: RecipientStore,
        donations: Optional["DonationStore"] = None,
        progress: Optional["ProgressCalculator"] = None,
    ):
        self.collection = db[CAMPAIGNS]
        self.recipients = recipients
        self.donations = donations
        self.progress = progress

    def create_campaign(self, campaign: Campaign) -> Campaign:
        recipient = self.recipients.get_recipient_by_id(campaign.recipient_id)
        rules.require_recipient_exists(recipient, campaign.recipient_id)
        campaign = campaign.model_copy(update={"id": new_id()})
        with store_errors("create campaign"):
            self.collection.insert_one(to_document(campaign))
        logger.info(f"Created campaign {campaign.id} for recipient {campaign.recipient_id}")
        return campaign

    def get_campaign_by_id(self, campaign_id: Optional[str]) -> Optional[Campaign]:
        if not campaign_id:
            return None
        with store_errors("read campaign"):
            doc = self.collection.find_one({"_id": campaign_id})
        return from_document(Campaign, doc)

    def update_campaign(self, campaign_id: str, campaign: Campaign) -> Optional[Campaign]:
        if not campaign_id:
            return None
        recipient = self.recipients.get_recipient_by_id(campaign.recipient_id)
        rules.require_recipient_exists(recipient, campaign.recipient_id)
        campaign = campaign.model_copy(update={"id": campaign_id})
        doc = to_document(campaign)
        doc.pop("_id", None)
        with store_errors("update campaign"):
            result = self.collection.replace_one({"_id": campaign_id}, doc)
        if result.modified_count == 0:
            return None
        logger.info(f"Updated campaign {campaign_id}")
        return campaign

    def delete_campaign(self, campaign_id: str) -> bool:
        rules.require_no_donations(self.donations.has_donations_for_campaign(campaign_id), campaign_id)
        with store_errors("delete campaign"):
            result = self.collection.delete_one({"_id": campaign_id})
        if result.deleted_count == 0:
            return False
        logger.info(f"Deleted campaign {campaign_id}")
        return True

    def get_all_campaigns(self, filters: Optional[CampaignFilter] = None) -> List[Campaign]:
        with store_errors("list campaigns"):
            docs = list(self.collection.find(campaign_query(filters)))
        return [from_document(Campaign, d) for d in docs]

    def has_campaigns_for_recipient(self, recipient_id: str) -> bool:
        with store_errors("look up campaigns"):
            doc = self.collection.find_one({"recipient_id": recipient_id}, {"_id": 1})
        return doc is not None

    def get_campaign_donation_progress(self, campaign_id: str) -> Optional[DonationProgress]:
        return self.progress.get_campaign_donation_progress(campaign_id)


class DonationStore:
    def __init__(self, db: Database, campaigns: CampaignStore):
        self.collection = db[DONATIONS]
        self.campaigns = campaigns

    def create_donation(self, donation: Donation) -> Donation:
        campaign = self.campaigns.get_campaign_by_id(donation.campaign_id)
        rules.require_campaign_exists(campaign, donation.campaign_id)
        donation = donation.model_copy(update={
            "id": new_id(),
            "timestamp": as_utc(donation.timestamp) if donation.timestamp else datetime.now(timezone.utc),
        })
        with store_errors("create donation"):
            self.collection.insert_one(to_document(donation))
        logger.info(f"Recorded donation {donation.id} of {donation.amount} to campaign {donation.campaign_id}")
        return donation

    def get_donation_by_id(self, donation_id: Optional[str]) -> Optional[Donation]:
        if not donation_id:
            return None
        with store_errors("read donation"):
            doc = self.collection.find_one({"_id": donation_id})
        return from_document(Donation, doc)

    def get_filtered_donations(self, filters: Optional[DonationFilter] = None) -> List[Donation]:
        with store_errors("list donations"):
            docs = list(self.collection.find(donation_query(filters)))
        return [from_document(Donation, d) for d in docs]

    def get_total_donations_for_campaign(self, campaign_id: Optional[str]) -> int:
        if not campaign_id:
            return 0
        with store_errors("sum donations"):
            docs = self.collection.find({"campaign_id": campaign_id}, {"amount": 1})
            return int(sum(d.get("amount", 0) for d in docs))

    def has_donations_for_campaign(self, campaign_id: str) -> bool:
        with store_errors("look up donations"):
            doc = self.collection.find_one({"campaign_id": campaign_id}, {"_id": 1})
        return doc is not None


class ProgressCalculator:
    """Donation progress of a campaign: two reads, campaign then donation sum."""

    def __init__(self, campaigns: CampaignStore, donations: DonationStore):
        self.campaigns = campaigns
        self.donations = donations

    def get_campaign_donation_progress(self, campaign_id: str) -> Optional[DonationProgress]:
        try:
            campaign = self.campaigns.get_campaign_by_id(campaign_id)
            if campaign is None:
                return None
            total = self.donations.get_total_donations_for_campaign(campaign_id)
        except StoreError as e:
            logger.error(f"Progress for campaign {campaign_id} unavailable: {e}")
            return None
        return rules.calculate_progress(campaign, total)


@dataclass
class Stores:
    recipients: RecipientStore
    campaigns: CampaignStore
    donations: DonationStore
    progress: ProgressCalculator


def build_stores(db: Database) -> Stores:
    """Create the stores around one shared database handle and link them."""
    recipients = RecipientStore(db)
    campaigns = CampaignStore(db, recipients)
    donations = DonationStore(db, campaigns)
    progress = ProgressCalculator(campaigns, donations)
    recipients.campaigns = campaigns
    campaigns.donations = donations
    campaigns.progress = progress
    return Stores(recipients, campaigns, donations, progress)
