"""
Preconditions for each write operation, plus the progress arithmetic.

These functions take already-fetched records so they can be exercised
without a database. Each precondition raises on violation and returns None
otherwise.
"""

import logging
from typing import Optional

from errors import DependentRecordsError, ReferenceNotFoundError
from schemas import Campaign, DonationProgress, Recipient

logger = logging.getLogger(__name__)


def require_recipient_exists(recipient: Optional[Recipient], recipient_id: str) -> None:
    """Campaign create/update: the owning recipient must exist right now."""
    if recipient is None:
        logger.warning(f"Rejected campaign write, recipient {recipient_id} not found")
        raise ReferenceNotFoundError(
            "Recipient with provided RecipientId does not exist", field="recipient_id"
        )


def require_campaign_exists(campaign: Optional[Campaign], campaign_id: str) -> None:
    """Donation create: the target campaign must exist right now."""
    if campaign is None:
        logger.warning(f"Rejected donation, campaign {campaign_id} not found")
        raise ReferenceNotFoundError(
            f"Campaign with CampaignId: {campaign_id} does not exist", field="campaign_id"
        )


def require_no_campaigns(has_campaigns: bool, recipient_id: str) -> None:
    """Recipient delete: refused while any campaign references the recipient."""
    if has_campaigns:
        raise DependentRecordsError(
            f"Recipient {recipient_id} has associated campaigns and cannot be deleted",
            dependent="campaign",
        )


def require_no_donations(has_donations: bool, campaign_id: str) -> None:
    """Campaign delete: refused while donations reference the campaign."""
    if has_donations:
        raise DependentRecordsError(
            f"Campaign {campaign_id} has associated donations and cannot be deleted",
            dependent="donation",
        )


def progress_percentage(total: int, goal: Optional[int]) -> float:
    if not goal or goal <= 0:
        return 0.0
    return total * 100 / goal


def calculate_progress(campaign: Campaign, total: int) -> DonationProgress:
    goal = campaign.fundraising_goal or 0
    return DonationProgress(
        campaign_id=campaign.id,
        total_donations=total,
        fundraising_goal=goal,
        progress_percentage=progress_percentage(total, goal),
    )
