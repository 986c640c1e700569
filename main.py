import logging
import os
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from database import db
from errors import DependentRecordsError, InvalidRequestError, ReferenceNotFoundError, StoreError
from schemas import (
    Campaign,
    CampaignCreate,
    CampaignFilter,
    Donation,
    DonationCreate,
    DonationFilter,
    DonationProgress,
    Recipient,
    RecipientCreate,
    RecipientFilter,
    RecipientOut,
)
from stores import Stores, build_stores

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="TesfaFund API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

stores: Optional[Stores] = build_stores(db) if db is not None else None

# -------------------------
# Utility helpers
# -------------------------

def uid(id_str: str, label: str = "Id") -> str:
    try:
        uuid.UUID(id_str)
    except (ValueError, TypeError):
        raise HTTPException(status_code=400, detail=f"{label} is not a valid UUID.")
    return id_str

def get_stores() -> Stores:
    if stores is None:
        raise HTTPException(status_code=503, detail="Database not configured")
    return stores

def build_filter(model, **values):
    try:
        return model(**values)
    except ValidationError as e:
        error = e.errors()[0]
        field = str(error["loc"][0]) if error["loc"] else None
        raise InvalidRequestError(error["msg"], field=field)

def recipient_out(recipient: Recipient) -> RecipientOut:
    return RecipientOut(**recipient.model_dump(exclude={"password_hash"}))

# -------------------------
# Error mapping
# -------------------------
@app.exception_handler(InvalidRequestError)
async def invalid_request_handler(request: Request, exc: InvalidRequestError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})

@app.exception_handler(ReferenceNotFoundError)
async def reference_not_found_handler(request: Request, exc: ReferenceNotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

@app.exception_handler(DependentRecordsError)
async def dependent_records_handler(request: Request, exc: DependentRecordsError):
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})

@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    # already logged by the store
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": str(exc)})

# -------------------------
# Basic
# -------------------------
@app.get("/")
def root():
    return {"message": "TesfaFund API running"}

@app.get("/test")
def test_database():
    response = {"backend": "✅ Running", "database": "❌ Not Available"}
    try:
        if db is not None:
            response["database"] = "✅ Connected"
            response["collections"] = db.list_collection_names()
    except Exception as e:
        logger.warning(f"Database probe failed: {e}")
        response["database"] = f"Error: {str(e)[:80]}"
    return response

# -------------------------
# Recipients
# -------------------------
@app.post("/api/recipients", response_model=RecipientOut, status_code=201)
def create_recipient(payload: RecipientCreate, s: Stores = Depends(get_stores)):
    created = s.recipients.create_recipient(Recipient(**payload.model_dump()))
    return recipient_out(created)

@app.get("/api/recipients", response_model=List[RecipientOut])
def list_recipients(
    first_name: Optional[str] = None,
    middle_name: Optional[str] = None,
    last_name: Optional[str] = None,
    email: Optional[str] = None,
    s: Stores = Depends(get_stores),
):
    filters = RecipientFilter(first_name=first_name, middle_name=middle_name, last_name=last_name, email=email)
    return [recipient_out(r) for r in s.recipients.get_all_recipients(filters)]

@app.get("/api/recipients/{recipient_id}", response_model=RecipientOut)
def get_recipient(recipient_id: str, s: Stores = Depends(get_stores)):
    recipient = s.recipients.get_recipient_by_id(uid(recipient_id, "RecipientId"))
    if not recipient:
        raise HTTPException(status_code=404, detail=f"Recipient with ID {recipient_id} not found.")
    return recipient_out(recipient)

@app.put("/api/recipients/{recipient_id}", status_code=204)
def update_recipient(recipient_id: str, payload: RecipientCreate, s: Stores = Depends(get_stores)):
    updated = s.recipients.update_recipient(uid(recipient_id, "RecipientId"), Recipient(**payload.model_dump()))
    if not updated:
        raise HTTPException(status_code=404, detail=f"Recipient with ID {recipient_id} not found or not modified.")
    return Response(status_code=204)

@app.delete("/api/recipients/{recipient_id}", status_code=204)
def delete_recipient(recipient_id: str, s: Stores = Depends(get_stores)):
    if not s.recipients.delete_recipient(uid(recipient_id, "RecipientId")):
        raise HTTPException(status_code=404, detail=f"Recipient with ID {recipient_id} not found.")
    return Response(status_code=204)

# -------------------------
# Campaigns
# -------------------------
@app.post("/api/campaigns", response_model=Campaign, status_code=201)
def create_campaign(payload: CampaignCreate, s: Stores = Depends(get_stores)):
    uid(payload.recipient_id, "RecipientId")
    return s.campaigns.create_campaign(Campaign(**payload.model_dump()))

@app.get("/api/campaigns", response_model=List[Campaign])
def list_campaigns(
    title: Optional[str] = None,
    recipient_id: Optional[str] = None,
    min_fundraising_goal: Optional[int] = None,
    max_fundraising_goal: Optional[int] = None,
    s: Stores = Depends(get_stores),
):
    filters = build_filter(
        CampaignFilter,
        title=title,
        recipient_id=recipient_id,
        min_fundraising_goal=min_fundraising_goal,
        max_fundraising_goal=max_fundraising_goal,
    )
    return s.campaigns.get_all_campaigns(filters)

@app.get("/api/campaigns/{campaign_id}", response_model=Campaign)
def get_campaign(campaign_id: str, s: Stores = Depends(get_stores)):
    campaign = s.campaigns.get_campaign_by_id(uid(campaign_id, "CampaignId"))
    if not campaign:
        raise HTTPException(status_code=404, detail="Campaign not found")
    return campaign

@app.put("/api/campaigns/{campaign_id}", status_code=204)
def update_campaign(campaign_id: str, payload: CampaignCreate, s: Stores = Depends(get_stores)):
    uid(payload.recipient_id, "RecipientId")
    updated = s.campaigns.update_campaign(uid(campaign_id, "CampaignId"), Campaign(**payload.model_dump()))
    if not updated:
        raise HTTPException(status_code=404, detail="Campaign not found or not modified")
    return Response(status_code=204)

@app.delete("/api/campaigns/{campaign_id}", status_code=204)
def delete_campaign(campaign_id: str, s: Stores = Depends(get_stores)):
    if not s.campaigns.delete_campaign(uid(campaign_id, "CampaignId")):
        raise HTTPException(status_code=404, detail="Campaign not found")
    return Response(status_code=204)

@app.get("/api/campaigns/{campaign_id}/progress", response_model=DonationProgress)
def campaign_progress(campaign_id: str, s: Stores = Depends(get_stores)):
    progress = s.campaigns.get_campaign_donation_progress(uid(campaign_id, "CampaignId"))
    if not progress:
        raise HTTPException(status_code=404, detail="Campaign not found")
    return progress

# -------------------------
# Donations
# -------------------------
@app.post("/api/donations", response_model=Donation, status_code=201)
def create_donation(payload: DonationCreate, s: Stores = Depends(get_stores)):
    uid(payload.campaign_id, "CampaignId")
    return s.donations.create_donation(Donation(**payload.model_dump()))

@app.get("/api/donations", response_model=List[Donation])
def list_donations(
    campaign_id: Optional[str] = None,
    min_amount: Optional[int] = None,
    max_amount: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    s: Stores = Depends(get_stores),
):
    if campaign_id:
        uid(campaign_id, "CampaignId")
    filters = build_filter(
        DonationFilter,
        campaign_id=campaign_id,
        min_amount=min_amount,
        max_amount=max_amount,
        start_date=start_date,
        end_date=end_date,
    )
    return s.donations.get_filtered_donations(filters)

@app.get("/api/donations/{donation_id}", response_model=Donation)
def get_donation(donation_id: str, s: Stores = Depends(get_stores)):
    donation = s.donations.get_donation_by_id(uid(donation_id, "DonationId"))
    if not donation:
        raise HTTPException(status_code=404, detail="Donation not found")
    return donation

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
