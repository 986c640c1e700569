"""
MongoDB connection.

The client is created once, at import time, from DATABASE_URL / DATABASE_NAME
and the resulting `db` handle is shared by every request. When either
variable is missing `db` stays None.
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pymongo import MongoClient
from pymongo.database import Database

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

RECIPIENTS = "recipient"
CAMPAIGNS = "campaign"
DONATIONS = "donation"


def connect(url: Optional[str], name: Optional[str]) -> Optional[Database]:
    if not url or not name:
        logger.warning("DATABASE_URL or DATABASE_NAME not set, running without a database")
        return None
    # tz_aware so donation timestamps come back as UTC-aware datetimes
    client = MongoClient(url, tz_aware=True)
    return client[name]


db = connect(DATABASE_URL, DATABASE_NAME)
