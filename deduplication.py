"""
deduplication.py — Company-name normalization and the already-seen filter.
The store's id-membership test is the only dedup gate; it runs before any
detail fetch or AI call.
"""

import re

from models import Listing
from monitoring import get_logger

logger = get_logger("deduplication")

# Legal-form suffixes to strip when normalizing company names
COMPANY_SUFFIXES = [
    "inc", "llc", "llp", "corp", "corporation",
    "ltd", "limited", "pvt", "private", "plc", "gmbh",
]


def normalize_company(name: str) -> str:
    """Normalize a company name for cache and blacklist comparison."""
    name = (name or "").casefold().strip()
    # Remove punctuation
    name = re.sub(r"[^\w\s&]", "", name)
    words = name.split()
    # Only trailing legal forms, so "Private Equity Partners" stays intact
    while len(words) > 1 and words[-1] in COMPANY_SUFFIXES:
        words.pop()
    return " ".join(words)


def clean_company_name(name: str) -> str:
    """Collapse whitespace in a display name without changing its case."""
    return " ".join((name or "").split())


def filter_new_listings(listings: list[Listing], storage) -> list[Listing]:
    """
    Drop listings that are already stored, belong to a blacklisted company,
    or repeat an id seen earlier in this batch.
    """
    new_listings = []
    batch_ids = set()
    already_stored = 0
    blacklisted = 0

    for listing in listings:
        if listing.id in batch_ids:
            continue
        batch_ids.add(listing.id)

        if storage.is_processed(listing.id):
            already_stored += 1
            continue
        if storage.is_blacklisted(listing.company):
            blacklisted += 1
            continue
        new_listings.append(listing)

    logger.info(
        f"Already-seen filter: {len(listings)} → {len(new_listings)} "
        f"({already_stored} already stored, {blacklisted} blacklisted)"
    )

    return new_listings
