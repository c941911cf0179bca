#!/usr/bin/env python3
"""
Loads property listings from a JSON file into MongoDB.

Usage:
    python seed_properties.py properties.json [--clear]
"""

import json
import logging
import sys

from config import LOG_LEVEL
from mongo_store import MongoListingStore

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger("seed_properties")


def seed_properties(path: str, clear: bool = False, store=None) -> int:
    """
    Upserts every listing in the file, keyed on its public id.

    Args:
        path (str): JSON file holding a list of property documents
        clear (bool): Delete existing properties first
        store: Listing store to write to (MongoDB by default)

    Returns:
        int: Number of listings inserted or updated
    """
    with open(path, "r", encoding="utf-8") as f:
        properties = json.load(f)
    if not isinstance(properties, list):
        raise ValueError(f"{path} must contain a JSON list of properties")

    store = store or MongoListingStore()
    if clear:
        store.clear_properties()

    count = store.upsert_properties(properties)
    logger.info(f"Seeded {count} of {len(properties)} properties from {path}")
    return count


if __name__ == "__main__":
    args = [arg for arg in sys.argv[1:] if arg != "--clear"]
    if len(args) != 1:
        print(__doc__)
        sys.exit(1)
    seed_properties(args[0], clear="--clear" in sys.argv)
