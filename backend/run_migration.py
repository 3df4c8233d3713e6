"""
Script to add the uniqueness indexes to an existing database
Run this script to update your database schema

- chats: one chat per (listing_id, buyer_id, seller_id)
- archive: one saved row per (user_id, listing_id)
- offers: one pending offer per (listing_id, buyer_id)
"""

import sys
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from locl_api.core.logging import get_logger, setup_logging

logger = get_logger("run_migration")

STATEMENTS = [
    ("uq_chats_listing_buyer_seller", """
        CREATE UNIQUE INDEX IF NOT EXISTS uq_chats_listing_buyer_seller
        ON chats (listing_id, buyer_id, seller_id)
    """),
    ("uq_archive_user_listing", """
        CREATE UNIQUE INDEX IF NOT EXISTS uq_archive_user_listing
        ON archive (user_id, listing_id)
    """),
    ("uq_offers_pending_listing_buyer", """
        CREATE UNIQUE INDEX IF NOT EXISTS uq_offers_pending_listing_buyer
        ON offers (listing_id, buyer_id) WHERE status = 'pending'
    """),
]


def run_migration(engine=None):
    """Create the unique indexes; safe to run more than once"""
    if engine is None:
        from locl_api.database import engine

    logger.info("Running migration: adding unique indexes to chats, archive and offers...")
    with engine.begin() as conn:
        for name, statement in STATEMENTS:
            conn.execute(text(statement))
            logger.info(f"Ensured index {name}")
    logger.info("Migration completed successfully")
    return [name for name, _ in STATEMENTS]


if __name__ == "__main__":
    setup_logging()
    try:
        run_migration()
    except SQLAlchemyError as e:
        logger.error(f"Error running migration: {e}")
        sys.exit(1)
