# src/tagboard/scripts/maintenance.py
"""
Periodic consistency job for the tag catalog.

This script should be run off-peak to:
1. Recompute every tag's live count from post membership and repair drift
2. Check that each post's tag vector still matches its membership rows

Drift is never expected; anything found here is logged as an error so it
can be investigated.
"""

import argparse
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from tagboard.core.errors import InvariantViolation
from tagboard.db.session import SessionLocal
from tagboard.models import Post
from tagboard.services.post_store import PostStore
from tagboard.services.tag_catalog import TagCatalog
from tagboard.services.unit_of_work import run_in_transaction

logger = logging.getLogger(__name__)


def repair_tag_counts(db: Session, *, dry_run: bool = False) -> int:
    """Fix tag counts that drifted from membership; return how many drifted."""
    catalog = TagCatalog(db)
    if dry_run:
        mismatches = catalog.audit_counts()
        for mismatch in mismatches:
            logger.error(
                "Tag %r count drifted: stored=%d actual=%d",
                mismatch.name,
                mismatch.stored,
                mismatch.actual,
            )
    else:
        mismatches = run_in_transaction(db, catalog.recount)
    logger.info("Checked tag counts: %d mismatch(es)", len(mismatches))
    return len(mismatches)


def verify_vectors(db: Session, batch_size: int = 500) -> list[int]:
    """Return ids of posts whose tag vector does not match their membership."""
    store = PostStore(db)
    broken: list[int] = []
    last_id = 0
    while True:
        ids = list(
            db.execute(
                select(Post.id).where(Post.id > last_id).order_by(Post.id).limit(batch_size)
            ).scalars()
        )
        if not ids:
            break
        for post_id in ids:
            try:
                store.verify(post_id)
            except InvariantViolation:
                broken.append(post_id)
        last_id = ids[-1]
        db.rollback()
    logger.info("Checked tag vectors: %d broken post(s)", len(broken))
    return broken


def main() -> None:
    parser = argparse.ArgumentParser(description="Tag catalog consistency checks")
    parser.add_argument("--dry-run", action="store_true", help="report without repairing")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)

    db = SessionLocal()
    try:
        repair_tag_counts(db, dry_run=args.dry_run)
        verify_vectors(db)
    finally:
        db.close()


if __name__ == "__main__":
    main()
