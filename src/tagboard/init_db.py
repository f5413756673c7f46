"""Install the schema into the configured database.

Schema installation is a one-off administrative step run before the service
first starts; production deployments use the Alembic migrations instead.
"""

import argparse
import logging

from tagboard.db.session import create_tables, drop_tables

logger = logging.getLogger(__name__)


def init_db(*, reset: bool = False) -> None:
    """Create all tables, optionally dropping existing ones first."""
    if reset:
        logger.warning("Dropping all tables")
        drop_tables()
    create_tables()


def main() -> None:
    parser = argparse.ArgumentParser(description="Install the Tagboard schema")
    parser.add_argument("--reset", action="store_true", help="drop existing tables first")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)
    init_db(reset=args.reset)
    logger.info("Database initialized.")


if __name__ == "__main__":
    main()
