# scripts/init_db.py

import argparse
import logging

from app.core.logging_config import configure_logging
from app.db.engine import get_engine
from app.db.schema import metadata

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Create the ledger schema.")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="drop every table first (destroys all data)",
    )
    args = parser.parse_args()

    configure_logging()
    engine = get_engine()
    if args.reset:
        metadata.drop_all(engine)
        logger.warning("Dropped all tables on %s", engine.url)
    metadata.create_all(engine)
    logger.info("DB schema created on %s", engine.url)


if __name__ == "__main__":
    main()
