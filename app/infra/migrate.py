from __future__ import annotations

import logging
import os

from alembic import command
from alembic.config import Config

ALEMBIC_CONFIG = os.getenv("ALEMBIC_CONFIG", "alembic.ini")

logger = logging.getLogger(__name__)


def run_upgrade(revision: str = "head") -> None:
    logger.info("upgrading schema to %s using %s", revision, ALEMBIC_CONFIG)
    command.upgrade(Config(ALEMBIC_CONFIG), revision)


if __name__ == "__main__":
    from app.infra.log import configure_logging

    configure_logging()
    run_upgrade()
