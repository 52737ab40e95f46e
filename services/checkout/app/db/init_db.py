from __future__ import annotations

import logging
import os

from services.checkout.app.config import parse_bool
from services.checkout.app.db.database import get_engine
from services.checkout.app.db.models import Base

logger = logging.getLogger(__name__)


def init_db() -> None:
    """Create the diagnostics tables unless SEHATY_DB_AUTO_CREATE is off."""

    if not parse_bool(os.getenv("SEHATY_DB_AUTO_CREATE", "true")):
        logger.info("SEHATY_DB_AUTO_CREATE is off, skipping table creation")
        return

    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    logger.info("diagnostics tables ready on %s", engine.url.render_as_string(hide_password=True))
