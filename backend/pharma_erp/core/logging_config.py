"""Root logging setup, called once from the application lifespan."""
import logging
from typing import Optional

from pharma_erp.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )
    # SQL echo is far too chatty for DEBUG runs
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
