from enum import Enum

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from ..core.constants import DOCUMENTS_TABLE, TWO_TIER_COLUMNS
from ..core.logger import logger


class StorageMode(str, Enum):
    TWO_TIER = "two_tier"
    SINGLE_TIER = "single_tier"


def probe_storage_mode(engine: Engine) -> StorageMode:
    """
    Two-tier storage needs the payload/display/size columns on the documents
    table. Databases that have not run that migration keep the payload inline.
    A missing table counts as two-tier: it will be created with the current shape.
    """
    inspector = inspect(engine)
    if not inspector.has_table(DOCUMENTS_TABLE):
        return StorageMode.TWO_TIER

    columns = {column["name"] for column in inspector.get_columns(DOCUMENTS_TABLE)}
    missing = [name for name in TWO_TIER_COLUMNS if name not in columns]
    if missing:
        logger.warning(
            f"Documents table lacks {', '.join(missing)}; using single-tier storage. "
            "Run the two-tier storage migration to move payloads into blob storage."
        )
        return StorageMode.SINGLE_TIER
    return StorageMode.TWO_TIER
