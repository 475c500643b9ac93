import logging
import random
import string
import time
from typing import Dict, Any, List

from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from catalog_api.errors import CatalogError
from catalog_api.models import SavedSearchCreate
from catalog_api.repository.listings import utcnow
from catalog_api.sql import saved_search_select, saved_searches

LOG = logging.getLogger("repo")

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_search_id() -> str:
    """`search-<epoch ms>-<9 base36 chars>`"""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"search-{int(time.time() * 1000)}-{suffix}"


def create(conn: Connection, user_id: str, data: SavedSearchCreate) -> Dict[str, Any]:
    """Persist a validated saved search for `user_id` and return the stored row."""
    values = {
        **data.model_dump(),
        "id": new_search_id(),
        "user_id": user_id,
        "created_at": utcnow(),
    }
    try:
        conn.execute(saved_searches.insert().values(**values))
        conn.commit()
    except SQLAlchemyError as exc:
        conn.rollback()
        raise CatalogError(f"saved search insert failed: {exc}") from exc

    LOG.info("saved search %s created for user %s", values["id"], user_id)
    return values


def list_for_user(conn: Connection, user_id: str) -> List[Dict[str, Any]]:
    stmt = (
        saved_search_select()
        .where(saved_searches.c.user_id == user_id)
        .order_by(saved_searches.c.created_at, saved_searches.c.id)
    )
    try:
        rows = conn.execute(stmt).mappings().all()
    except SQLAlchemyError as exc:
        raise CatalogError(f"saved search listing failed: {exc}") from exc
    return [dict(r) for r in rows]
