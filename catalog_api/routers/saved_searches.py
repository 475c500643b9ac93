# catalog_api/routers/saved_searches.py
from fastapi import APIRouter, Body, Depends, Header
from pydantic import ValidationError
from sqlalchemy.engine import Connection

from catalog_api.deps import get_conn
from catalog_api.errors import InvalidFilterError
from catalog_api.models import SavedSearch, SavedSearchCreate, SavedSearchesResponse
from catalog_api.repository import saved_searches as repo

router = APIRouter(prefix="/api", tags=["saved-search"])

@router.get("/saved-search", response_model=SavedSearchesResponse)
def list_saved_searches(
    x_user_id: str = Header("guest"),
    conn: Connection = Depends(get_conn),
):
    rows = repo.list_for_user(conn, x_user_id)
    return SavedSearchesResponse(items=[SavedSearch(**row) for row in rows])

@router.post("/saved-search", response_model=SavedSearch, status_code=201)
def create_saved_search(
    body: dict = Body(...),
    x_user_id: str = Header("guest"),
    conn: Connection = Depends(get_conn),
):
    # failures map to InvalidFilterError (400), not 422
    try:
        data = SavedSearchCreate.model_validate(body)
    except ValidationError as exc:
        raise InvalidFilterError.from_validation(exc) from exc

    row = repo.create(conn, x_user_id or "guest", data)
    return SavedSearch(**row)
