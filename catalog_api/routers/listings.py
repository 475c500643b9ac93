# catalog_api/routers/listings.py
from typing import Optional
from fastapi import APIRouter, Depends, Query, HTTPException, Response
from pydantic import ValidationError
from sqlalchemy.engine import Connection

from catalog_api import config
from catalog_api.deps import get_conn
from catalog_api.errors import InvalidFilterError
from catalog_api.models import Listing, ListingsResponse, NearbyResponse, QueryFilters, SortBy, SortOrder
from catalog_api.repository import listings as repo

router = APIRouter(prefix="/api", tags=["listings"])

@router.get("/listings", response_model=ListingsResponse)
def list_listings(
    response: Response,
    # filters (all optional)
    q: Optional[str]                = Query(None, description="Substring of the address"),
    min_price: Optional[int]        = Query(None, ge=0),
    max_price: Optional[int]        = Query(None, ge=0),
    beds_min: Optional[int]         = Query(None, ge=0),
    baths_min: Optional[int]        = Query(None, ge=0),

    # paging & sorting
    page: int = Query(1, ge=1),
    limit: int = Query(config.QUERY_LIMIT_DEFAULT, ge=1),
    sort_by: SortBy = Query("updated_at"),
    sort_order: SortOrder = Query("desc"),

    conn: Connection = Depends(get_conn),
):
    """
    Thin endpoint:
      - assemble filters into a QueryFilters (limit capped, not rejected)
      - call repository.search()
      - map raw rows -> Pydantic models
    """
    try:
        filters = QueryFilters(
            q=q or None,
            min_price=min_price,
            max_price=max_price,
            beds_min=beds_min,
            baths_min=baths_min,
            page=page,
            limit=min(limit, config.QUERY_LIMIT_MAX),
            sort_by=sort_by,
            sort_order=sort_order,
        )
    except ValidationError as exc:
        raise InvalidFilterError.from_validation(exc) from exc

    rows, total = repo.search(conn, filters)
    items = [Listing(**row) for row in rows]  # Pydantic validates/serializes

    response.headers["Cache-Control"] = config.cache_control()
    return ListingsResponse(total=total, page=filters.page, limit=filters.limit, items=items)

@router.get("/listings/nearby", response_model=NearbyResponse)
def nearby_listings(
    response: Response,
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius_km: float = Query(config.NEARBY_RADIUS_KM_DEFAULT),
    limit: int = Query(config.NEARBY_LIMIT_DEFAULT),
    conn: Connection = Depends(get_conn),
):
    if lat is None or lng is None:
        raise InvalidFilterError("lat and lng are required")

    rows = repo.nearby(conn, lat, lng, radius_km, min(limit, config.NEARBY_LIMIT_MAX))

    response.headers["Cache-Control"] = config.cache_control()
    return NearbyResponse(items=[Listing(**row) for row in rows])

@router.get("/listings/{listing_id}", response_model=Listing)
def get_listing(listing_id: str, conn: Connection = Depends(get_conn)):
    row = repo.get_by_id(conn, listing_id)
    if not row:
        raise HTTPException(status_code=404, detail="Listing not found")
    return Listing(**row)
