from typing import Optional, List, Literal
from datetime import datetime
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from catalog_api.config import QUERY_LIMIT_DEFAULT, QUERY_LIMIT_MAX

SortBy = Literal["updated_at", "price"]
SortOrder = Literal["asc", "desc"]
EventType = Literal["connected", "heartbeat", "listing_updated"]


class Listing(BaseModel):
    id: str = Field(..., description="Immutable catalog identifier")
    address: str
    city: str
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    price: int = Field(..., ge=0, description="Asking price in AED")
    beds: int = Field(..., ge=0)
    baths: int = Field(..., ge=0)
    status: str = Field(..., description="for_sale, for_rent, ...")
    updated_at: datetime


def _check_price_bounds(min_price: Optional[int], max_price: Optional[int]) -> None:
    if min_price is not None and max_price is not None and min_price > max_price:
        raise ValueError("Min price must be less than or equal to max price")


class QueryFilters(BaseModel):
    """Validated filter bundle for one catalog query."""

    q: Optional[str] = None
    min_price: Optional[int] = Field(None, ge=0)
    max_price: Optional[int] = Field(None, ge=0)
    beds_min: Optional[int] = Field(None, ge=0)
    baths_min: Optional[int] = Field(None, ge=0)
    page: int = Field(1, ge=1)
    limit: int = Field(QUERY_LIMIT_DEFAULT, ge=1, le=QUERY_LIMIT_MAX)
    sort_by: SortBy = "updated_at"
    sort_order: SortOrder = "desc"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @model_validator(mode="after")
    def _price_bounds(self):
        _check_price_bounds(self.min_price, self.max_price)
        return self


class ListingsResponse(BaseModel):
    total: int = Field(..., description="Total rows that match the filters")
    page: int
    limit: int
    items: List[Listing]


class NearbyResponse(BaseModel):
    items: List[Listing]


class SavedSearchCreate(BaseModel):
    # camelCase request keys are accepted too; responses stay snake_case
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1)
    q: Optional[str] = None
    min_price: Optional[int] = Field(None, ge=0, validation_alias=AliasChoices("min_price", "minPrice"))
    max_price: Optional[int] = Field(None, ge=0, validation_alias=AliasChoices("max_price", "maxPrice"))
    beds_min: Optional[int] = Field(None, ge=0, validation_alias=AliasChoices("beds_min", "bedsMin"))
    baths_min: Optional[int] = Field(None, ge=0, validation_alias=AliasChoices("baths_min", "bathsMin"))
    center_lat: Optional[float] = Field(
        None, ge=-90, le=90, validation_alias=AliasChoices("center_lat", "centerLat")
    )
    center_lng: Optional[float] = Field(
        None, ge=-180, le=180, validation_alias=AliasChoices("center_lng", "centerLng")
    )
    radius_km: Optional[float] = Field(None, gt=0, validation_alias=AliasChoices("radius_km", "radiusKm"))

    @model_validator(mode="after")
    def _consistent(self):
        _check_price_bounds(self.min_price, self.max_price)
        if (self.center_lat is None) != (self.center_lng is None):
            raise ValueError("center_lat and center_lng must be given together")
        return self


class SavedSearch(SavedSearchCreate):
    id: str
    user_id: str
    created_at: datetime


class SavedSearchesResponse(BaseModel):
    items: List[SavedSearch]


class SubscriptionFilters(BaseModel):
    """Criteria a live subscriber applies to pushed listing updates."""

    q: Optional[str] = None
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    beds_min: Optional[int] = None
    baths_min: Optional[int] = None


class MutationEvent(BaseModel):
    type: EventType
    listing: Optional[Listing] = None
    timestamp: Optional[int] = Field(None, description="Epoch milliseconds")

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)
