"""Pydantic schemas for responses, request bodies and search conditions."""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


# ============== Chair Schemas ==============

class ChairResponse(BaseModel):
    """Public chair representation. Stock is kept for the sold-out check only."""
    id: int
    name: str
    description: str
    thumbnail: str
    price: int
    height: int
    width: int
    depth: int
    color: str
    features: str
    kind: str
    stock: int = Field(0, exclude=True)

    model_config = ConfigDict(from_attributes=True)


class ChairSearchResponse(BaseModel):
    count: int
    chairs: list[ChairResponse]


class ChairListResponse(BaseModel):
    chairs: list[ChairResponse]


# ============== Estate Schemas ==============

class EstateResponse(BaseModel):
    """Public estate representation."""
    id: int
    thumbnail: str
    name: str
    description: str
    latitude: float
    longitude: float
    address: str
    rent: int
    door_height: int = Field(..., alias="doorHeight")
    door_width: int = Field(..., alias="doorWidth")
    features: str

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class EstateSearchResponse(BaseModel):
    count: int
    estates: list[EstateResponse]


class EstateListResponse(BaseModel):
    estates: list[EstateResponse]


# ============== Request Bodies ==============

class Coordinate(BaseModel):
    latitude: float
    longitude: float


class CoordinatesRequest(BaseModel):
    """Polygon drawn on the map, as an ordered list of vertices."""
    coordinates: list[Coordinate]


class EmailRequest(BaseModel):
    email: Optional[str] = None


class InitializeResponse(BaseModel):
    language: str


# ============== Search Conditions ==============

class Range(BaseModel):
    """Half-open [min, max) interval; -1 means unbounded on that side."""
    id: int
    min: int
    max: int


class RangeCondition(BaseModel):
    prefix: str = ""
    suffix: str = ""
    ranges: list[Range]


class ListCondition(BaseModel):
    items: list[str] = Field(default_factory=list, alias="list")

    model_config = ConfigDict(populate_by_name=True)


class ChairSearchCondition(BaseModel):
    width: RangeCondition
    height: RangeCondition
    depth: RangeCondition
    price: RangeCondition
    color: ListCondition
    feature: ListCondition
    kind: ListCondition


class EstateSearchCondition(BaseModel):
    door_width: RangeCondition = Field(..., alias="doorWidth")
    door_height: RangeCondition = Field(..., alias="doorHeight")
    rent: RangeCondition
    feature: ListCondition

    model_config = ConfigDict(populate_by_name=True)
