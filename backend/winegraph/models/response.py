"""
Pydantic models for the wine graph REST API responses.

API Contract (GET /v1/rest/search):
[
  {
    "country": "Italy",
    "wineID": 40825,
    "points": 90,
    "title": "Castello San Donato in Perano 2009 Riserva (Chianti Classico)",
    "description": "...",
    "price": 23.0,
    "variety": "Sangiovese",
    "winery": "Castello San Donato in Perano"
  }
]

Absent scalars are explicit sentinels (price -1.0, text "Not available"),
never omitted.
"""

from pydantic import BaseModel, ConfigDict, Field


class WineSummary(BaseModel):
    """A wine returned by keyword search."""
    model_config = ConfigDict(populate_by_name=True)

    country: str = Field(..., description="Country name ('Unknown' when not recorded)")
    wine_id: int = Field(..., alias="wineID", description="Natural key of the wine")
    points: int = Field(..., description="Wine Enthusiast rating (80-100)")
    title: str = Field(..., description="Review title")
    description: str = Field(..., description="Tasting note")
    price: float = Field(..., description="Price in USD, -1.0 if not available")
    variety: str = Field(..., description="Grape variety")
    winery: str = Field(..., description="Producer")


class TopWine(BaseModel):
    """A wine in a top-rated listing for a country or province."""
    model_config = ConfigDict(populate_by_name=True)

    wine_id: int = Field(..., alias="wineID")
    country: str
    province: str
    title: str
    points: int
    price: float = Field(..., description="Price in USD, -1.0 if not available")
    variety: str
    taster_name: str = Field(..., alias="tasterName")


class VarietyCount(BaseModel):
    """Number of wines of a variety in a country."""
    variety: str
    country: str
    wine_count: int = Field(..., alias="wineCount", ge=0)

    model_config = ConfigDict(populate_by_name=True)
