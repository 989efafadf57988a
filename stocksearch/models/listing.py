"""
Listing models.
Domain representation of a stock listing as read by the search engine.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


def compose_description(
    make: Optional[str],
    grade: Optional[str],
    brand: Optional[str],
    gsm: Optional[int],
) -> str:
    """
    Build the composite description a listing is searched by.

    Example:
        compose_description("ITC", "Supreme", "Board", 120) -> "ITC Supreme Board 120gsm"
    """
    parts = [part.strip() for part in (make, grade, brand) if part and part.strip()]
    if gsm is not None and gsm > 0:
        parts.append(f"{int(gsm)}gsm")
    return " ".join(parts)


def format_dimensions(deckle_mm: Optional[float], grain_mm: Optional[float]) -> Optional[str]:
    """Render canonical millimetre dimensions as a centimetre label."""
    if not deckle_mm or not grain_mm:
        return None
    return f"{deckle_mm / 10:.1f} x {grain_mm / 10:.1f} cm"


class Listing(BaseModel):
    """
    A catalog listing.

    Rows come from the record store; missing categorical values are normalized
    to None so they never surface as empty facet buckets.
    """

    model_config = ConfigDict(
        str_strip_whitespace=True,
        from_attributes=True,
    )

    id: int
    seller_id: Optional[int] = None

    # Categorical attributes
    make: Optional[str] = None
    grade: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None

    # Measures (dimensions in millimetres)
    gsm: Optional[int] = None
    deckle_mm: Optional[float] = None
    grain_mm: Optional[float] = None

    # Derived composite description
    description: str = ""

    # Offer
    price: Optional[float] = None
    show_price: bool = True
    quantity: Optional[float] = None
    unit: Optional[str] = None

    # Seller context
    location: Optional[str] = None
    company: Optional[str] = None

    is_active: bool = True
    created_at: datetime
    updated_at: Optional[datetime] = None

    @field_validator(
        "make", "grade", "brand", "category", "unit", "location", "company", mode="before"
    )
    @classmethod
    def blank_to_none(cls, v):
        """Treat empty strings as missing values."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("gsm", mode="before")
    @classmethod
    def convert_gsm(cls, v):
        """GSM of 0 (or unparsable) means unknown."""
        if v is None or v == "":
            return None
        try:
            value = int(float(v))
        except (ValueError, TypeError):
            return None
        return value if value > 0 else None

    @field_validator("deckle_mm", "grain_mm", mode="before")
    @classmethod
    def convert_dimension(cls, v):
        if v is None or v == "":
            return None
        try:
            value = float(v)
        except (ValueError, TypeError):
            return None
        return value if value > 0 else None

    @model_validator(mode="after")
    def derive_description(self) -> "Listing":
        if not self.description:
            self.description = compose_description(self.make, self.grade, self.brand, self.gsm)
        return self

    @property
    def size_mm2(self) -> Optional[float]:
        """Sheet area used by the size sort directives."""
        if self.deckle_mm is None or self.grain_mm is None:
            return None
        return self.deckle_mm * self.grain_mm

    @property
    def dimensions(self) -> Optional[str]:
        return format_dimensions(self.deckle_mm, self.grain_mm)

    def to_public_dict(self) -> Dict[str, Any]:
        """Serialize for API output, hiding the price when the seller chose to."""
        data = self.model_dump()
        if not self.show_price:
            data["price"] = None
        data["dimensions"] = self.dimensions
        return data
