"""Hand-curated lookup tables: override zones and text patterns."""

from pydantic import BaseModel, ConfigDict, Field, model_validator

from route_impact.data.config import BoundingBox


class OverrideZone(BaseModel):
    """High-confidence rectangle consulted before any geometry search."""

    model_config = ConfigDict(frozen=True)

    bounds: BoundingBox
    routes: tuple[str, ...] = Field(min_length=1, description="Route short names")
    confidence: float = Field(ge=0.0, le=1.0)
    description: str

    @model_validator(mode="after")
    def _check_bounds(self) -> "OverrideZone":
        if self.bounds.south > self.bounds.north or self.bounds.west > self.bounds.east:
            raise ValueError(f"zone '{self.description}' has inverted bounds")
        return self


class TextPattern(BaseModel):
    """Case-insensitive substring key mapped to the routes it implies."""

    model_config = ConfigDict(frozen=True)

    pattern: str = Field(min_length=1)
    routes: tuple[str, ...] = Field(min_length=1, description="Route short names")
    confidence: float = Field(ge=0.0, le=1.0)
    description: str = ""
