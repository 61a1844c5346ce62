"""Pydantic model for inbound evaluation requests.

The request is validated before any scoring runs; a failure here is a
ValidationError at the boundary and never reaches the confidence math.
"""

from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator


class Submission(BaseModel):
    """Candidate submission: photo URLs plus optional biometric attributes."""

    photos: list[str] = Field(..., min_length=1, description="Photo URLs, non-empty")
    gender: Optional[str] = Field(default=None, description="Free-form gender, 'm...' means male")
    height_cm: Optional[Union[int, float, str]] = Field(default=None, description="Height in centimetres")
    age: Optional[Union[int, float, str]] = Field(default=None, description="Age in years")
    measurements: Optional[str] = Field(default=None, description="Bust-waist-hip string, e.g. '82-60-88'")

    @field_validator('photos')
    @classmethod
    def validate_photos(cls, v: list[str]) -> list[str]:
        """Strip whitespace and reject blank entries."""
        cleaned = [p.strip() for p in v]
        if not cleaned or any(not p for p in cleaned):
            raise ValueError("`photos` must be a non-empty array of URLs")
        return cleaned

    def details(self) -> str:
        """Fixed-format summary of the input fields."""
        def show(value) -> str:
            return "n/a" if value is None else str(value)

        return (
            f"photos={len(self.photos)}, gender={show(self.gender)}, "
            f"h={show(self.height_cm)}, age={show(self.age)}, meas={show(self.measurements)}"
        )
