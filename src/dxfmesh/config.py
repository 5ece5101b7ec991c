from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

# multiplicative factor per $INSUNITS selector (0-20)
UNIT_FACTORS: tuple[float, ...] = (
    1.0,  # unitless
    25.4,  # inches
    304.8,  # feet
    1609344.0,  # miles
    1.0,  # millimeters
    10.0,  # centimeters
    1000.0,  # meters
    1.0e6,  # kilometers
    0.0000254,  # microinches
    0.0254,  # mils
    914.4,  # yards
    1.0e-7,  # angstroms
    1.0e-6,  # nanometers
    1.0e-3,  # microns
    100.0,  # decimeters
    10000.0,  # decameters
    100000.0,  # hectometers
    1.0e12,  # gigameters
    1.495979e14,  # astronomical units
    9.460730e18,  # light years
    3.085678e19,  # parsecs
)

MIN_SCALE_FACTOR = 1.0e-39


class Config(BaseModel):
    """Options that steer layer splitting, vertex merging and tessellation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ignore_colors: bool = False
    color_by_layer: bool = False
    tolerance: float = Field(default=0.01, gt=0.0)
    scale_factor: float = Field(default=1.0, ge=MIN_SCALE_FACTOR)
    segments_per_circle: int = Field(default=32, ge=3)
    spline_segments: int = Field(default=16, ge=1)