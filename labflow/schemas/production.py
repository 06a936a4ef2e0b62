"""
Pydantic schemas for the production floor view
"""

from pydantic import BaseModel, Field, validator
from typing import Optional

from labflow.statuses import Station


class StationConfig(BaseModel):
    key: str
    title: str

    @validator('key')
    def validate_key(cls, v):
        return Station(v).value


class FloorLayout(BaseModel):
    """Station titles and per-user chip colors for the floor view"""
    stations: list[StationConfig]
    user_colors: dict[str, str] = Field(default_factory=dict, description="Lowercase username to color name")
    default_color: str = "gray"

    @validator('stations')
    def validate_stations(cls, v):
        keys = [station.key for station in v]
        missing = [station.value for station in Station if station.value not in keys]
        if missing:
            raise ValueError(f'Layout is missing stations: {", ".join(missing)}')
        if len(set(keys)) != len(keys):
            raise ValueError('Station keys must be unique')
        return v

    @validator('user_colors')
    def normalize_user_colors(cls, v):
        return {name.lower(): color for name, color in v.items()}


class OrderChip(BaseModel):
    position: int = Field(..., description="1-based position in the intake queue")
    order_id: str
    order_number: str
    patient_name: str
    status: str
    status_label: str
    assigned_username: Optional[str]
    color: str


class StationView(BaseModel):
    key: str
    title: str
    count: int
    orders: list[OrderChip]


class FloorResponse(BaseModel):
    stations: list[StationView]
    total_orders: int
