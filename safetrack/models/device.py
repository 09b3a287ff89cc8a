"""
Device telemetry data models.

This module defines the reading produced for each device on every poll and
the cached telemetry snapshot layout.

Models:
    DeviceReading: One device's location, vital sign, and status snapshot
    DeviceCache: Read-through cache entry for the latest poll
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from safetrack.models.timestamps import parse_timestamp


class DeviceReading(BaseModel):
    """
    Telemetry snapshot for a single device.

    Readings are replaced wholesale on every successful fetch and never
    mutated in place.

    Attributes:
        id: Device identifier.
        timestamp: ISO-8601 time the device reported.
        location: Free-text location.
        latitude: Latitude in degrees.
        longitude: Longitude in degrees.
        panicstatus: Panic button pressed.
        fallstatus: Fall detected.
        heartbeat: Heart rate in beats per minute.

    Example:
        >>> reading = DeviceReading(
        ...     id="band-7",
        ...     timestamp="2024-05-01T12:30:00.000Z",
        ...     location="Warehouse B",
        ...     latitude=12.97,
        ...     longitude=77.59,
        ...     panicstatus=True,
        ...     fallstatus=False,
        ...     heartbeat=104,
        ... )
    """

    model_config = {"frozen": True, "extra": "ignore"}

    id: str = Field(..., min_length=1, description="Device identifier")
    timestamp: str = Field(..., description="ISO-8601 report time")
    location: str = Field(default="", description="Free-text location")
    latitude: float = Field(default=0.0, description="Latitude in degrees")
    longitude: float = Field(default=0.0, description="Longitude in degrees")
    panicstatus: bool = Field(default=False, description="Panic button pressed")
    fallstatus: bool = Field(default=False, description="Fall detected")
    heartbeat: int = Field(default=0, description="Heart rate (BPM)")

    @property
    def has_emergency_flag(self) -> bool:
        """Check whether either status flag is raised."""
        return self.panicstatus or self.fallstatus

    @property
    def parsed_timestamp(self) -> Optional[datetime]:
        return parse_timestamp(self.timestamp)


class DeviceCache(BaseModel):
    """
    Cached result of the latest telemetry fetch.

    Attributes:
        data: Readings returned by the fetch.
        timestamp: Epoch milliseconds when the entry was written.
        last_update: ISO-8601 time of the fetch (``lastUpdate`` on the wire).
    """

    model_config = {"populate_by_name": True, "extra": "ignore"}

    data: List[DeviceReading] = Field(default_factory=list)
    timestamp: int = Field(..., description="Epoch ms when cached")
    last_update: str = Field(..., alias="lastUpdate")
