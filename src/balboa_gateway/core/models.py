"""Data models for the Balboa gateway."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SpaItem(BaseModel):
    """A controllable item reported by the panel configuration."""

    id: str = Field(..., min_length=1, description="Item identifier (e.g. pump-1)")
    label: str = Field(..., description="Human readable description")
    item_type: str = Field(..., description="Item type key (pump, light, aux, blower, mister)")
    index: int = Field(..., ge=0, description="Zero-based index within the item type")
    speeds: int = Field(..., ge=1, le=2, description="1 for on/off items, 2 for two-speed items")
    value: str | None = Field(None, description="OFF/ON or OFF/LOW/HIGH, None until a status is received")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "pump-1",
                "label": "Jet Pump 1, two-speed",
                "item_type": "pump",
                "index": 0,
                "speeds": 2,
                "value": "LOW",
            }
        }
    )


# ============================================================================
# API Request/Response Models
# ============================================================================


class StatusResponse(BaseModel):
    """Response model for GET /api/status."""

    timestamp: datetime = Field(..., description="Timestamp of the status snapshot")
    connection_state: str = Field(..., description="Connection state")
    celsius: bool = Field(..., description="Whether temperatures are in Celsius")
    current_temperature: float | None = Field(None, description="Water temperature, None if unknown")
    target_temperature: float | None = Field(None, description="Target temperature, None if unknown")
    temperature_high_range: bool = Field(..., description="Whether the high temperature range is active")
    time: str = Field(..., description="Control unit clock (HH:MM)")
    time_24h: bool = Field(..., description="Whether the panel displays 24h time")
    ready_state: str = Field(..., description="Ready state (READY, REST, READY_IN_REST)")
    filter_state: str = Field(..., description="Filter cycle state")
    heat_state: str = Field(..., description="Heater state (OFF, LOW, HIGH)")
    priming: bool = Field(..., description="Whether the unit is priming")
    circulation: bool = Field(..., description="Whether the circulation pump runs")
    items: dict[str, str | None] = Field(default_factory=dict, description="Item values keyed by item id")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "timestamp": "2026-01-13T10:30:00",
                "connection_state": "online",
                "celsius": True,
                "current_temperature": 37.5,
                "target_temperature": 38.0,
                "temperature_high_range": True,
                "time": "10:30",
                "time_24h": True,
                "ready_state": "READY",
                "filter_state": "CYCLE_1",
                "heat_state": "OFF",
                "priming": False,
                "circulation": True,
                "items": {"pump-1": "LOW", "light-1": "ON"},
            }
        }
    )


class ConfigurationResponse(BaseModel):
    """Response model for GET /api/configuration."""

    pumps: list[int] = Field(..., description="Capability code per pump (0 absent, 1 one-speed, 2 two-speed)")
    lights: list[int] = Field(..., description="Capability code per light")
    aux: list[bool] = Field(..., description="Presence per aux channel")
    blower: int = Field(..., ge=0, description="Blower capability code")
    mister: int = Field(..., ge=0, description="Mister capability code")
    circulation: int = Field(..., ge=0, description="Circulation pump code")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "pumps": [2, 1, 0, 0, 0, 0],
                "lights": [1, 0],
                "aux": [False, False],
                "blower": 0,
                "mister": 0,
                "circulation": 1,
            }
        }
    )


class ItemsResponse(BaseModel):
    """Response model for GET /api/items."""

    timestamp: datetime = Field(default_factory=datetime.now, description="Timestamp of the item snapshot")
    items: list[SpaItem] = Field(default_factory=list, description="Configured items")


class SwitchRequest(BaseModel):
    """Request model for POST /api/items/{item_id}."""

    on: bool = Field(..., description="Desired state of an on/off item")

    model_config = ConfigDict(json_schema_extra={"example": {"on": True}})


class TemperatureRequest(BaseModel):
    """Request model for POST /api/temperature."""

    target: float = Field(..., description="Target temperature in the current display scale")

    model_config = ConfigDict(json_schema_extra={"example": {"target": 38.0}})


class TemperatureScaleRequest(BaseModel):
    """Request model for POST /api/temperature-scale."""

    celsius: bool = Field(..., description="True for Celsius, False for Fahrenheit")


class TimeRequest(BaseModel):
    """Request model for POST /api/time."""

    hour: int = Field(..., ge=0, le=23, description="Hour (24h format)")
    minute: int = Field(..., ge=0, le=59, description="Minute")
    display_24h: bool | None = Field(None, description="Show 24h time, keeps the current setting if omitted")

    model_config = ConfigDict(json_schema_extra={"example": {"hour": 18, "minute": 45, "display_24h": True}})


class BabbleRequest(BaseModel):
    """Request model for POST /api/babble."""

    enabled: bool = Field(..., description="Drop repeated status frames while online")


class CommandResponse(BaseModel):
    """Response model for a command sent to the control unit."""

    success: bool = Field(True, description="Operation success status")
    command: str = Field(..., description="Command that was sent")
    detail: dict[str, Any] = Field(default_factory=dict, description="Effective command arguments")
    timestamp: datetime = Field(default_factory=datetime.now, description="Operation timestamp")

    @field_validator("command")
    @classmethod
    def validate_command(cls, v: str) -> str:
        """Ensure command name is not empty after stripping."""
        if not v.strip():
            raise ValueError("Command name cannot be empty")
        return v

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "command": "set_temperature",
                "detail": {"target": 38.0},
                "timestamp": "2026-01-13T10:30:00",
            }
        }
    )


class ErrorResponse(BaseModel):
    """Response model for errors."""

    success: bool = Field(False, description="Operation success status")
    error: str = Field(..., description="Error message")
    detail: str | None = Field(None, description="Additional error details")
    timestamp: datetime = Field(default_factory=datetime.now, description="Error timestamp")


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="Health status (healthy/degraded/unhealthy)")
    spa_connected: bool = Field(..., description="Whether the control unit is online")
    connection_state: str = Field(..., description="Connection state")
    detail: str = Field("", description="Detail of the last connection state change")
    last_update: datetime | None = Field(None, description="Last status update timestamp")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "spa_connected": True,
                "connection_state": "online",
                "detail": "Panel configuration received",
                "last_update": "2026-01-13T10:30:00",
            }
        }
    )
