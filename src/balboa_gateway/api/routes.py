"""API route handlers."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException

from balboa_gateway.api.dependencies import get_cache, get_handler
from balboa_gateway.core.cache import SpaStateCache
from balboa_gateway.core.models import (
    BabbleRequest,
    CommandResponse,
    ConfigurationResponse,
    ErrorResponse,
    ItemsResponse,
    SpaItem,
    StatusResponse,
    SwitchRequest,
    TemperatureRequest,
    TemperatureScaleRequest,
    TimeRequest,
)
from balboa_gateway.protocol.constants import ItemType, SettingsType
from balboa_gateway.protocol.exceptions import NotConnectedError
from balboa_gateway.protocol.handler import ProtocolHandler

router = APIRouter(prefix="/api")

COMMAND_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def _name(value) -> str:
    """Enum member name, or the raw value for codes without a member."""
    return getattr(value, "name", str(value))


def _require_connected(handler: ProtocolHandler) -> None:
    if not handler.connected:
        raise HTTPException(status_code=503, detail="Spa not connected")


async def _get_item(cache: SpaStateCache, item_id: str) -> SpaItem:
    item = await cache.get_item(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail=f"Item not found: {item_id}")
    return item


@router.get("/status", response_model=StatusResponse)
async def get_status(
    cache: SpaStateCache = Depends(get_cache),
    handler: ProtocolHandler = Depends(get_handler),
):
    """Get the latest status reported by the spa."""
    _require_connected(handler)

    status = await cache.get_status()
    if status is None:
        raise HTTPException(status_code=503, detail="No status received yet")

    items = await cache.get_items()

    return StatusResponse(
        timestamp=cache.last_update or datetime.now(),
        connection_state=cache.state.value,
        celsius=status.celsius,
        current_temperature=status.current_temperature,
        target_temperature=status.target_temperature,
        temperature_high_range=status.temperature_high_range,
        time=f"{status.time_hour:02d}:{status.time_minute:02d}",
        time_24h=status.time_24h,
        ready_state=_name(status.ready_state),
        filter_state=_name(status.filter_state),
        heat_state=_name(status.heat_state),
        priming=status.priming,
        circulation=status.circulation,
        items={item.id: item.value for item in items},
    )


@router.get("/configuration", response_model=ConfigurationResponse)
async def get_configuration(
    cache: SpaStateCache = Depends(get_cache),
    handler: ProtocolHandler = Depends(get_handler),
):
    """Get the panel configuration of the spa."""
    _require_connected(handler)

    config = await cache.get_configuration()
    if config is None:
        raise HTTPException(status_code=503, detail="Panel configuration not received yet")

    return ConfigurationResponse(
        pumps=list(config.pumps),
        lights=list(config.lights),
        aux=list(config.aux),
        blower=config.blower,
        mister=config.mister,
        circulation=config.circulation,
    )


@router.get("/items", response_model=ItemsResponse)
async def get_items(
    cache: SpaStateCache = Depends(get_cache),
    handler: ProtocolHandler = Depends(get_handler),
):
    """Get all configured items with their current values."""
    _require_connected(handler)

    return ItemsResponse(
        timestamp=cache.last_update or datetime.now(),
        items=await cache.get_items(),
    )


@router.post("/items/{item_id}/toggle", response_model=CommandResponse, responses=COMMAND_RESPONSES)
async def toggle_item(
    item_id: str,
    cache: SpaStateCache = Depends(get_cache),
    handler: ProtocolHandler = Depends(get_handler),
):
    """Toggle an item. Two-speed items cycle through their speeds."""
    _require_connected(handler)

    item = await _get_item(cache, item_id)

    try:
        handler.toggle(ItemType.from_key(item.item_type), item.index)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    except NotConnectedError:
        raise HTTPException(status_code=503, detail="Spa not connected") from None

    return CommandResponse(command="toggle", detail={"item": item.id, "old_value": item.value})


@router.post("/items/{item_id}", response_model=CommandResponse, responses=COMMAND_RESPONSES)
async def switch_item(
    item_id: str,
    request: SwitchRequest,
    cache: SpaStateCache = Depends(get_cache),
    handler: ProtocolHandler = Depends(get_handler),
):
    """Switch an on/off item on or off."""
    _require_connected(handler)

    item = await _get_item(cache, item_id)
    if item.speeds != 1:
        raise HTTPException(status_code=400, detail=f"Item {item_id} has two speeds, use toggle")

    try:
        toggled = await handler.switch(ItemType.from_key(item.item_type), item.index, request.on)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    except NotConnectedError:
        raise HTTPException(status_code=503, detail="Spa not connected") from None

    return CommandResponse(command="switch", detail={"item": item.id, "on": request.on, "toggled": toggled})


@router.post("/temperature", response_model=CommandResponse, responses=COMMAND_RESPONSES)
async def set_temperature(
    request: TemperatureRequest,
    handler: ProtocolHandler = Depends(get_handler),
):
    """Set the target temperature. Out-of-range values are clamped."""
    _require_connected(handler)

    try:
        target = await handler.set_temperature(request.target)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    except NotConnectedError:
        raise HTTPException(status_code=503, detail="Spa not connected") from None

    return CommandResponse(command="set_temperature", detail={"target": target})


@router.post("/temperature-scale", response_model=CommandResponse, responses=COMMAND_RESPONSES)
async def set_temperature_scale(
    request: TemperatureScaleRequest,
    handler: ProtocolHandler = Depends(get_handler),
):
    """Switch between Celsius and Fahrenheit."""
    _require_connected(handler)

    try:
        handler.set_temperature_scale(request.celsius)
    except NotConnectedError:
        raise HTTPException(status_code=503, detail="Spa not connected") from None

    return CommandResponse(command="set_temperature_scale", detail={"celsius": request.celsius})


@router.post("/time", response_model=CommandResponse, responses=COMMAND_RESPONSES)
async def set_time(
    request: TimeRequest,
    handler: ProtocolHandler = Depends(get_handler),
):
    """Set the spa clock."""
    _require_connected(handler)

    try:
        await handler.set_time(request.hour, request.minute, request.display_24h)
    except NotConnectedError:
        raise HTTPException(status_code=503, detail="Spa not connected") from None

    return CommandResponse(command="set_time", detail={"hour": request.hour, "minute": request.minute})


@router.post("/settings/{settings_type}", response_model=CommandResponse, responses=COMMAND_RESPONSES)
async def request_settings(
    settings_type: str,
    handler: ProtocolHandler = Depends(get_handler),
):
    """Ask the spa to report one class of settings."""
    _require_connected(handler)

    try:
        selected = SettingsType[settings_type.upper()]
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown settings type: {settings_type}") from None

    try:
        handler.request_settings(selected)
    except NotConnectedError:
        raise HTTPException(status_code=503, detail="Spa not connected") from None

    return CommandResponse(command="request_settings", detail={"settings_type": selected.name.lower()})


@router.post("/babble", response_model=CommandResponse)
async def set_babble_suppression(
    request: BabbleRequest,
    handler: ProtocolHandler = Depends(get_handler),
):
    """Enable or disable dropping of repeated status frames."""
    handler.set_babble_suppression(request.enabled)
    return CommandResponse(command="set_babble_suppression", detail={"enabled": request.enabled})


@router.get("/stats")
async def get_stats(
    handler: ProtocolHandler = Depends(get_handler),
):
    """Get reader and writer statistics of the current connection."""
    connection = handler.connection
    return {
        "connection_state": connection.state.value,
        "detail": connection.detail,
        "babble_suppression": connection.babble_suppression,
        **connection.stats,
    }
