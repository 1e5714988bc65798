"""Typed messages exchanged with a Balboa control unit.

Inbound messages are decoded from validated frames through an explicit
registry keyed by message type. Registered lengths are whole-frame sizes
(separators included), and the bit offsets below are given as frame offsets,
the way the control unit's messages are usually documented. Payload offset
is frame offset minus 5.

Outbound messages know their message type and how to build their payload.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import ClassVar

from balboa_gateway.protocol.constants import (
    MAX_AUX,
    MAX_LIGHTS,
    MAX_PUMPS,
    TEMPERATURE_LIMITS,
    TEMPERATURE_UNKNOWN,
    Capability,
    FilterState,
    HeatState,
    ItemType,
    MessageType,
    ReadyState,
    SettingsType,
)
from balboa_gateway.protocol.frames import Frame

logger = logging.getLogger(__name__)

HEADER_LEN = 5  # SEP + LEN + TYPE(3)


def _temperature(raw: int, celsius: bool) -> float | None:
    """Scale a raw temperature byte, None when the unit has no reading."""
    if raw == TEMPERATURE_UNKNOWN:
        return None
    return raw * (0.5 if celsius else 1.0)


def _bits(value: int, shift: int, width: int = 2) -> int:
    return (value >> shift) & ((1 << width) - 1)


def _enum_or_raw(enum_cls, value: int):
    try:
        return enum_cls(value)
    except ValueError:
        return value


# ============================================================================
# Inbound messages
# ============================================================================


@dataclass(frozen=True)
class StatusUpdateMessage:
    """Periodic status report from the control unit.

    Frame layout (offsets into the 34-byte frame):
        6   bit 0: priming
        7   current temperature
        8   hour
        9   minute
        10  bits 0-1: ready state
        14  bit 0: celsius, bit 1: 24h clock, bits 2-3: filter state
        15  bit 2: high temperature range, bits 4-5: heat state
        16  pumps 0-3, two bits each (pump 0 in the low bits)
        17  pumps 4-5
        18  bit 1: circulation, bits 2-3: blower
        19  lights, two bits each
        20  bit 0: mister, bits 3-4: aux 0-1
        25  target temperature
    """

    MESSAGE_TYPE: ClassVar[int] = MessageType.STATUS_UPDATE
    MESSAGE_LENGTH: ClassVar[int] = 34

    celsius: bool
    time_24h: bool
    time_hour: int
    time_minute: int
    current_temperature: float | None
    target_temperature: float | None
    ready_state: ReadyState | int
    filter_state: FilterState
    heat_state: HeatState | int
    temperature_high_range: bool
    priming: bool
    circulation: bool
    mister: bool
    blower: int
    pumps: tuple[int, ...] = field(default=(0,) * MAX_PUMPS)
    lights: tuple[int, ...] = field(default=(0,) * MAX_LIGHTS)
    aux: tuple[bool, ...] = field(default=(False,) * MAX_AUX)

    @classmethod
    def from_payload(cls, payload: bytes) -> "StatusUpdateMessage":
        """Decode a status update payload."""

        def byte(offset: int) -> int:
            return payload[offset - HEADER_LEN]

        # The scale decides how temperature bytes are read
        celsius = bool(byte(14) & 0x01)

        return cls(
            celsius=celsius,
            time_24h=bool(byte(14) & 0x02),
            time_hour=byte(8),
            time_minute=byte(9),
            current_temperature=_temperature(byte(7), celsius),
            target_temperature=_temperature(byte(25), celsius),
            ready_state=_enum_or_raw(ReadyState, _bits(byte(10), 0)),
            filter_state=FilterState(_bits(byte(14), 2)),
            heat_state=_enum_or_raw(HeatState, _bits(byte(15), 4)),
            temperature_high_range=bool(byte(15) & 0x04),
            priming=bool(byte(6) & 0x01),
            circulation=bool(byte(18) & 0x02),
            mister=bool(byte(20) & 0x01),
            blower=_bits(byte(18), 2),
            pumps=tuple(_bits(byte(16 + i // 4), (i % 4) * 2) for i in range(MAX_PUMPS)),
            lights=tuple(_bits(byte(19), i * 2) for i in range(MAX_LIGHTS)),
            aux=tuple(bool(byte(20) & (0x08 << i)) for i in range(MAX_AUX)),
        )

    def get_item(self, item: ItemType, index: int = 0) -> int:
        """Return the raw state of an item.

        Out-of-range indices return 0. Heat and hold modes are not reported
        by the status update and always return 0.
        """
        if item is ItemType.PUMP:
            return self.pumps[index] if 0 <= index < MAX_PUMPS else 0
        if item is ItemType.LIGHT:
            return self.lights[index] if 0 <= index < MAX_LIGHTS else 0
        if item is ItemType.AUX:
            return int(self.aux[index]) if 0 <= index < MAX_AUX else 0
        if item is ItemType.BLOWER:
            return self.blower
        if item is ItemType.MISTER:
            return int(self.mister)
        if item is ItemType.TEMPERATURE_RANGE:
            return int(self.temperature_high_range)
        if item is ItemType.CIRCULATION:
            return int(self.circulation)
        if item is ItemType.HEATER:
            return int(self.heat_state)
        if item is ItemType.PRIMING:
            return int(self.priming)
        return 0

    def get_temperature(self, target: bool = False) -> float | None:
        """Return the target or current temperature in the display scale."""
        return self.target_temperature if target else self.current_temperature


@dataclass(frozen=True)
class InformationResponseMessage:
    """Reply to an information settings request. Content is kept opaque."""

    MESSAGE_TYPE: ClassVar[int] = MessageType.INFORMATION_RESPONSE
    MESSAGE_LENGTH: ClassVar[int] = 28

    payload: bytes

    @classmethod
    def from_payload(cls, payload: bytes) -> "InformationResponseMessage":
        return cls(payload=bytes(payload))


@dataclass(frozen=True)
class PanelConfigurationMessage:
    """One-time capability manifest reported after connecting.

    Frame layout (offsets into the 13-byte frame):
        5   pumps 0-3, two bits each
        6   bits 2-3: pump 4, bits 6-7: pump 5
        7   bits 0-1: light 0, bits 6-7: light 1
        8   bits 0-1: blower, bits 6-7: circulation
        9   bit 0: aux 0, bit 1: aux 1, bits 4-5: mister
    """

    MESSAGE_TYPE: ClassVar[int] = MessageType.PANEL_CONFIGURATION_RESPONSE
    MESSAGE_LENGTH: ClassVar[int] = 13

    pumps: tuple[int, ...]
    lights: tuple[int, ...]
    aux: tuple[bool, ...]
    blower: int
    mister: int
    circulation: int

    @classmethod
    def from_payload(cls, payload: bytes) -> "PanelConfigurationMessage":
        """Decode a panel configuration payload."""

        def byte(offset: int) -> int:
            return payload[offset - HEADER_LEN]

        pumps = (
            _bits(byte(5), 0),
            _bits(byte(5), 2),
            _bits(byte(5), 4),
            _bits(byte(5), 6),
            _bits(byte(6), 2),
            _bits(byte(6), 6),
        )
        lights = (_bits(byte(7), 0), _bits(byte(7), 6))
        aux = (bool(byte(9) & 0x01), bool(byte(9) & 0x02))

        message = cls(
            pumps=pumps,
            lights=lights,
            aux=aux,
            blower=_bits(byte(8), 0),
            mister=_bits(byte(9), 4),
            circulation=_bits(byte(8), 6),
        )
        logger.debug(
            "Panel configuration %s: pumps=%s lights=%s aux=%s blower=%d mister=%d circulation=%d",
            payload[:5].hex(),
            pumps,
            lights,
            aux,
            message.blower,
            message.mister,
            message.circulation,
        )
        return message

    def get_pump(self, index: int) -> int:
        """Capability code of pump ``index`` (0 when out of range)."""
        return self.pumps[index] if 0 <= index < MAX_PUMPS else Capability.ABSENT

    def get_light(self, index: int) -> int:
        """Capability code of light ``index`` (0 when out of range)."""
        return self.lights[index] if 0 <= index < MAX_LIGHTS else Capability.ABSENT

    def get_aux(self, index: int) -> bool:
        """Whether aux ``index`` exists (False when out of range)."""
        return self.aux[index] if 0 <= index < MAX_AUX else False


@dataclass(frozen=True)
class UnknownMessage:
    """A message type without a registered decoder."""

    message_type: int
    payload: bytes


InboundMessage = StatusUpdateMessage | InformationResponseMessage | PanelConfigurationMessage | UnknownMessage

# message type -> (expected frame size, decoder)
DECODERS: dict[int, tuple[int, Callable[[bytes], InboundMessage]]] = {
    StatusUpdateMessage.MESSAGE_TYPE: (StatusUpdateMessage.MESSAGE_LENGTH, StatusUpdateMessage.from_payload),
    InformationResponseMessage.MESSAGE_TYPE: (
        InformationResponseMessage.MESSAGE_LENGTH,
        InformationResponseMessage.from_payload,
    ),
    PanelConfigurationMessage.MESSAGE_TYPE: (
        PanelConfigurationMessage.MESSAGE_LENGTH,
        PanelConfigurationMessage.from_payload,
    ),
}


def decode_message(frame: Frame) -> InboundMessage | None:
    """
    Turn a validated frame into a typed message.

    Args:
        frame: Frame that passed separator, length and CRC checks.

    Returns:
        The decoded message, an UnknownMessage for unregistered types, or
        None when a registered type arrives with the wrong length.
    """
    entry = DECODERS.get(frame.message_type)
    if entry is None:
        logger.debug("Unrecognized message type 0x%06X: %s", frame.message_type, frame.payload.hex())
        return UnknownMessage(message_type=frame.message_type, payload=frame.payload)

    expected_size, decoder = entry
    if frame.size != expected_size:
        logger.debug(
            "Frame length %d is not appropriate for type 0x%06X, expected %d",
            frame.size,
            frame.message_type,
            expected_size,
        )
        return None

    return decoder(frame.payload)


# ============================================================================
# Undocumented bits
# ============================================================================

# Bits of the status frame with no known meaning
# fmt: off
STATUS_UNKNOWN_MASK = bytes(
    [
        0b00000000, 0b00000000, 0b00000000, 0b00000000, 0b00000000, 0b11111111, 0b11111110, 0b00000000,
        0b00000000, 0b00000000, 0b11111100, 0b11111111, 0b11111111, 0b11111111, 0b11110000, 0b11001011,
        0b00000000, 0b00111100, 0b11110001, 0b11110000, 0b11100110, 0b11111111, 0b11111111, 0b11111111,
        0b11111111, 0b00000000, 0b11111111, 0b11111111, 0b11111111, 0b11111111, 0b11111111, 0b11111111,
        0b00000000, 0b00000000,
    ]
)
# fmt: on

UNKNOWN_MASKS: dict[int, bytes] = {
    MessageType.STATUS_UPDATE: STATUS_UNKNOWN_MASK,
}


class UnknownBitsTracer:
    """Logs changes on undocumented bits, one history per connection."""

    def __init__(self) -> None:
        self._last: dict[int, bytes] = {}

    def trace(self, message_type: int, frame_data: bytes) -> bytes | None:
        """Log the masked frame if undocumented bits changed.

        Returns the masked bytes when a change was logged, None otherwise.
        """
        mask = UNKNOWN_MASKS.get(message_type)
        if mask is None or len(mask) != len(frame_data):
            return None
        if not logger.isEnabledFor(logging.DEBUG):
            return None

        masked = bytes(b & m for b, m in zip(frame_data, mask))
        last = self._last.get(message_type)
        if last == masked:
            return None
        self._last[message_type] = masked

        if last is None:
            changed = []
        else:
            changed = [i for i, (a, b) in enumerate(zip(last, masked)) if a != b]
        logger.debug("Changes on unknown bits of 0x%06X: %s (bytes %s)", message_type, masked.hex(), changed)
        return masked

    def reset(self) -> None:
        self._last.clear()


# ============================================================================
# Outbound messages
# ============================================================================


class OutboundMessage:
    """Base for messages that can be sent to the control unit."""

    MESSAGE_TYPE: ClassVar[int] = 0

    def payload(self) -> bytes:
        raise NotImplementedError

    def to_frame(self) -> Frame:
        return Frame(self.MESSAGE_TYPE, self.payload())

    def to_bytes(self) -> bytes:
        return self.to_frame().to_bytes()


@dataclass(frozen=True)
class ConfigurationRequestMessage(OutboundMessage):
    """Queries the device for its configuration."""

    MESSAGE_TYPE: ClassVar[int] = MessageType.CONFIGURATION_REQUEST

    def payload(self) -> bytes:
        return b""


@dataclass(frozen=True)
class SettingsRequestMessage(OutboundMessage):
    """Queries the device for one class of settings."""

    MESSAGE_TYPE: ClassVar[int] = MessageType.SETTINGS_REQUEST

    settings_type: SettingsType

    def payload(self) -> bytes:
        return self.settings_type.value


@dataclass(frozen=True)
class ToggleMessage(OutboundMessage):
    """Toggles the state of an item.

    Raises:
        ValueError: If the item is read-only or the index is out of bounds.
    """

    MESSAGE_TYPE: ClassVar[int] = MessageType.TOGGLE_ITEM

    item: ItemType
    index: int = 0

    def __post_init__(self) -> None:
        if self.item.read_only:
            raise ValueError(f"Attempt to toggle read-only item {self.item.name}")
        if not 0 <= self.index < self.item.count:
            raise ValueError(f"Index {self.index} out of bounds for {self.item.name} (0-{self.item.count - 1})")

    def payload(self) -> bytes:
        return bytes([self.item.address + self.index, 0x00])


@dataclass(frozen=True)
class SetTemperatureMessage(OutboundMessage):
    """Sets the target temperature.

    The target is clamped into the valid range for the scale and range
    combination. Celsius is sent in half degrees.
    """

    MESSAGE_TYPE: ClassVar[int] = MessageType.SET_TEMPERATURE

    target: float
    celsius: bool
    high_range: bool

    @property
    def limits(self) -> tuple[float, float]:
        return TEMPERATURE_LIMITS[(self.celsius, self.high_range)]

    @property
    def clamped_target(self) -> float:
        """Target temperature after clamping into the valid range."""
        low, high = self.limits
        return min(max(self.target, low), high)

    def payload(self) -> bytes:
        multiplier = 2 if self.celsius else 1
        return bytes([int(self.clamped_target * multiplier) & 0xFF])


@dataclass(frozen=True)
class SetTemperatureScaleMessage(OutboundMessage):
    """Sets the display temperature scale."""

    MESSAGE_TYPE: ClassVar[int] = MessageType.SET_TEMPERATURE_SCALE

    celsius: bool

    def payload(self) -> bytes:
        return bytes([0x01, 0x01 if self.celsius else 0x00])


@dataclass(frozen=True)
class SetTimeMessage(OutboundMessage):
    """Sets the clock. The hour is always given in 24h format."""

    MESSAGE_TYPE: ClassVar[int] = MessageType.SET_TIME

    hour: int
    minute: int
    display_24h: bool = False

    def payload(self) -> bytes:
        hour = min(max(self.hour, 0), 23)
        minute = min(max(self.minute, 0), 59)
        if self.display_24h:
            hour |= 0x80
        return bytes([hour, minute])
