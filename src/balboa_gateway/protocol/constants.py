"""Protocol constants for Balboa control unit communication."""

from enum import Enum, IntEnum

# ============================================================================
# Frame Structure
# ============================================================================

SEPARATOR = 0x7E
FRAME_OVERHEAD = 5  # LEN(1) + TYPE(3) + CRC(1), counted by the length byte
FRAME_MIN_LEN = FRAME_OVERHEAD + 2  # plus both separators
MAX_PAYLOAD_LEN = 0xFF - FRAME_OVERHEAD

# ============================================================================
# Connection
# ============================================================================

DEFAULT_PORT = 4257
RECONNECT_INTERVAL = 10.0

# ============================================================================
# Device limits
# ============================================================================

MAX_PUMPS = 6
MAX_LIGHTS = 2
MAX_AUX = 2

# ============================================================================
# Message Types
# ============================================================================


class MessageType(IntEnum):
    """24-bit message type codes (big-endian on the wire)."""

    # Inbound
    STATUS_UPDATE = 0xFFAF13
    INFORMATION_RESPONSE = 0x0ABF24
    PANEL_CONFIGURATION_RESPONSE = 0x0ABF2E

    # Outbound
    CONFIGURATION_REQUEST = 0x0ABF04
    TOGGLE_ITEM = 0x0ABF11
    SET_TEMPERATURE = 0x0ABF20
    SET_TIME = 0x0ABF21
    SETTINGS_REQUEST = 0x0ABF22
    SET_TEMPERATURE_SCALE = 0x0ABF27


# ============================================================================
# Items
# ============================================================================


class ItemType(Enum):
    """Items that can be read and, unless read-only, toggled.

    Each member carries the protocol address used by the toggle command and
    the number of instances the control unit supports. Read-only items have
    address zero.
    """

    PUMP = ("pump", 0x04, MAX_PUMPS)
    LIGHT = ("light", 0x11, MAX_LIGHTS)
    AUX = ("aux", 0x16, MAX_AUX)
    BLOWER = ("blower", 0x0C, 1)
    MISTER = ("mister", 0x0E, 1)
    TEMPERATURE_RANGE = ("temperature_range", 0x50, 1)
    HEAT_MODE = ("heat_mode", 0x51, 1)
    HOLD_MODE = ("hold_mode", 0x3C, 1)
    PRIMING = ("priming", 0x00, 1)
    HEATER = ("heater", 0x00, 1)
    CIRCULATION = ("circulation", 0x00, 1)

    def __init__(self, key: str, address: int, count: int):
        self.key = key
        self.address = address
        self.count = count

    @property
    def read_only(self) -> bool:
        """Whether the item can only be observed."""
        return self.address == 0x00

    @classmethod
    def from_key(cls, key: str) -> "ItemType":
        """Look up an item by its lowercase key (e.g. ``"pump"``)."""
        for item in cls:
            if item.key == key:
                return item
        raise ValueError(f"Unknown item type: {key}")


class SettingsType(Enum):
    """Settings classes selectable with a settings request."""

    PANEL = b"\x00\x00\x01"
    FILTER_CYCLES = b"\x01\x00\x00"
    INFORMATION = b"\x02\x00\x00"
    PREFERENCES = b"\x08\x00\x00"
    # Latest fault log entry only
    FAULT_LOG = b"\x20\xff\x00"


class Capability(IntEnum):
    """Capability codes reported by the panel configuration."""

    ABSENT = 0
    ONE_SPEED = 1
    TWO_SPEED = 2


class ReadyState(IntEnum):
    """Ready state reported in status updates."""

    READY = 0
    REST = 1
    READY_IN_REST = 3


class FilterState(IntEnum):
    """Filter cycle state reported in status updates."""

    OFF = 0
    CYCLE_1 = 1
    CYCLE_2 = 2
    BOTH = 3


class HeatState(IntEnum):
    """Heater state reported in status updates."""

    OFF = 0
    LOW = 1
    HIGH = 2


# ============================================================================
# Temperature limits
# ============================================================================

# (celsius, high_range) -> (low, high)
TEMPERATURE_LIMITS = {
    (True, False): (10.0, 26.0),
    (True, True): (26.5, 40.0),
    (False, False): (50.0, 80.0),
    (False, True): (79.0, 104.0),
}

# Raw temperature byte meaning "no reliable reading"
TEMPERATURE_UNKNOWN = 0xFF
