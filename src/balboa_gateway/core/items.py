"""Items exposed for a configured control unit.

The panel configuration tells which pumps, lights, aux channels, blower and
mister exist and whether they have one or two speeds. Status updates then
give the raw state of each of them.
"""

from balboa_gateway.core.models import SpaItem
from balboa_gateway.protocol.constants import MAX_AUX, MAX_LIGHTS, MAX_PUMPS, Capability, ItemType
from balboa_gateway.protocol.messages import PanelConfigurationMessage, StatusUpdateMessage

# Raw two-speed state -> display value
TWO_SPEED_VALUES = {
    0: "OFF",
    1: "LOW",
    2: "HIGH",
}


def _item(item: ItemType, index: int, capability: int, item_id: str, name: str, unit: str) -> SpaItem | None:
    if capability == Capability.ONE_SPEED:
        return SpaItem(
            id=item_id,
            label=f"{name}, one-{unit}",
            item_type=item.key,
            index=index,
            speeds=1,
        )
    if capability == Capability.TWO_SPEED:
        return SpaItem(
            id=item_id,
            label=f"{name}, two-{unit}",
            item_type=item.key,
            index=index,
            speeds=2,
        )
    return None


def build_items(config: PanelConfigurationMessage) -> list[SpaItem]:
    """
    Build the list of items present on the control unit.

    Args:
        config: Panel configuration reported by the control unit

    Returns:
        Items ordered pumps, lights, aux, blower, mister
    """
    candidates: list[SpaItem | None] = []

    for i in range(MAX_PUMPS):
        candidates.append(_item(ItemType.PUMP, i, config.get_pump(i), f"pump-{i + 1}", f"Jet Pump {i + 1}", "speed"))

    for i in range(MAX_LIGHTS):
        candidates.append(_item(ItemType.LIGHT, i, config.get_light(i), f"light-{i + 1}", f"Light {i + 1}", "level"))

    for i in range(MAX_AUX):
        if config.get_aux(i):
            candidates.append(_item(ItemType.AUX, i, Capability.ONE_SPEED, f"aux-{i + 1}", f"AUX {i + 1}", "speed"))

    candidates.append(_item(ItemType.BLOWER, 0, config.blower, "blower", "Blower", "speed"))
    candidates.append(_item(ItemType.MISTER, 0, config.mister, "mister", "Mister", "speed"))

    return [item for item in candidates if item is not None]


def item_value(status: StatusUpdateMessage, item: SpaItem) -> str | None:
    """
    Render the state of an item from a status update.

    One-speed items read OFF or ON. Two-speed items read OFF, LOW or HIGH,
    and None for a raw state outside that set.
    """
    raw = status.get_item(ItemType.from_key(item.item_type), item.index)
    if item.speeds == 1:
        return "OFF" if raw == 0 else "ON"
    return TWO_SPEED_VALUES.get(raw)
