"""CRC-8 calculation for Balboa protocol frames."""

CRC_INIT = 0x02
CRC_POLY = 0x07
CRC_FINAL_XOR = 0x02


def _build_table() -> list[int]:
    table = []
    for dividend in range(256):
        crc = dividend
        for _ in range(8):
            if crc & 0x80:
                crc = ((crc << 1) ^ CRC_POLY) & 0xFF
            else:
                crc = (crc << 1) & 0xFF
        table.append(crc)
    return table


CRC_TABLE = _build_table()


def calculate_crc8(frame: bytes) -> int:
    """
    Calculate the CRC-8 of a candidate frame.

    The checksum covers the length byte, the message type and the payload,
    i.e. everything between the leading separator and the trailing CRC byte.
    The buffer passed in is the whole frame, separators included.

    Args:
        frame: Complete frame bytes (``[SEP, LEN, TYPE x3, PAYLOAD..., CRC, SEP]``)

    Returns:
        8-bit CRC value

    Raises:
        ValueError: If the buffer is empty

    Example:
        >>> hex(calculate_crc8(bytes.fromhex("7e050abf04777e")))
        '0x77'
    """
    if not frame:
        raise ValueError("Cannot calculate CRC for an empty buffer")

    crc = CRC_INIT
    for byte in frame[1:-2]:
        crc = CRC_TABLE[(byte ^ crc) & 0xFF]

    return crc ^ CRC_FINAL_XOR


def verify_crc8(frame: bytes) -> bool:
    """
    Verify the CRC byte of a complete frame.

    Args:
        frame: Complete frame bytes, separators included

    Returns:
        True if the CRC byte (second to last) matches, False otherwise
    """
    if len(frame) < 2:
        return False
    return calculate_crc8(frame) == frame[-2]
