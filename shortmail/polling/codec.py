"""Length-prefixed payload framing for the polling transport.

A payload is the concatenation of ``<N>:<packet>`` frames where ``N`` is the
UTF-8 byte length of the packet string, e.g. ``5:hello2:é``.
"""

from __future__ import annotations

from collections.abc import Iterable

_SEPARATOR = b":"


def encode_payload(packets: Iterable[str]) -> str:
    """Frame packet strings into a single payload."""
    return "".join(f"{len(packet.encode('utf-8'))}:{packet}" for packet in packets)


def decode_payload(body: str | bytes) -> list[str]:
    """Split a payload back into packet strings.

    Decoding stops at the first malformed frame and returns the packets
    collected up to that point.
    """
    data = body.encode("utf-8") if isinstance(body, str) else body
    packets: list[str] = []
    offset = 0

    while offset < len(data):
        colon = data.find(_SEPARATOR, offset)
        if colon == -1:
            break

        prefix = data[offset:colon]
        if not prefix.isdigit():
            break

        start = colon + 1
        end = start + int(prefix)
        if end > len(data):
            break

        try:
            packets.append(data[start:end].decode("utf-8"))
        except UnicodeDecodeError:
            break
        offset = end

    return packets
