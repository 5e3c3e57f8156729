from __future__ import annotations

OPEN_DELIMITER = ord("<")
CLOSE_DELIMITER = ord(">")


def split_messages(data: bytes) -> list[str]:
    """Extract the bodies of ``<...>`` framed messages from a raw payload.

    An opening ``<`` discards any message still being built, and bytes seen
    outside of a frame are dropped, so retransmit markers and padding that
    coordinators put between messages never reach the decoders.
    """
    messages: list[str] = []
    current: bytearray | None = None
    for byte in data:
        if byte == CLOSE_DELIMITER:
            if current is not None:
                messages.append(current.decode("utf-8", errors="replace"))
                current = None
            continue
        if byte == OPEN_DELIMITER:
            current = bytearray()
            continue
        if current is not None:
            current.append(byte)
    return messages
