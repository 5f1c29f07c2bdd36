"""Worker signals and the fixed expectations a passing run must meet."""

from enum import IntEnum


class Signal(IntEnum):
    UPDATE = 0      # One delivery event observed by the receiver
    SENT = 1        # The broadcast was submitted by the sender


NEEDED_UPDATES = 2
NEEDED_SENT = 1

DEFAULT_PAYLOAD = bytes([0, 1, 2, 3])
