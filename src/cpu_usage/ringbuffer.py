"""Fixed-capacity scrolling glyph buffer.

Holds the most recent N glyphs. The buffer starts full of filler glyphs so its
length, and the size of its serialized form, never change.
"""

from collections.abc import Iterator

from cpu_usage.sparkline import FILLER, SLOT_WIDTH, Glyph


class ScrollBuffer:
    """Ring of glyphs addressed by a head index modulo capacity.

    push() overwrites the oldest slot and advances head; nothing is shifted.
    Iteration yields oldest to newest.
    """

    def __init__(self, capacity: int = 20) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._slots: list[Glyph] = [FILLER] * capacity
        self._head = 0  # oldest slot, next to be overwritten

    def __len__(self) -> int:
        """Return capacity (the buffer is always full)."""
        return len(self._slots)

    def __iter__(self) -> Iterator[Glyph]:
        capacity = len(self._slots)
        for offset in range(capacity):
            yield self._slots[(self._head + offset) % capacity]

    @property
    def capacity(self) -> int:
        return len(self._slots)

    @property
    def glyphs(self) -> list[Glyph]:
        """Oldest-to-newest copy of the contents."""
        return list(self)

    @property
    def record_size(self) -> int:
        """Byte length of encode(), constant for the buffer's lifetime."""
        return SLOT_WIDTH * len(self._slots)

    def push(self, glyph: Glyph) -> None:
        """Append at the tail, evicting the oldest glyph."""
        self._slots[self._head] = glyph
        self._head = (self._head + 1) % len(self._slots)

    def encode(self) -> bytes:
        """Serialize every slot at the fixed slot width."""
        return b"".join(glyph.encode() for glyph in self)

    def render(self) -> str:
        """Return the visible text of the graph."""
        return "".join(glyph.char for glyph in self)
