"""Block glyphs for the scrolling CPU graph.

Block levels map onto the Unicode eighth blocks:
- level <= 0: "_" (no work observed, drawn distinctly from blank)
- level 1-8: ▁▂▃▄▅▆▇█ (one eighth per level)
- level >= 9: ▓ (saturated)
"""

from __future__ import annotations

from dataclasses import dataclass

# Every glyph occupies this many bytes in the serialized graph.
SLOT_WIDTH = 3
PLACEHOLDER = b"\x00"

ZERO_CHAR = "_"
SATURATED_CHAR = "▓"  # U+2593 DARK SHADE
# Index 0 unused; 1-8 are the eighth-block steps.
BLOCKS = " ▁▂▃▄▅▆▇█"
LEVELS = len(BLOCKS) - 1


@dataclass(frozen=True)
class Glyph:
    """One display cell: an ASCII character or a block-drawing character."""

    char: str
    filler: bool = False

    @property
    def width(self) -> int:
        """Natural UTF-8 byte width (1-3)."""
        return len(self.char.encode("utf-8"))

    def encode(self, compact: bool = False) -> bytes:
        """Encode the glyph.

        Args:
            compact: If True, return only the natural bytes. Otherwise pad on
                the left with NUL placeholders to SLOT_WIDTH so that every
                glyph in a record has the same size.
        """
        raw = self.char.encode("utf-8")
        if compact:
            return raw
        return PLACEHOLDER * (SLOT_WIDTH - len(raw)) + raw


FILLER = Glyph(" ", filler=True)
ZERO = Glyph(ZERO_CHAR)
SATURATED = Glyph(SATURATED_CHAR)
_STEPS = tuple(Glyph(c) for c in BLOCKS[1:])


def glyph_for_level(level: int) -> Glyph:
    """Map a block level to its glyph, clamping outside 0-9."""
    if level <= 0:
        return ZERO
    if level > LEVELS:
        return SATURATED
    return _STEPS[level - 1]
