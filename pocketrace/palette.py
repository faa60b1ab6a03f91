"""Colour conversion from the console's 12-bit colours to a native 16-bit pixel format."""

from __future__ import annotations

import enum
import struct

RGB565_MASKS = (0xF800, 0x07E0, 0x001F)
ABGR1555_MASKS = (0x001F, 0x03E0, 0x7C00)

BW_TABLE = (0x0FFF, 0x0DDD, 0x0BBB, 0x0999, 0x0777, 0x0555, 0x0333, 0x0000)
"""Grey levels used by monochrome software, as 12-bit colours."""

MAX_DARK_LEVEL = 100

_F32 = struct.Struct("f")


def _f32(value: float) -> float:
    """Round a value to single precision."""
    return _F32.unpack(_F32.pack(value))[0]


_LUMA_R = _f32(0.299)
_LUMA_G = _f32(0.587)
_LUMA_B = _f32(0.114)
_PERCENT = _f32(0.01)
_RGB_MAX = _f32(15.0)
_RGB_MAX_INV = _f32(1.0 / 15.0)


class Machine(enum.Enum):
    """Console model being emulated."""

    NGP = "ngp"
    NGPC = "ngpc"


def mask_layout(mask: int) -> tuple[int, int]:
    """Return (shift, bit count) of the contiguous run of set bits in a colour mask."""
    if mask <= 0:
        raise ValueError("colour mask must have at least one bit set")
    shift = (mask & -mask).bit_length() - 1
    run = mask >> shift
    bits = (~run & (run + 1)).bit_length() - 1
    return shift, bits


def darken_rgb(r: float, g: float, b: float, level: int) -> tuple[float, float, float]:
    """Scale an RGB colour in [0, 1] down by its luminosity times level percent."""
    r, g, b = _f32(r), _f32(g), _f32(b)
    luma = _f32(_f32(_f32(_LUMA_R * r) + _f32(_LUMA_G * g)) + _f32(_LUMA_B * b))
    strength = _f32(_f32(float(level)) * _PERCENT)
    factor = _f32(1.0 - _f32(strength * luma))
    if factor < 0.0:
        factor = 0.0
    return _f32(r * factor), _f32(g * factor), _f32(b * factor)


def _expand(value: int, shift: int, bits: int) -> int:
    extra = bits - 4
    return ((value << extra) + (value >> (4 - extra))) << shift


def _checked_layout(mask: int) -> tuple[int, int]:
    shift, bits = mask_layout(mask)
    if not 4 <= bits <= 8:
        raise ValueError(f"colour mask 0x{mask:X} has {bits} bits; 4 to 8 are supported")
    return shift, bits


def _dark_channel(value: float) -> int:
    return int(_f32(_f32(value * _RGB_MAX) + 0.5)) & 0xF


def build_palette(r_mask: int, g_mask: int, b_mask: int, dark_level: int = 0) -> tuple[int, ...]:
    """Map every 12-bit colour (0x0BGR) to a native pixel for the given channel masks."""
    if dark_level < 0:
        raise ValueError("dark filter level must not be negative")
    r_layout = _checked_layout(r_mask)
    g_layout = _checked_layout(g_mask)
    b_layout = _checked_layout(b_mask)
    table = []
    for b in range(16):
        for g in range(16):
            for r in range(16):
                if dark_level > 0:
                    rf, gf, bf = darken_rgb(
                        _f32(r * _RGB_MAX_INV),
                        _f32(g * _RGB_MAX_INV),
                        _f32(b * _RGB_MAX_INV),
                        dark_level,
                    )
                    rv, gv, bv = _dark_channel(rf), _dark_channel(gf), _dark_channel(bf)
                else:
                    rv, gv, bv = r, g, b
                table.append(
                    _expand(bv, *b_layout) + _expand(gv, *g_layout) + _expand(rv, *r_layout)
                )
    return tuple(table)


def pattern_pixels(byte: int) -> tuple[int, int, int, int]:
    """Split a pattern byte into its four 2-bit pixel indices, leftmost first."""
    if not 0 <= byte <= 0xFF:
        raise ValueError("pattern byte must be in 0..255")
    return (byte >> 6) & 3, (byte >> 4) & 3, (byte >> 2) & 3, byte & 3


class Palette:
    """Lookup table from 12-bit console colours to native pixels, with a dark filter."""

    def __init__(self, r_mask: int = RGB565_MASKS[0], g_mask: int = RGB565_MASKS[1],
                 b_mask: int = RGB565_MASKS[2]) -> None:
        self.masks = (r_mask, g_mask, b_mask)
        self.dark_filter_level = 0
        self.table = build_palette(r_mask, g_mask, b_mask, 0)

    def set_dark_filter_level(self, level: int) -> None:
        """Set the dark filter percentage (capped at 100) and rebuild if it changed."""
        if level < 0:
            raise ValueError("dark filter level must not be negative")
        level = min(level, MAX_DARK_LEVEL)
        if level != self.dark_filter_level:
            self.dark_filter_level = level
            self.table = build_palette(*self.masks, level)

    def to_native(self, color: int) -> int:
        """Native pixel for a console colour; only the low 12 bits are used."""
        return self.table[color & 0x0FFF]