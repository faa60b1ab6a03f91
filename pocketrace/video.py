"""Scanline renderer for the handheld's two scroll planes and sprites."""

from __future__ import annotations

from collections.abc import Callable, MutableSequence, Sequence
from dataclasses import dataclass, field

from .palette import BW_TABLE, Machine, Palette

SCREEN_WIDTH = 160
SCREEN_HEIGHT = 152
LAST_LINE = 198
SPRITE_COUNT = 64
PALETTE_ENTRIES = 192

VIDEO_BASE = 0x8000
VIDEO_END = 0xC000

WINDOW_X = 0x8002
WINDOW_Y = 0x8003
WINDOW_WIDTH = 0x8004
WINDOW_HEIGHT = 0x8005
SCANLINE = 0x8009
STATUS = 0x8010
OOW_SELECT = 0x8012
SPRITE_SCROLL_X = 0x8020
SPRITE_SCROLL_Y = 0x8021
FRAME1_PRIORITY = 0x8030
FRONT_SCROLL_X = 0x8032
FRONT_SCROLL_Y = 0x8033
BACK_SCROLL_X = 0x8034
BACK_SCROLL_Y = 0x8035
BW_PALETTE = 0x8100
BG_SELECT = 0x8118
COLOR_PALETTE = 0x8200
BG_TABLE = 0x83E0
OOW_TABLE = 0x83F0
SPRITE_TABLE = 0x8800
SPRITE_PALETTE_NUMBERS = 0x8C00
TILE_TABLE_FRONT = 0x9000
TILE_TABLE_BACK = 0x9800
PATTERN_TABLE = 0xA000

VBLANK = 0x40
FRONT_PALETTE = 64
BACK_PALETTE = 128
WRESTLING_MARKER = 0x66

PRIORITY_LOW = 0x0800
PRIORITY_MID = 0x1000
PRIORITY_HIGH = 0x1800


class VideoMemory:
    """The video register and table area of the console's address space."""

    def __init__(self) -> None:
        self.data = bytearray(VIDEO_END - VIDEO_BASE)

    def _offset(self, addr: int, width: int) -> int:
        if not VIDEO_BASE <= addr <= VIDEO_END - width:
            raise ValueError(f"address 0x{addr:X} is outside video memory")
        return addr - VIDEO_BASE

    def read_byte(self, addr: int) -> int:
        return self.data[self._offset(addr, 1)]

    def write_byte(self, addr: int, value: int) -> None:
        self.data[self._offset(addr, 1)] = value & 0xFF

    def read_word(self, addr: int) -> int:
        offset = self._offset(addr, 2)
        return self.data[offset] | (self.data[offset + 1] << 8)

    def write_word(self, addr: int, value: int) -> None:
        offset = self._offset(addr, 2)
        self.data[offset] = value & 0xFF
        self.data[offset + 1] = (value >> 8) & 0xFF


@dataclass(frozen=True)
class SpriteRef:
    """One line of one sprite: its pattern row index and the sprite number."""

    tile: int
    id: int


@dataclass(frozen=True)
class SpriteInfo:
    """Per-frame sprite attributes: flip bits, screen x and palette offset."""

    flip: int
    x: int
    pal: int


def _empty_lines() -> list[list[SpriteRef]]:
    return [[] for _ in range(SCREEN_HEIGHT)]


@dataclass
class SpriteLayers:
    """Sprite lines sorted into the three priority levels, per scanline."""

    low: list[list[SpriteRef]] = field(default_factory=_empty_lines)
    mid: list[list[SpriteRef]] = field(default_factory=_empty_lines)
    high: list[list[SpriteRef]] = field(default_factory=_empty_lines)
    sprites: list[SpriteInfo | None] = field(default_factory=lambda: [None] * SPRITE_COUNT)

    def for_priority(self, priority: int) -> list[list[SpriteRef]]:
        if priority == PRIORITY_HIGH:
            return self.high
        if priority == PRIORITY_MID:
            return self.mid
        if priority == PRIORITY_LOW:
            return self.low
        raise ValueError(f"sprite priority 0x{priority:X} is not drawn")


def _row_pixels(pattern: int, mirrored: bool) -> list[int]:
    """Pixel indices of one pattern row, leftmost first."""
    pixels = [(pattern >> (2 * k)) & 3 for k in range(8)]
    return pixels if mirrored else pixels[::-1]


def _pattern(memory: VideoMemory, index: int) -> int:
    return memory.read_word(PATTERN_TABLE + 2 * index)


def sort_sprites(memory: VideoMemory, bw: bool) -> SpriteLayers:
    """Sort the sprite table into priority layers for each visible scanline."""
    layers = SpriteLayers()
    scroll_x = memory.read_byte(SPRITE_SCROLL_X)
    scroll_y = memory.read_byte(SPRITE_SCROLL_Y)
    prev_x = prev_y = 0
    for index in range(SPRITE_COUNT):
        base = SPRITE_TABLE + 4 * index
        code = memory.read_word(base)
        prev_x = ((prev_x if code & 0x0400 else 0) + memory.read_byte(base + 2)) & 0xFF
        x = (prev_x + scroll_x) & 0xFF
        prev_y = ((prev_y if code & 0x0200 else 0) + memory.read_byte(base + 3)) & 0xFF
        y = (prev_y + scroll_y) & 0xFF
        priority = code & 0x1800
        if 167 < x < 249 or 151 < y < 249 or code <= 0xFF or priority == 0:
            continue
        if bw:
            pal = (code >> 11) & 0x04
        else:
            pal = (memory.read_byte(SPRITE_PALETTE_NUMBERS + index) & 0x0F) << 2
        layers.sprites[index] = SpriteInfo(flip=(code >> 8) & 0xFF, x=x, pal=pal)
        tile = (code & 0x01FF) << 3
        lines = layers.for_priority(priority)
        for j in range(8):
            line = (y + j) & 0xFF
            if line >= SCREEN_HEIGHT:
                continue
            row = 7 - j if code & 0x4000 else j
            lines[line].append(SpriteRef(tile + row, index))
    return layers


def draw_sprites(draw: MutableSequence[int], refs: Sequence[SpriteRef],
                 sprites: Sequence[SpriteInfo | None], memory: VideoMemory,
                 palettes: Sequence[int], x0: int, x1: int) -> None:
    """Draw one scanline's sprite rows into draw, clipped to [x0, x1)."""
    for ref in reversed(refs):
        pattern = _pattern(memory, ref.tile)
        if pattern == 0:
            continue
        sprite = sprites[ref.id]
        if sprite is None:
            continue
        cx = sprite.x - 256 if sprite.x > 248 else sprite.x
        if cx + 8 <= x0 or cx >= x1:
            continue
        for k, pix in enumerate(_row_pixels(pattern, bool(sprite.flip & 0x80))):
            pos = cx + k
            if pix and x0 <= pos < x1:
                draw[pos] = palettes[sprite.pal + pix]


def draw_scroll_plane(draw: MutableSequence[int], memory: VideoMemory, tile_base: int,
                      scroll_palette: int, dx: int, dy: int, x0: int, x1: int,
                      bw: bool, palettes: Sequence[int]) -> None:
    """Draw one scanline of a 32x32 tile plane scrolled by (dx, dy) into [x0, x1)."""
    dy &= 0xFF
    row_base = (dy >> 3) << 5
    line = dy & 7
    cache: dict[int, tuple[list[int], int]] = {}
    for x in range(x0, x1):
        sx = (dx + x) & 0xFF
        column = sx >> 3
        if column not in cache:
            tile = memory.read_word(tile_base + 2 * (row_base + column))
            row = 7 - line if tile & 0x4000 else line
            pattern = _pattern(memory, ((tile & 0x01FF) << 3) + row)
            if bw:
                offset = 4 if tile & 0x2000 else 0
            else:
                offset = (tile >> 7) & 0x3C
            cache[column] = (_row_pixels(pattern, bool(tile & 0x8000)),
                             scroll_palette + offset)
        pixels, pal = cache[column]
        pix = pixels[sx & 7]
        if pix:
            draw[x] = palettes[pal + pix]


class Renderer:
    """Renders the screen one scanline per call and drives the vertical blank."""

    def __init__(self, memory: VideoMemory, palette: Palette | None = None,
                 machine: Machine = Machine.NGPC, rom_marker: int = 0,
                 on_frame: Callable[[bool], None] | None = None) -> None:
        self.memory = memory
        self.palette = palette if palette is not None else Palette()
        self.machine = machine
        self.rom_marker = rom_marker
        self.on_frame = on_frame
        self.frame = [[0] * SCREEN_WIDTH for _ in range(SCREEN_HEIGHT)]
        self.palettes = [0] * PALETTE_ENTRIES
        self.layers = SpriteLayers()
        memory.write_byte(SCANLINE, 0)

    @property
    def bw(self) -> bool:
        return self.machine == Machine.NGP

    def _bg_colour(self, index: int) -> int:
        if self.bw:
            return BW_TABLE[index]
        return self.memory.read_word(BG_TABLE + 2 * index)

    def _oow_colour(self, index: int) -> int:
        if self.bw:
            return BW_TABLE[index]
        return self.memory.read_word(OOW_TABLE + 2 * index)

    def _update_palettes(self) -> None:
        native = self.palette.to_native
        mem = self.memory
        if self.bw:
            for start, source in ((0, 0), (4, 4), (64, 8), (68, 12), (128, 16), (132, 20)):
                for i in range(4):
                    shade = mem.read_byte(BW_PALETTE + source + i) & 0x07
                    self.palettes[start + i] = native(BW_TABLE[shade])
        else:
            self.palettes = [native(mem.read_word(COLOR_PALETTE + 2 * i))
                             for i in range(PALETTE_ENTRIES)]

    def _plane(self, draw: list[int], tile_base: int, pal: int, dx: int,
               dy: int, x0: int, x1: int) -> None:
        draw_scroll_plane(draw, self.memory, tile_base, pal, dx, dy, x0, x1,
                          self.bw, self.palettes)

    def _sprites(self, draw: list[int], lines: list[list[SpriteRef]], y: int,
                 x0: int, x1: int) -> None:
        if lines[y]:
            draw_sprites(draw, lines[y], self.layers.sprites, self.memory,
                         self.palettes, x0, x1)

    def _render_line(self, y: int) -> None:
        mem = self.memory
        native = self.palette.to_native
        draw = self.frame[y]
        oow = native(self._oow_colour(mem.read_byte(OOW_SELECT) & 0x07))
        if y == 0:
            self.layers = sort_sprites(mem, self.bw)

        top = mem.read_byte(WINDOW_Y)
        width = mem.read_byte(WINDOW_WIDTH)
        height = mem.read_byte(WINDOW_HEIGHT)
        if y < top or y > top + height or width == 0 or height == 0:
            draw[:] = [oow] * SCREEN_WIDTH
            return

        if y & 7 == 0:
            self._update_palettes()

        select = mem.read_byte(BG_SELECT)
        if select & 0x80:
            bg = native(self._bg_colour(select & 0x07))
        elif self.bw:
            bg = native(BW_TABLE[0])
        else:
            bg = native(self._bg_colour(0))

        x0 = mem.read_byte(WINDOW_X)
        x1 = min(x0 + width, SCREEN_WIDTH)
        for x in range(x0, x1):
            draw[x] = bg

        self._sprites(draw, self.layers.low, y, x0, x1)

        front_dx = mem.read_byte(FRONT_SCROLL_X)
        front_dy = mem.read_byte(FRONT_SCROLL_Y) + y
        back_dx = mem.read_byte(BACK_SCROLL_X)
        back_scroll_y = mem.read_byte(BACK_SCROLL_Y)
        back_dy = back_scroll_y + y
        if mem.read_byte(FRAME1_PRIORITY) & 0x80:
            self._plane(draw, TILE_TABLE_FRONT, FRONT_PALETTE, front_dx, front_dy, x0, x1)
            self._sprites(draw, self.layers.mid, y, x0, x1)
            if self.rom_marker == WRESTLING_MARKER and back_scroll_y == 0:
                back_dx = 1
            self._plane(draw, TILE_TABLE_BACK, BACK_PALETTE, back_dx, back_dy, x0, x1)
        else:
            self._plane(draw, TILE_TABLE_BACK, BACK_PALETTE, back_dx, back_dy, x0, x1)
            self._sprites(draw, self.layers.mid, y, x0, x1)
            self._plane(draw, TILE_TABLE_FRONT, FRONT_PALETTE, front_dx, front_dy, x0, x1)

        self._sprites(draw, self.layers.high, y, x0, x1)

        for x in range(min(x0, SCREEN_WIDTH)):
            draw[x] = oow
        for x in range(x1, SCREEN_WIDTH):
            draw[x] = oow

    def blit_line(self, render: bool) -> None:
        """Advance one scanline, drawing it when render is true."""
        mem = self.memory
        y = mem.read_byte(SCANLINE)
        if y < SCREEN_HEIGHT:
            if render:
                self._render_line(y)
            if y == SCREEN_HEIGHT - 1:
                mem.write_byte(STATUS, mem.read_byte(STATUS) | VBLANK)
                if self.on_frame is not None:
                    self.on_frame(render)
            mem.write_byte(SCANLINE, y + 1)
        elif y == LAST_LINE:
            mem.write_byte(STATUS, mem.read_byte(STATUS) & ~VBLANK)
            mem.write_byte(SCANLINE, 0)
        else:
            mem.write_byte(SCANLINE, y + 1)