import pytest

from pocketrace.palette import BW_TABLE, Machine, Palette
from pocketrace.video import (
    BG_SELECT,
    COLOR_PALETTE,
    BG_TABLE,
    OOW_SELECT,
    PATTERN_TABLE,
    SCANLINE,
    SPRITE_TABLE,
    STATUS,
    TILE_TABLE_BACK,
    VBLANK,
    WINDOW_HEIGHT,
    WINDOW_WIDTH,
    WINDOW_X,
    WINDOW_Y,
    Renderer,
    SpriteInfo,
    SpriteRef,
    VideoMemory,
    draw_scroll_plane,
    draw_sprites,
    sort_sprites,
)


def _put_sprite(mem, index, code, x, y):
    base = SPRITE_TABLE + 4 * index
    mem.write_word(base, code)
    mem.write_byte(base + 2, x)
    mem.write_byte(base + 3, y)


def test_memory_word_is_little_endian_and_round_trips():
    mem = VideoMemory()
    mem.write_word(0x8800, 0x1234)
    assert mem.read_byte(0x8800) == 0x34
    assert mem.read_byte(0x8801) == 0x12
    assert mem.read_word(0x8800) == 0x1234


def test_memory_rejects_out_of_range():
    mem = VideoMemory()
    with pytest.raises(ValueError):
        mem.read_byte(0x7FFF)
    with pytest.raises(ValueError):
        mem.write_word(0xBFFF, 1)


def test_sort_sprites_skips_small_codes_and_no_priority():
    mem = VideoMemory()
    _put_sprite(mem, 0, 0x00FF, 10, 10)
    _put_sprite(mem, 1, 0x0105, 10, 10)
    layers = sort_sprites(mem, False)
    total = sum(len(line) for lines in (layers.low, layers.mid, layers.high) for line in lines)
    assert total == 0


def test_sort_sprites_spans_eight_lines():
    mem = VideoMemory()
    _put_sprite(mem, 3, 0x1801, 10, 20)
    layers = sort_sprites(mem, False)
    covered = [y for y, line in enumerate(layers.high) if line]
    assert covered == list(range(20, 28))
    tiles = [layers.high[y][0].tile for y in covered]
    assert tiles == sorted(tiles)
    assert all(layers.high[y][0].id == 3 for y in covered)
    assert layers.sprites[3].x == 10


def test_vertical_flip_reverses_rows():
    mem = VideoMemory()
    _put_sprite(mem, 0, 0x1001, 0, 40)
    plain = [line[0].tile for line in sort_sprites(mem, False).mid if line]
    _put_sprite(mem, 0, 0x5001, 0, 40)
    flipped = [line[0].tile for line in sort_sprites(mem, False).mid if line]
    assert flipped == plain[::-1]


def test_chained_sprite_position_is_relative():
    mem = VideoMemory()
    _put_sprite(mem, 0, 0x0801, 30, 40)
    _put_sprite(mem, 1, 0x0801 | 0x0400 | 0x0200, 5, 6)
    layers = sort_sprites(mem, False)
    assert layers.sprites[1].x == layers.sprites[0].x + 5
    assert layers.low[46][-1].id == 1


def test_draw_sprites_draws_and_clips():
    mem = VideoMemory()
    mem.write_word(PATTERN_TABLE, 0x5555)
    palettes = list(range(100, 292))
    sprites = [SpriteInfo(flip=0, x=10, pal=0)]
    draw = [0] * 160
    draw_sprites(draw, [SpriteRef(0, 0)], sprites, mem, palettes, 0, 14)
    assert draw[10:14] == [palettes[1]] * 4
    assert draw[14:18] == [0] * 4
    assert draw[:10] == [0] * 10


def test_horizontal_flip_mirrors_row():
    mem = VideoMemory()
    mem.write_word(PATTERN_TABLE, 0x1B1B)
    palettes = list(range(192))
    plain = [0] * 160
    mirrored = [0] * 160
    draw_sprites(plain, [SpriteRef(0, 0)], [SpriteInfo(0, 20, 0)], mem, palettes, 0, 160)
    draw_sprites(mirrored, [SpriteRef(0, 0)], [SpriteInfo(0x80, 20, 0)], mem, palettes, 0, 160)
    assert mirrored[20:28] == plain[20:28][::-1]
    assert plain[20:28] != [0] * 8


def test_scroll_plane_fills_window():
    mem = VideoMemory()
    for i in range(32 * 32):
        mem.write_word(TILE_TABLE_BACK + 2 * i, 1)
    for row in range(8):
        mem.write_word(PATTERN_TABLE + 2 * (8 + row), 0x5555)
    palettes = list(range(500, 692))
    draw = [0] * 160
    draw_scroll_plane(draw, mem, TILE_TABLE_BACK, 128, 3, 5, 10, 50, False, palettes)
    assert draw[10:50] == [palettes[129]] * 40
    assert draw[:10] == [0] * 10
    assert draw[50:] == [0] * 110


def test_scroll_by_one_tile_matches_shifted_table():
    mem = VideoMemory()
    mem.write_word(PATTERN_TABLE + 2 * 8, 0x1B2D)
    mem.write_word(TILE_TABLE_BACK + 2 * 4, 1)
    palettes = list(range(192))
    first = [0] * 160
    draw_scroll_plane(first, mem, TILE_TABLE_BACK, 0, 0, 0, 0, 160, False, palettes)
    second = [0] * 160
    draw_scroll_plane(second, mem, TILE_TABLE_BACK, 0, 8, 0, 0, 160, False, palettes)
    assert second[:-8] == first[8:]
    assert first != [0] * 160


def test_blit_line_vblank_cycle():
    mem = VideoMemory()
    frames = []
    renderer = Renderer(mem, Palette(), Machine.NGP, 0, frames.append)
    for _ in range(152):
        renderer.blit_line(False)
    assert frames == [False]
    assert mem.read_byte(STATUS) & VBLANK
    assert mem.read_byte(SCANLINE) == 152
    for _ in range(198 - 152):
        renderer.blit_line(False)
    assert mem.read_byte(SCANLINE) == 198
    renderer.blit_line(False)
    assert mem.read_byte(SCANLINE) == 0
    assert not mem.read_byte(STATUS) & VBLANK


def test_empty_window_fills_out_of_window_colour():
    mem = VideoMemory()
    mem.write_byte(OOW_SELECT, 3)
    palette = Palette()
    renderer = Renderer(mem, palette, Machine.NGP)
    renderer.blit_line(True)
    assert renderer.frame[0] == [palette.to_native(BW_TABLE[3])] * 160


def test_background_colour_selected_in_colour_mode():
    mem = VideoMemory()
    mem.write_byte(WINDOW_WIDTH, 160)
    mem.write_byte(WINDOW_HEIGHT, 152)
    mem.write_byte(BG_SELECT, 0x80 | 2)
    mem.write_word(BG_TABLE + 4, 0x0F00)
    palette = Palette()
    renderer = Renderer(mem, palette, Machine.NGPC)
    renderer.blit_line(True)
    assert renderer.frame[0] == [palette.to_native(0x0F00)] * 160


def test_sprite_rendered_through_renderer():
    mem = VideoMemory()
    mem.write_byte(WINDOW_X, 0)
    mem.write_byte(WINDOW_Y, 0)
    mem.write_byte(WINDOW_WIDTH, 160)
    mem.write_byte(WINDOW_HEIGHT, 152)
    _put_sprite(mem, 0, 0x1801, 8, 0)
    mem.write_word(PATTERN_TABLE + 2 * 8, 0x5555)
    mem.write_word(COLOR_PALETTE + 2 * 1, 0x000F)
    palette = Palette()
    renderer = Renderer(mem, palette, Machine.NGPC)
    renderer.blit_line(True)
    assert renderer.frame[0][8:16] == [palette.to_native(0x000F)] * 8
    assert renderer.frame[0][16] == palette.to_native(0)