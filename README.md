# pocketrace

Building blocks for emulating a colour handheld console. The package depends only on the standard library. It is a library and has no command-line program.

## Modules

- `pocketrace.z80`: Z80 register state. `Z80Cpu` holds the register file with 8- and 16-bit masking, plus the `af`, `af2`, `r` and `iff` views. It also keeps the interrupt lines (`set_irq`, `set_nmi`, `clear_irq`, `clear_nmi`, `cause_interrupt`, `clear_pending_interrupts`) and the cycle counters (`cycles_to_do`, `cycles_remaining`, `cycles_done`, `end_execute`, `waste_cycles`). The module also defines the `Flag` and `Status` bit sets and `flag_tables()`, which returns the precomputed sign/zero/parity/half-carry/overflow tables as a `FlagTables`.
- `pocketrace.flash`: the cartridge flash chips. `FlashCart` covers:
  - the command state machine (`chip_write`) and ID reads (`read_info`);
  - the block layout (`block_num_from_addr`, `block_num_to_addr`, `block_size`);
  - byte programming, in which written bits can only go from 1 to 0, and block erase to `0xFF` (`write_byte`, `vect_write`, `vect_erase`);
  - the chip layout chosen from the ROM size (`set_flash_size`).

  The `.ngf` save file format is handled by `encode_ngf` and `decode_ngf`, using `NgfBlock` records. `decode_ngf` raises `ValueError` on malformed data. `save_path_for` derives the save file name from a ROM file name.
- `pocketrace.palette`: conversion of 12-bit console colours (`0x0BGR`) to a native pixel format given by channel masks. RGB565 is the default. A dark filter reduces bright colours by their luminosity. The module provides `Palette`, `build_palette`, `darken_rgb`, `mask_layout`, `pattern_pixels` and the `Machine` enum.
- `pocketrace.video`: a scanline renderer. `VideoMemory` is the `0x8000`–`0xBFFF` register and table area. `sort_sprites`, `draw_sprites` and `draw_scroll_plane` are the drawing steps. `Renderer.blit_line` renders one line into `Renderer.frame`, a list of 152 rows of 160 native pixels. It sets the vertical-blank bit at line 151, calls `on_frame(render)` there, clears the bit at line 198 and then wraps to line 0.
- `pocketrace.strutil`: string helpers with C-library semantics:
  - `strcasecmp`, which compares ignoring ASCII case;
  - `strcasestr`, which returns an index or `None`;
  - `strlcpy` and `strlcat`, which return the text and the untruncated length;
  - `strldup` and `isblank`;
  - `tokenize`, a generator of non-empty tokens.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Examples

Flash cartridge with a save file:

```python
from pocketrace.flash import FlashCart

rom = bytearray(0x400000)
cart = FlashCart(rom, "game.ngf")
cart.set_flash_size(0x200000)   # picks the chip layout and loads game.ngf if present

# Program one byte using the unlock sequence.
for addr, data in ((0x5555, 0xAA), (0x2AAA, 0x55), (0x5555, 0xA0)):
    cart.chip_write(addr, data)
cart.chip_write(0x210000, 0x12)

cart.shutdown()                 # writes the changed blocks to game.ngf
```

`write_save_file` and `load_save_file` return `False` instead of raising when the file cannot be opened or is malformed.

Palette conversion:

```python
from pocketrace.palette import Palette

palette = Palette(0xF800, 0x07E0, 0x001F)   # RGB565
white = palette.to_native(0x0FFF)
palette.set_dark_filter_level(30)          # capped at 100
```

Rendering a frame:

```python
from pocketrace.video import Renderer, VideoMemory, WINDOW_WIDTH, WINDOW_HEIGHT

memory = VideoMemory()
memory.write_byte(WINDOW_WIDTH, 160)
memory.write_byte(WINDOW_HEIGHT, 152)

frames = []
renderer = Renderer(memory, on_frame=frames.append)
for _ in range(199):
    renderer.blit_line(True)
pixels = renderer.frame
```

Z80 interrupt lines:

```python
from pocketrace.z80 import Z80Cpu

cpu = Z80Cpu()
cpu.reset()
cpu.cause_interrupt(0x38)     # IRQ with vector 0x38
cpu.clear_pending_interrupts()
```

## What it does not do

- `Z80Cpu` keeps registers, interrupt lines and cycle counters, but it does not decode or execute instructions. Nothing in the package sets the `Status.RUNNING` bit, so the `cycles_*` queries return 0 unless the caller sets that bit.
- There is no main CPU, memory map, sound, input handling or ROM loader. The renderer draws into an in-memory frame and does not open a window.
- A chip-erase command is recognised, but it does not change the ROM image.