"""Handheld console emulator pieces: Z80 register state, cartridge flash and save files, palettes, scanline video and string helpers."""

__version__ = "0.1.0"
__all__ = ["strutil", "z80", "flash", "palette", "video"]