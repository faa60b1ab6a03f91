"""Cartridge flash chip emulation and the NGF save-file format."""

from __future__ import annotations

import enum
import os
import struct
from dataclasses import dataclass
from pathlib import Path

NGF_VERSION = 0x53
MAX_BLOCKS = 35

_HEADER = struct.Struct("<HHI")
_BLOCK = struct.Struct("<II")

_CHIP_SPAN = 0x200000
_CHIP0_BASE = 0x200000
_CHIP1_BASE = 0x800000


class FlashCommand(enum.IntEnum):
    """Command a flash chip is currently executing."""

    NONE = 0x00
    BYTE_PROGRAM = 0xA0
    BLOCK_ERASE = 0x30
    CHIP_ERASE = 0x10
    INFO_READ = 0x90


@dataclass(frozen=True)
class NgfBlock:
    """One saved flash block: its address in the console memory map and its bytes."""

    address: int
    data: bytes


def encode_ngf(blocks) -> bytes:
    """Serialise blocks into an NGF save file."""
    blocks = list(blocks)
    file_len = _HEADER.size + sum(_BLOCK.size + len(b.data) for b in blocks)
    parts = [_HEADER.pack(NGF_VERSION, len(blocks), file_len)]
    for block in blocks:
        parts.append(_BLOCK.pack(block.address, len(block.data)))
        parts.append(bytes(block.data))
    return b"".join(parts)


def decode_ngf(data: bytes) -> list[NgfBlock]:
    """Parse an NGF save file; raises ValueError if it is malformed."""
    if len(data) < _HEADER.size:
        raise ValueError("NGF header is truncated")
    version, count, file_len = _HEADER.unpack_from(data, 0)
    if version != NGF_VERSION:
        raise ValueError(f"unsupported NGF version 0x{version:X}")
    if file_len < _HEADER.size:
        raise ValueError("NGF file length is smaller than its header")
    body = data[_HEADER.size:file_len]
    if len(body) != file_len - _HEADER.size:
        raise ValueError("NGF file is shorter than its header says")
    if count > MAX_BLOCKS:
        raise ValueError(f"NGF file holds {count} blocks, more than {MAX_BLOCKS}")
    blocks = []
    offset = 0
    for _ in range(count):
        if offset + _BLOCK.size > len(body):
            raise ValueError("NGF block header is truncated")
        address, length = _BLOCK.unpack_from(body, offset)
        offset += _BLOCK.size
        if offset + length > len(body):
            raise ValueError("NGF block data is truncated")
        blocks.append(NgfBlock(address, bytes(body[offset:offset + length])))
        offset += length
    return blocks


def save_path_for(rom_file_name: str, save_dir: str) -> str:
    """Name of the save file for a ROM: the ROM's base name in save_dir, extension 'ngf'."""
    slash = rom_file_name.rfind(os.sep)
    name = save_dir + rom_file_name[slash + 1:]
    dot = name.rfind(".")
    if dot == -1:
        return name
    return name[:dot + 1] + "ngf"


class FlashCart:
    """Flash chips of a cartridge, writing through to a ROM image."""

    def __init__(self, rom: bytearray, save_path=None) -> None:
        self.rom = rom
        self.save_path = save_path
        self.manuf_id = 0x98
        self.device_id = 0x2F
        self.cart_size = 32
        self.boot_block_start_addr = 0x1F0000
        self.boot_block_start_num = 31
        self.write_cycle = 1
        self.command = FlashCommand.NONE
        self.dirty: tuple[set[int], set[int]] = (set(), set())
        self.needs_write = False

    def _setup_params(self) -> None:
        if self.cart_size == 8:
            self.device_id = 0x2C
            self.boot_block_start_addr = 0xF0000
            self.boot_block_start_num = 15
        elif self.cart_size == 4:
            self.device_id = 0xAB
            self.boot_block_start_addr = 0x70000
            self.boot_block_start_num = 7
        elif self.cart_size == 0:
            self.manuf_id = 0x00
            self.device_id = 0x00
            self.boot_block_start_addr = 0x00000
            self.boot_block_start_num = 0
        else:
            self.device_id = 0x2F
            self.boot_block_start_addr = 0x1F0000
            self.boot_block_start_num = 31

    def set_flash_size(self, rom_size: int) -> None:
        """Pick the chip layout for a ROM of rom_size bytes, then start up."""
        if bytes(self.rom[0x24:0x24 + 11]) == b"DELTA WARP ":
            self.cart_size = 8
        elif rom_size > 0x200000:
            self.cart_size = 32
        elif rom_size > 0x100000:
            self.cart_size = 16
        elif rom_size > 0x080000:
            self.cart_size = 8
        elif rom_size > 0x040000:
            self.cart_size = 4
        elif rom_size == 0:
            self.cart_size = 0
        else:
            self.cart_size = 32
        self._setup_params()
        self.startup()

    def block_num_from_addr(self, addr: int) -> int:
        addr &= 0x1FFFFF
        if addr >= self.boot_block_start_addr:
            boot_addr = addr - self.boot_block_start_addr
            first = self.boot_block_start_addr // 0x10000
            if boot_addr < 0x8000:
                return first
            if boot_addr < 0xA000:
                return first + 1
            if boot_addr < 0xC000:
                return first + 2
            if boot_addr < 0x10000:
                return first + 3
        return addr // 0x10000

    def block_num_to_addr(self, chip: int, block_num: int) -> int:
        if block_num >= self.boot_block_start_num:
            addr = self.boot_block_start_num * 0x10000
            boot_block = block_num - self.boot_block_start_num
            if boot_block >= 1:
                addr += 0x8000
            if boot_block >= 2:
                addr += 0x2000
            if boot_block >= 3:
                addr += 0x2000
        else:
            addr = block_num * 0x10000
        if chip:
            addr += _CHIP_SPAN
        return addr

    def block_size(self, block_num: int) -> int:
        if block_num >= self.boot_block_start_num:
            boot_block = block_num - self.boot_block_start_num
            if boot_block == 0:
                return 0x8000
            if boot_block in (1, 2):
                return 0x2000
            if boot_block == 3:
                return 0x4000
        return 0x10000

    def _dirty_blocks(self) -> list[NgfBlock]:
        total = self.boot_block_start_num + 4
        chips = (0, 1) if self.cart_size == 32 else (0,)
        blocks = []
        for chip in chips:
            base = _CHIP0_BASE if chip == 0 else _CHIP1_BASE - _CHIP_SPAN
            for num in range(total):
                if num not in self.dirty[chip]:
                    continue
                start = self.block_num_to_addr(chip, num)
                size = self.block_size(num)
                blocks.append(NgfBlock(start + base, bytes(self.rom[start:start + size])))
        return blocks

    def write_save_file(self) -> bool:
        """Write all dirty blocks to the save file; True if it was written."""
        if self.save_path is None:
            return False
        try:
            with open(self.save_path, "wb") as handle:
                handle.write(encode_ngf(self._dirty_blocks()))
        except OSError:
            return False
        self.needs_write = False
        return True

    def load_save_file(self) -> bool:
        """Overlay the save file onto the ROM; True if it was read in full."""
        if self.save_path is None:
            return False
        try:
            data = Path(self.save_path).read_bytes()
        except OSError:
            return False
        try:
            blocks = decode_ngf(data)
        except ValueError:
            return False
        for block in blocks:
            addr = block.address
            if _CHIP0_BASE <= addr < _CHIP0_BASE + _CHIP_SPAN:
                addr -= _CHIP0_BASE
                chip, num = 0, self.block_num_from_addr(addr)
            elif _CHIP1_BASE <= addr < _CHIP1_BASE + _CHIP_SPAN:
                addr -= _CHIP1_BASE - _CHIP_SPAN
                chip, num = 1, self.block_num_from_addr(addr - _CHIP_SPAN)
            else:
                return False
            if addr + len(block.data) > len(self.rom):
                return False
            self.dirty[chip].add(num)
            self.rom[addr:addr + len(block.data)] = block.data
        return True

    def write_byte(self, addr: int, data: int, erase: bool = False) -> None:
        """Program (AND) or erase one byte of chip address space."""
        num = self.block_num_from_addr(addr)
        if num == 0:
            return
        if addr < _CHIP_SPAN:
            self.dirty[0].add(num)
        elif addr < 2 * _CHIP_SPAN:
            self.dirty[1].add(num)
        else:
            return
        self.needs_write = True
        if erase:
            self.rom[addr] = 0xFF
        else:
            self.rom[addr] &= data & 0xFF

    def read_info(self, addr: int) -> int:
        """Answer an ID read: manufacturer, device, protection, or 0x80."""
        self.write_cycle = 1
        self.command = FlashCommand.INFO_READ
        low = addr & 0x03
        if low == 0:
            return self.manuf_id
        if low == 1:
            return self.device_id
        if low == 2:
            return 0
        return 0x80

    def chip_write(self, addr: int, data: int) -> None:
        """Feed one bus write into the command state machine."""
        if addr >= _CHIP1_BASE and self.cart_size != 32:
            return
        low = addr & 0xFFFF
        cycle = self.write_cycle
        command = FlashCommand.NONE

        if cycle == 1:
            if low == 0x5555 and data == 0xAA:
                self.write_cycle += 1
            else:
                self.write_cycle = 1
                if data == 0xF0:
                    self.write_save_file()
        elif cycle in (2, 5):
            if low == 0x2AAA and data == 0x55:
                self.write_cycle += 1
            else:
                self.write_cycle = 1
        elif cycle == 3:
            if low == 0x5555 and data == 0x80:
                self.write_cycle += 1
            elif low == 0x5555 and data == 0xF0:
                self.write_cycle = 1
                self.write_save_file()
            elif low == 0x5555 and data == 0x90:
                self.write_cycle += 1
                command = FlashCommand.INFO_READ
            elif low == 0x5555 and data == 0xA0:
                self.write_cycle += 1
                command = FlashCommand.BYTE_PROGRAM
            else:
                self.write_cycle = 1
        elif cycle == 4:
            if self.command == FlashCommand.BYTE_PROGRAM:
                if _CHIP0_BASE <= addr < _CHIP0_BASE + _CHIP_SPAN:
                    addr -= _CHIP0_BASE
                elif _CHIP1_BASE <= addr < _CHIP1_BASE + _CHIP_SPAN:
                    addr -= _CHIP1_BASE - _CHIP_SPAN
                self.write_byte(addr, data)
                self.write_cycle = 1
            elif low == 0x5555 and data == 0xAA:
                self.write_cycle += 1
            else:
                self.write_cycle = 1
        elif cycle == 6:
            self.write_cycle = 1
            if low == 0x5555 and data == 0x10:
                command = FlashCommand.CHIP_ERASE
            elif data in (0x30, 0x50):
                command = FlashCommand.BLOCK_ERASE
                chip = 1 if addr >= _CHIP1_BASE else 0
                self.vect_erase(chip, self.block_num_from_addr(addr))
        else:
            self.write_cycle = 1
        self.command = command

    def startup(self) -> None:
        """Forget dirty state and overlay any existing save file."""
        self.dirty[0].clear()
        self.dirty[1].clear()
        self.needs_write = False
        self.load_save_file()

    def shutdown(self) -> None:
        self.write_save_file()

    def vect_write(self, chip: int, to: int, data: bytes) -> None:
        """Program a run of bytes into a chip starting at offset to."""
        if chip:
            to += _CHIP_SPAN
        for offset, value in enumerate(data):
            self.write_byte(to + offset, value)

    def vect_erase(self, chip: int, block_num: int) -> None:
        """Erase one block of a chip to 0xFF."""
        start = self.block_num_to_addr(chip, block_num)
        for addr in range(start, start + self.block_size(block_num)):
            self.write_byte(addr, 0xFF, erase=True)