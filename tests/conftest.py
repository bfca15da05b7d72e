from __future__ import annotations

import dataclasses
import struct
from typing import Optional, Sequence

import pytest

import sobs_extract as sx

ROM_SIZE = 0x80 * 0x4000
NONE = 0xFFFF

# A stream that decodes to 20*18 zero tile numbers: literal 0x00, then
# 21 runs of 17 copies and one run of 2.
ZERO_TILES_STREAM = bytes([0x00] + [0x8F] * 21 + [0x80])
# A stream that decodes to 20*19 attribute bytes of palette 1: literal 0x01,
# then 11 runs of 33 copies and one run of 16.
PAL1_ATTRIBS_STREAM = bytes([0x01] + [0xF7] * 11 + [0xE6])


class RomBuilder:
    """Pokes map/tileset/BG records into a blank ROM image."""

    def __init__(self, layout: sx.RomLayout = sx.DEFAULT_LAYOUT) -> None:
        self.layout = layout
        self.rom = bytearray(ROM_SIZE)

    def put(self, bank: int, addr: int, data: bytes) -> int:
        off = sx.rom1_offset(bank, addr, self.layout)
        self.rom[off : off + len(data)] = data
        return off

    def put_map(self, map_id: int, tileset_id: int = 0, neighbors: Sequence[int] = (NONE, NONE, NONE, NONE)) -> None:
        off = sx.map_struct_offset(map_id, self.layout)
        self.rom[off] = tileset_id
        struct.pack_into("<4H", self.rom, off + 1, *neighbors)

    def put_bg_location(self, map_id: int, bank: int, addr: int) -> None:
        off = sx.rom1_offset(
            self.layout.bg_table_bank,
            self.layout.bg_table_base + self.layout.bg_record_size * map_id,
            self.layout,
        )
        struct.pack_into("<HB", self.rom, off, addr, bank)

    def put_bg(self, map_id: int, bank: int, addr: int, tiles: bytes, attribs: Optional[bytes] = None) -> None:
        self.put_bg_location(map_id, bank, addr)
        self.put(bank, addr, tiles + (attribs or b""))

    def put_tileset(self, tileset_id: int, tiles: bytes = b"", palettes: bytes = b"") -> int:
        off = sx.tileset_offset(tileset_id, self.layout)
        self.rom[off : off + len(tiles)] = tiles
        pal_off = off + self.layout.tile_block_size
        self.rom[pal_off : pal_off + len(palettes)] = palettes
        return off

    def put_red_map(self, map_id: int, neighbors: Sequence[int] = (NONE, NONE, NONE, NONE)) -> None:
        """A map whose every pixel renders pure red (tileset 0, palette 1)."""
        self.put_map(map_id, 0, neighbors)
        self.put_bg(map_id, 0x60, 0x4100, ZERO_TILES_STREAM, PAL1_ATTRIBS_STREAM)

    def put_red_tileset(self) -> None:
        # Tile number 0 resolves to $9000, the 64th pattern of the block.
        tiles = bytearray(self.layout.tile_block_size)
        tiles[0x400:0x410] = bytes([0xFF, 0x00] * 8)
        palettes = bytearray(self.layout.palette_block_size)
        struct.pack_into("<H", palettes, 8 * 1 + 2 * 1, 0x001F)
        self.put_tileset(0, bytes(tiles), bytes(palettes))

    def bytes(self) -> bytes:
        return bytes(self.rom)


@pytest.fixture
def builder() -> RomBuilder:
    return RomBuilder()


@pytest.fixture
def red_rom(builder: RomBuilder) -> RomBuilder:
    builder.put_red_tileset()
    builder.put_red_map(0)
    return builder


@pytest.fixture
def small_builder():
    def make(num_maps: int) -> RomBuilder:
        return RomBuilder(dataclasses.replace(sx.DEFAULT_LAYOUT, num_maps=num_maps))

    return make
