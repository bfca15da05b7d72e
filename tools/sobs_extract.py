#!/usr/bin/env python3
"""
Blue Sphere (GBC) map and tileset extraction helpers.

Current capabilities:
- Resolve banked ROM addresses and read map/tileset records.
- Decode the RLE-compressed BG tile and attribute streams of a map.
- Render maps, tilesets, and connected map "zones" to PNG.

All offsets are for one fixed cartridge layout. They live in RomLayout and
can be overridden from a JSON/YAML file for experiments.
"""

from __future__ import annotations

import argparse
import dataclasses
import itertools
import json
import pathlib
import struct
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import yaml
from PIL import Image


@dataclasses.dataclass(frozen=True)
class RomLayout:
    bank_size: int = 0x4000
    window_start: int = 0x4000
    window_end: int = 0x8000

    num_maps: int = 1545
    map_record_size: int = 0x14
    map_split: int = 800
    map_bank_lo: int = 0x54
    map_bank_hi: int = 0x55
    map_record_base: int = 0x4001
    neighbor_mask: int = 0x7FFF

    bg_table_bank: int = 0x5A
    bg_table_base: int = 0x4001
    bg_record_size: int = 3

    num_tilesets: int = 98
    tileset_slots: int = 100
    tileset_bank_base: int = 0x40
    tilesets_per_bank: int = 5
    tileset_base: int = 0x4001
    tileset_stride: int = 0xC40
    tile_block_size: int = 0xC00
    palette_block_size: int = 0x40

    tile_vram_base: int = 0x9000
    tileset_vram_start: int = 0x8C00
    tileset_vram_end: int = 0x9800

    map_width: int = 20
    map_height: int = 18
    attrib_rows: int = 19
    attrib_buffer_len: int = 25 * 18
    attrib_overflow_marker: int = 7
    attrib_restart_addr: int = 0x4001


DEFAULT_LAYOUT = RomLayout()

TILE_BYTES = 16
TILE_SIZE = 8
PALETTE_BYTES = 8

DIRECTIONS = ("up", "right", "down", "left")
NEIGHBOR_DELTAS: Tuple[Tuple[int, int], ...] = (
    (0, -1),  # up
    (1, 0),  # right
    (0, 1),  # down
    (-1, 0),  # left
)

Rgb = Tuple[int, int, int]
GridPos = Tuple[int, int]


def _load_config(path: pathlib.Path) -> Dict[str, Any]:
    ext = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if ext == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError("Config root must be a mapping/object")
    return data


def _to_int(v: Any) -> int:
    if isinstance(v, bool):
        raise ValueError("Expected int-like value, got: bool")
    if isinstance(v, int):
        return int(v)
    if isinstance(v, str):
        return int(v, 0)
    raise ValueError(f"Expected int-like value, got: {type(v).__name__}")


def load_layout(path: pathlib.Path) -> RomLayout:
    """Load a RomLayout from a JSON/YAML file of field overrides."""
    cfg = _load_config(path)
    known = {f.name for f in dataclasses.fields(RomLayout)}
    unknown = sorted(set(cfg) - known)
    if unknown:
        raise ValueError(f"Unknown layout keys: {', '.join(unknown)}")
    return dataclasses.replace(DEFAULT_LAYOUT, **{k: _to_int(v) for k, v in cfg.items()})


def le16(b: Sequence[int], off: int) -> int:
    return struct.unpack_from("<H", b, off)[0]


# --- Address resolution ------------------------------------------------------


def rom1_offset(bank: int, addr: int, layout: RomLayout = DEFAULT_LAYOUT) -> int:
    """Translate a switchable-bank address ($4000..$7FFF) to a file offset."""
    if not (layout.window_start <= addr < layout.window_end):
        raise ValueError(f"Address 0x{addr:04X} not in switchable ROM window")
    if bank < 0:
        raise ValueError(f"Invalid bank: {bank}")
    return layout.bank_size * bank + (addr - layout.window_start)


# --- Tilesets ------------------------------------------------------------------
#
# A tileset is a block of 16x12 tile patterns followed by 8 palettes. When
# loaded, the patterns are copied to VRAM $8C00..$9800 and the palettes
# become the BG palettes. Five tilesets per bank starting at bank $40.


def tileset_offset(tileset_id: int, layout: RomLayout = DEFAULT_LAYOUT) -> int:
    bank = layout.tileset_bank_base + tileset_id // layout.tilesets_per_bank
    addr = layout.tileset_base + (tileset_id % layout.tilesets_per_bank) * layout.tileset_stride
    return rom1_offset(bank, addr, layout)


def get_tileset(rom: bytes, tileset_id: int, layout: RomLayout = DEFAULT_LAYOUT) -> Tuple[memoryview, memoryview]:
    """Return (tile patterns, palettes) as read-only views into the ROM."""
    if not (0 <= tileset_id < layout.tileset_slots):
        raise ValueError(f"Tileset id {tileset_id} out of range")
    off = tileset_offset(tileset_id, layout)
    end = off + layout.tile_block_size + layout.palette_block_size
    if end > len(rom):
        raise ValueError(f"Tileset {tileset_id} at 0x{off:06X} runs past end of ROM")
    view = memoryview(rom).toreadonly()
    tiles = view[off : off + layout.tile_block_size]
    palettes = view[off + layout.tile_block_size : end]
    return tiles, palettes


# --- Maps ----------------------------------------------------------------------
#
# A map is one screen. Map structs (0x14 bytes) live in banks $54/$55: byte 0
# is the tileset id, then four u16 neighbor ids (up/right/down/left). The rest
# of the struct is unknown. BG data locations are in a separate table at
# $5A:4001, three bytes per map (address, bank).


@dataclasses.dataclass
class MapRecord:
    map_id: int
    record_offset: int
    tileset_id: int
    raw_neighbors: Tuple[int, int, int, int]
    neighbors: Tuple[Optional[int], Optional[int], Optional[int], Optional[int]]
    bg_bank: int
    bg_addr: int


def _check_map_id(map_id: int, layout: RomLayout) -> None:
    if not (0 <= map_id < layout.num_maps):
        raise ValueError(f"Map id {map_id} out of range (0..{layout.num_maps - 1})")


def map_struct_offset(map_id: int, layout: RomLayout = DEFAULT_LAYOUT) -> int:
    _check_map_id(map_id, layout)
    if map_id < layout.map_split:
        bank = layout.map_bank_lo
        index = map_id
    else:
        bank = layout.map_bank_hi
        index = map_id - layout.map_split
    return rom1_offset(bank, layout.map_record_base + layout.map_record_size * index, layout)


def get_map_struct(rom: bytes, map_id: int, layout: RomLayout = DEFAULT_LAYOUT) -> memoryview:
    off = map_struct_offset(map_id, layout)
    if off + layout.map_record_size > len(rom):
        raise ValueError(f"Map {map_id} record 0x{off:06X} runs past end of ROM")
    return memoryview(rom).toreadonly()[off : off + layout.map_record_size]


def map_tileset_id(rom: bytes, map_id: int, layout: RomLayout = DEFAULT_LAYOUT) -> int:
    return get_map_struct(rom, map_id, layout)[0]


def _raw_neighbors(rec: memoryview) -> Tuple[int, int, int, int]:
    return struct.unpack_from("<4H", rec, 1)


def map_neighbors(
    rom: bytes, map_id: int, layout: RomLayout = DEFAULT_LAYOUT
) -> Tuple[Optional[int], Optional[int], Optional[int], Optional[int]]:
    """Neighbor map ids in up/right/down/left order, None where absent."""
    out: List[Optional[int]] = []
    for raw in _raw_neighbors(get_map_struct(rom, map_id, layout)):
        # The high bit's meaning is unknown; it is not part of the id.
        n = raw & layout.neighbor_mask
        out.append(n if n < layout.num_maps else None)
    return out[0], out[1], out[2], out[3]


def map_bg_location(rom: bytes, map_id: int, layout: RomLayout = DEFAULT_LAYOUT) -> Tuple[int, int]:
    """Return (bank, address) of the map's compressed BG data."""
    _check_map_id(map_id, layout)
    off = rom1_offset(layout.bg_table_bank, layout.bg_table_base + layout.bg_record_size * map_id, layout)
    if off + 3 > len(rom):
        raise ValueError(f"BG location for map {map_id} runs past end of ROM")
    return rom[off + 2], le16(rom, off)


def read_map_record(rom: bytes, map_id: int, layout: RomLayout = DEFAULT_LAYOUT) -> MapRecord:
    rec = get_map_struct(rom, map_id, layout)
    bank, addr = map_bg_location(rom, map_id, layout)
    return MapRecord(
        map_id=map_id,
        record_offset=map_struct_offset(map_id, layout),
        tileset_id=rec[0],
        raw_neighbors=_raw_neighbors(rec),
        neighbors=map_neighbors(rom, map_id, layout),
        bg_bank=bank,
        bg_addr=addr,
    )


# --- BG stream decoding --------------------------------------------------------


@dataclasses.dataclass
class BgCursor:
    bank: int
    addr: int


def _stream_at(rom: bytes, cursor: BgCursor, layout: RomLayout) -> memoryview:
    return memoryview(rom).toreadonly()[rom1_offset(cursor.bank, cursor.addr, layout) :]


def _emit_run(output: bytearray, j: int, count: int, step: int, limit: int) -> int:
    if j == 0:
        raise ValueError("BG run with no previous byte")
    if j + count > limit:
        raise ValueError(f"BG run of {count} at {j} overruns output ({limit})")
    for _ in range(count):
        output[j] = (output[j - 1] + step) & 0xFF
        j += 1
    return j


def decode_map_tiles(rom: bytes, cursor: BgCursor, output: bytearray, layout: RomLayout = DEFAULT_LAYOUT) -> int:
    """Decode compressed tile numbers until output is full.

    Byte a:
      a < 0x80 or a >= 0xA0   literal
      0x90..0x9F              (a & 0xF) + 2 copies of previous byte + 1, + 2, ...
      0x80..0x8F              (a & 0xF) + 2 copies of previous byte

    Advances the cursor past the consumed input (attribute data comes next)
    and returns the number of input bytes consumed.
    """
    src = _stream_at(rom, cursor, layout)
    i = 0
    j = 0
    n = len(output)
    while j < n:
        if i >= len(src):
            raise ValueError("BG tile stream ran past end of ROM")
        a = src[i]
        i += 1
        if a & 0x80 == 0 or a >= 0xA0:
            output[j] = a
            j += 1
        elif a & 0x10:
            j = _emit_run(output, j, (a & 0xF) + 2, 1, n)
        else:
            j = _emit_run(output, j, (a & 0xF) + 2, 0, n)

    # The cursor must remain an address inside the switchable window.
    if cursor.addr + i >= layout.window_end:
        raise ValueError(f"BG cursor moved out of bank (0x{cursor.addr + i:X})")
    cursor.addr += i
    return i


def decode_map_attribs(
    rom: bytes,
    cursor: BgCursor,
    output: bytearray,
    count: Optional[int] = None,
    layout: RomLayout = DEFAULT_LAYOUT,
) -> int:
    """Decode compressed attribute bytes, filling the first `count` entries.

    The low 3 bits of an attribute are its palette number, and palettes 6/7
    are never used, so a & 6 == 6 marks a run of
    ((a >> 4) | ((a & 1) << 4)) + 2 copies of the previous byte.

    A leading byte of 7 means the stream did not fit in the current bank and
    continues at the restart address of the next one.
    """
    if count is None:
        count = layout.map_width * layout.attrib_rows
    if count > len(output):
        raise ValueError(f"Attribute count {count} exceeds buffer ({len(output)})")

    src = _stream_at(rom, cursor, layout)
    if len(src) and src[0] == layout.attrib_overflow_marker:
        cursor.bank += 1
        cursor.addr = layout.attrib_restart_addr
        src = _stream_at(rom, cursor, layout)

    i = 0
    j = 0
    while j < count:
        if i >= len(src):
            raise ValueError("BG attribute stream ran past end of ROM")
        a = src[i]
        i += 1
        if a & 0x6 != 0x6:
            output[j] = a
            j += 1
        else:
            j = _emit_run(output, j, ((a >> 4) | ((a & 1) << 4)) + 2, 0, len(output))

    # The cursor must remain an address inside the switchable window.
    if cursor.addr + i >= layout.window_end:
        raise ValueError(f"BG cursor moved out of bank (0x{cursor.addr + i:X})")
    cursor.addr += i
    return i


def decode_bg(rom: bytes, map_id: int, layout: RomLayout = DEFAULT_LAYOUT) -> Tuple[bytearray, bytearray]:
    """Return (tile numbers, attributes) for one map."""
    bank, addr = map_bg_location(rom, map_id, layout)
    cursor = BgCursor(bank=bank, addr=addr)
    tiles = bytearray(layout.map_width * layout.map_height)
    attribs = bytearray(layout.attrib_buffer_len)
    decode_map_tiles(rom, cursor, tiles, layout)
    decode_map_attribs(rom, cursor, attribs, layout=layout)
    return tiles, attribs


# --- Pixels --------------------------------------------------------------------
#
# A tile is 8x8 pixels in 16 bytes, 2 bytes per row (low plane, high plane).
#
#     [Color#] --> [Bits]   --> [Bytes]
#     01233210 --> 01011010 --> 0x5a
#                  00111100 --> 0x3c


def decode_tile_pixel(tile: Sequence[int], dx: int, dy: int) -> int:
    mask = 1 << (7 - dx)
    lo = 1 if tile[2 * dy] & mask else 0
    hi = 1 if tile[2 * dy + 1] & mask else 0
    return lo | (hi << 1)


def decode_tile(tile: Sequence[int]) -> np.ndarray:
    """Decode one 2bpp tile into an 8x8 array of color numbers."""
    raw = np.frombuffer(bytes(tile[:TILE_BYTES]), dtype=np.uint8).reshape(TILE_SIZE, 2)
    bits = np.unpackbits(raw, axis=1)
    return bits[:, :8] | (bits[:, 8:] << 1)


def scale5(v: int) -> int:
    return (v * 255 + 15) // 31


def color_from_palette(palette: Sequence[int], color_num: int) -> Rgb:
    # Raw BGR555 color, no GBC color correction.
    bgr = le16(palette, 2 * color_num)
    return scale5(bgr & 0x1F), scale5((bgr >> 5) & 0x1F), scale5((bgr >> 10) & 0x1F)


def palette_colors(palette: Sequence[int]) -> np.ndarray:
    return np.array([color_from_palette(palette, c) for c in range(4)], dtype=np.uint8)


class Canvas:
    """RGB888 pixel buffer. Writes outside the canvas are dropped."""

    def __init__(self, width: int, height: int) -> None:
        self.width = int(width)
        self.height = int(height)
        self.pixels = np.zeros((self.height, self.width, 3), dtype=np.uint8)

    def put_rgb(self, rgb: Rgb, x: int, y: int) -> None:
        if 0 <= x < self.width and 0 <= y < self.height:
            self.pixels[y, x] = rgb

    def blit(self, block: np.ndarray, x: int, y: int) -> None:
        h, w = block.shape[:2]
        x0, y0 = max(x, 0), max(y, 0)
        x1, y1 = min(x + w, self.width), min(y + h, self.height)
        if x0 >= x1 or y0 >= y1:
            return
        self.pixels[y0:y1, x0:x1] = block[y0 - y : y1 - y, x0 - x : x1 - x]

    def draw_tile(self, tile: Sequence[int], palette: Sequence[int], x: int, y: int) -> None:
        """Draw a tile with its top-left corner at (x, y)."""
        self.blit(palette_colors(palette)[decode_tile(tile)], x, y)

    def to_bytes(self) -> bytes:
        return self.pixels.tobytes()

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.pixels)

    def save_png(self, path: pathlib.Path) -> None:
        path = pathlib.Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.to_image().save(path)


def tile_address(tile_num: int, layout: RomLayout = DEFAULT_LAYOUT) -> int:
    """VRAM address of a BG tile number.

    Maps use the $9000-based addressing mode (LCDC bit 4 clear), so the tile
    number is a signed index.
    """
    signed = tile_num - 0x100 if tile_num & 0x80 else tile_num
    addr = layout.tile_vram_base + signed * TILE_BYTES
    if not (layout.tileset_vram_start <= addr < layout.tileset_vram_end):
        raise ValueError(f"Tile 0x{tile_num:02X} address 0x{addr:04X} outside tileset VRAM")
    return addr


def draw_map(
    rom: bytes,
    map_id: int,
    canvas: Canvas,
    x: int,
    y: int,
    layout: RomLayout = DEFAULT_LAYOUT,
) -> None:
    """Draw a map on the canvas with its upper-left corner at (x, y)."""
    tiles, palettes = get_tileset(rom, map_tileset_id(rom, map_id, layout), layout)
    tile_nums, attribs = decode_bg(rom, map_id, layout)

    # Resolve every cell before drawing so a bad map leaves the canvas untouched.
    cells: List[Tuple[int, int]] = []
    for i, tile_num in enumerate(tile_nums):
        ofs = tile_address(tile_num, layout) - layout.tileset_vram_start
        cells.append((ofs, attribs[i] & 7))

    colors = [palette_colors(palettes[p * PALETTE_BYTES : (p + 1) * PALETTE_BYTES]) for p in range(8)]
    for i, (ofs, pal) in enumerate(cells):
        dx = (i % layout.map_width) * TILE_SIZE
        dy = (i // layout.map_width) * TILE_SIZE
        canvas.blit(colors[pal][decode_tile(tiles[ofs : ofs + TILE_BYTES])], x + dx, y + dy)


def draw_tileset(
    rom: bytes,
    tileset_id: int,
    canvas: Canvas,
    x: int,
    y: int,
    palette_num: int = 0,
    layout: RomLayout = DEFAULT_LAYOUT,
) -> None:
    """Draw all patterns of a tileset, 16 per row, with a single palette."""
    tiles, palettes = get_tileset(rom, tileset_id, layout)
    palette = palettes[palette_num * PALETTE_BYTES : (palette_num + 1) * PALETTE_BYTES]
    for i in range(len(tiles) // TILE_BYTES):
        tile = tiles[i * TILE_BYTES : (i + 1) * TILE_BYTES]
        canvas.draw_tile(tile, palette, x + (i % 16) * TILE_SIZE, y + (i // 16) * TILE_SIZE)


# --- Zones ---------------------------------------------------------------------
#
# A zone is a map plus all its neighbors, plus all their neighbors, etc. Each
# map is placed in exactly one zone.


@dataclasses.dataclass
class Zone:
    root: int
    locations: Dict[GridPos, int] = dataclasses.field(default_factory=dict)
    # Maps displaced from their grid cell by a map placed there later.
    collisions: List[Tuple[GridPos, int]] = dataclasses.field(default_factory=list)

    def map_ids(self) -> List[int]:
        return sorted(list(self.locations.values()) + [m for _, m in self.collisions])

    def bounds(self) -> Tuple[int, int, int, int]:
        xs = [p[0] for p in self.locations]
        ys = [p[1] for p in self.locations]
        return min(xs), min(ys), max(xs), max(ys)

    def grid_size(self) -> Tuple[int, int]:
        x_min, y_min, x_max, y_max = self.bounds()
        return x_max - x_min + 1, y_max - y_min + 1


class ZoneBuilder:
    """Builds zones one at a time, sharing visited state across a sweep."""

    def __init__(self, rom: bytes, layout: RomLayout = DEFAULT_LAYOUT) -> None:
        self.rom = rom
        self.layout = layout
        self.visited = [False] * layout.num_maps

    def is_visited(self, map_id: int) -> bool:
        return self.visited[map_id]

    def build_zone(self, starting_map: int) -> Zone:
        _check_map_id(starting_map, self.layout)
        if self.visited[starting_map]:
            raise ValueError(f"Map {starting_map} already belongs to a zone")

        zone = Zone(root=starting_map)
        seeds: List[Tuple[int, GridPos]] = [(starting_map, (0, 0))]
        while seeds:
            map_id, pos = seeds.pop()
            if self.visited[map_id]:
                continue
            self.visited[map_id] = True
            if pos in zone.locations:
                zone.collisions.append((pos, zone.locations[pos]))
            zone.locations[pos] = map_id

            for neighbor, (dx, dy) in zip(map_neighbors(self.rom, map_id, self.layout), NEIGHBOR_DELTAS):
                # A map is placed once; zones might loop or have discontinuities.
                if neighbor is None or self.visited[neighbor]:
                    continue
                seeds.append((neighbor, (pos[0] + dx, pos[1] + dy)))
        return zone

    def iter_zones(self) -> Iterator[Zone]:
        for map_id in range(self.layout.num_maps):
            if not self.visited[map_id]:
                yield self.build_zone(map_id)


def iter_zones(rom: bytes, layout: RomLayout = DEFAULT_LAYOUT) -> Iterator[Zone]:
    return ZoneBuilder(rom, layout).iter_zones()


def draw_zone(rom: bytes, zone: Zone, layout: RomLayout = DEFAULT_LAYOUT) -> Canvas:
    map_w = layout.map_width * TILE_SIZE
    map_h = layout.map_height * TILE_SIZE
    x_min, y_min, _, _ = zone.bounds()
    w, h = zone.grid_size()
    canvas = Canvas(map_w * w, map_h * h)
    for (gx, gy), map_id in zone.locations.items():
        draw_map(rom, map_id, canvas, map_w * (gx - x_min), map_h * (gy - y_min), layout)
    return canvas


# --- Commands ------------------------------------------------------------------


def _layout_from_args(args: argparse.Namespace) -> RomLayout:
    if getattr(args, "layout", None):
        return load_layout(pathlib.Path(args.layout))
    return DEFAULT_LAYOUT


def _map_record_report(rec: MapRecord) -> Dict[str, object]:
    return {
        "map_id": rec.map_id,
        "record_offset": f"0x{rec.record_offset:06X}",
        "tileset_id": rec.tileset_id,
        "neighbors": dict(zip(DIRECTIONS, rec.neighbors)),
        "raw_neighbors": {d: f"0x{v:04X}" for d, v in zip(DIRECTIONS, rec.raw_neighbors)},
        "bg_bank": f"0x{rec.bg_bank:02X}",
        "bg_addr": f"0x{rec.bg_addr:04X}",
    }


def cmd_map_info(args: argparse.Namespace) -> int:
    layout = _layout_from_args(args)
    rom = pathlib.Path(args.rom).read_bytes()
    report = _map_record_report(read_map_record(rom, args.map_id, layout))
    if args.json:
        pathlib.Path(args.json).write_text(json.dumps(report, indent=2), encoding="utf-8")
    print(json.dumps(report, indent=2))
    return 0


def cmd_dump_map(args: argparse.Namespace) -> int:
    layout = _layout_from_args(args)
    rom = pathlib.Path(args.rom).read_bytes()
    canvas = Canvas(layout.map_width * TILE_SIZE, layout.map_height * TILE_SIZE)
    draw_map(rom, args.map_id, canvas, 0, 0, layout)
    out = pathlib.Path(args.out)
    canvas.save_png(out)
    print(json.dumps({"out": str(out), "map_id": args.map_id, "width": canvas.width, "height": canvas.height}, indent=2))
    return 0


def cmd_dump_maps(args: argparse.Namespace) -> int:
    layout = _layout_from_args(args)
    rom = pathlib.Path(args.rom).read_bytes()
    out_dir = pathlib.Path(args.outdir)
    out_dir.mkdir(parents=True, exist_ok=True)

    per_row = int(args.per_row)
    if per_row <= 0:
        raise ValueError("--per-row must be > 0")
    map_w = layout.map_width * TILE_SIZE
    map_h = layout.map_height * TILE_SIZE
    rows = (layout.num_maps + per_row - 1) // per_row
    canvas = Canvas(map_w * per_row, map_h * rows)

    failed: List[Dict[str, object]] = []
    for map_id in range(layout.num_maps):
        try:
            draw_map(rom, map_id, canvas, (map_id % per_row) * map_w, (map_id // per_row) * map_h, layout)
        except Exception as e:
            failed.append({"map_id": map_id, "error": str(e)})

    out_png = out_dir / "maps.png"
    canvas.save_png(out_png)
    manifest = {
        "rom": args.rom,
        "out": str(out_png),
        "per_row": per_row,
        "map_count": layout.num_maps,
        "drawn_count": layout.num_maps - len(failed),
        "failed_count": len(failed),
        "failed": failed,
    }
    out_manifest = out_dir / "manifest.json"
    out_manifest.write_text(json.dumps(manifest, indent=2), encoding="utf-8")
    print(json.dumps({"out": str(out_png), "manifest": str(out_manifest), "drawn_count": manifest["drawn_count"], "failed_count": len(failed)}, indent=2))
    return 0


def cmd_dump_tilesets(args: argparse.Namespace) -> int:
    layout = _layout_from_args(args)
    rom = pathlib.Path(args.rom).read_bytes()
    out_dir = pathlib.Path(args.outdir)
    out_dir.mkdir(parents=True, exist_ok=True)

    cols = int(args.cols)
    if cols <= 0:
        raise ValueError("--cols must be > 0")
    rows = (layout.num_tilesets + cols - 1) // cols
    tiles_per_set = layout.tile_block_size // TILE_BYTES
    block_w = 16 * TILE_SIZE + 8
    block_h = ((tiles_per_set + 15) // 16) * TILE_SIZE + 8
    canvas = Canvas(cols * block_w - 8, rows * block_h - 8)

    for tileset_id in range(layout.num_tilesets):
        # First palette for every tile.
        draw_tileset(rom, tileset_id, canvas, (tileset_id % cols) * block_w, (tileset_id // cols) * block_h, layout=layout)

    out_png = out_dir / "tilesets.png"
    canvas.save_png(out_png)
    print(json.dumps({"out": str(out_png), "tileset_count": layout.num_tilesets, "width": canvas.width, "height": canvas.height}, indent=2))
    return 0


def cmd_dump_zones(args: argparse.Namespace) -> int:
    layout = _layout_from_args(args)
    rom = pathlib.Path(args.rom).read_bytes()
    out_dir = pathlib.Path(args.outdir)
    out_dir.mkdir(parents=True, exist_ok=True)

    zones: List[Dict[str, object]] = []
    failed: List[Dict[str, object]] = []
    zone_iter = iter_zones(rom, layout)
    if args.limit is not None:
        zone_iter = itertools.islice(zone_iter, args.limit)
    for zone_i, zone in enumerate(zone_iter):
        out_png = out_dir / f"zone{zone_i:03d}.png"
        rec: Dict[str, object] = {
            "zone": zone_i,
            "root": zone.root,
            "grid_size": list(zone.grid_size()),
            "map_count": len(zone.map_ids()),
            "placements": [{"x": x, "y": y, "map_id": m} for (x, y), m in sorted(zone.locations.items())],
            "collisions": [{"x": x, "y": y, "map_id": m} for (x, y), m in zone.collisions],
        }
        try:
            draw_zone(rom, zone, layout).save_png(out_png)
            rec["out"] = str(out_png)
            zones.append(rec)
        except Exception as e:
            rec["error"] = str(e)
            failed.append(rec)

    manifest = {
        "rom": args.rom,
        "outdir": str(out_dir),
        "zone_count": len(zones) + len(failed),
        "exported_count": len(zones),
        "failed_count": len(failed),
        "zones": zones,
        "failed": failed,
    }
    out_manifest = out_dir / "manifest.json"
    out_manifest.write_text(json.dumps(manifest, indent=2), encoding="utf-8")
    print(json.dumps({"outdir": str(out_dir), "manifest": str(out_manifest), "exported_count": len(zones), "failed_count": len(failed)}, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Blue Sphere (GBC) map/tileset extraction helper")
    sub = p.add_subparsers(dest="cmd", required=True)

    pmi = sub.add_parser("map-info", help="Report a map's tileset, neighbors, and BG data location")
    pmi.add_argument("--rom", required=True, help="Path to ROM (.gbc)")
    pmi.add_argument("--map-id", required=True, type=lambda x: int(x, 0), help="Map id (hex or int)")
    pmi.add_argument("--json", help="Optional output JSON path")
    pmi.set_defaults(func=cmd_map_info)

    pdm = sub.add_parser("dump-map", help="Render one map to PNG")
    pdm.add_argument("--rom", required=True, help="Path to ROM (.gbc)")
    pdm.add_argument("--map-id", required=True, type=lambda x: int(x, 0), help="Map id (hex or int)")
    pdm.add_argument("--out", required=True, help="Output PNG path")
    pdm.set_defaults(func=cmd_dump_map)

    pms = sub.add_parser("dump-maps", help="Render every map into one mosaic PNG")
    pms.add_argument("--rom", required=True, help="Path to ROM (.gbc)")
    pms.add_argument("--outdir", required=True, help="Output folder")
    pms.add_argument("--per-row", type=lambda x: int(x, 0), default=40, help="Maps per mosaic row (default: 40)")
    pms.set_defaults(func=cmd_dump_maps)

    pts = sub.add_parser("dump-tilesets", help="Render every tileset into one mosaic PNG")
    pts.add_argument("--rom", required=True, help="Path to ROM (.gbc)")
    pts.add_argument("--outdir", required=True, help="Output folder")
    pts.add_argument("--cols", type=lambda x: int(x, 0), default=7, help="Tilesets per mosaic row (default: 7)")
    pts.set_defaults(func=cmd_dump_tilesets)

    pzs = sub.add_parser("dump-zones", help="Group maps into connected zones and render one PNG per zone")
    pzs.add_argument("--rom", required=True, help="Path to ROM (.gbc)")
    pzs.add_argument("--outdir", required=True, help="Output folder")
    pzs.add_argument("--limit", type=int, help="Optional max zones to export")
    pzs.set_defaults(func=cmd_dump_zones)

    for sp in (pmi, pdm, pms, pts, pzs):
        sp.add_argument("--layout", help="Optional layout override file (.json/.yaml/.yml)")

    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
