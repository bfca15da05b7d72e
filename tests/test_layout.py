import json

import pytest

import sobs_extract as sx


def test_rom1_offset_window_edges():
    for bank in (0, 1, 0x54, 0x7F):
        assert sx.rom1_offset(bank, 0x4000) == 0x4000 * bank
        assert sx.rom1_offset(bank, 0x7FFF) == 0x4000 * bank + 0x3FFF


@pytest.mark.parametrize("addr", [0x0000, 0x3FFF, 0x8000, 0xC000])
def test_rom1_offset_rejects_addresses_outside_window(addr):
    with pytest.raises(ValueError):
        sx.rom1_offset(1, addr)


def test_rom1_offset_rejects_negative_bank():
    with pytest.raises(ValueError):
        sx.rom1_offset(-1, 0x4000)


def test_default_layout_constants():
    lay = sx.DEFAULT_LAYOUT
    assert lay.num_maps == 1545
    assert lay.num_tilesets == 98
    assert (lay.map_bank_lo, lay.map_bank_hi, lay.map_split) == (0x54, 0x55, 800)
    assert lay.tile_block_size + lay.palette_block_size == lay.tileset_stride


def test_load_layout_json(tmp_path):
    p = tmp_path / "layout.json"
    p.write_text(json.dumps({"num_maps": 3, "map_bank_lo": "0x10"}), encoding="utf-8")
    lay = sx.load_layout(p)
    assert lay.num_maps == 3
    assert lay.map_bank_lo == 0x10
    assert lay.map_bank_hi == sx.DEFAULT_LAYOUT.map_bank_hi


def test_load_layout_yaml(tmp_path):
    p = tmp_path / "layout.yaml"
    p.write_text("num_tilesets: 2\ntileset_bank_base: 0x41\n", encoding="utf-8")
    lay = sx.load_layout(p)
    assert lay.num_tilesets == 2
    assert lay.tileset_bank_base == 0x41


def test_load_layout_rejects_unknown_keys(tmp_path):
    p = tmp_path / "layout.json"
    p.write_text(json.dumps({"num_mapz": 3}), encoding="utf-8")
    with pytest.raises(ValueError, match="num_mapz"):
        sx.load_layout(p)


def test_load_layout_rejects_non_mapping_root(tmp_path):
    p = tmp_path / "layout.yml"
    p.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError):
        sx.load_layout(p)
