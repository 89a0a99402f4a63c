import random

import pytest

from pkmntools.common import ToolError
from pkmntools.pkmncompress import (
    compress,
    get_width,
    main,
    transpose_tiles,
    uncompress,
)

ZERO_TILE_PIC = b"\x11\xBC\x13\xC1"


def _image(width, seed):
    rng = random.Random(seed)
    tiles = []
    for _ in range(width * width):
        tile = bytearray(rng.randbytes(16))
        tile[14] = tile[15] = 0
        tiles.append(bytes(tile))
    return b"".join(tiles)


@pytest.mark.parametrize("width", range(1, 16))
def test_get_width_accepts_squares(width):
    assert get_width(width * width * 16) == width


@pytest.mark.parametrize("size", [0, 17, 32, 16 * 16 * 16])
def test_get_width_rejects_other_sizes(size):
    with pytest.raises(ToolError, match="not a square"):
        get_width(size)


def test_transpose_tiles_swaps_grid():
    a, b, c, d = (bytes([v]) * 16 for v in (1, 2, 3, 4))
    assert transpose_tiles(a + b + c + d, 2) == a + c + b + d


def test_transpose_tiles_is_involution():
    data = _image(5, 3)
    assert transpose_tiles(transpose_tiles(data, 5), 5) == data


def test_compress_blank_tile_worked_example():
    assert compress(bytes(16)) == ZERO_TILE_PIC


def test_uncompress_blank_tile_worked_example():
    assert uncompress(ZERO_TILE_PIC) == bytes(16)


def test_header_holds_width_twice():
    assert compress(bytes(3 * 3 * 16))[0] == 0x33


def test_blank_image_compresses_well():
    data = bytes(7 * 7 * 16)
    packed = compress(data)
    assert len(packed) < len(data)
    assert uncompress(packed) == data


@pytest.mark.parametrize("width,seed", [(1, 0), (1, 1), (2, 2), (3, 3), (5, 4), (7, 5), (15, 6)])
def test_round_trip(width, seed):
    data = _image(width, seed)
    assert uncompress(compress(data)) == data


def test_sparse_round_trip():
    data = bytearray(4 * 4 * 16)
    data[16 * 5 + 3] = 0x81
    data[16 * 9 + 6] = 0x3C
    assert uncompress(compress(bytes(data))) == bytes(data)


def test_compress_does_not_modify_input():
    data = bytearray(_image(3, 9))
    before = bytes(data)
    compress(data)
    assert data == before


def test_compress_rejects_bad_size():
    with pytest.raises(ToolError):
        compress(bytes(20))


def test_uncompress_rejects_non_square_header():
    with pytest.raises(ToolError, match="not a square"):
        uncompress(b"\x12\x00\x00\x00")


def test_uncompress_rejects_truncated_data():
    with pytest.raises(ToolError, match="Invalid compressed data"):
        uncompress(b"\x11")


def test_main_compresses_and_uncompresses(tmp_path):
    raw = tmp_path / "in.2bpp"
    pic = tmp_path / "out.pic"
    back = tmp_path / "back.2bpp"
    raw.write_bytes(bytes(16))
    assert main([str(raw), str(pic)]) == 0
    assert pic.read_bytes() == ZERO_TILE_PIC
    assert main(["-u", str(pic), str(back)]) == 0
    assert back.read_bytes() == bytes(16)


def test_main_reports_bad_image(tmp_path, capsys):
    raw = tmp_path / "in.2bpp"
    raw.write_bytes(bytes(20))
    assert main([str(raw), str(tmp_path / "out.pic")]) == 1
    assert "pkmncompress: Image is not a square" in capsys.readouterr().err


def test_main_without_files_exits_with_usage(capsys):
    with pytest.raises(SystemExit) as exc:
        main([])
    assert exc.value.code == 1
    assert "Usage: pkmncompress" in capsys.readouterr().err