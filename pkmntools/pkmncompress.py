"""Compression and decompression of square 2bpp pictures into the ``.pic`` format."""

from __future__ import annotations

import argparse
import sys
from enum import Enum
from typing import NoReturn, Sequence

from pkmntools.common import ToolError, read_file, usage_exit, write_file

PROGRAM_NAME = "pkmncompress"
USAGE_OPTS = "[-h|--help] [-u|--uncompress] infile.2bpp outfile.pic"

TILE_SIZE = 0x10
MAX_WIDTH = 15

GRAY_CODES = (
    (0x0, 0x1, 0x3, 0x2, 0x6, 0x7, 0x5, 0x4, 0xC, 0xD, 0xF, 0xE, 0xA, 0xB, 0x9, 0x8),
    (0x8, 0x9, 0xB, 0xA, 0xE, 0xF, 0xD, 0xC, 0x4, 0x5, 0x7, 0x6, 0x2, 0x3, 0x1, 0x0),
)
UNGRAY_CODES = (
    (0x0, 0x1, 0x3, 0x2, 0x7, 0x6, 0x4, 0x5, 0xF, 0xE, 0xC, 0xD, 0x8, 0x9, 0xB, 0xA),
    (0xF, 0xE, 0xC, 0xD, 0x8, 0x9, 0xB, 0xA, 0x0, 0x1, 0x3, 0x2, 0x7, 0x6, 0x4, 0x5),
)
# Smallest run length expressible with a prefix of N one-bits.
RUN_BASES = tuple((1 << (w + 1)) - 1 for w in range(16))

# (mode, order) pairs tried by the compressor, in order of preference on ties.
VARIANTS = ((0, 1), (1, 0), (1, 1), (2, 0), (2, 1))


class _State(Enum):
    START = 0
    RUN = 1
    DATA = 2


class _BitWriter:
    """Most-significant-bit-first writer following a one-byte header."""

    def __init__(self, header: int) -> None:
        self.data = bytearray([header])
        self.bit = 7

    def write(self, bit: int) -> None:
        self.bit += 1
        if self.bit == 8:
            self.data.append(0)
            self.bit = 0
        self.data[-1] |= bit << (7 - self.bit)

    @property
    def bit_length(self) -> int:
        return len(self.data) * 8 + self.bit


class _BitReader:
    """Most-significant-bit-first reader over compressed data."""

    def __init__(self, data: bytes | bytearray) -> None:
        self.data = data
        self.byte = 0
        self.bit = 7

    def read(self) -> int:
        if self.bit == -1:
            self.byte += 1
            self.bit = 7
        if self.byte >= len(self.data):
            raise ToolError("Invalid compressed data")
        value = (self.data[self.byte] >> self.bit) & 1
        self.bit -= 1
        return value

    def read_int(self, count: int) -> int:
        n = 0
        for _ in range(count):
            n = (n << 1) | self.read()
        return n


def get_width(size: int) -> int:
    """Return the side length in tiles of a square image of ``size`` bytes."""
    for width in range(1, MAX_WIDTH + 1):
        if size == width * width * TILE_SIZE:
            return width
    raise ToolError("Image is not a square, or is larger than 15x15 tiles")


def transpose_tiles(data: bytes | bytearray, width: int) -> bytes:
    """Swap the rows and columns of a ``width`` x ``width`` grid of tiles."""
    count = width * width
    tiles = [bytes(data[i * TILE_SIZE:(i + 1) * TILE_SIZE]) for i in range(count)]
    for i in range(count):
        j = (i * width + i // width) % count
        if i < j:
            tiles[i], tiles[j] = tiles[j], tiles[i]
    return b"".join(tiles) + bytes(data[count * TILE_SIZE:])


def _gray_encode(plane: bytearray, width: int) -> None:
    column = width * 8
    for y in range(column):
        nybble_lo = 0
        for m in range(width):
            j = y + m * column
            nybble_hi = (plane[j] >> 4) & 0xF
            code_hi = GRAY_CODES[nybble_lo & 1][nybble_hi]
            nybble_lo = plane[j] & 0xF
            code_lo = GRAY_CODES[nybble_hi & 1][nybble_lo]
            plane[j] = (code_hi << 4) | code_lo


def _gray_decode(plane: bytearray, width: int) -> None:
    column = width * 8
    for x in range(column):
        bit = 0
        for y in range(width):
            i = y * column + x
            code_hi = UNGRAY_CODES[bit][(plane[i] >> 4) & 0xF]
            bit = code_hi & 1
            code_lo = UNGRAY_CODES[bit][plane[i] & 0xF]
            bit = code_lo & 1
            plane[i] = (code_hi << 4) | code_lo


def _encode_run(writer: _BitWriter, extra: int) -> None:
    count = extra + 1
    top = 1 << ((count + 1).bit_length() - 1)
    base = top - 1
    number = count - base
    bit_count = base.bit_length() - 1
    for _ in range(bit_count):
        writer.write(1)
    writer.write(0)
    for j in range(bit_count, -1, -1):
        writer.write((number >> j) & 1)


def _write_packet(writer: _BitWriter, groups: list[int]) -> None:
    for group in groups:
        writer.write((group >> 1) & 1)
        writer.write(group & 1)


def _encode_variant(planes: tuple[bytes, bytes], mode: int, order: int, width: int) -> tuple[int, bytes]:
    rams = [bytearray(planes[order]), bytearray(planes[order ^ 1])]
    if mode != 0:
        rams[1] = bytearray(a ^ b for a, b in zip(rams[1], rams[0]))
    _gray_encode(rams[0], width)
    if mode != 1:
        _gray_encode(rams[1], width)

    writer = _BitWriter((width << 4) | width)
    writer.write(order)
    column = width * 8
    groups: list[int] = []
    for plane_index, ram in enumerate(rams):
        state = _State.START
        nums = 0
        # Pending groups are cleared but keep their count across planes.
        groups = [0] * len(groups)
        for x in range(width):
            values = ram[x * column:(x + 1) * column]
            for shift in (6, 4, 2, 0):
                for value in values:
                    group = (value >> shift) & 3
                    if group:
                        if state is _State.START:
                            writer.write(1)
                        elif state is _State.RUN:
                            _encode_run(writer, nums)
                        state = _State.DATA
                        groups.append(group)
                        nums = 0
                    else:
                        if state is _State.START:
                            writer.write(0)
                        elif state is _State.RUN:
                            nums += 1
                        else:
                            _write_packet(writer, groups)
                            writer.write(0)
                            writer.write(0)
                        state = _State.RUN
                        groups = []
        if state is _State.RUN:
            _encode_run(writer, nums)
        else:
            _write_packet(writer, groups)
        if plane_index == 0:
            if mode == 0:
                writer.write(0)
            else:
                writer.write(1)
                writer.write(mode - 1)
    return writer.bit_length, bytes(writer.data)


def compress(data: bytes | bytearray) -> bytes:
    """Compress a square 2bpp image into the ``.pic`` format."""
    width = get_width(len(data))
    tiles = transpose_tiles(data, width)
    planes = (tiles[0::2], tiles[1::2])
    best: tuple[int, bytes] | None = None
    for mode, order in VARIANTS:
        candidate = _encode_variant(planes, mode, order, width)
        if best is None or candidate[0] < best[0]:
            best = candidate
    assert best is not None
    bits, encoded = best
    return encoded[:bits // 8]


def _decode_plane(reader: _BitReader, width: int) -> bytearray:
    size = width * width * 0x20
    groups = bytearray()
    data_mode = reader.read()
    while len(groups) < size:
        if data_mode:
            while len(groups) < size:
                group = reader.read_int(2)
                if not group:
                    break
                groups.append(group)
        else:
            ones = 0
            while reader.read():
                ones += 1
            if ones >= len(RUN_BASES):
                raise ToolError("Invalid compressed data")
            count = RUN_BASES[ones] + reader.read_int(ones + 1)
            groups.extend(bytes(min(count, size - len(groups))))
        data_mode ^= 1

    column = width * 8
    ram = bytearray()
    for y in range(width):
        for x in range(column):
            a, b, c, d = (groups[(y * 4 + i) * column + x] for i in range(4))
            ram.append((a << 6) | (b << 4) | (c << 2) | d)
    return ram


def uncompress(data: bytes | bytearray) -> bytes:
    """Expand ``.pic`` data back into a square 2bpp image."""
    reader = _BitReader(data)
    width = reader.read_int(4)
    if reader.read_int(4) != width:
        raise ToolError("Image is not a square")
    rams = [bytearray(), bytearray()]
    order = reader.read()
    rams[order] = _decode_plane(reader, width)
    mode = reader.read()
    if mode:
        mode += reader.read()
    rams[order ^ 1] = _decode_plane(reader, width)
    _gray_decode(rams[order], width)
    if mode != 1:
        _gray_decode(rams[order ^ 1], width)
    if mode != 0:
        rams[order ^ 1] = bytearray(a ^ b for a, b in zip(rams[order ^ 1], rams[order]))
    size = width * width * 8
    out = bytearray(size * 2)
    out[0::2] = rams[0]
    out[1::2] = rams[1]
    return transpose_tiles(out, width)


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        usage_exit(PROGRAM_NAME, USAGE_OPTS, 1)


def main(argv: Sequence[str] | None = None) -> int:
    parser = _Parser(prog=PROGRAM_NAME, add_help=False)
    parser.add_argument("-u", "--uncompress", action="store_true")
    parser.add_argument("-h", "--help", action="store_true")
    parser.add_argument("files", nargs="*")
    args = parser.parse_intermixed_args(argv)
    if args.help:
        usage_exit(PROGRAM_NAME, USAGE_OPTS, 0)
    if len(args.files) < 2:
        usage_exit(PROGRAM_NAME, USAGE_OPTS, 1)
    infile, outfile = args.files[:2]
    try:
        data = read_file(infile)
        result = uncompress(data) if args.uncompress else compress(data)
        write_file(outfile, result)
    except ToolError as e:
        print(f"{PROGRAM_NAME}: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())