"""Post-processing of Game Boy tile graphics: trimming, deduplication, interleaving."""

from __future__ import annotations

import argparse
import string
import sys
from dataclasses import dataclass, field
from itertools import takewhile
from typing import NoReturn, Sequence

from pkmntools.common import ToolError, read_file, read_png_width, usage_exit, write_file

PROGRAM_NAME = "gfx"
USAGE_OPTS = (
    "[-h|--help] [--trim-whitespace] [--remove-whitespace] [--interleave] "
    "[--remove-duplicates [--keep-whitespace]] [--remove-xflip] [--remove-yflip] "
    "[--preserve indexes] [-d|--depth depth] [-p|--png filename.png] [-o|--out outfile] infile"
)

# Each byte with its bit order reversed, for horizontally flipping a tile row.
FLIPPED = bytes(int(f"{i:08b}"[::-1], 2) for i in range(256))


@dataclass
class GfxOptions:
    """Which transformations to apply to a graphic."""

    trim_whitespace: bool = False
    remove_whitespace: bool = False
    interleave: bool = False
    remove_duplicates: bool = False
    keep_whitespace: bool = False
    remove_xflip: bool = False
    remove_yflip: bool = False
    preserved: list[int] = field(default_factory=list)
    depth: int = 2
    png_file: str | None = None
    outfile: str | None = None


def _is_whitespace(tile: bytes | bytearray) -> bool:
    return not any(tile)


class Graphic:
    """Raw tile data together with the options that shape its transformations."""

    def __init__(self, data: bytes | bytearray, options: GfxOptions | None = None) -> None:
        self.data = bytearray(data)
        self.options = options if options is not None else GfxOptions()
        self.preserved = list(self.options.preserved)

    def __bytes__(self) -> bytes:
        return bytes(self.data)

    @property
    def tile_size(self) -> int:
        return self.options.depth * (16 if self.options.interleave else 8)

    def _tile(self, offset: int, size: int) -> bytearray:
        return self.data[offset:offset + size]

    def _is_preserved(self, index: int) -> bool:
        return index in self.preserved

    def _shift_preserved(self, removed_index: int) -> None:
        self.preserved = [p - 1 if p >= removed_index else p for p in self.preserved]

    def _align(self, tile_size: int) -> int:
        size = len(self.data) & ~(tile_size - 1)
        del self.data[size:]
        return size

    def trim_whitespace(self) -> None:
        """Drop trailing blank tiles, never the first one nor preserved ones."""
        tile_size = self.options.depth * 8
        size = len(self.data)
        for i in range(len(self.data) - tile_size, 0, -tile_size):
            if _is_whitespace(self._tile(i, tile_size)) and not self._is_preserved(i // tile_size):
                size = i
            else:
                break
        del self.data[size:]

    def remove_whitespace(self) -> None:
        """Remove every blank tile that is not preserved."""
        tile_size = self.tile_size
        size = self._align(tile_size)
        i = j = d = 0
        while i < size and j < size:
            while (
                j < size
                and _is_whitespace(self._tile(j, tile_size))
                and not self._is_preserved(j // tile_size - d)
            ):
                self._shift_preserved(j // tile_size - d)
                j += tile_size
                d += 1
            if j >= size:
                break
            if j > i:
                self.data[i:i + tile_size] = self._tile(j, tile_size)
            i += tile_size
            j += tile_size
        del self.data[i:]

    def _compact(self, exists) -> None:
        tile_size = self.tile_size
        size = self._align(tile_size)
        num_tiles = 0
        i = j = d = 0
        while i < size and j < size:
            while j < size and exists(self._tile(j, tile_size), num_tiles):
                if (
                    self.options.keep_whitespace and _is_whitespace(self._tile(j, tile_size))
                ) or self._is_preserved(j // tile_size - d):
                    break
                self._shift_preserved(j // tile_size - d)
                j += tile_size
                d += 1
            if j >= size:
                break
            if j > i:
                self.data[i:i + tile_size] = self._tile(j, tile_size)
            num_tiles += 1
            i += tile_size
            j += tile_size
        del self.data[num_tiles * tile_size:]

    def _tile_exists(self, tile: bytes | bytearray, num_tiles: int) -> bool:
        tile_size = self.tile_size
        tile = bytes(tile)
        return any(
            self.data[k * tile_size:(k + 1) * tile_size] == tile for k in range(num_tiles)
        )

    def _flip(self, tile: bytes | bytearray, xflip: bool, yflip: bool) -> bytearray:
        tile_size = self.tile_size
        half_size = tile_size // 2
        flipped = bytearray(tile_size)
        for i, byte in enumerate(tile[:tile_size]):
            if yflip:
                end = half_size if self.options.interleave and i < half_size else tile_size
                target = end - 1 - (i ^ 1)
            else:
                target = i
            flipped[target] = FLIPPED[byte] if xflip else byte
        return flipped

    def remove_duplicates(self) -> None:
        """Remove tiles identical to an earlier kept tile."""
        self._compact(self._tile_exists)

    def remove_flip(self, xflip: bool, yflip: bool) -> None:
        """Remove tiles that are a flipped copy of an earlier kept tile."""
        self._compact(lambda tile, n: self._tile_exists(self._flip(tile, xflip, yflip), n))

    def interleave(self, width: int) -> None:
        """Reorder tiles so each pair of rows becomes top/bottom tile pairs."""
        tile_size = self.options.depth * 8
        width_tiles = width // 8
        if width_tiles <= 0:
            raise ToolError(f"Invalid image width for --interleave: {width}")
        num_tiles = len(self.data) // tile_size
        size = num_tiles * tile_size
        interleaved = bytearray(max(size, (num_tiles + 2 * width_tiles) * tile_size))
        for i in range(num_tiles):
            row = i // width_tiles
            base = width_tiles * (row + 1) - 1 if row % 2 else width_tiles * row
            tile = i * 2 - base
            interleaved[tile * tile_size:(tile + 1) * tile_size] = self._tile(i * tile_size, tile_size)
        self.data = interleaved[:size]


def process(data: bytes, options: GfxOptions, png_width: int | None = None) -> bytes:
    """Apply every transformation selected by ``options`` and return the result."""
    graphic = Graphic(data, options)
    if options.trim_whitespace:
        graphic.trim_whitespace()
    if options.interleave:
        if png_width is None:
            raise ToolError("--interleave needs --png to infer dimensions")
        graphic.interleave(png_width)
    if options.remove_duplicates:
        graphic.remove_duplicates()
    if options.remove_xflip:
        graphic.remove_flip(True, False)
    if options.remove_yflip:
        graphic.remove_flip(False, True)
    if options.remove_xflip and options.remove_yflip:
        graphic.remove_flip(True, True)
    if options.remove_whitespace:
        graphic.remove_whitespace()
    return bytes(graphic)


def _parse_uint(text: str) -> int:
    """Parse a number the lenient way: 0x for hex, leading 0 for octal, junk gives 0."""
    s = text.lstrip(" \t\n\r\f\v")
    sign = 1
    if s and s[0] in "+-":
        sign = -1 if s[0] == "-" else 1
        s = s[1:]
    if s[:2].lower() == "0x" and len(s) > 2 and s[2] in string.hexdigits:
        base, s, valid = 16, s[2:], string.hexdigits
    elif s.startswith("0"):
        base, valid = 8, string.octdigits
    else:
        base, valid = 10, string.digits
    digits = "".join(takewhile(lambda c: c in valid, s))
    return sign * int(digits, base) if digits else 0


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        usage_exit(PROGRAM_NAME, USAGE_OPTS, 1)


def parse_args(argv: Sequence[str] | None = None) -> tuple[GfxOptions, list[str]]:
    """Parse command-line arguments into options and the list of input files."""
    parser = _Parser(prog=PROGRAM_NAME, add_help=False)
    parser.add_argument("--remove-whitespace", action="store_true")
    parser.add_argument("--trim-whitespace", action="store_true")
    parser.add_argument("--interleave", action="store_true")
    parser.add_argument("--remove-duplicates", action="store_true")
    parser.add_argument("--keep-whitespace", action="store_true")
    parser.add_argument("--remove-xflip", action="store_true")
    parser.add_argument("--remove-yflip", action="store_true")
    parser.add_argument("--preserve", action="append", default=[])
    parser.add_argument("-p", "--png")
    parser.add_argument("-d", "--depth")
    parser.add_argument("-o", "--out")
    parser.add_argument("-h", "--help", action="store_true")
    parser.add_argument("files", nargs="*")
    args = parser.parse_intermixed_args(argv)
    if args.help:
        usage_exit(PROGRAM_NAME, USAGE_OPTS, 0)
    options = GfxOptions(
        trim_whitespace=args.trim_whitespace,
        remove_whitespace=args.remove_whitespace,
        interleave=args.interleave,
        remove_duplicates=args.remove_duplicates,
        keep_whitespace=args.keep_whitespace,
        remove_xflip=args.remove_xflip,
        remove_yflip=args.remove_yflip,
        preserved=[
            _parse_uint(token)
            for value in args.preserve
            for token in value.split(",")
            if token
        ],
        depth=2 if args.depth is None else _parse_uint(args.depth),
        png_file=args.png,
        outfile=args.out,
    )
    return options, list(args.files)


def main(argv: Sequence[str] | None = None) -> int:
    options, files = parse_args(argv)
    if not files:
        usage_exit(PROGRAM_NAME, USAGE_OPTS, 1)
    try:
        data = read_file(files[0])
        png_width = None
        if options.interleave and options.png_file:
            png_width = read_png_width(options.png_file)
        result = process(data, options, png_width)
        if options.outfile:
            write_file(options.outfile, result)
    except ToolError as e:
        print(f"{PROGRAM_NAME}: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())