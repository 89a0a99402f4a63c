# pkmntools

Command-line helpers for building Game Boy ROM projects from assembly sources.
Pure Python, no runtime dependencies.

## Installation

    pip install .

## Commands

Every command prints its usage line to stderr and exits with status 1 when
its arguments are wrong, or with status 0 for `-h`/`--help`. Errors are
printed to stderr prefixed with the command's name, and the exit status is 1.

### pkmn-gfx

Cleans up raw 1bpp/2bpp tile data that has already been converted from a PNG.

    pkmn-gfx [--trim-whitespace] [--remove-whitespace] [--interleave]
             [--remove-duplicates [--keep-whitespace]] [--remove-xflip]
             [--remove-yflip] [--preserve INDEXES] [-d DEPTH] [-p FILE.png]
             [-o OUTFILE] INFILE

The steps run in this order:

* `--trim-whitespace` drops blank (all-zero) tiles from the end, never the
  first tile and never a preserved one.
* `--interleave` reorders tiles for 8x16 sprites; it needs `-p/--png` to read
  the image width from the PNG header.
* `--remove-duplicates` keeps only the first copy of each tile; with
  `--keep-whitespace`, blank duplicates are kept.
* `--remove-xflip` / `--remove-yflip` drop tiles that are a horizontally /
  vertically mirrored copy of an earlier tile; with both, tiles mirrored both
  ways are dropped as well.
* `--remove-whitespace` drops every blank tile that is not preserved.

`--preserve` takes a comma-separated list of tile indexes (decimal, `0x` hex
or leading-`0` octal) that are never removed; it may be given more than once.
`-d/--depth` is the bit depth, 2 by default. The result is written only when
`-o/--out` is given.

    pkmn-gfx --remove-duplicates --preserve=0x19,0x76 -o gengar.2bpp gengar.2bpp

### pkmncompress

Compresses a square 2bpp image (1x1 up to 15x15 tiles) into the `.pic`
format, trying every encoding variant and keeping the shortest, or
decompresses a `.pic` file with `-u/--uncompress`.

    pkmncompress front.2bpp front.pic
    pkmncompress -u front.pic front.2bpp

### scan-includes

Prints, separated by spaces, every path that an assembly source names in an
`INCLUDE` or `INCBIN` directive, following `INCLUDE`s recursively. Comments
and string literals are skipped. A file that cannot be opened is skipped
silently, unless `-s/--strict` is given, which makes it an error.

    scan-includes main.asm

### make-patch

Fills in a VC patch template from a symbol file and two ROM builds, writes
the patch file, and warns on stderr about ROM differences the template does
not cover (the header checksum at `0x14e` is always allowed to differ).

    make-patch values.sym patched.gbc original.gbc vc.patch.template vc.patch

The symbol file has one `[bank:]address name` pair per line, in hex, with
`;` starting a comment. In the template:

* `; ...` is copied through to the end of the line.
* `[Label]` starts a patch and is copied through; it refers to the symbol
  `.VC_Label` (characters other than letters, digits and `_` become `_`).
  `[Label@Other]` uses `.VC_Other` instead.
* `{...}` is a command, replaced by its output:
  * `patch [offset [length]]` — the bytes of the patched ROM at the current
    patch (up to the `<patch>_End` symbol unless a length is given); warns if
    they equal the original ROM.
  * `dws value...` — each value as a little-endian 16-bit word.
  * `db value` — one byte.
  * `hex value [digits]` — the value in hex; `hex` uses the symbol's ROM
    offset, `hex~` its address. `HEx`, `Hex`, `heX` and `hEX` mix letter case
    between the high and low digits.

  An upper-case command name gives upper-case hex. Byte lists are prefixed
  with `aN:`; a trailing `_` on the command gives `aN: `, a trailing `/`
  omits the prefix. Values may be numbers, symbol names with an optional
  `+offset`, `<`/`>` for the low/high byte, `@` for the current patch, or the
  operators `==`, `>`, `<`, `>=`, `<=`, `!=`, `||`.

## Library use

The same work is available from Python; every failure is raised as
`pkmntools.common.ToolError`.

    from pkmntools.gfx import GfxOptions, process
    from pkmntools.pkmncompress import compress, uncompress
    from pkmntools.scan_includes import scan_file, scan_text
    from pkmntools.make_patch import parse_symbols, process_template, verify_completeness

    with open("gengar.2bpp", "rb") as f:
        tiles = process(f.read(), GfxOptions(remove_duplicates=True, preserved=[0x19, 0x76]))

    with open("front.2bpp", "rb") as f:
        pic = compress(f.read())
    image = uncompress(pic)

    paths = scan_file("main.asm")

`pkmntools.gfx.Graphic` exposes each step on its own (`trim_whitespace`,
`remove_whitespace`, `remove_duplicates`, `remove_flip`, `interleave`), and
`pkmntools.common.read_png_width` reads a PNG's width from its header.
`process_template(template, new_rom, orig_rom, symbols)` returns the patch
text and the list of `Patch` spans it covers.

## What it does not do

These tools only post-process and inspect files. They do not convert PNG
images into tile data, and they do not assemble, link or fix up ROMs; those
steps need separate tools.

## Development

    pip install -e ".[test]"
    pytest