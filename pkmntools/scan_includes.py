"""List the files an assembly source pulls in through INCLUDE and INCBIN."""

from __future__ import annotations

import argparse
import os
import re
import sys
from typing import Iterator, NoReturn, Sequence

from pkmntools.common import ToolError, usage_exit

PROGRAM_NAME = "scan_includes"
USAGE_OPTS = "[-h|--help] [-s|--strict] filename.asm"

_SPACE = " \t\n\v\f\r"
_INTERESTING = re.compile(r'[;"Ii]')
_LINE_END = re.compile(r"[\r\n]")


def _is_space(ch: str) -> bool:
    return bool(ch) and ch in _SPACE


def _scan(text: str, filename: str, strict: bool) -> Iterator[str]:
    text = text.split("\0", 1)[0]
    n = len(text)
    pos = 0
    while pos < n:
        match = _INTERESTING.search(text, pos)
        if not match:
            break
        pos = match.start()
        ch = text[pos]

        if ch == ";":
            # Skip comments until the end of the line
            end = _LINE_END.search(text, pos + 1)
            pos = (end.start() if end else n) + 1
            continue

        if ch == '"':
            # Skip string literals until the closing quote
            end = text.find('"', pos + 1)
            pos = (end if end >= 0 else n) + 1
            continue

        before = text[pos - 1] if pos > 0 else "\n"
        if not _is_space(before) and before != ":":
            pos += 1
            continue
        is_incbin = text.startswith(("INCBIN", "incbin"), pos)
        is_include = text.startswith(("INCLUDE", "include"), pos)
        if not (is_incbin or is_include):
            pos += 1
            continue

        ptr = pos + (7 if is_include else 6)
        after = text[ptr] if ptr < n else ""
        if not _is_space(after) and after != '"':
            pos = ptr + 1
            continue
        while ptr < n and text[ptr] in " \t":
            ptr += 1
        if ptr < n and text[ptr] == '"':
            start = ptr + 1
            end = text.find('"', start)
            if end < 0:
                end = n
            path = text[start:end]
            yield path
            if is_include:
                yield from _scan_file(path, strict)
            pos = end + 2
        else:
            kind = "LUDE" if is_include else "BIN"
            print(f"{filename}: no file path after INC{kind}", file=sys.stderr)
            # A comment right after the keyword still has to be skipped.
            pos = ptr if ptr < n and text[ptr] == ";" else ptr + 1


def _scan_file(filename: str | os.PathLike[str], strict: bool) -> Iterator[str]:
    name = os.fspath(filename)
    try:
        with open(filename, "rb") as f:
            contents = f.read()
    except OSError as e:
        if strict:
            raise ToolError(f'Could not open file "{name}": {e.strerror or e}') from e
        return
    yield from _scan(contents.decode("latin-1"), name, strict)


def scan_text(text: str, filename: str = "<text>", strict: bool = False) -> list[str]:
    """Return every path named by INCLUDE or INCBIN in ``text``, following INCLUDEs."""
    return list(_scan(text, filename, strict))


def scan_file(filename: str | os.PathLike[str], strict: bool = False) -> list[str]:
    """Return every path a file includes, directly or through nested INCLUDEs.

    A missing file yields nothing unless ``strict`` is set, in which case
    ToolError is raised.
    """
    return list(_scan_file(filename, strict))


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        usage_exit(PROGRAM_NAME, USAGE_OPTS, 1)


def main(argv: Sequence[str] | None = None) -> int:
    parser = _Parser(prog=PROGRAM_NAME, add_help=False)
    parser.add_argument("-s", "--strict", action="store_true")
    parser.add_argument("-h", "--help", action="store_true")
    parser.add_argument("files", nargs="*")
    args = parser.parse_intermixed_args(argv)
    if args.help:
        usage_exit(PROGRAM_NAME, USAGE_OPTS, 0)
    if not args.files:
        usage_exit(PROGRAM_NAME, USAGE_OPTS, 1)
    try:
        for path in _scan_file(args.files[0], args.strict):
            sys.stdout.write(f"{path} ")
    except ToolError as e:
        sys.stdout.flush()
        print(f"{PROGRAM_NAME}: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())