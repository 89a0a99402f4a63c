"""Shared helpers for the command-line graphics and build tools."""

from __future__ import annotations

import os
import sys
from typing import NoReturn

PNG_HEADER = (
    b"\x89PNG\r\n\x1a\n"  # signature
    + (13).to_bytes(4, "big")  # IHDR chunk length
    + b"IHDR"  # IHDR chunk type
)


class ToolError(Exception):
    """A fatal error reported by one of the tools."""


def usage_exit(program: str, usage_opts: str, status: int) -> NoReturn:
    """Print the usage line of ``program`` to stderr and exit with ``status``."""
    print(f"Usage: {program} {usage_opts}", file=sys.stderr)
    raise SystemExit(status)


def _describe(error: OSError) -> str:
    return error.strerror or str(error)


def read_file(filename: str | os.PathLike[str]) -> bytes:
    """Return the whole contents of a file, raising ToolError on failure."""
    try:
        with open(filename, "rb") as f:
            return f.read()
    except OSError as e:
        raise ToolError(f'Could not open file "{os.fspath(filename)}": {_describe(e)}') from e


def write_file(filename: str | os.PathLike[str], data: bytes) -> None:
    """Write ``data`` to a file, raising ToolError on failure."""
    try:
        with open(filename, "wb") as f:
            f.write(data)
    except OSError as e:
        raise ToolError(f'Could not write to file "{os.fspath(filename)}": {_describe(e)}') from e


def read_png_width(filename: str | os.PathLike[str]) -> int:
    """Return the width stored in the IHDR chunk of a PNG file."""
    name = os.fspath(filename)
    try:
        with open(filename, "rb") as f:
            header = f.read(len(PNG_HEADER))
            if len(header) < len(PNG_HEADER):
                raise ToolError(f'Could not read from file "{name}"')
            if header != PNG_HEADER:
                raise ToolError(f'Not a valid PNG file: "{name}"')
            width = f.read(4)
    except OSError as e:
        raise ToolError(f'Could not open file "{name}": {_describe(e)}') from e
    if len(width) < 4:
        raise ToolError(f'Could not read from file "{name}"')
    return int.from_bytes(width, "big")