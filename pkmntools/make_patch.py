"""Build a virtual-console patch file from a template, two ROMs and their symbols."""

from __future__ import annotations

import string
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Sequence

from pkmntools.common import ToolError, read_file, usage_exit, write_file

PROGRAM_NAME = "make_patch"
USAGE_OPTS = "values.sym patched.gbc original.gbc vc.patch.template vc.patch"

# The ROM header checksum always differs between the two builds.
CHECKSUM_OFFSET = 0x14E
CHECKSUM_SIZE = 2

_SPACE = " \t\n\v\f\r"
_HEX_DIGITS = "0123456789abcdef"
_IDENTIFIER = string.ascii_letters + string.digits + "_"

_CONDITION_OPERATORS = ("==", ">", "<", ">=", "<=", "!=", "||")
_PATCH_COMMANDS = ("patch", "PATCH", "patch_", "PATCH_", "patch/", "PATCH/")
_DWS_COMMANDS = ("dws", "DWS", "dws_", "DWS_", "dws/", "DWS/")
_DB_COMMANDS = ("db", "DB", "db_", "DB_", "db/", "DB/")
_HEX_COMMANDS = (
    "hex", "HEX", "HEx", "Hex", "heX", "hEX",
    "hex~", "HEX~", "HEx~", "Hex~", "heX~", "hEX~",
)


@dataclass(frozen=True)
class Symbol:
    """A named address, with its offset into the ROM or into RAM."""

    name: str
    address: int
    offset: int


@dataclass(frozen=True)
class Patch:
    """A span of the ROM that a patch is allowed to change."""

    offset: int
    size: int


def _symbol_offset(bank: int, address: int) -> int:
    if address < 0x8000:
        # ROM addresses are relative to their bank
        return address + (bank - 1) * 0x4000 if bank > 0 else address
    # RAM addresses are relative to the start of all RAM
    return address - 0x8000


@dataclass
class SymbolTable:
    """Symbols looked up by name, most recently added first."""

    _symbols: list[Symbol] = field(default_factory=list)

    def add(self, name: str, bank: int, address: int) -> Symbol:
        """Add a symbol from its bank and address and return it."""
        symbol = Symbol(name, address, _symbol_offset(bank, address))
        self._symbols.append(symbol)
        return symbol

    def find(self, name: str) -> Symbol:
        """Return the symbol called ``name``; a leading "." matches a local label."""
        for symbol in reversed(self._symbols):
            if len(name) > len(symbol.name):
                continue
            candidate = symbol.name[len(symbol.name) - len(name):] if name.startswith(".") else symbol.name
            if candidate == name:
                return symbol
        raise ToolError(f'Error: Unknown symbol: "{name}"')

    def __iter__(self) -> Iterator[Symbol]:
        return reversed(self._symbols)

    def __len__(self) -> int:
        return len(self._symbols)


def parse_number(text: str, base: int) -> int:
    """Parse a whole non-negative number; base 0 accepts 0x hex and leading-0 octal."""
    s = text.lstrip(_SPACE)
    sign = 1
    if s[:1] in ("+", "-"):
        sign = -1 if s[0] == "-" else 1
        s = s[1:]
    if base in (0, 16) and s[:2].lower() == "0x" and len(s) > 2 and s[2].lower() in _HEX_DIGITS:
        base, s = 16, s[2:]
    elif base == 0:
        base = 8 if s.startswith("0") else 10
    valid = _HEX_DIGITS[:base]
    if not s or not all(c.lower() in valid for c in s):
        raise ToolError(f'Error: Cannot parse number: "{text}"')
    n = sign * int(s, base)
    if n < 0 or n > 0x7FFFFFFF:
        raise ToolError(f'Error: Cannot parse number: "{text}"')
    return n


def parse_symbol_value(text: str) -> tuple[int, int]:
    """Split a "bank:address" symbol value, both hexadecimal, into numbers."""
    bank, colon, address = text.partition(":")
    if colon:
        return parse_number(bank, 16), parse_number(address, 16)
    return 0, parse_number(text, 16)


class _SymState(Enum):
    PRE = 0
    VALUE = 1
    SPACE = 2
    NAME = 3


def parse_symbols(text: str) -> SymbolTable:
    """Read a symbol file: one "value name" pair per line, ";" starting comments."""
    symbols = SymbolTable()
    state = _SymState.PRE
    buffer: list[str] = []
    bank = address = 0
    chars = iter(text)
    while True:
        c = next(chars, None)
        if c is None or c in "\n\r;" or (state is _SymState.NAME and c in " \t"):
            if state is _SymState.NAME:
                symbols.add("".join(buffer), bank, address)
            # Skip to the next line, ignoring anything after the value and name
            state = _SymState.PRE
            while c is not None and c not in "\n\r":
                c = next(chars, None)
            if c is None:
                break
        elif c not in " \t":
            if state is _SymState.PRE:
                state = _SymState.VALUE
                buffer = []
            elif state is _SymState.SPACE:
                state = _SymState.NAME
                bank, address = parse_symbol_value("".join(buffer))
                buffer = []
            buffer.append(c)
        elif state is _SymState.VALUE:
            state = _SymState.SPACE
    return symbols


def parse_arg_value(arg: str, absolute: bool, symbols: SymbolTable, patch_name: str | None) -> int:
    """Evaluate a command argument: an operator, a number or a symbol expression."""
    if arg in _CONDITION_OPERATORS:
        op = _CONDITION_OPERATORS.index(arg)
        return 0x11 if arg == "||" else op

    if arg[:1] and (arg[0] in string.digits or arg[0] == "+"):
        return parse_number(arg, 0)

    part = ""
    if arg.startswith(("<", ">")):
        part, arg = arg[0], arg[1:]

    offset_mod = 0
    plus = arg.find("+")
    if plus >= 0:
        offset_mod = parse_number(arg[plus:], 0)
        arg = arg[:plus]

    if arg == "@":
        if patch_name is None:
            raise ToolError('Error: No current patch for "@"')
        name = patch_name
    else:
        name = arg
    symbol = symbols.find(name)

    value = (symbol.offset if absolute else symbol.address) + offset_mod
    if part == "<":
        return value & 0xFF
    if part == ">":
        return value >> 8
    return value


def _byte_at(rom: bytes, index: int) -> int:
    return rom[index] if 0 <= index < len(rom) else -1


def _hex(value: int, upper: bool, width: int = 2) -> str:
    spec = "X" if upper else "x"
    value &= 0xFFFFFFFF
    if width < 0:
        return format(value, f"<{-width}{spec}")
    return format(value, f"0{width}{spec}") if width else format(value, spec)


def _length_prefix(name: str, count: int) -> str:
    if name.endswith("/"):
        return ""
    return f"a{count}: " if name.endswith("_") else f"a{count}:"


def _split_command(command: str) -> list[str]:
    # Drop leading whitespace, collapse runs to their first character, drop one trailing.
    kept: list[str] = []
    previous = ""
    for c in command:
        if c not in _SPACE or (previous and previous not in _SPACE):
            kept.append(c)
        previous = c
    if kept and kept[-1] in _SPACE:
        kept.pop()
    parts = [""]
    for c in kept:
        if c in _SPACE:
            parts.append("")
        else:
            parts[-1] += c
    return parts


def interpret_command(
    command: str,
    current_hook: Symbol | None,
    symbols: SymbolTable,
    patches: list[Patch],
    new_rom: bytes,
    orig_rom: bytes,
) -> str:
    """Evaluate one "{...}" template command and return the text it expands to."""
    name, *args = _split_command(command)
    upper = name[:1].isupper()
    hook_name = current_hook.name if current_hook is not None else None

    if name in _PATCH_COMMANDS:
        if len(args) > 2:
            raise ToolError(f'Error: Invalid arguments for command: "{name}"')
        if current_hook is None:
            raise ToolError(f'Error: No current patch for command: "{name}"')
        current_offset = current_hook.offset + (parse_number(args[0], 0) if args else 0)
        if len(args) == 2:
            length = parse_number(args[1], 0)
        else:
            length = symbols.find(current_hook.name + "_End").offset - current_offset
        patches.append(Patch(current_offset, length))
        pairs = [
            (_byte_at(new_rom, current_offset + k), _byte_at(orig_rom, current_offset + k))
            for k in range(max(length, 1) if length == 1 else max(length, 0))
        ]
        modified = any(new != orig for new, orig in pairs)
        if length == 1:
            text = "0x" + _hex(pairs[0][0], upper)
        else:
            text = _length_prefix(name, length) + " ".join(_hex(new, upper) for new, _ in pairs)
        if not modified:
            print(
                f'{PROGRAM_NAME}: Warning: "vc_patch {current_hook.name}" doesn\'t alter the ROM',
                file=sys.stderr,
            )
        return text

    if name in _DWS_COMMANDS:
        if not args:
            raise ToolError(f'Error: Invalid arguments for command: "{name}"')
        words = []
        for arg in args:
            value = parse_arg_value(arg, False, symbols, hook_name)
            if value > 0xFFFF:
                raise ToolError(f'Error: Invalid value for "{name}" argument: 0x{value:x}')
            words.append(f"{_hex(value & 0xFF, upper)} {_hex(value >> 8, upper)}")
        return _length_prefix(name, len(args) * 2) + " ".join(words)

    if name in _DB_COMMANDS:
        if len(args) != 1:
            raise ToolError(f'Error: Invalid arguments for command: "{name}"')
        value = parse_arg_value(args[0], False, symbols, hook_name)
        if value > 0xFF:
            raise ToolError(f'Error: Invalid value for "{name}" argument: 0x{value:x}')
        return _length_prefix(name, 1) + _hex(value, upper)

    if name in _HEX_COMMANDS:
        if len(args) not in (1, 2):
            raise ToolError(f'Error: Invalid arguments for command: "{name}"')
        value = parse_arg_value(args[0], not name.endswith("~"), symbols, hook_name)
        padding = parse_number(args[1], 0) if len(args) > 1 else 2
        style = name.rstrip("~")
        if style == "HEx":
            return f"0x{_hex(value >> 8, True, padding - 2)}{_hex(value & 0xFF, False)}"
        if style == "Hex":
            return f"0x{_hex(value >> 12, True, padding - 3)}{_hex(value & 0xFFF, False, 3)}"
        if style == "heX":
            return f"0x{_hex(value >> 8, False, padding - 2)}{_hex(value & 0xFF, True)}"
        if style == "hEX":
            return f"0x{_hex(value >> 12, False, padding - 3)}{_hex(value & 0xFFF, True, 3)}"
        return "0x" + _hex(value, upper, padding)

    raise ToolError(f'Error: Unknown command: "{name}"')


def _rest_of_line(chars: Iterator[str]) -> str:
    line = []
    for c in chars:
        line.append(c)
        if c in "\n\r":
            break
    return "".join(line)


def process_template(
    template: str, new_rom: bytes, orig_rom: bytes, symbols: SymbolTable
) -> tuple[str, list[Patch]]:
    """Fill in a patch template; return the patch text and the spans it covers."""
    patches = [Patch(CHECKSUM_OFFSET, CHECKSUM_SIZE)]
    output: list[str] = []
    current_hook: Symbol | None = None
    chars = iter(template)
    for c in chars:
        if c == ";":
            # ";" comments until the end of the line
            output.append(c)
            output.append(_rest_of_line(chars))
        elif c == "{":
            # "{...}" is a template command
            command = []
            for d in chars:
                if d == "}":
                    break
                command.append(d)
            output.append(
                interpret_command("".join(command), current_hook, symbols, patches, new_rom, orig_rom)
            )
        elif c == "[":
            # "[...]" is a patch label, "@" introducing an alternate ".VC_" name
            output.append(c)
            alternate = False
            label: list[str] = []
            for d in chars:
                if not alternate and d == "@":
                    alternate = True
                    label = []
                elif d == "]":
                    output.append(d)
                    break
                else:
                    if not alternate:
                        output.append(d)
                        if d not in _IDENTIFIER:
                            d = "_"
                    label.append(d)
            current_hook = symbols.find(".VC_" + "".join(label))
            output.append(_rest_of_line(chars))
        else:
            output.append(c)
    return "".join(output), patches


def verify_completeness(orig_rom: bytes, new_rom: bytes, patches: list[Patch]) -> bool:
    """Check that every difference between the ROMs lies inside a patch."""
    ordered = sorted(patches, key=lambda patch: patch.offset)
    offset = position = index = 0
    while True:
        orig_byte = _byte_at(orig_rom, position) if position < len(orig_rom) else -1
        new_byte = _byte_at(new_rom, position) if position < len(new_rom) else -1
        if orig_byte == -1 or new_byte == -1:
            return orig_byte == new_byte
        position += 1
        patch = ordered[index] if index < len(ordered) else None
        if patch is not None and patch.offset == offset:
            if position + patch.size < 0:
                return False
            position += patch.size
            offset += patch.size
            index += 1
        elif orig_byte != new_byte:
            print(f"{PROGRAM_NAME}: Warning: Unpatched difference at offset: 0x{offset:x}", file=sys.stderr)
            print(f"    Original ROM value: 0x{orig_byte:02x}", file=sys.stderr)
            print(f"    Patched ROM value: 0x{new_byte:02x}", file=sys.stderr)
            if patch is not None:
                print(f"    Current patch offset: 0x{patch.offset:06x}", file=sys.stderr)
            return False
        offset += 1


def main(argv: Sequence[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) != 5:
        usage_exit(PROGRAM_NAME, USAGE_OPTS, 1)
    sym_file, new_file, orig_file, template_file, patch_file = args
    try:
        symbols = parse_symbols(read_file(sym_file).decode("latin-1"))
        new_rom = read_file(new_file)
        orig_rom = read_file(orig_file)
        template = read_file(template_file).decode("latin-1")
        text, patches = process_template(template, new_rom, orig_rom, symbols)
        write_file(patch_file, text.encode("latin-1"))
    except ToolError as e:
        print(f"{PROGRAM_NAME}: {e}", file=sys.stderr)
        return 1
    if not verify_completeness(orig_rom, new_rom, patches):
        print(
            f'{PROGRAM_NAME}: Warning: Not all ROM differences are defined by "{patch_file}"',
            file=sys.stderr,
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())