"""The assembler's symbol table: labels, constants, variables, strings and macros."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterator

from .diagnostics import Diagnostics, WarningId
from .errors import FatalError, warnx

_U32 = 0xFFFFFFFF


def _i32(value: int) -> int:
    value &= _U32
    return value - (1 << 32) if value & 0x80000000 else value


def _org(section: Any) -> int:
    # A floating section has no address yet; it counts as -1 until linking.
    org = getattr(section, "org", None)
    return -1 if org is None else org


class SymbolType(Enum):
    """Kind of a symbol."""

    LABEL = "label"
    EQU = "equ"
    VAR = "var"
    MACRO = "macro"
    EQUS = "equs"
    REF = "ref"  # Forward reference to a label


class SymbolError(Exception):
    """A symbol operation was rejected; the assembly may go on."""


class FatalSymbolError(FatalError):
    """A symbol name is nonsensical; the assembly must stop."""


@dataclass(eq=False)
class Symbol:
    """One entry of the symbol table.

    `data` holds an int for numeric symbols, a callable for built-ins whose
    value is computed, a string for EQUS symbols, or the body of a macro.
    """

    name: str
    type: SymbolType = SymbolType.REF
    is_exported: bool = False
    is_builtin: bool = False
    section: Any = None
    src: str | None = None
    file_line: int = 0
    data: Any = 0
    id: int | None = None
    def_index: int = 0

    def is_defined(self) -> bool:
        return self.type is not SymbolType.REF

    def is_numeric(self) -> bool:
        return self.type in (SymbolType.LABEL, SymbolType.EQU, SymbolType.VAR)

    def is_label(self) -> bool:
        return self.type in (SymbolType.LABEL, SymbolType.REF)


_VERSION_RE = re.compile(r"v?(\d+)\.(\d+)\.(\d+)(?:-rc(\d+))?")


class SymbolTable:
    """All symbols of one assembly, with the current label scopes.

    The assembler keeps `section` (the section labels go into, an object with
    an `org` attribute that is None while floating), `offset` (the offset into
    it), `macro_arg_count` (None outside of a macro), `source` and `line_no`
    (where definitions currently happen) up to date.
    """

    def __init__(self, now: float | None = None, version: str = "0.0.0") -> None:
        self._symbols: dict[str, Symbol] = {}
        self._purged: set[str] = set()
        self._global_scope: Symbol | None = None
        self._local_scope: Symbol | None = None
        self._export_all = False
        self._next_def_index = 0
        self._anon_label_id = 0

        self.section: Any = None
        self.offset = 0
        self.macro_arg_count: int | None = None
        self.source: str | None = None
        self.line_no = 0
        self.diagnostics = Diagnostics()

        self._define_builtins(time.time() if now is None else now, version)

    # Built-ins

    def _builtin(self, sym: Symbol | None) -> Symbol:
        assert sym is not None
        sym.is_builtin = True
        return sym

    def _define_builtins(self, now: float, version: str) -> None:
        self._pc = self._create("@")
        self._pc.type = SymbolType.LABEL
        self._pc.data = self._pc_value
        self._pc.is_builtin = True

        self._narg = self._create("_NARG")
        self._narg.type = SymbolType.EQU
        self._narg.data = self._narg_value
        self._narg.is_builtin = True

        self._global_scope_sym = self._create(".")
        self._global_scope_sym.type = SymbolType.EQUS
        self._global_scope_sym.data = self._global_scope_name
        self._global_scope_sym.is_builtin = True

        self._local_scope_sym = self._create("..")
        self._local_scope_sym.type = SymbolType.EQUS
        self._local_scope_sym.data = self._local_scope_name
        self._local_scope_sym.is_builtin = True

        self._rs = self._builtin(self.add_var("_RS", 0))

        match = _VERSION_RE.match(version)
        parts = [int(p) if p else None for p in match.groups()] if match else [0, 0, 0, None]
        self._builtin(self.add_string("__RGBDS_VERSION__", version))
        self._builtin(self.add_equ("__RGBDS_MAJOR__", parts[0]))
        self._builtin(self.add_equ("__RGBDS_MINOR__", parts[1]))
        self._builtin(self.add_equ("__RGBDS_PATCH__", parts[2]))
        if parts[3] is not None:
            self._builtin(self.add_equ("__RGBDS_RC__", parts[3]))

        if now == -1:
            warnx("Failed to determine current time")
            now = 0

        local = time.localtime(now)
        utc = time.gmtime(now)
        strings = {
            "__TIME__": time.strftime('"%H:%M:%S"', local),
            "__DATE__": time.strftime('"%d %B %Y"', local),
            "__ISO_8601_LOCAL__": time.strftime('"%Y-%m-%dT%H:%M:%S%z"', local),
            "__ISO_8601_UTC__": time.strftime('"%Y-%m-%dT%H:%M:%SZ"', utc),
        }
        for name, text in strings.items():
            self._builtin(self.add_string(name, text))

        numbers = {
            "__UTC_YEAR__": utc.tm_year,
            "__UTC_MONTH__": utc.tm_mon,
            "__UTC_DAY__": utc.tm_mday,
            "__UTC_HOUR__": utc.tm_hour,
            "__UTC_MINUTE__": utc.tm_min,
            "__UTC_SECOND__": utc.tm_sec,
        }
        for name, number in numbers.items():
            self._builtin(self.add_equ(name, number))

    def _pc_value(self) -> int:
        if self.section is None:
            raise SymbolError("PC has no value outside of a section")
        return _i32(_org(self.section) + self.offset)

    def _narg_value(self) -> int:
        if self.macro_arg_count is None:
            raise SymbolError("_NARG has no value outside of a macro")
        return self.macro_arg_count

    def _global_scope_name(self) -> str:
        if self._global_scope is None:
            raise SymbolError('"." has no value outside of a label scope')
        return self._global_scope.name

    def _local_scope_name(self) -> str:
        if self._local_scope is None:
            raise SymbolError('".." has no value outside of a local label scope')
        return self._local_scope.name

    # Iteration and value access

    def __iter__(self) -> Iterator[Symbol]:
        return iter(list(self._symbols.values()))

    def is_pc(self, sym: Symbol | None) -> bool:
        return sym is not None and sym is self._pc

    def symbol_section(self, sym: Symbol) -> Any:
        """The section a symbol belongs to; `@` belongs to the current one."""
        return self.section if self.is_pc(sym) else sym.section

    def is_constant(self, sym: Symbol) -> bool:
        if sym.type is SymbolType.LABEL:
            section = self.symbol_section(sym)
            return section is not None and getattr(section, "org", None) is not None
        return sym.type in (SymbolType.EQU, SymbolType.VAR)

    def value(self, sym: Symbol) -> int:
        """Numeric value; a label's includes its section's address."""
        if isinstance(sym.data, int):
            if sym.type is SymbolType.LABEL:
                return _i32(sym.data + _org(self.symbol_section(sym)))
            return sym.data
        return self.output_value(sym)

    def output_value(self, sym: Symbol) -> int:
        """Numeric value as written to an object file (labels relative to their section)."""
        if isinstance(sym.data, int):
            return sym.data
        if sym.is_numeric() and callable(sym.data):
            return sym.data()
        return 0

    def equs(self, sym: Symbol) -> str:
        """String value of an EQUS symbol."""
        if sym.type is not SymbolType.EQUS:
            raise TypeError(f"'{sym.name}' is not a string symbol")
        return sym.data() if callable(sym.data) else sym.data

    def constant_value(self, sym: Symbol) -> int:
        """Value of a constant symbol, as an unsigned 32-bit number."""
        if self.is_constant(sym):
            return self.value(sym) & _U32
        if self.is_pc(sym):
            if self.symbol_section(sym) is None:
                raise SymbolError("PC has no value outside of a section")
            raise SymbolError(
                "PC does not have a constant value; the current section is not fixed"
            )
        raise SymbolError(f'"{sym.name}" does not have a constant value')

    def get_constant_value(self, name: str) -> int:
        sym = self.find_scoped(name)
        if sym is not None:
            return self.constant_value(sym)
        if self.is_purged_scoped(name):
            raise SymbolError(f"'{name}' not defined; it was purged")
        raise SymbolError(f"'{name}' not defined")

    def set_export_all(self, enabled: bool) -> None:
        """Whether new labels are exported by default."""
        self._export_all = enabled

    # Lookup

    @staticmethod
    def _check_expanded(name: str) -> None:
        if name.startswith(".") and name.strip("."):
            raise ValueError(f"'{name}' is not a fully qualified name")

    def _is_auto_scoped(self, name: str) -> bool:
        dot = name.find(".")
        if dot == -1:
            return False
        if dot == 0 and not name.strip("."):
            return False
        if dot == len(name) - 1:
            raise FatalSymbolError(
                f"'{name}' is a nonsensical reference to an empty local label"
            )
        if name.find(".", dot + 1) != -1:
            raise FatalSymbolError(
                f"'{name}' is a nonsensical reference to a nested local label"
            )
        if dot > 0:
            return False
        if self._global_scope is None:
            raise FatalSymbolError(f"Unqualified local label '{name}' in main scope")
        return True

    def _expand(self, name: str) -> str:
        if self._is_auto_scoped(name):
            assert self._global_scope is not None
            return self._global_scope.name + name
        return name

    def find_exact(self, name: str) -> Symbol | None:
        self._check_expanded(name)
        return self._symbols.get(name)

    def find_scoped(self, name: str) -> Symbol | None:
        return self.find_exact(self._expand(name))

    def find_scoped_valid(self, name: str) -> Symbol | None:
        """Like find_scoped, but built-ins without a current value are not found."""
        sym = self.find_scoped(name)
        if self.is_pc(sym) and self.section is None:
            return None
        if sym is self._narg and self.macro_arg_count is None:
            return None
        if sym is self._global_scope_sym and self._global_scope is None:
            return None
        if sym is self._local_scope_sym and self._local_scope is None:
            return None
        return sym

    # Purging

    def purge(self, name: str) -> None:
        sym = self.find_scoped_valid(name)
        if sym is None:
            if self.is_purged_scoped(name):
                raise SymbolError(f"'{name}' was already purged")
            raise SymbolError(f"'{name}' not defined")
        if sym.is_builtin:
            raise SymbolError(f"Built-in symbol '{name}' cannot be purged")
        if sym.id is not None:
            raise SymbolError(f'Symbol "{name}" is referenced and thus cannot be purged')
        if sym.is_exported:
            self.diagnostics.warning(
                WarningId.PURGE_1, f'Purging an exported symbol "{name}"\n'
            )
        elif sym.is_label():
            self.diagnostics.warning(WarningId.PURGE_2, f'Purging a label "{name}"\n')
        if sym is self._global_scope:
            self._global_scope = None
        if sym is self._local_scope:
            self._local_scope = None
        self._purged.add(sym.name)
        del self._symbols[sym.name]

    def is_purged_exact(self, name: str) -> bool:
        self._check_expanded(name)
        return name in self._purged

    def is_purged_scoped(self, name: str) -> bool:
        return self.is_purged_exact(self._expand(name))

    # Definition helpers

    def _create(self, name: str) -> Symbol:
        self._check_expanded(name)
        sym = Symbol(
            name=name,
            src=self.source,
            file_line=self.line_no if self.source is not None else 0,
            def_index=self._next_def_index,
        )
        self._next_def_index += 1
        self._symbols[name] = sym
        return sym

    def _touch(self, sym: Symbol) -> None:
        sym.src = self.source
        sym.file_line = self.line_no if self.source is not None else 0

    @staticmethod
    def _where(sym: Symbol) -> str:
        if sym.src is not None:
            return f"{sym.src}({sym.file_line})"
        return "<builtin>" if sym.is_builtin else "<command-line>"

    def _already_defined(self, sym: Symbol, as_type: str | None) -> SymbolError:
        if sym.is_builtin and self.find_scoped_valid(sym.name) is None:
            return SymbolError(f"'{sym.name}' is reserved for a built-in symbol")
        suffix = f" as {as_type}" if as_type else ""
        return SymbolError(f"'{sym.name}' already defined{suffix} at {self._where(sym)}")

    def _redefined(self, sym: Symbol) -> SymbolError:
        if self.find_scoped_valid(sym.name) is None:
            return SymbolError(f"'{sym.name}' is reserved for a built-in symbol")
        return SymbolError(f"Built-in symbol '{sym.name}' cannot be redefined")

    def _already_referenced(self, sym: Symbol) -> SymbolError:
        return SymbolError(f"'{sym.name}' already referenced at {self._where(sym)}")

    def _create_nonreloc(self, name: str, numeric: bool) -> Symbol:
        sym = self.find_exact(name)
        if sym is None:
            sym = self._create(name)
            self._purged.discard(name)
        elif sym.is_defined():
            raise self._already_defined(sym, None)
        elif not numeric:
            raise self._already_referenced(sym)
        return sym

    # Constants, variables and strings

    def add_equ(self, name: str, value: int) -> Symbol:
        sym = self._create_nonreloc(name, True)
        sym.type = SymbolType.EQU
        sym.data = value
        return sym

    def redef_equ(self, name: str, value: int) -> Symbol:
        sym = self.find_exact(name)
        if sym is None:
            return self.add_equ(name, value)
        if sym.is_defined() and sym.type is not SymbolType.EQU:
            raise self._already_defined(sym, "non-EQU")
        if sym.is_builtin:
            raise self._redefined(sym)
        self._touch(sym)
        sym.type = SymbolType.EQU
        sym.data = value
        return sym

    def add_string(self, name: str, value: str) -> Symbol:
        sym = self._create_nonreloc(name, False)
        sym.type = SymbolType.EQUS
        sym.data = value
        return sym

    def redef_string(self, name: str, value: str) -> Symbol:
        sym = self.find_exact(name)
        if sym is None:
            return self.add_string(name, value)
        if sym.type is not SymbolType.EQUS:
            if sym.is_defined():
                raise self._already_defined(sym, "non-EQUS")
            raise self._already_referenced(sym)
        if sym.is_builtin:
            raise self._redefined(sym)
        self._touch(sym)
        sym.data = value
        return sym

    def add_var(self, name: str, value: int) -> Symbol:
        sym = self.find_exact(name)
        if sym is None:
            sym = self._create(name)
        elif sym.is_defined() and sym.type is not SymbolType.VAR:
            raise self._already_defined(
                sym, "label" if sym.type is SymbolType.LABEL else "constant"
            )
        else:
            self._touch(sym)
        sym.type = SymbolType.VAR
        sym.data = value
        return sym

    # Labels

    def _add_label(self, name: str) -> Symbol:
        self._check_expanded(name)
        sym = self.find_exact(name)
        if sym is None:
            sym = self._create(name)
        elif sym.is_defined():
            raise self._already_defined(sym, None)
        else:
            self._touch(sym)
        sym.type = SymbolType.LABEL
        sym.data = _i32(self.offset)
        if self._export_all and not name.startswith("!"):
            sym.is_exported = True
        sym.section = self.section
        return sym

    @staticmethod
    def _require_section(sym: Symbol) -> None:
        if sym.section is None:
            raise SymbolError(f'Label "{sym.name}" created outside of a SECTION')

    def add_label(self, name: str) -> Symbol:
        """Define a global label; it becomes the global scope.

        Outside of a section the label is still defined, then SymbolError is raised.
        """
        if "." in name:
            raise ValueError(f"'{name}' is not a global label name")
        sym = self._add_label(name)
        self._global_scope = sym
        self._local_scope = None
        self._require_section(sym)
        return sym

    def add_local_label(self, name: str) -> Symbol:
        """Define a local label, qualified or not; it becomes the local scope."""
        if "." not in name:
            raise ValueError(f"'{name}' is not a local label name")
        sym = self._add_label(self._expand(name))
        self._local_scope = sym
        self._require_section(sym)
        return sym

    def add_anon_label(self) -> Symbol:
        if self._anon_label_id == _U32:
            raise SymbolError(
                f"Only {self._anon_label_id} anonymous labels can be created!"
            )
        name = self.make_anon_label_name(0, True)
        self._anon_label_id += 1
        sym = self._add_label(name)
        self._require_section(sym)
        return sym

    def make_anon_label_name(self, offset: int, backwards: bool) -> str:
        """Name of the anonymous label `offset` labels before (or after) this point."""
        count = self._anon_label_id
        if backwards:
            if offset > count:
                verb = "has" if count == 1 else "have"
                raise SymbolError(
                    f"Reference to anonymous label {offset} before, when only {count} "
                    f"{verb} been created so far"
                )
            ident = count - offset
        else:
            ofs = (offset - 1) & _U32
            if ofs > _U32 - count:
                raise SymbolError(
                    f"Reference to anonymous label {(ofs + 1) & _U32} after, when only "
                    f"{_U32 - count} may still be created"
                )
            ident = count + ofs
        return f"!{ident}"

    def export(self, name: str) -> Symbol:
        if name.startswith("!"):
            raise SymbolError("Anonymous labels cannot be exported")
        sym = self.find_scoped(name)
        if sym is None:
            sym = self.ref(name)
        sym.is_exported = True
        return sym

    def add_macro(self, name: str, def_line: int, body: Any) -> Symbol:
        sym = self._create_nonreloc(name, False)
        sym.type = SymbolType.MACRO
        sym.data = body
        sym.src = self.source
        sym.file_line = def_line
        return sym

    def ref(self, name: str) -> Symbol:
        """Find a symbol, creating a forward reference if it does not exist."""
        sym = self.find_scoped(name)
        if sym is None:
            sym = self._create(self._expand(name))
            sym.type = SymbolType.REF
        return sym

    # _RS

    def get_rs_value(self) -> int:
        return self.output_value(self._rs)

    def set_rs_value(self, value: int) -> None:
        self._touch(self._rs)
        self._rs.data = value

    # Label scopes

    def label_scopes(self) -> tuple[Symbol | None, Symbol | None]:
        return self._global_scope, self._local_scope

    def set_label_scopes(self, scopes: tuple[Symbol | None, Symbol | None]) -> None:
        global_scope, local_scope = scopes
        if global_scope is not None and "." in global_scope.name:
            raise ValueError("the global scope must be a global label")
        if local_scope is not None and "." not in local_scope.name:
            raise ValueError("the local scope must be a qualified local label")
        self._global_scope = global_scope
        self._local_scope = local_scope

    def reset_label_scopes(self) -> None:
        self._global_scope = None
        self._local_scope = None


SymbolCallback = Callable[[], Any]