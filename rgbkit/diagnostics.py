"""Assembler warning flags, their states, and error accounting."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import TextIO

from .errors import FatalError


class WarningLevel(IntEnum):
    """How broad a meta flag must be to enable a warning."""

    DEFAULT = 0
    ALL = 1
    EXTRA = 2
    EVERYTHING = 3


class WarningId(IntEnum):
    """Every warning the assembler can emit."""

    ASSERT = 0
    BACKWARDS_FOR = 1
    BUILTIN_ARGS = 2
    CHARMAP_REDEF = 3
    DIV = 4
    EMPTY_DATA_DIRECTIVE = 5
    EMPTY_MACRO_ARG = 6
    EMPTY_STRRPL = 7
    LARGE_CONSTANT = 8
    MACRO_SHIFT = 9
    NESTED_COMMENT = 10
    OBSOLETE = 11
    SHIFT = 12
    SHIFT_AMOUNT = 13
    UNTERMINATED_LOAD = 14
    USER = 15
    NUMERIC_STRING_1 = 16
    NUMERIC_STRING_2 = 17
    PURGE_1 = 18
    PURGE_2 = 19
    TRUNCATION_1 = 20
    TRUNCATION_2 = 21
    UNMAPPED_CHAR_1 = 22
    UNMAPPED_CHAR_2 = 23

    @property
    def flag_name(self) -> str:
        return _FLAGS[self][0]

    @property
    def level(self) -> WarningLevel:
        return _FLAGS[self][1]


_FLAGS: dict[WarningId, tuple[str, WarningLevel]] = {
    WarningId.ASSERT: ("assert", WarningLevel.DEFAULT),
    WarningId.BACKWARDS_FOR: ("backwards-for", WarningLevel.ALL),
    WarningId.BUILTIN_ARGS: ("builtin-args", WarningLevel.ALL),
    WarningId.CHARMAP_REDEF: ("charmap-redef", WarningLevel.ALL),
    WarningId.DIV: ("div", WarningLevel.EVERYTHING),
    WarningId.EMPTY_DATA_DIRECTIVE: ("empty-data-directive", WarningLevel.ALL),
    WarningId.EMPTY_MACRO_ARG: ("empty-macro-arg", WarningLevel.EXTRA),
    WarningId.EMPTY_STRRPL: ("empty-strrpl", WarningLevel.ALL),
    WarningId.LARGE_CONSTANT: ("large-constant", WarningLevel.ALL),
    WarningId.MACRO_SHIFT: ("macro-shift", WarningLevel.EXTRA),
    WarningId.NESTED_COMMENT: ("nested-comment", WarningLevel.DEFAULT),
    WarningId.OBSOLETE: ("obsolete", WarningLevel.DEFAULT),
    WarningId.SHIFT: ("shift", WarningLevel.EVERYTHING),
    WarningId.SHIFT_AMOUNT: ("shift-amount", WarningLevel.EVERYTHING),
    WarningId.UNTERMINATED_LOAD: ("unterminated-load", WarningLevel.EXTRA),
    WarningId.USER: ("user", WarningLevel.DEFAULT),
    WarningId.NUMERIC_STRING_1: ("numeric-string", WarningLevel.EVERYTHING),
    WarningId.NUMERIC_STRING_2: ("numeric-string", WarningLevel.EVERYTHING),
    WarningId.PURGE_1: ("purge", WarningLevel.DEFAULT),
    WarningId.PURGE_2: ("purge", WarningLevel.ALL),
    WarningId.TRUNCATION_1: ("truncation", WarningLevel.DEFAULT),
    WarningId.TRUNCATION_2: ("truncation", WarningLevel.EXTRA),
    WarningId.UNMAPPED_CHAR_1: ("unmapped-char", WarningLevel.DEFAULT),
    WarningId.UNMAPPED_CHAR_2: ("unmapped-char", WarningLevel.ALL),
}

_PLAIN_WARNINGS = tuple(w for w in WarningId if w < WarningId.NUMERIC_STRING_1)

_META_WARNINGS = (
    ("all", WarningLevel.ALL),
    ("extra", WarningLevel.EXTRA),
    ("everything", WarningLevel.EVERYTHING),
)

# (first level, last level, level enabled by a bare flag)
_PARAM_WARNINGS = (
    (WarningId.NUMERIC_STRING_1, WarningId.NUMERIC_STRING_2, 1),
    (WarningId.PURGE_1, WarningId.PURGE_2, 1),
    (WarningId.TRUNCATION_1, WarningId.TRUNCATION_2, 2),
    (WarningId.UNMAPPED_CHAR_1, WarningId.UNMAPPED_CHAR_2, 1),
)


class WarningBehavior(Enum):
    """What happens when a warning is emitted."""

    DISABLED = "disabled"
    ENABLED = "enabled"
    ERROR = "error"


class FlagState(Enum):
    """Tri-state setting of a flag or of its error promotion."""

    DEFAULT = "default"
    DISABLED = "disabled"
    ENABLED = "enabled"


class AssemblyError(FatalError):
    """A fatal assembly error was reported."""


class TooManyErrors(FatalError):
    """The configured maximum number of errors was reached."""


@dataclass
class WarningState:
    """Explicit state of a warning flag and of its promotion to an error."""

    state: FlagState = FlagState.DEFAULT
    error: FlagState = FlagState.DEFAULT

    def update(self, other: WarningState) -> None:
        """Take over every non-default setting of `other`."""
        if other.state is not FlagState.DEFAULT:
            self.state = other.state
        if other.error is not FlagState.DEFAULT:
            self.error = other.error


class Diagnostics:
    """Warning configuration and error reporting for one assembly run."""

    def __init__(self, max_errors: int = 0, stream: TextIO | None = None) -> None:
        self.max_errors = max_errors
        self._stream = stream
        self.nb_errors = 0
        self.enabled = True
        self.warnings_are_errors = False
        self.location = ""
        self.flag_states = {w: WarningState() for w in WarningId}
        self.meta_states = {w: WarningState() for w in WarningId}

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stderr

    def _warnx(self, message: str) -> None:
        self.stream.write(f"warning: {message}\n")

    def _print(self, kind: str, flag_text: str, message: str) -> None:
        if not message.endswith("\n"):
            message += "\n"
        self.stream.write(f"{kind}: {self.location}{flag_text}\n    {message}")

    def process_flag(self, flag: str) -> None:
        """Apply one `-W` flag (given without the `-W`)."""
        if flag == "error":
            self.warnings_are_errors = True
            return
        if flag == "no-error":
            self.warnings_are_errors = False
            return

        root = flag
        if root.startswith("error="):
            state = WarningState(FlagState.ENABLED, FlagState.ENABLED)
            root = root[len("error="):]
        elif root.startswith("no-error="):
            state = WarningState(FlagState.DEFAULT, FlagState.DISABLED)
            root = root[len("no-error="):]
        elif root.startswith("no-"):
            state = WarningState(FlagState.DISABLED, FlagState.DEFAULT)
            root = root[len("no-"):]
        else:
            state = WarningState(FlagState.ENABLED, FlagState.DEFAULT)

        param = 0
        has_param = False
        if state.state is FlagState.ENABLED:
            equals = root.find("=")
            if equals != -1 and equals != len(root) - 1:
                has_param = True
                digits = root[equals + 1:]
                warned = False
                consumed = 0
                for ch in digits:
                    if not "0" <= ch <= "9":
                        break
                    value = param * 10 + (ord(ch) - ord("0"))
                    if value > 255:
                        if not warned:
                            self._warnx(
                                f'Invalid warning flag "{flag}": capping parameter at 255'
                            )
                        warned = True
                        value = 255
                    param = value
                    consumed += 1
                if consumed == len(digits):
                    root = root[:equals]
                    if param == 0:
                        state.state = FlagState.DISABLED

        for first, last, default_level in _PARAM_WARNINGS:
            max_param = last - first + 1
            if root != first.flag_name:
                continue
            if root == "numeric-string":
                self.warning(
                    WarningId.OBSOLETE, 'Warning flag "numeric-string" is deprecated\n'
                )
            if param == 0:
                param = default_level
            elif param > max_param:
                if param != 255:
                    self._warnx(
                        f'Invalid parameter {param} for warning flag "{root}"; '
                        f"capping at maximum {max_param}"
                    )
                param = max_param
            for ofs in range(max_param):
                target = self.flag_states[WarningId(first + ofs)]
                if ofs < param:
                    target.update(state)
                else:
                    target.state = FlagState.DISABLED
            return

        if not has_param:
            for name, level in _META_WARNINGS:
                if root == name:
                    for warning_id in WarningId:
                        if level >= warning_id.level:
                            self.meta_states[warning_id].update(state)
                    return
            for warning_id in _PLAIN_WARNINGS:
                if root == warning_id.flag_name:
                    self.flag_states[warning_id].update(state)
                    return

        self._warnx(f'Unknown warning flag "{flag}"')

    def behavior(self, warning_id: WarningId) -> WarningBehavior:
        """Decide what emitting `warning_id` currently does."""
        if not self.enabled:
            return WarningBehavior.DISABLED

        flag_state = self.flag_states[warning_id]
        meta_state = self.meta_states[warning_id]

        is_error = (
            self.warnings_are_errors
            and flag_state.error is not FlagState.DISABLED
            and meta_state.error is not FlagState.DISABLED
        )
        enabled = WarningBehavior.ERROR if is_error else WarningBehavior.ENABLED

        for current in (flag_state, meta_state):
            if current.state is FlagState.DISABLED:
                return WarningBehavior.DISABLED
            if current.error is FlagState.ENABLED:
                return WarningBehavior.ERROR
            if current.state is FlagState.ENABLED:
                return enabled

        if warning_id.level is WarningLevel.DEFAULT:
            return enabled
        return WarningBehavior.DISABLED

    def warning(self, warning_id: WarningId, message: str) -> WarningBehavior:
        """Emit a warning according to its current behavior, and return that behavior."""
        behavior = self.behavior(warning_id)
        name = warning_id.flag_name
        if behavior is WarningBehavior.ENABLED:
            self._print("warning", f": [-W{name}]", message)
        elif behavior is WarningBehavior.ERROR:
            self._print("error", f": [-Werror={name}]", message)
        return behavior

    def error(self, message: str) -> None:
        """Report a non-fatal error; raise TooManyErrors once the limit is hit."""
        self._print("error", ":", message)
        self.nb_errors += 1
        if self.nb_errors == self.max_errors:
            plural = "" if self.max_errors == 1 else "s"
            text = (
                f"The maximum of {self.max_errors} error{plural} was reached "
                '(configure with "-X/--max-errors"); assembly aborted!'
            )
            self.stream.write(f"error: {text}\n")
            raise TooManyErrors(text)

    def fatal(self, message: str) -> None:
        """Report a fatal error and raise AssemblyError."""
        self._print("FATAL", ":", message)
        raise AssemblyError(message.rstrip("\n"))