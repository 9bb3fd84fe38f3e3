"""
Helmsman faults (errors) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing error.
  Codes are grouped by domain so logs and searches stay predictable.
- CommandException: base type that carries a message + read-only options and
  knows how to render itself through rich.
- One subclass per failure of the registration/parse/bootstrap/dispatch flow.

UX goals
- Position-first messages: parse errors name the ordinal position of the
  offending token (“at third position”).
- Short titles, one-sentence bodies, a single actionable hint.

Integration
- Engine code raises the faults; the shell catches CommandException, prints it
  to the error stream and exits non-zero.
- Parse faults carry the relevant usage text in options["usage"].
"""
import sys
from collections import ChainMap
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, coalesce


class FaultCode(IntEnum):
    """
    Stable numeric identifiers of every user-facing fault, grouped by the
    stage that raises them:
    - declarations (1010x)
      • MALFORMED_OPTIONS_SHAPE, DUPLICATE_COMMAND
    - routing (1110x)
      • UNKNOWN_COMMAND, MISSING_COMMAND
    - flags (1111x)
      • UNRECOGNIZED_FLAG, MISSING_FLAG_VALUE
    - operands (1112x)
      • UNEXPECTED_OPERAND, MISSING_OPERAND
    - credentials (1120x)
      • MISSING_REQUIRED_CREDENTIAL
    - collaborators (113xx/114xx)
      • CLIENT_BOOTSTRAP_FAILURE, COMMAND_FAILURE
    """
    # schema and registry declarations
    MALFORMED_OPTIONS_SHAPE     = 10101
    DUPLICATE_COMMAND           = 10102

    # subcommand routing
    UNKNOWN_COMMAND             = 11101
    MISSING_COMMAND             = 11102

    # flags
    UNRECOGNIZED_FLAG           = 11111
    MISSING_FLAG_VALUE          = 11112

    # positionals
    UNEXPECTED_OPERAND          = 11121
    MISSING_OPERAND             = 11122

    # credentials
    MISSING_REQUIRED_CREDENTIAL = 11201

    # collaborators (client factory, callbacks)
    CLIENT_BOOTSTRAP_FAILURE    = 11301
    COMMAND_FAILURE             = 11401

    def normalize(self):
        """
        Display form of the code: a label from __main__.__codes__ when the host
        program defines one for it, the number otherwise.
        """
        labels = getattr(sys.modules.get("__main__"), "__codes__", None) or {}
        return str(labels.get(self, self.value))


_PALETTE = {
    "prog-name": "bold white",
    "code": "bold cyan",
    "error-title": "bold red",
    "error-message": "default",
    "hint-arrow": "dim green",
    "hint": "italic green",
}


class CommandException(Exception):
    """
    Base class of every fault raised by the engine.

    The message is the one-line body; options carry rendering context
    (title, code, hint, usage, prog, colorful, fancy) and any payload the
    raiser wants to attach (token, index, suggestions, exception, ...).
    """
    __code__ = Unset
    __title__ = "error"

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        self.message = message
        self.options = MappingProxyType({
            "title": self.__title__,
            "code": self.__code__,
        } | options)
        super().__init__(*(() if message is Unset else (message,)))

    def __str__(self):
        return self.message if self.message is not Unset else self.__title__

    @property
    def code(self):
        return self.options["code"]

    @property
    def hint(self):
        return self.options.get("hint")

    @property
    def usage(self):
        """
        Usage text relevant to the fault (subcommand usage when one was
        resolved, otherwise top-level usage), or None.
        """
        return self.options.get("usage")

    def __rich__(self):
        host = sys.modules.get("__main__")
        colorful = self.options.get("colorful", False)
        palette = ChainMap(getattr(host, "__styles__", None) or {}, _PALETTE)

        def styled(content, role):
            return Text(str(content), palette.get(role, "") if colorful else "")

        prog = getattr(host, "__prog__", None) or self.options.get("prog", "helmsman")
        code = self.code.normalize() if isinstance(self.code, FaultCode) else "-"
        header = Text.assemble(
            "[ ",
            styled(prog, "prog-name"),
            " — ",
            styled(code, "code"),
            " | ",
            styled(self.options["title"].title(), "error-title"),
            " ]",
        )

        body = [styled(self, "error-message")]
        if hint := self.hint:
            body.append(Text.assemble(styled(" → ", "hint-arrow"), styled(hint, "hint")))

        if self.options.get("fancy", False):
            return Panel(Group(*body), title=header, title_align="left", expand=False)
        return Group(header, *body)

    def __replace__(self, message=Unset, /, **overrides):
        fault = type(self)(coalesce(message, self.message), **{**self.options, **overrides})
        fault.__cause__ = self.__cause__
        return fault


class MalformedOptionsShapeError(CommandException):
    __code__ = FaultCode.MALFORMED_OPTIONS_SHAPE
    __title__ = "malformed options shape"


class DuplicateCommandError(CommandException):
    __code__ = FaultCode.DUPLICATE_COMMAND
    __title__ = "duplicate command"


class UnknownCommandError(CommandException):
    __code__ = FaultCode.UNKNOWN_COMMAND
    __title__ = "unknown command"


class MissingCommandError(CommandException):
    __code__ = FaultCode.MISSING_COMMAND
    __title__ = "missing command"


class UnrecognizedFlagError(CommandException):
    __code__ = FaultCode.UNRECOGNIZED_FLAG
    __title__ = "unrecognized flag"


class MissingFlagValueError(CommandException):
    __code__ = FaultCode.MISSING_FLAG_VALUE
    __title__ = "missing flag value"


class UnexpectedOperandError(CommandException):
    __code__ = FaultCode.UNEXPECTED_OPERAND
    __title__ = "unexpected positional"


class MissingOperandError(CommandException):
    __code__ = FaultCode.MISSING_OPERAND
    __title__ = "missing positional"


class MissingRequiredCredentialError(CommandException):
    __code__ = FaultCode.MISSING_REQUIRED_CREDENTIAL
    __title__ = "missing credential"


class ClientBootstrapError(CommandException):
    __code__ = FaultCode.CLIENT_BOOTSTRAP_FAILURE
    __title__ = "client bootstrap failure"


class CommandFailureError(CommandException):
    __code__ = FaultCode.COMMAND_FAILURE
    __title__ = "command failure"


def report(fault, /, *, console=Unset, **options):
    """
    Render a fault on the error stream with the given runtime options.

    Contract
    - fault must be a CommandException; options are merged into its options
      before rendering (typically prog, colorful, fancy).
    - the fault is never raised or swallowed here; the caller decides the
      exit status.
    """
    if not isinstance(fault, CommandException):
        raise TypeError("report() argument must be a command exception")
    if console is Unset:
        console = Console(stderr=True)
    console.print(fault.__replace__(**options))


__all__ = (
    "FaultCode",
    "CommandException",
    "MalformedOptionsShapeError",
    "DuplicateCommandError",
    "UnknownCommandError",
    "MissingCommandError",
    "UnrecognizedFlagError",
    "MissingFlagValueError",
    "UnexpectedOperandError",
    "MissingOperandError",
    "MissingRequiredCredentialError",
    "ClientBootstrapError",
    "CommandFailureError",
    "report",
)
