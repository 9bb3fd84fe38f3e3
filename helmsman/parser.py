"""
Helmsman argument parser: two passes over one token stream.

What this module provides
- ArgumentParser: binds top-level flags against a base Schema, resolves the
  subcommand named by the first non-flag token through a Registry, then binds
  the remaining tokens against that subcommand's Schema.
- Parsed: the outcome of one parse (base options, command name, entry,
  subcommand options, and usage text when a help terminal was reached).
- The built-in `help [SUBCOMMAND]` pseudo-command.

Passes
- base pass
  • long flags: "--flag value", "--flag=value", "--flag" for booleans, plus
    any short spelling a field declares ("-h").
  • the first non-flag token is the command name; everything after it is left
    on the shared cursor for the subcommand pass.
  • defaults are resolved for every field that was not supplied, at parse time.
- help terminal
  • when the base help switch is set, parsing stops and Parsed.usage holds the
    top-level usage; no subcommand is resolved.
- subcommand pass
  • identical binding against the entry's schema (no selector); every
    subcommand also accepts -h/--help, which yields that subcommand's usage.
  • a required non-positional field of a subcommand left empty after default
    resolution is a MissingFlagValueError.

Faults
- Every parse fault carries options["usage"]: the subcommand usage once a
  subcommand was resolved, the top-level usage before that.
- Messages lead with the ordinal position of the offending token.

The parser only reads the registry and keeps no state between parse() calls.
"""
import difflib
import io
import os
import shlex
from collections import deque, namedtuple
from collections.abc import Iterable

from rich.box import ROUNDED
from rich.console import Console, Group
from rich.table import Table
from rich.text import Text

from .faults import *
from .logs import get_logger
from .options import Flag, Kind, Namespace, Operand, Schema
from .registry import HELP, CallbackKind, CommandEntry, Registry
from .utils import *

logger = get_logger(__name__)

_HELP_NAMES = ("-h", "--help")
_HELP_FLAG = Flag(*_HELP_NAMES, descr="show this help message and exit", helper=True)

HELP_SCHEMA = Schema(subcommand=Operand("SUBCOMMAND", descr="sub-command name", required=False))


class Parsed(namedtuple("Parsed", ("options", "command", "entry", "suboptions", "usage", "switch"))):
    """
    Outcome of ArgumentParser.parse().

    - options: Namespace of the base pass (its selector field holds the command name).
    - command: resolved command name, or None when help stopped the base pass.
    - entry: CommandEntry to dispatch (the built-in help entry for `help`), or None.
    - suboptions: Namespace of the subcommand pass, or None.
    - usage: usage text when a help terminal was reached, else None.
    - switch: True when a -h/--help switch ended a pass; usage then belongs to
      the pass that saw it (`help show --help` is the usage of `help`).
    """
    __slots__ = ()

    @property
    def help(self):
        return self.usage is not None


class _Cursor:
    """
    Shared read position over the token stream of one parse.
    """
    __slots__ = ("tokens", "index")

    def __init__(self, tokens):
        self.tokens = deque(tokens)
        self.index = 0

    def __bool__(self):
        return bool(self.tokens)

    def next(self):
        self.index += 1
        return self.tokens.popleft()


def _tokenize(prompt):
    # str → shell-style split; iterable → list of str, kept verbatim (empty values are values).
    if isinstance(prompt, str):
        return shlex.split(prompt)
    if not isinstance(prompt, Iterable):
        raise TypeError("parse() argument must be a string or an iterable of strings")
    tokens = list(prompt)
    if not all(isinstance(token, str) for token in tokens):
        raise TypeError("parse() argument must be a string or an iterable of strings")
    return tokens


class ArgumentParser:
    """
    Two-pass parser bound to a base schema and a registry.

    Parameters
    - schema: Schema of the top-level flags; must declare a Selector.
    - registry: Registry of subcommands (read-only from here on).
    - prog: program name used in usage lines and hints.
    - descr: description paragraph of the top-level help.
    - epilog: closing paragraph of the top-level help; by default points at
      "<prog> help COMMAND".
    - environ: mapping used to resolve default-specs; os.environ (read at each
      parse) when omitted.
    - console: rich console the `help` pseudo-command prints to.
    - width: column width of rendered help.
    """

    def __init__(self, schema, registry, /, *, prog, descr=Unset, epilog=Unset, environ=Unset, console=Unset, width=80):
        if not isinstance(schema, Schema):
            raise TypeError("parser schema must be a Schema")
        if schema.selector is None:
            raise MalformedOptionsShapeError(
                "base schema declares no subcommand selector",
                hint="add a Selector() field to the base schema",
            )
        if not isinstance(registry, Registry):
            raise TypeError("parser registry must be a Registry")
        if not isinstance(prog, str) or not prog.strip():
            raise TypeError("parser 'prog' must be a non-empty string")

        self._schema = schema
        self._registry = registry
        self._prog = prog.strip()
        self._descr = coalesce(descr)
        self._epilog = coalesce(epilog, 'See "%s help COMMAND" for help on a specific command.' % self._prog)
        self._environ = environ
        self._console = Console() if console is Unset else console
        self._width = width
        self._help = CommandEntry(
            HELP, HELP_SCHEMA, "Show help of a subcommand", self._helper, CallbackKind.OPTIONS_ONLY, False
        )

    @property
    def schema(self):
        return self._schema

    @property
    def registry(self):
        return self._registry

    @property
    def prog(self):
        return self._prog

    @property
    def help_entry(self):
        """
        The built-in `help` pseudo-command entry (never needs a client).
        """
        return self._help

    def parse(self, prompt, /):
        """
        Parse tokens into a Parsed result.

        Parameters
        - prompt: Iterable[str] of tokens, or a shell-like string split with shlex.

        Raises
        - UnrecognizedFlagError, MissingFlagValueError, UnexpectedOperandError,
          MissingOperandError, MissingCommandError, UnknownCommandError; each
          carries the relevant usage text.
        """
        environ = os.environ if self._environ is Unset else self._environ
        cursor = _Cursor(_tokenize(prompt))

        values, helped = self._bind(self._schema, cursor, environ, self.format_help)
        options = Namespace(values)
        logger.debug("base pass bound %d field(s)", len(values))

        if helped:
            return Parsed(options, None, None, None, self.format_help(), True)

        if (name := values[self._schema.selector.name]) is None:
            raise MissingCommandError(
                "a command is required",
                hint="run '%s help' to see the available commands" % self._prog,
                usage=self.format_help(),
            )

        position = cursor.index
        entry = self._resolve(name, position)
        logger.debug("resolved command %r at %s position", name, ordinal(position))

        values, helped = self._bind(entry.schema, cursor, environ, lambda: self.format_help(name))
        suboptions = Namespace(values)

        if helped:
            return Parsed(options, name, entry, suboptions, self.format_help(name), True)
        if entry is self._help:
            return Parsed(options, name, entry, suboptions, self.format_help(suboptions.subcommand), False)
        return Parsed(options, name, entry, suboptions, None, False)

    def _resolve(self, name, position=0):
        if name == HELP:
            return self._help
        try:
            return self._registry.lookup(name)
        except UnknownCommandError as fault:
            raise fault.__replace__(
                "unknown command %r at %s position" % (name, ordinal(position)) if position else Unset,
                index=position,
                usage=self.format_help(),
            ) from None

    def _bind(self, schema, cursor, environ, usage):
        """
        Bind tokens from the cursor against one schema.

        Returns (values, helped). Values hold every field of the schema:
        supplied ones as given, the rest from their resolved default-specs.
        Stops early at the selector token or at a help switch.
        """
        values = {}
        operands = deque(schema.operands)
        selector = schema.selector
        flags = True
        helped = False

        while cursor:
            token = cursor.next()

            if flags and token == "--":
                flags = False
                continue

            if flags and token.startswith("-") and token != "-":
                input, assigned, value = token.partition("=")
                field = schema.switches.get(input)

                if field is None:
                    if input in _HELP_NAMES and schema.helper is None and not assigned:
                        helped = True
                        break
                    suggestions = difflib.get_close_matches(input, schema.switches.keys(), 5)
                    if suggestions:
                        hint = "did you mean %r?" % suggestions[0]
                    else:
                        hint = "try '--help' to see the accepted flags"
                    raise UnrecognizedFlagError(
                        "unknown flag %r at %s position" % (input, ordinal(cursor.index)),
                        hint=hint,
                        input=input,
                        index=cursor.index,
                        suggestions=tuple(suggestions),
                        usage=usage(),
                    )

                if field.kind is Kind.BOOL:
                    if assigned:
                        raise UnrecognizedFlagError(
                            "flag %r at %s position does not take a value" % (input, ordinal(cursor.index)),
                            hint="remove everything from '=' (for example: %s)" % input,
                            input=input,
                            index=cursor.index,
                            usage=usage(),
                        )
                    values[field.name] = True
                    if field.helper:
                        helped = True
                        break
                    continue

                if not assigned:
                    if not cursor:
                        raise MissingFlagValueError(
                            "flag %r at %s position requires a value" % (input, ordinal(cursor.index)),
                            hint="pass it as '%s %s' or '%s=%s'" % (input, field.metavar, input, field.metavar),
                            input=input,
                            index=cursor.index,
                            usage=usage(),
                        )
                    value = cursor.next()
                values[field.name] = value
                continue

            if selector is not None:
                values[selector.name] = token
                break

            if not operands:
                raise UnexpectedOperandError(
                    "unexpected positional argument %r at %s position" % (token, ordinal(cursor.index)),
                    hint="remove the extra value",
                    input=token,
                    index=cursor.index,
                    usage=usage(),
                )
            values[operands.popleft().name] = token

        if not helped and (missing := [field for field in operands if field.required]):
            raise MissingOperandError(
                "missing positional argument %s" % ", ".join(field.metavar for field in missing),
                hint="add the missing value(s) in the documented order",
                usage=usage(),
            )

        for field in schema.fields:
            if field.name not in values:
                values[field.name] = field.resolve(environ)

        # required base flags are credentials, checked by the bootstrap
        if not helped and selector is None:
            for field in schema.fields:
                if field.required and not field.positional and not values[field.name]:
                    raise MissingFlagValueError(
                        "missing required flag %s" % field.flag,
                        hint="pass it as '%s %s'" % (field.flag, field.metavar),
                        input=field.flag,
                        usage=usage(),
                    )
        return values, helped

    def _helper(self, options):
        """
        Callback of the built-in `help` pseudo-command.
        """
        usage = self.format_help(options.subcommand)
        self._console.out(usage, end="", highlight=False)
        return usage

    def format_help(self, name=None, /):
        """
        Render usage text: top-level when name is None, else the named subcommand's.

        Raises
        - UnknownCommandError (with top-level usage) for an unregistered name.
        """
        if name is None:
            return self._render(self._overview)
        entry = self._resolve(name)
        return self._render(lambda console: self._details(console, entry))

    def _render(self, build):
        console = Console(
            file=io.StringIO(),
            width=self._width,
            color_system=None,
            force_terminal=False,
            highlight=False,
            emoji=False,
        )
        console.print(build(console))
        return console.file.getvalue()

    def _overview(self, console):
        renders = [_usage(self._prog, self._schema, self._width)]

        if self._descr:
            renders.append(Text(self._descr + "\n"))

        table = Table("name", "help", title="commands", box=ROUNDED, title_justify="left")
        for entry in self._registry.list() + (self._help,):
            table.add_row(Text(entry.name), Text(entry.descr or ""))
        renders.append(table)

        renders.extend(_sections(console, self._schema, self._width))

        if self._epilog:
            renders.append(Text(self._epilog))
        return Group(*renders)

    def _details(self, console, entry):
        renders = [_usage("%s %s" % (self._prog, entry.name), entry.schema, self._width)]
        if entry.descr:
            renders.append(Text(entry.descr + "\n"))
        renders.extend(_sections(console, entry.schema, self._width))
        return Group(*renders)


def _label(field):
    # "-h, --help" / "--auth-url OPENSTACK_AUTH_URL" / "SUBCOMMAND"
    if field.positional:
        return field.metavar
    names = ", ".join(sorted(field.names, key=lambda name: (name.startswith("--"), len(name))))
    if field.kind is Kind.STRING:
        return "%s %s" % (names, field.metavar)
    return names


def _describe(field):
    parts = [field.descr] if field.descr else []
    if field.kind is Kind.STRING and isinstance(field.default, str) and field.default:
        parts.append("(default: %s)" % field.default)
    return " ".join(parts)


def _usage(route, schema, width):
    """
    Build the wrapped "usage: ..." line with a hanging indent.
    """
    items = []
    if schema.helper is None:
        items.append("[-h | --help]")
    for field in schema.fields:
        if field.hidden or field.positional:
            continue
        names = " | ".join(sorted(field.names, key=lambda name: (name.startswith("--"), len(name))))
        if field.kind is Kind.STRING:
            items.append("[%s %s]" % (names, field.metavar))
        else:
            items.append("[%s]" % names)
    for field in schema.fields:
        if field.kind is Kind.SELECTOR:
            items.append("%s ..." % field.metavar)
        elif field.positional:
            items.append(field.metavar if field.required else "[%s]" % field.metavar)

    head = "usage: %s" % route
    lines = [head]
    for item in items:
        if len(lines[-1]) + 1 + len(item) > width and lines[-1] != head:
            lines.append(" " * len(head) + " " + item)
        else:
            lines[-1] += " " + item
    return Text("\n".join(lines) + "\n")


def _sections(console, schema, width):
    """
    Build the "options:" and "positionals:" listings of a schema.
    """
    padding = 2
    indent = 28
    renders = []

    options = [field for field in schema.fields if not field.positional and not field.hidden]
    if schema.helper is None:
        options.insert(0, Schema(help=_HELP_FLAG).fields[0])
    positionals = [field for field in schema.fields if field.positional]

    for title, fields in (("options", options), ("positionals", positionals)):
        if not fields:
            continue
        section = Text(title + ":\n")
        for field in fields:
            line = Text(" " * padding + _label(field))
            if descr := _describe(field):
                if len(line) >= indent - 1:
                    line.append("\n" + " " * indent)
                else:
                    line.append(" " * (indent - len(line)))
                wrapped = Text(descr).wrap(console, width - indent)
                for index, segment in enumerate(wrapped):
                    if index:
                        line.append("\n" + " " * indent)
                    line.append(segment)
            section.append(line).append("\n")
        renders.append(section)
    return renders


__all__ = (
    "HELP_SCHEMA",
    "Parsed",
    "ArgumentParser",
)
