"""
Helmsman command registry: the table of subcommands a program can dispatch.

What this module provides
- CommandEntry: one registered subcommand (name, schema, description,
  callback) plus its callback kind, resolved once at registration.
- CallbackKind: how the dispatcher calls a callback (no arguments, options
  only, or client + options).
- Registry: an append-only, insertion-ordered table of entries.
- assemble(*providers): build a fresh registry from provider callables and
  module globs, in the order given.

Providers
- A provider is any callable taking the registry, or a module exposing
  `register(registry)`. Provider packages call Registry.register (or use the
  Registry.command decorator) from that function; nothing registers at import
  time, so registration order and completeness stay visible at start-up.

Reserved names
- "help" belongs to the built-in help pseudo-command of the parser.
"""
import difflib
import importlib
import inspect
import re
from enum import Enum
from inspect import Parameter
from types import MappingProxyType

from .faults import *
from .logs import get_logger
from .options import Schema
from .utils import *

logger = get_logger(__name__)

HELP = "help"


class CallbackKind(Enum):
    """
    Calling convention of a registered callback, fixed at registration time.

    - BARE: callback()
    - OPTIONS_ONLY: callback(options)
    - NEEDS_CLIENT: callback(client, options)
    """
    BARE = 0
    OPTIONS_ONLY = 1
    NEEDS_CLIENT = 2

    @classmethod
    def of(cls, callback, /):
        """
        Resolve the kind of a callback from its positional arity.

        Only parameters that can be passed positionally and have no default
        count; *args is rejected because it makes the arity ambiguous.
        """
        try:
            parameters = inspect.signature(callback).parameters.values()
        except (TypeError, ValueError):
            raise TypeError("callback signature cannot be inspected") from None

        arity = 0
        for parameter in parameters:
            match parameter.kind:
                case Parameter.VAR_POSITIONAL:
                    raise TypeError("callback cannot take *args")
                case Parameter.POSITIONAL_ONLY | Parameter.POSITIONAL_OR_KEYWORD if parameter.default is Parameter.empty:
                    arity += 1
                case Parameter.KEYWORD_ONLY if parameter.default is Parameter.empty:
                    raise TypeError("callback cannot require keyword-only parameter %r" % parameter.name)
        try:
            return cls(arity)
        except ValueError:
            raise TypeError("callback must take zero, one or two positional parameters, not %d" % arity) from None


class CommandEntry:
    """
    One registered subcommand. Immutable once constructed.

    Attributes
    - name: str, unique within a registry.
    - schema: Schema the subcommand pass binds against.
    - descr: str | None, one-line description for help listings.
    - callback: the registered callable.
    - kind: CallbackKind resolved from the callback's arity.
    - requires_client: whether a client must be bootstrapped before dispatch.
    """
    __slots__ = ("_name", "_schema", "_descr", "_callback", "_kind", "_requires_client")

    def __init__(self, name, schema, descr, callback, kind, requires_client):
        for attribute, value in (
            ("name", name),
            ("schema", schema),
            ("descr", descr),
            ("callback", callback),
            ("kind", kind),
            ("requires_client", requires_client),
        ):
            object.__setattr__(self, "_" + attribute, value)

    name = property(lambda self: self._name)
    schema = property(lambda self: self._schema)
    descr = property(lambda self: self._descr)
    callback = property(lambda self: self._callback)
    kind = property(lambda self: self._kind)
    requires_client = property(lambda self: self._requires_client)

    def __setattr__(self, name, value):
        raise AttributeError("command entry is read-only")

    def __repr__(self):
        return "command-entry(name=%r, kind=%s, requires_client=%r)" % (
            self._name, self._kind.name, self._requires_client
        )

    def __rich_repr__(self):
        yield "name", self._name
        yield "descr", self._descr
        yield "kind", self._kind
        yield "requires_client", self._requires_client


def _build_entry(name, schema, descr, callback, client=Unset):
    """
    Internal: validate a registration and build its CommandEntry.

    Raises
    - TypeError/ValueError on API misuse (bad name, non-callable, bad arity).
    - MalformedOptionsShapeError when the schema declares a selector.
    """
    if not isinstance(name, str):
        raise TypeError("command name must be a string")
    elif not re.fullmatch(r"[^\W\d_][\w.]*(-[\w.]+)*", name := name.strip()):
        raise ValueError("command name %r must be a shell-style word (e.g., 'list-regions')" % name)
    if not isinstance(schema, Schema):
        raise TypeError("command %r schema must be a Schema" % name)
    if schema.selector is not None:
        raise MalformedOptionsShapeError(
            "command %r schema cannot declare a subcommand selector" % name,
            hint="nested subcommands are not supported; remove the Selector() field",
        )
    if not isinstance(descr, str | None):
        raise TypeError("command %r description must be a string" % name)
    if not callable(callback):
        raise TypeError("command %r callback must be callable" % name)

    kind = CallbackKind.of(callback)
    requires_client = bool(coalesce(client, kind is CallbackKind.NEEDS_CLIENT))
    if kind is CallbackKind.NEEDS_CLIENT and not requires_client:
        raise TypeError("command %r callback takes a client but was registered with client=False" % name)

    return CommandEntry(name, schema, descr.strip() if descr else None, callback, kind, requires_client)


class Registry:
    """
    Append-only table of subcommands, in registration order.

    Lifecycle
    - Populated during start-up by provider register() functions.
    - Read-only afterwards: the parser and dispatcher only call lookup(),
      list() and the container protocol.
    - Entries are never removed.
    """

    def __init__(self):
        self._entries = {}

    def register(self, name, schema, descr, callback, /, *, client=Unset):
        """
        Add a subcommand and return its CommandEntry.

        Parameters
        - name: str, the subcommand word typed by users.
        - schema: Schema of the subcommand's options (no selector allowed).
        - descr: str | None, one-line description shown by help.
        - callback: f(), f(options) or f(client, options).
        - client: bool (keyword-only); whether a client must be bootstrapped.
          Defaults to True exactly when the callback takes a client.

        Raises
        - DuplicateCommandError when name is already registered or reserved.
        """
        entry = _build_entry(name, schema, descr, callback, client)
        if entry.name == HELP or entry.name in self._entries:
            raise DuplicateCommandError(
                "command %r is already registered" % entry.name,
                hint="pick another name; registered commands can never be replaced",
                input=entry.name,
            )
        self._entries[entry.name] = entry
        logger.debug("registered command %r (%s)", entry.name, entry.kind.name.lower())
        return entry

    def command(self, name, /, schema=Unset, descr=Unset, *, client=Unset):
        """
        Decorator form of register().

            @registry.command("list-regions", descr="List regions")
            def list_regions(client, options): ...

        The description defaults to the first line of the callback's docstring.
        The decorated function is returned unchanged.
        """
        def wrapper(callback, /):
            docstring = inspect.getdoc(callback)
            self.register(
                name,
                Schema() if schema is Unset else schema,
                coalesce(descr, docstring.splitlines()[0] if docstring else None),
                callback,
                client=client,
            )
            return callback

        return rename(wrapper, "command")

    def lookup(self, name, /):
        """
        Return the entry registered under name.

        Raises
        - UnknownCommandError with close-match suggestions otherwise.
        """
        try:
            return self._entries[name]
        except KeyError:
            pass
        suggestions = difflib.get_close_matches(name, list(self._entries) + [HELP], 5)
        if suggestions:
            hint = "did you mean %r?" % suggestions[0]
        else:
            hint = "run 'help' to see the available commands"
        raise UnknownCommandError(
            "unknown command %r" % name,
            hint=hint,
            input=name,
            suggestions=tuple(suggestions),
        )

    def list(self):
        """
        Return all entries in registration order.
        """
        return tuple(self._entries.values())

    def include(self, source, /):
        """
        Import the modules matching a module glob and let each register.

        Parameters
        - source: str, module glob (e.g., "acme.shells.*"); see mglob().

        Behavior
        - Modules are visited in sorted name order.
        - Each module must expose register(registry); modules without one are
          skipped (package __init__ files commonly are).
        - Returns the tuple of modules that registered commands.

        Raises
        - TypeError when source is not a string.
        - ImportError when a matched module cannot be imported.
        """
        if not isinstance(source, str):
            raise TypeError("include() argument must be a string")
        included = []
        for name in mglob(source):
            module = importlib.import_module(name)
            register = getattr(module, "register", None)
            if not callable(register):
                logger.debug("module %r has no register() function, skipped", name)
                continue
            register(self)
            included.append(module)
        return tuple(included)

    @property
    def entries(self):
        """
        Read-only view of name → entry.
        """
        return MappingProxyType(self._entries)

    def __contains__(self, name):
        return name in self._entries

    def __iter__(self):
        return iter(self._entries.values())

    def __len__(self):
        return len(self._entries)

    def __repr__(self):
        return "registry(%s)" % ", ".join(map(repr, self._entries))


def assemble(*providers):
    """
    Build a new Registry from providers, in the given order.

    Each provider is either a callable taking the registry, a module exposing
    register(registry), or a module-glob string handed to Registry.include().
    """
    registry = Registry()
    for provider in providers:
        if isinstance(provider, str):
            registry.include(provider)
        elif callable(register := getattr(provider, "register", provider)):
            register(registry)
        else:
            raise TypeError("assemble() providers must be callables, modules or module globs")
    return registry


__all__ = (
    "HELP",
    "CallbackKind",
    "CommandEntry",
    "Registry",
    "assemble",
)
