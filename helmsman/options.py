r"""
Helmsman option specifications and schemas.

Overview
- Specs (declared by provider packages, one per option)
  • Flag: named, presence-only boolean switch (e.g., --debug, -h/--help).
  • Option: named, string-valued option (e.g., --auth-url URL, --auth-url=URL).
  • Operand: positional string argument (e.g., the SUBCOMMAND of `help`).
  • Selector: the positional token that names the subcommand to run.

- Schema
  • An ordered, validated collection of specs keyed by field name. It is the
    “options prototype” a command registers and the parser binds against.
  • Field names map to long flags: auth_url → --auth-url, unless explicit
    spellings are given to the spec.
  • Schema.fields yields one Field per declaration, in declaration order.

- Default-specs
  • A literal ("internal"), an environment reference ("$OPENSTACK_AUTH_URL"),
    or a reference with a fallback ("$OPENSTACK_DOMAIN_NAME|Default").
  • resolve() reads the environment at call time; nothing is cached, so a
    changed variable is seen by the next parse.

- Namespace
  • Read-only attribute bag holding the values bound by one parse.

Validation highlights
- Flag spellings must match r"--?[^\W\d_](-?[^\W_]+)*" and be unique across a schema.
- At most one Selector per schema; a Selector cannot share a schema with Operands.
- Option defaults must be strings (or Unset); Flag defaults must be booleans
  or default-spec strings. Anything else is a MalformedOptionsShapeError.

Quick example:
    >>> schema = Schema(
    ...     debug=Flag(descr="debug mode"),
    ...     auth_url=Option(descr="Auth URL", default="$OPENSTACK_AUTH_URL", required=True),
    ...     subcommand=Selector(descr="subcommand"),
    ... )
    >>> [field.flag for field in schema.fields]
    ['--debug', '--auth-url', 'SUBCOMMAND']
"""
import os
import re
from collections import namedtuple
from enum import Enum
from types import MappingProxyType

from .faults import MalformedOptionsShapeError
from .utils import *


class Kind(Enum):
    """
    Primitive kind of a field: what a bound value looks like.
    """
    BOOL = "bool"
    STRING = "string"
    SELECTOR = "selector"


_TRUTHY = frozenset({"1", "true", "yes", "on"})


def resolve(spec, /, environ=None):
    """
    Resolve a default-spec against the environment.

    Rules
    - A spec that is not a string, or does not start with '$', is returned verbatim.
    - "$NAME" → the value of NAME when set and non-empty, otherwise "".
    - "$NAME|fallback" → the value of NAME when set and non-empty, otherwise
      "fallback" (the split happens on the first '|', so the fallback may
      itself contain '|').

    Parameters
    - spec: Any
    - environ: Mapping[str, str] | None
      Environment to read; os.environ when omitted.
    """
    if not isinstance(spec, str) or not spec.startswith("$"):
        return spec
    environ = os.environ if environ is None else environ
    name, _, fallback = spec[1:].partition("|")
    return environ.get(name) or fallback


class SpecType(type):
    """
    Metaclass for spec classes.

    - Derives __typename__ from the class name ("Flag" → "flag") for messages.
    - Exposes every name in __introspectable__ as a read-only property backed
      by the "_<name>" attribute.
    """

    def __new__(cls, name, bases, namespace, **options):
        return super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                field: property(rename(lambda self, field=field: getattr(self, "_" + field), field))
                for field in namespace.get("__introspectable__", ())
            },
        )


class Spec(metaclass=SpecType):
    """
    Common base of Flag, Option, Operand and Selector.
    """
    __introspectable__ = ()
    __kind__ = Unset

    def __repr__(self):
        return "%s(%s)" % (
            type(self).__typename__,
            ", ".join("%s=%r" % pair for pair in self.__rich_repr__()),
        )

    def __rich_repr__(self):
        for name in type(self).__introspectable__:
            yield name, getattr(self, name)


def _sanitize_metadata(cls, metadata, /):
    """
    Internal: normalize the 'descr' metadata shared by every spec.

    - descr: Unset becomes None; a provided string must be non-empty after trimming.
    """
    if not isinstance(descr := metadata["descr"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'descr' must be a string")
    elif isinstance(descr, str) and not (descr := descr.strip()):
        raise ValueError(f"{cls.__typename__} 'descr' cannot be empty")
    metadata["descr"] = coalesce(descr)


def _sanitize_named_metadata(cls, metadata, /):
    r"""
    Internal: validate explicit flag spellings of a named spec (Flag, Option).

    - names may be empty (derived later from the field name).
    - each name must be a shell-style spelling: "-h", "--auth-url".
    - duplicates are rejected; declaration order is preserved.
    """
    names = []
    for name in metadata["names"]:
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} names must be strings")
        elif not (name := name.strip()):
            raise ValueError(f"{cls.__typename__} names cannot be empty-strings")
        elif not re.fullmatch(r"--?[^\W\d_](-?[^\W_]+)*", name):
            raise ValueError(f"{cls.__typename__} names must be valid shell-style option names")
        elif name in names:
            raise ValueError(f"{cls.__typename__} names cannot contain duplicates")
        names.append(name)
    metadata["names"] = tuple(names)


def _sanitize_metavar(cls, metadata, /):
    if not isinstance(metavar := metadata["metavar"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'metavar' must be a string")
    elif isinstance(metavar, str) and not (metavar := metavar.strip()):
        raise ValueError(f"{cls.__typename__} 'metavar' cannot be empty")
    metadata["metavar"] = metavar


class Flag(Spec):
    """
    Named, presence-only boolean switch.

    - default: False, True, or a default-spec string ("$DEBUG|0") whose
      resolved text counts as true when it is 1/true/yes/on.
    - helper: marks the help switch. A schema has at most one; when it is set
      the parser stops and returns usage text instead of dispatching.
    """
    __kind__ = Kind.BOOL
    __introspectable__ = ("names", "descr", "default", "helper", "hidden")

    def __init__(self, *names, descr=Unset, default=False, helper=False, hidden=False):
        metadata = {"names": names, "descr": descr}
        _sanitize_metadata(type(self), metadata)
        _sanitize_named_metadata(type(self), metadata)
        self._names = metadata["names"]
        self._descr = metadata["descr"]
        self._default = default
        self._helper = bool(helper)
        self._hidden = bool(hidden)


class Option(Spec):
    """
    Named option carrying one string value.

    - default: a literal string or a default-spec; "" when omitted.
    - metavar: label of the value in help; the upper-cased field name when omitted.
    - required: the value must be non-empty after default resolution. Base
      schema fields are checked before any client is built (credentials such
      as the auth URL); subcommand fields are checked by the parser.
    """
    __kind__ = Kind.STRING
    __introspectable__ = ("names", "descr", "default", "metavar", "required", "hidden")

    def __init__(self, *names, descr=Unset, default="", metavar=Unset, required=False, hidden=False):
        metadata = {"names": names, "descr": descr, "metavar": metavar}
        _sanitize_metadata(type(self), metadata)
        _sanitize_named_metadata(type(self), metadata)
        _sanitize_metavar(type(self), metadata)
        self._names = metadata["names"]
        self._descr = metadata["descr"]
        self._default = default
        self._metavar = metadata["metavar"]
        self._required = bool(required)
        self._hidden = bool(hidden)


class Operand(Spec):
    """
    Positional string argument, bound in declaration order.

    An operand with a default (or required=False) may be omitted.
    """
    __kind__ = Kind.STRING
    __introspectable__ = ("metavar", "descr", "default", "required")

    def __init__(self, metavar=Unset, /, descr=Unset, default=Unset, required=Unset):
        metadata = {"descr": descr, "metavar": metavar}
        _sanitize_metadata(type(self), metadata)
        _sanitize_metavar(type(self), metadata)
        self._metavar = metadata["metavar"]
        self._descr = metadata["descr"]
        self._default = default
        self._required = bool(coalesce(required, default is Unset))


class Selector(Spec):
    """
    The subcommand selector: the first non-flag token of the base pass.
    """
    __kind__ = Kind.SELECTOR
    __introspectable__ = ("metavar", "descr")

    def __init__(self, metavar="SUBCOMMAND", /, descr=Unset):
        metadata = {"descr": descr, "metavar": metavar}
        _sanitize_metadata(type(self), metadata)
        _sanitize_metavar(type(self), metadata)
        self._metavar = metadata["metavar"]
        self._descr = metadata["descr"]


class Field(namedtuple("Field", (
    "name",
    "kind",
    "names",
    "descr",
    "default",
    "metavar",
    "positional",
    "required",
    "helper",
    "hidden",
))):
    """
    One declared option of a schema, as seen by the parser and help renderer.
    """
    __slots__ = ()

    @property
    def flag(self):
        """
        Display spelling: the longest flag name, or the metavar of a positional.
        """
        if self.positional:
            return self.metavar
        return max(self.names, key=len)

    def resolve(self, environ=None):
        """
        Resolve this field's default-spec to a bound value (re-read on every call).
        """
        match self.kind:
            case Kind.SELECTOR:
                return None
            case Kind.BOOL:
                value = resolve(self.default, environ)
                if isinstance(value, str):
                    return value.strip().lower() in _TRUTHY
                return bool(value)
            case _:
                if self.default is Unset:
                    return None
                return resolve(self.default, environ)


def _flagify(name):
    return "--" + re.sub(r"_+", "-", name.lower().strip("_"))


class Schema:
    """
    Ordered, validated set of option declarations for one command.

    Construction
    - Schema(name=spec, ...): keyword order is declaration order.
    - Every value must be a Flag, Option, Operand or Selector instance.

    Raises
    - MalformedOptionsShapeError on unsupported field kinds, invalid or
      duplicated spellings, more than one selector or helper, or a selector
      mixed with operands.
    """

    def __init__(self, **specs):
        fields = []
        switches = {}
        selector = helper = None

        for name, spec in specs.items():
            if not name.isidentifier() or name.startswith("_"):
                raise MalformedOptionsShapeError(
                    "field name %r is not a public identifier" % name,
                    hint="use lower_snake_case field names such as 'auth_url'",
                )
            if not isinstance(spec, Spec):
                raise MalformedOptionsShapeError(
                    "field %r of type %r cannot be mapped to bool or string" % (name, type(spec).__name__),
                    hint="declare it with Flag(), Option(), Operand() or Selector()",
                )
            field = self._build(name, spec)

            if field.kind is Kind.SELECTOR:
                if selector is not None:
                    raise MalformedOptionsShapeError(
                        "fields %r and %r are both marked as subcommand selector" % (selector.name, name),
                        hint="keep a single Selector() per schema",
                    )
                selector = field
            if field.helper:
                if helper is not None:
                    raise MalformedOptionsShapeError(
                        "fields %r and %r are both marked as help switch" % (helper.name, name),
                        hint="keep a single Flag(helper=True) per schema",
                    )
                helper = field

            for spelling in field.names:
                if spelling in switches:
                    raise MalformedOptionsShapeError(
                        "flag %r is declared by both %r and %r" % (spelling, switches[spelling].name, name),
                        hint="give each field its own spelling",
                    )
                switches[spelling] = field
            fields.append(field)

        if selector is not None and any(field.positional and field.kind is not Kind.SELECTOR for field in fields):
            raise MalformedOptionsShapeError(
                "a subcommand selector cannot share a schema with operands",
                hint="move the operands to the subcommand schemas",
            )

        self._fields = tuple(fields)
        self._switches = MappingProxyType(switches)
        self._selector = selector
        self._helper = helper

    @staticmethod
    def _build(name, spec):
        match spec.__kind__:
            case Kind.BOOL:
                if not isinstance(spec.default, bool | str):
                    raise MalformedOptionsShapeError(
                        "flag %r default must be a boolean or a default-spec string" % name,
                        hint="use default=True, default=False or default='$VARIABLE|0'",
                    )
                return Field(
                    name, Kind.BOOL, spec.names or (_flagify(name),), spec.descr, spec.default,
                    None, False, False, spec.helper, spec.hidden,
                )
            case Kind.STRING if isinstance(spec, Operand):
                if not isinstance(spec.default, str | Unset):
                    raise MalformedOptionsShapeError(
                        "operand %r default must be a string" % name,
                        hint="string is the only supported value kind",
                    )
                return Field(
                    name, Kind.STRING, (), spec.descr, spec.default,
                    coalesce(spec.metavar, name.upper()), True, spec.required, False, False,
                )
            case Kind.STRING:
                if not isinstance(spec.default, str):
                    raise MalformedOptionsShapeError(
                        "option %r default must be a string or a default-spec" % name,
                        hint="string is the only supported value kind",
                    )
                return Field(
                    name, Kind.STRING, spec.names or (_flagify(name),), spec.descr, spec.default,
                    coalesce(spec.metavar, name.upper()), False, spec.required, False, spec.hidden,
                )
            case Kind.SELECTOR:
                return Field(
                    name, Kind.SELECTOR, (), spec.descr, Unset,
                    spec.metavar, True, False, False, False,
                )
        raise MalformedOptionsShapeError("field %r has an unsupported kind" % name)

    @property
    def fields(self):
        """
        Declared fields, in declaration order.
        """
        return self._fields

    @property
    def switches(self):
        """
        Read-only map of every flag spelling to its field.
        """
        return self._switches

    @property
    def selector(self):
        return self._selector

    @property
    def helper(self):
        return self._helper

    @property
    def operands(self):
        return tuple(field for field in self._fields if field.positional and field.kind is not Kind.SELECTOR)

    def defaults(self, environ=None):
        """
        Resolve every field's default-spec now, as a name → value dict.
        """
        return {field.name: field.resolve(environ) for field in self._fields}

    def __getitem__(self, name):
        for field in self._fields:
            if field.name == name:
                return field
        raise KeyError(name)

    def __contains__(self, name):
        return any(field.name == name for field in self._fields)

    def __iter__(self):
        return iter(self._fields)

    def __len__(self):
        return len(self._fields)

    def __repr__(self):
        return "schema(%s)" % ", ".join(field.flag for field in self._fields)


class Namespace:
    """
    Read-only values bound by one parse, addressed by field name.

    Two namespaces are equal when they hold the same names and values, which
    makes repeated parses of the same tokens directly comparable.
    """
    __slots__ = ("_values",)

    def __init__(self, values=(), /, **kwargs):
        object.__setattr__(self, "_values", dict(values) | kwargs)

    def __getattr__(self, name):
        try:
            return object.__getattribute__(self, "_values")[name]
        except KeyError:
            raise AttributeError(f"namespace has no field {name!r}") from None

    def __setattr__(self, name, value):
        raise AttributeError("namespace is read-only")

    def __delattr__(self, name):
        raise AttributeError("namespace is read-only")

    def __contains__(self, name):
        return name in self._values

    def __iter__(self):
        return iter(self._values)

    def __eq__(self, other):
        if not isinstance(other, Namespace):
            return NotImplemented
        return self._values == other._values

    __hash__ = None

    def __repr__(self):
        return "namespace(%s)" % ", ".join("%s=%r" % pair for pair in self._values.items())

    def __rich_repr__(self):
        yield from self._values.items()

    def as_dict(self):
        return dict(self._values)

    def __replace__(self, **changes):
        if unknown := changes.keys() - self._values.keys():
            raise TypeError("namespace has no field(s) %s" % ", ".join(map(repr, sorted(unknown))))
        return type(self)(self._values | changes)

    replace = __replace__


__all__ = (
    # Kinds and resolution
    "Kind",
    "resolve",

    # Specs
    "Flag",
    "Option",
    "Operand",
    "Selector",

    # Schemas and values
    "Field",
    "Schema",
    "Namespace",
)

# Not part of the public API.
del SpecType
