"""
Helmsman utilities shared by the option, registry and parser layers.

Contents
- Unset: sentinel for "argument not given", kept apart from None and "".
- coalesce(value, default): swap Unset for a default and nothing else.
- rename(...): give generated callables readable names in tracebacks.
- ordinal(number): "first", "second", ..., "13th", "21st" for fault messages.
- mglob(source): expand module globs such as "acme.shells.*" or
  "acme.**.commands" into importable module names (used by Registry.include).

Only the names in __all__ are meant for provider packages.
"""
import builtins
import functools
import importlib
import itertools
import pkgutil
import re
from typing import final


@final
class UnsetType:
    """
    Type of the Unset sentinel; there is exactly one instance per process.

    Unset is falsy, prints as "Unset", can take part in PEP 604 unions used
    with isinstance() (str | Unset), and the type refuses subclasses.
    """

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __init_subclass__(cls, **kwargs):
        raise TypeError("UnsetType cannot be subclassed")

    def __or__(self, other, /):
        try:
            return type(self) | other
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"


def coalesce(value, default=None, /):
    """
    Return default when value is Unset, value otherwise.

    Falsy values (None, "", 0) are real values and come back untouched.
    """
    return default if value is Unset else value


def rename(*arguments):
    """
    rename(function, name) -> function, renamed in place.
    rename(name) -> decorator doing the same.
    """
    if len(arguments) == 1:
        name, = arguments
        if not isinstance(name, str):
            raise TypeError("rename() name must be a string")
        return rename(lambda function: rename(function, name), "rename")

    if len(arguments) != 2:
        raise TypeError("rename() takes 1 or 2 arguments (%d given)" % len(arguments))

    function, name = arguments
    if not builtins.callable(function):
        raise TypeError("rename() target must be callable")
    if not isinstance(name, str):
        raise TypeError("rename() name must be a string")
    try:
        function.__name__ = function.__qualname__ = name
    except (AttributeError, TypeError):
        raise TypeError("rename() target does not allow renaming") from None
    return function


_ORDINALS = (
    "zeroth", "first", "second", "third", "fourth", "fifth", "sixth",
    "seventh", "eighth", "ninth", "tenth", "eleventh", "twelfth",
)


def ordinal(number, /):
    """
    Return a human ordinal for a 1-based token position.

    Small positions read as words ("first", "third"); larger ones use numeric
    suffixes ("13th", "21st", "112th").
    """
    if not isinstance(number, int) or isinstance(number, bool):
        raise TypeError("ordinal() argument must be an integer")
    if number < 0:
        raise ValueError("ordinal() argument must be a non-negative integer")
    if number < len(_ORDINALS):
        return _ORDINALS[number]
    if 10 <= number % 100 <= 20:
        return f"{number}th"
    return f"{number}%s" % {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")


# escape | star | question mark | character class | anything else
_GLOB_TOKEN = re.compile(r"\\(.)|(\*)|(\?)|\[([!^]?)((?:\\.|[^\]\\])+)\]|(.)", re.DOTALL)

_SEGMENT = re.compile(r"(?!\d)\w+")


def _translate(segment):
    # Glob syntax of a single dotted segment; no token ever matches a dot.
    def replace(match):
        escaped, star, question, negated, members, literal = match.groups()
        if escaped is not None:
            return re.escape(escaped)
        if star:
            return r"[^.]*"
        if question:
            return r"[^.]"
        if members is not None:
            return "[%s%s]" % ("^" if negated else "", members)
        return re.escape(literal)

    return _GLOB_TOKEN.sub(replace, segment)


@functools.cache
def _pattern(source):
    head, *tail = source.split(".")
    body = _translate(head)
    for segment in tail:
        if segment == "**":
            body += r"(?:\.(?!\d)\w+)*"
        else:
            body += r"\." + _translate(segment)
    return re.compile(body)


def mglob(source, /):
    """
    Expand a module glob into the sorted names of the modules it matches.

    Syntax (per dotted segment)
    - "*" any run of characters, "?" one character, "[abc]" / "[!abc]" classes,
      "\\x" a literal x. None of them crosses a dot.
    - "**" as a whole segment stands for zero or more segments.

    Rules
    - The glob must begin with a concrete package name; that package is
      imported and walked with pkgutil.
    - A glob without any wildcard is returned as-is, without importing it.
    - An unimportable leading package matches nothing.

    Examples
    - "acme.shells.*"         modules directly under acme.shells
    - "acme.**.commands"      every "commands" module below acme
    - "acme.shells.[a-m]*"    acme.shells.compute, acme.shells.image, ...
    """
    if not isinstance(source, str):
        raise TypeError("mglob() argument must be a string")
    if not (source := source.strip()):
        raise ValueError("mglob() argument cannot be empty")

    segments = source.split(".")
    concrete = list(itertools.takewhile(_SEGMENT.fullmatch, segments))
    if len(concrete) == len(segments):
        return [source]
    if not concrete:
        raise ValueError("mglob() %r must begin with a concrete package name" % source)

    root = ".".join(concrete)
    try:
        package = importlib.import_module(root)
    except ImportError:
        return []

    pattern = _pattern(source)
    names = {root} if pattern.fullmatch(root) else set()
    for module in pkgutil.walk_packages(getattr(package, "__path__", ()), root + "."):
        if pattern.fullmatch(module.name):
            names.add(module.name)
    return sorted(names)


Unset = UnsetType()


__all__ = (
    "coalesce",
    "rename",
    "ordinal",
    "mglob",
    "UnsetType",
    "Unset",
)
