"""
The openstackcli program: base flags, start-up wiring and the run loop.

Flow of one run
1. parse the tokens (base pass, then subcommand pass);
2. apply --debug to logging;
3. print usage and stop when a help terminal was reached;
4. bootstrap a client exactly once when the entry needs one;
5. dispatch the callback.

Output
- usage and help go to stdout; on a parse fault the relevant usage is printed
  to stdout first, then the fault to stderr.
- every fault ends the run with exit status 1; success is 0.
"""
import os
import sys

from rich.console import Console

from . import logs
from .bootstrap import Bootstrap
from .dispatch import Dispatcher
from .faults import *
from .options import Flag, Option, Schema, Selector
from .parser import ArgumentParser
from .registry import Registry, assemble
from .utils import *

logger = logs.get_logger(__name__)

PROG = "openstackcli"

DESCRIPTION = "Command-line interface to openstack API."

BASE_SCHEMA = Schema(
    debug=Flag(descr="debug mode"),
    help=Flag("-h", "--help", descr="Show help", helper=True),
    auth_url=Option(descr="Auth URL", default="$OPENSTACK_AUTH_URL", metavar="OPENSTACK_AUTH_URL", required=True),
    username=Option(descr="Username", default="$OPENSTACK_USERNAME", metavar="OPENSTACK_USERNAME", required=True),
    password=Option(descr="Password", default="$OPENSTACK_PASSWORD", metavar="OPENSTACK_PASSWORD", required=True),
    project=Option(descr="Project", default="$OPENSTACK_PROJECT", metavar="OPENSTACK_PROJECT"),
    endpoint_type=Option(
        descr="Endpoint type", default="$OPENSTACK_ENDPOINT_TYPE|internal", metavar="OPENSTACK_ENDPOINT_TYPE"
    ),
    domain_name=Option(
        descr="Domain of user", default="$OPENSTACK_DOMAIN_NAME|Default", metavar="OPENSTACK_DOMAIN_NAME"
    ),
    project_domain=Option(
        descr="Domain of project", default="$OPENSTACK_PROJECT_DOMAIN|Default", metavar="OPENSTACK_PROJECT_DOMAIN"
    ),
    region_id=Option(descr="RegionId", default="$OPENSTACK_REGION_ID", metavar="OPENSTACK_REGION_ID"),
    subcommand=Selector(descr="%s subcommand" % PROG),
)


class Shell:
    """
    One configured program: a registry, a client factory and the base schema.

    Parameters
    - registry: populated Registry (read-only from here on).
    - factory: client factory, factory(config) -> handle | None. Optional for
      programs whose commands never need a client.
    - schema: base Schema; BASE_SCHEMA by default.
    - prog: program name in usage lines and fault headers.
    - environ: mapping for default-specs and proxies; os.environ when omitted.
    - stdout, stderr: rich consoles for usage and faults.
    - colorful: colored fault rendering; on for a terminal without NO_COLOR.
    - fancy: render faults inside a panel.
    """

    def __init__(
            self,
            registry,
            factory=Unset,
            /,
            *,
            schema=BASE_SCHEMA,
            prog=PROG,
            descr=DESCRIPTION,
            environ=Unset,
            stdout=Unset,
            stderr=Unset,
            colorful=Unset,
            fancy=False,
    ):
        if not isinstance(registry, Registry):
            raise TypeError("shell registry must be a Registry")
        self._environ = environ
        self._stdout = Console() if stdout is Unset else stdout
        self._stderr = Console(stderr=True) if stderr is Unset else stderr
        self._colorful = colorful
        self._fancy = bool(fancy)
        self._prog = prog
        self._parser = ArgumentParser(
            schema, registry, prog=prog, descr=descr, environ=environ, console=self._stdout
        )
        self._bootstrap = Bootstrap(factory, schema, environ=coalesce(environ)) if factory is not Unset else None
        self._dispatcher = Dispatcher()

    @property
    def parser(self):
        return self._parser

    def _report(self, fault):
        environ = os.environ if self._environ is Unset else self._environ
        colorful = coalesce(self._colorful, self._stderr.is_terminal and not environ.get("NO_COLOR"))
        report(fault, console=self._stderr, prog=self._prog, colorful=colorful, fancy=self._fancy)

    def run(self, tokens=Unset, /):
        """
        Run one invocation and return its exit status (0 or 1).

        Parameters
        - tokens: Iterable[str] or a shell-like string; sys.argv[1:] when omitted.
        """
        tokens = sys.argv[1:] if tokens is Unset else tokens
        environ = None if self._environ is Unset else self._environ
        logs.configure(environ=environ)

        try:
            parsed = self._parser.parse(tokens)
        except CommandException as fault:
            if fault.usage:
                self._stdout.out(fault.usage, end="", highlight=False)
            self._report(fault)
            return 1

        logs.configure(bool(getattr(parsed.options, "debug", False)), environ=environ)

        if parsed.switch:
            self._stdout.out(parsed.usage, end="", highlight=False)
            return 0

        try:
            if parsed.entry.requires_client:
                if self._bootstrap is None:
                    raise ClientBootstrapError(
                        "command %r needs a client but no client factory is configured" % parsed.command,
                        hint="set HELMSMAN_FACTORY to the 'module:attribute' of a client factory",
                    )
                client = self._bootstrap(parsed.options)
                self._dispatcher.invoke(parsed.entry, parsed.suboptions, client)
            else:
                self._dispatcher.invoke(parsed.entry, parsed.suboptions)
        except CommandException as fault:
            self._report(fault)
            return 1
        return 0


def main(tokens=Unset, /, *, providers=(), factory=Unset, environ=Unset, **options):
    """
    Assemble a registry from providers and run one invocation.

    Parameters
    - tokens: as for Shell.run().
    - providers: callables, modules exposing register(registry), or module globs.
    - factory: client factory handed to the bootstrap.
    - environ: environment mapping; os.environ when omitted.
    - options: forwarded to Shell (schema, prog, stdout, stderr, colorful, fancy).

    Returns the exit status.
    """
    try:
        registry = assemble(*providers)
    except CommandException as fault:
        report(fault, console=options.get("stderr", Unset), prog=options.get("prog", PROG))
        return 1
    logger.debug("assembled %d command(s)", len(registry))
    return Shell(registry, factory, environ=environ, **options).run(tokens)


__all__ = (
    "PROG",
    "BASE_SCHEMA",
    "Shell",
    "main",
)
