"""
Entry point of `python -m helmsman` and of the `helmsman` console script.

Wiring comes from the environment:
- HELMSMAN_PROVIDERS: comma separated module globs of provider modules, each
  exposing register(registry) (e.g., "acme.shells.*,acme.extra").
- HELMSMAN_FACTORY: "module:attribute" of the client factory.
- HELMSMAN_LOG_LEVEL: default log level (debug, info, warning, error).
"""
import os
import pkgutil
import sys

from .faults import ClientBootstrapError, report
from .shell import PROG, main
from .utils import Unset

__prog__ = PROG


def run():
    environ = os.environ
    providers = tuple(
        source.strip() for source in environ.get("HELMSMAN_PROVIDERS", "").split(",") if source.strip()
    )
    factory = Unset
    if source := environ.get("HELMSMAN_FACTORY", "").strip():
        try:
            factory = pkgutil.resolve_name(source)
        except (ImportError, AttributeError, ValueError) as exception:
            fault = ClientBootstrapError(
                "cannot load client factory %r: %s" % (source, exception),
                hint="HELMSMAN_FACTORY must name an importable 'module:attribute'",
            )
            report(fault, prog=PROG)
            sys.exit(1)
    sys.exit(main(providers=providers, factory=factory))


if __name__ == "__main__":
    run()
