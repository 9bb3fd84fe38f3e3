"""
Helmsman dispatcher: call a registered callback with what its entry asked for.

Calling conventions (fixed at registration, see CallbackKind)
- BARE          → callback()
- OPTIONS_ONLY  → callback(options)
- NEEDS_CLIENT  → callback(client, options)

A client handle is passed exactly when the entry requires one; handing a
client to an entry that does not need it (or none to one that does) is a
programming error of the caller, not a user fault.

Failures raised by a callback are wrapped into CommandFailureError (the
original exception is kept as __cause__ and in options["exception"]); faults
that already are CommandException pass through unchanged.
"""
from .faults import *
from .logs import get_logger
from .options import Namespace
from .registry import CallbackKind, CommandEntry
from .utils import *

logger = get_logger(__name__)


class Dispatcher:
    """
    Stateless invoker of command entries.
    """

    def invoke(self, entry, options, client=Unset, /):
        """
        Call entry's callback and return its result.

        Parameters
        - entry: CommandEntry to run.
        - options: Namespace produced by the subcommand pass.
        - client: handle built by the bootstrap; only for entries that require one.

        Raises
        - TypeError when client presence does not match entry.requires_client.
        - CommandFailureError when the callback raises anything that is not a
          CommandException.
        """
        if not isinstance(entry, CommandEntry):
            raise TypeError("invoke() first argument must be a command entry")
        if not isinstance(options, Namespace):
            raise TypeError("invoke() second argument must be a namespace")
        if entry.requires_client and client is Unset:
            raise TypeError("command %r requires a client handle" % entry.name)
        if not entry.requires_client and client is not Unset:
            raise TypeError("command %r does not take a client handle" % entry.name)

        match entry.kind:
            case CallbackKind.BARE:
                arguments = ()
            case CallbackKind.OPTIONS_ONLY:
                arguments = (options,)
            case CallbackKind.NEEDS_CLIENT:
                arguments = (client, options)
            case _:
                raise TypeError("command %r has no calling convention" % entry.name)

        logger.debug("dispatching %r (%s)", entry.name, entry.kind.name.lower())
        try:
            return entry.callback(*arguments)
        except CommandException:
            raise
        except Exception as exception:
            logger.debug("command %r failed", entry.name, exc_info=True)
            raise CommandFailureError(
                str(exception) or type(exception).__name__,
                hint="check additional logs for more details (run with --debug)",
                input=entry.name,
                exception=exception,
            ) from exception


__all__ = (
    "Dispatcher",
)
