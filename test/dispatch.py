"""
Dispatcher tests: calling conventions, client hand-off and failure wrapping.

Conventions
- Test method names follow CamelCase per project convention.
"""
import unittest
from unittest import TestCase

from helmsman.dispatch import Dispatcher
from helmsman.faults import CommandFailureError, MissingOperandError
from helmsman.options import Namespace, Schema
from helmsman.registry import CommandEntry, Registry


class TestDispatcher(TestCase):
    """Dispatcher.invoke()."""

    def setUp(self):
        self.registry = Registry()
        self.dispatcher = Dispatcher()
        self.calls = []

    def testBareCallback(self):
        entry = self.registry.register("version", Schema(), None, lambda: "0.1.0")
        self.assertEqual(self.dispatcher.invoke(entry, Namespace()), "0.1.0")

    def testOptionsOnlyCallback(self):
        entry = self.registry.register("echo", Schema(), None, lambda options: options.text)
        self.assertEqual(self.dispatcher.invoke(entry, Namespace(text="hi")), "hi")

    def testClientIsPassedThroughUnchanged(self):
        handle = object()

        def callback(client, options):
            self.calls.append((client, options))

        entry = self.registry.register("list-regions", Schema(), None, callback)
        self.dispatcher.invoke(entry, Namespace(), handle)
        self.assertEqual(len(self.calls), 1)
        self.assertIs(self.calls[0][0], handle)
        self.assertEqual(self.calls[0][1], Namespace())

    def testMissingClientIsCallerError(self):
        entry = self.registry.register("list-regions", Schema(), None, lambda client, options: None)
        with self.assertRaises(TypeError):
            self.dispatcher.invoke(entry, Namespace())

    def testUnexpectedClientIsCallerError(self):
        entry = self.registry.register("echo", Schema(), None, lambda options: None)
        with self.assertRaises(TypeError):
            self.dispatcher.invoke(entry, Namespace(), object())

    def testForcedClientIsNotPassedToCallback(self):
        entry = self.registry.register("ping", Schema(), None, lambda options: "pong", client=True)
        self.assertEqual(self.dispatcher.invoke(entry, Namespace(), object()), "pong")

    def testFailureIsWrapped(self):
        def callback(client, options):
            raise RuntimeError("Unauthorized (HTTP 401)")

        entry = self.registry.register("list-regions", Schema(), None, callback)
        with self.assertRaises(CommandFailureError) as context:
            self.dispatcher.invoke(entry, Namespace(), object())
        fault = context.exception
        self.assertEqual(str(fault), "Unauthorized (HTTP 401)")
        self.assertIsInstance(fault.__cause__, RuntimeError)
        self.assertIs(fault.options["exception"], fault.__cause__)

    def testCommandFaultsPassThrough(self):
        def callback(options):
            raise MissingOperandError("missing positional argument NAME")

        entry = self.registry.register("show", Schema(), None, callback)
        with self.assertRaises(MissingOperandError):
            self.dispatcher.invoke(entry, Namespace())

    def testArgumentsAreChecked(self):
        entry = self.registry.register("version", Schema(), None, lambda: None)
        with self.assertRaises(TypeError):
            self.dispatcher.invoke("version", Namespace())
        with self.assertRaises(TypeError):
            self.dispatcher.invoke(entry, {})

    def testUnknownCallingConventionIsCallerError(self):
        entry = CommandEntry("odd", Schema(), None, self.calls.append, "positional", False)
        with self.assertRaises(TypeError):
            self.dispatcher.invoke(entry, Namespace())
        self.assertEqual(self.calls, [])


if __name__ == "__main__":
    unittest.main()
