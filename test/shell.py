"""
End-to-end tests of the openstackcli program (Shell.run and main).

Scope
- Parse, bootstrap exactly once, dispatch.
- Help paths never build a client.
- Faults go to stderr with exit status 1; usage goes to stdout.

Conventions
- Test method names follow CamelCase per project convention.
- Consoles write to in-memory files; environments are plain dicts.
"""
import io
import logging
import unittest
from unittest import TestCase

from rich.console import Console

from helmsman.options import Namespace, Operand, Option, Schema
from helmsman.registry import Registry
from helmsman.shell import *

ENVIRON = {
    "OPENSTACK_AUTH_URL": "http://keystone:5000/v3",
    "OPENSTACK_USERNAME": "admin",
    "OPENSTACK_PASSWORD": "s3cret",
}


def console():
    return Console(file=io.StringIO(), width=120, color_system=None, force_terminal=False)


class TestShell(TestCase):
    """Shell.run()."""

    def setUp(self):
        self.configs = []
        self.calls = []
        self.handle = object()
        self.environ = dict(ENVIRON)
        self.stdout = console()
        self.stderr = console()

        self.registry = Registry()
        self.registry.register("list-regions", Schema(), "List regions", self.listRegions)
        self.registry.register("echo", Schema(text=Operand("TEXT")), "Print text", self.echo)
        self.registry.register("fail", Schema(), "Always fails", self.failing)

    def listRegions(self, client, options):
        self.calls.append((client, options))

    def echo(self, options):
        self.calls.append(options.text)

    def failing(self, client, options):
        raise RuntimeError("Unauthorized (HTTP 401)")

    def factory(self, config):
        self.configs.append(config)
        return self.handle

    def invoke(self, tokens, factory=None):
        shell = Shell(
            self.registry,
            factory or self.factory,
            environ=self.environ,
            stdout=self.stdout,
            stderr=self.stderr,
        )
        return shell.run(tokens)

    @property
    def out(self):
        return self.stdout.file.getvalue()

    @property
    def err(self):
        return self.stderr.file.getvalue()

    def testListRegions(self):
        self.assertEqual(self.invoke(["list-regions"]), 0)
        self.assertEqual(len(self.configs), 1)
        self.assertEqual(self.configs[0].region_id, "RegionOne")
        self.assertEqual(self.configs[0].auth_url, "http://keystone:5000/v3")
        self.assertEqual(self.calls, [(self.handle, Namespace())])
        self.assertEqual(self.err, "")

    def testListRegionsWithFlags(self):
        self.environ.clear()
        tokens = ["--auth-url", "U", "--username", "u", "--password", "p", "--project", "P", "list-regions"]
        self.assertEqual(self.invoke(tokens), 0)
        self.assertEqual(len(self.configs), 1)
        self.assertEqual((self.configs[0].auth_url, self.configs[0].project), ("U", "P"))
        self.assertEqual(self.calls, [(self.handle, Namespace())])

    def testRegionFromEnvironment(self):
        self.environ["OPENSTACK_REGION_ID"] = "RegionTwo"
        self.assertEqual(self.invoke(["list-regions"]), 0)
        self.assertEqual(self.configs[0].region_id, "RegionTwo")

    def testRegionFlagBeatsEnvironment(self):
        self.environ["OPENSTACK_REGION_ID"] = "RegionTwo"
        self.assertEqual(self.invoke(["--region-id", "RegionThree", "list-regions"]), 0)
        self.assertEqual(self.configs[0].region_id, "RegionThree")

    def testMissingCredential(self):
        del self.environ["OPENSTACK_USERNAME"]
        self.assertEqual(self.invoke(["list-regions"]), 1)
        self.assertEqual(self.configs, [])
        self.assertEqual(self.calls, [])
        self.assertIn("missing required credential --username", self.err)

    def testClientlessCommandSkipsBootstrap(self):
        self.environ.clear()
        self.assertEqual(self.invoke(["echo", "hello"]), 0)
        self.assertEqual(self.calls, ["hello"])
        self.assertEqual(self.configs, [])

    def testTopLevelHelp(self):
        self.assertEqual(self.invoke(["--help"]), 0)
        self.assertIn("usage: openstackcli", self.out)
        self.assertIn("list-regions", self.out)
        self.assertEqual(self.configs, [])

    def testHelpCommand(self):
        self.assertEqual(self.invoke(["help", "list-regions"]), 0)
        self.assertIn("usage: openstackcli list-regions", self.out)
        self.assertEqual(self.configs, [])
        self.assertEqual(self.calls, [])

    def testSubcommandHelp(self):
        self.assertEqual(self.invoke(["echo", "--help"]), 0)
        self.assertIn("usage: openstackcli echo", self.out)
        self.assertEqual(self.calls, [])

    def testHelpSwitchOfHelpCommand(self):
        self.assertEqual(self.invoke(["help", "echo", "--help"]), 0)
        self.assertIn("usage: openstackcli help", self.out)
        self.assertNotIn("usage: openstackcli echo", self.out)
        self.assertEqual(self.out.count("usage:"), 1)

    def testRequiredSubcommandOption(self):
        self.registry.register("rename", Schema(to=Option(required=True)), "Rename", self.echo)
        self.assertEqual(self.invoke(["rename"]), 1)
        self.assertIn("usage: openstackcli rename", self.out)
        self.assertIn("missing required flag --to", self.err)
        self.assertEqual(self.configs, [])

    def testParseFaultPrintsUsageThenError(self):
        self.assertEqual(self.invoke(["--bogus", "list-regions"]), 1)
        self.assertIn("usage: openstackcli", self.out)
        self.assertIn("unknown flag '--bogus' at first position", self.err)
        self.assertEqual(self.configs, [])

    def testSubcommandFaultPrintsSubcommandUsage(self):
        self.assertEqual(self.invoke(["echo"]), 1)
        self.assertIn("usage: openstackcli echo", self.out)
        self.assertIn("missing positional argument TEXT", self.err)

    def testUnknownCommand(self):
        self.assertEqual(self.invoke(["list-region"]), 1)
        self.assertIn("unknown command 'list-region' at first position", self.err)
        self.assertIn("list-regions", self.err)

    def testCommandFailure(self):
        self.assertEqual(self.invoke(["fail"]), 1)
        self.assertIn("Unauthorized (HTTP 401)", self.err)

    def testNoSuchRegion(self):
        self.assertEqual(self.invoke(["list-regions"], factory=lambda config: None), 1)
        self.assertIn("no such region RegionOne", self.err)
        self.assertEqual(self.calls, [])

    def testMissingFactory(self):
        shell = Shell(self.registry, environ=self.environ, stdout=self.stdout, stderr=self.stderr)
        self.assertEqual(shell.run(["list-regions"]), 1)
        self.assertIn("no client factory", self.err)

    def testDebugEnablesDebugLogging(self):
        self.assertEqual(self.invoke(["--debug", "echo", "hi"]), 0)
        self.assertEqual(logging.getLogger("helmsman").level, logging.DEBUG)
        self.assertEqual(self.invoke(["echo", "hi"]), 0)
        self.assertEqual(logging.getLogger("helmsman").level, logging.WARNING)

    def testLogLevelFromEnvironment(self):
        self.environ["HELMSMAN_LOG_LEVEL"] = "info"
        self.assertEqual(self.invoke(["echo", "hi"]), 0)
        self.assertEqual(logging.getLogger("helmsman").level, logging.INFO)

    def testFancyRendering(self):
        shell = Shell(self.registry, self.factory, environ=self.environ, stdout=self.stdout, stderr=self.stderr,
                      fancy=True)
        self.assertEqual(shell.run(["fail"]), 1)
        self.assertIn("Unauthorized (HTTP 401)", self.err)
        self.assertIn("╭", self.err)


class TestMain(TestCase):
    """main()."""

    def testProvidersAndFactory(self):
        calls = []

        def provider(registry):
            registry.register("list-regions", Schema(), "List regions", lambda client, options: calls.append(client))

        status = main(
            ["list-regions"],
            providers=(provider,),
            factory=lambda config: config.region_id,
            environ=dict(ENVIRON),
            stdout=console(),
            stderr=console(),
        )
        self.assertEqual(status, 0)
        self.assertEqual(calls, ["RegionOne"])

    def testDuplicateProviderFails(self):
        def provider(registry):
            registry.register("list-regions", Schema(), None, lambda client, options: None)

        stderr = console()
        status = main(["list-regions"], providers=(provider, provider), environ={}, stderr=stderr)
        self.assertEqual(status, 1)
        self.assertIn("already registered", stderr.file.getvalue())


if __name__ == "__main__":
    unittest.main()
