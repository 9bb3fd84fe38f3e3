"""
Tests for the small helpers of helmsman.utils.

- Unset sentinel semantics (singleton, falsy, final).
- coalesce() only replaces Unset.
- ordinal() words and numeric suffixes used by position-first messages.
- mglob() module globbing over the helmsman package itself.
"""
import copy
import unittest
from unittest import TestCase

from helmsman.utils import *


class UnsetTest(TestCase):
    """Sentinel guarantees."""

    def testSingleton(self):
        self.assertIs(UnsetType(), Unset)
        self.assertIs(copy.copy(Unset), Unset)

    def testFalsyButDistinct(self):
        self.assertFalse(Unset)
        self.assertIsNot(Unset, None)
        self.assertNotEqual(Unset, "")

    def testRepr(self):
        self.assertEqual(repr(Unset), "Unset")

    def testNotSubclassable(self):
        with self.assertRaises(TypeError):
            type("Sub", (UnsetType,), {})

    def testUnionWithTypes(self):
        self.assertIsInstance(Unset, str | Unset)
        self.assertIsInstance("text", str | Unset)
        self.assertNotIsInstance(3, str | Unset)


class CoalesceTest(TestCase):

    def testReplacesUnsetOnly(self):
        self.assertEqual(coalesce(Unset, "fallback"), "fallback")
        self.assertEqual(coalesce("", "fallback"), "")
        self.assertIsNone(coalesce(None, "fallback"))
        self.assertIsNone(coalesce(Unset))


class RenameTest(TestCase):

    def testDirectForm(self):
        function = rename(lambda: None, "named")
        self.assertEqual(function.__name__, "named")
        self.assertEqual(function.__qualname__, "named")

    def testDecoratorForm(self):
        @rename("other")
        def function():
            pass

        self.assertEqual(function.__name__, "other")

    def testRejectsNonCallable(self):
        with self.assertRaises(TypeError):
            rename(42, "name")


class OrdinalTest(TestCase):

    def testWords(self):
        self.assertEqual(ordinal(1), "first")
        self.assertEqual(ordinal(3), "third")
        self.assertEqual(ordinal(12), "twelfth")

    def testSuffixes(self):
        self.assertEqual(ordinal(13), "13th")
        self.assertEqual(ordinal(21), "21st")
        self.assertEqual(ordinal(22), "22nd")
        self.assertEqual(ordinal(23), "23rd")
        self.assertEqual(ordinal(111), "111th")
        self.assertEqual(ordinal(112), "112th")

    def testRejectsInvalid(self):
        with self.assertRaises(TypeError):
            ordinal("1")
        with self.assertRaises(TypeError):
            ordinal(True)
        with self.assertRaises(ValueError):
            ordinal(-1)


class MglobTest(TestCase):

    def testConcreteNameIsReturnedAsIs(self):
        self.assertEqual(mglob("helmsman.parser"), ["helmsman.parser"])

    def testDirectChildren(self):
        names = mglob("helmsman.*")
        self.assertIn("helmsman.parser", names)
        self.assertIn("helmsman.registry", names)
        self.assertEqual(names, sorted(names))

    def testCharacterClass(self):
        self.assertEqual(mglob("helmsman.[pr]*"), ["helmsman.parser", "helmsman.registry"])

    def testUnimportablePrefix(self):
        self.assertEqual(mglob("helmsman_missing_package.*"), [])

    def testWildcardOnlyPrefixRejected(self):
        with self.assertRaises(ValueError):
            mglob("*.shells")


if __name__ == "__main__":
    unittest.main()
