import unittest

from FinanceFlow.core.identity import Identity, IdentitySource
from tests.base import BaseTestCase


class TestIdentity(unittest.TestCase):

    def test_is_present(self):
        self.assertTrue(Identity('u1').is_present)
        self.assertFalse(Identity(None).is_present)
        self.assertFalse(Identity('u1', loading=True).is_present)

    def test_is_immutable(self):
        with self.assertRaises(AttributeError):
            Identity('u1').id = 'u2'  # type: ignore


class TestIdentitySource(BaseTestCase):

    def setUp(self):
        super().setUp()
        self.source = IdentitySource()
        self.changes = []
        self.loading = []
        self.source.identityChanged.connect(self.changes.append)
        self.source.loadingChanged.connect(self.loading.append)

    def test_starts_loading(self):
        self.assertEqual(self.source.identity, Identity(None, loading=True))

    def test_first_resolution_always_notifies(self):
        self.source.set_user(None)
        self.assertEqual(self.changes, [Identity(None)])
        self.assertEqual(self.loading, [False])

    def test_changes_are_deduplicated(self):
        self.source.set_user('u1')
        self.source.set_user('u1')
        self.source.set_user('u2')
        self.source.sign_out()
        self.source.sign_out()
        self.assertEqual(self.changes, [Identity('u1'), Identity('u2'), Identity(None)])
        self.assertEqual(self.loading, [False])

    def test_anonymous_is_signed_out(self):
        self.source.set_user('anon-123', anonymous=True)
        self.assertIsNone(self.source.identity.id)
        self.assertEqual(self.changes, [Identity(None)])

    def test_empty_id_is_signed_out(self):
        self.source.set_user('u1')
        self.source.set_user('')
        self.assertEqual(self.changes[-1], Identity(None))

    def test_rejects_non_string_ids(self):
        with self.assertRaises(TypeError):
            self.source.set_user(42)  # type: ignore
        self.assertEqual(self.changes, [])


if __name__ == '__main__':
    unittest.main()
