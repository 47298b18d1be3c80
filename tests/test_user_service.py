import sys
import os
import tempfile
import unittest

# Add project root to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from services.authorization_store import AuthorizationStore
from services.user_service import is_admin, remove_user, set_root_permission


class TestUserService(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        # No file yet: the built-in default aggregate is used
        self.store = AuthorizationStore(os.path.join(self.tmp.name, 'auth.json'))

    def tearDown(self):
        self.tmp.cleanup()

    def test_set_root_permission(self):
        self.assertTrue(set_root_permission(self.store, 'New@Example.com', 'main', 'readonly'))
        self.assertEqual(self.store.find_rule('new@example.com').root_permissions, {'main': 'readonly'})

    def test_rejects_invalid_email(self):
        with self.assertRaises(ValueError):
            set_root_permission(self.store, 'not-an-email', 'main', 'full')

    def test_rejects_unknown_root(self):
        with self.assertRaises(ValueError):
            set_root_permission(self.store, 'a@example.com', 'archive', 'full')

    def test_rejects_unknown_level(self):
        with self.assertRaises(ValueError):
            set_root_permission(self.store, 'a@example.com', 'main', 'owner')
        self.assertIsNone(self.store.find_rule('a@example.com'))

    def test_remove_user(self):
        self.assertTrue(remove_user(self.store, 'testuser@example.com', 'admin@example.com'))
        self.assertFalse(remove_user(self.store, 'testuser@example.com', 'admin@example.com'))

    def test_cannot_remove_own_rule(self):
        with self.assertRaises(ValueError):
            remove_user(self.store, 'Admin@example.com', 'admin@example.com')

    def test_is_admin(self):
        self.assertTrue(is_admin('Admin@Example.com', ['admin@example.com']))
        self.assertFalse(is_admin(None, ['admin@example.com']))
        self.assertFalse(is_admin('user@example.com', ['admin@example.com']))


if __name__ == '__main__':
    unittest.main()
