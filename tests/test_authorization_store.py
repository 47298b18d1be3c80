import sys
import os
import json
import tempfile
import unittest

# Add project root to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from services.authorization_store import AuthorizationStore

SAMPLE = {
    'rootPaths': [
        {'id': 'main', 'name': 'Main', 'path': './data', 'isDefault': True},
        {'id': 'archive', 'name': 'Archive', 'path': './archive', 'description': 'Old files'},
    ],
    'authorization': {
        'rules': [
            {'email': 'Admin@Example.com', 'rootPathPermissions': {'main': 'full', 'archive': 'full'},
             'description': 'Administrator'},
            {'email': 'reader@example.com', 'rootPathPermissions': {'main': 'readonly'}},
        ],
        'defaultPermission': 'denied',
        'permissions': {
            'full': {'canView': True, 'canDownload': True, 'canUpload': True, 'canDelete': True},
            'readonly': {'canView': True, 'canDownload': True, 'canUpload': True, 'canDelete': False},
            'denied': {'canView': False, 'canDownload': False, 'canUpload': False, 'canDelete': False},
        },
    },
}


class TestAuthorizationStore(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, 'conf', 'authorization-config.json')

    def tearDown(self):
        self.tmp.cleanup()

    def write(self, data):
        os.makedirs(os.path.dirname(self.path), exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            if isinstance(data, str):
                f.write(data)
            else:
                json.dump(data, f)

    def test_load_parses_file(self):
        self.write(SAMPLE)
        store = AuthorizationStore(self.path)
        config = store.load()
        self.assertEqual([r.id for r in config.roots], ['main', 'archive'])
        self.assertEqual(config.rules[0].email, 'admin@example.com')
        self.assertEqual(config.default_permission_level, 'denied')
        self.assertFalse(config.permission_levels['readonly'].can_delete)
        self.assertTrue(config.permission_levels['readonly'].can_upload)

    def test_missing_file_installs_safe_default(self):
        store = AuthorizationStore(self.path, fallback_root_path='/srv/data')
        config = store.load()
        self.assertEqual([r.id for r in config.roots], ['main'])
        self.assertEqual(config.roots[0].path, '/srv/data')
        self.assertEqual(config.default_permission_level, 'denied')
        self.assertEqual(sorted(r.email for r in config.rules),
                         ['admin@example.com', 'testuser@example.com'])
        self.assertEqual(store.find_rule('admin@example.com').root_permissions, {'main': 'full'})

    def test_corrupt_file_installs_safe_default(self):
        self.write('{not json')
        config = AuthorizationStore(self.path).load()
        self.assertEqual(config.default_permission_level, 'denied')
        self.assertEqual(len(config.rules), 2)

    def test_unknown_default_level_installs_safe_default(self):
        data = json.loads(json.dumps(SAMPLE))
        data['authorization']['defaultPermission'] = 'superuser'
        self.write(data)
        store = AuthorizationStore(self.path)
        store.load()
        self.assertIsNone(store.find_rule('reader@example.com'))

    def test_duplicate_root_ids_install_safe_default(self):
        data = json.loads(json.dumps(SAMPLE))
        data['rootPaths'].append({'id': 'main', 'path': './elsewhere'})
        self.write(data)
        store = AuthorizationStore(self.path)
        self.assertEqual(len(store.list_roots()), 1)
        self.assertIsNone(store.root_by_id('archive'))

    def test_load_is_idempotent(self):
        self.write(SAMPLE)
        store = AuthorizationStore(self.path)
        first = store.load().to_dict()
        second = store.load().to_dict()
        self.assertEqual(first, second)

    def test_accessors_load_lazily(self):
        self.write(SAMPLE)
        store = AuthorizationStore(self.path)
        self.assertEqual(len(store.list_roots()), 2)

    def test_default_root(self):
        self.write(SAMPLE)
        store = AuthorizationStore(self.path)
        self.assertEqual(store.default_root().id, 'main')

        data = json.loads(json.dumps(SAMPLE))
        data['rootPaths'][0]['isDefault'] = False
        data['rootPaths'].reverse()
        self.write(data)
        store.reload()
        self.assertEqual(store.default_root().id, 'archive')

        data['rootPaths'] = []
        self.write(data)
        store.reload()
        self.assertIsNone(store.default_root())

    def test_root_by_id(self):
        self.write(SAMPLE)
        store = AuthorizationStore(self.path)
        self.assertEqual(store.root_by_id('archive').description, 'Old files')
        self.assertIsNone(store.root_by_id('nope'))

    def test_find_rule_is_case_insensitive(self):
        self.write(SAMPLE)
        store = AuthorizationStore(self.path)
        self.assertIs(store.find_rule('ADMIN@example.COM'), store.find_rule('admin@example.com'))
        self.assertIsNone(store.find_rule('example.com'))
        self.assertIsNone(store.find_rule(None))

    def test_legacy_flat_rule_applies_to_every_root(self):
        data = json.loads(json.dumps(SAMPLE))
        data['authorization']['rules'] = [{'email': 'old@example.com', 'permission': 'readonly'}]
        self.write(data)
        rule = AuthorizationStore(self.path).find_rule('old@example.com')
        self.assertEqual(rule.root_permissions, {'main': 'readonly', 'archive': 'readonly'})

    def test_upsert_creates_rule_and_persists(self):
        self.write(SAMPLE)
        store = AuthorizationStore(self.path)
        self.assertTrue(store.upsert_root_permission('New@Example.com', 'archive', 'readonly', 'Auditor'))

        with open(self.path, encoding='utf-8') as f:
            saved = json.load(f)
        self.assertIn('lastUpdated', saved['metadata'])
        rule = AuthorizationStore(self.path).find_rule('new@example.com')
        self.assertEqual(rule.root_permissions, {'archive': 'readonly'})
        self.assertEqual(rule.description, 'Auditor')

    def test_upsert_updates_existing_rule(self):
        self.write(SAMPLE)
        store = AuthorizationStore(self.path)
        store.upsert_root_permission('READER@example.com', 'archive', 'full')
        rule = store.find_rule('reader@example.com')
        self.assertEqual(rule.root_permissions, {'main': 'readonly', 'archive': 'full'})
        self.assertEqual(len(store.all_rules()), 2)

    def test_remove_rule(self):
        self.write(SAMPLE)
        store = AuthorizationStore(self.path)
        self.assertTrue(store.remove_rule('Reader@Example.com'))
        self.assertIsNone(AuthorizationStore(self.path).find_rule('reader@example.com'))

    def test_remove_missing_rule_does_not_write(self):
        store = AuthorizationStore(self.path)
        self.assertFalse(store.remove_rule('nobody@example.com'))
        self.assertFalse(os.path.exists(self.path))

    def test_persistence_failure_keeps_memory_state(self):
        blocker = os.path.join(self.tmp.name, 'blocker')
        with open(blocker, 'w') as f:
            f.write('')
        store = AuthorizationStore(os.path.join(blocker, 'auth.json'))
        self.assertFalse(store.upsert_root_permission('x@example.com', 'main', 'full'))
        self.assertEqual(store.find_rule('x@example.com').root_permissions, {'main': 'full'})


if __name__ == '__main__':
    unittest.main()
