import os
import sys
import unittest
import keyring
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import YamlConfig
from db import SettingsRepository

class DummyKeyring(keyring.backend.KeyringBackend):
    priority = 1
    def __init__(self):
        self.store = {}
    def get_password(self, service, username):
        return self.store.get((service, username))
    def set_password(self, service, username, password):
        self.store[(service, username)] = password
    def delete_password(self, service, username):
        self.store.pop((service, username), None)

class SettingsEncryptionTest(unittest.TestCase):
    def setUp(self) -> None:
        keyring.set_keyring(DummyKeyring())
        os.environ['ENCRYPT_SETTINGS'] = '1'
        self.path = 'enc_settings.yaml'
        self.db_path = 'enc_settings.db'
        for path in (self.path, self.db_path):
            if os.path.exists(path):
                os.remove(path)

    def tearDown(self) -> None:
        for path in (self.path, self.db_path):
            if os.path.exists(path):
                os.remove(path)
        os.environ.pop('ENCRYPT_SETTINGS', None)

    def test_encrypt_and_load(self) -> None:
        cfg = YamlConfig(self.path)
        cfg.save({'remote_api_key': 'secret', 'user_id': 'user-1'})
        self.assertTrue(os.path.exists(self.path))
        with open(self.path, encoding='utf-8') as f:
            self.assertNotIn('secret', f.read())
        data = cfg.load()
        self.assertEqual(data['remote_api_key'], 'secret')
        self.assertEqual(data['user_id'], 'user-1')

    def test_missing_secret_is_dropped(self) -> None:
        cfg = YamlConfig(self.path)
        cfg.save({'remote_api_key': 'secret'})
        keyring.set_keyring(DummyKeyring())
        self.assertNotIn('remote_api_key', cfg.load())

    def test_repository_reads_secret(self) -> None:
        settings = SettingsRepository(self.db_path, self.path)
        settings.set_text('remote_api_key', 'token-123')
        self.assertEqual(settings.get_text('remote_api_key', ''), 'token-123')

class SettingsRepositoryTest(unittest.TestCase):
    def setUp(self) -> None:
        self.path = 'plain_settings.yaml'
        self.db_path = 'plain_settings.db'
        for path in (self.path, self.db_path):
            if os.path.exists(path):
                os.remove(path)

    def tearDown(self) -> None:
        for path in (self.path, self.db_path):
            if os.path.exists(path):
                os.remove(path)

    def test_defaults_written_to_yaml(self) -> None:
        settings = SettingsRepository(self.db_path, self.path)
        data = settings.all_settings()
        self.assertEqual(data['user_id'], 'local')
        self.assertEqual(data['outbox_limit'], 500)
        self.assertIs(data['sync_enabled'], True)
        self.assertIs(data['migrated_v1'], False)
        self.assertTrue(os.path.exists(self.path))

    def test_yaml_edits_are_picked_up(self) -> None:
        settings = SettingsRepository(self.db_path, self.path)
        with open(self.path, 'w', encoding='utf-8') as f:
            f.write("user_id: athlete-7\nadhoc_default_sets: 4\nsync_background: false\n")
        self.assertEqual(settings.get_text('user_id', 'local'), 'athlete-7')
        self.assertEqual(settings.get_int('adhoc_default_sets', 3), 4)
        self.assertFalse(settings.get_bool('sync_background', True))

    def test_typed_setters(self) -> None:
        settings = SettingsRepository(self.db_path, self.path)
        settings.set_int('outbox_limit', 50)
        self.assertEqual(settings.get_int('outbox_limit', 500), 50)
        self.assertEqual(settings.get_float('outbox_limit', 1.5), 50.0)
        self.assertEqual(settings.get_float('missing_key', 1.5), 1.5)
        settings.set_bool('migrated_v1', True)
        self.assertTrue(SettingsRepository(self.db_path, self.path).get_bool('migrated_v1', False))

    def test_invalid_yaml_rejected(self) -> None:
        settings = SettingsRepository(self.db_path, self.path)
        with open(self.path, 'w', encoding='utf-8') as f:
            f.write("outbox_limit: lots\n")
        with self.assertRaises(ValueError):
            settings.all_settings()

if __name__ == '__main__':
    unittest.main()
