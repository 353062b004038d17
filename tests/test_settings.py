from __future__ import annotations

import unittest

from config.defaults import DEFAULT_LOOKBACK_HOURS
from config.defaults import DEFAULT_VAULT_URL
from config.settings import ConfigError
from config.settings import load_notifier_settings
from config.settings import parse_id_set
from config.settings import require_positive_interval


class NotifierSettingsTests(unittest.TestCase):
    def test_defaults_from_empty_env(self):
        settings = load_notifier_settings({}, templates_path_default="/tmp/templates.yml")

        self.assertEqual(settings.vault_url, DEFAULT_VAULT_URL)
        self.assertEqual(settings.service_name, "noona-portal")
        self.assertEqual(settings.kavita_plugin_name, "NoonaPortal")
        self.assertEqual(settings.lookback_hours, DEFAULT_LOOKBACK_HOURS)
        self.assertIsNone(settings.check_interval_hours)
        self.assertEqual(settings.initial_delay_seconds, 10.0)
        self.assertEqual(settings.templates_path, "/tmp/templates.yml")
        self.assertFalse(settings.notifier_enabled)
        self.assertEqual(settings.warnings, ())

    def test_full_env_is_parsed(self):
        env = {
            "KAVITA_URL": "http://kavita:5000/",
            "KAVITA_API_KEY": " key ",
            "VAULT_URL": "http://vault:3120/",
            "SERVICE_NAME": "noona-portal-dev",
            "NOTIFICATION_CHANNEL_ID": "123456789012345678",
            "CHECK_INTERVAL_HOURS": "6",
            "KAVITA_LOOKBACK_HOURS": "24",
            "NOTIFY_INITIAL_DELAY_SECONDS": "0",
            "NOTIFY_OWNER_USER_IDS": "237008609773486080, 42",
            "NOTIFY_COMMAND_CHANNEL_IDS": "111111111111111111;222222222222222222",
        }
        settings = load_notifier_settings(env)

        self.assertEqual(settings.kavita_url, "http://kavita:5000")
        self.assertEqual(settings.kavita_api_key, "key")
        self.assertEqual(settings.vault_url, "http://vault:3120")
        self.assertEqual(settings.service_name, "noona-portal-dev")
        self.assertEqual(settings.notification_channel_id, 123456789012345678)
        self.assertTrue(settings.notifier_enabled)
        self.assertEqual(settings.check_interval_hours, 6)
        self.assertEqual(settings.lookback_hours, 24)
        self.assertEqual(settings.initial_delay_seconds, 0.0)
        self.assertEqual(settings.owner_user_ids, {237008609773486080})
        self.assertEqual(settings.command_channel_ids, {111111111111111111, 222222222222222222})

    def test_invalid_interval_is_kept_for_the_scheduler_to_reject(self):
        self.assertEqual(load_notifier_settings({"CHECK_INTERVAL_HOURS": "0"}).check_interval_hours, 0)
        self.assertIsNone(load_notifier_settings({"CHECK_INTERVAL_HOURS": "two"}).check_interval_hours)

    def test_invalid_lookback_falls_back_with_warning(self):
        settings = load_notifier_settings({"KAVITA_LOOKBACK_HOURS": "-5"})
        self.assertEqual(settings.lookback_hours, DEFAULT_LOOKBACK_HOURS)
        self.assertTrue(any("KAVITA_LOOKBACK_HOURS" in w for w in settings.warnings))

    def test_invalid_channel_disables_notifier(self):
        settings = load_notifier_settings({"NOTIFICATION_CHANNEL_ID": "general"})
        self.assertEqual(settings.notification_channel_id, 0)
        self.assertFalse(settings.notifier_enabled)
        self.assertTrue(any("NOTIFICATION_CHANNEL_ID" in w for w in settings.warnings))

    def test_invalid_float_falls_back_with_warning(self):
        settings = load_notifier_settings({"VAULT_HEALTH_POLL_SECONDS": "fast", "HTTP_TIMEOUT_SECONDS": "0.1"})
        self.assertEqual(settings.vault_health_poll_seconds, 0.5)
        self.assertEqual(settings.http_timeout_seconds, 15.0)
        self.assertEqual(len(settings.warnings), 2)

    def test_parse_id_set_ignores_short_tokens(self):
        self.assertEqual(parse_id_set("12345678, abc, 1234"), {12345678})
        self.assertEqual(parse_id_set(None), set())


class RequirePositiveIntervalTests(unittest.TestCase):
    def test_accepts_positive_integers(self):
        self.assertEqual(require_positive_interval(1), 1)
        self.assertEqual(require_positive_interval(24), 24)

    def test_rejects_everything_else(self):
        for bad in (0, -3, None, "4", 2.0, False, True):
            with self.assertRaises(ConfigError) as ctx:
                require_positive_interval(bad)
            self.assertEqual(ctx.exception.key, "CHECK_INTERVAL_HOURS")


if __name__ == "__main__":
    unittest.main()
