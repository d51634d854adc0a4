import logging
import os
import unittest
from unittest.mock import patch

from numbersdraw.config import (
    DEFAULT_CALLBACK_GAS_LIMIT,
    DEFAULT_MAX_RANGE,
    DEFAULT_PICK_COUNT,
    DEFAULT_REQUEST_CONFIRMATIONS,
    Settings,
    load_settings,
)
from numbersdraw.logging_config import configure_logging


@patch("numbersdraw.config.load_dotenv")
class LoadSettingsTestCase(unittest.TestCase):
    def test_defaults_when_environment_is_empty(self, mock_load_dotenv):
        with patch.dict(os.environ, {}, clear=True):
            settings = load_settings()
        mock_load_dotenv.assert_called_once()
        self.assertEqual(settings, Settings())
        self.assertIsNone(settings.db_url)
        self.assertEqual(settings.log_level, "INFO")
        self.assertEqual(settings.default_pick_count, DEFAULT_PICK_COUNT)
        self.assertEqual(settings.default_max_range, DEFAULT_MAX_RANGE)
        self.assertEqual(settings.vrf_callback_gas_limit, DEFAULT_CALLBACK_GAS_LIMIT)
        self.assertEqual(
            settings.vrf_request_confirmations, DEFAULT_REQUEST_CONFIRMATIONS
        )
        self.assertFalse(settings.vrf_native_payment)

    def test_values_read_from_environment(self, mock_load_dotenv):
        env = {
            "DB_URL": "sqlite:///draws.db",
            "LOG_LEVEL": "DEBUG",
            "OPERATOR_ID": "ops@example",
            "RANDOMNESS_BASE_URL": "https://vrf.example.com",
            "RANDOMNESS_TIMEOUT": "10",
            "VRF_KEY_HASH": "0xfeed",
            "VRF_SUBSCRIPTION_ID": "99",
            "VRF_CALLBACK_GAS_LIMIT": "300000",
            "VRF_REQUEST_CONFIRMATIONS": "6",
            "VRF_NATIVE_PAYMENT": "yes",
            "DEFAULT_PICK_COUNT": "5",
            "DEFAULT_MAX_RANGE": "35",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = load_settings()
        self.assertEqual(settings.db_url, "sqlite:///draws.db")
        self.assertEqual(settings.log_level, "DEBUG")
        self.assertEqual(settings.operator_id, "ops@example")
        self.assertEqual(settings.randomness_timeout, 10)
        self.assertEqual(settings.vrf_key_hash, "0xfeed")
        self.assertEqual(settings.vrf_subscription_id, "99")
        self.assertEqual(settings.vrf_callback_gas_limit, 300_000)
        self.assertEqual(settings.vrf_request_confirmations, 6)
        self.assertTrue(settings.vrf_native_payment)
        self.assertEqual((settings.default_pick_count, settings.default_max_range), (5, 35))

    def test_blank_values_fall_back_to_defaults(self, mock_load_dotenv):
        with patch.dict(
            os.environ, {"DEFAULT_PICK_COUNT": " ", "VRF_NATIVE_PAYMENT": ""}, clear=True
        ):
            settings = load_settings()
        self.assertEqual(settings.default_pick_count, DEFAULT_PICK_COUNT)
        self.assertFalse(settings.vrf_native_payment)

    def test_non_integer_value_names_variable(self, mock_load_dotenv):
        with patch.dict(os.environ, {"RANDOMNESS_TIMEOUT": "soon"}, clear=True):
            with self.assertRaises(ValueError) as ctx:
                load_settings()
        self.assertIn("RANDOMNESS_TIMEOUT", str(ctx.exception))


class ConfigureLoggingTestCase(unittest.TestCase):
    @patch("numbersdraw.logging_config.logging.basicConfig")
    def test_level_name_is_applied(self, mock_basic_config):
        configure_logging("debug")
        self.assertEqual(mock_basic_config.call_args.kwargs["level"], logging.DEBUG)
        self.assertEqual(logging.getLogger("sqlalchemy.engine").level, logging.WARNING)


if __name__ == "__main__":
    unittest.main()
