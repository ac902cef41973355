import os
import unittest
from unittest.mock import patch

from shopbridge.config import AugmentConfig
from shopbridge.constants import DEFAULT_BACKEND_URL, DEFAULT_RETRY_DELAYS
from shopbridge.texts import get_text


class AugmentConfigTests(unittest.TestCase):
    def test_defaults(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            config = AugmentConfig.from_env()
        self.assertEqual(config.backend_url, DEFAULT_BACKEND_URL)
        self.assertEqual(config.poll_seconds, 3.0)
        self.assertEqual(config.retry_delays, (0.5, 1.5, 2.5))
        self.assertEqual(config.error_hold_seconds, 3.0)
        self.assertFalse(config.headless)
        self.assertEqual(config.lang, "fa")
        self.assertFalse(config.api_key_configured)

    def test_overrides(self) -> None:
        env = {
            "SHOPBRIDGE_BACKEND_URL": "ws://backend:9000",
            "SHOPBRIDGE_POLL_SECONDS": "1.5",
            "SHOPBRIDGE_RETRY_DELAYS": "0.2, 1",
            "SHOPBRIDGE_ERROR_HOLD_SECONDS": "0",
            "SHOPBRIDGE_HEADLESS": "yes",
            "SHOPBRIDGE_LANG": "EN",
            "SHOPBRIDGE_API_KEY": "secret",
        }
        with patch.dict(os.environ, env, clear=True):
            config = AugmentConfig.from_env()
        self.assertEqual(config.backend_url, "ws://backend:9000")
        self.assertEqual(config.poll_seconds, 1.5)
        self.assertEqual(config.retry_delays, (0.2, 1.0))
        self.assertEqual(config.error_hold_seconds, 0.0)
        self.assertTrue(config.headless)
        self.assertEqual(config.lang, "en")
        self.assertTrue(config.api_key_configured)
        self.assertNotIn("secret", str(config.status_payload()))

    def test_invalid_values_fall_back(self) -> None:
        env = {
            "SHOPBRIDGE_POLL_SECONDS": "0.01",
            "SHOPBRIDGE_RETRY_DELAYS": "0.5,-1",
            "SHOPBRIDGE_ERROR_HOLD_SECONDS": "soon",
            "SHOPBRIDGE_LANG": "de",
        }
        with patch.dict(os.environ, env, clear=True):
            config = AugmentConfig.from_env()
        self.assertEqual(config.poll_seconds, 3.0)
        self.assertEqual(config.retry_delays, DEFAULT_RETRY_DELAYS)
        self.assertEqual(config.error_hold_seconds, 3.0)
        self.assertEqual(config.lang, "fa")


class TextsTests(unittest.TestCase):
    def test_lookup_and_fallback(self) -> None:
        self.assertEqual(get_text("control_label", "fa"), "مشاهده نظرات دیجی‌کالا")
        self.assertEqual(get_text("control_label", "en"), "Show Digikala reviews")
        self.assertEqual(get_text("missing_key", "en"), "missing_key")
        with patch.dict(os.environ, {"SHOPBRIDGE_LANG": "en"}):
            self.assertEqual(get_text("close"), "Close")


if __name__ == "__main__":
    unittest.main()
