import json
import logging
import unittest

from shipiq.logging import OTelJSONFormatter, setup_logging


class TestOTelJSONFormatter(unittest.TestCase):
    def test_emits_json_without_trace_outside_span(self):
        formatter = OTelJSONFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
        record = logging.LogRecord(
            "shipiq.test", logging.INFO, __file__, 1, "Scanned %s", ("acme/widgets",), None
        )

        payload = json.loads(formatter.format(record))

        self.assertEqual(payload["message"], "Scanned acme/widgets")
        self.assertEqual(payload["level"], "INFO")
        self.assertEqual(payload["name"], "shipiq.test")
        self.assertNotIn("trace_id", payload)


class TestSetupLogging(unittest.TestCase):
    def setUp(self):
        self.root = logging.getLogger()
        self.saved_handlers = self.root.handlers[:]
        self.saved_level = self.root.level

    def tearDown(self):
        self.root.handlers[:] = self.saved_handlers
        self.root.setLevel(self.saved_level)

    def test_installs_single_json_handler(self):
        setup_logging("debug")
        setup_logging("debug")

        self.assertEqual(len(self.root.handlers), 1)
        self.assertIsInstance(self.root.handlers[0].formatter, OTelJSONFormatter)
        self.assertEqual(self.root.level, logging.DEBUG)
        self.assertEqual(logging.getLogger("httpx").level, logging.WARNING)


if __name__ == "__main__":
    unittest.main()
