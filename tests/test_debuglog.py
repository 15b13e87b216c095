import json  # payload decoding
import logging  # logger levels
import pathlib  # locate repo root
import sys  # adjust import path for local modules
import unittest  # unit test framework

ROOT = pathlib.Path(__file__).resolve().parents[1]  # repo root
sys.path.insert(0, str(ROOT))  # allow importing local modules

from debuglog import debug_event  # NDJSON helper under test
from field import Fr  # non-JSON values


class DebugEventTests(unittest.TestCase):  # Compact JSON debug records.
    def test_payload(self):  # location, message, data and timestamp keys.
        logger = logging.getLogger("grapevine.test.debuglog")
        with self.assertLogs(logger, level="DEBUG") as logs:
            debug_event(logger, "here.py:1", "hello", n=3, digest=b"\x01\xff", z=(Fr(2),), none=None)
        payload = json.loads(logs.records[0].getMessage())
        self.assertEqual(payload["location"], "here.py:1")
        self.assertEqual(payload["message"], "hello")
        self.assertEqual(payload["data"], {"n": 3, "digest": "01ff", "z": ["Fq(2)"], "none": None})
        self.assertIsInstance(payload["timestamp"], int)

    def test_disabled_below_debug(self):  # Nothing is emitted above DEBUG.
        logger = logging.getLogger("grapevine.test.debuglog.quiet")
        logger.setLevel(logging.INFO)
        with self.assertLogs(logger, level="INFO") as logs:
            debug_event(logger, "here.py:2", "dropped")
            logger.info("kept")
        self.assertEqual([r.getMessage() for r in logs.records], ["kept"])


if __name__ == "__main__":  # unittest entrypoint
    unittest.main()
