from __future__ import annotations

import io
import json
import unittest
from contextlib import redirect_stdout
from unittest.mock import patch

from dflowkit.infra.logging.logger import ConsoleLogger, create_logger, mask_secret


class ConsoleLoggerTest(unittest.TestCase):
    def test_emits_level_component_and_json_context(self) -> None:
        buffer = io.StringIO()
        with redirect_stdout(buffer):
            ConsoleLogger(component="swap").info("order received", {"amount": 5})

        line = buffer.getvalue().strip()
        self.assertIn("[INFO] [swap] order received", line)
        self.assertEqual({"amount": 5}, json.loads(line[line.index("{") :]))

    def test_debug_is_silent_unless_enabled(self) -> None:
        buffer = io.StringIO()
        with redirect_stdout(buffer):
            ConsoleLogger().debug("hidden")
            ConsoleLogger(debug_enabled=True).debug("shown")

        output = buffer.getvalue()
        self.assertNotIn("hidden", output)
        self.assertIn("[DEBUG] [dflowkit] shown", output)

    def test_create_logger_reads_debug_flag(self) -> None:
        with patch.dict("os.environ", {"DFLOWKIT_DEBUG": "true"}):
            logger = create_logger("cli")

        self.assertTrue(logger.debug_enabled)

    def test_mask_secret(self) -> None:
        self.assertEqual("unset", mask_secret(None))
        self.assertEqual("********", mask_secret("short"))
        self.assertEqual("abcd...wxyz", mask_secret("abcd1234567890wxyz"))


if __name__ == "__main__":
    unittest.main()
