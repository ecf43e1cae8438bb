from __future__ import annotations

import contextlib
import io
import json
from pathlib import Path
import sys
import tempfile
import unittest
from unittest import mock

import exchange_state as es


TOOLS_DIR = Path(__file__).resolve().parent.parent / "tools"
if str(TOOLS_DIR) not in sys.path:
    sys.path.insert(0, str(TOOLS_DIR))

import replay_actions  # noqa: E402


CUSTOM_STATE = {
    "alpha": {"type": "USDT", "amount": 100.0},
    "beta": {"type": "BTC", "amount": 0.005},
    "rate": 0.00005,
    "tx_id": "",
}


class ReplayToolTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.tmp = Path(self._tmp.name)

    def _write(self, name: str, data) -> Path:
        path = self.tmp / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    def _main(self, *argv: str) -> str:
        out = io.StringIO()
        with mock.patch.object(sys, "argv", ["replay_actions.py", *argv]), contextlib.redirect_stdout(out):
            replay_actions.main()
        return out.getvalue()

    def test_bare_log_replays_from_state_file(self):
        state = self._write("state.json", CUSTOM_STATE)
        log = self._write("log.json", [{"type": "UpdateAlphaAmount", "value": 200.0}])
        output = self._main("--state", str(state), str(log))
        self.assertIn("1 applied  ok", output)
        final = json.loads(output.splitlines()[1])
        self.assertEqual(final["alpha"], {"type": "USDT", "amount": 200.0})
        self.assertEqual(final["beta"]["type"], "BTC")
        self.assertEqual(final["beta"]["amount"], 200.0 * 0.00005)

    def test_strict_exits_on_rejected_action(self):
        log = self._write("log.json", [{"type": "SwapSides"}, {"type": "SetRate", "value": -1}])
        with self.assertRaises(SystemExit) as ctx:
            self._main("--strict", str(log))
        self.assertIn("1 replay(s) stopped", str(ctx.exception.code))

    def test_rejected_action_reported_without_strict(self):
        log = self._write("log.json", [{"type": "SwapSides"}, {"type": "SetRate", "value": -1}])
        output = self._main(str(log))
        self.assertIn("stopped at #1 (InvalidNumeric", output)

    def test_missing_state_file_exits(self):
        log = self._write("log.json", [])
        with self.assertRaises(SystemExit):
            self._main("--state", str(self.tmp / "missing.json"), str(log))

    def test_state_file_with_duplicate_asset_rejected(self):
        bad = dict(CUSTOM_STATE, beta={"type": "USDT", "amount": 1.0})
        state = self._write("state.json", bad)
        log = self._write("log.json", [])
        with self.assertRaises(es.ExchangeStateError):
            self._main("--state", str(state), str(log))

    def test_non_object_entry_stops_replay_at_its_index(self):
        scenario = replay_actions.Scenario(
            name="bare",
            initial_state=es.initial_state(),
            actions=[{"type": "SwapSides"}, "SwapSides"],
        )
        result = replay_actions.run_scenario(scenario)
        self.assertEqual(result.applied, 1)
        self.assertEqual(result.error_index, 1)
        self.assertTrue(result.error.startswith("UnknownAction"))
        self.assertEqual(result.state.alpha.type, es.AssetType.USDT)


if __name__ == "__main__":
    unittest.main()
