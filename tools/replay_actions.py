#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
from dataclasses import dataclass
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import exchange_state as es


FIXTURE_DIR = ROOT / "tests" / "fixtures" / "replay"


@dataclass(frozen=True)
class Scenario:
    name: str
    initial_state: es.ExchangePairState
    actions: list[dict]


@dataclass(frozen=True)
class ReplayResult:
    name: str
    state: es.ExchangePairState
    applied: int
    error: str = ""
    error_index: int | None = None


def load_scenario(path: Path, default_state: es.ExchangePairState) -> Scenario:
    """
    Read either a fixture object ({"initial_state", "actions"}) or a bare
    action log (a JSON list of tagged actions).
    """
    raw = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(raw, list):
        return Scenario(name=path.stem, initial_state=default_state, actions=list(raw))
    initial = raw.get("initial_state")
    state = es.from_dict(initial) if isinstance(initial, dict) else default_state
    return Scenario(name=str(raw.get("name", path.stem)), initial_state=state, actions=list(raw.get("actions", [])))


def run_scenario(scenario: Scenario) -> ReplayResult:
    # Actions are decoded one at a time so a bad tag reports its own index.
    state = scenario.initial_state
    for idx, raw_action in enumerate(scenario.actions):
        try:
            state = es.reduce(state, es.action_from_dict(raw_action))
        except es.ExchangeStateError as exc:
            return ReplayResult(
                name=scenario.name,
                state=state,
                applied=idx,
                error=f"{type(exc).__name__}: {exc}",
                error_index=idx,
            )
    return ReplayResult(name=scenario.name, state=state, applied=len(scenario.actions))


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Replay serialized exchange-pair action logs through the reducer."
    )
    parser.add_argument(
        "paths",
        nargs="*",
        type=Path,
        help="Fixture or action-log JSON files (default: every fixture in tests/fixtures/replay)",
    )
    parser.add_argument(
        "--state",
        type=Path,
        default=None,
        help="JSON state used when a file is a bare action log (default: the built-in BTC/USDT start)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit non-zero if any replay stops on a rejected action",
    )
    args = parser.parse_args()

    default_state = es.initial_state()
    if args.state is not None:
        if not args.state.exists():
            raise SystemExit(f"State file not found: {args.state}")
        default_state = es.from_dict(json.loads(args.state.read_text(encoding="utf-8")))

    paths = list(args.paths) or sorted(FIXTURE_DIR.glob("*.json"))
    if not paths:
        raise SystemExit(f"No action logs found in {FIXTURE_DIR}")

    failures = 0
    for path in paths:
        if not path.exists():
            raise SystemExit(f"Action log not found: {path}")
        result = run_scenario(load_scenario(path, default_state))
        status = "ok" if not result.error else f"stopped at #{result.error_index} ({result.error})"
        print(f"{result.name:>28}: {result.applied:3d} applied  {status}")
        print(f"{'':>28}  {json.dumps(es.to_dict(result.state), sort_keys=True)}")
        if result.error:
            failures += 1

    if args.strict and failures:
        raise SystemExit(f"{failures} replay(s) stopped on a rejected action")


if __name__ == "__main__":
    main()
