"""CLI and main logic."""

import argparse
import logging
import os
import sys

from tqdm import tqdm

from vault_engine.console import print_simulation_report
from vault_engine.constants import SCENARIO_ENV_VAR
from vault_engine.errors import VaultError
from vault_engine.formatters import as_int
from vault_engine.simulation import StepResult, build_simulation, load_scenario, run_step
from vault_engine.validation import validate_vault_invariants


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command-line arguments."""
    p = argparse.ArgumentParser(description="Replay a deposit/withdraw scenario against an in-memory fee vault.")
    p.add_argument(
        "scenario",
        nargs="?",
        default=None,
        help=f"Scenario JSON file. Required if {SCENARIO_ENV_VAR} environment variable is not set.",
    )
    p.add_argument("--entry-fee-bp", type=int, default=None, help="Override the scenario's entry fee (basis points).")
    p.add_argument("--exit-fee-bp", type=int, default=None, help="Override the scenario's exit fee (basis points).")
    p.add_argument(
        "--health-factor",
        default=None,
        help="Override the target health factor (1e18 = neutral). Accepts decimal or 0x-hex.",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Log engine activity to stderr.")
    return p.parse_args(argv)


def main(argv: list[str]) -> int:
    """Main entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )

    scenario_path = args.scenario or os.getenv(SCENARIO_ENV_VAR)
    if not scenario_path:
        print(
            f"Error: scenario file is required. Pass it as an argument or set {SCENARIO_ENV_VAR}.",
            file=sys.stderr,
        )
        return 2

    try:
        scenario = load_scenario(scenario_path)
    except (OSError, ValueError) as ex:
        print(f"Error: failed to load scenario {scenario_path}: {ex}", file=sys.stderr)
        return 2

    try:
        sim = build_simulation(
            scenario,
            entry_fee_bp=args.entry_fee_bp,
            exit_fee_bp=args.exit_fee_bp,
            health_factor=as_int(args.health_factor) if args.health_factor is not None else None,
        )
    except (VaultError, ValueError, TypeError) as ex:
        print(f"Error: invalid vault configuration: {ex}", file=sys.stderr)
        return 2

    print(f"ℹ️ Vault {sim.vault.address} ready with {len(sim.initial_balances)} funded accounts", file=sys.stderr)

    steps = scenario.get("steps", [])
    results: list[StepResult] = []
    with tqdm(steps, desc="⚙️  Replaying scenario", unit="step", file=sys.stderr) as pbar:
        for i, step in enumerate(pbar, start=1):
            pbar.set_postfix(op=step.get("op"))
            result = run_step(sim, i, step)
            results.append(result)
            if not result.ok:
                tqdm.write(f"⚠️  Step #{i} ({result.op}) failed: {result.error}", file=sys.stderr)

            issues = validate_vault_invariants(sim.vault, warn_only=True)
            if issues:
                tqdm.write(f"⚠️  Invariant warnings after step #{i}:", file=sys.stderr)
                for issue in issues:
                    tqdm.write(f"   {issue}", file=sys.stderr)

    print_simulation_report(sim, results)

    return 0 if all(r.ok for r in results) else 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
