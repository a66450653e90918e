"""
Evaluation runner — executes scenarios and checks assertions.

Usage:
    cd backend
    python -m sales_trainer.evals.run_evals

Runs each scenario through the turn pipeline against the scripted offline
customer, finalizes the session, and prints a report.
"""

from __future__ import annotations

import asyncio
import os
import sys

# Scripted customer for deterministic results
os.environ.setdefault("FORCE_OFFLINE", "true")

from sales_trainer.core.logging import setup_logging
from sales_trainer.evals.scenarios import SCENARIOS, Scenario
from sales_trainer.infra.ground_truth_loader import load_ground_truth
from sales_trainer.infra.providers import scripted_customer
from sales_trainer.infra.session_store import reset_store
from sales_trainer.usecases.finalize import finalize
from sales_trainer.usecases.start_session import start_session
from sales_trainer.usecases.submit_turn import submit_manager_turn


async def run_scenario(scenario: Scenario, record) -> tuple[bool, list[str]]:
    """
    Run a single scenario and return (passed, list_of_failure_messages).
    """
    failures: list[str] = []

    session_info = await start_session(record, profile=scenario.profile)
    session_id = session_info["session_id"]

    for manager_text in scenario.turns:
        result = await submit_manager_turn(
            session_id, manager_text, generate=scripted_customer.generate_customer_reply,
        )
        if result["session_status"] != "continue":
            break

    outcome = await finalize(session_id)
    if "error" in outcome:
        return False, [f"Finalize failed: {outcome['error']}"]

    if outcome["status"] != scenario.expected_status:
        failures.append(f"Status: expected '{scenario.expected_status}', got '{outcome['status']}'")

    if outcome["failure_reason"] != scenario.expected_failure:
        failures.append(
            f"Failure reason: expected {scenario.expected_failure!r}, got {outcome['failure_reason']!r}"
        )

    score = outcome["score"]
    if score < scenario.min_score:
        failures.append(f"Score too low: {score} < {scenario.min_score}")
    if score > scenario.max_score:
        failures.append(f"Score too high: {score} > {scenario.max_score}")

    issue_types = {i["issue_type"] for i in outcome["issues"]}
    for issue in scenario.expected_issues:
        if issue not in issue_types:
            failures.append(f"Expected issue '{issue}', got {sorted(issue_types)}")

    return len(failures) == 0, failures


async def main():
    setup_logging("WARNING")
    record = load_ground_truth()
    reset_store()

    print("=" * 60)
    print("Sales Call Trainer Evaluation Harness")
    print("=" * 60)
    print()

    passed_count = 0
    total = len(SCENARIOS)

    for scenario in SCENARIOS:
        print(f"--- {scenario.name}: {scenario.description}")

        ok, failures = await run_scenario(scenario, record)

        if ok:
            print("  PASS")
            passed_count += 1
        else:
            print("  FAIL:")
            for f in failures:
                print(f"    - {f}")
        print()

    print("=" * 60)
    print(f"Results: {passed_count}/{total} passed")
    print("=" * 60)

    if passed_count < total:
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
