"""
Plan a degraded architecture for a seized component.

Usage:
    python -m degraded_architecture
    python -m degraded_architecture --seed Printer1 --radius 2 --backups
    python -m degraded_architecture --topology arch.json --contract contract.json --seed HMI1
    python -m degraded_architecture --backups --weights weights.json
"""

import argparse
import logging
import sys

from .backups import BackupPool
from .loader import DataLoader
from .model import ContractError, InvalidTopology
from .optimizer import SearchBudget, plan
from .reference import build_reference_backup_pool, build_reference_contract, build_reference_topology


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Degraded architecture planner")
    parser.add_argument("--topology", help="Initial topology JSON (default: reference architecture)")
    parser.add_argument("--contract", help="Dataflow contract JSON (default: reference contract)")
    parser.add_argument("--backups", nargs="?", const="", default=None,
                        help="Backup pool JSON; without a path, use the reference spares")
    parser.add_argument("--budget", help="Search budget JSON")
    parser.add_argument("--weights", help="Objective weights JSON (default: lexicographic ranking)")
    parser.add_argument("--seed", default="Printer1", help="Component seized by the attacker")
    parser.add_argument("--radius", type=int, default=2, help="Attacker pivot radius in hops")
    parser.add_argument("--output", help="Write the degraded topology to this JSON file")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(levelname)s %(name)s: %(message)s")

    print("=== Loading Data ===")
    try:
        topology = DataLoader.load_topology(args.topology) if args.topology else build_reference_topology()
        contract = DataLoader.load_contract(args.contract) if args.contract else build_reference_contract()
        if args.backups is None:
            pool = BackupPool()
        elif args.backups == "":
            pool = build_reference_backup_pool()
        else:
            pool = DataLoader.load_backup_pool(args.backups)
        budget = DataLoader.load_search_budget(args.budget) if args.budget else SearchBudget()
        weights = DataLoader.load_objective_weights(args.weights) if args.weights else None
    except (InvalidTopology, ContractError, ValueError, OSError) as e:
        print(f"[ERROR] {e}")
        return 1

    print(f"{topology!r}, {len(pool)} spare(s)")

    try:
        result = plan(topology, contract, args.seed, args.radius, pool, budget, weights)
    except ValueError as e:
        print(f"[ERROR] {e}")
        return 1

    print("\n=== Compromised Components ===")
    for uid in sorted(result.compromised):
        print(f"  {uid}")

    print("\n=== Available Functions ===")
    if result.functions:
        for name in result.function_names():
            print(f"  {name}")
    else:
        print("  (none - initial topology kept)")

    print("\n=== Connection Changes ===")
    for conn in sorted(result.added):
        print(f"  + {conn!r}")
    for conn in sorted(result.removed):
        print(f"  - {conn!r}")
    print(f"\n{result.score!r}, {result.evaluated} candidate(s) evaluated"
          f"{' (budget exhausted)' if result.budget_exhausted else ''}")

    if args.output:
        DataLoader.save_topology(result.topology, args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
