"""
CLI main entry point.

All commands read JSON arrays from files and print JSON to stdout; logs go
to stderr.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from ..config import ConfigValidationError, EngineConfig, load_config
from ..dedupe import DuplicateDetector, resolve_clusters
from ..rules import (
    RULE_TEMPLATES,
    categorize_transactions,
    get_rule_match_statistics,
    get_templates_by_type,
    match_transaction,
    validate_rule_configuration,
)
from ..schemas import ResolutionStrategy, SplittingRule, Transaction

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="household-ledger",
        description="Detect duplicate transactions and apply household splitting rules",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("ledger.yaml"),
        help="Path to config file (default: ledger.yaml, built-in defaults if missing)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # dedupe command
    dedupe_parser = subparsers.add_parser(
        "dedupe", help="Cluster duplicate transactions and propose resolutions"
    )
    dedupe_parser.add_argument("transactions", type=Path, help="JSON array of transactions")
    dedupe_parser.add_argument(
        "--strategy",
        choices=[s.value for s in ResolutionStrategy],
        default=None,
        help="Resolution strategy (default: from config)",
    )

    # match command
    match_parser = subparsers.add_parser("match", help="Find the splitting rule for each transaction")
    match_parser.add_argument("transactions", type=Path, help="JSON array of transactions")
    match_parser.add_argument("rules", type=Path, help="JSON array of splitting rules")
    match_parser.add_argument(
        "--all",
        action="store_true",
        dest="include_all",
        help="Also list every matching rule",
    )

    # categorize command
    categorize_parser = subparsers.add_parser(
        "categorize", help="Apply the rule set with confidence scores and summarize"
    )
    categorize_parser.add_argument("transactions", type=Path, help="JSON array of transactions")
    categorize_parser.add_argument("rules", type=Path, help="JSON array of splitting rules")

    # validate-rule command
    validate_parser = subparsers.add_parser(
        "validate-rule", help="Validate splitting rule configuration"
    )
    validate_parser.add_argument("rules", type=Path, help="JSON rule object or array of rules")

    # stats command
    stats_parser = subparsers.add_parser("stats", help="Rule match statistics for a transaction set")
    stats_parser.add_argument("transactions", type=Path, help="JSON array of transactions")
    stats_parser.add_argument("rules", type=Path, help="JSON array of splitting rules")

    # templates command
    templates_parser = subparsers.add_parser("templates", help="List built-in rule templates")
    templates_parser.add_argument(
        "--type",
        dest="rule_type",
        type=str,
        default=None,
        help="Only templates of this rule type",
    )

    return parser


def _load_records(path: Path) -> list[dict[str, Any]]:
    """Read a JSON object or array of objects.

    Raises:
        ValueError: If the file is not valid JSON or holds non-objects
    """
    with open(path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"{path} is not valid JSON: {e}") from e

    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ValueError(f"{path} must contain a JSON object or an array of objects")
    return data


def _load_transactions(path: Path) -> list[Transaction]:
    return [Transaction.from_dict(record) for record in _load_records(path)]


def _load_rules(path: Path) -> list[SplittingRule]:
    return [SplittingRule.from_dict(record) for record in _load_records(path)]


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def cmd_dedupe(config: EngineConfig, path: Path, strategy: str | None) -> int:
    """Cluster duplicates and attach a resolution to every cluster."""
    transactions = _load_transactions(path)
    detector = DuplicateDetector(config.dedupe)
    clusters = detector.find_duplicates_in_batch(transactions)
    decisions = resolve_clusters(clusters, strategy or config.default_strategy)

    logger.info("Found %d duplicate clusters in %d transactions", len(clusters), len(transactions))
    _emit(
        {
            "transaction_count": len(transactions),
            "clusters": [
                {**cluster.to_dict(), "resolution": decisions[cluster.cluster_id].to_dict()}
                for cluster in clusters
            ],
        }
    )
    return 0


def cmd_match(config: EngineConfig, tx_path: Path, rules_path: Path, include_all: bool) -> int:
    """Match every transaction against the rule set."""
    transactions = _load_transactions(tx_path)
    rules = _load_rules(rules_path)
    _emit(
        [
            match_transaction(tx, rules, include_all=include_all, config=config.rules).to_dict()
            for tx in transactions
        ]
    )
    return 0


def cmd_categorize(config: EngineConfig, tx_path: Path, rules_path: Path) -> int:
    """Categorize every transaction and report confidence."""
    transactions = _load_transactions(tx_path)
    rules = _load_rules(rules_path)
    _emit(categorize_transactions(transactions, rules, config.rules).to_dict())
    return 0


def cmd_validate_rule(config: EngineConfig, path: Path) -> int:
    """Validate rules; exit code 1 if any is invalid."""
    rules = _load_rules(path)
    results = []
    all_valid = True
    for rule in rules:
        result = validate_rule_configuration(rule, config.rules)
        all_valid = all_valid and result.is_valid
        results.append({"rule_id": rule.id, "rule_name": rule.rule_name, **result.to_dict()})

    _emit(results)
    return 0 if all_valid else 1


def cmd_stats(config: EngineConfig, tx_path: Path, rules_path: Path) -> int:
    """Show how many transactions each rule claims."""
    transactions = _load_transactions(tx_path)
    rules = _load_rules(rules_path)
    _emit(get_rule_match_statistics(transactions, rules, config.rules).to_dict())
    return 0


def cmd_templates(rule_type: str | None) -> int:
    """List rule templates."""
    templates = get_templates_by_type(rule_type) if rule_type else list(RULE_TEMPLATES)
    _emit([template.to_dict() for template in templates])
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    # Load config
    try:
        config = load_config(parsed.config)
    except ConfigValidationError as e:
        print(f"Failed to load config: {e}", file=sys.stderr)
        return 1

    # Route to command
    try:
        if parsed.command == "dedupe":
            return cmd_dedupe(config, parsed.transactions, parsed.strategy)
        elif parsed.command == "match":
            return cmd_match(config, parsed.transactions, parsed.rules, parsed.include_all)
        elif parsed.command == "categorize":
            return cmd_categorize(config, parsed.transactions, parsed.rules)
        elif parsed.command == "validate-rule":
            return cmd_validate_rule(config, parsed.rules)
        elif parsed.command == "stats":
            return cmd_stats(config, parsed.transactions, parsed.rules)
        elif parsed.command == "templates":
            return cmd_templates(parsed.rule_type)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
