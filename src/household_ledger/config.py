"""
Configuration management (SSOT).

All engine tunables are defined here; no other module invents defaults.
The engine itself never reads files or the environment: callers either pass
config objects explicitly or rely on the dataclass defaults. ``load_config``
is provided for the CLI and for callers that keep tunables in YAML.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .schemas.duplicates import ResolutionStrategy


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class DedupeConfig:
    """Duplicate detection settings."""

    # Score at or above which two transactions are the same event
    similarity_threshold: float = 0.85
    # Lowest score that still links transactions into a (low confidence) cluster
    review_threshold: float = 0.70
    # Fuzzy comparisons only consider transactions within +/- this many days
    date_window_days: int = 3
    # Signal weights (sum to 1.0)
    weight_amount: float = 0.45
    weight_merchant: float = 0.35
    weight_date: float = 0.20
    # Levenshtein ratio below which merchant names count as different
    merchant_similarity_floor: float = 0.80


@dataclass
class RuleEngineConfig:
    """Rule matching settings."""

    # Longest merchant pattern admitted for execution
    max_pattern_length: int = 200
    # Most quantifiers a single pattern may contain
    max_repetitions: int = 25
    # Wall-clock budget for a single merchant match
    regex_timeout_ms: int = 100


@dataclass
class EngineConfig:
    """Engine configuration (SSOT)."""

    dedupe: DedupeConfig = field(default_factory=DedupeConfig)
    rules: RuleEngineConfig = field(default_factory=RuleEngineConfig)
    default_strategy: str = ResolutionStrategy.KEEP_OLDEST.value

    def validate(self) -> list[str]:
        """Validate configuration consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []
        d = self.dedupe

        for name in ("similarity_threshold", "review_threshold", "merchant_similarity_floor"):
            value = getattr(d, name)
            if not 0.0 <= value <= 1.0:
                errors.append(f"dedupe.{name} must be between 0 and 1, got {value}")

        if d.review_threshold > d.similarity_threshold:
            errors.append("dedupe.review_threshold must be <= similarity_threshold")

        if d.date_window_days < 0:
            errors.append("dedupe.date_window_days must be >= 0")

        weights = (d.weight_amount, d.weight_merchant, d.weight_date)
        if any(w < 0 for w in weights):
            errors.append("dedupe weights must be non-negative")
        elif abs(sum(weights) - 1.0) > 1e-6:
            errors.append(f"dedupe weights must sum to 1.0, got {sum(weights):.3f}")

        if self.rules.max_pattern_length <= 0:
            errors.append("rules.max_pattern_length must be positive")
        if self.rules.max_repetitions <= 0:
            errors.append("rules.max_repetitions must be positive")
        if self.rules.regex_timeout_ms <= 0:
            errors.append("rules.regex_timeout_ms must be positive")

        valid_strategies = {s.value for s in ResolutionStrategy}
        if self.default_strategy not in valid_strategies:
            errors.append(
                f"default_strategy must be one of {sorted(valid_strategies)}, "
                f"got {self.default_strategy!r}"
            )

        return errors


def _env_override(name: str, current, cast):
    raw = os.environ.get(name, "")
    if not raw:
        return current
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigValidationError(f"{name} has invalid value {raw!r}") from e


def load_config(config_path: Path | None = None) -> EngineConfig:
    """
    Load configuration from a YAML file.

    A missing file yields defaults. Environment variables override file values:
    - LEDGER_SIMILARITY_THRESHOLD
    - LEDGER_DATE_WINDOW_DAYS
    - LEDGER_MAX_PATTERN_LENGTH
    - LEDGER_REGEX_TIMEOUT_MS

    Raises:
        ConfigValidationError: If the file or an override is invalid
    """
    data: dict = {}
    if config_path is not None and config_path.exists():
        with open(config_path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigValidationError(f"Invalid YAML in {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigValidationError(f"{config_path} must contain a mapping")

    try:
        config = _build_config(data)
    except (TypeError, ValueError) as e:
        raise ConfigValidationError(f"Invalid configuration value: {e}") from e

    errors = config.validate()
    if errors:
        raise ConfigValidationError("; ".join(errors))

    return config


def _build_config(data: dict) -> EngineConfig:
    dedupe_data = data.get("dedupe", {}) or {}
    defaults = DedupeConfig()
    dedupe = DedupeConfig(
        similarity_threshold=_env_override(
            "LEDGER_SIMILARITY_THRESHOLD",
            float(dedupe_data.get("similarity_threshold", defaults.similarity_threshold)),
            float,
        ),
        review_threshold=float(dedupe_data.get("review_threshold", defaults.review_threshold)),
        date_window_days=_env_override(
            "LEDGER_DATE_WINDOW_DAYS",
            int(dedupe_data.get("date_window_days", defaults.date_window_days)),
            int,
        ),
        weight_amount=float(dedupe_data.get("weight_amount", defaults.weight_amount)),
        weight_merchant=float(dedupe_data.get("weight_merchant", defaults.weight_merchant)),
        weight_date=float(dedupe_data.get("weight_date", defaults.weight_date)),
        merchant_similarity_floor=float(
            dedupe_data.get("merchant_similarity_floor", defaults.merchant_similarity_floor)
        ),
    )

    rules_data = data.get("rules", {}) or {}
    rule_defaults = RuleEngineConfig()
    rules = RuleEngineConfig(
        max_pattern_length=_env_override(
            "LEDGER_MAX_PATTERN_LENGTH",
            int(rules_data.get("max_pattern_length", rule_defaults.max_pattern_length)),
            int,
        ),
        max_repetitions=int(rules_data.get("max_repetitions", rule_defaults.max_repetitions)),
        regex_timeout_ms=_env_override(
            "LEDGER_REGEX_TIMEOUT_MS",
            int(rules_data.get("regex_timeout_ms", rule_defaults.regex_timeout_ms)),
            int,
        ),
    )

    return EngineConfig(
        dedupe=dedupe,
        rules=rules,
        default_strategy=str(data.get("default_strategy", ResolutionStrategy.KEEP_OLDEST.value)),
    )


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Household ledger engine configuration
#
# Every value is optional; omitted keys use the built-in defaults.

dedupe:
  similarity_threshold: 0.85      # At or above: duplicate
  review_threshold: 0.70          # At or above: linked into a low-confidence cluster
  date_window_days: 3             # Fuzzy comparisons within +/- N days
  weight_amount: 0.45
  weight_merchant: 0.35
  weight_date: 0.20
  merchant_similarity_floor: 0.80

rules:
  max_pattern_length: 200         # Longer merchant patterns are rejected
  max_repetitions: 25             # Most quantifiers per pattern
  regex_timeout_ms: 100           # Budget for a single merchant match

# keep_latest | keep_oldest | merge | flag
default_strategy: keep_oldest
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
