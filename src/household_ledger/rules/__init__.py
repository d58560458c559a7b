"""Splitting rule engine: matching, categorization, validation, bulk application and templates."""

from .bulk import (
    RuleConfigurationError,
    allocate_split,
    apply_rule_to_transactions,
    build_application,
)
from .categorization import (
    calculate_confidence_score,
    categorize_transaction,
    categorize_transactions,
    get_confidence_level,
)
from .matching import (
    find_all_matching_rules,
    find_matching_rule,
    get_rule_match_statistics,
    match_transaction,
    rule_matches,
    test_draft_rule,
)
from .regex_safety import (
    RegexPolicyError,
    RegexPolicyRejection,
    RejectionReason,
    check_pattern_safety,
    compile_pattern,
    safe_search,
)
from .templates import (
    RULE_TEMPLATES,
    RuleTemplate,
    create_rule_from_template,
    get_template_by_id,
    get_templates_by_type,
    populate_template_private,
    populate_template_split,
)
from .validation import validate_rule_configuration, validate_split_percentage

__all__ = [
    # Matching
    "rule_matches",
    "find_matching_rule",
    "find_all_matching_rules",
    "match_transaction",
    "test_draft_rule",
    "get_rule_match_statistics",
    # Categorization
    "calculate_confidence_score",
    "get_confidence_level",
    "categorize_transaction",
    "categorize_transactions",
    # Regex safety
    "RegexPolicyError",
    "RegexPolicyRejection",
    "RejectionReason",
    "check_pattern_safety",
    "compile_pattern",
    "safe_search",
    # Validation
    "validate_rule_configuration",
    "validate_split_percentage",
    # Bulk
    "RuleConfigurationError",
    "allocate_split",
    "build_application",
    "apply_rule_to_transactions",
    # Templates
    "RULE_TEMPLATES",
    "RuleTemplate",
    "get_template_by_id",
    "get_templates_by_type",
    "populate_template_split",
    "populate_template_private",
    "create_rule_from_template",
]
