"""
Admission gate and bounded execution for user-supplied merchant patterns.

Merchant patterns are written by household members and run against every
transaction, so a catastrophic-backtracking pattern would stall matching for
the whole household. Two layers guard against that:

1. Static admission (``check_pattern_safety``): length cap, star height at
   most 1 (no quantified group that itself contains a repeating quantifier,
   e.g. ``(a+)+``) and a cap on the number of quantifiers.
2. Bounded execution (``safe_search``): admitted patterns run through the
   ``regex`` module with a wall-clock timeout.

A rejected, invalid or timed-out pattern never raises out of matching; it is
logged and treated as a non-match.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

import regex

from ..config import RuleEngineConfig

logger = logging.getLogger(__name__)


class RejectionReason(str, Enum):
    EMPTY = "empty"
    TOO_LONG = "too_long"
    NESTED_QUANTIFIER = "nested_quantifier"
    TOO_MANY_REPETITIONS = "too_many_repetitions"
    INVALID_SYNTAX = "invalid_syntax"


@dataclass(frozen=True)
class RegexPolicyRejection:
    """Why a pattern was refused admission."""

    reason: RejectionReason
    message: str

    def __str__(self) -> str:
        return self.message


class RegexPolicyError(ValueError):
    """Raised by ``compile_pattern`` for patterns refused by the gate."""

    def __init__(self, rejection: RegexPolicyRejection):
        super().__init__(rejection.message)
        self.rejection = rejection


@dataclass
class _Frame:
    """Analysis state for one group nesting level."""

    max_height: int = 0
    last_height: int | None = None


@dataclass(frozen=True)
class PatternAnalysis:
    star_height: int
    repetitions: int


def _skip_class(pattern: str, i: int) -> int:
    """Return the index just past the character class starting at ``i``."""
    i += 1
    if i < len(pattern) and pattern[i] == "^":
        i += 1
    # A leading ']' is a literal
    if i < len(pattern) and pattern[i] == "]":
        i += 1
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "[" and i + 1 < len(pattern) and pattern[i + 1] == ":":
            end = pattern.find(":]", i + 2)
            i = end + 2 if end != -1 else i + 1
            continue
        if ch == "]":
            return i + 1
        i += 1
    return i


def _skip_group_prefix(pattern: str, i: int) -> tuple[int, bool]:
    """
    Skip the extension syntax after ``(?``.

    Returns:
        (index after the prefix, whether a group was actually opened).
        Inline flags such as ``(?i)`` open no group.
    """
    n = len(pattern)
    if i < n and pattern[i] in ":=!>|":
        return i + 1, True
    if pattern.startswith("<=", i) or pattern.startswith("<!", i):
        return i + 2, True
    if pattern.startswith("P<", i) or (i < n and pattern[i] in "<'"):
        close = ">" if pattern[i] != "'" else "'"
        end = pattern.find(close, i + 2 if pattern[i] == "P" else i + 1)
        return (end + 1 if end != -1 else n), True
    if pattern.startswith("P=", i) or pattern.startswith("#", i):
        # Named backreference or comment: consumed as a whole
        end = pattern.find(")", i)
        return (end + 1 if end != -1 else n), False
    # Inline flags, possibly scoped: (?i) or (?i:...)
    j = i
    while j < n and (pattern[j].isalpha() or pattern[j] == "-"):
        j += 1
    if j < n and pattern[j] == ":":
        return j + 1, True
    if j < n and pattern[j] == ")":
        return j + 1, False
    return j, True


def _parse_brace_quantifier(pattern: str, i: int) -> tuple[int, int | None] | None:
    """
    Parse ``{n}``, ``{n,}``, ``{,m}`` or ``{n,m}`` starting at ``i``.

    Returns:
        (index after the closing brace, upper bound or None if unbounded),
        or None if the brace is a literal.
    """
    end = pattern.find("}", i)
    if end == -1:
        return None
    body = pattern[i + 1 : end]
    low, comma, high = body.partition(",")
    low, high = low.strip(), high.strip()
    if not (low.isdigit() or (comma and low == "")):
        return None
    if high and not high.isdigit():
        return None
    if not comma:
        upper: int | None = int(low)
    else:
        upper = int(high) if high else None
    if not low and not high:
        return None
    return end + 1, upper


def analyze_pattern(pattern: str) -> PatternAnalysis:
    """
    Compute star height and quantifier count of a pattern.

    Star height counts nesting of *repeating* quantifiers (upper bound above
    one); ``?`` and ``{0,1}`` add to the quantifier count only.
    """
    stack = [_Frame()]
    repetitions = 0
    star_height = 0
    n = len(pattern)
    i = 0

    def atom(height: int) -> None:
        frame = stack[-1]
        frame.last_height = height
        frame.max_height = max(frame.max_height, height)

    while i < n:
        ch = pattern[i]

        if ch == "\\":
            # \p{..}, \N{..} and friends carry a braced argument
            if i + 2 < n and pattern[i + 1] in "pPNx" and pattern[i + 2] == "{":
                end = pattern.find("}", i + 2)
                i = end + 1 if end != -1 else n
            else:
                i += 2
            atom(0)
            continue

        if ch == "[":
            i = _skip_class(pattern, i)
            atom(0)
            continue

        if ch == "(":
            i += 1
            opened = True
            if i < n and pattern[i] == "?":
                i, opened = _skip_group_prefix(pattern, i + 1)
            if opened:
                stack.append(_Frame())
            continue

        if ch == ")":
            i += 1
            if len(stack) > 1:
                inner = stack.pop()
                atom(inner.max_height)
            continue

        if ch == "|":
            stack[-1].last_height = None
            i += 1
            continue

        quantifier: tuple[int, int | None] | None = None
        if ch in "*+":
            quantifier = (i + 1, None)
        elif ch == "?":
            quantifier = (i + 1, 1)
        elif ch == "{":
            quantifier = _parse_brace_quantifier(pattern, i)

        if quantifier is None:
            i += 1
            atom(0)
            continue

        i, upper = quantifier
        # Lazy or possessive suffix
        if i < n and pattern[i] in "?+":
            i += 1

        frame = stack[-1]
        if frame.last_height is None:
            # Quantifier with nothing to repeat; the compiler reports it
            continue
        repetitions += 1
        height = frame.last_height + (1 if upper is None or upper > 1 else 0)
        star_height = max(star_height, height)
        frame.max_height = max(frame.max_height, height)
        # A quantified atom cannot be quantified again without a group
        frame.last_height = None

    return PatternAnalysis(star_height=star_height, repetitions=repetitions)


def check_pattern_safety(
    pattern: str | None,
    config: RuleEngineConfig | None = None,
) -> RegexPolicyRejection | None:
    """
    Run the static admission checks on a pattern.

    Returns:
        RegexPolicyRejection describing the first failed check, or None if
        the pattern may be compiled and executed.
    """
    config = config or RuleEngineConfig()

    if pattern is not None and not isinstance(pattern, str):
        return RegexPolicyRejection(
            RejectionReason.INVALID_SYNTAX,
            f"Merchant pattern must be text, got {type(pattern).__name__}",
        )
    if not pattern:
        return RegexPolicyRejection(RejectionReason.EMPTY, "Merchant pattern is empty")

    if len(pattern) > config.max_pattern_length:
        return RegexPolicyRejection(
            RejectionReason.TOO_LONG,
            f"Merchant pattern is too long ({len(pattern)} > {config.max_pattern_length} characters)",
        )

    analysis = analyze_pattern(pattern)
    if analysis.star_height > 1:
        return RegexPolicyRejection(
            RejectionReason.NESTED_QUANTIFIER,
            "Merchant pattern contains nested quantifiers and may cause catastrophic backtracking",
        )
    if analysis.repetitions > config.max_repetitions:
        return RegexPolicyRejection(
            RejectionReason.TOO_MANY_REPETITIONS,
            f"Merchant pattern has too many quantifiers "
            f"({analysis.repetitions} > {config.max_repetitions})",
        )

    return None


def compile_pattern(pattern: str | None, config: RuleEngineConfig | None = None) -> regex.Pattern:
    """
    Admit and compile a merchant pattern (case-insensitive).

    Raises:
        RegexPolicyError: If the gate rejects the pattern or it does not compile
    """
    rejection = check_pattern_safety(pattern, config)
    if rejection is not None:
        raise RegexPolicyError(rejection)
    try:
        return regex.compile(pattern, regex.IGNORECASE)
    except regex.error as e:
        raise RegexPolicyError(
            RegexPolicyRejection(
                RejectionReason.INVALID_SYNTAX, f"Invalid merchant pattern syntax: {e}"
            )
        ) from e


def safe_search(
    pattern: str | None,
    text: str,
    config: RuleEngineConfig | None = None,
    label: str = "pattern",
) -> bool:
    """
    Case-insensitive search of ``pattern`` in ``text`` under the time budget.

    Never raises: rejected or invalid patterns are logged at ERROR, timeouts
    at WARNING, and all of them count as no match.
    """
    config = config or RuleEngineConfig()

    try:
        compiled = compile_pattern(pattern, config)
    except RegexPolicyError as e:
        logger.error("Rejected merchant pattern for %s %r: %s", label, pattern, e)
        return False

    try:
        return compiled.search(text, timeout=config.regex_timeout_ms / 1000) is not None
    except TimeoutError:
        logger.warning(
            "Merchant pattern for %s timed out after %d ms: %r",
            label,
            config.regex_timeout_ms,
            pattern,
        )
        return False
