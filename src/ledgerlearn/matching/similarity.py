"""
Text normalization and string similarity (SSOT).

Every module that compares supplier names or transaction descriptions goes
through these functions. No other module may invent its own normalization.

pattern_id() is a non-cryptographic 32-bit rolling hash. Two different
(supplier, description) pairs can collide; colliding patterns share their
statistics. That is accepted: the hash only has to be stable across runs.
"""

import re

# Scandinavian letters are kept, everything else outside a-z/0-9/space is dropped
_NON_WORD_RE = re.compile(r"[^a-z0-9åäöæø\s]")
_WHITESPACE_RE = re.compile(r"\s+")

# Company legal-form tokens removed from supplier names
LEGAL_FORM_RE = re.compile(r"\b(ab|aktiebolag|handelsbolag|hb|kb|inc|ltd|gmbh)\b")

# Default truncation length for normalized free text
MAX_NORMALIZED_LENGTH = 100

PATTERN_ID_PREFIX = "pattern-"

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def normalize(text: str | None, max_length: int = MAX_NORMALIZED_LENGTH) -> str:
    """
    Normalize free text for comparison.

    Lowercases, drops punctuation (keeping å ä ö æ ø), collapses whitespace,
    strips and truncates to max_length characters.
    """
    if not text:
        return ""
    result = _NON_WORD_RE.sub("", text.lower())
    result = _WHITESPACE_RE.sub(" ", result).strip()
    return result[:max_length]


def normalize_supplier_name(name: str | None) -> str:
    """
    Normalize a supplier name.

    Same as normalize() without truncation, with company legal forms removed:
    "Telia Sverige AB" -> "telia sverige".
    """
    if not name:
        return ""
    result = LEGAL_FORM_RE.sub("", name.lower())
    result = _NON_WORD_RE.sub("", result)
    return _WHITESPACE_RE.sub(" ", result).strip()


def levenshtein(a: str, b: str) -> int:
    """Edit distance (insertions, deletions, substitutions) between two strings."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    # Keep the shorter string in the inner loop
    if len(a) < len(b):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(
                min(
                    previous[j] + 1,  # deletion
                    current[j - 1] + 1,  # insertion
                    previous[j - 1] + cost,  # substitution
                )
            )
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """
    Similarity in [0, 1] based on edit distance.

    1 - levenshtein(a, b) / max(len(a), len(b)). Two empty strings are identical.
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def rolling_hash(text: str) -> int:
    """
    32-bit rolling string hash: h = h * 31 + code point, wrapped to signed 32 bits.

    Returns the absolute value of the final hash.
    """
    h = 0
    for char in text:
        h = (h * 31 + ord(char)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def pattern_id(supplier: str | None, description: str | None) -> str:
    """
    Stable identifier for a (supplier, description) transaction pattern.

    Pure function of its inputs: normalize("{supplier} {description}"),
    rolling_hash(), base-36, prefixed with "pattern-".
    """
    key = normalize(f"{supplier or ''} {description or ''}")
    return f"{PATTERN_ID_PREFIX}{_to_base36(rolling_hash(key))}"
