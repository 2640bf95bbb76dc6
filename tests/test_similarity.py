"""Tests for text normalization, similarity and pattern ids."""

import random
import string

from ledgerlearn.matching import BestScoreStrategy, FirstMatchStrategy
from ledgerlearn.matching.similarity import (
    levenshtein,
    normalize,
    normalize_supplier_name,
    pattern_id,
    rolling_hash,
    similarity,
)


class TestNormalize:
    """Tests for normalize()."""

    def test_lowercases_and_collapses_whitespace(self) -> None:
        assert normalize("  Hello,   World! ") == "hello world"

    def test_keeps_scandinavian_letters(self) -> None:
        assert normalize("Öresund Kraft, Åre & Ærø") == "öresund kraft åre ærø"

    def test_empty_and_none(self) -> None:
        assert normalize("") == ""
        assert normalize(None) == ""

    def test_truncates(self) -> None:
        assert len(normalize("a" * 150)) == 100
        assert normalize("abcdef", max_length=3) == "abc"


class TestNormalizeSupplierName:
    """Tests for normalize_supplier_name()."""

    def test_removes_legal_form(self) -> None:
        assert normalize_supplier_name("Telia Sverige AB") == "telia sverige"

    def test_removes_legal_form_with_punctuation(self) -> None:
        assert normalize_supplier_name("Acme Inc.") == "acme"
        assert normalize_supplier_name("IKEA Aktiebolag") == "ikea"

    def test_legal_form_inside_word_is_kept(self) -> None:
        """Only whole tokens are legal forms."""
        assert normalize_supplier_name("Abba Ltd") == "abba"

    def test_no_truncation(self) -> None:
        name = "x" * 150
        assert normalize_supplier_name(name) == name


class TestSimilarity:
    """Tests for levenshtein() and similarity()."""

    def test_levenshtein_known_values(self) -> None:
        assert levenshtein("kitten", "sitting") == 3
        assert levenshtein("", "abc") == 3
        assert levenshtein("same", "same") == 0

    def test_empty_strings_are_identical(self) -> None:
        assert similarity("", "") == 1.0

    def test_one_empty_string(self) -> None:
        assert similarity("abc", "") == 0.0

    def test_bounds(self) -> None:
        assert similarity("abc", "xyz") == 0.0
        assert similarity("abcd", "abcx") == 0.75

    def test_symmetry_random_pairs(self) -> None:
        """similarity(a, b) == similarity(b, a) for 50 random pairs."""
        rng = random.Random(1234)
        alphabet = string.ascii_lowercase + "åäö "
        for _ in range(50):
            a = "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 20)))
            b = "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 20)))
            assert similarity(a, b) == similarity(b, a)


class TestPatternId:
    """Tests for the rolling hash pattern id."""

    def test_known_values(self) -> None:
        assert rolling_hash("") == 0
        assert rolling_hash("a") == 97
        assert pattern_id("a", "") == "pattern-2p"
        assert pattern_id(None, None) == "pattern-0"

    def test_hash_stays_within_32_bits(self) -> None:
        value = rolling_hash("a fairly long transaction description " * 10)
        assert 0 <= value <= 2**31

    def test_pure_function(self) -> None:
        assert pattern_id("Telia", "Mobil") == pattern_id("Telia", "Mobil")

    def test_normalized_inputs_share_id(self) -> None:
        assert pattern_id("Telia", "Mobilabonnemang") == pattern_id("TELIA", "mobilabonnemang!")

    def test_different_inputs_differ(self) -> None:
        assert pattern_id("Telia", "Mobil") != pattern_id("Telia", "Bredband")

    def test_prefix(self) -> None:
        assert pattern_id("Telia", "Mobil").startswith("pattern-")


class TestStrategies:
    """Tests for match strategies."""

    def test_first_match(self) -> None:
        assert FirstMatchStrategy().select([1, 2, 3, 4], lambda x: x > 1) == 2

    def test_first_match_none(self) -> None:
        assert FirstMatchStrategy().select([1, 2], lambda x: x > 5) is None

    def test_best_score(self) -> None:
        strategy = BestScoreStrategy()
        assert strategy.select([1, 5, 3], lambda x: True, score=lambda x: x) == 5

    def test_best_score_only_accepted(self) -> None:
        strategy = BestScoreStrategy()
        assert strategy.select([1, 5, 3], lambda x: x < 5, score=lambda x: x) == 3

    def test_best_score_without_score_is_first_match(self) -> None:
        assert BestScoreStrategy().select([1, 2, 3], lambda x: x > 1) == 2
