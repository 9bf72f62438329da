"""
Tests for the weighted selection helpers.

Run with: python -m pytest tests/test_selection.py -v
"""

import random
import sys
from collections import Counter
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from brain.selection import normalize_weights, redistribute_weights, top_k_pick, weighted_choice


class TestRedistributeWeights:
    """Blocked weight goes to the remaining categories proportionally"""

    def test_total_preserved_and_ratios_kept(self):
        weights = {'build': 20, 'fleet': 35, 'attack': 35, 'research': 10}
        result = redistribute_weights(weights, {'attack'})

        assert result['attack'] == 0
        assert sum(result.values()) == pytest.approx(100)
        assert result['fleet'] / result['build'] == pytest.approx(35 / 20)
        assert result['research'] / result['build'] == pytest.approx(10 / 20)

    @pytest.mark.parametrize("blocked", ['a', 'b', 'c', 'd'])
    def test_any_single_block_keeps_total(self, blocked):
        weights = {'a': 7.5, 'b': 12, 'c': 40, 'd': 3}
        result = redistribute_weights(weights, {blocked})
        assert sum(result.values()) == pytest.approx(sum(weights.values()))
        assert result[blocked] == 0

    def test_zero_weight_remaining_stays_zero(self):
        result = redistribute_weights({'a': 50, 'b': 50, 'c': 0}, {'a'})
        assert result['c'] == 0
        assert result['b'] == pytest.approx(100)

    def test_remaining_all_zero_split_evenly(self):
        result = redistribute_weights({'a': 100, 'b': 0, 'c': 0}, {'a'})
        assert result['b'] == pytest.approx(50)
        assert result['c'] == pytest.approx(50)

    def test_everything_blocked(self):
        result = redistribute_weights({'a': 60, 'b': 40}, {'a', 'b'})
        assert result == {'a': 0.0, 'b': 0.0}


class TestNormalizeWeights:

    def test_scales_to_target(self):
        result = normalize_weights({'a': 1, 'b': 3}, 100)
        assert result == {'a': 25, 'b': 75}

    def test_negative_clipped(self):
        result = normalize_weights({'a': -5, 'b': 10}, 100)
        assert result['a'] == 0
        assert result['b'] == pytest.approx(100)

    def test_all_zero_unchanged(self):
        assert normalize_weights({'a': 0, 'b': 0}) == {'a': 0.0, 'b': 0.0}


class TestWeightedChoice:

    def test_none_when_nothing_positive(self):
        assert weighted_choice({'a': 0, 'b': 0}) is None
        assert weighted_choice({}) is None

    def test_never_picks_zero_weight(self):
        rng = random.Random(3)
        picks = {weighted_choice({'a': 0, 'b': 1, 'c': 1}, rng) for _ in range(200)}
        assert picks == {'b', 'c'}

    def test_roughly_proportional(self):
        rng = random.Random(42)
        counts = Counter(weighted_choice({'a': 75, 'b': 25}, rng) for _ in range(4000))
        assert 0.70 < counts['a'] / 4000 < 0.80


class TestTopKPick:

    def test_empty(self):
        assert top_k_pick([]) is None

    def test_no_exploration_always_best(self):
        rng = random.Random(1)
        candidates = [('low', 1.0), ('high', 9.0), ('mid', 5.0)]
        assert all(top_k_pick(candidates, k=3, exploration=0.0, rng=rng) == 'high' for _ in range(50))

    def test_full_exploration_never_best(self):
        rng = random.Random(1)
        candidates = [('low', 1.0), ('high', 9.0), ('mid', 5.0)]
        picks = {top_k_pick(candidates, k=3, exploration=1.0, rng=rng) for _ in range(100)}
        assert 'high' not in picks
        assert picks <= {'low', 'mid'}

    def test_single_candidate_ignores_exploration(self):
        assert top_k_pick([('only', 1.0)], exploration=1.0) == 'only'

    def test_eighty_twenty_split(self):
        rng = random.Random(7)
        candidates = [('best', 10.0), ('second', 8.0), ('third', 1.0)]
        counts = Counter(top_k_pick(candidates, k=2, exploration=0.2, rng=rng) for _ in range(5000))
        assert counts['third'] == 0
        assert 0.75 < counts['best'] / 5000 < 0.85
