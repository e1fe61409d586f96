"""
Tests for the adaptive spawn value selector.
"""

import dataclasses
import random

import pytest

from cubecrash.merge_core.config_loader import load_config
from cubecrash.merge_core.spawn_selector import (
    SpawnMemory,
    SpawnSelector,
    TuningPlan,
    five_allowed,
    five_guard,
    make_plan,
    pick_weighted,
)
from cubecrash.merge_core.tile import Tile


@pytest.fixture
def config():
    return load_config()


def active(*values):
    return [Tile(uid=i, col=i, row=0, value=v, locked=False) for i, v in enumerate(values)]


def plan(consec_cap=1, ratio_cap=0.30, window=12):
    return TuningPlan(
        burst_every=8,
        burst_len=2,
        five_consec_cap=consec_cap,
        five_window_size=window,
        five_ratio_cap=ratio_cap,
        spice_amp=0.12
    )


class TestPlan:
    """Per-board tuning plans."""

    def test_same_seed_same_plan(self, config):
        assert make_plan(123, config.spawn) == make_plan(123, config.spawn)

    def test_plan_ranges(self, config):
        for seed in range(200):
            p = make_plan(seed, config.spawn)
            assert 6 <= p.burst_every <= 10
            assert 2 <= p.burst_len <= 3
            assert 1 <= p.five_consec_cap <= 2
            assert 0.30 <= p.five_ratio_cap <= 0.37
            assert p.spice_amp in (0.12, 0.22)
            assert p.five_window_size == 12

    def test_reset_new_plan_and_clear_memory(self, config):
        selector = SpawnSelector(config, seed=1)
        selector.sample(10)
        selector.reset(seed=99)
        assert selector.memory.spawn_index == 0
        assert len(selector.memory.history) == 0
        assert selector.plan == make_plan(random.Random(99), config.spawn)


class TestMemory:
    """Rolling spawn memory."""

    def test_history_bounded(self):
        memory = SpawnMemory(history_size=20, window_size=12)
        for _ in range(50):
            memory.update(1)
        assert len(memory.history) == 20
        assert len(memory.five_window) == 12
        assert memory.spawn_index == 50

    def test_streaks(self):
        memory = SpawnMemory()
        memory.update(4)
        memory.update(5)
        assert memory.high_streak == 2
        assert memory.consec_fives == 1
        memory.update(2)
        assert memory.high_streak == 0
        assert memory.consec_fives == 0


class TestPickWeighted:
    """Weighted draws."""

    def test_single_positive_weight(self):
        rng = random.Random(0)
        for _ in range(50):
            assert pick_weighted({1: 0.0, 2: 0.0, 3: 7.0}, rng) == 3

    def test_degenerate_falls_back_uniform(self):
        rng = random.Random(0)
        seen = {pick_weighted({1: 0, 2: -3, 3: 0}, rng) for _ in range(300)}
        assert seen <= {1, 2, 3, 4, 5}
        assert len(seen) > 1


class TestFiveGuard:
    """The five-guard is pure and enforces both caps."""

    def test_non_five_passes(self, config):
        rng = random.Random(0)
        assert five_guard(3, {1: 1, 5: 1}, SpawnMemory(), plan(), rng, config.spawn) == 3

    def test_consecutive_cap(self, config):
        memory = SpawnMemory()
        memory.update(5)
        rng = random.Random(0)
        weights = {1: 0, 2: 0, 3: 0, 4: 0, 5: 100}
        for _ in range(100):
            assert five_guard(5, weights, memory, plan(consec_cap=1), rng, config.spawn) != 5

    def test_does_not_touch_memory(self, config):
        memory = SpawnMemory()
        memory.update(5)
        before = (memory.spawn_index, list(memory.history), memory.consec_fives)
        five_guard(5, {5: 1}, memory, plan(), random.Random(1), config.spawn)
        assert (memory.spawn_index, list(memory.history), memory.consec_fives) == before

    def test_window_is_prospective(self):
        memory = SpawnMemory(window_size=12)
        for v in [5, 1, 1, 5, 1, 1, 5, 1, 1, 1, 1]:
            memory.update(v)
        # A fourth five would make 4/12 = 0.33
        assert not five_allowed(memory, plan(consec_cap=2, ratio_cap=0.30))
        assert five_allowed(memory, plan(consec_cap=2, ratio_cap=0.34))


class TestWeights:
    """Weight table adjustments."""

    def test_anti_flood(self, config):
        selector = SpawnSelector(config, seed=3)
        calm = selector.compute_weights(active(1, 2, 1, 2))
        flooded = selector.compute_weights(active(5, 5, 4, 4))
        assert flooded[1] > calm[1]
        assert flooded[2] > calm[2]
        assert flooded[4] < calm[4]
        assert flooded[5] < calm[5]

    def test_phase_changes_table(self, config):
        selector = SpawnSelector(config, seed=3)
        early = selector.compute_weights([], moves=0)
        late = selector.compute_weights([], moves=50)
        assert late[5] > early[5]


class TestSelector:
    """get_value behavior."""

    def test_values_in_range(self, config):
        selector = SpawnSelector(config, seed=11)
        values = selector.sample(2000, active(1, 3, 5))
        assert set(values) <= {1, 2, 3, 4, 5}

    def test_deterministic(self, config):
        a = SpawnSelector(config, seed=5).sample(200, active(2, 4))
        b = SpawnSelector(config, seed=5).sample(200, active(2, 4))
        assert a == b

    def test_pity_after_two_highs(self, config):
        for seed in range(30):
            selector = SpawnSelector(config, seed=seed)
            selector.memory.update(4)
            selector.memory.update(5)
            assert selector.get_value(active(4, 5)) in (1, 2)

    def test_memory_records_each_value(self, config):
        selector = SpawnSelector(config, seed=2)
        values = selector.sample(15)
        assert selector.memory.spawn_index == 15
        assert list(selector.memory.history) == values

    def test_excluding_never_returns_excluded(self, config):
        selector = SpawnSelector(config, seed=8)
        board = active(3, 3, 2)
        for _ in range(500):
            assert selector.get_value_excluding([3], board) != 3

    @pytest.mark.parametrize("seed", range(25))
    def test_five_caps_hold_over_long_runs(self, config, seed):
        selector = SpawnSelector(config, seed=seed)
        plan_ = selector.plan
        board = []
        values = []
        for i in range(400):
            v = selector.get_value(board, moves=i)
            values.append(v)
            board = (board + active(v))[-10:]

        run = best = 0
        for v in values:
            run = run + 1 if v == 5 else 0
            best = max(best, run)
        assert best <= plan_.five_consec_cap

        n = plan_.five_window_size
        for start in range(len(values) - n + 1):
            window = values[start:start + n]
            assert window.count(5) / n <= plan_.five_ratio_cap + 1e-9

    def test_merge_seek_pairs_a_five_with_one(self, config):
        spawn = dataclasses.replace(config.spawn, merge_seek_chance=1.0, merge_seek_small_chance=1.0)
        selector = SpawnSelector(dataclasses.replace(config, spawn=spawn), seed=4)
        assert set(selector.sample(50, active(5, 5, 5))) == {1}

    def test_merge_seek_small_partner_stays_below_cap(self, config):
        spawn = dataclasses.replace(config.spawn, merge_seek_chance=1.0, merge_seek_small_chance=1.0)
        selector = SpawnSelector(dataclasses.replace(config, spawn=spawn), seed=4)
        assert set(selector.sample(200, active(3))) <= {1, 2}
