"""
Tests for the evaluation harness and the bundled greedy player.
"""

import importlib.util
import json
from pathlib import Path

import pytest

from cubecrash.evaluation.run_eval import (
    evaluate_player,
    evaluate_single_seed,
    load_agent,
    load_seed_bank,
    save_results,
)
from cubecrash.merge_core.game import CoreGame

GREEDY_DIR = Path(__file__).parent.parent / "players" / "greedy"


def load_greedy_module():
    spec = importlib.util.spec_from_file_location("greedy_agent", GREEDY_DIR / "agent.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestSeedBank:
    def test_default_seed_bank(self):
        seeds = load_seed_bank()
        assert len(seeds) == 20
        assert len(set(seeds)) == len(seeds)

    def test_custom_seed_bank(self, tmp_path):
        path = tmp_path / "seeds.json"
        path.write_text(json.dumps({"seeds": [3, 5]}))
        assert load_seed_bank(str(path)) == [3, 5]


class TestLoadAgent:
    def test_load_by_directory(self):
        act = load_agent(str(GREEDY_DIR))
        assert callable(act)

    def test_missing_agent(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_agent(str(tmp_path / "nowhere"))

    def test_agent_without_act(self, tmp_path):
        path = tmp_path / "agent.py"
        path.write_text("VALUE = 1\n")
        with pytest.raises(AttributeError):
            load_agent(str(path))

    def test_function_agent(self, tmp_path):
        path = tmp_path / "agent.py"
        path.write_text("def act(obs):\n    return None\n")
        assert load_agent(str(path))({}) is None


class TestGreedyPlayer:
    def test_move_count_matches_snapshot(self):
        module = load_greedy_module()
        game = CoreGame(seed=5)
        snap = game.reset()
        assert len(module.legal_moves(snap.to_obs_dict())) == snap.legal_move_count

    def test_act_returns_legal_move(self):
        module = load_greedy_module()
        game = CoreGame(seed=5)
        obs = game.reset().to_obs_dict()
        src, dst = module.CubeAgent(seed=0).act(obs)
        assert game.merge_at(src, dst).accepted


class TestEvaluate:
    def test_single_seed_is_deterministic(self):
        module = load_greedy_module()
        first = evaluate_single_seed(module.CubeAgent(seed=0).act, 11, record_moves=True)
        second = evaluate_single_seed(module.CubeAgent(seed=0).act, 11, record_moves=True)
        assert first.final_score == second.final_score
        assert first.played_moves == second.played_moves
        assert first.moves == len(first.played_moves)

    def test_passing_player_uses_helpers(self):
        result = evaluate_single_seed(lambda obs: None, 7, max_helpers=2)
        assert result.moves == 0
        assert result.helpers_used == 2
        assert result.end_reason == "player_stopped"

    def test_evaluate_player_summary(self):
        summary = evaluate_player(load_agent(str(GREEDY_DIR)), seeds=[1, 2], verbose=False)
        assert len(summary.results) == 2
        assert summary.min_score <= summary.mean_score <= summary.max_score
        assert 0.0 <= summary.clean_rate <= 1.0

    def test_no_seeds(self):
        with pytest.raises(ValueError):
            evaluate_player(lambda obs: None, seeds=[], verbose=False)

    def test_save_results(self, tmp_path):
        summary = evaluate_player(lambda obs: None, seeds=[1], max_helpers=0, verbose=False)
        out = tmp_path / "results.json"
        save_results(summary, "passer", str(out))
        data = json.loads(out.read_text())
        assert data["agent"] == "passer"
        assert data["results"][0]["seed"] == 1
