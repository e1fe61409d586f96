"""
Evaluation Package
==================

Contains the seed bank and the auto-play harness for scoring players.
"""

from cubecrash.evaluation.run_eval import evaluate_player, load_seed_bank

__all__ = ["evaluate_player", "load_seed_bank"]
