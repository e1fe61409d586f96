"""
CubeCrash Package
=================

Tile-merge puzzle engine: drag a numbered cube onto another to stack or
sum them, crack cubes at the max value, and clear the board.

- merge_core: board model, merge rules, spawn selector and level flow
- evaluation: auto-play harness over a seed bank

All tunable parameters are in board_config.yaml.
"""
