"""
Human Play Mode
================

Play CubeCrash with the mouse: drag an open tile onto another one to merge.

Controls:
    - Mouse drag: Move a tile; release over a target to merge
    - H: Use a helper (opens one locked tile)
    - R: Restart at level 1
    - ESC: Quit

When a board ends, the end-of-level flow runs with on-screen prompts:
    - C: Continue
    - R: Restart
    - Q: Quit

Usage:
    python -m tools.play_human [--seed SEED] [--cell CELL] [--endless]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from typing import Optional, Tuple

try:
    import pygame
    PYGAME_AVAILABLE = True
except ImportError:
    PYGAME_AVAILABLE = False

from cubecrash.merge_core.collaborators import RatingDecision
from cubecrash.merge_core.config_loader import GameConfig, load_config
from cubecrash.merge_core.game import CoreGame
from cubecrash.merge_core.tile import Tile

logger = logging.getLogger(__name__)

TILE_COLORS = {
    1: (122, 199, 232),
    2: (126, 214, 146),
    3: (246, 210, 98),
    4: (244, 160, 90),
    5: (232, 104, 104),
    6: (176, 122, 220),
}
WILD_COLOR = (255, 255, 255)
GHOST_COLOR = (70, 74, 92)
BG_COLOR = (34, 36, 48)
TEXT_COLOR = (235, 235, 240)
TEXT_DIM = (150, 152, 170)


class BoardRenderer:
    """Draws the grid, the tiles, the dragged tile and the HUD."""

    def __init__(self, config: GameConfig, cell: int):
        self._config = config
        self._cell = cell
        self._margin = 16
        self._hud_height = 70

        pygame.font.init()
        self._font_large = pygame.font.Font(None, 48)
        self._font_medium = pygame.font.Font(None, 30)
        self._font_small = pygame.font.Font(None, 22)

        self.width = config.board.cols * cell + 2 * self._margin
        self.height = config.board.rows * cell + 2 * self._margin + self._hud_height
        self.grid_visible = True

    @property
    def cell(self) -> int:
        return self._cell

    def cell_rect(self, col: int, row: int) -> pygame.Rect:
        return pygame.Rect(
            self._margin + col * self._cell,
            self._hud_height + self._margin + row * self._cell,
            self._cell,
            self._cell
        )

    def cell_at(self, pos: Tuple[int, int]) -> Optional[Tuple[int, int]]:
        """Grid cell under a screen position."""
        x = pos[0] - self._margin
        y = pos[1] - self._hud_height - self._margin
        if x < 0 or y < 0:
            return None
        col, row = x // self._cell, y // self._cell
        if col >= self._config.board.cols or row >= self._config.board.rows:
            return None
        return int(col), int(row)

    def render(
        self,
        screen: pygame.Surface,
        game: CoreGame,
        dragged: Optional[Tile] = None,
        drag_rect: Optional[pygame.Rect] = None,
        can_drop: bool = False
    ) -> None:
        screen.fill(BG_COLOR)
        self._draw_hud(screen, game)
        if self.grid_visible:
            for col, row, tile in game.board.grid.cells():
                if tile is None or tile is dragged:
                    continue
                self._draw_tile(screen, tile, self.cell_rect(col, row))
            if dragged is not None and drag_rect is not None:
                self._draw_tile(screen, dragged, drag_rect, outline=can_drop)

    def _draw_hud(self, screen: pygame.Surface, game: CoreGame) -> None:
        state = game.level_state
        text = self._font_medium.render(
            f"Level {state.level}   Score {state.score:,}   Moves {state.moves}",
            True,
            TEXT_COLOR
        )
        screen.blit(text, (self._margin, 14))
        mode = self._font_small.render(state.mode, True, TEXT_DIM)
        screen.blit(mode, (self._margin, 44))

    def _draw_tile(self, screen: pygame.Surface, tile: Tile, rect: pygame.Rect, outline: bool = False) -> None:
        inner = rect.inflate(-6, -6)
        if tile.locked:
            pygame.draw.rect(screen, GHOST_COLOR, inner, border_radius=8)
            return
        color = WILD_COLOR if tile.is_wild else TILE_COLORS.get(tile.value, (200, 200, 200))
        pygame.draw.rect(screen, color, inner, border_radius=8)
        if outline:
            pygame.draw.rect(screen, TEXT_COLOR, inner, width=3, border_radius=8)

        label = "W" if tile.is_wild else str(tile.value)
        text = self._font_large.render(label, True, BG_COLOR)
        screen.blit(text, text.get_rect(center=inner.center))
        if tile.stack_depth > 1:
            depth = self._font_small.render(f"x{tile.stack_depth}", True, BG_COLOR)
            screen.blit(depth, (inner.right - depth.get_width() - 4, inner.bottom - depth.get_height() - 2))

    def draw_banner(self, screen: pygame.Surface, title: str, lines) -> None:
        """Centered message box over the board."""
        box = pygame.Rect(0, 0, self.width - 2 * self._margin, 190)
        box.center = (self.width // 2, self.height // 2)
        pygame.draw.rect(screen, (20, 20, 28), box, border_radius=12)
        pygame.draw.rect(screen, TEXT_DIM, box, width=2, border_radius=12)

        head = self._font_large.render(title, True, TEXT_COLOR)
        screen.blit(head, (box.centerx - head.get_width() // 2, box.y + 20))
        for i, line in enumerate(lines):
            text = self._font_medium.render(line, True, TEXT_DIM)
            screen.blit(text, (box.centerx - text.get_width() // 2, box.y + 80 + i * 32))


class PygamePresenter:
    """End-of-level presenter that draws prompts and waits for key presses."""

    def __init__(self, player: "HumanPlayer"):
        self._player = player

    async def _wait_key(self, keys, timeout: Optional[float] = None) -> Optional[int]:
        start = time.time()
        while True:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    self._player.stop()
                    return pygame.K_q
                if event.type == pygame.KEYDOWN and event.key in keys:
                    return event.key
            if timeout is not None and time.time() - start >= timeout:
                return None
            await asyncio.sleep(1.0 / self._player.fps)

    def _show(self, title: str, *lines: str) -> None:
        self._player.render()
        self._player.renderer.draw_banner(self._player.screen, title, lines)
        pygame.display.flip()

    async def celebrate_clean_board(self, *, bonus: int, score: int, board_number: int) -> None:
        self._show("BOARD CLEAN!", f"Board {board_number} bonus +{bonus:,}", f"Score {score:,}")
        await self._wait_key({pygame.K_SPACE, pygame.K_c}, timeout=2.0)

    async def present_mystery_prize(self, *, level: int, score: int) -> Optional[str]:
        return None

    async def show_rating(
        self,
        *,
        score: int,
        stars: int,
        passed: bool,
        thresholds,
        endless: bool
    ) -> RatingDecision:
        verdict = "Passed" if passed else "Try again"
        self._show(
            "*" * stars if stars else "No stars",
            f"{verdict} - score {score:,} (stars at {', '.join(str(t) for t in thresholds)})",
            "C continue   R restart   Q quit"
        )
        key = await self._wait_key({pygame.K_c, pygame.K_r, pygame.K_q})
        if key == pygame.K_r:
            return RatingDecision("restart")
        if key == pygame.K_q:
            return RatingDecision("quit")
        return RatingDecision("continue")

    def hide_grid(self) -> None:
        self._player.renderer.grid_visible = False

    def show_grid(self) -> None:
        self._player.renderer.grid_visible = True


class HumanPlayer:
    """Mouse-driven game loop around CoreGame and its drag controller."""

    def __init__(
        self,
        config: Optional[GameConfig] = None,
        seed: Optional[int] = None,
        cell: int = 88,
        target_fps: int = 60,
        endless: Optional[bool] = None
    ):
        if not PYGAME_AVAILABLE:
            raise ImportError("pygame required. Install: pip install pygame")

        if config is None:
            config = load_config()

        self._config = config
        self._seed = seed
        self.fps = target_fps

        self._game = CoreGame(config=config, seed=seed, endless=endless)
        self._game.reset(seed=seed)

        pygame.init()
        self.renderer = BoardRenderer(config, cell)
        self.screen = pygame.display.set_mode((self.renderer.width, self.renderer.height))
        pygame.display.set_caption("CubeCrash")
        self._clock = pygame.time.Clock()
        self._presenter = PygamePresenter(self)

        self._running = True
        self._grab_offset = (0, 0)
        self._drag_rect: Optional[pygame.Rect] = None
        self._start_time = time.time()

    def stop(self) -> None:
        self._running = False

    def run(self) -> int:
        """Run the game loop. Returns final score."""
        print("=== CubeCrash ===")
        print("Drag tiles onto each other to merge. H helper, R restart, ESC quit")
        print()

        last = time.time()
        while self._running:
            now = time.time()
            self._game.tick(now - last)
            last = now

            self._handle_events()
            if self._game.is_over and self._running:
                self._run_flow()
            self.render()
            pygame.display.flip()
            self._clock.tick(self.fps)

        self._game.record_play_time(time.time() - self._start_time)
        pygame.quit()
        return self._game.score

    def _handle_events(self) -> None:
        drag = self._game.drag
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self._running = False

            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    self._running = False
                elif event.key == pygame.K_r:
                    drag.cancel()
                    self._game.reset(seed=self._seed)
                    print("\n=== Game Restarted ===\n")
                elif event.key == pygame.K_h:
                    opened = self._game.use_helper(1)
                    print(f"  helper opened {len(opened)} tile(s)")

            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                cell = self.renderer.cell_at(event.pos)
                tile = self._game.board.tile_at(*cell) if cell else None
                if tile is not None and drag.begin_drag(tile):
                    rect = self.renderer.cell_rect(tile.col, tile.row)
                    self._grab_offset = (event.pos[0] - rect.x, event.pos[1] - rect.y)
                    self._drag_rect = rect.copy()

            elif event.type == pygame.MOUSEMOTION and drag.dragging:
                self._drag_rect.topleft = (
                    event.pos[0] - self._grab_offset[0],
                    event.pos[1] - self._grab_offset[1]
                )
                target, ratio = self._best_overlap(drag.session.tile)
                drag.update_overlap(target, ratio)

            elif event.type == pygame.MOUSEBUTTONUP and event.button == 1 and drag.dragging:
                before = self._game.score
                report = drag.release()
                self._drag_rect = None
                if report is not None:
                    print(f"  {report.kind}: +{self._game.score - before} (Total: {self._game.score})")

    def _best_overlap(self, dragged: Tile) -> Tuple[Optional[Tile], float]:
        """Tile most covered by the dragged tile, with the covered fraction."""
        best, best_ratio = None, 0.0
        area = float(self.renderer.cell * self.renderer.cell)
        for tile in self._game.board.active_tiles():
            if tile is dragged:
                continue
            clip = self._drag_rect.clip(self.renderer.cell_rect(tile.col, tile.row))
            ratio = clip.width * clip.height / area
            if ratio > best_ratio:
                best, best_ratio = tile, ratio
        return best, best_ratio

    def _run_flow(self) -> None:
        reason = self._game.end_reason
        print(f"\nBoard over ({reason}) - Score: {self._game.score}")
        outcome = asyncio.run(self._game.run_level_end(self._presenter))
        if outcome.action == "quit" or outcome.next_level is None:
            self._running = False
        elif outcome.failed_step:
            logger.warning("Level flow step %s failed; advanced to the next level", outcome.failed_step)

    def render(self) -> None:
        drag = self._game.drag
        session = drag.session
        self.renderer.render(
            self.screen,
            self._game,
            dragged=session.tile if session else None,
            drag_rect=self._drag_rect,
            can_drop=session.can_drop if session else False
        )


def main():
    parser = argparse.ArgumentParser(description="Play CubeCrash interactively")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--cell", type=int, default=88, help="Cell size in pixels (default: 88)")
    parser.add_argument("--fps", type=int, default=60, help="Target FPS")
    parser.add_argument("--endless", action="store_true", help="Endless mode")
    parser.add_argument("--config", type=str, default=None, help="Path to board_config.yaml")

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    try:
        config = load_config(args.config)
        player = HumanPlayer(
            config=config,
            seed=args.seed,
            cell=args.cell,
            target_fps=args.fps,
            endless=args.endless or None
        )
        score = player.run()
        print(f"\nFinal Score: {score}")
        return 0
    except ImportError as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
