import logging
from typing import Any, Optional

from .cell import CellSnapshot
from .config import Settings
from .decoder import is_plausible_code, parse_game
from .encoder import BitmaskEncoder
from .envelope import dump_state_base64_async, restore_state_async, restore_state_base64_async
from .grid import Grid, RenderCallback
from .history import GameHistory
from .service import STATUS_OK, GenerateRequest, GridLayout, HintDescriptor, HintRequest, PuzzleService


logger = logging.getLogger(__name__)


class GameSession:
    """Drives one player's game: loading puzzles, input, undo and hints."""

    def __init__(
        self,
        service: Optional[PuzzleService] = None,
        history: Optional[GameHistory] = None,
        settings: Optional[Settings] = None,
        on_render: Optional[RenderCallback] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.service = service
        self.history = history
        self.on_render = on_render
        self.encoder = BitmaskEncoder(self.settings.encoder)
        self.grid = Grid(on_render=on_render)
        self.game_code: Optional[str] = None
        self.undo_stack: list[CellSnapshot] = []
        self.is_in_note_mode = False
        self.hint_cell: Optional[tuple[int, int]] = None
        self.generate_grid_size = self.settings.game.default_grid_size
        self.generate_difficulty = self.settings.game.default_difficulty
        self.generate_layout: GridLayout = self.settings.game.default_layout

    # loading

    async def start_game_code_async(
        self,
        code: str,
        state: Optional[str] = None,
        saved_state: Any = None,
        allow_generate: bool = True,
    ) -> bool:
        grid = parse_game(code, on_render=self.on_render) if is_plausible_code(code) else None
        if grid is None:
            if allow_generate:
                return await self.generate_new_game_async()
            return False

        self.grid.invalidate()
        self.grid = grid
        self.game_code = code
        self.undo_stack.clear()
        self.hint_cell = None
        await self._restore_game_state_async(code, state, saved_state)
        self.save_state()
        return True

    async def generate_new_game_async(self) -> bool:
        if self.service is None:
            logger.warning("No puzzle service is configured, cannot generate a new game")
            return False
        request = GenerateRequest(
            size=self.generate_grid_size,
            difficulty=self.generate_difficulty,
            layout=self.generate_layout.api_value,
        )
        try:
            response = await self.service.generate(request)
        except Exception as exc:
            logger.error("Error fetching game: %s", exc)
            return False
        if response.status != STATUS_OK or not is_plausible_code(response.message):
            logger.error("Error generating game: %s", response.message)
            return False
        logger.info("Generated game %s", response.message)
        return await self.start_game_code_async(response.message, allow_generate=False)

    def set_generate_options(
        self,
        size: Optional[int] = None,
        difficulty: Optional[int] = None,
        layout: Optional[GridLayout] = None,
    ) -> None:
        game_settings = self.settings.game
        if size is not None:
            if size < game_settings.min_grid_size or size > game_settings.max_grid_size:
                raise ValueError(f"size must be between {game_settings.min_grid_size} and {game_settings.max_grid_size}")
            self.generate_grid_size = size
        if difficulty is not None:
            self.generate_difficulty = difficulty
        if layout is not None:
            self.generate_layout = layout

    async def _restore_game_state_async(self, code: str, state: Optional[str], saved_state: Any) -> None:
        if state and await restore_state_base64_async(self.grid, state, self.encoder):
            return
        if saved_state is not None and await restore_state_async(self.grid, saved_state, self.encoder):
            return
        if self.history is not None:
            await self.history.restore_game_state_async(code, self.grid, self.encoder)

    def save_state(self) -> None:
        if self.history is not None and self.game_code is not None:
            self.history.save_game_state(self.game_code, self.grid, self.encoder)

    async def share_state_async(self) -> str:
        return await dump_state_base64_async(self.grid, self.encoder)

    # input

    def select_cell(self, row: int, col: int) -> None:
        self.grid.select(row, col)

    def move_selection(self, d_row: int, d_col: int) -> None:
        self.grid.move_selection(d_row, d_col)

    def toggle_note_mode(self) -> None:
        self.is_in_note_mode = not self.is_in_note_mode

    def handle_number_input(self, number: int) -> None:
        if number < 1 or number > self.grid.size:
            return
        cell = self.grid.active_cell()
        if cell is None or not cell.is_editable():
            return
        self.undo_stack.append(cell.snapshot())
        if self.is_in_note_mode:
            cell.set_note(number)
        else:
            cell.set_guess(number)
            self.grid.check_solved()
            if self.grid.is_solved:
                self.undo_stack.clear()
        self.save_state()

    def handle_delete(self) -> None:
        cell = self.grid.active_cell()
        if cell is None or not cell.is_editable():
            return
        self.undo_stack.append(cell.snapshot())
        cell.clear()
        self.save_state()

    def toggle_all_or_no_notes(self, row: int, col: int) -> None:
        self.select_cell(row, col)
        cell = self.grid.active_cell()
        if cell is not None:
            self.undo_stack.append(cell.snapshot())
        self.grid.get(row, col).toggle_all_or_no_notes()
        self.save_state()

    def undo(self) -> None:
        if not self.undo_stack or self.grid.is_solved:
            return
        snapshot = self.undo_stack.pop()
        cell = self.grid.get(snapshot.row, snapshot.col)
        cell.restore_from(snapshot)
        cell.wrong = False
        self.grid.select(snapshot.row, snapshot.col)
        cell.render()

    # checking and hints

    def check(self) -> None:
        self.grid.check()
        self.save_state()

    async def hint_async(self) -> Optional[HintDescriptor]:
        self.close_hint()
        result = self.grid.check_for_hint()
        hint = None
        if not (result.is_solved or result.is_wrong):
            hint = await self._request_hint_async()
        self.save_state()
        return hint

    async def _request_hint_async(self) -> Optional[HintDescriptor]:
        if self.service is None:
            return None
        try:
            response = await self.service.generate_hint(HintRequest(puzzle=self.grid.to_json_array()))
        except Exception as exc:
            logger.error("Hint generation failed or unsupported: %s", exc)
            return None
        if response.status != STATUS_OK or not response.message:
            logger.error("Failed to generate a hint: %s", response.message)
            return None
        try:
            hint = HintDescriptor.from_message(response.message)
        except ValueError as exc:
            logger.error("Failed to read hint: %s", exc)
            return None
        if hint.y >= self.grid.size or hint.x >= self.grid.size:
            logger.error("Hint points outside the grid: (%d, %d)", hint.x, hint.y)
            return None
        self.grid.get(hint.y, hint.x).set_hint(hint.number)
        self.hint_cell = (hint.y, hint.x)
        return hint

    def close_hint(self) -> None:
        if self.hint_cell is not None:
            self.grid.get(*self.hint_cell).set_hint(None)
            self.hint_cell = None

    def restart(self) -> None:
        self.close_hint()
        self.grid.restart()
        self.undo_stack.clear()
        self.save_state()

    def show_solution(self) -> None:
        self.close_hint()
        self.grid.show_solution()
        self.undo_stack.clear()
        self.save_state()
