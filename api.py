import os
import threading
import uuid
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from straights.cell import Cell
from straights.config import load_settings
from straights.decoder import decode_puzzle, is_plausible_code
from straights.envelope import dump_state
from straights.game import GameSession
from straights.grid import Grid


class DecodeRequest(BaseModel):
    code: str = Field(..., description="Base64url puzzle code")


class CellDefinitionResponse(BaseModel):
    mode: str
    value: Optional[int] = None


class DecodeResponse(BaseModel):
    size: int
    grid_rows: list[str]
    grid_text: str
    black_mask: str
    cells: list[list[CellDefinitionResponse]]


class CreateGameRequest(BaseModel):
    code: str = Field(..., description="Base64url puzzle code")
    state: Optional[str] = Field(default=None, description="Shared state string produced by the state codec")
    saved_state: Optional[Any] = Field(
        default=None,
        description="Saved game envelope in any supported format (F1, F2.1 or F2.2)",
    )


class CellResponse(BaseModel):
    row: int
    col: int
    mode: str
    guess: Optional[int] = None
    notes: list[int]
    wrong: bool
    hint: Optional[int] = None
    revealed: bool


class GameResponse(BaseModel):
    game_id: str
    size: int
    is_solved: bool
    selected: Optional[list[int]] = None
    check_count: int
    hint_count: int
    percent_solved: int
    grid_rows: list[str]
    cells: list[list[CellResponse]]


class SelectRequest(BaseModel):
    row: int = Field(..., ge=0)
    col: int = Field(..., ge=0)


class MoveRequest(BaseModel):
    d_row: int = Field(default=0, ge=-1, le=1)
    d_col: int = Field(default=0, ge=-1, le=1)


class InputRequest(BaseModel):
    number: int = Field(..., ge=1, description="Digit to enter into the selected cell")
    note_mode: bool = Field(default=False, description="Toggle a note instead of setting the guess")


class HintCheckResponse(BaseModel):
    is_solved: bool
    is_wrong: bool


app = FastAPI(
    title="Str8ts Game API",
    description="Decode Str8ts puzzle codes and play them: guesses, notes, checks, undo and saved state.",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://127.0.0.1:5173", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_SETTINGS = load_settings(os.environ.get("STRAIGHTS_CONFIG"))
_GAMES: dict[str, GameSession] = {}
_GAMES_LOCK = threading.Lock()


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/decode", response_model=DecodeResponse)
def decode(request: DecodeRequest) -> DecodeResponse:
    if not is_plausible_code(request.code):
        raise HTTPException(status_code=400, detail="code is too short to be a puzzle code")
    definition = decode_puzzle(request.code)
    if definition is None:
        raise HTTPException(status_code=400, detail="code is not a valid puzzle code")
    grid = Grid.from_definition(definition.size, definition.cells)
    grid_rows = grid.grid_rows()
    return DecodeResponse(
        size=definition.size,
        grid_rows=grid_rows,
        grid_text="\n".join(grid_rows),
        black_mask=grid.black_mask_code(),
        cells=[[CellDefinitionResponse(mode=mode.name, value=value) for mode, value in row] for row in definition.cells],
    )


@app.post("/games", response_model=GameResponse, status_code=status.HTTP_201_CREATED)
async def create_game(request: CreateGameRequest) -> GameResponse:
    session = GameSession(settings=_SETTINGS)
    started = await session.start_game_code_async(
        request.code,
        state=request.state,
        saved_state=request.saved_state,
        allow_generate=False,
    )
    if not started:
        raise HTTPException(status_code=400, detail="code is not a valid puzzle code")

    game_id = str(uuid.uuid4())
    with _GAMES_LOCK:
        _GAMES[game_id] = session
        return _build_game_response(game_id, session.grid)


@app.get("/games/{game_id}", response_model=GameResponse)
def get_game(game_id: str) -> GameResponse:
    with _GAMES_LOCK:
        session = _get_session(game_id)
        return _build_game_response(game_id, session.grid)


@app.get("/games/{game_id}/state")
def get_game_state(game_id: str) -> dict[str, Any]:
    with _GAMES_LOCK:
        session = _get_session(game_id)
        return dump_state(session.grid, session.encoder)


@app.post("/games/{game_id}/select", response_model=GameResponse)
def select(game_id: str, request: SelectRequest) -> GameResponse:
    with _GAMES_LOCK:
        session = _get_session(game_id)
        try:
            _validate_position(session.grid, request.row, request.col)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        session.select_cell(request.row, request.col)
        return _build_game_response(game_id, session.grid)


@app.post("/games/{game_id}/move", response_model=GameResponse)
def move(game_id: str, request: MoveRequest) -> GameResponse:
    with _GAMES_LOCK:
        session = _get_session(game_id)
        session.move_selection(request.d_row, request.d_col)
        return _build_game_response(game_id, session.grid)


@app.post("/games/{game_id}/input", response_model=GameResponse)
def enter_number(game_id: str, request: InputRequest) -> GameResponse:
    with _GAMES_LOCK:
        session = _get_session(game_id)
        session.is_in_note_mode = request.note_mode
        session.handle_number_input(request.number)
        return _build_game_response(game_id, session.grid)


@app.post("/games/{game_id}/notes/toggle", response_model=GameResponse)
def toggle_notes(game_id: str, request: SelectRequest) -> GameResponse:
    with _GAMES_LOCK:
        session = _get_session(game_id)
        try:
            _validate_position(session.grid, request.row, request.col)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        session.toggle_all_or_no_notes(request.row, request.col)
        return _build_game_response(game_id, session.grid)


@app.post("/games/{game_id}/delete", response_model=GameResponse)
def delete_entry(game_id: str) -> GameResponse:
    with _GAMES_LOCK:
        session = _get_session(game_id)
        session.handle_delete()
        return _build_game_response(game_id, session.grid)


@app.post("/games/{game_id}/undo", response_model=GameResponse)
def undo(game_id: str) -> GameResponse:
    with _GAMES_LOCK:
        session = _get_session(game_id)
        session.undo()
        return _build_game_response(game_id, session.grid)


@app.post("/games/{game_id}/check", response_model=GameResponse)
def check(game_id: str) -> GameResponse:
    with _GAMES_LOCK:
        session = _get_session(game_id)
        session.check()
        return _build_game_response(game_id, session.grid)


@app.post("/games/{game_id}/hint-check", response_model=HintCheckResponse)
def hint_check(game_id: str) -> HintCheckResponse:
    with _GAMES_LOCK:
        session = _get_session(game_id)
        result = session.grid.check_for_hint()
        return HintCheckResponse(is_solved=result.is_solved, is_wrong=result.is_wrong)


@app.post("/games/{game_id}/restart", response_model=GameResponse)
def restart(game_id: str) -> GameResponse:
    with _GAMES_LOCK:
        session = _get_session(game_id)
        session.restart()
        return _build_game_response(game_id, session.grid)


@app.post("/games/{game_id}/solution", response_model=GameResponse)
def show_solution(game_id: str) -> GameResponse:
    with _GAMES_LOCK:
        session = _get_session(game_id)
        session.show_solution()
        return _build_game_response(game_id, session.grid)


def _get_session(game_id: str) -> GameSession:
    session = _GAMES.get(game_id)
    if session is None:
        raise HTTPException(status_code=404, detail="game not found")
    return session


def _validate_position(grid: Grid, row: int, col: int) -> None:
    if row >= grid.size or col >= grid.size:
        raise ValueError(f"position ({row}, {col}) is outside the {grid.size}x{grid.size} grid")


def _build_cell_response(cell: Cell) -> CellResponse:
    return CellResponse(
        row=cell.row,
        col=cell.col,
        mode=cell.mode.name,
        guess=cell.guess,
        notes=sorted(cell.notes),
        wrong=cell.wrong,
        hint=cell.hint,
        revealed=cell.revealed,
    )


def _build_game_response(game_id: str, grid: Grid) -> GameResponse:
    return GameResponse(
        game_id=game_id,
        size=grid.size,
        is_solved=grid.is_solved,
        selected=list(grid.selected) if grid.selected is not None else None,
        check_count=grid.check_count,
        hint_count=grid.hint_count,
        percent_solved=grid.percent_solved(),
        grid_rows=grid.grid_rows(),
        cells=[[_build_cell_response(cell) for cell in row] for row in grid.cells],
    )
