"""Version-tolerant (de)serialization of a grid's mutable state.

Three stored layouts exist and all of them must still restore:

* F1   - a list of rows of per-cell ``{"user", "notes"}`` records
* F2.1 - ``{"check_count", "hint_count", "data": F1}``
* F2.2 - ``{"check_count", "hint_count", "data": {"gameState", "checkerboard", "size", "created", "percentSolved"}}``

Only F2.2 is written. Restores validate the whole payload and decode the
state string before touching the grid, so a failed restore leaves it as it was.
"""

import logging
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from .cell import Cell, CellUserData
from .encoder import BitmaskEncoder, EncodedState
from .grid import Grid
from .types import NoteSet


logger = logging.getLogger(__name__)


class EnvelopeFormat(Enum):
    F1 = "F1"
    F2_1 = "F2.1"
    F2_2 = "F2.2"
    UNKNOWN = "unknown"


class FieldUserData(BaseModel):
    guess: Optional[int] = Field(default=None, validation_alias=AliasChoices("user", "guess"))
    notes: list[int] = Field(default_factory=list)

    @field_validator("notes", mode="before")
    @classmethod
    def _serialized_set_is_empty(cls, value: Any) -> Any:
        # Sets were once serialized as plain JSON objects, which lost their content.
        if isinstance(value, dict):
            return []
        return value

    def to_cell_user_data(self) -> CellUserData:
        return CellUserData(guess=self.guess, notes=frozenset(self.notes))


class HistoryData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    game_state: str = Field(..., alias="gameState")
    checkerboard: Optional[str] = None
    size: int = Field(..., ge=0)
    created: int
    percent_solved: int = Field(default=0, alias="percentSolved")


class CountedState(BaseModel):
    check_count: int = Field(..., ge=0)
    hint_count: int = Field(..., ge=0)
    data: Any


_FIELD_RECORDS = TypeAdapter(list[FieldUserData])


def detect_format(payload: Any) -> EnvelopeFormat:
    if isinstance(payload, dict):
        if "check_count" not in payload:
            return EnvelopeFormat.UNKNOWN
        data = payload.get("data")
        if isinstance(data, dict) and "gameState" in data:
            return EnvelopeFormat.F2_2
        return EnvelopeFormat.F2_1
    if isinstance(payload, list):
        return EnvelopeFormat.F1
    return EnvelopeFormat.UNKNOWN


def to_cell_user_data(notes: NoteSet) -> CellUserData:
    """A single decoded note is a guess."""
    if len(notes) == 1:
        return CellUserData(guess=next(iter(notes)))
    return CellUserData(notes=frozenset(notes))


def dump_state_base64(grid: Grid, encoder: Optional[BitmaskEncoder] = None) -> str:
    encoder = encoder or BitmaskEncoder()
    return encoder.encode_uncompressed(grid.size, grid.state()).base64_data


async def dump_state_base64_async(grid: Grid, encoder: Optional[BitmaskEncoder] = None) -> str:
    encoder = encoder or BitmaskEncoder()
    encoded = await encoder.encode_async(grid.size, grid.state())
    return encoded.base64_data


def dump_state(grid: Grid, encoder: Optional[BitmaskEncoder] = None) -> dict[str, Any]:
    history_data = HistoryData(
        game_state=dump_state_base64(grid, encoder),
        checkerboard=grid.black_mask_code(),
        size=grid.size,
        created=grid.created,
        percent_solved=grid.percent_solved(),
    )
    return {
        "check_count": grid.check_count,
        "hint_count": grid.hint_count,
        "data": history_data.model_dump(by_alias=True),
    }


async def restore_state_base64_async(grid: Grid, base64_data: str, encoder: Optional[BitmaskEncoder] = None) -> bool:
    try:
        updates = await _decode_state_async(grid, base64_data, encoder or BitmaskEncoder())
    except ValueError as exc:
        logger.warning("Failed to restore game state from string: %s", exc)
        return False
    if updates is None:
        return False
    _apply_updates(updates)
    return True


async def restore_state_async(grid: Grid, payload: Any, encoder: Optional[BitmaskEncoder] = None) -> bool:
    envelope_format = detect_format(payload)
    try:
        match envelope_format:
            case EnvelopeFormat.F2_2:
                return await _restore_current_async(grid, payload, encoder or BitmaskEncoder())
            case EnvelopeFormat.F2_1:
                _restore_counted_records(grid, payload)
                return True
            case EnvelopeFormat.F1:
                _apply_updates(_parse_cell_records(grid, payload))
                return True
            case EnvelopeFormat.UNKNOWN:
                logger.warning("Saved game state has an unknown format")
                return False
    except ValueError as exc:
        logger.warning("Failed to restore %s game state: %s", envelope_format.value, exc)
    return False


async def _restore_current_async(grid: Grid, payload: dict[str, Any], encoder: BitmaskEncoder) -> bool:
    counted = CountedState.model_validate(payload)
    history_data = HistoryData.model_validate(counted.data)
    if history_data.size != grid.size:
        raise ValueError(f"saved state is for size {history_data.size}, grid has size {grid.size}")
    updates = await _decode_state_async(grid, history_data.game_state, encoder)
    if updates is None:
        return False
    grid.check_count = counted.check_count
    grid.hint_count = counted.hint_count
    grid.created = history_data.created
    _apply_updates(updates)
    return True


def _restore_counted_records(grid: Grid, payload: dict[str, Any]) -> None:
    counted = CountedState.model_validate(payload)
    updates = _parse_cell_records(grid, counted.data)
    grid.check_count = counted.check_count
    grid.hint_count = counted.hint_count
    _apply_updates(updates)


def _parse_cell_records(grid: Grid, payload: Any) -> list[tuple[Cell, CellUserData]]:
    if not isinstance(payload, list):
        raise ValueError("cell data must be a list")
    if payload and all(isinstance(row, list) for row in payload):
        flat = [record for row in payload for record in row]
    else:
        flat = payload
    records = _FIELD_RECORDS.validate_python(flat)
    if len(records) != grid.size * grid.size:
        raise ValueError(f"expected {grid.size * grid.size} cell records but got {len(records)}")
    for index, record in enumerate(records):
        digits = list(record.notes) if record.guess is None else [record.guess, *record.notes]
        if any(digit < 1 or digit > grid.size for digit in digits):
            raise ValueError(f"cell record {index} holds a digit outside 1..{grid.size}")
    return [
        (cell, record.to_cell_user_data())
        for cell, record in zip(grid.iter_cells(), records)
        if cell.is_editable()
    ]


async def _decode_state_async(
    grid: Grid,
    base64_data: str,
    encoder: BitmaskEncoder,
) -> Optional[list[tuple[Cell, CellUserData]]]:
    epoch = grid.epoch
    cells = grid.editable_cells()
    decoded = await encoder.decode_async(EncodedState(base64_data=base64_data, count=len(cells)), grid.size)
    if grid.epoch != epoch:
        logger.debug("Dropping state restore for a grid that was restarted or replaced")
        return None
    return [(cell, to_cell_user_data(notes)) for cell, notes in zip(cells, decoded)]


def _apply_updates(updates: list[tuple[Cell, CellUserData]]) -> None:
    for cell, user_data in updates:
        cell.reset(user_data)
