import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .grid import Grid
from .types import CellDefinitionGrid, CellMode, FormatTag
from .utils import bits_per_number, code_to_bits


logger = logging.getLogger(__name__)

TAG_BITS = 8
SIZE_BITS = 5
FIXED_V2_SIZE = 9
FIXED_V2_BITS_PER_CELL = 6
FIXED_V2_MIN_PAYLOAD = FIXED_V2_BITS_PER_CELL * FIXED_V2_SIZE * FIXED_V2_SIZE
FIXED_V2_MAX_PAYLOAD = FIXED_V2_MIN_PAYLOAD + 8
MIN_GRID_SIZE_V128 = 4

MIN_CODE_SIZE_V2 = 82
MIN_CODE_SIZE_V128 = (TAG_BITS + SIZE_BITS + 2 * MIN_GRID_SIZE_V128 * MIN_GRID_SIZE_V128) / 6
MIN_CODE_SIZE = min(MIN_CODE_SIZE_V2, MIN_CODE_SIZE_V128)


@dataclass(frozen=True)
class PuzzleDefinition:
    size: int
    cells: CellDefinitionGrid

    def mode(self, row: int, col: int) -> CellMode:
        return self.cells[row][col][0]

    def value(self, row: int, col: int) -> Optional[int]:
        return self.cells[row][col][1]


def is_plausible_code(code: Optional[str]) -> bool:
    return bool(code) and len(code) > MIN_CODE_SIZE


def decode_puzzle(code: str) -> Optional[PuzzleDefinition]:
    """Decode a base64url puzzle code, returning None for anything unparseable."""
    try:
        bits = code_to_bits(code)
    except ValueError as exc:
        logger.warning("Failed to parse game from code %r: %s", code, exc)
        return None

    tag, payload = _split_tag(bits)
    result: Optional[PuzzleDefinition]
    match tag:
        case FormatTag.FIXED_V2:
            result = _parse_fixed_v2(payload)
        case FormatTag.VARIABLE_V128:
            result = _parse_variable_v128(payload)
        case FormatTag.LEGACY_V1:
            logger.warning("Puzzle code uses encoding version 1, which is no longer supported")
            result = None
        case _:
            logger.warning("Puzzle code uses unknown encoding version %s", tag)
            result = None

    if result is None:
        logger.warning("Failed to parse game from code: %s", code)
    return result


def parse_game(code: str, on_render: Optional[Callable] = None) -> Optional[Grid]:
    definition = decode_puzzle(code)
    if definition is None:
        return None
    return Grid.from_definition(definition.size, definition.cells, on_render=on_render)


def _split_tag(bits: str) -> tuple[Optional[int], str]:
    if len(bits) < TAG_BITS:
        return None, ""
    return int(bits[:TAG_BITS], 2), bits[TAG_BITS:]


def _parse_fixed_v2(payload: str) -> Optional[PuzzleDefinition]:
    if len(payload) < FIXED_V2_MIN_PAYLOAD or len(payload) > FIXED_V2_MAX_PAYLOAD:
        logger.warning("Version 2 payload has %d bits, expected %d to %d", len(payload), FIXED_V2_MIN_PAYLOAD, FIXED_V2_MAX_PAYLOAD)
        return None

    size = FIXED_V2_SIZE
    cells: CellDefinitionGrid = [[] for _ in range(size)]
    for index in range(size * size):
        field = payload[index * FIXED_V2_BITS_PER_CELL : (index + 1) * FIXED_V2_BITS_PER_CELL]
        mode = CellMode(int(field[:2], 2))
        value = int(field[2:], 2) + 1
        cells[index // size].append((mode, None if mode == CellMode.BLACK else value))
    return PuzzleDefinition(size=size, cells=cells)


def _parse_variable_v128(payload: str) -> Optional[PuzzleDefinition]:
    if len(payload) < SIZE_BITS:
        logger.warning("Version 128 payload is too short to contain a size")
        return None

    size = int(payload[:SIZE_BITS], 2)
    if size < 2:
        logger.warning("Version 128 payload declares unusable size %d", size)
        return None

    number_bits = bits_per_number(size)
    bits_per_field = 2 + number_bits
    cells: CellDefinitionGrid = []
    for row in range(size):
        cell_row = []
        for col in range(size):
            start = SIZE_BITS + (row * size + col) * bits_per_field
            number_field = payload[start + 2 : start + bits_per_field]
            if len(number_field) != number_bits:
                logger.warning("Cannot parse game: invalid value at (%d, %d)", row, col)
                return None
            is_black = payload[start] == "1"
            is_known = payload[start + 1] == "1"
            value = int(number_field, 2) + 1
            mode = _resolve_mode(is_black, is_known)
            cell_row.append((mode, None if mode == CellMode.BLACK else value))
        cells.append(cell_row)
    return PuzzleDefinition(size=size, cells=cells)


def _resolve_mode(is_black: bool, is_known: bool) -> CellMode:
    if is_black:
        return CellMode.BLACK_KNOWN if is_known else CellMode.BLACK
    return CellMode.WHITE_KNOWN if is_known else CellMode.USER
