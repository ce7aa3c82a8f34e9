import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

from straights.config import Settings, load_settings
from straights.decoder import is_plausible_code, parse_game
from straights.encoder import BitmaskEncoder
from straights.envelope import restore_state_async, restore_state_base64_async
from straights.grid import Grid


def run(code: str) -> Grid:
    if not isinstance(code, str):
        raise ValueError("code must be a string")
    if not is_plausible_code(code):
        raise ValueError("code is too short to be a puzzle code")
    grid = parse_game(code)
    if grid is None:
        raise ValueError("code is not a valid puzzle code")
    return grid


def run_with_state(code: str, state: Any = None, settings: Optional[Settings] = None) -> Grid:
    grid = run(code)
    if state is None:
        return grid
    encoder = BitmaskEncoder((settings or Settings()).encoder)
    if isinstance(state, str):
        restored = asyncio.run(restore_state_base64_async(grid, state, encoder))
    else:
        restored = asyncio.run(restore_state_async(grid, state, encoder))
    if not restored:
        raise ValueError("state could not be restored onto this puzzle")
    return grid


def load_game_from_file(input_path: str) -> tuple[str, Optional[Any]]:
    path = Path(input_path)
    try:
        payload: Any = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValueError(f"input file not found: {input_path}") from exc
    except json.JSONDecodeError as exc:
        raise ValueError(f"input file is not valid JSON: {input_path}") from exc

    if not isinstance(payload, dict):
        raise ValueError("JSON root must be an object")

    code = payload.get("code")
    if code is None:
        raise ValueError("JSON must include 'code'")
    return code, payload.get("state")


def describe(grid: Grid) -> dict[str, Any]:
    return {
        "size": grid.size,
        "grid_rows": grid.grid_rows(),
        "percent_solved": grid.percent_solved(),
        "black_mask": grid.black_mask_code(),
    }


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Decode a Str8ts puzzle code and show the grid")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--code", help="Puzzle code")
    source.add_argument("--input", help="Path to a JSON file with code and optional state")
    parser.add_argument("--state", help="Shared state string to apply on top of the puzzle")
    parser.add_argument("--config", help="Path to a JSON settings file")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of the grid text")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ...)")
    return parser


if __name__ == "__main__":
    args = _build_parser().parse_args()
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    try:
        if args.input:
            code, state = load_game_from_file(args.input)
        else:
            code, state = args.code, None
        settings = load_settings(args.config)
        grid = run_with_state(code, args.state or state, settings)
        if args.json:
            print(json.dumps(describe(grid), indent=2))
        else:
            print("\n".join(grid.grid_rows()))
    except ValueError as exc:
        raise SystemExit(f"Error: {exc}")
