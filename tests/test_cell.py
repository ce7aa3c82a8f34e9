import gc
import unittest

from puzzle_codes import MIXED_4X4
from straights.cell import Cell, CellUserData
from straights.decoder import parse_game
from straights.grid import Grid
from straights.types import CellMode, SolvedState


class CellTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.rendered: list[Cell] = []
        self.grid = parse_game(MIXED_4X4, on_render=self.rendered.append)
        # (1, 1) is editable with value 3, (1, 2) is a known white 1
        self.cell = self.grid.get(1, 1)
        self.fixed = self.grid.get(1, 2)


class TestGuesses(CellTestCase):
    def test_set_guess_twice_clears_guess(self) -> None:
        self.cell.set_guess(2)
        self.assertEqual(self.cell.guess, 2)

        self.cell.set_guess(2)
        self.assertIsNone(self.cell.guess)

    def test_second_set_guess_clears_single_note(self) -> None:
        self.cell.set_note(2)
        self.cell.set_guess(2)
        self.assertEqual(self.cell.notes, {2})

        self.cell.set_guess(2)

        self.assertIsNone(self.cell.guess)
        self.assertEqual(self.cell.notes, set())

    def test_second_set_guess_keeps_several_notes(self) -> None:
        self.cell.set_note(1)
        self.cell.set_note(4)
        self.cell.set_guess(3)
        self.cell.set_guess(3)

        self.assertIsNone(self.cell.guess)
        self.assertEqual(self.cell.notes, {1, 4})

    def test_set_guess_keeps_notes_underneath(self) -> None:
        self.cell.set_note(1)
        self.cell.set_note(2)
        self.cell.set_guess(3)

        self.assertEqual(self.cell.guess, 3)
        self.assertEqual(self.cell.notes, {1, 2})

    def test_set_guess_replaces_other_guess(self) -> None:
        self.cell.set_guess(1)
        self.cell.set_guess(4)
        self.assertEqual(self.cell.guess, 4)

    def test_set_guess_clears_wrong_and_hint(self) -> None:
        self.cell.set_guess(1)
        self.cell.check_wrong()
        self.cell.set_hint(2)
        self.assertTrue(self.cell.wrong)

        self.cell.set_guess(4)

        self.assertFalse(self.cell.wrong)
        self.assertIsNone(self.cell.hint)

    def test_set_guess_on_fixed_cell_is_ignored(self) -> None:
        self.rendered.clear()
        self.fixed.set_guess(3)

        self.assertIsNone(self.fixed.guess)
        self.assertEqual(self.rendered, [])


class TestNotes(CellTestCase):
    def test_set_note_toggles_membership(self) -> None:
        self.cell.set_note(2)
        self.cell.set_note(4)
        self.cell.set_note(2)
        self.assertEqual(self.cell.notes, {4})

    def test_set_note_always_clears_guess(self) -> None:
        for digit in (1, 3):
            with self.subTest(digit=digit):
                self.cell.set_guess(3)
                self.cell.set_note(digit)
                self.assertIsNone(self.cell.guess)

    def test_set_note_on_fixed_cell_is_ignored(self) -> None:
        self.fixed.set_note(2)
        self.assertEqual(self.fixed.notes, set())

    def test_toggle_fills_empty_notes(self) -> None:
        self.cell.toggle_all_or_no_notes()
        self.assertEqual(self.cell.notes, {1, 2, 3, 4})

    def test_toggle_clears_full_notes(self) -> None:
        self.cell.toggle_all_or_no_notes()
        self.cell.toggle_all_or_no_notes()
        self.assertEqual(self.cell.notes, set())

    def test_toggle_leaves_partial_notes(self) -> None:
        self.cell.set_note(1)
        self.cell.set_note(2)
        self.cell.toggle_all_or_no_notes()
        self.assertEqual(self.cell.notes, {1, 2})

    def test_toggle_is_blocked_by_guess(self) -> None:
        self.cell.set_guess(3)
        self.cell.toggle_all_or_no_notes()
        self.assertEqual(self.cell.notes, set())

    def test_toggle_does_not_check_editability(self) -> None:
        # Pins existing behavior: fixed cells never hold a guess, so nothing blocks the toggle.
        self.fixed.toggle_all_or_no_notes()
        self.assertEqual(self.fixed.notes, {1, 2, 3, 4})
        self.assertEqual(self.fixed.solved_state(), SolvedState.FIXED)

    def test_clear_removes_guess_before_notes(self) -> None:
        self.cell.set_note(1)
        self.cell.set_note(2)
        self.cell.set_guess(3)

        self.cell.clear()
        self.assertIsNone(self.cell.guess)
        self.assertEqual(self.cell.notes, {1, 2})

        self.cell.clear()
        self.assertEqual(self.cell.notes, set())


class TestCorrectness(CellTestCase):
    def test_solved_states(self) -> None:
        self.assertEqual(self.fixed.solved_state(), SolvedState.FIXED)
        self.assertEqual(self.cell.solved_state(), SolvedState.BLANK)
        self.cell.set_guess(3)
        self.assertEqual(self.cell.solved_state(), SolvedState.CORRECT)
        self.cell.set_guess(2)
        self.assertEqual(self.cell.solved_state(), SolvedState.INCORRECT)

    def test_is_solved_for_fixed_and_correct(self) -> None:
        self.assertTrue(self.fixed.is_solved())
        self.assertTrue(self.grid.get(0, 0).is_solved())
        self.assertFalse(self.cell.is_solved())
        self.cell.set_guess(3)
        self.assertTrue(self.cell.is_solved())

    def test_check_wrong_flags_incorrect_guess(self) -> None:
        self.cell.set_guess(1)
        self.cell.check_wrong()
        self.assertTrue(self.cell.wrong)

    def test_check_wrong_ignores_correct_guess(self) -> None:
        self.cell.set_guess(3)
        self.cell.check_wrong(include_notes=True)
        self.assertFalse(self.cell.wrong)

    def test_check_wrong_flags_notes_missing_value_only_when_asked(self) -> None:
        self.cell.set_note(1)
        self.cell.set_note(2)

        self.cell.check_wrong(include_notes=False)
        self.assertFalse(self.cell.wrong)

        self.cell.check_wrong(include_notes=True)
        self.assertTrue(self.cell.wrong)

    def test_check_wrong_accepts_notes_containing_value(self) -> None:
        self.cell.set_note(3)
        self.cell.set_note(4)
        self.cell.check_wrong(include_notes=True)
        self.assertFalse(self.cell.wrong)

    def test_check_wrong_ignores_empty_notes(self) -> None:
        self.cell.check_wrong(include_notes=True)
        self.assertFalse(self.cell.wrong)

    def test_reveal_recomputes_wrong(self) -> None:
        self.cell.set_guess(2)
        self.cell.reveal()
        self.assertTrue(self.cell.revealed)
        self.assertTrue(self.cell.wrong)

        other = self.grid.get(2, 0)
        other.reveal()
        self.assertTrue(other.revealed)
        self.assertFalse(other.wrong)


class TestHints(CellTestCase):
    def test_set_hint_fills_empty_notes(self) -> None:
        self.cell.set_hint(2)
        self.assertEqual(self.cell.hint, 2)
        self.assertEqual(self.cell.notes, {1, 2, 3, 4})

    def test_set_hint_keeps_existing_notes(self) -> None:
        self.cell.set_note(2)
        self.cell.set_note(3)
        self.cell.set_hint(2)
        self.assertEqual(self.cell.notes, {2, 3})

    def test_clearing_hint_keeps_notes(self) -> None:
        self.cell.set_hint(2)
        self.cell.set_hint(None)
        self.assertIsNone(self.cell.hint)
        self.assertEqual(self.cell.notes, {1, 2, 3, 4})


class TestSnapshots(CellTestCase):
    def test_snapshot_is_detached(self) -> None:
        self.cell.set_note(1)
        snapshot = self.cell.snapshot()

        self.cell.set_note(2)
        self.cell.set_guess(4)

        self.assertEqual(snapshot.notes, frozenset({1}))
        self.assertIsNone(snapshot.guess)
        self.assertEqual((snapshot.row, snapshot.col, snapshot.value, snapshot.mode), (1, 1, 3, CellMode.USER))

    def test_restore_from_snapshot(self) -> None:
        self.cell.set_note(1)
        self.cell.set_note(2)
        snapshot = self.cell.snapshot()
        self.cell.set_guess(3)

        self.cell.restore_from(snapshot)
        self.cell.set_note(4)

        self.assertIsNone(self.cell.guess)
        self.assertEqual(self.cell.notes, {1, 2, 4})
        self.assertEqual(snapshot.notes, frozenset({1, 2}))

    def test_reset_clears_everything(self) -> None:
        self.cell.set_guess(1)
        self.cell.check_wrong()
        self.cell.reveal()

        self.cell.reset()

        self.assertIsNone(self.cell.guess)
        self.assertEqual(self.cell.notes, set())
        self.assertFalse(self.cell.wrong)
        self.assertFalse(self.cell.revealed)

    def test_reset_with_template_copies_user_data(self) -> None:
        self.cell.set_guess(1)
        self.cell.reset(CellUserData(notes=frozenset({2, 4})))

        self.assertIsNone(self.cell.guess)
        self.assertEqual(self.cell.notes, {2, 4})


class TestCellHelpers(CellTestCase):
    def test_json_array_per_mode(self) -> None:
        self.assertEqual(self.grid.get(0, 0).to_json_array(), [0])
        self.assertEqual(self.grid.get(0, 3).to_json_array(), [-4])
        self.assertEqual(self.fixed.to_json_array(), [1])
        self.cell.set_note(4)
        self.cell.set_note(2)
        self.assertEqual(self.cell.to_json_array(), [2, 4])
        self.cell.set_guess(3)
        self.assertEqual(self.cell.to_json_array(), [3])

    def test_mutations_request_render(self) -> None:
        self.rendered.clear()
        self.cell.set_guess(3)
        self.cell.set_note(1)
        self.assertEqual(self.rendered, [self.cell, self.cell])

    def test_cell_does_not_keep_grid_alive(self) -> None:
        grid = Grid(size=4)
        cell = grid.get(0, 0)
        self.assertEqual(cell.size, 4)

        del grid
        gc.collect()

        self.assertEqual(cell.size, 0)
        cell.set_guess(1)
        self.assertEqual(cell.guess, 1)


if __name__ == "__main__":
    unittest.main()
