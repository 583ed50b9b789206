"""Tests for the interactive selection engine."""
import numpy as np
import pytest

from pixelseg.selection import SelectionEngine
from pixelseg.types import (
    BrushMode,
    InvalidDimensionsError,
    SelectionOp,
    SessionClosedError,
    SessionState,
)
from pixelseg.undo import UndoStack

from conftest import BLUE, RED, WHITE, solid_image


class TestMagicWand:
    """Test cases for magic wand selection."""

    def test_contiguous_selects_single_cell(self, checkerboard):
        """Test that zero tolerance does not bleed through diagonal corners."""
        engine = SelectionEngine(checkerboard)

        count = engine.magic_wand((0, 0), tolerance=0, contiguous=True)

        expected = np.zeros((8, 8), dtype=np.uint8)
        expected[0:2, 0:2] = 255
        assert count == 4
        np.testing.assert_array_equal(engine.mask, expected)

    def test_global_selects_every_matching_cell(self, checkerboard):
        engine = SelectionEngine(checkerboard)

        engine.magic_wand((0, 0), tolerance=0, contiguous=False)

        is_red = np.all(checkerboard == RED, axis=2)
        np.testing.assert_array_equal(engine.mask > 0, is_red)
        assert np.count_nonzero(engine.mask) == 32

    def test_tolerance_admits_similar_colors(self):
        image = solid_image(4, 4, (100, 100, 100, 255))
        image[:, 2:] = (110, 100, 100, 255)
        engine = SelectionEngine(image)

        assert engine.magic_wand((0, 0), tolerance=5) == 8
        assert engine.magic_wand((0, 0), tolerance=10) == 16

    def test_add_and_subtract(self, checkerboard):
        """Test that ADD unions and SUBTRACT clears only matched pixels."""
        engine = SelectionEngine(checkerboard)

        engine.magic_wand((0, 0), tolerance=0)
        engine.magic_wand((2, 0), tolerance=0, op=SelectionOp.ADD)
        assert np.count_nonzero(engine.mask) == 8

        engine.magic_wand((0, 0), tolerance=0, op=SelectionOp.SUBTRACT)
        assert np.count_nonzero(engine.mask) == 4
        assert engine.mask[0, 2] == 255

    def test_replace_discards_previous(self, checkerboard):
        engine = SelectionEngine(checkerboard)

        engine.magic_wand((0, 0), tolerance=0)
        engine.magic_wand((2, 0), tolerance=0)

        assert engine.mask[0, 0] == 0
        assert engine.mask[0, 2] == 255

    @pytest.mark.parametrize("seed", [(-1, 0), (0, -1), (8, 0), (0, 8), (100.5, 3)])
    def test_off_canvas_seed_is_noop(self, checkerboard, seed):
        engine = SelectionEngine(checkerboard)

        assert engine.magic_wand(seed, tolerance=50) == 0
        assert not engine.has_selection()
        assert len(engine.history) == 0
        assert engine.state is SessionState.IDLE


class TestErasers:
    """Test cases for bulk and flood erasing."""

    def test_bulk_erase_removes_disjoint_regions(self, two_patches):
        """Test that matching is global rather than contiguous."""
        engine = SelectionEngine(two_patches)

        erased = engine.bulk_color_erase(RED, tolerance=30)

        assert erased == 32
        assert np.all(engine.buffer[2:6, 2:6, 3] == 0)
        assert np.all(engine.buffer[12:16, 12:16, 3] == 0)
        assert engine.buffer[0, 0, 3] == 255

    def test_bulk_erase_waits_for_commit(self, two_patches):
        """Test that erasures reach the caller's buffer only on commit."""
        engine = SelectionEngine(two_patches)

        engine.bulk_color_erase(RED, tolerance=30)
        assert two_patches[3, 3, 3] == 255

        engine.commit()
        assert two_patches[3, 3, 3] == 0
        assert two_patches[13, 13, 3] == 0

    def test_cancel_discards_erasures(self, two_patches):
        original = two_patches.copy()
        engine = SelectionEngine(two_patches)

        engine.bulk_color_erase(RED, tolerance=30)
        engine.flood_erase((0, 0), tolerance=10)
        engine.cancel()

        np.testing.assert_array_equal(two_patches, original)
        np.testing.assert_array_equal(engine.buffer, original)

    def test_cancel_discards_erasures_beyond_history(self):
        """Test that erasures pushed out of the undo history are still discarded."""
        image = solid_image(4, 4, WHITE)
        image[0, :] = RED
        original = image.copy()
        engine = SelectionEngine(image, history=UndoStack(2))

        engine.bulk_color_erase(RED, tolerance=10)
        for _ in range(5):
            engine.invert_selection()
        engine.cancel()

        np.testing.assert_array_equal(image, original)

    def test_bulk_erase_is_alpha_aware(self):
        """Test that a half-transparent pixel of the same RGB is not matched."""
        image = solid_image(2, 2, RED)
        image[1, 1] = (255, 0, 0, 100)
        engine = SelectionEngine(image)

        erased = engine.bulk_color_erase(RED, tolerance=30)

        assert erased == 3
        assert engine.buffer[1, 1, 3] == 100

    def test_flood_erase_is_contiguous(self, two_patches):
        engine = SelectionEngine(two_patches)

        erased = engine.flood_erase((3, 3), tolerance=30)

        assert erased == 16
        assert np.all(engine.buffer[2:6, 2:6, 3] == 0)
        assert np.all(engine.buffer[12:16, 12:16, 3] == 255)

    def test_flood_erase_on_transparent_seed(self):
        image = solid_image(3, 3, (0, 0, 0, 0))
        engine = SelectionEngine(image)

        assert engine.flood_erase((1, 1), tolerance=255) == 0
        assert len(engine.history) == 0


class TestBrush:
    """Test cases for brush strokes."""

    def test_hard_dab(self):
        engine = SelectionEngine(solid_image(20, 20, WHITE))

        engine.brush_stroke((10, 10), (10, 10), radius=3)

        assert engine.mask[10, 10] == 255
        assert engine.mask[10, 13] == 255
        assert engine.mask[10, 14] == 0
        assert engine.mask[12, 12] == 255
        assert engine.mask[13, 13] == 0

    def test_soft_dab_fades_linearly(self):
        engine = SelectionEngine(solid_image(20, 20, WHITE))

        engine.brush_stroke((10, 10), (10, 10), radius=4, hardness=0)

        assert engine.mask[10, 10] == 255
        assert engine.mask[10, 11] == 191
        assert engine.mask[10, 12] == 127
        assert engine.mask[10, 14] == 0

    def test_stroke_has_no_gaps(self):
        engine = SelectionEngine(solid_image(20, 40, WHITE))

        engine.brush_stroke((2, 10), (30, 10), radius=2)

        assert np.all(engine.mask[10, 2:31] == 255)

    def test_paint_keeps_stronger_value(self):
        engine = SelectionEngine(solid_image(20, 20, WHITE))
        engine.brush_stroke((10, 10), (10, 10), radius=3)

        engine.brush_stroke((10, 10), (10, 10), radius=3, hardness=0)

        assert engine.mask[10, 12] == 255

    def test_erase_subtracts(self):
        engine = SelectionEngine(solid_image(20, 20, WHITE), mask=np.full((20, 20), 255, dtype=np.uint8))

        engine.brush_stroke((10, 10), (10, 10), radius=4, hardness=0, mode=BrushMode.ERASE)

        assert engine.mask[10, 10] == 0
        assert engine.mask[10, 11] == 64
        assert engine.mask[0, 0] == 255

    def test_off_canvas_stroke_is_noop(self):
        engine = SelectionEngine(solid_image(10, 10, WHITE))

        assert not engine.brush_stroke((50, 50), (60, 60), radius=3)
        assert len(engine.history) == 0

    def test_partially_off_canvas_stroke_is_clipped(self):
        engine = SelectionEngine(solid_image(10, 10, WHITE))

        assert engine.brush_stroke((0, 0), (0, 0), radius=2)
        assert engine.mask[0, 0] == 255
        assert engine.mask[2, 0] == 255

    def test_continuation_samples_share_one_snapshot(self):
        engine = SelectionEngine(solid_image(20, 20, WHITE))

        engine.brush_stroke((2, 2), (2, 2), radius=2)
        engine.brush_stroke((2, 2), (8, 2), radius=2, record_undo=False)
        engine.brush_stroke((8, 2), (14, 2), radius=2, record_undo=False)

        assert len(engine.history) == 1
        engine.undo()
        assert not engine.has_selection()

    def test_radius_validation(self):
        engine = SelectionEngine(solid_image(4, 4, WHITE))
        with pytest.raises(ValueError):
            engine.brush_stroke((1, 1), (1, 1), radius=0)


class TestLasso:
    """Test cases for lasso selection."""

    def test_square_polygon(self):
        engine = SelectionEngine(solid_image(12, 12, WHITE))

        assert engine.lasso_close([(2, 2), (8, 2), (8, 8), (2, 8)])

        assert engine.mask[5, 5] == 255
        assert engine.mask[2, 2] == 255
        assert engine.mask[0, 0] == 0
        assert engine.mask[10, 10] == 0

    def test_unions_with_existing_selection(self):
        engine = SelectionEngine(solid_image(12, 12, WHITE))
        engine.mask[11, 11] = 255

        engine.lasso_close([(2, 2), (8, 2), (8, 8), (2, 8)])

        assert engine.mask[11, 11] == 255

    @pytest.mark.parametrize("points", [[], [(1, 1)], [(1, 1), (5, 5)]])
    def test_degenerate_lasso_is_noop(self, points):
        engine = SelectionEngine(solid_image(12, 12, WHITE))

        assert not engine.lasso_close(points)
        assert not engine.has_selection()
        assert len(engine.history) == 0


class TestSelectionMorphology:
    """Test cases for morphology applied through the engine."""

    def test_grow_and_shrink_selection(self):
        engine = SelectionEngine(solid_image(10, 10, WHITE))
        engine.mask[5, 5] = 255

        assert engine.grow_selection(1)
        assert np.count_nonzero(engine.mask) == 9
        assert engine.shrink_selection(1)
        assert np.count_nonzero(engine.mask) == 1

    def test_empty_selection_short_circuits(self):
        engine = SelectionEngine(solid_image(10, 10, WHITE))

        assert not engine.grow_selection(3)
        assert not engine.feather_selection(3)
        assert not engine.clear_selection()
        assert len(engine.history) == 0

    def test_invert_selection(self):
        engine = SelectionEngine(solid_image(3, 3, WHITE))

        engine.invert_selection()

        assert np.all(engine.mask == 255)


class TestUndo:
    """Test cases for undo through the engine."""

    def test_round_trip(self, two_patches):
        """Test that N undos restore mask and pixels bit-for-bit."""
        original_pixels = two_patches.copy()
        engine = SelectionEngine(two_patches)
        original_mask = engine.mask.copy()

        engine.magic_wand((3, 3), tolerance=10)
        engine.brush_stroke((0, 0), (10, 10), radius=2, hardness=40)
        engine.bulk_color_erase(WHITE, tolerance=10)
        engine.lasso_close([(1, 1), (18, 1), (9, 18)])
        engine.grow_selection(2)
        engine.flood_erase((3, 3), tolerance=5)
        engine.feather_selection(2)
        engine.invert_selection()

        for _ in range(8):
            assert engine.undo()

        np.testing.assert_array_equal(engine.mask, original_mask)
        np.testing.assert_array_equal(engine.buffer, original_pixels)

    def test_undo_empty_is_noop(self):
        engine = SelectionEngine(solid_image(3, 3, WHITE))
        assert not engine.undo()

    def test_history_is_capped(self):
        engine = SelectionEngine(solid_image(5, 5, WHITE))

        for _ in range(25):
            engine.invert_selection()

        assert len(engine.history) == 20


class TestSession:
    """Test cases for the session lifecycle."""

    def test_preview_does_not_touch_buffer(self, two_patches):
        original = two_patches.copy()
        engine = SelectionEngine(two_patches)
        engine.magic_wand((3, 3), tolerance=0)
        assert engine.state is SessionState.SELECTING

        preview = engine.preview()

        assert engine.state is SessionState.PREVIEWING
        assert np.all(preview[2:6, 2:6, 3] == 0)
        np.testing.assert_array_equal(engine.buffer, original)

    def test_tool_after_preview_returns_to_selecting(self, two_patches):
        engine = SelectionEngine(two_patches)
        engine.preview()

        engine.magic_wand((3, 3), tolerance=0)

        assert engine.state is SessionState.SELECTING

    def test_commit_applies_and_closes(self, two_patches):
        engine = SelectionEngine(two_patches)
        engine.magic_wand((3, 3), tolerance=0)

        engine.commit()

        assert engine.state is SessionState.COMMITTED
        assert np.all(two_patches[2:6, 2:6, 3] == 0)
        assert np.all(two_patches[12:16, 12:16, 3] == 255)
        with pytest.raises(SessionClosedError):
            engine.magic_wand((3, 3), tolerance=0)

    def test_cancel_discards(self, two_patches):
        original = two_patches.copy()
        engine = SelectionEngine(two_patches)
        engine.magic_wand((3, 3), tolerance=0)

        engine.cancel()

        assert engine.state is SessionState.CANCELLED
        assert not engine.has_selection()
        np.testing.assert_array_equal(two_patches, original)
        with pytest.raises(SessionClosedError):
            engine.commit()

    def test_mask_dimension_mismatch(self):
        with pytest.raises(InvalidDimensionsError):
            SelectionEngine(solid_image(4, 4, BLUE), mask=np.zeros((4, 5), dtype=np.uint8))
