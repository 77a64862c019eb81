"""Tests for the selection engine."""

import pytest

from ledgerlens.services.selection import SelectionEngine

PAGE = ["A", "B", "C", "D"]


@pytest.fixture
def selection():
    return SelectionEngine()


class TestToggle:
    """Tests for single and range toggles."""

    def test_plain_toggle(self, selection):
        """A click selects, a second click deselects."""
        selection.toggle("A", PAGE)
        assert selection.is_selected("A")

        selection.toggle("A", PAGE)
        assert not selection.is_selected("A")
        assert selection.last_touched_id == "A"

    def test_range_select_only_adds(self, selection):
        """Shift-click extends from the anchor and never removes."""
        selection.toggle("A", PAGE)
        selection.toggle("D", PAGE, range_gesture=True)
        assert set(selection.selected_ids) == {"A", "B", "C", "D"}

        selection.toggle("B", PAGE, range_gesture=True)
        assert set(selection.selected_ids) == {"A", "B", "C", "D"}
        assert selection.last_touched_id == "B"

    def test_range_backwards(self, selection):
        """The range works from a later anchor to an earlier row."""
        selection.toggle("C", PAGE)
        selection.toggle("A", PAGE, range_gesture=True)

        assert set(selection.selected_ids) == {"A", "B", "C"}

    def test_range_without_anchor_is_plain_toggle(self, selection):
        """Shift-click with no anchor toggles just the row."""
        selection.toggle("C", PAGE, range_gesture=True)

        assert selection.selected_ids == ("C",)

    def test_range_with_anchor_off_page_is_plain_toggle(self, selection):
        """An anchor from another page does not span pages."""
        selection.toggle("X", ["X", "Y"])
        selection.toggle("C", PAGE, range_gesture=True)

        assert set(selection.selected_ids) == {"X", "C"}

    def test_range_on_anchor_itself_toggles(self, selection):
        """Shift-clicking the anchor row toggles it off."""
        selection.toggle("B", PAGE)
        selection.toggle("B", PAGE, range_gesture=True)

        assert selection.count == 0


class TestToggleAll:
    """Tests for select-all on a page."""

    def test_selects_page(self, selection):
        """Select-all adds every row on the page."""
        selection.toggle_all(PAGE)

        assert selection.is_all_selected(PAGE)
        assert len(selection) == 4

    def test_adds_to_other_pages(self, selection):
        """Select-all keeps rows selected on other pages."""
        selection.toggle("X", ["X"])
        selection.toggle_all(PAGE)

        assert "X" in selection
        assert len(selection) == 5

    def test_all_selected_clears_everything(self, selection):
        """When the page is fully selected, select-all clears the whole selection."""
        selection.toggle("X", ["X"])
        selection.toggle_all(PAGE)
        selection.toggle_all(PAGE)

        assert selection.count == 0

    def test_empty_page_never_all_selected(self, selection):
        """An empty page does not count as fully selected."""
        assert not selection.is_all_selected([])


class TestClearAndStale:
    """Tests for clearing and stale selection."""

    def test_clear_resets_anchor(self, selection):
        """clear() drops ids and the range anchor."""
        selection.toggle("A", PAGE)
        selection.clear()
        selection.toggle("D", PAGE, range_gesture=True)

        assert selection.selected_ids == ("D",)

    def test_selection_survives_filter_change(self, selection):
        """Ids no longer reachable stay selected and are reported by outside()."""
        selection.select(["A", "B", "C"])

        assert selection.outside(["A"]) == ("B", "C")
        assert selection.count == 3

    def test_insertion_order_kept(self, selection):
        """selected_ids preserves the order ids were added."""
        selection.toggle("C", PAGE)
        selection.toggle("A", PAGE)
        selection.deselect(["C"])
        selection.toggle("D", PAGE)

        assert selection.selected_ids == ("A", "D")
