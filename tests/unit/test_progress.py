from __future__ import annotations

from unittest.mock import Mock, patch

from sheetflow.services.progress import SheetProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    """Test that is_tty_enabled returns sys.stdout.isatty()."""
    with patch('sys.stdout.isatty', return_value=True):
        assert is_tty_enabled() is True

    with patch('sys.stdout.isatty', return_value=False):
        assert is_tty_enabled() is False


class TestSheetProgressTracker:
    """Test cases for SheetProgressTracker class."""

    def test_init_with_tty_enabled(self):
        with patch('sheetflow.services.progress.is_tty_enabled', return_value=True), \
             patch('sheetflow.services.progress.tqdm') as mock_tqdm:

            tracker = SheetProgressTracker(3, description="processing HRBulkUpload")

            assert tracker.total_sheets == 3
            assert tracker.completed == 0
            assert tracker.enabled is True
            mock_tqdm.assert_called_once_with(
                total=3,
                desc="processing HRBulkUpload",
                unit="sheet",
                leave=False,
                ncols=80,
                ascii=True,
            )

    def test_init_with_tty_disabled(self):
        with patch('sheetflow.services.progress.is_tty_enabled', return_value=False):
            tracker = SheetProgressTracker(3)

            assert tracker.enabled is False
            assert tracker.pbar is None

    def test_disabled_explicitly_or_without_sheets(self):
        with patch('sheetflow.services.progress.is_tty_enabled', return_value=True), \
             patch('sheetflow.services.progress.tqdm') as mock_tqdm:

            assert SheetProgressTracker(3, enabled=False).pbar is None
            assert SheetProgressTracker(0).pbar is None
            mock_tqdm.assert_not_called()

    def test_finish_sheet_with_tty_enabled(self):
        mock_pbar = Mock()

        with patch('sheetflow.services.progress.is_tty_enabled', return_value=True), \
             patch('sheetflow.services.progress.tqdm', return_value=mock_pbar):

            tracker = SheetProgressTracker(2)
            tracker.finish_sheet("Employees", rows=12)

            assert tracker.completed == 1
            mock_pbar.set_postfix.assert_called_once_with(sheet="Employees", rows=12)
            mock_pbar.update.assert_called_once_with(1)

    def test_finish_sheet_with_tty_disabled(self):
        """Counting still happens without a bar."""
        with patch('sheetflow.services.progress.is_tty_enabled', return_value=False):
            tracker = SheetProgressTracker(2)
            tracker.finish_sheet("Employees")
            tracker.finish_sheet("Departments")

            assert tracker.completed == 2

    def test_context_manager_closes_bar(self):
        mock_pbar = Mock()

        with patch('sheetflow.services.progress.is_tty_enabled', return_value=True), \
             patch('sheetflow.services.progress.tqdm', return_value=mock_pbar):

            with SheetProgressTracker(3) as tracker:
                assert isinstance(tracker, SheetProgressTracker)

            mock_pbar.close.assert_called_once()
            assert tracker.pbar is None
