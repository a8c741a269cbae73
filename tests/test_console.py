# Tests for tabsync.output.console
# Rich-based console output

from io import StringIO
from pathlib import Path
from unittest.mock import patch

from rich.console import Console as RichConsole

from tabsync.errors import ErrorKind, FileError, SyncSummary
from tabsync.library.models import Item
from tabsync.output.console import Console, create_console
from tabsync.sync.engine import CheckResult, ConflictInfo, Resolution
from tabsync.sync.status import ItemStatus


def _make_console(verbose: bool = False, error_display_limit: int = 5) -> Console:
    """Create a console with captured output."""
    console = Console(verbose=verbose, colored=False, error_display_limit=error_display_limit)
    console._console = RichConsole(file=StringIO(), no_color=True, width=200)
    return console


def _get_output(console: Console) -> str:
    """Get captured output from console."""
    console._console.file.seek(0)
    return console._console.file.read()


class TestConsoleBasic:
    """Tests for basic console methods."""

    def test_print_error(self):
        c = _make_console()
        c.print_error("something failed")
        output = _get_output(c)
        assert "Error:" in output
        assert "something failed" in output

    def test_print_warning(self):
        c = _make_console()
        c.print_warning("be careful")
        output = _get_output(c)
        assert "Warning:" in output
        assert "be careful" in output

    def test_print_success(self):
        c = _make_console()
        c.print_success("all good")
        assert "all good" in _get_output(c)

    def test_create_console(self):
        c = create_console(verbose=True, colored=False, error_display_limit=2)
        assert c.verbose is True
        assert c.error_display_limit == 2


class TestConsoleSummary:
    """Tests for summary output."""

    def test_success(self):
        c = _make_console()
        c.print_summary(SyncSummary(operation="Sent", succeeded=3))
        output = _get_output(c)
        assert "Sent 3 file(s)" in output
        assert "error" not in output

    def test_errors_truncated(self):
        c = _make_console(error_display_limit=2)
        summary = SyncSummary(
            operation="Sent",
            succeeded=1,
            errors=[FileError(f"f{i}.pdf", ErrorKind.SOURCE_MISSING) for i in range(3)],
        )
        c.print_summary(summary)
        assert "(3 error(s): f0.pdf, f1.pdf...)" in _get_output(c)

    def test_skipped_conflicts(self):
        c = _make_console()
        summary = SyncSummary(
            operation="Retrieved",
            errors=[FileError("a.pdf", ErrorKind.CONFLICT_UNRESOLVED)],
            skipped=1,
        )
        c.print_summary(summary)
        assert "1 conflict(s) skipped" in _get_output(c)

    def test_verbose_lists_errors(self):
        c = _make_console(verbose=True)
        summary = SyncSummary(operation="Sent", errors=[FileError("[x].pdf", ErrorKind.UNKNOWN, "OSError: nope")])
        c.print_summary(summary)
        output = _get_output(c)
        assert "[x].pdf" in output
        assert "OSError: nope" in output

    def test_check_result(self):
        c = _make_console()
        c.print_check_result(CheckResult(checked=4, newly_modified=2, transitions=2))
        assert "2 modified file(s)" in _get_output(c)


class TestConsoleTables:
    """Tests for table output."""

    def test_status_table(self):
        c = _make_console()
        item = Item(key="ATTACH01", parent_key="PARENT01", path="paper.pdf")
        c.print_status_table([(item, ItemStatus.ON_TABLET, "[BaseFolder]/paper.pdf")])
        output = _get_output(c)
        assert "ATTACH01" in output
        assert "On Tablet" in output
        assert "[BaseFolder]/paper.pdf" in output

    def test_status_table_empty(self):
        c = _make_console()
        c.print_status_table([])
        assert "No items to display" in _get_output(c)


class TestConflictPrompt:
    """Tests for the conflict prompt."""

    def _conflict(self) -> ConflictInfo:
        return ConflictInfo(
            item=Item(key="ATTACH01", path="paper.pdf"),
            filename="paper.pdf",
            external_path=Path("/tablet/paper.pdf"),
            internal_path=Path("/storage/ATTACH01/paper.pdf"),
            external_mtime=1_700_000_100_000,
            internal_mtime=1_700_000_200_000,
            last_modified=1_700_000_000_000,
        )

    def test_choices(self):
        c = _make_console()
        answers = (
            ("e", Resolution.USE_EXTERNAL),
            ("i", Resolution.USE_INTERNAL),
            ("s", Resolution.SKIP),
        )
        for answer, expected in answers:
            with patch("tabsync.output.console.Prompt.ask", return_value=answer):
                assert c.resolve_conflict(self._conflict()) is expected

    def test_shows_both_paths(self):
        c = _make_console()
        with patch("tabsync.output.console.Prompt.ask", return_value="s"):
            c.resolve_conflict(self._conflict())
        output = _get_output(c)
        assert "Conflict detected" in output
        assert "/tablet/paper.pdf" in output
        assert "/storage/ATTACH01/paper.pdf" in output

    def test_confirm_batch(self):
        c = _make_console()
        with patch("tabsync.output.console.Confirm.ask", return_value=False) as ask:
            assert c.confirm_batch("Send", 7) is False
        assert "Send 7 files?" in ask.call_args[0][0]
