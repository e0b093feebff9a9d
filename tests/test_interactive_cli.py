"""Tests for the interactive pause/restore flow."""

from datetime import datetime
from io import StringIO
from unittest.mock import Mock, patch

import pytest
from hypothesis import given, strategies as st
from rich.console import Console

from eks_pause.cli.interactive import EXIT_OPERATION_FAILED, EXIT_SUCCESS, InteractiveFlow
from eks_pause.services.models import OperationResult, Snapshot


def result(success=True, skipped=False, target='deployment/rodngun/web'):
    return OperationResult(
        success=success, target=target, operation='pause',
        message="done" if success else "boom", timestamp=datetime.now(),
        duration=0.1, skipped=skipped
    )


@pytest.fixture
def captured():
    """Console whose printed objects are collected as strings."""
    console = Mock(spec=Console)
    output = []
    console.print.side_effect = lambda *args, **kwargs: output.append(" ".join(str(a) for a in args))
    return console, output


@pytest.fixture
def operations():
    ops = Mock()
    ops.summarize.side_effect = lambda results: {
        'total_operations': len(results),
        'successful_operations': sum(1 for r in results if r.success),
        'skipped_operations': sum(1 for r in results if r.skipped),
        'failed_operations': sum(1 for r in results if not r.success),
    }
    return ops


def flow(captured, config, operations, snapshot_manager, assume_yes=False):
    console, _ = captured
    return InteractiveFlow(console, config, operations, snapshot_manager, assume_yes)


class TestConfirmation:

    def test_declined_pause_touches_nothing(self, captured, config, operations, snapshot_manager):
        with patch('eks_pause.cli.interactive.Confirm.ask', return_value=False):
            code = flow(captured, config, operations, snapshot_manager).pause(dry_run=False)

        assert code == EXIT_SUCCESS
        assert "Operation cancelled" in captured[1]
        operations.pause.assert_not_called()

    def test_closed_stdin_cancels(self, config, operations, snapshot_manager, monkeypatch):
        monkeypatch.setattr("sys.stdin", StringIO(""))
        output = StringIO()
        console = Console(file=output, width=120)

        code = InteractiveFlow(console, config, operations, snapshot_manager).pause(dry_run=False)

        assert code == EXIT_SUCCESS
        assert "Operation cancelled" in output.getvalue()
        operations.pause.assert_not_called()

    def test_assume_yes_skips_prompt(self, captured, config, operations, snapshot_manager, tmp_path):
        snapshot = Snapshot(snapshot_id="eks-backup-20240101-120000", path=tmp_path, created_at=datetime.now())
        operations.pause.return_value = ([result()], snapshot)
        with patch('eks_pause.cli.interactive.Confirm.ask') as ask:
            code = flow(captured, config, operations, snapshot_manager, assume_yes=True).pause(dry_run=False)

        ask.assert_not_called()
        assert code == EXIT_SUCCESS

    def test_dry_run_does_not_prompt(self, captured, config, operations, snapshot_manager):
        operations.pause.return_value = ([result()], None)
        with patch('eks_pause.cli.interactive.Confirm.ask') as ask:
            flow(captured, config, operations, snapshot_manager).pause(dry_run=True)

        ask.assert_not_called()
        operations.pause.assert_called_once_with(dry_run=True)


class TestExitCodes:

    @given(outcomes=st.lists(st.sampled_from(['ok', 'skipped', 'failed']), min_size=1, max_size=8))
    def test_any_failure_is_non_zero(self, outcomes):
        results = [result(success=o != 'failed', skipped=o == 'skipped') for o in outcomes]
        expected = EXIT_OPERATION_FAILED if 'failed' in outcomes else EXIT_SUCCESS
        assert InteractiveFlow._exit_code(None, results) == expected


class TestOutput:

    def test_pause_reports_capture_warnings(self, captured, config, operations, snapshot_manager, tmp_path):
        snapshot = Snapshot(
            snapshot_id="eks-backup-20240101-120000", path=tmp_path / "eks-backup-20240101-120000",
            created_at=datetime.now(), warnings=["statefulsets listing failed"]
        )
        operations.pause.return_value = ([result()], snapshot)

        flow(captured, config, operations, snapshot_manager, assume_yes=True).pause(dry_run=False)

        printed = "\n".join(captured[1])
        assert "statefulsets listing failed" in printed

    def test_empty_results(self, captured, config, operations, snapshot_manager):
        flow(captured, config, operations, snapshot_manager).show_results([], "Pause Results")
        assert any("Nothing to do" in line for line in captured[1])

    def test_list_snapshots_empty(self, captured, config, snapshot_manager):
        code = flow(captured, config, None, snapshot_manager).list_snapshots()
        assert code == EXIT_SUCCESS
        assert any("No backups found" in line for line in captured[1])

    def test_restore_usage_is_an_error(self, captured, config, snapshot_manager):
        code = flow(captured, config, None, snapshot_manager).restore_usage()
        assert code == 1
        assert captured[1][0] == "Usage: eks-pause restore <backup-directory>"
