"""Application tests for the fulfillment executor protocol."""

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError
from storefront.fulfillment.command_execution import CommandExecution, CommandExecutionStatus
from storefront.fulfillment.execution import (
    ReportCommandFailure,
    ReportCommandSuccess,
    RetryCommand,
    claim_next_command,
)
from storefront.fulfillment.queries import commands_by_status, failed_commands


def _queue(order_id="ord-001", command="kit Steve", max_attempts=3):
    item = CommandExecution.queue(
        order_id=order_id,
        package_id="pkg-001",
        username="Steve",
        command=command,
        max_attempts=max_attempts,
    )
    current_domain.repository_for(CommandExecution).add(item)
    return item


def _reload(item_id):
    return current_domain.repository_for(CommandExecution).get(item_id)


def _report_failure(item_id, error="Server offline"):
    current_domain.process(ReportCommandFailure(command_execution_id=item_id, error=error), asynchronous=False)


class TestClaim:
    def test_claims_oldest_pending_item(self):
        first = _queue(command="first")
        _queue(command="second")
        claimed = claim_next_command("worker-1")
        assert claimed.id == first.id
        assert claimed.status == CommandExecutionStatus.IN_PROGRESS.value
        assert claimed.claimed_by == "worker-1"

    def test_two_workers_get_different_items(self):
        _queue(command="first")
        _queue(command="second")
        a = claim_next_command("worker-a")
        b = claim_next_command("worker-b")
        assert {a.command, b.command} == {"first", "second"}

    def test_empty_queue_returns_none(self):
        assert claim_next_command("worker-1") is None

    def test_in_progress_items_are_not_reclaimed(self):
        _queue()
        claim_next_command("worker-1")
        assert claim_next_command("worker-2") is None


class TestReportSuccess:
    def test_marks_completed(self):
        _queue()
        item = claim_next_command("worker-1")
        current_domain.process(ReportCommandSuccess(command_execution_id=item.id), asynchronous=False)
        done = _reload(item.id)
        assert done.status == CommandExecutionStatus.COMPLETED.value
        assert done.attempts == 1

    def test_unclaimed_item_cannot_be_completed(self):
        item = _queue()
        with pytest.raises(ValidationError):
            current_domain.process(ReportCommandSuccess(command_execution_id=item.id), asynchronous=False)

    def test_unknown_item(self):
        with pytest.raises(ObjectNotFoundError):
            current_domain.process(ReportCommandSuccess(command_execution_id="missing"), asynchronous=False)


class TestReportFailure:
    def test_failure_requeues_until_ceiling(self):
        item = _queue(max_attempts=3)
        for attempt in range(1, 3):
            claim_next_command("worker-1")
            _report_failure(item.id)
            reloaded = _reload(item.id)
            assert reloaded.status == CommandExecutionStatus.PENDING.value
            assert reloaded.attempts == attempt

        claim_next_command("worker-1")
        _report_failure(item.id, error="Player not found")
        reloaded = _reload(item.id)
        assert reloaded.status == CommandExecutionStatus.FAILED.value
        assert reloaded.attempts == 3
        assert reloaded.last_error == "Player not found"

    def test_permanently_failed_items_surface_for_support(self):
        item = _queue(max_attempts=1)
        claim_next_command("worker-1")
        _report_failure(item.id)
        assert [failed.id for failed in failed_commands()] == [item.id]
        assert claim_next_command("worker-1") is None

    def test_failure_of_one_unit_does_not_block_others(self):
        first = _queue(order_id="ord-9", command="unit 1", max_attempts=1)
        _queue(order_id="ord-9", command="unit 2")
        claim_next_command("worker-1")
        _report_failure(first.id)

        claimed = claim_next_command("worker-1")
        assert claimed.command == "unit 2"


class TestOperatorRetry:
    def test_retry_resets_failed_item(self):
        item = _queue(max_attempts=1)
        claim_next_command("worker-1")
        _report_failure(item.id)

        current_domain.process(RetryCommand(command_execution_id=item.id), asynchronous=False)
        reloaded = _reload(item.id)
        assert reloaded.status == CommandExecutionStatus.PENDING.value
        assert reloaded.attempts == 0
        assert reloaded.last_error is None
        assert claim_next_command("worker-1").id == item.id

    def test_retry_of_pending_item_is_rejected(self):
        item = _queue()
        with pytest.raises(ValidationError):
            current_domain.process(RetryCommand(command_execution_id=item.id), asynchronous=False)


class TestQueueQueries:
    def test_commands_by_status(self):
        _queue(command="a")
        _queue(command="b")
        claim_next_command("worker-1")
        assert [item.command for item in commands_by_status("Pending")] == ["b"]
        assert [item.command for item in commands_by_status(CommandExecutionStatus.IN_PROGRESS)] == ["a"]
        assert len(commands_by_status()) == 2
