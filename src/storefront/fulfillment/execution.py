"""Executor protocol — claim, report and retry fulfillment work items.

The game-server executor lives outside this service. It polls with
`ClaimNextCommand`, runs the command it gets back and reports the result
with `ReportCommandSuccess` or `ReportCommandFailure`. Operators send
permanently failed items back to the queue with `RetryCommand`.

Claims are guarded by the aggregate version: when two executors load the
same pending item, the second save fails with `ExpectedVersionError` and
`claim_next_command()` reports that executor as having claimed nothing.
"""

import structlog
from protean import handle
from protean.exceptions import ExpectedVersionError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.fulfillment.command_execution import CommandExecution, CommandExecutionStatus

logger = structlog.get_logger(__name__)


@storefront.command(part_of="CommandExecution")
class ClaimNextCommand:
    """Take the oldest pending work item for execution."""

    worker_id = String(required=True, max_length=255)


@storefront.command(part_of="CommandExecution")
class ReportCommandSuccess:
    command_execution_id = Identifier(required=True)


@storefront.command(part_of="CommandExecution")
class ReportCommandFailure:
    command_execution_id = Identifier(required=True)
    error = String(max_length=2000)


@storefront.command(part_of="CommandExecution")
class RetryCommand:
    """Operator request to run a permanently failed item again."""

    command_execution_id = Identifier(required=True)


@storefront.command_handler(part_of=CommandExecution)
class CommandExecutionHandler:
    @handle(ClaimNextCommand)
    def claim_next(self, command):
        repo = current_domain.repository_for(CommandExecution)
        pending = repo._dao.query.filter(status=CommandExecutionStatus.PENDING.value).all().items
        for candidate in sorted(pending, key=lambda item: item.created_at):
            item = repo.get(candidate.id)
            if not item.is_claimable:
                continue
            item.claim(command.worker_id)
            repo.add(item)
            logger.info(
                "Command claimed",
                command_execution_id=str(item.id),
                order_id=str(item.order_id),
                worker_id=command.worker_id,
            )
            return str(item.id)
        return None

    @handle(ReportCommandSuccess)
    def report_success(self, command):
        repo = current_domain.repository_for(CommandExecution)
        item = repo.get(command.command_execution_id)
        item.record_success()
        repo.add(item)
        logger.info(
            "Command executed",
            command_execution_id=str(item.id),
            order_id=str(item.order_id),
            attempts=item.attempts,
        )

    @handle(ReportCommandFailure)
    def report_failure(self, command):
        repo = current_domain.repository_for(CommandExecution)
        item = repo.get(command.command_execution_id)
        item.record_failure(command.error)
        repo.add(item)

        log = logger.bind(
            command_execution_id=str(item.id),
            order_id=str(item.order_id),
            attempts=item.attempts,
            max_attempts=item.max_attempts,
            error=item.last_error,
        )
        if item.status == CommandExecutionStatus.FAILED.value:
            log.error("Command failed permanently")
        else:
            log.warning("Command attempt failed, requeued")

    @handle(RetryCommand)
    def retry(self, command):
        repo = current_domain.repository_for(CommandExecution)
        item = repo.get(command.command_execution_id)
        item.reset_for_retry()
        repo.add(item)
        logger.info("Command requeued by operator", command_execution_id=str(item.id), order_id=str(item.order_id))


def claim_next_command(worker_id: str) -> CommandExecution | None:
    """Claim the oldest pending item for `worker_id`, or None when there is nothing to do."""
    try:
        claimed_id = current_domain.process(ClaimNextCommand(worker_id=worker_id), asynchronous=False)
    except ExpectedVersionError:
        logger.info("Claim lost to another executor", worker_id=worker_id)
        return None
    if claimed_id is None:
        return None
    return current_domain.repository_for(CommandExecution).get(claimed_id)
