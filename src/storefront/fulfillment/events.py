"""Domain events for the CommandExecution aggregate."""

from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text

from storefront.domain import storefront


@storefront.event(part_of="CommandExecution")
class CommandQueued:
    """A game-server command was queued for a completed order."""

    __version__ = 1

    command_execution_id = Identifier(required=True)
    order_id = Identifier(required=True)
    package_id = Identifier(required=True)
    username = String(required=True)
    command = Text(required=True)
    queued_at = DateTime(required=True)


@storefront.event(part_of="CommandExecution")
class CommandClaimed:
    """An executor took the command for execution."""

    __version__ = 1

    command_execution_id = Identifier(required=True)
    claimed_by = String(required=True)
    claimed_at = DateTime(required=True)


@storefront.event(part_of="CommandExecution")
class CommandExecuted:
    """The game server accepted the command."""

    __version__ = 1

    command_execution_id = Identifier(required=True)
    order_id = Identifier(required=True)
    attempts = Integer(required=True)
    executed_at = DateTime(required=True)


@storefront.event(part_of="CommandExecution")
class CommandExecutionFailed:
    """An execution attempt failed. `permanent` once the attempt ceiling is reached."""

    __version__ = 1

    command_execution_id = Identifier(required=True)
    order_id = Identifier(required=True)
    attempts = Integer(required=True)
    max_attempts = Integer(required=True)
    error = String()
    permanent = Boolean(required=True)
    failed_at = DateTime(required=True)


@storefront.event(part_of="CommandExecution")
class CommandRetryRequested:
    """An operator sent a permanently failed command back to the queue."""

    __version__ = 1

    command_execution_id = Identifier(required=True)
    order_id = Identifier(required=True)
    requested_at = DateTime(required=True)
