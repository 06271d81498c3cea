"""Task status state machine.

Four statuses and four commands. Each command names the statuses it may be
applied from and the single status it moves to.
"""

from __future__ import annotations

from dataclasses import dataclass

from tick.errors import TransitionError, ValidationError
from tick.models import Task, now_timestamp

CLOSED_STATUSES: frozenset[str] = frozenset({"done", "cancelled"})


@dataclass(frozen=True)
class TransitionDefinition:
    command: str
    from_states: tuple[str, ...]
    to_state: str


TRANSITIONS: dict[str, TransitionDefinition] = {
    t.command: t
    for t in (
        TransitionDefinition("start", ("open",), "in_progress"),
        TransitionDefinition("done", ("open", "in_progress"), "done"),
        TransitionDefinition("cancel", ("open", "in_progress"), "cancelled"),
        TransitionDefinition("reopen", ("done", "cancelled"), "open"),
    )
}


@dataclass(frozen=True)
class TransitionResult:
    old_status: str
    new_status: str


def get_transition(command: str) -> TransitionDefinition:
    try:
        return TRANSITIONS[command]
    except KeyError:
        allowed = ", ".join(TRANSITIONS)
        msg = f"Unknown transition '{command}'. Valid commands: {allowed}"
        raise ValidationError(msg) from None


def apply_transition(task: Task, command: str, now: str | None = None) -> TransitionResult:
    """Move *task* to the status *command* leads to, updating timestamps in place.

    Raises TransitionError, leaving the task untouched, when the command is not
    allowed from the task's current status.
    """
    definition = get_transition(command)
    old = task.status
    if old not in definition.from_states:
        msg = f"Cannot {command} task {task.id} - status is '{old}'"
        raise TransitionError(msg)
    stamp = now or now_timestamp()
    task.status = definition.to_state
    task.closed = stamp if definition.to_state in CLOSED_STATUSES else None
    task.touch(stamp)
    return TransitionResult(old_status=old, new_status=definition.to_state)
