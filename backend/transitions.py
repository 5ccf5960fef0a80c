"""User-facing state transitions on master queue positions."""
import logging

from models import (
    db,
    Placeholder,
    ProjectTaskLink,
    QueueEntry,
    STATUS_ACTIVE,
    STATUS_COMPLETED,
    STATUS_INACTIVE,
    Task,
    TaskRef,
    TYPE_ERRAND,
    TYPE_PROJECT_ITEM,
    utc_now,
)

from backend import queue_store, scheduler
from backend.errors import InvalidState, OperationResult, QueueError
from backend.reconciler import deactivate_excess_actives
from backend.resolver import active_project_tasks, resolve_task
from services.validation_service import normalize_name

logger = logging.getLogger(__name__)


def _settle(list_id):
    """Dense positions, commit, then let the scheduler top the queue up."""
    queue_store.reindex(list_id)
    db.session.commit()
    scheduler.reprocess(list_id)


def _run(list_id, operation, *args):
    with scheduler.list_lock(list_id):
        try:
            return operation(list_id, *args)
        except QueueError as exc:
            db.session.rollback()
            logger.info("Queue operation %s failed for list %s: %s", operation.__name__, list_id, exc)
            return OperationResult.failure(exc)
        except Exception as exc:
            db.session.rollback()
            logger.exception("Queue operation %s crashed for list %s", operation.__name__, list_id)
            return OperationResult.failure(exc)


def _complete_entry(list_id, entry, task):
    ref = entry.ref
    task.mark_completed(utc_now())
    db.session.delete(entry)
    db.session.flush()
    if isinstance(ref, Placeholder):
        queue_store.renumber_slots(list_id, ref.project_id)


def _complete(list_id, position):
    entry = queue_store.get_entry(list_id, position)
    task = resolve_task(entry)
    _complete_entry(list_id, entry, task)
    _settle(list_id)
    return OperationResult.ok(task_id=task.id)


def _bring_project_forward(list_id, project_id):
    """Put a placeholder for the project at the head of the queue. Returns False when it has nothing left."""
    next_task = scheduler.next_inactive_task(project_id)
    if next_task is not None:
        next_task.status = STATUS_ACTIVE
        queue_store.shift_slots(list_id, project_id, 1)
        entry = QueueEntry.from_ref(list_id, Placeholder(project_id, 1), 1)
        queue_store.insert_entry_at(list_id, entry, 1)
        return True

    existing = queue_store.placeholders_for(list_id, project_id)
    if existing:
        queue_store.insert_entry_at(list_id, existing[0], 1)
        return True
    return False


def _complete_and_advance(list_id, position):
    entry = queue_store.get_entry(list_id, position)
    task = resolve_task(entry)
    project_id = task.project_id
    _complete_entry(list_id, entry, task)

    if project_id is None:
        _settle(list_id)
        return OperationResult.ok(task_id=task.id, brought_forward=False,
                                  message='Item completed (no project association)')

    brought_forward = _bring_project_forward(list_id, project_id)
    _settle(list_id)
    message = 'Next item from same project brought forward' if brought_forward else 'No more items in this project'
    return OperationResult.ok(task_id=task.id, brought_forward=brought_forward, message=message)


def _split_errand(list_id, entry, text2):
    new_task = Task(list_id=list_id, name=text2, type=TYPE_ERRAND, status=STATUS_ACTIVE)
    db.session.add(new_task)
    db.session.flush()
    new_entry = QueueEntry.from_ref(list_id, TaskRef(new_task.id), entry.position + 1)
    queue_store.insert_entry_at(list_id, new_entry, entry.position + 1)
    return new_task


def _split_project_item(list_id, entry, task, text2):
    project_id = entry.placeholder_project_id
    link = task.link
    if link is None:
        raise InvalidState(f"Task {task.id} is not sequenced in project {project_id}")
    rank = [t.id for t in active_project_tasks(project_id)].index(task.id) + 1

    later_links = ProjectTaskLink.query.filter(
        ProjectTaskLink.project_id == project_id,
        ProjectTaskLink.sequence > link.sequence
    ).all()
    for later in later_links:
        later.sequence += 1

    new_task = Task(
        list_id=list_id,
        name=text2,
        project_id=project_id,
        type=TYPE_PROJECT_ITEM,
        status=STATUS_ACTIVE,
    )
    db.session.add(new_task)
    db.session.flush()
    db.session.add(ProjectTaskLink(project_id=project_id, task_id=new_task.id, sequence=link.sequence + 1))

    queue_store.shift_slots(list_id, project_id, rank + 1)
    new_entry = QueueEntry.from_ref(list_id, Placeholder(project_id, rank + 1), entry.position + 1)
    queue_store.insert_entry_at(list_id, new_entry, entry.position + 1)
    queue_store.renumber_slots(list_id, project_id)
    deactivate_excess_actives(list_id, project_id)
    return new_task


def _take_a_bite(list_id, position, text1, text2):
    text1 = normalize_name(text1, "text1")
    text2 = normalize_name(text2, "text2")
    entry = queue_store.get_entry(list_id, position)
    task = resolve_task(entry)
    task.name = text1

    if entry.is_placeholder:
        new_task = _split_project_item(list_id, entry, task, text2)
    else:
        new_task = _split_errand(list_id, entry, text2)
    _settle(list_id)
    return OperationResult.ok(task_id=task.id, new_task_id=new_task.id)


def _edit(list_id, position, name):
    name = normalize_name(name)
    entry = queue_store.get_entry(list_id, position)
    task = resolve_task(entry)
    task.name = name
    db.session.commit()
    return OperationResult.ok(task_id=task.id)


def _delete(list_id, position):
    entry = queue_store.get_entry(list_id, position)
    if entry.is_placeholder:
        raise InvalidState("Project placeholders cannot be deleted from the master list")
    task_id = entry.task_id
    task = db.session.get(Task, task_id)
    if task is not None and task.status != STATUS_COMPLETED:
        task.status = STATUS_INACTIVE
    db.session.delete(entry)
    db.session.flush()
    _settle(list_id)
    return OperationResult.ok(task_id=task_id)


def complete_item(list_id, position):
    return _run(list_id, _complete, position)


def complete_item_and_advance(list_id, position):
    return _run(list_id, _complete_and_advance, position)


def take_a_bite(list_id, position, text1, text2):
    return _run(list_id, _take_a_bite, position, text1, text2)


def edit_item(list_id, position, name):
    return _run(list_id, _edit, position, name)


def delete_item(list_id, position):
    return _run(list_id, _delete, position)
