"""Creation and maintenance of lists, projects and tasks around the master queue."""
import functools
import logging

from models import (
    db,
    Project,
    ProjectTaskLink,
    QueueEntry,
    STATUS_ACTIVE,
    STATUS_INACTIVE,
    Task,
    TaskList,
    TYPE_ERRAND,
    TYPE_PROJECT_ITEM,
)

from backend import queue_store, scheduler
from backend.errors import NotFound, OperationResult, QueueError, ValidationError
from services.validation_service import (
    normalize_name,
    normalize_priority,
    normalize_status,
    parse_day_value,
)

logger = logging.getLogger(__name__)


def _get_or_raise(model, object_id, label):
    obj = db.session.get(model, object_id) if object_id is not None else None
    if obj is None:
        raise NotFound(f"{label} not found")
    return obj


def _guarded(func):
    """Turn QueueError into a failed OperationResult, rolling back pending writes."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except QueueError as exc:
            db.session.rollback()
            return OperationResult.failure(exc)
    return wrapper


def renumber_sequences(project_id):
    links = ProjectTaskLink.query.filter_by(project_id=project_id).order_by(
        ProjectTaskLink.sequence.asc(), ProjectTaskLink.id.asc()
    ).all()
    for idx, link in enumerate(links, start=1):
        if link.sequence != idx:
            link.sequence = idx
    db.session.flush()


# --- Lists ---

def create_list(user_id, name):
    name = normalize_name(name, "List name")
    if TaskList.query.filter_by(user_id=user_id, name=name).first():
        raise ValidationError("A list with this name already exists")
    is_first = TaskList.query.filter_by(user_id=user_id).first() is None
    task_list = TaskList(user_id=user_id, name=name, is_default=is_first)
    db.session.add(task_list)
    db.session.commit()
    return task_list


def get_default_list(user_id):
    """The user's default list, else their oldest list, else None."""
    default = TaskList.query.filter_by(user_id=user_id, is_default=True).first()
    if default:
        return default
    return TaskList.query.filter_by(user_id=user_id).order_by(TaskList.created_at.asc(), TaskList.id.asc()).first()


def rename_list(task_list, name):
    name = normalize_name(name, "List name")
    clash = TaskList.query.filter(
        TaskList.user_id == task_list.user_id,
        TaskList.name == name,
        TaskList.id != task_list.id
    ).first()
    if clash:
        raise ValidationError("A list with this name already exists")
    task_list.name = name
    db.session.commit()
    return task_list


def set_default_list(task_list):
    TaskList.query.filter(
        TaskList.user_id == task_list.user_id,
        TaskList.id != task_list.id
    ).update({TaskList.is_default: False})
    task_list.is_default = True
    db.session.commit()
    return task_list


def delete_list(task_list):
    """Delete a list with everything in it; the oldest remaining list becomes the default."""
    user_id = task_list.user_id
    list_id = task_list.id
    was_default = task_list.is_default
    with scheduler.list_lock(list_id):
        for entry in list(task_list.queue_entries):
            db.session.delete(entry)
        db.session.flush()
        db.session.expire(task_list, ["queue_entries"])
        db.session.delete(task_list)
        db.session.flush()
    scheduler.discard_list_lock(list_id)
    if was_default:
        replacement = get_default_list(user_id)
        if replacement:
            replacement.is_default = True
    db.session.commit()


# --- Tasks ---

@_guarded
def create_task(list_id, name, project_id=None):
    """Errands join the queue tail at once; project tasks wait Inactive for the scheduler."""
    name = normalize_name(name, "Item name")
    with scheduler.list_lock(list_id):
        if not project_id:
            task = Task(list_id=list_id, name=name, type=TYPE_ERRAND, status=STATUS_ACTIVE)
            db.session.add(task)
            db.session.flush()
            queue_store.append_task_entry(list_id, task.id)
        else:
            project = db.session.get(Project, project_id)
            if project is None or project.list_id != list_id:
                raise NotFound("Project not found")
            task = Task(
                list_id=list_id,
                name=name,
                project_id=project.id,
                type=TYPE_PROJECT_ITEM,
                status=STATUS_INACTIVE,
            )
            db.session.add(task)
            db.session.flush()
            next_sequence = (db.session.query(db.func.max(ProjectTaskLink.sequence)).filter(
                ProjectTaskLink.project_id == project.id
            ).scalar() or 0) + 1
            db.session.add(ProjectTaskLink(project_id=project.id, task_id=task.id, sequence=next_sequence))
        db.session.commit()
        task_id = task.id
        scheduler.reprocess(list_id)
    return OperationResult.ok(item_id=task_id)


@_guarded
def rename_task(task_id, name):
    name = normalize_name(name, "Item name")
    task = _get_or_raise(Task, task_id, "Item")
    task.name = name
    db.session.commit()
    return OperationResult.ok(item_id=task.id)


@_guarded
def delete_project_task(task_id):
    """
    Remove a task from its project outright.

    Direct queue references are dropped and positions reindexed, but project
    placeholders are left alone; reconcile trims any that become stale.
    """
    task = _get_or_raise(Task, task_id, "Item")
    list_id = task.list_id
    project_id = task.project_id
    with scheduler.list_lock(list_id):
        QueueEntry.query.filter_by(task_id=task.id).delete()
        db.session.delete(task)
        db.session.flush()
        if project_id is not None:
            renumber_sequences(project_id)
        queue_store.reindex(list_id)
        db.session.commit()
    return OperationResult.ok(item_id=task_id)


# --- Projects ---

@_guarded
def create_project(list_id, name, priority=None, due_date=None):
    """New projects start Active and enqueue nothing until the next reprocess."""
    project = Project(
        list_id=list_id,
        name=normalize_name(name, "Project name"),
        priority=normalize_priority(priority),
        status=STATUS_ACTIVE,
        due_date=parse_day_value(due_date) if due_date else None,
    )
    db.session.add(project)
    db.session.commit()
    return OperationResult.ok(project_id=project.id)


@_guarded
def update_project(project_id, name=None, priority=None, status=None, due_date=None):
    project = _get_or_raise(Project, project_id, "Project")
    if name is not None:
        project.name = normalize_name(name, "Project name")
    if priority is not None:
        project.priority = normalize_priority(priority)
    if status is not None:
        project.status = normalize_status(status)
    if due_date is not None:
        project.due_date = parse_day_value(due_date) if due_date else None
    db.session.commit()
    list_id = project.list_id
    scheduler.reprocess(list_id)
    return OperationResult.ok(project_id=project_id)


@_guarded
def delete_project(project_id):
    project = _get_or_raise(Project, project_id, "Project")
    list_id = project.list_id
    with scheduler.list_lock(list_id):
        task_ids = [task.id for task in project.tasks]
        QueueEntry.query.filter_by(placeholder_project_id=project.id).delete()
        if task_ids:
            QueueEntry.query.filter(QueueEntry.task_id.in_(task_ids)).delete()
        for task in list(project.tasks):
            db.session.delete(task)
        db.session.flush()
        db.session.expire(project, ["tasks", "links"])
        db.session.delete(project)
        db.session.flush()
        queue_store.reindex(list_id)
        db.session.commit()
        logger.info("Deleted project %s (%s tasks) from list %s", project_id, len(task_ids), list_id)
        scheduler.reprocess(list_id)
    return OperationResult.ok(project_id=project_id)


@_guarded
def move_project_task(project_id, task_id, direction):
    """Swap a task with its neighbour in the project sequence ('up' or 'down')."""
    if direction not in ('up', 'down'):
        raise ValidationError("direction must be 'up' or 'down'")
    current = ProjectTaskLink.query.filter_by(project_id=project_id, task_id=task_id).first()
    if current is None:
        raise NotFound("Item link not found")
    target_sequence = current.sequence - 1 if direction == 'up' else current.sequence + 1
    adjacent = ProjectTaskLink.query.filter_by(project_id=project_id, sequence=target_sequence).first()
    if adjacent is None:
        return OperationResult(success=False, error="Item is already at the edge of the project", reason='invalid_state')
    current.sequence, adjacent.sequence = adjacent.sequence, current.sequence
    db.session.commit()
    return OperationResult.ok(project_id=project_id, item_id=task_id, sequence=current.sequence)


def list_projects(list_id):
    return Project.query.filter_by(list_id=list_id).order_by(Project.priority.desc(), Project.id.asc()).all()
