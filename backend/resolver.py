"""Map queue entries (task references and project placeholders) to concrete tasks."""
from dataclasses import asdict, dataclass
from typing import List, Optional

from models import db, Placeholder, Project, ProjectTaskLink, STATUS_ACTIVE, Task

from backend import queue_store
from backend.errors import InvalidState

NO_ACTIVE_ITEM = 'No Active Items'


@dataclass
class ResolvedEntry:
    entry_id: int
    position: int
    kind: str
    item_name: str
    task_id: Optional[int] = None
    project_id: Optional[int] = None
    project_name: Optional[str] = None
    slot_index: Optional[int] = None

    @property
    def has_task(self):
        return self.task_id is not None

    def to_dict(self):
        return asdict(self)


def active_project_tasks(project_id) -> List[Task]:
    """A project's Active tasks in sequence order."""
    return (
        Task.query.join(ProjectTaskLink, ProjectTaskLink.task_id == Task.id)
        .filter(ProjectTaskLink.project_id == project_id, Task.status == STATUS_ACTIVE)
        .order_by(ProjectTaskLink.sequence.asc())
        .all()
    )


def _task_for_slot(active_tasks, slot_index):
    index = (slot_index or 0) - 1
    if 0 <= index < len(active_tasks):
        return active_tasks[index]
    # Slot indices can run ahead of a shrinking active set; show the first active task instead.
    if active_tasks:
        return active_tasks[0]
    return None


def _find_task(entry) -> Optional[Task]:
    ref = entry.ref
    if isinstance(ref, Placeholder):
        return _task_for_slot(active_project_tasks(ref.project_id), ref.slot_index)
    task = db.session.get(Task, ref.task_id)
    if task is None or task.status != STATUS_ACTIVE:
        return None
    return task


def resolve(entry) -> ResolvedEntry:
    """Display-ready view of an entry; falls back to the sentinel name when nothing is active."""
    ref = entry.ref
    resolved = ResolvedEntry(
        entry_id=entry.id,
        position=entry.position,
        kind='placeholder' if isinstance(ref, Placeholder) else 'errand',
        item_name=NO_ACTIVE_ITEM,
    )
    if isinstance(ref, Placeholder):
        resolved.slot_index = ref.slot_index
        project = db.session.get(Project, ref.project_id)
        if project is None:
            return resolved
        resolved.project_id = project.id
        resolved.project_name = project.name

    task = _find_task(entry)
    if task is None:
        return resolved
    resolved.task_id = task.id
    resolved.item_name = task.name
    if task.project_id is not None and resolved.project_id is None:
        resolved.project_id = task.project_id
        resolved.project_name = task.project.name if task.project else None
    return resolved


def resolve_task(entry) -> Task:
    """Strict resolution used by mutations: the Active task the entry denotes, or InvalidState."""
    task = _find_task(entry)
    if task is None:
        if entry.is_placeholder:
            raise InvalidState(f"No active item found for project {entry.placeholder_project_id}")
        raise InvalidState(f"Master list entry at position {entry.position} has no active item")
    return task


def resolved_task_ids(list_id, project_id):
    """Ids of the tasks the project's queued placeholders currently point at."""
    active_tasks = active_project_tasks(project_id)
    ids = set()
    for placeholder in queue_store.placeholders_for(list_id, project_id):
        task = _task_for_slot(active_tasks, placeholder.slot_index)
        if task is not None:
            ids.add(task.id)
    return ids
