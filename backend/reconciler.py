"""Manual repair of a list's master queue."""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from models import db, Project, ProjectTaskLink, STATUS_ACTIVE, STATUS_INACTIVE, Task

from backend import queue_store, scheduler
from backend.resolver import active_project_tasks, resolved_task_ids

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    deactivated: List[int] = field(default_factory=list)
    restored: List[int] = field(default_factory=list)
    purged: List[int] = field(default_factory=list)
    renumbered: int = 0
    reindexed: int = 0
    errors: List[str] = field(default_factory=list)
    reprocess: Optional[scheduler.ReprocessReport] = None

    @property
    def changed(self):
        promoted = bool(self.reprocess and self.reprocess.promotions)
        return bool(
            self.deactivated or self.restored or self.purged
            or self.renumbered or self.reindexed or promoted
        )

    def to_dict(self):
        return {
            'deactivated_task_ids': list(self.deactivated),
            'restored_task_ids': list(self.restored),
            'purged_entry_ids': list(self.purged),
            'renumbered_slots': self.renumbered,
            'reindexed_positions': self.reindexed,
            'errors': list(self.errors),
            'reprocess': self.reprocess.to_dict() if self.reprocess else None,
            'changed': self.changed,
        }


def deactivate_excess_actives(list_id, project_id):
    """Drop Active tasks the project's placeholders cannot show, latest sequence first."""
    active_tasks = active_project_tasks(project_id)
    excess = len(active_tasks) - queue_store.placeholder_count(list_id, project_id)
    if excess <= 0:
        return []
    deactivated = []
    for task in reversed(active_tasks[-excess:]):
        task.status = STATUS_INACTIVE
        deactivated.append(task.id)
    db.session.flush()
    return deactivated


def _project_task_ids_needing_placeholder(list_id, project_id):
    visible = resolved_task_ids(list_id, project_id)
    return [task.id for task in active_project_tasks(project_id) if task.id not in visible]


def _active_project_ids_with_tasks(list_id):
    rows = db.session.query(ProjectTaskLink.project_id).join(Task, Task.id == ProjectTaskLink.task_id).filter(
        Task.list_id == list_id,
        Task.status == STATUS_ACTIVE
    ).distinct().all()
    return sorted(row[0] for row in rows)


def _run_unit(report, label, func, *args):
    try:
        result = func(*args)
        db.session.commit()
        return result
    except Exception as exc:
        db.session.rollback()
        logger.warning("Reconcile step failed for %s: %s", label, exc)
        report.errors.append(f"{label}: {exc}")
        return None


def _deactivate_step(list_id, report):
    project_ids = [p.id for p in Project.query.filter_by(list_id=list_id, status=STATUS_ACTIVE).order_by(Project.id)]
    for project_id in project_ids:
        deactivated = _run_unit(report, f"project {project_id}", deactivate_excess_actives, list_id, project_id)
        report.deactivated.extend(deactivated or [])


def _restore_one(list_id, project_id):
    renumbered = queue_store.renumber_slots(list_id, project_id)
    restored = []
    for task_id in _project_task_ids_needing_placeholder(list_id, project_id):
        queue_store.append_placeholder(list_id, project_id)
        restored.append(task_id)
    return renumbered, restored


def _restore_step(list_id, report):
    project_ids = sorted(set(_active_project_ids_with_tasks(list_id)) | set(queue_store.placeholder_project_ids(list_id)))
    for project_id in project_ids:
        result = _run_unit(report, f"project {project_id}", _restore_one, list_id, project_id)
        if result:
            renumbered, restored = result
            report.renumbered += renumbered
            report.restored.extend(restored)


def _purge_one(list_id, project_id):
    active_count = len(active_project_tasks(project_id))
    purged = []
    for placeholder in queue_store.placeholders_for(list_id, project_id):
        if placeholder.slot_index > active_count:
            purged.append(placeholder.id)
            db.session.delete(placeholder)
    db.session.flush()
    return purged


def _purge_step(list_id, report):
    for project_id in queue_store.placeholder_project_ids(list_id):
        purged = _run_unit(report, f"project {project_id}", _purge_one, list_id, project_id)
        report.purged.extend(purged or [])


def reconcile(list_id):
    """
    Repair the queue of one list.

    Steps run in order and each project is repaired independently: one failing
    project is logged and skipped, earlier repairs are kept. Safe to re-run.
    """
    report = ReconcileReport()
    with scheduler.list_lock(list_id):
        _deactivate_step(list_id, report)
        _restore_step(list_id, report)
        _purge_step(list_id, report)
        reindexed = _run_unit(report, f"list {list_id} reindex", queue_store.reindex, list_id)
        report.reindexed = reindexed or 0
        report.reprocess = scheduler.reprocess(list_id)
    if report.errors:
        logger.warning("Reconcile of list %s finished with %s errors", list_id, len(report.errors))
    return report
