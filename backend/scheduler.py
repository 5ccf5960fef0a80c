"""
Master list reprocessing.

Projects feed the queue one placeholder at a time. A project becomes "ready"
to contribute again once its newest placeholder has drifted far enough from
the tail relative to the queue length:

    readiness = 1 - last_placeholder_position / queue_length
    ready     = readiness > 1 / priority

so priority 5 projects come back after 20% of the queue has grown behind
them while priority 1 projects only get seeded into an empty queue or via the
head-of-queue guarantee.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from models import db, Project, ProjectTaskLink, STATUS_ACTIVE, STATUS_INACTIVE, Task

from backend import queue_store
from backend.resolver import active_project_tasks
from services.validation_service import normalize_priority

logger = logging.getLogger(__name__)

MAX_REPROCESS_ITERATIONS = 100

_list_locks = {}
_list_locks_guard = threading.Lock()


def list_lock(list_id):
    """Re-entrant lock serializing every queue mutation for one list."""
    with _list_locks_guard:
        lock = _list_locks.get(list_id)
        if lock is None:
            lock = threading.RLock()
            _list_locks[list_id] = lock
        return lock


def discard_list_lock(list_id):
    """Forget a deleted list's lock."""
    with _list_locks_guard:
        _list_locks.pop(list_id, None)


@dataclass
class ActivationOutcome:
    promoted: bool = False
    project_id: Optional[int] = None
    task_id: Optional[int] = None
    entry_id: Optional[int] = None
    error: Optional[str] = None


@dataclass
class ReprocessReport:
    iterations: int = 0
    promotions: List[ActivationOutcome] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    capped: bool = False

    def to_dict(self):
        return {
            'iterations': self.iterations,
            'promoted_task_ids': [outcome.task_id for outcome in self.promotions],
            'errors': list(self.errors),
            'capped': self.capped,
        }


def active_projects(list_id):
    """Active projects, most urgent first; id keeps ties deterministic."""
    return Project.query.filter_by(list_id=list_id, status=STATUS_ACTIVE).order_by(
        Project.priority.desc(), Project.id.asc()
    ).all()


def next_inactive_task(project_id):
    return (
        Task.query.join(ProjectTaskLink, ProjectTaskLink.task_id == Task.id)
        .filter(ProjectTaskLink.project_id == project_id, Task.status == STATUS_INACTIVE)
        .order_by(ProjectTaskLink.sequence.asc())
        .first()
    )


def readiness_score(last_position, queue_length):
    if last_position == 0:
        return 1.0
    if queue_length == 0:
        return None
    return 1 - (last_position / queue_length)


def ping_threshold(priority):
    return 1 / normalize_priority(priority)


def is_ready(list_id, project, queue_length):
    score = readiness_score(queue_store.last_placeholder_position(list_id, project.id), queue_length)
    return score is not None and score > ping_threshold(project.priority)


def activate_next(list_id, project_id):
    """
    Promote the project's lowest-sequence Inactive task and queue a placeholder for it at the tail.

    The status change is committed before the placeholder is appended; when the
    append fails the task stays Active without a placeholder until reconcile repairs it.
    """
    task = next_inactive_task(project_id)
    if task is None:
        return ActivationOutcome(project_id=project_id)
    task_id = task.id

    try:
        task.status = STATUS_ACTIVE
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        logger.warning("Failed to activate task %s of project %s: %s", task_id, project_id, exc)
        return ActivationOutcome(project_id=project_id, error=str(exc))

    try:
        entry = queue_store.append_placeholder(list_id, project_id)
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        logger.warning(
            "Task %s activated but placeholder append failed for project %s: %s",
            task_id, project_id, exc
        )
        return ActivationOutcome(project_id=project_id, task_id=task_id, error=str(exc))

    return ActivationOutcome(promoted=True, project_id=project_id, task_id=task_id, entry_id=entry.id)


def _attempt(list_id, project_id, report):
    outcome = activate_next(list_id, project_id)
    if outcome.promoted:
        report.promotions.append(outcome)
    elif outcome.error:
        report.errors.append(f"project {project_id}: {outcome.error}")
    return outcome.promoted


def _reprocess_step(list_id, project_ids, report):
    """One pass of the loop; True when something was promoted and the loop must restart."""
    queue_length = queue_store.queue_length(list_id)

    if queue_length == 0:
        for project_id in project_ids:
            if _attempt(list_id, project_id, report):
                return True
        return False

    head = queue_store.head_entry(list_id)
    if head is not None and head.is_placeholder:
        head_project_id = head.placeholder_project_id
        if not active_project_tasks(head_project_id):
            if _attempt(list_id, head_project_id, report):
                return True

    for project_id in project_ids:
        try:
            project = db.session.get(Project, project_id)
            ready = project is not None and is_ready(list_id, project, queue_length)
        except Exception as exc:
            db.session.rollback()
            logger.warning("Failed to ping project %s: %s", project_id, exc)
            report.errors.append(f"project {project_id}: {exc}")
            continue
        if ready and _attempt(list_id, project_id, report):
            # Queue length changed; restart so every project is measured against it.
            return True
    return False


def reprocess(list_id):
    """Fill the list's queue until no Active project is ready. Never raises."""
    report = ReprocessReport()
    with list_lock(list_id):
        try:
            project_ids = [project.id for project in active_projects(list_id)]
        except Exception as exc:
            db.session.rollback()
            logger.warning("Reprocess of list %s could not load projects: %s", list_id, exc)
            report.errors.append(str(exc))
            return report
        if not project_ids:
            return report

        progress = True
        while progress:
            if report.iterations >= MAX_REPROCESS_ITERATIONS:
                report.capped = True
                logger.info("Reprocess of list %s stopped after %s iterations", list_id, report.iterations)
                break
            report.iterations += 1
            try:
                progress = _reprocess_step(list_id, project_ids, report)
            except Exception as exc:
                db.session.rollback()
                logger.warning("Reprocess of list %s aborted: %s", list_id, exc)
                report.errors.append(str(exc))
                break
    return report
