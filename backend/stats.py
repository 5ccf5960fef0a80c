"""Dashboard numbers and completed-item history for one list."""
from datetime import timedelta

from models import db, Project, ProjectTaskLink, STATUS_ACTIVE, STATUS_COMPLETED, Task, utc_now

from backend import queue_store
from backend.resolver import resolve
from services.validation_service import parse_date_filter


def _completed_query(list_id):
    return Task.query.filter(
        Task.list_id == list_id,
        Task.status == STATUS_COMPLETED,
        Task.date_completed.isnot(None)
    )


def _since(query, days, now=None):
    if days is None:
        return query
    cutoff = (now or utc_now()) - timedelta(days=days)
    return query.filter(Task.date_completed >= cutoff)


def calculate_streak(list_id, today=None):
    """Consecutive days with at least one completion, counted back from today or yesterday."""
    today = today or utc_now().date()
    days = sorted({task.date_completed.date() for task in _completed_query(list_id)}, reverse=True)
    streak = 0
    current = today
    for day in days:
        gap = (current - day).days
        if gap not in (0, 1):
            break
        streak += 1
        current = day
    return streak


def dashboard_stats(list_id, now=None):
    now = now or utc_now()
    return {
        'itemsToday': queue_store.queue_length(list_id),
        'activeProjects': Project.query.filter_by(list_id=list_id, status=STATUS_ACTIVE).count(),
        'completedThisWeek': _since(_completed_query(list_id), 7, now).count(),
        'currentStreak': calculate_streak(list_id, now.date()),
    }


def next_items(list_id, limit=5):
    entries = queue_store.queue_entries(list_id)[:max(limit, 0)]
    return [resolve(entry).to_dict() for entry in entries]


def active_projects_overview(list_id):
    projects = Project.query.filter_by(list_id=list_id, status=STATUS_ACTIVE).order_by(
        Project.priority.desc(), Project.id.asc()
    ).all()
    overview = []
    for project in projects:
        statuses = [
            row[0] for row in db.session.query(Task.status)
            .join(ProjectTaskLink, ProjectTaskLink.task_id == Task.id)
            .filter(ProjectTaskLink.project_id == project.id)
        ]
        total = len(statuses)
        completed = statuses.count(STATUS_COMPLETED)
        overview.append({
            'id': project.id,
            'name': project.name,
            'priority': project.priority,
            'totalItems': total,
            'completedItems': completed,
            'activeItems': statuses.count(STATUS_ACTIVE),
            'progress': round(completed * 100 / total) if total else 0,
        })
    return overview


def recent_activity(list_id, limit=10):
    tasks = _completed_query(list_id).order_by(Task.date_completed.desc()).limit(limit).all()
    return [
        {
            'id': task.id,
            'name': task.name,
            'dateCompleted': task.date_completed.isoformat(),
            'projectName': task.project.name if task.project else None,
        }
        for task in tasks
    ]


def completed_errands(list_id, date_filter=None):
    query = _completed_query(list_id).filter(Task.project_id.is_(None))
    query = _since(query, parse_date_filter(date_filter))
    return [task.to_dict() for task in query.order_by(Task.date_completed.desc()).all()]


def completed_project_items(list_id, project_id=None, date_filter=None):
    """Completed project tasks grouped by project, newest completion first."""
    query = _completed_query(list_id).filter(Task.project_id.isnot(None))
    if project_id is not None:
        query = query.filter(Task.project_id == project_id)
    query = _since(query, parse_date_filter(date_filter))

    grouped = {}
    for task in query.order_by(Task.date_completed.desc()).all():
        group = grouped.setdefault(task.project_id, {
            'projectId': task.project_id,
            'projectName': task.project.name if task.project else None,
            'items': [],
        })
        group['items'].append(task.to_dict())
    return list(grouped.values())
