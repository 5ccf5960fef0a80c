"""
Whole-list export, import and reset.

The export format uses camelCase keys and opaque ids:

    {"projects":   [{projectId, name, priority, status, createDate, dueDate, itemIds}],
     "items":      [{itemId, projectId, name, status, type, dateAdded, dateCompleted}],
     "masterList": [{"type": "Errand", itemId}
                    | {"type": "ProjectPlaceholder", projectId, placeholderIndex}]}

Imports validate the whole payload before touching the database, then replace
the list's contents. Payload ids are only used to wire references together;
rows get fresh database ids.
"""
import json
import logging

from models import (
    db,
    ENTRY_ERRAND,
    ENTRY_PLACEHOLDER,
    Placeholder,
    Project,
    ProjectTaskLink,
    QueueEntry,
    STATUS_ACTIVE,
    STATUS_COMPLETED,
    Task,
    TASK_TYPES,
    TaskRef,
    TYPE_ERRAND,
    TYPE_PROJECT_ITEM,
    utc_now,
)

from backend import queue_store, scheduler
from backend.errors import IntegrityError, OperationResult, QueueError, ValidationError
from services.validation_service import (
    normalize_priority,
    normalize_status,
    parse_datetime_value,
    parse_day_value,
)

logger = logging.getLogger(__name__)


def _iso(value):
    return value.isoformat() if value else None


def export_snapshot(list_id):
    projects = Project.query.filter_by(list_id=list_id).order_by(Project.id.asc()).all()
    tasks = Task.query.filter_by(list_id=list_id).order_by(Task.id.asc()).all()
    return {
        'projects': [
            {
                'projectId': project.id,
                'name': project.name,
                'priority': project.priority,
                'status': project.status,
                'createDate': _iso(project.created_at),
                'dueDate': _iso(project.due_date),
                'itemIds': [link.task_id for link in project.links],
            }
            for project in projects
        ],
        'items': [
            {
                'itemId': task.id,
                'projectId': task.project_id,
                'name': task.name,
                'status': task.status,
                'type': task.type,
                'dateAdded': _iso(task.date_added),
                'dateCompleted': _iso(task.date_completed),
            }
            for task in tasks
        ],
        'masterList': [
            _export_entry(entry) for entry in queue_store.queue_entries(list_id)
        ],
    }


def _export_entry(entry):
    ref = entry.ref
    if isinstance(ref, Placeholder):
        return {'type': ENTRY_PLACEHOLDER, 'projectId': ref.project_id, 'placeholderIndex': ref.slot_index}
    return {'type': ENTRY_ERRAND, 'itemId': ref.task_id}


def _load_payload(payload):
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError:
            raise ValidationError("Invalid JSON format")
    if not isinstance(payload, dict):
        raise ValidationError("Snapshot must be a JSON object")
    for key in ('projects', 'items', 'masterList'):
        if not isinstance(payload.get(key), list):
            raise ValidationError(f"Missing or invalid {key} array")
    return payload


def _is_ref(value):
    return isinstance(value, (str, int)) and not isinstance(value, bool)


def _check_ref(value, message):
    if value and not _is_ref(value):
        raise ValidationError(message)


def _check_date(raw, key, label):
    value = raw.get(key)
    if value and parse_datetime_value(value) is None:
        raise ValidationError(f"Invalid {key} in {label}: {value}")


def _check_structure(data):
    for project in data['projects']:
        if not isinstance(project, dict) or not project.get('projectId') or not str(project.get('name') or '').strip():
            raise ValidationError("Invalid project structure")
        _check_ref(project['projectId'], "Invalid project structure")
        label = f"project {project['projectId']}"
        status = project.get('status') or STATUS_ACTIVE
        normalize_status(status)
        for key in ('createDate', 'createdAt', 'dateCreated'):
            _check_date(project, key, label)
        due = project.get('dueDate')
        if due and parse_day_value(str(due)[:10]) is None:
            raise ValidationError(f"Invalid dueDate in {label}: {due}")
        item_ids = project.get('itemIds') or []
        if not isinstance(item_ids, list) or not all(_is_ref(item_id) for item_id in item_ids):
            raise ValidationError("Invalid project structure")

    for item in data['items']:
        if not isinstance(item, dict) or not item.get('itemId') or not str(item.get('name') or '').strip():
            raise ValidationError("Invalid item structure")
        _check_ref(item['itemId'], "Invalid item structure")
        _check_ref(item.get('projectId'), "Invalid item structure")
        if not item.get('type') or not item.get('status'):
            raise ValidationError("Invalid item structure")
        if item['type'] not in TASK_TYPES:
            raise ValidationError(f"Invalid item type: {item['type']}")
        label = f"item {item['itemId']}"
        for key in ('dateAdded', 'dateCompleted'):
            _check_date(item, key, label)
        if normalize_status(item['status']) == STATUS_COMPLETED and not item.get('dateCompleted'):
            raise ValidationError(f"Completed {label} has no dateCompleted")

    for entry in data['masterList']:
        if not isinstance(entry, dict):
            raise ValidationError("Invalid master list entry")
        if entry.get('type') not in (ENTRY_ERRAND, ENTRY_PLACEHOLDER):
            raise ValidationError(f"Invalid master list entry type: {entry.get('type')}")
        if entry['type'] == ENTRY_PLACEHOLDER:
            if not entry.get('projectId'):
                raise ValidationError("Missing project ID in master list entry")
            _check_ref(entry['projectId'], "Invalid project ID in master list entry")
            index = entry.get('placeholderIndex')
            if index is not None and (not isinstance(index, int) or isinstance(index, bool) or index < 1):
                raise ValidationError(f"Invalid placeholder index: {index}")
        else:
            _check_ref(entry.get('itemId'), "Invalid item ID in master list entry")


def _check_references(data):
    item_ids = {item['itemId'] for item in data['items']}
    project_ids = {project['projectId'] for project in data['projects']}
    if len(item_ids) != len(data['items']):
        raise IntegrityError("Duplicate item id in snapshot")
    if len(project_ids) != len(data['projects']):
        raise IntegrityError("Duplicate project id in snapshot")

    linked = {}
    for project in data['projects']:
        for item_id in project.get('itemIds') or []:
            if item_id not in item_ids:
                raise IntegrityError(f"Invalid item reference in project: {item_id}")
            if item_id in linked:
                raise IntegrityError(f"Item {item_id} is listed in more than one project")
            linked[item_id] = project['projectId']

    for item in data['items']:
        project_id = item.get('projectId')
        if project_id and project_id not in project_ids:
            raise IntegrityError(f"Invalid project reference in item {item['itemId']}: {project_id}")
        if project_id and linked.get(item['itemId'], project_id) != project_id:
            raise IntegrityError(f"Item {item['itemId']} is linked to a different project than it names")

    for entry in data['masterList']:
        if entry['type'] == ENTRY_ERRAND:
            if not entry.get('itemId') or entry['itemId'] not in item_ids:
                raise IntegrityError(f"Invalid item reference in master list: {entry.get('itemId')}")
        elif entry['projectId'] not in project_ids:
            raise IntegrityError(f"Invalid project reference in master list: {entry['projectId']}")


def validate_snapshot(payload):
    """Parse and check a snapshot without touching the database. Returns the payload dict."""
    data = _load_payload(payload)
    _check_structure(data)
    _check_references(data)
    return data


def _clear(list_id):
    QueueEntry.query.filter_by(list_id=list_id).delete()
    project_ids = [row[0] for row in db.session.query(Project.id).filter(Project.list_id == list_id)]
    if project_ids:
        ProjectTaskLink.query.filter(ProjectTaskLink.project_id.in_(project_ids)).delete(synchronize_session='fetch')
    Task.query.filter_by(list_id=list_id).delete()
    Project.query.filter_by(list_id=list_id).delete()
    db.session.flush()
    # Bulk deletes bypass the identity map; drop stale instances before repopulating.
    db.session.expire_all()


def _populate(list_id, data):
    project_map = {}
    for raw in data['projects']:
        project = Project(
            list_id=list_id,
            name=str(raw['name']).strip(),
            priority=normalize_priority(raw.get('priority')),
            status=normalize_status(raw.get('status') or STATUS_ACTIVE),
            created_at=parse_datetime_value(
                raw.get('createDate') or raw.get('createdAt') or raw.get('dateCreated')
            ) or utc_now(),
            due_date=parse_day_value(str(raw['dueDate'])[:10]) if raw.get('dueDate') else None,
        )
        db.session.add(project)
        project_map[raw['projectId']] = project

    owner = {}
    for raw in data['projects']:
        for item_id in raw.get('itemIds') or []:
            owner[item_id] = raw['projectId']

    task_map = {}
    for raw in data['items']:
        payload_project = raw.get('projectId') or owner.get(raw['itemId'])
        project = project_map.get(payload_project) if payload_project else None
        status = normalize_status(raw['status'])
        completed = parse_datetime_value(raw.get('dateCompleted')) if status == STATUS_COMPLETED else None
        task = Task(
            list_id=list_id,
            name=str(raw['name']).strip(),
            project=project,
            type=TYPE_PROJECT_ITEM if project is not None else TYPE_ERRAND,
            status=status,
            date_added=parse_datetime_value(raw.get('dateAdded')) or utc_now(),
            date_completed=completed,
        )
        db.session.add(task)
        task_map[raw['itemId']] = task
    db.session.flush()

    for raw in data['projects']:
        project = project_map[raw['projectId']]
        listed = list(raw.get('itemIds') or [])
        # Items naming the project without appearing in its itemIds go to the end.
        listed += [item_id for item_id, task in task_map.items() if task.project is project and item_id not in listed]
        for sequence, item_id in enumerate(listed, start=1):
            db.session.add(ProjectTaskLink(project_id=project.id, task_id=task_map[item_id].id, sequence=sequence))

    for position, raw in enumerate(data['masterList'], start=1):
        if raw['type'] == ENTRY_ERRAND:
            ref = TaskRef(task_map[raw['itemId']].id)
        else:
            ref = Placeholder(project_map[raw['projectId']].id, raw.get('placeholderIndex') or 1)
        db.session.add(QueueEntry.from_ref(list_id, ref, position))
    db.session.flush()
    return len(project_map), len(task_map), len(data['masterList'])


def import_snapshot(list_id, payload):
    """
    Replace the list's projects, tasks and queue with the snapshot's.

    Nothing is written when the payload is malformed (ValidationError) or
    references ids it does not define (IntegrityError).
    """
    try:
        data = validate_snapshot(payload)
    except QueueError as exc:
        logger.info("Rejected snapshot import for list %s: %s", list_id, exc)
        return OperationResult.failure(exc)

    with scheduler.list_lock(list_id):
        try:
            _clear(list_id)
            projects, items, entries = _populate(list_id, data)
            db.session.commit()
        except Exception as exc:
            db.session.rollback()
            logger.exception("Snapshot import failed for list %s", list_id)
            return OperationResult.failure(exc)
    logger.info("Imported %s projects, %s items, %s queue entries into list %s", projects, items, entries, list_id)
    return OperationResult.ok(projects=projects, items=items, entries=entries)


def reset_list(list_id):
    """Remove every project, task and queue entry from the list."""
    with scheduler.list_lock(list_id):
        _clear(list_id)
        db.session.commit()
    logger.info("Reset list %s", list_id)
    return OperationResult.ok(list_id=list_id)
