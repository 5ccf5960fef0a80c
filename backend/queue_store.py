"""Master queue bookkeeping: ordering, positions, placeholder slots."""
from models import db, Placeholder, QueueEntry, TaskRef

from backend.errors import NotFound


def _ordered_query(list_id):
    return QueueEntry.query.filter_by(list_id=list_id).order_by(QueueEntry.position.asc(), QueueEntry.id.asc())


def queue_entries(list_id):
    return _ordered_query(list_id).all()


def queue_length(list_id):
    """Total number of entries currently in the list's queue (TNML)."""
    return QueueEntry.query.filter_by(list_id=list_id).count()


def head_entry(list_id):
    return _ordered_query(list_id).first()


def get_entry(list_id, position):
    entry = QueueEntry.query.filter_by(list_id=list_id, position=position).order_by(QueueEntry.id.asc()).first()
    if entry is None:
        raise NotFound(f"Master list entry not found at position {position}")
    return entry


def max_position(list_id):
    value = db.session.query(db.func.max(QueueEntry.position)).filter(QueueEntry.list_id == list_id).scalar()
    return value or 0


def placeholders_for(list_id, project_id):
    """A project's placeholders in slot order (queue order breaks ties)."""
    return QueueEntry.query.filter_by(list_id=list_id, placeholder_project_id=project_id).order_by(
        QueueEntry.slot_index.asc(),
        QueueEntry.position.asc(),
        QueueEntry.id.asc()
    ).all()


def placeholder_count(list_id, project_id):
    return QueueEntry.query.filter_by(list_id=list_id, placeholder_project_id=project_id).count()


def last_placeholder_position(list_id, project_id):
    """Highest queue position held by one of the project's placeholders, 0 when it has none."""
    value = db.session.query(db.func.max(QueueEntry.position)).filter(
        QueueEntry.list_id == list_id,
        QueueEntry.placeholder_project_id == project_id
    ).scalar()
    return value or 0


def next_slot_index(list_id, project_id):
    value = db.session.query(db.func.max(QueueEntry.slot_index)).filter(
        QueueEntry.list_id == list_id,
        QueueEntry.placeholder_project_id == project_id
    ).scalar()
    return (value or 0) + 1


def append_entry(list_id, ref):
    entry = QueueEntry.from_ref(list_id, ref, max_position(list_id) + 1)
    db.session.add(entry)
    db.session.flush()
    return entry


def append_placeholder(list_id, project_id):
    return append_entry(list_id, Placeholder(project_id, next_slot_index(list_id, project_id)))


def append_task_entry(list_id, task_id):
    return append_entry(list_id, TaskRef(task_id))


def insert_entry_at(list_id, entry, position):
    """Place an entry (new or already queued) at a 1-based position and renumber the rest."""
    ordered = [e for e in queue_entries(list_id) if e is not entry]
    index = min(max(position, 1), len(ordered) + 1) - 1
    ordered.insert(index, entry)
    if entry.id is None:
        db.session.add(entry)
    for idx, item in enumerate(ordered, start=1):
        if item.position != idx:
            item.position = idx
    db.session.flush()
    return entry


def shift_slots(list_id, project_id, from_slot, delta=1):
    """Move every placeholder of the project at or beyond from_slot by delta."""
    for placeholder in placeholders_for(list_id, project_id):
        if placeholder.slot_index >= from_slot:
            placeholder.slot_index += delta
    db.session.flush()


def renumber_slots(list_id, project_id):
    """Close gaps so the project's slots read 1..K in their existing order."""
    changed = 0
    for idx, placeholder in enumerate(placeholders_for(list_id, project_id), start=1):
        if placeholder.slot_index != idx:
            placeholder.slot_index = idx
            changed += 1
    if changed:
        db.session.flush()
    return changed


def placeholder_project_ids(list_id):
    rows = db.session.query(QueueEntry.placeholder_project_id).filter(
        QueueEntry.list_id == list_id,
        QueueEntry.placeholder_project_id.isnot(None)
    ).distinct().all()
    return sorted(row[0] for row in rows)


def reindex(list_id):
    """Ensure queue positions are exactly 1..N, keeping relative order. Returns rows touched."""
    changed = 0
    for idx, entry in enumerate(queue_entries(list_id), start=1):
        if entry.position != idx:
            entry.position = idx
            changed += 1
    if changed:
        db.session.flush()
    return changed
