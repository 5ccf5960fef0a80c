from dataclasses import dataclass
from datetime import datetime

import pytz
from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

STATUS_ACTIVE = 'Active'
STATUS_INACTIVE = 'Inactive'
STATUS_COMPLETED = 'Completed'
STATUSES = (STATUS_ACTIVE, STATUS_INACTIVE, STATUS_COMPLETED)

TYPE_ERRAND = 'Errand'
TYPE_PROJECT_ITEM = 'ProjectItem'
TASK_TYPES = (TYPE_ERRAND, TYPE_PROJECT_ITEM)

ENTRY_ERRAND = 'Errand'
ENTRY_PLACEHOLDER = 'ProjectPlaceholder'


def utc_now():
    """Naive UTC timestamp, the way every date column is stored."""
    return datetime.now(pytz.UTC).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


@dataclass(frozen=True)
class TaskRef:
    """Queue reference pointing straight at one task (an errand)."""
    task_id: int


@dataclass(frozen=True)
class Placeholder:
    """Queue reference meaning "the Nth active task of a project"."""
    project_id: int
    slot_index: int


class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utc_now)

    lists = db.relationship('TaskList', backref='owner', lazy=True, cascade="all, delete-orphan")


class TaskList(db.Model):
    __tablename__ = 'task_list'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    is_default = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=utc_now)

    projects = db.relationship('Project', backref='task_list', lazy=True, cascade="all, delete-orphan")
    tasks = db.relationship('Task', backref='task_list', lazy=True, cascade="all, delete-orphan")
    queue_entries = db.relationship(
        'QueueEntry',
        backref='task_list',
        lazy=True,
        cascade="all, delete-orphan",
        order_by="QueueEntry.position"
    )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'is_default': bool(self.is_default),
            'created_at': _iso(self.created_at),
            'queue_length': len(self.queue_entries),
        }


class Project(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    list_id = db.Column(db.Integer, db.ForeignKey('task_list.id'), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    priority = db.Column(db.Integer, nullable=False, default=3)  # 1 (low) .. 5 (most urgent)
    status = db.Column(db.String(20), nullable=False, default=STATUS_ACTIVE)
    created_at = db.Column(db.DateTime, default=utc_now)
    due_date = db.Column(db.Date, nullable=True)

    links = db.relationship(
        'ProjectTaskLink',
        backref='project',
        lazy=True,
        cascade="all, delete-orphan",
        order_by="ProjectTaskLink.sequence"
    )

    def ordered_tasks(self):
        return [link.task for link in self.links if link.task is not None]

    def to_dict(self, include_tasks=False):
        data = {
            'id': self.id,
            'list_id': self.list_id,
            'name': self.name,
            'priority': self.priority,
            'status': self.status,
            'created_at': _iso(self.created_at),
            'due_date': _iso(self.due_date),
        }
        if include_tasks:
            data['tasks'] = [
                dict(link.task.to_dict(), sequence=link.sequence)
                for link in self.links if link.task is not None
            ]
        return data


class Task(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    list_id = db.Column(db.Integer, db.ForeignKey('task_list.id'), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    project_id = db.Column(db.Integer, db.ForeignKey('project.id'), nullable=True)
    type = db.Column(db.String(20), nullable=False, default=TYPE_ERRAND)
    status = db.Column(db.String(20), nullable=False, default=STATUS_ACTIVE)
    date_added = db.Column(db.DateTime, default=utc_now)
    date_completed = db.Column(db.DateTime, nullable=True)  # set iff Completed

    project = db.relationship('Project', backref=db.backref('tasks', lazy=True))

    def is_errand(self):
        return self.project_id is None

    def mark_completed(self, when=None):
        self.status = STATUS_COMPLETED
        self.date_completed = when or utc_now()

    def to_dict(self):
        return {
            'id': self.id,
            'list_id': self.list_id,
            'name': self.name,
            'project_id': self.project_id,
            'type': self.type,
            'status': self.status,
            'date_added': _iso(self.date_added),
            'date_completed': _iso(self.date_completed),
        }


class ProjectTaskLink(db.Model):
    """A task's place in its project's intrinsic ordering."""
    __tablename__ = 'project_task_link'

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey('project.id'), nullable=False)
    task_id = db.Column(db.Integer, db.ForeignKey('task.id'), nullable=False, unique=True)
    sequence = db.Column(db.Integer, nullable=False)

    task = db.relationship(
        'Task',
        backref=db.backref('link', uselist=False, cascade="all, delete-orphan")
    )


class QueueEntry(db.Model):
    """One slot of a list's master queue: a task reference or a project placeholder."""
    __tablename__ = 'master_list'
    __table_args__ = (
        db.CheckConstraint(
            '(task_id IS NULL) <> (placeholder_project_id IS NULL)',
            name='ck_master_list_single_ref'
        ),
        db.CheckConstraint(
            '(placeholder_project_id IS NULL) = (slot_index IS NULL)',
            name='ck_master_list_slot'
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    list_id = db.Column(db.Integer, db.ForeignKey('task_list.id'), nullable=False)
    position = db.Column(db.Integer, nullable=False)
    task_id = db.Column(db.Integer, db.ForeignKey('task.id'), nullable=True)
    placeholder_project_id = db.Column(db.Integer, db.ForeignKey('project.id'), nullable=True)
    slot_index = db.Column(db.Integer, nullable=True)

    @classmethod
    def from_ref(cls, list_id, ref, position):
        if isinstance(ref, TaskRef):
            return cls(list_id=list_id, position=position, task_id=ref.task_id)
        if isinstance(ref, Placeholder):
            return cls(
                list_id=list_id,
                position=position,
                placeholder_project_id=ref.project_id,
                slot_index=ref.slot_index,
            )
        raise TypeError(f"Unsupported queue reference: {ref!r}")

    @property
    def ref(self):
        if self.task_id is not None:
            return TaskRef(self.task_id)
        return Placeholder(self.placeholder_project_id, self.slot_index)

    @property
    def is_placeholder(self):
        return self.placeholder_project_id is not None

    def to_dict(self):
        data = {'id': self.id, 'position': self.position}
        if self.is_placeholder:
            data.update({
                'type': ENTRY_PLACEHOLDER,
                'projectId': self.placeholder_project_id,
                'placeholderIndex': self.slot_index,
            })
        else:
            data.update({'type': ENTRY_ERRAND, 'itemId': self.task_id})
        return data
