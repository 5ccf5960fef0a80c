import os

os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['ENABLE_REPAIR_JOBS'] = '0'
os.environ.setdefault('SECRET_KEY', 'test-secret')

import pytest

from app import app as flask_app
from backend import catalog, queue_store
from models import (
    db,
    Placeholder,
    Project,
    ProjectTaskLink,
    QueueEntry,
    STATUS_ACTIVE,
    STATUS_INACTIVE,
    Task,
    TaskRef,
    TYPE_ERRAND,
    TYPE_PROJECT_ITEM,
    User,
)


@pytest.fixture
def app():
    flask_app.config.update(TESTING=True)
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def user(app):
    user = User(username='alice')
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def task_list(user):
    return catalog.create_list(user.id, 'Main')


@pytest.fixture
def logged_in(client, user):
    with client.session_transaction() as sess:
        sess['user_id'] = user.id
    return client


@pytest.fixture
def make_project(task_list):
    """Insert a project with Inactive tasks directly, without triggering the scheduler."""

    def _make(name, priority=3, task_names=(), list_id=None):
        project = Project(list_id=list_id or task_list.id, name=name, priority=priority, status=STATUS_ACTIVE)
        db.session.add(project)
        db.session.flush()
        for sequence, task_name in enumerate(task_names, start=1):
            task = Task(
                list_id=project.list_id,
                name=task_name,
                project_id=project.id,
                type=TYPE_PROJECT_ITEM,
                status=STATUS_INACTIVE,
            )
            db.session.add(task)
            db.session.flush()
            db.session.add(ProjectTaskLink(project_id=project.id, task_id=task.id, sequence=sequence))
        db.session.commit()
        return project

    return _make


@pytest.fixture
def make_errand(task_list):
    """Insert an Active errand and queue it at the tail."""

    def _make(name, list_id=None):
        list_id = list_id or task_list.id
        task = Task(list_id=list_id, name=name, type=TYPE_ERRAND, status=STATUS_ACTIVE)
        db.session.add(task)
        db.session.flush()
        queue_store.append_entry(list_id, TaskRef(task.id))
        db.session.commit()
        return task

    return _make


def queue_refs(list_id):
    return [entry.ref for entry in queue_store.queue_entries(list_id)]


def positions(list_id):
    return [entry.position for entry in queue_store.queue_entries(list_id)]


def project_task_statuses(project):
    db.session.expire_all()
    return [link.task.status for link in db.session.get(Project, project.id).links]


def add_placeholder(list_id, project_id, slot_index, position=None):
    position = position or queue_store.max_position(list_id) + 1
    entry = QueueEntry.from_ref(list_id, Placeholder(project_id, slot_index), position)
    db.session.add(entry)
    db.session.commit()
    return entry
