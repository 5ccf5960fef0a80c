from backend import queue_store, scheduler, transitions
from backend.resolver import resolve
from models import db, Placeholder, Project, STATUS_ACTIVE, STATUS_COMPLETED, STATUS_INACTIVE, Task, TaskRef

from conftest import add_placeholder, positions, project_task_statuses, queue_refs


def _sequences(project):
    db.session.expire_all()
    return [(link.task.name, link.sequence) for link in db.session.get(Project, project.id).links]


def test_complete_errand_removes_entry_and_stamps_date(task_list, make_errand):
    errand = make_errand('Buy milk')
    other = make_errand('Call bank')

    result = transitions.complete_item(task_list.id, 1)

    assert result.success
    task = db.session.get(Task, errand.id)
    assert task.status == STATUS_COMPLETED
    assert task.date_completed is not None
    assert queue_refs(task_list.id) == [TaskRef(other.id)]
    assert positions(task_list.id) == [1]


def test_complete_missing_position_reports_not_found(task_list):
    result = transitions.complete_item(task_list.id, 3)
    assert not result.success
    assert result.reason == 'not_found'


def test_complete_placeholder_without_active_task_is_invalid_state(task_list, make_project, make_errand):
    make_errand('Buy milk')
    project = make_project('Garden', task_names=[])
    add_placeholder(task_list.id, project.id, 1)
    result = transitions.complete_item(task_list.id, 2)
    assert not result.success
    assert result.reason == 'invalid_state'


def test_take_a_bite_on_sole_placeholder_splits_project_task(task_list, make_project):
    project = make_project('Report', priority=3, task_names=['Write report', 'Send report'])
    scheduler.reprocess(task_list.id)

    result = transitions.take_a_bite(task_list.id, 1, 'Outline report', 'Draft report')

    assert result.success
    assert project_task_statuses(project) == [STATUS_ACTIVE, STATUS_ACTIVE, STATUS_INACTIVE]
    assert _sequences(project) == [('Outline report', 1), ('Draft report', 2), ('Send report', 3)]
    assert queue_refs(task_list.id) == [Placeholder(project.id, 1), Placeholder(project.id, 2)]
    names = [resolve(entry).item_name for entry in queue_store.queue_entries(task_list.id)]
    assert names == ['Outline report', 'Draft report']


def test_take_a_bite_on_errand_inserts_follow_up_after_it(task_list, make_errand):
    first = make_errand('Clean house')
    last = make_errand('Call bank')

    result = transitions.take_a_bite(task_list.id, 1, 'Clean kitchen', 'Clean bathroom')

    assert result.success
    new_id = result.data['new_task_id']
    assert queue_refs(task_list.id) == [TaskRef(first.id), TaskRef(new_id), TaskRef(last.id)]
    assert db.session.get(Task, first.id).name == 'Clean kitchen'
    assert db.session.get(Task, new_id).status == STATUS_ACTIVE


def test_take_a_bite_requires_both_names(task_list, make_errand):
    make_errand('Clean house')
    result = transitions.take_a_bite(task_list.id, 1, 'Clean kitchen', '   ')
    assert not result.success
    assert result.reason == 'validation'
    assert queue_store.queue_length(task_list.id) == 1


def test_complete_and_advance_brings_next_project_task_to_front(task_list, make_project, make_errand):
    project = make_project('Garden', priority=3, task_names=['Dig', 'Plant', 'Water'])
    make_errand('a')
    make_errand('b')
    add_placeholder(task_list.id, project.id, 1)
    project.links[0].task.status = STATUS_ACTIVE
    db.session.commit()

    result = transitions.complete_item_and_advance(task_list.id, 3)

    assert result.success
    assert result.data['brought_forward'] is True
    head = resolve(queue_store.head_entry(task_list.id))
    assert head.item_name == 'Plant'
    assert project_task_statuses(project)[:2] == [STATUS_COMPLETED, STATUS_ACTIVE]
    assert positions(task_list.id) == list(range(1, queue_store.queue_length(task_list.id) + 1))


def test_complete_and_advance_on_errand_has_no_project_to_advance(task_list, make_errand):
    make_errand('Buy milk')
    result = transitions.complete_item_and_advance(task_list.id, 1)
    assert result.success
    assert result.data['brought_forward'] is False
    assert result.data['message'] == 'Item completed (no project association)'


def test_complete_and_advance_with_exhausted_project(task_list, make_project):
    project = make_project('Garden', task_names=['Dig'])
    scheduler.reprocess(task_list.id)
    result = transitions.complete_item_and_advance(task_list.id, 1)
    assert result.success
    assert result.data['message'] == 'No more items in this project'
    assert project_task_statuses(project) == [STATUS_COMPLETED]
    assert queue_store.queue_length(task_list.id) == 0


def test_edit_item_renames_resolved_task(task_list, make_project):
    project = make_project('Garden', task_names=['Dig'])
    scheduler.reprocess(task_list.id)
    result = transitions.edit_item(task_list.id, 1, '  Dig beds  ')
    assert result.success
    assert db.session.get(Task, project.links[0].task_id).name == 'Dig beds'


def test_edit_item_rejects_blank_name(task_list, make_errand):
    make_errand('Buy milk')
    result = transitions.edit_item(task_list.id, 1, '')
    assert not result.success
    assert result.reason == 'validation'


def test_delete_errand_entry_deactivates_task(task_list, make_errand):
    errand = make_errand('Buy milk')
    other = make_errand('Call bank')

    result = transitions.delete_item(task_list.id, 1)

    assert result.success
    assert db.session.get(Task, errand.id).status == STATUS_INACTIVE
    assert queue_refs(task_list.id) == [TaskRef(other.id)]
    assert positions(task_list.id) == [1]


def test_delete_refuses_project_placeholders(task_list, make_project):
    make_project('Garden', task_names=['Dig'])
    scheduler.reprocess(task_list.id)
    result = transitions.delete_item(task_list.id, 1)
    assert not result.success
    assert result.reason == 'invalid_state'
    assert queue_store.queue_length(task_list.id) == 1


def _activate_first(project, count):
    for link in project.links[:count]:
        link.task.status = STATUS_ACTIVE
    db.session.commit()


def _queue_names(list_id):
    return [resolve(entry).item_name for entry in queue_store.queue_entries(list_id)]


def _slots(list_id, project_id):
    return [entry.slot_index for entry in queue_store.placeholders_for(list_id, project_id)]


def _active_count(project):
    return project_task_statuses(project).count(STATUS_ACTIVE)


def test_complete_and_advance_shifts_existing_slots(task_list, make_project, make_errand):
    project = make_project('Garden', task_names=['Dig', 'Plant', 'Water', 'Weed'])
    make_errand('a')
    add_placeholder(task_list.id, project.id, 1)
    make_errand('b')
    add_placeholder(task_list.id, project.id, 2)
    _activate_first(project, 2)

    result = transitions.complete_item_and_advance(task_list.id, 4)

    assert result.success
    assert result.data['brought_forward'] is True
    assert project_task_statuses(project) == [STATUS_ACTIVE, STATUS_COMPLETED, STATUS_ACTIVE, STATUS_INACTIVE]
    assert queue_refs(task_list.id)[0] == Placeholder(project.id, 1)
    assert _slots(task_list.id, project.id) == [1, 2]
    assert _active_count(project) == queue_store.placeholder_count(task_list.id, project.id)
    assert _queue_names(task_list.id) == ['Dig', 'a', 'Water', 'b']
    assert positions(task_list.id) == [1, 2, 3, 4]


def test_take_a_bite_on_second_slot_appends_third_slot(task_list, make_project, make_errand):
    project = make_project('Report', task_names=['Research', 'Write', 'Send'])
    add_placeholder(task_list.id, project.id, 1)
    make_errand('Call bank')
    add_placeholder(task_list.id, project.id, 2)
    _activate_first(project, 2)

    result = transitions.take_a_bite(task_list.id, 3, 'Write intro', 'Write body')

    assert result.success
    assert _sequences(project) == [('Research', 1), ('Write intro', 2), ('Write body', 3), ('Send', 4)]
    assert project_task_statuses(project) == [STATUS_ACTIVE, STATUS_ACTIVE, STATUS_ACTIVE, STATUS_INACTIVE]
    assert _slots(task_list.id, project.id) == [1, 2, 3]
    assert _active_count(project) == queue_store.placeholder_count(task_list.id, project.id)
    assert _queue_names(task_list.id) == ['Research', 'Call bank', 'Write intro', 'Write body']


def test_take_a_bite_on_first_slot_pushes_later_slots_back(task_list, make_project, make_errand):
    project = make_project('Report', task_names=['Research', 'Write', 'Send'])
    add_placeholder(task_list.id, project.id, 1)
    make_errand('Call bank')
    add_placeholder(task_list.id, project.id, 2)
    _activate_first(project, 2)

    result = transitions.take_a_bite(task_list.id, 1, 'Research sources', 'Research data')

    assert result.success
    assert queue_refs(task_list.id)[:2] == [Placeholder(project.id, 1), Placeholder(project.id, 2)]
    assert queue_refs(task_list.id)[3] == Placeholder(project.id, 3)
    assert _slots(task_list.id, project.id) == [1, 2, 3]
    assert _active_count(project) == 3
    assert _queue_names(task_list.id) == ['Research sources', 'Research data', 'Call bank', 'Write']


def test_unexpected_failure_rolls_back_and_reports(task_list, make_errand, monkeypatch):
    errand = make_errand('Buy milk')
    errand_id = errand.id

    def broken_reindex(list_id):
        raise RuntimeError('database is locked')

    monkeypatch.setattr(queue_store, 'reindex', broken_reindex)
    result = transitions.complete_item(task_list.id, 1)

    assert not result.success
    assert result.reason == 'error'
    assert 'database is locked' in result.error
    assert db.session.get(Task, errand_id).status == STATUS_ACTIVE
    assert queue_refs(task_list.id) == [TaskRef(errand_id)]
