from backend import scheduler
from models import db, TaskList


def test_routes_require_selected_user(client, task_list):
    resp = client.get(f'/api/lists/{task_list.id}/queue')
    assert resp.status_code == 401


def test_create_user_selects_user_and_creates_default_list(client):
    resp = client.post('/api/create-user', json={'username': 'bob'})
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['default_list_id'] is not None

    current = client.get('/api/current-user').get_json()
    assert current['username'] == 'bob'
    assert current['default_list_id'] == body['default_list_id']


def test_create_user_requires_unique_name(client, user):
    assert client.post('/api/create-user', json={'username': ''}).status_code == 400
    assert client.post('/api/create-user', json={'username': 'alice'}).status_code == 400


def test_api_key_header_auth(app, client, user, task_list, monkeypatch):
    monkeypatch.setitem(app.config, 'API_SHARED_KEY', 'secret')
    headers = {'X-API-Key': 'secret', 'X-User-Id': str(user.id)}
    assert client.get('/api/lists', headers=headers).status_code == 200
    bad = {'X-API-Key': 'wrong', 'X-User-Id': str(user.id)}
    assert client.get('/api/lists', headers=bad).status_code == 401


def test_foreign_list_is_not_found(logged_in, task_list):
    other = TaskList(user_id=task_list.user_id + 100, name='Theirs')
    db.session.add(other)
    db.session.commit()
    assert logged_in.get(f'/api/lists/{other.id}/queue').status_code == 404


def test_list_crud(logged_in, task_list):
    resp = logged_in.post('/api/lists', json={'name': 'Work'})
    assert resp.status_code == 201
    new_id = resp.get_json()['id']

    assert logged_in.post('/api/lists', json={'name': 'Work'}).status_code == 400
    assert logged_in.put(f'/api/lists/{new_id}', json={'name': 'Office', 'is_default': True}).status_code == 200
    names = {l['name']: l['is_default'] for l in logged_in.get('/api/lists').get_json()}
    assert names == {'Main': False, 'Office': True}

    assert logged_in.delete(f'/api/lists/{new_id}').status_code == 204
    db.session.expire_all()
    assert db.session.get(TaskList, task_list.id).is_default


def test_queue_workflow_through_http(logged_in, task_list):
    base = f'/api/lists/{task_list.id}'
    project = logged_in.post(f'{base}/projects', json={'name': 'Garden', 'priority': 5})
    assert project.status_code == 201
    project_id = project.get_json()['project_id']
    for name in ('Dig', 'Plant'):
        assert logged_in.post(f'{base}/tasks', json={'name': name, 'project_id': project_id}).status_code == 201
    assert logged_in.post(f'{base}/tasks', json={'name': 'Buy milk'}).status_code == 201

    entries = logged_in.get(f'{base}/queue').get_json()['entries']
    assert [e['item_name'] for e in entries][:2] == ['Dig', 'Buy milk']

    resp = logged_in.post(f'{base}/queue/1/bite', json={'text1': 'Dig bed one', 'text2': 'Dig bed two'})
    assert resp.status_code == 201

    resp = logged_in.post(f'{base}/queue/1/complete')
    assert resp.status_code == 200
    assert resp.get_json()['success'] is True

    assert logged_in.put(f'{base}/queue/1', json={'name': ''}).status_code == 400
    assert logged_in.post(f'{base}/queue/99/complete').status_code == 404


def test_deleting_placeholder_entry_conflicts(logged_in, task_list, make_project):
    make_project('Garden', task_names=['Dig'])
    scheduler.reprocess(task_list.id)
    resp = logged_in.delete(f'/api/lists/{task_list.id}/queue/1')
    assert resp.status_code == 409
    assert resp.get_json()['reason'] == 'invalid_state'


def test_project_routes(logged_in, task_list, make_project):
    project = make_project('Garden', task_names=['Dig', 'Plant'])
    project_id = project.id
    plant_id = project.links[1].task_id

    listing = logged_in.get(f'/api/lists/{task_list.id}/projects?include_tasks=1').get_json()
    assert [t['name'] for t in listing[0]['tasks']] == ['Dig', 'Plant']

    resp = logged_in.post(f'/api/projects/{project_id}/tasks/{plant_id}/move', json={'direction': 'up'})
    assert resp.status_code == 200

    resp = logged_in.put(f'/api/projects/{project_id}', json={'priority': 1, 'name': 'Yard'})
    assert resp.status_code == 200
    assert resp.get_json()['name'] == 'Yard'
    assert [t['name'] for t in resp.get_json()['tasks']] == ['Plant', 'Dig']

    assert logged_in.put(f'/api/tasks/{plant_id}', json={'name': 'Plant roses'}).status_code == 200
    assert logged_in.delete(f'/api/tasks/{plant_id}').status_code == 200
    assert logged_in.delete(f'/api/projects/{project_id}').status_code == 200
    assert logged_in.get(f'/api/projects/{project_id}').status_code == 404


def test_export_import_reset_routes(logged_in, task_list, make_errand):
    make_errand('Buy milk')
    base = f'/api/lists/{task_list.id}'

    exported = logged_in.get(f'{base}/export').get_json()
    assert exported['masterList'][0]['type'] == 'Errand'

    bad = dict(exported, masterList=[{'type': 'Errand', 'itemId': 12345}])
    resp = logged_in.post(f'{base}/import', json=bad)
    assert resp.status_code == 400
    assert resp.get_json()['reason'] == 'integrity'

    assert logged_in.post(f'{base}/import', json=exported).status_code == 200
    assert logged_in.post(f'{base}/reset').status_code == 200
    assert logged_in.get(f'{base}/queue').get_json()['entries'] == []


def test_dashboard_and_completed_routes(logged_in, task_list, make_errand):
    make_errand('Buy milk')
    base = f'/api/lists/{task_list.id}'
    assert logged_in.post(f'{base}/queue/1/complete').status_code == 200

    dashboard = logged_in.get(f'{base}/dashboard').get_json()
    assert dashboard['stats']['completedThisWeek'] == 1
    assert dashboard['recentActivity'][0]['name'] == 'Buy milk'

    completed = logged_in.get(f'{base}/completed?filter=7days').get_json()
    assert [t['name'] for t in completed['errands']] == ['Buy milk']
    assert logged_in.get(f'{base}/dashboard?limit=x').status_code == 400


def test_reprocess_and_reconcile_routes(logged_in, task_list, make_project):
    make_project('Garden', task_names=['Dig'])
    base = f'/api/lists/{task_list.id}'

    body = logged_in.post(f'{base}/reprocess').get_json()
    assert body['success'] is True
    assert len(body['promoted_task_ids']) == 1

    body = logged_in.post(f'{base}/reconcile').get_json()
    assert body['success'] is True
    assert body['changed'] is False


def test_import_route_rejects_unhashable_ids(logged_in, task_list):
    payload = {
        'projects': [],
        'items': [{'itemId': ['x'], 'name': 'Buy milk', 'status': 'Active', 'type': 'Errand'}],
        'masterList': [],
    }
    resp = logged_in.post(f'/api/lists/{task_list.id}/import', json=payload)
    assert resp.status_code == 400
    assert resp.get_json()['reason'] == 'validation'
