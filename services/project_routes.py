"""Project and task maintenance routes extracted from app.py for readability."""


def create_task(list_id):
    """Create an errand (queued at once) or, with project_id, a project task."""
    import app as a

    get_current_user = a.get_current_user
    get_user_list = a.get_user_list
    jsonify = a.jsonify
    request = a.request

    user = get_current_user()
    if not user:
        return jsonify({'error': 'No user selected'}), 401
    task_list = get_user_list(user, list_id)

    data = request.get_json(silent=True) or {}
    result = a.catalog.create_task(task_list.id, data.get('name'), data.get('project_id'))
    return a.result_response(result, 201)


def handle_projects(list_id):
    import app as a

    catalog = a.catalog
    get_current_user = a.get_current_user
    get_user_list = a.get_user_list
    jsonify = a.jsonify
    request = a.request

    user = get_current_user()
    if not user:
        return jsonify({'error': 'No user selected'}), 401
    task_list = get_user_list(user, list_id)

    if request.method == 'POST':
        data = request.get_json(silent=True) or {}
        result = catalog.create_project(
            task_list.id,
            data.get('name'),
            priority=data.get('priority'),
            due_date=data.get('due_date'),
        )
        return a.result_response(result, 201)

    include_tasks = a.parse_bool(request.args.get('include_tasks'))
    status = request.args.get('status')
    projects = catalog.list_projects(task_list.id)
    if status:
        projects = [p for p in projects if p.status.lower() == status.strip().lower()]
    return jsonify([p.to_dict(include_tasks=include_tasks) for p in projects])


def handle_project(project_id):
    import app as a

    catalog = a.catalog
    get_current_user = a.get_current_user
    jsonify = a.jsonify
    request = a.request

    user = get_current_user()
    if not user:
        return jsonify({'error': 'No user selected'}), 401
    project = a.get_user_project(user, project_id)

    if request.method == 'DELETE':
        return a.result_response(catalog.delete_project(project.id))

    if request.method == 'PUT':
        data = request.get_json(silent=True) or {}
        result = catalog.update_project(
            project.id,
            name=data.get('name'),
            priority=data.get('priority'),
            status=data.get('status'),
            due_date=data.get('due_date'),
        )
        if not result.success:
            return a.result_response(result)
        return jsonify(a.db.session.get(a.Project, project_id).to_dict(include_tasks=True))

    return jsonify(project.to_dict(include_tasks=True))


def move_project_task(project_id, task_id):
    import app as a

    get_current_user = a.get_current_user
    jsonify = a.jsonify
    request = a.request

    user = get_current_user()
    if not user:
        return jsonify({'error': 'No user selected'}), 401
    project = a.get_user_project(user, project_id)
    data = request.get_json(silent=True) or {}
    result = a.catalog.move_project_task(project.id, task_id, data.get('direction'))
    return a.result_response(result)


def handle_task(task_id):
    """Rename a task, or delete it from its project outright."""
    import app as a

    catalog = a.catalog
    get_current_user = a.get_current_user
    jsonify = a.jsonify
    request = a.request

    user = get_current_user()
    if not user:
        return jsonify({'error': 'No user selected'}), 401
    task = a.get_user_task(user, task_id)

    if request.method == 'DELETE':
        return a.result_response(catalog.delete_project_task(task.id))

    data = request.get_json(silent=True) or {}
    return a.result_response(catalog.rename_task(task.id, data.get('name')))
