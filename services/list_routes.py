"""List-centric routes extracted from app.py for readability."""


def handle_lists():
    import app as a

    TaskList = a.TaskList
    catalog = a.catalog
    get_current_user = a.get_current_user
    jsonify = a.jsonify
    request = a.request
    ValidationError = a.ValidationError

    user = get_current_user()
    if not user:
        return jsonify({'error': 'No user selected'}), 401

    if request.method == 'POST':
        data = request.get_json(silent=True) or {}
        try:
            new_list = catalog.create_list(user.id, data.get('name'))
        except ValidationError as exc:
            return jsonify({'error': str(exc)}), 400
        return jsonify(new_list.to_dict()), 201

    lists = TaskList.query.filter_by(user_id=user.id).order_by(TaskList.created_at.asc(), TaskList.id.asc()).all()
    return jsonify([l.to_dict() for l in lists])


def handle_list(list_id):
    import app as a

    catalog = a.catalog
    get_current_user = a.get_current_user
    get_user_list = a.get_user_list
    jsonify = a.jsonify
    request = a.request
    ValidationError = a.ValidationError

    user = get_current_user()
    if not user:
        return jsonify({'error': 'No user selected'}), 401
    task_list = get_user_list(user, list_id)

    if request.method == 'DELETE':
        catalog.delete_list(task_list)
        return '', 204

    if request.method == 'PUT':
        data = request.get_json(silent=True) or {}
        try:
            if 'name' in data:
                catalog.rename_list(task_list, data.get('name'))
            if a.parse_bool(data.get('is_default')):
                catalog.set_default_list(task_list)
        except ValidationError as exc:
            return jsonify({'error': str(exc)}), 400
        return jsonify(task_list.to_dict())

    return jsonify(task_list.to_dict())


def list_queue(list_id):
    """Resolved queue entries in position order."""
    import app as a

    get_current_user = a.get_current_user
    get_user_list = a.get_user_list
    jsonify = a.jsonify
    queue_store = a.queue_store
    resolve = a.resolve

    user = get_current_user()
    if not user:
        return jsonify({'error': 'No user selected'}), 401
    task_list = get_user_list(user, list_id)
    entries = [resolve(entry).to_dict() for entry in queue_store.queue_entries(task_list.id)]
    return jsonify({'list_id': task_list.id, 'entries': entries})


def reprocess_list(list_id):
    import app as a

    get_current_user = a.get_current_user
    get_user_list = a.get_user_list
    jsonify = a.jsonify
    scheduler = a.scheduler

    user = get_current_user()
    if not user:
        return jsonify({'error': 'No user selected'}), 401
    task_list = get_user_list(user, list_id)
    report = scheduler.reprocess(task_list.id)
    return jsonify({'success': not report.errors, **report.to_dict()})


def reconcile_list(list_id):
    import app as a

    get_current_user = a.get_current_user
    get_user_list = a.get_user_list
    jsonify = a.jsonify
    reconciler = a.reconciler

    user = get_current_user()
    if not user:
        return jsonify({'error': 'No user selected'}), 401
    task_list = get_user_list(user, list_id)
    report = reconciler.reconcile(task_list.id)
    a.app.logger.info("Manual reconcile of list %s: %s", task_list.id, report.to_dict())
    return jsonify({'success': not report.errors, **report.to_dict()})
