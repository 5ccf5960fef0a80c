"""Export/import/reset and dashboard routes extracted from app.py for readability."""


def export_list(list_id):
    import app as a

    task_list, error = a.owned_list_or_error(list_id)
    if error:
        return error
    return a.jsonify(a.snapshot.export_snapshot(task_list.id))


def import_list(list_id):
    """Replace the list contents with an uploaded snapshot (JSON body or 'file' upload)."""
    import app as a

    request = a.request

    task_list, error = a.owned_list_or_error(list_id)
    if error:
        return error

    upload = request.files.get('file')
    if upload is not None:
        payload = upload.read().decode('utf-8', errors='replace')
    else:
        payload = request.get_json(silent=True)
        if payload is None:
            payload = request.get_data(as_text=True)

    result = a.snapshot.import_snapshot(task_list.id, payload)
    if result.success:
        a.app.logger.info("Imported snapshot into list %s: %s", task_list.id, result.data)
    return a.result_response(result)


def reset_list(list_id):
    import app as a

    task_list, error = a.owned_list_or_error(list_id)
    if error:
        return error
    return a.result_response(a.snapshot.reset_list(task_list.id))


def dashboard(list_id):
    import app as a

    request = a.request
    stats = a.stats

    task_list, error = a.owned_list_or_error(list_id)
    if error:
        return error
    try:
        limit = int(request.args.get('limit', 5))
    except (TypeError, ValueError):
        return a.jsonify({'error': 'Invalid limit'}), 400
    return a.jsonify({
        'stats': stats.dashboard_stats(task_list.id),
        'nextItems': stats.next_items(task_list.id, limit),
        'activeProjects': stats.active_projects_overview(task_list.id),
        'recentActivity': stats.recent_activity(task_list.id),
    })


def completed_history(list_id):
    import app as a

    request = a.request
    stats = a.stats

    task_list, error = a.owned_list_or_error(list_id)
    if error:
        return error
    date_filter = request.args.get('filter')
    project_id = request.args.get('project_id', type=int)
    return a.jsonify({
        'errands': stats.completed_errands(task_list.id, date_filter),
        'projects': stats.completed_project_items(task_list.id, project_id, date_filter),
    })
