"""Master queue entry routes: complete, advance, split, edit and delete by position."""


def complete_entry(list_id, position):
    import app as a

    task_list, error = a.owned_list_or_error(list_id)
    if error:
        return error
    result = a.transitions.complete_item(task_list.id, position)
    return a.result_response(result)


def complete_and_advance_entry(list_id, position):
    import app as a

    task_list, error = a.owned_list_or_error(list_id)
    if error:
        return error
    result = a.transitions.complete_item_and_advance(task_list.id, position)
    return a.result_response(result)


def take_a_bite(list_id, position):
    """Split the entry's task in two: text1 renames it, text2 becomes the follow-up."""
    import app as a

    request = a.request

    task_list, error = a.owned_list_or_error(list_id)
    if error:
        return error
    data = request.get_json(silent=True) or {}
    result = a.transitions.take_a_bite(task_list.id, position, data.get('text1'), data.get('text2'))
    return a.result_response(result, 201)


def handle_entry(list_id, position):
    import app as a

    request = a.request
    transitions = a.transitions

    task_list, error = a.owned_list_or_error(list_id)
    if error:
        return error

    if request.method == 'DELETE':
        result = transitions.delete_item(task_list.id, position)
        return a.result_response(result)

    data = request.get_json(silent=True) or {}
    result = transitions.edit_item(task_list.id, position, data.get('name'))
    return a.result_response(result)
