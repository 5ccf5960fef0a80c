"""User/session routes extracted from app.py for readability."""


def set_user(user_id):
    import app as a

    User = a.User
    db = a.db
    jsonify = a.jsonify
    session = a.session

    user = db.get_or_404(User, user_id)
    session['user_id'] = user.id
    session.permanent = True  # Make session persistent across browser restarts
    return jsonify({'success': True, 'username': user.username, 'user_id': user.id})


def create_user():
    """Create a new user (no password) and select it."""
    import app as a

    User = a.User
    db = a.db
    jsonify = a.jsonify
    request = a.request
    session = a.session
    catalog = a.catalog

    data = request.get_json(silent=True) or {}
    username = (data.get('username') or '').strip()

    if not username:
        return jsonify({'error': 'Username is required'}), 400

    if User.query.filter_by(username=username).first():
        return jsonify({'error': 'Username already exists'}), 400

    user = User(username=username)
    db.session.add(user)
    db.session.commit()
    # Every user starts with one list so queue routes have somewhere to work.
    default_list = catalog.create_list(user.id, data.get('list_name') or 'Main')

    session['user_id'] = user.id
    session.permanent = True

    return jsonify({
        'success': True,
        'user_id': user.id,
        'username': user.username,
        'default_list_id': default_list.id,
    }), 201


def current_user_info():
    import app as a

    get_current_user = a.get_current_user
    jsonify = a.jsonify
    catalog = a.catalog

    user = get_current_user()
    if user:
        default_list = catalog.get_default_list(user.id)
        return jsonify({
            'user_id': user.id,
            'username': user.username,
            'default_list_id': default_list.id if default_list else None,
        })
    return jsonify({'user_id': None, 'username': None, 'default_list_id': None})
