import os

from dotenv import load_dotenv
from flask import Flask, request, jsonify, session

load_dotenv()

from models import db, User, TaskList, Project, Task
from backend import catalog, queue_store, reconciler, scheduler, snapshot, stats, transitions
from backend.errors import ValidationError
from backend.resolver import resolve
from services.validation_service import parse_bool
from background_jobs import start_repair_scheduler
from services import list_routes, project_routes, queue_routes, snapshot_routes, user_routes

app = Flask(__name__)
app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL', 'sqlite:///master_list.db')
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')
app.config['PERMANENT_SESSION_LIFETIME'] = 365 * 24 * 60 * 60  # 1 year in seconds
app.config['API_SHARED_KEY'] = os.environ.get('API_SHARED_KEY')  # Optional shared key for API callers

db.init_app(app)

# OperationResult.reason -> HTTP status for failed queue operations
REASON_STATUS = {
    'not_found': 404,
    'invalid_state': 409,
    'validation': 400,
    'integrity': 400,
    'error': 500,
}


def get_current_user():
    """Resolve the current user from a shared API key + user id header, else fall back to session."""
    # Header-based auth for service callers
    api_key = request.headers.get('X-API-Key')
    api_user_id = request.headers.get('X-User-Id')
    shared_key = app.config.get('API_SHARED_KEY')
    if shared_key and api_key and api_user_id:
        try:
            api_uid_int = int(api_user_id)
        except (TypeError, ValueError):
            api_uid_int = None
        if api_uid_int and api_key == shared_key:
            user = db.session.get(User, api_uid_int)
            if user:
                return user

    # Session-based auth for browser users
    user_id = session.get('user_id')
    if user_id:
        return db.session.get(User, user_id)
    return None


def get_user_list(user, list_id):
    return TaskList.query.filter_by(id=list_id, user_id=user.id).first_or_404()


def get_user_project(user, project_id):
    return Project.query.join(TaskList, TaskList.id == Project.list_id).filter(
        Project.id == project_id,
        TaskList.user_id == user.id
    ).first_or_404()


def get_user_task(user, task_id):
    return Task.query.join(TaskList, TaskList.id == Task.list_id).filter(
        Task.id == task_id,
        TaskList.user_id == user.id
    ).first_or_404()


def owned_list_or_error(list_id):
    """Return (task_list, None) for the current user's list, or (None, error_response)."""
    user = get_current_user()
    if not user:
        return None, (jsonify({'error': 'No user selected'}), 401)
    return get_user_list(user, list_id), None


def result_response(result, success_status=200):
    """Serialize an OperationResult, mapping failure reasons to HTTP status codes."""
    if result.success:
        return jsonify(result.to_dict()), success_status
    return jsonify(result.to_dict()), REASON_STATUS.get(result.reason, 400)


with app.app_context():
    db.create_all()

_jobs_bootstrapped = False


@app.before_request
def _bootstrap_background_jobs():
    global _jobs_bootstrapped
    if _jobs_bootstrapped:
        return
    start_repair_scheduler(app)
    _jobs_bootstrapped = True


# User Selection Routes
@app.route('/api/set-user/<int:user_id>', methods=['POST'])
def set_user(user_id):
    return user_routes.set_user(user_id)


@app.route('/api/create-user', methods=['POST'])
def create_user():
    return user_routes.create_user()


@app.route('/api/current-user')
def current_user_info():
    return user_routes.current_user_info()


# Lists
@app.route('/api/lists', methods=['GET', 'POST'])
def handle_lists():
    return list_routes.handle_lists()


@app.route('/api/lists/<int:list_id>', methods=['GET', 'PUT', 'DELETE'])
def handle_list(list_id):
    return list_routes.handle_list(list_id)


@app.route('/api/lists/<int:list_id>/queue', methods=['GET'])
def list_queue(list_id):
    return list_routes.list_queue(list_id)


@app.route('/api/lists/<int:list_id>/reprocess', methods=['POST'])
def reprocess_list(list_id):
    return list_routes.reprocess_list(list_id)


@app.route('/api/lists/<int:list_id>/reconcile', methods=['POST'])
def reconcile_list(list_id):
    return list_routes.reconcile_list(list_id)


# Master queue entries
@app.route('/api/lists/<int:list_id>/queue/<int:position>/complete', methods=['POST'])
def complete_entry(list_id, position):
    return queue_routes.complete_entry(list_id, position)


@app.route('/api/lists/<int:list_id>/queue/<int:position>/complete-advance', methods=['POST'])
def complete_and_advance_entry(list_id, position):
    return queue_routes.complete_and_advance_entry(list_id, position)


@app.route('/api/lists/<int:list_id>/queue/<int:position>/bite', methods=['POST'])
def take_a_bite(list_id, position):
    return queue_routes.take_a_bite(list_id, position)


@app.route('/api/lists/<int:list_id>/queue/<int:position>', methods=['PUT', 'DELETE'])
def handle_entry(list_id, position):
    return queue_routes.handle_entry(list_id, position)


# Projects and tasks
@app.route('/api/lists/<int:list_id>/tasks', methods=['POST'])
def create_task(list_id):
    return project_routes.create_task(list_id)


@app.route('/api/lists/<int:list_id>/projects', methods=['GET', 'POST'])
def handle_projects(list_id):
    return project_routes.handle_projects(list_id)


@app.route('/api/projects/<int:project_id>', methods=['GET', 'PUT', 'DELETE'])
def handle_project(project_id):
    return project_routes.handle_project(project_id)


@app.route('/api/projects/<int:project_id>/tasks/<int:task_id>/move', methods=['POST'])
def move_project_task(project_id, task_id):
    return project_routes.move_project_task(project_id, task_id)


@app.route('/api/tasks/<int:task_id>', methods=['PUT', 'DELETE'])
def handle_task(task_id):
    return project_routes.handle_task(task_id)


# Snapshots and history
@app.route('/api/lists/<int:list_id>/export', methods=['GET'])
def export_list(list_id):
    return snapshot_routes.export_list(list_id)


@app.route('/api/lists/<int:list_id>/import', methods=['POST'])
def import_list(list_id):
    return snapshot_routes.import_list(list_id)


@app.route('/api/lists/<int:list_id>/reset', methods=['POST'])
def reset_list(list_id):
    return snapshot_routes.reset_list(list_id)


@app.route('/api/lists/<int:list_id>/dashboard', methods=['GET'])
def dashboard(list_id):
    return snapshot_routes.dashboard(list_id)


@app.route('/api/lists/<int:list_id>/completed', methods=['GET'])
def completed_history(list_id):
    return snapshot_routes.completed_history(list_id)


if __name__ == '__main__':
    app.run(debug=True, port=5000)
