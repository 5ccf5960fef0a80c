import os

from apscheduler.schedulers.background import BackgroundScheduler

from backend.reconciler import reconcile
from models import TaskList

scheduler = None


def repair_all_lists(app):
    """Reconcile every list, one at a time. Returns {list_id: report}."""
    reports = {}
    with app.app_context():
        list_ids = [row.id for row in TaskList.query.order_by(TaskList.id.asc()).all()]
        for list_id in list_ids:
            try:
                report = reconcile(list_id)
            except Exception as exc:
                app.logger.warning("Scheduled repair of list %s failed: %s", list_id, exc)
                continue
            reports[list_id] = report
            if report.changed:
                app.logger.info("Scheduled repair changed list %s: %s", list_id, report.to_dict())
    return reports


def start_repair_scheduler(app):
    """Start the nightly reconcile job unless disabled or already running."""
    global scheduler
    if os.environ.get('ENABLE_REPAIR_JOBS', '1') != '1':
        return None
    if scheduler and scheduler.running:
        return scheduler
    # Avoid double-start in Flask debug reloader
    if app.debug and os.environ.get('WERKZEUG_RUN_MAIN') != 'true':
        return None
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        repair_all_lists,
        'cron',
        args=[app],
        hour=int(os.environ.get('REPAIR_HOUR', 3)),
        minute=0,
        id='repair_all_lists',
        replace_existing=True,
    )
    scheduler.start()
    return scheduler
