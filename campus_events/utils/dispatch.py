from threading import Thread
from flask import current_app
from campus_events.extensions import db


def _call_safely(app, fn, args, kwargs):
    try:
        fn(*args, **kwargs)
    except Exception as e:
        app.logger.error(
            f"Side effect {getattr(fn, '__qualname__', fn)} failed: {e}",
            exc_info=True,
        )
        db.session.rollback()


def _run_in_context(app, fn, args, kwargs):
    with app.app_context():
        _call_safely(app, fn, args, kwargs)


def dispatch(fn, *args, **kwargs):
    """Fire-and-forget a side effect (notification, email) after a commit.

    Runs ``fn`` in a background thread with its own application context and
    database session. Failures are logged and never reach the caller. With
    ``DISPATCH_ASYNC`` disabled the call runs inline, still swallowing and
    logging errors.
    """
    app = current_app._get_current_object()

    if not app.config.get("DISPATCH_ASYNC", True):
        _call_safely(app, fn, args, kwargs)
        return

    Thread(target=_run_in_context, args=(app, fn, args, kwargs), daemon=True).start()
