#!/usr/bin/env python3
import atexit
import os
from dotenv import load_dotenv
from campus_events import create_app
from campus_events.extensions import db
from campus_events.services.event_scheduler import EventScheduler
import campus_events.models  # noqa: F401

# Load environment variables
load_dotenv()

# Create the Flask application
app = create_app()

# Create database tables if they don't exist
with app.app_context():
    app.logger.info("Attempting to create database tables...")
    app.logger.info(f"Tables known to SQLAlchemy metadata before create_all: {list(db.metadata.tables.keys())}")
    db.create_all()
    app.logger.info("Database tables check/creation complete.")

# The scheduler is owned by this process and lives for as long as it does
scheduler = EventScheduler(app)
app.extensions["event_scheduler"] = scheduler

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5001))
    debug = os.environ.get("FLASK_DEBUG", "false").lower() in ["true", "1", "t"]

    # The reloader would start a second scheduler in the child process
    if not debug or os.environ.get("WERKZEUG_RUN_MAIN") == "true":
        scheduler.start()
        atexit.register(scheduler.stop)

    app.run(host="0.0.0.0", port=port, debug=debug)
