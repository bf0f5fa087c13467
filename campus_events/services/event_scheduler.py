from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from campus_events.services.event_service import EventService
from campus_events.services.notification_service import NotificationService
from campus_events.utils.time import isoformat, utcnow

STATUS_JOB_ID = "event_status_sweep"
REMINDER_JOB_ID = "event_reminders"


class EventScheduler:
    """Background jobs for time-based event transitions and reminders.

    Constructed explicitly by the process entry point, which owns the
    start/stop lifecycle. Each job runs at most one instance at a time and
    missed runs are coalesced.
    """

    def __init__(self, app):
        self.app = app
        self.interval = int(app.config.get("EVENT_STATUS_UPDATE_INTERVAL", 3600))
        self.reminder_interval = int(app.config.get("REMINDER_INTERVAL", 900))
        self.scheduler = BackgroundScheduler(timezone="UTC")
        self.last_run = None
        self.last_result = None

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def run_status_sweep(self):
        with self.app.app_context():
            try:
                self.last_result = EventService.update_event_statuses()
            except Exception as e:
                self.app.logger.error(f"Event status sweep failed: {str(e)}", exc_info=True)
                self.last_result = None
            finally:
                self.last_run = utcnow()
        return self.last_result

    def run_reminders(self):
        with self.app.app_context():
            try:
                return NotificationService.send_event_reminders()
            except Exception as e:
                self.app.logger.error(f"Event reminder job failed: {str(e)}", exc_info=True)
                return 0

    def start(self):
        if self.scheduler.running:
            self.app.logger.info("Event scheduler already running")
            return

        # Catch up on anything missed while the process was down
        self.run_status_sweep()

        self.scheduler.add_job(
            self.run_status_sweep,
            trigger=IntervalTrigger(seconds=self.interval),
            id=STATUS_JOB_ID,
            name="Event status sweep",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.run_reminders,
            trigger=IntervalTrigger(seconds=self.reminder_interval),
            id=REMINDER_JOB_ID,
            name="Event reminders",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.start()
        self.app.logger.info(
            f"Event scheduler started (status sweep every {self.interval}s, "
            f"reminders every {self.reminder_interval}s)"
        )

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            self.app.logger.info("Event scheduler stopped")

    def get_status(self) -> dict:
        job = self.scheduler.get_job(STATUS_JOB_ID) if self.scheduler.running else None
        return {
            "running": self.scheduler.running,
            "interval_seconds": self.interval,
            "reminder_interval_seconds": self.reminder_interval,
            "last_run": isoformat(self.last_run),
            "next_run": isoformat(job.next_run_time) if job and job.next_run_time else None,
        }
