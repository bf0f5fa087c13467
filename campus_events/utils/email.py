from flask import current_app
from flask_mail import Message, Mail
from threading import Thread
from campus_events.utils.time import as_utc

mail = Mail()


def send_async_email(app, msg):
    with app.app_context():
        try:
            mail.send(msg)
        except Exception as e:
            app.logger.error(f"Failed to send email: {e}")


def event_url(event_id) -> str:
    return f"{current_app.config.get('CLIENT_URL')}/events/{event_id}"


def format_event_date(value) -> str:
    if not value:
        return "TBA"
    return as_utc(value).strftime("%B %d, %Y at %I:%M %p UTC")


def format_location(event) -> str:
    if event.location_is_virtual:
        return f"Online ({event.location_virtual_link})" if event.location_virtual_link else "Online"
    if event.location_name and event.location_address:
        return f"{event.location_name}, {event.location_address}"
    return event.location_name or "See event page"


def event_template_data(event) -> dict:
    """Template variables shared by every event-related message."""
    return {
        "event_id": event.id,
        "event_title": event.title,
        "event_date": format_event_date(event.start_date),
        "event_location": format_location(event),
        "action_url": event_url(event.id),
    }


def send_email(subject, recipients, body):
    """Send a plain-text email in a background thread.

    In testing mode the message is logged instead of sent.
    """
    app = current_app._get_current_object()

    if app.testing:
        app.logger.info("--- MOCK EMAIL ---")
        app.logger.info(f"To: {', '.join(recipients)}")
        app.logger.info(f"Subject: {subject}")
        app.logger.info(f"Body: {body}")
        app.logger.info("--- END MOCK EMAIL ---")
        return

    msg = Message(
        subject,
        sender=(app.config.get("MAIL_SENDER_NAME"), app.config.get("MAIL_USERNAME")),
        recipients=recipients,
    )
    msg.body = body

    Thread(target=send_async_email, args=(app, msg)).start()


def send_registration_confirmation_email(user, event):
    data = event_template_data(event)
    body = f"""
Hi {user.first_name},

You're registered for "{data['event_title']}"!

Event Details:
- Date: {data['event_date']}
- Location: {data['event_location']}

View the event: {data['action_url']}

See you there!
"""
    send_email(f"Registration Confirmed: {event.title}", [user.email], body)


def send_waitlist_promotion_email(user, event):
    data = event_template_data(event)
    body = f"""
Great news, {user.first_name}!

A spot opened up and you've been moved from the waitlist. You are now registered for "{data['event_title']}".

Event Details:
- Date: {data['event_date']}
- Location: {data['event_location']}

View the event: {data['action_url']}
"""
    send_email(f"You're In! - {event.title}", [user.email], body)


def send_registration_cancelled_email(user, event):
    data = event_template_data(event)
    body = f"""
Hi {user.first_name},

Your registration for "{data['event_title']}" on {data['event_date']} has been cancelled.

If this was a mistake you can register again while the event is open: {data['action_url']}
"""
    send_email(f"Registration Cancelled: {event.title}", [user.email], body)


def send_event_updated_email(user, event):
    data = event_template_data(event)
    body = f"""
Hi {user.first_name},

"{data['event_title']}" has been updated by the organizer. Please review the latest details.

Event Details:
- Date: {data['event_date']}
- Location: {data['event_location']}

View the event: {data['action_url']}
"""
    send_email(f"Event Updated: {event.title}", [user.email], body)


def send_event_cancelled_email(user, event):
    data = event_template_data(event)
    body = f"""
Hi {user.first_name},

Unfortunately, "{data['event_title']}" scheduled for {data['event_date']} has been cancelled by the organizer.

We're sorry for the inconvenience.
"""
    send_email(f"Event Cancelled: {event.title}", [user.email], body)


def send_event_reminder_email(user, event):
    data = event_template_data(event)
    body = f"""
Hi {user.first_name},

Just a reminder that "{data['event_title']}" is coming up soon.

Event Details:
- Date: {data['event_date']}
- Location: {data['event_location']}

View the event: {data['action_url']}
"""
    send_email(f"Reminder: {event.title}", [user.email], body)
