"""
Script to create demo accounts for the campus events API.

Sign-in lives outside this service, so a bearer token is printed for each
account for local testing.
"""

from flask_jwt_extended import create_access_token
from campus_events import create_app
from campus_events.extensions import db
from campus_events.models import User
from campus_events.models.enums import UserRole
from campus_events.repositories.user_repository import UserRepository

DEMO_ACCOUNTS = [
    {
        "email": "organizer@example.com",
        "first_name": "Olivia",
        "last_name": "Organizer",
        "role": UserRole.ORGANIZER,
    },
    {
        "email": "student@example.com",
        "first_name": "Sam",
        "last_name": "Student",
        "role": UserRole.STUDENT,
    },
]


def main():
    """Create demo accounts if missing, fixing their role if they exist."""
    app = create_app()
    with app.app_context():
        for account in DEMO_ACCOUNTS:
            user = UserRepository.find_by_email(account["email"])
            if user:
                if user.role != account["role"]:
                    user.role = account["role"]
                    db.session.commit()
                    print(f"Updated role for {user.email}")
            else:
                user = UserRepository.create_user(User(**account))
                print(f"Created {account['role'].name.lower()} user with ID: {user.id}")

            token = create_access_token(identity=str(user.id))
            print(f"{user.email}: Bearer {token}")

        print("Demo accounts setup complete!")


if __name__ == "__main__":
    main()
