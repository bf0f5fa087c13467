import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from campus_events import create_app
from campus_events.extensions import db
import campus_events.models  # noqa: F401  registers every table on the metadata


def create_tables():
    app = create_app()
    with app.app_context():
        db.create_all()
        print(f"Created database tables: {', '.join(sorted(db.metadata.tables.keys()))}")


if __name__ == "__main__":
    create_tables()
