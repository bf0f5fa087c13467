from campus_events.extensions import db
from campus_events.utils.time import isoformat
from .enums import UserRole


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)
    role = db.Column(db.Enum(UserRole), nullable=False, default=UserRole.STUDENT)
    updated_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    created_at = db.Column(db.TIMESTAMP(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def can_organize(self):
        return self.role in (UserRole.ORGANIZER, UserRole.ADMIN)

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN

    def __eq__(self, other: object) -> bool:
        if isinstance(other, User):
            return self.id == other.id
        return False

    def __hash__(self):
        return hash(self.id)

    def to_public_dict(self):
        return {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'email': self.email,
        }

    def to_dict(self):
        return {
            **self.to_public_dict(),
            'role': self.role.name if self.role else None,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return (
            f"User("
            f"id={self.id}, "
            f"email='{self.email}', "
            f"role={self.role}"
            f")"
        )
