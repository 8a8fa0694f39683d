"""Profile model."""
from sparql_portal.extensions import db
from sparql_portal.models.base import utcnow, isoformat

GUEST = 'guest'
USER = 'user'
ADMIN = 'admin'
ROLES = (GUEST, USER, ADMIN)

APPROVAL_PENDING = 'pending'
APPROVAL_APPROVED = 'approved'
APPROVAL_DECLINED = 'declined'
APPROVAL_STATUSES = (APPROVAL_PENDING, APPROVAL_APPROVED, APPROVAL_DECLINED)


class Profile(db.Model):
    __tablename__ = 'profiles'

    id = db.Column(db.String(36), primary_key=True)  # Same id as the auth account
    email = db.Column(db.String(255), unique=True, nullable=False)
    full_name = db.Column(db.String(200))
    avatar_url = db.Column(db.String(500))
    role = db.Column(db.String(20), nullable=False, default=GUEST)  # guest, user, admin
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    approval_status = db.Column(db.String(20), nullable=False, default=APPROVAL_PENDING)  # pending, approved, declined
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'full_name': self.full_name,
            'avatar_url': self.avatar_url,
            'role': self.role,
            'is_active': self.is_active,
            'approval_status': self.approval_status,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }
