"""RegistrationRequest model."""
from sparql_portal.extensions import db
from sparql_portal.models.base import utcnow, new_id, isoformat

STATUS_PENDING = 'pending'
STATUS_APPROVED = 'approved'
STATUS_REJECTED = 'rejected'
REQUEST_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)


class RegistrationRequest(db.Model):
    __tablename__ = 'registration_requests'
    __table_args__ = (
        # One actionable request per user
        db.Index(
            'uq_registration_requests_pending_user', 'user_id', unique=True,
            sqlite_where=db.text("status = 'pending'"),
            postgresql_where=db.text("status = 'pending'"),
        ),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(200))
    reason = db.Column(db.Text)

    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING)  # pending, approved, rejected
    reviewed_by = db.Column(db.String(36), db.ForeignKey('profiles.id'))
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'email': self.email,
            'full_name': self.full_name,
            'reason': self.reason,
            'status': self.status,
            'reviewed_by': self.reviewed_by,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }
