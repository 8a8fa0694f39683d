"""Identity provider storage: credentials and issued sessions."""
from sparql_portal.extensions import db
from sparql_portal.models.base import utcnow, new_id


class AuthAccount(db.Model):
    __tablename__ = 'auth_accounts'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class AuthSession(db.Model):
    __tablename__ = 'auth_sessions'

    access_token = db.Column(db.String(64), primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey('auth_accounts.id'), nullable=False)
    kind = db.Column(db.String(20), nullable=False, default='password')  # password, recovery
    expires_at = db.Column(db.DateTime, nullable=False)
    revoked = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    account = db.relationship('AuthAccount')
