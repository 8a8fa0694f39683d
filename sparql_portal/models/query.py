"""SavedQuery and QueryHistory models."""
from sqlalchemy.dialects.postgresql import JSONB
from sparql_portal.extensions import db
from sparql_portal.models.base import utcnow, new_id, isoformat

# JSONB on Postgres, plain JSON elsewhere
JSONType = db.JSON().with_variant(JSONB(), 'postgresql')


class SavedQuery(db.Model):
    __tablename__ = 'saved_queries'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    query_content = db.Column(JSONType, nullable=False)  # {"sparql": "..."}
    is_public = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'title': self.title,
            'description': self.description,
            'query_content': self.query_content,
            'is_public': self.is_public,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }


class QueryHistory(db.Model):
    __tablename__ = 'query_history'

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=False)
    query_content = db.Column(JSONType, nullable=False)
    results = db.Column(JSONType)
    execution_time = db.Column(db.Integer)  # ms
    status = db.Column(db.String(20), nullable=False, default='completed')
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'query_content': self.query_content,
            'results': self.results,
            'execution_time': self.execution_time,
            'status': self.status,
            'created_at': isoformat(self.created_at),
        }
