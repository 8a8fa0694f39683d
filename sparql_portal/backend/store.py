"""Table store: filtered, ordered, paginated reads and writes on the app tables.

Usage mirrors a hosted Postgres REST client::

    store.table('registration_requests').select(count=True) \\
        .eq('status', 'pending').order('created_at').range(0, 9).execute()

Rows come back as dictionaries. Database failures are logged and returned as
``Result.error``; they never propagate as exceptions.
"""
import logging
from contextlib import contextmanager

from flask import g
from sqlalchemy.exc import SQLAlchemyError

from sparql_portal.backend.result import Result, StoreError
from sparql_portal.errors import DataStoreError
from sparql_portal.models import db, Profile, RegistrationRequest, SavedQuery, QueryHistory
from sparql_portal.models.base import utcnow

logger = logging.getLogger(__name__)

TABLES = {
    'profiles': Profile,
    'registration_requests': RegistrationRequest,
    'saved_queries': SavedQuery,
    'query_history': QueryHistory,
}


class TableStore:
    def __init__(self):
        self._depth = 0

    def table(self, name):
        try:
            model = TABLES[name]
        except KeyError:
            raise ValueError(f'Unknown table: {name}') from None
        return TableQuery(self, model)

    @property
    def in_transaction(self):
        return self._depth > 0

    @contextmanager
    def atomic(self):
        """Group writes so they commit together or not at all.

        Raises DataStoreError if the final commit fails. Any exception raised
        inside the block rolls the whole group back.
        """
        self._depth += 1
        try:
            yield self
        except BaseException:
            if self._depth == 1:
                db.session.rollback()
            raise
        else:
            if self._depth == 1:
                try:
                    db.session.commit()
                except SQLAlchemyError as exc:
                    db.session.rollback()
                    logger.exception("Transaction commit failed")
                    raise DataStoreError() from exc
        finally:
            self._depth -= 1

    def _finish_write(self):
        if self.in_transaction:
            db.session.flush()
        else:
            db.session.commit()


class TableQuery:
    def __init__(self, store, model):
        self._store = store
        self._model = model
        self._action = 'select'
        self._payload = None
        self._filters = []
        self._ordering = []
        self._offset = None
        self._limit = None
        self._count = False
        self._head = False
        self._single = False

    def _column(self, name):
        if name not in self._model.__table__.columns:
            raise ValueError(f'Unknown column {self._model.__tablename__}.{name}')
        return getattr(self._model, name)

    # ==================== Builders ====================

    def select(self, count=False, head=False):
        self._action = 'select'
        self._count = count
        self._head = head
        return self

    def insert(self, rows):
        self._action = 'insert'
        self._payload = rows
        return self

    def update(self, values):
        for name in values:
            self._column(name)
        self._action = 'update'
        self._payload = dict(values)
        return self

    def eq(self, column, value):
        self._filters.append(self._column(column) == value)
        return self

    def in_(self, column, values):
        self._filters.append(self._column(column).in_(list(values)))
        return self

    def order(self, column, desc=True):
        # id breaks ties between equal timestamps
        for col in (self._column(column), self._model.id):
            self._ordering.append(col.desc() if desc else col.asc())
        return self

    def range(self, start, end):
        """Inclusive row window, zero-based."""
        self._offset = start
        self._limit = max(end - start + 1, 0)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def single(self):
        self._single = True
        return self

    # ==================== Execution ====================

    def execute(self):
        try:
            if self._action == 'insert':
                return self._execute_insert()
            if self._action == 'update':
                return self._execute_update()
            return self._execute_select()
        except SQLAlchemyError as exc:
            if not self._store.in_transaction:
                db.session.rollback()
            logger.exception("%s on %s failed", self._action, self._model.__tablename__)
            return Result(error=StoreError(str(exc.orig) if getattr(exc, 'orig', None) else str(exc)))

    def _execute_select(self):
        total = None
        if self._count:
            total = db.session.scalar(
                db.select(db.func.count()).select_from(self._model).where(*self._filters)
            )
        if self._head:
            return Result(data=[], count=total)

        stmt = db.select(self._model).where(*self._filters).order_by(*self._ordering)
        if self._offset:
            stmt = stmt.offset(self._offset)
        if self._limit is not None:
            stmt = stmt.limit(self._limit)
        rows = [row.to_dict() for row in db.session.scalars(stmt)]

        if self._single:
            if len(rows) != 1:
                return Result(error=StoreError(f'Expected a single row, found {len(rows)}', status=406))
            return Result(data=rows[0], count=total)
        return Result(data=rows, count=total)

    def _execute_insert(self):
        rows = self._payload if isinstance(self._payload, (list, tuple)) else [self._payload]
        objects = [self._model(**row) for row in rows]
        db.session.add_all(objects)
        self._store._finish_write()
        return Result(data=[obj.to_dict() for obj in objects])

    def _execute_update(self):
        values = dict(self._payload)
        if 'updated_at' in self._model.__table__.columns and 'updated_at' not in values:
            values['updated_at'] = utcnow()
        stmt = (
            db.update(self._model)
            .where(*self._filters)
            .values(**values)
            .returning(self._model)
            .execution_options(populate_existing=True)
        )
        changed = [row.to_dict() for row in db.session.scalars(stmt)]
        self._store._finish_write()
        return Result(data=changed)


def get_store():
    """Store for the current application context."""
    if 'table_store' not in g:
        g.table_store = TableStore()
    return g.table_store
