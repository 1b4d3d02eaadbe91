# shop_core/datastore.py
"""
Collection-keyed CRUD over the SQLAlchemy tables.

Views address records by collection name (``clients``, ``vehicles``, ...) and
receive plain dicts back, so nothing above this module touches a session.
"""

import logging
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from shop_core.models import COLLECTIONS, new_id, utcnow
from shop_core.records import normalize_payload, parse_timestamp, to_date

logger = logging.getLogger(__name__)


class DatastoreError(Exception):
    pass


class RecordNotFound(DatastoreError):
    def __init__(self, collection, record_id):
        super().__init__(f"{collection}/{record_id} not found")
        self.collection = collection
        self.record_id = record_id


_OPERATORS = {
    '==': lambda col, v: col == v,
    '!=': lambda col, v: col != v,
    '<': lambda col, v: col < v,
    '<=': lambda col, v: col <= v,
    '>': lambda col, v: col > v,
    '>=': lambda col, v: col >= v,
    'in': lambda col, v: col.in_(v),
}


class SqlDatastore:
    def __init__(self, db, collections=None, in_query_limit=30):
        self.db = db
        self.collections = collections or COLLECTIONS
        self.in_query_limit = in_query_limit

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _model(self, collection):
        try:
            return self.collections[collection]
        except KeyError:
            raise DatastoreError(f"Unknown collection: {collection}")

    def _column(self, model, field):
        column = model.__table__.columns.get(field)
        if column is None:
            raise DatastoreError(f"Unknown field '{field}' for {model.__tablename__}")
        return column

    def _prepare(self, model, data):
        payload = normalize_payload(data)
        prepared = {}
        for field, value in payload.items():
            column = self._column(model, field)
            if value is not None:
                try:
                    python_type = column.type.python_type
                except NotImplementedError:
                    python_type = None
                if python_type is datetime and not isinstance(value, datetime):
                    parsed = parse_timestamp(value)
                    if not isinstance(parsed, datetime):
                        raise DatastoreError(f"Invalid timestamp for '{field}': {value!r}")
                    value = parsed
                elif python_type is date and not isinstance(value, date):
                    converted = to_date(value)
                    if converted is None:
                        raise DatastoreError(f"Invalid date for '{field}': {value!r}")
                    value = converted
            prepared[field] = value
        prepared.pop('id', None)
        return prepared

    def _commit(self):
        try:
            self.db.session.commit()
        except SQLAlchemyError as e:
            self.db.session.rollback()
            logger.exception("Datastore write failed")
            raise DatastoreError(str(e)) from e

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------
    def _load(self, model, record_id):
        try:
            return self.db.session.get(model, record_id)
        except SQLAlchemyError as e:
            self.db.session.rollback()
            logger.exception("Datastore read failed")
            raise DatastoreError(str(e)) from e

    def get(self, collection, record_id):
        model = self._model(collection)
        if not record_id:
            return None
        obj = self._load(model, record_id)
        return obj.to_dict() if obj else None

    def add(self, collection, data):
        """Create a record under a generated id and return the id."""
        record_id = new_id()
        self.set(collection, record_id, data)
        return record_id

    def set(self, collection, record_id, data):
        """Create or fully replace the record stored under ``record_id``."""
        model = self._model(collection)
        values = self._prepare(model, data)
        now = utcnow()
        obj = self._load(model, record_id)
        created = obj is None
        if created:
            obj = model(id=record_id, created_at=now)
            self.db.session.add(obj)
        for name in model.field_names():
            if name in ('id', 'created_at', 'updated_at'):
                continue
            column = model.__table__.columns[name]
            if name in values:
                setattr(obj, name, values[name])
            elif column.default is not None and column.default.is_scalar:
                setattr(obj, name, column.default.arg)
            elif column.default is not None and created:
                continue  # insert-time default
            else:
                setattr(obj, name, None)
        obj.updated_at = now
        self._commit()
        return record_id

    def update(self, collection, record_id, data):
        model = self._model(collection)
        values = self._prepare(model, data)
        obj = self._load(model, record_id)
        if obj is None:
            raise RecordNotFound(collection, record_id)
        for name, value in values.items():
            setattr(obj, name, value)
        obj.updated_at = utcnow()
        self._commit()

    def delete(self, collection, record_id):
        model = self._model(collection)
        obj = self._load(model, record_id)
        if obj is None:
            raise RecordNotFound(collection, record_id)
        self.db.session.delete(obj)
        self._commit()

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------
    def query(self, collection, where=None, order_by=None, limit=None):
        """
        Run a filtered, ordered query.

        Args:
            where: list of ``(field, op, value)`` with op in
                ``== != < <= > >= in``. An ``in`` list is bounded by
                ``in_query_limit``.
            order_by: list of field names; a leading ``-`` sorts descending.
            limit: maximum number of records.
        """
        model = self._model(collection)
        stmt = select(model)

        for field, op, value in where or []:
            column = self._column(model, field)
            if op not in _OPERATORS:
                raise DatastoreError(f"Unsupported operator: {op}")
            if op == 'in':
                value = list(value)
                if len(value) > self.in_query_limit:
                    raise DatastoreError(
                        f"'in' filter accepts at most {self.in_query_limit} values, got {len(value)}"
                    )
                if not value:
                    return []
            stmt = stmt.where(_OPERATORS[op](column, value))

        for field in order_by or []:
            descending = field.startswith('-')
            column = self._column(model, field.lstrip('-'))
            stmt = stmt.order_by(column.desc() if descending else column.asc())

        if limit:
            stmt = stmt.limit(limit)

        try:
            rows = self.db.session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            self.db.session.rollback()
            logger.exception("Query on %s failed", collection)
            raise DatastoreError(str(e)) from e
        return [row.to_dict() for row in rows]

    def get_many(self, collection, ids):
        """Fetch records whose id is in ``ids`` (at most ``in_query_limit``)."""
        return self.query(collection, where=[('id', 'in', list(ids))])
