# Overview: Keyed record access over SQLAlchemy models (find/create/update/delete).

"""
Entity Store

A thin keyed-record layer over a SQLAlchemy model. Services resolve foreign
keys through it instead of walking relationships, and routes use it for the
plain CRUD of reference data.

Filters are a conjunction of exact matches; a list, tuple or set value means
membership ("$in"). Writes only flush; the calling service owns the commit.
"""

from __future__ import annotations

from typing import Any, Generic, Iterable, TypeVar

from ..extensions import db

ModelT = TypeVar("ModelT")


class EntityStore(Generic[ModelT]):
    def __init__(self, model: type[ModelT], *, mutable_fields: Iterable[str] | None = None):
        self.model = model
        self.mutable_fields = set(mutable_fields) if mutable_fields is not None else None

    def __repr__(self) -> str:
        return f"<EntityStore {self.model.__name__}>"

    def _query(self, filters: dict[str, Any] | None):
        query = db.session.query(self.model)
        for key, value in (filters or {}).items():
            column = getattr(self.model, key)
            if isinstance(value, (list, tuple, set, frozenset)):
                query = query.filter(column.in_(list(value)))
            else:
                query = query.filter(column == value)
        return query

    def find_by_id(self, record_id: int) -> ModelT | None:
        if record_id is None:
            return None
        return db.session.get(self.model, record_id)

    def find(self, filters: dict[str, Any] | None = None, *, order_by=None) -> list[ModelT]:
        query = self._query(filters)
        if order_by is not None:
            query = query.order_by(order_by)
        else:
            query = query.order_by(self.model.id.desc())
        return query.all()

    def find_one(self, filters: dict[str, Any] | None = None) -> ModelT | None:
        return self._query(filters).order_by(self.model.id.desc()).first()

    def count(self, filters: dict[str, Any] | None = None) -> int:
        return self._query(filters).count()

    def exists(self, filters: dict[str, Any]) -> bool:
        return self._query(filters).first() is not None

    def create(self, fields: dict[str, Any]) -> ModelT:
        record = self.model(**fields)
        db.session.add(record)
        db.session.flush()
        return record

    def apply_patch(self, record: ModelT, patch: dict[str, Any]) -> ModelT:
        for key, value in patch.items():
            if self.mutable_fields is not None and key not in self.mutable_fields:
                continue
            setattr(record, key, value)
        return record

    def update_by_id(self, record_id: int, patch: dict[str, Any]) -> ModelT | None:
        record = self.find_by_id(record_id)
        if record is None:
            return None
        self.apply_patch(record, patch)
        db.session.flush()
        return record

    def delete_by_id(self, record_id: int) -> bool:
        record = self.find_by_id(record_id)
        if record is None:
            return False
        db.session.delete(record)
        db.session.flush()
        return True

    def save(self, record: ModelT) -> ModelT:
        db.session.add(record)
        db.session.flush()
        return record
