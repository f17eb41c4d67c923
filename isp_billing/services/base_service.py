# isp_billing/services/base_service.py
"""
BaseCRUDService: generic CRUD over one SQLModel table.
Domain services subclass it and add their own rules on top.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..core.exceptions import ConstraintViolation, NotFound

logger = logging.getLogger(__name__)

# Generic type for SQLModel models
ModelType = TypeVar("ModelType")


class BaseCRUDService(Generic[ModelType]):
    """
    Base class providing generic CRUD (Create, Read, Update, Delete) operations.

    Usage:
        class MyService(BaseCRUDService[MyModel]):
            def __init__(self, session: Session):
                super().__init__(session, MyModel)
    """

    # Fields callers may never overwrite through update()
    immutable_fields: frozenset = frozenset({"id", "created_at"})

    def __init__(self, session: Session, model: Type[ModelType]):
        self.session = session
        self.model = model

    @property
    def resource_name(self) -> str:
        return self.model.__name__

    def list(self, filters: Optional[Dict[str, Any]] = None, order_by=None) -> List[ModelType]:
        """
        All records, optionally filtered by field equality.

        Raises:
            ConstraintViolation: a filter names an unknown field.
        """
        statement = select(self.model)
        for field, value in (filters or {}).items():
            column = getattr(self.model, field, None)
            if column is None:
                raise ConstraintViolation(f"Unknown field '{field}' for {self.resource_name}")
            statement = statement.where(column == value)
        if order_by is not None:
            statement = statement.order_by(order_by)
        return list(self.session.exec(statement).all())

    def get_by_id(self, id: Any) -> ModelType:
        """
        Raises:
            NotFound: no record with that primary key.
        """
        record = self.session.get(self.model, id)
        if not record:
            raise NotFound(self.resource_name, id)
        return record

    def create(self, data: Dict[str, Any]) -> ModelType:
        clean = {k: v for k, v in data.items() if k != "id"}
        new_record = self.model(**clean)
        return self._commit(new_record)

    def update(self, id: Any, data: Dict[str, Any]) -> ModelType:
        """
        Applies a partial update.

        Raises:
            NotFound: no record with that primary key.
            ConstraintViolation: unknown/immutable field or rejected by the database.
        """
        if not data:
            raise ConstraintViolation("No fields to update provided.", id)

        record = self.get_by_id(id)
        for key, value in data.items():
            if key in self.immutable_fields or key not in self.model.model_fields:
                raise ConstraintViolation(f"Field '{key}' can't be updated.", id)
            setattr(record, key, value)

        if "updated_at" in self.model.model_fields:
            record.updated_at = datetime.utcnow()

        return self._commit(record, resource_id=id)

    def delete(self, id: Any) -> None:
        record = self.get_by_id(id)
        self.session.delete(record)
        self.session.commit()

    def _commit(self, record: ModelType, resource_id: Any = None) -> ModelType:
        try:
            self.session.add(record)
            self.session.commit()
            self.session.refresh(record)
            return record
        except IntegrityError as e:
            self.session.rollback()
            logger.warning(f"Integrity error on {self.resource_name} {resource_id}: {e.orig}")
            raise ConstraintViolation(f"Error saving {self.resource_name}: {e.orig}", resource_id)
