import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type

from pydantic import BaseModel as Schema
from pydantic.alias_generators import to_camel
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from natours.core.api_features import APIFeatures
from natours.core.errors import AppError

logger = logging.getLogger(__name__)


class Repository:
    """Persistence access for one entity type.

    Entity-specific behaviour lives in explicit pipeline steps that every
    read and write goes through:

    * ``apply_default_scope`` narrows every read (e.g. hide secret tours)
      unless the caller passes ``include_hidden=True``.
    * ``before_save`` derives fields and validates before each flush.
    * ``before_delete`` runs while the row and its relationships are still
      loadable (e.g. to note which tours a user's reviews belong to).
    * ``after_save`` / ``after_delete`` maintain data derived from this row
      elsewhere (e.g. tour rating aggregates).
    """

    model: Type[Any] = None
    schema: Type[Schema] = None
    label = "document"
    unique_fields: Tuple[str, ...] = ()
    # Columns usable in query strings besides the schema fields
    extra_query_fields: Tuple[str, ...] = ()

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------ pipeline

    def apply_default_scope(self, query: Query) -> Query:
        return query

    def before_save(self, obj: Any, is_new: bool, validate: bool) -> None:
        pass

    def after_save(self, obj: Any) -> None:
        pass

    def before_delete(self, obj: Any) -> None:
        pass

    def after_delete(self, obj: Any) -> None:
        pass

    def build(self, data: Dict[str, Any]) -> Any:
        return self.model(**data)

    def assign(self, obj: Any, data: Dict[str, Any]) -> None:
        for field, value in data.items():
            setattr(obj, field, value)

    # ------------------------------------------------------------ reads

    def query(self, include_hidden: bool = False) -> Query:
        query = self.db.query(self.model)
        return query if include_hidden else self.apply_default_scope(query)

    def find_by_id(self, obj_id: int, include_hidden: bool = False) -> Optional[Any]:
        return self.query(include_hidden).filter(self.model.id == obj_id).first()

    def find_one(self, *criteria, include_hidden: bool = False) -> Optional[Any]:
        return self.query(include_hidden).filter(*criteria).first()

    @property
    def public_fields(self) -> Iterable[str]:
        return [*self.schema.model_fields.keys(), *self.extra_query_fields]

    def find_all(self, query_string: Any, query: Optional[Query] = None) -> Tuple[List[Any], List[str]]:
        """Run a list query refined by the request's query string.

        Returns the rows and the projected field names.
        """
        features = (
            APIFeatures(query if query is not None else self.query(), query_string, self.model, self.public_fields)
            .filter()
            .sort()
            .limit_fields()
            .paginate()
        )
        return features.query.all(), features.fields

    # ------------------------------------------------------------ writes

    def _check_unique(self, obj: Any) -> None:
        for field in self.unique_fields:
            value = getattr(obj, field)
            if value is None:
                continue
            criteria = [getattr(self.model, field) == value]
            if obj.id is not None:
                criteria.append(self.model.id != obj.id)
            if self.find_one(*criteria, include_hidden=True) is not None:
                raise AppError(f'A {self.label} with the {field} "{value}" already exists', 400)

    def save(self, obj: Any, validate: bool = True) -> Any:
        """Run the write pipeline and persist ``obj``.

        ``validate=False`` skips field validation (used for bookkeeping
        updates such as lockout counters) but still derives fields.
        """
        state = inspect(obj)
        is_new = state.transient or state.pending
        self.before_save(obj, is_new=is_new, validate=validate)
        if validate:
            self._check_unique(obj)

        self.db.add(obj)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise
        self.db.refresh(obj)

        self.after_save(obj)
        return obj

    def create(self, data: Dict[str, Any]) -> Any:
        return self.save(self.build(data))

    def update_by_id(self, obj_id: int, data: Dict[str, Any]) -> Optional[Any]:
        obj = self.find_by_id(obj_id)
        if obj is None:
            return None
        self.assign(obj, data)
        return self.save(obj)

    def delete_by_id(self, obj_id: int) -> bool:
        obj = self.find_by_id(obj_id)
        if obj is None:
            return False
        self.before_delete(obj)
        self.db.delete(obj)
        self.db.commit()
        logger.info(f"Deleted {self.label} {obj_id}")

        self.after_delete(obj)
        return True

    # ------------------------------------------------------------ output

    def serialize(
        self,
        obj: Any,
        fields: Optional[Iterable[str]] = None,
        schema: Optional[Type[Schema]] = None,
    ) -> Dict[str, Any]:
        data = (schema or self.schema).model_validate(obj).model_dump(by_alias=True, mode="json")
        if fields is not None:
            keep = {to_camel(field) for field in fields}
            data = {key: value for key, value in data.items() if key in keep}
        return data
