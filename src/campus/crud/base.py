from typing import Any, Generic, List, Optional, Type, TypeVar
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from pydantic import BaseModel

from src.campus.models.base import Base
from src.campus.services.access_service import reference_cache

SQLModelType = TypeVar("SQLModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class CRUDBase(Generic[SQLModelType, CreateSchemaType, UpdateSchemaType]):
    def __init__(self, sql_model: Type[SQLModelType], *, invalidates_access: bool = False):
        """
        CRUD object with default methods to Create, Read, Update, Delete (CRUD).
        **Parameters**
        * `sql_model`: A SQLAlchemy model class
        * `invalidates_access`: Writes to this table drop the cached access reference data
        """
        self.sql_model = sql_model
        self.invalidates_access = invalidates_access

    def _written(self) -> None:
        if self.invalidates_access:
            reference_cache.invalidate()

    async def get(self, db: AsyncSession, *, id: int) -> Optional[SQLModelType]:
        """Get a single object by ID."""
        stmt = select(self.sql_model).where(self.sql_model.id == id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_multi(
        self, db: AsyncSession, *, skip: int = 0, limit: int = 100
    ) -> List[SQLModelType]:
        """Get multiple objects."""
        stmt = select(self.sql_model).order_by(self.sql_model.id).offset(skip).limit(limit)
        result = await db.execute(stmt)
        return result.scalars().all()

    async def get_by_key(self, db: AsyncSession, *, key_field: str, key_value: Any) -> Optional[SQLModelType]:
        """Get by key field and value"""
        stmt = select(self.sql_model).where(getattr(self.sql_model, key_field) == key_value)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, db: AsyncSession, *, obj_in: CreateSchemaType) -> SQLModelType:
        """Create a new object."""
        db_obj = self.sql_model(**obj_in.model_dump())
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        self._written()
        return db_obj

    async def update(
        self, db: AsyncSession, *, db_obj: SQLModelType, obj_in: UpdateSchemaType
    ) -> SQLModelType:
        """Update an object."""
        update_data = obj_in.model_dump(exclude_unset=True)
        for field in update_data:
            setattr(db_obj, field, update_data[field])
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        self._written()
        return db_obj
