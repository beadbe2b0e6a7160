from typing import TypeVar, Generic, Any
from sqlalchemy.orm import Session

ModelType = TypeVar("ModelType")


class BaseRepository(Generic[ModelType]):
    def __init__(self, model: type[ModelType], id_field: str = "id"):
        self.model = model
        self.id = id_field

    def get(self, db: Session, id: Any) -> ModelType | None:
        return db.query(self.model).filter(getattr(self.model, self.id) == id).first()

    def exists(self, db: Session, id: Any) -> bool:
        return db.query(getattr(self.model, self.id)).filter(getattr(self.model, self.id) == id).first() is not None
