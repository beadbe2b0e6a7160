import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eventy.entities.user import User
from eventy.exceptions import StoreError
from eventy.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    def __init__(self):
        super().__init__(User)

    def create(self, db: Session, **fields) -> User:
        db_obj = self.model(**fields)
        db.add(db_obj)
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to create user {fields.get('email')}: {e}")
            raise StoreError("Failed to create user") from e
        db.refresh(db_obj)
        return db_obj

user_repository = UserRepository()
