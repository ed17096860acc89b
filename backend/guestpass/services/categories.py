import logging
from typing import List
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from guestpass.core.config import settings, NOT_A_RECIPIENT
from guestpass.core.exceptions import CategoryError, ProtectedCategoryError, StoreUnavailableError
from guestpass.models.category import CategoryRecord

logger = logging.getLogger(__name__)


class CategoryStore:
    """Admin-managed, ordered set of guest category labels"""

    def __init__(self, db: Session, defaults: List[str] = None):
        self.db = db
        self.defaults = list(defaults or settings.DEFAULT_GUEST_CATEGORIES)
        if NOT_A_RECIPIENT not in self.defaults:
            self.defaults.insert(0, NOT_A_RECIPIENT)

    def list(self) -> List[str]:
        """Labels in display order; an empty table is seeded with the defaults"""
        try:
            rows = self.db.query(CategoryRecord).order_by(CategoryRecord.position, CategoryRecord.id).all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch categories: {e}")
            raise StoreUnavailableError("Could not load categories") from e

        if not rows:
            self.seed_defaults()
            return list(self.defaults)

        labels = [row.label for row in rows]
        if NOT_A_RECIPIENT not in labels:
            # The sentinel must always be assignable
            self._insert(NOT_A_RECIPIENT)
            labels.append(NOT_A_RECIPIENT)
        return labels

    def contains(self, label: str) -> bool:
        return label in self.list()

    def add(self, label: str) -> str:
        clean = (label or "").strip()
        if not clean:
            raise CategoryError("Category label cannot be empty")
        if clean in self.list():
            raise CategoryError(f"Category '{clean}' already exists")

        self._insert(clean)
        logger.info(f"Added category '{clean}'")
        return clean

    def delete(self, label: str) -> None:
        if label == NOT_A_RECIPIENT:
            raise ProtectedCategoryError(label)

        if label not in self.list():
            raise CategoryError(f"Category '{label}' not found")
        row = self.db.query(CategoryRecord).filter(CategoryRecord.label == label).first()

        try:
            self.db.delete(row)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to delete category '{label}': {e}")
            raise StoreUnavailableError("Could not delete category") from e
        logger.info(f"Deleted category '{label}'; existing guest assignments are kept")

    def seed_defaults(self) -> List[str]:
        """Add any missing default labels; custom labels are left alone"""
        existing = {row.label for row in self.db.query(CategoryRecord).all()}
        added = []
        for label in self.defaults:
            if label not in existing:
                self._insert(label, commit=False)
                added.append(label)

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to seed categories: {e}")
            raise StoreUnavailableError("Could not seed categories") from e

        if added:
            logger.info(f"Seeded {len(added)} default categories")
        return added

    def _insert(self, label: str, commit: bool = True):
        position = (self.db.query(func.max(CategoryRecord.position)).scalar() or 0) + 1
        self.db.add(CategoryRecord(label=label, position=position))
        if not commit:
            self.db.flush()
            return
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to add category '{label}': {e}")
            raise StoreUnavailableError("Could not save category") from e
