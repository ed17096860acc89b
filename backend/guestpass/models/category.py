from sqlalchemy import Column, String, Integer
from guestpass.db.base import Base, BaseModel


class CategoryRecord(Base, BaseModel):
    __tablename__ = "guest_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    label = Column(String, unique=True, nullable=False)
    position = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<CategoryRecord {self.label}>"
