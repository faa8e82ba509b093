from sqlalchemy import Column, String, Integer, ForeignKey
from sqlalchemy.orm import relationship
from dochub.db.base import Base, SoftDeleteMixin, TimestampMixin

class Folder(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "folders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    parent_id = Column(Integer, ForeignKey("folders.id", ondelete="RESTRICT"), index=True)

    # Folder Info
    name = Column(String(255), nullable=False)

    # Relationships
    owner = relationship("User", back_populates="folders", lazy="raise")
    files = relationship("File", back_populates="folder", lazy="raise")
    parent = relationship("Folder", back_populates="children", remote_side=[id], lazy="raise")
    children = relationship("Folder", back_populates="parent", lazy="raise")
