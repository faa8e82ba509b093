from datetime import datetime
from sqlalchemy import Column, String, Integer, BigInteger, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from dochub.db.base import Base, SoftDeleteMixin

class File(Base, SoftDeleteMixin):
    __tablename__ = "files"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True)
    folder_id = Column(Integer, ForeignKey("folders.id", ondelete="SET NULL"), index=True)

    # File Info
    display_name = Column(String(500), nullable=False)
    content_type = Column(String(200), nullable=False, default="application/octet-stream")
    size_bytes = Column(BigInteger, nullable=False)

    # Storage: opaque name on the blob store, never shown to clients
    stored_name = Column(String(500), unique=True, nullable=False)

    # Timestamps
    uploaded_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    last_opened_at = Column(DateTime, index=True)

    # Relationships
    owner = relationship("User", back_populates="files", lazy="raise")
    folder = relationship("Folder", back_populates="files", lazy="raise")
