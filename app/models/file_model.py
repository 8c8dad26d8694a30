from database import Base
from sqlalchemy import Column, Integer, String, DateTime, func, BIGINT, ForeignKey, Boolean
from sqlalchemy.orm import relationship

class DriveFile(Base):
    __tablename__ = "files"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    original_name = Column(String, nullable=False)
    path = Column(String, nullable=False, unique=True, index=True)
    size = Column(BIGINT, nullable=False, default=0)
    mime_type = Column(String, nullable=False)
    extension = Column(String)
    folder_id = Column(Integer, ForeignKey("folders.id", ondelete="SET NULL"), nullable=True, index=True)
    share_token = Column(String, nullable=True, index=True)
    share_expiry = Column(DateTime(timezone=True), nullable=True)
    is_public = Column(Boolean, default=False)
    downloads = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    folder = relationship("Folder", back_populates="files")
