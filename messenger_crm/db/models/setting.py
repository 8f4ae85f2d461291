from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from messenger_crm.db.session import Base


class Setting(Base):
    __tablename__ = "settings"

    # Operator account id
    user_id = Column(String, primary_key=True)
    meta_page_access_token = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
