from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func
from taskmaster.database import Base

class EmailLog(Base):
    """Outgoing mail queued through the email worker."""
    __tablename__ = "email_logs"

    id = Column(Integer, primary_key=True, index=True)
    to_email = Column(String(255), nullable=False, index=True)
    category = Column(String(50), default="general", nullable=False)  # general, password_reset
    subject = Column(String(255), nullable=False)
    text_body = Column(Text, nullable=False)
    html_body = Column(Text, nullable=True)
    status = Column(String(20), default="pending", nullable=False)  # pending, sent, failed
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    sent_at = Column(DateTime(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)
