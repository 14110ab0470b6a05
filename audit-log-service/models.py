# models.py
from sqlalchemy import Column, Integer, Text, DateTime, Index

from db import Base


class AuditLog(Base):
    __tablename__ = "audit_log"
    __table_args__ = (
        Index("idx_domain", "domain"),
        Index("idx_timestamp", "timestamp"),
        Index("idx_email", "email"),
        # ids are never reused after the newest rows are swept
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    domain = Column(Text, nullable=False)
    timestamp = Column(DateTime, nullable=False)
    client_origin = Column(Text)
    results = Column(Text)
    user_agent = Column(Text)
    # added by the add_email_column / add_score_column schema steps
    email = Column(Text)
    score = Column(Integer)
