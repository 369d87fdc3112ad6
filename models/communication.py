from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from database import Base
from datetime import datetime


class NotificationLog(Base):
    __tablename__ = "notification_logs"

    id = Column(Integer, primary_key=True, index=True)
    event_type = Column(String(50), nullable=False)  # "transaction_opened", "stock_adjusted", ...
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=True)
    payload = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.now)
