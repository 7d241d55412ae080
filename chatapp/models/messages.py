from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, CheckConstraint
from . import Base, utcnow


class Message(Base):
    __tablename__ = 'messages'
    id = Column(Integer, primary_key=True)
    sender_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False)
    receiver_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=True)  # null for public
    username = Column(String(50), nullable=False)
    message = Column(Text, nullable=True)
    file_url = Column(String(512), nullable=True)
    file_name = Column(String(255), nullable=True)
    file_type = Column(String(16), nullable=True)  # image, video, audio, document
    file_size = Column(Integer, nullable=True)
    is_private = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    __table_args__ = (
        CheckConstraint('message IS NOT NULL OR file_url IS NOT NULL', name='ck_message_has_content'),
        CheckConstraint(
            '(is_private AND receiver_id IS NOT NULL) OR (NOT is_private AND receiver_id IS NULL)',
            name='ck_message_private_receiver',
        ),
    )
