from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from . import Base, utcnow


class FriendRequest(Base):
    __tablename__ = 'friend_requests'
    id = Column(Integer, primary_key=True)
    sender_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False)
    receiver_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False)
    # canonical (min, max) of the two ids; one request row per unordered pair
    pair_low_id = Column(Integer, nullable=False)
    pair_high_id = Column(Integer, nullable=False)
    status = Column(String(16), default='pending', nullable=False)  # pending, accepted, rejected
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    sender = relationship('User', foreign_keys=[sender_id])
    receiver = relationship('User', foreign_keys=[receiver_id])

    __table_args__ = (
        UniqueConstraint('pair_low_id', 'pair_high_id', name='uix_friend_request_pair'),
        CheckConstraint('sender_id <> receiver_id', name='ck_friend_request_not_self'),
        CheckConstraint('pair_low_id < pair_high_id', name='ck_friend_request_pair_order'),
        CheckConstraint("status IN ('pending', 'accepted', 'rejected')", name='ck_friend_request_status'),
    )
