from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from . import Base, utcnow


class Friendship(Base):
    __tablename__ = 'friendships'
    id = Column(Integer, primary_key=True)
    user_id1 = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False)
    user_id2 = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    user1 = relationship('User', foreign_keys=[user_id1])
    user2 = relationship('User', foreign_keys=[user_id2])

    __table_args__ = (
        UniqueConstraint('user_id1', 'user_id2', name='uix_friend_pair'),
        CheckConstraint('user_id1 < user_id2', name='ck_friend_pair_order'),
    )
