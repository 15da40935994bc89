from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

# Bookmarked topics: one row per user/topic pair
saved_topics = Table(
    "saved_topics",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("topic_id", Integer, ForeignKey("topics.id", ondelete="CASCADE"), primary_key=True),
    Column("created_at", DateTime, server_default=func.now()),
)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    profile_image = Column(String(500), nullable=True)  # CDN URL or "default-profile.png"
    role = Column(String(20), default="client", nullable=False)  # client, lawyer, admin
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    lawyer_profile = relationship("Lawyer", back_populates="user", uselist=False)
    saved_topics = relationship("Topic", secondary=saved_topics, order_by="Topic.id")


class Lawyer(Base):
    __tablename__ = "lawyers"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    specialization = Column(String(255), nullable=True)
    consultation_fee = Column(Float, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="lawyer_profile")
    consultations = relationship("Consultation", back_populates="lawyer")


class Topic(Base):
    """Forum thread; owns its reply forest, votes and reports"""

    __tablename__ = "topics"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    title = Column(Text, nullable=False)  # HTML-escaped, up to 6x the typed length
    category = Column(String(100), nullable=False, index=True)
    content = Column(Text, nullable=False)
    anonymous = Column(Boolean, default=False, nullable=False)
    views = Column(Integer, default=0, nullable=False)
    vote_score = Column(Integer, default=0, nullable=False)
    is_pinned = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User")
    # Top-level replies only; nested replies hang off Reply.children
    replies = relationship(
        "Reply",
        primaryjoin="and_(Topic.id == Reply.topic_id, Reply.parent_id.is_(None))",
        order_by="Reply.id",
        cascade="all",
        lazy="selectin",
    )
    votes = relationship("TopicVote", cascade="all, delete-orphan", lazy="selectin")
    reports = relationship("TopicReport", cascade="all, delete-orphan", lazy="selectin")

    @property
    def upvotes(self) -> set[int]:
        return {v.user_id for v in self.votes if v.value == "up"}

    @property
    def downvotes(self) -> set[int]:
        return {v.user_id for v in self.votes if v.value == "down"}

    @property
    def reporters(self) -> set[int]:
        return {r.user_id for r in self.reports}


class Reply(Base):
    """Node of a topic's reply forest; the same shape at every depth"""

    __tablename__ = "replies"

    id = Column(Integer, primary_key=True, index=True)
    topic_id = Column(Integer, ForeignKey("topics.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_id = Column(Integer, ForeignKey("replies.id", ondelete="CASCADE"), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    content = Column(Text, nullable=False)
    anonymous = Column(Boolean, default=False, nullable=False)
    vote_score = Column(Integer, default=0, nullable=False)
    report_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    children = relationship(
        "Reply",
        order_by="Reply.id",
        cascade="all",
        lazy="selectin",
    )
    votes = relationship("ReplyVote", cascade="all, delete-orphan", lazy="selectin")

    @property
    def upvotes(self) -> set[int]:
        return {v.user_id for v in self.votes if v.value == "up"}

    @property
    def downvotes(self) -> set[int]:
        return {v.user_id for v in self.votes if v.value == "down"}


class TopicVote(Base):
    __tablename__ = "topic_votes"
    __table_args__ = (UniqueConstraint("topic_id", "user_id", name="uq_topic_vote_user"),)

    id = Column(Integer, primary_key=True)
    topic_id = Column(Integer, ForeignKey("topics.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    value = Column(String(4), nullable=False)  # up, down
    created_at = Column(DateTime, server_default=func.now())


class ReplyVote(Base):
    __tablename__ = "reply_votes"
    __table_args__ = (UniqueConstraint("reply_id", "user_id", name="uq_reply_vote_user"),)

    id = Column(Integer, primary_key=True)
    reply_id = Column(Integer, ForeignKey("replies.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    value = Column(String(4), nullable=False)  # up, down
    created_at = Column(DateTime, server_default=func.now())


class TopicReport(Base):
    __tablename__ = "topic_reports"
    __table_args__ = (UniqueConstraint("topic_id", "user_id", name="uq_topic_report_user"),)

    id = Column(Integer, primary_key=True)
    topic_id = Column(Integer, ForeignKey("topics.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class Consultation(Base):
    __tablename__ = "consultations"

    id = Column(Integer, primary_key=True, index=True)
    lawyer_id = Column(Integer, ForeignKey("lawyers.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Scheduling (local wall-clock, no timezone)
    date = Column(DateTime, nullable=False)
    time = Column(String(10), nullable=False)  # HH:MM format
    type = Column(String(20), nullable=False)  # video, phone, in-person
    notes = Column(Text, nullable=True)
    message = Column(Text, nullable=True)

    # Status workflow: pending → accepted → completed
    # pending: requested by the client, or re-proposed by the client after a reschedule
    # accepted: lawyer accepted (or lawyer rescheduled)
    # rejected / cancelled: terminal
    # completed: set by the sweep once date+time has passed
    # rescheduled: legacy value, read back as accepted
    status = Column(String(20), default="pending", nullable=False, index=True)
    paid = Column(Boolean, default=False, nullable=False)
    unread_by_client = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    lawyer = relationship("Lawyer", back_populates="consultations")
    client = relationship("User")
    reschedule_requests = relationship(
        "RescheduleRequest",
        back_populates="consultation",
        order_by="RescheduleRequest.id",
        cascade="all, delete-orphan",
    )


class RescheduleRequest(Base):
    __tablename__ = "reschedule_requests"

    id = Column(Integer, primary_key=True)
    consultation_id = Column(
        Integer, ForeignKey("consultations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date = Column(DateTime, nullable=False)
    time = Column(String(10), nullable=False)
    message = Column(Text, default="", nullable=False)
    requested_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    consultation = relationship("Consultation", back_populates="reschedule_requests")
