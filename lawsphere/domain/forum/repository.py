"""Forum repository - Database operations for topics, replies and users"""

from typing import Optional

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from ...models import Reply, Topic, User, saved_topics
from ...utils.sanitization import escape_like, stored_text_pattern


class ForumRepository:
    """Repository for forum database operations"""

    @staticmethod
    def search_topics(
        db: Session,
        category: Optional[str] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[Topic], int]:
        """Filter topics; pinned first, then newest. Returns (page, total)"""
        query = db.query(Topic)

        if category:
            query = query.filter(Topic.category == category)

        if search and search.strip():
            # Title and content are stored escaped, category names are not
            text_term = stored_text_pattern(search)
            category_term = f"%{escape_like(search.strip().lower())}%"
            query = query.filter(
                or_(
                    func.lower(Topic.title).like(text_term, escape="\\"),
                    func.lower(Topic.content).like(text_term, escape="\\"),
                    func.lower(Topic.category).like(category_term, escape="\\"),
                )
            )

        total = query.count()
        topics = (
            query.order_by(Topic.is_pinned.desc(), Topic.created_at.desc(), Topic.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return topics, total

    @staticmethod
    def get_topic(db: Session, topic_id: int) -> Optional[Topic]:
        """Get a topic by ID"""
        return db.query(Topic).filter(Topic.id == topic_id).first()

    @staticmethod
    def get_topic_for_update(db: Session, topic_id: int) -> Optional[Topic]:
        """Get a topic and lock its row until the transaction ends"""
        return db.query(Topic).filter(Topic.id == topic_id).with_for_update().first()

    @staticmethod
    def increment_views(db: Session, topic_id: int) -> bool:
        """Atomically bump the view counter; False when the topic does not exist"""
        result = db.execute(
            update(Topic).where(Topic.id == topic_id).values(views=Topic.views + 1)
        )
        db.commit()
        return result.rowcount > 0

    @staticmethod
    def create_topic(db: Session, user_id: int, **topic_data) -> Topic:
        """Create a new topic"""
        topic = Topic(user_id=user_id, **topic_data)
        db.add(topic)
        db.commit()
        db.refresh(topic)
        return topic

    @staticmethod
    def save(db: Session, instance=None):
        """Commit pending changes, refreshing ``instance`` when given"""
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
        if instance is not None:
            db.refresh(instance)
        return instance

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        """Get a user by ID"""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_users_by_ids(db: Session, user_ids) -> dict[int, User]:
        """Bulk user lookup keyed by id"""
        ids = [uid for uid in set(user_ids) if uid is not None]
        if not ids:
            return {}
        return {u.id: u for u in db.query(User).filter(User.id.in_(ids)).all()}

    @staticmethod
    def is_saved(db: Session, user_id: int, topic_id: int) -> bool:
        """Check whether a topic is in the user's saved set"""
        return (
            db.query(saved_topics)
            .filter(saved_topics.c.user_id == user_id, saved_topics.c.topic_id == topic_id)
            .first()
            is not None
        )

    @staticmethod
    def get_topics_by_author(db: Session, user_id: int) -> list[Topic]:
        """Topics written by a user, newest first"""
        return (
            db.query(Topic)
            .filter(Topic.user_id == user_id)
            .order_by(Topic.created_at.desc(), Topic.id.desc())
            .all()
        )

    @staticmethod
    def get_topics_with_replies(db: Session) -> list[Topic]:
        """Every topic that has at least one reply, newest first"""
        has_reply = db.query(Reply.id).filter(Reply.topic_id == Topic.id).exists()
        return (
            db.query(Topic)
            .filter(has_reply)
            .order_by(Topic.created_at.desc(), Topic.id.desc())
            .all()
        )

    @staticmethod
    def get_category_stats(db: Session) -> dict[str, dict]:
        """Topic and post (topic + reply) counts per category"""
        topic_rows = (
            db.query(Topic.category, func.count(Topic.id)).group_by(Topic.category).all()
        )
        reply_rows = (
            db.query(Topic.category, func.count(Reply.id))
            .join(Reply, Reply.topic_id == Topic.id)
            .group_by(Topic.category)
            .all()
        )

        stats: dict[str, dict] = {}
        for category, count in topic_rows:
            stats.setdefault(category, {"topics": 0, "posts": 0})
            stats[category]["topics"] = count
            stats[category]["posts"] += count
        for category, count in reply_rows:
            stats.setdefault(category, {"topics": 0, "posts": 0})
            stats[category]["posts"] += count
        return stats
