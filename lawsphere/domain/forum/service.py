"""Forum service - Topic, reply tree and voting business logic"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from ...cache import cache
from ...config import DEFAULT_AVATAR, TOPICS_MAX_PAGE_SIZE, TOPICS_PAGE_SIZE
from ...errors import DuplicateActionError, NotFoundError, ValidationError
from ...models import Reply, ReplyVote, Topic, TopicReport, TopicVote, User
from ...utils.sanitization import validate_and_sanitize_input
from .reply_tree import collect_author_ids, count_replies, find_reply, has_author
from .repository import ForumRepository
from .schemas import CATEGORIES, CATEGORY_NAMES

logger = logging.getLogger(__name__)

ANONYMOUS_NAME = "Anonymous"
STOCK_PROFILE_IMAGE = "default-profile.png"
TITLE_MAX_LENGTH = 200
CONTENT_MAX_LENGTH = 10000
VOTE_DIRECTIONS = ("up", "down")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def normalize_profile_image(profile_image: Optional[str]) -> str:
    if not profile_image or profile_image == STOCK_PROFILE_IMAGE:
        return DEFAULT_AVATAR
    return profile_image


def author_display(user: Optional[User], anonymous: bool) -> dict:
    """Public author card; anonymous posts and deleted authors are masked"""
    if anonymous or user is None:
        return {"id": None, "name": ANONYMOUS_NAME, "profileImage": DEFAULT_AVATAR, "createdAt": None}
    return {
        "id": user.id,
        "name": user.name,
        "profileImage": normalize_profile_image(user.profile_image),
        "createdAt": _iso(user.created_at),
    }


class ForumService:
    """Service layer for the community forum"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ForumRepository()

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    def _format_reply(self, reply: Reply, users: dict[int, User]) -> dict:
        return {
            "id": reply.id,
            "parentId": reply.parent_id,
            "content": reply.content,
            "anonymous": bool(reply.anonymous),
            "voteScore": reply.vote_score or 0,
            "reportCount": reply.report_count or 0,
            "createdAt": _iso(reply.created_at),
            "user": author_display(users.get(reply.user_id), bool(reply.anonymous)),
            "replies": [self._format_reply(child, users) for child in reply.children],
        }

    def _format_summary(self, topic: Topic, users: dict[int, User]) -> dict:
        reply_count = count_replies(topic.replies)
        return {
            "id": topic.id,
            "title": topic.title,
            "category": topic.category,
            "content": topic.content,
            "anonymous": bool(topic.anonymous),
            "user": author_display(users.get(topic.user_id), bool(topic.anonymous)),
            "replies": reply_count,
            "replyCount": reply_count,
            "views": topic.views or 0,
            "voteScore": topic.vote_score or 0,
            "reportCount": len(topic.reports),
            "isPinned": bool(topic.is_pinned),
            "createdAt": _iso(topic.created_at),
            "updatedAt": _iso(topic.updated_at),
        }

    def _format_summaries(self, topics: list[Topic]) -> list[dict]:
        users = self.repo.get_users_by_ids(self.db, [t.user_id for t in topics])
        return [self._format_summary(t, users) for t in topics]

    @staticmethod
    def _clean(value: Optional[str], max_length: int, label: str) -> str:
        try:
            return validate_and_sanitize_input(value, max_length=max_length)
        except ValueError as e:
            raise ValidationError(f"{label} must be at most {max_length} characters") from e

    # ------------------------------------------------------------------
    # Topics
    # ------------------------------------------------------------------

    def list_topics(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> dict:
        """Paginated topic summaries; pinned first, then newest"""
        page = max(int(page or 1), 1)
        limit = min(max(int(limit or TOPICS_PAGE_SIZE), 1), TOPICS_MAX_PAGE_SIZE)

        topics, total = self.repo.search_topics(
            self.db, category=category, search=search, offset=(page - 1) * limit, limit=limit
        )
        return {
            "items": self._format_summaries(topics),
            "total": total,
            "page": page,
            "limit": limit,
            "pages": (total + limit - 1) // limit,
        }

    def list_categories(self) -> list[dict]:
        """Category catalogue with live topic/post counts"""
        stats = cache.category_stats()
        if stats is None:
            stats = self.repo.get_category_stats(self.db)
            cache.store_category_stats(stats)

        return [
            {
                "name": name,
                "icon": icon,
                "topics": stats.get(name, {}).get("topics", 0),
                "posts": stats.get(name, {}).get("posts", 0),
            }
            for name, icon in CATEGORIES
        ]

    def get_topic_detail(self, topic_id: int, requesting_user_id: Optional[int] = None) -> dict:
        """Full topic with its reply forest; counts one view"""
        if not self.repo.increment_views(self.db, topic_id):
            raise NotFoundError("Topic not found")

        topic = self.repo.get_topic(self.db, topic_id)
        if not topic:
            raise NotFoundError("Topic not found")

        author_ids = collect_author_ids(topic.replies)
        author_ids.add(topic.user_id)
        users = self.repo.get_users_by_ids(self.db, author_ids)

        data = self._format_summary(topic, users)
        data["replies"] = [self._format_reply(r, users) for r in topic.replies]

        has_reported = False
        is_saved = False
        if requesting_user_id is not None:
            has_reported = requesting_user_id in topic.reporters
            is_saved = self.repo.is_saved(self.db, requesting_user_id, topic_id)
        data["hasReported"] = has_reported
        data["isSaved"] = is_saved
        return data

    def create_topic(
        self,
        author_id: int,
        title: Optional[str],
        category: Optional[str],
        content: Optional[str],
        anonymous: bool = False,
    ) -> dict:
        """Create a new topic with validation"""
        title = self._clean(title, TITLE_MAX_LENGTH, "Title")
        content = self._clean(content, CONTENT_MAX_LENGTH, "Content")
        category = (category or "").strip()

        if not title or not category or not content:
            raise ValidationError("Title, category and content are required")
        if category not in CATEGORY_NAMES:
            raise ValidationError(f"Unknown category: {category}")

        topic = self.repo.create_topic(
            self.db,
            author_id,
            title=title,
            category=category,
            content=content,
            anonymous=bool(anonymous),
            views=0,
            vote_score=0,
            is_pinned=False,
        )
        cache.invalidate_category_stats()
        logger.info(f"📝 Topic {topic.id} created in '{category}' by user {author_id}")

        users = self.repo.get_users_by_ids(self.db, [author_id])
        return self._format_summary(topic, users)

    # ------------------------------------------------------------------
    # Replies
    # ------------------------------------------------------------------

    def add_reply(
        self,
        topic_id: int,
        author_id: int,
        content: Optional[str],
        parent_reply_id: Optional[int] = None,
        anonymous: bool = False,
    ) -> dict:
        """Attach a reply to the topic or, recursively, to any reply in its forest"""
        topic = self.repo.get_topic_for_update(self.db, topic_id)
        if not topic:
            raise NotFoundError("Topic not found")

        content = self._clean(content, CONTENT_MAX_LENGTH, "Reply")
        if not content:
            raise ValidationError("Reply content is required")

        reply = Reply(
            topic_id=topic.id,
            user_id=author_id,
            content=content,
            anonymous=bool(anonymous),
            vote_score=0,
            report_count=0,
        )

        if parent_reply_id is not None:
            parent = find_reply(topic.replies, parent_reply_id)
            if parent is None:
                raise NotFoundError("Parent comment not found")
            parent.children.append(reply)
        else:
            topic.replies.append(reply)

        topic.updated_at = func.now()
        self.repo.save(self.db)
        logger.info(
            f"💬 Reply {reply.id} added to topic {topic_id}"
            + (f" under reply {parent_reply_id}" if parent_reply_id is not None else "")
        )

        users = self.repo.get_users_by_ids(self.db, [author_id])
        return self._format_reply(reply, users)

    # ------------------------------------------------------------------
    # Votes and reports
    # ------------------------------------------------------------------

    @staticmethod
    def _apply_vote(target, vote_cls, voter_id: int, direction: str) -> int:
        """Toggle off, switch, or add the voter's single vote row; recompute score"""
        existing = next((v for v in target.votes if v.user_id == voter_id), None)

        if existing is not None and existing.value == direction:
            target.votes.remove(existing)
        elif existing is not None:
            existing.value = direction
        else:
            target.votes.append(vote_cls(user_id=voter_id, value=direction))

        target.vote_score = len(target.upvotes) - len(target.downvotes)
        return target.vote_score

    def toggle_vote(
        self,
        target_kind: str,
        topic_id: int,
        voter_id: int,
        direction: str,
        reply_id: Optional[int] = None,
    ) -> int:
        """
        Up/down vote a topic or a reply at any depth and return the new score.

        For replies ``reply_id`` names the reply inside the topic's forest.
        Repeating the same direction removes the vote; the opposite direction
        replaces it.
        """
        if direction not in VOTE_DIRECTIONS:
            raise ValidationError(f"Invalid vote direction: {direction}")
        if target_kind not in ("topic", "reply"):
            raise ValidationError(f"Invalid vote target: {target_kind}")

        topic = self.repo.get_topic_for_update(self.db, topic_id)
        if not topic:
            raise NotFoundError("Topic not found")

        if target_kind == "topic":
            score = self._apply_vote(topic, TopicVote, voter_id, direction)
        else:
            reply = find_reply(topic.replies, reply_id) if reply_id is not None else None
            if reply is None:
                raise NotFoundError("Reply not found")
            score = self._apply_vote(reply, ReplyVote, voter_id, direction)

        self.repo.save(self.db)
        target_id = topic_id if target_kind == "topic" else reply_id
        logger.info(
            f"🗳️ {direction}vote toggled on {target_kind} {target_id} by user {voter_id} (score {score})"
        )
        return score

    def report_topic(self, topic_id: int, user_id: int) -> int:
        """Flag a topic once per user; returns the report count"""
        topic = self.repo.get_topic_for_update(self.db, topic_id)
        if not topic:
            raise NotFoundError("Topic not found")
        if user_id in topic.reporters:
            raise DuplicateActionError("You have already reported this topic")

        topic.reports.append(TopicReport(user_id=user_id))
        try:
            self.repo.save(self.db)
        except IntegrityError as e:
            raise DuplicateActionError("You have already reported this topic") from e

        count = len(topic.reports)
        logger.warning(f"🚩 Topic {topic_id} reported by user {user_id} ({count} reports)")
        return count

    def report_reply(self, topic_id: int, reply_id: int, user_id: int) -> int:
        """Bump a reply's report counter; repeated reports all count"""
        topic = self.repo.get_topic_for_update(self.db, topic_id)
        if not topic:
            raise NotFoundError("Topic not found")
        reply = find_reply(topic.replies, reply_id)
        if reply is None:
            raise NotFoundError("Reply not found")

        reply.report_count = (reply.report_count or 0) + 1
        self.repo.save(self.db)

        logger.warning(
            f"🚩 Reply {reply_id} in topic {topic_id} reported by user {user_id} ({reply.report_count} reports)"
        )
        return reply.report_count

    # ------------------------------------------------------------------
    # Saved topics and per-user views
    # ------------------------------------------------------------------

    def save_topic(self, user_id: int, topic_id: int) -> None:
        user = self.repo.get_user(self.db, user_id)
        if not user:
            raise NotFoundError("User not found")
        topic = self.repo.get_topic(self.db, topic_id)
        if not topic:
            raise NotFoundError("Topic not found")
        if topic in user.saved_topics:
            raise DuplicateActionError("Topic already saved")

        user.saved_topics.append(topic)
        try:
            self.repo.save(self.db)
        except IntegrityError as e:
            raise DuplicateActionError("Topic already saved") from e
        logger.info(f"🔖 User {user_id} saved topic {topic_id}")

    def unsave_topic(self, user_id: int, topic_id: int) -> None:
        user = self.repo.get_user(self.db, user_id)
        if not user:
            return
        topic = next((t for t in user.saved_topics if t.id == topic_id), None)
        if topic is None:
            return

        user.saved_topics.remove(topic)
        self.repo.save(self.db)
        logger.info(f"🔖 User {user_id} unsaved topic {topic_id}")

    def list_saved_topics(self, user_id: int) -> list[dict]:
        user = self.repo.get_user(self.db, user_id)
        if not user:
            return []
        return self._format_summaries(list(user.saved_topics))

    def list_topics_authored_by(self, user_id: int) -> list[dict]:
        return self._format_summaries(self.repo.get_topics_by_author(self.db, user_id))

    def list_topics_commented_on_by(self, user_id: int) -> list[dict]:
        """Topics where any reply, at any depth, was written by the user"""
        topics = [
            t for t in self.repo.get_topics_with_replies(self.db) if has_author(t.replies, user_id)
        ]
        return self._format_summaries(topics)
