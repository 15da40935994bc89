"""Forum router - FastAPI endpoints for the community forum"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_optional_user
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from ...realtime import (
    CLOSED,
    NEW_REPLY,
    NEW_TOPIC,
    REPLY_VOTE_UPDATE,
    TOPIC_VOTE_UPDATE,
    BroadcastNotifier,
    Notifier,
    get_notifier,
    topic_room,
)
from .schemas import ReplyCreate, TopicCreate
from .service import ForumService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/community", tags=["Community"])

limit_topic_create = create_rate_limiter(limit=10, window_seconds=600, key_prefix="topic_create")
limit_reply_create = create_rate_limiter(limit=30, window_seconds=300, key_prefix="reply_create")
limit_reports = create_rate_limiter(limit=20, window_seconds=3600, key_prefix="forum_report")


def get_forum_service(db: Session = Depends(get_db)) -> ForumService:
    """Dependency injection for ForumService"""
    return ForumService(db)


# ============================================================================
# TOPICS
# ============================================================================


@router.get("/topics")
async def list_topics(
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: ForumService = Depends(get_forum_service),
):
    """List topic summaries, pinned first then newest"""
    return {"success": True, "data": service.list_topics(category, search, page, limit)}


@router.get("/categories")
async def list_categories(service: ForumService = Depends(get_forum_service)):
    """Category catalogue with topic and post counts"""
    return {"success": True, "data": service.list_categories()}


@router.get("/topics/{topic_id}")
async def get_topic(
    topic_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    service: ForumService = Depends(get_forum_service),
):
    """Topic detail with the full reply forest; counts a view"""
    user_id = current_user.id if current_user else None
    return {"success": True, "data": service.get_topic_detail(topic_id, user_id)}


@router.post("/topics", status_code=status.HTTP_201_CREATED)
async def create_topic(
    data: TopicCreate,
    current_user: User = Depends(get_current_user),
    service: ForumService = Depends(get_forum_service),
    notifier: Notifier = Depends(get_notifier),
    _: None = Depends(limit_topic_create),
):
    topic = service.create_topic(
        current_user.id, data.title, data.category, data.content, data.anonymous
    )
    await notifier.publish(NEW_TOPIC, topic)
    return {"success": True, "data": topic, "message": "Topic created"}


# ============================================================================
# REPLIES
# ============================================================================


@router.post("/topics/{topic_id}/replies", status_code=status.HTTP_201_CREATED)
async def add_reply(
    topic_id: int,
    data: ReplyCreate,
    current_user: User = Depends(get_current_user),
    service: ForumService = Depends(get_forum_service),
    notifier: Notifier = Depends(get_notifier),
    _: None = Depends(limit_reply_create),
):
    """Reply to the topic, or to any reply in it when parentId is given"""
    reply = service.add_reply(
        topic_id, current_user.id, data.content, data.parentId, data.anonymous
    )
    await notifier.publish(
        NEW_REPLY,
        {"topicId": topic_id, "parentId": data.parentId, "reply": reply},
        room=topic_room(topic_id),
    )
    return {"success": True, "data": reply, "message": "Reply added"}


# ============================================================================
# VOTES
# ============================================================================


async def _vote_topic(topic_id: int, direction: str, user: User, service: ForumService, notifier: Notifier):
    score = service.toggle_vote("topic", topic_id, user.id, direction)
    await notifier.publish(TOPIC_VOTE_UPDATE, {"topicId": topic_id, "voteScore": score})
    return {"success": True, "data": {"voteScore": score}}


async def _vote_reply(
    topic_id: int, reply_id: int, direction: str, user: User, service: ForumService, notifier: Notifier
):
    score = service.toggle_vote("reply", topic_id, user.id, direction, reply_id=reply_id)
    await notifier.publish(
        REPLY_VOTE_UPDATE,
        {"topicId": topic_id, "replyId": reply_id, "voteScore": score},
        room=topic_room(topic_id),
    )
    return {"success": True, "data": {"voteScore": score}}


@router.put("/topics/{topic_id}/upvote")
async def upvote_topic(
    topic_id: int,
    current_user: User = Depends(get_current_user),
    service: ForumService = Depends(get_forum_service),
    notifier: Notifier = Depends(get_notifier),
):
    return await _vote_topic(topic_id, "up", current_user, service, notifier)


@router.put("/topics/{topic_id}/downvote")
async def downvote_topic(
    topic_id: int,
    current_user: User = Depends(get_current_user),
    service: ForumService = Depends(get_forum_service),
    notifier: Notifier = Depends(get_notifier),
):
    return await _vote_topic(topic_id, "down", current_user, service, notifier)


@router.put("/topics/{topic_id}/replies/{reply_id}/upvote")
async def upvote_reply(
    topic_id: int,
    reply_id: int,
    current_user: User = Depends(get_current_user),
    service: ForumService = Depends(get_forum_service),
    notifier: Notifier = Depends(get_notifier),
):
    return await _vote_reply(topic_id, reply_id, "up", current_user, service, notifier)


@router.put("/topics/{topic_id}/replies/{reply_id}/downvote")
async def downvote_reply(
    topic_id: int,
    reply_id: int,
    current_user: User = Depends(get_current_user),
    service: ForumService = Depends(get_forum_service),
    notifier: Notifier = Depends(get_notifier),
):
    return await _vote_reply(topic_id, reply_id, "down", current_user, service, notifier)


# ============================================================================
# REPORTS
# ============================================================================


@router.post("/topics/{topic_id}/report")
async def report_topic(
    topic_id: int,
    current_user: User = Depends(get_current_user),
    service: ForumService = Depends(get_forum_service),
    _: None = Depends(limit_reports),
):
    count = service.report_topic(topic_id, current_user.id)
    return {"success": True, "data": {"reportCount": count}, "message": "Topic reported"}


@router.post("/topics/{topic_id}/replies/{reply_id}/report")
async def report_reply(
    topic_id: int,
    reply_id: int,
    current_user: User = Depends(get_current_user),
    service: ForumService = Depends(get_forum_service),
    _: None = Depends(limit_reports),
):
    count = service.report_reply(topic_id, reply_id, current_user.id)
    return {"success": True, "data": {"reportCount": count}, "message": "Reply reported"}


# ============================================================================
# SAVED TOPICS AND PER-USER VIEWS
# ============================================================================


@router.post("/topics/{topic_id}/save")
async def save_topic(
    topic_id: int,
    current_user: User = Depends(get_current_user),
    service: ForumService = Depends(get_forum_service),
):
    service.save_topic(current_user.id, topic_id)
    return {"success": True, "message": "Topic saved"}


@router.delete("/topics/{topic_id}/save")
async def unsave_topic(
    topic_id: int,
    current_user: User = Depends(get_current_user),
    service: ForumService = Depends(get_forum_service),
):
    service.unsave_topic(current_user.id, topic_id)
    return {"success": True, "message": "Topic removed from saved"}


@router.get("/me/saved")
async def my_saved_topics(
    current_user: User = Depends(get_current_user),
    service: ForumService = Depends(get_forum_service),
):
    return {"success": True, "data": service.list_saved_topics(current_user.id)}


@router.get("/me/topics")
async def my_topics(
    current_user: User = Depends(get_current_user),
    service: ForumService = Depends(get_forum_service),
):
    return {"success": True, "data": service.list_topics_authored_by(current_user.id)}


@router.get("/me/commented")
async def my_commented_topics(
    current_user: User = Depends(get_current_user),
    service: ForumService = Depends(get_forum_service),
):
    """Topics the current user replied to at any depth"""
    return {"success": True, "data": service.list_topics_commented_on_by(current_user.id)}


# ============================================================================
# REAL-TIME
# ============================================================================


@router.websocket("/ws")
async def community_ws(websocket: WebSocket):
    """
    Forum event stream.

    Clients send ``{"action": "join" | "leave", "topicId": <id>}`` to enter or
    leave a topic room; room-scoped events (replies, reply votes) are only
    delivered to members, global events go to everyone.
    """
    notifier = getattr(websocket.app.state, "notifier", None)
    if not isinstance(notifier, BroadcastNotifier):
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
        return

    await websocket.accept()
    queue = await notifier.register()

    async def pump_events():
        while True:
            message = await queue.get()
            if message is CLOSED:
                await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Too slow")
                return
            await websocket.send_json(message)

    async def read_commands():
        while True:
            command = await websocket.receive_json()
            topic_id = command.get("topicId") if isinstance(command, dict) else None
            if topic_id is None:
                continue
            action = command.get("action")
            if action == "join":
                await notifier.join(queue, topic_room(topic_id))
            elif action == "leave":
                await notifier.leave(queue, topic_room(topic_id))

    tasks = [asyncio.create_task(pump_events()), asyncio.create_task(read_commands())]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc and not isinstance(exc, WebSocketDisconnect):
                logger.warning(f"⚠️ Community websocket closed with error: {exc}")
    finally:
        for task in tasks:
            task.cancel()
        await notifier.unregister(queue)
        logger.debug("Community websocket disconnected")
