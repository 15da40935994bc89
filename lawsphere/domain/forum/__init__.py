"""
Forum Domain

Community topics with nested reply threads, voting, reports and bookmarks.

Structure:
- reply_tree.py  Traversal helpers over a topic's reply forest
- schemas.py     Request models and the category catalogue
- repository.py  Topic, reply and user queries
- service.py     ForumService
- router.py      /api/community endpoints and the event websocket
"""

from .router import router

__all__ = ["router"]
