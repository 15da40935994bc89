"""
Reply forest helpers

A topic's replies form an ordered forest: every node carries its own ordered
``children`` list and nesting depth is unbounded. These helpers only rely on
``id``, ``user_id`` and ``children`` so they work on ORM rows and on plain
test doubles alike.
"""

from typing import Iterator, Optional


def iter_replies(replies) -> Iterator:
    """Yield every reply in the forest in pre-order (node, then its children)"""
    stack = list(reversed(replies or []))
    while stack:
        reply = stack.pop()
        yield reply
        stack.extend(reversed(reply.children or []))


def find_reply(replies, reply_id) -> Optional[object]:
    """First reply whose id matches, searching every nesting level in pre-order"""
    if reply_id is None:
        return None
    target = str(reply_id)
    for reply in iter_replies(replies):
        if str(reply.id) == target:
            return reply
    return None


def count_replies(replies) -> int:
    """Total number of nodes in the forest"""
    return sum(1 for _ in iter_replies(replies))


def collect_author_ids(replies) -> set:
    """Distinct author ids across the whole forest"""
    return {reply.user_id for reply in iter_replies(replies) if reply.user_id is not None}


def has_author(replies, user_id) -> bool:
    """True when any reply at any depth was written by ``user_id``"""
    return any(reply.user_id == user_id for reply in iter_replies(replies))
