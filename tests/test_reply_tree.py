from types import SimpleNamespace

from lawsphere.domain.forum.reply_tree import (
    collect_author_ids,
    count_replies,
    find_reply,
    has_author,
    iter_replies,
)


def node(id, user_id=None, children=None):
    return SimpleNamespace(id=id, user_id=user_id, children=children or [])


def sample_forest():
    #  1
    #  ├── 2
    #  │   └── 3
    #  │       └── 4
    #  └── 5
    #  6
    return [
        node(1, user_id=10, children=[
            node(2, user_id=11, children=[node(3, user_id=12, children=[node(4, user_id=13)])]),
            node(5, user_id=10),
        ]),
        node(6, user_id=None),
    ]


def test_iter_replies_is_pre_order():
    assert [r.id for r in iter_replies(sample_forest())] == [1, 2, 3, 4, 5, 6]


def test_find_reply_at_any_depth():
    forest = sample_forest()
    assert find_reply(forest, 4).user_id == 13
    assert find_reply(forest, 6).id == 6
    assert find_reply(forest, "3").id == 3


def test_find_reply_missing_or_none():
    assert find_reply(sample_forest(), 99) is None
    assert find_reply(sample_forest(), None) is None
    assert find_reply([], 1) is None


def test_find_reply_returns_first_in_pre_order_on_duplicate_ids():
    first = node(7, user_id=1)
    forest = [node(1, children=[first]), node(7, user_id=2)]
    assert find_reply(forest, 7) is first


def test_count_and_authors():
    forest = sample_forest()
    assert count_replies(forest) == 6
    assert count_replies([]) == 0
    assert collect_author_ids(forest) == {10, 11, 12, 13}


def test_has_author_checks_nested_levels():
    forest = sample_forest()
    assert has_author(forest, 13)
    assert not has_author(forest, 14)


def test_deep_chain_does_not_recurse():
    root = node(0)
    current = root
    for i in range(1, 5000):
        child = node(i)
        current.children.append(child)
        current = child
    assert count_replies([root]) == 5000
    assert find_reply([root], 4999).id == 4999
