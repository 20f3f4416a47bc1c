import pytest

from get621.errors import HttpError
from get621.pipeline import RelationshipMode, expand, related

from conftest import FakeApi, make_post


def family():
    return [
        make_post(1, relationships={"parent_id": 10, "children": [11, 12]}),
        make_post(2, relationships={"parent_id": None, "children": []}),
        make_post(3, relationships={"parent_id": 20, "children": [13]}),
        make_post(10), make_post(20),
        make_post(11), make_post(12), make_post(13),
    ]


def test_none_is_identity():
    api = FakeApi(family())
    posts = api.listing[:3]

    assert expand(posts, RelationshipMode.NONE, api.post) == posts
    assert api.fetched == []


def test_parents():
    api = FakeApi(family())

    parents = expand(api.listing[:3], RelationshipMode.PARENTS, api.post)

    assert [p.id for p in parents] == [10, 20]
    assert api.fetched == [10, 20]


def test_post_without_parent_contributes_nothing():
    api = FakeApi(family())

    assert related(api.by_id[2], RelationshipMode.PARENTS, api.post) == []


def test_children_in_input_then_children_order():
    api = FakeApi(family())
    posts = api.listing[:3]

    children = expand(posts, RelationshipMode.CHILDREN, api.post)

    assert [p.id for p in children] == [11, 12, 13]
    assert len(children) == sum(len(p.children) for p in posts)


def test_fetch_error_propagates():
    api = FakeApi([make_post(1, relationships={"parent_id": 99,
                                               "children": []})])

    with pytest.raises(HttpError):
        expand(api.listing, RelationshipMode.PARENTS, api.post)


def test_resolving_twice_is_identical():
    api = FakeApi(family())

    first = related(api.by_id[1], RelationshipMode.PARENTS, api.post)
    second = related(api.by_id[1], RelationshipMode.PARENTS, api.post)

    assert first == second
