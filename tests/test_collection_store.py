from unittest.mock import MagicMock

import pytest

from axon.client.collections import CollectionStore
from axon.client.models import BasicAuth, NoAuth
from axon.errors import CycleError, NotFoundError, OperationFailed, ValidationError


@pytest.fixture()
def store():
    """A small local tree: API > Users > Admin, plus a sibling root."""
    store = CollectionStore()
    api = store.create("API")
    users = store.create("Users", parent_id=api.id)
    admin = store.create("Admin", parent_id=users.id)
    store.create("Scratch")
    store.create_request(users.id, {"name": "List users", "url": "https://api.test/users"})
    store.create_request(admin.id, {"name": "Ban", "url": "https://api.test/admin/ban-hammer"})
    return store


def _ids_by_name(store):
    return {node.name: node.id for node in store.collections.values()}


def test_create_orders_siblings(store):
    names = [store.collections[cid].name for cid in store.root_ids]
    assert names == ["API", "Scratch"]
    assert [store.collections[cid].order for cid in store.root_ids] == [0, 1]
    assert store.path(_ids_by_name(store)["Admin"]) == ["API", "Users", "Admin"]


def test_create_requires_name_and_parent(store):
    with pytest.raises(ValidationError):
        store.create("   ")
    with pytest.raises(NotFoundError):
        store.create("Orphan", parent_id="missing")


def test_search_nested_url_returns_full_path(store):
    results = store.search("HAMMER")
    assert len(results) == 1
    result = results[0]
    assert result.type == "request"
    assert result.name == "Ban"
    assert result.path == ("API", "Users", "Admin")
    assert result.url == "https://api.test/admin/ban-hammer"


def test_search_collection_path_excludes_itself(store):
    results = store.search("admin")
    kinds = [(item.type, item.name, item.path) for item in results]
    assert kinds == [
        ("collection", "Admin", ("API", "Users")),
        ("request", "Ban", ("API", "Users", "Admin")),
    ]


def test_empty_search_clears_without_touching_tree(store):
    store.search("users")
    assert store.search_results
    before = (dict(store.collections), dict(store.requests), list(store.root_ids))

    assert store.search("") == []
    assert store.search_results == []
    assert (dict(store.collections), dict(store.requests), list(store.root_ids)) == before


def test_delete_cascades_and_clears_state(store):
    ids = _ids_by_name(store)
    store.select_collection(ids["Admin"])
    store.expand(ids["Users"])
    ban = next(r for r in store.requests.values() if r.name == "Ban")
    store.set_active_request(ban.id)

    removed = store.delete(ids["Users"])

    assert removed == {ids["Users"], ids["Admin"]}
    assert set(store.collections) == {ids["API"], ids["Scratch"]}
    assert store.requests == {}
    assert store.selected_collection_id is None
    assert store.active_request_id is None
    assert store.expanded == set()


def test_move_rejects_descendant(store):
    ids = _ids_by_name(store)
    with pytest.raises(CycleError):
        store.move(ids["API"], ids["Admin"])
    with pytest.raises(CycleError):
        store.move(ids["Users"], ids["Users"])
    assert store.collections[ids["API"]].parent_id is None


def test_move_reparents_and_renumbers(store):
    ids = _ids_by_name(store)
    store.move(ids["Admin"], None, 0)

    assert [store.collections[cid].name for cid in store.root_ids] == ["Admin", "API", "Scratch"]
    assert [store.collections[cid].order for cid in store.root_ids] == [0, 1, 2]
    assert store.collections[ids["Users"]].child_ids == []
    assert store.path(ids["Admin"]) == ["Admin"]


def test_request_lifecycle(store):
    ids = _ids_by_name(store)
    listing = next(r for r in store.requests.values() if r.name == "List users")

    copy = store.duplicate_request(listing.id)
    assert copy.id != listing.id
    assert copy.name == "List users (copy)"
    assert copy.collection_id == listing.collection_id
    assert copy.order == 1

    store.update_request(copy.id, {"method": "post", "auth": {"type": "basic", "username": "u", "password": "p"}})
    assert copy.method == "POST"
    assert copy.auth == BasicAuth(username="u", password="p")
    assert listing.auth == NoAuth()

    store.move_request(listing.id, ids["Scratch"])
    assert store.collections[ids["Users"]].request_ids == [copy.id]
    assert copy.order == 0
    assert listing.collection_id == ids["Scratch"]


def test_duplicate_copies_fields_and_keeps_source(store):
    ids = _ids_by_name(store)
    source = store.create_request(ids["Scratch"], {
        "name": "Create user",
        "method": "post",
        "url": "https://api.test/users",
        "headers": {"Content-Type": "application/json", "X-Trace": "1"},
        "body": '{"name": "alice"}',
    })
    before = (source.id, source.name, source.method, source.url, dict(source.headers), source.body)

    copy = store.duplicate_request(source.id, ids["API"])

    assert copy.id != source.id
    assert (copy.method, copy.url, copy.headers, copy.body) == (
        source.method, source.url, source.headers, source.body,
    )
    assert copy.collection_id == ids["API"]
    assert copy.headers is not source.headers
    assert (source.id, source.name, source.method, source.url, dict(source.headers), source.body) == before
    assert store.get_request(source.id) is source
    assert store.collections[ids["Scratch"]].request_ids == [source.id]

    store.delete_request(listing.id)
    assert listing.id not in store.requests
    assert store.collections[ids["Scratch"]].request_ids == []


def test_drag_and_drop(store):
    ids = _ids_by_name(store)
    listing = next(r for r in store.requests.values() if r.name == "List users")

    store.begin_drag("request", listing.id)
    store.drop(ids["Scratch"])
    assert listing.collection_id == ids["Scratch"]
    assert store.dragged is None

    store.begin_drag("collection", ids["API"])
    with pytest.raises(CycleError):
        store.drop(ids["Admin"])
    assert store.dragged is None

    with pytest.raises(ValidationError):
        store.drop(ids["API"])


def test_tree_and_flattened(store):
    tree = store.tree()
    assert [node["name"] for node in tree] == ["API", "Scratch"]
    assert tree[0]["children"][0]["requests"][0].name == "List users"
    assert [node.name for node in store.flattened()] == ["API", "Users", "Admin", "Scratch"]


@pytest.fixture()
def remote():
    remote = MagicMock()
    counter = iter(range(1, 100))
    remote.create_collection.side_effect = lambda *args: {"id": f"c{next(counter)}"}
    remote.create_request.side_effect = lambda *args: {"id": f"r{next(counter)}"}
    return remote


def test_remote_ids_are_used(remote):
    store = CollectionStore(remote=remote)
    node = store.create("Remote", description="from server")
    request = store.create_request(node.id, {"name": "Ping", "url": "https://api.test/ping"})

    assert node.id == "c1"
    assert request.id == "r2"
    remote.create_collection.assert_called_once_with("Remote", "from server", None)
    payload = remote.create_request.call_args.args[1]
    assert payload["auth"] == {"type": "none"}


@pytest.mark.parametrize(
    "operation, call",
    [
        ("delete_collection", lambda s, ids: s.delete(ids["root"])),
        ("move_collection", lambda s, ids: s.move(ids["child"], None)),
        ("update_collection", lambda s, ids: s.update(ids["root"], {"name": "Renamed"})),
        ("create_collection", lambda s, ids: s.create("New", parent_id=ids["root"])),
        ("duplicate_request", lambda s, ids: s.duplicate_request(ids["request"])),
        ("delete_request", lambda s, ids: s.delete_request(ids["request"])),
    ],
)
def test_remote_failure_leaves_tree_unchanged(remote, operation, call):
    store = CollectionStore(remote=remote)
    root = store.create("Root")
    child = store.create("Child", parent_id=root.id)
    request = store.create_request(child.id, {"name": "Ping"})
    ids = {"root": root.id, "child": child.id, "request": request.id}

    snapshot = (
        {cid: (n.name, n.parent_id, n.order, list(n.child_ids), list(n.request_ids)) for cid, n in store.collections.items()},
        {rid: (r.name, r.collection_id, r.order) for rid, r in store.requests.items()},
        list(store.root_ids),
    )
    getattr(remote, operation).side_effect = OperationFailed("backend down")

    with pytest.raises(OperationFailed):
        call(store, ids)

    after = (
        {cid: (n.name, n.parent_id, n.order, list(n.child_ids), list(n.request_ids)) for cid, n in store.collections.items()},
        {rid: (r.name, r.collection_id, r.order) for rid, r in store.requests.items()},
        list(store.root_ids),
    )
    assert after == snapshot


def test_load_rebuilds_arena(remote):
    remote.list_collections.return_value = (
        [
            {"id": "b", "name": "Child", "parent_id": "a", "order": 0},
            {"id": "a", "name": "Root", "parent_id": None, "order": 0},
        ],
        [
            {"id": "r2", "name": "Two", "collection_id": "b", "order": 1, "url": "https://x.test/2"},
            {"id": "r1", "name": "One", "collection_id": "b", "order": 0, "url": "https://x.test/1",
             "auth": {"type": "bearer", "token": "t"}},
        ],
    )
    store = CollectionStore(remote=remote)
    store.load()

    assert store.root_ids == ["a"]
    assert store.collections["a"].child_ids == ["b"]
    assert store.collections["b"].request_ids == ["r1", "r2"]
    assert store.requests["r1"].auth.token == "t"
