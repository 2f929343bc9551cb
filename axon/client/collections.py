"""Client-side collection tree.

The tree is an arena: ``collections`` and ``requests`` are dicts keyed by id,
nodes link to each other only through ``parent_id``/``child_ids``/``request_ids``.
Every mutation validates against the arena, then asks the remote store (when
there is one) and only applies the change locally once the remote confirmed
it. A failed remote call leaves the tree exactly as it was.
"""

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Set, Tuple

from ..errors import AxonError, CycleError, NotFoundError, OperationFailed, ValidationError
from . import interchange
from .models import (
    ApiRequest,
    CollectionNode,
    SearchResult,
    auth_from_dict,
    auth_to_dict,
    new_id,
)

logger = logging.getLogger(__name__)


def _request_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    fields = {key: value for key, value in data.items() if key in ApiRequest.EDITABLE}
    if "method" in fields:
        fields["method"] = (fields["method"] or "GET").upper()
    if "auth" in fields:
        fields["auth"] = auth_from_dict(fields["auth"])
    for key in ("headers", "query_params"):
        if key in fields:
            fields[key] = dict(fields[key] or {})
    if "name" in fields:
        fields["name"] = (fields["name"] or "").strip()
        if not fields["name"]:
            raise ValidationError("Request name is required")
    return fields


def _wire(fields: Dict[str, Any]) -> Dict[str, Any]:
    payload = dict(fields)
    if "auth" in payload:
        payload["auth"] = auth_to_dict(payload["auth"])
    return payload


class CollectionStore:
    def __init__(self, remote=None):
        self.remote = remote
        self.collections: Dict[str, CollectionNode] = {}
        self.requests: Dict[str, ApiRequest] = {}
        self.root_ids: List[str] = []

        self.selected_collection_id: Optional[str] = None
        self.active_request_id: Optional[str] = None
        self.expanded: Set[str] = set()
        self.search_query = ""
        self.search_results: List[SearchResult] = []
        self.dragged: Optional[Tuple[str, str]] = None

    # ----- lookups -----

    def get_collection(self, collection_id: str) -> CollectionNode:
        node = self.collections.get(collection_id)
        if node is None:
            raise NotFoundError(f"Collection {collection_id} not found")
        return node

    def get_request(self, request_id: str) -> ApiRequest:
        request = self.requests.get(request_id)
        if request is None:
            raise NotFoundError(f"Request {request_id} not found")
        return request

    def _children(self, parent_id: Optional[str]) -> List[str]:
        if parent_id is None:
            return self.root_ids
        return self.collections[parent_id].child_ids

    def _is_ancestor_or_self(self, ancestor_id: str, node_id: Optional[str]) -> bool:
        while node_id is not None:
            if node_id == ancestor_id:
                return True
            node_id = self.collections[node_id].parent_id
        return False

    def _subtree(self, collection_id: str) -> List[str]:
        found, stack = [], [collection_id]
        while stack:
            current = stack.pop()
            found.append(current)
            stack.extend(self.collections[current].child_ids)
        return found

    def path(self, collection_id: str) -> List[str]:
        """Names from the root down to ``collection_id`` inclusive."""
        names = []
        node_id = collection_id
        while node_id is not None:
            node = self.get_collection(node_id)
            names.append(node.name)
            node_id = node.parent_id
        return names[::-1]

    def _remote(self, operation: str, *args):
        try:
            return getattr(self.remote, operation)(*args)
        except OperationFailed:
            logger.warning("Remote %s failed; collection tree left unchanged", operation)
            raise

    @staticmethod
    def _renumber(ids: List[str], items: Dict) -> None:
        for index, item_id in enumerate(ids):
            items[item_id].order = index

    # ----- loading / views -----

    def load(self) -> None:
        """Replace the arena with the remote's tree."""
        if self.remote is None:
            return
        collections, requests = self._remote("list_collections")

        self.collections = {}
        self.requests = {}
        self.root_ids = []
        for data in sorted(collections, key=lambda item: item.get("order", 0)):
            self.collections[data["id"]] = CollectionNode(
                id=data["id"],
                name=data["name"],
                description=data.get("description"),
                parent_id=data.get("parent_id"),
                order=data.get("order", 0),
            )
        for node in self.collections.values():
            if node.parent_id in self.collections:
                self.collections[node.parent_id].child_ids.append(node.id)
            else:
                node.parent_id = None
                self.root_ids.append(node.id)
        for data in sorted(requests, key=lambda item: item.get("order", 0)):
            if data.get("collection_id") not in self.collections:
                continue
            request = ApiRequest.from_payload(data)
            self.requests[request.id] = request
            self.collections[request.collection_id].request_ids.append(request.id)

        if self.selected_collection_id not in self.collections:
            self.selected_collection_id = None
        if self.active_request_id not in self.requests:
            self.active_request_id = None
        self.expanded &= set(self.collections)
        self._refresh_search()
        logger.info("Loaded %d collections, %d requests", len(self.collections), len(self.requests))

    def tree(self, parent_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Nested ``{id, name, ..., requests, children}`` dicts in sibling order."""
        return [
            {
                "id": node.id,
                "name": node.name,
                "description": node.description,
                "parent_id": node.parent_id,
                "order": node.order,
                "requests": [self.requests[rid] for rid in node.request_ids],
                "children": self.tree(node.id),
            }
            for node in (self.collections[cid] for cid in self._children(parent_id))
        ]

    def _walk(self):
        # Pre-order (depth, node) pairs, iterative so depth is unbounded.
        stack = [(0, cid) for cid in reversed(self.root_ids)]
        while stack:
            depth, cid = stack.pop()
            node = self.collections[cid]
            yield depth, node
            stack.extend((depth + 1, child) for child in reversed(node.child_ids))

    def flattened(self) -> List[CollectionNode]:
        return [node for _, node in self._walk()]

    # ----- selection / expansion -----

    def select_collection(self, collection_id: Optional[str]) -> None:
        if collection_id is not None:
            self.get_collection(collection_id)
        self.selected_collection_id = collection_id

    def set_active_request(self, request_id: Optional[str]) -> None:
        if request_id is not None:
            self.get_request(request_id)
        self.active_request_id = request_id

    def toggle(self, collection_id: str) -> bool:
        self.get_collection(collection_id)
        if collection_id in self.expanded:
            self.expanded.discard(collection_id)
            return False
        self.expanded.add(collection_id)
        return True

    def expand(self, collection_id: str) -> None:
        self.get_collection(collection_id)
        self.expanded.add(collection_id)

    def collapse(self, collection_id: str) -> None:
        self.expanded.discard(collection_id)

    def expand_all(self) -> None:
        self.expanded = set(self.collections)

    def collapse_all(self) -> None:
        self.expanded = set()

    # ----- collections -----

    def create(self, name: str, parent_id: Optional[str] = None, description: str = None) -> CollectionNode:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Collection name is required")
        if parent_id is not None:
            self.get_collection(parent_id)

        if self.remote is not None:
            node_id = self._remote("create_collection", name, description, parent_id)["id"]
        else:
            node_id = new_id()

        siblings = self._children(parent_id)
        node = CollectionNode(
            id=node_id, name=name, description=description, parent_id=parent_id, order=len(siblings)
        )
        self.collections[node_id] = node
        siblings.append(node_id)
        self._refresh_search()
        return node

    def update(self, collection_id: str, patch: Dict[str, Any]) -> CollectionNode:
        node = self.get_collection(collection_id)
        changes = {key: value for key, value in patch.items() if key in ("name", "description")}
        if "name" in changes:
            changes["name"] = (changes["name"] or "").strip()
            if not changes["name"]:
                raise ValidationError("Collection name is required")

        if self.remote is not None and changes:
            self._remote("update_collection", collection_id, changes)
        for key, value in changes.items():
            setattr(node, key, value)
        self._refresh_search()
        return node

    def delete(self, collection_id: str) -> Set[str]:
        """Remove a collection with every descendant collection and request."""
        node = self.get_collection(collection_id)
        if self.remote is not None:
            self._remote("delete_collection", collection_id)

        doomed = self._subtree(collection_id)
        siblings = self._children(node.parent_id)
        siblings.remove(collection_id)
        self._renumber(siblings, self.collections)

        for cid in doomed:
            for rid in self.collections[cid].request_ids:
                del self.requests[rid]
        for cid in doomed:
            del self.collections[cid]
            self.expanded.discard(cid)

        if self.selected_collection_id in doomed:
            self.selected_collection_id = None
        if self.active_request_id not in self.requests:
            self.active_request_id = None
        self._refresh_search()
        return set(doomed)

    def move(self, collection_id: str, new_parent_id: Optional[str] = None, new_order: int = None) -> CollectionNode:
        node = self.get_collection(collection_id)
        if new_parent_id is not None:
            self.get_collection(new_parent_id)
            if self._is_ancestor_or_self(collection_id, new_parent_id):
                raise CycleError("Cannot move a collection into itself or one of its descendants")
        if new_order is not None and new_order < 0:
            raise ValidationError("Order must not be negative")

        if self.remote is not None:
            self._remote("move_collection", collection_id, new_parent_id, new_order)

        old = self._children(node.parent_id)
        old.remove(collection_id)
        self._renumber(old, self.collections)

        target = self._children(new_parent_id)
        position = len(target) if new_order is None else min(new_order, len(target))
        target.insert(position, collection_id)
        node.parent_id = new_parent_id
        self._renumber(target, self.collections)
        self._refresh_search()
        return node

    # ----- requests -----

    def create_request(self, collection_id: str, request_data: Dict[str, Any]) -> ApiRequest:
        node = self.get_collection(collection_id)
        fields = _request_fields(request_data)
        if "name" not in fields:
            raise ValidationError("Request name is required")

        if self.remote is not None:
            request_id = self._remote("create_request", collection_id, _wire(fields))["id"]
        else:
            request_id = new_id()

        request = ApiRequest(
            id=request_id, collection_id=collection_id, order=len(node.request_ids), **fields
        )
        self.requests[request_id] = request
        node.request_ids.append(request_id)
        self._refresh_search()
        return request

    def update_request(self, request_id: str, patch: Dict[str, Any]) -> ApiRequest:
        request = self.get_request(request_id)
        fields = _request_fields(patch)

        if self.remote is not None and fields:
            self._remote("update_request", request_id, _wire(fields))
        for key, value in fields.items():
            setattr(request, key, value)
        self._refresh_search()
        return request

    def delete_request(self, request_id: str) -> None:
        request = self.get_request(request_id)
        if self.remote is not None:
            self._remote("delete_request", request_id)

        owner = self.collections[request.collection_id]
        owner.request_ids.remove(request_id)
        self._renumber(owner.request_ids, self.requests)
        del self.requests[request_id]
        if self.active_request_id == request_id:
            self.active_request_id = None
        self._refresh_search()

    def move_request(self, request_id: str, new_collection_id: str, new_order: int = None) -> ApiRequest:
        request = self.get_request(request_id)
        target = self.get_collection(new_collection_id)
        if new_order is not None and new_order < 0:
            raise ValidationError("Order must not be negative")

        if self.remote is not None:
            self._remote("move_request", request_id, new_collection_id, new_order)

        source = self.collections[request.collection_id]
        source.request_ids.remove(request_id)
        self._renumber(source.request_ids, self.requests)

        position = len(target.request_ids) if new_order is None else min(new_order, len(target.request_ids))
        target.request_ids.insert(position, request_id)
        request.collection_id = new_collection_id
        self._renumber(target.request_ids, self.requests)
        self._refresh_search()
        return request

    def duplicate_request(self, request_id: str, new_collection_id: Optional[str] = None) -> ApiRequest:
        source = self.get_request(request_id)
        target = self.get_collection(new_collection_id or source.collection_id)

        if self.remote is not None:
            copy_id = self._remote("duplicate_request", request_id, new_collection_id)["id"]
        else:
            copy_id = new_id()

        copy = replace(
            source,
            id=copy_id,
            name=f"{source.name} (copy)",
            collection_id=target.id,
            headers=dict(source.headers),
            query_params=dict(source.query_params),
            order=len(target.request_ids),
        )
        self.requests[copy_id] = copy
        target.request_ids.append(copy_id)
        self._refresh_search()
        return copy

    # ----- import / export -----

    def _export_draft(self, collection_id: str) -> Dict[str, Any]:
        node = self.get_collection(collection_id)
        return {
            "name": node.name,
            "description": node.description,
            "requests": [self.requests[rid].to_payload() for rid in node.request_ids],
            "children": [self._export_draft(cid) for cid in node.child_ids],
        }

    def export_collection(self, collection_id: str, fmt: str = interchange.NATIVE) -> Dict[str, Any]:
        """``collection_id`` with its whole subtree as a ``fmt`` document."""
        return interchange.render(self._export_draft(collection_id), fmt, collection_id)

    def import_collection(self, document, parent_id: Optional[str] = None, fmt: str = None) -> CollectionNode:
        """Recreate a native or Postman v2.1 document under ``parent_id``.

        The document is validated in full before anything is created; every
        node then goes through ``create``/``create_request``. If one of those
        fails, the partly imported root is deleted again and the error is
        re-raised.
        """
        draft = interchange.parse(document, fmt)
        if parent_id is not None:
            self.get_collection(parent_id)

        root = self.create(draft["name"], parent_id, draft["description"])
        pending = [(root.id, draft)]
        try:
            while pending:
                node_id, current = pending.pop(0)
                for request in current["requests"]:
                    self.create_request(node_id, request)
                for child in current["children"]:
                    node = self.create(child["name"], node_id, child["description"])
                    pending.append((node.id, child))
        except AxonError:
            self._discard_import(root.id)
            raise
        logger.info("Imported collection %s with %d requests", root.name, len(self._requests_under(root.id)))
        return root

    def _requests_under(self, collection_id: str) -> List[str]:
        return [rid for cid in self._subtree(collection_id) for rid in self.collections[cid].request_ids]

    def _discard_import(self, collection_id: str) -> None:
        try:
            self.delete(collection_id)
        except OperationFailed:
            logger.warning("Could not remove partly imported collection %s", collection_id)

    # ----- search -----

    def search(self, query: str) -> List[SearchResult]:
        """Case-insensitive substring match over collection names, request names and URLs.

        Collection results carry their ancestors as ``path``; request results
        carry the full path of the owning collection.
        """
        self.search_query = query or ""
        needle = self.search_query.strip().lower()
        if not needle:
            self.search_results = []
            return []

        results = []
        for _, node in self._walk():
            ancestors = tuple(self.path(node.id)[:-1])
            if needle in node.name.lower():
                results.append(SearchResult("collection", node.id, node.name, ancestors))
            for rid in node.request_ids:
                request = self.requests[rid]
                if needle in request.name.lower() or needle in request.url.lower():
                    results.append(
                        SearchResult("request", rid, request.name, ancestors + (node.name,), request.url)
                    )
        self.search_results = results
        return results

    def clear_search(self) -> None:
        self.search_query = ""
        self.search_results = []

    def _refresh_search(self) -> None:
        if self.search_query:
            self.search(self.search_query)

    # ----- drag and drop -----

    def begin_drag(self, kind: str, item_id: str) -> None:
        if kind == "collection":
            self.get_collection(item_id)
        elif kind == "request":
            self.get_request(item_id)
        else:
            raise ValidationError(f"Cannot drag a {kind!r}")
        self.dragged = (kind, item_id)

    def cancel_drag(self) -> None:
        self.dragged = None

    def drop(self, target_collection_id: Optional[str] = None, order: int = None):
        """Finish a drag onto ``target_collection_id`` (``None`` is the root level)."""
        if self.dragged is None:
            raise ValidationError("Nothing is being dragged")
        kind, item_id = self.dragged
        try:
            if kind == "collection":
                return self.move(item_id, target_collection_id, order)
            if target_collection_id is None:
                raise ValidationError("Requests must be dropped onto a collection")
            return self.move_request(item_id, target_collection_id, order)
        finally:
            self.dragged = None
