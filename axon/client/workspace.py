"""Open editing tabs.

At most one tab may be bound to a given saved request; ``open`` of an
already-open request activates the existing tab. Every bulk close is the
single ``close`` primitive applied to a computed subset of tab ids.
"""

import logging
from typing import Any, Dict, List, Optional

from ..errors import NotFoundError, ValidationError
from .models import ErrorResponse, ResponseSnapshot, Tab, new_id

logger = logging.getLogger(__name__)

DRAFT_FIELDS = ("name", "url", "method", "params", "headers", "body", "auth")
BOOKKEEPING_FIELDS = ("is_saved", "is_modified", "request_id", "collection_id")


class Workspace:
    def __init__(self):
        self.tabs: List[Tab] = []
        self.active_tab_id: Optional[str] = None

    def get(self, tab_id: str) -> Tab:
        for tab in self.tabs:
            if tab.id == tab_id:
                return tab
        raise NotFoundError(f"Tab {tab_id} not found")

    def find(self, tab_id: str) -> Optional[Tab]:
        return next((tab for tab in self.tabs if tab.id == tab_id), None)

    def tab_for_request(self, request_id: str) -> Optional[Tab]:
        return next((tab for tab in self.tabs if tab.request_id == request_id), None)

    @property
    def active_tab(self) -> Optional[Tab]:
        return self.find(self.active_tab_id) if self.active_tab_id else None

    def activate(self, tab_id: str) -> Tab:
        tab = self.get(tab_id)
        self.active_tab_id = tab.id
        return tab

    # ----- opening -----

    def open(self, request) -> Tab:
        existing = self.tab_for_request(request.id)
        if existing is not None:
            self.active_tab_id = existing.id
            return existing
        tab = Tab.from_request(request)
        self.tabs.append(tab)
        self.active_tab_id = tab.id
        return tab

    def open_blank(self) -> Tab:
        tab = Tab(id=new_id())
        self.tabs.append(tab)
        self.active_tab_id = tab.id
        return tab

    # ----- editing -----

    def update(self, tab_id: str, patch: Dict[str, Any]) -> Tab:
        """Merge ``patch`` into the tab.

        Any draft field marks the tab modified; a patch made only of
        bookkeeping fields (``is_saved`` and friends) does not.
        """
        tab = self.get(tab_id)
        unknown = set(patch) - set(DRAFT_FIELDS) - set(BOOKKEEPING_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown tab fields: {', '.join(sorted(unknown))}")
        request_id = patch.get("request_id")
        if request_id is not None:
            holder = self.tab_for_request(request_id)
            if holder is not None and holder.id != tab_id:
                raise ValidationError(f"Request {request_id} is already open in another tab")

        for key, value in patch.items():
            setattr(tab, key, value)
        if any(key in DRAFT_FIELDS for key in patch) and "is_modified" not in patch:
            tab.is_modified = True
        return tab

    def mark_saved(self, tab_id: str, request_id: str = None, collection_id: str = None) -> Tab:
        patch = {"is_saved": True, "is_modified": False}
        if request_id is not None:
            patch["request_id"] = request_id
        if collection_id is not None:
            patch["collection_id"] = collection_id
        return self.update(tab_id, patch)

    def save(self, tab_id: str, store, collection_id: str = None) -> Tab:
        """Persist the tab's draft through ``store`` and mark it clean.

        A tab bound to a request updates it; an unbound tab creates a request
        in ``collection_id`` (or its own collection) and binds to it.
        """
        tab = self.get(tab_id)
        fields = tab.request_fields()
        if tab.request_id is not None and tab.request_id in store.requests:
            store.update_request(tab.request_id, fields)
            return self.mark_saved(tab_id)

        target = collection_id or tab.collection_id
        if target is None:
            raise ValidationError("Choose a collection to save this request into")
        request = store.create_request(target, fields)
        return self.mark_saved(tab_id, request_id=request.id, collection_id=target)

    def set_response(self, tab_id: str, response) -> Optional[Tab]:
        """Store a response on the tab if it is still open; editing state is untouched."""
        if not isinstance(response, (ResponseSnapshot, ErrorResponse)) and response is not None:
            raise ValidationError("Unsupported response type")
        tab = self.find(tab_id)
        if tab is None:
            logger.debug("Tab %s closed before its response arrived", tab_id)
            return None
        tab.response = response
        return tab

    # ----- closing -----

    def close(self, tab_id: str) -> None:
        tab = self.get(tab_id)
        self.tabs.remove(tab)
        if self.active_tab_id == tab_id:
            self.active_tab_id = self.tabs[0].id if self.tabs else None

    def _close_many(self, tab_ids: List[str]) -> List[str]:
        for tab_id in tab_ids:
            self.close(tab_id)
        return tab_ids

    def _index(self, tab_id: str) -> int:
        return self.tabs.index(self.get(tab_id))

    def close_others(self, tab_id: str) -> List[str]:
        self.get(tab_id)
        closed = self._close_many([tab.id for tab in self.tabs if tab.id != tab_id])
        self.active_tab_id = tab_id
        return closed

    def close_to_left(self, tab_id: str) -> List[str]:
        index = self._index(tab_id)
        return self._close_many([tab.id for tab in self.tabs[:index]])

    def close_to_right(self, tab_id: str) -> List[str]:
        index = self._index(tab_id)
        return self._close_many([tab.id for tab in self.tabs[index + 1:]])

    def close_all_saved(self) -> List[str]:
        return self._close_many([tab.id for tab in self.tabs if tab.is_saved and not tab.is_modified])

    def close_all(self) -> List[str]:
        return self._close_many([tab.id for tab in self.tabs])
