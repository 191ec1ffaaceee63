from __future__ import annotations

from typing import Any


class ListResponseMixin:
    """Wraps a service's ``list`` result in the paged envelope.

    ``list`` must take ``limit`` and ``offset`` as its last two positional
    arguments.
    """

    @classmethod
    def list_response(cls, db, *args, **kwargs) -> dict[str, Any]:
        items = cls.list(db, *args, **kwargs)  # type: ignore[attr-defined]
        if args:
            limit, offset = args[-2], args[-1]
        else:
            limit, offset = kwargs.get("limit"), kwargs.get("offset")
        return {"items": items, "count": len(items), "limit": limit, "offset": offset}
