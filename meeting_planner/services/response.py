from typing import Any


class ListResponseMixin:
    """Wrap a service's ``list`` result in the paginated envelope clients expect.

    ``list_response`` forwards its arguments to ``list`` unchanged; ``limit``
    and ``offset`` are read from keyword arguments, or from the last two
    positional arguments as every ``list`` signature in this package ends
    with them.
    """

    def list_response(self, db, *args, **kwargs) -> dict[str, Any]:
        items = self.list(db, *args, **kwargs)
        if "limit" in kwargs or len(args) < 2:
            limit = kwargs.get("limit")
            offset = kwargs.get("offset", 0)
        else:
            limit, offset = args[-2], args[-1]
        return {"items": items, "count": len(items), "limit": limit, "offset": offset}
