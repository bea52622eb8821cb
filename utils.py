"""
Shared query helpers: pagination, sorting, substring search, grouped counts
and read-time resolution of admin references ("populate").
"""
import math
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from fastapi import Query
from pymongo import ASCENDING, DESCENDING

from database import ADMINS, get_collection, serialize

ADMIN_PUBLIC_FIELDS = {"username": 1, "email": 1}
ADMIN_NAME_ONLY = {"username": 1}


class PageParams:
    """Query parameters shared by every paginated list endpoint."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
        sort_by: str = Query("createdAt", alias="sortBy", pattern=r"^[A-Za-z0-9_.]+$"),
        order: str = Query("desc", pattern="^(asc|desc)$"),
    ):
        self.page = page
        self.limit = limit
        self.sort_by = sort_by
        self.order = order

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def sort(self) -> List[Tuple[str, int]]:
        direction = DESCENDING if self.order == "desc" else ASCENDING
        keys = [(self.sort_by, direction)]
        if self.sort_by != "_id":
            keys.append(("_id", direction))
        return keys

    def meta(self, total: int) -> Dict[str, int]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": total,
            "pages": math.ceil(total / self.limit) if total else 0,
        }


def search_filter(term: Optional[str], fields: Sequence[str]) -> Dict[str, Any]:
    """Case-insensitive substring match of `term` across `fields`."""
    if not term:
        return {}
    pattern = re.escape(term.strip())
    return {"$or": [{f: {"$regex": pattern, "$options": "i"}} for f in fields]}


def count_by(collection_name: str, field: str, match: Optional[Dict[str, Any]] = None) -> Dict[str, int]:
    """Group documents by `field` and return {value: count}."""
    pipeline: List[Dict[str, Any]] = []
    if match:
        pipeline.append({"$match": match})
    pipeline.append({"$group": {"_id": f"${field}", "count": {"$sum": 1}}})
    counts: Dict[str, int] = {}
    for row in get_collection(collection_name).aggregate(pipeline):
        if row["_id"] is None:
            continue
        counts[str(row["_id"])] = row["count"]
    return counts


def _collect_refs(node: Any, parts: List[str], out: set) -> None:
    if isinstance(node, list):
        for item in node:
            _collect_refs(item, parts, out)
        return
    if not isinstance(node, dict) or not parts:
        return
    head, rest = parts[0], parts[1:]
    if head not in node:
        return
    if rest:
        _collect_refs(node[head], rest, out)
    elif node[head] is not None:
        out.add(node[head])


def _replace_refs(node: Any, parts: List[str], lookup: Dict[Any, Dict[str, Any]]) -> None:
    if isinstance(node, list):
        for item in node:
            _replace_refs(item, parts, lookup)
        return
    if not isinstance(node, dict) or not parts:
        return
    head, rest = parts[0], parts[1:]
    if head not in node:
        return
    if rest:
        _replace_refs(node[head], rest, lookup)
    elif node[head] is not None:
        node[head] = lookup.get(node[head], node[head])


def populate(docs: Iterable[Dict[str, Any]], paths: Dict[str, Dict[str, int]]) -> List[Dict[str, Any]]:
    """Resolve admin ObjectId references in place.

    `paths` maps a dotted path (arrays are traversed transparently) to the
    admin projection to substitute, e.g. {"adminNotes.addedBy": {"username": 1}}.
    References to deleted admins are left as the raw id.
    """
    docs = list(docs)
    for path, projection in paths.items():
        parts = path.split(".")
        ids: set = set()
        for doc in docs:
            _collect_refs(doc, parts, ids)
        if not ids:
            continue
        admins = get_collection(ADMINS).find({"_id": {"$in": list(ids)}}, projection)
        lookup = {a["_id"]: a for a in admins}
        for doc in docs:
            _replace_refs(doc, parts, lookup)
    return docs


def present(docs: Iterable[Dict[str, Any]], paths: Optional[Dict[str, Dict[str, int]]] = None) -> List[Dict[str, Any]]:
    """Populate (when `paths` given) and serialize a batch of documents."""
    docs = list(docs)
    if paths:
        docs = populate(docs, paths)
    return [serialize(d) for d in docs]


def present_one(doc: Dict[str, Any], paths: Optional[Dict[str, Dict[str, int]]] = None) -> Dict[str, Any]:
    return present([doc], paths)[0]


def flatten_update(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Turn nested section dicts into dotted `$set` paths so siblings survive."""
    out: Dict[str, Any] = {}
    for key, value in data.items():
        path = f"{prefix}{key}"
        if isinstance(value, dict):
            out.update(flatten_update(value, prefix=f"{path}."))
        else:
            out[path] = value
    return out
