"""In-memory PostgREST emulation mounted through ``httpx.MockTransport``.

Only the slice of PostgREST the application speaks is implemented: the
filter operators, ``or=()``, ordering, paging, ``select=count``, the embeds
used by the repositories (including ``!inner`` semi-joins), unique
constraints, the counter triggers and the two RPC functions.
"""

from __future__ import annotations

import asyncio
import copy
import json
import math
import re
import uuid
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any

import httpx

from upvista_core.store import StoreClient, StoreConfig
from upvista_core.utils.timestamps import format_timestamp, parse_timestamp, utcnow

BASE_URL = "http://store.test"

UNIQUE: dict[str, list[tuple[str, ...]]] = {
    "users": [("username",)],
    "follows": [("follower_id", "following_id")],
    "post_likes": [("post_id", "user_id")],
    "saved_posts": [("post_id", "user_id")],
    "post_shares": [("post_id", "user_id")],
    "articles": [("slug",), ("post_id",)],
    "article_tags": [("article_id", "tag")],
    "polls": [("post_id",)],
    "poll_options": [("poll_id", "option_index")],
    "poll_votes": [("option_id", "user_id")],
    "comment_likes": [("comment_id", "user_id")],
    "hashtags": [("tag",)],
    "post_hashtags": [("post_id", "hashtag_id")],
    "post_mentions": [("post_id", "mentioned_user_id")],
    "hashtag_followers": [("hashtag_id", "user_id")],
}

# Same counters the migration maintains with triggers.
COUNTERS = (
    ("post_likes", "posts", "post_id", "likes_count"),
    ("saved_posts", "posts", "post_id", "saves_count"),
    ("post_shares", "posts", "post_id", "shares_count"),
    ("post_comments", "posts", "post_id", "comments_count"),
    ("comment_likes", "post_comments", "comment_id", "likes_count"),
    ("poll_votes", "poll_options", "option_id", "votes_count"),
    ("poll_votes", "polls", "poll_id", "total_votes"),
    ("post_hashtags", "hashtags", "hashtag_id", "posts_count"),
    ("hashtag_followers", "hashtags", "hashtag_id", "followers_count"),
)

DEFAULTS: dict[str, dict[str, Any]] = {
    "hashtags": {"posts_count": 0, "followers_count": 0, "trending_score": 0.0},
    "post_comments": {"likes_count": 0, "replies_count": 0, "is_edited": False},
    "poll_options": {"votes_count": 0},
    "polls": {"total_votes": 0},
    "saved_posts": {"collection_name": "Saved"},
    "notifications": {"is_read": False, "expires_at": None},
}
STAMP_COLUMN = {"saved_posts": "saved_at"}

# alias column on the parent row -> referenced table
FORWARD_EMBEDS = {"user_id": "users"}
# (parent table, child table) -> child column referencing the parent id
BACKWARD_EMBEDS = {
    ("polls", "poll_options"): "poll_id",
    ("polls", "poll_votes"): "poll_id",
    ("posts", "post_hashtags"): "post_id",
    ("posts", "post_likes"): "post_id",
    ("posts", "post_comments"): "post_id",
    ("posts", "post_shares"): "post_id",
}

_EMBED_RE = re.compile(
    r"^(?:(?P<alias>\w+):)?(?P<relation>\w+)(?P<inner>!inner)?\((?P<columns>.*)\)$"
)


def _split_top_level(text: str) -> list[str]:
    """Split on commas that are not inside parentheses or double quotes."""
    parts: list[str] = []
    depth = 0
    quoted = False
    escaped = False
    current: list[str] = []
    for char in text:
        if escaped:
            current.append(char)
            escaped = False
            continue
        if char == "\\":
            current.append(char)
            escaped = True
            continue
        if char == '"':
            quoted = not quoted
        elif not quoted and char == "(":
            depth += 1
        elif not quoted and char == ")":
            depth -= 1
        elif not quoted and depth == 0 and char == ",":
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    if current:
        parts.append("".join(current))
    return parts


def _unquote(item: str) -> str:
    item = item.strip()
    if len(item) >= 2 and item[0] == '"' and item[-1] == '"':
        return item[1:-1].replace('\\"', '"').replace("\\\\", "\\")
    return item


def _render(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _comparable(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return parse_timestamp(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            return value
    return value


def _matches(row: dict[str, Any], column: str, expression: str) -> bool:
    op, _, raw = expression.partition(".")
    negate = False
    if op == "not":
        negate = True
        op, _, raw = raw.partition(".")
    value = row.get(column)

    if op == "eq":
        result = _render(value) == raw
    elif op == "neq":
        result = _render(value) != raw
    elif op == "is":
        result = _render(value) == raw
    elif op == "in":
        members = {_unquote(item) for item in _split_top_level(raw.strip()[1:-1])}
        result = _render(value) in members
    elif op == "ilike":
        pattern = "^" + ".*".join(re.escape(part) for part in raw.split("*")) + "$"
        result = value is not None and re.match(pattern, str(value), re.IGNORECASE) is not None
    elif op in ("lt", "gt", "gte", "lte"):
        if value is None:
            return False
        left, right = _comparable(value), _comparable(raw)
        result = {
            "lt": left < right,
            "gt": left > right,
            "gte": left >= right,
            "lte": left <= right,
        }[op]
    else:
        raise ValueError(f"unsupported operator {op}")
    return not result if negate else result


def _matches_or(row: dict[str, Any], expression: str) -> bool:
    for part in _split_top_level(expression.strip()[1:-1]):
        column, _, predicate = part.partition(".")
        if _matches(row, column, predicate):
            return True
    return False


def _sort_key(value: Any) -> tuple[int, Any]:
    # NULLs sort last ascending and first descending, as in Postgres.
    if value is None:
        return (1, 0)
    return (0, _comparable(value))


class FakePostgrest:
    """Tables held in memory and served over PostgREST's wire format."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.requests: list[httpx.Request] = []
        self.rpc_calls: list[tuple[str, dict[str, Any]]] = []
        self.failures: dict[tuple[str, str], int] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.now: datetime | None = None

    # -- wiring -----------------------------------------------------------

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self) -> StoreClient:
        config = StoreConfig(
            base_url=BASE_URL, service_key="service-key", timeout_seconds=5.0, pool_size=10
        )
        return StoreClient(config, transport=self.transport)

    def fail(self, table: str, status: int = 500, method: str = "GET") -> None:
        """Make every ``method`` request to ``table`` answer with ``status``."""
        self.failures[(method, table)] = status

    def gate(self, table: str) -> asyncio.Event:
        """Hold requests to ``table`` until the returned event is set."""
        event = asyncio.Event()
        self.gates[table] = event
        return event

    def reads(self, table: str) -> list[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == "GET" and request.url.path == f"/rest/v1/{table}"
        ]

    # -- seeding ----------------------------------------------------------

    def clock(self) -> datetime:
        return self.now or utcnow()

    def add_user(self, username: str, **fields: Any) -> str:
        row = {
            "id": str(uuid.uuid4()),
            "username": username,
            "display_name": username.title(),
            "profile_picture": None,
            "is_verified": False,
            **fields,
        }
        self.tables["users"].append(row)
        return row["id"]

    def add_post(self, user_id: str, *, age: timedelta = timedelta(0), **fields: Any) -> str:
        published = format_timestamp(self.clock() - age)
        row = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "post_type": "text",
            "content": "",
            "media_urls": [],
            "media_types": [],
            "visibility": "public",
            "allows_comments": True,
            "allows_sharing": True,
            "is_published": True,
            "is_draft": False,
            "is_nsfw": False,
            "is_pinned": False,
            "is_featured": False,
            "likes_count": 0,
            "comments_count": 0,
            "shares_count": 0,
            "views_count": 0,
            "saves_count": 0,
            "created_at": published,
            "updated_at": published,
            "published_at": published,
            "deleted_at": None,
            **fields,
        }
        self.tables["posts"].append(row)
        return row["id"]

    def add_row(self, table: str, **fields: Any) -> dict[str, Any]:
        row = self._with_defaults(table, fields)
        self.tables[table].append(row)
        self._apply_counters(table, row, 1)
        return row

    def row(self, table: str, **match: Any) -> dict[str, Any] | None:
        for row in self.tables[table]:
            if all(row.get(key) == value for key, value in match.items()):
                return row
        return None

    def rows(self, table: str, **match: Any) -> list[dict[str, Any]]:
        return [
            row
            for row in self.tables[table]
            if all(row.get(key) == value for key, value in match.items())
        ]

    # -- request handling -------------------------------------------------

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith("/rest/v1/rpc/"):
            return self._rpc(path.rsplit("/", 1)[1], request)

        table = path.removeprefix("/rest/v1/")
        gate = self.gates.get(table)
        if gate is not None:
            await gate.wait()

        status = self.failures.get((request.method, table))
        if status is not None:
            return httpx.Response(status, json={"message": "injected failure"})

        params = list(request.url.params.multi_items())
        if request.method == "GET":
            return self._select(table, params)
        if request.method == "POST":
            return self._insert(table, request)
        if request.method == "PATCH":
            return self._patch(table, params, request)
        if request.method == "DELETE":
            self._delete(table, params)
            return httpx.Response(204)
        return httpx.Response(405, json={"message": "method not allowed"})

    def _filter_rows(
        self, table: str, params: list[tuple[str, str]]
    ) -> tuple[list[dict[str, Any]], dict[str, list[tuple[str, str]]]]:
        rows = self.tables[table]
        embedded: dict[str, list[tuple[str, str]]] = defaultdict(list)
        for key, value in params:
            if key in ("select", "order", "limit", "offset"):
                continue
            if key == "or":
                rows = [row for row in rows if _matches_or(row, value)]
            elif "." in key:
                alias, _, column = key.partition(".")
                embedded[alias].append((column, value))
            else:
                rows = [row for row in rows if _matches(row, key, value)]
        return list(rows), embedded

    def _project(
        self,
        table: str,
        row: dict[str, Any],
        columns: str,
        embedded: dict[str, list[tuple[str, str]]],
    ) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for item in _split_top_level(columns):
            item = item.strip()
            match = _EMBED_RE.match(item)
            if item == "*":
                result.update(copy.deepcopy(row))
            elif match is None:
                result[item] = copy.deepcopy(row.get(item))
            else:
                alias = match.group("alias") or match.group("relation")
                relation = match.group("relation")
                inner = match.group("columns")
                if relation in FORWARD_EMBEDS:
                    target = self.row(FORWARD_EMBEDS[relation], id=row.get(relation))
                    result[alias] = (
                        None
                        if target is None
                        else self._project(FORWARD_EMBEDS[relation], target, inner, {})
                    )
                elif inner:
                    children = self._children(table, row, relation, embedded.get(alias, []))
                    result[alias] = [self._project(relation, c, inner, {}) for c in children]
        return result

    def _children(
        self,
        table: str,
        row: dict[str, Any],
        relation: str,
        conditions: list[tuple[str, str]],
    ) -> list[dict[str, Any]]:
        link = BACKWARD_EMBEDS[(table, relation)]
        children = [c for c in self.tables[relation] if c.get(link) == row["id"]]
        for column, expression in conditions:
            children = [c for c in children if _matches(c, column, expression)]
        return children

    def _semi_join(
        self,
        table: str,
        rows: list[dict[str, Any]],
        columns: str,
        embedded: dict[str, list[tuple[str, str]]],
    ) -> list[dict[str, Any]]:
        """Drop parent rows without a matching child in an ``!inner`` embed."""
        for item in _split_top_level(columns):
            match = _EMBED_RE.match(item.strip())
            if match is None or not match.group("inner"):
                continue
            alias = match.group("alias") or match.group("relation")
            relation = match.group("relation")
            rows = [
                row
                for row in rows
                if self._children(table, row, relation, embedded.get(alias, []))
            ]
        return rows

    def _select(self, table: str, params: list[tuple[str, str]]) -> httpx.Response:
        query = dict(params)
        rows, embedded = self._filter_rows(table, params)
        columns = query.get("select", "*")
        rows = self._semi_join(table, rows, columns, embedded)

        if _split_top_level(columns)[0].strip() == "count":
            return httpx.Response(200, json=[{"count": len(rows)}])

        order = query.get("order")
        if order:
            for part in reversed(order.split(",")):
                column, _, direction = part.partition(".")
                rows.sort(
                    key=lambda row, c=column: _sort_key(row.get(c)),
                    reverse=direction.startswith("desc"),
                )
        offset = int(query.get("offset", 0))
        rows = rows[offset:]
        if "limit" in query:
            rows = rows[: int(query["limit"])]

        return httpx.Response(
            200, json=[self._project(table, row, columns, embedded) for row in rows]
        )

    def _with_defaults(self, table: str, fields: dict[str, Any]) -> dict[str, Any]:
        row = {"id": str(uuid.uuid4()), **DEFAULTS.get(table, {})}
        row.setdefault(STAMP_COLUMN.get(table, "created_at"), format_timestamp(self.clock()))
        row.update(fields)
        return row

    def _violates(self, table: str, row: dict[str, Any], pending: list[dict[str, Any]]) -> bool:
        for columns in UNIQUE.get(table, []):
            key = tuple(row.get(column) for column in columns)
            for other in [*self.tables[table], *pending]:
                if tuple(other.get(column) for column in columns) == key:
                    return True
        return False

    def _apply_counters(self, table: str, row: dict[str, Any], delta: int) -> None:
        for source, target, link, counter in COUNTERS:
            if source != table:
                continue
            parent = self.row(target, id=row.get(link))
            if parent is not None:
                parent[counter] = max(int(parent.get(counter) or 0) + delta, 0)

    def _insert(self, table: str, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        items = body if isinstance(body, list) else [body]

        created: list[dict[str, Any]] = []
        for item in items:
            row = self._with_defaults(table, item)
            if self._violates(table, row, created):
                return httpx.Response(
                    409,
                    json={
                        "code": "23505",
                        "message": f'duplicate key value violates unique constraint "{table}_key"',
                    },
                )
            created.append(row)

        for row in created:
            self.tables[table].append(row)
            self._apply_counters(table, row, 1)

        if "return=representation" in request.headers.get("Prefer", ""):
            return httpx.Response(201, json=copy.deepcopy(created))
        return httpx.Response(201)

    def _patch(
        self, table: str, params: list[tuple[str, str]], request: httpx.Request
    ) -> httpx.Response:
        updates = json.loads(request.content)
        rows, _ = self._filter_rows(table, params)
        for row in rows:
            row.update(updates)
        if "return=representation" in request.headers.get("Prefer", ""):
            return httpx.Response(200, json=copy.deepcopy(rows))
        return httpx.Response(204)

    def _delete(self, table: str, params: list[tuple[str, str]]) -> None:
        doomed, _ = self._filter_rows(table, params)
        doomed_ids = {id(row) for row in doomed}
        self.tables[table] = [row for row in self.tables[table] if id(row) not in doomed_ids]
        for row in doomed:
            self._apply_counters(table, row, -1)

    def _rpc(self, name: str, request: httpx.Request) -> httpx.Response:
        args = json.loads(request.content) if request.content else {}
        self.rpc_calls.append((name, args))
        if name == "increment_post_views":
            post = self.row("posts", id=args["target_post_id"])
            if post is not None:
                post["views_count"] += 1
            return httpx.Response(204)
        if name == "calculate_hashtag_trending_scores":
            self._score_hashtags(float(args["decay_hours"]), int(args["window_days"]))
            return httpx.Response(204)
        return httpx.Response(404, json={"message": f"function {name} not found"})

    def _score_hashtags(self, decay_hours: float, window_days: int) -> None:
        now = self.clock()
        for hashtag in self.tables["hashtags"]:
            score = 0.0
            for link in self.rows("post_hashtags", hashtag_id=hashtag["id"]):
                post = self.row("posts", id=link["post_id"])
                if post is None or not post["is_published"] or post["deleted_at"] is not None:
                    continue
                age = now - parse_timestamp(post["published_at"])
                if age > timedelta(days=window_days):
                    continue
                score += math.exp(-age.total_seconds() / 3600.0 / decay_hours)
            hashtag["trending_score"] = score
