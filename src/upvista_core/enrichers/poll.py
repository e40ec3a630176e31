"""Poll extension: question, ordered options, tallies and viewer selection."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from datetime import timedelta
from typing import Any

from upvista_core.core.errors import NotFoundError, ValidationFailedError
from upvista_core.enrichers.base import Enricher
from upvista_core.models.post import PollDetails, PollOption, Post, PostVariant
from upvista_core.store import CancellationToken, Filter
from upvista_core.utils.timestamps import format_timestamp, utcnow

logger = logging.getLogger(__name__)

POLLS_TABLE = "polls"
POLL_OPTIONS_TABLE = "poll_options"
POLL_VOTES_TABLE = "poll_votes"

POLL_COLUMNS = "*,options:poll_options(*)"
VIEWER_VOTES = "viewer_votes:poll_votes(option_id)"


def build_poll(row: dict[str, Any]) -> PollDetails:
    """Turn a poll row with embedded options and votes into a PollDetails."""
    data = dict(row)
    options = sorted(data.pop("options", None) or [], key=lambda item: item["option_index"])
    selected_ids = {str(vote["option_id"]) for vote in data.pop("viewer_votes", None) or []}

    poll = PollDetails.model_validate(data)
    poll.options = [PollOption.model_validate(option) for option in options]
    for option in poll.options:
        option.is_selected = option.id in selected_ids
    poll.selected_option_indices = [o.option_index for o in poll.options if o.is_selected]
    if poll.options:
        poll.total_votes = sum(option.votes_count for option in poll.options)
    return poll


class PollEnricher(Enricher):
    """Reads and writes polls, their options and votes."""

    variant = PostVariant.POLL

    async def _fetch(
        self,
        filter: Filter,
        viewer_id: str | None,
        cancel: CancellationToken | None,
    ) -> list[dict[str, Any]]:
        columns = POLL_COLUMNS
        if viewer_id is not None:
            columns = f"{columns},{VIEWER_VOTES}"
            filter = filter.copy().eq("viewer_votes.user_id", viewer_id)
        return await self.store.select(POLLS_TABLE, filter, columns=columns, cancel=cancel)

    async def load_batch(
        self,
        posts: Sequence[Post],
        viewer_id: str | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        if not posts:
            return
        rows = await self._fetch(
            Filter().in_("post_id", [post.id for post in posts]), viewer_id, cancel
        )
        by_post = {str(row["post_id"]): row for row in rows}
        for post in posts:
            row = by_post.get(post.id)
            if row is None:
                logger.error("Poll extension missing for post %s", post.id)
                continue
            post.poll = build_poll(row)

    async def get_for_post(self, post_id: str, viewer_id: str | None = None) -> PollDetails:
        rows = await self._fetch(Filter().eq("post_id", post_id), viewer_id, None)
        if not rows:
            raise NotFoundError("Poll not found")
        return build_poll(rows[0])

    async def create(self, post: Post, payload: dict[str, Any]) -> PollDetails:
        """Insert the poll row for ``post`` followed by its ordered options."""
        poll_id = str(uuid.uuid4())
        duration_hours = payload.get("duration_hours")
        ends_at = None
        if duration_hours:
            ends_at = format_timestamp(utcnow() + timedelta(hours=int(duration_hours)))

        rows = await self.store.insert(
            POLLS_TABLE,
            {
                "id": poll_id,
                "post_id": post.id,
                "question": payload["question"],
                "duration_hours": duration_hours,
                "ends_at": ends_at,
                "allow_multiple_votes": bool(payload.get("allow_multiple_votes")),
                "total_votes": 0,
            },
        )
        option_rows = await self.store.insert(
            POLL_OPTIONS_TABLE,
            [
                {
                    "id": str(uuid.uuid4()),
                    "poll_id": poll_id,
                    "option_text": text,
                    "option_index": index,
                    "votes_count": 0,
                }
                for index, text in enumerate(payload["options"])
            ],
        )
        return build_poll({**rows[0], "options": option_rows})

    async def vote(self, post_id: str, user_id: str, option_indices: Sequence[int]) -> PollDetails:
        """Record ``user_id``'s choice and return the refreshed poll.

        Single-select polls replace any earlier vote; multi-select polls add
        to it. Votes on a closed poll are rejected.
        """
        poll = await self.get_for_post(post_id, user_id)
        if poll.is_closed(utcnow()):
            raise ValidationFailedError("Poll has ended")

        indices = list(dict.fromkeys(option_indices))
        if not indices:
            raise ValidationFailedError("At least one option must be selected")
        if len(indices) > 1 and not poll.allow_multiple_votes:
            raise ValidationFailedError("This poll accepts a single option")
        options = {option.option_index: option for option in poll.options}
        unknown = [index for index in indices if index not in options]
        if unknown:
            raise ValidationFailedError(f"Unknown poll option(s): {unknown}")

        if not poll.allow_multiple_votes and poll.selected_option_indices:
            await self.store.delete(
                POLL_VOTES_TABLE, Filter().eq("poll_id", poll.id).eq("user_id", user_id)
            )
            poll.selected_option_indices = []

        new_indices = [index for index in indices if index not in poll.selected_option_indices]
        if new_indices:
            await self.store.insert(
                POLL_VOTES_TABLE,
                [
                    {"poll_id": poll.id, "option_id": options[index].id, "user_id": user_id}
                    for index in new_indices
                ],
                returning=False,
            )
        return await self.get_for_post(post_id, user_id)
