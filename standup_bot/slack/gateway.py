"""Slack Web API calls wrapped in a uniform retry policy."""

import logging
import time
from typing import Any, Callable, List, Optional, TypeVar

from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 3
BASE_DELAY_SECONDS = 1.0

RATE_LIMIT_ERRORS = {"ratelimited", "rate_limited"}
SLACKBOT_USER_ID = "USLACKBOT"


def is_rate_limited(exc: Exception) -> bool:
    """True if ``exc`` is Slack telling us to slow down."""
    if not isinstance(exc, SlackApiError) or exc.response is None:
        return False
    response = exc.response
    if getattr(response, "status_code", None) == 429:
        return True
    try:
        return response.get("error") in RATE_LIMIT_ERRORS
    except AttributeError:
        return False


class SlackGateway:
    """Every outbound call to Slack goes through here.

    Rate-limit responses are always backed off and retried until the attempt
    budget runs out. Other failures are retried too, but the last one is
    raised straight away without a final sleep.
    """

    def __init__(
        self,
        client: WebClient,
        max_attempts: int = MAX_ATTEMPTS,
        base_delay: float = BASE_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self._sleep = sleep

    def with_retry(self, call: Callable[[], T], operation: str = "slack call") -> T:
        last_error: Optional[Exception] = None

        for attempt in range(self.max_attempts):
            try:
                return call()
            except (SlackApiError, OSError) as exc:
                last_error = exc
                delay = self.base_delay * (2 ** attempt)

                if is_rate_limited(exc):
                    logger.warning("%s rate limited (attempt %d), retrying in %.1fs", operation, attempt + 1, delay)
                    self._sleep(delay)
                    continue

                if attempt == self.max_attempts - 1:
                    break

                logger.warning("%s failed (attempt %d): %s; retrying in %.1fs", operation, attempt + 1, exc, delay)
                self._sleep(delay)

        logger.error("%s failed after %d attempts: %s", operation, self.max_attempts, last_error)
        raise last_error

    def post_message(self, channel_id: str, blocks: List[dict], text: str = "Stand-up update") -> str:
        """Post to a channel and return the message ``ts``."""
        response = self.with_retry(
            lambda: self.client.chat_postMessage(channel=channel_id, blocks=blocks, text=text),
            "chat.postMessage",
        )
        return response["ts"]

    def post_thread_reply(self, channel_id: str, thread_ts: str, blocks: List[dict],
                          text: str = "Thread reply") -> str:
        response = self.with_retry(
            lambda: self.client.chat_postMessage(channel=channel_id, thread_ts=thread_ts, blocks=blocks, text=text),
            "chat.postMessage (thread)",
        )
        return response["ts"]

    def post_text(self, channel_id: str, text: str) -> str:
        """Plain-text message, used for confirmations and DMs."""
        response = self.with_retry(
            lambda: self.client.chat_postMessage(channel=channel_id, text=text),
            "chat.postMessage (text)",
        )
        return response["ts"]

    def open_dm(self, user_id: str) -> str:
        """Open (or reuse) the direct-message channel with a user."""
        response = self.with_retry(lambda: self.client.conversations_open(users=user_id), "conversations.open")
        return response["channel"]["id"]

    def open_modal(self, trigger_id: str, view: dict) -> Any:
        return self.with_retry(lambda: self.client.views_open(trigger_id=trigger_id, view=view), "views.open")

    def user_info(self, user_id: str) -> dict:
        response = self.with_retry(lambda: self.client.users_info(user=user_id), "users.info")
        return response["user"]

    def channel_info(self, channel_id: str) -> dict:
        response = self.with_retry(lambda: self.client.conversations_info(channel=channel_id), "conversations.info")
        return response["channel"]

    def list_members(self) -> List[str]:
        """IDs of active human members of the workspace."""
        member_ids = []
        cursor = None
        while True:
            response = self.with_retry(
                lambda: self.client.users_list(limit=1000, cursor=cursor),
                "users.list",
            )
            for member in response.get("members", []):
                if member.get("deleted") or member.get("is_bot") or member.get("id") == SLACKBOT_USER_ID:
                    continue
                member_ids.append(member["id"])

            cursor = response.get("response_metadata", {}).get("next_cursor")
            if not cursor:
                break
        return member_ids

    def display_name(self, user_id: str) -> str:
        """Real name, falling back to the handle, then ``Unknown``."""
        user = self.user_info(user_id) or {}
        return user.get("real_name") or user.get("name") or "Unknown"
