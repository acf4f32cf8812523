# Slack driver.
#
# Receive: RTM (Real Time Messaging) over slack_sdk.rtm_v2.RTMClient.
#   The client's own reconnect is disabled; reconnecting is the supervisor's
#   job. Listeners run on a single worker thread so events are handled one
#   at a time, in arrival order.
#
# Directory: rebuilt from users.list + conversations.list on every `hello`,
#   then kept current from user/channel/bot change events. Unknown bot ids are
#   looked up with bots.info before the message is handed on.
#
# Config keys:
#   token – classic bot / user token allowed to call rtm.connect

from __future__ import annotations

import threading
from typing import Any

from slack_sdk.errors import SlackApiError
from slack_sdk.rtm_v2 import RTMClient
from slack_sdk.web import WebClient

import hidarishita.error as error
import hidarishita.logger as log
from hidarishita.config_schema import AppConfig
from hidarishita.directory import BotEntry, DirectorySnapshot, UserEntry
from hidarishita.drivers import Transport
from hidarishita.event import Event

l = log.get_logger()

PAGE_LIMIT = 200
CONVERSATION_TYPES = "public_channel,private_channel,mpim,im"


def _shutdown_client(rtm: RTMClient) -> None:
    """Close *rtm* and stop the worker threads its constructor started."""
    try:
        rtm.close()
    except Exception as e:
        # close() fails when connect() never got as far as a session
        l.debug(f"Slack RTM close failed: {e}")
    for runner in (rtm.current_session_runner, rtm.current_app_monitor, rtm.message_processor):
        runner.shutdown()
    rtm.message_workers.shutdown(wait=False)


class SlackTransport(Transport[AppConfig]):

    def __init__(self, config: AppConfig, web_client: WebClient | None = None):
        super().__init__(config)
        self._web = web_client or WebClient(token=config.token)
        self._directory = DirectorySnapshot()
        self._rtm: RTMClient | None = None
        self._closed = threading.Event()
        self._failure: BaseException | None = None
        self._handlers = {
            "hello": self._on_hello,
            "goodbye": self._on_goodbye,
            "message": self._on_message,
            "user_change": self._on_user_change,
            "team_join": self._on_user_change,
            "channel_deleted": self._on_conversation_removed,
            "group_deleted": self._on_conversation_removed,
            "bot_added": self._on_bot_change,
            "bot_changed": self._on_bot_change,
        }
        for event_type in ("channel_created", "channel_rename", "group_rename",
                           "channel_joined", "group_joined", "im_created"):
            self._handlers[event_type] = self._on_conversation_change

    @property
    def directory(self) -> DirectorySnapshot:
        return self._directory

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _build_client(self) -> RTMClient:
        rtm = RTMClient(
            web_client=self._web,
            auto_reconnect_enabled=False,
            concurrency=1,
            logger=l,
            on_error_listeners=[self._on_socket_error],
            on_close_listeners=[self._on_socket_close],
        )
        # Replaces the built-in goodbye listener, which reconnects on its own,
        # and bypasses on(), which drops this token's own bot messages
        rtm.message_listeners[:] = [self._dispatch]
        return rtm

    def _dispatch(self, client: RTMClient, event: dict) -> None:
        handler = self._handlers.get(event.get("type"))
        if handler is not None:
            handler(client, event)

    def serve(self) -> None:
        self._closed.clear()
        self._failure = None
        self._rtm = self._build_client()

        try:
            try:
                self._rtm.connect()
            except Exception as e:
                raise error.wrap(e) from e

            l.info("Slack RTM connected")
            self._closed.wait()

            if self._failure is not None:
                raise error.wrap(self._failure) from self._failure
        finally:
            rtm, self._rtm = self._rtm, None
            _shutdown_client(rtm)

    def stop(self) -> None:
        self._closed.set()

    def _fail(self, exc: BaseException) -> None:
        if self._failure is None:
            self._failure = exc
        self._closed.set()

    def _on_socket_error(self, *args) -> None:
        exc = args[-1] if args else None
        if isinstance(exc, BaseException):
            l.warning(f"Slack RTM socket error: {exc}")
            self._fail(exc)

    def _on_socket_close(self, *args) -> None:
        l.info("Slack RTM connection closed")
        self._closed.set()

    def _on_goodbye(self, client: RTMClient, event: dict) -> None:
        l.info("Slack RTM server said goodbye")
        self._closed.set()

    # ------------------------------------------------------------------
    # Directory synchronisation
    # ------------------------------------------------------------------

    def sync_directory(self) -> None:
        self._directory.clear()

        for page in self._web.users_list(limit=PAGE_LIMIT):
            for member in page.get("members", []):
                self._put_user(member)

        for page in self._web.conversations_list(
            types=CONVERSATION_TYPES, exclude_archived=True, limit=PAGE_LIMIT
        ):
            for channel in page.get("channels", []):
                self._directory.put_conversation(channel)

        l.info(f"Directory synchronised ({len(self._directory)} entries)")

    def _put_user(self, data: dict[str, Any]) -> None:
        user_id = data.get("id")
        if user_id:
            self._directory.put_user(user_id, UserEntry.from_payload(data))

    def _ensure_bot(self, bot_id: str) -> None:
        if self._directory.bot(bot_id) is not None:
            return
        try:
            resp = self._web.bots_info(bot=bot_id)
        except SlackApiError as e:
            l.warning(f"bots.info failed for {bot_id}: {error.api_error_code(e)}")
            return
        bot = resp.get("bot") or {}
        self._directory.put_bot(bot_id, BotEntry.from_payload(bot))

    # ------------------------------------------------------------------
    # Event listeners (run on the RTM worker thread)
    # ------------------------------------------------------------------

    def _on_hello(self, client: RTMClient, event: dict) -> None:
        try:
            self.sync_directory()
            self._emit_hello()
        except Exception as e:
            l.error(f"Slack RTM hello handling failed: {e}")
            self._fail(e)

    def _on_message(self, client: RTMClient, event: dict) -> None:
        try:
            message = Event.from_payload(event)
            if message.bot_id:
                self._ensure_bot(message.bot_id)
            self._emit_message(message)
        except Exception as e:
            l.error(f"Slack RTM message handling failed: {e}")
            self._fail(e)

    def _on_user_change(self, client: RTMClient, event: dict) -> None:
        user = event.get("user")
        if isinstance(user, dict):
            self._put_user(user)

    def _on_conversation_change(self, client: RTMClient, event: dict) -> None:
        channel = event.get("channel")
        if not isinstance(channel, dict):
            return
        data = dict(channel)
        if event.get("type") == "im_created":
            data["is_im"] = True
            data.setdefault("user", event.get("user"))
        elif event.get("type") in ("group_rename", "group_joined"):
            data.setdefault("is_group", (data.get("id") or "").startswith("G"))
        self._directory.put_conversation(data)

    def _on_conversation_removed(self, client: RTMClient, event: dict) -> None:
        channel = event.get("channel")
        if isinstance(channel, str):
            self._directory.remove_conversation(channel)

    def _on_bot_change(self, client: RTMClient, event: dict) -> None:
        bot = event.get("bot")
        if isinstance(bot, dict) and bot.get("id"):
            self._directory.put_bot(bot["id"], BotEntry.from_payload(bot))
