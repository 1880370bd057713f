"""Signal transport for chatroute.

Connects to a signal-cli REST API: receives envelopes over its
WebSocket, turns them into :mod:`chatroute.events` values, and sends
replies through ``/v2/send``.

Replies are fire-and-forget: ``send_reply`` schedules the HTTP request
as a background task and returns immediately; failures are logged,
never retried.

Key classes:
    SignalEnvelope: Pydantic model of an inbound envelope.
    SignalTransport: Receive loop, envelope conversion and reply sending.
"""

import asyncio
import hashlib
import json
import time
from collections import OrderedDict
from typing import Awaitable, Callable, FrozenSet, Optional, Set, Union

import aiohttp
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .events import Actor, Event, MessageEvent, ReactionEvent, Reply
from .exceptions import ContractViolation, TransportError
from .rendering import format_text

logger = structlog.get_logger("chatroute.transport")

DEDUP_WINDOW_SECONDS = 60
MAX_RECONNECT_DELAY = 300
GROUP_RECIPIENT_PREFIX = "group."

EventHandler = Callable[[Event], Union[None, Awaitable[None]]]


# ---------------------------------------------------------------------------
# Envelope models
# ---------------------------------------------------------------------------

class _SignalModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SignalGroupInfo(_SignalModel):
    group_id: str = Field(..., alias="groupId")


class SignalReaction(_SignalModel):
    emoji: str = ""
    target_author: Optional[str] = Field(default=None, alias="targetAuthor")
    target_author_number: Optional[str] = Field(default=None, alias="targetAuthorNumber")
    target_timestamp: Optional[int] = Field(default=None, alias="targetSentTimestamp")
    is_remove: bool = Field(default=False, alias="isRemove")


class SignalDataMessage(_SignalModel):
    timestamp: int = 0
    message: Optional[str] = None
    group_info: Optional[SignalGroupInfo] = Field(default=None, alias="groupInfo")
    reaction: Optional[SignalReaction] = None


class SignalSentMessage(SignalDataMessage):
    destination: Optional[str] = None
    destination_number: Optional[str] = Field(default=None, alias="destinationNumber")


class SignalSyncMessage(_SignalModel):
    sent_message: Optional[SignalSentMessage] = Field(default=None, alias="sentMessage")


class SignalEnvelope(_SignalModel):
    """Inbound envelope as delivered by signal-cli (json-rpc mode)."""

    source: Optional[str] = None
    source_number: Optional[str] = Field(default=None, alias="sourceNumber")
    source_uuid: Optional[str] = Field(default=None, alias="sourceUuid")
    source_name: Optional[str] = Field(default=None, alias="sourceName")
    timestamp: int = 0
    data_message: Optional[SignalDataMessage] = Field(default=None, alias="dataMessage")
    sync_message: Optional[SignalSyncMessage] = Field(default=None, alias="syncMessage")

    @property
    def sender(self) -> Optional[str]:
        return self.source or self.source_number or self.source_uuid


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

def log_task_exception(task) -> None:
    """Log exceptions from fire-and-forget tasks or futures instead of swallowing them."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc:
        logger.error("background_task_failed", error=str(exc), exc_type=type(exc).__name__)


class SignalTransport:
    """signal-cli REST API client that produces events and sends replies.

    Args:
        api_url: Base URL of the REST API (http or https).
        account: Registered account number the bot sends from.
        role_lookup: Returns the roles of an actor id.
        bot_ids: Actor ids treated as automated participants. The
            bot's own account is always one.
        styled: Send replies with Signal text styling.
    """

    def __init__(
        self,
        api_url: str,
        account: str,
        *,
        role_lookup: Callable[[str], FrozenSet[str]] = lambda _actor_id: frozenset(),
        bot_ids: FrozenSet[str] = frozenset(),
        styled: bool = True,
    ):
        self.api_url = api_url.rstrip("/")
        self.account = account
        self._role_lookup = role_lookup
        self._bot_ids = frozenset(bot_ids) | {account}
        self.styled = styled
        self.session: Optional[aiohttp.ClientSession] = None
        self.running = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending: Set[asyncio.Task] = set()
        self._processed = OrderedDict()  # Dedup: envelope hash -> seen time

    # --- Lifecycle ---

    async def start(self) -> None:
        if self.session is None:
            self.session = aiohttp.ClientSession()
        self._loop = asyncio.get_running_loop()
        self.running = True
        logger.info("transport_started", api_url=self.api_url)

    async def stop(self) -> None:
        """Stop listening, wait briefly for queued replies, close the session."""
        self.running = False
        if self._pending:
            await asyncio.wait(set(self._pending), timeout=5)
        for task in list(self._pending):
            task.cancel()
        if self.session is not None:
            await self.session.close()
            self.session = None
        logger.info("transport_stopped")

    # --- Inbound ---

    def _is_duplicate(self, envelope: SignalEnvelope, text: str) -> bool:
        digest = hashlib.sha256(
            f"{envelope.timestamp}:{envelope.sender}:{text}".encode()
        ).hexdigest()
        now = time.time()
        cutoff = now - DEDUP_WINDOW_SECONDS
        while self._processed:
            oldest_key, oldest_time = next(iter(self._processed.items()))
            if oldest_time >= cutoff:
                break
            self._processed.pop(oldest_key)
        if digest in self._processed:
            return True
        self._processed[digest] = now
        return False

    def to_event(self, payload: dict) -> Optional[Event]:
        """Convert a raw WebSocket payload into an event, or None to ignore it.

        Data messages become MessageEvent, reactions ReactionEvent. Notes
        to self (sync messages sent to the bot's own account) are kept
        and flagged as coming from a bot. Re-delivered envelopes are
        dropped.
        """
        if not isinstance(payload, dict):
            logger.warning("payload_not_object", type=type(payload).__name__)
            return None
        try:
            envelope = SignalEnvelope.model_validate(payload.get("envelope", {}))
        except ValidationError as e:
            logger.warning("invalid_envelope", error=str(e)[:200])
            return None

        sender = envelope.sender
        data = envelope.data_message
        if data is None and envelope.sync_message and envelope.sync_message.sent_message:
            sent = envelope.sync_message.sent_message
            destination = sent.destination or sent.destination_number
            if sent.group_info is None and destination == self.account:
                data = sent
                sender = self.account
        if data is None or not sender:
            return None

        if data.group_info is not None:
            channel = GROUP_RECIPIENT_PREFIX + data.group_info.group_id
        else:
            channel = sender

        actor = Actor(
            id=sender,
            roles=self._role_lookup(sender),
            is_bot=sender in self._bot_ids,
            display_name=envelope.source_name,
        )
        metadata = {"timestamp": envelope.timestamp}

        def send(reply: Reply) -> None:
            self.send_reply(channel, reply)

        if data.reaction is not None:
            reaction = data.reaction
            if self._is_duplicate(envelope, f"reaction:{reaction.emoji}"):
                return None
            return ReactionEvent(
                actor=actor,
                channel=channel,
                send_reply=send,
                metadata=metadata,
                emoji=reaction.emoji,
                target_author=reaction.target_author or reaction.target_author_number,
                target_timestamp=reaction.target_timestamp,
                removed=reaction.is_remove,
            )

        text = (data.message or "").strip()
        if not text:
            return None
        if self._is_duplicate(envelope, text):
            logger.debug("duplicate_envelope_skipped", timestamp=envelope.timestamp)
            return None
        return MessageEvent(
            actor=actor, channel=channel, send_reply=send, metadata=metadata, text=text
        )

    async def listen(self, handler: EventHandler) -> None:
        """Receive envelopes until stopped, reconnecting with backoff."""
        if self.session is None:
            raise TransportError("Transport not started.")
        ws_base = self.api_url.replace("http://", "ws://").replace("https://", "wss://")
        ws_url = f"{ws_base}/v1/receive/{self.account}"
        reconnect_delay = 5

        while self.running:
            try:
                logger.info("websocket_connecting", url=ws_url)
                async with self.session.ws_connect(ws_url, heartbeat=30) as ws:
                    logger.info("websocket_connected")
                    reconnect_delay = 5
                    async for msg in ws:
                        if msg.type == aiohttp.WSMsgType.TEXT:
                            await self._handle_text(msg.data, handler)
                        elif msg.type == aiohttp.WSMsgType.ERROR:
                            logger.error("websocket_error", error=str(ws.exception()))
                            break
                        elif msg.type == aiohttp.WSMsgType.CLOSED:
                            logger.info("websocket_closed")
                            break
            except asyncio.CancelledError:
                break
            except ContractViolation:
                raise
            except Exception as e:
                logger.error("websocket_exception", error=str(e), retry_delay=reconnect_delay)
                await asyncio.sleep(reconnect_delay)
                reconnect_delay = min(reconnect_delay * 2, MAX_RECONNECT_DELAY)

    async def _handle_text(self, raw: str, handler: EventHandler) -> None:
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("invalid_json", data=raw[:100])
            return
        event = self.to_event(payload)
        if event is None:
            return
        try:
            result = handler(event)
            if asyncio.iscoroutine(result):
                await result
        except ContractViolation:
            raise
        except Exception:
            logger.exception("event_handler_failed", event_kind=event.kind.value)

    # --- Outbound ---

    def build_payload(self, channel: str, reply: Reply) -> dict:
        payload = {
            "message": format_text(reply, markers=True),
            "number": self.account,
            "recipients": [channel],
        }
        if self.styled:
            payload["text_mode"] = "styled"
        return payload

    async def send(self, channel: str, reply: Reply) -> None:
        """POST a reply. Raises TransportError on a non-201 response."""
        if self.session is None:
            raise TransportError("Transport not started.")
        url = f"{self.api_url}/v2/send"
        async with self.session.post(url, json=self.build_payload(channel, reply)) as resp:
            if resp.status != 201:
                body = await resp.text()
                raise TransportError(
                    "Signal API rejected the reply.", status=resp.status, body=body[:200]
                )
        logger.debug("reply_sent", channel="..." + channel[-4:])

    def send_reply(self, channel: str, reply: Reply) -> None:
        """Queue a reply without waiting for delivery.

        Safe to call from the event loop thread or from worker threads.
        """
        if self._loop is None:
            logger.warning("reply_dropped_not_started", channel="..." + channel[-4:])
            return
        coro = self.send(channel, reply)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            task = self._loop.create_task(coro)
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
            task.add_done_callback(log_task_exception)
        else:
            future = asyncio.run_coroutine_threadsafe(coro, self._loop)
            future.add_done_callback(log_task_exception)

