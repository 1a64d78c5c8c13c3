"""Broadcast channels used to notify other session contexts of storage changes.

A hub plays the part of the browser: every channel opened on the same hub and
name receives the messages the others post. Each message carries its own id
and the id of the channel that posted it, and a channel never delivers its own
messages back to itself.
"""

import logging
import uuid
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Message:
    origin: str
    payload: dict[str, Any]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


class BroadcastChannel:
    def __init__(self, hub: "BroadcastHub", name: str):
        self.name = name
        self.id = uuid.uuid4().hex
        self._hub = hub
        self._subscribers: list[Callable[[Message], None]] = []
        self._closed = False

    def post(self, payload: dict[str, Any]) -> Message:
        message = Message(origin=self.id, payload=payload)
        if not self._closed:
            self._hub._deliver(self, message)
        return message

    def subscribe(self, callback: Callable[[Message], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def receive(self, message: Message) -> None:
        if self._closed or message.origin == self.id:
            return
        for callback in list(self._subscribers):
            try:
                callback(message)
            except Exception:
                logger.exception("Broadcast subscriber failed on channel %s", self.name)

    def close(self) -> None:
        self._closed = True
        self._subscribers.clear()
        self._hub._detach(self)


class BroadcastHub:
    """Routes messages between channels that share a name."""

    def __init__(self):
        self._channels: dict[str, list[BroadcastChannel]] = defaultdict(list)

    def open(self, name: str) -> BroadcastChannel:
        channel = BroadcastChannel(self, name)
        self._channels[name].append(channel)
        return channel

    def _deliver(self, sender: BroadcastChannel, message: Message) -> None:
        for channel in list(self._channels.get(sender.name, ())):
            if channel is not sender:
                channel.receive(message)

    def _detach(self, channel: BroadcastChannel) -> None:
        peers = self._channels.get(channel.name)
        if peers and channel in peers:
            peers.remove(channel)
