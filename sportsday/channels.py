"""
Publish/subscribe registry for live updates over WebSockets.
"""

import logging
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


class Channels:
    """
    Named channels of WebSocket subscribers.

    Subscribers are any objects with an async send_str(text) method and a
    closed attribute, such as aiohttp's WebSocketResponse. Messages published
    to a channel without subscribers are dropped.
    """

    def __init__(self) -> None:
        self._channels: Dict[str, List[Any]] = {}

    def subscribe(
        self,
        channel: str,
        subscriber: Any,
    ) -> None:
        logger.debug("Subscribing to channel: %s", channel)
        self._channels.setdefault(channel, []).append(subscriber)

    def unsubscribe(
        self,
        channel: str,
        subscriber: Any,
    ) -> None:
        subscribers = self._channels.get(channel)
        if not subscribers:
            return
        if subscriber in subscribers:
            subscribers.remove(subscriber)
        if not subscribers:
            del self._channels[channel]

    def subscriber_count(
        self,
        channel: str,
    ) -> int:
        return len(self._channels.get(channel, []))

    async def publish(
        self,
        channel: str,
        payload: str,
    ) -> int:
        """
        Send a text message to every subscriber of a channel.

        Subscribers that are closed or whose send fails are removed.

        @param channel: Channel name
        @param payload: Text message
        @return: Number of subscribers the message was delivered to
        """
        subscribers = list(self._channels.get(channel, []))
        if not subscribers:
            logger.debug("No subscribers on channel %s, dropping message", channel)
            return 0

        logger.debug("Publishing to channel: %s", channel)
        delivered = 0

        for subscriber in subscribers:
            if getattr(subscriber, "closed", False):
                self.unsubscribe(channel, subscriber)
                continue
            try:
                await subscriber.send_str(payload)
                delivered += 1
            except (ConnectionError, RuntimeError) as e:
                logger.warning("Dropping subscriber on channel %s: %s", channel, e)
                self.unsubscribe(channel, subscriber)

        return delivered
