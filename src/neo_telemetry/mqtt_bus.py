"""Telemetry bus implementation over MQTT using paho-mqtt.

Topics mirror Signal K paths: ``<prefix>/<context>/<path>`` with dots turned
into slashes, e.g. ``signalk/vessels/self/navigation/position``. Bodies are
JSON; inbound messages may carry either a bare value or an object with a
``value`` key (and optionally ``timestamp``).

paho runs its network loop on its own thread. Inbound messages are handed
to the asyncio loop with ``call_soon_threadsafe`` so subscriber callbacks
always run on the loop thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

import paho.mqtt.client as mqtt  # type: ignore[import]

from neo_core.config import MqttConfig
from neo_core.timeutils import isoformat_z, utc_now

from .bus import DeltaCallback, Unsubscribe
from .models import Delta, PathValue, SubscriptionPath, Update

LOG = logging.getLogger(__name__)

SOURCE_LABEL = "neo-aprs"
STATUS_TOPIC = "plugins/aprs/status"
ERROR_TOPIC = "plugins/aprs/error"
DELTAS_TOPIC = "deltas"


def path_to_topic(prefix: str, context: str, path: str = "") -> str:
    parts = [prefix, context.replace(".", "/")]
    if path:
        parts.append(path.replace(".", "/"))
    return "/".join(part for part in parts if part)


@dataclass(slots=True)
class _Subscription:
    topic: str
    context: str
    path: str
    period: float
    callback: DeltaCallback
    last_delivered: Optional[float] = None
    active: bool = True


class MqttBus:
    def __init__(
        self,
        config: MqttConfig,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        source_label: str = SOURCE_LABEL,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._config = config
        self._prefix = config.topic_prefix
        self._loop = loop
        self._source_label = source_label
        self._clock = clock or time.monotonic
        self._client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=config.client_id or "",
        )
        self._time = time
        self._connected = False
        self._subscriptions: list[_Subscription] = []
        # wire basic callbacks to track connection state
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message

        # connection retry policy
        self._max_retries = 5
        self._initial_backoff = 0.5  # seconds
        self._max_backoff = 30.0  # seconds

    @property
    def connected(self) -> bool:
        return self._connected

    def connect(self) -> None:
        """Connect to the broker, retrying with backoff. Raises on failure."""
        LOG.debug("Connecting to MQTT broker %s:%s", self._config.host, self._config.port)
        # After the first session paho reconnects on its own.
        self._client.reconnect_delay_set(min_delay=1, max_delay=int(self._max_backoff))
        self._client.loop_start()
        try:
            self._attempt_connect()
        except Exception:
            self._client.loop_stop()
            raise

    def close(self) -> None:
        try:
            self._client.disconnect()
        except Exception:  # pragma: no cover - best-effort cleanup
            LOG.exception("Failed to disconnect MQTT client")
        finally:
            self._client.loop_stop()
            self._connected = False

    def subscribe(
        self,
        context: str,
        paths: Sequence[SubscriptionPath],
        callback: DeltaCallback,
    ) -> Unsubscribe:
        created: list[_Subscription] = []
        for entry in paths:
            sub = _Subscription(
                topic=path_to_topic(self._prefix, context, entry.path),
                context=context,
                path=entry.path,
                period=max(0.0, float(entry.period)),
                callback=callback,
            )
            created.append(sub)
            self._subscriptions.append(sub)
            if self._connected:
                self._client.subscribe(sub.topic)
            LOG.debug("Subscribed to %s (period %.0fs)", sub.topic, sub.period)

        def unsubscribe() -> None:
            for sub in created:
                if not sub.active:
                    continue
                sub.active = False
                self._subscriptions.remove(sub)
                if not any(other.topic == sub.topic for other in self._subscriptions):
                    self._client.unsubscribe(sub.topic)

        return unsubscribe

    def publish(self, delta: Delta) -> None:
        for update in delta.updates:
            timestamp = isoformat_z(update.timestamp or utc_now())
            source = update.source or self._source_label
            for pv in update.values:
                topic = path_to_topic(self._prefix, delta.context, pv.path)
                body = {"value": pv.value, "timestamp": timestamp, "$source": source}
                self._publish(topic, body)
        self._publish(path_to_topic(self._prefix, DELTAS_TOPIC), delta.to_dict())

    def publish_status(self, text: str) -> None:
        self._publish(path_to_topic(self._prefix, STATUS_TOPIC), {"message": text, "timestamp": isoformat_z(utc_now())})

    def publish_error(self, text: str) -> None:
        self._publish(path_to_topic(self._prefix, ERROR_TOPIC), {"message": text, "timestamp": isoformat_z(utc_now())})

    def _publish(self, topic: str, payload: dict) -> None:
        body = json.dumps(payload, default=str)
        LOG.debug("Publishing to %s: %s", topic, body)
        if not self._connected:
            # paho queues the message until the session is re-established
            LOG.debug("MQTT client not connected; message to %s queued", topic)
        try:
            self._client.publish(topic, body)
        except (OSError, ValueError):
            LOG.exception("Publish to %s failed", topic)

    def _on_connect(
        self, client: Any, userdata: Any, flags: Any, reason_code: Any, properties: Any = None
    ) -> None:  # pragma: no cover - callback
        if not getattr(reason_code, "is_failure", False):
            LOG.info("MQTT connected to %s:%s", self._config.host, self._config.port)
            self._connected = True
            for topic in {sub.topic for sub in self._subscriptions}:
                client.subscribe(topic)
        else:
            LOG.warning("MQTT connect returned rc=%s", reason_code)

    def _on_disconnect(
        self, client: Any, userdata: Any, flags: Any, reason_code: Any, properties: Any = None
    ) -> None:  # pragma: no cover - callback
        LOG.info("MQTT disconnected (rc=%s)", reason_code)
        self._connected = False

    def _on_message(self, client: Any, userdata: Any, message: Any) -> None:
        try:
            decoded = json.loads(message.payload.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            LOG.warning("Ignoring non-JSON message on %s", message.topic)
            return
        timestamp = None
        value = decoded
        if isinstance(decoded, dict) and "value" in decoded:
            value = decoded["value"]
            timestamp = _parse_timestamp(decoded.get("timestamp"))
        if self._loop is None:
            self._dispatch(message.topic, value, timestamp)
        else:
            self._loop.call_soon_threadsafe(self._dispatch, message.topic, value, timestamp)

    def _dispatch(self, topic: str, value: Any, timestamp: Optional[datetime]) -> None:
        now = self._clock()
        for sub in list(self._subscriptions):
            if not sub.active or sub.topic != topic:
                continue
            if sub.last_delivered is not None and now - sub.last_delivered < sub.period:
                continue
            sub.last_delivered = now
            delta = Delta(
                context=sub.context,
                updates=[Update(values=[PathValue(sub.path, value)], timestamp=timestamp)],
            )
            try:
                sub.callback(delta)
            except Exception:
                LOG.exception("Subscriber for %s failed", topic)

    def _attempt_connect(self) -> None:
        """Attempt to connect using exponential backoff. Raises on failure."""
        backoff = self._initial_backoff
        for attempt in range(1, self._max_retries + 1):
            try:
                self._client.connect(self._config.host, self._config.port)
                # give the network loop a moment to deliver on_connect
                self._time.sleep(0.1)
                if self._connected:
                    return
                self._time.sleep(min(backoff, self._max_backoff))
                if self._connected:
                    return
                raise RuntimeError("Connect did not complete yet")
            except Exception as exc:
                LOG.warning("MQTT connect attempt %d failed: %s", attempt, exc)
                if attempt == self._max_retries:
                    LOG.error("MQTT connect failed after %d attempts", attempt)
                    raise
                # jittered backoff
                jitter = random.uniform(0, backoff * 0.1)
                sleep_for = min(self._max_backoff, backoff + jitter)
                self._time.sleep(sleep_for)
                backoff = min(self._max_backoff, backoff * 2)


def _parse_timestamp(raw: Any) -> Optional[datetime]:
    if not isinstance(raw, str):
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None


__all__ = ["MqttBus", "path_to_topic"]
