"""MQTT-backed transport session for the mission link."""

from __future__ import annotations

import contextlib
import enum
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import urlsplit

import paho.mqtt.client as mqtt

from .decoder import decode
from .errors import MissionLinkError, NotConnectedError, TransportConnectionError
from .store import MissionStateStore
from .topics import INBOUND_TOPICS

logger = logging.getLogger(__name__)


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


ConnectionListener = Callable[[ConnectionState], None]
ClientFactory = Callable[..., Any]

# scheme -> (paho transport, tls, default port)
_SCHEMES: dict[str, tuple[str, bool, int]] = {
    "mqtt": ("tcp", False, 1883),
    "tcp": ("tcp", False, 1883),
    "mqtts": ("tcp", True, 8883),
    "ssl": ("tcp", True, 8883),
    "ws": ("websockets", False, 80),
    "wss": ("websockets", True, 443),
}
DEFAULT_WS_PATH = "/mqtt"

_STOP = object()


@dataclass(frozen=True, slots=True)
class BrokerEndpoint:
    """Broker address resolved from a URL such as ``ws://host:9001``."""

    host: str
    port: int
    transport: str = "tcp"
    tls: bool = False
    path: str = DEFAULT_WS_PATH

    @classmethod
    def from_url(cls, url: str) -> "BrokerEndpoint":
        parts = urlsplit(url)
        scheme = parts.scheme.lower()
        if scheme not in _SCHEMES:
            raise ValueError(f"不支持的消息代理协议: {url!r}（可用: {', '.join(sorted(_SCHEMES))}）")
        if not parts.hostname:
            raise ValueError(f"消息代理地址缺少主机名: {url!r}")
        transport, tls, default_port = _SCHEMES[scheme]
        try:
            port = parts.port or default_port
        except ValueError as exc:
            raise ValueError(f"消息代理端口无效: {url!r}") from exc
        return cls(
            host=parts.hostname,
            port=port,
            transport=transport,
            tls=tls,
            path=parts.path or DEFAULT_WS_PATH,
        )


def _default_client_factory(*, client_id: str, transport: str) -> mqtt.Client:
    return mqtt.Client(
        mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        transport=transport,
    )


def _release_client(client: Any) -> None:
    with contextlib.suppress(Exception):
        client.unsubscribe(list(INBOUND_TOPICS))
    with contextlib.suppress(Exception):
        client.disconnect()
    with contextlib.suppress(Exception):
        client.loop_stop()


def _is_failure(reason_code: Any) -> bool:
    is_failure = getattr(reason_code, "is_failure", None)
    if is_failure is not None:
        return bool(is_failure)
    return int(reason_code) != 0


class MissionLinkSession:
    """Owns one long-lived MQTT connection to the vehicle.

    Inbound messages are handed from the paho network thread to a single
    dispatcher thread through a FIFO queue, decoded, and applied to the
    :class:`MissionStateStore` strictly in arrival order. Publishing happens
    on the caller's thread and never waits on the inbound path.
    """

    def __init__(
        self,
        store: MissionStateStore,
        *,
        client_id: str = "",
        username: str | None = None,
        password: str | None = None,
        keepalive: int = 60,
        connect_timeout: float = 10.0,
        reconnect_min_delay: int = 1,
        reconnect_max_delay: int = 30,
        qos: int = 0,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self._store = store
        self._client_id = client_id
        self._username = username
        self._password = password
        self._keepalive = keepalive
        self._connect_timeout = connect_timeout
        self._reconnect_min_delay = reconnect_min_delay
        self._reconnect_max_delay = reconnect_max_delay
        self._qos = qos
        self._client_factory = client_factory or _default_client_factory

        self._client: Any = None
        self._endpoint: Optional[BrokerEndpoint] = None
        self._state = ConnectionState.DISCONNECTED
        self._state_lock = threading.RLock()
        self._listeners: list[ConnectionListener] = []
        self._connected_event = threading.Event()
        self._connect_refusal: Optional[str] = None
        self._last_error: Optional[MissionLinkError] = None

        self._inbox: "queue.Queue[object]" = queue.Queue()
        self._dispatch_thread: Optional[threading.Thread] = None
        self._close_lock = threading.RLock()
        self._closed = False

    def __enter__(self) -> "MissionLinkSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def endpoint(self) -> Optional[BrokerEndpoint]:
        return self._endpoint

    @property
    def last_error(self) -> Optional[MissionLinkError]:
        """Most recent transport error, kept for display."""
        return self._last_error

    def add_state_listener(self, listener: ConnectionListener) -> Callable[[], None]:
        """Call *listener* on every connection state transition."""

        with self._state_lock:
            self._listeners.append(listener)

        def _remove() -> None:
            with self._state_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _remove

    def connect(self, broker_url: str) -> "MissionLinkSession":
        """Open the connection and subscribe to the inbound telemetry topics.

        Raises:
            ValueError: If *broker_url* cannot be parsed.
            TransportConnectionError: If the broker is unreachable, refuses the
                connection, does not answer within ``connect_timeout``, or the
                session has already been closed.
        """

        # close() may run on another thread at any point below; every step that
        # hands the client to the network loop re-checks _closed under _close_lock.
        with self._close_lock:
            if self._closed:
                raise TransportConnectionError("会话已关闭，无法重新连接")
            if self._state is ConnectionState.CONNECTED:
                logger.debug("任务链路已连接，无需重复连接")
                return self

            endpoint = BrokerEndpoint.from_url(broker_url)
            if self._client is not None:
                self._discard_client()

            self._endpoint = endpoint
            self._ensure_dispatcher()
            self._connected_event.clear()
            self._connect_refusal = None
            try:
                client = self._build_client(endpoint)
            except (OSError, ValueError) as exc:
                raise self._fail(f"无法创建 MQTT 客户端: {exc}") from exc
            self._client = client

        self._set_state(ConnectionState.CONNECTING)
        try:
            client.connect(endpoint.host, endpoint.port, keepalive=self._keepalive)
        except (OSError, ValueError) as exc:
            raise self._fail(f"无法连接到消息代理 {broker_url}: {exc}") from exc

        with self._close_lock:
            if self._closed:
                _release_client(client)
                raise TransportConnectionError("会话已关闭，连接已取消")
            client.loop_start()

        if not self._connected_event.wait(self._connect_timeout):
            raise self._fail(f"等待消息代理 {broker_url} 响应超时 ({self._connect_timeout:.1f}s)")
        if self._closed:
            raise TransportConnectionError("会话已关闭，连接已取消")
        if self._connect_refusal is not None:
            raise self._fail(f"消息代理拒绝连接 {broker_url}: {self._connect_refusal}")

        logger.info("已连接消息代理 %s:%s (%s)", endpoint.host, endpoint.port, endpoint.transport)
        return self

    def publish(self, topic: str, payload: bytes | str, *, retain: bool = False) -> None:
        """Send one message.

        Raises:
            NotConnectedError: If there is no live connection. The message is
                dropped, not queued.
        """

        client = self._client
        if client is None or self._state is not ConnectionState.CONNECTED:
            error = NotConnectedError(topic)
            self._last_error = error
            logger.warning("发布失败，指令已丢弃: %s", error)
            raise error

        info = client.publish(topic, payload, qos=self._qos, retain=retain)
        rc = getattr(info, "rc", mqtt.MQTT_ERR_SUCCESS)
        if rc != mqtt.MQTT_ERR_SUCCESS:
            error = NotConnectedError(topic, f"发布到 {topic} 失败: {mqtt.error_string(rc)}")
            self._last_error = error
            logger.warning("发布失败，指令已丢弃: %s", error)
            raise error
        logger.debug("已发布 %d 字节到 %s", len(payload), topic)

    def close(self) -> None:
        """Release the connection and stop the dispatcher. Safe to call repeatedly."""

        with self._close_lock:
            if self._closed:
                logger.debug("任务链路会话已关闭，忽略重复调用")
                return
            self._closed = True
            self._discard_client()

        # wakes a connect() still waiting for the CONNACK
        self._connected_event.set()
        self._stop_dispatcher()
        self._set_state(ConnectionState.CLOSED)
        logger.info("任务链路会话已关闭")

    def _build_client(self, endpoint: BrokerEndpoint) -> Any:
        client = self._client_factory(client_id=self._client_id, transport=endpoint.transport)
        if endpoint.transport == "websockets":
            client.ws_set_options(path=endpoint.path)
        if endpoint.tls:
            client.tls_set()
        if self._username:
            client.username_pw_set(self._username, self._password)
        client.reconnect_delay_set(min_delay=self._reconnect_min_delay, max_delay=self._reconnect_max_delay)
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message
        return client

    def _discard_client(self) -> None:
        client = self._client
        self._client = None
        if client is not None:
            _release_client(client)

    def _fail(self, message: str) -> TransportConnectionError:
        self._discard_client()
        error = TransportConnectionError(message)
        self._last_error = error
        self._set_state(ConnectionState.DISCONNECTED)
        logger.error("%s", message)
        return error

    def _set_state(self, new_state: ConnectionState) -> None:
        with self._state_lock:
            if self._state is new_state:
                return
            if self._state is ConnectionState.CLOSED:
                return
            previous = self._state
            self._state = new_state
            listeners = list(self._listeners)
        logger.debug("任务链路状态: %s -> %s", previous.value, new_state.value)
        for listener in listeners:
            try:
                listener(new_state)
            except Exception:  # noqa: BLE001
                logger.exception("连接状态监听器执行失败")

    # paho callbacks (CallbackAPIVersion.VERSION2), run on the network thread

    def _on_connect(self, client: Any, userdata: Any, flags: Any, reason_code: Any, properties: Any = None) -> None:
        if _is_failure(reason_code):
            self._connect_refusal = str(reason_code)
            logger.error("消息代理拒绝连接: %s", reason_code)
            self._set_state(ConnectionState.DISCONNECTED)
            self._connected_event.set()
            return

        # Subscriptions live here so they are restored after every reconnect.
        client.subscribe([(topic, self._qos) for topic in INBOUND_TOPICS])
        self._set_state(ConnectionState.CONNECTED)
        logger.info("已订阅主题: %s", ", ".join(INBOUND_TOPICS))
        self._connected_event.set()

    def _on_disconnect(
        self,
        client: Any,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        if self._closed:
            return
        self._set_state(ConnectionState.DISCONNECTED)
        if _is_failure(reason_code):
            self._last_error = TransportConnectionError(f"与消息代理的连接中断: {reason_code}")
            logger.warning("与消息代理的连接中断 (%s)，等待自动重连", reason_code)

    def _on_message(self, client: Any, userdata: Any, message: Any) -> None:
        if self._closed:
            return
        self._inbox.put((message.topic, bytes(message.payload)))

    def _ensure_dispatcher(self) -> None:
        if self._dispatch_thread is not None and self._dispatch_thread.is_alive():
            return
        self._dispatch_thread = threading.Thread(
            target=self._dispatch_loop,
            name="mission-link-dispatch",
            daemon=True,
        )
        self._dispatch_thread.start()

    def _dispatch_loop(self) -> None:
        while True:
            item = self._inbox.get()
            if item is _STOP:
                return
            topic, payload = item  # type: ignore[misc]
            try:
                self._store.apply(decode(topic, payload))
            except Exception:  # pragma: no cover - defensive logging
                logger.exception("处理 %s 消息失败", topic)

    def _stop_dispatcher(self) -> None:
        thread = self._dispatch_thread
        if thread is None:
            return
        # Messages received before close() are still applied before the thread exits.
        self._inbox.put(_STOP)
        thread.join(timeout=2.0)
        if thread.is_alive():  # pragma: no cover - defensive path
            logger.warning("任务链路分发线程未在超时内退出，将继续后台运行")
        self._dispatch_thread = None


def connect(broker_url: str, store: MissionStateStore, **kwargs: Any) -> MissionLinkSession:
    """Create a :class:`MissionLinkSession` for *store* and connect it to *broker_url*."""
    session = MissionLinkSession(store, **kwargs)
    try:
        return session.connect(broker_url)
    except Exception:
        session.close()
        raise


__all__ = [
    "BrokerEndpoint",
    "ConnectionState",
    "MissionLinkSession",
    "connect",
]
