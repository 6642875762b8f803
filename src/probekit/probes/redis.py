"""Redis probe: command latency samples and INFO-based server metrics."""

from typing import Any

from probekit.core.errors import InstrumentationError
from probekit.core.models import InvocationContext
from probekit.core.ports import StatusClientFactory
from probekit.core.registry import StatusField
from probekit.probes.base import MonitoringProbe


COMMANDS = (
    "append",
    "auth",
    "bgrewriteaof",
    "bgsave",
    "blpop",
    "brpop",
    "brpoplpush",
    "config_get",
    "config_set",
    "config_resetstat",
    "dbsize",
    "debug_object",
    "debug_segfault",
    "decr",
    "decrby",
    "delete",
    "discard",
    "echo",
    "exec",
    "exists",
    "expire",
    "expireat",
    "flushall",
    "flushdb",
    "get",
    "getbit",
    "getrange",
    "getset",
    "hdel",
    "hexists",
    "hget",
    "hgetall",
    "hincrby",
    "hkeys",
    "hlen",
    "hmget",
    "hmset",
    "hset",
    "hsetnx",
    "hvals",
    "incr",
    "incrby",
    "info",
    "keys",
    "lastsave",
    "lindex",
    "linsert",
    "llen",
    "lpop",
    "lpush",
    "lpushx",
    "lrange",
    "lrem",
    "lset",
    "ltrim",
    "mget",
    "monitor",
    "move",
    "mset",
    "msetnx",
    "multi",
    "object",
    "persist",
    "ping",
    "psubscribe",
    "publish",
    "punsubscribe",
    "quit",
    "randomkey",
    "rename",
    "renamenx",
    "rpop",
    "rpoplpush",
    "rpush",
    "rpushx",
    "sadd",
    "save",
    "scard",
    "sdiff",
    "sdiffstore",
    "select",
    "set",
    "setbit",
    "setex",
    "setnx",
    "setrange",
    "shutdown",
    "sinter",
    "sinterstore",
    "sismember",
    "slaveof",
    "smembers",
    "smove",
    "sort",
    "spop",
    "srandmember",
    "srem",
    "strlen",
    "subscribe",
    "sunion",
    "sunionstore",
    "sync",
    "ttl",
    "type",
    "unsubscribe",
    "unwatch",
    "watch",
    "zadd",
    "zcard",
    "zcount",
    "zincrby",
    "zinterstore",
    "zrange",
    "zrangebyscore",
    "zrank",
    "zrem",
    "zremrangebyrank",
    "zremrangebyscore",
    "zrevrange",
    "zrevrangebyscore",
    "zrevrank",
    "zscore",
    "zunionstore",
)

INFO_FIELDS = (
    StatusField("Used CPU sys", "used_cpu_sys", None, True),
    StatusField("Used CPU user", "used_cpu_user", None, True),
    StatusField("Connected clients", "connected_clients", None, False),
    StatusField("Connected slaves", "connected_slaves", None, False),
    StatusField("Blocked clients", "blocked_clients", None, False),
    StatusField("Expired keys", "expired_keys", None, True),
    StatusField("Evicted keys", "evicted_keys", None, True),
    StatusField("Keyspace hits", "keyspace_hits", None, True),
    StatusField("Keyspace misses", "keyspace_misses", None, True),
    StatusField("Connections received", "total_connections_received", None, True),
    StatusField("Commands processed", "total_commands_processed", None, True),
    StatusField("Rejected connections", "rejected_connections", None, True),
    StatusField("Used memory", "used_memory", "KB", False),
    StatusField("Used memory RSS", "used_memory_rss", "KB", False),
    StatusField("Memory fragmentation ratio", "mem_fragmentation_ratio", None, False),
    StatusField("PubSub channels", "pubsub_channels", None, False),
)


def address_of(client: Any) -> tuple[str, int] | None:
    """Best-effort (host, port) of a Redis client object.

    Looks at ``host``/``port`` attributes first, then at a redis-py style
    ``connection_pool.connection_kwargs``. Returns None when either part is
    unknown (unix sockets, custom connection classes).
    """
    host = getattr(client, "host", None)
    port = getattr(client, "port", None)
    if host is None or port is None:
        pool = getattr(client, "connection_pool", None)
        kwargs = getattr(pool, "connection_kwargs", None) or {}
        host = host if host is not None else kwargs.get("host")
        port = port if port is not None else kwargs.get("port")
    if host is None or port is None:
        return None
    return str(host), int(port)


def _looks_like_client(target: Any) -> bool:
    return any(callable(getattr(target, command, None)) for command in COMMANDS)


class RedisProbe(MonitoringProbe):
    """Samples Redis commands and polls INFO of every server seen.

    ``attach`` accepts:

    - a module exposing ``create_client(host, port)``: every client created
      afterwards is instrumented,
    - a redis-py style module exposing a ``Redis`` class: clients are
      instrumented as they are constructed (``Redis(...)``, ``from_url``),
    - a client object, instrumented directly like ``instrument_client``.

    Anything else is reported to the diagnostic channel.

    Args:
        agent: Owning agent.
        status_factory: Opens a short-lived client for INFO polling. When
            omitted and the probe is attached to a module, clients are
            opened through the module without instrumentation.
    """

    name = "Redis"
    packages = ("redis",)
    operations = COMMANDS
    status_fields = INFO_FIELDS
    scope = "Redis server"
    feature = "redis_metrics"

    def __init__(
        self, agent: Any, status_factory: StatusClientFactory | None = None
    ) -> None:
        super().__init__(agent)
        self._status_factory = status_factory
        self._module: Any = None
        self._client_class: type | None = None

    def attach(self, target: Any) -> None:
        client_class = getattr(target, "Redis", None)
        if callable(getattr(target, "create_client", None)):
            self._module = target
            self.interceptor.attach_after(target, "create_client", self._on_create_client)
        elif isinstance(client_class, type):
            self._client_class = client_class
            self.interceptor.attach_after(client_class, "__init__", self._on_client_init)
        elif _looks_like_client(target):
            self.instrument_client(target)
        else:
            self.agent.diagnostics.report(
                InstrumentationError(
                    f"Redis probe cannot attach to {type(target).__name__}", "attach"
                )
            )

    def instrument_client(self, client: Any) -> int:
        """Instrument one client and monitor the server it talks to.

        Clients without a known host and port are sampled but not polled.
        """
        address = address_of(client)
        if address is None:
            return self.instrument(client, {"host": None, "port": None})
        host, port = address
        self.monitor_server(host, port)
        return self.instrument(client, {"host": host, "port": port})

    def _on_create_client(self, target: Any, ctx: InvocationContext, client: Any) -> None:
        self.instrument_client(client)

    def _on_client_init(self, target: Any, ctx: InvocationContext, result: Any) -> None:
        self.instrument_client(ctx.args[0])

    def status_factory(self) -> StatusClientFactory | None:
        if self._status_factory is not None:
            return self._status_factory
        if self._module is not None:
            create_client = self.interceptor.original(self._module, "create_client")
            return lambda host, port: create_client(host, port)
        if self._client_class is not None:
            client_class = self._client_class
            init = self.interceptor.original(client_class, "__init__")

            def open_client(host: str, port: int) -> Any:
                client = client_class.__new__(client_class)
                init(client, host=host, port=port)
                return client

            return open_client
        return None
