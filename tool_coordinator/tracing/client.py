"""
Process-wide Langfuse connection for coordinator tracing.

Tracing is optional.  ``TracingClient`` connects only when both keys
are configured and the server accepts them; otherwise it records why it
is off and every call on it does nothing, so chat rounds never fail
because of observability.
"""

import logging
from typing import Optional

from langfuse import Langfuse

from ..models import LangfuseConfig

logger = logging.getLogger(__name__)


class TracingClient:
    """Owns the Langfuse SDK client used by ``TracingContext``."""

    def __init__(
        self,
        public_key: str = "",
        secret_key: str = "",
        host: str = "",
        debug: bool = False,
    ):
        self._client, self._error = self._connect(public_key, secret_key, host, debug)
        if self._client is None:
            log = logger.debug if "not configured" in (self._error or "") else logger.warning
            log(f"Coordinator tracing off: {self._error}")
        else:
            logger.info(f"Coordinator tracing to Langfuse at {host or 'the SDK default host'}")

    @classmethod
    def from_config(cls, settings: LangfuseConfig) -> "TracingClient":
        return cls(
            public_key=settings.public_key,
            secret_key=settings.secret_key,
            host=settings.host,
            debug=settings.debug,
        )

    @staticmethod
    def _connect(
        public_key: str, secret_key: str, host: str, debug: bool
    ) -> tuple[Optional[Langfuse], Optional[str]]:
        """Return ``(client, None)`` when usable, else ``(None, reason)``."""
        if not (public_key and secret_key):
            return None, "Langfuse credentials not configured"
        if host and "://" not in host:
            logger.warning(f"Langfuse host '{host}' has no scheme; expected http(s)://host:port")

        options = {"public_key": public_key, "secret_key": secret_key, "debug": debug}
        if host:
            options["host"] = host
        try:
            client = Langfuse(**options)
        except Exception as e:
            return None, f"Failed to initialize Langfuse client: {e}"

        # auth_check() is a network round-trip; a dead server disables tracing up front
        try:
            authorized = client.auth_check()
        except Exception as e:
            return None, f"Langfuse connectivity check failed: {e}"
        if not authorized:
            return None, "Langfuse rejected the credentials (auth_check)"
        return client, None

    @property
    def enabled(self) -> bool:
        return self._client is not None

    @property
    def error(self) -> Optional[str]:
        """Why tracing is off, or None when it is on."""
        return self._error

    @property
    def client(self) -> Optional[Langfuse]:
        return self._client

    def flush(self) -> None:
        """Send buffered observations now."""
        if self._client is None:
            return
        try:
            self._client.flush()
        except Exception as e:
            logger.warning(f"Langfuse flush failed: {e}")

    def shutdown(self) -> None:
        """Flush and stop the SDK's background exporter."""
        if self._client is None:
            return
        try:
            self._client.shutdown()
        except Exception as e:
            logger.warning(f"Langfuse shutdown failed: {e}")
        else:
            logger.debug("Langfuse client shut down")


_active_client: Optional[TracingClient] = None


def init_tracing_client(settings: Optional[LangfuseConfig] = None) -> TracingClient:
    """
    Create the process-wide tracing client.

    Args:
        settings: Langfuse section to use; the loaded configuration's
            section when omitted.

    Returns:
        The new client, which ``TracingContext`` instances pick up.
    """
    global _active_client
    if settings is None:
        from ..config import config

        settings = config.langfuse
    _active_client = TracingClient.from_config(settings)
    return _active_client


def get_tracing_client() -> Optional[TracingClient]:
    return _active_client


def shutdown_tracing() -> None:
    """Shut down and forget the process-wide client, if any."""
    global _active_client
    if _active_client is not None:
        _active_client.shutdown()
    _active_client = None
