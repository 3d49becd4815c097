import logging
import sys
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("seller_hub")


def configure_logging(debug: bool = False) -> None:
    """Root logging setup for the service: one stdout handler."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


SENSITIVE_PARAMS = frozenset({
    "access_token", "refresh_token", "token",
    "password", "authorization", "client_secret",
})


def mask_params(params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    masked = {}
    for key, value in (params or {}).items():
        if key.lower() in SENSITIVE_PARAMS and value is not None:
            text = str(value)
            masked[key] = f"{text[:4]}...{text[-4:]}" if len(text) > 8 else "***"
        else:
            masked[key] = value
    return masked


class UpstreamCallLog:
    """Recent seller API calls, kept in memory per dashboard user.

    Each user gets a bounded deque so one busy user cannot push another
    user's calls out, and ``get_calls`` only ever returns the caller's own
    entries. Calls made before a user is known (login) are logged to the
    ``seller_hub`` logger but not stored.
    """

    def __init__(self, max_calls_per_user: int = 200):
        self.max_calls_per_user = max_calls_per_user
        self._calls: Dict[str, Deque[Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def record_call(
        self,
        user_id: Optional[str],
        method: str,
        path: str,
        *,
        status_code: Optional[int] = None,
        elapsed_ms: Optional[int] = None,
        params: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> Dict[str, Any]:
        if status_code is None:
            description = f"{method} {path} failed before a response was received"
        else:
            description = f"{method} {path} -> {status_code} in {elapsed_ms}ms"

        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "method": method,
            "path": path,
            "status_code": status_code,
            "elapsed_ms": elapsed_ms,
            "params": mask_params(params),
            "outcome": "error" if error else "success",
            "description": description,
            "error": error,
        }

        if error:
            logger.error(f"[seller_api] {description} user={user_id} - Error: {error}")
        else:
            logger.info(f"[seller_api] {description} user={user_id}")

        if user_id is not None:
            with self._lock:
                calls = self._calls.get(user_id)
                if calls is None:
                    calls = self._calls[user_id] = deque(maxlen=self.max_calls_per_user)
                calls.append(entry)
        return entry

    def get_calls(self, user_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Oldest-first calls for ``user_id``; the newest ``limit`` when given."""
        with self._lock:
            calls = list(self._calls.get(user_id, ()))
        if limit:
            return calls[-limit:]
        return calls

    def clear(self, user_id: Optional[str] = None) -> None:
        with self._lock:
            if user_id is None:
                self._calls.clear()
            else:
                self._calls.pop(user_id, None)


upstream_call_log = UpstreamCallLog()
