"""Minimal client for a Redis-compatible REST store (Upstash protocol).

Every command is a single ``POST`` of the command array to the endpoint
root, authenticated with a bearer token. The store answers with
``{"result": ...}`` on success and ``{"error": "..."}`` when Redis rejects
the command.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx


class UpstashError(Exception):
    """Raised when the REST store reports a command error."""


class UpstashRedis:
    """Issue Redis commands over HTTPS with a shared connection pool."""

    backend = "upstash"

    def __init__(
        self,
        url: str,
        token: str,
        *,
        timeout: float = 5.0,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        if not url or not token:
            raise ValueError("Both a REST URL and a REST token are required.")
        parsed = httpx.URL(url)
        if parsed.scheme not in {"http", "https"} or not parsed.host:
            raise ValueError(f"Invalid REST URL: {url!r}")

        self._url = str(parsed).rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        self._client = http_client or httpx.Client(timeout=timeout)

    def execute(self, *command: Any) -> Any:
        """Run one command and return its ``result`` value."""

        response = self._client.post(self._url, headers=self._headers, json=[str(part) for part in command])
        response.raise_for_status()
        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstashError(f"Malformed response to {command[0]}: {response.text[:200]!r}") from exc
        if not isinstance(payload, dict):
            raise UpstashError(f"Unexpected response to {command[0]}: {payload!r}")
        if payload.get("error"):
            raise UpstashError(str(payload["error"]))
        if "result" not in payload:
            raise UpstashError(f"Response to {command[0]} has no result")
        return payload["result"]

    def incr(self, name: str) -> int:
        result = self.execute("INCR", name)
        try:
            return int(result)
        except (TypeError, ValueError) as exc:
            raise UpstashError(f"INCR returned a non-integer: {result!r}") from exc

    def expire(self, name: str, time: int) -> bool:
        return bool(self.execute("EXPIRE", name, int(time)))

    def ping(self) -> bool:
        return self.execute("PING") == "PONG"

    def close(self) -> None:
        self._client.close()


__all__ = ["UpstashError", "UpstashRedis"]
