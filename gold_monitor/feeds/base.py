"""Abstract base fetcher and payload parsing helpers shared by fetchers."""

from __future__ import annotations

import abc
import datetime
import math
from decimal import Decimal, InvalidOperation
from types import TracebackType
from typing import Any

from gold_monitor.core.types import Observation
from gold_monitor.feeds.exceptions import InvalidFetchError


class BaseFetcher(abc.ABC):
    """Pure I/O boundary that turns one upstream read into an Observation.

    Subclasses implement ``connect()``, ``close()`` and ``fetch()``. Fetchers
    never touch shared state — the poller decides what to do with the
    result, including retries and timeouts.

    Usage::

        async with HttpJsonFetcher(config) as fetcher:
            obs = await fetcher.fetch()
    """

    def __init__(self, source_tag: str) -> None:
        self._source_tag = source_tag

    @property
    def source_tag(self) -> str:
        return self._source_tag

    @abc.abstractmethod
    async def connect(self) -> None:
        """Acquire I/O resources (HTTP client, socket listener)."""

    @abc.abstractmethod
    async def close(self) -> None:
        """Release I/O resources."""

    @abc.abstractmethod
    async def fetch(self) -> Observation:
        """Read the monitored quantity once.

        Raises:
            TransientFetchError: Timeout or transport failure.
            InvalidFetchError: The upstream answered with something unusable.
        """

    async def __aenter__(self) -> BaseFetcher:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()


# ── Parsing Helpers ─────────────────────────────────────────────


def extract_field(data: Any, path: str) -> Any:
    """Follow a dotted *path* (``"data.buying_rate"``) through nested dicts.

    Returns None when any segment is missing.
    """
    current = data
    for key in path.split("."):
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


def parse_decimal(raw: Any, thousands_separator: str = "") -> Decimal:
    """Parse a JSON number or numeric string into a Decimal.

    With ``thousands_separator="."`` the string ``"1.234.500,5"`` parses as
    ``1234500.5`` — the other of ``.``/``,`` is then the decimal mark.

    Raises:
        InvalidFetchError: *raw* is missing, boolean or not numeric.
    """
    if raw is None or isinstance(raw, bool):
        raise InvalidFetchError(f"Expected a number, got {raw!r}")

    if isinstance(raw, int | float):
        text = str(raw)
    elif isinstance(raw, str):
        text = raw.strip()
        if thousands_separator:
            text = text.replace(thousands_separator, "")
            if thousands_separator == ".":
                text = text.replace(",", ".")
    else:
        raise InvalidFetchError(f"Expected a number, got {type(raw).__name__}")

    try:
        value = Decimal(text)
    except (InvalidOperation, ValueError) as exc:
        raise InvalidFetchError(f"Not a number: {raw!r}") from exc

    if not value.is_finite():
        raise InvalidFetchError(f"Not a finite number: {raw!r}")
    return value


def parse_timestamp(
    raw: Any,
    fallback: float,
    naive_tz: datetime.tzinfo = datetime.UTC,
) -> float:
    """Parse an epoch number (secs or millis) or ISO-8601 string to epoch secs.

    Datetimes without an offset are read in *naive_tz*. Returns *fallback*
    when *raw* is empty.

    Raises:
        InvalidFetchError: *raw* is present but unparseable.
    """
    if raw is None or raw == "":
        return fallback

    if isinstance(raw, int | float) and not isinstance(raw, bool):
        ts = float(raw)
        if not math.isfinite(ts):
            raise InvalidFetchError(f"Unparseable timestamp: {raw!r}")
        return ts / 1000.0 if ts > 1e12 else ts

    if isinstance(raw, str):
        try:
            return parse_timestamp(float(raw), fallback, naive_tz)
        except ValueError:
            pass
        try:
            parsed = datetime.datetime.fromisoformat(raw.strip())
        except ValueError as exc:
            raise InvalidFetchError(f"Unparseable timestamp: {raw!r}") from exc
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=naive_tz)
        return parsed.timestamp()

    raise InvalidFetchError(f"Unparseable timestamp: {raw!r}")


def parse_optional_decimal(data: Any, path: str, thousands_separator: str = "") -> Decimal | None:
    """Like ``parse_decimal`` over ``extract_field``, but a blank *path* or a missing field is None."""
    if not path:
        return None
    raw = extract_field(data, path)
    if raw is None:
        return None
    return parse_decimal(raw, thousands_separator)
