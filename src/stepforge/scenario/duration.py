"""Step delay values and duration literal parsing.

A delay is decoded once, at load time, from either a duration literal
(``"2s"``, ``"500ms"``, ``"1h30m"``) or a raw integer count of nanoseconds.
Both forms collapse into a single :class:`Delay` holding nanoseconds, and
:meth:`Delay.format` renders the canonical literal used when writing a
scenario back out.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from stepforge._internal.errors import ParseError

NANOSECOND = 1
MICROSECOND = 1000 * NANOSECOND
MILLISECOND = 1000 * MICROSECOND
SECOND = 1000 * MILLISECOND
MINUTE = 60 * SECOND
HOUR = 60 * MINUTE

_MAX_NANOSECONDS = 2**63 - 1
_MIN_NANOSECONDS = -(2**63)

_UNITS: dict[str, int] = {
    "ns": NANOSECOND,
    "us": MICROSECOND,
    "µs": MICROSECOND,  # micro sign
    "μs": MICROSECOND,  # greek mu
    "ms": MILLISECOND,
    "s": SECOND,
    "m": MINUTE,
    "h": HOUR,
}

# One "<number><unit>" component; the unit is everything up to the next digit or dot.
_COMPONENT = re.compile(r"(\d*)(?:\.(\d*))?([^\d.]+)")


def parse_duration(text: str) -> int:
    """Parse a duration literal into nanoseconds.

    Accepts a sequence of decimal numbers, each with an optional fraction and
    a unit suffix, with an optional leading sign: ``"300ms"``, ``"-1.5h"``,
    ``"2h45m"``. A bare ``"0"`` is the only unit-less literal allowed.

    Args:
        text: The literal to parse.

    Returns:
        The duration in integer nanoseconds. Fractions below one
        nanosecond are truncated.

    Raises:
        ParseError: If the literal is malformed, uses an unknown unit, or
            overflows a signed 64-bit nanosecond count.
    """
    rest = text
    negative = False
    if rest[:1] in ("-", "+"):
        negative = rest[0] == "-"
        rest = rest[1:]

    if rest == "0":
        return 0
    if not rest:
        msg = f"invalid duration {text!r}"
        raise ParseError(msg)

    total = 0
    pos = 0
    while pos < len(rest):
        match = _COMPONENT.match(rest, pos)
        if match is None:
            msg = f"invalid duration {text!r}: missing unit"
            raise ParseError(msg)
        whole, fraction, unit = match.groups()
        if not whole and not fraction:
            msg = f"invalid duration {text!r}"
            raise ParseError(msg)
        scale = _UNITS.get(unit)
        if scale is None:
            msg = f"invalid duration {text!r}: unknown unit {unit!r}"
            raise ParseError(msg)

        total += int(whole or "0") * scale
        if fraction:
            total += int(fraction) * scale // 10 ** len(fraction)
        pos = match.end()

    if negative:
        total = -total
    if not _MIN_NANOSECONDS <= total <= _MAX_NANOSECONDS:
        msg = f"invalid duration {text!r}: out of range"
        raise ParseError(msg)
    return total


def _with_fraction(value: int, unit: int) -> str:
    """Render ``value / unit`` with trailing fractional zeros trimmed."""
    whole, remainder = divmod(value, unit)
    if not remainder:
        return str(whole)
    width = len(str(unit)) - 1
    digits = str(remainder).rjust(width, "0").rstrip("0")
    return f"{whole}.{digits}"


def format_duration(nanoseconds: int) -> str:
    """Render nanoseconds as the canonical duration literal.

    Examples: ``0 -> "0s"``, ``1500 -> "1.5µs"``, ``500_000_000 -> "500ms"``,
    ``90 * SECOND -> "1m30s"``, ``2 * HOUR -> "2h0m0s"``.
    """
    if nanoseconds == 0:
        return "0s"

    sign = "-" if nanoseconds < 0 else ""
    value = abs(nanoseconds)

    if value < MICROSECOND:
        return f"{sign}{value}ns"
    if value < MILLISECOND:
        return f"{sign}{_with_fraction(value, MICROSECOND)}µs"
    if value < SECOND:
        return f"{sign}{_with_fraction(value, MILLISECOND)}ms"

    total_seconds, sub_second = divmod(value, SECOND)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    seconds_text = _with_fraction(seconds * SECOND + sub_second, SECOND)

    if hours:
        return f"{sign}{hours}h{minutes}m{seconds_text}s"
    if minutes:
        return f"{sign}{minutes}m{seconds_text}s"
    return f"{sign}{seconds_text}s"


@dataclass(frozen=True, order=True)
class Delay:
    """Pause applied before a step is sent.

    Attributes:
        nanoseconds: Delay length. May be negative straight out of the
            decoder; the validator rejects that.
    """

    nanoseconds: int = 0

    @classmethod
    def decode(cls, raw: object) -> Delay:
        """Decode the ``delay`` field of a step definition.

        Args:
            raw: A duration literal (``str``), a raw nanosecond count
                (``int``), or ``None`` for "no delay".

        Returns:
            The decoded Delay.

        Raises:
            ParseError: If *raw* is any other type or an invalid literal.
        """
        if raw is None:
            return cls()
        if isinstance(raw, str):
            if raw == "":
                return cls()
            return cls(parse_duration(raw))
        if isinstance(raw, int) and not isinstance(raw, bool):
            if not _MIN_NANOSECONDS <= raw <= _MAX_NANOSECONDS:
                msg = f"delay {raw} nanoseconds is out of range"
                raise ParseError(msg)
            return cls(raw)
        msg = (
            "delay must be a duration string (e.g. '2s', '500ms') or an integer "
            f"number of nanoseconds, got {type(raw).__name__}"
        )
        raise ParseError(msg)

    @property
    def seconds(self) -> float:
        """Delay length in seconds."""
        return self.nanoseconds / SECOND

    def is_zero(self) -> bool:
        """Return True when no delay is configured."""
        return self.nanoseconds == 0

    def format(self) -> str:
        """Return the canonical duration literal, e.g. ``"1m30s"``."""
        return format_duration(self.nanoseconds)

    def __str__(self) -> str:
        return self.format()


MAX_DELAY = Delay(10 * MINUTE)
