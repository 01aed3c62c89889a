"""
Command grammar of the control channel.

A command string is classified by prefix (case-sensitive, first match wins):

    open <url>              -> Open
    scrape                  -> Scrape
    scrape:interactive      -> ScrapeInteractive
    click <selector>        -> Click
    type <selector> <text>  -> Type
    hover <selector>        -> Hover
    wait selector:<sel>     -> WaitForSelector
    wait <ms>               -> WaitDuration (non-numeric/absent -> 2000)
    screenshot              -> Screenshot

Anything else is Unrecognized.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

DEFAULT_WAIT_MS = 2000
WAIT_SELECTOR_PREFIX = "selector:"

# Leading integer, the way the browser's parseInt() reads it ("1500ms" -> 1500).
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


@dataclass(frozen=True, slots=True)
class Open:
    url: str


@dataclass(frozen=True, slots=True)
class Scrape:
    pass


@dataclass(frozen=True, slots=True)
class ScrapeInteractive:
    pass


@dataclass(frozen=True, slots=True)
class Click:
    selector: str


@dataclass(frozen=True, slots=True)
class Type:
    selector: str
    text: str


@dataclass(frozen=True, slots=True)
class Hover:
    selector: str


@dataclass(frozen=True, slots=True)
class WaitForSelector:
    selector: str


@dataclass(frozen=True, slots=True)
class WaitDuration:
    ms: int


@dataclass(frozen=True, slots=True)
class Screenshot:
    pass


@dataclass(frozen=True, slots=True)
class Unrecognized:
    raw: str


Command = (
    Open
    | Scrape
    | ScrapeInteractive
    | Click
    | Type
    | Hover
    | WaitForSelector
    | WaitDuration
    | Screenshot
    | Unrecognized
)

# Variants the executor must handle (everything but Unrecognized).
ACTION_TYPES: tuple[type, ...] = (
    Open,
    Scrape,
    ScrapeInteractive,
    Click,
    Type,
    Hover,
    WaitForSelector,
    WaitDuration,
    Screenshot,
)


def parse_duration_ms(spec: str) -> int:
    m = _LEADING_INT_RE.match(spec)
    return int(m.group(1)) if m else DEFAULT_WAIT_MS


def _parse_wait(spec: str) -> WaitForSelector | WaitDuration:
    if spec.startswith(WAIT_SELECTOR_PREFIX):
        return WaitForSelector(spec[len(WAIT_SELECTOR_PREFIX) :])
    return WaitDuration(parse_duration_ms(spec))


def parse_command(raw: str) -> Command:
    """Classify a raw command string. Pure and deterministic."""
    if raw.startswith("open "):
        return Open(raw[len("open ") :])
    if raw == "scrape":
        return Scrape()
    if raw == "scrape:interactive":
        return ScrapeInteractive()
    if raw.startswith("click "):
        return Click(raw[len("click ") :])
    if raw.startswith("type "):
        tokens = raw[len("type ") :].split()
        if not tokens:
            return Type("", "")
        return Type(tokens[0], " ".join(tokens[1:]))
    if raw.startswith("hover "):
        return Hover(raw[len("hover ") :])
    if raw.startswith("wait "):
        return _parse_wait(raw[len("wait ") :])
    if raw == "wait":
        return WaitDuration(DEFAULT_WAIT_MS)
    if raw == "screenshot":
        return Screenshot()
    return Unrecognized(raw)


__all__ = [
    "ACTION_TYPES",
    "Click",
    "Command",
    "DEFAULT_WAIT_MS",
    "Hover",
    "Open",
    "Scrape",
    "ScrapeInteractive",
    "Screenshot",
    "Type",
    "Unrecognized",
    "WaitDuration",
    "WaitForSelector",
    "parse_command",
    "parse_duration_ms",
]
