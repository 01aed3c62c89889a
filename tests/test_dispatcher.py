from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass

import pytest
from conftest import FakeElement, FakeHost, RecordingSleeper

from auracrab.webuse import dispatcher as dispatcher_mod
from auracrab.webuse.commands import ACTION_TYPES, Unrecognized
from auracrab.webuse.dispatcher import ERROR_PREFIX, CommandDispatcher
from auracrab.webuse.executor import AutomationExecutor
from auracrab.webuse.host import HostError


def _dispatcher(host: FakeHost, sleeper: RecordingSleeper) -> CommandDispatcher:
    return CommandDispatcher(AutomationExecutor(host, sleep=sleeper, rng=random.Random(1)))


def test_every_command_variant_has_a_handler(host: FakeHost, sleeper: RecordingSleeper) -> None:
    d = _dispatcher(host, sleeper)
    assert all(d.has_handler(t) for t in ACTION_TYPES)
    assert not d.has_handler(Unrecognized)


def test_missing_handler_is_rejected_at_construction(
    host: FakeHost, sleeper: RecordingSleeper, monkeypatch: pytest.MonkeyPatch
) -> None:
    @dataclass(frozen=True)
    class Scroll:
        selector: str

    monkeypatch.setattr(dispatcher_mod, "ACTION_TYPES", (*ACTION_TYPES, Scroll))
    with pytest.raises(TypeError, match="Scroll"):
        _dispatcher(host, sleeper)


def test_unrecognized_command_yields_no_content(host: FakeHost, sleeper: RecordingSleeper) -> None:
    assert asyncio.run(_dispatcher(host, sleeper).dispatch("dance", "req-1")) is None
    assert host.calls == []


def test_click_missing_target_text(host: FakeHost, sleeper: RecordingSleeper) -> None:
    host.add_tab()
    out = asyncio.run(_dispatcher(host, sleeper).dispatch("click #absent", "req-2"))
    assert out == "Element not found: #absent"


def test_successful_type_command(host: FakeHost, sleeper: RecordingSleeper) -> None:
    tab = host.add_tab()
    el = tab.elements["#q"] = FakeElement()
    out = asyncio.run(_dispatcher(host, sleeper).dispatch("type #q  crab   shells"))
    assert out == "Typed into #q"
    assert el.value == "crab shells"


def test_host_fault_becomes_error_text(host: FakeHost, sleeper: RecordingSleeper) -> None:
    host.add_tab()
    host.fail_scripts["body_text"] = HostError("Cannot access contents of the page")
    out = asyncio.run(_dispatcher(host, sleeper).dispatch("scrape", "req-3"))
    assert out == ERROR_PREFIX + "Cannot access contents of the page"


def test_no_active_tab_becomes_error_text(host: FakeHost, sleeper: RecordingSleeper) -> None:
    out = asyncio.run(_dispatcher(host, sleeper).dispatch("hover .menu", "req-4"))
    assert out == "Error: No active tab in the focused window"


def test_unexpected_exception_is_contained(host: FakeHost, sleeper: RecordingSleeper) -> None:
    host.add_tab()
    host.fail_scripts["element_exists"] = RuntimeError("socket went away")
    out = asyncio.run(_dispatcher(host, sleeper).dispatch("wait selector:#late"))
    assert out == "Error: socket went away"


def test_wait_duration_dispatch(host: FakeHost, sleeper: RecordingSleeper) -> None:
    out = asyncio.run(_dispatcher(host, sleeper).dispatch("wait abc"))
    assert out == "Waited 2000ms"
    assert sleeper.calls == [2.0]
