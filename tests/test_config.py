import logging

import pytest

from componentry.attachment import Element, find_components
from componentry.config import RegisterConfig
from componentry.log import ComponentLog


def test_config_from_mapping_ignores_unknown_keys():
    config = RegisterConfig.from_mapping({"timeout_ms": 2000, "trace": False, "colour": "red"})

    assert config == RegisterConfig(timeout_ms=2000, trace=False)


@pytest.mark.parametrize("settings", [{"timeout_ms": -1}, {"keep_messages": -5}])
def test_config_rejects_negative_values(settings):
    with pytest.raises(ValueError):
        RegisterConfig(**settings)


def test_log_keeps_recent_messages():
    log = ComponentLog(keep=2)
    log.trace("one")
    log.trace("two")
    log.warning("three")

    assert log.recent == ["two", "three"]


def test_disabled_log_records_nothing(caplog):
    log = ComponentLog.from_config(RegisterConfig(trace=False))

    with caplog.at_level(logging.DEBUG, logger="componentry"):
        log.trace("hidden")
        log.exception(RuntimeError("hidden"))

    assert log.recent == []
    assert caplog.records == []


def test_log_writes_through_the_injected_logger(caplog):
    log = ComponentLog(logging.getLogger("componentry.test"))

    with caplog.at_level(logging.WARNING, logger="componentry.test"):
        log.warning("visible")

    assert [r.getMessage() for r in caplog.records] == ["visible"]


def test_log_can_raise_exceptions():
    log = ComponentLog(raise_errors=True)

    with pytest.raises(KeyError):
        log.exception(KeyError("missing"))


def test_find_components_walks_elements_in_document_order():
    inner = Element("Inner", "i")
    outer = Element("Outer", "o", children=[Element(children=[inner])])
    page = Element(children=[outer, Element("Last")])

    assert [str(e.declared_id) for e in find_components(page)] == ["o", "i", "None"]


def test_find_components_accepts_points_directly():
    point = Element("Single")

    assert find_components(point) == [point]
    assert find_components([point]) == [point]
    assert find_components(None) == []


def test_elements_are_distinct_by_reference():
    first, second = Element("Same", "x"), Element("Same", "x")

    assert first != second
    assert first.identity is first
    assert len({first.identity, second.identity}) == 2
