from __future__ import annotations

import io
import json
import logging

import pytest

from tests.support.harness import RecordingSink, run_case
from etx_script.diagnostics import (
    LOGGER_NAME,
    NullSink,
    ScriptLogger,
    configure_logging,
    get_logger,
    log_event,
)
from etx_script.types import EtxNumber

def test_event_sequence_for_simple_script() -> None:
    sink = RecordingSink()
    run_case("set a 1\necho $a", sink=sink)

    names = [name for name, _ in sink.events]
    assert names == ["script_start", "line", "variable", "line", "command", "script_end"]
    assert sink.named("script_start") == [("inline", 2)]
    assert sink.named("variable") == [("set", "a", EtxNumber(1.0), None)]
    assert sink.named("command") == [("echo 1",)]
    assert sink.named("script_end")[0][:2] == ("inline", True)

def test_function_and_control_flow_events() -> None:
    sink = RecordingSink()
    run_case("function f(x)\n  return $x\nendfunction\nif f(1)\nendif", sink=sink)

    actions = [args[0] for args in sink.named("function")]
    assert actions == ["define", "call", "return"]
    assert sink.named("control_flow") == [("if", "f(1)", EtxNumber(1.0))]

def test_statement_error_is_observed_once() -> None:
    sink = RecordingSink()
    run = run_case("function f()\n  missing()\nendfunction\nf()", sink=sink)

    errors = sink.named("error")
    assert len(errors) == 1
    assert errors[0][1] == {"line": 2, "content": "missing()", "path": "inline"}
    assert sink.named("script_end")[0][:2] == ("inline", False)
    assert not run.result.success

def test_expression_error_is_observed() -> None:
    sink = RecordingSink()
    run_case("set x (1", sink=sink)

    assert [args[1] for args in sink.named("error")] == [{"expression": "(1"}]

def test_script_logger_emits_json_records(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger=LOGGER_NAME)

    run_case("set a 1\necho $a", sink=ScriptLogger())

    events = [json.loads(record.getMessage())["event"] for record in caplog.records]
    assert events == ["script_start", "line", "variable", "line", "command", "script_end"]

    end = json.loads(caplog.records[-1].getMessage())
    assert end["success"] is True
    assert end["duration_ms"] is not None

def test_script_logger_levels(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)

    run_case("missing()", sink=ScriptLogger())

    levels = {json.loads(r.getMessage())["event"]: r.levelno for r in caplog.records}
    assert levels == {
        "script_start": logging.INFO,
        "error": logging.ERROR,
        "script_end": logging.ERROR,
    }

def test_log_event_is_sorted_json() -> None:
    stream = io.StringIO()
    configure_logging(level="info", format_name="json", stream=stream)
    try:
        log_event(get_logger(f"{LOGGER_NAME}.test"), "ping", b=2, a=1)
    finally:
        get_logger().handlers = []

    assert stream.getvalue().strip() == '{"a": 1, "b": 2, "event": "ping"}'

def test_log_event_skips_disabled_levels() -> None:
    stream = io.StringIO()
    configure_logging(level="warning", format_name="text", stream=stream)
    try:
        log_event(get_logger(f"{LOGGER_NAME}.test"), "quiet", logging.DEBUG)
        log_event(get_logger(f"{LOGGER_NAME}.test"), "loud", logging.ERROR)
    finally:
        get_logger().handlers = []

    assert stream.getvalue().strip() == f'ERROR {LOGGER_NAME}.test {{"event": "loud"}}'

def test_null_sink_accepts_every_event() -> None:
    sink = NullSink()
    run = run_case("set a 1\nfor i 1 1\nendfor", sink=sink)

    assert run.result.success

def test_script_logger_stats_track_the_script_stack() -> None:
    sink = ScriptLogger(logging.getLogger(f"{LOGGER_NAME}.stats_test"))
    sink.script_start("main.etx", 3)
    sink.script_start("lib.etx", 1)
    sink.set_level("warn")

    assert sink.stats() == {
        "enabled": True,
        "level": "warning",
        "depth": 2,
        "scripts": ["main.etx", "lib.etx"],
    }

    sink.disable()
    sink.script_end("lib.etx", True)
    assert sink.stats()["depth"] == 1
    assert sink.stats()["enabled"] is False

    with pytest.raises(ValueError):
        sink.set_level("loud")

def test_disabled_script_logger_writes_nothing(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger=LOGGER_NAME)
    sink = ScriptLogger()
    sink.disable()

    run_case("set a 1\nmissing()", sink=sink)

    assert caplog.records == []
    assert sink.stats()["depth"] == 0
