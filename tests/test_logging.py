import json
import logging

from marketview.obs.logging import EventLineFormatter, JsonLineFormatter, LogSettings, build_logger, log_event


def _record(event: str, message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("marketview.test", logging.INFO, __file__, 1, message, None, None)
    record.event = event
    record.extra = extra
    return record


def test_json_formatter_lifts_sequence_to_top_level() -> None:
    formatter = JsonLineFormatter("session-1")

    payload = json.loads(
        formatter.format(_record("markets_dispatched", "Markets fetch dispatched", sequence=3, params={"page": "1"}))
    )

    assert payload["session_id"] == "session-1"
    assert payload["event"] == "markets_dispatched"
    assert payload["seq"] == 3
    assert payload["extra"] == {"params": {"page": "1"}}


def test_json_formatter_omits_seq_for_other_events() -> None:
    formatter = JsonLineFormatter("session-1")

    payload = json.loads(formatter.format(_record("catalog_loaded", "Catalog loaded", entries=12)))

    assert "seq" not in payload
    assert payload["extra"] == {"entries": 12}


def test_event_line_formatter() -> None:
    line = EventLineFormatter().format(_record("markets_loaded", "Markets loaded", sequence=4, rows=10))

    assert line == "INFO markets_loaded seq=4 Markets loaded rows=10"


def test_build_logger_writes_jsonl_file(tmp_path) -> None:
    log_file = tmp_path / "viewer.jsonl"
    logger = build_logger(LogSettings(level="INFO", session_id="s-file", log_file=log_file, jsonl=True))

    log_event(logger, logging.INFO, "markets_failed", "Markets fetch failed", sequence=2, kind="timeout")
    log_event(logger, logging.DEBUG, "markets_result_stale", "Discarded", sequence=1)
    for handler in logger.handlers:
        handler.flush()
        handler.close()

    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    entry = json.loads(lines[0])
    assert entry["seq"] == 2
    assert entry["extra"] == {"kind": "timeout"}
