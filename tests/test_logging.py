"""
Unit tests for the structured JSON logger.
"""

import json
import logging

from doorlock_mqtt.logging import LogEvent, StructuredLogger
from doorlock_mqtt.logging.structured import JSONFormatter


class TestStructuredLogger:
    def test_entry_fields(self):
        logger = StructuredLogger("reconciler", logger_name="doorlock.test.entry")

        entry = logger.build_entry(
            logging.INFO,
            LogEvent.COMMAND_ACKED,
            "Command confirmed by device status",
            metadata={'command_id': 'abc'},
        )

        assert entry['level'] == "INFO"
        assert entry['component'] == "reconciler"
        assert entry['category'] == "command"
        assert entry['event'] == "command.acked"
        assert entry['metadata'] == {'command_id': 'abc'}

    def test_bind_merges_context(self):
        base = StructuredLogger("transport", logger_name="doorlock.test.bind")
        bound = base.bind(client_id="doorlock_1")

        entry = bound.build_entry(
            logging.WARNING, LogEvent.MQTT_RECONNECTING, "reconnecting", metadata={'broker': 'b:1'}
        )

        assert entry['metadata'] == {'client_id': 'doorlock_1', 'broker': 'b:1'}
        assert bound.logger is base.logger
        assert base.context == {}

    def test_exception_summary(self):
        logger = StructuredLogger("reconciler", logger_name="doorlock.test.exc")

        entry = logger.build_entry(
            logging.ERROR, LogEvent.AUDIT_WRITE_ERROR, "failed", exc_info=RuntimeError("down")
        )

        assert entry['exception'] == {'type': 'RuntimeError', 'message': 'down'}
        assert LogEvent.AUDIT_WRITE_ERROR.is_error

    def test_formatter_emits_json(self):
        logger = StructuredLogger("reconciler", logger_name="doorlock.test.fmt")
        entry = logger.build_entry(logging.INFO, LogEvent.ALERT_RAISED, "🚨 Emergency")
        record = logging.LogRecord("doorlock.test.fmt", logging.INFO, __file__, 1, "x", None, None)
        record.structured = entry

        assert json.loads(JSONFormatter().format(record)) == entry

    def test_formatter_plain_record(self):
        record = logging.LogRecord("doorlock.other", logging.INFO, __file__, 1, "hello %s", ("door",), None)

        data = json.loads(JSONFormatter().format(record))

        assert data['message'] == "hello door"
        assert data['component'] == "doorlock.other"
