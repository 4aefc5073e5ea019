from __future__ import annotations

import json
import logging
from uuid import uuid4

from hirepanel.common.logging import (
    ConsoleLogFormatter,
    JsonLogFormatter,
    bind_request_context,
    clear_request_context,
    current_request_id,
    log_context,
    setup_logging,
)
from hirepanel.settings import Settings


def _record(message: str, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="hirepanel.features.rbac.assignments",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_log_context_stringifies_identifiers() -> None:
    user_id, role_id = uuid4(), uuid4()

    ctx = log_context(user_id=user_id, role_id=role_id, actor_id=None, role="HR")

    assert ctx == {"user_id": str(user_id), "role_id": str(role_id), "role": "HR"}


def test_console_formatter_appends_sorted_extras() -> None:
    bind_request_context("cid-123")
    try:
        line = ConsoleLogFormatter().format(
            _record("rbac.remove.fallback_applied", role="HR", fallback_role="User")
        )
    finally:
        clear_request_context()

    assert "[cid=cid-123]" in line
    assert line.endswith("rbac.remove.fallback_applied fallback_role=User role=HR")


def test_json_formatter_emits_one_object() -> None:
    payload = json.loads(JsonLogFormatter().format(_record("rbac.assign.success", role="Admin")))

    assert payload["message"] == "rbac.assign.success"
    assert payload["service"] == "hirepanel-rbac"
    assert payload["correlation_id"] == "-"
    assert payload["role"] == "Admin"
    assert payload["timestamp"].endswith("Z")


def test_request_context_binding() -> None:
    bind_request_context("abc")
    assert current_request_id() == "abc"
    clear_request_context()
    assert current_request_id() is None


def test_setup_logging_installs_single_handler() -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        settings = Settings(_env_file=None, log_level="warning", log_format="json")
        setup_logging(settings)
        setup_logging(settings)

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonLogFormatter)
        assert root.level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)
