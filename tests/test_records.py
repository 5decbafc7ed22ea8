from datetime import datetime, timezone

import pytest

from loggen.exceptions import ConfigError
from loggen.records import LOG_LINES, LogRecord, TemplateSelector


def test_to_document_uses_ecs_field_names() -> None:
    record = LogRecord(sequence_number=7, instance_id="abc", payload="Hello, world")
    timestamp = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    assert record.to_document(timestamp) == {
        '@timestamp': "2026-01-02T03:04:05+00:00",
        'level': "INFO",
        'message': "Hello, world",
        'counter': 7,
        'service': {'instance': {'id': "abc"}},
    }


def test_records_are_immutable() -> None:
    record = LogRecord(sequence_number=1, instance_id="abc", payload="Log line")
    with pytest.raises(AttributeError):
        record.sequence_number = 2


def test_selector_defaults_to_builtin_lines() -> None:
    selector = TemplateSelector(seed=1)
    choices = {selector.choose() for _ in range(200)}
    assert choices == set(LOG_LINES)


def test_seeded_selectors_agree() -> None:
    first = TemplateSelector(seed=7)
    second = TemplateSelector(seed=7)
    assert [first.choose() for _ in range(50)] == [second.choose() for _ in range(50)]


def test_custom_templates() -> None:
    selector = TemplateSelector(["only"])
    assert selector.choose() == "only"


def test_empty_templates_are_rejected() -> None:
    with pytest.raises(ConfigError):
        TemplateSelector([])
