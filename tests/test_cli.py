import json
import logging
from unittest.mock import MagicMock, patch

import pytest
import yaml
from elasticsearch.exceptions import ApiError, AuthorizationException, ConnectionError

import log_generator
from loggen.exceptions import SinkError


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ("LPS", "CONFIG_FILE", "ES_HOSTS", "ES_HOST", "INDEX_PREFIX"):
        monkeypatch.delenv(name, raising=False)


@pytest.mark.parametrize("lps", [None, "0", "-5", "abc"])
def test_invalid_rate_exits_without_output(monkeypatch, capsys, caplog, lps) -> None:
    if lps is not None:
        monkeypatch.setenv("LPS", lps)

    assert log_generator.main(["--duration", "0.05"]) == 1

    assert capsys.readouterr().out == ""
    assert any(r.levelno == logging.ERROR and "LPS" in r.getMessage() for r in caplog.records)
    assert not any("Generated for" in r.getMessage() for r in caplog.records)


def test_invalid_rate_flag_exits(capsys, caplog) -> None:
    assert log_generator.main(["--rate", "0", "--duration", "0.05"]) == 1
    assert capsys.readouterr().out == ""


def test_timed_run_reports_summary(monkeypatch, capsys, caplog) -> None:
    caplog.set_level(logging.INFO)
    monkeypatch.setenv("LPS", "200")

    assert log_generator.main(["--duration", "0.3", "--sink", "json", "--seed", "1"]) == 0

    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert lines
    assert [line["counter"] for line in lines] == list(range(1, len(lines) + 1))
    assert len({line["service.instance.id"] for line in lines}) == 1

    messages = [r.getMessage() for r in caplog.records]
    assert "Stopped." in messages
    summary = [m for m in messages if m.startswith("Generated for")]
    assert len(summary) == 1
    assert f"Printed total {len(lines)} lines" in summary[0]
    assert any(m.startswith("Process CPU time") for m in messages)


def test_rate_flag_overrides_environment(monkeypatch, capsys, caplog) -> None:
    caplog.set_level(logging.INFO)
    monkeypatch.setenv("LPS", "abc")

    assert log_generator.main(["--rate", "50", "--duration", "0.1"]) == 0
    assert any("Target Rate: 50 lines/second" in r.getMessage() for r in caplog.records)


def test_print_config(monkeypatch, capsys) -> None:
    monkeypatch.setenv("LPS", "10")

    assert log_generator.main(["--print-config", "--burst-cap", "25"]) == 0

    dumped = yaml.safe_load(capsys.readouterr().out)
    assert dumped["generator"]["rate"] == "10"
    assert dumped["generator"]["burst_cap"] == 25


def test_missing_config_file(tmp_path, caplog) -> None:
    assert log_generator.main(["--config", str(tmp_path / "nope.yaml")]) == 1
    assert any("not found" in r.getMessage() for r in caplog.records)


def test_unreachable_elasticsearch(monkeypatch, capsys, caplog) -> None:
    monkeypatch.setenv("LPS", "10")
    monkeypatch.setenv("ES_HOSTS", "https://es01:9200")

    with patch("loggen.elasticsearch_client.Elasticsearch") as es_cls:
        es_cls.return_value.info.side_effect = ConnectionError("refused")
        assert log_generator.main(["--sink", "elasticsearch", "--duration", "0.05"]) == 1

    assert capsys.readouterr().out == ""
    assert any("Could not open sink" in r.getMessage() for r in caplog.records)


def test_unavailable_elasticsearch(monkeypatch, capsys, caplog) -> None:
    monkeypatch.setenv("LPS", "10")

    with patch("loggen.elasticsearch_client.Elasticsearch") as es_cls:
        es_cls.return_value.info.side_effect = ApiError("unavailable", meta=MagicMock(status=503), body={})
        assert log_generator.main(["--sink", "elasticsearch", "--duration", "0.05"]) == 1

    assert capsys.readouterr().out == ""
    assert any("Could not open sink" in r.getMessage() for r in caplog.records)


def test_summary_is_reported_when_closing_the_sink_fails(monkeypatch, caplog) -> None:
    caplog.set_level(logging.INFO)
    monkeypatch.setenv("LPS", "100")
    sink = MagicMock()
    sink.close.side_effect = SinkError("flush failed")

    with patch("log_generator.build_sink", return_value=sink):
        assert log_generator.main(["--duration", "0.1"]) == 0

    messages = [r.getMessage() for r in caplog.records]
    assert any("Error closing sink" in m for m in messages)
    assert len([m for m in messages if m.startswith("Generated for")]) == 1
    assert sink.emit.call_count > 0


def test_forbidden_index_template_still_runs(monkeypatch, caplog) -> None:
    caplog.set_level(logging.INFO)
    monkeypatch.setenv("LPS", "100")

    with patch("loggen.elasticsearch_client.Elasticsearch") as es_cls, \
            patch("loggen.elasticsearch_client.helpers.bulk", side_effect=lambda client, actions, **kw: (len(actions), [])):
        es = es_cls.return_value
        es.info.return_value = {'version': {'number': '8.15.0'}}
        es.indices.put_index_template.side_effect = AuthorizationException(
            "forbidden", meta=MagicMock(status=403), body={}
        )
        assert log_generator.main(["--sink", "elasticsearch", "--duration", "0.1"]) == 0

    messages = [r.getMessage() for r in caplog.records]
    assert any("Could not create index template" in m for m in messages)
    assert len([m for m in messages if m.startswith("Generated for")]) == 1
