import logging

from project_kit.logging_utils import get_request_logger, setup_logging


def test_request_logger_prefixes_namespace_and_name(caplog, make_request) -> None:
    log = get_request_logger("project_kit.test", make_request())

    with caplog.at_level(logging.INFO, logger="project_kit.test"):
        log.info("단계 실행: %s", "project")

    assert caplog.messages == ["[uhc-prod-abc/cluster-1] 단계 실행: project"]


def test_setup_logging_verbose_sets_debug(monkeypatch) -> None:
    captured = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kw: captured.update(kw))

    setup_logging(1)
    assert captured["level"] == logging.DEBUG

    setup_logging(0)
    assert captured["level"] == logging.INFO
