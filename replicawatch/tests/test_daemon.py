"""Tests for daemon config loading and logging setup."""
from __future__ import annotations

import logging
from logging.handlers import TimedRotatingFileHandler

import pytest

from replicawatch.daemon import load_config, main, setup_logging

from .conftest import R0, R1, make_config


def test_load_config_prefers_yaml(tmp_path, monkeypatch):
    path = tmp_path / "rw.yaml"
    path.write_text(f"replicas: [{R1}]\n")
    monkeypatch.setenv("RW_CONFIG", str(path))
    assert load_config().replica_urls == (R1,)


def test_load_config_falls_back_to_env(tmp_path, monkeypatch):
    monkeypatch.setenv("RW_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.setenv("RW_REPLICA_URLS", R0)
    assert load_config().replica_urls == (R0,)


def test_main_exits_on_invalid_config(tmp_path, monkeypatch):
    monkeypatch.setenv("RW_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.setenv("RW_REPLICA_URLS", "")
    with pytest.raises(SystemExit) as exc:
        main()
    assert exc.value.code == 1


def test_setup_logging_file_and_console(tmp_path):
    cfg = make_config(R0, log_dir=str(tmp_path / "logs"), log_level="WARNING")
    logger = setup_logging(cfg)
    try:
        assert logger.name == "replicawatch"
        file_handlers = [h for h in logger.handlers if isinstance(h, TimedRotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].backupCount == cfg.log_retention_days
        console = [h for h in logger.handlers if not isinstance(h, TimedRotatingFileHandler)]
        assert console[0].level == logging.WARNING
        assert (tmp_path / "logs").is_dir()
    finally:
        for h in list(logger.handlers):
            logger.removeHandler(h)
            h.close()


def test_main_exits_on_bad_yaml_value(tmp_path, monkeypatch):
    path = tmp_path / "rw.yaml"
    path.write_text(f"replicas: [{R0}]\nthresholds:\n  failure: three\n")
    monkeypatch.setenv("RW_CONFIG", str(path))
    with pytest.raises(SystemExit) as exc:
        main()
    assert exc.value.code == 1
