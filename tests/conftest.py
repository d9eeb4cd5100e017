# pylint: disable=missing-module-docstring,missing-function-docstring

import os
os.environ.setdefault("KIVY_NO_ARGS", "1")
os.environ.setdefault("KIVY_NO_CONSOLELOG", "1")

import pytest

import diag_log


@pytest.fixture(autouse=True)
def _diag_log_in_tmp(tmp_path, monkeypatch):
    monkeypatch.setenv("CHANNEL_PLAYER_LOG_DIR", str(tmp_path))
    monkeypatch.setattr(diag_log, "_log_path", None)
    yield
