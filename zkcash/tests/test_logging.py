from __future__ import annotations

import io
import json
import logging

import pytest

from zkcash import logging as zlog
from zkcash.config import PoolConfig


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)
    zlog.clear_context()


def test_trace_scope_restores_context():
    zlog.clear_context()
    zlog.bind(component="ledger")
    with zlog.trace_scope(instruction="shield") as tid:
        ctx = zlog.context()
        assert ctx["trace_id"] == tid
        assert ctx["instruction"] == "shield"
        assert ctx["component"] == "ledger"
    assert zlog.context() == {"component": "ledger"}
    zlog.unbind("component")
    assert zlog.context() == {}


def test_json_formatter_includes_context_and_extras(restore_root):
    buf = io.StringIO()
    zlog.configure(json=True, level="DEBUG", stream=buf)
    log = zlog.get_logger("zkcash.test")
    with zlog.trace_scope(trace_id="t-1"):
        log.info("shield accepted", extra={"leaf_index": 3, "blob": b"\x01\x02"})
    line = json.loads(buf.getvalue().strip().splitlines()[-1])
    assert line["msg"] == "shield accepted"
    assert line["level"] == "INFO"
    assert line["logger"] == "zkcash.test"
    assert line["trace_id"] == "t-1"
    assert line["leaf_index"] == 3
    assert line["blob"] == "0102"


def test_text_formatter(restore_root):
    buf = io.StringIO()
    zlog.configure(json=False, level="INFO", stream=buf)
    zlog.get_logger("zkcash.test").warning("instruction rejected", extra={"code": "UnknownRoot"})
    out = buf.getvalue()
    assert "WARN" in out
    assert "code=UnknownRoot" in out
    assert out.rstrip().endswith("instruction rejected")


def test_level_filtering(restore_root):
    buf = io.StringIO()
    zlog.configure(json=True, level="WARNING", stream=buf)
    zlog.get_logger("zkcash.test").info("hidden")
    assert buf.getvalue() == ""


def test_configure_from_config_binds_program_id(restore_root):
    buf = io.StringIO()
    cfg = PoolConfig(log_format="json", log_level="INFO", program_id="0x" + "11" * 32)
    zlog.configure_from_config(cfg, stream=buf)
    zlog.get_logger("zkcash.test").info("hello")
    line = json.loads(buf.getvalue().strip())
    assert line["program_id"] == cfg.program_id


def test_env_selects_format(restore_root, monkeypatch):
    monkeypatch.setenv("ZKCASH_LOG_FORMAT", "json")
    buf = io.StringIO()
    zlog.configure(stream=buf)
    zlog.get_logger("zkcash.test").info("hello")
    assert json.loads(buf.getvalue())["msg"] == "hello"


def test_with_fields_adapter(restore_root):
    buf = io.StringIO()
    zlog.configure(json=True, stream=buf)
    adapter = zlog.with_fields(zlog.get_logger("zkcash.test"), component="verifier")
    adapter.info("ok", extra={"n": 1})
    line = json.loads(buf.getvalue())
    assert line["component"] == "verifier"
    assert line["n"] == 1
