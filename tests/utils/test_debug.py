import pytest

from py6502.utils import debug
from py6502.utils.trace import TraceRecorder


@pytest.fixture
def categories(monkeypatch):
    def _set(value: str | None) -> None:
        if value is None:
            monkeypatch.delenv(debug.ENV_VAR, raising=False)
        else:
            monkeypatch.setenv(debug.ENV_VAR, value)
        debug.reload_categories()

    yield _set
    monkeypatch.delenv(debug.ENV_VAR, raising=False)
    debug.reload_categories()


def test_debug_disabled_by_default(categories, capsys):
    categories(None)

    debug.debug_log("cpu", "hidden %d", 1)

    assert not debug.debug_enabled("cpu")
    assert capsys.readouterr().out == ""


def test_debug_enabled_for_selected_categories(categories, capsys):
    categories("CPU, loader")

    debug.debug_log("cpu", "pc=%04x", 0x8000)
    debug.debug_log("bus", "not shown")

    assert debug.debug_enabled("loader")
    assert not debug.debug_enabled("bus")
    assert capsys.readouterr().out == "[6502][cpu] pc=8000\n"


def test_debug_all_enables_everything(categories):
    categories("all")

    assert debug.debug_enabled("bus")
    assert debug.debug_enabled()


def test_debug_log_tolerates_bad_format_arguments(categories, capsys):
    categories("cpu")

    debug.debug_log("cpu", "value=%d", "x")

    assert capsys.readouterr().out == "[6502][cpu] value=%d ('x',)\n"


def test_trace_dump_writes_through_debug_log(categories, capsys):
    categories("trace")
    recorder = TraceRecorder(2)
    recorder.record_step(
        type("S", (), {"a": 1, "x": 2, "y": 3, "sp": 0xFF})(),
        0x8000,
        0xEA,
        0,
        halted=False,
        mnemonic="NOP",
    )

    recorder.dump("trace")

    out = capsys.readouterr().out
    assert out.startswith("[6502][trace] pc=8000 opcode=EA NOP")


def test_configure_overrides_environment(categories):
    categories("bus")

    debug.configure(["Loader", " "])

    assert debug.debug_enabled("loader")
    assert not debug.debug_enabled("bus")

    debug.configure("")
    assert not debug.debug_enabled()
