import pytest

from rustlings import ui


def test_no_emoji_reads_environment(monkeypatch):
    monkeypatch.setenv("NO_EMOJI", "1")
    assert ui.no_emoji() is True
    monkeypatch.delenv("NO_EMOJI")
    assert ui.no_emoji() is False


def test_warn_without_emoji(monkeypatch, capsys):
    monkeypatch.setenv("NO_EMOJI", "1")
    ui.warn("Compiling of x failed!")
    assert capsys.readouterr().out == "! Compiling of x failed!\n"


def test_success_without_emoji(monkeypatch, capsys):
    monkeypatch.setenv("NO_EMOJI", "1")
    ui.success("Successfully ran x")
    assert capsys.readouterr().out == "✓ Successfully ran x\n"


def test_warn_with_emoji(monkeypatch, capsys):
    monkeypatch.delenv("NO_EMOJI", raising=False)
    ui.warn("careful")
    out = capsys.readouterr().out
    assert out.startswith("⚠️")
    assert out.endswith(" careful\n")


def test_success_with_emoji(monkeypatch, capsys):
    monkeypatch.delenv("NO_EMOJI", raising=False)
    ui.success("done")
    assert capsys.readouterr().out == "✅ done\n"


@pytest.mark.parametrize("message", ["[bold]x[/bold]", "a {b} c"])
def test_message_is_printed_verbatim(monkeypatch, capsys, message):
    monkeypatch.setenv("NO_EMOJI", "1")
    ui.warn(message)
    assert capsys.readouterr().out == f"! {message}\n"