"""Tests for the command-line session simulator."""

import simulate


def test_session_runs_to_completion(capsys):
    exit_code = simulate.main(["--players", "3", "--drop", "2", "--log-level", "WARNING"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "created" in out
    assert "Start game: ok" in out
    assert "Player 2 dropped; online=False" in out
    assert "Player 2 back; online=True" in out
    assert "Host left: ok" in out
    assert "After everyone left: Lobby not found" in out


def test_rejects_single_player(capsys):
    assert simulate.main(["--players", "1"]) == 2
    assert "at least 2" in capsys.readouterr().err
