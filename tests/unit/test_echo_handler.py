"""
Unit tests for the echo handler and the CLI.
"""

import pytest

from tcpreactor.__main__ import build_parser, main
from tcpreactor.core.connection_table import PeerInfo
from tcpreactor.errors import ErrorCode
from tcpreactor.handlers import EchoHandler


class TestEchoHandler:
    """Tests for EchoHandler."""

    def test_echoes_payload(self):
        handler = EchoHandler()
        peer = PeerInfo("127.0.0.1", 5000)

        assert handler.handle(b"hello\n", peer) == b"hello\n"
        assert handler.messages_echoed == 1

    def test_prefix(self):
        handler = EchoHandler(prefix=b"echo: ")

        assert handler.handle(b"hi", PeerInfo("h", 1)) == b"echo: hi"

    def test_quit_closes(self):
        handler = EchoHandler()

        assert handler.handle(b"quit\r\n", PeerInfo("h", 1)) is False
        assert handler.messages_echoed == 0

    def test_custom_quit_command(self):
        handler = EchoHandler(quit_command=b"die")

        assert handler.handle(b"die", PeerInfo("h", 1)) is False
        assert handler.handle(b"quit", PeerInfo("h", 1)) == b"quit"

    def test_counts_messages_per_peer(self):
        handler = EchoHandler()
        alice = PeerInfo("10.0.0.1", 1)
        bob = PeerInfo("10.0.0.2", 2)
        handler.on_connect(alice)
        handler.on_connect(bob)

        handler.handle(b"a", alice)
        handler.handle(b"b", alice)
        handler.handle(b"c", bob)

        assert alice.tags["messages"] == 2
        assert bob.tags["messages"] == 1
        assert handler.connections_seen == 2

    def test_hooks_bundle(self):
        handler = EchoHandler()
        hooks = handler.hooks()

        assert hooks.handle_received_data == handler.handle
        assert hooks.should_accept_connection(PeerInfo("h", 1)) is True

    def test_error_and_close_are_logged(self, caplog):
        handler = EchoHandler()
        peer = PeerInfo("h", 1)
        handler.on_connect(peer)

        with caplog.at_level("INFO", logger="tcpreactor"):
            handler.on_close(peer, None)
            handler.on_error(ErrorCode.BACKLOG_REACHED, "Too many connections")

        assert "disconnected after 0 message(s)" in caplog.text
        assert "BACKLOG_REACHED (103)" in caplog.text


class TestCLI:
    """Tests for the command-line entry point."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("REACTOR_PORT", raising=False)
        monkeypatch.delenv("REACTOR_BACKLOG", raising=False)

        args = build_parser().parse_args([])

        assert args.port == 8080
        assert args.backlog == 10
        assert args.timeout is None
        assert args.unix is None

    def test_flags(self):
        args = build_parser().parse_args(
            ["-p", "9000", "-b", "2", "-t", "0.5", "--read-chunk", "64", "-l", "DEBUG"]
        )

        assert args.port == 9000
        assert args.backlog == 2
        assert args.timeout == 0.5
        assert args.read_chunk == 64
        assert args.log_level == "DEBUG"

    def test_environment_provides_defaults(self, monkeypatch):
        monkeypatch.setenv("REACTOR_PORT", "7070")

        assert build_parser().parse_args([]).port == 7070

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--version"])

        assert exc_info.value.code == 0
        assert "tcpreactor" in capsys.readouterr().out

    def test_invalid_config_exits_2(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--backlog", "0"])

        assert exc_info.value.code == 2
        assert "backlog" in capsys.readouterr().err

    def test_unparseable_environment_exits_2(self, monkeypatch, capsys):
        monkeypatch.setenv("REACTOR_PORT", "abc")

        with pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == 2
        assert "Error: invalid environment configuration" in capsys.readouterr().err
