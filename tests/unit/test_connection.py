"""
Unit tests for the Connection wrapper.
"""

import logging
import socket
import threading

import pytest

from unresponsive.core import ConnectionState, resolve_peer_name


class TestResolvePeerName:
    """Tests for log labels."""

    def test_numeric_when_resolution_disabled(self):
        assert resolve_peer_name(("192.0.2.7", 5000), resolve=False) == "192.0.2.7:5000"

    def test_uses_reverse_lookup(self, monkeypatch):
        monkeypatch.setattr(socket, "gethostbyaddr", lambda ip: ("client.example", [], [ip]))
        assert resolve_peer_name(("192.0.2.7", 5000)) == "client.example:5000"

    def test_falls_back_to_numeric_address(self, monkeypatch):
        def fail(ip):
            raise socket.herror(1, "Unknown host")

        monkeypatch.setattr(socket, "gethostbyaddr", fail)
        assert resolve_peer_name(("192.0.2.7", 5000)) == "192.0.2.7:5000"


class TestConnection:
    """Tests for Connection I/O and lifecycle."""

    def test_initial_state(self, make_connection, socket_pair):
        server_side, _ = socket_pair
        conn = make_connection()

        assert conn.state is ConnectionState.CONNECTED
        assert conn.label == "127.0.0.1:40000"
        assert conn.is_http is False
        assert conn.peer_closed is False
        assert server_side.getblocking() is False
        conn.close()

    def test_resolve_label_updates_logger(self, make_connection, monkeypatch, caplog):
        caplog.set_level(logging.INFO, logger="unresponsive")
        monkeypatch.setattr(socket, "gethostbyaddr", lambda ip: ("localhost", [], [ip]))
        conn = make_connection()

        assert conn.resolve_label() == "localhost:40000"
        conn.log.info("hello")

        assert caplog.records[-1].getMessage() == "[localhost:40000] hello"
        conn.close()

    def test_send_delivers_all_bytes(self, make_connection, socket_pair):
        _, client = socket_pair
        conn = make_connection()
        payload = b"z" * 300000  # More than the socket buffer holds

        received = bytearray()

        def drain():
            while len(received) < len(payload):
                received.extend(client.recv(65536))

        reader = threading.Thread(target=drain)
        reader.start()

        assert conn.send(payload) is True
        reader.join(timeout=5)

        assert bytes(received) == payload
        conn.close()

    def test_send_to_closed_peer_fails(self, make_connection, socket_pair, caplog):
        _, client = socket_pair
        conn = make_connection()
        client.close()

        assert conn.send(b"too late") is False
        assert any(r.levelno == logging.ERROR for r in caplog.records)
        conn.close()

    def test_send_gives_up_on_stalled_peer(self, make_connection, socket_pair, caplog):
        _, client = socket_pair  # Never read from
        conn = make_connection(send_timeout=0.2)

        assert conn.send(b"z" * (4 * 1024 * 1024)) is False
        assert any("Send timed out after 0.2 seconds" in r.getMessage() for r in caplog.records)
        conn.close()

    def test_probe_eof(self, make_connection, socket_pair):
        _, client = socket_pair
        conn = make_connection()

        assert conn.probe_eof() is False

        client.sendall(b"ignored")
        assert conn.probe_eof() is False

        client.shutdown(socket.SHUT_WR)
        assert conn.probe_eof() is True
        conn.close()

    def test_close_is_idempotent_and_logged_once(self, make_connection, caplog):
        caplog.set_level(logging.INFO, logger="unresponsive")
        conn = make_connection()

        conn.close()
        conn.close()

        closed = [r for r in caplog.records if r.getMessage().endswith("CLOSED")]
        assert len(closed) == 1
        assert conn.state is ConnectionState.CLOSED

    def test_close_shuts_down_both_directions(self, make_connection, socket_pair):
        _, client = socket_pair
        with make_connection():
            pass

        assert client.recv(16) == b""

    def test_context_manager_closes_on_error(self, make_connection):
        conn = make_connection()

        with pytest.raises(ValueError):
            with conn:
                raise ValueError("boom")

        assert conn.state is ConnectionState.CLOSED
