"""
Unit tests for the remote file channel lifecycle and error classification.
"""
import errno
import socket

import paramiko
import pytest

from pipeline.errors import (
    EncodingError,
    RemoteErrorCode,
    RemoteFileError,
    classify_exception,
)
from pipeline.remote_channel import SftpChannel, build_channel


@pytest.mark.unit
class TestClassifyException:
    """Tests for mapping transport exceptions onto error codes."""

    @pytest.mark.parametrize("exc,code", [
        (ConnectionRefusedError(errno.ECONNREFUSED, "refused"), RemoteErrorCode.CONNECTION_REFUSED),
        (socket.gaierror(-2, "Name or service not known"), RemoteErrorCode.HOST_UNREACHABLE),
        (OSError(errno.EHOSTUNREACH, "No route to host"), RemoteErrorCode.HOST_UNREACHABLE),
        (socket.timeout("timed out"), RemoteErrorCode.TIMEOUT),
        (TimeoutError(), RemoteErrorCode.TIMEOUT),
        (paramiko.AuthenticationException("bad password"), RemoteErrorCode.AUTHENTICATION_FAILED),
        (PermissionError(errno.EACCES, "Permission denied"), RemoteErrorCode.PERMISSION_DENIED),
        (FileNotFoundError(errno.ENOENT, "No such file"), RemoteErrorCode.NOT_FOUND),
        (IOError(errno.ENOENT, "No such file"), RemoteErrorCode.NOT_FOUND),
        (EncodingError("bad header"), RemoteErrorCode.ENCODING_ERROR),
        (RuntimeError("boom"), RemoteErrorCode.UNKNOWN),
    ])
    def test_codes(self, exc, code):
        assert classify_exception(exc) is code

    def test_no_valid_connections_uses_first_cause(self):
        exc = paramiko.ssh_exception.NoValidConnectionsError({
            ("127.0.0.1", 22): ConnectionRefusedError(errno.ECONNREFUSED, "refused"),
        })
        assert classify_exception(exc) is RemoteErrorCode.CONNECTION_REFUSED

    @pytest.mark.parametrize("code,status", [
        (RemoteErrorCode.CONNECTION_REFUSED, 503),
        (RemoteErrorCode.HOST_UNREACHABLE, 502),
        (RemoteErrorCode.TIMEOUT, 504),
        (RemoteErrorCode.AUTHENTICATION_FAILED, 401),
        (RemoteErrorCode.PERMISSION_DENIED, 403),
        (RemoteErrorCode.NOT_FOUND, 404),
        (RemoteErrorCode.ENCODING_ERROR, 422),
        (RemoteErrorCode.CONFLICT, 409),
        (RemoteErrorCode.UNKNOWN, 500),
    ])
    def test_status_per_code(self, code, status):
        assert code.status == status

    def test_error_payload(self):
        err = RemoteFileError.from_exception(
            PermissionError(errno.EACCES, "Permission denied"), "put", "/out/x.csv",
        )
        assert err.to_dict() == {
            "error": "Remote put /out/x.csv failed: permission_denied",
            "code": "permission_denied",
            "status": 403,
            "detail": "PermissionError: [Errno 13] Permission denied",
        }


@pytest.mark.unit
class TestSessionLifecycle:
    """Tests for connection scoping on RemoteFileChannel."""

    def test_standalone_call_opens_and_closes(self, channel):
        channel.add_file("/a.csv", "x")

        assert channel.exists("/a.csv")
        assert channel.stat("/a.csv").size == 1

        assert channel.opened == 2
        assert channel.closed == 2
        assert not channel.connected

    def test_nested_sessions_share_connection(self, channel):
        with channel.session():
            with channel.session():
                channel.exists("/")
            assert channel.connected
            channel.list("/")
        assert channel.opened == 1
        assert channel.closed == 1

    def test_session_closed_after_error(self, channel):
        with pytest.raises(RemoteFileError):
            with channel.session():
                channel.stat("/missing.csv")
        assert channel.closed == 1
        assert not channel.connected

    def test_connect_failure_is_classified(self, channel):
        channel.fail_on["connect"] = ConnectionRefusedError(errno.ECONNREFUSED, "refused")

        with pytest.raises(RemoteFileError) as exc_info:
            channel.exists("/")

        err = exc_info.value
        assert err.code is RemoteErrorCode.CONNECTION_REFUSED
        assert err.status == 503
        assert err.operation == "connect"
        assert isinstance(err.__cause__, ConnectionRefusedError)
        assert channel.closed == 0

    def test_disconnect_errors_are_swallowed(self, channel, monkeypatch):
        def _broken_close():
            raise OSError("socket already closed")

        monkeypatch.setattr(channel, "_close", _broken_close)
        with channel.session():
            pass
        assert not channel.connected

    def test_check_connection(self, channel):
        assert channel.check_connection("/missing") is True
        channel.fail_on["connect"] = socket.timeout("timed out")
        assert channel.check_connection("/") is False


@pytest.mark.unit
class TestOperations:
    """Tests for the public file operations against the in-memory endpoint."""

    def test_exists(self, channel):
        channel.add_file("/out/stores/stores.csv", "code\n")
        assert channel.exists("/out/stores/stores.csv")
        assert channel.exists("/out/stores")
        assert not channel.exists("/out/users")

    def test_mkdir_creates_parents_and_is_idempotent(self, channel):
        channel.mkdir("/processed/stores")
        channel.mkdir("/processed/stores")

        assert {"/processed", "/processed/stores"} <= channel.dirs
        assert [p for op, p in channel.operations if op == "mkdir"] == [
            "/processed", "/processed/stores",
        ]

    def test_list(self, channel):
        channel.add_file("/out/taxes/taxes.csv", "code\n")
        channel.add_dir("/out/taxes/archive")

        entries = {e.name: e for e in channel.list("/out/taxes")}

        assert set(entries) == {"taxes.csv", "archive"}
        assert entries["archive"].is_dir
        assert entries["taxes.csv"].size == 5

    def test_get_and_put(self, channel, temp_dir):
        local = temp_dir / "up.csv"
        local.write_text("code\nA\n", encoding="utf-8")
        channel.add_dir("/out")

        channel.put(local, "/out/a.csv")
        channel.get("/out/a.csv", temp_dir / "down.csv")

        assert (temp_dir / "down.csv").read_text(encoding="utf-8") == "code\nA\n"

    def test_get_missing_file(self, channel, temp_dir):
        with pytest.raises(RemoteFileError) as exc_info:
            channel.get("/nope.csv", temp_dir / "x.csv")
        assert exc_info.value.code is RemoteErrorCode.NOT_FOUND
        assert exc_info.value.path == "/nope.csv"

    def test_remove(self, channel):
        channel.add_file("/a.csv", "x")
        channel.remove("/a.csv")
        assert "/a.csv" not in channel.files


@pytest.mark.unit
class TestSftpChannel:
    """Tests for SftpChannel construction; no network is used."""

    def test_label(self):
        assert SftpChannel("sftp.partner.test", 2222, "grocer").label == "sftp://grocer@sftp.partner.test:2222"
        assert SftpChannel("sftp.partner.test").label == "sftp://sftp.partner.test:22"

    def test_built_from_config(self, test_config):
        test_config.sftp_host = "sftp.partner.test"
        test_config.sftp_port = 2222
        test_config.sftp_username = "grocer"
        test_config.sftp_timeout = 5.0

        channel = build_channel(test_config)

        assert isinstance(channel, SftpChannel)
        assert channel.host == "sftp.partner.test"
        assert channel.port == 2222
        assert channel.timeout == 5.0
        assert not channel.connected

    def test_unused_outside_session(self):
        with pytest.raises(RuntimeError):
            SftpChannel("sftp.partner.test").sftp
