"""
Unit tests for moving consumed inbound files to /processed.
"""
import errno

import pytest

from pipeline.errors import RemoteErrorCode, RemoteFileError
from pipeline.import_archiver import ImportArchiver


@pytest.mark.unit
class TestImportArchiver:
    """Tests for ImportArchiver."""

    def test_moves_file_keeping_name(self, channel):
        channel.add_file("/in/stores/batch1.csv", "code,name\nST01,Centro\n")

        target = ImportArchiver(channel).archive("/in/stores/batch1.csv", "stores")

        assert target == "/processed/stores/batch1.csv"
        assert "/in/stores/batch1.csv" not in channel.files
        assert channel.read_text(target) == "code,name\nST01,Centro\n"

    def test_missing_source_is_noop(self, channel):
        assert ImportArchiver(channel).archive("/in/stores/gone.csv", "stores") is None
        assert not any(op == "rename" for op, _ in channel.operations)
        # The processed directory is still prepared
        assert "/processed/stores" in channel.dirs

    def test_second_archive_is_noop(self, channel):
        channel.add_file("/in/users/u.csv", "email\n")
        archiver = ImportArchiver(channel)

        assert archiver.archive("/in/users/u.csv", "users") == "/processed/users/u.csv"
        assert archiver.archive("/in/users/u.csv", "users") is None

    def test_source_moved_before_rename_is_noop(self, channel):
        channel.add_file("/in/stores/b.csv", "code\nST01\n")

        def _other_run(ch):
            ch.add_dir("/processed/stores")
            ch.files["/processed/stores/b.csv"] = ch.files.pop("/in/stores/b.csv")
            ch.mtimes["/processed/stores/b.csv"] = ch.mtimes.pop("/in/stores/b.csv")

        channel.hooks["rename"] = _other_run

        assert ImportArchiver(channel).archive("/in/stores/b.csv", "stores") is None
        assert channel.read_text("/processed/stores/b.csv") == "code\nST01\n"
        assert channel.closed == channel.opened

    def test_rename_not_found_for_target_dir_propagates(self, channel):
        channel.add_file("/in/stores/b.csv", "code\n")
        channel.fail_on["rename"] = FileNotFoundError(errno.ENOENT, "No such file", "/processed/stores")

        with pytest.raises(RemoteFileError) as exc_info:
            ImportArchiver(channel).archive("/in/stores/b.csv", "stores")

        assert exc_info.value.code is RemoteErrorCode.NOT_FOUND
        assert "/in/stores/b.csv" in channel.files

    def test_rename_failure_propagates(self, channel):
        channel.add_file("/in/stores/batch1.csv", "code\n")
        channel.fail_on["rename"] = PermissionError(errno.EACCES, "Permission denied")

        with pytest.raises(RemoteFileError) as exc_info:
            ImportArchiver(channel).archive("/in/stores/batch1.csv", "stores")

        assert exc_info.value.code is RemoteErrorCode.PERMISSION_DENIED
        assert "/in/stores/batch1.csv" in channel.files

    @pytest.mark.parametrize("label", ["", "a/b"])
    def test_invalid_label(self, channel, label):
        with pytest.raises(ValueError):
            ImportArchiver(channel).archive("/in/x.csv", label)
