import tempfile
import unittest
from pathlib import Path
from unittest import mock

from typer.testing import CliRunner

from blob_browser import cli
from blob_browser.controller import BlobBrowserController
from blob_browser.errors import ConfigurationError, NotFoundError, StorageError
from blob_browser.models import ContainerState, DeleteAck, ObjectRecord
from blob_browser.profiles import ConnectionProfile
from blob_browser.settings import AppSettings


class FakeController:
    container = "documents"

    def __init__(self):
        self.records = [
            ObjectRecord(name="a.txt", size=3, content_type="text/plain"),
            ObjectRecord(name="docs/b.txt", size=2048),
            ObjectRecord(name="docs/sub/c.txt", size=1),
        ]
        self.error = None
        self.uploads = []
        self.deleted = []

    def _check(self):
        if self.error:
            raise self.error

    def list_objects(self, *, prefix=""):
        self._check()
        return [record for record in self.records if record.name.startswith(prefix)]

    def upload_file(self, *, source_path, prefix="", name=None, content_type=None):
        self._check()
        self.uploads.append((Path(source_path).name, prefix, name, content_type))
        return ObjectRecord(name=f"{prefix}/{name or Path(source_path).name}".lstrip("/"), size=5, etag='"1"')

    def download_object(self, *, name, destination):
        self._check()
        Path(destination).write_bytes(b"hello")
        return ObjectRecord(name=name, size=5)

    def delete_object(self, *, name):
        self._check()
        self.deleted.append(name)
        return DeleteAck(name=name)


class CliTests(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()
        self.controller = FakeController()
        patcher = mock.patch.object(cli, "build_controller", return_value=self.controller)
        self.build_controller = patcher.start()
        self.addCleanup(patcher.stop)

    def invoke(self, *args):
        return self.runner.invoke(cli.app, list(args))

    def test_ls_prints_table(self):
        result = self.invoke("ls", "docs/")

        self.assertEqual(0, result.exit_code, result.output)
        self.assertIn("docs/b.txt", result.output)
        self.assertIn("2.0 KB", result.output)
        self.assertIn("2 blob(s)", result.output)

    def test_options_are_passed_to_controller_builder(self):
        self.invoke("--container", "reports", "--profile", "alpha", "ls")

        self.build_controller.assert_called_once_with({"profile": "alpha", "container": "reports"})

    def test_version_exits_without_connecting(self):
        result = self.invoke("--version")

        self.assertEqual(0, result.exit_code, result.output)
        self.assertTrue(result.output.strip())
        self.build_controller.assert_not_called()

    def test_tree_groups_by_folder(self):
        result = self.invoke("tree")

        self.assertEqual(0, result.exit_code, result.output)
        self.assertIn("docs/", result.output)
        self.assertIn("sub/", result.output)
        self.assertIn("c.txt", result.output)

    def test_upload_reports_record(self):
        with tempfile.TemporaryDirectory() as tmp:
            source = Path(tmp) / "notes.txt"
            source.write_text("hello", encoding="utf-8")

            result = self.invoke("upload", str(source), "--prefix", "docs")

        self.assertEqual(0, result.exit_code, result.output)
        self.assertIn("docs/notes.txt", result.output)
        self.assertEqual([("notes.txt", "docs", None, None)], self.controller.uploads)

    def test_download_writes_destination(self):
        with tempfile.TemporaryDirectory() as tmp:
            destination = Path(tmp) / "out.txt"

            result = self.invoke("download", "docs/b.txt", "--output", str(destination))

            self.assertEqual(0, result.exit_code, result.output)
            self.assertEqual(b"hello", destination.read_bytes())

    def test_delete_missing_blob_exits_with_not_found_code(self):
        self.controller.error = NotFoundError("missing.txt not found")

        result = self.invoke("delete", "missing.txt")

        self.assertEqual(cli.EXIT_NOT_FOUND, result.exit_code)
        self.assertIn("Not found", result.output)
        self.assertEqual([], self.controller.deleted)

    def test_storage_error_exits_with_error_code(self):
        self.controller.error = StorageError("busy", status_code=503)

        result = self.invoke("ls")

        self.assertEqual(cli.EXIT_ERROR, result.exit_code)
        self.assertIn("Storage service unavailable", result.output)

    def test_configuration_error_exits_with_error_code(self):
        self.build_controller.side_effect = ConfigurationError("AZURE_STORAGE_CONNECTION_STRING is not set")

        result = self.invoke("ls")

        self.assertEqual(cli.EXIT_ERROR, result.exit_code)
        self.assertIn("AZURE_STORAGE_CONNECTION_STRING", result.output)

    def test_tree_skips_folder_markers(self):
        self.controller.records.append(ObjectRecord(name="empty/", size=0))

        result = self.invoke("tree")

        self.assertEqual(0, result.exit_code, result.output)
        self.assertIn("empty/", result.output)
        self.assertNotIn("(0 B)", result.output)


class FakeProfileStorage:
    def __init__(self, profiles=None):
        self.profiles = list(profiles or [])

    def load(self):
        return list(self.profiles)

    def save(self, profiles):
        self.profiles = list(profiles)


class FakeSettingsStorage:
    def __init__(self, settings=None):
        self.settings = settings or AppSettings()
        self.saved = []

    def load(self):
        return self.settings

    def save(self, settings):
        self.saved.append(settings)
        self.settings = settings


class RecordingGateway:
    def __init__(self, store, container, **options):
        self.store = store
        self.container = container

    def initialize(self):
        return ContainerState.EXISTS


class ProfileCommandTests(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()
        self.profile_storage = FakeProfileStorage()
        self.settings_storage = FakeSettingsStorage()
        self.gateways = []
        patches = [
            mock.patch.object(cli, "open_profiles", side_effect=self._open_profiles),
            mock.patch.object(cli, "SettingsStorage", return_value=self.settings_storage),
        ]
        for patcher in patches:
            patcher.start()
            self.addCleanup(patcher.stop)

    def _open_profiles(self, settings=None):
        return BlobBrowserController(
            gateway_factory=self._make_gateway,
            storage=self.profile_storage,
            settings=settings or AppSettings(),
        )

    def _make_gateway(self, store, container, **options):
        gateway = RecordingGateway(store, container, **options)
        self.gateways.append(gateway)
        return gateway

    def invoke(self, *args, **kwargs):
        return self.runner.invoke(cli.app, list(args), **kwargs)

    def test_add_saves_profile(self):
        result = self.invoke(
            "profile", "add", "work", "--account-name", "myaccount", "--container", "reports",
            input="c2VjcmV0LWtleQ==\n",
        )

        self.assertEqual(0, result.exit_code, result.output)
        self.assertEqual(1, len(self.profile_storage.profiles))
        saved = self.profile_storage.profiles[0]
        self.assertEqual(
            ("work", "myaccount", "c2VjcmV0LWtleQ==", "reports"),
            (saved.name, saved.account_name, saved.account_key, saved.container),
        )
        self.assertNotIn("c2VjcmV0LWtleQ==", result.output)

    def test_add_rejects_undecodable_key(self):
        result = self.invoke("profile", "add", "work", "-a", "myaccount", "--account-key", "***")

        self.assertEqual(cli.EXIT_ERROR, result.exit_code)
        self.assertEqual([], self.profile_storage.profiles)

    def test_ls_lists_profiles_and_marks_last_used(self):
        self.profile_storage.profiles = [
            ConnectionProfile(name="work", account_name="myaccount", account_key="c2VjcmV0LWtleQ=="),
        ]
        self.settings_storage.settings = AppSettings(last_connection="work")

        result = self.invoke("profile", "ls")

        self.assertEqual(0, result.exit_code, result.output)
        self.assertIn("work *", result.output)
        self.assertIn("https://myaccount.blob.core.windows.net", result.output)

    def test_rm_deletes_profile_and_clears_last_connection(self):
        self.profile_storage.profiles = [
            ConnectionProfile(name="work", account_name="myaccount", account_key="c2VjcmV0LWtleQ=="),
        ]
        self.settings_storage.settings = AppSettings(last_connection="work")

        result = self.invoke("profile", "rm", "work")

        self.assertEqual(0, result.exit_code, result.output)
        self.assertEqual([], self.profile_storage.profiles)
        self.assertEqual("", self.settings_storage.settings.last_connection)

    def test_rm_unknown_profile_exits_with_not_found_code(self):
        result = self.invoke("profile", "rm", "missing")

        self.assertEqual(cli.EXIT_NOT_FOUND, result.exit_code)

    def test_saved_profile_is_used_by_blob_commands(self):
        self.profile_storage.profiles = [
            ConnectionProfile(name="work", account_name="myaccount", account_key="c2VjcmV0LWtleQ=="),
        ]

        controller = cli.build_controller({"profile": "work", "container": "reports"})

        self.assertEqual("reports", controller.container)
        self.assertEqual("myaccount", self.gateways[0].store.account_name)
        self.assertEqual("work", self.settings_storage.settings.last_connection)

    def test_last_profile_is_used_without_environment(self):
        self.profile_storage.profiles = [
            ConnectionProfile(
                name="work", account_name="myaccount", account_key="c2VjcmV0LWtleQ==", container="reports"
            ),
        ]
        self.settings_storage.settings = AppSettings(last_connection="work")

        with mock.patch.object(cli, "load_connection_settings", side_effect=ConfigurationError("unset")):
            controller = cli.build_controller({})

        self.assertEqual("reports", controller.container)

    def test_missing_environment_without_last_profile_raises(self):
        with mock.patch.object(cli, "load_connection_settings", side_effect=ConfigurationError("unset")):
            with self.assertRaises(ConfigurationError):
                cli.build_controller({})

    def test_unknown_profile_is_a_configuration_error(self):
        with self.assertRaises(ConfigurationError):
            cli.build_controller({"profile": "missing"})


if __name__ == "__main__":
    unittest.main()
