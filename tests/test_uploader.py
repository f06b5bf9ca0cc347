from __future__ import annotations

from datetime import datetime, timezone
import os
import subprocess
import unittest
from unittest.mock import patch

from coop_relay.storage import (
    UploadError,
    UploaderConfigError,
    UploaderExecutor,
    fallback_image_path,
    parse_uploaded_path,
)


class ParseUploadedPathTests(unittest.TestCase):
    def test_marker_found_among_log_lines(self) -> None:
        stdout = "Uploading...\nUPLOADED_IMAGE_PATH:r-1/2026-10-18-12-00-00.jpg\nProcess completed.\n"

        self.assertEqual(parse_uploaded_path(stdout), "r-1/2026-10-18-12-00-00.jpg")

    def test_missing_or_empty_marker(self) -> None:
        self.assertIsNone(parse_uploaded_path("all good\n"))
        self.assertIsNone(parse_uploaded_path("UPLOADED_IMAGE_PATH:\n"))

    def test_fallback_path_is_relay_scoped_timestamp(self) -> None:
        now = datetime(2026, 10, 18, 12, 30, 5, 123000, tzinfo=timezone.utc)

        self.assertEqual(fallback_image_path("r-1", now), "r-1/2026-10-18T12-30-05-123Z.jpg")


class UploaderExecutorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.executor = UploaderExecutor("coop-relay-upload --timeout 10", timeout_sec=5)

    @patch("coop_relay.storage.uploader.subprocess.run")
    def test_upload_uses_marker_path(self, mock_run) -> None:
        mock_run.return_value = subprocess.CompletedProcess(
            args=[],
            returncode=0,
            stdout="UPLOADED_IMAGE_PATH:r-1/a.jpg\n",
            stderr="log line\n",
        )

        result = self.executor.upload("r-1", "/tmp/snap.jpg")

        self.assertEqual(result.image_path, "r-1/a.jpg")
        self.assertTrue(result.from_marker)
        command = mock_run.call_args.args[0]
        self.assertEqual(
            command,
            ["coop-relay-upload", "--timeout", "10", "--relay-id", "r-1", "--image-path", "/tmp/snap.jpg"],
        )
        self.assertEqual(mock_run.call_args.kwargs["timeout"], 5)

    @patch("coop_relay.storage.uploader.subprocess.run")
    def test_upload_without_marker_falls_back(self, mock_run) -> None:
        mock_run.return_value = subprocess.CompletedProcess(args=[], returncode=0, stdout="done\n", stderr="")

        result = self.executor.upload("r-1", "/tmp/snap.jpg")

        self.assertFalse(result.from_marker)
        self.assertTrue(result.image_path.startswith("r-1/"))
        self.assertTrue(result.image_path.endswith(".jpg"))

    @patch("coop_relay.storage.uploader.subprocess.run")
    def test_upload_failure_reports_output_verbatim(self, mock_run) -> None:
        mock_run.side_effect = subprocess.CalledProcessError(
            returncode=2,
            cmd=["coop-relay-upload"],
            output="Uploading...\n",
            stderr="Error uploading to storage. Status: 403",
        )

        with self.assertRaises(UploadError) as ctx:
            self.executor.upload("r-1", "/tmp/snap.jpg")

        self.assertIn("Uploading...", str(ctx.exception))
        self.assertIn("Status: 403", str(ctx.exception))

    @patch("coop_relay.storage.uploader.subprocess.run")
    def test_upload_timeout(self, mock_run) -> None:
        mock_run.side_effect = subprocess.TimeoutExpired(cmd=["coop-relay-upload"], timeout=5)

        with self.assertRaises(UploadError):
            self.executor.upload("r-1", "/tmp/snap.jpg")


class UploaderPrerequisiteTests(unittest.TestCase):
    @patch("coop_relay.storage.uploader.shutil.which", return_value=None)
    def test_missing_binary(self, _mock_which) -> None:
        executor = UploaderExecutor("coop-relay-upload")

        with self.assertRaises(UploaderConfigError) as ctx:
            executor.check_prerequisites()

        self.assertIn("coop-relay-upload", str(ctx.exception))

    @patch("coop_relay.storage.uploader.shutil.which", return_value="/usr/bin/coop-relay-upload")
    def test_missing_environment_is_listed(self, _mock_which) -> None:
        executor = UploaderExecutor(
            "coop-relay-upload",
            required_env=("SUPABASE_URL", "SUPABASE_SERVICE_KEY", "COOP_BACKEND_URL"),
            extra_env={"COOP_BACKEND_URL": "http://backend"},
        )

        with patch.dict(os.environ, {"SUPABASE_URL": "https://x.supabase.co"}, clear=True):
            with self.assertRaises(UploaderConfigError) as ctx:
                executor.check_prerequisites()

        self.assertIn("SUPABASE_SERVICE_KEY", str(ctx.exception))
        self.assertNotIn("COOP_BACKEND_URL", str(ctx.exception))

    @patch("coop_relay.storage.uploader.shutil.which", return_value="/usr/bin/coop-relay-upload")
    def test_process_environment_wins_over_defaults(self, _mock_which) -> None:
        executor = UploaderExecutor(
            "coop-relay-upload",
            required_env=("SUPABASE_URL",),
            extra_env={"COOP_BACKEND_URL": "http://default"},
        )

        with patch.dict(
            os.environ,
            {"SUPABASE_URL": "https://x.supabase.co", "COOP_BACKEND_URL": "http://explicit"},
            clear=True,
        ):
            executor.check_prerequisites()
            env = executor._environment()  # pylint: disable=protected-access

        self.assertEqual(env["COOP_BACKEND_URL"], "http://explicit")

    def test_empty_command_is_rejected(self) -> None:
        with self.assertRaises(UploaderConfigError):
            UploaderExecutor("").check_prerequisites()


if __name__ == "__main__":
    unittest.main()
