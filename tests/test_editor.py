from __future__ import annotations

import unittest
from pathlib import Path
from unittest import mock

from lazyaws.editor import editor_command, run_editor


class EditorTests(unittest.TestCase):
    def test_editor_command_defaults_to_vi(self) -> None:
        self.assertEqual(editor_command({}), ["vi"])
        self.assertEqual(editor_command({"EDITOR": "code --wait"}), ["code", "--wait"])

    def test_run_editor_passes_target(self) -> None:
        with mock.patch("lazyaws.editor.subprocess.run") as run:
            self.assertIsNone(run_editor(Path("/tmp/x.json"), {"EDITOR": "nano"}))

        run.assert_called_once_with(["nano", "/tmp/x.json"], check=False)

    def test_launch_failure_is_reported(self) -> None:
        with mock.patch("lazyaws.editor.subprocess.run", side_effect=FileNotFoundError("nano")):
            message = run_editor(Path("/tmp/x.json"), {"EDITOR": "nano"})

        self.assertEqual(message, "Failed to launch editor: nano")


if __name__ == "__main__":
    unittest.main()
