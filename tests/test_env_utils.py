import tempfile
import unittest
from pathlib import Path

import env_utils
from env_utils import CondaContext, child_environment_updates, compute_sanitized_search_path, conda_context
from errors import EnvironmentContextError


class SanitizedSearchPathTests(unittest.TestCase):
    def test_drops_base_install_but_keeps_active_env(self):
        current = ";".join(["A\\env\\x", "A\\base\\y", "B\\z"])
        result = compute_sanitized_search_path(current, "A\\env", "A", sep=";", ignore_case=False)
        self.assertEqual(result, "A\\env\\x;B\\z")

    def test_trailing_separators_and_case(self):
        current = ";".join([
            "C:\\Miniconda3\\envs\\tts\\Library\\bin\\",
            "C:\\MINICONDA3\\Library\\bin\\",
            "C:\\Miniconda3",
            "C:\\Windows\\system32",
        ])
        result = compute_sanitized_search_path(
            current, "C:\\Miniconda3\\envs\\tts\\", "C:\\Miniconda3\\", sep=";", ignore_case=True
        )
        self.assertEqual(result.split(";"), ["C:\\Miniconda3\\envs\\tts\\Library\\bin\\", "C:\\Windows\\system32"])

    def test_sibling_directories_sharing_a_prefix_are_kept(self):
        current = "/opt/conda/bin:/opt/conda-tools/bin:/usr/bin"
        result = compute_sanitized_search_path(current, "/opt/conda/envs/tts", "/opt/conda", sep=":", ignore_case=False)
        self.assertEqual(result, "/opt/conda-tools/bin:/usr/bin")


class CondaContextTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.env = self.root / "envs" / "tts"
        self.env.mkdir(parents=True)
        (self.root / "conda-meta").mkdir()

    def tearDown(self):
        self._tmp.cleanup()

    def test_no_conda(self):
        self.assertIsNone(conda_context({}))

    def test_named_env_under_install_root(self):
        ctx = conda_context({"CONDA_PREFIX": str(self.env)})
        self.assertEqual(ctx, CondaContext(env_prefix=str(self.env), install_root=str(self.root)))

    def test_base_env_is_its_own_root(self):
        ctx = conda_context({"CONDA_PREFIX": str(self.root)})
        self.assertEqual(ctx.install_root, str(self.root))

    def test_prefix_env_uses_conda_exe(self):
        other = self.root / "elsewhere"
        other.mkdir()
        (self.root / "install" / "conda-meta").mkdir(parents=True)
        exe = self.root / "install" / "bin" / "conda"
        ctx = conda_context({"CONDA_PREFIX": str(other), "CONDA_EXE": str(exe)})
        self.assertEqual(ctx.install_root, str(self.root / "install"))

    def test_conda_exe_outside_a_conda_install_is_ignored(self):
        other = self.root / "myenv"
        other.mkdir()
        ctx = conda_context({"CONDA_PREFIX": str(other), "CONDA_EXE": "/usr/bin/conda"})
        self.assertEqual(ctx, CondaContext(env_prefix=str(other), install_root=str(other)))

        sep = env_utils.os.pathsep
        path = sep.join([str(other / "bin"), "/usr/local/bin", "/usr/bin", "/bin"])
        self.assertEqual(child_environment_updates({"PATH": path}, ctx), {})

    def test_envs_parent_without_conda_meta_is_not_a_root(self):
        loose = self.root / "plain" / "envs" / "x"
        loose.mkdir(parents=True)
        ctx = conda_context({"CONDA_PREFIX": str(loose)})
        self.assertEqual(ctx.install_root, str(loose))

    def test_missing_prefix_directory_is_fatal(self):
        with self.assertRaises(EnvironmentContextError):
            conda_context({"CONDA_PREFIX": str(self.root / "gone")})


class ChildEnvironmentTests(unittest.TestCase):
    def test_updates_path_only_when_it_changes(self):
        sep = env_utils.os.pathsep
        ctx = CondaContext(env_prefix="/c/envs/x", install_root="/c")
        environ = {"PATH": sep.join(["/c/envs/x/bin", "/c/bin", "/usr/bin"])}
        updates = child_environment_updates(environ, ctx)
        self.assertEqual(updates, {"PATH": sep.join(["/c/envs/x/bin", "/usr/bin"])})

        self.assertEqual(child_environment_updates({"PATH": "/usr/bin"}, ctx), {})
        self.assertEqual(child_environment_updates(environ, None), {})

    def test_omp_escape_hatch(self):
        with self.assertLogs("env_utils", level="WARNING"):
            updates = child_environment_updates({"PATH": "/usr/bin"}, None, allow_omp_duplicate=True)
        self.assertEqual(updates, {"KMP_DUPLICATE_LIB_OK": "TRUE"})


if __name__ == "__main__":
    unittest.main()
