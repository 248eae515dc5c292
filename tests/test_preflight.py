import unittest
from contextlib import ExitStack
from unittest.mock import patch

import preflight
from probe_utils import ProbeResult

DUPLICATE_OMP = "OMP: Error #15: Initializing libiomp5md.dll, but found libiomp5md.dll already initialized."


def good_probe(**overrides):
    fields = dict(
        exit_status=0,
        torch_version="2.3.1+cu121",
        cuda_version="12.1",
        cuda_available=True,
        cuda_home="/usr/local/cuda",
        parsed=True,
    )
    fields.update(overrides)
    return ProbeResult(**fields)


class PreflightTests(unittest.TestCase):
    def run_preflight(self, probe, *, tools=("nvidia-smi", "c++", "cl"), package=True, skip_gpu_checks=False):
        with ExitStack() as stack:
            stack.enter_context(patch("probe_utils.probe_runtime", return_value=probe))
            stack.enter_context(patch("probe_utils.has_aux_tool", side_effect=lambda name: name in tools))
            self.has_package = stack.enter_context(patch("probe_utils.has_package", return_value=package))
            stack.enter_context(patch("probe_utils.package_hint", return_value=""))
            self.report = preflight.run_preflight("/opt/py", skip_gpu_checks=skip_gpu_checks)
        return self.report

    def test_all_requirements_met(self):
        with self.assertLogs("preflight", level="INFO"):
            report = self.run_preflight(good_probe())
        self.assertTrue(report.passed)
        self.assertEqual(report.failures, [])

    def test_gpu_not_available_fails(self):
        with self.assertLogs("preflight", level="ERROR"):
            report = self.run_preflight(good_probe(cuda_available=False))
        self.assertFalse(report.passed)
        self.assertIn("not available", report.failures[0])

    def test_gpu_checks_fail_fast_in_order(self):
        with self.assertLogs("preflight", level="ERROR"):
            report = self.run_preflight(good_probe(cuda_version=None, cuda_available=False, cuda_home=None))
        self.assertEqual(len(report.failures), 1)
        self.assertIn("no CUDA build", report.failures[0])

        with self.assertLogs("preflight", level="ERROR"):
            report = self.run_preflight(good_probe(cuda_home=None))
        self.assertIn("CUDA toolkit home", report.failures[0])

    def test_unreadable_status_output_is_reported_as_such(self):
        probe = ProbeResult(exit_status=0, diagnostics="Segmentation fault (core dumped)")
        with self.assertLogs("preflight", level="ERROR"):
            report = self.run_preflight(probe)
        self.assertFalse(report.passed)
        self.assertIn("could not be read", report.failures[0])
        self.assertIn("Segmentation fault", report.failures[0])
        self.assertNotIn("no CUDA build", report.failures[0])

    def test_failed_probe_surfaces_raw_diagnostics(self):
        probe = ProbeResult(exit_status=3, diagnostics="ImportError: libcudart.so.12", error="ImportError")
        with self.assertLogs("preflight", level="ERROR"):
            report = self.run_preflight(probe)
        self.assertFalse(report.passed)
        self.assertIn("libcudart.so.12", report.failures[0])

    def test_duplicate_runtime_only_warns_and_continues(self):
        probe = ProbeResult(exit_status=134, diagnostics=DUPLICATE_OMP)
        with self.assertLogs("preflight", level="WARNING"):
            report = self.run_preflight(probe)
        self.assertTrue(report.passed)
        self.assertEqual(len(report.warnings), 1)

    def test_duplicate_runtime_still_requires_gpu_tool(self):
        probe = ProbeResult(exit_status=134, diagnostics=DUPLICATE_OMP)
        with self.assertLogs("preflight", level="WARNING"):
            report = self.run_preflight(probe, tools=("c++", "cl"))
        self.assertFalse(report.passed)
        self.assertIn("nvidia-smi", report.failures[0])

    def test_skip_gpu_checks_still_checks_build_tools(self):
        probe = ProbeResult(exit_status=3, diagnostics="no torch")
        with self.assertLogs("preflight", level="INFO"):
            report = self.run_preflight(probe, tools=("c++", "cl"), skip_gpu_checks=True)
        self.assertTrue(report.passed)

        with self.assertLogs("preflight", level="ERROR"):
            report = self.run_preflight(probe, tools=("c++", "cl"), package=False, skip_gpu_checks=True)
        self.assertIn("ninja", report.failures[0])
        self.has_package.assert_called_once_with("/opt/py", "ninja")

    def test_missing_compiler(self):
        with self.assertLogs("preflight", level="ERROR"):
            report = self.run_preflight(good_probe(), tools=("nvidia-smi",))
        self.assertFalse(report.passed)
        self.assertIn("C++ compiler", report.failures[0])


if __name__ == "__main__":
    unittest.main()
