import os
import unittest
from unittest.mock import patch

from trustflow.core.config import DEFAULT_BASE_URL, TrustFlowConfig, build_headers
from trustflow.core.models import ApplicationDescription

class TestTrustFlowConfig(unittest.TestCase):
    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = TrustFlowConfig.from_env()
        self.assertEqual(config.base_url, DEFAULT_BASE_URL)
        self.assertEqual(config.scanner_name, "Trivy")
        self.assertIsNone(config.timeout)
        self.assertEqual(config.cookies(), {})

    def test_environment_and_overrides(self):
        env = {
            "TRUSTFLOW_BASE_URL": "https://argocd.example/extensions/trustflow/",
            "TRUSTFLOW_SCANNER_NAME": "Grype",
            "TRUSTFLOW_TIMEOUT": "not-a-number",
            "ARGOCD_TOKEN": "secret",
        }
        with patch.dict(os.environ, env, clear=True):
            config = TrustFlowConfig.from_env(scanner_name="Trivy Operator", server=None)
        self.assertEqual(config.base_url, "https://argocd.example/extensions/trustflow")
        self.assertEqual(config.scanner_name, "Trivy Operator")
        self.assertIsNone(config.timeout)
        self.assertEqual(config.cookies(), {"argocd.token": "secret"})

class TestBuildHeaders(unittest.TestCase):
    def test_without_application(self):
        headers = build_headers(None)
        self.assertEqual(headers, {"Accept": "application/json", "Content-Type": "application/json"})

    def test_application_defaults(self):
        headers = build_headers(ApplicationDescription(metadata={"name": "guestbook"}))
        self.assertEqual(headers["Argocd-Application-Name"], "argocd:guestbook")
        self.assertEqual(headers["Argocd-Project-Name"], "default")

    def test_nameless_application_sends_no_app_headers(self):
        headers = build_headers(ApplicationDescription(spec={"project": "x"}))
        self.assertNotIn("Argocd-Application-Name", headers)

if __name__ == '__main__':
    unittest.main()
