from __future__ import annotations

import json
import stat
import tempfile
import unittest
from pathlib import Path

from lazyaws.config import (
    AUTH_PROFILE,
    AUTH_SSO,
    DEFAULT_REGIONS,
    AuthConfig,
    default_region,
    load_app_config,
    load_auth_config,
    save_auth_config,
    validate_profile_name,
    validate_sso_start_url,
)


class AppConfigTests(unittest.TestCase):
    def test_missing_file_uses_defaults_and_environment_region(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config = load_app_config(Path(tmp), environ={"AWS_DEFAULT_REGION": "eu-west-2"})

        self.assertEqual(config.region, "eu-west-2")
        self.assertEqual(config.regions, DEFAULT_REGIONS)
        self.assertEqual(config.page_size, 20)
        self.assertEqual(config.auto_refresh_seconds, 30.0)

    def test_file_values_override_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "config.json").write_text(
                json.dumps({"region": "ap-south-1", "regions": ["ap-south-1", " ", 4], "page_size": 40}),
                encoding="utf-8",
            )
            config = load_app_config(root, environ={})

        self.assertEqual(config.region, "ap-south-1")
        self.assertEqual(config.regions, ("ap-south-1",))
        self.assertEqual(config.page_size, 40)

    def test_invalid_values_fall_back(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "config.json").write_text(
                json.dumps({"page_size": True, "auto_refresh_seconds": -3, "regions": []}),
                encoding="utf-8",
            )
            config = load_app_config(root, environ={})

        self.assertEqual(config.page_size, 20)
        self.assertEqual(config.auto_refresh_seconds, 30.0)
        self.assertEqual(config.regions, DEFAULT_REGIONS)

    def test_malformed_json_is_ignored(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "config.json").write_text("{nope", encoding="utf-8")
            config = load_app_config(root, environ={})

        self.assertEqual(config.region, "us-east-1")

    def test_aws_region_wins_over_default_region(self) -> None:
        self.assertEqual(default_region({"AWS_REGION": "sa-east-1", "AWS_DEFAULT_REGION": "x"}), "sa-east-1")
        self.assertEqual(default_region({}), "us-east-1")


class AuthConfigTests(unittest.TestCase):
    def test_save_and_load_round_trip_with_private_mode(self) -> None:
        auth = AuthConfig(method=AUTH_SSO, sso_start_url="https://x.awsapps.com/start", sso_region="eu-west-1")
        with tempfile.TemporaryDirectory() as tmp:
            path = save_auth_config(Path(tmp) / "nested", auth)
            mode = stat.S_IMODE(path.stat().st_mode)
            loaded = load_auth_config(Path(tmp) / "nested")

        self.assertEqual(loaded, auth)
        self.assertEqual(mode, 0o600)

    def test_unknown_method_means_setup_is_needed(self) -> None:
        self.assertIsNone(AuthConfig.from_dict({"method": "saml"}))
        with tempfile.TemporaryDirectory() as tmp:
            self.assertIsNone(load_auth_config(Path(tmp)))

    def test_blank_fields_get_defaults(self) -> None:
        auth = AuthConfig.from_dict({"method": AUTH_PROFILE, "profile_name": "  dev ", "sso_region": " "})
        self.assertEqual(auth, AuthConfig(method=AUTH_PROFILE, profile_name="dev"))


class ValidationTests(unittest.TestCase):
    def test_sso_start_url(self) -> None:
        self.assertEqual(validate_sso_start_url(""), "SSO start URL cannot be empty")
        self.assertEqual(validate_sso_start_url("http://x.awsapps.com"), "SSO start URL must start with https://")
        self.assertEqual(validate_sso_start_url("https://a"), "SSO start URL is too short")
        self.assertIsNone(validate_sso_start_url("https://x.awsapps.com/start"))

    def test_profile_name(self) -> None:
        self.assertEqual(validate_profile_name(" "), "Profile name cannot be empty")
        self.assertEqual(validate_profile_name("a:b"), "Profile name contains invalid characters")
        self.assertIsNone(validate_profile_name("prod-admin"))


if __name__ == "__main__":
    unittest.main()
