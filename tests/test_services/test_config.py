"""Tests for settings and target resolution."""

from __future__ import annotations

import string

import pytest
from hypothesis import given
from hypothesis import strategies as st

from filedesk.config import Settings, TargetConfig


def _settings(**kwargs: object) -> Settings:
    return Settings(_env_file=None, **kwargs)  # type: ignore[call-arg]


class TestResolveTargets:
    def test_two_file_form(self) -> None:
        settings = _settings(
            github_repo="acme/site",
            github_file_path="data/a.json",
            github_token="t1",
            github_repo2="acme/other",
            github_file_path2="b.txt",
            github_name2="Other",
        )

        targets = settings.resolve_targets()

        assert list(targets) == ["primary", "secondary"]
        assert targets["primary"].display_name == "Primary file"
        assert targets["primary"].token == "t1"
        assert targets["secondary"].repo == "acme/other"
        assert targets["secondary"].display_name == "Other"

    def test_unset_second_file_is_skipped(self) -> None:
        settings = _settings(github_repo="acme/site", github_file_path="a.json")
        assert list(settings.resolve_targets()) == ["primary"]

    def test_no_targets(self) -> None:
        assert _settings().resolve_targets() == {}

    def test_mapping_form_replaces_two_file_form(self) -> None:
        settings = _settings(
            github_repo="acme/site",
            github_file_path="a.json",
            targets={
                "promo": TargetConfig(repo="acme/site", path="promo.json", branch="main"),
                "menu": {"repo": "acme/site", "path": "menu.json", "name": "Menu"},
            },
        )

        targets = settings.resolve_targets()

        assert list(targets) == ["promo", "menu"]
        assert targets["promo"].display_name == "promo"
        assert targets["promo"].branch == "main"
        assert targets["menu"].display_name == "Menu"

    def test_invalid_key_is_rejected(self) -> None:
        settings = _settings(targets={"Bad Key": {"repo": "a/b", "path": "c"}})
        with pytest.raises(ValueError, match="Invalid target key"):
            settings.resolve_targets()

    def test_token_not_in_repr(self) -> None:
        settings = _settings(github_repo="a/b", github_file_path="c", github_token="secret-tok")
        assert "secret-tok" not in repr(settings.resolve_targets()["primary"])

    @given(
        keys=st.lists(
            st.text(alphabet=string.ascii_lowercase + string.digits, min_size=1, max_size=8),
            min_size=1,
            max_size=5,
            unique=True,
        )
    )
    def test_valid_keys_resolve_one_to_one(self, keys: list[str]) -> None:
        settings = _settings(targets={k: {"repo": "a/b", "path": f"{k}.txt"} for k in keys})
        targets = settings.resolve_targets()
        assert list(targets) == keys
        assert all(targets[k].key == k for k in keys)


class TestEnvironment:
    def test_deploy_alias(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DEPLOY", "https://hooks.example.com/deploy")
        assert _settings().deploy_hook_url == "https://hooks.example.com/deploy"

    def test_targets_from_json_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TARGETS", '{"promo": {"repo": "acme/site", "path": "p.json"}}')
        assert list(_settings().resolve_targets()) == ["promo"]


class TestRuntimeSecurity:
    def test_debug_skips_checks(self) -> None:
        _settings(debug=True).validate_runtime_security()

    def test_defaults_rejected_in_production(self) -> None:
        with pytest.raises(ValueError, match="SECRET_KEY") as excinfo:
            _settings().validate_runtime_security()
        assert "ADMIN_PASSWORD" in str(excinfo.value)
        assert "TRUSTED_HOSTS" in str(excinfo.value)

    def test_hardened_production_config(self) -> None:
        _settings(
            secret_key="x" * 40,
            admin_password="a-strong-admin-password",
            trusted_hosts=["files.example.com"],
        ).validate_runtime_security()
