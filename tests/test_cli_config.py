"""Tests for layered configuration and argument parsing."""

import argparse

import pytest

from args import parse_args
from cli_config import InstallConfig, build_config, env_overrides, load_config_file
from common.errors import ConfigError
from constants import Constants


class TestDefaults:
    """Derived paths and validation."""

    def test_paths_derive_from_project_dir(self, tmp_path):
        config = InstallConfig(project_dir=str(tmp_path))
        assert config.manifest == tmp_path / "package.json"
        assert config.lockfile == tmp_path / Constants.LOCK_FILE
        assert config.root == tmp_path / "node_modules"

    def test_lockfile_follows_manifest(self, tmp_path):
        config = InstallConfig(manifest_path=str(tmp_path / "sub" / "package.json"))
        assert config.lockfile == tmp_path / "sub" / Constants.LOCK_FILE

    @pytest.mark.parametrize("overrides", [
        {"jobs": 0},
        {"timeout": 0.0},
        {"retries": 0},
        {"registry_url": "ftp://example"},
    ])
    def test_validate_rejects(self, overrides):
        with pytest.raises(ConfigError):
            InstallConfig(**overrides).validate()


class TestLayering:
    """File < environment < command line."""

    def test_yaml_file_env_and_cli(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        cfg = tmp_path / "custom.yml"
        cfg.write_text(
            "install:\n"
            "  registry: https://file.test/\n"
            "  jobs: 2\n"
            "  timeout: 5\n"
            "  omit-dev: true\n",
            encoding="utf-8",
        )
        args = parse_args(["install", "-c", str(cfg), "--timeout", "7.5"])

        config = build_config(args, environ={"DEPNEST_JOBS": "6"})

        assert config.registry_url == "https://file.test/"
        assert config.jobs == 6
        assert config.timeout == 7.5
        assert config.omit_dev is True
        assert config.frozen_lockfile is False

    def test_json_file(self, tmp_path):
        cfg = tmp_path / "depnest.json"
        cfg.write_text('{"jobs": 3, "frozen_lockfile": "yes"}', encoding="utf-8")
        data = load_config_file(str(cfg))
        assert data == {"jobs": 3, "frozen_lockfile": "yes"}
        config = build_config(argparse.Namespace(CONFIG=str(cfg)), environ={})
        assert config.jobs == 3
        assert config.frozen_lockfile is True

    def test_default_config_file_is_discovered(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "depnest.yml").write_text("jobs: 5\n", encoding="utf-8")
        assert build_config(None, environ={}).jobs == 5

    def test_no_config_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert build_config(None, environ={}) == InstallConfig()

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config_file(str(tmp_path / "absent.yml"))

    def test_bad_values(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(ConfigError):
            build_config(None, environ={"DEPNEST_JOBS": "many"})
        with pytest.raises(ConfigError):
            build_config(None, environ={"DEPNEST_OMIT_DEV": "perhaps"})

    def test_non_mapping_file(self, tmp_path):
        cfg = tmp_path / "list.yml"
        cfg.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config_file(str(cfg))

    def test_env_overrides_only_known_fields(self):
        env = {"DEPNEST_REGISTRY_URL": "https://env.test/", "DEPNEST_UNKNOWN": "x", "PATH": "/bin"}
        assert env_overrides(env) == {"registry_url": "https://env.test/"}


class TestArgs:
    """Argument parser surface."""

    def test_install_flags(self):
        args = parse_args([
            "install", "-C", "proj", "--root", "out", "--registry", "https://r.test/",
            "-j", "3", "--omit-dev", "--frozen-lockfile", "-o", "report.json", "-q",
        ])
        assert args.COMMAND == "install"
        assert args.PROJECT_DIR == "proj"
        assert args.INSTALL_ROOT == "out"
        assert args.JOBS == 3
        assert args.OMIT_DEV and args.FROZEN_LOCKFILE and args.QUIET
        assert args.REPORT == "report.json"
        assert args.LOG_LEVEL is None

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            parse_args([])
