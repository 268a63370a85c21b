"""
Property-based tests for configuration loading.

Covers the JSON config file round-trip, ENV_SYNC_* environment variables,
.env files, and rejection of invalid values.
"""

import json
import os
import tempfile
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from env_sync.cli import load_config_from_file, save_config_to_file
from env_sync.config import (
    ENV_PREFIX,
    BackendConfig,
    LoggingConfig,
    SyncConfig,
    SystemConfig,
    load_config_from_env,
)
from env_sync.enums import BackendKind, LogLevel
from env_sync.exceptions import ConfigError


@st.composite
def sync_config_strategy(draw) -> SyncConfig:
    max_items = draw(st.integers(min_value=1, max_value=1024))
    return SyncConfig(
        quota_bytes_per_item=draw(st.integers(min_value=32, max_value=65_536)),
        max_buckets=draw(st.integers(min_value=1, max_value=max_items)),
        bucket_key_prefix=draw(st.sampled_from(["bucket-", "b", "env-sync/"])),
        quota_bytes=draw(st.integers(min_value=32, max_value=1_048_576)),
        max_items=max_items,
    )


@st.composite
def system_config_strategy(draw) -> SystemConfig:
    return SystemConfig(
        sync=draw(sync_config_strategy()),
        backend=BackendConfig(
            kind=draw(st.sampled_from(list(BackendKind))),
            file_path=Path("/tmp") / draw(st.sampled_from(["store.json", "sync/store.json"])),
            url=draw(st.one_of(st.none(), st.just("https://sync.example.net/v1"))),
            token=draw(st.one_of(st.none(), st.text(alphabet="abcdef0123456789", min_size=8, max_size=32))),
            timeout_seconds=draw(st.floats(min_value=0.5, max_value=120.0)),
            allow_insecure=draw(st.booleans()),
        ),
        logging=LoggingConfig(
            level=draw(st.sampled_from([lv.value for lv in LogLevel])),
            output_format=draw(st.sampled_from(["json", "text", "both"])),
        ),
    )


class TestConfigFileRoundTripProperty:
    """Property-based tests for config file persistence."""

    @given(config=system_config_strategy())
    @settings(max_examples=100)
    def test_config_round_trip_preserves_data(self, config: SystemConfig) -> None:
        """
        Property: Config files round-trip.

        *For any* valid SystemConfig, saving it to a file and loading it
        back SHALL produce an equal config.
        """
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nested" / "config.json"

            assert save_config_to_file(config, path)
            assert load_config_from_file(path) == config

    def test_missing_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            assert load_config_from_file(Path(tmpdir) / "absent.json") is None

    def test_partial_file_uses_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.json"
            path.write_text(json.dumps({"sync": {"max_buckets": 4}}), encoding="utf-8")

            config = load_config_from_file(path)

        assert config.sync == SyncConfig(max_buckets=4)
        assert config.backend.kind is BackendKind.FILE
        assert config.logging == LoggingConfig()

    @pytest.mark.parametrize(
        "content, code",
        [
            ("{not json", "parse_error"),
            (json.dumps({"sync": {"max_buckets": "many"}}), "invalid_config"),
            (json.dumps({"sync": []}), "invalid_config"),
            (json.dumps({"sync": {"quota_bytes_per_item": 8}}), "invalid_quota"),
            (json.dumps({"backend": {"kind": "ftp"}}), "invalid_backend_kind"),
            (json.dumps({"logging": {"level": "loud"}}), "invalid_log_level"),
        ],
    )
    def test_invalid_file(self, content: str, code: str) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.json"
            path.write_text(content, encoding="utf-8")

            with pytest.raises(ConfigError) as excinfo:
                load_config_from_file(path)

        assert excinfo.value.code == code


class TestSyncConfigValidation:
    @given(config=sync_config_strategy())
    @settings(max_examples=100)
    def test_valid_limits_pass(self, config: SyncConfig) -> None:
        config.validate()
        assert len(config.bucket_keys()) == config.max_buckets
        assert len(set(config.bucket_keys())) == config.max_buckets

    def test_default_bucket_keys(self) -> None:
        assert SyncConfig().bucket_keys() == [f"bucket-{i}" for i in range(13)]

    @pytest.mark.parametrize(
        "config, code",
        [
            (SyncConfig(quota_bytes_per_item=31), "invalid_quota"),
            (SyncConfig(max_buckets=0), "invalid_max_buckets"),
            (SyncConfig(max_buckets=10, max_items=5), "invalid_max_buckets"),
            (SyncConfig(bucket_key_prefix=""), "invalid_bucket_key_prefix"),
        ],
    )
    def test_invalid_limits(self, config: SyncConfig, code: str) -> None:
        with pytest.raises(ConfigError) as excinfo:
            config.validate()
        assert excinfo.value.code == code


class TestEnvironmentLoading:
    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        """Start without ENV_SYNC_* variables and drop any a .env file added."""
        for name in list(os.environ):
            if name.startswith(ENV_PREFIX):
                monkeypatch.delenv(name)
        yield
        for name in list(os.environ):
            if name.startswith(ENV_PREFIX):
                del os.environ[name]

    def test_defaults_without_variables(self, tmp_path: Path) -> None:
        config = load_config_from_env(tmp_path / "missing.env")

        assert config.sync == SyncConfig()
        assert config.backend.kind is BackendKind.FILE
        assert config.backend.url is None
        assert config.logging.log_level() is LogLevel.INFO

    def test_variables_override_defaults(self, monkeypatch, tmp_path: Path) -> None:
        monkeypatch.setenv("ENV_SYNC_MAX_BUCKETS", "4")
        monkeypatch.setenv("ENV_SYNC_BUCKET_KEY_PREFIX", "b")
        monkeypatch.setenv("ENV_SYNC_BACKEND", "HTTP")
        monkeypatch.setenv("ENV_SYNC_URL", "https://sync.example.net/v1")
        monkeypatch.setenv("ENV_SYNC_TOKEN", "s3cret")
        monkeypatch.setenv("ENV_SYNC_TIMEOUT", "2.5")
        monkeypatch.setenv("ENV_SYNC_ALLOW_INSECURE", "yes")
        monkeypatch.setenv("ENV_SYNC_LOG_LEVEL", "debug")

        config = load_config_from_env(tmp_path / "missing.env")

        assert config.sync.max_buckets == 4
        assert config.sync.bucket_key(0) == "b0"
        assert config.backend.kind is BackendKind.HTTP
        assert config.backend.url == "https://sync.example.net/v1"
        assert config.backend.token == "s3cret"
        assert config.backend.timeout_seconds == 2.5
        assert config.backend.allow_insecure is True
        assert config.logging.log_level() is LogLevel.DEBUG

    def test_dotenv_file(self, tmp_path: Path) -> None:
        env_file = tmp_path / ".env"
        env_file.write_text(
            "ENV_SYNC_BACKEND=memory\nENV_SYNC_QUOTA_BYTES_PER_ITEM=4096\n",
            encoding="utf-8",
        )

        config = load_config_from_env(env_file)

        assert config.backend.kind is BackendKind.MEMORY
        assert config.sync.quota_bytes_per_item == 4096

    def test_process_environment_beats_dotenv(self, monkeypatch, tmp_path: Path) -> None:
        env_file = tmp_path / ".env"
        env_file.write_text("ENV_SYNC_MAX_BUCKETS=3\n", encoding="utf-8")
        monkeypatch.setenv("ENV_SYNC_MAX_BUCKETS", "7")

        assert load_config_from_env(env_file).sync.max_buckets == 7

    def test_store_path(self, monkeypatch, tmp_path: Path) -> None:
        monkeypatch.setenv("ENV_SYNC_STORE_PATH", str(tmp_path / "store.json"))

        config = load_config_from_env(tmp_path / "missing.env")

        assert config.backend.file_path == tmp_path / "store.json"

    @pytest.mark.parametrize(
        "name, value, code",
        [
            ("ENV_SYNC_MAX_BUCKETS", "lots", "invalid_env_value"),
            ("ENV_SYNC_TIMEOUT", "soon", "invalid_env_value"),
            ("ENV_SYNC_BACKEND", "carrier-pigeon", "invalid_backend_kind"),
            ("ENV_SYNC_LOG_LEVEL", "verbose", "invalid_log_level"),
            ("ENV_SYNC_QUOTA_BYTES_PER_ITEM", "10", "invalid_quota"),
        ],
    )
    def test_invalid_variable(self, monkeypatch, tmp_path: Path, name: str, value: str, code: str) -> None:
        monkeypatch.setenv(name, value)

        with pytest.raises(ConfigError) as excinfo:
            load_config_from_env(tmp_path / "missing.env")

        assert excinfo.value.code == code
