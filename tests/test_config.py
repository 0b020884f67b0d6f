"""Tests for environment configuration and formatting helpers."""

from pathlib import Path

from txscan.models import DEFAULT_CACHE_TTL, DEFAULT_MAX_LINES, ScannerConfig, build_health
from txscan.utils import (
    format_ago,
    get_float_env,
    get_int_env,
    get_legacy_state_dir,
    get_state_dir,
    get_txscan_state_base,
    human_readable_size,
)


class TestStateDirConfig:
    """Test that state directory env vars are respected."""

    def test_state_base_default(self, monkeypatch):
        monkeypatch.delenv('XDG_STATE_HOME', raising=False)
        assert get_txscan_state_base() == Path.home() / '.local' / 'state' / 'txscan'

    def test_state_base_xdg(self, monkeypatch, tmp_path):
        monkeypatch.setenv('XDG_STATE_HOME', str(tmp_path))
        assert get_txscan_state_base() == tmp_path / 'txscan'

    def test_state_dir_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv('TXSCAN_STATE_DIR', str(tmp_path / 'custom'))
        assert get_state_dir() == tmp_path / 'custom'

    def test_state_dir_default(self, monkeypatch, tmp_path):
        monkeypatch.delenv('TXSCAN_STATE_DIR')
        monkeypatch.setenv('XDG_STATE_HOME', str(tmp_path))
        assert get_state_dir() == tmp_path / 'txscan' / 'scanners'

    def test_legacy_dir_next_to_state_dir(self, monkeypatch, tmp_path):
        monkeypatch.delenv('TXSCAN_LEGACY_DIR')
        monkeypatch.setenv('TXSCAN_STATE_DIR', str(tmp_path / 'scanners'))
        assert get_legacy_state_dir() == tmp_path / 'cooldowns'


class TestEnvHelpers:
    def test_int_env(self, monkeypatch):
        monkeypatch.setenv('TXSCAN_TEST_INT', '42')
        assert get_int_env('TXSCAN_TEST_INT') == 42
        monkeypatch.setenv('TXSCAN_TEST_INT', 'lots')
        assert get_int_env('TXSCAN_TEST_INT', 7) == 7

    def test_float_env(self, monkeypatch):
        monkeypatch.setenv('TXSCAN_TEST_FLOAT', '2.5')
        assert get_float_env('TXSCAN_TEST_FLOAT', 1.0) == 2.5
        assert get_float_env('TXSCAN_TEST_MISSING', 1.0) == 1.0


class TestScannerConfig:
    def test_defaults(self, monkeypatch):
        for key in ('TXSCAN_CACHE_TTL', 'TXSCAN_MAX_READ_MB', 'TXSCAN_MAX_LINES'):
            monkeypatch.delenv(key, raising=False)
        config = ScannerConfig.from_env()
        assert config.cache_ttl == DEFAULT_CACHE_TTL
        assert config.max_lines == DEFAULT_MAX_LINES
        assert config.max_read_bytes == 100 * 1024 * 1024

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv('TXSCAN_CACHE_TTL', '2.5')
        monkeypatch.setenv('TXSCAN_MAX_READ_MB', '1')
        monkeypatch.setenv('TXSCAN_MAX_LINES', '500')
        config = ScannerConfig.from_env()
        assert config.cache_ttl == 2.5
        assert config.max_read_bytes == 1024 * 1024
        assert config.max_lines == 500

    def test_non_positive_values_fall_back(self, monkeypatch):
        monkeypatch.setenv('TXSCAN_CACHE_TTL', '0')
        monkeypatch.setenv('TXSCAN_MAX_LINES', '-3')
        config = ScannerConfig.from_env()
        assert config.cache_ttl == DEFAULT_CACHE_TTL
        assert config.max_lines == DEFAULT_MAX_LINES


class TestFormatting:
    def test_format_ago(self):
        assert format_ago(0) == 'unknown'
        assert format_ago(1000.0, now=1030.0) == '<1m'
        assert format_ago(1000.0, now=1000.0 + 5 * 60) == '5m'
        assert format_ago(1000.0, now=1000.0 + 3 * 3600) == '3h'
        assert format_ago(1000.0, now=1000.0 + 2 * 86400) == '2d'
        assert format_ago(2000.0, now=1000.0) == '<1m'

    def test_human_readable_size(self):
        assert human_readable_size(512) == '512.00 B'
        assert human_readable_size(2048) == '2.00 KB'

    def test_build_health(self):
        health = build_health(True, 10, 1_700_000_000_000_000_000, 4)
        assert health.last_modified == 1_700_000_000.0
        assert health.message_count == 4
        assert health.last_modified_ago.endswith('d')

    def test_build_health_without_mtime(self):
        assert build_health(False, 0, 0, 0).last_modified_ago == 'unknown'
