"""Pytest configuration and shared fixtures for txscan tests.

This module provides auto-use fixtures that ensure test isolation,
particularly for scanner state directories.
"""

import json
import os
import shutil
import tempfile

import pytest

import txscan.scanner


@pytest.fixture(autouse=True)
def isolate_state_directory(monkeypatch):
    """Auto-use fixture that isolates scanner state for each test.

    This fixture:
    1. Creates temporary state and legacy state directories
    2. Points TXSCAN_STATE_DIR and TXSCAN_LEGACY_DIR at them
    3. Drops the process-wide default scanner so no cached results leak
    4. Cleans up the directories after the test completes
    """
    temp_root = tempfile.mkdtemp(prefix='txscan_test_')
    state_dir = os.path.join(temp_root, 'scanners')
    legacy_dir = os.path.join(temp_root, 'cooldowns')

    monkeypatch.setenv('TXSCAN_STATE_DIR', state_dir)
    monkeypatch.setenv('TXSCAN_LEGACY_DIR', legacy_dir)
    monkeypatch.setattr(txscan.scanner, '_default_scanner', None)

    yield state_dir

    shutil.rmtree(temp_root, ignore_errors=True)


@pytest.fixture
def state_dir(isolate_state_directory):
    """Path of the isolated state directory (not created until first save)."""
    return isolate_state_directory


@pytest.fixture
def legacy_dir(isolate_state_directory):
    """Path of the isolated legacy state directory, created."""
    path = os.environ['TXSCAN_LEGACY_DIR']
    os.makedirs(path, exist_ok=True)
    return path


def user_record(text, **extra):
    """Transcript record for a human message."""
    return {'type': 'user', 'message': {'role': 'user', 'content': text}, **extra}


def assistant_record(text, **extra):
    """Transcript record for an assistant reply using content blocks."""
    return {
        'type': 'assistant',
        'message': {'role': 'assistant', 'content': [{'type': 'text', 'text': text}]},
        **extra,
    }


def write_jsonl(path, records, mode='w'):
    """Write records (dicts, or raw strings written verbatim) as JSON lines."""
    with open(path, mode, encoding='utf-8') as f:
        for record in records:
            f.write(record if isinstance(record, str) else json.dumps(record))
            f.write('\n')
