"""Tests for the persisted key rotation row and key selections."""

import json

import pytest

from generation_rate_limiter.types.keys import KeyRotationState, KeySelection


class TestKeySelection:
    def test_repr_masks_key(self):
        selection = KeySelection(key="AIzaSyVerySecretValue1234", index=2)
        text = repr(selection)
        assert "VerySecret" not in text
        assert "1234" in text
        assert "index=2" in text


class TestKeyRotationState:
    def test_fresh_state(self):
        state = KeyRotationState()
        assert state.current_key_index == 0
        assert state.failed_keys == ()
        assert state.failed_at == {}
        assert state.version == 0

    def test_with_failure_is_a_copy(self):
        state = KeyRotationState()
        failed = state.with_failure(1, 1_000)
        assert failed.is_failed(1)
        assert failed.failed_at == {1: 1_000}
        assert not state.is_failed(1)

    def test_failure_order_preserved(self):
        state = KeyRotationState().with_failure(2, 10).with_failure(0, 20)
        assert state.failed_keys == (2, 0)

    def test_without_failures(self):
        state = KeyRotationState().with_failure(0, 10).with_failure(1, 20)
        cleaned = state.without_failures({0})
        assert cleaned.failed_keys == (1,)
        assert cleaned.failed_at == {1: 20}

    def test_to_record_format(self):
        state = KeyRotationState(
            current_key_index=1,
            failed_keys=(0,),
            failed_at={0: 1_700_000_000_000},
            version=4,
        )
        record = state.to_record()
        assert record["currentKeyIndex"] == 1
        assert json.loads(record["failedKeys"]) == [0]
        assert json.loads(record["failedAt"]) == {"0": 1_700_000_000_000}
        assert record["version"] == 4

    def test_from_redis_strings(self):
        record = {
            "currentKeyIndex": "2",
            "failedKeys": "[0, 1]",
            "failedAt": '{"0": 5, "1": 6}',
            "version": "7",
        }
        state = KeyRotationState.from_record(record)
        assert state == KeyRotationState(
            current_key_index=2, failed_keys=(0, 1), failed_at={0: 5, 1: 6}, version=7
        )

    def test_from_native_values(self):
        state = KeyRotationState.from_record(
            {"currentKeyIndex": 1, "failedKeys": [0], "failedAt": {"0": 9}}
        )
        assert state.failed_at == {0: 9}
        assert state.version == 0

    @pytest.mark.parametrize(
        "record",
        [
            {"currentKeyIndex": "abc"},
            {"failedKeys": "not json"},
            {"failedAt": "[1, 2]"},
        ],
    )
    def test_malformed_record(self, record):
        with pytest.raises(ValueError):
            KeyRotationState.from_record(record)
