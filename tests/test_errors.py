"""Tests for the error hierarchy and its retry classification."""

import pytest

from stagehand.errors import (
    PermanentError,
    PreconditionError,
    RegistryProbeError,
    ResolveError,
    SerializationError,
    StagehandError,
    StoreError,
    TransientError,
    is_permanent,
)


class TestClassification:
    """Which errors retry on the fixed backoff and which back off exponentially."""

    @pytest.mark.parametrize("error_cls", [StoreError, ResolveError, RegistryProbeError])
    def test_transient(self, error_cls):
        error = error_cls("boom")
        assert isinstance(error, TransientError)
        assert isinstance(error, StagehandError)
        assert not is_permanent(error)

    @pytest.mark.parametrize("error_cls", [SerializationError, PreconditionError])
    def test_permanent(self, error_cls):
        error = error_cls("boom")
        assert isinstance(error, PermanentError)
        assert is_permanent(error)

    def test_foreign_errors_are_not_permanent(self):
        assert not is_permanent(ValueError("x"))


class TestStoreError:
    """Tests for StoreError context."""

    def test_carries_context(self):
        error = StoreError("conflict", kind="Playbook", name="demo", status=409)
        assert error.kind == "Playbook"
        assert error.name == "demo"
        assert error.status == 409
        assert str(error) == "conflict"

    def test_context_optional(self):
        error = StoreError("down")
        assert error.status is None
