"""Tests for utility functions."""

from kubernetes.client import ApiException

from utils import (
    b64decode_bytes,
    b64encode_str,
    is_conflict,
    is_not_found,
    kubeconfig_secret_name,
)


class TestIsNotFound:
    """Tests for is_not_found function."""

    def test_404(self):
        assert is_not_found(ApiException(status=404)) is True

    def test_other_status(self):
        assert is_not_found(ApiException(status=409)) is False

    def test_other_exception(self):
        assert is_not_found(ValueError("404")) is False


class TestIsConflict:
    """Tests for is_conflict function."""

    def test_409(self):
        assert is_conflict(ApiException(status=409)) is True

    def test_other_status(self):
        assert is_conflict(ApiException(status=500)) is False


class TestBase64:
    """Tests for base64 helpers."""

    def test_encode_str(self):
        assert b64encode_str("foo") == "Zm9v"

    def test_encode_bytes(self):
        assert b64encode_str(b"\x00\xff") == "AP8="

    def test_decode(self):
        assert b64decode_bytes("Zm9v") == b"foo"

    def test_decode_missing(self):
        assert b64decode_bytes(None) == b""
        assert b64decode_bytes("") == b""


class TestKubeconfigSecretName:
    """Tests for kubeconfig_secret_name function."""

    def test_appends_suffix(self):
        assert kubeconfig_secret_name("foo") == "foo-admin-kubeconfig"
