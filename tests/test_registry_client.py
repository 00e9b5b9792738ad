"""Tests for image reference parsing and the registry existence probe."""

from unittest.mock import MagicMock

import pytest
import requests

from stagehand.errors import RegistryProbeError
from stagehand.registry import RegistryClient, normalize_host, parse_challenge, parse_image_reference
from stagehand.schemas import Credential, CredentialKind


def _response(status, headers=None, payload=None):
    response = MagicMock()
    response.status_code = status
    response.headers = headers or {}
    response.json.return_value = payload or {}
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(session):
    return RegistryClient(timeout=5.0, insecure_registries=("localhost:5000",), session=session)


class TestParseImageReference:
    """Docker naming conventions."""

    @pytest.mark.parametrize("reference,expected", [
        ("nginx", ("docker.io", "library/nginx", "latest")),
        ("nginx:1.25", ("docker.io", "library/nginx", "1.25")),
        ("bitnami/redis:7", ("docker.io", "bitnami/redis", "7")),
        ("registry.test/library/web:abc", ("registry.test", "library/web", "abc")),
        ("localhost:5000/web", ("localhost:5000", "web", "latest")),
        ("registry.test/web@sha256:deadbeef", ("registry.test", "web", "sha256:deadbeef")),
    ])
    def test_parse(self, reference, expected):
        assert parse_image_reference(reference) == expected

    def test_empty(self):
        with pytest.raises(ValueError):
            parse_image_reference("  ")


def test_normalize_host():
    assert normalize_host("https://index.docker.io/v1/") == "docker.io"
    assert normalize_host("registry.test") == "registry.test"


def test_parse_challenge():
    scheme, params = parse_challenge('Bearer realm="https://auth.test/token",service="registry.test"')
    assert scheme == "bearer"
    assert params == {"realm": "https://auth.test/token", "service": "registry.test"}


class TestRegistryClient:
    """HEAD manifest probes."""

    def test_exists(self, client, session):
        session.head.return_value = _response(200)
        assert client.exists("registry.test/library/web:abc") is True

        url = session.head.call_args[0][0]
        assert url == "https://registry.test/v2/library/web/manifests/abc"

    def test_missing(self, client, session):
        session.head.return_value = _response(404)
        assert client.exists("registry.test/library/web:abc") is False

    def test_insecure_registry_uses_http(self, client, session):
        session.head.return_value = _response(200)
        client.exists("localhost:5000/web:1")
        assert session.head.call_args[0][0].startswith("http://localhost:5000/")

    def test_docker_hub_api_host(self, client, session):
        session.head.return_value = _response(200)
        client.exists("nginx")
        assert session.head.call_args[0][0] == "https://registry-1.docker.io/v2/library/nginx/manifests/latest"

    def test_bearer_challenge(self, client, session):
        challenge = 'Bearer realm="https://auth.test/token",service="registry.test",scope="repository:web:pull"'
        session.head.side_effect = [_response(401, {"WWW-Authenticate": challenge}), _response(200)]
        session.get.return_value = _response(200, payload={"token": "t0k3n"})
        credential = Credential.basic(CredentialKind.IMAGE, "registry.test", "robot", "pw")

        assert client.exists("registry.test/web:1", credential) is True

        _, kwargs = session.get.call_args
        assert kwargs["auth"] == ("robot", "pw")
        assert kwargs["params"] == {"service": "registry.test", "scope": "repository:web:pull"}
        assert session.head.call_args[1]["headers"]["Authorization"] == "Bearer t0k3n"

    def test_basic_challenge(self, client, session):
        session.head.side_effect = [_response(401, {"WWW-Authenticate": 'Basic realm="r"'}), _response(404)]
        credential = Credential.basic(CredentialKind.IMAGE, "registry.test", "robot", "pw")

        assert client.exists("registry.test/web:1", credential) is False
        assert session.head.call_args[1]["headers"]["Authorization"].startswith("Basic ")

    def test_unauthorized_without_credential_is_an_error(self, client, session):
        session.head.return_value = _response(401, {"WWW-Authenticate": 'Basic realm="r"'})
        with pytest.raises(RegistryProbeError):
            client.exists("registry.test/web:1")

    def test_token_endpoint_failure(self, client, session):
        session.head.return_value = _response(401, {"WWW-Authenticate": 'Bearer realm="https://auth.test/token"'})
        session.get.return_value = _response(503)
        with pytest.raises(RegistryProbeError):
            client.exists("registry.test/web:1")

    def test_server_error_is_not_absence(self, client, session):
        session.head.return_value = _response(500)
        with pytest.raises(RegistryProbeError):
            client.exists("registry.test/web:1")

    def test_connection_error(self, client, session):
        session.head.side_effect = requests.ConnectionError("refused")
        with pytest.raises(RegistryProbeError, match="unreachable"):
            client.exists("registry.test/web:1")
