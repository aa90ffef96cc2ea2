import client

EXPECTED_EXPORTS = (
    "RelayClient",
    "create_client",
    "build_parser",
    "main",
)


def test_import_client() -> None:
    for name in EXPECTED_EXPORTS:
        assert hasattr(client, name)


def test_create_client_from_environment(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("APIRELAY_BASE_URL", "https://api.example.test/api")
    monkeypatch.setenv("APIRELAY_TOKEN_STORE_PATH", str(tmp_path / "token.json"))
    monkeypatch.setenv("APIRELAY_COOKIE_JAR_PATH", str(tmp_path / "cookies.txt"))
    monkeypatch.setenv("APIRELAY_DEBUG", "0")

    relay = client.create_client()

    assert str(relay.api.base_url) == "https://api.example.test/api/"
    assert str(relay.refresh_client.base_url) == "https://api.example.test/api/"
    assert relay.api is not relay.refresh_client
    assert relay.coordinator.store is relay.store
    assert relay.is_authenticated() is False
