from pathlib import Path

from biodock.config import Settings


def test_defaults():
    settings = Settings()
    assert settings.runtime == "docker"
    assert settings.image_tag("fastqc-only") == "biodock/fastqc-only"
    assert settings.build_context("fastqc-only") == Path("pipelines") / "fastqc-only"


def test_from_env():
    settings = Settings.from_env({
        "BIODOCK_RUNTIME": "podman",
        "BIODOCK_NAMESPACE": "lab",
        "BIODOCK_LOG_LEVEL": "",
    })
    assert settings.runtime == "podman"
    assert settings.image_tag("x") == "lab/x"
    assert settings.log_level == "WARNING"


def test_overrides_win_over_environment():
    settings = Settings.from_env({"BIODOCK_RUNTIME": "podman"}, runtime="docker", namespace=None)
    assert settings.runtime == "docker"
    assert settings.namespace == "biodock"


def test_dict_round_trip_ignores_unknown_keys():
    data = Settings(runtime="podman").to_dict()
    data["colour"] = "blue"
    assert Settings.from_dict(data) == Settings(runtime="podman")
