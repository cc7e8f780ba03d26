from __future__ import annotations

import pytest

from scene_composer.core.errors import ConfigurationError
from scene_composer.core.settings import ComposerConfig
from scene_composer.image.provider_config import load_key, provider_endpoints


def test_empty_mapping_keeps_defaults() -> None:
    config = ComposerConfig.from_mapping(None)

    assert config.image_api_provider == "chub"
    assert config.image_quality == "standard"
    assert config.max_characters == 3
    assert config.scene_style == "cinematic"
    assert config.enable_refinement is False
    assert config.api_key == ""


def test_host_options_override_defaults() -> None:
    config = ComposerConfig.from_mapping(
        {
            "image_api_provider": "POE-FLUX",
            "image_quality": "high",
            "max_characters": "5",
            "scene_style": "anime",
            "enable_refinement": "true",
            "chub_api_key": "  abc  ",
        }
    )

    assert config.image_api_provider == "poe-flux"
    assert config.image_quality == "high"
    assert config.max_characters == 5
    assert config.scene_style == "anime"
    assert config.enable_refinement is True
    assert config.api_key == "abc"


def test_blank_options_fall_back_to_defaults() -> None:
    config = ComposerConfig.from_mapping(
        {"image_quality": "", "max_characters": 0, "scene_style": None, "enable_refinement": False}
    )

    assert config.image_quality == "standard"
    assert config.max_characters == 3
    assert config.scene_style == "cinematic"
    assert config.enable_refinement is False


@pytest.mark.parametrize(
    "raw",
    [
        {"image_api_provider": "dalle"},
        {"image_quality": "ultra"},
        {"max_characters": "many"},
        {"max_characters": -1},
    ],
)
def test_invalid_options_raise_configuration_error(raw) -> None:
    with pytest.raises(ConfigurationError):
        ComposerConfig.from_mapping(raw)


def test_explicit_key_wins_over_environment(monkeypatch) -> None:
    monkeypatch.setenv("CHUB_API_KEY", "from-env")

    assert ComposerConfig(api_key="explicit").resolve_api_key() == "explicit"
    assert ComposerConfig().resolve_api_key() == "from-env"


def test_provider_key_file_is_read_from_working_directory(tmp_path) -> None:
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "poe_flux.key").write_text("flux-key\n")

    config = ComposerConfig(image_api_provider="poe-flux")

    assert config.resolve_api_key() == "flux-key"
    assert ComposerConfig(image_api_provider="chub").resolve_api_key() is None


def test_load_key_edge_cases(tmp_path) -> None:
    blank = tmp_path / "blank.key"
    blank.write_text("   \n")

    assert load_key(None) is None
    assert load_key(str(tmp_path / "missing.key")) is None
    assert load_key(str(blank)) is None


def test_providers_share_the_job_protocol() -> None:
    chub = provider_endpoints("chub")
    flux = provider_endpoints("poe-flux")

    for field in ("text2img_path", "img2img_path", "check_path", "key_header"):
        assert chub[field] == flux[field]
    assert chub["key_file"] != flux["key_file"]

    with pytest.raises(KeyError):
        provider_endpoints("dalle")
