import pytest

from errors import InvalidLocator
from voices import VOICE_PRESETS, load_voice
from work_items import parse_gs_uri


def test_load_preset_voice():
    assert load_voice("english") is VOICE_PRESETS["english"]


def test_unknown_preset_raises():
    with pytest.raises(ValueError):
        load_voice("klingon")


def test_load_voice_from_yaml(tmp_path):
    config = tmp_path / "voice.yml"
    config.write_text(
        "language_code: en-GB\nvoice_name: en-GB-Neural2-A\nssml_gender: FEMALE\naudio_encoding: OGG_OPUS\n"
    )

    voice = load_voice("filipino", config)

    assert voice.language_code == "en-GB"
    assert voice.payload("hi")["audioEncoding"] == "OGG_OPUS"


def test_incomplete_voice_yaml_raises(tmp_path):
    config = tmp_path / "voice.yml"
    config.write_text("language_code: en-GB\n")
    with pytest.raises(ValueError, match="voice_name"):
        load_voice("filipino", config)


def test_parse_gs_uri():
    locator = parse_gs_uri("gs://demo-bucket/tts/hello%20world.mp3")
    assert locator.bucket == "demo-bucket"
    assert locator.name == "tts/hello world.mp3"
    assert locator.uri == "gs://demo-bucket/tts/hello world.mp3"


@pytest.mark.parametrize(
    "value",
    ["https://example.com/a.mp3", "gs://demo-bucket", "gs://demo-bucket/", "gs:///a.mp3", "", 42],
)
def test_parse_gs_uri_rejects_malformed_references(value):
    with pytest.raises(InvalidLocator):
        parse_gs_uri(value)
