"""
Voice settings written alongside each text so the Text-to-Speech extension
knows how to synthesize it.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import yaml

DEFAULT_AUDIO_ENCODING = "MP3"
REQUIRED_VOICE_KEYS = ("language_code", "voice_name", "ssml_gender")


@dataclass(frozen=True)
class VoiceType:
    language_code: str
    voice_name: str
    ssml_gender: str
    audio_encoding: str = DEFAULT_AUDIO_ENCODING

    def payload(self, text: str) -> Dict[str, str]:
        """Document fields for one text to synthesize."""
        return {
            "text": text,
            "languageCode": self.language_code,
            "ssmlGender": self.ssml_gender,
            "audioEncoding": self.audio_encoding,
            "voiceName": self.voice_name,
        }


# Filipino (Philippines)  Neural2  fil-PH  fil-ph-Neural2-A  FEMALE
# English (US)            WaveNet  en-US   en-US-Wavenet-H   FEMALE
VOICE_PRESETS = {
    "filipino": VoiceType("fil-PH", "fil-ph-Neural2-A", "FEMALE"),
    "english": VoiceType("en-US", "en-US-Wavenet-H", "FEMALE"),
}


def load_voice(name: str, config_path: Optional[Path] = None) -> VoiceType:
    """Return a preset voice, or the voice described in a YAML file.

    :param name: Preset name, ignored when config_path is given
    :param config_path: Optional YAML file with language_code, voice_name,
        ssml_gender and optionally audio_encoding
    :return: VoiceType
    :raises ValueError: On an unknown preset or an incomplete voice file
    """
    if config_path is None:
        try:
            return VOICE_PRESETS[name]
        except KeyError:
            raise ValueError(f"Unknown voice preset: {name}. Choose from {', '.join(VOICE_PRESETS)}")

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Voice config {config_path} must be a mapping")
    missing = [key for key in REQUIRED_VOICE_KEYS if not data.get(key)]
    if missing:
        raise ValueError(f"Voice config {config_path} is missing: {', '.join(missing)}")
    return VoiceType(
        language_code=str(data["language_code"]),
        voice_name=str(data["voice_name"]),
        ssml_gender=str(data["ssml_gender"]),
        audio_encoding=str(data.get("audio_encoding") or DEFAULT_AUDIO_ENCODING),
    )
