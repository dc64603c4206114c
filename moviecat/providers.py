"""Video host registry: display names and icons per provider."""

from __future__ import annotations

from enum import Enum
from typing import Any


class Provider(str, Enum):
    DOODSTREAM = "doodstream"
    STREAMTAPE = "streamtape"
    GDRIVE = "gdrive"
    MEGA = "mega"
    FEMBED = "fembed"
    MIXDROP = "mixdrop"
    STREAMSB = "streamsb"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> "Provider":
        if isinstance(value, Provider):
            return value
        text = str(value or "").strip().lower()
        try:
            return cls(text)
        except ValueError:
            return cls.OTHER


def builtin_provider_registry() -> dict[Provider, dict[str, str]]:
    return {
        Provider.DOODSTREAM: {"name": "Doodstream", "icon": "fas fa-play-circle"},
        Provider.STREAMTAPE: {"name": "Streamtape", "icon": "fas fa-video"},
        Provider.GDRIVE: {"name": "Google Drive", "icon": "fab fa-google-drive"},
        Provider.MEGA: {"name": "Mega", "icon": "fas fa-cloud"},
        Provider.FEMBED: {"name": "Fembed", "icon": "fas fa-film"},
        Provider.MIXDROP: {"name": "Mixdrop", "icon": "fas fa-tint"},
        Provider.STREAMSB: {"name": "StreamSB", "icon": "fas fa-stream"},
        Provider.OTHER: {"name": "Server", "icon": "fas fa-server"},
    }


_REGISTRY = builtin_provider_registry()


def display_name(provider: Provider | str) -> str:
    return _REGISTRY[Provider.parse(provider)]["name"]


def icon(provider: Provider | str) -> str:
    return _REGISTRY[Provider.parse(provider)]["icon"]


def provider_choices() -> list[str]:
    return [p.value for p in Provider]
