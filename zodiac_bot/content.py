"""Read-only content repository: per-sign car/track/monthly bundles.

The repository is a YAML file loaded once at startup:

    help:
      title: ...
      text: ...
      image: images/help.png
    images:
      Aries: images/aries.png
      ...
    signs:
      Aries:
        car: {title: ..., text: ...}
        track: {title: ..., text: ...}
        monthly: {title: ..., text: ...}

Image references are resolved relative to the YAML file's directory.
"""

import enum
import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from zodiac_bot._errors import ConfigError, ContentNotFound, InvalidSign
from zodiac_bot.signs import Sign, normalize

logger = logging.getLogger(__name__)

# Returned by image_for() when a sign has no image entry
FALLBACK_IMAGE = "images/zodiac.png"


class Category(enum.Enum):
    CAR     = "car"
    TRACK   = "track"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class ContentBundle:
    title: str
    text: str
    image: str | None = None


class ContentLibrary:
    """Immutable (sign, category) -> ContentBundle lookup."""

    def __init__(
        self,
        bundles: Mapping[tuple[Sign, Category], ContentBundle],
        images: Mapping[Sign, str],
        help_bundle: ContentBundle,
        root: Path | None = None,
    ):
        self._bundles = MappingProxyType(dict(bundles))
        self._images = MappingProxyType(dict(images))
        self._help = help_bundle
        self.root = root

    @classmethod
    def load(cls, path: str | Path) -> "ContentLibrary":
        """Parse a YAML content repository. Raises ConfigError on unreadable or malformed files."""
        path = Path(path)
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Content: cannot read {path} ({e}).") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Content: {path} must contain a mapping at the top level.")
        library = cls.from_dict(raw, root=path.parent)
        missing = library.missing()
        if missing:
            logger.warning("content: %s is incomplete, missing %s", path, ", ".join(missing))
        else:
            logger.info("content: loaded %d bundles from %s", len(library._bundles), path)
        return library

    @classmethod
    def from_dict(cls, raw: dict[str, Any], root: Path | None = None) -> "ContentLibrary":
        help_raw = _mapping(raw.get("help"), "help")
        help_bundle = ContentBundle(
            title=str(help_raw.get("title", "Help")),
            text=str(help_raw.get("text", "")),
            image=help_raw.get("image"),
        )

        images: dict[Sign, str] = {}
        for name, image in _mapping(raw.get("images"), "images").items():
            images[_sign_key(name)] = str(image)

        bundles: dict[tuple[Sign, Category], ContentBundle] = {}
        for name, per_category in _mapping(raw.get("signs"), "signs").items():
            sign = _sign_key(name)
            for cat_name, entry in _mapping(per_category, f"signs.{name}").items():
                try:
                    category = Category(str(cat_name).lower())
                except ValueError as e:
                    raise ConfigError(f"Content: unknown category {cat_name!r} for {sign}.") from e
                if isinstance(entry, str):
                    entry = {"text": entry}
                if not isinstance(entry, dict):
                    raise ConfigError(
                        f"Content: signs.{name}.{cat_name} must be text or a mapping, "
                        f"got {type(entry).__name__}."
                    )
                bundles[(sign, category)] = ContentBundle(
                    title=str(entry.get("title", f"{sign} {category.value}")),
                    text=str(entry.get("text", "")),
                    image=entry.get("image"),
                )
        return cls(bundles, images, help_bundle, root=root)

    # -- lookups ------------------------------------------------------------

    def resolve(self, sign: Sign, category: Category) -> ContentBundle:
        """Return the bundle for (sign, category) with its image filled in."""
        bundle = self._bundles.get((sign, category))
        if bundle is None or not bundle.text:
            raise ContentNotFound(sign, category.value)
        if bundle.image:
            return bundle
        return ContentBundle(bundle.title, bundle.text, self.image_for(sign))

    def image_for(self, sign: Sign) -> str:
        return self._images.get(sign, FALLBACK_IMAGE)

    def help_bundle(self) -> ContentBundle:
        return self._help

    def image_path(self, image: str | None) -> Path | None:
        """Absolute path for an image reference if the file exists, else None."""
        if not image or self.root is None:
            return None
        candidate = self.root / image
        return candidate if candidate.is_file() else None

    def missing(self) -> list[str]:
        """List 'Sign/category' and 'Sign/image' gaps in the repository."""
        gaps = []
        for sign in Sign:
            for category in Category:
                bundle = self._bundles.get((sign, category))
                if bundle is None or not bundle.text:
                    gaps.append(f"{sign}/{category.value}")
            if sign not in self._images:
                gaps.append(f"{sign}/image")
        return gaps


def _sign_key(name: object) -> Sign:
    try:
        return normalize(str(name))
    except InvalidSign as e:
        raise ConfigError(f"Content: {name!r} is not a sign.") from e


def _mapping(value: object, key: str) -> dict:
    """Treat a missing section as empty; anything but a mapping is malformed."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"Content: {key} must be a mapping, got {type(value).__name__}.")
    return value
