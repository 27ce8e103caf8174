"""Functional tests for the content repository."""

import pytest

from zodiac_bot._errors import ConfigError, ContentNotFound
from zodiac_bot.config import DEFAULT_CONTENT_PATH
from zodiac_bot.content import FALLBACK_IMAGE, Category, ContentBundle, ContentLibrary
from zodiac_bot.signs import Sign


@pytest.fixture(scope="module")
def library() -> ContentLibrary:
    return ContentLibrary.load(DEFAULT_CONTENT_PATH)


def test_packaged_content_is_complete(library):
    assert library.missing() == []


@pytest.mark.parametrize("sign", list(Sign))
def test_every_sign_resolves_every_category(library, sign):
    for category in Category:
        bundle = library.resolve(sign, category)
        assert bundle.text
        assert bundle.image == library.image_for(sign)
        assert bundle.image != FALLBACK_IMAGE


def test_leo_car(library):
    bundle = library.resolve(Sign.LEO, Category.CAR)
    assert "Leo" in bundle.title
    assert bundle.image == "images/leo.png"


def test_help_bundle(library):
    bundle = library.help_bundle()
    assert bundle.title
    assert bundle.text
    # Command lines are generated with the configured prefix, never stored
    assert "~" not in bundle.text


def test_missing_bundle_raises_content_not_found():
    library = ContentLibrary.from_dict({"signs": {"Leo": {"car": "Fast."}}})
    with pytest.raises(ContentNotFound) as exc_info:
        library.resolve(Sign.LEO, Category.TRACK)
    assert exc_info.value.sign is Sign.LEO
    assert exc_info.value.category == "track"


def test_image_fallback_for_incomplete_image_map():
    library = ContentLibrary.from_dict({
        "images": {"aries": "images/aries.png"},
        "signs": {"Leo": {"car": {"title": "Leo", "text": "Roar."}}},
    })
    assert library.image_for(Sign.ARIES) == "images/aries.png"
    assert library.image_for(Sign.LEO) == FALLBACK_IMAGE
    assert library.resolve(Sign.LEO, Category.CAR) == ContentBundle("Leo", "Roar.", FALLBACK_IMAGE)


def test_bundle_image_overrides_sign_image():
    library = ContentLibrary.from_dict({
        "images": {"Leo": "images/leo.png"},
        "signs": {"Leo": {"track": {"text": "Monaco.", "image": "images/monaco.png"}}},
    })
    assert library.resolve(Sign.LEO, Category.TRACK).image == "images/monaco.png"


def test_missing_lists_gaps():
    library = ContentLibrary.from_dict({"signs": {"Leo": {"car": "Fast."}}})
    gaps = library.missing()
    assert "Leo/car" not in gaps
    assert "Leo/track" in gaps
    assert "Pisces/image" in gaps


def test_unknown_sign_key_rejected():
    with pytest.raises(ConfigError):
        ContentLibrary.from_dict({"signs": {"Ophiuchus": {"car": "x"}}})


def test_unknown_category_rejected():
    with pytest.raises(ConfigError):
        ContentLibrary.from_dict({"signs": {"Leo": {"boat": "x"}}})


@pytest.mark.parametrize("raw, key", [
    ({"help": "just a string"}, "help"),
    ({"images": ["images/leo.png"]}, "images"),
    ({"signs": {"Leo": ["car", "track"]}}, "signs.Leo"),
    ({"signs": {"Leo": {"car": None}}}, "signs.Leo.car"),
])
def test_malformed_sections_rejected(raw, key):
    with pytest.raises(ConfigError) as exc_info:
        ContentLibrary.from_dict(raw)
    assert key in str(exc_info.value)


def test_load_unreadable_file(tmp_path):
    with pytest.raises(ConfigError):
        ContentLibrary.load(tmp_path / "missing.yaml")

    bad = tmp_path / "bad.yaml"
    bad.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        ContentLibrary.load(bad)


def test_image_path_only_for_existing_files(tmp_path):
    (tmp_path / "images").mkdir()
    (tmp_path / "images" / "leo.png").write_bytes(b"\x89PNG")
    content = tmp_path / "content.yaml"
    content.write_text("images:\n  Leo: images/leo.png\n")

    library = ContentLibrary.load(content)
    assert library.image_path("images/leo.png") == tmp_path / "images" / "leo.png"
    assert library.image_path("images/aries.png") is None
    assert library.image_path(None) is None


def test_library_is_read_only(library):
    with pytest.raises(TypeError):
        library._bundles[(Sign.LEO, Category.CAR)] = ContentBundle("x", "y")
