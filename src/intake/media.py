# src/intake/media.py — v1
"""Media type detection from file names."""

from __future__ import annotations

import re
from pathlib import PurePath

from enliterator.core.models import MediaType

_CONFIG_NAMES = re.compile(
    r"^(gemfile|rakefile|dockerfile|makefile|procfile|pyproject\.toml|setup\.cfg|package\.json|cargo\.toml)"
)
_CONFIG_HINT = re.compile(r"config|settings|database|credentials|secrets|manifest")

_BY_EXTENSION: dict[str, MediaType] = {}
for _exts, _media in (
    (".py .rb .js .ts .jsx .tsx .java .go .rs .cpp .c .h .php .swift .kt .scala .clj .ex .exs "
     ".erl .hs .ml .fs .sh", MediaType.CODE),
    (".md .txt .rst .adoc .org .textile .rdoc .pod .man", MediaType.TEXT),
    (".yml .yaml .toml .ini .cfg .conf .properties .env", MediaType.CONFIG),
    (".json .xml .csv .tsv .jsonl .ndjson", MediaType.DATA),
    (".pdf .doc .docx .odt .rtf .tex .epub", MediaType.DOCUMENT),
    (".jpg .jpeg .png .gif .svg .ico .bmp .tiff .webp", MediaType.IMAGE),
    (".mp3 .wav .ogg .m4a .flac .aac .wma", MediaType.AUDIO),
    (".mp4 .mov .avi .wmv .flv .mkv .webm .m4v .mpg .mpeg", MediaType.VIDEO),
    (".exe .dll .so .dylib .bin .dat .db .sqlite .zip .tar .gz .rar", MediaType.BINARY),
):
    for _ext in _exts.split():
        _BY_EXTENSION[_ext] = _media


def detect_media_type(path: str) -> MediaType:
    """Classify a file by name, falling back to UNKNOWN."""
    if not path:
        return MediaType.UNKNOWN
    pure = PurePath(path)
    name = pure.name.lower()
    if _CONFIG_NAMES.match(name):
        return MediaType.CONFIG
    ext = pure.suffix.lower()
    media = _BY_EXTENSION.get(ext, MediaType.UNKNOWN)
    if ext in (".yml", ".yaml"):
        return MediaType.CONFIG
    if media == MediaType.DATA and (
        "/config/" in path or "/settings/" in path or _CONFIG_HINT.search(name)
    ):
        return MediaType.CONFIG
    return media
