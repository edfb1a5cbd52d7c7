# src/extraction/rights_inference.py — v1
"""Signal-based rights and provenance inference.

Collects license, consent, copyright, path and source signals from an
item, then derives license/consent/owner plus publishability and
training eligibility. Confidence is the mean signal score damped when
fewer than five signals were found, so thin evidence lands in quarantine.
"""

from __future__ import annotations

import re
from typing import Any

from enliterator.extraction.base_capability import (
    BaseExtractionCapability,
    ExtractionResponse,
    FatalError,
)

LICENSE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("cc_by_nc_nd", re.compile(r"CC[\s-]?BY[\s-]?NC[\s-]?ND", re.I)),
    ("cc_by_nc_sa", re.compile(r"CC[\s-]?BY[\s-]?NC[\s-]?SA", re.I)),
    ("cc_by_nc", re.compile(r"CC[\s-]?BY[\s-]?NC", re.I)),
    ("cc_by_nd", re.compile(r"CC[\s-]?BY[\s-]?ND", re.I)),
    ("cc_by_sa", re.compile(r"CC[\s-]?BY[\s-]?SA", re.I)),
    ("cc_by", re.compile(r"CC[\s-]?BY(?![\s-]?(?:SA|NC|ND))", re.I)),
    ("cc0", re.compile(r"CC0|Creative Commons Zero", re.I)),
    ("public_domain", re.compile(r"public domain|no rights reserved", re.I)),
    ("open_source", re.compile(r"\b(?:MIT License|Apache License|GNU General Public|BSD License)\b", re.I)),
    ("proprietary", re.compile(r"copyright|©|\(c\)|all rights reserved", re.I)),
)

CONSENT_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("no_consent", re.compile(r"(?:do not|don't) (?:consent|agree|authorize)", re.I)),
    ("explicit_consent", re.compile(r"\bI (?:consent|agree|authorize|permit)\b", re.I)),
    ("implicit_consent", re.compile(r"by (?:submitting|posting|uploading)", re.I)),
)

_COPYRIGHT = re.compile(r"(?:Copyright|©|\(c\))\s*(\d{4})?\s*([^\n.]+)", re.I)
_PUBLISHABLE_LICENSES = {"cc0", "public_domain", "cc_by", "cc_by_sa", "open_source"}
_TRAINABLE_MEDIA = {"code", "config", "text"}


class RightsInferenceCapability(BaseExtractionCapability):
    """Heuristic rights inference over path, metadata and content sample."""

    @property
    def name(self) -> str:
        return "rights_inference"

    async def extract(self, content: str, context: dict[str, Any]) -> ExtractionResponse:
        path = str(context.get("path") or "")
        if not path and not content:
            raise FatalError("Item has neither a source path nor content to inspect")

        signals: dict[str, Any] = {}
        scores: list[float] = []
        metadata = context.get("metadata") or {}

        _metadata_signals(metadata, signals, scores)
        if content:
            _content_signals(content, signals, scores)
        _path_signals(path, signals, scores)
        _source_signals(str(context.get("source_type") or ""), signals, scores)

        # Conflicting directory hints weaken every signal
        if signals.get("path_restricted") and signals.get("path_public"):
            scores = [s * 0.7 for s in scores]
        if sum(1 for k in signals if "license" in k) > 1:
            scores.append(0.85)

        license_ = (
            signals.get("metadata_license")
            or signals.get("content_license")
            or ("proprietary" if signals.get("copyright_notice") else None)
            or "unspecified"
        )
        consent = _consent(signals)
        media_type = str(context.get("media_type") or "unknown")

        result = {
            "license": license_,
            "consent": consent,
            "owner": _owner(signals),
            "collection_method": signals.get("method", "automated_ingestion"),
            "source_type": _source_type(path),
            "publishable": _publishable(license_, consent),
            "trainable": _trainable(license_, consent, media_type),
            "signals": signals,
        }
        return ExtractionResponse(result=result, confidence=_confidence(scores))


def _metadata_signals(metadata: dict[str, Any], signals: dict, scores: list[float]) -> None:
    if metadata.get("license"):
        signals["metadata_license"] = detect_license(str(metadata["license"])) or "custom"
        scores.append(0.9)
    owner = metadata.get("author") or metadata.get("creator")
    if owner:
        signals["metadata_owner"] = owner
        scores.append(0.8)
    if metadata.get("rights"):
        signals["metadata_rights"] = metadata["rights"]
        scores.append(0.85)


def _content_signals(content: str, signals: dict, scores: list[float]) -> None:
    found = detect_license(content)
    if found:
        signals["content_license"] = found
        scores.append(0.7)
    for consent, pattern in CONSENT_PATTERNS:
        if pattern.search(content):
            signals["content_consent"] = consent
            scores.append(0.6)
            break
    match = _COPYRIGHT.search(content)
    if match:
        signals["copyright_notice"] = {"year": match.group(1), "owner": match.group(2).strip()}
        scores.append(0.75)


def _path_signals(path: str, signals: dict, scores: list[float]) -> None:
    if not path:
        return
    if re.search(r"LICENSE|COPYING|COPYRIGHT", path, re.I):
        signals["path_license_file"] = True
        scores.append(0.8)
    if re.search(r"public|open|shared|commons", path, re.I):
        signals["path_public"] = True
        scores.append(0.5)
    if re.search(r"private|restricted|confidential", path, re.I):
        signals["path_restricted"] = True
        scores.append(0.6)


def _source_signals(source_type: str, signals: dict, scores: list[float]) -> None:
    if source_type == "upload":
        signals["source_upload"] = True
        signals["implicit_consent"] = True
        scores.append(0.7)
    elif source_type == "api":
        signals["method"] = "api_collection"
        scores.append(0.8)
    elif source_type == "scrape":
        signals["method"] = "web_scraping"
        scores.append(0.4)


def detect_license(text: str) -> str | None:
    """Return the first license whose pattern matches, or None."""
    for license_, pattern in LICENSE_PATTERNS:
        if pattern.search(text):
            return license_
    return None


def _consent(signals: dict[str, Any]) -> str:
    if signals.get("content_consent"):
        return signals["content_consent"]
    if signals.get("implicit_consent"):
        return "implicit_consent"
    if signals.get("path_restricted"):
        return "no_consent"
    return "unknown"


def _owner(signals: dict[str, Any]) -> str:
    if signals.get("metadata_owner"):
        return str(signals["metadata_owner"])
    notice = signals.get("copyright_notice")
    if notice and notice.get("owner"):
        return notice["owner"]
    return "unknown"


def _source_type(path: str) -> str:
    if "/docs/" in path:
        return "documentation"
    if "/config/" in path:
        return "configuration"
    if "/src/" in path or "/app/" in path or "/lib/" in path:
        return "codebase"
    return "inferred"


def _publishable(license_: str, consent: str) -> bool:
    if license_ == "proprietary" or consent == "no_consent":
        return False
    return license_ in _PUBLISHABLE_LICENSES or consent == "explicit_consent"


def _trainable(license_: str, consent: str, media_type: str) -> bool:
    if consent == "no_consent" or license_ == "cc_by_nc_nd":
        return False
    return media_type in _TRAINABLE_MEDIA or license_ != "proprietary"


def _confidence(scores: list[float]) -> float:
    if not scores:
        return 0.0
    avg = sum(scores) / len(scores)
    return round(avg * min(1.0, len(scores) / 5.0), 2)
