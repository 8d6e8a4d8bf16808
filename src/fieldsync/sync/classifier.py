"""Classification of layer features into sync work items, plus preflight checks."""

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from fieldsync.config import SyncConfig, SyncMode
from fieldsync.storage.base import Feature, FeatureStore
from fieldsync.sync.models import (
    ConfigValidation,
    PrerequisiteReport,
    SyncStatistics,
    WorkItem,
)

logger = logging.getLogger(__name__)

_URL_PREFIX = re.compile(r"^https?://", re.IGNORECASE)
_VALID_URL = re.compile(r"^https?://.+")
_DRIVE_LETTER = re.compile(r"^[a-zA-Z]:")

GLOBAL_ID_FIELDS = ("global_id", "globalid")


def is_remote_url(value: Any) -> bool:
    """True for http:// and https:// values."""
    return isinstance(value, str) and bool(_URL_PREFIX.match(value))


def is_local_path(value: Any) -> bool:
    """True for filesystem-style paths (separator or drive letter), never URLs."""
    if not value or not isinstance(value, str) or is_remote_url(value):
        return False
    return "/" in value or "\\" in value or bool(_DRIVE_LETTER.match(value))


def validate_url(url: Any) -> bool:
    """True when url is http(s):// with something after the scheme."""
    return isinstance(url, str) and bool(_VALID_URL.match(url))


def find_fields(names: Iterable[str], candidates: Sequence[str]) -> list[str]:
    """Names matching ``candidates`` case-insensitively, in candidate order."""
    by_lower: dict[str, str] = {}
    for name in names:
        by_lower.setdefault(name.lower(), name)
    return [by_lower[candidate] for candidate in candidates if candidate in by_lower]


def feature_global_id(feature: Feature) -> str:
    """Stable id of a feature: global_id, then globalid (any case), then the internal id."""
    for name in find_fields(feature.attributes, GLOBAL_ID_FIELDS):
        value = feature.attribute(name)
        if value:
            return str(value)
    return str(feature.fid)


def classify(
    features: Iterable[Feature], photo_field: str, mode: SyncMode = SyncMode.UPLOAD
) -> list[WorkItem]:
    """Build the work queue for a layer.

    Local paths always need processing. Remote URLs need processing only in
    DB_ONLY mode, where the database still has to confirm them. Empty values
    are skipped. Items keep the layer's scan order.
    """
    items: list[WorkItem] = []
    for feature in features:
        value = feature.attribute(photo_field)
        if not value:
            continue

        if is_local_path(value):
            items.append(
                WorkItem(feature_ref=feature, global_id=feature_global_id(feature), source_path=value)
            )
        elif mode is SyncMode.DB_ONLY and is_remote_url(value):
            items.append(
                WorkItem(feature_ref=feature, global_id=feature_global_id(feature), remote_url=value)
            )

    logger.info(
        "Classified %d pending photo(s)", len(items),
        extra={"photo_field": photo_field, "mode": mode.value},
    )
    return items


def compute_statistics(features: Iterable[Feature], photo_field: str) -> SyncStatistics:
    """Count photo attributes: all non-empty, local (pending), and the rest (synced)."""
    total = pending = 0
    for feature in features:
        value = feature.attribute(photo_field)
        if not value:
            continue
        total += 1
        if is_local_path(value):
            pending += 1
    return SyncStatistics(total=total, pending=pending, synced=total - pending)


def _config_value(config: SyncConfig | Mapping[str, Any], key: str) -> Any:
    if isinstance(config, Mapping):
        return config.get(key)
    return getattr(config, key, None)


def validate_configuration(
    config: SyncConfig | Mapping[str, Any], required_keys: Sequence[str]
) -> ConfigValidation:
    """Report required keys that are absent or blank after stripping whitespace."""
    missing = []
    for key in required_keys:
        value = _config_value(config, key)
        if value is None or not str(value).strip():
            missing.append(key)
    return ConfigValidation(valid=not missing, missing=missing)


def validate_prerequisites(config: SyncConfig, store: FeatureStore | None) -> PrerequisiteReport:
    """Run every preflight check and collect all problems.

    Checks required configuration for the active mode, the shape of every
    endpoint URL that is set, and that the layer has the photo field and a
    global id field.
    """
    errors: list[str] = []

    config_check = validate_configuration(config, config.mode.required_keys)
    if not config_check.valid:
        errors.append(f"Missing configuration: {', '.join(config_check.missing)}")

    for key, url in config.endpoint_urls.items():
        if not validate_url(url):
            errors.append(f"Invalid URL for {key}: {url}")

    if store is None:
        errors.append("No layer selected")
    else:
        field_names = list(store.field_names())
        photo_field = (config.photo_field or "").strip()
        # Read and written back under this exact name
        if photo_field and photo_field not in field_names:
            errors.append(f"Layer missing photo field: {photo_field}")
        if not find_fields(field_names, GLOBAL_ID_FIELDS):
            errors.append("Layer missing global_id field")

    return PrerequisiteReport(valid=not errors, errors=errors)
