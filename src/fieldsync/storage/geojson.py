"""GeoJSON-file backed feature store."""

import json
import logging
import os
import tempfile
from pathlib import Path
from types import MappingProxyType
from typing import Any

from fieldsync.errors import ConfigValidationError, LocalCommitError
from fieldsync.storage.base import Feature

logger = logging.getLogger(__name__)


class GeoJsonFeatureStore:
    """Feature store over a GeoJSON FeatureCollection file.

    Attribute edits are staged in memory while an edit session is open and
    written back atomically (temp file + rename) on commit. Geometry and any
    members other than ``properties`` are preserved untouched.

    Example:
        store = GeoJsonFeatureStore(Path("poles.geojson"))
        with edit_session(store):
            store.set_attribute(feature.fid, "photo", url)
    """

    def __init__(self, path: Path) -> None:
        """Load the dataset.

        Args:
            path: Path to a GeoJSON FeatureCollection

        Raises:
            ConfigValidationError: If the file is missing or not a FeatureCollection
        """
        self.path = Path(path)
        self._document = self._load()
        self._pending: dict[int, dict[str, Any]] | None = None

    def _load(self) -> dict[str, Any]:
        try:
            with open(self.path, encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigValidationError(f"Cannot read dataset {self.path}: {e}") from e

        if document.get("type") != "FeatureCollection" or not isinstance(
            document.get("features"), list
        ):
            raise ConfigValidationError(f"{self.path} is not a GeoJSON FeatureCollection")
        return document

    @property
    def in_edit_session(self) -> bool:
        return self._pending is not None

    def _fid(self, index: int, raw: dict[str, Any]) -> int | str:
        # Features without an explicit id are addressed by position
        fid = raw.get("id")
        return fid if fid is not None else index

    def _index_of(self, feature_ref: Any) -> int:
        fid = feature_ref.fid if isinstance(feature_ref, Feature) else feature_ref
        for index, raw in enumerate(self._document["features"]):
            if self._fid(index, raw) == fid:
                return index
        raise LocalCommitError(f"Feature {fid!r} not found in {self.path.name}")

    def features(self) -> list[Feature]:
        """Return read-only views of all features in file order."""
        return [
            Feature(
                fid=self._fid(index, raw),
                attributes=MappingProxyType(dict(raw.get("properties") or {})),
            )
            for index, raw in enumerate(self._document["features"])
        ]

    def field_names(self) -> list[str]:
        """Return every property name used by any feature, in first-seen order."""
        names: dict[str, None] = {}
        for raw in self._document["features"]:
            for name in raw.get("properties") or {}:
                names.setdefault(name, None)
        return list(names)

    def begin_edit(self) -> None:
        if self._pending is not None:
            raise LocalCommitError(f"Edit session already open on {self.path.name}")
        self._pending = {}

    def set_attribute(self, feature_ref: Any, field: str, value: Any) -> None:
        if self._pending is None:
            raise LocalCommitError("set_attribute called outside an edit session")
        index = self._index_of(feature_ref)
        self._pending.setdefault(index, {})[field] = value

    def commit_edit(self) -> None:
        """Write staged edits to disk and close the session.

        On failure the session stays open so the caller can roll back.
        """
        if self._pending is None:
            raise LocalCommitError("commit_edit called outside an edit session")

        features = [dict(raw) for raw in self._document["features"]]
        for index, changes in self._pending.items():
            properties = dict(features[index].get("properties") or {})
            properties.update(changes)
            features[index]["properties"] = properties
        document = {**self._document, "features": features}

        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f, ensure_ascii=False, indent=2)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise LocalCommitError(f"Failed to write {self.path.name}: {e}") from e

        logger.debug(
            "Committed %d feature edit(s) to %s", len(self._pending), self.path.name
        )
        self._document = document
        self._pending = None

    def rollback_edit(self) -> None:
        """Discard staged edits. No-op when no session is open."""
        self._pending = None
