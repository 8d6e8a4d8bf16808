"""Local feature storage for photo write-back."""

from fieldsync.storage.base import Feature, FeatureStore, edit_session
from fieldsync.storage.geojson import GeoJsonFeatureStore

__all__ = ["Feature", "FeatureStore", "GeoJsonFeatureStore", "edit_session"]
