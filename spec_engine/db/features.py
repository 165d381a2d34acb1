"""Feature registry operations."""

import uuid
from datetime import datetime, timezone

from spec_engine.core.logging import get_logger
from spec_engine.core.schemas_engine import Feature
from spec_engine.core.spec_compiler import feature_slug
from spec_engine.db.store import get_store

logger = get_logger(__name__)


def _name_key(name: str) -> str:
    return " ".join(name.split()).lower()


def create_feature(name: str, description: str = "") -> Feature:
    """
    Register a new feature.

    Args:
        name: Feature name (unique, case-insensitive)
        description: Optional description

    Returns:
        Created Feature

    Raises:
        ValueError: If the name is blank, already registered, or maps to the
            same spec id slug as an existing feature
    """
    name = " ".join(name.split())
    if not name:
        raise ValueError("Feature name must not be empty")

    store = get_store()
    with store.lock:
        if get_feature_by_name(name) is not None:
            raise ValueError(f"Feature '{name}' already exists")
        clash = get_feature_by_slug(name)
        if clash is not None:
            raise ValueError(
                f"Feature '{name}' collides with '{clash.name}': both use spec ids "
                f"spec-{feature_slug(name)}-v*"
            )
        feature = Feature(id=str(uuid.uuid4()), name=name, description=description)
        store.features[feature.id] = feature

    logger.info(f"Created feature '{name}'", extra={"feature_id": feature.id})
    return feature


def get_feature(feature_id: str) -> Feature | None:
    store = get_store()
    with store.lock:
        return store.features.get(feature_id)


def get_feature_by_name(name: str) -> Feature | None:
    """Exact, case-insensitive name match."""
    key = _name_key(name)
    store = get_store()
    with store.lock:
        for feature in store.features.values():
            if _name_key(feature.name) == key:
                return feature
    return None


def get_feature_by_slug(name: str) -> Feature | None:
    """Feature whose spec id slug equals the slug of name."""
    slug = feature_slug(name)
    store = get_store()
    with store.lock:
        for feature in store.features.values():
            if feature_slug(feature.name) == slug:
                return feature
    return None


def find_feature(name_or_id: str) -> Feature | None:
    """
    Resolve a feature by id, exact name, then partial name.

    A partial match returns the most recently created candidate.
    """
    feature = get_feature(name_or_id) or get_feature_by_name(name_or_id)
    if feature is not None:
        return feature

    key = _name_key(name_or_id)
    if not key:
        return None
    matches = [f for f in list_features() if key in _name_key(f.name)]
    return max(matches, key=lambda f: f.created_at) if matches else None


def list_features(search: str | None = None) -> list[Feature]:
    """
    List features, most recently updated first.

    Args:
        search: Optional case-insensitive filter on name and description
    """
    store = get_store()
    with store.lock:
        features = list(store.features.values())

    if search:
        needle = search.lower()
        features = [
            f for f in features if needle in f.name.lower() or needle in f.description.lower()
        ]
    return sorted(features, key=lambda f: f.updated_at, reverse=True)


def touch_feature(feature_id: str) -> Feature | None:
    """Bump updated_at; returns None for an unknown id."""
    store = get_store()
    with store.lock:
        feature = store.features.get(feature_id)
        if feature is None:
            return None
        feature = feature.model_copy(update={"updated_at": datetime.now(timezone.utc)})
        store.features[feature_id] = feature
        return feature
