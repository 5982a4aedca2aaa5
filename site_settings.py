"""
Site Configuration Store

A single settings document kept under a fixed key. Reading creates it with
defaults when it does not exist yet; admins replace it whole (PUT) or
patch individual fields (PATCH). Nothing is cached in process.
"""

from typing import Dict

from pydantic import ValidationError as SchemaError

import config
from database import COLL_SETTINGS, ContentStore, utcnow
from exceptions import DuplicateRecord, ValidationError
from logger import get_logger
from schemas import SiteSettings, SiteSettingsPatch

logger = get_logger(__name__)


def _flatten(values: Dict, prefix: str = "") -> Dict:
    """Turn nested dicts into dotted keys so nested fields can be $set one at a time."""
    flat = {}
    for key, value in values.items():
        path = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{path}."))
        else:
            flat[path] = value
    return flat


def _present(doc: Dict) -> Dict:
    return {k: v for k, v in doc.items() if k != "_id"}


class SiteSettingsStore:
    """Reads and writes the singleton site settings document."""

    def __init__(self, store: ContentStore):
        self.store = store
        self.key = {"_id": config.SITE_SETTINGS_KEY}

    def _defaults(self) -> Dict:
        return SiteSettings().model_dump()

    def _upsert(self, update: Dict) -> Dict:
        """
        Apply update to the settings document, creating it if needed.

        Two first writes can race to insert the same key; the loser gets a
        DuplicateRecord and retries once, which then finds the winner's
        document and updates it.
        """
        try:
            return self.store.find_one_and_update(COLL_SETTINGS, self.key, update, upsert=True)
        except DuplicateRecord:
            logger.info("Site settings were created concurrently; retrying against the stored document")
            return self.store.find_one_and_update(COLL_SETTINGS, self.key, update, upsert=True)

    def get(self) -> Dict:
        now = utcnow()
        doc = self._upsert({"$setOnInsert": {**self._defaults(), "created_at": now, "updated_at": now}})
        return _present(doc)

    def replace(self, values: Dict) -> Dict:
        """Overwrite every field; fields not supplied fall back to their defaults."""
        try:
            settings = SiteSettings.model_validate(values)
        except SchemaError as e:
            raise ValidationError(f"Invalid settings: {e.errors()[0]['msg']}")
        now = utcnow()
        doc = self._upsert(
            {"$set": {**settings.model_dump(), "updated_at": now}, "$setOnInsert": {"created_at": now}}
        )
        logger.info("Site settings replaced")
        return _present(doc)

    def update(self, values: Dict) -> Dict:
        """Change only the given fields; a missing document is created with defaults first."""
        try:
            patch = SiteSettingsPatch.model_validate(values)
        except SchemaError as e:
            raise ValidationError(f"Invalid settings: {e.errors()[0]['msg']}")
        changes = _flatten(patch.model_dump(exclude_none=True))
        now = utcnow()
        changes["updated_at"] = now

        defaults = _flatten(self._defaults())
        on_insert = {k: v for k, v in defaults.items() if k not in changes}
        on_insert["created_at"] = now
        doc = self._upsert({"$set": changes, "$setOnInsert": on_insert})
        logger.info(f"Site settings updated: {', '.join(sorted(k for k in changes if k != 'updated_at'))}")
        return _present(doc)

    def registration_enabled(self) -> bool:
        return bool(self.get().get("enable_registration", True))
