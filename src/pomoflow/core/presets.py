"""Preset registry: named focus/break duration templates."""

import logging

from pomoflow.core.identity import Identity, require_identity
from pomoflow.errors import NotFound, PermissionDenied, validating
from pomoflow.storage.models import Preset
from pomoflow.storage.store import FocusStore

logger = logging.getLogger(__name__)


class PresetRegistry:
    def __init__(self, store: FocusStore):
        self.store = store

    def create_preset(
        self,
        identity: Identity | None,
        name: str,
        focus_duration: int,
        break_duration: int,
    ) -> Preset:
        """Save a preset. Names need not be unique."""
        owner_id = require_identity(identity)
        with validating():
            preset = Preset(
                owner_id=owner_id,
                name=name,
                focus_duration=focus_duration,
                break_duration=break_duration,
            )
        self.store.insert_preset(preset)
        logger.info("Created preset %s (%s) for %s", preset.id, preset.name, owner_id)
        return preset

    def list_presets(self, identity: Identity | None) -> list[Preset]:
        if not identity:
            return []
        return self.store.presets_by_owner(identity)

    def search_presets_by_name(
        self, identity: Identity | None, query: str, limit: int | None = None
    ) -> list[Preset]:
        """Best matches first; equally good matches newest first."""
        if not identity:
            return []
        return self.store.search_presets(identity, query, limit=limit)

    def get_preset(self, identity: Identity | None, preset_id: str) -> Preset | None:
        """The caller's preset, or None."""
        if not identity:
            return None
        preset = self.store.get_preset(preset_id)
        if preset is None or preset.owner_id != identity:
            return None
        return preset

    def _owned(self, owner_id: Identity, preset_id: str) -> Preset:
        preset = self.store.get_preset(preset_id)
        if preset is None:
            raise NotFound(f"Preset {preset_id} not found")
        if preset.owner_id != owner_id:
            raise PermissionDenied(f"Preset {preset_id} belongs to another user")
        return preset

    def update_preset(
        self,
        identity: Identity | None,
        preset_id: str,
        name: str | None = None,
        focus_duration: int | None = None,
        break_duration: int | None = None,
    ) -> Preset:
        """Change any of a preset's fields."""
        owner_id = require_identity(identity)
        preset = self._owned(owner_id, preset_id)

        changes = {
            "name": name,
            "focus_duration": focus_duration,
            "break_duration": break_duration,
        }
        update = {key: value for key, value in changes.items() if value is not None}
        if not update:
            return preset

        # Revalidate the merged fields
        with validating():
            preset = Preset.model_validate({**preset.model_dump(), **update})
        preset = self.store.update_preset(preset)
        logger.info("Updated preset %s", preset_id)
        return preset

    def delete_preset(self, identity: Identity | None, preset_id: str) -> None:
        owner_id = require_identity(identity)
        self._owned(owner_id, preset_id)
        self.store.delete_preset(preset_id)
        logger.info("Deleted preset %s", preset_id)
