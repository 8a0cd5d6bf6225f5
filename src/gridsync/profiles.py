"""
Profile management on top of a settings controller and a profile store.

Profile names are unique case-insensitively. The active profile's name is
kept in the store itself under a reserved key, so it survives restarts with
whatever backend is used.
"""

import logging
from typing import List, Optional

from gridsync.controller import LoadResult, SettingsController
from gridsync.errors import ProfileExistsError, ProfileNotFoundError
from gridsync.profile_store import ProfileStore
from gridsync.snapshot_model import ProfileMetadata, ProfileSnapshot

logger = logging.getLogger(__name__)

ACTIVE_PROFILE_KEY = '__active_profile__'


class ProfileManager:
    """Create, select, save and delete named profiles.

    Example:
        >>> manager = ProfileManager(controller, InMemoryProfileStore())
        >>> manager.create_profile('Compact')
        >>> controller.record_edit('sizing', 'rowHeight', 22)
        >>> manager.save_active()
        >>> manager.select_profile('Default')
    """

    def __init__(self, controller: SettingsController, store: ProfileStore):
        self.controller = controller
        self.store = store

    # ========== QUERIES ==========

    def list_profiles(self) -> List[str]:
        """Stored profile names (the reserved active-profile entry excluded)."""
        return [name for name in self.store.list() if name != ACTIVE_PROFILE_KEY]

    @property
    def active_name(self) -> Optional[str]:
        entry = self.store.get(ACTIVE_PROFILE_KEY)
        if not isinstance(entry, dict):
            return None
        name = entry.get('name')
        return name if isinstance(name, str) else None

    def _set_active(self, name: Optional[str]) -> None:
        if name is None:
            self.store.delete(ACTIVE_PROFILE_KEY)
        else:
            self.store.set(ACTIVE_PROFILE_KEY, {'name': name})

    def find_profile(self, name: str) -> Optional[str]:
        """Stored spelling of ``name`` (case-insensitive match), or None."""
        wanted = name.casefold()
        for existing in self.list_profiles():
            if existing.casefold() == wanted:
                return existing
        return None

    @staticmethod
    def _clean_name(name: str) -> str:
        name = name.strip()
        if not name or name == ACTIVE_PROFILE_KEY:
            raise ValueError(f"Invalid profile name: {name!r}")
        return name

    # ========== ACTIONS ==========

    def initialize(self) -> Optional[LoadResult]:
        """Load the stored active profile, if there is one."""
        name = self.active_name
        if name is None:
            return None
        data = self.store.get(name)
        if data is None:
            logger.warning(f"Active profile '{name}' is missing from the store")
            self._set_active(None)
            return None
        return self.controller.load_profile(data)

    def create_profile(self, name: str) -> ProfileSnapshot:
        """Save the current settings as a new profile and make it active.

        Raises:
            ValueError: if the name is blank
            ProfileExistsError: if a profile with the same name (ignoring case) exists
        """
        name = self._clean_name(name)
        existing = self.find_profile(name)
        if existing is not None:
            raise ProfileExistsError(f'A profile named "{existing}" already exists')
        snapshot = self.controller.save_profile(name, store=self.store)
        self._set_active(name)
        logger.info(f"Created profile '{name}'")
        return snapshot

    def select_profile(self, name: str, reload: bool = False) -> Optional[LoadResult]:
        """Make ``name`` the active profile and load it into the controller.

        Selecting the already-active profile is a no-op unless ``reload``.

        Raises:
            ProfileNotFoundError: if no such profile is stored
        """
        if name == self.active_name and not reload:
            return None
        data = self.store.get(name) if name != ACTIVE_PROFILE_KEY else None
        if data is None:
            raise ProfileNotFoundError(f"No profile named '{name}'")
        self._set_active(name)
        logger.info(f"Selected profile '{name}'")
        return self.controller.load_profile(data)

    def save_active(self) -> ProfileSnapshot:
        """Overwrite the active profile with the current settings.

        Raises:
            ProfileNotFoundError: if no profile is active
        """
        name = self.active_name
        if name is None:
            raise ProfileNotFoundError("No active profile to save")
        return self.controller.save_profile(name, store=self.store)

    def rename_profile(self, old_name: str, new_name: str) -> str:
        """Rename a stored profile, keeping it active if it was.

        Changing only the case of a profile's own name is allowed.

        Returns:
            The new name as stored

        Raises:
            ProfileNotFoundError: if ``old_name`` is not stored
            ValueError: if the new name is blank
            ProfileExistsError: if another profile has the new name (ignoring case)
        """
        data = self.store.get(old_name) if old_name != ACTIVE_PROFILE_KEY else None
        if data is None:
            raise ProfileNotFoundError(f"No profile named '{old_name}'")
        new_name = self._clean_name(new_name)
        existing = self.find_profile(new_name)
        if existing is not None and existing != old_name:
            raise ProfileExistsError(f'A profile named "{existing}" already exists')
        if new_name == old_name:
            return new_name

        if isinstance(data, dict) and isinstance(data.get('metadata'), dict):
            data['metadata'] = ProfileMetadata.from_dict(data['metadata']).touched().to_dict()
        was_active = old_name == self.active_name
        self.store.set(new_name, data)
        self.store.delete(old_name)
        if was_active:
            self._set_active(new_name)
        logger.info(f"Renamed profile '{old_name}' to '{new_name}'")
        return new_name

    def delete_profile(self, name: str) -> Optional[LoadResult]:
        """Delete a profile. Deleting the active one selects the first remaining profile.

        Returns:
            LoadResult of the newly selected profile, if one was selected

        Raises:
            ProfileNotFoundError: if no such profile is stored
        """
        if name == ACTIVE_PROFILE_KEY or not self.store.delete(name):
            raise ProfileNotFoundError(f"No profile named '{name}'")
        logger.info(f"Deleted profile '{name}'")
        if name != self.active_name:
            return None

        self._set_active(None)
        remaining = self.list_profiles()
        if not remaining:
            return None
        return self.select_profile(remaining[0])

    def __repr__(self) -> str:
        return f"ProfileManager(active={self.active_name!r}, profiles={self.list_profiles()!r})"
