"""
Configuration state synchronization for interactive grid views.

gridsync captures, normalizes, persists and replays the full configuration and
transient view state of a live grid engine instance, reconciling the engine's
deprecated and restructured option spellings into one canonical schema.

Key Features:
- Canonical option schema with a verified legacy alias table
- Pure option normalizer (flat or dialog-sectioned input)
- Ordered, batched application with one coalesced refresh
- Fault-isolated extraction and replay of transient view state
- Named profiles over a pluggable key-value store

Quick Start:
    >>> from gridsync import SettingsController, InMemoryProfileStore
    >>>
    >>> controller = SettingsController(store=InMemoryProfileStore())
    >>> controller.bind(grid)
    >>>
    >>> # Edits in the same loop turn coalesce into one commit
    >>> controller.record_edit('selection', 'enableRangeSelection', True)
    >>> controller.record_edit('sizing', 'rowHeight', 28)
    >>>
    >>> controller.save_profile('compact')
    >>> controller.load_profile(controller.store.get('compact'))

Architecture:
    edit  -> SettingsController.record_edit -> normalize_options -> BatchApplier
    save  -> StateExtractor -> ProfileSnapshot -> ProfileStore
    load  -> ProfileStore -> defaults + profile -> BatchApplier -> replay

Modules:
    - schema: Canonical options (kind, category, default, init-only)
    - aliases: Legacy option spellings and their transforms
    - normalizer: Raw option bags to canonical bags
    - cell_style: Default cell style synthesis from alignment enums
    - applier: Ordered batch application onto a live grid
    - extractor: Transient view state capture
    - replay: Transient view state restore
    - controller: Authoritative state, edits, save and load
    - profiles: Named profile management
    - profile_store: Store interface and implementations
    - scheduler: Guarded, cancellable loop scheduling
    - config: Framework configuration (timings and defaults)
"""

from gridsync.aliases import ALIAS_TABLE, AliasEntry, MergeStrategy, ResolvedOption, legacy_view, resolve_alias
from gridsync.applier import ApplyResult, BatchApplier
from gridsync.comparison import compute_delta, structurally_equal
from gridsync.config import SyncConfig, get_sync_config, set_sync_config
from gridsync.controller import ControllerState, LoadResult, SettingsController
from gridsync.errors import (
    GridSyncError,
    OptionError,
    ProfileExistsError,
    ProfileNotFoundError,
    SchemaError,
)
from gridsync.extractor import StateExtractor
from gridsync.grid import GridColumn, GridEngine
from gridsync.normalizer import NormalizedOptions, normalize_options
from gridsync.profile_store import InMemoryProfileStore, JsonFileProfileStore, ProfileStore
from gridsync.profiles import ProfileManager
from gridsync.replay import TransientStateReplayer
from gridsync.scheduler import ScheduledTask, TaskScheduler
from gridsync.schema import ApplyCategory, CANONICAL_OPTIONS, OptionKind, default_options
from gridsync.snapshot_model import ProfileMetadata, ProfileSnapshot, TransientViewState

__all__ = [
    # Schema and aliases
    'CANONICAL_OPTIONS',
    'ApplyCategory',
    'OptionKind',
    'default_options',
    'ALIAS_TABLE',
    'AliasEntry',
    'MergeStrategy',
    'ResolvedOption',
    'resolve_alias',
    'legacy_view',
    # Normalization and comparison
    'NormalizedOptions',
    'normalize_options',
    'compute_delta',
    'structurally_equal',
    # Apply, extract, replay
    'ApplyResult',
    'BatchApplier',
    'StateExtractor',
    'TransientStateReplayer',
    # Controller and profiles
    'ControllerState',
    'LoadResult',
    'SettingsController',
    'ProfileManager',
    'ProfileStore',
    'InMemoryProfileStore',
    'JsonFileProfileStore',
    # Snapshot model
    'ProfileMetadata',
    'ProfileSnapshot',
    'TransientViewState',
    # Engine boundary and scheduling
    'GridColumn',
    'GridEngine',
    'ScheduledTask',
    'TaskScheduler',
    # Configuration
    'SyncConfig',
    'get_sync_config',
    'set_sync_config',
    # Errors
    'GridSyncError',
    'SchemaError',
    'ProfileExistsError',
    'ProfileNotFoundError',
    'OptionError',
]

__version__ = '1.0.0'
__description__ = 'Configuration state synchronization for interactive grid views'
