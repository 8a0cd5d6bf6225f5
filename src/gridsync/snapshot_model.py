"""
Snapshot dataclasses for persisted grid profiles.

A profile snapshot is data only: no callables and no engine references, so it
survives a JSON round trip unchanged. Function-valued options are stripped on
the way in and resynthesized from their scalar inputs when the profile is
applied.

Design Philosophy:
- Immutable snapshots (frozen dataclasses)
- Missing transient facets are None and omitted from the serialized form
- Reading is lenient: a malformed snapshot is filled from defaults and the
  problems are reported, never raised
"""

from dataclasses import dataclass, field
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from gridsync.config import get_sync_config

logger = logging.getLogger(__name__)


def _current_version() -> str:
    return get_sync_config().snapshot_version


def strip_callables(value: Any) -> Any:
    """Deep copy of ``value`` with every callable removed.

    Dict entries holding callables are dropped; list items holding callables
    are dropped. Tuples become lists.
    """
    if callable(value):
        return None
    if isinstance(value, dict):
        return {k: strip_callables(v) for k, v in value.items() if not callable(v)}
    if isinstance(value, (list, tuple)):
        return [strip_callables(v) for v in value if not callable(v)]
    return value


# (python field, serialized key) for each transient facet, in replay order.
_FACET_KEYS: Tuple[Tuple[str, str], ...] = (
    ('column_state', 'columnState'),
    ('column_group_state', 'columnGroupState'),
    ('column_sizing_state', 'columnSizingState'),
    ('sort_model', 'sortModel'),
    ('row_group_state', 'rowGroupState'),
    ('filter_model', 'filterModel'),
    ('advanced_filter_model', 'advancedFilterModel'),
    ('side_bar_state', 'sideBarState'),
    ('pagination_state', 'paginationState'),
    ('scroll_position', 'scrollPosition'),
    ('focused_cell', 'focusedCell'),
    ('selection_state', 'selectionState'),
    ('range_selection_state', 'rangeSelectionState'),
    ('grid_options', 'gridOptions'),
)


@dataclass(frozen=True)
class TransientViewState:
    """User-interaction state of the current data (layout, filters, selection, scroll).

    Each facet is independent; None means the facet was not captured.
    """
    column_state: Optional[List[Dict[str, Any]]] = None
    column_group_state: Optional[List[Dict[str, Any]]] = None
    column_sizing_state: Optional[Dict[str, Any]] = None
    sort_model: Optional[List[Dict[str, Any]]] = None
    row_group_state: Optional[Dict[str, Any]] = None
    filter_model: Optional[Dict[str, Any]] = None
    advanced_filter_model: Optional[Dict[str, Any]] = None
    side_bar_state: Optional[Dict[str, Any]] = None
    pagination_state: Optional[Dict[str, Any]] = None
    scroll_position: Optional[Dict[str, Any]] = None
    focused_cell: Optional[Dict[str, Any]] = None
    selection_state: Optional[Dict[str, Any]] = None
    range_selection_state: Optional[List[Dict[str, Any]]] = None
    grid_options: Optional[Dict[str, Any]] = None

    def captured_facets(self) -> List[str]:
        """Python names of the facets that hold a value."""
        return [name for name, _ in _FACET_KEYS if getattr(self, name) is not None]

    def to_dict(self) -> Dict[str, Any]:
        """Export to JSON-serializable dict, omitting missing facets."""
        return {
            key: strip_callables(getattr(self, name))
            for name, key in _FACET_KEYS
            if getattr(self, name) is not None
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'TransientViewState':
        """Import from dict. Unknown facet keys are ignored with a warning."""
        if not data:
            return cls()
        known = {key: name for name, key in _FACET_KEYS}
        unknown = [k for k in data if k not in known]
        if unknown:
            logger.warning(f"Ignoring unknown transient view facets: {unknown}")
        return cls(**{known[k]: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class ProfileMetadata:
    """Bookkeeping for a stored profile."""
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    version: str = field(default_factory=_current_version)

    def touched(self) -> 'ProfileMetadata':
        return ProfileMetadata(created_at=self.created_at, updated_at=time.time(), version=_current_version())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
            'version': self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProfileMetadata':
        now = time.time()
        return cls(
            created_at=data.get('createdAt', now),
            updated_at=data.get('updatedAt', now),
            version=data.get('version', _current_version()),
        )


_REQUIRED_SECTIONS = ('toolbarState', 'viewConfiguration', 'transientViewState', 'freeformExtension')


@dataclass(frozen=True)
class ProfileSnapshot:
    """Persisted capture of a grid view: options, toolbar and transient state.

    ``view_configuration`` is the canonical option delta against engine
    defaults, without initialization-only or function-valued keys.
    ``initial_options`` holds initialization-only keys, used only when a new
    grid instance is constructed. ``freeform_extension`` carries options the
    engine does not know, verbatim.
    """
    toolbar_state: Dict[str, Any] = field(default_factory=dict)
    view_configuration: Dict[str, Any] = field(default_factory=dict)
    transient_view_state: TransientViewState = field(default_factory=TransientViewState)
    freeform_extension: Dict[str, Any] = field(default_factory=dict)
    initial_options: Dict[str, Any] = field(default_factory=dict)
    metadata: ProfileMetadata = field(default_factory=ProfileMetadata)

    @classmethod
    def create(
        cls,
        toolbar_state: Dict[str, Any],
        view_configuration: Dict[str, Any],
        transient_view_state: Optional[TransientViewState] = None,
        freeform_extension: Optional[Dict[str, Any]] = None,
        initial_options: Optional[Dict[str, Any]] = None,
        metadata: Optional[ProfileMetadata] = None,
    ) -> 'ProfileSnapshot':
        """Create a snapshot, stripping any callables from the option sections."""
        return cls(
            toolbar_state=strip_callables(dict(toolbar_state)),
            view_configuration=strip_callables(dict(view_configuration)),
            transient_view_state=transient_view_state or TransientViewState(),
            freeform_extension=strip_callables(dict(freeform_extension or {})),
            initial_options=strip_callables(dict(initial_options or {})),
            metadata=metadata or ProfileMetadata(),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Export to JSON-serializable dict."""
        return {
            'toolbarState': strip_callables(self.toolbar_state),
            'viewConfiguration': strip_callables(self.view_configuration),
            'transientViewState': self.transient_view_state.to_dict(),
            'freeformExtension': strip_callables(self.freeform_extension),
            'initialOptions': strip_callables(self.initial_options),
            'metadata': self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> 'ProfileSnapshot':
        """Import from dict, filling missing sections. See ``parse_snapshot``."""
        snapshot, _ = parse_snapshot(data)
        return snapshot


def parse_snapshot(data: Any) -> Tuple[ProfileSnapshot, List[str]]:
    """Leniently read a serialized snapshot.

    Missing or mistyped sections are replaced with empty defaults (which the
    controller later layers over engine defaults).

    Args:
        data: Deserialized snapshot dict (or anything else, which counts as empty)

    Returns:
        (snapshot, issues) where issues describes every repaired section
    """
    issues: List[str] = []
    if isinstance(data, ProfileSnapshot):
        return data, issues
    if not isinstance(data, dict):
        issues.append(f"snapshot is {type(data).__name__}, expected dict")
        data = {}

    sections: Dict[str, Any] = {}
    for key in _REQUIRED_SECTIONS:
        value = data.get(key)
        if not isinstance(value, dict):
            issues.append(f"missing or malformed section '{key}'")
            value = {}
        sections[key] = value

    metadata_raw = data.get('metadata')
    metadata = ProfileMetadata.from_dict(metadata_raw) if isinstance(metadata_raw, dict) else ProfileMetadata()
    initial_options = data.get('initialOptions')

    snapshot = ProfileSnapshot(
        toolbar_state=sections['toolbarState'],
        view_configuration=sections['viewConfiguration'],
        transient_view_state=TransientViewState.from_dict(sections['transientViewState']),
        freeform_extension=sections['freeformExtension'],
        initial_options=initial_options if isinstance(initial_options, dict) else {},
        metadata=metadata,
    )
    for issue in issues:
        logger.warning(f"Malformed snapshot: {issue}")
    return snapshot, issues
