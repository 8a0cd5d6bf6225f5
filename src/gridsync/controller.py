"""
Settings controller: the owner of a grid's authoritative configuration.

One controller instance per grid view. It holds the canonical option bag and
toolbar state, collects edits into a pending-change set, commits them on the
next loop tick through the normalizer and batch applier, and saves or loads
profiles (option bag plus transient view state).

Lifecycle::

    UNINITIALIZED --bind--> BOUND --first commit--> READY --edits/loads--> READY
                                                          --unbind--> UNBOUND

Edits are ignored while UNINITIALIZED or UNBOUND. A commit while UNBOUND is a
no-op. A commit against a grid that is no longer alive keeps its pending
changes until the next ``bind``.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple

from gridsync.applier import ApplyResult, BatchApplier, to_engine_value
from gridsync.cell_style import column_defaults_for_storage
from gridsync.comparison import compute_delta
from gridsync.config import MIN_FONT_SIZE, SyncConfig, get_sync_config
from gridsync.errors import OptionError
from gridsync.extractor import StateExtractor
from gridsync.grid import is_grid_alive
from gridsync.normalizer import layer_bags, merge_into_bag, normalize_options
from gridsync.replay import TransientStateReplayer, schedule_replay
from gridsync.scheduler import ScheduledTask, TaskScheduler
from gridsync.schema import OptionKind, default_options, get_spec
from gridsync.snapshot_model import (
    ProfileMetadata,
    ProfileSnapshot,
    TransientViewState,
    parse_snapshot,
    strip_callables,
)

logger = logging.getLogger(__name__)

TOOLBAR = 'toolbar'
GRID_OPTIONS = 'gridOptions'


class ControllerState(Enum):
    UNINITIALIZED = "uninitialized"
    BOUND = "bound"
    READY = "ready"
    UNBOUND = "unbound"


@dataclass
class LoadResult:
    """Progress of one ``load_profile`` call.

    ``warnings`` is filled immediately (malformed sections). ``apply_result``
    is set when the load's commit runs; ``replay_errors`` grows as the
    transient-state replay phases run.
    """
    options: Dict[str, Any]
    warnings: List[str] = field(default_factory=list)
    apply_result: Optional[ApplyResult] = None
    replay_errors: List[OptionError] = field(default_factory=list)

    @property
    def errors(self) -> List[OptionError]:
        applied_errors = self.apply_result.errors if self.apply_result else []
        return list(applied_errors) + list(self.replay_errors)


def storage_options(bag: Mapping[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any], Dict[str, Any]]:
    """Split a canonical bag into its persisted sections.

    Function-valued options are dropped and ``defaultColDef`` is stored with
    alignment enums instead of a style callable.

    Returns:
        (view_options, initial_options, freeform) for known runtime keys,
        initialization-only keys and unknown keys respectively
    """
    view: Dict[str, Any] = {}
    initial: Dict[str, Any] = {}
    freeform: Dict[str, Any] = {}
    for key, value in bag.items():
        spec = get_spec(key)
        if spec is None:
            if not callable(value):
                freeform[key] = strip_callables(value)
            continue
        if spec.kind is OptionKind.FUNCTION or callable(value):
            continue
        if key == 'defaultColDef' and isinstance(value, dict):
            value = column_defaults_for_storage(value)
        target = initial if spec.init_only else view
        target[key] = strip_callables(value)
    return view, initial, freeform


class SettingsController:
    """Authoritative in-memory configuration for one grid view.

    Example:
        >>> controller = SettingsController(store=InMemoryProfileStore())
        >>> controller.bind(grid)
        >>> controller.record_edit('selection', 'enableRangeSelection', True)
        >>> # next loop tick: normalized, merged and applied in one batch
        >>> controller.save_profile('default')
    """

    def __init__(self, store: Any = None, config: Optional[SyncConfig] = None,
                 scheduler: Optional[TaskScheduler] = None,
                 initial_options: Optional[Mapping[str, Any]] = None):
        self.config = config or get_sync_config()
        self.store = store
        self.scheduler = scheduler or TaskScheduler(frame_delay=self.config.frame_delay)
        self.applier = BatchApplier(self.scheduler, self.config)
        self.extractor = StateExtractor()
        self.replayer = TransientStateReplayer()

        self._state = ControllerState.UNINITIALIZED
        self._grid: Any = None

        # === Authoritative state ===
        self._options: Dict[str, Any] = default_options()
        if initial_options:
            self._options = merge_into_bag(self._options, normalize_options(initial_options).options)
        self._toolbar: Dict[str, Any] = dict(self.config.default_toolbar)

        # === Baseline (last load or save) for dirty tracking ===
        self._baseline_options: Dict[str, Any] = copy.deepcopy(self._options)
        self._baseline_toolbar: Dict[str, Any] = dict(self._toolbar)
        self._dirty = False

        # === Pending changes ===
        self._pending: Dict[Tuple[str, str], Any] = {}
        self._full_apply_pending = False
        self._pending_load: Optional[Tuple[LoadResult, TransientViewState]] = None
        self._commit_task: Optional[ScheduledTask] = None
        self._committing = False

        self.last_apply_result: Optional[ApplyResult] = None

        # === Subscribers ===
        self._on_change_callbacks: Dict[str, List[Callable[[Dict[str, Any]], None]]] = {
            TOOLBAR: [],
            GRID_OPTIONS: [],
        }
        self._on_dirty_changed_callbacks: List[Callable[[bool], None]] = []

    # ========== STATE ==========

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def grid(self) -> Any:
        return self._grid

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def dirty_keys(self) -> Set[str]:
        """Canonical keys that differ from the last loaded or saved profile."""
        return compute_delta(self._options, self._baseline_options)

    @property
    def has_pending(self) -> bool:
        return bool(self._pending) or self._full_apply_pending

    def get_options(self) -> Dict[str, Any]:
        """Copy of the committed canonical option bag."""
        return copy.deepcopy(self._options)

    def get_toolbar(self) -> Dict[str, Any]:
        return dict(self._toolbar)

    def _is_attached(self) -> bool:
        return self._state in (ControllerState.BOUND, ControllerState.READY)

    def _guard(self) -> bool:
        return self._is_attached() and is_grid_alive(self._grid)

    # ========== SUBSCRIPTIONS ==========

    def on_change(self, category: str, callback: Callable[[Dict[str, Any]], None]) -> None:
        """Subscribe to committed changes of ``'toolbar'`` or ``'gridOptions'``.

        The callback receives a copy of the new toolbar state or option bag.
        """
        if category not in self._on_change_callbacks:
            raise ValueError(f"Unknown change category: {category!r}")
        if callback not in self._on_change_callbacks[category]:
            self._on_change_callbacks[category].append(callback)

    def off_change(self, category: str, callback: Callable[[Dict[str, Any]], None]) -> None:
        callbacks = self._on_change_callbacks.get(category, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def on_dirty_changed(self, callback: Callable[[bool], None]) -> None:
        """Subscribe to dirty-flag transitions."""
        if callback not in self._on_dirty_changed_callbacks:
            self._on_dirty_changed_callbacks.append(callback)

    def off_dirty_changed(self, callback: Callable[[bool], None]) -> None:
        if callback in self._on_dirty_changed_callbacks:
            self._on_dirty_changed_callbacks.remove(callback)

    def _fire_change_callbacks(self, category: str) -> None:
        payload = self.get_toolbar() if category == TOOLBAR else self.get_options()
        for callback in list(self._on_change_callbacks[category]):
            try:
                callback(payload)
            except Exception as e:
                logger.warning(f"Error in {category} change callback: {e}")

    def _update_dirty(self) -> None:
        dirty = bool(self.dirty_keys) or bool(compute_delta(self._toolbar, self._baseline_toolbar))
        if dirty == self._dirty:
            return
        self._dirty = dirty
        for callback in list(self._on_dirty_changed_callbacks):
            try:
                callback(dirty)
            except Exception as e:
                logger.warning(f"Error in dirty_changed callback: {e}")

    def _mark_clean(self) -> None:
        self._baseline_options = copy.deepcopy(self._options)
        self._baseline_toolbar = dict(self._toolbar)
        self._update_dirty()

    # ========== LIFECYCLE ==========

    def bind(self, grid: Any) -> None:
        """Attach a live grid. The current bag is applied on the next tick.

        Values the grid already holds (from ``construction_options``) are not
        set again. Rebinding while attached keeps pending edits (a commit
        deferred because the old grid died lands on the new one) but cancels
        work scheduled against the old grid.

        Scheduling needs an event loop: call this from a coroutine, or give the
        controller a ``TaskScheduler`` constructed with a loop.
        """
        if self._is_attached() and self._grid is not grid:
            self.scheduler.cancel_all()
            self._commit_task = None
        self._grid = grid
        self._state = ControllerState.BOUND
        self._full_apply_pending = True
        logger.debug(f"Bound grid {type(grid).__name__}")
        self._schedule_commit()

    def unbind(self) -> None:
        """Detach the grid, discarding pending edits and cancelling deferred work."""
        if not self._is_attached():
            return
        discarded = len(self._pending)
        self._pending.clear()
        self._full_apply_pending = False
        self._pending_load = None
        self._commit_task = None
        cancelled = self.scheduler.cancel_all()
        self._grid = None
        self._state = ControllerState.UNBOUND
        logger.debug(f"Unbound grid (discarded {discarded} pending edit(s), cancelled {cancelled} task(s))")

    # ========== EDITS ==========

    def record_edit(self, category: str, key: str, value: Any) -> None:
        """Queue one edit; it is committed on the next loop tick.

        Repeated edits to the same key before the commit collapse to the last
        value. ``category`` is the settings-dialog section the edit came from;
        ``'toolbar'`` edits update toolbar state immediately instead.
        While bound, the same event-loop requirement as ``bind`` applies.
        """
        if category == TOOLBAR:
            self.update_toolbar(**{key: value})
            return
        if not self._is_attached():
            logger.debug(f"Ignoring edit {key!r} while {self._state.value}")
            return
        slot = (category, key)
        self._pending.pop(slot, None)
        self._pending[slot] = value
        self._schedule_commit()

    def update_toolbar(self, **settings: Any) -> None:
        """Update toolbar state (font family, font size, spacing)."""
        if 'fontSize' in settings and settings['fontSize'] is not None:
            settings['fontSize'] = max(MIN_FONT_SIZE, int(settings['fontSize']))
        changed = {k: v for k, v in settings.items() if self._toolbar.get(k) != v}
        if not changed:
            return
        self._toolbar.update(changed)
        self._fire_change_callbacks(TOOLBAR)
        self._update_dirty()

    def _schedule_commit(self) -> None:
        if self._commit_task is not None and self._commit_task.pending:
            return
        self._commit_task = self.scheduler.next_tick(self.commit_pending, label='commit', guard=self._is_attached)

    def commit_pending(self) -> Optional[ApplyResult]:
        """Normalize the pending-change set and apply it in one batch.

        Returns:
            The ApplyResult, or None when nothing was applied (unbound,
            detached grid, reentrant call or nothing pending)
        """
        if self._committing:
            logger.debug("Commit requested during commit; rescheduling")
            self._schedule_commit()
            return None
        self._commit_task = None
        if not self._is_attached():
            logger.debug(f"Commit ignored while {self._state.value}")
            return None
        if not self.has_pending:
            self._state = ControllerState.READY
            return None
        if not is_grid_alive(self._grid):
            logger.debug(f"Grid not alive; deferring {len(self._pending)} pending edit(s) until rebind")
            return None

        self._committing = True
        try:
            return self._commit()
        finally:
            self._committing = False

    def _commit(self) -> ApplyResult:
        raw = {key: value for (_, key), value in self._pending.items()}
        self._pending.clear()
        normalized = normalize_options(raw)
        self._options = merge_into_bag(self._options, normalized.options)

        full = self._full_apply_pending
        self._full_apply_pending = False
        if full:
            bag = self._options
        else:
            bag = {key: self._options[key] for key in normalized.changed_keys}

        result = self.applier.apply(self._grid, bag, force_refresh=full, guard=self._guard)
        self.last_apply_result = result
        self._state = ControllerState.READY
        logger.debug(f"Committed {len(bag)} option(s) ({'full' if full else 'delta'})")

        if self._pending_load is not None:
            load_result, transient = self._pending_load
            self._pending_load = None
            load_result.apply_result = result
            schedule_replay(
                self.scheduler,
                self._grid,
                transient,
                self.config.settle_delay,
                self.config.width_reassert_delay,
                guard=self._guard,
                on_errors=load_result.replay_errors.extend,
                replayer=self.replayer,
            )

        self._fire_change_callbacks(GRID_OPTIONS)
        self._update_dirty()
        return result

    # ========== PROFILES ==========

    def compute_delta(self, current: Mapping[str, Any], baseline: Mapping[str, Any]) -> Set[str]:
        """Keys whose values differ structurally between two bags."""
        return compute_delta(current, baseline)

    def capture_snapshot(self, metadata: Optional[ProfileMetadata] = None) -> ProfileSnapshot:
        """Build a snapshot of the committed state without touching the grid.

        ``view_configuration`` holds only keys that differ from engine defaults.
        Edits still pending are not included.
        """
        view, initial, freeform = storage_options(self._options)
        default_view, default_initial, _ = storage_options(default_options())
        transient = TransientViewState()
        if self._is_attached() and is_grid_alive(self._grid):
            transient = self.extractor.extract(self._grid)
        return ProfileSnapshot.create(
            toolbar_state=self._toolbar,
            view_configuration={k: view[k] for k in compute_delta(view, default_view) if k in view},
            transient_view_state=transient,
            freeform_extension=freeform,
            initial_options={k: initial[k] for k in compute_delta(initial, default_initial) if k in initial},
            metadata=metadata,
        )

    def save_profile(self, name: str, store: Any = None) -> ProfileSnapshot:
        """Capture the current state and write it to the profile store.

        Never writes to the live grid. The saved state becomes the new
        baseline, so ``dirty`` is False afterwards.

        Args:
            name: Profile name
            store: Store to write to (defaults to the controller's store)

        Returns:
            The snapshot that was written
        """
        store = store if store is not None else self.store
        metadata = None
        if store is not None:
            existing = store.get(name)
            if isinstance(existing, dict) and isinstance(existing.get('metadata'), dict):
                metadata = ProfileMetadata.from_dict(existing['metadata']).touched()
        snapshot = self.capture_snapshot(metadata)
        if store is not None:
            store.set(name, snapshot.to_dict())
        else:
            logger.warning(f"No profile store configured; profile '{name}' was not persisted")
        self._mark_clean()
        logger.info(f"Saved profile '{name}' ({len(snapshot.view_configuration)} option(s))")
        return snapshot

    def load_profile(self, snapshot: Any) -> LoadResult:
        """Replace the canonical state with a profile layered over engine defaults.

        The options are applied by the next commit (forced redraw); transient
        view state is replayed after the settle delay, and explicit column
        widths are re-asserted after a further delay. Function-valued options
        the controller already holds are kept, since snapshots never carry them.

        Args:
            snapshot: ProfileSnapshot or its serialized dict

        Returns:
            LoadResult that fills in as the commit and replay run
        """
        parsed, warnings = parse_snapshot(snapshot)
        transient = parsed.transient_view_state

        # Function-valued options are never persisted; keep the ones already held
        unpersisted = {key: value for key, value in self._options.items() if callable(value)}

        self._options = layer_bags([
            default_options(),
            unpersisted,
            normalize_options(parsed.initial_options).options,
            normalize_options(transient.grid_options or {}).options,
            normalize_options(parsed.freeform_extension).options,
            normalize_options(parsed.view_configuration).options,
        ])
        self._toolbar = {**self.config.default_toolbar, **parsed.toolbar_state}
        self._pending.clear()

        result = LoadResult(options=self.get_options(), warnings=list(warnings))
        self._full_apply_pending = True
        self._pending_load = (result, transient)
        self._fire_change_callbacks(TOOLBAR)
        self._mark_clean()
        if self._is_attached():
            self._schedule_commit()
        logger.info(f"Loaded profile ({len(parsed.view_configuration)} option(s), "
                    f"{len(transient.captured_facets())} transient facet(s))")
        return result

    def reset_to_defaults(self) -> None:
        """Return options and toolbar to engine defaults (applied on the next tick)."""
        self._options = default_options()
        self._pending.clear()
        self._toolbar = dict(self.config.default_toolbar)
        self._full_apply_pending = True
        self._fire_change_callbacks(TOOLBAR)
        self._update_dirty()
        if self._is_attached():
            self._schedule_commit()

    def construction_options(self) -> Dict[str, Any]:
        """Engine-facing options for constructing a new grid, initialization-only keys included."""
        return {key: to_engine_value(key, value) for key, value in self._options.items()}

    async def wait_idle(self, timeout: float = 5.0) -> bool:
        """Wait until every scheduled commit, refresh and replay has run."""
        return await self.scheduler.wait_idle(timeout)
