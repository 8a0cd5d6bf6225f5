"""
Batch applier: writes a canonical option bag onto a live grid.

Application order:

1. Partition keys by their schema category. Unknown and initialization-only
   keys are recorded in ``skipped`` and never reach the engine.
2. SPECIAL keys, synchronously and first (later batches may depend on their
   side effects). ``defaultColDef`` gets its ``cellStyle`` synthesized here.
3. NO_REFRESH keys, immediately.
4. The remaining categories as batches in fixed order, each inside a
   begin/end update transaction when the engine supports one.
5. Exactly one deferred refresh (header, cells or both) on the next frame.

Values the engine already holds (structurally) are not set again, so applying
the same bag twice changes nothing the second time.
"""

from dataclasses import dataclass, field
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from gridsync.aliases import cell_selection_for_engine, row_selection_for_engine
from gridsync.cell_style import column_defaults_for_engine
from gridsync.comparison import structurally_equal
from gridsync.config import SyncConfig, get_sync_config
from gridsync.errors import OptionError
from gridsync.grid import has_capability, is_grid_alive
from gridsync.scheduler import TaskScheduler
from gridsync.schema import ApplyCategory, get_spec

logger = logging.getLogger(__name__)

# Batches after SPECIAL and NO_REFRESH, in application order.
BATCH_ORDER: Tuple[Tuple[ApplyCategory, ...], ...] = (
    (ApplyCategory.LAYOUT, ApplyCategory.COLUMNS),
    (ApplyCategory.DATA, ApplyCategory.SELECTION),
    (ApplyCategory.GROUPING,),
    (ApplyCategory.EDITING,),
    (ApplyCategory.OTHER,),
)

HEADER_REFRESH_CATEGORIES = frozenset({ApplyCategory.LAYOUT, ApplyCategory.COLUMNS})
CELL_REFRESH_CATEGORIES = frozenset({
    ApplyCategory.DATA,
    ApplyCategory.SELECTION,
    ApplyCategory.GROUPING,
    ApplyCategory.EDITING,
})

# Special keys pushed through update_options instead of set_option.
_BULK_UPDATE_KEYS = frozenset({'sideBar', 'statusBar'})

SKIP_UNKNOWN = 'unknown option'
SKIP_INIT_ONLY = 'initialization-only'
SKIP_STALE = 'stale instance'

_MISSING = object()


@dataclass
class ApplyResult:
    """Outcome of one ``BatchApplier.apply`` call.

    ``applied`` lists keys actually written, ``unchanged`` keys whose value the
    engine already held, ``skipped`` maps never-written keys to the reason and
    ``errors`` holds per-key engine failures.
    """
    applied: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    skipped: Dict[str, str] = field(default_factory=dict)
    errors: List[OptionError] = field(default_factory=list)
    refresh: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.errors


def canonical_side_bar(value: Any) -> Any:
    """``False``, empty string and ``"none"`` all mean the side bar is off."""
    if value is None or value is False or value == '' or value == 'none':
        return False
    return value


def canonical_status_bar(value: Any) -> Any:
    """A status bar with no panels is no status bar (``None`` to the engine)."""
    if not value:
        return None
    if isinstance(value, dict) and not value.get('statusPanels'):
        return None
    return value


_ENGINE_FORMS: Dict[str, Callable[[Any], Any]] = {
    'defaultColDef': lambda v: column_defaults_for_engine(v) if isinstance(v, dict) else v,
    'sideBar': canonical_side_bar,
    'statusBar': canonical_status_bar,
    'rowSelection': row_selection_for_engine,
    'cellSelection': cell_selection_for_engine,
}


def to_engine_value(key: str, value: Any) -> Any:
    """Engine-facing form of one canonical option."""
    converter = _ENGINE_FORMS.get(key)
    return converter(value) if converter else value


def partition_options(
    bag: Mapping[str, Any],
) -> Tuple[Dict[ApplyCategory, Dict[str, Any]], Dict[str, str]]:
    """Split a canonical bag by apply category.

    Returns:
        (partitions, skipped) where partitions holds every category (possibly
        empty) and skipped maps unknown and initialization-only keys to why.
    """
    partitions: Dict[ApplyCategory, Dict[str, Any]] = {category: {} for category in ApplyCategory}
    skipped: Dict[str, str] = {}
    for key, value in bag.items():
        spec = get_spec(key)
        if spec is None:
            skipped[key] = SKIP_UNKNOWN
        elif spec.init_only:
            skipped[key] = SKIP_INIT_ONLY
        else:
            partitions[spec.category][key] = value
    return partitions, skipped


class BatchApplier:
    """Applies canonical option bags to a live grid in dependency order.

    Example:
        >>> applier = BatchApplier(TaskScheduler())
        >>> result = applier.apply(grid, {'rowHeight': 28, 'sideBar': 'columns'})
        >>> result.applied
        ['sideBar', 'rowHeight']
    """

    def __init__(self, scheduler: Optional[TaskScheduler] = None, config: Optional[SyncConfig] = None):
        self.config = config or get_sync_config()
        self.scheduler = scheduler or TaskScheduler(frame_delay=self.config.frame_delay)

    def apply(self, grid: Any, bag: Mapping[str, Any], force_refresh: bool = False,
              guard: Optional[Callable[[], bool]] = None) -> ApplyResult:
        """Apply a canonical bag (full or delta).

        Args:
            grid: Live grid engine instance
            bag: Canonical option bag
            force_refresh: Schedule a forced header and cell redraw (initial load)
            guard: Extra liveness check for the deferred refresh

        Returns:
            ApplyResult; never raises for option failures
        """
        result = ApplyResult()
        if not is_grid_alive(grid):
            logger.debug(f"Skipping apply of {len(bag)} option(s): grid is not alive")
            result.skipped.update({key: SKIP_STALE for key in bag})
            return result

        partitions, skipped = partition_options(bag)
        result.skipped.update(skipped)
        for key, reason in skipped.items():
            if reason == SKIP_INIT_ONLY:
                logger.debug(f"Skipping initialization-only option '{key}'")
            else:
                logger.debug(f"Skipping unknown option '{key}'")

        touched = set()

        for key, value in partitions[ApplyCategory.SPECIAL].items():
            if self._apply_special(grid, key, value, result):
                touched.add(ApplyCategory.SPECIAL)

        for key, value in partitions[ApplyCategory.NO_REFRESH].items():
            self._set_option(grid, key, value, ApplyCategory.NO_REFRESH, result)

        for categories in BATCH_ORDER:
            batch = [
                (category, key, value)
                for category in categories
                for key, value in partitions[category].items()
            ]
            if not batch:
                continue
            for category in self._apply_batch(grid, batch, result):
                touched.add(category)

        self._schedule_refresh(grid, touched, force_refresh, guard, result)
        logger.debug(
            f"Applied {len(result.applied)} option(s), {len(result.unchanged)} unchanged, "
            f"{len(result.skipped)} skipped, {len(result.errors)} error(s)"
        )
        return result

    # ========== WRITES ==========

    def _apply_special(self, grid: Any, key: str, value: Any, result: ApplyResult) -> bool:
        """Multi-step handling for keys that cannot be set verbatim."""
        if key not in _BULK_UPDATE_KEYS:
            return self._set_option(grid, key, value, ApplyCategory.SPECIAL, result)

        engine_value = to_engine_value(key, value)
        if self._engine_holds(grid, key, engine_value):
            result.unchanged.append(key)
            return False
        try:
            grid.update_options({key: engine_value})
        except Exception as e:
            logger.warning(f"Failed to apply {key}: {e}")
            result.errors.append(OptionError(key, ApplyCategory.SPECIAL.value, str(e)))
            return False
        result.applied.append(key)
        return True

    def _apply_batch(self, grid: Any, batch: List[Tuple[ApplyCategory, str, Any]],
                     result: ApplyResult) -> List[ApplyCategory]:
        """Set every key of one batch inside an update transaction."""
        use_transaction = (
            self.config.use_transactions
            and has_capability(grid, 'start_update_transaction')
            and has_capability(grid, 'complete_update_transaction')
        )
        touched: List[ApplyCategory] = []
        if use_transaction:
            grid.start_update_transaction()
        try:
            for category, key, value in batch:
                if self._set_option(grid, key, value, category, result):
                    touched.append(category)
        finally:
            if use_transaction:
                grid.complete_update_transaction()
        return touched

    def _engine_holds(self, grid: Any, key: str, engine_value: Any) -> bool:
        try:
            current = grid.get_option(key)
        except Exception:
            current = _MISSING
        return current is not _MISSING and structurally_equal(current, engine_value)

    def _set_option(self, grid: Any, key: str, value: Any, category: ApplyCategory,
                    result: ApplyResult) -> bool:
        """Set one option. Returns True when the engine was written."""
        engine_value = to_engine_value(key, value)
        if self._engine_holds(grid, key, engine_value):
            result.unchanged.append(key)
            return False
        try:
            grid.set_option(key, engine_value)
        except Exception as e:
            logger.warning(f"Failed to apply {key}: {e}")
            result.errors.append(OptionError(key, category.value, str(e)))
            return False
        result.applied.append(key)
        return True

    # ========== REFRESH ==========

    def _schedule_refresh(self, grid: Any, touched: set, force: bool,
                          guard: Optional[Callable[[], bool]], result: ApplyResult) -> None:
        header = force or bool(touched & HEADER_REFRESH_CATEGORIES) or ApplyCategory.SPECIAL in touched
        cells = force or bool(touched & CELL_REFRESH_CATEGORIES) or ApplyCategory.SPECIAL in touched
        if not (header or cells):
            return
        result.refresh = 'both' if header and cells else 'header' if header else 'cells'

        def _refresh() -> None:
            if header:
                grid.refresh_header()
            if cells:
                grid.refresh_cells(force=force, suppress_flash=not force)

        def _alive() -> bool:
            return is_grid_alive(grid) and (guard is None or guard())

        self.scheduler.next_frame(_refresh, label=f"refresh-{result.refresh}", guard=_alive)
