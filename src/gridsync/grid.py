"""
Boundary to the live grid engine.

The engine owns rendering, virtualization and value validation. gridsync only
talks to it through the methods below. Methods under "optional capabilities"
may be missing on a given engine build and are feature-detected with
``getattr``; a missing capability simply omits the facet that needs it.
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class GridColumn(Protocol):
    """Column handle returned by the optional ``get_column`` capability."""

    def get_actual_width(self) -> Optional[float]: ...
    def get_flex(self) -> Optional[float]: ...
    def is_visible(self) -> bool: ...
    def get_agg_func(self) -> Any: ...


@runtime_checkable
class GridEngine(Protocol):
    """Live grid instance (snake_case mirror of the engine API)."""

    # Lifecycle
    def is_alive(self) -> bool: ...

    # Options
    def get_option(self, key: str) -> Any: ...
    def set_option(self, key: str, value: Any) -> None: ...
    def update_options(self, options: Dict[str, Any]) -> None: ...

    # Structural layout
    def get_column_state(self) -> List[Dict[str, Any]]: ...
    def apply_column_state(self, state: List[Dict[str, Any]], apply_order: bool = True,
                           default_state: Optional[Dict[str, Any]] = None) -> None: ...
    def set_column_widths(self, widths: Dict[str, float]) -> None: ...

    # Filters
    def get_filter_model(self) -> Dict[str, Any]: ...
    def set_filter_model(self, model: Optional[Dict[str, Any]]) -> None: ...

    # Selection
    def get_selected_row_ids(self) -> List[str]: ...
    def select_rows(self, row_ids: List[str]) -> None: ...

    # Refresh
    def refresh_header(self) -> None: ...
    def refresh_cells(self, force: bool = False, suppress_flash: bool = True) -> None: ...


# Optional capabilities, feature-detected by name.
OPTIONAL_CAPABILITIES = (
    'start_update_transaction',
    'complete_update_transaction',
    'get_column',
    'get_column_group_state',
    'set_column_group_state',
    'get_advanced_filter_model',
    'set_advanced_filter_model',
    'get_row_group_columns',
    'get_expanded_group_keys',
    'set_expanded_group_keys',
    'get_server_side_selection_state',
    'set_server_side_selection_state',
    'get_cell_ranges',
    'clear_cell_ranges',
    'add_cell_range',
    'is_side_bar_visible',
    'get_opened_tool_panel',
    'open_tool_panel',
    'close_tool_panel',
    'pagination_get_page_size',
    'pagination_get_current_page',
    'pagination_get_total_pages',
    'pagination_go_to_page',
    'get_scroll_position',
    'set_scroll_position',
    'get_focused_cell',
    'set_focused_cell',
)


def has_capability(grid: Any, name: str) -> bool:
    """True when the engine exposes the named optional method."""
    return callable(getattr(grid, name, None))


def is_grid_alive(grid: Any) -> bool:
    """Liveness check tolerant of engines without ``is_alive``."""
    if grid is None:
        return False
    is_alive = getattr(grid, 'is_alive', None)
    if is_alive is None:
        return True
    try:
        return bool(is_alive())
    except Exception:
        return False
