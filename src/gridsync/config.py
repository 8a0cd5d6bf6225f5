"""
Framework configuration for gridsync.

Timing values are heuristic settle waits, not correctness guarantees. Tests
install a fast configuration through ``set_sync_config``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict

DEFAULT_FONT_FAMILY = 'monospace'
DEFAULT_FONT_SIZE = 12
DEFAULT_SPACING = 6
MIN_FONT_SIZE = 6


def _default_toolbar() -> Dict[str, Any]:
    return {
        'fontFamily': DEFAULT_FONT_FAMILY,
        'fontSize': DEFAULT_FONT_SIZE,
        'spacing': DEFAULT_SPACING,
    }


@dataclass(frozen=True)
class SyncConfig:
    """Timing and behaviour knobs shared by the controller and applier."""
    frame_delay: float = 0.016  # stand-in for one animation frame
    settle_delay: float = 0.02  # wait before replaying transient view state
    width_reassert_delay: float = 0.2  # wait before re-applying explicit widths
    use_transactions: bool = True
    default_toolbar: Dict[str, Any] = field(default_factory=_default_toolbar)
    snapshot_version: str = '1.0'


_sync_config: SyncConfig = SyncConfig()


def set_sync_config(config: SyncConfig) -> None:
    """Install the process-wide default configuration."""
    global _sync_config
    _sync_config = config


def get_sync_config() -> SyncConfig:
    """Get the process-wide default configuration."""
    return _sync_config
