"""
Default cell style synthesis from dialog alignment enums.

The settings dialog stores two UI-only enums (``verticalAlign`` and
``horizontalAlign``) inside ``defaultColDef``. The engine never sees them:
at apply time they are turned into a ``cellStyle`` callable, and at persist
time a ``cellStyle`` callable is turned back into the two enums. Synthesized
styles compare equal when their alignments match, so bags holding them can
be compared behaviourally.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from gridsync.schema import ALIGNMENT_KEYS

logger = logging.getLogger(__name__)

VERTICAL_ALIGN_MAP = {
    'top': 'flex-start',
    'start': 'flex-start',
    'middle': 'center',
    'center': 'center',
    'bottom': 'flex-end',
    'end': 'flex-end',
}

HORIZONTAL_ALIGN_MAP = {
    'left': 'flex-start',
    'center': 'center',
    'right': 'flex-end',
}

_ALIGN_ITEMS_TO_VERTICAL = {'flex-start': 'top', 'center': 'middle', 'flex-end': 'bottom'}
_JUSTIFY_TO_HORIZONTAL = {'flex-start': 'left', 'center': 'center', 'flex-end': 'right'}


def _column_type(params: Any) -> Any:
    col_def = params.get('colDef') if isinstance(params, dict) else getattr(params, 'colDef', None)
    if isinstance(col_def, dict):
        return col_def.get('type')
    return getattr(col_def, 'type', None)


class AlignedCellStyle:
    """Cell style callable built from alignment enums.

    Without an explicit horizontal alignment, numeric columns align right and
    everything else aligns left.
    """

    __slots__ = ('vertical_align', 'horizontal_align', '_base_style')

    def __init__(self, vertical_align: Optional[str], horizontal_align: Optional[str]):
        self.vertical_align = vertical_align
        self.horizontal_align = horizontal_align
        self._base_style: Dict[str, str] = {'display': 'flex'}
        if vertical_align in VERTICAL_ALIGN_MAP:
            self._base_style['alignItems'] = VERTICAL_ALIGN_MAP[vertical_align]

    def __call__(self, params: Any) -> Dict[str, str]:
        style = dict(self._base_style)
        if self.horizontal_align:
            style['justifyContent'] = HORIZONTAL_ALIGN_MAP.get(self.horizontal_align, 'flex-start')
        else:
            col_type = _column_type(params)
            is_numeric = col_type == 'numericColumn' or (
                isinstance(col_type, (list, tuple)) and 'numericColumn' in col_type
            )
            style['justifyContent'] = 'flex-end' if is_numeric else 'flex-start'
        return style

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AlignedCellStyle):
            return NotImplemented
        return (self.vertical_align, self.horizontal_align) == (other.vertical_align, other.horizontal_align)

    def __hash__(self) -> int:
        return hash((self.vertical_align, self.horizontal_align))

    def __repr__(self) -> str:
        return f"AlignedCellStyle(vertical_align={self.vertical_align!r}, horizontal_align={self.horizontal_align!r})"


_style_cache: Dict[Tuple[Optional[str], Optional[str]], AlignedCellStyle] = {}


def make_cell_style(vertical_align: Optional[str], horizontal_align: Optional[str]) -> AlignedCellStyle:
    """Get the (cached) style callable for an alignment pair."""
    key = (vertical_align, horizontal_align)
    style = _style_cache.get(key)
    if style is None:
        style = AlignedCellStyle(vertical_align, horizontal_align)
        _style_cache[key] = style
    return style


def describe_cell_style(style: Any) -> Tuple[Optional[str], Optional[str]]:
    """Recover ``(verticalAlign, horizontalAlign)`` from a cell style.

    Synthesized styles report their inputs directly. Any other callable is
    called once with a non-numeric column; static style dicts are read as-is.
    """
    if isinstance(style, AlignedCellStyle):
        return style.vertical_align, style.horizontal_align
    if callable(style):
        try:
            result = style({'colDef': {'type': None}})
        except Exception as e:
            logger.debug(f"Could not inspect cellStyle callable {style!r}: {e}")
            return None, None
    else:
        result = style
    if not isinstance(result, dict):
        return None, None
    align_items = result.get('alignItems', result.get('align-items'))
    justify = result.get('justifyContent', result.get('justify-content'))
    return _ALIGN_ITEMS_TO_VERTICAL.get(align_items), _JUSTIFY_TO_HORIZONTAL.get(justify)


def column_defaults_for_engine(col_def: Dict[str, Any]) -> Dict[str, Any]:
    """Swap the alignment enums in a defaultColDef for a synthesized ``cellStyle``."""
    result = {k: v for k, v in col_def.items() if k not in ALIGNMENT_KEYS}
    vertical = col_def.get('verticalAlign')
    horizontal = col_def.get('horizontalAlign')
    if vertical or horizontal:
        result['cellStyle'] = make_cell_style(vertical, horizontal)
    return result


def column_defaults_for_storage(col_def: Dict[str, Any]) -> Dict[str, Any]:
    """Swap a callable ``cellStyle`` for the alignment enums it encodes."""
    result = dict(col_def)
    style = result.pop('cellStyle', None)
    if style is None:
        return result
    if not callable(style):
        result['cellStyle'] = style
        return result
    vertical, horizontal = describe_cell_style(style)
    if vertical and 'verticalAlign' not in result:
        result['verticalAlign'] = vertical
    if horizontal and 'horizontalAlign' not in result:
        result['horizontalAlign'] = horizontal
    return result
