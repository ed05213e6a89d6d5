#!/usr/bin/env python3
"""
kioskprint Template Catalog
Built-in photo collage templates.

Each template consists of:
- a grid shape (columns x rows) laid over the print canvas
- 1, 2 or 4 numbered slots (1-based), each bound to one grid cell
- a display name and description for listings

The catalog is built once at import time and is read-only afterwards.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Tuple
import logging

from .errors import TemplateNotFound

logger = logging.getLogger(__name__)

ALLOWED_SLOT_COUNTS = (1, 2, 4)


@dataclass(frozen=True)
class Template:
    """A collage layout: which grid cell each numbered slot occupies"""
    template_id: str
    display_name: str
    slot_count: int
    grid_cols: int
    grid_rows: int
    slot_positions: Mapping[int, Tuple[int, int]]  # slot -> (row, col)
    description: str = ""

    def position(self, slot: int) -> Tuple[int, int]:
        return self.slot_positions[slot]

    @property
    def slots(self) -> Tuple[int, ...]:
        return tuple(range(1, self.slot_count + 1))

    def to_dict(self) -> Dict:
        """Convert template to dictionary for JSON/YAML serialization"""
        return {
            'template_id': self.template_id,
            'display_name': self.display_name,
            'slot_count': self.slot_count,
            'grid': f"{self.grid_cols}x{self.grid_rows}",
            'slot_positions': {s: list(rc) for s, rc in sorted(self.slot_positions.items())},
            'description': self.description,
        }

    def __str__(self) -> str:
        """String representation for listings"""
        if self.description:
            return f"{self.display_name} - {self.description}"
        return self.display_name


def make_template(
    template_id: str,
    display_name: str,
    grid_cols: int,
    grid_rows: int,
    slot_positions: Mapping[int, Tuple[int, int]],
    description: str = "",
) -> Template:
    """
    Validate a template definition and freeze it.

    Raises ValueError when the slots don't cover 1..slot_count exactly once,
    or two slots share a cell, or a cell lies outside the grid.
    """
    if grid_cols <= 0 or grid_rows <= 0:
        raise ValueError(f"Template '{template_id}': grid must have positive dimensions")

    slot_count = len(slot_positions)
    if slot_count not in ALLOWED_SLOT_COUNTS:
        raise ValueError(
            f"Template '{template_id}': slot count {slot_count} not in {ALLOWED_SLOT_COUNTS}"
        )
    expected = set(range(1, slot_count + 1))
    if set(slot_positions) != expected:
        raise ValueError(
            f"Template '{template_id}': slots must be exactly {sorted(expected)}, "
            f"got {sorted(slot_positions)}"
        )

    seen = set()
    for slot, (row, col) in slot_positions.items():
        if not (0 <= row < grid_rows and 0 <= col < grid_cols):
            raise ValueError(
                f"Template '{template_id}': slot {slot} at ({row}, {col}) is outside "
                f"the {grid_cols}x{grid_rows} grid"
            )
        if (row, col) in seen:
            raise ValueError(f"Template '{template_id}': cell ({row}, {col}) used twice")
        seen.add((row, col))

    frozen = MappingProxyType({int(s): (int(r), int(c)) for s, (r, c) in sorted(slot_positions.items())})
    return Template(
        template_id=template_id,
        display_name=display_name,
        slot_count=slot_count,
        grid_cols=int(grid_cols),
        grid_rows=int(grid_rows),
        slot_positions=frozen,
        description=description,
    )


BUILTIN_TEMPLATES: Tuple[Template, ...] = (
    make_template(
        "single", "Single photo",
        grid_cols=1, grid_rows=1,
        slot_positions={1: (0, 0)},
        description="One photo filling the page",
    ),
    make_template(
        "double_vertical", "Two photos, stacked",
        grid_cols=1, grid_rows=2,
        slot_positions={1: (0, 0), 2: (1, 0)},
        description="Two photos, one above the other",
    ),
    make_template(
        "quad_grid", "Four photos, 2x2 grid",
        grid_cols=2, grid_rows=2,
        slot_positions={1: (0, 0), 2: (0, 1), 3: (1, 0), 4: (1, 1)},
        description="Four photos in a square grid",
    ),
)


@dataclass(frozen=True)
class TemplateCatalog:
    """Ordered, read-only registry of collage templates"""
    _by_id: Mapping[str, Template] = field(repr=False)

    @classmethod
    def from_templates(cls, templates: Iterable[Template]) -> "TemplateCatalog":
        by_id: Dict[str, Template] = {}
        for t in templates:
            if t.template_id in by_id:
                raise ValueError(f"Duplicate template id: {t.template_id}")
            by_id[t.template_id] = t
        logger.debug(f"Template catalog loaded: {list(by_id)}")
        return cls(MappingProxyType(by_id))

    def list_templates(self) -> List[Template]:
        return list(self._by_id.values())

    def get_template(self, template_id: str) -> Template:
        try:
            return self._by_id[template_id]
        except KeyError:
            raise TemplateNotFound(template_id) from None

    def template_ids(self) -> List[str]:
        return list(self._by_id)

    def __contains__(self, template_id: object) -> bool:
        return template_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)


DEFAULT_CATALOG = TemplateCatalog.from_templates(BUILTIN_TEMPLATES)


def list_templates() -> List[Template]:
    return DEFAULT_CATALOG.list_templates()


def get_template(template_id: str) -> Template:
    return DEFAULT_CATALOG.get_template(template_id)
