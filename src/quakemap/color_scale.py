"""Continuous color scale shared by a marker layer and its legend."""
from __future__ import annotations

import dataclasses
import math
from typing import Any, Iterable, Sequence, Tuple, Union

from branca.colormap import LinearColormap, linear

from quakemap.errors import RenderError
from quakemap.models import field_value
from quakemap.settings import NA_COLOR, PALETTE

Palette = Union[str, Sequence[Any]]


def palette_colors(palette: Palette) -> Tuple[Any, ...]:
    """Resolve a ColorBrewer name (``'OrRd'``) or an explicit color list."""
    if isinstance(palette, str):
        scheme = getattr(linear, f"{palette}_09", None)
        if scheme is None:
            scheme = getattr(linear, palette, None)
        if scheme is None:
            raise RenderError(f"Unknown color palette: {palette!r}")
        return tuple(scheme.colors)
    colors = tuple(palette)
    if len(colors) < 2:
        raise RenderError('A color palette needs at least two colors')
    return colors


@dataclasses.dataclass(frozen=True)
class ColorScale:
    """Linear map from ``[vmin, vmax]`` of one record field onto a sequential palette.

    Build it once with `from_records` and pass the same instance to the point
    layer and the legend so both show identical colors.
    """
    field: str
    vmin: float
    vmax: float
    colors: Tuple[Any, ...]
    na_color: str = NA_COLOR
    colormap: LinearColormap = dataclasses.field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        # A single distinct value still needs a non-empty range to draw a legend.
        vmax = self.vmax if self.vmax > self.vmin else self.vmin + 1.0
        object.__setattr__(self, 'colormap', LinearColormap(list(self.colors), vmin=self.vmin, vmax=vmax))

    @classmethod
    def from_records(cls, records: Iterable[Any], field: str, palette: Palette = PALETTE) -> 'ColorScale':
        values = []
        for record in records:
            try:
                value = field_value(record, field)
            except AttributeError as exc:
                raise RenderError(f"Records have no field {field!r} to color by") from exc
            try:
                value = float(value)
            except (TypeError, ValueError) as exc:
                raise RenderError(f"Field {field!r} is not numeric: {value!r}") from exc
            if not math.isnan(value):
                values.append(value)
        if not values:
            raise RenderError(f"No numeric values of {field!r} to build a color scale from")
        return cls(field=field, vmin=min(values), vmax=max(values), colors=palette_colors(palette))

    def color(self, value: Any) -> str:
        """Hex color for ``value``; NaN and missing values get ``na_color``."""
        if value is None:
            return self.na_color
        value = float(value)
        if math.isnan(value):
            return self.na_color
        return self.colormap.rgb_hex_str(value)

    def color_for(self, record: Any) -> str:
        try:
            value = field_value(record, self.field)
        except AttributeError as exc:
            raise RenderError(f"Record has no field {self.field!r} for the color scale") from exc
        return self.color(value)

    def endpoints(self) -> Tuple[str, str]:
        return self.color(self.vmin), self.color(self.colormap.vmax)

    def legend(self, title: str) -> LinearColormap:
        """A fresh branca colormap over the same colors and domain, captioned ``title``."""
        return LinearColormap(
            list(self.colors), vmin=self.colormap.vmin, vmax=self.colormap.vmax, caption=title
        )
