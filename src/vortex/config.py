"""Markup conventions: attribute prefix and zone marker."""

from __future__ import annotations

from dataclasses import dataclass

# Scan order matters: `if` and `for` detach elements, so the kinds that only
# touch an element in place run first.
DIRECTIVE_KINDS: tuple[str, ...] = ("bind", "show", "if", "for", "model", "on")


@dataclass(frozen=True)
class EngineConfig:
    prefix: str = "vx-"
    zone: str = "zone"

    def attribute(self, kind: str) -> str:
        """Attribute name carrying the given directive kind, e.g. ``vx-bind``."""
        return f"{self.prefix}{kind}"

    @property
    def zone_attribute(self) -> str:
        return f"{self.prefix}{self.zone}"

    @property
    def zone_selector(self) -> str:
        return f"[{self.zone_attribute}]"

    @property
    def attributes(self) -> dict[str, str]:
        return {kind: self.attribute(kind) for kind in DIRECTIVE_KINDS}
