"""Quality tiers: one configuration value threaded into every generator."""

from dataclasses import dataclass, fields
from enum import Enum


class ConfigurationError(ValueError):
    """Raised for an unknown capability flag or an invalid tier config."""


class CapabilityTier(str, Enum):
    LOW = "low"
    MOBILE = "mobile"
    DESKTOP = "desktop"


@dataclass(frozen=True)
class TierConfig:
    # Outline / extrusion
    curve_segments: int = 8  # samples per Bezier segment
    extrude_bevel: bool = True
    bevel_segments: int = 2

    # Petal rings (inner -> outer), Fibonacci counts like a real head
    ring_radii: tuple = (0.33, 0.40, 0.48)
    instance_counts_per_ring: tuple = (13, 21, 34)

    # Stem tube
    stem_tube_segments: int = 24
    stem_radial_segments: int = 8

    # Other organs
    sepal_count: int = 13
    leaf_count: int = 3
    leaf_serrations: int = 14
    disc_segments: int = 32

    enable_secondary_detail: bool = True  # lateral wave, stem irregularity, leaf veins

    def __post_init__(self):
        # Lists are accepted for convenience but stored immutably
        object.__setattr__(self, "ring_radii", tuple(self.ring_radii))
        object.__setattr__(
            self, "instance_counts_per_ring", tuple(self.instance_counts_per_ring)
        )
        self.validate()

    @property
    def ring_count(self) -> int:
        return len(self.instance_counts_per_ring)

    @property
    def petal_count(self) -> int:
        return sum(self.instance_counts_per_ring)

    def validate(self):
        """Reject configurations that no generator can honour."""
        if self.curve_segments < 1:
            raise ConfigurationError(f"curve_segments must be >= 1, got {self.curve_segments}")
        if self.extrude_bevel and self.bevel_segments < 1:
            raise ConfigurationError("bevel_segments must be >= 1 when extrude_bevel is set")
        if not self.instance_counts_per_ring:
            raise ConfigurationError("at least one petal ring is required")
        if len(self.ring_radii) != len(self.instance_counts_per_ring):
            raise ConfigurationError(
                f"ring_radii has {len(self.ring_radii)} entries but "
                f"instance_counts_per_ring has {len(self.instance_counts_per_ring)}"
            )
        for ring, count in enumerate(self.instance_counts_per_ring):
            if count < 1:
                raise ConfigurationError(f"ring {ring} has instance count {count}; must be >= 1")
        for ring, radius in enumerate(self.ring_radii):
            if not radius > 0:
                raise ConfigurationError(f"ring {ring} has radius {radius}; must be > 0")
        if self.stem_tube_segments < 1:
            raise ConfigurationError(f"stem_tube_segments must be >= 1, got {self.stem_tube_segments}")
        if self.stem_radial_segments < 3:
            raise ConfigurationError(
                f"stem_radial_segments must be >= 3, got {self.stem_radial_segments}"
            )
        if self.disc_segments < 3:
            raise ConfigurationError(f"disc_segments must be >= 3, got {self.disc_segments}")
        for name in ("sepal_count", "leaf_count", "leaf_serrations"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be >= 0, got {getattr(self, name)}")

    def as_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class MobileTierConfig(TierConfig):
    """Constrained devices: no bevel, two rings, lighter stem."""
    curve_segments: int = 4
    extrude_bevel: bool = False
    ring_radii: tuple = (0.33, 0.42)
    instance_counts_per_ring: tuple = (13, 21)
    stem_tube_segments: int = 16
    stem_radial_segments: int = 6
    sepal_count: int = 8
    leaf_count: int = 3
    leaf_serrations: int = 8
    disc_segments: int = 24
    enable_secondary_detail: bool = False


@dataclass(frozen=True)
class LowTierConfig(TierConfig):
    """Low-end devices: single ring, minimal segments."""
    curve_segments: int = 3
    extrude_bevel: bool = False
    ring_radii: tuple = (0.36,)
    instance_counts_per_ring: tuple = (13,)
    stem_tube_segments: int = 10
    stem_radial_segments: int = 5
    sepal_count: int = 5
    leaf_count: int = 2
    leaf_serrations: int = 0
    disc_segments: int = 16
    enable_secondary_detail: bool = False


_TIERS = {
    CapabilityTier.LOW: LowTierConfig,
    CapabilityTier.MOBILE: MobileTierConfig,
    CapabilityTier.DESKTOP: TierConfig,
}


def select_tier(capability) -> TierConfig:
    """Map a capability flag (enum member or its string value) to a TierConfig."""
    if isinstance(capability, str):
        capability = capability.strip().lower()
    try:
        tier = CapabilityTier(capability)
    except ValueError:
        choices = ", ".join(t.value for t in CapabilityTier)
        raise ConfigurationError(
            f"unknown capability tier {capability!r}; expected one of: {choices}"
        ) from None
    return _TIERS[tier]()
