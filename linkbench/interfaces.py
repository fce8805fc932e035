"""
Interconnect classification from measured copy bandwidth.

Maps a bandwidth figure to the most plausible physical link using a static
reference table of theoretical link speeds.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence


@dataclass(frozen=True)
class InterfaceProfile:
    """A known host-to-device link and its theoretical bandwidth."""

    name: str
    bandwidth_gbps: float
    description: str


INTERFACE_PROFILES: tuple[InterfaceProfile, ...] = (
    # PCIe 3.0
    InterfaceProfile("PCIe 3.0 x1", 0.985, "Single lane PCIe Gen 3"),
    InterfaceProfile("PCIe 3.0 x4", 3.94, "Common for M.2 SSDs, some GPUs"),
    InterfaceProfile("PCIe 3.0 x8", 7.88, "Older GPUs, some workstation cards"),
    InterfaceProfile("PCIe 3.0 x16", 15.75, "Standard GPU slot (older platforms)"),
    # PCIe 4.0
    InterfaceProfile("PCIe 4.0 x1", 1.97, "Single lane PCIe Gen 4"),
    InterfaceProfile("PCIe 4.0 x4", 7.88, "Modern M.2 SSDs, OCuLink Gen 4"),
    InterfaceProfile("PCIe 4.0 x8", 15.75, "Some modern GPUs in x8 mode"),
    InterfaceProfile("PCIe 4.0 x16", 31.5, "Modern GPU slot (AMD Ryzen 3000+, Intel 11th gen+)"),
    # PCIe 5.0
    InterfaceProfile("PCIe 5.0 x1", 3.94, "Single lane PCIe Gen 5"),
    InterfaceProfile("PCIe 5.0 x4", 15.75, "Next-gen M.2 SSDs, OCuLink Gen 5"),
    InterfaceProfile("PCIe 5.0 x8", 31.5, "High-end GPUs in x8 mode"),
    InterfaceProfile("PCIe 5.0 x16", 63.0, "Cutting-edge GPU slot (AMD Ryzen 7000+, Intel 12th gen+)"),
    # Thunderbolt
    InterfaceProfile("Thunderbolt 3", 2.75, "40 Gbps - Common eGPU connection"),
    InterfaceProfile("Thunderbolt 4", 2.75, "40 Gbps - Same speed as TB3, better specs"),
    InterfaceProfile("Thunderbolt 5", 6.0, "80 Gbps bidirectional - Latest standard"),
    InterfaceProfile("TB5 Asymmetric", 12.0, "120 Gbps download / 40 Gbps upload"),
    # USB
    InterfaceProfile("USB 3.2 Gen 2", 1.25, "10 Gbps - USB-C"),
    InterfaceProfile("USB4 Gen 3x2", 4.8, "40 Gbps - USB4"),
    # Other
    InterfaceProfile("OCuLink PCIe 3.0", 3.94, "External PCIe cable (Gen 3 x4)"),
    InterfaceProfile("OCuLink PCIe 4.0", 7.88, "External PCIe cable (Gen 4 x4)"),
)

# Grouping used when printing the reference chart.
PROFILE_FAMILIES: dict[str, tuple[str, ...]] = {
    "PCIe 3.0 (2010-2016 platforms)": ("PCIe 3.0 x1", "PCIe 3.0 x4", "PCIe 3.0 x8", "PCIe 3.0 x16"),
    "PCIe 4.0 (2019+ AMD, 2021+ Intel)": ("PCIe 4.0 x1", "PCIe 4.0 x4", "PCIe 4.0 x8", "PCIe 4.0 x16"),
    "PCIe 5.0 (2022+ AMD, 2022+ Intel)": ("PCIe 5.0 x1", "PCIe 5.0 x4", "PCIe 5.0 x8", "PCIe 5.0 x16"),
    "Thunderbolt (eGPU connections)": ("Thunderbolt 3", "Thunderbolt 4", "Thunderbolt 5", "TB5 Asymmetric"),
    "Other connections": ("USB 3.2 Gen 2", "USB4 Gen 3x2", "OCuLink PCIe 3.0", "OCuLink PCIe 4.0"),
}


@dataclass(frozen=True)
class RealisticRange:
    """Window of percent-of-theoretical considered plausible for a real link."""

    min_percent: float = 60.0
    max_percent: float = 95.0

    def __contains__(self, percent: float) -> bool:
        return self.min_percent <= percent <= self.max_percent


DEFAULT_REALISTIC_RANGE = RealisticRange()

# Upload share of the combined link estimate (0.5 is the midpoint).
DEFAULT_UPLOAD_WEIGHT = 0.5


@dataclass(frozen=True)
class ClassificationResult:
    """Best-matching profile for one bandwidth figure."""

    profile: InterfaceProfile | None
    percent_of_theoretical: float
    is_realistic: bool
    measured_gbps: float = 0.0

    def verdict(self, realistic_range: RealisticRange = DEFAULT_REALISTIC_RANGE) -> str:
        """One of "typical", "high" or "low"."""
        if self.is_realistic:
            return "typical"
        if self.percent_of_theoretical > realistic_range.max_percent:
            return "high"
        return "low"

    def to_dict(self) -> dict[str, Any]:
        return {
            "profile": self.profile.name if self.profile else None,
            "theoretical_gbps": self.profile.bandwidth_gbps if self.profile else None,
            "measured_gbps": self.measured_gbps,
            "percent_of_theoretical": self.percent_of_theoretical,
            "is_realistic": self.is_realistic,
        }


@dataclass(frozen=True)
class LinkClassification:
    """Classification of both copy directions plus the combined estimate."""

    upload: ClassificationResult
    download: ClassificationResult
    primary: ClassificationResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "upload": self.upload.to_dict(),
            "download": self.download.to_dict(),
            "likely_connection": self.primary.to_dict(),
        }


def _nearest(measured_gbps: float, candidates: Sequence[InterfaceProfile]) -> InterfaceProfile | None:
    """Closest profile by absolute difference; first in table order wins ties."""
    best: InterfaceProfile | None = None
    best_diff = float("inf")
    for profile in candidates:
        diff = abs(profile.bandwidth_gbps - measured_gbps)
        if diff < best_diff:
            best, best_diff = profile, diff
    return best


def analyze_bandwidth(
    measured_gbps: float,
    profiles: Sequence[InterfaceProfile] = INTERFACE_PROFILES,
    realistic_range: RealisticRange = DEFAULT_REALISTIC_RANGE,
) -> ClassificationResult:
    """Match a measured bandwidth to the most plausible interface.

    Profiles whose realistic range contains the measurement are preferred.
    When none does, the globally nearest profile is returned with
    ``is_realistic=False``. Never raises.
    """
    realistic = [
        p for p in profiles
        if (measured_gbps / p.bandwidth_gbps) * 100.0 in realistic_range
    ]
    match = _nearest(measured_gbps, realistic)
    is_realistic = match is not None
    if match is None:
        match = _nearest(measured_gbps, profiles)

    if match is None:
        return ClassificationResult(
            profile=None,
            percent_of_theoretical=0.0,
            is_realistic=False,
            measured_gbps=measured_gbps,
        )

    return ClassificationResult(
        profile=match,
        percent_of_theoretical=(measured_gbps / match.bandwidth_gbps) * 100.0,
        is_realistic=is_realistic,
        measured_gbps=measured_gbps,
    )


def classify_link(
    upload_gbps: float,
    download_gbps: float,
    upload_weight: float = DEFAULT_UPLOAD_WEIGHT,
    profiles: Sequence[InterfaceProfile] = INTERFACE_PROFILES,
    realistic_range: RealisticRange = DEFAULT_REALISTIC_RANGE,
) -> LinkClassification:
    """Classify both directions and the combined (midpoint by default) figure."""
    combined = upload_gbps * upload_weight + download_gbps * (1.0 - upload_weight)
    return LinkClassification(
        upload=analyze_bandwidth(upload_gbps, profiles, realistic_range),
        download=analyze_bandwidth(download_gbps, profiles, realistic_range),
        primary=analyze_bandwidth(combined, profiles, realistic_range),
    )
