import dataclasses

import pytest

from linkbench.interfaces import (
    INTERFACE_PROFILES,
    InterfaceProfile,
    RealisticRange,
    analyze_bandwidth,
    classify_link,
)


def test_reference_table_is_complete_and_frozen():
    assert len(INTERFACE_PROFILES) == 20
    assert isinstance(INTERFACE_PROFILES, tuple)
    with pytest.raises(dataclasses.FrozenInstanceError):
        INTERFACE_PROFILES[0].bandwidth_gbps = 1.0


def test_thirty_gbps_matches_pcie4_x16_just_above_range():
    """30 GB/s is 95.2% of 31.5 GB/s, past the 95% bound, so it is a fallback match.

    See DESIGN.md, "Open questions and decisions", item 1.
    """
    result = analyze_bandwidth(30.0)

    assert result.profile.name == "PCIe 4.0 x16"
    assert result.profile.bandwidth_gbps == pytest.approx(31.5)
    assert result.percent_of_theoretical == pytest.approx(95.238, abs=0.01)
    assert result.is_realistic is False
    assert result.verdict() == "high"


def test_thirty_gbps_realistic_with_wider_range():
    result = analyze_bandwidth(30.0, realistic_range=RealisticRange(60.0, 96.0))
    assert result.profile.name == "PCIe 4.0 x16"
    assert result.is_realistic is True


def test_tiny_bandwidth_falls_back_to_nearest():
    result = analyze_bandwidth(0.1)

    assert result.profile.name == "PCIe 3.0 x1"
    assert result.is_realistic is False
    assert result.verdict() == "low"


@pytest.mark.parametrize("measured", [0.0, -3.0])
def test_non_positive_bandwidth_uses_fallback(measured):
    result = analyze_bandwidth(measured)
    assert result.profile.name == "PCIe 3.0 x1"
    assert result.is_realistic is False
    assert result.percent_of_theoretical <= 0.0


def test_realistic_match_prefers_closest_theoretical():
    # 13 GB/s is realistic only against the 15.75 GB/s entries
    result = analyze_bandwidth(13.0)
    assert result.profile.name == "PCIe 3.0 x16"
    assert result.is_realistic is True
    assert result.percent_of_theoretical == pytest.approx(13.0 / 15.75 * 100)


def test_ties_resolve_to_first_in_table_order():
    # PCIe 3.0 x8, PCIe 4.0 x4 and OCuLink PCIe 4.0 all list 7.88 GB/s
    result = analyze_bandwidth(6.5)
    assert result.profile.name == "PCIe 3.0 x8"
    assert result.is_realistic is True


def test_realistic_bounds_are_inclusive():
    profiles = [InterfaceProfile("Link", 16.0, "test")]
    window = RealisticRange(50.0, 75.0)
    assert analyze_bandwidth(8.0, profiles, window).is_realistic is True
    assert analyze_bandwidth(12.0, profiles, window).is_realistic is True
    assert analyze_bandwidth(12.5, profiles, window).is_realistic is False
    assert analyze_bandwidth(7.5, profiles, window).is_realistic is False


def test_empty_table_returns_no_profile():
    result = analyze_bandwidth(12.0, profiles=())
    assert result.profile is None
    assert result.is_realistic is False
    assert result.percent_of_theoretical == 0.0


def test_classify_link_uses_midpoint():
    link = classify_link(upload_gbps=24.0, download_gbps=28.0)

    assert link.primary.measured_gbps == pytest.approx(26.0)
    assert link.primary.profile.name == "PCIe 4.0 x16"
    assert link.primary.is_realistic is True
    assert link.upload.measured_gbps == 24.0
    assert link.download.measured_gbps == 28.0


def test_classify_link_weight_shifts_estimate():
    link = classify_link(upload_gbps=10.0, download_gbps=20.0, upload_weight=1.0)
    assert link.primary.measured_gbps == pytest.approx(10.0)


def test_link_to_dict():
    data = classify_link(24.0, 28.0).to_dict()
    assert data["likely_connection"]["profile"] == "PCIe 4.0 x16"
    assert data["upload"]["theoretical_gbps"] == 31.5
