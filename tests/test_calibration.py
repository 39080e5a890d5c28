# tests/test_calibration.py
"""
Tests for platform profiles and threshold calibration.
"""

import pytest

from hdlcheck.calibration import PlatformProfile
from hdlcheck.errors import ConfigError


class TestPlatformProfile:

    def test_threshold_is_exact_floor(self):
        assert PlatformProfile(ns_per_weight_unit=1.6, clock_period_ns=40).threshold == 25

    def test_from_clock_mhz(self):
        p = PlatformProfile.from_clock_mhz(25, 1.6)
        assert p.clock_period_ns == 40.0
        assert p.threshold == 25

    def test_threshold_floors_fractional_ratio(self):
        assert PlatformProfile(ns_per_weight_unit=3, clock_period_ns=10).threshold == 3

    def test_short_period_gives_zero_threshold(self):
        assert PlatformProfile(ns_per_weight_unit=2.0, clock_period_ns=1.0).threshold == 0

    @pytest.mark.parametrize("ratio, period", [(0, 40), (-1.6, 40), (1.6, 0), (1.6, -10)])
    def test_non_positive_values_rejected(self, ratio, period):
        with pytest.raises(ConfigError):
            PlatformProfile(ns_per_weight_unit=ratio, clock_period_ns=period)

    def test_non_positive_clock_rejected(self):
        with pytest.raises(ConfigError):
            PlatformProfile.from_clock_mhz(0, 1.6)

    def test_threshold_is_not_an_init_argument(self):
        with pytest.raises(TypeError):
            PlatformProfile(ns_per_weight_unit=1.6, clock_period_ns=40, threshold=99)

    def test_str(self):
        assert "threshold 25" in str(PlatformProfile.from_clock_mhz(25, 1.6))
