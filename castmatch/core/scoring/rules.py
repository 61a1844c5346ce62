"""
Deterministic rule-based scoring from height and body measurements.

Two profile shapes are supported:
- Target + tolerance: each dimension falls off linearly around a target.
- Banded: a flat 1.0 plateau over an ideal sub-range, ramping to 0 at
  the band edges.

Preference profiles are immutable and selected by gender tag. Every
function here is total: missing or unparseable input scores 0 instead
of raising.

Example:
    >>> from castmatch.core.scoring import RuleScorer
    >>> scores = RuleScorer().score(177, "82-60-88", GenderTag.FEMALE)
    >>> scores.measurement_score
    1.0
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from castmatch.domain.entities import GenderTag, Measurements, RuleScores
from castmatch.utils.logger import get_logger

from .similarity import clamp

logger = get_logger(__name__)

# Reason thresholds
IDEAL_THRESHOLD = 0.75
ACCEPTABLE_THRESHOLD = 0.45

HEIGHT_BONUS_MAX = 0.15

# Grammar: decimal tokens; the first three are bust, waist, hip.
_NUMBER = re.compile(r"\d+(?:\.\d+)?")


# ============================================
# Profile definitions
# ============================================


@dataclass(frozen=True)
class HeightProfile:
    """Height preference: 0 at/below min, 1 at/above max, bonus near target."""

    min: float
    target: float
    max: float


@dataclass(frozen=True)
class Band:
    """Banded preference for one measurement dimension."""

    min: float
    ideal_low: float
    ideal_high: float
    max: float


@dataclass(frozen=True)
class TargetTolerance:
    """Target + tolerance preference for one measurement dimension."""

    target: float
    tolerance: float


@dataclass(frozen=True)
class BandedMeasurements:
    """Banded model over bust/waist/hip, waist-weighted."""

    bust: Band
    waist: Band
    hip: Band
    waist_weight: float = 1.3


@dataclass(frozen=True)
class TargetMeasurements:
    """Target + tolerance model over bust/waist/hip, waist-weighted."""

    bust: TargetTolerance
    waist: TargetTolerance
    hip: TargetTolerance
    waist_weight: float = 1.2


@dataclass(frozen=True)
class PreferenceProfile:
    """Height and measurement preferences for one gender."""

    height: HeightProfile
    measurements: Union[BandedMeasurements, TargetMeasurements]


DEFAULT_PROFILES: Mapping[GenderTag, PreferenceProfile] = MappingProxyType({
    GenderTag.FEMALE: PreferenceProfile(
        height=HeightProfile(min=172, target=177, max=182),
        measurements=TargetMeasurements(
            bust=TargetTolerance(target=82, tolerance=6),
            waist=TargetTolerance(target=60, tolerance=4),
            hip=TargetTolerance(target=88, tolerance=6),
        ),
    ),
    GenderTag.MALE: PreferenceProfile(
        height=HeightProfile(min=182, target=186, max=191),
        measurements=BandedMeasurements(
            bust=Band(min=88, ideal_low=90, ideal_high=94, max=96),
            waist=Band(min=71, ideal_low=73, ideal_high=77, max=82),
            hip=Band(min=88, ideal_low=90, ideal_high=94, max=96),
        ),
    ),
})


# ============================================
# Parsing
# ============================================


def parse_measurements(raw: Optional[str]) -> Optional[Measurements]:
    """
    Parse a loosely formatted bust/waist/hip string.

    Any text containing at least three decimal tokens is accepted and
    the first three are taken in bust, waist, hip order
    ("82-60-88", "82 / 60 / 88 cm", "B82 W60 H88"). Anything else is
    treated as absent.

    Args:
        raw: Measurement string, or None.

    Returns:
        Measurements, or None when fewer than three numbers are present.
    """
    if not raw or not isinstance(raw, str):
        return None

    tokens = _NUMBER.findall(raw)
    if len(tokens) < 3:
        return None

    bust, waist, hip = (float(t) for t in tokens[:3])
    return Measurements(bust=bust, waist=waist, hip=hip)


def parse_height(raw: Any) -> Optional[float]:
    """Coerce a height value to a positive float, or None."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value


# ============================================
# Sub-scores
# ============================================


def height_score(height: Optional[float], profile: HeightProfile) -> float:
    """
    Score a height against a profile.

    A linear ramp from min to max plus a Gaussian bonus (max +0.15)
    centred on the target, with width a quarter of the min-max span.

    Args:
        height: Height in centimetres, or None.
        profile: Height preference.

    Returns:
        Score in [0, 1]; 0 when height is missing.
    """
    if height is None:
        return 0.0
    if height <= profile.min:
        return 0.0
    if height >= profile.max:
        return 1.0

    ramp = (height - profile.min) / (profile.max - profile.min)
    width = (profile.max - profile.min) / 4
    bonus = math.exp(-(((height - profile.target) / width) ** 2)) * HEIGHT_BONUS_MAX
    return clamp(ramp + bonus)


def band_score(value: float, band: Band) -> float:
    """Score one dimension against a band: plateau inside ideal, ramps to the edges."""
    if value <= band.min or value >= band.max:
        return 0.0
    if band.ideal_low <= value <= band.ideal_high:
        return 1.0
    if value < band.ideal_low:
        return (value - band.min) / (band.ideal_low - band.min)
    return (band.max - value) / (band.max - band.ideal_high)


def tolerance_score(value: float, pref: TargetTolerance) -> float:
    """Score one dimension by linear falloff around a target."""
    return clamp(1.0 - abs(value - pref.target) / pref.tolerance)


def _weighted_mean(bust: float, waist: float, hip: float, waist_weight: float) -> float:
    weights = (1.0, waist_weight, 1.0)
    total = bust * weights[0] + waist * weights[1] + hip * weights[2]
    return clamp(total / (weights[0] + weights[1] + weights[2]))


def measurement_score(
    measurements: Optional[Measurements],
    model: Union[BandedMeasurements, TargetMeasurements],
) -> float:
    """
    Score a measurement triple against a profile model.

    Args:
        measurements: Parsed triple, or None.
        model: Banded or target + tolerance model.

    Returns:
        Waist-weighted mean in [0, 1]; 0 when measurements are absent.
    """
    if measurements is None:
        return 0.0

    if isinstance(model, BandedMeasurements):
        parts = (
            band_score(measurements.bust, model.bust),
            band_score(measurements.waist, model.waist),
            band_score(measurements.hip, model.hip),
        )
    else:
        parts = (
            tolerance_score(measurements.bust, model.bust),
            tolerance_score(measurements.waist, model.waist),
            tolerance_score(measurements.hip, model.hip),
        )
    return _weighted_mean(*parts, waist_weight=model.waist_weight)


def _height_reason(score: float) -> str:
    if score >= IDEAL_THRESHOLD:
        return "height in editorial sweet spot"
    if score >= ACCEPTABLE_THRESHOLD:
        return "height within range"
    return "height below preferred range"


def _measurement_reason(score: float) -> str:
    if score >= IDEAL_THRESHOLD:
        return "measurements in ideal window"
    if score >= ACCEPTABLE_THRESHOLD:
        return "measurements within acceptable band"
    return "measurements outside preferred band"


# ============================================
# Scorer
# ============================================


class RuleScorer:
    """
    Pure scorer combining height and measurement rules.

    Attributes:
        profiles: Preference profile per gender tag.

    Example:
        >>> scorer = RuleScorer()
        >>> result = scorer.score(190, "92-75-92", GenderTag.MALE)
        >>> result.reasons
        ['height in editorial sweet spot', 'measurements in ideal window']
    """

    def __init__(self, profiles: Optional[Mapping[GenderTag, PreferenceProfile]] = None):
        self.profiles = profiles or DEFAULT_PROFILES

    def profile_for(self, gender: GenderTag) -> PreferenceProfile:
        """Return the profile for a gender, defaulting to the female profile."""
        return self.profiles.get(gender, self.profiles[GenderTag.FEMALE])

    def score(
        self,
        height_cm: Any,
        measurements: Optional[str],
        gender: GenderTag,
    ) -> RuleScores:
        """
        Score height and measurements for one gender.

        Reasons are only emitted for inputs that were present and parsed.

        Args:
            height_cm: Height (number or numeric string), or None.
            measurements: Measurement string, or None.
            gender: Profile selector.

        Returns:
            RuleScores with both sub-scores and reason phrases.
        """
        profile = self.profile_for(gender)
        reasons: list[str] = []

        height = parse_height(height_cm)
        h_score = height_score(height, profile.height)
        if height is not None:
            reasons.append(_height_reason(h_score))

        parsed = parse_measurements(measurements)
        m_score = measurement_score(parsed, profile.measurements)
        if parsed is not None:
            reasons.append(_measurement_reason(m_score))
        elif measurements:
            logger.debug(f"Ignoring unparseable measurements: {measurements!r}")

        return RuleScores(height_score=h_score, measurement_score=m_score, reasons=reasons)
