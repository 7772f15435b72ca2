"""Weight profiles over the six scoring components."""

import logging
import math
from typing import Dict, Mapping, Optional

from supplier_scoring.core.config import Settings, settings as default_settings
from supplier_scoring.core.exceptions import InvalidWeightProfileError
from supplier_scoring.schemas.scoring import COMPONENTS, ComponentName, WeightProfile, WeightProfileName

logger = logging.getLogger(__name__)

WEIGHT_TOLERANCE = 1e-9

P, D, Q, F, PAY, R = (
    ComponentName.PRICE,
    ComponentName.DELIVERY,
    ComponentName.QUALITY,
    ComponentName.FULFILLMENT,
    ComponentName.PAYMENT,
    ComponentName.RESPONSE,
)

# The "service" dimension of the business-priority profiles is split evenly
# between payment terms and response time.
WEIGHT_PROFILES: Dict[WeightProfileName, Dict[ComponentName, float]] = {
    WeightProfileName.STANDARD: {P: 0.30, D: 0.25, Q: 0.20, F: 0.15, PAY: 0.00, R: 0.10},
    WeightProfileName.BALANCED: {P: 0.30, D: 0.25, Q: 0.20, F: 0.15, PAY: 0.05, R: 0.05},
    WeightProfileName.COST: {P: 0.45, D: 0.20, Q: 0.15, F: 0.10, PAY: 0.05, R: 0.05},
    WeightProfileName.QUALITY: {P: 0.20, D: 0.20, Q: 0.40, F: 0.10, PAY: 0.05, R: 0.05},
    WeightProfileName.DELIVERY: {P: 0.20, D: 0.45, Q: 0.15, F: 0.10, PAY: 0.05, R: 0.05},
    WeightProfileName.SERVICE: {P: 0.20, D: 0.20, Q: 0.15, F: 0.15, PAY: 0.15, R: 0.15},
}

CUSTOM_PROFILE_NAME = "custom"


def normalize_weights(weights: Mapping[ComponentName, float]) -> Dict[ComponentName, float]:
    """Scale weights so they sum to 1.0. Components missing from the map weigh 0."""
    total = sum(weights.values())
    if total <= 0:
        raise InvalidWeightProfileError("Weights must contain at least one positive value", dict(weights))
    return {name: weights.get(name, 0.0) / total for name in COMPONENTS}


def parse_custom_weights(raw: Mapping[str, float]) -> Dict[ComponentName, float]:
    """Validate a caller-supplied weight map keyed by component name."""
    parsed: Dict[ComponentName, float] = {}
    for key, value in raw.items():
        try:
            name = ComponentName(key)
        except ValueError:
            raise InvalidWeightProfileError(
                f"Unknown scoring component '{key}'. Valid components: {[c.value for c in COMPONENTS]}",
                dict(raw),
            ) from None
        if value is None or not math.isfinite(value) or value < 0:
            raise InvalidWeightProfileError(
                f"Weight for '{key}' must be a finite non-negative number, got {value}", dict(raw)
            )
        parsed[name] = float(value)
    return parsed


def resolve_weight_profile(
    profile: Optional[str] = None,
    custom_weights: Optional[Mapping[str, float]] = None,
    config: Optional[Settings] = None,
) -> WeightProfile:
    """
    Turn a profile name and/or custom weight map into a normalized profile.

    Custom weights override the named profile outright. Unknown profile names
    fall back to the configured default with a warning instead of failing.
    """
    config = config or default_settings

    if custom_weights:
        weights = normalize_weights(parse_custom_weights(custom_weights))
        return WeightProfile(name=CUSTOM_PROFILE_NAME, weights=weights)

    warnings = []
    requested = (profile or config.default_weight_profile).strip().lower()
    try:
        name = WeightProfileName(requested)
    except ValueError:
        name = WeightProfileName(config.default_weight_profile)
        message = f"Unknown weight profile '{profile}', using '{name.value}'"
        logger.warning(message)
        warnings.append(message)

    return WeightProfile(
        name=name.value,
        weights=normalize_weights(WEIGHT_PROFILES[name]),
        warnings=warnings,
    )
