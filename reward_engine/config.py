"""
Engine configuration.

Value factors turn each reward unit into a common score so that cash, miles
and points can be ranked against each other. They never change the reward
amounts reported back to the caller.
"""

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class UnknownUnitPolicy(str, Enum):
    ZERO = "zero"  # keep the rule, score it at 0, attach a warning
    REJECT = "reject"  # skip the rule, attach a warning


# Default configuration values
DEFAULT_VALUE_FACTORS: Dict[str, Decimal] = {
    "cash": Decimal("1"),
    "miles": Decimal("0.04"),
    "points": Decimal("0.004"),
}
DEFAULT_HOME_CURRENCY = "HKD"


@dataclass(frozen=True)
class EngineConfig:
    """
    Tunables for matching, calculation and ranking.

    Fields:
    - value_factors: reward unit -> value of one unit in the home currency
    - unknown_unit_policy: what to do with a rule whose unit has no factor
    - allow_stacking: global switch for combining stackable rules
    - home_currency: currency that a 'foreign' rule condition is compared against
    """
    value_factors: Dict[str, Decimal] = field(default_factory=lambda: dict(DEFAULT_VALUE_FACTORS))
    unknown_unit_policy: UnknownUnitPolicy = UnknownUnitPolicy.ZERO
    allow_stacking: bool = True
    home_currency: str = DEFAULT_HOME_CURRENCY

    def factor_for(self, unit: str) -> Optional[Decimal]:
        """Return the conversion factor for a unit, or None if the unit is unknown."""
        return self.value_factors.get(str(unit).lower())

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build a config from REWARD_* environment variables, falling back to defaults."""
        factors = dict(DEFAULT_VALUE_FACTORS)
        for unit in factors:
            env_name = f"REWARD_VALUE_{unit.upper()}"
            raw = os.getenv(env_name)
            if raw is None:
                continue
            try:
                value = Decimal(raw)
            except InvalidOperation:
                logger.warning("Invalid %s value %r; falling back to default %s", env_name, raw, factors[unit])
                continue
            if not value.is_finite() or value < 0:
                logger.warning("Out-of-range %s value %r; falling back to default %s", env_name, raw, factors[unit])
                continue
            factors[unit] = value

        policy = UnknownUnitPolicy.ZERO
        raw_policy = os.getenv("REWARD_UNKNOWN_UNIT_POLICY")
        if raw_policy:
            try:
                policy = UnknownUnitPolicy(raw_policy.strip().lower())
            except ValueError:
                logger.warning(
                    "Invalid REWARD_UNKNOWN_UNIT_POLICY value %r; falling back to default %s",
                    raw_policy,
                    policy.value,
                )

        allow_stacking = True
        raw_stacking = os.getenv("REWARD_ALLOW_STACKING")
        if raw_stacking:
            normalized = raw_stacking.strip().lower()
            if normalized in ("1", "true", "yes", "on"):
                allow_stacking = True
            elif normalized in ("0", "false", "no", "off"):
                allow_stacking = False
            else:
                logger.warning("Invalid REWARD_ALLOW_STACKING value %r; falling back to default true", raw_stacking)

        home_currency = (os.getenv("REWARD_HOME_CURRENCY") or DEFAULT_HOME_CURRENCY).strip().upper()

        return cls(
            value_factors=factors,
            unknown_unit_policy=policy,
            allow_stacking=allow_stacking,
            home_currency=home_currency,
        )


DEFAULT_CONFIG = EngineConfig()
