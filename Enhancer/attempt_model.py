"""Expected-attempt model for enhancing an item from +0 to a target level.

The default model is an absorbing Markov chain: state ``i`` is the current
enhancement level, each attempt either succeeds (``i+1``, or ``i+2`` on a
blessed-tea double jump) or fails back to ``0`` (``i-1`` once protection is
active). Expected visits come from the fundamental matrix ``(I - Q)^-1``.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, List, Protocol

import numpy as np

MAX_ENHANCEMENT_LEVEL = 20

# Base success rate (%) for the attempt that starts at level i
BASE_SUCCESS_RATES: List[int] = [
    50, 45, 45, 40, 40, 40, 35, 35, 35, 35,
    30, 30, 30, 30, 30, 30, 30, 30, 30, 30,
]

BASE_ACTION_SECONDS = 12.0
BLESSED_TEA_SKIP_CHANCE = 0.01


class AttemptModelError(ValueError):
    """Raised when enhancement parameters are outside the model's domain."""


@dataclass(frozen=True)
class EnhancementParameters:
    """Immutable inputs for one (target level, protection threshold) evaluation."""
    enhancing_level: float
    house_level: int
    tool_bonus: float
    speed_bonus: float
    item_level: int
    target_level: int
    protect_from: int = 0
    blessed_tea: bool = False
    guzzling_bonus: float = 1.0

    @classmethod
    def from_settings(cls, settings, item_level: int, target_level: int,
                      protect_from: int = 0) -> "EnhancementParameters":
        """Build parameters from an ``EnhancingSettings`` block."""
        return cls(
            enhancing_level=settings.enhancing_level,
            house_level=settings.house_level,
            tool_bonus=settings.tool_bonus,
            speed_bonus=settings.speed_bonus,
            item_level=item_level,
            target_level=target_level,
            protect_from=protect_from,
            blessed_tea=settings.blessed_tea,
            guzzling_bonus=settings.guzzling_bonus,
        )

    def with_strategy(self, target_level: int, protect_from: int) -> "EnhancementParameters":
        return replace(self, target_level=target_level, protect_from=protect_from)


@dataclass
class AttemptResult:
    expected_attempts: float
    total_time: float  # seconds
    expected_protection_uses: float


class AttemptModel(Protocol):
    """Anything that can turn parameters into expected attempt counts."""

    def compute(self, params: EnhancementParameters) -> AttemptResult:
        ...


def calculate_success_multiplier(enhancing_level: float, tool_bonus: float,
                                 item_level: int) -> float:
    """Return the multiplier applied to every base success rate.

    At or above the item level each spare level adds 0.05%; below it the
    rate is penalised in proportion to the level deficit.
    """
    if enhancing_level >= item_level:
        level_advantage = 0.05 * (enhancing_level - item_level)
        return 1 + (tool_bonus + level_advantage) / 100
    return 1 - 0.5 * (1 - enhancing_level / item_level) + tool_bonus / 100


def calculate_per_action_time(enhancing_level: float, item_level: int,
                              speed_bonus: float = 0.0) -> float:
    """Seconds per enhancement attempt."""
    if enhancing_level > item_level:
        speed_multiplier = 1 + (enhancing_level - item_level + speed_bonus) / 100
    else:
        speed_multiplier = 1 + speed_bonus / 100
    return BASE_ACTION_SECONDS / speed_multiplier


class MarkovAttemptModel:
    """Absorbing Markov chain model of the enhancement process."""

    def transition_matrix(self, params: EnhancementParameters) -> np.ndarray:
        """Build the (target+1) x (target+1) transition matrix.

        A blessed double jump past the target lands on the absorbing state.
        """
        self._validate(params)
        target = params.target_level
        protect_from = params.protect_from
        multiplier = calculate_success_multiplier(
            params.enhancing_level, params.tool_bonus, params.item_level
        )

        markov = np.zeros((target + 1, target + 1))
        for i in range(target):
            success = min(1.0, BASE_SUCCESS_RATES[i] / 100.0 * multiplier)
            failure_destination = i - 1 if (protect_from > 0 and i >= protect_from) else 0

            if params.blessed_tea:
                skip_rate = BLESSED_TEA_SKIP_CHANCE * params.guzzling_bonus
                markov[i, min(i + 2, target)] += success * skip_rate
                markov[i, i + 1] += success * (1 - skip_rate)
            else:
                markov[i, i + 1] += success
            markov[i, failure_destination] += 1.0 - success

        markov[target, target] = 1.0
        return markov

    def compute(self, params: EnhancementParameters) -> AttemptResult:
        markov = self.transition_matrix(params)
        target = params.target_level

        transient = markov[:target, :target]
        try:
            fundamental = np.linalg.inv(np.identity(target) - transient)
        except np.linalg.LinAlgError as exc:
            raise AttemptModelError(f"Transition matrix is singular: {exc}") from exc

        attempts = float(fundamental[0, :target].sum())

        protects = 0.0
        protect_from = params.protect_from
        if 0 < protect_from < target:
            for i in range(protect_from, target):
                protects += fundamental[0, i] * markov[i, i - 1]

        per_action = calculate_per_action_time(
            params.enhancing_level, params.item_level, params.speed_bonus
        )
        return AttemptResult(
            expected_attempts=attempts,
            total_time=per_action * attempts,
            expected_protection_uses=float(protects),
        )

    @staticmethod
    def _validate(params: EnhancementParameters) -> None:
        if not 1 <= params.target_level <= MAX_ENHANCEMENT_LEVEL:
            raise AttemptModelError(
                f"Target level must be between 1 and {MAX_ENHANCEMENT_LEVEL}, "
                f"got {params.target_level}"
            )
        if params.protect_from < 0 or params.protect_from > params.target_level:
            raise AttemptModelError(
                f"Protection level must be between 0 and target level, "
                f"got {params.protect_from}"
            )
        if params.item_level <= 0:
            raise AttemptModelError(f"Item level must be positive, got {params.item_level}")


def compare_protection_strategies(
    model: AttemptModel,
    params: EnhancementParameters,
    protection_levels: Iterable[int] = (0, 11, 16),
) -> List[tuple]:
    """Run ``model`` for each protection threshold at ``params.target_level``.

    Returns ``(protect_from, AttemptResult)`` pairs in the order given.
    """
    return [
        (protect_from, model.compute(params.with_strategy(params.target_level, protect_from)))
        for protect_from in protection_levels
    ]
