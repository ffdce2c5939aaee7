"""
Feature flags for the gradual rollout of the learning loop.

Flags are read once from Settings into an immutable LearningFlags value
that services receive at construction time, so tests can hand in any
combination without touching the environment.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from config.settings import Settings, get_settings


@dataclass(frozen=True)
class LearningFlags:
    """
    Learning feature toggles.

    Attributes:
        events_enabled: When False every event logging call is a no-op.
        state_enabled: When False consumers never receive learned state.
        shadow_mode: When True (and state is enabled) callers log what the
            learned state would change but keep their original output.
    """

    events_enabled: bool = False
    state_enabled: bool = False
    shadow_mode: bool = True

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "LearningFlags":
        settings = settings or get_settings()
        return cls(
            events_enabled=settings.learning_events_enabled,
            state_enabled=settings.learning_state_enabled,
            shadow_mode=settings.learning_shadow_mode,
        )

    def is_learning_disabled(self) -> bool:
        """True when neither events nor state are enabled (hot-path early exit)."""
        return not self.events_enabled and not self.state_enabled

    def should_apply_learning_state(self) -> bool:
        """True only when state is enabled AND shadow mode is off."""
        return self.state_enabled and not self.shadow_mode

    def to_dict(self) -> Dict[str, bool]:
        return {
            "events_enabled": self.events_enabled,
            "state_enabled": self.state_enabled,
            "shadow_mode": self.shadow_mode,
        }
