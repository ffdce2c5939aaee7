"""
Tests for learning loop models.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from learning.models import (
    EVENT_SIGNAL_DEFAULTS,
    EntityType,
    ExtractedFeatures,
    LearningEvent,
    LearningEventType,
    PriceBracket,
    UserFashionState,
)


class TestSignalDefaults:

    def test_every_event_type_has_defaults(self):
        assert set(EVENT_SIGNAL_DEFAULTS) == set(LearningEventType)
        assert len(EVENT_SIGNAL_DEFAULTS) == 15

    def test_known_defaults(self):
        purchased = EVENT_SIGNAL_DEFAULTS[LearningEventType.PRODUCT_PURCHASED]
        returned = EVENT_SIGNAL_DEFAULTS[LearningEventType.PRODUCT_RETURNED]
        served = EVENT_SIGNAL_DEFAULTS[LearningEventType.ELITE_SUGGESTION_SERVED]

        assert (purchased.polarity, purchased.weight) == (1, 1.0)
        assert (returned.polarity, returned.weight) == (-1, 0.8)
        assert (served.polarity, served.weight) == (0, 0.0)

    def test_polarities_and_weights_in_range(self):
        for default in EVENT_SIGNAL_DEFAULTS.values():
            assert default.polarity in (-1, 0, 1)
            assert default.weight >= 0


class TestLearningEvent:

    def _event(self, **overrides):
        fields = dict(
            user_id="test-user-001",
            event_type=LearningEventType.PRODUCT_SAVED,
            entity_type=EntityType.PRODUCT,
            signal_polarity=1,
            signal_weight=0.6,
        )
        fields.update(overrides)
        return LearningEvent(**fields)

    def test_polarity_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            self._event(signal_polarity=2)

    def test_negative_weight_rejected(self):
        with pytest.raises(ValidationError):
            self._event(signal_weight=-0.1)

    def test_empty_user_id_rejected(self):
        with pytest.raises(ValidationError):
            self._event(user_id="")

    def test_event_is_immutable(self):
        event = self._event()
        with pytest.raises(ValidationError):
            event.signal_weight = 1.0

    def test_naive_timestamp_treated_as_utc(self):
        event = self._event(event_ts=datetime(2025, 1, 1, 9, 30))
        assert event.event_ts == datetime(2025, 1, 1, 9, 30, tzinfo=timezone.utc)

    def test_features_accept_dict_and_nulls(self):
        event = self._event(extracted_features={"brands": ["Nike"], "colors": None})
        assert event.extracted_features.brands == ["Nike"]
        assert event.extracted_features.colors == []

    def test_row_uses_client_event_id(self):
        event = self._event(idempotency_key="evt-1", context={"occasion": "work"})
        row = event.to_row()

        assert row["client_event_id"] == "evt-1"
        assert row["event_type"] == "PRODUCT_SAVED"
        assert row["entity_type"] == "product"
        assert row["context"] == {"occasion": "work"}
        assert row["extracted_features"]["brands"] == []

    def test_from_row_tolerates_nulls(self):
        row = {
            "user_id": "test-user-001",
            "event_type": "PRODUCT_RETURNED",
            "event_ts": "2025-01-10T08:00:00+00:00",
            "entity_type": "product",
            "signal_polarity": -1,
            "signal_weight": 0.8,
            "context": None,
            "extracted_features": None,
            "client_event_id": "evt-9",
        }
        event = LearningEvent.from_row(row)

        assert event.event_type == LearningEventType.PRODUCT_RETURNED
        assert event.idempotency_key == "evt-9"
        assert event.context == {}
        assert event.extracted_features == ExtractedFeatures()
        assert event.source_feature == "unknown"


class TestUserFashionState:

    def test_from_row_defaults(self):
        state = UserFashionState.from_row({
            "user_id": "test-user-001",
            "brand_scores": None,
            "avg_purchase_price": "35.5",
            "price_bracket": "budget",
            "is_cold_start": None,
            "last_computed_at": "2025-01-15T12:00:00Z",
        })

        assert state.brand_scores == {}
        assert state.avg_purchase_price == 35.5
        assert state.price_bracket == PriceBracket.BUDGET
        assert state.is_cold_start is True
        assert state.last_computed_at.tzinfo is not None

    def test_iter_score_maps_covers_six_dimensions(self):
        state = UserFashionState(
            user_id="test-user-001",
            brand_scores={"nike": 1.0},
            last_computed_at=datetime(2025, 1, 15, tzinfo=timezone.utc),
        )
        maps = dict(state.iter_score_maps())

        assert set(maps) == {
            "brand_scores", "color_scores", "category_scores",
            "style_scores", "material_scores", "tag_scores",
        }
        assert maps["brand_scores"] == {"nike": 1.0}

    def test_row_serializes_bracket_value(self):
        state = UserFashionState(
            user_id="test-user-001",
            price_bracket=PriceBracket.LUXURY,
            last_computed_at=datetime(2025, 1, 15, tzinfo=timezone.utc),
        )
        row = state.to_row()

        assert row["price_bracket"] == "luxury"
        assert row["last_computed_at"].startswith("2025-01-15")
