"""Unit tests for the typed EventSub event models."""

import pytest
from pydantic import ValidationError

from twitch_eventsub.events import (
    DEFAULT_DECODERS,
    ChannelCheerEvent,
    ChannelRaidEvent,
    ChannelRedemptionEvent,
    ChannelRewardEvent,
    EventSubEventType,
    UserAuthorizationRevokeEvent,
)


class TestEventModels:
    def test_every_known_type_has_a_version_1_decoder(self):
        for event_type in EventSubEventType:
            assert (event_type.value, "1") in DEFAULT_DECODERS

    def test_event_type_str(self):
        assert str(EventSubEventType.STREAM_ONLINE) == "stream.online"

    def test_cheer(self):
        event = ChannelCheerEvent.model_validate(
            {
                "is_anonymous": False,
                "user_id": "1234",
                "user_login": "cool_user",
                "user_name": "Cool_User",
                "broadcaster_user_id": "1337",
                "broadcaster_user_login": "cooler_user",
                "broadcaster_user_name": "Cooler_User",
                "message": "pogchamp",
                "bits": 1000,
            }
        )
        assert event.bits == 1000
        assert event.user_name == "Cool_User"

    def test_raid_requires_both_broadcasters(self):
        with pytest.raises(ValidationError):
            ChannelRaidEvent.model_validate({"from_broadcaster_user_id": "1"})

        event = ChannelRaidEvent.model_validate(
            {"from_broadcaster_user_id": "1", "to_broadcaster_user_id": "2", "viewers": 9001}
        )
        assert event.viewers == 9001

    def test_reward_and_redemption_require_id(self):
        with pytest.raises(ValidationError):
            ChannelRewardEvent.model_validate({"broadcaster_user_id": "1337"})
        with pytest.raises(ValidationError):
            ChannelRedemptionEvent.model_validate({"broadcaster_user_id": "1337"})

    def test_authorization_revoke(self):
        event = UserAuthorizationRevokeEvent.model_validate({"client_id": "crq72vsaoijkc83xx42hz6i37", "user_id": "1"})
        assert event.user_login is None

    def test_events_are_immutable(self):
        event = ChannelCheerEvent.model_validate({"broadcaster_user_id": "1337", "bits": 1})
        with pytest.raises(ValidationError):
            event.bits = 2
