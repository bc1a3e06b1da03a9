"""Typed EventSub event payloads.

Pydantic models for the ``event`` object of EventSub notifications, plus the
decoder table the dispatcher uses to turn raw payloads into these models.

Models accept unknown fields (``extra="allow"``) so that additions on the
remote side never break decoding.

Examples
--------
.. code-block:: python

    from twitch_eventsub.events import DEFAULT_DECODERS, EventSubEventType

    model = DEFAULT_DECODERS[(EventSubEventType.STREAM_ONLINE.value, "1")]
    event = model.model_validate({"broadcaster_user_id": "1337", "type": "live"})
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict

__all__: list[str] = [
    "EventSubEventType",
    "EventSubEvent",
    "StreamOnlineEvent",
    "StreamOfflineEvent",
    "ChannelUpdateEvent",
    "ChannelFollowEvent",
    "ChannelSubscriptionEvent",
    "ChannelCheerEvent",
    "ChannelBanEvent",
    "ChannelUnbanEvent",
    "ChannelRaidEvent",
    "ChannelRewardEvent",
    "ChannelRedemptionEvent",
    "ChannelHypeTrainBeginEvent",
    "ChannelHypeTrainProgressEvent",
    "ChannelHypeTrainEndEvent",
    "UserUpdateEvent",
    "UserAuthorizationRevokeEvent",
    "DecoderTable",
    "DEFAULT_DECODERS",
]


class EventSubEventType(str, Enum):
    """Known EventSub subscription types."""

    STREAM_ONLINE = "stream.online"
    STREAM_OFFLINE = "stream.offline"
    CHANNEL_UPDATE = "channel.update"
    CHANNEL_FOLLOW = "channel.follow"
    CHANNEL_SUBSCRIBE = "channel.subscribe"
    CHANNEL_CHEER = "channel.cheer"
    CHANNEL_BAN = "channel.ban"
    CHANNEL_UNBAN = "channel.unban"
    CHANNEL_RAID = "channel.raid"
    CHANNEL_REWARD_ADD = "channel.channel_points_custom_reward.add"
    CHANNEL_REWARD_UPDATE = "channel.channel_points_custom_reward.update"
    CHANNEL_REWARD_REMOVE = "channel.channel_points_custom_reward.remove"
    CHANNEL_REDEMPTION_ADD = "channel.channel_points_custom_reward_redemption.add"
    CHANNEL_REDEMPTION_UPDATE = "channel.channel_points_custom_reward_redemption.update"
    CHANNEL_HYPE_TRAIN_BEGIN = "channel.hype_train.begin"
    CHANNEL_HYPE_TRAIN_PROGRESS = "channel.hype_train.progress"
    CHANNEL_HYPE_TRAIN_END = "channel.hype_train.end"
    USER_UPDATE = "user.update"
    USER_AUTHORIZATION_REVOKE = "user.authorization.revoke"

    def __str__(self) -> str:
        return self.value


class EventSubEvent(BaseModel):
    """Base model for all event payloads."""

    model_config = ConfigDict(extra="allow", frozen=True)


class _BroadcasterEvent(EventSubEvent):
    broadcaster_user_id: str
    broadcaster_user_login: Optional[str] = None
    broadcaster_user_name: Optional[str] = None


class _UserBroadcasterEvent(_BroadcasterEvent):
    user_id: Optional[str] = None
    user_login: Optional[str] = None
    user_name: Optional[str] = None


class StreamOnlineEvent(_BroadcasterEvent):
    id: Optional[str] = None
    type: str = "live"
    started_at: Optional[str] = None


class StreamOfflineEvent(_BroadcasterEvent):
    pass


class ChannelUpdateEvent(_BroadcasterEvent):
    title: str = ""
    language: str = ""
    category_id: str = ""
    category_name: str = ""
    is_mature: bool = False


class ChannelFollowEvent(_UserBroadcasterEvent):
    followed_at: Optional[str] = None


class ChannelSubscriptionEvent(_UserBroadcasterEvent):
    tier: str = "1000"
    is_gift: bool = False


class ChannelCheerEvent(_UserBroadcasterEvent):
    is_anonymous: bool = False
    message: str = ""
    bits: int = 0


class ChannelBanEvent(_UserBroadcasterEvent):
    moderator_user_id: Optional[str] = None
    moderator_user_login: Optional[str] = None
    moderator_user_name: Optional[str] = None
    reason: str = ""
    ends_at: Optional[str] = None
    is_permanent: Optional[bool] = None


class ChannelUnbanEvent(_UserBroadcasterEvent):
    moderator_user_id: Optional[str] = None
    moderator_user_login: Optional[str] = None
    moderator_user_name: Optional[str] = None


class ChannelRaidEvent(EventSubEvent):
    from_broadcaster_user_id: str
    from_broadcaster_user_login: Optional[str] = None
    from_broadcaster_user_name: Optional[str] = None
    to_broadcaster_user_id: str
    to_broadcaster_user_login: Optional[str] = None
    to_broadcaster_user_name: Optional[str] = None
    viewers: int = 0


class ChannelRewardEvent(_BroadcasterEvent):
    """Payload shared by custom reward add, update and remove events."""

    id: str
    title: str = ""
    cost: int = 0
    prompt: str = ""
    is_enabled: bool = True
    is_paused: bool = False
    is_in_stock: bool = True
    is_user_input_required: bool = False
    should_redemptions_skip_request_queue: bool = False
    background_color: Optional[str] = None
    cooldown_expires_at: Optional[str] = None
    redemptions_redeemed_current_stream: Optional[int] = None


class ChannelRedemptionEvent(_UserBroadcasterEvent):
    """Payload shared by redemption add and update events."""

    id: str
    user_input: str = ""
    status: str = ""
    reward: Dict[str, Any] = {}
    redeemed_at: Optional[str] = None


class _HypeTrainEvent(_BroadcasterEvent):
    id: Optional[str] = None
    total: int = 0
    level: int = 1
    top_contributions: List[Dict[str, Any]] = []
    started_at: Optional[str] = None


class ChannelHypeTrainBeginEvent(_HypeTrainEvent):
    progress: int = 0
    goal: int = 0
    last_contribution: Optional[Dict[str, Any]] = None
    expires_at: Optional[str] = None


class ChannelHypeTrainProgressEvent(ChannelHypeTrainBeginEvent):
    pass


class ChannelHypeTrainEndEvent(_HypeTrainEvent):
    ended_at: Optional[str] = None
    cooldown_ends_at: Optional[str] = None


class UserUpdateEvent(EventSubEvent):
    user_id: str
    user_login: Optional[str] = None
    user_name: Optional[str] = None
    email: Optional[str] = None
    description: str = ""


class UserAuthorizationRevokeEvent(EventSubEvent):
    client_id: str
    user_id: str
    user_login: Optional[str] = None
    user_name: Optional[str] = None


DecoderTable = Dict[Tuple[str, str], Type[EventSubEvent]]

DEFAULT_DECODERS: DecoderTable = {
    (EventSubEventType.STREAM_ONLINE.value, "1"): StreamOnlineEvent,
    (EventSubEventType.STREAM_OFFLINE.value, "1"): StreamOfflineEvent,
    (EventSubEventType.CHANNEL_UPDATE.value, "1"): ChannelUpdateEvent,
    (EventSubEventType.CHANNEL_FOLLOW.value, "1"): ChannelFollowEvent,
    (EventSubEventType.CHANNEL_SUBSCRIBE.value, "1"): ChannelSubscriptionEvent,
    (EventSubEventType.CHANNEL_CHEER.value, "1"): ChannelCheerEvent,
    (EventSubEventType.CHANNEL_BAN.value, "1"): ChannelBanEvent,
    (EventSubEventType.CHANNEL_UNBAN.value, "1"): ChannelUnbanEvent,
    (EventSubEventType.CHANNEL_RAID.value, "1"): ChannelRaidEvent,
    (EventSubEventType.CHANNEL_REWARD_ADD.value, "1"): ChannelRewardEvent,
    (EventSubEventType.CHANNEL_REWARD_UPDATE.value, "1"): ChannelRewardEvent,
    (EventSubEventType.CHANNEL_REWARD_REMOVE.value, "1"): ChannelRewardEvent,
    (EventSubEventType.CHANNEL_REDEMPTION_ADD.value, "1"): ChannelRedemptionEvent,
    (EventSubEventType.CHANNEL_REDEMPTION_UPDATE.value, "1"): ChannelRedemptionEvent,
    (EventSubEventType.CHANNEL_HYPE_TRAIN_BEGIN.value, "1"): ChannelHypeTrainBeginEvent,
    (EventSubEventType.CHANNEL_HYPE_TRAIN_PROGRESS.value, "1"): ChannelHypeTrainProgressEvent,
    (EventSubEventType.CHANNEL_HYPE_TRAIN_END.value, "1"): ChannelHypeTrainEndEvent,
    (EventSubEventType.USER_UPDATE.value, "1"): UserUpdateEvent,
    (EventSubEventType.USER_AUTHORIZATION_REVOKE.value, "1"): UserAuthorizationRevokeEvent,
}
