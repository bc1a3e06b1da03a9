"""Pydantic models for the EventSub listener CLI options.

Examples
--------
.. code-block:: python

    from twitch_eventsub.cli.options import _parse_args

    opts = _parse_args(["--transport", "reverse-proxy", "--subscribe", "stream.online:1:1337"])
    assert opts.subscriptions[0].broadcaster_id == "1337"
"""

from __future__ import annotations

import argparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from twitch_eventsub.settings import TransportKind


class SubscriptionTarget(BaseModel):
    """One ``--subscribe TYPE:VERSION:BROADCASTER_ID`` argument."""

    event_type: str
    version: str
    broadcaster_id: str

    model_config = ConfigDict(frozen=True)

    @classmethod
    def parse(cls, value: str) -> "SubscriptionTarget":
        parts = value.split(":")
        if len(parts) != 3 or not all(part.strip() for part in parts):
            raise ValueError(f"Expected TYPE:VERSION:BROADCASTER_ID, got {value!r}")
        event_type, version, broadcaster_id = (part.strip() for part in parts)
        return cls(event_type=event_type, version=version, broadcaster_id=broadcaster_id)


class ListenerCliOptions(BaseModel):
    """Validated CLI options for the EventSub listener entrypoint.

    Fields
    ------
    env_file : str
        Path to .env file for environment variable loading
    no_env_file : bool
        Disable loading .env file when True
    transport : TransportKind | None
        Connection adapter; overrides ``EVENTSUB_TRANSPORT`` when given
    hostname : str | None
        Public hostname; overrides ``EVENTSUB_HOSTNAME`` when given
    port : int | None
        Listening port; overrides ``EVENTSUB_PORT`` when given
    path_prefix : str | None
        Callback path prefix; overrides ``EVENTSUB_PATH_PREFIX`` when given
    subscriptions : list[SubscriptionTarget]
        Subscriptions created at startup
    unsubscribe_on_exit : bool
        Delete the startup subscriptions on shutdown
    log_level, log_file, log_dir, log_format
        Logging options
    """

    env_file: str = ".env"
    no_env_file: bool = False

    transport: TransportKind | None = None
    hostname: str | None = None
    port: int | None = Field(None, ge=0, le=65535)
    path_prefix: str | None = None

    subscriptions: list[SubscriptionTarget] = Field(default_factory=list)
    unsubscribe_on_exit: bool = False

    log_level: str = "INFO"
    log_file: str | None = None
    log_dir: str | None = None
    log_format: str | None = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("transport", mode="before")
    @classmethod
    def parse_transport(cls, v):
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_")
        return v

    @field_validator("subscriptions", mode="before")
    @classmethod
    def parse_subscriptions(cls, v):
        if v is None:
            return []
        return [SubscriptionTarget.parse(item) if isinstance(item, str) else item for item in v]

    @classmethod
    def deserialize(cls, ns: argparse.Namespace) -> "ListenerCliOptions":
        """Build a validated options object from argparse namespace."""
        data = {name: getattr(ns, name) for name in cls.model_fields.keys() if hasattr(ns, name)}
        return cls(**data)
