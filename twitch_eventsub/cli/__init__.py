from .models import ListenerCliOptions, SubscriptionTarget
from .options import _parse_args

__all__: list[str] = ["ListenerCliOptions", "SubscriptionTarget", "_parse_args"]
