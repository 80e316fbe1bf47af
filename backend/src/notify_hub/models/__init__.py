from notify_hub.models.errors import Lagged, NotifyError, PublishFailure, SubscriptionClosed
from notify_hub.models.broadcaster import Broadcaster, Subscription
from notify_hub.models.stream import EventStream, LagPolicy
