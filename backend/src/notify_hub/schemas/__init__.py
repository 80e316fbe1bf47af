from notify_hub.schemas.schemas import HealthResponse, PublishResponse, StatsResponse, StreamEvent
