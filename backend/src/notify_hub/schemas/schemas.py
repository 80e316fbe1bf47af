from typing import Literal

from pydantic import BaseModel


class StreamEvent(BaseModel):
    '''One numbered delivery on a subscriber's stream.'''
    sequence: int
    payload: str
    # "lagged" marks a gap; its payload is the number of messages missed
    kind: Literal["message", "lagged"] = "message"

class PublishResponse(BaseModel):
    status: str
    delivered: int
    ts: str

class HealthResponse(BaseModel):
    uptime_sec: int
    subscribers: int

class StatsResponse(BaseModel):
    messages: int
    subscribers: int
    capacity: int
    lag_policy: str
