from .connection import PlanwiseClient, RequestFailed
from .mirror import RoomMirror

__all__ = ['PlanwiseClient', 'RequestFailed', 'RoomMirror']
