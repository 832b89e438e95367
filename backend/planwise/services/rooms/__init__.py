"""Room domain services: state transitions, tallies and broadcasting.

The engine holds pure room logic; the service commits its results to the
store and publishes them, keeping transport concerns out of both.
"""

from .broadcast import Broadcaster, Subscription
from .engine import Result
from .service import RoomService

__all__ = ['Broadcaster', 'Result', 'RoomService', 'Subscription']
