from .buffer import BufferConfig, SampleBuffer
from .config import TrackingConfig
from .engine import TrackingEngine
from .session import SessionState

__all__ = ["BufferConfig", "SampleBuffer", "SessionState", "TrackingConfig", "TrackingEngine"]
