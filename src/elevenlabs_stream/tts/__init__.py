"""WebSocket text-to-speech streaming.

Single-context streams carry one implicit context per connection;
multi-context sessions multiplex several independently generating
contexts (e.g. distinct speakers) over one socket.
"""

from .connection import ConnectionState, StreamConnection
from .multi_context import MultiContextSession
from .options import StreamOptions, VoiceSettings, build_stream_url
from .orchestrator import stream_text_to_speech
from .protocol import (
    Alignment,
    InboundFrame,
    TimedAudio,
    WordTiming,
    decode_multi_frame,
    decode_single_frame,
)
from .registry import SINGLE_CONTEXT, ContextRegistry, ContextState
from .single_context import SingleContextStream, StreamState

__all__ = [
    # Transport
    "StreamConnection",
    "ConnectionState",
    # Sessions
    "SingleContextStream",
    "StreamState",
    "MultiContextSession",
    "stream_text_to_speech",
    # Contexts
    "ContextRegistry",
    "ContextState",
    "SINGLE_CONTEXT",
    # Options
    "StreamOptions",
    "VoiceSettings",
    "build_stream_url",
    # Frames and timing
    "InboundFrame",
    "Alignment",
    "decode_single_frame",
    "decode_multi_frame",
    "WordTiming",
    "TimedAudio",
]
