"""
voxsync - Read-along highlight synchronization.

Keeps a paragraph and word highlight in step with text-to-speech audio whose
real duration and word timing arrive while it plays.
"""

__version__ = "0.1.0"

from .aligner import AlignmentResult, WordAligner
from .errors import InvalidArgumentError, VoxSyncError
from .session import ReadAlongSession
from .sync_clock import SyncClock
from .sync_loop import SyncLoop, ThreadedSyncLoop
from .timeline import ParagraphTiming, TimelineBuilder
from .transition_gate import TransitionGate
from .word_timing import WordTiming

__all__ = [
    "AlignmentResult",
    "WordAligner",
    "InvalidArgumentError",
    "VoxSyncError",
    "ReadAlongSession",
    "SyncClock",
    "SyncLoop",
    "ThreadedSyncLoop",
    "ParagraphTiming",
    "TimelineBuilder",
    "TransitionGate",
    "WordTiming",
]
