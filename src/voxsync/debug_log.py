"""
Debug trace of highlight events, for diagnosing sync problems.

Writes one line per paragraph change, word change, drift resync, handshake
step and alignment summary to logs/sync_events.log:

    [12:01:07.412] paragraph      2 -> 3  at=18250ms
    [12:01:07.430] word           -1 -> 0  at=18268ms word="Hello"
    [12:01:08.001] drift          +245ms (threshold 200ms) resynced to 18800ms

Each engine owns its own SyncEventLog. Logging is disabled unless enabled.
"""

from datetime import datetime
from pathlib import Path

# Log files location (in project root)
LOG_DIR: Path = Path(__file__).parent.parent.parent / "logs"
EVENT_LOG: Path = LOG_DIR / "sync_events.log"


def _timestamp() -> str:
    """Get current timestamp."""
    return datetime.now().strftime("%H:%M:%S.%f")[:-3]


class SyncEventLog:
    """File trace of the events one sync engine emits."""

    def __init__(self, path: Path | None = None, enabled: bool = False) -> None:
        self.path: Path = path or EVENT_LOG
        self._enabled: bool = enabled

    def enable(self) -> None:
        """Enable debug logging."""
        self._enabled = True

    def disable(self) -> None:
        """Disable debug logging."""
        self._enabled = False

    def is_enabled(self) -> bool:
        """Check if debug logging is enabled."""
        return self._enabled

    def _ensure_log_dir(self) -> None:
        """Create log directory if it doesn't exist."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _write(self, line: str) -> None:
        if not self._enabled:
            return
        self._ensure_log_dir()
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(f"[{_timestamp()}] {line}\n")

    def clear_logs(self) -> None:
        """Truncate the log file for a fresh session."""
        if not self._enabled:
            return
        self._ensure_log_dir()
        with open(self.path, 'w', encoding='utf-8') as f:
            f.write(
                f"=== New session started at {datetime.now().isoformat()} ===\n\n")

    def log_paragraph_change(self, old_index: int, new_index: int, time_ms: float) -> None:
        """Log a paragraph highlight transition."""
        self._write(f"{'paragraph':14} {old_index:4d} -> {new_index:<4d} at={time_ms:.0f}ms")

    def log_word_change(
        self,
        old_index: int | None,
        new_index: int,
        time_ms: float,
        word: str = ""
    ) -> None:
        """
        Log a word highlight transition.

        Args:
            old_index: Previously highlighted word (None when there was none)
            new_index: Newly highlighted word
            time_ms: Playback position that produced the change
            word: Text of the new word
        """
        old = -1 if old_index is None else old_index
        self._write(
            f"{'word':14} {old:4d} -> {new_index:<4d} at={time_ms:.0f}ms word=\"{word}\"")

    def log_drift(self, drift_ms: float, threshold_ms: float, resynced_to_ms: float) -> None:
        """Log a drift correction."""
        self._write(
            f"{'drift':14} {drift_ms:+.0f}ms (threshold {threshold_ms:.0f}ms) "
            f"resynced to {resynced_to_ms:.0f}ms")

    def log_transition(self, event: str, paragraph_index: int) -> None:
        """Log a handshake step (pending, ready, stale)."""
        self._write(f"{'timeline':14} {event} paragraph={paragraph_index}")

    def log_alignment(self, paragraph_index: int, word_count: int,
                      resolved: int, confidence: float) -> None:
        """Log the outcome of aligning a paragraph."""
        self._write(
            f"{'alignment':14} paragraph={paragraph_index} words={word_count} "
            f"resolved={resolved} confidence={confidence:.2f}")
