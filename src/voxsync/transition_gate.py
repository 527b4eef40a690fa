# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Timeline-ready handshake for paragraph transitions.

When a new paragraph starts, its word timeline is delivered asynchronously
and may arrive before or after the audio begins. Until it is acknowledged,
word highlighting for that paragraph is held back; paragraph highlighting
carries on regardless.

Acknowledgments are keyed by paragraph index so that a late acknowledgment
from a superseded transition cannot release the gate for the wrong paragraph.
"""

import logging

logger = logging.getLogger(__name__)

NO_PENDING_PARAGRAPH: int = -1


class TransitionGate:
    """Pending/ready state guarding word-level sync."""

    def __init__(self) -> None:
        self.timeline_ready: bool = True
        self.pending_paragraph: int = NO_PENDING_PARAGRAPH

    def set_timeline_pending(self, paragraph_index: int) -> None:
        """Hold word sync until paragraph_index's timeline is acknowledged."""
        self.timeline_ready = False
        self.pending_paragraph = paragraph_index
        logger.debug("Timeline pending for paragraph %d", paragraph_index)

    def set_timeline_ready(self, paragraph_index: int) -> bool:
        """
        Acknowledge that paragraph_index's timeline is installed.

        Returns:
            True if the acknowledgment was accepted, False if it was stale
        """
        if self.pending_paragraph not in (NO_PENDING_PARAGRAPH, paragraph_index):
            logger.debug("Ignoring timeline ready for paragraph %d, expected %d",
                         paragraph_index, self.pending_paragraph)
            return False

        self.timeline_ready = True
        self.pending_paragraph = NO_PENDING_PARAGRAPH
        return True

    def should_sync_words(self, has_word_timing: bool) -> bool:
        """Word sync runs only with word timing loaded and no pending timeline."""
        return has_word_timing and self.timeline_ready

    @property
    def is_pending(self) -> bool:
        """Check if a timeline acknowledgment is outstanding."""
        return self.pending_paragraph != NO_PENDING_PARAGRAPH

    def reset(self) -> None:
        """Drop any pending state."""
        self.timeline_ready = True
        self.pending_paragraph = NO_PENDING_PARAGRAPH
