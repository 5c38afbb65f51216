"""
Models module for project snapshot sync.

This module contains the data models shared by the cache, the acquisition engine
and the sync preparation helpers.
"""

import enum
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Relative file path -> text content
ProjectSnapshot = Dict[str, str]


@dataclass(frozen=True)
class CacheEntry:
    """
    A cached snapshot for a single project.

    Attributes:
        project_id: The project identifier the snapshot belongs to
        files: The snapshot itself (path -> content)
        timestamp: Cache clock reading, in milliseconds, when the entry was stored
    """
    project_id: str
    files: ProjectSnapshot
    timestamp: float

    def age_ms(self, now: float) -> float:
        return now - self.timestamp


@dataclass(frozen=True)
class PreparedFile:
    """
    A file ready for comparison against the remote repository.

    Attributes:
        path: The path relative to the project root
        content: The original content
        normalized: The content after line-ending and whitespace normalization
        content_hash: The content-address hash of the normalized content
    """
    path: str
    content: str
    normalized: str
    content_hash: str


class AcquisitionState(enum.Enum):
    """States of one snapshot acquisition attempt."""
    IDLE = "idle"
    LOCATING_TRIGGER = "locating_trigger"
    MENU_OPEN = "menu_open"
    LOCATING_ACTION = "locating_action"
    INTERCEPTING = "intercepting"
    RESOLVED = "resolved"
    FAILED = "failed"


TERMINAL_STATES = frozenset({AcquisitionState.RESOLVED, AcquisitionState.FAILED})


@dataclass
class AcquisitionSession:
    """
    Tracks one in-flight acquisition attempt.

    The history records every state the session went through, starting at IDLE.
    """
    state: AcquisitionState = AcquisitionState.IDLE
    started_at: float = field(default_factory=time.monotonic)
    history: List[AcquisitionState] = field(default_factory=lambda: [AcquisitionState.IDLE])
    error: Optional[BaseException] = None

    def advance(self, state: AcquisitionState):
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Session already finished in state {self.state.value}")
        self.state = state
        self.history.append(state)

    def fail(self, error: BaseException):
        if self.state in TERMINAL_STATES:
            return
        self.error = error
        self.advance(AcquisitionState.FAILED)

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES


@dataclass(frozen=True)
class TriggerControl:
    """
    An export-initiating control found by a locator strategy.

    Attributes:
        element: The host element to activate
        strategy: Name of the strategy that found it
        activation: "keyboard" for an Enter keydown, "pointer" for a full pointer sequence
        submenu_label: Label of a submenu item to enter before the download action shows up
    """
    element: Any
    strategy: str
    activation: str = "pointer"
    submenu_label: Optional[str] = None
