"""Explicit state machines for page fetches and overlay loads."""

from enum import Enum


class InvalidTransition(Exception):
    def __init__(self, current, target):
        super().__init__(f"Cannot move from {current.value} to {target.value}")
        self.current = current
        self.target = target


class FetchPhase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


class OverlayPhase(str, Enum):
    EMPTY = "empty"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


# LOADING -> LOADING happens when a newer request supersedes one in flight
FETCH_TRANSITIONS = {
    FetchPhase.IDLE: {FetchPhase.LOADING},
    FetchPhase.LOADING: {FetchPhase.LOADING, FetchPhase.LOADED, FetchPhase.ERROR},
    FetchPhase.LOADED: {FetchPhase.LOADING, FetchPhase.IDLE},
    FetchPhase.ERROR: {FetchPhase.LOADING, FetchPhase.IDLE},
}

OVERLAY_TRANSITIONS = {
    OverlayPhase.EMPTY: {OverlayPhase.EMPTY, OverlayPhase.LOADING},
    OverlayPhase.LOADING: {OverlayPhase.LOADING, OverlayPhase.READY, OverlayPhase.FAILED, OverlayPhase.EMPTY},
    OverlayPhase.READY: {OverlayPhase.LOADING, OverlayPhase.EMPTY},
    OverlayPhase.FAILED: {OverlayPhase.LOADING, OverlayPhase.EMPTY},
}


class StateMachine:
    """Tracks one phase value and rejects transitions missing from the table."""

    def __init__(self, transitions: dict, initial):
        self.transitions = transitions
        self.state = initial

    def can_transition(self, target) -> bool:
        return target in self.transitions.get(self.state, set())

    def transition(self, target):
        if not self.can_transition(target):
            raise InvalidTransition(self.state, target)
        self.state = target
        return target
