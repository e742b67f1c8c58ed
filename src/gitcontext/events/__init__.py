"""In-process change notification for the identity engine."""

from gitcontext.events.bus import Event, EventBus, EventHandler

__all__ = ["Event", "EventBus", "EventHandler"]
