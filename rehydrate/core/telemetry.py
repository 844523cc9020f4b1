"""
Telemetry collection for debugging cache behaviour.

When enabled via config.enable_telemetry, this module tracks:
- Cache hits (valid entries served unchanged)
- Cache misses (full denormalization)
- Stale entries and the relationships that were recomputed
- Collection rebuilds
- Fallbacks to cached values for entities removed from storage
- Cache flushes
"""
from typing import Any, Dict, Iterable, List, Optional
from contextvars import ContextVar
import time

# Context variable to hold the current telemetry context
_telemetry_context: ContextVar[Optional['TelemetryContext']] = ContextVar('rehydrate_telemetry_context', default=None)


class TelemetryContext:
    """
    Collects telemetry data for a sequence of denormalization calls.
    """

    def __init__(self):
        self.enabled = False
        self.start_time = time.time()
        self.cache_hits: List[Dict[str, Any]] = []
        self.cache_misses: List[Dict[str, Any]] = []
        self.stale_entries: List[Dict[str, Any]] = []
        self.collections: List[Dict[str, Any]] = []
        self.fallbacks: List[Dict[str, Any]] = []
        self.events: List[Dict[str, Any]] = []

    def _elapsed(self) -> float:
        return time.time() - self.start_time

    def record_cache_hit(self, descriptor: Any):
        """Record a valid cache entry served unchanged."""
        if not self.enabled:
            return
        self.cache_hits.append({
            'descriptor': str(descriptor),
            'timestamp': self._elapsed()
        })

    def record_cache_miss(self, descriptor: Any):
        """Record a full denormalization."""
        if not self.enabled:
            return
        self.cache_misses.append({
            'descriptor': str(descriptor),
            'timestamp': self._elapsed()
        })

    def record_stale(self, descriptor: Any, changed_relationships: Iterable[str]):
        """Record a partial recomputation."""
        if not self.enabled:
            return
        self.stale_entries.append({
            'descriptor': str(descriptor),
            'changed_relationships': sorted(changed_relationships),
            'timestamp': self._elapsed()
        })

    def record_collection(self, schema: Optional[str], tag: Optional[str], state: str, size: int):
        """Record how a collection request was answered."""
        if not self.enabled:
            return
        self.collections.append({
            'schema': schema,
            'tag': tag,
            'state': state,
            'size': size,
            'timestamp': self._elapsed()
        })

    def record_fallback(self, descriptor: Any):
        """Record a cached value served for an entity missing from storage."""
        if not self.enabled:
            return
        self.fallbacks.append({
            'descriptor': str(descriptor),
            'timestamp': self._elapsed()
        })

    def record_event(self, event_type: str, description: str, data: Optional[Dict] = None):
        """Record a generic event."""
        if not self.enabled:
            return
        self.events.append({
            'event_type': event_type,
            'description': description,
            'data': data,
            'timestamp': self._elapsed()
        })

    def get_telemetry_data(self) -> Dict[str, Any]:
        """
        Get all collected telemetry data.
        """
        if not self.enabled:
            return {}

        return {
            'enabled': True,
            'duration_ms': self._elapsed() * 1000,
            'cache': {
                'hits': len(self.cache_hits),
                'misses': len(self.cache_misses),
                'stale': len(self.stale_entries),
                'hit_details': self.cache_hits,
                'miss_details': self.cache_misses,
                'stale_details': self.stale_entries,
            },
            'collections': self.collections,
            'fallbacks': self.fallbacks,
            'events': self.events,
        }


def get_telemetry_context() -> Optional[TelemetryContext]:
    """Get the current telemetry context."""
    return _telemetry_context.get()


def set_telemetry_context(context: Optional[TelemetryContext]):
    """Set the current telemetry context."""
    _telemetry_context.set(context)


def create_telemetry_context(enabled: bool = False) -> TelemetryContext:
    """Create and activate a new telemetry context."""
    context = TelemetryContext()
    context.enabled = enabled
    set_telemetry_context(context)
    return context


def clear_telemetry_context():
    """Clear the current telemetry context."""
    set_telemetry_context(None)
