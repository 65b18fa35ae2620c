"""
Per-session cache of spatial analyses and design suggestions, keyed by image URL.

Entries live only in process memory for the lifetime of the client session.
An entry is never mutated in place: storing suggestions replaces the entry
with a new one that carries both results.
"""
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Dict, Optional

from roomlens.schemas.design import DesignSuggestions
from roomlens.schemas.spatial import EnrichedSpatialAnalysis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedAnalysis:
    """Results produced for one image within one session"""

    image_url: str
    analysis: EnrichedSpatialAnalysis
    suggestions: Optional[DesignSuggestions] = None
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class SessionEntry:
    session_id: str
    images: Dict[str, CachedAnalysis] = field(default_factory=dict)
    last_updated: datetime = field(default_factory=datetime.now)


class SessionAnalysisCache:
    """Manages cached analysis results across client sessions"""

    def __init__(self, session_ttl_hours: int = 24):
        self.session_ttl = timedelta(hours=session_ttl_hours)
        self.sessions: Dict[str, SessionEntry] = {}

        logger.info(f"Session analysis cache initialized - TTL: {session_ttl_hours}h")

    def _get_session(self, session_id: str) -> Optional[SessionEntry]:
        entry = self.sessions.get(session_id)
        if entry is None:
            return None
        if datetime.now() - entry.last_updated > self.session_ttl:
            logger.info(f"Session {session_id[:8]} expired, discarding cached analyses")
            del self.sessions[session_id]
            return None
        return entry

    def get(self, session_id: Optional[str], image_url: str) -> Optional[CachedAnalysis]:
        if not session_id:
            return None
        entry = self._get_session(session_id)
        if entry is None:
            return None
        return entry.images.get(image_url)

    def store_analysis(self, session_id: Optional[str], image_url: str, analysis: EnrichedSpatialAnalysis) -> None:
        if not session_id:
            return
        self.cleanup_expired_sessions()
        entry = self._get_session(session_id) or self.sessions.setdefault(session_id, SessionEntry(session_id))
        entry.images[image_url] = CachedAnalysis(image_url=image_url, analysis=analysis)
        entry.last_updated = datetime.now()

    def store_suggestions(self, session_id: Optional[str], image_url: str, suggestions: DesignSuggestions) -> None:
        """Attach suggestions to the analysis already cached for this image"""
        cached = self.get(session_id, image_url)
        if cached is None:
            return
        entry = self.sessions[session_id]
        entry.images[image_url] = replace(cached, suggestions=suggestions)
        entry.last_updated = datetime.now()

    def discard(self, session_id: str) -> bool:
        """Drop everything cached for a session"""
        if session_id in self.sessions:
            del self.sessions[session_id]
            logger.info(f"Discarded cached analyses for session {session_id[:8]}")
            return True
        return False

    def cleanup_expired_sessions(self) -> int:
        now = datetime.now()
        expired = [sid for sid, entry in self.sessions.items() if now - entry.last_updated > self.session_ttl]
        for sid in expired:
            del self.sessions[sid]
        if expired:
            logger.info(f"Cleaned up {len(expired)} expired analysis sessions")
        return len(expired)
