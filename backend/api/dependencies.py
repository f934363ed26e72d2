"""
Process-wide services shared by the API routes.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict

from fastapi import HTTPException, Request

from core.config import MAX_LIVE_SESSIONS
from core.database import CourseStore, Database
from core.errors import PipelineBusy
from core.ollama_client import OllamaClient
from core.prompt_manager import PromptManager
from core.retry import RetryPolicy
from services.generation.adapter import GenerationAdapter
from services.generation.video_search import create_video_search
from services.pipeline.session import CourseSession

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    """Everything a request may need, created once per process."""
    adapter: GenerationAdapter
    retry: RetryPolicy
    store: CourseStore
    # run_id -> session, least recently used first
    sessions: Dict[str, CourseSession] = field(default_factory=OrderedDict)
    max_sessions: int = MAX_LIVE_SESSIONS

    def get_session(self, run_id: str) -> CourseSession:
        session = self.sessions.get(run_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Run not found")
        self.sessions.move_to_end(run_id)
        return session

    def add_session(self, session: CourseSession) -> CourseSession:
        self.sessions[session.session_id] = session
        self.sessions.move_to_end(session.session_id)
        self._evict()
        return session

    def remove_session(self, run_id: str) -> CourseSession:
        """Drop a run and its tutor conversation."""
        session = self.get_session(run_id)
        if session.pipeline.is_generating:
            raise PipelineBusy("wait until generation has finished before closing the run")
        del self.sessions[run_id]
        self.adapter.drop_thread(session.chat_thread_id)
        return session

    def _evict(self) -> None:
        # Runs still generating are never evicted
        excess = len(self.sessions) - self.max_sessions
        idle = [run_id for run_id, s in self.sessions.items() if not s.pipeline.is_generating]
        for run_id in idle[:max(0, excess)]:
            logger.info("Evicting run %s", run_id)
            self.remove_session(run_id)


def build_services() -> AppServices:
    """Default wiring from core.config."""
    adapter = GenerationAdapter(
        OllamaClient(),
        PromptManager(),
        video_search=create_video_search(),
    )
    return AppServices(
        adapter=adapter,
        retry=RetryPolicy(adapter.call),
        store=CourseStore(Database()),
    )


def get_services(request: Request) -> AppServices:
    return request.app.state.services
