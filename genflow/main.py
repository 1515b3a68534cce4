"""Engine wiring.

This module provides:
- Logging setup
- Engine: builds the session store, HTTP client, poller and orchestrator
- open_workflow(): the entry point used by the presentation layer
"""

import logging
from typing import Optional

from genflow.config import Config, config as default_config
from genflow.services.credits import CreditsService
from genflow.services.generation_api import GenerationService, HttpGenerationService
from genflow.services.orchestrator import GenerationOrchestrator
from genflow.session.manager import SessionManager
from genflow.session.store import SessionStore, create_session_store
from genflow.tasks.polling import JobPoller
from genflow.workflow import Workflow

logger = logging.getLogger(__name__)


def setup_logging(cfg: Optional[Config] = None) -> None:
    """Configure logging for the process."""
    cfg = cfg or default_config
    logging.basicConfig(
        level=getattr(logging, cfg.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


class Engine:
    """
    Owns the collaborators shared by every workflow.
    
    Startup:
    - Create tables when sessions live in the database
    
    Shutdown:
    - Close the HTTP client, the session store and database connections
    """
    
    def __init__(
        self,
        cfg: Optional[Config] = None,
        service: Optional[GenerationService] = None,
        store: Optional[SessionStore] = None,
        credits: Optional[CreditsService] = None,
    ):
        self.config = cfg or default_config
        
        if service is None:
            service = HttpGenerationService(
                base_url=self.config.api_base_url,
                api_token=self.config.api_token,
                timeout=self.config.request_timeout,
            )
        self.service = service
        
        if credits is None and isinstance(service, HttpGenerationService):
            credits = CreditsService(service.client)
        self.credits = credits
        
        self.store = store or create_session_store(self.config)
        self.sessions = SessionManager(self.store)
        
        self.poller = JobPoller(
            service,
            interval=self.config.poll_interval_seconds,
            timeout=self.config.poll_timeout_seconds,
            max_check_failures=self.config.poll_max_check_failures,
        )
        self.orchestrator = GenerationOrchestrator(service, self.poller, credits=self.credits)
    
    async def start(self) -> None:
        logger.info("Starting generation engine...")
        await self.store.prepare()
    
    async def open_workflow(self, owner_id: int, variant: str) -> Workflow:
        """
        Open (or resume) an owner's workflow.
        
        Raises:
            KeyError: If the variant is unknown
        """
        container = await self.sessions.get(owner_id, variant)
        return Workflow(container, self.orchestrator)
    
    async def close(self) -> None:
        logger.info("Shutting down generation engine...")
        
        if isinstance(self.service, HttpGenerationService):
            await self.service.close()
        
        await self.store.close()
