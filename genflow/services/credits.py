"""Credits balance collaborator.

The balance is owned by the backend. This service only caches the last
read and forgets it after any paid operation.
"""

import logging
from typing import Optional

import httpx

from genflow.services.errors import RemoteServiceError

logger = logging.getLogger(__name__)


class CreditsService:
    """Cached view of the user's remaining credits."""
    
    def __init__(self, client: httpx.AsyncClient):
        self.client = client
        self._cached: Optional[int] = None
        self.invalidations = 0
    
    @property
    def cached_balance(self) -> Optional[int]:
        return self._cached
    
    async def get_balance(self, force: bool = False) -> int:
        """
        Get the user's credit balance.
        
        Args:
            force: Skip the cache and re-read from the backend
        
        Returns:
            Number of remaining credits
        
        Raises:
            RemoteServiceError: If the backend refuses the request
        """
        if self._cached is not None and not force:
            return self._cached
        
        invalidations = self.invalidations
        response = await self.client.get("/v1/credits/balance")
        if not response.is_success:
            try:
                body = response.json()
            except ValueError:
                body = None
            raise RemoteServiceError(response.status_code, body)
        
        balance = int(response.json().get("credits", 0))
        logger.info(f"Credits balance fetched: {balance}")
        
        # A paid operation finished while we were reading: the value is stale
        if self.invalidations == invalidations:
            self._cached = balance
        return balance
    
    def invalidate(self) -> None:
        """Forget the cached balance so the next read hits the backend."""
        self._cached = None
        self.invalidations += 1
        logger.debug("Credits balance cache invalidated")
