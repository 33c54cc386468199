"""Selects the start response interpretation.

Evaluates the start response against strategies in priority order:
1. ImmediateFailureStrategy - status failed
2. EmbeddedResultsStrategy - completed with round results
3. StatusFollowupStrategy - completed without round results
4. PendingStrategy - pending/running

The first strategy that can handle the response is used.
"""

from typing import List, Optional

from sampling_jobs.core.config import OrchestratorConfig
from sampling_jobs.core.exceptions import InvalidResponseShape
from sampling_jobs.core.interfaces.retry import RetryPort
from sampling_jobs.core.interfaces.sampling_api import SamplingApiPort
from sampling_jobs.core.interfaces.start_outcome import StartOutcome, StartOutcomeStrategy
from sampling_jobs.core.managers.start_outcome_strategies import (
    EmbeddedResultsStrategy,
    ImmediateFailureStrategy,
    PendingStrategy,
    StatusFollowupStrategy,
)
from sampling_jobs.core.models.job import StartJobResponse
from sampling_jobs.core.settings import logger


class StartOutcomeOrchestrator:
    def __init__(
        self,
        api: SamplingApiPort,
        config: OrchestratorConfig,
        retry_port: Optional[RetryPort] = None,
    ):
        self._strategies: List[StartOutcomeStrategy] = [
            ImmediateFailureStrategy(),
            EmbeddedResultsStrategy(),
            StatusFollowupStrategy(api, config, retry_port),
            PendingStrategy(),
        ]

    async def derive_outcome(self, response: StartJobResponse) -> StartOutcome:
        for strategy in self._strategies:
            if strategy.can_handle(response):
                logger.debug(
                    f"[outcome] using {strategy.__class__.__name__} for job_id={response.job_id} status={response.status}"
                )
                return await strategy.derive(response)

        # Statuses are a closed enum, so one strategy always matches
        raise InvalidResponseShape("start_job", f"unhandled status {response.status!r}")
