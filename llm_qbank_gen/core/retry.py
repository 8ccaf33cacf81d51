from __future__ import annotations

import logging
import time
from typing import Callable, Union

from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from .errors import QBankGenError, ResponseParseError
from .types import FatalError, GenerationOutcome, GenerationRequest, ParseFailure, RetryState, Success

logger = logging.getLogger(__name__)

Parser = Callable[[str], Union[Success, ParseFailure]]


class RetryController:
    """Re-runs generation + parsing while the output fails to parse.

    Only parse failures are retried. Provider errors (HTTP status, timeouts,
    token failures, malformed envelopes) end the unit at once as a
    ``FatalError``. Exhausting ``max_attempts`` yields the last
    ``ParseFailure``.
    """

    def __init__(
        self,
        max_attempts: int = 5,
        pause: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.pause = pause
        self.sleep = sleep
        self.last_state: Union[RetryState, None] = None

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.info(
            "Retrying response parsing (attempt %s of %s): %s",
            retry_state.attempt_number + 1,
            self.max_attempts,
            exc,
        )

    def run(
        self,
        request: GenerationRequest,
        generate: Callable[[GenerationRequest], str],
        parse: Parser,
    ) -> GenerationOutcome:
        state = RetryState(max_attempts=self.max_attempts, last_request_payload=request)
        self.last_state = state

        def attempt() -> Success:
            state.attempts_made += 1
            raw = generate(request)
            result = parse(raw)
            if isinstance(result, ParseFailure):
                raise ResponseParseError(result.message, raw)
            return result

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.pause),
            retry=retry_if_exception_type(ResponseParseError),
            before_sleep=self._log_retry,
            sleep=self.sleep,
            reraise=True,
        )
        try:
            return retrying(attempt)
        except ResponseParseError as e:
            logger.warning("Giving up after %s attempts: %s", state.attempts_made, e)
            return ParseFailure(
                f"{e} (after {state.attempts_made} attempts)", retryable=True, raw=e.raw
            )
        except QBankGenError as e:
            logger.warning("Generation failed on attempt %s: %s", state.attempts_made, e)
            return FatalError(str(e))
