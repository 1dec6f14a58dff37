"""
Delta extraction contract.

An extractor turns one utterance plus the current slot state into a
SlotDelta. How it does that (rules, an LLM) is its own business; the engine
only relies on this interface and on safe_extract(), which guarantees a
usable delta no matter what the extractor does.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Any, Dict, Optional, Sequence

from ..data_types import Child, SlotDelta, Slots
from ..errors import MalformedDeltaError
from ..merge.validation import validate_delta

logger = logging.getLogger(__name__)

# Shared pool so a timed-out call does not block the caller on shutdown
_EXTRACTION_POOL = ThreadPoolExecutor(max_workers=8, thread_name_prefix="chorevoice-extract")


class DeltaExtractor(ABC):
    """
    Abstract base class for delta extractors.

    Implementations must provide:
    - extract(utterance, current_slots, expected_slot, roster) -> SlotDelta | dict
    """

    @abstractmethod
    def extract(
        self,
        utterance: str,
        current_slots: Slots,
        expected_slot: Optional[str],
        roster: Sequence[Child],
    ) -> Any:
        """
        Extract a structured update from one utterance.

        Args:
            utterance: Transcript of what the user said
            current_slots: Slots filled so far
            expected_slot: Slot the last prompt asked for (None when complete)
            roster: Children valid for the session

        Returns:
            SlotDelta, or a dict in SlotDelta wire form
        """


def safe_extract(
    extractor: DeltaExtractor,
    utterance: str,
    current_slots: Slots,
    expected_slot: Optional[str],
    roster: Sequence[Child],
    timeout: Optional[float] = None,
    log_context: Optional[Dict[str, Any]] = None,
) -> SlotDelta:
    """
    Run an extractor and always return a valid SlotDelta.

    Exceptions, timeouts and malformed output are recovered as a noop delta,
    so the dialogue re-asks the current slot instead of failing the turn.
    """
    context = dict(log_context or {})
    try:
        if timeout is None:
            raw = extractor.extract(utterance, current_slots, expected_slot, roster)
        else:
            future = _EXTRACTION_POOL.submit(
                extractor.extract, utterance, current_slots, expected_slot, roster
            )
            try:
                raw = future.result(timeout=timeout)
            except FutureTimeoutError:
                future.cancel()
                logger.warning(
                    f"Extraction timed out after {timeout}s, treating turn as noop",
                    extra=context,
                )
                return SlotDelta.noop("Extraction timed out")
        return validate_delta(raw)
    except MalformedDeltaError as e:
        logger.warning(f"Malformed delta, treating turn as noop: {e}", extra=context)
        return SlotDelta.noop(f"Malformed delta: {e}")
    except Exception as e:
        logger.error(
            f"Extractor raised, treating turn as noop: {e}",
            extra={**context, "error_type": type(e).__name__},
            exc_info=True,
        )
        return SlotDelta.noop(f"Extraction failed: {type(e).__name__}")
