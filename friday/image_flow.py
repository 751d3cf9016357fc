"""One-shot image generation with a synthetic progress indicator.

The progress value is advisory only: a ticker task raises it at a fixed
interval while the real request runs, and the request's completion always
cancels the ticker.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Callable, Optional

from .capabilities import ImageBackend
from .errors import ImageFlowBusyError, as_assistant_error
from .intent import image_prompt
from .message_log import MessageLog
from .models import ImageOutcome, Message
from .utils import new_message_id, now_ms

logger = logging.getLogger("friday.image")

FAILURE_TEXT = "Image generation failed."

START_PROGRESS = 6
TICK_FLOOR = 10.0
TICK_MAX_STEP = 12.0
TICK_CAP = 88.0
RESPONSE_PROGRESS = 80
DONE_PROGRESS = 100


class ImageGenerationFlow:
    """Request/response cycle against the image capability, appending to the log."""

    def __init__(
        self,
        backend: ImageBackend,
        log: MessageLog,
        tick_interval: float = 0.38,
        reset_delay: float = 0.9,
        rng: Optional[random.Random] = None,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> None:
        self._backend = backend
        self._log = log
        self._tick_interval = tick_interval
        self._reset_delay = reset_delay
        self._rng = rng or random.Random()
        self._on_progress = on_progress
        self._progress = 0
        self._generating = False
        self._reset_task: Optional[asyncio.Task] = None

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def is_generating(self) -> bool:
        return self._generating

    def _set_progress(self, value: int) -> None:
        self._progress = value
        if self._on_progress is not None:
            self._on_progress(value)

    async def _tick(self) -> None:
        # Advance from the floor by a random step each interval, never past the cap.
        value = TICK_FLOOR
        while True:
            await asyncio.sleep(self._tick_interval)
            value = min(value + self._rng.random() * TICK_MAX_STEP, TICK_CAP)
            self._set_progress(int(value))

    async def _reset_later(self) -> None:
        await asyncio.sleep(self._reset_delay)
        self._set_progress(0)

    async def generate(self, prompt_text: str) -> ImageOutcome:
        """Purpose: Generate one image and append the result (or failure) to the log.
        Inputs/Outputs: Input is raw user text; returns ImageOutcome with result or error.
        Side Effects / State: Runs the progress ticker, appends exactly one assistant
            message, schedules the progress reset.
        Dependencies: Uses image_prompt, ImageBackend.generate_image, MessageLog.append.
        Failure Modes: Transport errors and refusals become FAILURE_TEXT plus the error
            in the outcome; ImageFlowBusyError if a generation is already running.
        If Removed: Image intents have nowhere to go.
        Testing Notes: A refusing backend yields one failure message and progress 0 later.
        """
        if self._generating:
            raise ImageFlowBusyError()
        self._generating = True
        if self._reset_task is not None:
            self._reset_task.cancel()
            self._reset_task = None

        prompt = image_prompt(prompt_text)
        self._set_progress(START_PROGRESS)
        ticker = asyncio.create_task(self._tick())
        message_id = new_message_id()
        try:
            try:
                result = await self._backend.generate_image(prompt)
            finally:
                ticker.cancel()
                try:
                    await ticker
                except asyncio.CancelledError:
                    pass
            self._set_progress(RESPONSE_PROGRESS)
            self._log.append(
                Message(
                    id=message_id,
                    sender="assistant",
                    text=f'Generated image: "{prompt}"',
                    image=result.data_uri,
                    timestamp=now_ms(),
                )
            )
            self._set_progress(DONE_PROGRESS)
            logger.info("image prompt=%s mime=%s bytes=%s", prompt, result.mime_type, len(result.data))
            return ImageOutcome(message_id=message_id, result=result)
        except Exception as exc:
            error = as_assistant_error(exc)
            logger.error("image prompt=%s failed: %s", prompt, error, exc_info=True)
            self._log.append(Message(id=message_id, sender="assistant", text=FAILURE_TEXT, timestamp=now_ms()))
            return ImageOutcome(message_id=message_id, error=error)
        finally:
            self._generating = False
            self._reset_task = asyncio.create_task(self._reset_later())
