"""
Out-of-band agent messages delivered through push notifications.

trigger()  - produce the text now and push it.
schedule() - do the same after a delay; jobs live only in memory.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from birdhouse.protocol import Contact, OutboundMessageInput, TokenEvent
from birdhouse.providers.base import ProviderAdapter, ProviderSendInput, new_id, utc_now
from birdhouse.push import PushSender, PushTokenStore

logger = logging.getLogger(__name__)

FILLER_PROMPT = "Send a short async follow-up message in one sentence."
FALLBACK_TEXT = "Quick follow-up from your agent."
MIN_DELAY_SECONDS = 1
MAX_DELAY_SECONDS = 3600


@dataclass
class DispatchResult:
    delivered_to: int
    text: str


@dataclass
class ScheduledJob:
    job_id: str
    delay_seconds: int
    run_at: datetime


class JobStore:
    """Pending scheduled jobs, keyed by job id."""

    def __init__(self) -> None:
        self._jobs: dict[str, asyncio.Task] = {}

    def add(self, job_id: str, task: asyncio.Task) -> None:
        self._jobs[job_id] = task

    def discard(self, job_id: str) -> None:
        self._jobs.pop(job_id, None)

    def get(self, job_id: str) -> Optional[asyncio.Task]:
        return self._jobs.get(job_id)

    def pending(self) -> set[str]:
        return set(self._jobs)

    def clear(self) -> None:
        for task in self._jobs.values():
            task.cancel()
        self._jobs.clear()


class AsyncDispatcher:
    def __init__(
        self,
        resolve_adapter: Callable[[Contact], ProviderAdapter],
        push_store: PushTokenStore,
        push_sender: PushSender,
        jobs: Optional[JobStore] = None,
    ):
        self._resolve_adapter = resolve_adapter
        self._push_store = push_store
        self._push_sender = push_sender
        self.jobs = jobs or JobStore()

    async def generate_text(self, contact: Contact, thread_id: str, text: Optional[str] = None) -> str:
        if text and text.strip():
            return text

        adapter = self._resolve_adapter(contact)
        collected = ""
        async for event in adapter.send_message_stream(ProviderSendInput(
            contact=contact,
            thread_id=thread_id,
            message=OutboundMessageInput(text=FILLER_PROMPT),
        )):
            if isinstance(event, TokenEvent):
                collected += event.text
        return collected.strip() or FALLBACK_TEXT

    async def trigger(self, contact: Contact, thread_id: str, text: Optional[str] = None) -> DispatchResult:
        text = await self.generate_text(contact, thread_id, text)
        tokens = self._push_store.tokens(contact.id, thread_id)

        await self._push_sender.send(tokens, contact.display_name, text, {
            "contactId": contact.id,
            "threadId": thread_id,
            "text": text,
            "timestamp": utc_now().isoformat(),
        })
        return DispatchResult(delivered_to=len(tokens), text=text)

    def schedule(self, contact: Contact, thread_id: str, delay_seconds: int,
                 text: Optional[str] = None) -> ScheduledJob:
        if not MIN_DELAY_SECONDS <= delay_seconds <= MAX_DELAY_SECONDS:
            raise ValueError(f"delay_seconds must be between {MIN_DELAY_SECONDS} and {MAX_DELAY_SECONDS}")

        job_id = new_id()
        run_at = utc_now() + timedelta(seconds=delay_seconds)
        task = asyncio.create_task(self._run_job(job_id, delay_seconds, contact, thread_id, text))
        self.jobs.add(job_id, task)
        logger.info("Scheduled job %s for %s in %ds", job_id, contact.id, delay_seconds)
        return ScheduledJob(job_id=job_id, delay_seconds=delay_seconds, run_at=run_at)

    async def _run_job(self, job_id: str, delay_seconds: int, contact: Contact, thread_id: str,
                       text: Optional[str]) -> None:
        try:
            await asyncio.sleep(delay_seconds)
            await self.trigger(contact, thread_id, text)
        except Exception:
            logger.exception("Failed to dispatch scheduled async message %s", job_id)
        finally:
            self.jobs.discard(job_id)
