"""History delta walker: bootstrap window or incremental change feed for one mailbox."""

from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

from mailsync.errors import UpstreamRequestError
from mailsync.mail_provider.protocol import MailProvider
from mailsync.models.cursor import HistoryCursor
from mailsync.models.email import MessageAddedEvent
from mailsync.utils.logger import get_logger

logger = get_logger("mailsync.sync.history")


@dataclass
class BootstrapResult:
    events: list[MessageAddedEvent]
    cursor: HistoryCursor


@dataclass
class IncrementalWalk:
    """One pass over the change feed since `start`.

    Iterate `events()` to completion; `cursor` then holds the highest cursor seen across
    record ids and page cursors (never below `start`). `completed` is False until the last
    page has been consumed, so a partially iterated walk must not be persisted.
    """

    provider: MailProvider
    start: HistoryCursor
    cursor: HistoryCursor = field(init=False)
    pages: int = field(default=0, init=False)
    completed: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        self.cursor = self.start

    def _observe(self, raw: Optional[str]) -> None:
        candidate = HistoryCursor.parse(raw)
        if candidate is not None and candidate > self.cursor:
            self.cursor = candidate

    async def events(self) -> AsyncIterator[MessageAddedEvent]:
        seen: set[str] = set()
        page_token: Optional[str] = None
        while True:
            page = await self.provider.list_history(self.start.value, page_token=page_token)
            self.pages += 1
            for record in page.history:
                self._observe(record.id)
                for added in record.messagesAdded:
                    if added.message is None or added.message.id in seen:
                        continue
                    seen.add(added.message.id)
                    yield MessageAddedEvent(message_id=added.message.id, thread_id=added.message.threadId)
            self._observe(page.historyId)
            logger.debug(
                "history.page",
                page=self.pages,
                records=len(page.history),
                has_next=bool(page.nextPageToken),
            )
            if not page.nextPageToken:
                break
            page_token = page.nextPageToken
        self.completed = True


class HistoryWalker:
    """Turns provider responses into message-added events plus the cursor to persist."""

    def __init__(self, provider: MailProvider):
        self._provider = provider

    async def bootstrap(self, window: int) -> BootstrapResult:
        """Baseline cursor from the profile plus the `window` most recent messages.

        The profile is read before the listing: a message arriving in between is both
        listed now and replayed by the next incremental walk, never lost.
        """
        profile = await self._provider.get_profile()
        cursor = HistoryCursor.parse(profile.historyId)
        if cursor is None:
            raise UpstreamRequestError("Mailbox profile did not include a historyId", status=200)
        refs = await self._provider.list_recent_messages(window)
        events: list[MessageAddedEvent] = []
        seen: set[str] = set()
        for ref in refs:
            if ref.id in seen:
                continue
            seen.add(ref.id)
            events.append(MessageAddedEvent(message_id=ref.id, thread_id=ref.threadId))
        logger.debug("history.bootstrap", window=window, events=len(events), cursor=cursor.value)
        return BootstrapResult(events=events, cursor=cursor)

    def incremental(self, start: HistoryCursor) -> IncrementalWalk:
        return IncrementalWalk(provider=self._provider, start=start)
