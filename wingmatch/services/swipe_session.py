"""Swipe session controller for the Discover and WingSwipe screens.

A session owns one screen's in-memory pool and index. Gestures advance the
index immediately and then write; each gesture is a command whose
compensation (putting the card back) runs only when the write fails.
Storage calls are blocking, so the gateway runs them in worker threads.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from wingmatch.config import settings
from wingmatch.models.card import DiscoverCard, PoolTab, WingCard
from wingmatch.models.decision import Decision, DecisionOutcome
from wingmatch.services import decision_service, match_service, pool_service
from wingmatch.utils.errors import ConflictError, WingMatchError
from wingmatch.utils.logging import get_logger, log_error

logger = get_logger(__name__)


class SessionState(str, Enum):
    """Lifecycle of a swipe session."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ADVANCING = "advancing"  # at least one write in flight
    EXHAUSTED = "exhausted"
    CLOSED = "closed"


class SwipeOutcome(str, Enum):
    """What a gesture produced, as reported to the interaction surface."""

    MATCH = "match"
    LIKED = "liked"
    PASSED = "passed"
    SUGGESTED = "suggested"
    DECLINED = "declined"
    ERROR = "error"
    EMPTY = "empty"  # no card at the current index


@dataclass
class SwipeResult:
    """Result of one gesture."""

    outcome: SwipeOutcome
    card: Optional[WingCard] = None
    error: Optional[WingMatchError] = None

    @property
    def retryable(self) -> bool:
        """Transient and conflict failures get a retry affordance; others are terminal."""
        return self.error is not None and self.error.retryable


@dataclass
class SwipeCommand:
    """A gesture's forward write and whether failure should put the card back."""

    card: WingCard
    forward: Callable[[], Awaitable[SwipeOutcome]]
    rollback: bool = True


@dataclass
class _PairLock:
    """Write lock for one recipient, dropped once no gesture holds or awaits it."""

    lock: asyncio.Lock
    users: int = 0


class SwipeGateway:
    """Async facade over the engine services."""

    async def discover_page(
        self,
        viewer_id: str,
        filter_winger_id: Optional[str],
        tab: PoolTab,
        page_size: int,
        offset: int,
    ) -> List[DiscoverCard]:
        return await asyncio.to_thread(
            pool_service.resolve_discover_pool, viewer_id, filter_winger_id, page_size, offset, tab
        )

    async def wing_page(self, winger_id: str, dater_id: str, page_size: int, offset: int) -> List[WingCard]:
        return await asyncio.to_thread(pool_service.resolve_wing_pool, winger_id, dater_id, page_size, offset)

    async def record_direct(self, actor_id: str, recipient_id: str, outcome: DecisionOutcome) -> Decision:
        return await asyncio.to_thread(decision_service.record_direct, actor_id, recipient_id, outcome)

    async def resolve_pending(self, actor_id: str, recipient_id: str, outcome: DecisionOutcome) -> int:
        return await asyncio.to_thread(decision_service.resolve_pending, actor_id, recipient_id, outcome)

    async def suggest(self, dater_id: str, recipient_id: str, winger_id: str, note: Optional[str]) -> Decision:
        return await asyncio.to_thread(decision_service.suggest, dater_id, recipient_id, winger_id, note)

    async def suggest_decline(self, dater_id: str, recipient_id: str, winger_id: str) -> Decision:
        return await asyncio.to_thread(decision_service.suggest_decline, dater_id, recipient_id, winger_id)

    async def match_exists(self, user_a: str, user_b: str) -> bool:
        return await asyncio.to_thread(match_service.exists, user_a, user_b)


class SwipeSession:
    """
    Paginated pool plus index for one screen.

    The next page offset is the number of rows fetched minus the decisions
    this session has issued: each committed write removes one already-fetched
    row from the server-side pool. A write is counted as soon as it is issued
    and un-counted if it fails, so a write that has committed but not yet
    answered never pushes the offset late. An offset that lands early only
    re-fetches rows already held, and those are de-duplicated.

    A failed prefetch is kept in ``prefetch_error``; ``load_more()`` retries
    it, and so does the next gesture that finds no card.
    """

    def __init__(
        self,
        gateway: Optional[SwipeGateway] = None,
        page_size: Optional[int] = None,
        prefetch_threshold: Optional[int] = None,
    ) -> None:
        self.gateway = gateway or SwipeGateway()
        self.page_size = page_size or settings.DISCOVER_PAGE_SIZE
        self.prefetch_threshold = settings.PREFETCH_THRESHOLD if prefetch_threshold is None else prefetch_threshold

        self.pool: List[WingCard] = []
        self.index = 0
        self.state = SessionState.IDLE

        self._seen: set[str] = set()
        self._fetched = 0
        self._consumed = 0
        self._in_flight = 0
        self._end_reached = False
        self._generation = 0
        self._prefetch_task: Optional[asyncio.Task[None]] = None
        self._pair_locks: Dict[str, _PairLock] = {}
        self.prefetch_error: Optional[WingMatchError] = None

    async def _fetch_page(self, offset: int) -> Sequence[WingCard]:
        raise NotImplementedError

    @property
    def current_card(self) -> Optional[WingCard]:
        if 0 <= self.index < len(self.pool):
            return self.pool[self.index]
        return None

    @property
    def next_offset(self) -> int:
        return max(0, self._fetched - self._consumed)

    @property
    def is_prefetching(self) -> bool:
        return self._prefetch_task is not None and not self._prefetch_task.done()

    async def start(self) -> None:
        """Reset the pool and index and load the first page."""
        if self.state == SessionState.CLOSED:
            return
        self._generation += 1
        generation = self._generation

        self.pool = []
        self.index = 0
        self._seen = set()
        self._fetched = 0
        self._consumed = 0
        self._end_reached = False
        self._prefetch_task = None
        self.prefetch_error = None
        self.state = SessionState.LOADING

        try:
            page = await self._fetch_page(0)
        except WingMatchError:
            if generation == self._generation:
                self.state = SessionState.IDLE
            raise

        if generation != self._generation or self.state == SessionState.CLOSED:
            return
        self._append(page)
        self._refresh_state()
        self._maybe_prefetch()

    async def close(self) -> None:
        """Stop consuming results. Late responses are discarded."""
        self._generation += 1
        self.state = SessionState.CLOSED
        task = self._prefetch_task
        self._prefetch_task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def wait_for_prefetch(self) -> None:
        """Wait for an in-flight prefetch, if any."""
        task = self._prefetch_task
        if task is not None:
            await task

    async def load_more(self) -> None:
        """
        Fetch the next page now, retrying a failed prefetch.

        Joins a prefetch already in flight instead of starting another.
        Raises the fetch error if the page could not be loaded.
        """
        if self.state == SessionState.CLOSED or self._end_reached:
            return
        if not self.is_prefetching:
            self.prefetch_error = None
            self._prefetch_task = asyncio.create_task(self._load_more(self._generation))
        await self.wait_for_prefetch()
        if self.prefetch_error is not None:
            raise self.prefetch_error

    def _append(self, page: Sequence[WingCard]) -> None:
        self._fetched += len(page)
        if len(page) < self.page_size:
            self._end_reached = True
        for card in page:
            if card.user_id not in self._seen:
                self._seen.add(card.user_id)
                self.pool.append(card)

    def _refresh_state(self) -> None:
        if self.state == SessionState.CLOSED:
            return
        if self._in_flight:
            self.state = SessionState.ADVANCING
        elif self.current_card is not None:
            self.state = SessionState.READY
        elif self._end_reached:
            self.state = SessionState.EXHAUSTED
        else:
            self.state = SessionState.LOADING

    def _maybe_prefetch(self) -> None:
        if self.state == SessionState.CLOSED or self._end_reached or not self.pool:
            return
        if self.is_prefetching:
            return
        if self.index >= len(self.pool) - self.prefetch_threshold:
            self.prefetch_error = None
            self._prefetch_task = asyncio.create_task(self._load_more(self._generation))

    def _no_card(self) -> SwipeResult:
        """Report an empty index; a page that failed to load is requested again."""
        self._maybe_prefetch()
        return SwipeResult(SwipeOutcome.EMPTY)

    async def _load_more(self, generation: int) -> None:
        offset = self.next_offset
        try:
            page = await self._fetch_page(offset)
        except WingMatchError as e:
            if generation == self._generation:
                self.prefetch_error = e
            log_error(logger, e, "Prefetch failed", {"offset": offset})
            return

        if generation != self._generation or self.state == SessionState.CLOSED:
            logger.debug("Discarding stale page", offset=offset)
            return
        self._append(page)
        self._refresh_state()
        logger.debug("Page appended", offset=offset, count=len(page), pool_size=len(self.pool))

    def _restore(self, card: WingCard, position: int) -> None:
        """Put a card back after its write failed, so it is shown again."""
        if self.index == position + 1 and self.pool[position] is card:
            self.index = position
        else:
            # Later gestures already moved past it; show it next.
            self.pool.insert(self.index, card)

    async def _perform(self, command: SwipeCommand) -> SwipeResult:
        card = command.card
        position = self.index
        generation = self._generation

        self.index += 1
        self._in_flight += 1
        self._consumed += 1
        self._refresh_state()
        self._maybe_prefetch()

        # Writes to one recipient run in gesture order
        pair = self._pair_locks.setdefault(card.user_id, _PairLock(asyncio.Lock()))
        pair.users += 1
        try:
            async with pair.lock:
                outcome = await command.forward()
        except Exception as e:
            if generation == self._generation:
                # The row is still in the server-side pool
                self._consumed -= 1
                if command.rollback:
                    self._restore(card, position)
            if not isinstance(e, WingMatchError):
                raise
            logger.warning(
                "Swipe write failed",
                recipient_id=card.user_id,
                error_type=e.__class__.__name__,
                error=e.message,
                rolled_back=command.rollback,
            )
            return SwipeResult(SwipeOutcome.ERROR, card, e)
        finally:
            pair.users -= 1
            if not pair.users:
                del self._pair_locks[card.user_id]
            self._in_flight -= 1
            self._refresh_state()

        return SwipeResult(outcome, card)


class DiscoverSession(SwipeSession):
    """The dater's own Discover screen."""

    def __init__(
        self,
        viewer_id: str,
        filter_winger_id: Optional[str] = None,
        tab: PoolTab = PoolTab.FOR_YOU,
        gateway: Optional[SwipeGateway] = None,
        page_size: Optional[int] = None,
        prefetch_threshold: Optional[int] = None,
    ) -> None:
        super().__init__(gateway, page_size, prefetch_threshold)
        self.viewer_id = viewer_id
        self.filter_winger_id = filter_winger_id
        self.tab = PoolTab.WINGER if filter_winger_id else tab

    async def _fetch_page(self, offset: int) -> Sequence[WingCard]:
        return await self.gateway.discover_page(
            self.viewer_id, self.filter_winger_id, self.tab, self.page_size, offset
        )

    async def set_filter(self, filter_winger_id: Optional[str], tab: PoolTab = PoolTab.FOR_YOU) -> None:
        """Switch tabs: resets the pool and index and reloads."""
        self.filter_winger_id = filter_winger_id
        self.tab = PoolTab.WINGER if filter_winger_id else tab
        await self.start()

    def _decide(self, card: WingCard, outcome: DecisionOutcome) -> Callable[[], Awaitable[None]]:
        async def write() -> None:
            if isinstance(card, DiscoverCard) and card.is_suggestion:
                updated = await self.gateway.resolve_pending(self.viewer_id, card.user_id, outcome)
                if not updated:
                    raise ConflictError(
                        "Suggestion is no longer pending",
                        details={"actor_id": self.viewer_id, "recipient_id": card.user_id},
                    )
            else:
                await self.gateway.record_direct(self.viewer_id, card.user_id, outcome)

        return write

    async def like(self) -> SwipeResult:
        """
        Approve the current card.

        Reports MATCH when the approval completed a mutual pair. The match
        check is a read after the write, not part of it.
        """
        card = self.current_card
        if card is None:
            return self._no_card()

        write = self._decide(card, DecisionOutcome.APPROVED)

        async def forward() -> SwipeOutcome:
            await write()
            return SwipeOutcome.LIKED

        result = await self._perform(SwipeCommand(card, forward))
        if result.outcome != SwipeOutcome.LIKED:
            return result

        try:
            if await self.gateway.match_exists(self.viewer_id, card.user_id):
                result.outcome = SwipeOutcome.MATCH
                logger.info("Match surfaced", viewer_id=self.viewer_id, recipient_id=card.user_id)
        except WingMatchError as e:
            logger.warning("Match check failed", viewer_id=self.viewer_id, recipient_id=card.user_id, error=e.message)
        return result

    async def pass_card(self) -> SwipeResult:
        """Decline the current card."""
        card = self.current_card
        if card is None:
            return self._no_card()

        write = self._decide(card, DecisionOutcome.DECLINED)

        async def forward() -> SwipeOutcome:
            await write()
            return SwipeOutcome.PASSED

        return await self._perform(SwipeCommand(card, forward))

    async def act_on_suggestion(self, outcome: DecisionOutcome) -> SwipeResult:
        """Approve or decline the current card; suggestion cards resolve their pending row."""
        if outcome == DecisionOutcome.APPROVED:
            return await self.like()
        return await self.pass_card()


class WingSwipeSession(SwipeSession):
    """A winger browsing candidates on behalf of one dater."""

    def __init__(
        self,
        winger_id: str,
        dater_id: str,
        gateway: Optional[SwipeGateway] = None,
        page_size: Optional[int] = None,
        prefetch_threshold: Optional[int] = None,
    ) -> None:
        super().__init__(gateway, page_size, prefetch_threshold)
        self.winger_id = winger_id
        self.dater_id = dater_id

    async def _fetch_page(self, offset: int) -> Sequence[WingCard]:
        return await self.gateway.wing_page(self.winger_id, self.dater_id, self.page_size, offset)

    async def suggest(self, note: Optional[str] = None) -> SwipeResult:
        """Suggest the current card to the dater. The card comes back if the write fails."""
        card = self.current_card
        if card is None:
            return self._no_card()

        async def forward() -> SwipeOutcome:
            await self.gateway.suggest(self.dater_id, card.user_id, self.winger_id, note)
            return SwipeOutcome.SUGGESTED

        return await self._perform(SwipeCommand(card, forward))

    async def decline(self) -> SwipeResult:
        """
        Screen out the current card for the dater.

        Declines are low-stakes, so a failed write is reported but the card
        is not put back.
        """
        card = self.current_card
        if card is None:
            return self._no_card()

        async def forward() -> SwipeOutcome:
            await self.gateway.suggest_decline(self.dater_id, card.user_id, self.winger_id)
            return SwipeOutcome.DECLINED

        return await self._perform(SwipeCommand(card, forward, rollback=False))
