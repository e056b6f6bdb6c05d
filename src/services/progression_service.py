"""
Conversation progression controller.

Decides what happens to session, category and progress state as a result of
one user turn, and publishes the phase (interview vs. test mode) the shell
renders.

State machine per session:
    UNINITIALIZED -> IN_CATEGORY(first) -> IN_CATEGORY(next) ... -> ALL_CATEGORIES_COMPLETE

- UNINITIALIZED: no conversation_state row
- IN_CATEGORY: cursor points at a category whose progress row is not complete
- ALL_CATEGORIES_COMPLETE: cursor is NULL; turns are still counted toward the
  session total but no category row changes

Only reset (session_service) leaves ALL_CATEGORIES_COMPLETE.

Turn flow (record_turn):
    1. Hold the session guard (one turn or reset in flight per session)
    2. Bootstrap the cursor if this is the first turn
    3. Persist the user message
    4. Generate the reply from the full ordered history; on failure or
       timeout use the fixed fallback reply
    5. Persist the assistant message
    6. Advance progress exactly once
"""

import asyncio
from typing import AsyncIterator, Dict, List, Optional, Tuple

import structlog

from src.core.exceptions import (
    GenerationUnavailableError,
    SessionNotFoundError,
    ValidationError,
)
from src.domain.models.category import Category
from src.domain.models.message import Role
from src.domain.models.progression import (
    CategoryProgressView,
    MilestoneStage,
    Phase,
    ProgressionState,
    ProgressSnapshot,
    TurnResult,
)
from src.domain.models.session import CategoryProgress, ConversationState, utc_now
from src.llm.prompts.interview import build_interview_system_prompt
from src.persistence.change_feed import ChangeType
from src.services.context import SessionContext

log = structlog.get_logger(__name__)


# =============================================================================
# Pure functions
# =============================================================================


def compute_progress_percentage(total_answered: int, overall_target: int = 135) -> int:
    """
    Overall completion: min(100, round(100 * total / overall_target)).

    Rounds half up (47.5 -> 48). Negative totals clamp to 0.
    """
    if overall_target < 1:
        raise ValueError("overall_target must be at least 1")
    total = max(0, total_answered)
    # Integer round-half-up of 100 * total / target
    percentage = (200 * total + overall_target) // (2 * overall_target)
    return min(100, percentage)


def compute_phase(progress_percentage: int, threshold: int = 70) -> Phase:
    """TEST_UNLOCKED at or above the threshold, INTERVIEW below it."""
    if progress_percentage >= threshold:
        return Phase.TEST_UNLOCKED
    return Phase.INTERVIEW


def resolve_category_target(category: Category, default: int = 15) -> int:
    return category.target_questions or default


def milestone_stage_for(
    progress_percentage: int, threshold: int = 70, initial_stage: str = "foundation"
) -> str:
    if progress_percentage >= 100:
        return MilestoneStage.COMPLETE.value
    if progress_percentage >= threshold:
        return MilestoneStage.TEST_UNLOCKED.value
    return initial_stage


# =============================================================================
# Controller
# =============================================================================


class ProgressionController:
    """Per-session progression over the structured store.

    All state lives in the store; the controller holds only the context.
    """

    def __init__(self, context: SessionContext):
        self.context = context
        self.config = context.config

    def category_target(self, category: Category) -> int:
        return resolve_category_target(category, self.config.default_category_target)

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    async def bootstrap_if_needed(self, session_id: str) -> ConversationState:
        """
        Create the conversation cursor on first access.

        Returns the existing state untouched when it already exists. The
        per-session lock plus the conversation_state primary key keep two
        concurrent callers from creating two cursors.

        Raises:
            SessionNotFoundError: Session does not exist
        """
        progress_repo = self.context.progress()

        existing = await progress_repo.get_state(session_id)
        if existing is not None:
            return existing

        async with self.context.guard.bootstrap_lock(session_id):
            existing = await progress_repo.get_state(session_id)
            if existing is not None:
                return existing

            session = await self.context.sessions().get(session_id)
            if session is None:
                raise SessionNotFoundError(f"Session {session_id} not found")

            first = await self.context.categories().first()
            state = ConversationState(
                session_id=session_id,
                current_category_id=first.id if first else None,
                explored_topics=[first.id] if first else [],
            )
            created = await progress_repo.create_state_if_absent(state)
            if first is not None:
                await progress_repo.create_progress_if_absent(session_id, first.id)

            state = await progress_repo.get_state(session_id)
            if state is None:
                raise SessionNotFoundError(
                    f"Session {session_id} was deleted during bootstrap"
                )

            if first is None:
                log.warning("bootstrap_without_categories", session_id=session_id)
            log.info(
                "session_bootstrapped",
                session_id=session_id,
                category_id=state.current_category_id,
                created=created,
            )
            return state

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def record_turn(self, session_id: str, user_text: str) -> TurnResult:
        """
        Record one user turn and produce the interviewer's reply.

        The user message is stored before generation starts. If generation
        fails or times out the fallback reply is stored as the assistant
        turn, so history always alternates user/assistant.

        Raises:
            ValidationError: Empty user text
            SessionNotFoundError: Session does not exist
            SessionBusyError: A turn or reset is already running
            PersistenceWriteFailedError: A store write failed
        """
        if not user_text or not user_text.strip():
            raise ValidationError("Message text must not be empty")

        async with self.context.guard.hold(session_id, "turn"):
            state = await self.bootstrap_if_needed(session_id)

            messages = self.context.messages()
            await messages.add(session_id, Role.USER, user_text)

            system = await self._system_prompt(session_id, state)
            history = await messages.list_for_session(
                session_id, limit=self.config.history_limit or None
            )

            fallback_used = False
            try:
                assistant_text = await self._generate(
                    [m.as_turn() for m in history], system
                )
            except (GenerationUnavailableError, asyncio.TimeoutError) as e:
                log.warning(
                    "generation_unavailable",
                    session_id=session_id,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                assistant_text = self.config.fallback_reply
                fallback_used = True

            await messages.add(session_id, Role.ASSISTANT, assistant_text)

            if fallback_used and not self.config.count_fallback_turns:
                snapshot = await self.get_snapshot(session_id)
                advanced = False
            else:
                snapshot, advanced = await self._advance(
                    session_id, asked_question=None if fallback_used else assistant_text
                )

        log.info(
            "turn_recorded",
            session_id=session_id,
            fallback_used=fallback_used,
            category_advanced=advanced,
            progress_percentage=snapshot.progress_percentage,
        )
        return TurnResult(
            session_id=session_id,
            assistant_text=assistant_text,
            fallback_used=fallback_used,
            category_advanced=advanced,
            snapshot=snapshot,
        )

    async def _generate(self, turns: List[Dict[str, str]], system: str) -> str:
        llm = self.context.llm_client
        if llm is None:
            raise GenerationUnavailableError("No text-generation client configured")

        timeout = self.config.generation_timeout
        response = await asyncio.wait_for(
            llm.complete(turns, system=system, timeout=timeout), timeout=timeout
        )
        return response.content

    async def _system_prompt(self, session_id: str, state: ConversationState) -> str:
        category = await self._current_category(state)
        snapshot = await self.get_snapshot(session_id)
        progress = None
        if category is not None:
            progress = await self.context.progress().get_progress(session_id, category.id)
        target = (
            self.category_target(category)
            if category
            else self.config.default_category_target
        )
        return build_interview_system_prompt(category, progress, snapshot, target)

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    async def advance_progress(self, session_id: str) -> ProgressSnapshot:
        """
        Count one answered question for the session's current category.

        Callers must invoke this at most once per user turn; record_turn is
        the only caller in the request path.

        Raises:
            SessionNotFoundError: Session does not exist
            SessionBusyError: A turn or reset is already running
        """
        async with self.context.guard.hold(session_id, "advance"):
            snapshot, _ = await self._advance(session_id)
        return snapshot

    async def _advance(
        self, session_id: str, asked_question: Optional[str] = None
    ) -> Tuple[ProgressSnapshot, bool]:
        progress_repo = self.context.progress()
        sessions = self.context.sessions()

        session = await sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")

        state = await self.bootstrap_if_needed(session_id)
        category = await self._current_category(state)
        advanced = False

        if category is None:
            # Terminal: no category row changes, the session total still grows
            category_total = await progress_repo.total_answered(session_id)
            answered = max(session.questions_answered, category_total) + 1
        else:
            progress = await progress_repo.create_progress_if_absent(
                session_id, category.id
            )
            target = self.category_target(category)

            progress.questions_asked += 1
            progress.last_question_at = utc_now()
            if progress.questions_asked >= target:
                progress.is_completed = True
            await progress_repo.save_progress(progress)

            state.depth += 1
            if asked_question:
                state.asked_questions.append(asked_question)

            if progress.is_completed:
                next_category = await self._next_open_category(session_id, category)
                advanced = True
                await self._move_cursor(state, category, next_category)
            else:
                await progress_repo.save_state(state)

            answered = await progress_repo.total_answered(session_id)

        percentage = compute_progress_percentage(
            answered, self.config.overall_question_target
        )
        stage = milestone_stage_for(
            percentage, self.config.test_unlock_threshold, self.config.initial_stage
        )
        await sessions.update_progress(session_id, answered, percentage, stage)

        log.debug(
            "progress_advanced",
            session_id=session_id,
            questions_answered=answered,
            progress_percentage=percentage,
        )
        return await self.get_snapshot(session_id), advanced

    async def _current_category(self, state: ConversationState) -> Optional[Category]:
        """Category under the cursor, None in the terminal state.

        A cursor naming a category that no longer exists is moved to the
        first open category by order index.
        """
        if state.current_category_id is None:
            return None

        category = await self.context.categories().get(state.current_category_id)
        if category is not None:
            return category

        replacement = await self._first_open_category(state.session_id)
        log.warning(
            "cursor_category_missing",
            session_id=state.session_id,
            category_id=state.current_category_id,
            replacement_category_id=replacement.id if replacement else None,
        )
        progress_repo = self.context.progress()
        if replacement is None:
            state.current_category_id = None
        else:
            await progress_repo.create_progress_if_absent(state.session_id, replacement.id)
            state.current_category_id = replacement.id
            state.depth = 0
            if replacement.id not in state.explored_topics:
                state.explored_topics.append(replacement.id)
        await progress_repo.save_state(state)
        return replacement

    async def _first_open_category(self, session_id: str) -> Optional[Category]:
        progress_repo = self.context.progress()
        for candidate in await self.context.categories().list_ordered():
            existing = await progress_repo.get_progress(session_id, candidate.id)
            if existing is None or not existing.is_completed:
                return candidate
        return None

    async def _next_open_category(
        self, session_id: str, completed: Category
    ) -> Optional[Category]:
        """Smallest order index after `completed` whose progress is not complete."""
        categories = self.context.categories()
        progress_repo = self.context.progress()

        candidate = await categories.next_after(completed.order_index)
        while candidate is not None:
            existing = await progress_repo.get_progress(session_id, candidate.id)
            if existing is None or not existing.is_completed:
                return candidate
            candidate = await categories.next_after(candidate.order_index)
        return None

    async def _move_cursor(
        self,
        state: ConversationState,
        completed: Category,
        next_category: Optional[Category],
    ) -> None:
        progress_repo = self.context.progress()

        if next_category is None:
            state.current_category_id = None
            await progress_repo.save_state(state)
            log.info(
                "all_categories_complete",
                session_id=state.session_id,
                last_category_id=completed.id,
            )
            return

        await progress_repo.create_progress_if_absent(state.session_id, next_category.id)
        state.current_category_id = next_category.id
        state.depth = 0
        if next_category.id not in state.explored_topics:
            state.explored_topics.append(next_category.id)
        await progress_repo.save_state(state)
        log.info(
            "category_advanced",
            session_id=state.session_id,
            from_category_id=completed.id,
            to_category_id=next_category.id,
        )

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    async def get_snapshot(self, session_id: str) -> ProgressSnapshot:
        """
        Current progress for a session.

        Raises:
            SessionNotFoundError: Session does not exist
        """
        session = await self.context.sessions().get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")

        state = await self.context.progress().get_state(session_id)
        categories = await self.context.categories().list_ordered()
        rows: Dict[str, CategoryProgress] = {
            p.category_id: p
            for p in await self.context.progress().list_progress(session_id)
        }

        views = [
            CategoryProgressView(
                category_id=c.id,
                name=c.name,
                order_index=c.order_index,
                questions_asked=rows[c.id].questions_asked if c.id in rows else 0,
                target_questions=self.category_target(c),
                is_completed=rows[c.id].is_completed if c.id in rows else False,
            )
            for c in categories
        ]

        if state is None:
            label = ProgressionState.UNINITIALIZED
        elif state.current_category_id is None:
            label = ProgressionState.ALL_CATEGORIES_COMPLETE
        else:
            label = ProgressionState.IN_CATEGORY

        current_name = None
        if state is not None and state.current_category_id is not None:
            current_name = next(
                (c.name for c in categories if c.id == state.current_category_id), None
            )

        return ProgressSnapshot(
            session_id=session_id,
            state=label,
            progress_percentage=session.progress_percentage,
            questions_answered=session.questions_answered,
            overall_target=self.config.overall_question_target,
            phase=compute_phase(
                session.progress_percentage, self.config.test_unlock_threshold
            ),
            milestone_stage=session.milestone_stage,
            current_category_id=state.current_category_id if state else None,
            current_category_name=current_name,
            categories=views,
        )

    async def subscribe_progress(self, session_id: str) -> AsyncIterator[ProgressSnapshot]:
        """
        Push-based progress stream for one session.

        Yields the current snapshot, then a fresh snapshot after every
        committed chat_sessions update. Ends when the session is deleted.

        Raises:
            SessionNotFoundError: Session does not exist when subscribing
        """
        subscription = self.context.change_feed.subscribe("chat_sessions", id=session_id)
        try:
            yield await self.get_snapshot(session_id)
            async for event in subscription:
                if event.change == ChangeType.DELETE:
                    log.debug("progress_stream_session_deleted", session_id=session_id)
                    return
                try:
                    yield await self.get_snapshot(session_id)
                except SessionNotFoundError:
                    return
        finally:
            subscription.close()
