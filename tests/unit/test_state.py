"""Unit tests for the ChatState conversation state machine."""

import asyncio

import pytest
import pytest_check as check

from src.agent.chat_agent import APOLOGY_TEXT, TutorService
from src.errors import EmptyMessageError, UnsupportedAttachmentError
from src.models.schemas import Attachment, BinaryPart, MessageStatus, Role
from src.ui.state import GREETING_TEXT, RESET_GREETING_TEXT, ChatState

JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg"


@pytest.fixture
def state(tutor_service: TutorService) -> ChatState:
    chat = ChatState(tutor_service)
    chat.start()
    return chat


class TestStart:
    """Tests for initial page load."""

    def test_start_shows_greeting_and_opens_session(self, state: ChatState, session_factory) -> None:
        check.equal(len(state.messages), 1)
        check.equal(state.messages[0].role, Role.ASSISTANT)
        check.equal(state.messages[0].text, GREETING_TEXT)
        check.equal(len(session_factory.created), 1)

    def test_start_survives_session_failure(self, tutor_service: TutorService, session_factory) -> None:
        """A failed first session still shows the greeting; sends retry later."""
        session_factory.fail_creation = True
        chat = ChatState(tutor_service)

        chat.start()

        check.equal([m.text for m in chat.messages], [GREETING_TEXT])
        check.is_false(chat.is_loading)


class TestSubmit:
    """Tests for the send handler and reply streaming."""

    async def test_text_scenario_walks_through_states(self, tutor_service: TutorService) -> None:
        """Pending, then streaming on first fragment, then complete."""
        snapshots: list[tuple[MessageStatus, bool, str]] = []
        chat = ChatState(tutor_service)

        def record() -> None:
            last = chat.messages[-1]
            if last.role == Role.ASSISTANT and last.id != 1:
                snapshots.append((last.status, last.pending, last.text))

        chat.start()
        chat._on_change = record

        reply = await chat.submit("What is 2+3?")

        user = chat.messages[-2]
        check.equal(user.role, Role.USER)
        check.equal(user.text, "What is 2+3?")
        check.is_(chat.messages[-1], reply)
        check.equal(snapshots[0], (MessageStatus.PENDING, True, ""))
        check.equal(snapshots[1], (MessageStatus.STREAMING, False, "Let's "))
        check.equal(snapshots[-1], (MessageStatus.COMPLETE, False, "Let's look at it together."))
        check.equal(reply.status, MessageStatus.COMPLETE)
        check.is_false(chat.is_loading)

    @pytest.mark.parametrize(
        "fragments",
        [[], [""], ["", "a"], ["a", "", "b"], ["x"] * 25, ["1", "+", "2", "=", "3"]],
    )
    async def test_text_is_concatenation_of_fragments(
        self, state: ChatState, session_factory, fragments: list[str]
    ) -> None:
        """Accumulated text equals the in-order concatenation of fragments."""
        session_factory.fragments = fragments

        reply = await state.submit("go")

        check.equal(reply.text, "".join(fragments))
        check.equal(reply.status, MessageStatus.COMPLETE)
        check.is_false(reply.pending)

    async def test_empty_fragments_keep_pending(self, tutor_service: TutorService, session_factory) -> None:
        """Only a non-empty fragment clears pending, and it never comes back."""
        session_factory.fragments = ["", "", "Think", "", " again"]
        pending_history: list[bool] = []
        chat = ChatState(tutor_service)
        chat.start()
        chat._on_change = lambda: pending_history.append(chat.messages[-1].pending)

        await chat.submit("hint please")

        # appended placeholder, two empty fragments, then visible text
        check.equal(pending_history[:3], [True, True, True])
        first_clear = pending_history.index(False)
        check.is_true(all(p is False for p in pending_history[first_clear:]))

    async def test_image_only_send_is_accepted(self, state: ChatState, session_factory) -> None:
        """An attachment alone satisfies the non-empty rule."""
        attachment = Attachment(data=JPEG_BYTES, media_type="image/jpeg")

        reply = await state.submit("", attachment)

        user = state.messages[-2]
        check.equal(user.attachment, attachment)
        check.equal(user.text, "")
        check.equal(reply.status, MessageStatus.COMPLETE)
        check.equal(
            session_factory.latest.payloads,
            [[BinaryPart(data=JPEG_BYTES, media_type="image/jpeg")]],
        )

    async def test_stream_failure_marks_message_failed(self, state: ChatState, session_factory) -> None:
        """A stream raising after two fragments ends in the failed state."""
        session_factory.fail_after = 2

        reply = await state.submit("What is 2+3?")

        check.equal(reply.status, MessageStatus.FAILED)
        check.equal(reply.text, APOLOGY_TEXT)
        check.is_false(reply.pending)
        check.is_false(state.is_loading)

    async def test_session_failure_marks_message_failed(
        self, tutor_service: TutorService, session_factory
    ) -> None:
        """A session that cannot be created fails the reply, not the page."""
        session_factory.fail_creation = True
        chat = ChatState(tutor_service)
        chat.start()

        reply = await chat.submit("hello")

        check.equal(reply.status, MessageStatus.FAILED)
        check.equal(reply.text, APOLOGY_TEXT)
        check.is_false(chat.is_loading)

    async def test_user_can_retry_after_failure(self, state: ChatState, session_factory) -> None:
        session_factory.fail_after = 0
        await state.submit("first try")

        session_factory.fail_after = None
        reply = await state.submit("second try")

        check.equal(reply.status, MessageStatus.COMPLETE)
        check.equal(len(state.messages), 5)

    async def test_empty_submit_changes_nothing(self, state: ChatState) -> None:
        """Blank text with no image raises before any message is added."""
        with pytest.raises(EmptyMessageError):
            await state.submit("   ")

        check.equal(len(state.messages), 1)
        check.is_false(state.is_loading)

    async def test_unsupported_attachment_changes_nothing(self, state: ChatState) -> None:
        """A rejected image raises before any message is added."""
        with pytest.raises(UnsupportedAttachmentError):
            await state.submit("look", b"GIF89a", "image/gif")

        check.equal(len(state.messages), 1)

    async def test_second_send_while_loading_is_ignored(self, state: ChatState) -> None:
        state.is_loading = True

        result = await state.submit("again")

        check.is_none(result)
        check.equal(len(state.messages), 1)

    async def test_ids_are_unique_and_increasing(self, state: ChatState) -> None:
        await state.submit("one")
        state.reset()
        await state.submit("two")

        ids = [m.id for m in state.messages]
        check.equal(ids, sorted(ids))
        check.equal(len(set(ids)), len(ids))
        check.equal(ids, [4, 5, 6])


class TestReset:
    """Tests for starting over."""

    async def test_reset_leaves_single_greeting(self, state: ChatState) -> None:
        await state.submit("What is 2+3?")

        state.reset()

        check.equal(len(state.messages), 1)
        check.equal(state.messages[0].role, Role.ASSISTANT)
        check.equal(state.messages[0].text, RESET_GREETING_TEXT)

    async def test_send_after_reset_uses_new_session(self, state: ChatState, session_factory) -> None:
        await state.submit("remember 7")
        old_session = session_factory.latest

        state.reset()
        await state.submit("what number?")

        check.is_not(session_factory.latest, old_session)
        check.equal(old_session.payloads, ["remember 7"])
        check.equal(session_factory.latest.payloads, ["what number?"])

    async def test_reset_mid_stream_drops_stale_fragments(
        self, tutor_service: TutorService, session_factory
    ) -> None:
        """Fragments from a discarded session never reach the new list."""
        chat = ChatState(tutor_service)
        chat.start()
        did_reset = False

        def reset_on_first_text() -> None:
            nonlocal did_reset
            last = chat.messages[-1]
            if not did_reset and last.status == MessageStatus.STREAMING:
                did_reset = True
                chat.reset()

        chat._on_change = reset_on_first_text

        await chat.submit("long question")

        check.equal([m.text for m in chat.messages], [RESET_GREETING_TEXT])
        check.is_false(chat.is_loading)
        check.equal(session_factory.latest.payloads, [])

    async def test_reset_while_thinking_frees_the_composer(
        self, state: ChatState, session_factory
    ) -> None:
        """Reset ends a silent in-flight reply and the next send goes through."""
        session_factory.hold = asyncio.Event()
        stale_turn = asyncio.create_task(state.submit("long question"))
        while not session_factory.latest.payloads:
            await asyncio.sleep(0)
        check.is_true(state.is_loading)

        state.reset()
        check.is_false(state.is_loading)

        session_factory.hold = None
        reply = await state.submit("new question")
        stale_reply = await stale_turn

        check.equal(reply.status, MessageStatus.COMPLETE)
        check.equal(
            [m.text for m in state.messages],
            [RESET_GREETING_TEXT, "new question", "Let's look at it together."],
        )
        check.is_not_in(stale_reply, state.messages)
        check.is_false(state.is_loading)
