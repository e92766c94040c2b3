from datetime import datetime, timedelta, timezone

import pytest

from pdfchat.exceptions import InvalidInputError, NotFoundError
from pdfchat.models_db import Chat, ChatMessage, User
from pdfchat.services import ChatService

from .conftest import TEST_USER_ID

SAVE_TIME = datetime(2024, 5, 1, 12, 30, 15, 250000, tzinfo=timezone.utc)


class FakeClock:
    """Returns SAVE_TIME, then advances one minute per call."""

    def __init__(self, start=SAVE_TIME):
        self.now = start

    def __call__(self):
        current = self.now
        self.now = self.now + timedelta(minutes=1)
        return current


def naive(moment):
    return moment.replace(tzinfo=None)


@pytest.fixture
def service():
    return ChatService(clock=FakeClock())


class TestSaveChat:
    """Tests for creating and updating chats"""

    def test_new_chat_gets_generated_id_and_derived_name(self, db, user, service):
        chat_id = service.save_chat(db, TEST_USER_ID, [{"role": "user", "content": "What is on page 2?"}])

        assert chat_id
        chat = service.get_chat(db, TEST_USER_ID, chat_id)
        assert chat.chat_name == "What is on page 2?"
        assert [(m.role, m.content) for m in chat.history] == [("user", "What is on page 2?")]

    def test_each_save_without_id_creates_a_new_chat(self, db, user, service):
        history = [{"role": "user", "content": "Hello"}]
        first = service.save_chat(db, TEST_USER_ID, history)
        second = service.save_chat(db, TEST_USER_ID, history)

        assert first != second
        assert [c.chat_id for c in service.list_chats(db, TEST_USER_ID)] == [first, second]

    def test_given_chat_id_and_name_are_used(self, db, user, service):
        chat_id = service.save_chat(
            db, TEST_USER_ID, [{"role": "user", "content": "Hi"}],
            chat_id="my-chat", chat_name="Contract review",
        )

        assert chat_id == "my-chat"
        assert service.get_chat(db, TEST_USER_ID, "my-chat").chat_name == "Contract review"

    def test_empty_chat_id_and_name_are_treated_as_missing(self, db, user, service):
        chat_id = service.save_chat(
            db, TEST_USER_ID, [{"role": "user", "content": "Summarize"}], chat_id="", chat_name="",
        )

        assert chat_id != ""
        assert service.get_chat(db, TEST_USER_ID, chat_id).chat_name == "Summarize"

    def test_derived_name_is_truncated_to_fifty_characters(self, db, user, service):
        question = "x" * 49 + "yz" + " and more text"
        chat_id = service.save_chat(db, TEST_USER_ID, [{"role": "user", "content": question}])

        name = service.get_chat(db, TEST_USER_ID, chat_id).chat_name
        assert name == "x" * 49 + "y"
        assert len(name) == 50

    def test_name_uses_first_user_message_not_first_message(self, db, user, service):
        history = [
            {"role": "bot", "content": "Welcome! Upload a PDF."},
            {"role": "user", "content": "Who signed the lease?"},
            {"role": "user", "content": "And when?"},
        ]
        chat_id = service.save_chat(db, TEST_USER_ID, history)

        assert service.get_chat(db, TEST_USER_ID, chat_id).chat_name == "Who signed the lease?"

    def test_name_falls_back_to_timestamp_without_user_message(self, db, user, service):
        chat_id = service.save_chat(db, TEST_USER_ID, [{"role": "bot", "content": "Hi there"}])

        assert service.get_chat(db, TEST_USER_ID, chat_id).chat_name == "Chat 2024-05-01T12:30:15.250Z"

    def test_empty_history_is_accepted(self, db, user, service):
        chat_id = service.save_chat(db, TEST_USER_ID, [])

        chat = service.get_chat(db, TEST_USER_ID, chat_id)
        assert chat.history == []
        assert chat.chat_name.startswith("Chat ")

    def test_update_replaces_history_and_keeps_created_at(self, db, user, service):
        chat_id = service.save_chat(db, TEST_USER_ID, [
            {"role": "user", "content": "First question"},
            {"role": "bot", "content": "First answer"},
        ])
        service.save_chat(db, TEST_USER_ID, [
            {"role": "user", "content": "Second question"},
        ], chat_id=chat_id, chat_name="Renamed")

        db.expire_all()
        chat = service.get_chat(db, TEST_USER_ID, chat_id)
        assert [m.content for m in chat.history] == ["Second question"]
        assert chat.chat_name == "Renamed"
        assert naive(chat.created_at) == naive(SAVE_TIME)
        assert db.query(ChatMessage).count() == 1
        assert len(service.list_chats(db, TEST_USER_ID)) == 1

    def test_update_without_name_rederives_it(self, db, user, service):
        chat_id = service.save_chat(db, TEST_USER_ID, [{"role": "user", "content": "Old"}], chat_name="Custom")
        service.save_chat(db, TEST_USER_ID, [{"role": "user", "content": "New"}], chat_id=chat_id)

        assert service.get_chat(db, TEST_USER_ID, chat_id).chat_name == "New"

    def test_messages_are_restamped_on_every_save(self, db, user, service):
        history = [
            {"role": "user", "content": "Q", "timestamp": "1999-01-01T00:00:00Z"},
            {"role": "bot", "content": "A"},
        ]
        chat_id = service.save_chat(db, TEST_USER_ID, history)
        service.save_chat(db, TEST_USER_ID, history, chat_id=chat_id)

        db.expire_all()
        chat = service.get_chat(db, TEST_USER_ID, chat_id)
        second_save = SAVE_TIME + timedelta(minutes=1)
        assert [naive(m.timestamp) for m in chat.history] == [naive(second_save)] * 2
        assert naive(chat.created_at) == naive(SAVE_TIME)

    def test_history_order_is_preserved(self, db, user, service):
        history = [{"role": "user" if i % 2 == 0 else "bot", "content": f"message {i}"} for i in range(6)]
        chat_id = service.save_chat(db, TEST_USER_ID, history)

        chat = service.get_chat(db, TEST_USER_ID, chat_id)
        assert [m.content for m in chat.history] == [f"message {i}" for i in range(6)]

    def test_unknown_user_is_rejected(self, db, service):
        with pytest.raises(NotFoundError, match="User not found"):
            service.save_chat(db, "nobody", [{"role": "user", "content": "Hi"}])


class TestHistoryValidation:
    """Invalid transcripts are rejected without writing anything"""

    @pytest.mark.parametrize("history", [
        None,
        "not a list",
        {"role": "user", "content": "Hi"},
        [{"role": "assistant", "content": "Hi"}],
        [{"role": "user", "content": ""}],
        [{"content": "Hi"}],
        [{"role": "user"}],
        [{"role": "", "content": "Hi"}],
        [{"role": "user", "content": 42}],
        ["Hi"],
        [{"role": "user", "content": "ok"}, {"role": "system", "content": "nope"}],
    ])
    def test_invalid_history_is_rejected(self, db, user, service, history):
        with pytest.raises(InvalidInputError, match="Invalid history format"):
            service.save_chat(db, TEST_USER_ID, history)

        assert db.query(Chat).count() == 0

    def test_invalid_update_leaves_existing_chat_untouched(self, db, user, service):
        chat_id = service.save_chat(db, TEST_USER_ID, [{"role": "user", "content": "Keep me"}])

        with pytest.raises(InvalidInputError):
            service.save_chat(db, TEST_USER_ID, [
                {"role": "user", "content": "Replace"},
                {"role": "robot", "content": "bad"},
            ], chat_id=chat_id, chat_name="Changed")

        db.expire_all()
        chat = service.get_chat(db, TEST_USER_ID, chat_id)
        assert chat.chat_name == "Keep me"
        assert [m.content for m in chat.history] == ["Keep me"]


class TestListAndGet:
    """Tests for reading chats back"""

    def test_list_returns_summaries_in_creation_order(self, db, user, service):
        ids = [
            service.save_chat(db, TEST_USER_ID, [{"role": "user", "content": f"Question {i}"}])
            for i in range(3)
        ]

        chats = service.list_chats(db, TEST_USER_ID)
        assert [c.chat_id for c in chats] == ids
        assert [c.chat_name for c in chats] == ["Question 0", "Question 1", "Question 2"]

    def test_list_empty_for_user_without_chats(self, db, user, service):
        assert service.list_chats(db, TEST_USER_ID) == []

    def test_list_unknown_user(self, db, service):
        with pytest.raises(NotFoundError, match="User not found"):
            service.list_chats(db, "nobody")

    def test_get_unknown_chat(self, db, user, service):
        with pytest.raises(NotFoundError, match="Chat not found"):
            service.get_chat(db, TEST_USER_ID, "missing")

    def test_get_unknown_user(self, db, service):
        with pytest.raises(NotFoundError, match="User not found"):
            service.get_chat(db, "nobody", "missing")

    def test_chats_are_scoped_to_their_owner(self, db, user, service):
        db.add(User(id="user-2"))
        db.commit()
        chat_id = service.save_chat(db, TEST_USER_ID, [{"role": "user", "content": "Mine"}], chat_id="shared-id")

        with pytest.raises(NotFoundError):
            service.get_chat(db, "user-2", chat_id)

        service.save_chat(db, "user-2", [{"role": "user", "content": "Theirs"}], chat_id="shared-id")
        assert service.get_chat(db, TEST_USER_ID, "shared-id").chat_name == "Mine"
        assert service.get_chat(db, "user-2", "shared-id").chat_name == "Theirs"

    def test_stats_for_user(self, db, user, service):
        service.save_chat(db, TEST_USER_ID, [{"role": "user", "content": "A"}, {"role": "bot", "content": "B"}])
        service.save_chat(db, TEST_USER_ID, [{"role": "user", "content": "C"}])

        assert service.stats_for_user(db, TEST_USER_ID) == (2, 3)


class TestSaveChatRequest:
    """Tests for saving from a raw request body"""

    def test_camel_case_body_is_saved(self, db, user, service):
        chat_id = service.save_chat_request(db, TEST_USER_ID, {
            "chatId": "from-body",
            "chatName": "Body name",
            "history": [{"role": "user", "content": "Hi"}],
        })

        assert chat_id == "from-body"
        assert service.get_chat(db, TEST_USER_ID, "from-body").chat_name == "Body name"

    def test_missing_body_reports_invalid_history(self, db, user, service):
        with pytest.raises(InvalidInputError, match="Invalid history format"):
            service.save_chat_request(db, TEST_USER_ID, None)

    @pytest.mark.parametrize("payload", [
        [{"role": "user", "content": "Hi"}],
        {"chatId": ["a"], "history": []},
        {"chatName": 5, "history": []},
    ])
    def test_malformed_body_is_rejected(self, db, user, service, payload):
        with pytest.raises(InvalidInputError, match="Invalid request body"):
            service.save_chat_request(db, TEST_USER_ID, payload)

        assert db.query(Chat).count() == 0

    @pytest.mark.parametrize("payload", [None, {"chatId": 7, "history": "nope"}, "garbage"])
    def test_user_is_checked_before_the_body(self, db, service, payload):
        with pytest.raises(NotFoundError, match="User not found"):
            service.save_chat_request(db, "nobody", payload)


class TestChatRepositoryCounts:
    """Tests for the aggregate queries behind the profile"""

    def test_counts_are_per_user(self, db, user, service):
        db.add(User(id="user-2"))
        db.commit()
        service.save_chat(db, TEST_USER_ID, [{"role": "user", "content": "A"}])
        service.save_chat(db, TEST_USER_ID, [{"role": "user", "content": "B"}, {"role": "bot", "content": "C"}])
        service.save_chat(db, "user-2", [{"role": "user", "content": "D"}])

        assert service.chats.count_for_user(db, TEST_USER_ID) == 2
        assert service.chats.count_for_user(db, "user-2") == 1
        assert service.chats.count_for_user(db, "nobody") == 0
        assert service.chats.count_messages_for_user(db, TEST_USER_ID) == 3
