"""Tests for sending, editing, deleting and searching messages."""

import uuid

import pytest

from app.core.config import settings
from app.core.exceptions import (
    ForbiddenError,
    InvalidOperationError,
    NotFoundError,
    ValidationError,
)
from app.models.message import MessageType
from app.schemas.message import MessageResponse


class TestSendMessage:

    def test_round_trip(self, conversations, messages, direct, alice, bob):
        sent = messages.send_message(alice.id, direct.id, "Hello Bob 👋")

        page = messages.get_messages(direct.id, bob.id)
        fetched = page.messages[-1]
        assert fetched.id == sent.id
        assert fetched.content == "Hello Bob 👋"
        assert fetched.sender_id == alice.id
        assert fetched.message_type == MessageType.text

    def test_send_updates_conversation_pointer(self, conversations, messages, direct, alice, bob):
        sent = messages.send_message(bob.id, direct.id, "hi")
        detail = conversations.get_conversation(direct.id, alice.id)
        assert detail.last_message.id == sent.id
        assert detail.conversation.last_activity_at == sent.created_at

    def test_non_member_gets_not_found(self, messages, group, dave):
        with pytest.raises(NotFoundError):
            messages.send_message(dave.id, group.id, "let me in")

    def test_former_member_gets_not_found(self, conversations, messages, group, alice, bob):
        conversations.remove_member(group.id, alice.id, bob.id)
        with pytest.raises(NotFoundError):
            messages.send_message(bob.id, group.id, "still here?")

    def test_blank_content_is_rejected(self, messages, direct, alice):
        with pytest.raises(ValidationError):
            messages.send_message(alice.id, direct.id, "   \n")

    def test_overlong_content_is_rejected(self, messages, direct, alice):
        with pytest.raises(ValidationError):
            messages.send_message(alice.id, direct.id, "x" * (settings.MESSAGE_MAX_LENGTH + 1))

    def test_content_at_limit_is_accepted(self, messages, direct, alice):
        sent = messages.send_message(alice.id, direct.id, "x" * settings.MESSAGE_MAX_LENGTH)
        assert len(sent.content) == settings.MESSAGE_MAX_LENGTH


class TestReplies:

    def test_reply_links_to_target(self, messages, direct, alice, bob):
        original = messages.send_message(alice.id, direct.id, "Dinner at 8?")
        reply = messages.send_message(bob.id, direct.id, "Sounds good", reply_to_id=original.id)
        assert reply.reply_to_id == original.id

        response = MessageResponse.from_message(reply)
        assert response.reply_to.id == original.id
        assert response.reply_to.content == "Dinner at 8?"

    def test_reply_to_unknown_message_is_rejected(self, messages, direct, alice):
        with pytest.raises(ValidationError):
            messages.send_message(alice.id, direct.id, "?", reply_to_id=uuid.uuid4())

    def test_reply_across_conversations_is_rejected(self, messages, direct, group, alice):
        elsewhere = messages.send_message(alice.id, group.id, "in the group")
        with pytest.raises(ValidationError):
            messages.send_message(alice.id, direct.id, "reply", reply_to_id=elsewhere.id)

    def test_reply_to_deleted_message_is_rejected(self, messages, direct, alice, bob):
        original = messages.send_message(alice.id, direct.id, "oops")
        messages.delete_message(original.id, alice.id)
        with pytest.raises(ValidationError):
            messages.send_message(bob.id, direct.id, "what?", reply_to_id=original.id)

    def test_reply_preview_hides_deleted_target(self, db, messages, direct, alice, bob):
        original = messages.send_message(alice.id, direct.id, "secret")
        reply = messages.send_message(bob.id, direct.id, "noted", reply_to_id=original.id)
        messages.delete_message(original.id, alice.id)
        db.refresh(reply)

        response = MessageResponse.from_message(reply)
        assert response.reply_to_id == original.id
        assert response.reply_to.is_deleted is True
        assert response.reply_to.content is None


class TestAdminOnlySending:

    def test_admin_only_blocks_members(self, conversations, messages, alice, bob):
        group = conversations.create_conversation(alice.id, [bob.id], name="Announcements", is_group=True)
        conversations.set_admin_only_messaging(group.id, alice.id, True)

        with pytest.raises(ForbiddenError) as exc_info:
            messages.send_message(bob.id, group.id, "can I talk?")
        assert exc_info.value.error_code == "ADMIN_ONLY"

        sent = messages.send_message(alice.id, group.id, "Only admins here")
        assert sent.content == "Only admins here"

    def test_turning_it_off_restores_members(self, conversations, messages, group, alice, bob):
        conversations.set_admin_only_messaging(group.id, alice.id, True)
        conversations.set_admin_only_messaging(group.id, alice.id, False)
        assert messages.send_message(bob.id, group.id, "back").content == "back"


class TestEditMessage:

    def test_owner_edits(self, messages, direct, alice):
        sent = messages.send_message(alice.id, direct.id, "helo")
        edited = messages.edit_message(sent.id, alice.id, "hello")
        assert edited.content == "hello"
        assert edited.edited_at is not None
        assert edited.created_at == sent.created_at
        assert MessageResponse.from_message(edited).is_edited is True

    def test_other_user_cannot_edit(self, messages, direct, alice, bob):
        sent = messages.send_message(alice.id, direct.id, "mine")
        with pytest.raises(ForbiddenError):
            messages.edit_message(sent.id, bob.id, "yours")

    def test_deleted_message_cannot_be_edited(self, messages, direct, alice):
        sent = messages.send_message(alice.id, direct.id, "gone soon")
        messages.delete_message(sent.id, alice.id)
        with pytest.raises(NotFoundError):
            messages.edit_message(sent.id, alice.id, "back")

    def test_system_message_cannot_be_edited(self, conversations, messages, group, alice):
        system = conversations.get_conversation(group.id, alice.id).last_message
        assert system.sender_id == alice.id
        with pytest.raises(InvalidOperationError) as exc_info:
            messages.edit_message(system.id, alice.id, "rewritten history")
        assert exc_info.value.error_code == "SYSTEM_MESSAGE"

    def test_edit_validates_content(self, messages, direct, alice):
        sent = messages.send_message(alice.id, direct.id, "fine")
        with pytest.raises(ValidationError):
            messages.edit_message(sent.id, alice.id, "")


class TestDeleteMessage:

    def test_tombstone_keeps_position(self, messages, direct, alice, bob, seed_messages):
        seeded = seed_messages(direct, alice, 3)
        before = [m.id for m in messages.get_messages(direct.id, bob.id).messages]

        messages.delete_message(seeded[1].id, alice.id)

        page = messages.get_messages(direct.id, bob.id)
        assert [m.id for m in page.messages] == before
        tombstone = page.messages[before.index(seeded[1].id)]
        assert tombstone.content is None
        assert tombstone.deleted_at is not None

        response = MessageResponse.from_message(tombstone)
        assert response.is_deleted is True
        assert response.content is None

    def test_other_user_cannot_delete(self, messages, direct, alice, bob):
        sent = messages.send_message(alice.id, direct.id, "mine")
        with pytest.raises(ForbiddenError):
            messages.delete_message(sent.id, bob.id)

    def test_delete_twice_is_not_found(self, messages, direct, alice):
        sent = messages.send_message(alice.id, direct.id, "once")
        messages.delete_message(sent.id, alice.id)
        with pytest.raises(NotFoundError):
            messages.delete_message(sent.id, alice.id)

    def test_unknown_message_is_not_found(self, messages, alice):
        with pytest.raises(NotFoundError):
            messages.delete_message(uuid.uuid4(), alice.id)


class TestSearchMessages:

    def test_case_insensitive_newest_first(self, messages, direct, alice, bob):
        first = messages.send_message(alice.id, direct.id, "Pizza tonight?")
        messages.send_message(bob.id, direct.id, "Sure")
        last = messages.send_message(bob.id, direct.id, "pizza it is")

        found = messages.search_messages(direct.id, alice.id, "PIZZA")
        assert [m.id for m in found] == [last.id, first.id]

    def test_deleted_and_system_messages_are_excluded(self, messages, group, alice):
        gone = messages.send_message(alice.id, group.id, "Weekend deleted")
        messages.delete_message(gone.id, alice.id)
        kept = messages.send_message(alice.id, group.id, "Weekend kept")

        found = messages.search_messages(group.id, alice.id, "weekend")
        assert [m.id for m in found] == [kept.id]

    def test_wildcards_match_literally(self, messages, direct, alice):
        messages.send_message(alice.id, direct.id, "500 people signed up")
        discount = messages.send_message(alice.id, direct.id, "50% off today")

        assert [m.id for m in messages.search_messages(direct.id, alice.id, "50%")] == [discount.id]
        assert messages.search_messages(direct.id, alice.id, "e_p") == []

    def test_short_query_is_rejected(self, messages, direct, alice):
        with pytest.raises(ValidationError):
            messages.search_messages(direct.id, alice.id, "a")

    def test_non_member_gets_not_found(self, messages, group, dave):
        with pytest.raises(NotFoundError):
            messages.search_messages(group.id, dave.id, "weekend")
