"""Tests for conversation creation, settings and lookups."""

import uuid

import pytest

from app.core.exceptions import ForbiddenError, InvalidOperationError, NotFoundError, ValidationError
from app.models.conversation import ConversationKind
from app.models.message import MessageType
from app.models.participant import ParticipantRole


class TestCreateDirect:
    """Direct conversations are unique per user pair."""

    def test_same_pair_returns_same_conversation(self, conversations, alice, bob):
        first = conversations.create_conversation(alice.id, [bob.id], is_group=False)
        second = conversations.create_conversation(alice.id, [bob.id], is_group=False)
        assert first.id == second.id

    def test_pair_is_unordered(self, conversations, alice, bob):
        first = conversations.create_conversation(alice.id, [bob.id])
        second = conversations.create_conversation(bob.id, [alice.id])
        assert first.id == second.id

    def test_get_or_create_direct_reuses_conversation(self, conversations, direct, alice, bob):
        assert conversations.get_or_create_direct(bob.id, alice.id).id == direct.id

    def test_both_participants_are_members(self, conversations, direct, alice, bob):
        detail = conversations.get_conversation(direct.id, alice.id)
        assert detail.conversation.kind == ConversationKind.direct
        assert {p.user_id for p in detail.participants} == {alice.id, bob.id}
        assert all(p.role == ParticipantRole.member for p in detail.participants)

    def test_requires_exactly_one_other_participant(self, conversations, alice, bob, carol):
        with pytest.raises(ValidationError):
            conversations.create_conversation(alice.id, [bob.id, carol.id])
        with pytest.raises(ValidationError):
            conversations.create_conversation(alice.id, [])

    def test_self_only_is_rejected(self, conversations, alice):
        with pytest.raises(ValidationError):
            conversations.create_conversation(alice.id, [alice.id])

    def test_unknown_participant_is_rejected(self, conversations, alice):
        with pytest.raises(ValidationError):
            conversations.create_conversation(alice.id, [uuid.uuid4()])

    def test_inactive_participant_is_rejected(self, conversations, alice, make_user):
        gone = make_user("gone", is_active=False)
        with pytest.raises(ValidationError):
            conversations.create_conversation(alice.id, [gone.id])

    def test_concurrent_creation_returns_winner(self, conversations, direct, alice, bob, monkeypatch):
        # Simulate losing the race: the lookup misses, then the insert hits the unique pair key
        find_direct = conversations.conversations.find_direct
        calls = []

        def stale_then_fresh(key):
            calls.append(key)
            return None if len(calls) == 1 else find_direct(key)

        monkeypatch.setattr(conversations.conversations, "find_direct", stale_then_fresh)

        winner = conversations.create_conversation(bob.id, [alice.id])
        assert winner.id == direct.id
        assert len(calls) == 2


class TestCreateGroup:
    """Group creation and its initial roles."""

    def test_creator_is_admin_and_others_members(self, conversations, group, alice, bob, carol):
        detail = conversations.get_conversation(group.id, alice.id)
        roles = {p.user_id: p.role for p in detail.participants}
        assert roles == {
            alice.id: ParticipantRole.admin,
            bob.id: ParticipantRole.member,
            carol.id: ParticipantRole.member,
        }
        assert detail.conversation.name == "Weekend plans"
        assert detail.conversation.admin_only_messaging is False

    def test_duplicate_ids_are_collapsed(self, conversations, alice, bob):
        group = conversations.create_conversation(alice.id, [bob.id, bob.id, alice.id], name="Pair", is_group=True)
        detail = conversations.get_conversation(group.id, alice.id)
        assert len(detail.participants) == 2

    def test_name_is_required(self, conversations, alice, bob):
        with pytest.raises(ValidationError):
            conversations.create_conversation(alice.id, [bob.id], name="   ", is_group=True)

    def test_name_length_is_bounded(self, conversations, alice, bob):
        with pytest.raises(ValidationError):
            conversations.create_conversation(alice.id, [bob.id], name="x" * 256, is_group=True)

    def test_creation_writes_system_message(self, conversations, messages, group, alice):
        detail = conversations.get_conversation(group.id, alice.id)
        assert detail.last_message is not None
        assert detail.last_message.message_type == MessageType.system
        assert "Weekend plans" in detail.last_message.content

    def test_group_with_only_creator_is_allowed(self, conversations, alice):
        group = conversations.create_conversation(alice.id, [], name="Notes", is_group=True)
        assert len(conversations.get_conversation(group.id, alice.id).participants) == 1


class TestUpdateConversation:
    """Admin-only settings changes."""

    def test_admin_renames_group(self, conversations, group, alice):
        conversations.update_conversation(group.id, alice.id, name="Renamed", description="Trip")
        detail = conversations.get_conversation(group.id, alice.id)
        assert detail.conversation.name == "Renamed"
        assert detail.conversation.description == "Trip"
        assert detail.last_message.message_type == MessageType.system

    def test_member_cannot_update(self, conversations, group, bob):
        with pytest.raises(ForbiddenError):
            conversations.update_conversation(group.id, bob.id, name="Hijacked")

    def test_direct_conversation_cannot_be_renamed(self, conversations, direct, alice):
        with pytest.raises(InvalidOperationError) as exc_info:
            conversations.update_conversation(direct.id, alice.id, name="Nope")
        assert exc_info.value.error_code == "DIRECT_CONVERSATION"

    def test_blank_name_is_rejected(self, conversations, group, alice):
        with pytest.raises(ValidationError):
            conversations.update_conversation(group.id, alice.id, name="  ")

    def test_failed_update_leaves_state_untouched(self, conversations, group, alice, db):
        with pytest.raises(ValidationError):
            conversations.update_conversation(group.id, alice.id, name="ok", description="d" * 1001)
        db.expire_all()
        assert conversations.get_conversation(group.id, alice.id).conversation.name == "Weekend plans"

    def test_outsider_gets_not_found(self, conversations, group, dave):
        with pytest.raises(NotFoundError):
            conversations.update_conversation(group.id, dave.id, name="x")


class TestAdminOnlyMessaging:

    def test_admin_toggles_flag(self, conversations, group, alice):
        conversations.set_admin_only_messaging(group.id, alice.id, True)
        assert conversations.get_conversation(group.id, alice.id).conversation.admin_only_messaging is True

    def test_member_cannot_toggle(self, conversations, group, bob):
        with pytest.raises(ForbiddenError):
            conversations.set_admin_only_messaging(group.id, bob.id, True)

    def test_unchanged_value_adds_no_system_message(self, conversations, group, alice):
        before = conversations.get_conversation(group.id, alice.id).last_message.id
        conversations.set_admin_only_messaging(group.id, alice.id, False)
        assert conversations.get_conversation(group.id, alice.id).last_message.id == before

    def test_direct_conversation_cannot_be_restricted(self, conversations, direct, alice):
        with pytest.raises(InvalidOperationError) as exc_info:
            conversations.set_admin_only_messaging(direct.id, alice.id, True)
        assert exc_info.value.error_code == "DIRECT_CONVERSATION"


class TestLookups:

    def test_unknown_conversation_is_not_found(self, conversations, alice):
        with pytest.raises(NotFoundError):
            conversations.get_conversation(uuid.uuid4(), alice.id)

    def test_non_member_is_not_found(self, conversations, group, dave):
        with pytest.raises(NotFoundError):
            conversations.get_conversation(group.id, dave.id)

    def test_list_orders_by_latest_activity(self, conversations, messages, group, direct, alice):
        messages.send_message(alice.id, group.id, "bump")
        page = conversations.list_conversations(alice.id)
        assert [d.conversation.id for d in page.conversations] == [group.id, direct.id]
        assert page.next_cursor is None

    def test_list_pages_with_cursor(self, conversations, alice, make_user):
        friends = [make_user(f"friend{i}") for i in range(5)]
        created = [conversations.create_conversation(alice.id, [f.id]).id for f in friends]

        first = conversations.list_conversations(alice.id, limit=3)
        assert len(first.conversations) == 3
        assert first.next_cursor is not None
        second = conversations.list_conversations(alice.id, limit=3, cursor=first.next_cursor)
        assert len(second.conversations) == 2
        assert second.next_cursor is None

        seen = [d.conversation.id for d in first.conversations + second.conversations]
        assert sorted(seen) == sorted(created)
        assert len(set(seen)) == 5

    def test_leaving_direct_conversation_is_invalid(self, conversations, direct, bob):
        with pytest.raises(InvalidOperationError) as exc_info:
            conversations.leave_conversation(direct.id, bob.id)
        assert exc_info.value.error_code == "DIRECT_CONVERSATION"
