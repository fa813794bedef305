# tests/test_roles.py

"""
Tests for the per-activity role map.
"""

import pytest

from backend.app.core.paths import FieldPath
from backend.app.core.roles import (
    PendingInvitee, RegisteredUser, Role, RoleMap, resolve_principal,
)
from backend.app.repositories.documents import DELETE
from tests.fakes import FakeIdentity


@pytest.fixture
def role_map():
    return RoleMap.from_document({
        "peopleByUID": {"u1": "Activity Leader", "u2": "Editor", "u3": "Viewer"},
        "peopleByEmail": {"Pending@Example.com": "Assisting"},
    })


def test_from_document_normalises_emails_and_skips_unknown_roles():
    rm = RoleMap.from_document({"peopleByUID": {"u1": "Editor", "u9": "Boss"}, "peopleByEmail": {" A@B.com": "Viewer"}})
    assert rm.by_uid == {"u1": Role.EDITOR}
    assert rm.by_email == {"a@b.com": Role.VIEWER}


def test_queries(role_map):
    assert role_map.has_access("u3")
    assert not role_map.has_access("pending@example.com")
    assert role_map.role_of("u2") is Role.EDITOR
    assert role_map.role_of("PENDING@example.com") is Role.ASSISTING
    assert role_map.can_edit("u2") and not role_map.can_edit("u3")
    assert role_map.editor_count() == 2
    assert role_map.has_activity_leader()
    assert role_map.leader_key() == "u1"


def test_editor_count_ignores_pending_invitees():
    rm = RoleMap.from_document({"peopleByEmail": {"a@b.com": "Editor"}})
    assert rm.editor_count() == 0


def test_leader_held_by_pending_email_counts():
    rm = RoleMap.from_document({"peopleByUID": {"u1": "Editor"}, "peopleByEmail": {"a@b.com": "Activity Leader"}})
    assert rm.has_activity_leader()
    assert rm.leader_key() == "a@b.com"


def test_role_ranking():
    assert Role.ACTIVITY_LEADER.rank > Role.EDITOR.rank == Role.ASSISTING.rank > Role.VIEWER.rank
    assert Role.parse("Viewer") is Role.VIEWER
    assert Role.parse("Boss") is None


def test_set_role_is_pure(role_map):
    after = role_map.set_role(RegisteredUser(uid="u3"), Role.EDITOR)
    assert after.by_uid["u3"] is Role.EDITOR
    assert role_map.by_uid["u3"] is Role.VIEWER


def test_set_role_null_revokes(role_map):
    after = role_map.set_role(PendingInvitee(email="pending@example.com"), None)
    assert "pending@example.com" not in after.by_email


def test_set_role_for_registered_user_drops_stale_email_entry(role_map):
    after = role_map.set_role(RegisteredUser(uid="u4", email="pending@example.com"), Role.EDITOR)
    assert after.by_uid["u4"] is Role.EDITOR
    assert after.by_email == {}


def test_would_remove_last_editor():
    rm = RoleMap.from_document({"peopleByUID": {"u1": "Editor", "u3": "Viewer"}, "peopleByEmail": {"a@b.com": "Editor"}})
    assert rm.would_remove_last_editor(RegisteredUser(uid="u1"), Role.VIEWER)
    assert rm.would_remove_last_editor(RegisteredUser(uid="u1"), None)
    assert not rm.would_remove_last_editor(RegisteredUser(uid="u3"), Role.EDITOR)
    assert not rm.would_remove_last_editor(RegisteredUser(uid="u1"), Role.ASSISTING)


def test_promote_moves_entry_and_is_idempotent(role_map):
    once = role_map.promote("pending@example.com", "u4")
    twice = once.promote("pending@example.com", "u4")
    assert once == twice
    assert once.by_uid["u4"] is Role.ASSISTING
    assert "pending@example.com" not in once.by_email


def test_promote_keeps_existing_uid_role():
    rm = RoleMap.from_document({"peopleByUID": {"u1": "Editor"}, "peopleByEmail": {"a@b.com": "Viewer"}})
    after = rm.promote("a@b.com", "u1")
    assert after.by_uid == {"u1": Role.EDITOR}
    assert after.by_email == {}


def test_field_updates_for_email_keys_are_single_segments(role_map):
    updates = role_map.field_updates_for(PendingInvitee(email="new.person@example.com"), Role.VIEWER)
    assert updates == {FieldPath.of("peopleByEmail", "new.person@example.com"): "Viewer"}


def test_field_updates_for_registered_user_clears_pending_entry(role_map):
    updates = role_map.field_updates_for(RegisteredUser(uid="u4", email="pending@example.com"), None)
    assert updates == {
        FieldPath.of("peopleByUID", "u4"): DELETE,
        FieldPath.of("peopleByEmail", "pending@example.com"): DELETE,
    }


def test_promotion_updates(role_map):
    assert role_map.promotion_updates("pending@example.com", "u4") == {
        FieldPath.of("peopleByEmail", "pending@example.com"): DELETE,
        FieldPath.of("peopleByUID", "u4"): "Assisting",
    }
    assert role_map.promotion_updates("nobody@example.com", "u4") == {}


def test_resolve_principal_uses_identity_each_time():
    identity = FakeIdentity()
    identity.add_user("u7", "Seven@Example.com", display_name="Seven")
    found = resolve_principal(identity, " seven@example.com")
    assert found == RegisteredUser(uid="u7", email="seven@example.com", display_name="Seven")
    assert resolve_principal(identity, "ghost@example.com") == PendingInvitee(email="ghost@example.com")
    resolve_principal(identity, "seven@example.com")
    assert len(identity.lookups) == 3
