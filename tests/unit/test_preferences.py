import pytest

from fakes import FakePreferenceRepository, run

from app.notifications.application.preferences import (
    DEFAULT_PREFERENCES,
    NotificationPreferenceStore,
)
from app.notifications.domain.models import NotificationPreferences
from app.procurement.domain.errors import ValidationError
from app.procurement.domain.events import EventType


def build_store(cache=None):
    repo = FakePreferenceRepository()
    return NotificationPreferenceStore(repo, cache), repo


def test_defaults_when_nothing_stored():
    store, _ = build_store()

    preferences = run(store.load("user-1"))

    assert preferences == DEFAULT_PREFERENCES
    assert preferences.email is True
    assert preferences.in_app is True
    assert preferences.sound is False
    assert preferences.muted_events == frozenset()


def test_save_overwrites_and_is_read_back():
    store, repo = build_store()
    wanted = NotificationPreferences(email=False, in_app=True, sound=True)

    run(store.save("user-1", wanted))

    assert repo.stored["user-1"] == wanted
    assert repo.commits == 1
    assert run(store.load("user-1")) == wanted


def test_load_is_cached_per_process():
    cache = {}
    store, repo = build_store(cache)

    run(store.load("user-1"))
    run(store.load("user-1"))
    other_store = NotificationPreferenceStore(repo, cache)
    run(other_store.load("user-1"))

    assert repo.reads == 1


def test_mute_and_unmute_are_idempotent():
    store, repo = build_store()

    first = run(store.mute("user-1", EventType.PO_GENERATED))
    second = run(store.mute("user-1", EventType.PO_GENERATED))

    assert first.muted_events == frozenset({EventType.PO_GENERATED})
    assert second == first
    assert repo.commits == 1

    run(store.unmute("user-1", EventType.PO_GENERATED))
    cleared = run(store.unmute("user-1", EventType.PO_GENERATED))

    assert cleared.muted_events == frozenset()
    assert repo.commits == 2


def test_update_changes_only_given_fields():
    store, _ = build_store()
    run(store.mute("user-1", EventType.GRN_CREATED))

    updated = run(store.update("user-1", sound=True))

    assert updated.sound is True
    assert updated.email is True
    assert updated.muted_events == frozenset({EventType.GRN_CREATED})


def test_update_accepts_event_names():
    store, _ = build_store()

    updated = run(store.update("user-1", muted_events=["po_signed", "grn_rejected"]))

    assert updated.muted_events == frozenset({EventType.PO_SIGNED, EventType.GRN_REJECTED})


def test_update_rejects_unknown_values():
    store, repo = build_store()

    with pytest.raises(ValidationError):
        run(store.update("user-1", muted_events=["not_an_event"]))
    with pytest.raises(ValidationError):
        run(store.update("user-1", desktop=True))
    assert repo.stored == {}
