"""
Tests for auth state derivation, the state tracker and the fetch gate.
"""
import itertools

import pytest

from thirstee.auth import (
    AuthSnapshot,
    AuthState,
    AuthStateTracker,
    Principal,
    derive_auth_state,
    ensure_principal,
    optional_auth_view,
    require_auth_view,
    should_fetch,
)
from thirstee.errors import GuardViolationError

USER = Principal(id="u1", email="u1@example.com")
NO_ID = Principal(id="")


# =============================================================================
# should_fetch
# =============================================================================

@pytest.mark.parametrize(
    "require_auth,principal",
    list(itertools.product([True, False], [None, USER, NO_ID])),
)
def test_loading_never_fetches(require_auth, principal):
    assert should_fetch(AuthState.LOADING, require_auth, principal) is False


@pytest.mark.parametrize(
    "require_auth,principal",
    list(itertools.product([True, False], [None, USER, NO_ID])),
)
def test_error_never_fetches(require_auth, principal):
    assert should_fetch(AuthState.ERROR, require_auth, principal) is False


def test_required_auth_with_user_fetches():
    assert should_fetch(AuthState.AUTHENTICATED, True, USER) is True


def test_required_auth_without_user_does_not_fetch():
    assert should_fetch(AuthState.AUTHENTICATED, True, None) is False
    assert should_fetch(AuthState.UNAUTHENTICATED, True, None) is False
    assert should_fetch(AuthState.UNAUTHENTICATED, True, USER) is False


def test_required_auth_with_empty_id_does_not_fetch():
    assert should_fetch(AuthState.AUTHENTICATED, True, NO_ID) is False


def test_optional_auth_fetches_once_determined():
    assert should_fetch(AuthState.UNAUTHENTICATED, False, None) is True
    assert should_fetch(AuthState.AUTHENTICATED, False, USER) is True


def test_optional_auth_with_empty_id_does_not_fetch():
    """A principal without an id is a half-initialized session"""
    assert should_fetch(AuthState.AUTHENTICATED, False, NO_ID) is False


def test_should_fetch_accepts_state_strings():
    assert should_fetch("authenticated", True, USER) is True
    assert should_fetch("loading", False, None) is False


def test_ensure_principal():
    assert ensure_principal(USER) is USER
    with pytest.raises(GuardViolationError):
        ensure_principal(None, "user_stats")
    with pytest.raises(GuardViolationError):
        ensure_principal(NO_ID)


# =============================================================================
# derive_auth_state
# =============================================================================

def test_uninitialized_is_loading_whatever_else():
    assert derive_auth_state(False, False, "boom", USER) is AuthState.LOADING


def test_error_beats_loading_and_user():
    assert derive_auth_state(True, True, "boom", USER) is AuthState.ERROR


def test_loading_beats_user():
    assert derive_auth_state(True, True, None, USER) is AuthState.LOADING


def test_user_presence_decides_when_settled():
    assert derive_auth_state(True, False, None, USER) is AuthState.AUTHENTICATED
    assert derive_auth_state(True, False, None, None) is AuthState.UNAUTHENTICATED


# =============================================================================
# AuthStateTracker
# =============================================================================

def test_tracker_starts_loading():
    tracker = AuthStateTracker()

    assert tracker.state is AuthState.LOADING
    assert tracker.user is None
    assert tracker.snapshot.is_ready is False


def test_tracker_notifies_transitions():
    tracker = AuthStateTracker()
    transitions = []
    tracker.subscribe(lambda prev, cur: transitions.append((prev.state, cur.state)))

    tracker.sign_in(USER)
    tracker.sign_out()

    assert transitions == [
        (AuthState.LOADING, AuthState.AUTHENTICATED),
        (AuthState.AUTHENTICATED, AuthState.UNAUTHENTICATED),
    ]


def test_tracker_skips_identical_snapshots():
    tracker = AuthStateTracker()
    calls = []
    tracker.subscribe(lambda prev, cur: calls.append(cur))

    tracker.sign_in(USER)
    tracker.sign_in(USER)

    assert len(calls) == 1


def test_tracker_update_from_provider_flags():
    tracker = AuthStateTracker()

    tracker.update(is_initialized=True, loading=False, user=USER)
    assert tracker.state is AuthState.AUTHENTICATED
    assert tracker.user == USER

    tracker.update(is_initialized=True, error="token expired")
    assert tracker.state is AuthState.ERROR
    assert tracker.snapshot.error == "token expired"


def test_tracker_fail_keeps_user():
    tracker = AuthStateTracker()
    tracker.sign_in(USER)

    tracker.fail("network")

    assert tracker.state is AuthState.ERROR
    assert tracker.user == USER


def test_tracker_unsubscribe():
    tracker = AuthStateTracker()
    calls = []
    unsubscribe = tracker.subscribe(lambda prev, cur: calls.append(cur))

    unsubscribe()
    tracker.sign_in(USER)

    assert calls == []


def test_failing_listener_does_not_block_others():
    tracker = AuthStateTracker()
    calls = []

    def broken(prev, cur):
        raise RuntimeError("listener bug")

    tracker.subscribe(broken)
    tracker.subscribe(lambda prev, cur: calls.append(cur.state))

    tracker.sign_in(USER)

    assert calls == [AuthState.AUTHENTICATED]


# =============================================================================
# Page views
# =============================================================================

def test_require_auth_view_renders_only_for_user():
    loading = require_auth_view(AuthSnapshot())
    assert loading.is_loading is True
    assert loading.should_render is False

    signed_out = require_auth_view(AuthSnapshot(state=AuthState.UNAUTHENTICATED))
    assert signed_out.should_render is False

    signed_in = require_auth_view(AuthSnapshot(state=AuthState.AUTHENTICATED, user=USER))
    assert signed_in.should_render is True
    assert signed_in.user == USER


def test_optional_auth_view_renders_once_determined():
    assert optional_auth_view(AuthSnapshot()).should_render is False

    signed_out = optional_auth_view(AuthSnapshot(state=AuthState.UNAUTHENTICATED))
    assert signed_out.should_render is True
    assert signed_out.user is None

    failed = optional_auth_view(AuthSnapshot(state=AuthState.ERROR, error="boom"))
    assert failed.should_render is True
    assert failed.error == "boom"
    assert failed.is_authenticated is False
