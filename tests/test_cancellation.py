"""Tests for the cooperative cancellation primitives."""

import pytest

from HitomiFetch.cancellation import CancellationToken, CancellationTokenGroup
from HitomiFetch.errors import OperationCancelled


def test_token_raises_once_cancelled() -> None:
    token = CancellationToken()
    token.raise_if_cancelled()

    token.cancel("stop")

    with pytest.raises(OperationCancelled, match="stop"):
        token.raise_if_cancelled()
    assert token.reason == "stop"


def test_first_reason_is_kept() -> None:
    token = CancellationToken()
    token.cancel("first")
    token.cancel("second")
    assert token.reason == "first"


def test_child_follows_parent() -> None:
    parent = CancellationToken()
    child = CancellationToken(parent=parent)
    assert not child.is_cancelled()

    parent.cancel("caller")

    assert child.is_cancelled()
    assert child.reason == "caller"


def test_tokens_created_after_cancel_all_are_cancelled() -> None:
    group = CancellationTokenGroup()
    first = group.create_token()
    assert not first.is_cancelled()

    group.cancel_all()

    assert first.is_cancelled()
    assert group.create_token().is_cancelled()
    assert len(group) == 2
    assert group.is_any_cancelled()


def test_group_parent_cancels_members() -> None:
    parent = CancellationToken()
    group = CancellationTokenGroup(parent=parent)
    token = group.create_token()

    parent.cancel()

    assert token.is_cancelled()
