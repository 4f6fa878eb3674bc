from __future__ import annotations

import dataclasses

import pytest

from orgactivity.models import UserActivityRecord


def test_record_is_active_only_with_some_activity() -> None:
    assert not UserActivityRecord(login="idle").is_active
    assert UserActivityRecord(login="busy", pr_comments=1).is_active


def test_with_email_returns_a_copy() -> None:
    record = UserActivityRecord(login="alice", commits=2)

    updated = record.with_email("alice@x.com")

    assert updated.email == "alice@x.com"
    assert record.email == ""
    assert updated.commits == 2
    with pytest.raises(dataclasses.FrozenInstanceError):
        record.commits = 3  # type: ignore[misc]


def test_to_row_uses_report_column_names_in_order() -> None:
    row = UserActivityRecord(login="alice", issues=1, email="a@x.com").to_row()

    assert list(row) == ["login", "email", "isActive", "commits", "issues", "issueComments", "prComments"]
    assert row["isActive"] is True
    assert row["issues"] == 1
