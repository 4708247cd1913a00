"""Tests for notification parameters and their query encoding."""

from __future__ import annotations

import pytest

from couchfeed.changes.parameters import (
    DEFAULT_HEARTBEAT,
    DEFAULT_SINCE,
    FEED_NORMAL,
    FeedStyle,
    NotificationParameters,
)
from couchfeed.errors.couchfeed_errors import InvalidParameterError


class TestDefaults:
    def test_default_values(self) -> None:
        params = NotificationParameters()
        assert params.heartbeat == DEFAULT_HEARTBEAT == 1000
        assert params.style is FeedStyle.MAIN_ONLY
        assert params.filter is None
        assert params.include_docs is False
        assert params.descending is False
        assert params.since == DEFAULT_SINCE == "0"
        assert params.emit_last_sequence is False

    def test_feed_is_always_normal(self) -> None:
        assert NotificationParameters().feed == FEED_NORMAL == "normal"


class TestValidation:
    @pytest.mark.parametrize("heartbeat", [0, -1, -5000])
    def test_non_positive_heartbeat(self, heartbeat: int) -> None:
        with pytest.raises(InvalidParameterError, match="positive"):
            NotificationParameters(heartbeat=heartbeat)

    @pytest.mark.parametrize("heartbeat", [1.5, "1000", None, True])
    def test_non_integer_heartbeat(self, heartbeat: object) -> None:
        with pytest.raises(InvalidParameterError):
            NotificationParameters(heartbeat=heartbeat)  # type: ignore[arg-type]

    def test_style_string_is_coerced(self) -> None:
        params = NotificationParameters(style="all_docs")  # type: ignore[arg-type]
        assert params.style is FeedStyle.ALL_DOCS

    def test_unknown_style(self) -> None:
        with pytest.raises(InvalidParameterError, match="unknown feed style"):
            NotificationParameters(style="everything")  # type: ignore[arg-type]

    @pytest.mark.parametrize("since", [None, ""])
    def test_empty_since(self, since: object) -> None:
        with pytest.raises(InvalidParameterError):
            NotificationParameters(since=since)  # type: ignore[arg-type]

    def test_error_status(self) -> None:
        with pytest.raises(InvalidParameterError) as exc_info:
            NotificationParameters(heartbeat=0)
        assert exc_info.value.status_code == 400
        assert exc_info.value.code == "invalid-parameter"


class TestCreate:
    def test_create(self) -> None:
        params = NotificationParameters.create(
            5000, FeedStyle.ALL_DOCS, filter="app/f", include_docs=True, descending=True
        )
        assert params.heartbeat == 5000
        assert params.style is FeedStyle.ALL_DOCS
        assert params.filter == "app/f"
        assert params.include_docs is True
        assert params.descending is True
        assert params.since == "0"

    def test_create_rejects_zero_heartbeat(self) -> None:
        with pytest.raises(InvalidParameterError):
            NotificationParameters.create(0)

    def test_with_since(self) -> None:
        params = NotificationParameters(heartbeat=250)
        moved = params.with_since("42")
        assert moved.since == "42"
        assert moved.heartbeat == 250
        assert params.since == "0"

    def test_immutable(self) -> None:
        params = NotificationParameters()
        with pytest.raises(AttributeError):
            params.heartbeat = 5  # type: ignore[misc]


class TestQueryParameters:
    def test_minimal_query(self) -> None:
        assert NotificationParameters().to_query_parameters() == {
            "feed": "normal",
            "heartbeat": "1000",
            "style": "main_only",
            "since": "0",
        }

    def test_full_query(self) -> None:
        params = NotificationParameters(
            heartbeat=30000,
            style=FeedStyle.ALL_DOCS,
            filter="app/by_type",
            include_docs=True,
            descending=True,
            since="12-abc",
        )
        assert params.to_query_parameters() == {
            "feed": "normal",
            "heartbeat": "30000",
            "style": "all_docs",
            "since": "12-abc",
            "filter": "app/by_type",
            "include_docs": "true",
            "descending": "true",
        }

    def test_since_override(self) -> None:
        query = NotificationParameters(since="5").to_query_parameters(since=17)
        assert query["since"] == "17"

    def test_false_flags_are_omitted(self) -> None:
        query = NotificationParameters(filter="").to_query_parameters()
        assert "filter" not in query
        assert "include_docs" not in query
        assert "descending" not in query

    def test_emit_last_sequence_not_sent(self) -> None:
        query = NotificationParameters(emit_last_sequence=True).to_query_parameters()
        assert "emit_last_sequence" not in query
