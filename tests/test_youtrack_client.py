"""Tests for the YouTrack REST client."""

import json

import pytest
import requests

from youtrack_relay.youtrack_client import (
    CREATED_SENTINEL,
    IssueCreationFailed,
    TrackerUnavailable,
    YouTrackClient,
    parse_metadata,
)

from conftest import encode_content, make_response


@pytest.fixture
def client(tracker_config, mock_session):
    return YouTrackClient(tracker_config, session=mock_session)


class TestClientSetup:
    def test_sets_auth_headers(self, client, mock_session):
        assert mock_session.headers["Authorization"] == "Bearer perm:test-token"
        assert mock_session.headers["Accept"] == "application/json"


class TestFetchNotifications:
    def test_requests_notification_endpoint(self, client, mock_session):
        mock_session.get.return_value = make_response(json_data=[])

        client.fetch_notifications()

        url = mock_session.get.call_args.args[0]
        assert url == "https://youtrack.example.com/api/users/me/notifications"
        assert mock_session.get.call_args.kwargs["params"] == {"fields": "id,content,metadata"}
        assert mock_session.get.call_args.kwargs["timeout"] is None

    def test_non_2xx_raises_tracker_unavailable(self, client, mock_session):
        mock_session.get.return_value = make_response(status_code=503)

        with pytest.raises(TrackerUnavailable) as exc_info:
            client.fetch_notifications()

        assert exc_info.value.status_code == 503

    def test_transport_error_raises_tracker_unavailable(self, client, mock_session):
        mock_session.get.side_effect = requests.ConnectionError("refused")

        with pytest.raises(TrackerUnavailable):
            client.fetch_notifications()

    @pytest.mark.parametrize("body", [{"notifications": []}, "oops", 42, None])
    def test_non_array_body_is_empty(self, client, mock_session, body):
        mock_session.get.return_value = make_response(json_data=body)

        assert client.fetch_notifications() == []

    def test_non_json_body_is_empty(self, client, mock_session):
        mock_session.get.return_value = make_response(json_error=ValueError("no json"))

        assert client.fetch_notifications() == []

    def test_elements_without_id_are_skipped(self, client, mock_session):
        mock_session.get.return_value = make_response(json_data=[
            {"content": "no id here"},
            "not an object",
            {"id": "n-2", "content": "DEMO-2 Second"},
        ])

        notifications = client.fetch_notifications()

        assert [n.id for n in notifications] == ["n-2"]

    def test_encoded_content_is_decoded(self, client, mock_session):
        mock_session.get.return_value = make_response(json_data=[
            {"id": "n-1", "content": encode_content("DEMO-5 Broken build\nState: Open")},
        ])

        notification = client.fetch_notifications()[0]

        assert notification.content == "DEMO-5 Broken build\nState: Open"
        assert notification.metadata.issue_id == "DEMO-5"
        assert notification.metadata.issue_title == "Broken build"
        assert notification.metadata.issue_status == "Open"

    def test_object_content_is_stringified(self, client, mock_session):
        mock_session.get.return_value = make_response(json_data=[
            {"id": "n-1", "content": {"text": "hello"}},
        ])

        notification = client.fetch_notifications()[0]

        assert json.loads(notification.content) == {"text": "hello"}

    def test_missing_content_is_empty(self, client, mock_session):
        mock_session.get.return_value = make_response(json_data=[{"id": "n-1", "metadata": None}])

        notification = client.fetch_notifications()[0]

        assert notification.content == ""
        assert notification.metadata.issue_id is None

    def test_structured_metadata_description_is_decoded(self, client, mock_session):
        mock_session.get.return_value = make_response(json_data=[{
            "id": "n-1",
            "content": "",
            "metadata": {
                "issueId": "DEMO-3",
                "issueTitle": "Title",
                "issueStatus": "Fixed",
                "description": encode_content("**done**"),
            },
        }])

        metadata = client.fetch_notifications()[0].metadata

        assert metadata.issue_id == "DEMO-3"
        assert metadata.issue_status == "Fixed"
        assert metadata.description == "**done**"

    def test_content_issue_id_overrides_metadata(self, client, mock_session):
        mock_session.get.return_value = make_response(json_data=[{
            "id": "n-1",
            "content": "Update on XYZ-9",
            "metadata": {"issueId": "ABC-1", "issueTitle": "Fix bug", "issueStatus": "Open"},
        }])

        metadata = client.fetch_notifications()[0].metadata

        assert metadata.issue_id == "XYZ-9"
        assert metadata.issue_title == "Fix bug"
        assert metadata.issue_status == "Open"

    def test_string_metadata_is_decoded_and_parsed(self, client, mock_session):
        raw_metadata = encode_content(json.dumps({"issueId": "DEMO-8", "issueStatus": "Open"}))
        mock_session.get.return_value = make_response(json_data=[
            {"id": "n-1", "content": "plain words", "metadata": raw_metadata},
        ])

        metadata = client.fetch_notifications()[0].metadata

        assert metadata.issue_id == "DEMO-8"
        assert metadata.issue_status == "Open"


class TestParseMetadata:
    def test_unparseable_string_falls_back_to_extractor(self):
        metadata = parse_metadata("not json at all", "DEMO-1 Title\nState: Open")

        assert metadata.issue_id == "DEMO-1"
        assert metadata.issue_title == "Title"
        assert metadata.issue_status == "Open"

    def test_partial_object_is_filled_from_content(self):
        metadata = parse_metadata({"issueTitle": "Real title"}, "DEMO-1 Other\nState: Open")

        assert metadata.issue_id == "DEMO-1"
        assert metadata.issue_title == "Real title"
        assert metadata.issue_status == "Open"

    def test_list_metadata_falls_back_to_extractor(self):
        assert parse_metadata(["x"], "DEMO-4 T").issue_id == "DEMO-4"


class TestFetchRecentIssues:
    def test_requests_issue_endpoint(self, client, mock_session):
        mock_session.get.return_value = make_response(json_data=[])

        client.fetch_recent_issues(0)

        assert mock_session.get.call_args.args[0] == "https://youtrack.example.com/api/issues"
        params = mock_session.get.call_args.kwargs["params"]
        assert params["fields"] == "id,idReadable,summary,description,updated,customFields(name,value(name))"
        assert params["$top"] == 50

    def test_boundary_is_exclusive(self, client, mock_session):
        since = 1_700_000_000_000
        mock_session.get.return_value = make_response(json_data=[
            {"id": "2-1", "idReadable": "DEMO-1", "summary": "at boundary", "updated": since},
            {"id": "2-2", "idReadable": "DEMO-2", "summary": "just after", "updated": since + 1},
            {"id": "2-3", "idReadable": "DEMO-3", "summary": "no timestamp"},
        ])

        issues = client.fetch_recent_issues(since)

        assert [i.id for i in issues] == ["DEMO-2"]

    def test_prefers_readable_id(self, client, mock_session):
        mock_session.get.return_value = make_response(json_data=[
            {"id": "2-1", "idReadable": "DEMO-1", "summary": "a", "updated": 10},
            {"id": "2-2", "summary": "b", "updated": 10},
            {"summary": "no ids", "updated": 10},
        ])

        issues = client.fetch_recent_issues(0)

        assert [i.id for i in issues] == ["DEMO-1", "2-2"]

    def test_first_state_field_wins(self, client, mock_session):
        mock_session.get.return_value = make_response(json_data=[{
            "idReadable": "DEMO-1",
            "summary": "a",
            "description": "desc",
            "updated": 10,
            "customFields": [
                {"name": "Priority", "value": {"name": "Major"}},
                {"name": "State", "value": {"name": "In Progress"}},
                {"name": "State", "value": {"name": "Done"}},
            ],
        }])

        issue = client.fetch_recent_issues(0)[0]

        assert issue.state == "In Progress"
        assert issue.description == "desc"

    def test_state_without_value(self, client, mock_session):
        mock_session.get.return_value = make_response(json_data=[{
            "idReadable": "DEMO-1",
            "updated": 10,
            "customFields": [{"name": "State", "value": None}],
        }])

        issue = client.fetch_recent_issues(0)[0]

        assert issue.state is None
        assert issue.summary == ""

    def test_non_2xx_raises(self, client, mock_session):
        mock_session.get.return_value = make_response(status_code=401)

        with pytest.raises(TrackerUnavailable):
            client.fetch_recent_issues(0)


class TestCreateIssue:
    def test_returns_readable_id(self, client, mock_session):
        mock_session.post.return_value = make_response(json_data={"idReadable": "DEMO-12"})

        assert client.create_issue("0-1", "Fix login button bug") == "DEMO-12"

        kwargs = mock_session.post.call_args.kwargs
        assert mock_session.post.call_args.args[0] == "https://youtrack.example.com/api/issues"
        assert kwargs["params"] == {"fields": "id,idReadable"}
        assert kwargs["json"] == {"project": {"id": "0-1"}, "summary": "Fix login button bug"}

    def test_description_is_included(self, client, mock_session):
        mock_session.post.return_value = make_response(json_data={"idReadable": "DEMO-13"})

        client.create_issue("0-1", 'Quote " and \\ slash', "line1\nline2")

        assert mock_session.post.call_args.kwargs["json"] == {
            "project": {"id": "0-1"},
            "summary": 'Quote " and \\ slash',
            "description": "line1\nline2",
        }

    def test_falls_back_to_internal_id(self, client, mock_session):
        mock_session.post.return_value = make_response(json_data={"id": "2-77"})

        assert client.create_issue("0-1", "x") == "2-77"

    @pytest.mark.parametrize("body", [{}, [], None])
    def test_falls_back_to_sentinel(self, client, mock_session, body):
        mock_session.post.return_value = make_response(json_data=body)

        assert client.create_issue("0-1", "x") == CREATED_SENTINEL

    def test_non_json_response_returns_sentinel(self, client, mock_session):
        mock_session.post.return_value = make_response(json_error=ValueError("empty"))

        assert client.create_issue("0-1", "x") == CREATED_SENTINEL

    def test_non_2xx_raises_with_status(self, client, mock_session):
        mock_session.post.return_value = make_response(status_code=403)

        with pytest.raises(IssueCreationFailed) as exc_info:
            client.create_issue("0-1", "x")

        assert exc_info.value.status_code == 403

    def test_transport_error_raises(self, client, mock_session):
        mock_session.post.side_effect = requests.Timeout("slow")

        with pytest.raises(IssueCreationFailed) as exc_info:
            client.create_issue("0-1", "x")

        assert exc_info.value.status_code is None
