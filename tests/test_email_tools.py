from __future__ import annotations

from outlook_mcp.exceptions import GraphAPIError
from outlook_mcp.responses import AUTH_REQUIRED_MESSAGE
from outlook_mcp.tools import email as email_tools

from conftest import FakeGraph

NOT_FOUND = GraphAPIError("API call failed with status 404: ErrorItemNotFound", 404)


def _message(**overrides):
    message = {
        "id": "msg-1",
        "subject": "Status",
        "from": {"emailAddress": {"name": "Pat", "address": "pat@example.com"}},
        "receivedDateTime": "2024-03-01T08:00:00Z",
        "isRead": False,
    }
    message.update(overrides)
    return message


# list-emails / read-email


def test_list_emails_uses_well_known_folder(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register(
        "GET", "me/mailFolders/sentitems/messages", {"value": [_message(isRead=True)]}
    )

    result = email_tools.list_emails.fn(folder="Sent", count=5)

    assert result.startswith("Found 1 emails in sent:\n\n")
    assert "1. 2024-03-01T08:00:00Z - From: Pat (pat@example.com)" in result
    params = mock_graph.calls[0]["query_params"]
    assert params["$top"] == 5
    assert params["$orderby"] == "receivedDateTime desc"


def test_list_emails_flags_unread(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register("GET", "me/mailFolders/inbox/messages", {"value": [_message()]})
    assert "[UNREAD]" in email_tools.list_emails.fn()


def test_list_emails_rejects_unknown_folder(mock_graph: FakeGraph, authenticated: str) -> None:
    result = email_tools.list_emails.fn(folder="spam")
    assert "Invalid folder 'spam'" in result
    assert mock_graph.calls == []


def test_list_emails_empty(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register("GET", "me/mailFolders/drafts/messages", {"value": []})
    assert email_tools.list_emails.fn(folder="drafts") == "No emails found in drafts."


def test_read_email(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register(
        "GET",
        "me/messages/msg-1",
        _message(
            toRecipients=[{"emailAddress": {"address": "me@example.com"}}],
            body={"contentType": "text", "content": "All good."},
        ),
    )

    result = email_tools.read_email.fn(id="msg-1")

    assert "From: Pat (pat@example.com)" in result
    assert "To: me@example.com" in result
    assert "Subject: Status" in result
    assert result.endswith("All good.")


def test_read_missing_email(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register("GET", "me/messages/gone", NOT_FOUND)
    assert email_tools.read_email.fn(id="gone") == email_tools.EMAIL_NOT_FOUND_MESSAGE


# send-email / mark-as-read


def test_send_email(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register("POST", "me/sendMail", None)

    result = email_tools.send_email.fn(
        to="a@example.com, b@example.com",
        subject="Hello",
        body="<p>Hi</p>",
        cc="c@example.com",
        contentType="HTML",
    )

    assert result == "Email sent successfully!\n\nSubject: Hello\nRecipients: 3"
    payload = mock_graph.calls[0]["body"]
    assert payload["saveToSentItems"] is True
    message = payload["message"]
    assert message["body"] == {"contentType": "html", "content": "<p>Hi</p>"}
    assert [r["emailAddress"]["address"] for r in message["toRecipients"]] == [
        "a@example.com",
        "b@example.com",
    ]
    assert message["importance"] == "normal"


def test_send_email_requires_fields(mock_graph: FakeGraph, authenticated: str) -> None:
    result = email_tools.send_email.fn(to="a@example.com", subject="", body="x")
    assert "required" in result
    assert mock_graph.calls == []


def test_send_email_rejects_bad_recipient(mock_graph: FakeGraph, authenticated: str) -> None:
    result = email_tools.send_email.fn(to="nobody", subject="Hi", body="x")
    assert "Invalid to" in result
    assert mock_graph.calls == []


def test_mark_as_unread(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register("PATCH", "me/messages/msg-1", {"id": "msg-1"})

    result = email_tools.mark_as_read.fn(id="msg-1", isRead=False)

    assert result == "Email marked as unread."
    assert mock_graph.calls[0]["body"] == {"isRead": False}


# save-draft


def test_save_new_draft(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register("POST", "me/messages", {"id": "draft-1", "subject": "Plan"})

    result = email_tools.save_draft.fn(
        to="a@example.com", bcc="b@example.com", subject="Plan", body="Draft text"
    )

    assert result.startswith("Draft created successfully!\n\nDraft ID: draft-1\n")
    assert "Subject: Plan" in result
    assert "To: 1 recipient(s)" in result
    assert "BCC: 1 recipient(s)" in result
    assert "\nCC:" not in result
    body = mock_graph.calls[0]["body"]
    assert body["body"] == {"contentType": "text", "content": "Draft text"}
    assert body["importance"] == "normal"


def test_update_draft_sends_only_given_fields(
    mock_graph: FakeGraph, authenticated: str
) -> None:
    mock_graph.register("PATCH", "me/messages/draft-1", {"id": "draft-1"})

    result = email_tools.save_draft.fn(id="draft-1", subject="New subject")

    assert result.startswith("Draft updated successfully!")
    assert mock_graph.calls[0]["body"] == {"subject": "New subject"}


def test_update_draft_needs_a_field(mock_graph: FakeGraph, authenticated: str) -> None:
    result = email_tools.save_draft.fn(id="draft-1")
    assert result == email_tools.DRAFT_UPDATE_FIELDS_MESSAGE
    assert mock_graph.calls == []


def test_update_missing_draft(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register("PATCH", "me/messages/gone", NOT_FOUND)
    result = email_tools.save_draft.fn(id="gone", subject="x")
    assert result == email_tools.DRAFT_NOT_FOUND_MESSAGE


def test_reply_draft_is_threaded(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register(
        "POST", "me/messages/msg-1/createReplyAll", {"id": "draft-9", "subject": "RE: Status"}
    )
    mock_graph.register(
        "PATCH", "me/messages/draft-9", {"id": "draft-9", "subject": "RE: Status"}
    )

    result = email_tools.save_draft.fn(
        replyToMessageId="msg-1",
        replyAll=True,
        body="Thanks!",
        cc="c@example.com",
    )

    assert result.startswith("Reply draft created successfully!\n\nDraft ID: draft-9")
    assert mock_graph.calls[0]["body"] == {"comment": "Thanks!"}
    assert mock_graph.calls[1]["body"] == {
        "ccRecipients": [{"emailAddress": {"address": "c@example.com"}}]
    }


def test_reply_draft_without_overrides_skips_patch(
    mock_graph: FakeGraph, authenticated: str
) -> None:
    mock_graph.register("POST", "me/messages/msg-1/createReply", {"id": "draft-9"})

    email_tools.save_draft.fn(replyToMessageId="msg-1")

    assert [c["method"] for c in mock_graph.calls] == ["POST"]


def test_draft_id_and_reply_are_exclusive(mock_graph: FakeGraph, authenticated: str) -> None:
    result = email_tools.save_draft.fn(id="draft-1", replyToMessageId="msg-1", body="x")
    assert "not both" in result
    assert mock_graph.calls == []


def test_save_draft_requires_authentication(mock_graph: FakeGraph) -> None:
    assert email_tools.save_draft.fn(subject="x") == AUTH_REQUIRED_MESSAGE


# send-draft


def test_send_draft(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register(
        "GET",
        "me/messages/draft-1",
        {
            "id": "draft-1",
            "toRecipients": [{}, {}],
            "ccRecipients": [{}],
        },
    )
    mock_graph.register("POST", "me/messages/draft-1/send", None)

    result = email_tools.send_draft.fn(id="draft-1")

    assert result == (
        "Draft sent successfully!\n\nSubject: (no subject)\nRecipients: 2 + 1 CC"
    )
    assert mock_graph.calls_to("POST", "me/messages/draft-1/send")[0]["body"] == {}


def test_send_draft_requires_id(mock_graph: FakeGraph, authenticated: str) -> None:
    assert email_tools.send_draft.fn(id="") == email_tools.DRAFT_ID_REQUIRED_MESSAGE


def test_send_missing_draft(mock_graph: FakeGraph, authenticated: str) -> None:
    mock_graph.register("GET", "me/messages/gone", NOT_FOUND)
    assert email_tools.send_draft.fn(id="gone") == email_tools.DRAFT_NOT_FOUND_MESSAGE
