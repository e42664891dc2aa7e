import logging
from typing import Annotated, Any

from pydantic import Field

from .. import auth, config, graph
from ..mcp_instance import mcp
from ..responses import error_text
from ..validators import (
    clamp_count,
    is_blank,
    normalize_recipients,
    validate_choices,
)

LOGGER = logging.getLogger(__name__)

EMAIL_FOLDER_NAMES = tuple(config.WELL_KNOWN_FOLDERS)
CONTENT_TYPES = ("text", "html")
IMPORTANCE_CHOICES = ("low", "normal", "high")

EMAIL_NOT_FOUND_MESSAGE = (
    "Email not found. The message may have been deleted or moved. "
    "Use 'list-emails' to find valid email IDs."
)
EMAIL_ID_REQUIRED_MESSAGE = "Email ID is required. Use 'list-emails' to find email IDs."
DRAFT_NOT_FOUND_MESSAGE = (
    "Draft not found. The draft may have been deleted or already sent. "
    "Use list-emails with folder 'drafts' to see available drafts."
)
DRAFT_ID_REQUIRED_MESSAGE = (
    "Draft ID is required. Use list-emails with folder 'drafts' to find draft IDs."
)
DRAFT_UPDATE_FIELDS_MESSAGE = (
    "At least one field (to, cc, bcc, subject, body, contentType, importance) "
    "is required when updating a draft."
)


def _recipient_objects(addresses: list[str]) -> list[dict[str, Any]]:
    return [{"emailAddress": {"address": address}} for address in addresses]


def _format_sender(message: dict[str, Any]) -> str:
    sender = (message.get("from") or {}).get("emailAddress") or {}
    name = sender.get("name") or "Unknown"
    address = sender.get("address")
    return f"{name} ({address})" if address else name


def _format_addresses(recipients: list[dict[str, Any]] | None) -> str:
    parts = []
    for recipient in recipients or []:
        email_address = recipient.get("emailAddress") or {}
        name = email_address.get("name")
        address = email_address.get("address", "")
        parts.append(f"{name} ({address})" if name and name != address else address)
    return ", ".join(parts)


def _format_email(index: int, message: dict[str, Any]) -> str:
    unread = "" if message.get("isRead", True) else "[UNREAD] "
    received = message.get("receivedDateTime") or "Unknown date"
    return (
        f"{index}. {unread}{received} - From: {_format_sender(message)}\n"
        f"Subject: {message.get('subject') or '(no subject)'}\n"
        f"ID: {message.get('id')}\n"
    )


def _message_fields(
    to: list[str],
    cc: list[str],
    bcc: list[str],
    subject: str | None,
    body: str | None,
    content_type: str | None,
    importance: str | None,
) -> dict[str, Any]:
    """Build a Graph message object holding only the supplied fields."""
    message: dict[str, Any] = {}
    if subject is not None:
        message["subject"] = subject
    if body is not None:
        message["body"] = {"contentType": content_type or "text", "content": body}
    if to:
        message["toRecipients"] = _recipient_objects(to)
    if cc:
        message["ccRecipients"] = _recipient_objects(cc)
    if bcc:
        message["bccRecipients"] = _recipient_objects(bcc)
    if importance is not None:
        message["importance"] = importance
    return message


# list-emails
@mcp.tool(
    name="list-emails",
    annotations={
        "title": "List Emails",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": True,
    },
    meta={"category": "email", "safety_level": "safe"},
)
def list_emails(
    folder: Annotated[
        str,
        Field(description=f"Folder to list: {', '.join(EMAIL_FOLDER_NAMES)}"),
    ] = "inbox",
    count: Annotated[
        int | None,
        Field(description="Number of emails to retrieve (default: 10, max: 50)"),
    ] = None,
) -> str:
    """Lists recent emails from a mail folder, newest first"""
    top = clamp_count(count, config.DEFAULT_RESULT_COUNT, config.MAX_RESULT_COUNT)
    try:
        folder_name = validate_choices(folder or "inbox", EMAIL_FOLDER_NAMES, "folder")
        access_token = auth.ensure_authenticated()
        response = graph.call_graph_api(
            access_token,
            "GET",
            f"me/mailFolders/{config.WELL_KNOWN_FOLDERS[folder_name]}/messages",
            None,
            {
                "$top": top,
                "$orderby": "receivedDateTime desc",
                "$select": config.EMAIL_SELECT_FIELDS,
            },
        )

        messages = (response or {}).get("value") or []
        if not messages:
            return f"No emails found in {folder_name}."

        email_list = "\n".join(
            _format_email(i, message) for i, message in enumerate(messages, 1)
        )
        return f"Found {len(messages)} emails in {folder_name}:\n\n{email_list}"
    except Exception as e:
        return error_text(e, "listing emails", "list-emails")


# read-email
@mcp.tool(
    name="read-email",
    annotations={
        "title": "Read Email",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": True,
    },
    meta={"category": "email", "safety_level": "safe"},
)
def read_email(
    id: Annotated[str, Field(description="The ID of the email to read")],
) -> str:
    """Reads the full content of an email"""
    if is_blank(id):
        return EMAIL_ID_REQUIRED_MESSAGE

    try:
        access_token = auth.ensure_authenticated()
        message = graph.call_graph_api(
            access_token,
            "GET",
            f"me/messages/{id}",
            None,
            {"$select": config.EMAIL_DETAIL_SELECT_FIELDS},
        ) or {}

        lines = [
            f"From: {_format_sender(message)}",
            f"To: {_format_addresses(message.get('toRecipients'))}",
        ]
        if message.get("ccRecipients"):
            lines.append(f"CC: {_format_addresses(message.get('ccRecipients'))}")
        if message.get("bccRecipients"):
            lines.append(f"BCC: {_format_addresses(message.get('bccRecipients'))}")
        lines.extend(
            [
                f"Subject: {message.get('subject') or '(no subject)'}",
                f"Date: {message.get('receivedDateTime') or 'Unknown'}",
                f"Importance: {message.get('importance') or 'normal'}",
                f"Has Attachments: {'Yes' if message.get('hasAttachments') else 'No'}",
                "",
                (message.get("body") or {}).get("content") or "",
            ]
        )
        return "\n".join(lines)
    except Exception as e:
        return error_text(e, "reading email", "read-email", EMAIL_NOT_FOUND_MESSAGE)


# send-email
@mcp.tool(
    name="send-email",
    annotations={
        "title": "Send Email",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": True,
    },
    meta={"category": "email", "safety_level": "critical"},
)
def send_email(
    to: Annotated[str, Field(description="Comma-separated list of recipient email addresses")],
    subject: Annotated[str, Field(description="Email subject")],
    body: Annotated[str, Field(description="Email body content")],
    cc: Annotated[
        str | None, Field(description="Comma-separated list of CC recipients")
    ] = None,
    bcc: Annotated[
        str | None, Field(description="Comma-separated list of BCC recipients")
    ] = None,
    contentType: Annotated[
        str, Field(description="Body content type: text or html (default: text)")
    ] = "text",
    importance: Annotated[
        str, Field(description="Email importance: low, normal, or high (default: normal)")
    ] = "normal",
    saveToSentItems: Annotated[
        bool, Field(description="Whether to save the email in Sent Items (default: true)")
    ] = True,
) -> str:
    """Composes and sends a new email immediately"""
    if is_blank(to) or is_blank(subject) or is_blank(body):
        return "Recipient (to), subject, and body are required to send an email."

    try:
        to_addresses = normalize_recipients(to, "to")
        cc_addresses = normalize_recipients(cc, "cc")
        bcc_addresses = normalize_recipients(bcc, "bcc")
        content_type = validate_choices(contentType, CONTENT_TYPES, "contentType")
        importance_value = validate_choices(importance, IMPORTANCE_CHOICES, "importance")

        access_token = auth.ensure_authenticated()
        message = _message_fields(
            to_addresses,
            cc_addresses,
            bcc_addresses,
            subject,
            body,
            content_type,
            importance_value,
        )
        graph.call_graph_api(
            access_token,
            "POST",
            "me/sendMail",
            {"message": message, "saveToSentItems": saveToSentItems},
        )

        LOGGER.info("Email sent", extra={"tool_name": "send-email"})
        recipients = len(to_addresses) + len(cc_addresses) + len(bcc_addresses)
        return (
            "Email sent successfully!\n\n"
            f"Subject: {subject}\n"
            f"Recipients: {recipients}"
        )
    except Exception as e:
        return error_text(e, "sending email", "send-email")


# mark-as-read
@mcp.tool(
    name="mark-as-read",
    annotations={
        "title": "Mark Email Read/Unread",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": True,
    },
    meta={"category": "email", "safety_level": "moderate"},
)
def mark_as_read(
    id: Annotated[str, Field(description="The ID of the email")],
    isRead: Annotated[
        bool, Field(description="true to mark as read, false for unread (default: true)")
    ] = True,
) -> str:
    """Marks an email as read or unread"""
    if is_blank(id):
        return EMAIL_ID_REQUIRED_MESSAGE

    try:
        access_token = auth.ensure_authenticated()
        graph.call_graph_api(access_token, "PATCH", f"me/messages/{id}", {"isRead": isRead})
        return f"Email marked as {'read' if isRead else 'unread'}."
    except Exception as e:
        return error_text(e, "updating email", "mark-as-read", EMAIL_NOT_FOUND_MESSAGE)


# save-draft
@mcp.tool(
    name="save-draft",
    annotations={
        "title": "Save Email Draft",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": True,
    },
    meta={"category": "email", "safety_level": "moderate"},
)
def save_draft(
    id: Annotated[
        str | None,
        Field(description="ID of an existing draft to update (omit to create a new draft)"),
    ] = None,
    to: Annotated[
        str | None, Field(description="Comma-separated list of recipient email addresses")
    ] = None,
    cc: Annotated[
        str | None, Field(description="Comma-separated list of CC recipients")
    ] = None,
    bcc: Annotated[
        str | None, Field(description="Comma-separated list of BCC recipients")
    ] = None,
    subject: Annotated[str | None, Field(description="Email subject")] = None,
    body: Annotated[str | None, Field(description="Email body content")] = None,
    contentType: Annotated[
        str | None, Field(description="Body content type: text or html (default: text)")
    ] = None,
    importance: Annotated[
        str | None,
        Field(description="Email importance: low, normal, or high (default: normal)"),
    ] = None,
    replyToMessageId: Annotated[
        str | None,
        Field(description="ID of a message to reply to; creates a threaded reply draft"),
    ] = None,
    replyAll: Annotated[
        bool,
        Field(description="With replyToMessageId, reply to all recipients (default: false)"),
    ] = False,
) -> str:
    """Creates a new email draft, updates an existing one, or drafts a reply.

    Drafts land in the Drafts folder and are sent later with send-draft.
    A reply draft keeps the conversation thread and quoted original; the
    body given here is added above the quoted text.
    """
    if id and replyToMessageId:
        return (
            "Provide either id (to update a draft) or replyToMessageId "
            "(to draft a reply), not both."
        )

    if id and all(
        value is None or value == ""
        for value in (to, cc, bcc, subject, body, contentType, importance)
    ):
        return DRAFT_UPDATE_FIELDS_MESSAGE

    try:
        to_addresses = normalize_recipients(to, "to")
        cc_addresses = normalize_recipients(cc, "cc")
        bcc_addresses = normalize_recipients(bcc, "bcc")
        content_type = (
            validate_choices(contentType, CONTENT_TYPES, "contentType")
            if contentType
            else None
        )
        importance_value = (
            validate_choices(importance, IMPORTANCE_CHOICES, "importance")
            if importance
            else None
        )

        access_token = auth.ensure_authenticated()

        if replyToMessageId:
            action = "createReplyAll" if replyAll else "createReply"
            reply_payload: dict[str, Any] = {}
            if body:
                reply_payload["comment"] = body
            result = graph.call_graph_api(
                access_token,
                "POST",
                f"me/messages/{replyToMessageId}/{action}",
                reply_payload,
            ) or {}
            overrides = _message_fields(
                to_addresses, cc_addresses, bcc_addresses, subject, None, None,
                importance_value,
            )
            if overrides and result.get("id"):
                result = graph.call_graph_api(
                    access_token, "PATCH", f"me/messages/{result['id']}", overrides
                ) or result
            heading = "Reply draft created successfully!"
        elif id:
            message = _message_fields(
                to_addresses, cc_addresses, bcc_addresses, subject, body,
                content_type, importance_value,
            )
            result = graph.call_graph_api(
                access_token, "PATCH", f"me/messages/{id}", message
            ) or {}
            heading = "Draft updated successfully!"
        else:
            message = _message_fields(
                to_addresses, cc_addresses, bcc_addresses, subject, body,
                content_type, importance_value or "normal",
            )
            result = graph.call_graph_api(access_token, "POST", "me/messages", message) or {}
            heading = "Draft created successfully!"

        lines = [heading, "", f"Draft ID: {result.get('id')}"]
        if result.get("subject"):
            lines.append(f"Subject: {result['subject']}")
        if to_addresses:
            lines.append(f"To: {len(to_addresses)} recipient(s)")
        if cc_addresses:
            lines.append(f"CC: {len(cc_addresses)} recipient(s)")
        if bcc_addresses:
            lines.append(f"BCC: {len(bcc_addresses)} recipient(s)")
        lines.extend(
            [
                "",
                "Use send-draft with this ID to send the email, or find it in "
                "your Drafts folder in Outlook.",
            ]
        )
        return "\n".join(lines)
    except Exception as e:
        not_found = None
        if replyToMessageId:
            not_found = EMAIL_NOT_FOUND_MESSAGE
        elif id:
            not_found = DRAFT_NOT_FOUND_MESSAGE
        return error_text(e, "saving draft", "save-draft", not_found)


# send-draft
@mcp.tool(
    name="send-draft",
    annotations={
        "title": "Send Email Draft",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": True,
    },
    meta={"category": "email", "safety_level": "critical"},
)
def send_draft(
    id: Annotated[str, Field(description="The ID of the draft to send")],
) -> str:
    """Sends an existing draft email"""
    if is_blank(id):
        return DRAFT_ID_REQUIRED_MESSAGE

    try:
        access_token = auth.ensure_authenticated()
        draft = graph.call_graph_api(access_token, "GET", f"me/messages/{id}") or {}
        graph.call_graph_api(access_token, "POST", f"me/messages/{id}/send", {})

        recipient_count = len(draft.get("toRecipients") or [])
        cc_count = len(draft.get("ccRecipients") or [])
        bcc_count = len(draft.get("bccRecipients") or [])
        recipients = f"{recipient_count}"
        if cc_count:
            recipients += f" + {cc_count} CC"
        if bcc_count:
            recipients += f" + {bcc_count} BCC"

        return (
            "Draft sent successfully!\n\n"
            f"Subject: {draft.get('subject') or '(no subject)'}\n"
            f"Recipients: {recipients}"
        )
    except Exception as e:
        return error_text(e, "sending draft", "send-draft", DRAFT_NOT_FOUND_MESSAGE)
