"""Jira Cloud REST API v3 services."""

from .adf import adf_to_text, extract_plain_text, text_to_adf
from .attachments import AttachmentError, AttachmentService
from .client import (
    JiraAPIError,
    JiraAuthError,
    JiraClient,
    JiraError,
    JiraNotFoundError,
    JiraPermissionError,
    JiraTransportError,
    format_error_response,
)
from .comments import CommentError, CommentService
from .fields import FieldError, FieldService
from .issues import IssueService
from .links import LinkError, LinkService
from .metadata import FieldValidationError, MetadataService
from .models import BulkCreateFailure, BulkCreateResult, CreatedIssue
from .search import SearchError, SearchService

__all__ = [
    "AttachmentError",
    "AttachmentService",
    "BulkCreateFailure",
    "BulkCreateResult",
    "CommentError",
    "CommentService",
    "CreatedIssue",
    "FieldError",
    "FieldService",
    "FieldValidationError",
    "IssueService",
    "JiraAPIError",
    "JiraAuthError",
    "JiraClient",
    "JiraError",
    "JiraNotFoundError",
    "JiraPermissionError",
    "JiraTransportError",
    "LinkError",
    "LinkService",
    "MetadataService",
    "SearchError",
    "SearchService",
    "adf_to_text",
    "extract_plain_text",
    "format_error_response",
    "text_to_adf",
]
