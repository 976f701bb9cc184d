"""Per-invocation state handed to every command handler."""

import argparse
import logging
from functools import cached_property

from rich.console import Console

from ..allowlist import Checker
from ..config import JcfaConfig, load_config
from ..jira import (
    AttachmentService,
    CommentService,
    FieldService,
    IssueService,
    JiraClient,
    LinkService,
    MetadataService,
    SearchService,
)
from ..templates import TemplateResolver, TemplateService

logger = logging.getLogger("jcfa.cli")


class CliUsageError(Exception):
    """Raised for bad command-line input (unreadable data file, bad flags)."""

    pass


class CommandContext:
    """Lazily builds config, HTTP client and services for one command.

    Nothing touches the config file or the network until a command asks for
    it, so ``template list`` and ``version`` work without credentials.
    """

    def __init__(
        self,
        args: argparse.Namespace,
        console: Console,
        client: JiraClient | None = None,
        checker: Checker | None = None,
    ):
        self.args = args
        self.console = console
        self.checker = checker or Checker()
        self.as_json = bool(getattr(args, "json", False))
        self._client = client

    @cached_property
    def config(self) -> JcfaConfig:
        return load_config(getattr(self.args, "config", None))

    @property
    def client(self) -> JiraClient:
        if self._client is None:
            self._client = JiraClient.from_config(self.config)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    @cached_property
    def metadata(self) -> MetadataService:
        return MetadataService(self.client)

    @cached_property
    def issues(self) -> IssueService:
        return IssueService(
            self.client,
            metadata=self.metadata,
            chunk_size=self.config.bulk_chunk_size,
            concurrency=self.config.bulk_concurrency,
        )

    @cached_property
    def fields(self) -> FieldService:
        return FieldService(self.client)

    @cached_property
    def links(self) -> LinkService:
        return LinkService(
            self.client, fields=self.fields, field_mappings=self.config.field_mappings
        )

    @cached_property
    def comments(self) -> CommentService:
        return CommentService(self.client)

    @cached_property
    def attachments(self) -> AttachmentService:
        return AttachmentService(self.client, max_size_mb=self.config.max_attachment_size)

    @cached_property
    def search(self) -> SearchService:
        return SearchService(self.client)

    @cached_property
    def templates(self) -> TemplateService:
        resolver = TemplateResolver(
            explicit_dir=getattr(self.args, "templates_dir", None),
            config_dir=self.config.templates_dir or None,
        )
        return TemplateService(resolver, field_mappings=self.config.field_mappings)

    @property
    def show_progress(self) -> bool:
        return not self.as_json and not getattr(self.args, "no_progress", False)
