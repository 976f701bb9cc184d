"""Field listing, lookup and alias mapping."""

import logging
from typing import Any

from .client import JiraClient

logger = logging.getLogger("jcfa.jira.fields")

__all__ = ["FieldError", "FieldService"]


class FieldError(Exception):
    """Raised when a field cannot be found or an alias cannot be mapped."""

    pass


class FieldService:
    """Looks up Jira fields (``/field``) and resolves aliases to field IDs.

    The field list is fetched once per service instance.
    """

    def __init__(self, client: JiraClient):
        self.client = client
        self._fields: list[dict[str, Any]] | None = None

    def list_fields(self, refresh: bool = False) -> list[dict[str, Any]]:
        if self._fields is None or refresh:
            self._fields = self.client.get("/field") or []
            logger.debug("fields_loaded", extra={"count": len(self._fields)})
        return self._fields

    def get_field_by_id(self, field_id: str) -> dict[str, Any]:
        for field in self.list_fields():
            if field.get("id") == field_id:
                return field
        raise FieldError(f"field with ID '{field_id}' not found")

    def get_field_by_name(self, name: str) -> dict[str, Any]:
        """Find a field by display name, case-insensitively."""
        wanted = name.strip().lower()
        for field in self.list_fields():
            if str(field.get("name", "")).lower() == wanted:
                return field
        raise FieldError(f"field '{name}' not found")

    def resolve_field_id(self, name_or_id: str, mappings: dict[str, str] | None = None) -> str:
        """Resolve a field ID, configured alias or display name to a field ID.

        Raises:
            FieldError: If nothing matches.
        """
        name_or_id = name_or_id.strip()
        fields = self.list_fields()

        if any(f.get("id") == name_or_id for f in fields):
            return name_or_id

        if mappings and name_or_id in mappings:
            return mappings[name_or_id]

        try:
            return self.get_field_by_name(name_or_id)["id"]
        except FieldError:
            raise FieldError(
                f"could not resolve '{name_or_id}': not a valid field ID, alias, or field "
                "name. Run 'jcfa fields list' to see available fields"
            ) from None

    def add_field_mapping(self, alias: str, field_id: str, config):
        """Return a copy of ``config`` with ``alias`` mapped to ``field_id``.

        The caller persists the returned config with ``save_config``.

        Raises:
            FieldError: If the field does not exist or the alias is already mapped.
        """
        try:
            self.get_field_by_id(field_id)
        except FieldError as e:
            raise FieldError(f"cannot map alias '{alias}': {e}") from e

        existing = config.field_mappings.get(alias)
        if existing == field_id:
            raise FieldError(f"alias '{alias}' is already mapped to '{field_id}'")
        if existing:
            raise FieldError(
                f"alias '{alias}' already mapped to '{existing}'. "
                "Remove the existing mapping first"
            )

        logger.info("field_mapping_added", extra={"alias": alias, "field_id": field_id})
        return config.with_field_mapping(alias, field_id)
