"""Unit tests for MetadataService: createmeta caching and field validation."""

import httpx
import pytest

from jcfa.jira.metadata import FieldValidationError, MetadataService

# =============================================================================
# Create Metadata Fetching
# =============================================================================


class TestGetCreateMetadata:
    def test_request_params(self, client, handler, createmeta_response):
        handler.add("GET", "/issue/createmeta", httpx.Response(200, json=createmeta_response))

        meta = MetadataService(client).get_create_metadata("PROJ", "Story")

        params = handler.requests[0].url.params
        assert params["projectKeys"] == "PROJ"
        assert params["issuetypeNames"] == "Story"
        assert params["expand"] == "projects.issuetypes.fields"
        assert meta.name == "Story"
        assert "summary" in meta.fields

    def test_cached_per_project_and_type(self, client, handler, createmeta_response):
        handler.add("GET", "/issue/createmeta", httpx.Response(200, json=createmeta_response))
        service = MetadataService(client)

        service.get_create_metadata("PROJ", "Story")
        service.get_create_metadata("PROJ", "Story")

        assert len(handler.requests) == 1

    def test_expired_entry_refetched(self, client, handler, createmeta_response):
        handler.add("GET", "/issue/createmeta", httpx.Response(200, json=createmeta_response))
        service = MetadataService(client, ttl=0)

        service.get_create_metadata("PROJ", "Story")
        service.get_create_metadata("PROJ", "Story")

        assert len(handler.requests) == 2

    def test_clear_cache(self, client, handler, createmeta_response):
        handler.add("GET", "/issue/createmeta", httpx.Response(200, json=createmeta_response))
        service = MetadataService(client)

        service.get_create_metadata("PROJ", "Story")
        service.clear_cache()
        service.get_create_metadata("PROJ", "Story")

        assert len(handler.requests) == 2

    def test_unknown_project(self, client, handler):
        handler.add("GET", "/issue/createmeta", httpx.Response(200, json={"projects": []}))

        with pytest.raises(FieldValidationError, match="project 'NOPE' not found"):
            MetadataService(client).get_create_metadata("NOPE", "Story")

    def test_unknown_issue_type(self, client, handler):
        handler.add(
            "GET",
            "/issue/createmeta",
            httpx.Response(200, json={"projects": [{"key": "PROJ", "issuetypes": []}]}),
        )

        with pytest.raises(FieldValidationError, match="issue type 'Saga' not found"):
            MetadataService(client).get_create_metadata("PROJ", "Saga")


# =============================================================================
# Field Validation
# =============================================================================


@pytest.fixture
def service(client, handler, createmeta_response):
    handler.add("GET", "/issue/createmeta", httpx.Response(200, json=createmeta_response))
    return MetadataService(client)


class TestValidateIssueData:
    def test_minimal_valid(self, service):
        service.validate_issue_data("PROJ", "Story", {"summary": "Login page"})

    def test_reporter_not_required(self, service):
        """Jira fills reporter with the caller, so its absence is fine."""
        service.validate_issue_data("PROJ", "Story", {"summary": "s"})

    def test_missing_required(self, service):
        with pytest.raises(FieldValidationError, match="'Summary' \\(summary\\) is required"):
            service.validate_issue_data("PROJ", "Story", {"labels": []})

    def test_required_null(self, service):
        with pytest.raises(FieldValidationError, match="cannot be null"):
            service.validate_issue_data("PROJ", "Story", {"summary": None})

    def test_string_type(self, service):
        with pytest.raises(FieldValidationError, match="expects string, got int"):
            service.validate_issue_data("PROJ", "Story", {"summary": 5})

    def test_number_type(self, service):
        service.validate_issue_data("PROJ", "Story", {"summary": "s", "customfield_10016": 3.5})
        with pytest.raises(FieldValidationError, match="expects number, got str"):
            service.validate_issue_data("PROJ", "Story", {"summary": "s", "customfield_10016": "3"})

    def test_bool_is_not_a_number(self, service):
        with pytest.raises(FieldValidationError, match="expects number, got bool"):
            service.validate_issue_data("PROJ", "Story", {"summary": "s", "customfield_10016": True})

    def test_array_type(self, service):
        with pytest.raises(FieldValidationError, match="expects array"):
            service.validate_issue_data("PROJ", "Story", {"summary": "s", "labels": "one"})

    def test_object_type_accepts_string(self, service):
        service.validate_issue_data("PROJ", "Story", {"summary": "s", "priority": "Medium"})

    def test_allowed_values_by_id(self, service):
        service.validate_issue_data("PROJ", "Story", {"summary": "s", "priority": {"id": "1"}})

    def test_disallowed_value_lists_options(self, service):
        with pytest.raises(FieldValidationError, match=r"not in allowed values: \['High', 'Medium'\]"):
            service.validate_issue_data("PROJ", "Story", {"summary": "s", "priority": {"name": "Low"}})

    def test_unknown_fields_accepted(self, service):
        service.validate_issue_data("PROJ", "Story", {"summary": "s", "customfield_99999": {"x": 1}})

    def test_optional_null_skipped(self, service):
        service.validate_issue_data("PROJ", "Story", {"summary": "s", "priority": None})
