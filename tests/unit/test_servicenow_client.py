"""
Unit tests for the ServiceNow transport and record client.

Tests cover:
- URL and query string construction
- Authentication and headers
- Error wrapping (transport failures, non-2xx responses)
- Response selectors and body decoding
- Record CRUD operations
- Construction from configuration
"""

import pytest
import requests
from unittest.mock import Mock

from pydantic import ValidationError

from nowclient import QueryBuilder
from nowclient.api import ConnectionSettings, ServiceNowClient, ServiceNowConnection
from nowclient.exceptions import OperationError, QueryEmptyError
from nowclient.utils.config import ConfigError, reset_config


INSTANCE = "http://venXXXXX.service-now.com"
BASE_URL = f"{INSTANCE}/api/now/table"


def sent(session):
    """Keyword arguments of the last request made on a mocked session."""
    return session.request.call_args.kwargs


class TestConnectionSettings:
    """Test connection settings and URL normalisation."""

    def test_defaults(self):
        settings = ConnectionSettings(instance="dev1", username="u", password="p")
        assert settings.api_name == "table"
        assert settings.namespace == "now"
        assert settings.base_url == "https://dev1.service-now.com/api/now/table"

    def test_custom_api(self):
        settings = ConnectionSettings(instance="https://dev1.service-now.com/", username="u",
                                      password="p", api_name="import", namespace="x_app")
        assert settings.base_url == "https://dev1.service-now.com/api/x_app/import"

    def test_blank_instance_rejected(self):
        with pytest.raises(ValidationError):
            ConnectionSettings(instance="  ", username="u", password="p")

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            ConnectionSettings(instance="dev1", username="u", password="p", timeout=0)


class TestConnectionRequest:
    """Test the low-level request method."""

    def test_sets_auth_and_headers(self, connection, session):
        assert session.auth.username == "user"
        assert session.auth.password == "pass"
        assert session.headers["Accept"] == "application/json"
        assert session.headers["Content-Type"] == "application/json"
        assert connection.base_url == BASE_URL

    def test_single_segment_path(self, connection, session, response_factory):
        session.request.return_value = response_factory(json_body={"meow": "purr"})

        response = connection.request("test_table")

        assert response == {"meow": "purr"}
        assert sent(session)["url"] == f"{BASE_URL}/test_table"
        assert sent(session)["method"] == "GET"

    def test_multi_segment_path(self, connection, session):
        connection.request(["test_table", "test_id"])
        assert sent(session)["url"] == f"{BASE_URL}/test_table/test_id"

    def test_path_segments_are_quoted(self, connection, session):
        connection.request(["test table", "a/b"])
        assert sent(session)["url"] == f"{BASE_URL}/test%20table/a%2Fb"

    def test_passes_query_params(self, connection, session):
        connection.request("test_table", {"hiss": "hork", "yo": "item with space%"})
        assert sent(session)["params"] == {"hiss": "hork", "yo": "item with space%"}

    def test_other_verbs_and_body(self, connection, session, response_factory):
        session.request.return_value = response_factory(status_code=201, reason="Created")

        connection.request("test_table", None, "POST", {"meow": "purr"})

        assert sent(session)["method"] == "POST"
        assert sent(session)["json"] == {"meow": "purr"}

    def test_uses_timeout(self, session):
        connection = ServiceNowConnection(INSTANCE, "user", "pass", timeout=5, session=session)
        connection.request("test_table")
        assert sent(session)["timeout"] == 5

    def test_response_selector(self, connection, session, response_factory):
        session.request.return_value = response_factory(headers={"x-mock-header": "meow"})

        header = connection.request("test_table", None, "GET", None,
                                    lambda response: response.headers["x-mock-header"])

        assert header == "meow"

    def test_empty_body_returns_none(self, connection, session, response_factory):
        session.request.return_value = response_factory(status_code=204, reason="No Content")
        assert connection.request("test_table", method="DELETE") is None

    def test_non_json_body_returns_none(self, connection, session, response_factory):
        session.request.return_value = response_factory(content=b"<html>hello</html>")
        assert connection.request("test_table") is None

    def test_wraps_transport_error(self, connection, session):
        inner = requests.ConnectionError("inner")
        session.request.side_effect = inner

        with pytest.raises(OperationError) as exc_info:
            connection.request("test_table")

        error = exc_info.value
        assert str(error) == (
            f"Error while performing specified operation on {INSTANCE}. Error: inner"
        )
        assert error.inner_error is inner
        assert error.__cause__ is inner

    def test_non_ok_response(self, connection, session, response_factory):
        session.request.return_value = response_factory(
            status_code=500, reason="Internal Server Error"
        )

        with pytest.raises(OperationError) as exc_info:
            connection.request("test_table")

        assert str(exc_info.value) == (
            f"Error while performing specified operation on {INSTANCE}. "
            "Error code: 500, error: Internal Server Error"
        )
        assert exc_info.value.status_code == 500
        assert exc_info.value.inner_error is None

    def test_context_manager_closes_session(self, session):
        session.close = Mock()
        with ServiceNowConnection(INSTANCE, "user", "pass", session=session):
            pass
        session.close.assert_called_once()


class TestGetRecords:
    """Test listing records."""

    def test_without_query(self, client, session, response_factory):
        session.request.return_value = response_factory(json_body={"result": [{"a": 1}]})

        result = client.get_records("test_table")

        assert result == {"result": [{"a": 1}]}
        assert sent(session)["url"] == f"{BASE_URL}/test_table"
        assert sent(session)["params"] == {}

    def test_with_string_query(self, client, session):
        client.get_records("test_table", "foo=bar")
        assert sent(session)["params"] == {"sysparm_query": "foo=bar"}

    def test_with_query_builder(self, client, session):
        query = QueryBuilder().field("foo").equals(["bar", "baz"]).and_().field("n").between(0, 9)
        client.get_records("test_table", query)
        assert sent(session)["params"] == {"sysparm_query": "fooINbar,baz^nBETWEEN0@9"}

    def test_empty_query_builder_raises_before_request(self, client, session):
        with pytest.raises(QueryEmptyError):
            client.get_records("test_table", QueryBuilder())
        session.request.assert_not_called()

    def test_paging_and_fields(self, client, session):
        client.get_records("incident", "active=true", fields=["number", "caller_id.name"],
                           limit=50, offset=100, display_value="all")
        assert sent(session)["params"] == {
            "sysparm_query": "active=true",
            "sysparm_fields": "number,caller_id.name",
            "sysparm_limit": "50",
            "sysparm_offset": "100",
            "sysparm_display_value": "all",
        }

    def test_limit_is_capped(self, client, session):
        client.get_records("incident", limit=50000)
        assert sent(session)["params"]["sysparm_limit"] == "10000"


class TestGetRecordCount:
    """Test counting records."""

    def test_counts_results(self, client, session, response_factory):
        session.request.return_value = response_factory(json_body={"result": [{}, {}, {}]})

        count = client.get_record_count("test_table", QueryBuilder().field("foo").is_not_empty())

        assert count == 3
        assert sent(session)["params"] == {
            "sysparm_fields": "sys_created_on",
            "sysparm_query": "fooISNOTEMPTY",
        }

    def test_only_requests_one_field(self, client, session):
        client.get_record_count("test_table")
        assert sent(session)["params"] == {"sysparm_fields": "sys_created_on"}

    @pytest.mark.parametrize("body", [{"result": []}, {}, None])
    def test_missing_results_count_as_zero(self, client, session, response_factory, body):
        session.request.return_value = response_factory(json_body=body)
        assert client.get_record_count("test_table", "foo=bar") == 0


class TestRecordCrud:
    """Test create, read, update and delete."""

    def test_create_record(self, client, session, response_factory):
        session.request.return_value = response_factory(
            status_code=201, json_body={"result": {"sys_id": "abc123"}}
        )

        sys_id = client.create_record("test_table", {"short_description": "meow"})

        assert sys_id == "abc123"
        assert sent(session)["method"] == "POST"
        assert sent(session)["url"] == f"{BASE_URL}/test_table"
        assert sent(session)["json"] == {"short_description": "meow"}

    def test_get_single_record(self, client, session, response_factory):
        session.request.return_value = response_factory(json_body={"result": {"sys_id": "abc123"}})

        record = client.get_single_record("test_table", "abc123")

        assert record == {"result": {"sys_id": "abc123"}}
        assert sent(session)["url"] == f"{BASE_URL}/test_table/abc123"

    def test_update_single_record(self, client, session, response_factory):
        session.request.return_value = response_factory(json_body={"result": {"sys_id": "abc123"}})

        sys_id = client.update_single_record("test_table", {"state": "2"}, "abc123")

        assert sys_id == "abc123"
        assert sent(session)["method"] == "PUT"
        assert sent(session)["url"] == f"{BASE_URL}/test_table/abc123"
        assert sent(session)["json"] == {"state": "2"}

    def test_delete_single_record(self, client, session, response_factory):
        session.request.return_value = response_factory(status_code=204, reason="No Content")

        assert client.delete_single_record("test_table", "abc123") is True
        assert sent(session)["method"] == "DELETE"
        assert sent(session)["url"] == f"{BASE_URL}/test_table/abc123"

    def test_delete_with_other_success_status(self, client, session, response_factory):
        session.request.return_value = response_factory(status_code=200)
        assert client.delete_single_record("test_table", "abc123") is False

    def test_errors_propagate(self, client, session, response_factory):
        session.request.return_value = response_factory(status_code=404, reason="Not Found")
        with pytest.raises(OperationError, match="Error code: 404, error: Not Found"):
            client.get_single_record("test_table", "missing")


class TestFromConfig:
    """Test building clients from environment configuration."""

    def test_client_from_config(self, mock_env_vars):
        client = ServiceNowClient.from_config(session=requests.Session())
        assert client.instance == "dev12345"
        assert client.base_url == "https://dev12345.service-now.com/api/now/table"

    def test_overrides(self, mock_env_vars):
        connection = ServiceNowConnection.from_config(namespace="x_app", api_name="import",
                                                      session=requests.Session())
        assert connection.base_url == "https://dev12345.service-now.com/api/x_app/import"

    def test_missing_secret(self, monkeypatch):
        for var in ("SERVICENOW_INSTANCE", "SERVICENOW_USER", "SERVICENOW_PASSWORD"):
            monkeypatch.delenv(var, raising=False)
        monkeypatch.setattr("nowclient.utils.config.unified_config.load_dotenv", lambda: False)
        reset_config()
        try:
            with pytest.raises(ConfigError):
                ServiceNowClient.from_config()
        finally:
            reset_config()
