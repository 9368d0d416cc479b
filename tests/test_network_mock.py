import base64

import pytest

from browsedaemon.network_mock import (
    build_fetch_command,
    find_route,
    glob_matches,
    handle_block_urls,
    handle_clear_routes,
    handle_mock_route,
)
from browsedaemon.state import DaemonState, HandlerError, MockRoute, MockType


def test_glob_exact_match():
    assert glob_matches("https://example.com/api/users", "https://example.com/api/users")
    assert not glob_matches("https://example.com/api/users", "https://example.com/api/posts")


def test_glob_star_match():
    assert glob_matches("**/api/users*", "https://example.com/api/users?page=1")
    assert glob_matches("**/api/*", "https://example.com/api/anything")
    assert glob_matches("https://example.com/*", "https://example.com/anything")


def test_glob_double_star_match():
    assert glob_matches("**/analytics**", "https://example.com/analytics/track?id=1")
    assert glob_matches("**analytics**", "https://example.com/analytics")
    assert not glob_matches("**/analytics**", "https://example.com/api/users")


def test_glob_no_match():
    assert not glob_matches("**/ads*", "https://example.com/api/data")


def test_glob_question_mark_and_dots_are_literal():
    assert glob_matches("https://example.com/v?", "https://example.com/v2")
    assert not glob_matches("https://example.com/v?", "https://example.com/v22")
    assert not glob_matches("https://exampleXcom/*", "https://example.com/x")


def test_glob_leading_part_anchored_to_start():
    assert glob_matches("https://example.com**/api", "https://example.com/v1/api")
    assert not glob_matches("https://example.com**/api", "http://other/https://example.com/api")


def test_handle_mock_route_defaults():
    state = DaemonState()
    result = handle_mock_route(state, {"url": "**/api/*"})
    assert result == {"route_id": 1, "pattern": "**/api/*", "status": 200}
    route = state.mock_routes.routes[0]
    assert route.route_type is MockType.MOCK
    assert route.body == ""
    assert route.delay_ms == 0
    assert route.content_type == ""
    assert route.headers == {}


def test_handle_mock_route_full_params():
    state = DaemonState()
    result = handle_mock_route(
        state,
        {
            "url": "**/users",
            "status": 404,
            "body": "{}",
            "delay": 50,
            "contentType": "text/plain",
            "headers": {"X-Test": "yes", "X-Num": 3},
        },
    )
    assert result["status"] == 404
    route = state.mock_routes.routes[0]
    assert route.delay_ms == 50
    assert route.content_type == "text/plain"
    assert route.headers == {"X-Test": "yes"}


def test_handle_mock_route_snake_case_content_type_wins():
    state = DaemonState()
    handle_mock_route(
        state, {"url": "*", "content_type": "text/html", "contentType": "text/plain"}
    )
    assert state.mock_routes.routes[0].content_type == "text/html"


def test_handle_mock_route_missing_url():
    with pytest.raises(HandlerError, match="missing required parameter: url"):
        handle_mock_route(DaemonState(), {})


def test_route_ids_increment_across_kinds():
    state = DaemonState()
    first = handle_mock_route(state, {"url": "a"})
    handle_block_urls(state, {"patterns": ["b", "c"]})
    second = handle_mock_route(state, {"url": "d"})
    assert first["route_id"] == 1
    assert second["route_id"] == 4
    assert [r.id for r in state.mock_routes.routes] == [1, 2, 3, 4]


def test_handle_block_urls_filters_non_strings():
    state = DaemonState()
    result = handle_block_urls(state, {"patterns": ["**/ads*", 5, "**/track*"]})
    assert result == {"blocked": 2, "patterns": ["**/ads*", "**/track*"]}
    assert all(r.route_type is MockType.BLOCK for r in state.mock_routes.routes)


def test_handle_block_urls_errors():
    state = DaemonState()
    with pytest.raises(HandlerError, match="patterns \\(array\\)"):
        handle_block_urls(state, {"patterns": "x"})
    with pytest.raises(HandlerError, match="cannot be empty"):
        handle_block_urls(state, {"patterns": [1, 2]})
    assert state.mock_routes.routes == []


def test_handle_clear_routes():
    state = DaemonState()
    handle_block_urls(state, {"patterns": ["a", "b", "c"]})
    assert handle_clear_routes(state, {}) == {"cleared": 3}
    assert state.mock_routes.routes == []
    assert handle_clear_routes(state, {}) == {"cleared": 0}


def test_find_route_returns_first_match():
    state = DaemonState()
    handle_block_urls(state, {"patterns": ["**/api/*"]})
    handle_mock_route(state, {"url": "**/api/users"})
    route = find_route(state.mock_routes, "https://example.com/api/users")
    assert route is not None and route.id == 1
    assert find_route(state.mock_routes, "https://example.com/home") is None


def test_build_fetch_command_continue_and_block():
    assert build_fetch_command(None, "r1") == ("Fetch.continueRequest", {"requestId": "r1"})
    block = MockRoute(id=1, pattern="*", route_type=MockType.BLOCK, status=0)
    method, params = build_fetch_command(block, "r2")
    assert method == "Fetch.failRequest"
    assert params == {"requestId": "r2", "errorReason": "BlockedByClient"}


def test_build_fetch_command_mock_adds_default_content_type():
    route = MockRoute(id=1, pattern="*", route_type=MockType.MOCK, status=201, body="hello")
    method, params = build_fetch_command(route, "r3")
    assert method == "Fetch.fulfillRequest"
    assert params["responseCode"] == 201
    assert params["responseHeaders"] == [{"name": "Content-Type", "value": "application/json"}]
    assert base64.b64decode(params["body"]) == b"hello"


def test_build_fetch_command_mock_keeps_existing_content_type():
    route = MockRoute(
        id=1,
        pattern="*",
        route_type=MockType.MOCK,
        headers={"content-type": "text/css"},
        content_type="text/plain",
    )
    _, params = build_fetch_command(route, "r4")
    assert params["responseHeaders"] == [{"name": "content-type", "value": "text/css"}]


def test_build_fetch_command_uses_route_content_type():
    route = MockRoute(id=1, pattern="*", route_type=MockType.MOCK, content_type="text/plain")
    _, params = build_fetch_command(route, "r5")
    assert params["responseHeaders"] == [{"name": "Content-Type", "value": "text/plain"}]