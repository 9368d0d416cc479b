import pytest

from browsedaemon.pages import handle_close_page, handle_list_pages, handle_select_frame
from browsedaemon.state import DaemonState, HandlerError


def _state_with_pages(count):
    state = DaemonState()
    ids = [
        state.pages.register(object(), f"Page {n}", f"https://example.com/{n}")
        for n in range(count)
    ]
    return state, ids


def test_list_pages_empty():
    result = handle_list_pages(DaemonState())
    assert result["pages"] == []
    assert result["count"] == 0


def test_list_pages_marks_active():
    state, ids = _state_with_pages(2)
    state.pages.set_active(ids[1])
    result = handle_list_pages(state)
    assert result["count"] == 2
    assert result["activePageId"] == ids[1]
    assert [p["isActive"] for p in result["pages"]] == [False, True]
    assert result["pages"][0]["url"] == "https://example.com/0"
    assert result["pages"][1]["title"] == "Page 1"


def test_close_page_falls_back_to_first_remaining():
    state, ids = _state_with_pages(3)
    state.pages.set_active(ids[1])
    state.selected_frame = "index:0"
    result = handle_close_page(state, {"id": ids[1]})
    assert result == {"closed": True, "id": ids[1], "activePageId": ids[0]}
    assert state.selected_frame is None
    assert len(state.pages) == 2


def test_close_inactive_page_keeps_active():
    state, ids = _state_with_pages(2)
    result = handle_close_page(state, {"id": ids[1]})
    assert result["activePageId"] == ids[0]


def test_close_last_page_rejected():
    state, ids = _state_with_pages(1)
    with pytest.raises(HandlerError, match="cannot close the last page"):
        handle_close_page(state, {"id": ids[0]})
    assert len(state.pages) == 1


def test_close_unknown_page():
    state, ids = _state_with_pages(2)
    unknown = max(ids) + 100
    with pytest.raises(HandlerError, match=f"page id {unknown} not found"):
        handle_close_page(state, {"id": unknown})


@pytest.mark.parametrize("params", [{}, {"id": "1"}, {"id": -1}, {"id": True}])
def test_close_page_requires_id(params):
    state, _ = _state_with_pages(2)
    with pytest.raises(HandlerError, match="missing required parameter 'id'"):
        handle_close_page(state, params)


def test_select_frame_by_name():
    state = DaemonState()
    result = handle_select_frame(state, {"name": "checkout"})
    assert result == {"selected": True, "frame": "name:checkout"}
    assert state.selected_frame == "name:checkout"


def test_select_frame_by_index_and_url():
    state = DaemonState()
    assert handle_select_frame(state, {"index": 2})["frame"] == "index:2"
    assert state.selected_frame == "index:2"
    assert handle_select_frame(state, {"urlPattern": "pay"})["frame"] == "url:pay"
    assert state.selected_frame == "url:pay"


def test_select_frame_name_takes_precedence():
    state = DaemonState()
    result = handle_select_frame(state, {"name": "side", "index": 1})
    assert result["frame"] == "name:side"


@pytest.mark.parametrize("params", [{}, {"name": "main"}, {"name": "null"}, {"name": ""}])
def test_select_frame_resets_to_main(params):
    state = DaemonState()
    state.selected_frame = "index:1"
    result = handle_select_frame(state, params)
    assert result == {"selected": False, "frame": "main"}
    assert state.selected_frame is None