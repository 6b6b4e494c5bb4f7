"""Tests for the reader view state and the Browser controller"""

import logging
from unittest.mock import Mock

import requests

from dailynews.viewstate import (
    Browser,
    Phase,
    ViewState,
    content_loaded,
    files_loaded,
    filter_files,
    go_home,
    select_file,
    select_folder,
    set_search,
)

FOLDERS = [{"name": "News", "latestDate": None}, {"name": "Notes", "latestDate": None}]


def make_api(files=("A.md", "B.md", "C.md")):
    api = Mock()
    api.folders.return_value = FOLDERS
    api.files.return_value = list(files)
    api.content.side_effect = lambda folder, filename: f"# {folder}/{filename}"
    return api


def test_filter_files_case_insensitive_substring():
    files = ["2024-03-05-09:00:00.md", "2023-01-01-10:00:00.md"]
    assert filter_files(files, "2024-03") == ["2024-03-05-09:00:00.md"]
    assert filter_files(["Weekly.md", "daily.md"], "WEEK") == ["Weekly.md"]
    assert filter_files(files, "") == files


def test_select_folder_clears_file_and_content():
    state = ViewState(current_folder="Old", files=("x.md",), current_file="x.md",
                      content="old", search_query="x", phase=Phase.FILE_LOADED, seq=4)
    new = select_folder(state, "News")
    assert new.current_folder == "News"
    assert new.files == ()
    assert new.current_file is None
    assert new.content == ""
    assert new.search_query == ""
    assert new.phase is Phase.FOLDER_LOADING
    assert new.seq == 5
    assert state.current_folder == "Old"  # original untouched


def test_files_loaded_auto_selects_first():
    state = select_folder(ViewState(), "News")
    state = files_loaded(state, "News", state.seq, ["A.md", "B.md", "C.md"])
    assert state.current_file == "A.md"
    assert state.phase is Phase.FILE_LOADING


def test_files_loaded_empty_folder():
    state = select_folder(ViewState(), "Empty")
    state = files_loaded(state, "Empty", state.seq, [])
    assert state.current_file is None
    assert state.phase is Phase.FOLDER_LOADED


def test_stale_file_list_is_ignored():
    first = select_folder(ViewState(), "News")
    second = select_folder(first, "Notes")
    after = files_loaded(second, "News", first.seq, ["A.md"])
    assert after is second


def test_stale_content_is_ignored():
    state = select_folder(ViewState(), "News")
    state = files_loaded(state, "News", state.seq, ["A.md", "B.md"])
    old_seq = state.seq
    state = select_file(state, "B.md")
    assert content_loaded(state, "News", "A.md", old_seq, "old") is state
    state = content_loaded(state, "News", "B.md", state.seq, "new")
    assert state.content == "new"
    assert state.phase is Phase.FILE_LOADED


def test_select_file_without_folder_is_noop():
    state = ViewState()
    assert select_file(state, "A.md") is state


def test_search_only_touches_query():
    state = ViewState(current_folder="News", files=("a.md", "b.md"), current_file="a.md")
    searched = set_search(state, "b")
    assert searched.visible_files == ["b.md"]
    assert searched.current_file == "a.md"


def test_go_home_keeps_folders():
    state = ViewState(folders=tuple(FOLDERS), current_folder="News", current_file="a.md",
                      content="x", phase=Phase.FILE_LOADED)
    home = go_home(state)
    assert home.folders == state.folders
    assert home.current_folder is None
    assert home.phase is Phase.NO_FOLDER


def test_browser_select_folder_auto_loads_first_file():
    api = make_api()
    browser = Browser(api)
    browser.load_folders()
    state = browser.select_folder("News")
    api.files.assert_called_once_with("News")
    api.content.assert_called_once_with("News", "A.md")
    assert state.current_file == "A.md"
    assert state.content == "# News/A.md"
    assert state.phase is Phase.FILE_LOADED
    assert [f["name"] for f in state.folders] == ["News", "Notes"]


def test_browser_select_file():
    api = make_api()
    browser = Browser(api)
    browser.select_folder("News")
    state = browser.select_file("C.md")
    assert state.current_file == "C.md"
    assert state.content == "# News/C.md"


def test_browser_search_makes_no_requests():
    api = make_api(files=["2024-03-05-09:00:00.md", "2023-01-01-10:00:00.md"])
    browser = Browser(api)
    browser.select_folder("News")
    calls = list(api.method_calls)
    assert browser.search("2024-03") == ["2024-03-05-09:00:00.md"]
    assert api.method_calls == calls
    assert browser.state.current_file == "2024-03-05-09:00:00.md"


def test_browser_failed_fetch_keeps_state(caplog):
    api = make_api()
    browser = Browser(api)
    browser.select_folder("News")
    before = browser.state

    api.files.side_effect = requests.ConnectionError("down")
    with caplog.at_level(logging.ERROR, logger="dailynews.viewstate"):
        state = browser.select_folder("Notes")
    assert "Error loading files" in caplog.text
    assert state.current_folder == "Notes"
    assert state.phase is Phase.FOLDER_LOADING
    assert state.seq == before.seq + 1


def test_browser_failed_folder_list(caplog):
    api = make_api()
    api.folders.side_effect = requests.HTTPError("500")
    browser = Browser(api)
    with caplog.at_level(logging.ERROR, logger="dailynews.viewstate"):
        state = browser.load_folders()
    assert state == ViewState()
    assert "Error loading folders" in caplog.text


def test_browser_failed_content(caplog):
    api = make_api()
    api.content.side_effect = requests.ConnectionError("down")
    browser = Browser(api)
    with caplog.at_level(logging.ERROR, logger="dailynews.viewstate"):
        state = browser.select_folder("News")
    assert "Error loading content" in caplog.text
    assert state.current_file == "A.md"
    assert state.content == ""
    assert state.phase is Phase.FILE_LOADING


def test_browser_rendered_html_uses_current_folder():
    api = make_api(files=["a.md"])
    api.content.side_effect = None
    api.content.return_value = "![x](pic.png)"
    browser = Browser(api)
    browser.select_folder("News")
    assert 'src="News/pic.png"' in browser.rendered_html()


def test_browser_select_file_without_folder():
    api = make_api()
    browser = Browser(api)
    assert browser.select_file("A.md") == ViewState()
    api.content.assert_not_called()
