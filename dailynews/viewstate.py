"""Reader view state and the transitions that move it.

A ``ViewState`` is never mutated: every user action or arriving response is a
function from the old state to a new one. Responses carry the ``seq`` that was
current when their request went out, and a response whose ``seq`` (or folder)
no longer matches is dropped, so switching folders quickly cannot let an old
file list overwrite a newer one.
"""

import enum
import logging
from dataclasses import dataclass, replace

import requests

from .render import render_markdown

logger = logging.getLogger(__name__)


class Phase(enum.Enum):
    NO_FOLDER = "no_folder"
    FOLDER_LOADING = "folder_loading"
    FOLDER_LOADED = "folder_loaded"
    FILE_LOADING = "file_loading"
    FILE_LOADED = "file_loaded"


@dataclass(frozen=True)
class ViewState:
    folders: tuple = ()
    current_folder: str | None = None
    files: tuple = ()
    current_file: str | None = None
    content: str = ""
    search_query: str = ""
    phase: Phase = Phase.NO_FOLDER
    seq: int = 0

    @property
    def visible_files(self) -> list:
        return filter_files(self.files, self.search_query)


def filter_files(files, query: str) -> list:
    needle = query.lower()
    return [f for f in files if needle in f.lower()]


def folders_loaded(state: ViewState, folders) -> ViewState:
    return replace(state, folders=tuple(folders))


def select_folder(state: ViewState, name: str) -> ViewState:
    return replace(
        state,
        current_folder=name,
        files=(),
        current_file=None,
        content="",
        search_query="",
        phase=Phase.FOLDER_LOADING,
        seq=state.seq + 1,
    )


def files_loaded(state: ViewState, folder: str, seq: int, files) -> ViewState:
    if folder != state.current_folder or seq != state.seq:
        return state
    state = replace(state, files=tuple(files), phase=Phase.FOLDER_LOADED)
    if state.files:
        state = select_file(state, state.files[0])
    return state


def select_file(state: ViewState, filename: str) -> ViewState:
    if state.current_folder is None:
        return state
    return replace(
        state,
        current_file=filename,
        content="",
        phase=Phase.FILE_LOADING,
        seq=state.seq + 1,
    )


def content_loaded(state: ViewState, folder: str, filename: str, seq: int, content: str) -> ViewState:
    if (folder, filename, seq) != (state.current_folder, state.current_file, state.seq):
        return state
    return replace(state, content=content, phase=Phase.FILE_LOADED)


def set_search(state: ViewState, query: str) -> ViewState:
    return replace(state, search_query=query)


def go_home(state: ViewState) -> ViewState:
    return ViewState(folders=state.folders, seq=state.seq + 1)


class Browser:
    """Drives a ``ViewState`` against a content API.

    ``api`` needs ``folders()``, ``files(folder)`` and
    ``content(folder, filename)``, e.g. a ``ContentClient``. A failed request
    is logged and the state stays where it was when the request went out.
    """

    def __init__(self, api, state: ViewState | None = None):
        self.api = api
        self.state = state or ViewState()

    def load_folders(self) -> ViewState:
        try:
            folders = self.api.folders()
        except requests.RequestException as e:
            logger.error("Error loading folders: %s", e)
            return self.state
        self.state = folders_loaded(self.state, folders)
        return self.state

    def select_folder(self, name: str) -> ViewState:
        self.state = select_folder(self.state, name)
        seq = self.state.seq
        try:
            files = self.api.files(name)
        except requests.RequestException as e:
            logger.error("Error loading files: %s", e)
            return self.state
        self.state = files_loaded(self.state, name, seq, files)
        if self.state.phase is Phase.FILE_LOADING:
            self._fetch_content()
        return self.state

    def select_file(self, filename: str) -> ViewState:
        if self.state.current_folder is None:
            return self.state
        self.state = select_file(self.state, filename)
        self._fetch_content()
        return self.state

    def _fetch_content(self):
        folder, filename, seq = self.state.current_folder, self.state.current_file, self.state.seq
        try:
            content = self.api.content(folder, filename)
        except requests.RequestException as e:
            logger.error("Error loading content: %s", e)
            return
        self.state = content_loaded(self.state, folder, filename, seq, content)

    def search(self, query: str) -> list:
        self.state = set_search(self.state, query)
        return self.state.visible_files

    def home(self) -> ViewState:
        self.state = go_home(self.state)
        return self.state

    def rendered_html(self) -> str:
        return render_markdown(self.state.content, self.state.current_folder)
