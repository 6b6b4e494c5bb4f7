from urllib.parse import quote

import requests


def _segment(name: str) -> str:
    return quote(name, safe="")


class ContentClient:
    """Thin client for the folder/file/content JSON API."""

    def __init__(self, base_url: str, session: requests.Session | None = None, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _get_json(self, path: str):
        response = self.session.get(f"{self.base_url}{path}", timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def folders(self) -> list:
        return self._get_json("/api/folders")

    def files(self, folder: str) -> list:
        return self._get_json(f"/api/files/{_segment(folder)}")

    def content(self, folder: str, filename: str) -> str:
        data = self._get_json(f"/api/content/{_segment(folder)}/{_segment(filename)}")
        return data["content"]
