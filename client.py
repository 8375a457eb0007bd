"""
HTTP client for the Campus Events API.

Mirrors the services the web frontend uses (auth, clubs, events, attendance).
Any object with the `requests.Session` request methods can be passed as
`session`, which is how the tests drive it against an in-process app.
"""

import logging
from typing import Any, BinaryIO, Dict, Optional, Tuple, Union

import requests

logger = logging.getLogger(__name__)

FileSpec = Tuple[str, Union[bytes, BinaryIO], str]  # (filename, content, mime type)


class ApiClientError(Exception):
    def __init__(self, status_code: int, detail: str, error: Optional[str] = None):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail
        self.error = error


class CampusEventsClient:
    def __init__(self, base_url: str = "http://localhost:4444", session: Optional[Any] = None, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.token: Optional[str] = None
        self.user: Optional[Dict[str, Any]] = None

    # --- plumbing ---

    def _headers(self) -> Dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    def _request(self, method: str, path: str, **kwargs) -> Any:
        kwargs.setdefault("headers", {}).update(self._headers())
        if isinstance(self.session, requests.Session):
            kwargs.setdefault("timeout", self.timeout)

        response = getattr(self.session, method)(f"{self.base_url}/api{path}", **kwargs)

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {"detail": response.text}
            if response.status_code == 401:
                logger.warning("401 from %s %s: token invalid or expired, log in again", method.upper(), path)
            raise ApiClientError(response.status_code, str(body.get("detail")), body.get("error"))

        return response.json()

    @staticmethod
    def _form(fields: Dict[str, Any]) -> Dict[str, str]:
        # multipart fields are text; None means "not sent"
        form = {}
        for key, value in fields.items():
            if value is None:
                continue
            if isinstance(value, bool):
                form[key] = "true" if value else "false"
            else:
                form[key] = str(value)
        return form

    def _send(self, method: str, path: str, fields: Dict[str, Any], files: Optional[Dict[str, FileSpec]]) -> Any:
        if files:
            return self._request(method, path, data=self._form(fields), files=files)
        return self._request(method, path, json=fields)

    # --- auth ---

    def register(self, name: str, email: str, password: str, role: str) -> Dict[str, Any]:
        return self._request("post", "/auth/register", json={
            "name": name, "email": email, "password": password, "role": role,
        })

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self._request("post", "/auth/login", json={"email": email, "password": password})
        self.token = data.get("token")
        self.user = data.get("user")
        return data

    def logout(self) -> None:
        self.token = None
        self.user = None

    def me(self) -> Dict[str, Any]:
        return self._request("get", "/auth/me")

    # --- clubs ---

    def list_clubs(self, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        return self._request("get", "/clubs", params={"page": page, "limit": limit})

    def get_club(self, club_id: int) -> Dict[str, Any]:
        return self._request("get", f"/clubs/{club_id}")

    def get_my_club(self) -> Dict[str, Any]:
        return self._request("get", "/clubs/mine")

    def create_club(self, fields: Dict[str, Any], logo: Optional[FileSpec] = None) -> Dict[str, Any]:
        return self._send("post", "/clubs", fields, {"clubLogo": logo} if logo else None)

    def update_club(self, club_id: int, fields: Dict[str, Any], logo: Optional[FileSpec] = None) -> Dict[str, Any]:
        return self._send("put", f"/clubs/{club_id}", fields, {"clubLogo": logo} if logo else None)

    def delete_club(self, club_id: int) -> Dict[str, Any]:
        return self._request("delete", f"/clubs/{club_id}")

    # --- events ---

    def list_events(self, page: int = 1, limit: int = 10, date_status: str = "all", club_id: Optional[int] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {"page": page, "limit": limit, "date_status": date_status}
        if club_id is not None:
            params["club_id"] = club_id
        return self._request("get", "/events", params=params)

    def upcoming_events(self, page: int = 1, limit: int = 9) -> Dict[str, Any]:
        """What the home page shows first."""
        return self.list_events(page=page, limit=limit, date_status="upcoming")

    def get_events_by_club(self, club_id: int, page: int = 1, limit: int = 10, date_status: str = "all") -> Dict[str, Any]:
        return self.list_events(page=page, limit=limit, date_status=date_status, club_id=club_id)

    def get_event(self, event_id: int) -> Dict[str, Any]:
        return self._request("get", f"/events/{event_id}")

    def create_event(self, fields: Dict[str, Any], banner: Optional[FileSpec] = None) -> Dict[str, Any]:
        return self._send("post", "/events", fields, {"eventBanner": banner} if banner else None)

    def update_event(self, event_id: int, fields: Dict[str, Any], banner: Optional[FileSpec] = None) -> Dict[str, Any]:
        return self._send("put", f"/events/{event_id}", fields, {"eventBanner": banner} if banner else None)

    def delete_event(self, event_id: int) -> Dict[str, Any]:
        return self._request("delete", f"/events/{event_id}")

    # --- attendance ---

    def register_for_event(self, event_id: int) -> Dict[str, Any]:
        return self._request("post", f"/events/{event_id}/attend")

    def get_attendees(self, event_id: int) -> Any:
        return self._request("get", f"/events/{event_id}/attendees")

    def get_my_attended_events(self) -> Any:
        return self._request("get", "/attendance/my-events")
