"""
Minimal Matrix client-server API client for an application service

Requests are authenticated with the appservice token. Passing ``user_id``
to a call makes the homeserver act as that user (identity assertion), which
is how puppet users post and change their profile.
"""

import json
import uuid
from typing import Any, Dict, Optional
from urllib.parse import quote

import aiohttp


CLIENT_API_PREFIX = "/_matrix/client/v3"


class MatrixError(Exception):
    """Error response from the homeserver"""

    def __init__(self, status: int, errcode: Optional[str] = None, error: Optional[str] = None):
        self.status = status
        self.errcode = errcode
        self.error = error
        super().__init__(f"{status} {errcode or 'M_UNKNOWN'}: {error or 'no details'}")


def _path(value: str) -> str:
    return quote(value, safe='')


class MatrixClient:
    """Async Matrix client bound to one homeserver and appservice token"""

    def __init__(self, homeserver: str, as_token: str,
                 session: Optional[aiohttp.ClientSession] = None,
                 request_timeout: float = 60.0):
        self.homeserver = homeserver.rstrip('/')
        self.as_token = as_token
        self.request_timeout = request_timeout
        self.session = session
        self._owns_session = session is None

    async def open(self) -> None:
        if self.session is None:
            self.session = aiohttp.ClientSession()
            self._owns_session = True

    async def close(self) -> None:
        if self._owns_session and self.session is not None and not self.session.closed:
            await self.session.close()
        self.session = None

    async def request(self, method: str, path: str, *, user_id: Optional[str] = None,
                      body: Optional[Dict[str, Any]] = None,
                      params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Send one API request.

        Raises:
            MatrixError: on any non-2xx response
        """
        query = dict(params or {})
        if user_id:
            query['user_id'] = user_id

        url = f"{self.homeserver}{CLIENT_API_PREFIX}{path}"
        headers = {'Authorization': f"Bearer {self.as_token}"}
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)

        async with self.session.request(method, url, headers=headers, json=body,
                                        params=query, timeout=timeout) as response:
            try:
                data = await response.json(content_type=None)
            except (json.JSONDecodeError, aiohttp.ContentTypeError):
                data = {}
            if data is None:
                data = {}

            if response.status >= 400:
                raise MatrixError(response.status, data.get('errcode'), data.get('error'))
            return data

    async def whoami(self) -> str:
        data = await self.request('GET', '/account/whoami')
        return data['user_id']

    async def register_user(self, localpart: str) -> bool:
        """
        Register a user in the appservice namespace.

        Returns:
            True if created, False if it already existed
        """
        try:
            await self.request('POST', '/register', body={
                'type': 'm.login.application_service',
                'username': localpart,
            })
        except MatrixError as e:
            if e.errcode == 'M_USER_IN_USE':
                return False
            raise
        return True

    async def get_display_name(self, user_id: str) -> Optional[str]:
        try:
            data = await self.request('GET', f"/profile/{_path(user_id)}/displayname")
        except MatrixError as e:
            if e.status == 404:
                return None
            raise
        return data.get('displayname')

    async def set_display_name(self, user_id: str, name: str) -> None:
        await self.request('PUT', f"/profile/{_path(user_id)}/displayname",
                           user_id=user_id, body={'displayname': name})

    async def join_room(self, room_id: str, user_id: Optional[str] = None) -> str:
        data = await self.request('POST', f"/join/{_path(room_id)}", user_id=user_id, body={})
        return data.get('room_id', room_id)

    async def send_text(self, room_id: str, body: str, user_id: Optional[str] = None) -> str:
        """Send a plain ``m.text`` message and return its event id"""
        txn_id = uuid.uuid4().hex
        data = await self.request(
            'PUT',
            f"/rooms/{_path(room_id)}/send/m.room.message/{txn_id}",
            user_id=user_id,
            body={'msgtype': 'm.text', 'body': body},
        )
        return data.get('event_id', '')

    async def sync(self, since: Optional[str] = None, timeout_ms: int = 30000,
                   sync_filter: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {'timeout': str(timeout_ms)}
        if since:
            params['since'] = since
        if sync_filter:
            params['filter'] = json.dumps(sync_filter)
        return await self.request('GET', '/sync', params=params)
