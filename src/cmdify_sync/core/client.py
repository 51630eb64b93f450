import json
import logging
from typing import Any

import requests
from pydantic import ValidationError

from ..config import Config
from ..errors import TransportError
from ..sync.models import SyncPayload
from ..sync.state import SyncState

logger = logging.getLogger(__name__)

GIST_DESCRIPTION = "Cmdify - Synced Commands"


class GistClient:
    """Client for the single GitHub gist holding the synced collection.

    The gist id is the only state this client owns.  It is read from the
    injected ``SyncState`` at construction and written back whenever it
    changes, so it survives process restarts.
    """

    def __init__(self, config: Config, state: SyncState):
        self.config = config
        self.state = state
        self.gist_id: str | None = state.get_gist_id()
        self._session: requests.Session | None = None

    @property
    def session(self) -> requests.Session:
        """Lazily created ``requests.Session`` carrying auth headers."""
        if self._session is None:
            self._session = self._create_session()
        return self._session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Bearer {self.config.github_token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            }
        )
        return session

    def _url(self, gist_id: str | None = None) -> str:
        base = f"{self.config.api_url.rstrip('/')}/gists"
        return f"{base}/{gist_id}" if gist_id else base

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Send a request, converting network failures into TransportError.
        """
        try:
            return self.session.request(
                method,
                url,
                timeout=(self.config.connect_timeout, self.config.http_timeout),
                **kwargs,
            )
        except requests.RequestException as e:
            raise TransportError(f"GitHub API request failed: {e}") from e

    def _files_body(self, payload: SyncPayload) -> dict[str, Any]:
        return {
            self.config.gist_filename: {
                "content": json.dumps(payload.to_wire(), indent=2)
            }
        }

    # ------------------------------------------------------------------
    # Gist id bookkeeping
    # ------------------------------------------------------------------

    def has_known_blob(self) -> bool:
        """Return True when a gist id is known."""
        return bool(self.gist_id)

    def clear_known_blob(self) -> None:
        """Forget the gist id (in memory and on disk)."""
        self._set_gist_id(None)

    def _set_gist_id(self, gist_id: str | None) -> None:
        self.gist_id = gist_id
        self.state.set_gist_id(gist_id)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create(self, payload: SyncPayload) -> None:
        """
        Upload *payload* as a new private gist and adopt its id.

        Raises:
            TransportError: On network failure or non-2xx status.
        """
        response = self._request(
            "POST",
            self._url(),
            json={
                "description": GIST_DESCRIPTION,
                "public": False,
                "files": self._files_body(payload),
            },
        )
        if not response.ok:
            raise TransportError(
                f"GitHub API error: {response.status_code}",
                status=response.status_code,
            )
        try:
            gist_id = response.json()["id"]
        except (ValueError, KeyError, TypeError) as e:
            raise TransportError(
                f"GitHub API returned an unexpected create response: {e}"
            ) from e
        self._set_gist_id(gist_id)
        logger.info("Created gist %s", gist_id)

    def update(self, payload: SyncPayload) -> None:
        """
        Overwrite the gist content, creating the gist when none is known.

        A 404 means the gist was deleted out-of-band: the stored id is
        cleared and the upload is retried once through ``create()``.

        Raises:
            TransportError: On network failure or any other non-2xx status.
        """
        if not self.gist_id:
            return self.create(payload)

        response = self._request(
            "PATCH",
            self._url(self.gist_id),
            json={"files": self._files_body(payload)},
        )
        if response.status_code == 404:
            logger.warning(
                "Gist %s no longer exists; creating a new one", self.gist_id
            )
            self.clear_known_blob()
            return self.create(payload)
        if not response.ok:
            raise TransportError(
                f"GitHub API error: {response.status_code}",
                status=response.status_code,
            )
        logger.info("Updated gist %s", self.gist_id)

    def fetch(self) -> SyncPayload | None:
        """
        Download and parse the synced payload.

        Returns:
            The payload, or None when no gist is known, the gist is gone
            (404, which also clears the stored id), or it holds no payload
            file.

        Raises:
            TransportError: On network failure, other non-2xx status, or
                malformed payload content.
        """
        if not self.gist_id:
            return None

        response = self._request("GET", self._url(self.gist_id))
        if response.status_code == 404:
            logger.warning("Gist %s not found; forgetting it", self.gist_id)
            self.clear_known_blob()
            return None
        if not response.ok:
            raise TransportError(
                f"GitHub API error: {response.status_code}",
                status=response.status_code,
            )

        try:
            files = response.json().get("files") or {}
        except (ValueError, AttributeError) as e:
            raise TransportError(f"Malformed gist response: {e}") from e

        file_info = files.get(self.config.gist_filename) or {}
        content = file_info.get("content")
        # Files over 1 MB come back truncated; the full text is at raw_url.
        if file_info.get("truncated") and file_info.get("raw_url"):
            raw = self._request("GET", file_info["raw_url"])
            if not raw.ok:
                raise TransportError(
                    f"GitHub API error: {raw.status_code}",
                    status=raw.status_code,
                )
            content = raw.text
        if not content:
            return None

        try:
            return SyncPayload.model_validate(json.loads(content))
        except (ValueError, ValidationError) as e:
            raise TransportError(f"Malformed sync payload in gist: {e}") from e

    def discover(self) -> bool:
        """
        Look through the user's gists for one holding the payload file.

        Adopts the first match.  Any failure is logged and reported as
        False; discovery is best-effort.
        """
        try:
            response = self._request("GET", self._url())
            if not response.ok:
                logger.info("Gist discovery failed: HTTP %s", response.status_code)
                return False
            gists = response.json()
        except (TransportError, ValueError) as e:
            logger.info("Gist discovery failed: %s", e)
            return False

        if not isinstance(gists, list):
            return False
        for gist in gists:
            if not isinstance(gist, dict):
                continue
            if gist.get("id") and self.config.gist_filename in (
                gist.get("files") or {}
            ):
                self._set_gist_id(gist["id"])
                logger.info("Discovered existing gist %s", gist["id"])
                return True
        return False

