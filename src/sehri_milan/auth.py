from __future__ import annotations
import logging
from pathlib import Path
import httpx
from pydantic import ValidationError
from sehri_milan.cache import LocalCache, default_base_dir
from sehri_milan.config import Config
from sehri_milan.models import AuthSession, UserProfile

logger = logging.getLogger(__name__)

DEMO_USER = UserProfile(
    id="00000000-0000-0000-0000-000000000000",
    email="demo@sehrimilan.com",
    display_name="Demo Guest",
)


class AuthError(Exception):
    pass


def demo_session() -> AuthSession:
    return AuthSession(user=DEMO_USER, is_demo=True)


def _auth_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    for key in ("msg", "error_description", "message", "error"):
        if isinstance(body, dict) and body.get(key):
            return str(body[key])
    return f"HTTP {response.status_code}"


def _profile(user: dict) -> UserProfile:
    metadata = user.get("user_metadata") or {}
    return UserProfile(id=user["id"], email=user.get("email", ""), display_name=metadata.get("display_name"))


class SupabaseAuth:
    def __init__(self, config: Config):
        self._base_url = f"{config.supabase_url}/auth/v1"
        self._timeout = config.request_timeout
        self._headers = {"apikey": config.supabase_anon_key, "Content-Type": "application/json"}

    def _post(self, path: str, payload: dict | None = None, token: str | None = None) -> httpx.Response:
        headers = dict(self._headers)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            response = httpx.post(f"{self._base_url}{path}", json=payload, headers=headers, timeout=self._timeout)
        except httpx.ConnectError:
            raise AuthError("Could not connect to the sign-in service. Check your internet connection.")
        except httpx.TimeoutException:
            raise AuthError("The sign-in service timed out.")
        except httpx.TransportError as e:
            raise AuthError(f"Lost connection to the sign-in service: {e}")
        if response.status_code >= 400:
            message = _auth_message(response)
            logger.warning("Auth request %s failed (%s): %s", path, response.status_code, message)
            raise AuthError(message)
        return response

    def _body(self, response: httpx.Response) -> dict:
        try:
            body = response.json()
        except ValueError:
            logger.warning("Non-JSON response from the sign-in service: %s", response.text[:200])
            raise AuthError("Unexpected response from the sign-in service.")
        if not isinstance(body, dict):
            raise AuthError("Unexpected response from the sign-in service.")
        return body

    def _session_from(self, body: dict) -> AuthSession:
        try:
            return AuthSession(
                user=_profile(body["user"]),
                access_token=body["access_token"],
                refresh_token=body.get("refresh_token", ""),
            )
        except (KeyError, TypeError, ValidationError) as e:
            raise AuthError(f"Unexpected response from the sign-in service: {e}") from e

    def sign_in(self, email: str, password: str) -> AuthSession:
        response = self._post("/token?grant_type=password", {"email": email, "password": password})
        return self._session_from(self._body(response))

    def sign_up(self, email: str, password: str, display_name: str | None = None) -> AuthSession | None:
        """Create an account. Returns None when the project wants the email confirmed first."""
        payload = {"email": email, "password": password, "data": {"display_name": display_name or ""}}
        body = self._body(self._post("/signup", payload))
        if "access_token" not in body:
            return None
        return self._session_from(body)

    def sign_out(self, session: AuthSession) -> None:
        if session.is_demo or not session.access_token:
            return
        try:
            self._post("/logout", token=session.access_token)
        except AuthError as e:
            logger.warning("Remote sign-out failed, clearing local session anyway: %s", e)


class SessionStore:
    """The signed-in (or demo) session, persisted between commands.

    Replacing or clearing the session also wipes every cached artifact, so a new
    user never sees the previous user's plan.
    """

    def __init__(self, base_dir: Path | None = None):
        self.base_dir = base_dir or default_base_dir()
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._path = self.base_dir / "session.json"
        self._cache = LocalCache(self.base_dir)

    def load(self) -> AuthSession | None:
        if not self._path.exists():
            return None
        try:
            return AuthSession.model_validate_json(self._path.read_text())
        except ValidationError:
            logger.warning("Could not read session file %s", self._path.name)
            return None

    def require(self) -> AuthSession:
        session = self.load()
        if session is None:
            raise AuthError("Not signed in. Run: sehri login (or sehri demo)")
        return session

    def replace(self, session: AuthSession) -> None:
        self._cache.clear_all()
        self._path.write_text(session.model_dump_json(indent=2))

    def clear(self) -> None:
        self._cache.clear_all()
        self._path.unlink(missing_ok=True)
