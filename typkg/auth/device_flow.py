"""GitHub device authorization flow for private package repositories.

The user is shown a short code, enters it at https://github.com/login/device,
and typkg polls GitHub until the login is approved. The resulting token is
stored in the typkg config file and used when cloning private repositories.
The install and clean engines never read it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, Optional

import httpx
import yaml

from typkg.errors import AuthError, IoFailure

logger = logging.getLogger(__name__)

DEVICE_CODE_URL = "https://github.com/login/device/code"
ACCESS_TOKEN_URL = "https://github.com/login/oauth/access_token"
DEVICE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"
SCOPE = "repo"

# Added to the polling interval whenever GitHub answers ``slow_down``.
SLOW_DOWN_STEP = 5


@dataclass
class DeviceCode:
    device_code: str
    user_code: str
    verification_uri: str
    expires_in: int
    interval: int


@dataclass
class Credentials:
    access_token: str
    token_type: str = "bearer"
    scope: str = ""


# ---------------------------------------------------------------------------
# GitHub endpoints
# ---------------------------------------------------------------------------


def request_device_code(client: httpx.Client, client_id: str, scope: str = SCOPE) -> DeviceCode:
    """Ask GitHub for a device and user verification code."""
    try:
        resp = client.post(DEVICE_CODE_URL, data={"client_id": client_id, "scope": scope})
        resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise AuthError(f"requesting a device code failed: {exc}") from exc

    try:
        return DeviceCode(
            device_code=data["device_code"],
            user_code=data["user_code"],
            verification_uri=data["verification_uri"],
            expires_in=int(data["expires_in"]),
            interval=int(data["interval"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise AuthError(f"unexpected device code response: {data}") from exc


def poll_for_token(
    client: httpx.Client,
    client_id: str,
    code: DeviceCode,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Credentials:
    """Block until the user approves the device, then return the token.

    Waits ``code.interval`` seconds between polls and gives up once the
    device code expires.
    """
    interval = code.interval
    deadline = clock() + code.expires_in

    while True:
        sleep(interval)
        if clock() > deadline:
            raise AuthError("device code expired before the login was approved")

        try:
            resp = client.post(
                ACCESS_TOKEN_URL,
                data={
                    "client_id": client_id,
                    "device_code": code.device_code,
                    "grant_type": DEVICE_GRANT_TYPE,
                },
            )
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise AuthError(f"polling for the access token failed: {exc}") from exc

        if data.get("access_token"):
            return Credentials(
                access_token=data["access_token"],
                token_type=data.get("token_type", "bearer"),
                scope=data.get("scope", ""),
            )

        error = data.get("error", "")
        if error == "authorization_pending":
            continue
        if error == "slow_down":
            interval = int(data.get("interval", interval + SLOW_DOWN_STEP))
            logger.debug("GitHub asked to slow down, polling every %ss", interval)
            continue
        if error == "expired_token":
            raise AuthError("device code expired before the login was approved")
        if error == "access_denied":
            raise AuthError("the login was cancelled")
        if error == "incorrect_device_code":
            raise AuthError("failed to authenticate, the device code was incorrect")
        raise AuthError(f"GitHub OAuth error: {data.get('error_description') or error or data}")


def login(
    client_id: str,
    on_code: Callable[[DeviceCode], None],
    client: Optional[httpx.Client] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Credentials:
    """Run the whole device flow.

    ``on_code`` is called once with the device code so the caller can show
    the user code and open the verification page.
    """
    owns_client = client is None
    if client is None:
        client = httpx.Client(headers={"Accept": "application/json"}, timeout=30.0)
    try:
        code = request_device_code(client, client_id)
        on_code(code)
        return poll_for_token(client, client_id, code, sleep=sleep)
    finally:
        if owns_client:
            client.close()


# ---------------------------------------------------------------------------
# Credential storage
# ---------------------------------------------------------------------------


def save_credentials(path: str | Path, credentials: Credentials) -> None:
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(asdict(credentials)), encoding="utf-8")
        path.chmod(0o600)
    except OSError as exc:
        raise IoFailure(f"failed to write credentials to {path}: {exc.strerror or exc}", path=path) from exc


def load_credentials(path: str | Path) -> Credentials | None:
    """Return the stored credentials, or ``None`` if there are none."""
    path = Path(path)
    if not path.exists():
        return None
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("ignoring unreadable credentials file %s: %s", path, exc)
        return None
    if not isinstance(data, dict) or not data.get("access_token"):
        return None
    return Credentials(
        access_token=str(data["access_token"]),
        token_type=str(data.get("token_type", "bearer")),
        scope=str(data.get("scope", "")),
    )
