"""
Post-deployment configuration through the OpenList HTTP API.

Waits for the service to answer, logs in as the administrator and applies
the standard settings every client gets:

- enable the guest account
- turn off global link signing
- hide README.md and Attachments entries
- inject the export-direct-links script into the page head

Nothing here is fatal. A failed precondition returns an unsuccessful
ConfigureResult so the caller can tell the operator to finish by hand.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

try:
    import requests
    HAS_REQUESTS = True
except ImportError:
    HAS_REQUESTS = False

from .config import AdminCredentials, ApiConfig
from .output import log_error, log_info, log_warn

logger = logging.getLogger(__name__)

ASSETS_DIR = Path(__file__).parent / "assets"
CUSTOMIZE_HEAD_FILE = "customize_head.html"

# One rule per line, matched against entry paths
HIDE_FILES_RULES = "/\\/README.md/i\n/\\/Attachments/i"


def load_customize_head() -> str:
    """The packaged page-head payload (HTML/JS), without trailing newlines."""
    return (ASSETS_DIR / CUSTOMIZE_HEAD_FILE).read_text(encoding="utf-8").rstrip("\n")


@dataclass
class AdminSession:
    """Authenticated context for the configuration calls. Never persisted."""
    base_url: str
    token: str

    @property
    def headers(self) -> Dict[str, str]:
        # OpenList expects the bare token, no "Bearer" prefix
        return {"Authorization": self.token, "Content-Type": "application/json"}


@dataclass
class StepResult:
    """Outcome of one configuration call."""
    name: str
    ok: bool
    status_code: Optional[int] = None
    message: str = ""


@dataclass
class ConfigureResult:
    """Overall outcome of the configuration phase.

    success only reflects the preconditions (client library present,
    service ready, login accepted). Individual step outcomes are in steps.
    """
    success: bool
    reason: str = ""
    steps: List[StepResult] = field(default_factory=list)

    @property
    def failed_steps(self) -> List[StepResult]:
        return [s for s in self.steps if not s.ok]


class RemoteConfigurator:
    """Apply the standard admin settings to a freshly deployed container."""

    def __init__(
        self,
        port: int,
        admin: AdminCredentials,
        api: Optional[ApiConfig] = None,
        session: Any = None,
        has_http_client: bool = HAS_REQUESTS,
    ):
        self.port = port
        self.admin = admin
        self.api = api or ApiConfig()
        self.base_url = f"http://{self.api.host}:{port}"
        self.has_http_client = has_http_client
        self._session = session

    @property
    def session(self):
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def configure(self) -> ConfigureResult:
        """Run the whole configuration sequence."""
        log_info("Configuring OpenList through its API...")

        if not self.has_http_client:
            log_warn("requests library not installed, skipping automatic configuration")
            return ConfigureResult(success=False, reason="missing-dependency")

        log_info("Waiting for the service to come up...")
        if not self.wait_until_ready():
            log_warn("Service did not become ready in time, skipping automatic configuration")
            return ConfigureResult(success=False, reason="not-ready")

        log_info("Logging in to the OpenList API...")
        admin_session = self.login()
        if admin_session is None:
            return ConfigureResult(success=False, reason="login-failed")
        log_info("Login successful")

        steps = self.apply_settings(admin_session)
        for step in steps:
            if step.ok:
                log_info(f"  {step.name}: done")
            else:
                log_warn(f"  {step.name}: failed ({step.message or step.status_code})")

        log_info("API configuration finished")
        return ConfigureResult(success=True, steps=steps)

    def wait_until_ready(self) -> bool:
        """Poll the public settings endpoint until it answers 2xx."""
        url = f"{self.base_url}/api/public/settings"
        for attempt in range(self.api.ready_attempts):
            try:
                response = self.session.get(url, timeout=self.api.request_timeout)
                if response.ok:
                    return True
                logger.debug("Readiness check %d: HTTP %s", attempt + 1, response.status_code)
            except requests.exceptions.RequestException as e:
                logger.debug("Readiness check %d: %s", attempt + 1, e)
            time.sleep(self.api.ready_interval)
        return False

    def login(self) -> Optional[AdminSession]:
        """Exchange admin credentials for a token; None on failure."""
        try:
            response = self.session.post(
                f"{self.base_url}/api/auth/login",
                json={"username": self.admin.username, "password": self.admin.password},
                headers={"Content-Type": "application/json"},
                timeout=self.api.request_timeout,
            )
        except requests.exceptions.RequestException as e:
            log_error(f"Login failed: {e}")
            return None

        try:
            body = response.json()
        except ValueError:
            log_error(f"Login failed: {response.text[:200]}")
            return None
        if not isinstance(body, dict):
            body = {}

        data = body.get("data")
        token = data.get("token") if isinstance(data, dict) else None
        if not token or token == "null":
            log_error(f"Login failed: {body.get('message')}")
            return None
        return AdminSession(base_url=self.base_url, token=token)

    def settings_plan(self) -> List[Dict[str, Any]]:
        """The configuration calls, in order."""
        return [
            {
                "name": "Enable guest user",
                "path": "/api/admin/user/update",
                "payload": {
                    "id": self.api.guest_user_id,
                    "username": "guest",
                    "password": "",
                    "base_path": "/",
                    "role": 1,
                    "disabled": False,
                    "permission": 0,
                },
            },
            {
                "name": "Disable global signing",
                "path": "/api/admin/setting/save",
                "payload": [{"key": "sign_all", "value": "false"}],
            },
            {
                "name": "Configure hidden files",
                "path": "/api/admin/setting/save",
                "payload": [{"key": "hide_files", "value": HIDE_FILES_RULES}],
            },
            {
                "name": "Configure custom head",
                "path": "/api/admin/setting/save",
                "payload": [{"key": "customize_head", "value": load_customize_head()}],
            },
        ]

    def apply_settings(self, admin_session: AdminSession) -> List[StepResult]:
        """Send every configuration call and capture each outcome."""
        return [
            self._post_step(admin_session, step["name"], step["path"], step["payload"])
            for step in self.settings_plan()
        ]

    def _post_step(self, admin_session: AdminSession, name: str, path: str, payload: Any) -> StepResult:
        try:
            response = self.session.post(
                f"{admin_session.base_url}{path}",
                json=payload,
                headers=admin_session.headers,
                timeout=self.api.request_timeout,
            )
        except requests.exceptions.RequestException as e:
            return StepResult(name=name, ok=False, message=str(e))

        logger.debug("%s: HTTP %s", name, response.status_code)
        if not response.ok:
            return StepResult(name=name, ok=False, status_code=response.status_code,
                              message=f"HTTP {response.status_code}")

        # OpenList reports errors in the body with HTTP 200
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and "code" in body and body["code"] != 200:
            return StepResult(name=name, ok=False, status_code=response.status_code,
                              message=str(body.get("message", body["code"])))
        return StepResult(name=name, ok=True, status_code=response.status_code)
