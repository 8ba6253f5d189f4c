"""
Simple Ecobee API Client

Minimal client for the thermostat, summary and runtime report endpoints.
Tokens are read from a local cache file written during the (manual) PIN
authorization and refreshed when they expire.
"""

import json
import logging
from pathlib import Path
from typing import Any

import requests

from .exceptions import AuthenticationError, EcobeeAPIError

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.ecobee.com"
THERMOSTAT_URL = f"{API_BASE_URL}/1/thermostat"
THERMOSTAT_SUMMARY_URL = f"{API_BASE_URL}/1/thermostatSummary"
RUNTIME_REPORT_URL = f"{API_BASE_URL}/1/runtimeReport"
TOKEN_URL = f"{API_BASE_URL}/token"

# Ecobee API status code for an expired access token
TOKEN_EXPIRED_CODE = 14


def thermostat_selection(thermostat_id: str, **includes: bool) -> dict[str, Any]:
    """Build a selection for a single thermostat.

    Every ``include*`` flag defaults to False so the response only carries
    identity fields. Pass e.g. ``includeRuntime=True`` to opt in.
    """
    selection = {
        "selectionType": "thermostats",
        "selectionMatch": thermostat_id,
        "includeAlerts": False,
        "includeEvents": False,
        "includeProgram": False,
        "includeRuntime": False,
        "includeExtendedRuntime": False,
        "includeSettings": False,
        "includeSensors": False,
        "includeWeather": False,
    }
    selection.update(includes)
    return selection


def registered_selection() -> dict[str, Any]:
    """Selection matching every thermostat registered to the account."""
    return {"selectionType": "registered", "selectionMatch": ""}


class EcobeeClient:
    """Simple Ecobee REST API client."""

    def __init__(self, api_key: str, token_cache_path: str | Path, timeout: float = 30):
        """Initialize Ecobee client.

        Args:
            api_key: Application key from the ecobee developer portal
            token_cache_path: JSON file with access_token and refresh_token
            timeout: Per-request timeout in seconds
        """
        self.api_key = api_key
        self.token_cache_path = Path(token_cache_path)
        self.timeout = timeout
        # Create a session for connection pooling
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json;charset=UTF-8"})
        self._tokens: dict[str, str] | None = None

    def _load_tokens(self) -> dict[str, str]:
        if self._tokens is None:
            try:
                with open(self.token_cache_path) as f:
                    self._tokens = json.load(f)
            except FileNotFoundError as e:
                raise AuthenticationError(
                    f"No ecobee token cache at {self.token_cache_path}; authorize the app first"
                ) from e
            except (OSError, json.JSONDecodeError) as e:
                raise AuthenticationError(
                    f"Cannot read ecobee token cache {self.token_cache_path}: {e}"
                ) from e

            if not self._tokens.get("access_token") or not self._tokens.get("refresh_token"):
                raise AuthenticationError("Token cache is missing access_token or refresh_token")
        return self._tokens

    def _save_tokens(self, tokens: dict[str, str]) -> None:
        self._tokens = tokens
        try:
            with open(self.token_cache_path, "w") as f:
                json.dump(tokens, f)
        except OSError as e:
            # The new tokens still work for this process
            logger.error(f"Failed to update token cache {self.token_cache_path}: {e}")

    def refresh_tokens(self) -> None:
        """Exchange the refresh token for a new access token.

        Raises:
            AuthenticationError: If ecobee rejects the refresh token
            EcobeeAPIError: If the token endpoint cannot be reached
        """
        tokens = self._load_tokens()
        params = {
            "grant_type": "refresh_token",
            "code": tokens["refresh_token"],
            "client_id": self.api_key,
        }
        try:
            response = self.session.post(TOKEN_URL, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise EcobeeAPIError(f"Token refresh request failed: {e}") from e

        if response.status_code in (400, 401):
            raise AuthenticationError(
                f"Ecobee rejected the refresh token ({response.status_code}): {response.text[:200]}"
            )
        if response.status_code != 200:
            raise EcobeeAPIError(
                f"Token refresh failed: {response.status_code}", status_code=response.status_code
            )

        try:
            body = response.json()
            new_tokens = {
                "access_token": body["access_token"],
                "refresh_token": body.get("refresh_token", tokens["refresh_token"]),
            }
        except (ValueError, KeyError) as e:
            raise EcobeeAPIError(f"Unexpected token refresh response: {e}") from e

        self._save_tokens(new_tokens)
        logger.info("Refreshed ecobee access token")

    def _get(self, url: str, request: dict[str, Any]) -> dict[str, Any]:
        """Issue a GET with the request JSON in the query string.

        Refreshes the access token once if it has expired.
        """
        for attempt in range(2):
            tokens = self._load_tokens()
            headers = {"Authorization": f"Bearer {tokens['access_token']}"}
            params = {"json": json.dumps(request, separators=(",", ":"))}

            logger.debug(f"GET {url} json={params['json']}")
            try:
                response = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                raise EcobeeAPIError(f"Ecobee API request failed: {e}") from e

            try:
                body = response.json()
            except ValueError:
                body = {}

            status = body.get("status", {}) if isinstance(body, dict) else {}
            expired = response.status_code == 401 or status.get("code") == TOKEN_EXPIRED_CODE
            if expired:
                if attempt > 0:
                    break
                logger.info("Ecobee access token expired, refreshing")
                self.refresh_tokens()
                continue

            if response.status_code != 200:
                raise EcobeeAPIError(
                    f"Invalid server response from {url}: {response.status_code} "
                    f"{status.get('message', '')}".strip(),
                    status_code=response.status_code,
                )
            if not isinstance(body, dict):
                raise EcobeeAPIError(f"Response from {url} is not a JSON object")
            if status.get("code", 0) != 0:
                raise EcobeeAPIError(
                    f"API error {status.get('code')}: {status.get('message', '')}",
                    status_code=response.status_code,
                )

            logger.debug(f"Response from {url}: {body}")
            return body

        raise AuthenticationError("Ecobee access token still rejected after refresh")

    def get_thermostats(self, selection: dict[str, Any]) -> list[dict[str, Any]]:
        """Get thermostats matching a selection.

        Args:
            selection: Ecobee selection object

        Returns:
            List of thermostat dictionaries ('identifier', 'name', 'modelNumber', 'brand', ...)
        """
        body = self._get(THERMOSTAT_URL, {"selection": selection})
        return body.get("thermostatList", [])

    def get_thermostat_summary(self, selection: dict[str, Any]) -> dict[str, Any]:
        """Get revision and equipment status lists for a selection."""
        request = {"selection": dict(selection, includeEquipmentStatus=True)}
        return self._get(THERMOSTAT_SUMMARY_URL, request)

    def get_runtime_report(
        self,
        selection: dict[str, Any],
        start_date: str,
        end_date: str,
        columns: list[str],
    ) -> dict[str, Any]:
        """Get the historical runtime report.

        Args:
            selection: Ecobee selection object
            start_date: First day (YYYY-MM-DD, thermostat local)
            end_date: Last day (YYYY-MM-DD, thermostat local)
            columns: Report column names to include

        Returns:
            Raw report with 'startDate', 'startInterval', 'columns' and 'reportList'
        """
        request = {
            "selection": selection,
            "startDate": start_date,
            "endDate": end_date,
            "columns": ",".join(columns),
        }
        return self._get(RUNTIME_REPORT_URL, request)
