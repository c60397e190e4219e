"""
Long-Running Synthesis Proxy.

Texts far beyond one synthesis request are handed to Google's
synthesizeLongAudio operation, which writes a single audio file to GCS and
is polled until done. This module is a thin httpx client for it:

    client = LongAudioClient(config.long_audio)
    ok, op = client.start(
        {"input": {"text": "..."}, "voice": {...}, "audioConfig": {...}},
        "gs://bucket/book.wav",
    )
    ok, state = client.status(op["name"])
    done = client.wait(op["name"], timeout_s=600)

Authentication:
    A caller-supplied bearer token (pass-through) is used as-is. Otherwise a
    token is minted from inline service-account JSON or application default
    credentials with the cloud-platform scope.
"""
from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional, Tuple

import google.auth
import httpx
from google.auth.transport.requests import Request as AuthRequest

from ssml_tts.core.config import LongAudioConfig
from ssml_tts.core.logging import get_logger, info, verbose, warn
from ssml_tts.services.errors import InvalidInputError, UpstreamError
from ssml_tts.tts.synthesizer import load_credentials
from ssml_tts.utils.timeit import timeit

_LOG = get_logger("ssml-tts.long_audio")

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"

TokenProvider = Callable[[], str]


def default_token_provider(credentials_json: Optional[str] = None) -> TokenProvider:
    """Build a token provider from inline credentials or ADC."""
    state: Dict[str, Any] = {}

    def provide() -> str:
        credentials = state.get("credentials")
        if credentials is None:
            inline = load_credentials(credentials_json)
            if inline is not None:
                credentials = inline.with_scopes([CLOUD_PLATFORM_SCOPE])
            else:
                credentials, _ = google.auth.default(scopes=[CLOUD_PLATFORM_SCOPE])
            state["credentials"] = credentials
        if not credentials.valid:
            credentials.refresh(AuthRequest())
        return credentials.token

    return provide


class LongAudioClient:
    """
    Client for the v1beta1 synthesizeLongAudio API.

    Args:
        config: Long-audio settings (API base, project, location, timeouts).
        http_client: httpx.Client to use; one is created when omitted.
        token_provider: Callable returning an OAuth access token.
        credentials_json: Inline service-account JSON for the default
            token provider.
    """

    def __init__(
        self,
        config: LongAudioConfig,
        http_client: Optional[httpx.Client] = None,
        token_provider: Optional[TokenProvider] = None,
        credentials_json: Optional[str] = None,
    ):
        self.config = config
        self._http = http_client or httpx.Client(timeout=config.timeout_s)
        self._token_provider = token_provider or default_token_provider(credentials_json)

    def _headers(self, bearer_token: Optional[str]) -> Dict[str, str]:
        token = bearer_token or self._token_provider()
        return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

    def _url(self, path: str) -> str:
        return f"{self.config.api_base.rstrip('/')}/v1beta1/{path}"

    @staticmethod
    def _payload(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {"error": {"code": response.status_code, "message": response.text[:500]}}
        return data if isinstance(data, dict) else {"response": data}

    def start(
        self,
        tts: Dict[str, Any],
        output_gcs_uri: str,
        project_number: Optional[str] = None,
        bearer_token: Optional[str] = None,
    ) -> Tuple[bool, Dict[str, Any]]:
        """
        Start a long-audio operation.

        Returns:
            (ok, payload): ok mirrors the upstream HTTP status; payload is the
            upstream JSON (the operation on success).

        Raises:
            InvalidInputError: If no project number is known.
            UpstreamError: If the API cannot be reached.
        """
        project = project_number or self.config.project_number
        if not project:
            raise InvalidInputError("projectNumber missing")

        url = self._url(f"projects/{project}/locations/{self.config.location}:synthesizeLongAudio")
        body = {**tts, "outputGcsUri": output_gcs_uri}
        try:
            with timeit("long_start") as t:
                response = self._http.post(url, json=body, headers=self._headers(bearer_token))
        except httpx.HTTPError as e:
            raise UpstreamError(f"Long audio start failed: {e}") from e

        payload = self._payload(response)
        if response.is_success:
            info(_LOG, "long_audio_started", operation=payload.get("name"), seconds=round(t.seconds, 4))
        else:
            warn(_LOG, "long_audio_rejected", status=response.status_code)
        return response.is_success, payload

    def status(self, name: str, bearer_token: Optional[str] = None) -> Tuple[bool, Dict[str, Any]]:
        """Fetch an operation by its full resource name."""
        if not name:
            raise InvalidInputError("operation name is required")
        try:
            response = self._http.get(self._url(name), headers=self._headers(bearer_token))
        except httpx.HTTPError as e:
            raise UpstreamError(f"Long audio status failed: {e}") from e

        payload = self._payload(response)
        verbose(_LOG, "long_audio_status", operation=name, done=bool(payload.get("done")))
        return response.is_success, payload

    def wait(
        self,
        name: str,
        poll_interval_s: Optional[float] = None,
        timeout_s: Optional[float] = None,
        bearer_token: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> Dict[str, Any]:
        """
        Poll an operation until it reports done.

        Raises:
            UpstreamError: On a failed status call or when timeout_s elapses.
        """
        interval = self.config.poll_interval_s if poll_interval_s is None else poll_interval_s
        budget = self.config.timeout_s if timeout_s is None else timeout_s
        deadline = time.monotonic() + budget

        while True:
            ok, payload = self.status(name, bearer_token=bearer_token)
            if not ok:
                raise UpstreamError("Long audio status request failed", details={"operation": name, "response": payload})
            if payload.get("done"):
                return payload
            if time.monotonic() + interval > deadline:
                raise UpstreamError(
                    f"Long audio operation not done after {budget}s",
                    details={"operation": name},
                )
            sleep(interval)
