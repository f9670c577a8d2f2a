from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the generator and storage services."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._generator = httpx.Client(base_url=config.generator_url, timeout=config.timeout)
        self._storage = httpx.Client(base_url=config.storage_url, timeout=config.timeout)
        self._token: Optional[str] = None

    def close(self) -> None:
        self._generator.close()
        self._storage.close()

    def get_status(self) -> Dict[str, Any]:
        return self._data(self._request(self._generator, "GET", "/status"))

    def start(self) -> str:
        return self._message(self._request(self._generator, "POST", "/start"))

    def stop(self) -> str:
        return self._message(self._request(self._generator, "POST", "/stop"))

    def get_frequency(self) -> Dict[str, Any]:
        return self._data(self._request(self._generator, "GET", "/frequency"))

    def set_frequency(self, frequency: str) -> Dict[str, Any]:
        response = self._request(
            self._generator, "POST", "/frequency", json={"frequency": frequency}
        )
        return self._data(response)

    def login(self) -> str:
        response = self._request(
            self._storage,
            "POST",
            "/auth/login",
            json={"email": self._config.email, "password": self._config.password},
        )
        token = self._data(response).get("token")
        if not isinstance(token, str):
            raise typer.BadParameter("Unexpected response payload when logging in.")
        self._token = token
        return token

    def list_readings(self, params: Dict[str, Any]) -> Dict[str, Any]:
        query = {key: value for key, value in params.items() if value is not None}
        response = self._request(
            self._storage, "GET", "/sensors", params=query, headers=self._auth_headers()
        )
        return self._data(response)

    def get_reading(self, reading_id: int) -> Dict[str, Any]:
        response = self._request(
            self._storage, "GET", f"/sensors/{reading_id}", headers=self._auth_headers()
        )
        return self._data(response)

    def _auth_headers(self) -> Dict[str, str]:
        token = self._token or self.login()
        return {"Authorization": f"Bearer {token}"}

    def _request(self, client: httpx.Client, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(f"Could not reach {client.base_url}: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1) from exc
        return response

    @staticmethod
    def _data(response: httpx.Response) -> Dict[str, Any]:
        data = response.json().get("data")
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _message(response: httpx.Response) -> str:
        return str(response.json().get("message", ""))

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("error") or data.get("message")
        except ValueError:
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
