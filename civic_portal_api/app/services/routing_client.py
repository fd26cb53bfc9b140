"""OpenRouteService directions client.

Thin wrapper around the ``/v2/directions/{profile}`` endpoint using the
``requests`` library.  Calls never raise: :meth:`directions` returns a
``(data, error)`` tuple so that the navigation service can fall back to
a straight-line estimate when the provider is unreachable, rejects the
key or returns no route.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from civic_portal_api.app.core.config import settings

logger = logging.getLogger(__name__)


class OpenRouteServiceClient:
    """Client for the OpenRouteService directions API."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialise the client.

        Args:
            api_key: ORS key sent as a bearer token.  Defaults to
                ``settings.openroute_api_key``.
            base_url: API root, defaults to ``settings.openroute_base_url``.
            timeout: Request timeout in seconds.
            session: Optional requests session (injected in tests).
        """
        self.api_key = settings.openroute_api_key if api_key is None else api_key
        self.base_url = (base_url or settings.openroute_base_url).rstrip("/")
        self.timeout = timeout or settings.openroute_timeout
        self.session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def directions(
        self,
        start: Sequence[float],
        end: Sequence[float],
        profile: str = "foot-walking",
    ) -> Tuple[Optional[Dict[str, Any]], Optional[Dict[str, Any]]]:
        """Request a route between two ``[lng, lat]`` points.

        Returns:
            ``(route, None)`` with the first ORS route on success, otherwise
            ``(None, error)`` where ``error`` has ``status_code`` and
            ``message`` keys.
        """
        if not self.enabled:
            return None, {"status_code": None, "message": "OpenRouteService API key not configured"}
        url = f"{self.base_url}/v2/directions/{profile}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        body = {
            "coordinates": [list(start), list(end)],
            "format": "json",
            "instructions": True,
            "geometry": True,
        }
        try:
            logger.debug("Requesting %s route from %s", profile, url)
            response = self.session.post(url, json=body, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            logger.warning("OpenRouteService returned HTTP %s", status)
            return None, {"status_code": status, "message": str(exc)}
        except requests.RequestException as exc:
            logger.warning("OpenRouteService request failed: %s", exc)
            return None, {"status_code": None, "message": str(exc)}
        except ValueError as exc:
            logger.warning("OpenRouteService sent invalid JSON: %s", exc)
            return None, {"status_code": None, "message": "Invalid JSON response"}

        routes = data.get("routes") if isinstance(data, dict) else None
        if not routes:
            return None, {"status_code": None, "message": "No route found"}
        return routes[0], None

    @staticmethod
    def flatten_steps(route: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Turn-by-turn steps of every segment in order."""
        steps: List[Dict[str, Any]] = []
        for segment in route.get("segments") or []:
            for step in segment.get("steps") or []:
                steps.append(
                    {
                        "instruction": step.get("instruction", ""),
                        "distance": step.get("distance", 0),
                        "duration": step.get("duration", 0),
                        "name": step.get("name") or "",
                    }
                )
        return steps
