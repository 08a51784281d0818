"""Container health probe: exits 0 when the local /health endpoint answers 200."""
from __future__ import annotations

import sys

import httpx

from profile_api.config import get_settings


def probe(url: str, timeout: float = 5.0) -> int:
    try:
        response = httpx.get(url, timeout=timeout)
    except httpx.HTTPError as exc:
        print(f"Health check failed - {exc}")
        return 1

    if response.status_code == 200:
        print(f"Health check passed - HTTP {response.status_code}")
        return 0
    print(f"Health check failed - HTTP {response.status_code}")
    return 1


def main() -> None:
    settings = get_settings()
    sys.exit(probe(f"http://localhost:{settings.api_port}/health"))


if __name__ == "__main__":
    main()
