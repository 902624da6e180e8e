"""crates.io client — resolve crate versions and fetch source archives."""

from __future__ import annotations

import io
import logging
import tarfile
from pathlib import Path

import requests

from panicaudit.config import PanicAuditConfig

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """A crate could not be resolved, downloaded or unpacked."""


def _get(url: str, config: PanicAuditConfig) -> requests.Response:
    try:
        response = requests.get(
            url,
            headers={"User-Agent": config.user_agent},
            timeout=config.timeout,
        )
    except requests.RequestException as e:
        raise RegistryError(f"Request to {url} failed: {e}") from e

    if not response.ok:
        raise RegistryError(f"Request to {url} failed: HTTP {response.status_code}")
    return response


def get_latest_version(name: str, config: PanicAuditConfig) -> str:
    """Return the newest published version of crate ``name``."""
    url = f"{config.registry_url}/crates/{name}"
    logger.debug("Resolving latest version of %s via %s", name, url)

    try:
        data = _get(url, config).json()
    except ValueError as e:
        raise RegistryError(f"Malformed registry response for {name}") from e

    crate = data.get("crate") if isinstance(data, dict) else None
    version = crate.get("newest_version") if isinstance(crate, dict) else None
    if not isinstance(version, str) or not version:
        raise RegistryError(f"Could not find latest version of {name}")
    return version


def download_crate(
    name: str,
    version: str,
    dest_dir: str | Path,
    config: PanicAuditConfig,
) -> Path:
    """Download ``name`` at ``version`` and unpack it into ``dest_dir``."""
    url = f"{config.registry_url}/crates/{name}/{version}/download"
    logger.info("Downloading %s v%s", name, version)
    payload = _get(url, config).content

    dest = Path(dest_dir)
    dest.mkdir(parents=True, exist_ok=True)

    logger.info("Extracting %d bytes into %s", len(payload), dest)
    try:
        with tarfile.open(fileobj=io.BytesIO(payload), mode="r:gz") as tar:
            tar.extractall(path=dest, filter="data")
    except (tarfile.TarError, OSError) as e:
        raise RegistryError(f"Could not unpack {name} v{version}: {e}") from e

    return dest
