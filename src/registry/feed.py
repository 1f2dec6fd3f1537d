"""Registry feed loading.

Reads the list of registry entries from a URL or a local file. Supported
payloads are a JSON array, a YAML document, or a zip archive holding a
``registry.json`` (the format of the mason registry release asset).
"""

from __future__ import annotations

import dataclasses
import io
import json
import logging
import os
import urllib.parse
import zipfile
from typing import Any, Dict, List, Optional

import yaml

from common.http_client import HttpError, get_bytes
from common.logging_utils import safe_url
from locator.tokenizer import parse_params, split_scheme

from .models import InvalidRegistryRecord, RegistryItem

logger = logging.getLogger(__name__)

_ZIP_MAGIC = b"PK\x03\x04"
_ARCHIVE_MEMBER = "registry.json"

# Locator scheme -> ecosystem tag, for feeds whose records carry no tag
_SCHEME_ECOSYSTEMS = {
    "cargo": "cargo",
    "npm": "npm",
    "pypi": "pip",
    "pip": "pip",
    "golang": "go",
    "go": "go",
    "gem": "gem",
    "git": "git",
    "generic": "binary",
}


class FeedError(Exception):
    """The registry feed could not be read or decoded."""


def is_remote(location: str) -> bool:
    return location.startswith(("http://", "https://"))


def infer_ecosystem(locator: str) -> Optional[str]:
    """Guess the ecosystem tag from a locator's scheme.

    ``pkg:github/...`` locators name a release asset when they carry an
    ``asset`` parameter (binary), otherwise a repository to build (git).
    """
    split = split_scheme(urllib.parse.unquote(locator))
    if split is None:
        return None
    scheme, remainder = split
    if scheme == "github":
        _, _, parameters = remainder.partition("?")
        return "binary" if "asset" in parse_params(parameters) else "git"
    return _SCHEME_ECOSYSTEMS.get(scheme)


def _unpack_archive(payload: bytes) -> bytes:
    try:
        with zipfile.ZipFile(io.BytesIO(payload)) as archive:
            for member in archive.namelist():
                if os.path.basename(member) == _ARCHIVE_MEMBER:
                    return archive.read(member)
    except zipfile.BadZipFile as exc:
        raise FeedError(f"corrupt feed archive: {exc}") from exc
    raise FeedError(f"feed archive has no {_ARCHIVE_MEMBER}")


def decode_payload(payload: bytes) -> List[Dict[str, Any]]:
    """Decode raw feed bytes into a list of record dicts."""
    if payload.startswith(_ZIP_MAGIC):
        payload = _unpack_archive(payload)

    text = payload.decode("utf-8-sig", errors="replace")
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise FeedError(f"feed is neither JSON nor YAML: {exc}") from exc

    if isinstance(data, dict):
        for key in ("packages", "items"):
            if isinstance(data.get(key), list):
                data = data[key]
                break
    if not isinstance(data, list):
        raise FeedError("feed must contain a list of records")
    return data


def parse_records(records: List[Dict[str, Any]]) -> List[RegistryItem]:
    """Convert records into RegistryItems, skipping invalid ones."""
    items = []
    for index, record in enumerate(records):
        try:
            item = RegistryItem.from_dict(record)
        except InvalidRegistryRecord as exc:
            logger.warning("Skipping registry record #%d: %s", index, exc)
            continue
        if item.ecosystem is None:
            inferred = infer_ecosystem(item.source)
            if inferred is not None:
                item = dataclasses.replace(item, ecosystem=inferred)
        items.append(item)
    return items


def _read_local(path: str) -> bytes:
    try:
        with open(path, "rb") as fh:
            return fh.read()
    except OSError as exc:
        raise FeedError(f"cannot read feed file {path}: {exc}") from exc


def _write_cache(cache_path: str, payload: bytes) -> None:
    try:
        os.makedirs(os.path.dirname(cache_path) or ".", exist_ok=True)
        tmp_path = cache_path + ".tmp"
        with open(tmp_path, "wb") as fh:
            fh.write(payload)
        os.replace(tmp_path, cache_path)
    except OSError as exc:
        logger.warning("Could not write feed cache %s: %s", cache_path, exc)


def fetch_payload(location: str, cache_path: Optional[str] = None) -> bytes:
    """Return raw feed bytes, using the cache as a fallback for remote feeds."""
    if not is_remote(location):
        return _read_local(location)

    try:
        payload = get_bytes(location)
    except HttpError as exc:
        if cache_path and os.path.isfile(cache_path):
            logger.warning("Feed download failed (%s); using cached copy %s", exc, cache_path)
            return _read_local(cache_path)
        raise FeedError(f"cannot download feed {safe_url(location)}: {exc}") from exc

    if cache_path:
        _write_cache(cache_path, payload)
    return payload


def load_feed(location: str, cache_path: Optional[str] = None) -> List[RegistryItem]:
    """Load registry entries from a URL or local path.

    Args:
        location: http(s) URL or filesystem path.
        cache_path: Where to keep the last good download of a remote feed.

    Returns:
        Parsed registry items, invalid records skipped.

    Raises:
        FeedError: when nothing usable could be read.
    """
    payload = fetch_payload(location, cache_path)
    items = parse_records(decode_payload(payload))
    logger.info("Loaded %d registry entries from %s", len(items), safe_url(location))
    return items
