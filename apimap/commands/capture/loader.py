"""Load and write captures.

Two on-disk forms are supported:

- a single ``.json`` file holding ``{"manifest", "exchanges", "events"}``;
- a ``.zip`` bundle with ``manifest.json``, one ``exchanges/<id>.json`` per
  exchange and an optional ``events.json`` array.
"""

from __future__ import annotations

from io import BytesIO
import json
import logging
from pathlib import Path
import zipfile

from pydantic import TypeAdapter, ValidationError

from apimap.commands.capture.types import CaptureBundle
from apimap.formats.capture import CaptureFile, CaptureManifest, Exchange, RecorderEvent

logger = logging.getLogger(__name__)

_events_adapter: TypeAdapter[list[RecorderEvent]] = TypeAdapter(list[RecorderEvent])


class CaptureLoadError(Exception):
    """Raised when a capture file cannot be read or does not match the format."""


def load_bundle(path: str | Path) -> CaptureBundle:
    """Load a capture from a .json or .zip file on disk."""
    path = Path(path)
    if not path.exists():
        raise CaptureLoadError(f"Capture not found: {path}")
    if path.suffix.lower() == ".zip":
        try:
            with zipfile.ZipFile(path, "r") as zf:
                return _load_from_zipfile(zf)
        except zipfile.BadZipFile as e:
            raise CaptureLoadError(f"{path}: not a valid zip bundle ({e})") from e
    return load_bundle_json(path.read_bytes(), source=str(path))


def load_bundle_bytes(data: bytes) -> CaptureBundle:
    """Load a zip capture bundle from in-memory bytes."""
    try:
        with zipfile.ZipFile(BytesIO(data), "r") as zf:
            return _load_from_zipfile(zf)
    except zipfile.BadZipFile as e:
        raise CaptureLoadError(f"not a valid zip bundle ({e})") from e


def load_bundle_json(data: bytes | str, source: str = "<memory>") -> CaptureBundle:
    """Load a single-file JSON capture.

    The manifest and events must be valid; malformed exchanges are dropped.
    """
    try:
        raw = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise CaptureLoadError(f"{source}: not valid JSON ({e})") from e
    if not isinstance(raw, dict):
        raise CaptureLoadError(f"{source}: invalid capture (expected a JSON object)")

    raw_exchanges = raw.pop("exchanges", None) or []
    if not isinstance(raw_exchanges, list):
        raise CaptureLoadError(f"{source}: invalid capture (exchanges must be a list)")
    try:
        capture = CaptureFile.model_validate(raw)
    except ValidationError as e:
        raise CaptureLoadError(f"{source}: invalid capture ({e.error_count()} errors)\n{e}") from e

    exchanges: list[Exchange] = []
    for index, item in enumerate(raw_exchanges):
        try:
            exchanges.append(Exchange.model_validate(item))
        except ValidationError as e:
            logger.debug("Skipping malformed exchange #%d in %s: %s", index, source, e)

    return CaptureBundle(
        manifest=capture.manifest,
        exchanges=exchanges,
        events=list(capture.events),
    )


def _load_from_zipfile(zf: zipfile.ZipFile) -> CaptureBundle:
    names = set(zf.namelist())
    if "manifest.json" not in names:
        raise CaptureLoadError("zip bundle has no manifest.json")
    try:
        manifest = CaptureManifest.model_validate_json(zf.read("manifest.json"))
    except ValidationError as e:
        raise CaptureLoadError(f"invalid manifest.json\n{e}") from e

    exchanges: list[Exchange] = []
    exchange_files = sorted(
        n for n in names if n.startswith("exchanges/") and n.endswith(".json")
    )
    for ef in exchange_files:
        try:
            exchanges.append(Exchange.model_validate_json(zf.read(ef)))
        except ValidationError as e:
            # malformed exchanges are dropped, the rest of the bundle still loads
            logger.debug("Skipping malformed exchange %s: %s", ef, e)

    events: list[RecorderEvent] = []
    if "events.json" in names:
        try:
            events = _events_adapter.validate_json(zf.read("events.json"))
        except ValidationError as e:
            raise CaptureLoadError(f"invalid events.json\n{e}") from e

    return CaptureBundle(manifest=manifest, exchanges=exchanges, events=events)


def write_bundle(bundle: CaptureBundle, path: str | Path) -> None:
    """Write a capture to disk; the suffix (.zip or .json) selects the form."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() == ".zip":
        with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as zf:
            _write_to_zipfile(bundle, zf)
        return
    capture = CaptureFile(
        manifest=bundle.manifest, exchanges=bundle.exchanges, events=bundle.events
    )
    path.write_text(capture.model_dump_json(indent=2))


def write_bundle_bytes(bundle: CaptureBundle) -> bytes:
    """Write a capture bundle to in-memory zip bytes."""
    buf = BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        _write_to_zipfile(bundle, zf)
    return buf.getvalue()


def _write_to_zipfile(bundle: CaptureBundle, zf: zipfile.ZipFile) -> None:
    zf.writestr("manifest.json", bundle.manifest.model_dump_json(indent=2))
    for ex in bundle.exchanges:
        zf.writestr(f"exchanges/{ex.exchange_id}.json", ex.model_dump_json(indent=2))
    zf.writestr(
        "events.json",
        json.dumps(_events_adapter.dump_python(bundle.events, mode="json"), indent=2),
    )
