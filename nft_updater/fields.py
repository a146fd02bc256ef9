"""Update request fields and multipart form assembly."""

from __future__ import annotations

import enum
import io
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, Mapping

from PIL import Image

from .errors import FieldValueError

logger = logging.getLogger(__name__)

COMPACT_JSON_SEPARATORS = (",", ":")
IMAGE_WIRE_NAME = "image"
JPEG_QUALITY = 90


class FieldKind(enum.Enum):
    TEXT = "text"
    JSON_LENIENT = "json-lenient"
    FILE_PATH = "file-path"


@dataclass(frozen=True)
class UpdateField:
    name: str
    kind: FieldKind
    wire_name: str
    prompt: str
    required: bool = False


UPDATE_FIELDS: tuple[UpdateField, ...] = (
    UpdateField(
        "network", FieldKind.TEXT, "network", "Enter the network (testnet/devnet/mainnet-beta)", True
    ),
    UpdateField("token_address", FieldKind.TEXT, "token_address", "Enter the token address", True),
    UpdateField(
        "update_authority_address",
        FieldKind.TEXT,
        "update_authority_address",
        "Enter the update authority address",
        True,
    ),
    UpdateField("name", FieldKind.TEXT, "name", "Enter the NFT name"),
    UpdateField("symbol", FieldKind.TEXT, "symbol", "Enter the NFT symbol"),
    UpdateField("description", FieldKind.TEXT, "description", "Enter the NFT description"),
    UpdateField(
        "attributes", FieldKind.JSON_LENIENT, "attributes", "Enter the attributes in JSON format"
    ),
    UpdateField("royalty", FieldKind.TEXT, "royalty", "Enter the royalty (0-100)"),
    UpdateField("imageFilePath", FieldKind.FILE_PATH, "image", "Enter the path to image file"),
    UpdateField("data", FieldKind.FILE_PATH, "data", "Enter the path to digital data file"),
    UpdateField(
        "service_charge",
        FieldKind.JSON_LENIENT,
        "service_charge",
        "Enter the service charge in JSON format",
    ),
    UpdateField(
        "fee_payer_address",
        FieldKind.TEXT,
        "fee_payer_address",
        "Enter the fee payer address that should pay the fee "
        "(leave blank if the update authority should pay)",
    ),
)

FIELDS_BY_NAME: dict[str, UpdateField] = {item.name: item for item in UPDATE_FIELDS}
# Batch files may use the wire name for the image path.
FIELDS_BY_NAME["image"] = FIELDS_BY_NAME["imageFilePath"]

REQUIRED_FIELDS = tuple(item.name for item in UPDATE_FIELDS if item.required)


def resolve_field(name: str) -> UpdateField:
    """Return the field definition for ``name``; unknown names are plain text."""

    known = FIELDS_BY_NAME.get(name)
    if known is not None:
        return known
    return UpdateField(name, FieldKind.TEXT, name, name)


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


@dataclass
class UpdateForm:
    """Multipart body for one update request.

    ``data`` holds text parts, ``files`` holds file objects keyed by
    wire name, ``log_data`` is a printable summary and ``raw_json_fields``
    lists JSON fields that were sent verbatim because they did not parse.
    """

    data: dict[str, str] = field(default_factory=dict)
    files: dict[str, tuple[str, IO[bytes]]] = field(default_factory=dict)
    log_data: dict[str, str] = field(default_factory=dict)
    raw_json_fields: list[str] = field(default_factory=list)

    @property
    def optional_fields(self) -> list[str]:
        names = list(self.data) + list(self.files)
        return [name for name in names if name not in REQUIRED_FIELDS]

    def multipart_parts(self) -> list[tuple[str, tuple[str | None, Any]]]:
        """Return every part in the shape ``requests`` expects for ``files=``.

        Text fields become ``(None, value)`` parts so the body is
        ``multipart/form-data`` even when no file is attached.
        """

        parts: list[tuple[str, tuple[str | None, Any]]] = [
            (name, (None, value)) for name, value in self.data.items()
        ]
        parts.extend((name, part) for name, part in self.files.items())
        return parts

    def close(self) -> None:
        for _filename, handle in self.files.values():
            handle.close()
        self.files.clear()

    def __enter__(self) -> "UpdateForm":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


def _encode_json_lenient(spec: UpdateField, value: Any, form: UpdateForm) -> str:
    if not isinstance(value, str):
        return json.dumps(value, separators=COMPACT_JSON_SEPARATORS)
    try:
        parsed = json.loads(value)
    except ValueError:
        logger.warning(
            "Field %s is not valid JSON; sending it as a raw string", spec.name
        )
        form.raw_json_fields.append(spec.wire_name)
        return value
    return json.dumps(parsed, separators=COMPACT_JSON_SEPARATORS)


def _compress_image(spec: UpdateField, path: Path) -> tuple[str, IO[bytes]]:
    """Re-encode the image as a quality 90 JPEG held in memory."""

    buffer = io.BytesIO()
    try:
        with Image.open(path) as image:
            image.convert("RGB").save(buffer, "JPEG", quality=JPEG_QUALITY)
    except (OSError, ValueError) as exc:
        raise FieldValueError(f"Could not compress image for {spec.name}: {path}: {exc}") from exc
    buffer.seek(0)
    logger.debug("Compressed %s to %d bytes", path, buffer.getbuffer().nbytes)
    return f"{path.stem}_compressed.jpg", buffer


def _open_file_part(spec: UpdateField, value: Any) -> tuple[str, IO[bytes]]:
    path = Path(str(value)).expanduser()
    if not path.is_file():
        raise FieldValueError(f"File for {spec.name} not found: {path}")
    if spec.wire_name == IMAGE_WIRE_NAME:
        return _compress_image(spec, path)
    return path.name, path.open("rb")


def build_update_form(parameters: Mapping[str, Any]) -> UpdateForm:
    """Assemble the multipart form for ``parameters``.

    Blank values are omitted so the API can tell "not provided" apart from an
    explicit value. Required fields must be present.
    """

    missing = [name for name in REQUIRED_FIELDS if is_blank(parameters.get(name))]
    if missing:
        raise FieldValueError(f"Missing required field(s): {', '.join(missing)}")

    form = UpdateForm()
    try:
        for name, value in parameters.items():
            if is_blank(value):
                continue
            spec = resolve_field(name)
            if spec.kind is FieldKind.FILE_PATH:
                form.files[spec.wire_name] = _open_file_part(spec, value)
                form.log_data[name] = f"file ({value})"
            elif spec.kind is FieldKind.JSON_LENIENT:
                encoded = _encode_json_lenient(spec, value, form)
                form.data[spec.wire_name] = encoded
                form.log_data[name] = encoded
            else:
                form.data[spec.wire_name] = str(value)
                form.log_data[name] = str(value)
    except BaseException:
        form.close()
        raise
    return form
