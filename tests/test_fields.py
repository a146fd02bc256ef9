import io
from pathlib import Path

import pytest
from PIL import Image

from nft_updater.errors import FieldValueError
from nft_updater.fields import FieldKind, build_update_form, resolve_field

REQUIRED = {
    "network": "devnet",
    "token_address": "TokenMint111",
    "update_authority_address": "Authority111",
}

BLANK_OPTIONALS = {
    "name": "",
    "symbol": "",
    "description": "",
    "attributes": "",
    "royalty": "",
    "imageFilePath": "",
    "data": "",
    "fee_payer_address": "",
}


def test_only_changed_name_produces_one_optional_field() -> None:
    parameters = {**REQUIRED, **BLANK_OPTIONALS, "name": "Renamed"}

    with build_update_form(parameters) as form:
        assert form.optional_fields == ["name"]
        assert form.data["name"] == "Renamed"
        assert not form.files


def test_all_blank_optionals_send_only_required_fields() -> None:
    parameters = {**REQUIRED, **BLANK_OPTIONALS}

    with build_update_form(parameters) as form:
        assert form.optional_fields == []
        assert form.data == REQUIRED


def test_missing_required_field_is_rejected_locally() -> None:
    parameters = {**REQUIRED, "update_authority_address": "  "}

    with pytest.raises(FieldValueError) as excinfo:
        build_update_form(parameters)

    assert "update_authority_address" in str(excinfo.value)


def test_json_fields_are_compacted_when_valid() -> None:
    parameters = {**REQUIRED, "attributes": '[ {"trait_type": "eyes", "value": "blue"} ]'}

    with build_update_form(parameters) as form:
        assert form.data["attributes"] == '[{"trait_type":"eyes","value":"blue"}]'
        assert form.raw_json_fields == []


def test_invalid_json_is_sent_verbatim_and_flagged() -> None:
    parameters = {**REQUIRED, "service_charge": "{receiver: nobody"}

    with build_update_form(parameters) as form:
        assert form.data["service_charge"] == "{receiver: nobody"
        assert form.raw_json_fields == ["service_charge"]


def test_structured_json_values_from_batch_records_are_serialized() -> None:
    parameters = {**REQUIRED, "attributes": [{"trait_type": "hat", "value": "red"}]}

    with build_update_form(parameters) as form:
        assert form.data["attributes"] == '[{"trait_type":"hat","value":"red"}]'


def test_file_fields_are_streamed_and_closed(tmp_path: Path) -> None:
    payload = tmp_path / "payload.bin"
    payload.write_bytes(b"digital")

    form = build_update_form({**REQUIRED, "data": str(payload)})
    filename, handle = form.files["data"]

    assert filename == "payload.bin"
    assert handle.read() == b"digital"
    assert "data" not in form.data
    form.close()
    assert handle.closed


def test_image_is_compressed_to_jpeg_before_upload(tmp_path: Path) -> None:
    image_path = tmp_path / "art.png"
    Image.new("RGBA", (8, 8), (255, 0, 0, 128)).save(image_path, "PNG")

    with build_update_form({**REQUIRED, "imageFilePath": str(image_path)}) as form:
        filename, handle = form.files["image"]
        content = handle.read()
        assert "imageFilePath" not in form.data

    assert filename == "art_compressed.jpg"
    assert content.startswith(b"\xff\xd8")
    with Image.open(io.BytesIO(content)) as uploaded:
        assert uploaded.format == "JPEG"
        assert uploaded.mode == "RGB"


def test_unreadable_image_is_a_local_field_error(tmp_path: Path) -> None:
    image_path = tmp_path / "art.png"
    image_path.write_bytes(b"\x89PNG not really")

    with pytest.raises(FieldValueError):
        build_update_form({**REQUIRED, "imageFilePath": str(image_path)})


def test_missing_file_is_reported_before_any_request(tmp_path: Path) -> None:
    with pytest.raises(FieldValueError):
        build_update_form({**REQUIRED, "data": str(tmp_path / "missing.bin")})


def test_unknown_fields_are_forwarded_as_text() -> None:
    spec = resolve_field("external_url")

    assert spec.kind is FieldKind.TEXT
    with build_update_form({**REQUIRED, "external_url": "https://example.com"}) as form:
        assert form.data["external_url"] == "https://example.com"
