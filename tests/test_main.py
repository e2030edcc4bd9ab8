import io
import re

from PIL import Image

from tests.factories import (
    create_dicom,
    create_frameless_dicom,
    create_multiframe_dicom,
)


def upload(client, data: bytes, filename: str = "scan.dcm") -> str:
    response = client.post(
        "/upload", files={"dicom": (filename, data, "application/dicom")}
    )
    assert response.status_code == 200, response.text
    return response.json()["file"]


def test_health(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "OK"}


def test_upload_returns_timestamped_key(client, settings):
    data = create_dicom()

    key = upload(client, data, "scan.dcm")

    assert re.fullmatch(r"\d+_scan\.dcm", key)
    assert (settings.upload_dir / key).read_bytes() == data


def test_upload_accepts_any_bytes(client, settings):
    key = upload(client, b"not dicom at all", "notes.txt")
    assert (settings.upload_dir / key).read_bytes() == b"not dicom at all"


def test_upload_without_dicom_field_is_400(client, settings):
    response = client.post(
        "/upload", files={"file": ("scan.dcm", b"data", "application/dicom")}
    )

    assert response.status_code == 400
    assert response.json()["error"] == "client_input"
    assert list(settings.upload_dir.iterdir()) == []


def test_upload_with_no_body_is_400(client):
    assert client.post("/upload").status_code == 400


def test_upload_then_header_and_image(client):
    key = upload(client, create_dicom(patient_name="Doe^John", rows=32, cols=48))

    header = client.get("/header", params={"file": key, "tag": "00100010"})
    assert header.status_code == 200
    assert header.headers["content-type"].startswith("text/plain")
    assert header.text == "Tag 00100010 → Doe^John"

    image = client.get("/image", params={"file": key})
    assert image.status_code == 200
    assert image.headers["content-type"] == "image/png"
    assert Image.open(io.BytesIO(image.content)).size == (48, 32)


def test_header_missing_params_is_400(client):
    key = upload(client, create_dicom())

    assert client.get("/header", params={"file": key}).status_code == 400
    assert client.get("/header", params={"tag": "00100010"}).status_code == 400
    assert client.get("/header").status_code == 400


def test_header_malformed_tag_is_400(client):
    key = upload(client, create_dicom())

    for tag in ["12", "GGGGGGGG", "0010,0010"]:
        response = client.get("/header", params={"file": key, "tag": tag})
        assert response.status_code == 400
        assert response.json()["error"] == "client_input"


def test_header_tag_absent_is_404(client):
    key = upload(client, create_dicom())

    response = client.get("/header", params={"file": key, "tag": "00091010"})

    assert response.status_code == 404
    assert response.json()["error"] == "tag_not_found"


def test_header_unparseable_file_is_500(client):
    key = upload(client, b"garbage", "bad.dcm")

    response = client.get("/header", params={"file": key, "tag": "00100010"})

    assert response.status_code == 500
    assert response.json()["error"] == "decode"


def test_unknown_file_is_404(client):
    response = client.get("/image", params={"file": "123_unknown.dcm"})

    assert response.status_code == 404
    assert response.json()["error"] == "blob_not_found"


def test_path_like_file_is_400(client):
    response = client.get("/header", params={"file": "../secret", "tag": "00100010"})
    assert response.status_code == 400


def test_image_missing_file_param_is_400(client):
    assert client.get("/image").status_code == 400


def test_image_not_found_kinds_are_distinct(client):
    no_pixels = upload(client, create_dicom(with_pixels=False), "a.dcm")
    no_frames = upload(client, create_frameless_dicom(0), "b.dcm")

    first = client.get("/image", params={"file": no_pixels})
    second = client.get("/image", params={"file": no_frames})

    assert first.status_code == second.status_code == 404
    assert first.json()["error"] == "no_pixel_data"
    assert second.json()["error"] == "no_frames"


def test_image_unparseable_file_is_500(client):
    key = upload(client, b"garbage", "bad.dcm")

    response = client.get("/image", params={"file": key})

    assert response.status_code == 500
    assert response.json()["error"] == "decode"


def test_image_multiframe_returns_first_frame(client):
    key = upload(client, create_multiframe_dicom(num_frames=3), "multi.dcm")

    response = client.get("/image", params={"file": key})

    image = Image.open(io.BytesIO(response.content))
    assert image.getpixel((0, 0)) == 0
    assert image.getpixel((image.width - 1, 0)) == 255


def test_repeated_queries_are_identical(client):
    key = upload(client, create_dicom())

    headers = {client.get("/header", params={"file": key, "tag": "00100010"}).text for _ in range(3)}
    images = {client.get("/image", params={"file": key}).content for _ in range(3)}

    assert len(headers) == 1
    assert len(images) == 1


def test_overlong_file_key_is_400(client):
    for path, params in [
        ("/header", {"file": "1_" + "a" * 300, "tag": "00100010"}),
        ("/image", {"file": "1_" + "a" * 300}),
    ]:
        response = client.get(path, params=params)
        assert response.status_code == 400
        assert response.json()["error"] == "client_input"
