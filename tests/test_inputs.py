import json

import pytest

from gallery_harvester.errors import InputError
from gallery_harvester.inputs import normalize_url_list, read_url_list, validate_urls


@pytest.mark.parametrize(
    "data",
    [
        ["https://a.example.com", "https://b.example.com"],
        {"urls": ["https://a.example.com", "https://b.example.com"]},
        {"galleries": ["https://a.example.com", "https://b.example.com"]},
        {"items": ["https://a.example.com", {"url": "https://b.example.com"}, {"id": 3}]},
    ],
)
def test_accepted_shapes(data):
    assert normalize_url_list(data) == ["https://a.example.com", "https://b.example.com"]


@pytest.mark.parametrize("data", [{"links": []}, "https://a.example.com", 42, None])
def test_unrecognized_shape_is_an_input_error(data):
    with pytest.raises(InputError):
        normalize_url_list(data)


def test_read_url_list(tmp_path):
    path = tmp_path / "galleries.json"
    path.write_text(json.dumps({"urls": ["https://a.example.com/g"]}), encoding="utf-8")

    assert read_url_list(path) == ["https://a.example.com/g"]


def test_missing_file(tmp_path):
    with pytest.raises(InputError, match="not found"):
        read_url_list(tmp_path / "nope.json")


def test_malformed_json(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{urls: [", encoding="utf-8")

    with pytest.raises(InputError, match="Malformed JSON"):
        read_url_list(path)


def test_validate_urls_drops_invalid_and_duplicates():
    urls = [
        "https://a.example.com/g",
        "not a url",
        " https://a.example.com/g ",
        "ftp://files.example.com/x",
        "http://b.example.com/g",
    ]

    assert validate_urls(urls) == ["https://a.example.com/g", "http://b.example.com/g"]
