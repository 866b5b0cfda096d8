import json
from pathlib import Path

import pytest

from gallery_harvester import cli
from gallery_harvester.models import JobFailure, RunSummary


@pytest.fixture
def fake_harvest(monkeypatch):
    calls = []

    async def harvest(urls, config):
        calls.append((list(urls), config))
        return RunSummary(
            succeeded_count=len(urls) - 1,
            failed_urls=[JobFailure(url=urls[-1], error="timed out")],
        )

    monkeypatch.setattr(cli, "harvest", harvest)
    return calls


def test_help_exits_zero(capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--help"])

    assert excinfo.value.code == 0
    assert "--maxPerGallery" in capsys.readouterr().out


def test_missing_url_and_input_exits_one(fake_harvest):
    assert cli.main([]) == 1
    assert fake_harvest == []


def test_no_valid_urls_exits_one(fake_harvest):
    assert cli.main(["--url", "not-a-url"]) == 1
    assert fake_harvest == []


def test_missing_input_file_exits_one(tmp_path, fake_harvest):
    assert cli.main(["--input", str(tmp_path / "missing.json")]) == 1


def test_partial_failures_still_exit_zero(tmp_path, fake_harvest):
    path = tmp_path / "list.json"
    path.write_text(
        json.dumps({"items": ["https://a.example.com/g", {"url": "https://b.example.com/g"}]}),
        encoding="utf-8",
    )

    code = cli.main(
        [
            "-i", str(path),
            "-c", "2",
            "-d", str(tmp_path / "out"),
            "--headless", "false",
            "--skipExisting", "false",
            "--maxPerGallery", "5",
            "--strategy", "next-button",
        ]
    )

    assert code == 0
    urls, config = fake_harvest[0]
    assert urls == ["https://a.example.com/g", "https://b.example.com/g"]
    assert config.concurrency == 2
    assert config.download_root == Path(tmp_path / "out").resolve()
    assert config.headless is False
    assert config.skip_existing is False
    assert config.max_per_gallery == 5
    assert config.strategy == "paginated"


def test_defaults(fake_harvest):
    assert cli.main(["--url", "https://a.example.com/g", "--headless"]) == 0

    _, config = fake_harvest[0]
    assert config.headless is True
    assert config.concurrency == 4
    assert config.skip_existing is True
    assert config.max_per_gallery is None
    assert config.cap is None
    assert config.strategy == "generic"
    assert config.download_root.name == "downloads"


def test_uncaught_fault_exits_one(monkeypatch):
    async def explode(urls, config):
        raise RuntimeError("playwright driver missing")

    monkeypatch.setattr(cli, "harvest", explode)

    assert cli.main(["--url", "https://a.example.com/g"]) == 1
