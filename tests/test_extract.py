"""Tests for archive extraction and XML directory discovery."""

import asyncio
from pathlib import Path

import pytest

from grantgraph import extract
from grantgraph.errors import ExtractionError
from grantgraph.extract import extract_archive, list_xml_files, locate_xml_dir


class FakeProcess:
    def __init__(self, returncode, stderr=b""):
        self.returncode = returncode
        self._stderr = stderr

    async def communicate(self):
        return b"", self._stderr


def fake_unzip(returncode, files=()):
    """Stand-in for create_subprocess_exec that drops ``files`` into the -d directory."""
    calls = []

    async def create_subprocess_exec(*args, **kwargs):
        calls.append(args)
        dest = args[args.index("-d") + 1]
        for name in files:
            path = Path(dest) / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(b"<Return/>")
        return FakeProcess(returncode, stderr=b"bad CRC")

    create_subprocess_exec.calls = calls
    return create_subprocess_exec


class TestExtractArchive:
    def test_success(self, tmp_path, monkeypatch):
        fake = fake_unzip(0, ["a.xml", "b.xml"])
        monkeypatch.setattr(extract.asyncio, "create_subprocess_exec", fake)
        count = asyncio.run(extract_archive(tmp_path / "x.zip", tmp_path / "out"))
        assert count == 2
        assert fake.calls[0][:3] == ("unzip", "-q", "-o")

    def test_nonzero_exit_with_files_is_tolerated(self, tmp_path, monkeypatch):
        monkeypatch.setattr(extract.asyncio, "create_subprocess_exec", fake_unzip(3, ["a.xml"]))
        assert asyncio.run(extract_archive(tmp_path / "x.zip", tmp_path / "out")) == 1

    def test_nonzero_exit_without_files(self, tmp_path, monkeypatch):
        monkeypatch.setattr(extract.asyncio, "create_subprocess_exec", fake_unzip(9))
        with pytest.raises(ExtractionError, match="bad CRC"):
            asyncio.run(extract_archive(tmp_path / "x.zip", tmp_path / "out"))

    def test_clean_exit_without_files(self, tmp_path, monkeypatch):
        monkeypatch.setattr(extract.asyncio, "create_subprocess_exec", fake_unzip(0))
        with pytest.raises(ExtractionError):
            asyncio.run(extract_archive(tmp_path / "x.zip", tmp_path / "out"))

    def test_unzip_missing(self, tmp_path):
        with pytest.raises(ExtractionError):
            asyncio.run(extract_archive(tmp_path / "x.zip", tmp_path / "out",
                                        unzip=str(tmp_path / "no-such-unzip")))


class TestLocateXmlDir:
    def test_nested_archive_folder(self, tmp_path):
        (tmp_path / "2024_TEOS_XML_01A").mkdir()
        assert locate_xml_dir(tmp_path, "2024_TEOS_XML_01A") == tmp_path / "2024_TEOS_XML_01A"

    def test_flat(self, tmp_path):
        (tmp_path / "1.xml").write_bytes(b"<Return/>")
        assert locate_xml_dir(tmp_path, "2024_TEOS_XML_01A") == tmp_path

    def test_other_subdirectory(self, tmp_path):
        (tmp_path / "a_empty").mkdir()
        (tmp_path / "b_filings").mkdir()
        (tmp_path / "b_filings" / "1.xml").write_bytes(b"<Return/>")
        assert locate_xml_dir(tmp_path, "2024_TEOS_XML_01A") == tmp_path / "b_filings"

    def test_nothing_found(self, tmp_path):
        (tmp_path / "empty").mkdir()
        with pytest.raises(ExtractionError):
            locate_xml_dir(tmp_path, "2024_TEOS_XML_01A")

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ExtractionError):
            locate_xml_dir(tmp_path / "missing", "2024_TEOS_XML_01A")


def test_list_xml_files_sorted(tmp_path):
    for name in ["b.xml", "a.xml", "notes.txt"]:
        (tmp_path / name).write_text("x")
    assert [p.name for p in list_xml_files(tmp_path)] == ["a.xml", "b.xml"]
