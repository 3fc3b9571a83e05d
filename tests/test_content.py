"""Tests for the notes sheet parser and loaders."""
from __future__ import annotations

import httpx
import pytest

from notes_trainer.config import Settings
from notes_trainer.content import fetch_content, load_content, load_content_file
from notes_trainer.parsers.content_parser import ContentError, parse_content_csv


class TestParseContentCsv:
    def test_groups_by_tag_in_order(self, notes_csv):
        content = parse_content_csv(notes_csv)
        assert content.tags() == ["Biology", "History", "Untagged"]
        assert [i.title for i in content.groups[0].items] == ["Mitochondria", "Ribosome"]

    def test_rows_without_title_or_content_skipped(self, notes_csv):
        content = parse_content_csv(notes_csv)
        assert len(content) == 4
        assert all(i.title for i in content.items())

    def test_ids_count_valid_rows(self, notes_csv):
        content = parse_content_csv(notes_csv)
        assert content.item_ids() == ["1", "2", "3", "4"]
        assert content.item("3").title == "Treaty of Westphalia"

    def test_fields(self, notes_csv):
        content = parse_content_csv(notes_csv)
        mito = content.item("1")
        assert mito.content == "The **powerhouse** of the cell."
        assert mito.tag == "Biology"
        assert mito.group_id == "Biology"
        assert mito.image_url is None
        assert mito.declared_difficulty == "easy"
        assert content.item("2").image_url == "https://example.com/ribosome.png"
        assert content.item("4").tag == "Untagged"

    def test_multiline_content(self):
        text = 'title,content\nList,"- one\n- two"\n'
        assert parse_content_csv(text).item("1").content == "- one\n- two"

    def test_explicit_ids(self):
        text = "id,title,content,tag\nbio-7,Cell,Unit of life,Biology\nbio-8,Gene,Unit of heredity,Biology\n"
        assert parse_content_csv(text).item_ids() == ["bio-7", "bio-8"]

    def test_duplicate_ids_keep_first(self):
        text = "id,title,content\nx,First,a\nx,Second,b\n"
        content = parse_content_csv(text)
        assert len(content) == 1
        assert content.item("x").title == "First"

    def test_missing_required_column(self):
        with pytest.raises(ContentError, match="content"):
            parse_content_csv("title,tag\nCell,Biology\n")

    def test_empty_sheet(self):
        with pytest.raises(ContentError):
            parse_content_csv("")

    def test_header_only(self):
        assert len(parse_content_csv("title,content,tag\n")) == 0


class TestLoadContentFile:
    def test_reads_file(self, tmp_path, notes_csv):
        path = tmp_path / "notes.csv"
        path.write_text(notes_csv, encoding="utf-8")
        assert len(load_content_file(path)) == 4

    def test_missing_file(self, tmp_path):
        with pytest.raises(ContentError):
            load_content_file(tmp_path / "nope.csv")


class TestFetchContent:
    @pytest.mark.asyncio
    async def test_fetch(self, notes_csv):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/sheet.csv"
            return httpx.Response(200, text=notes_csv)

        content = await fetch_content("https://sheets.example.com/sheet.csv", transport=httpx.MockTransport(handler))
        assert len(content) == 4

    @pytest.mark.asyncio
    async def test_http_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(ContentError):
            await fetch_content("https://sheets.example.com/sheet.csv", transport=transport)

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        with pytest.raises(ContentError):
            await fetch_content("https://sheets.example.com/sheet.csv", transport=httpx.MockTransport(handler))


class TestLoadContent:
    @pytest.mark.asyncio
    async def test_file_wins(self, tmp_path, notes_csv):
        path = tmp_path / "notes.csv"
        path.write_text(notes_csv, encoding="utf-8")
        settings = Settings(content_file=str(path), content_url="https://unused.example.com")
        assert len(await load_content(settings)) == 4

    @pytest.mark.asyncio
    async def test_url(self, notes_csv):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text=notes_csv))
        settings = Settings(content_url="https://sheets.example.com/sheet.csv")
        assert len(await load_content(settings, transport)) == 4

    @pytest.mark.asyncio
    async def test_nothing_configured(self):
        assert len(await load_content(Settings())) == 0
