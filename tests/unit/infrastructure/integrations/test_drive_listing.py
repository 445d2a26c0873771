"""Tests for the Drive folder listing strategies."""

from collections.abc import AsyncIterator

import httpx
import pytest
from pytest_httpx import HTTPXMock

from muzak.domain.exceptions import ExternalServiceError
from muzak.domain.ports import FOLDER_MIME_TYPE
from muzak.infrastructure.integrations.drive_listing import (
    DriveApiListingStrategy,
    HtmlScrapeListingStrategy,
    scrape_entries,
)
from muzak.infrastructure.integrations.http_fetch import BoundedRedirectFetcher

FOLDER_ID = "1FolderFolderFolderFolderXYZ"
ID_A = "1AaaaaaaaaaaaaaaaaaaaaaaaaaaA"
ID_B = "1BbbbbbbbbbbbbbbbbbbbbbbbbbbB"


@pytest.fixture
async def fetcher() -> AsyncIterator[BoundedRedirectFetcher]:
    async with httpx.AsyncClient(follow_redirects=False) as client:
        yield BoundedRedirectFetcher(client)


class TestScrapeEntries:
    """Test the scrape pattern cascade."""

    def test_json_literal_shape(self) -> None:
        """Test the embedded JSON listing shape."""
        page = (
            f'[null,null,"01 - Intro.mp3",null,"{ID_A}"]'
            f'[null,null,"02 - Outro.flac",null,"{ID_B}"]'
        )

        entries = scrape_entries(page, FOLDER_ID)

        assert [(e.id, e.name) for e in entries] == [
            (ID_A, "01 - Intro.mp3"),
            (ID_B, "02 - Outro.flac"),
        ]

    def test_data_id_attribute_shape(self) -> None:
        """Test the rendered grid shape with HTML entities in names."""
        page = f'<div data-id="{ID_A}" class="row"><span>Rock &amp; Roll.mp3</span></div>'

        [entry] = scrape_entries(page, FOLDER_ID)

        assert entry.id == ID_A
        assert entry.name == "Rock & Roll.mp3"

    def test_duplicates_and_folder_id_are_dropped(self) -> None:
        """Test dedupe by id and removal of the folder's own id."""
        page = (
            f'[null,null,"a.mp3",null,"{ID_A}"]'
            f'[null,null,"a.mp3",null,"{ID_A}"]'
            f'[null,null,"self.mp3",null,"{FOLDER_ID}"]'
        )

        entries = scrape_entries(page, FOLDER_ID)

        assert [e.id for e in entries] == [ID_A]

    def test_nothing_recognized(self) -> None:
        """Test a page without any known shape."""
        assert scrape_entries("<html><body>Nothing</body></html>", FOLDER_ID) == []


class TestHtmlScrapeListingStrategy:
    """Test the page-scraping strategy."""

    async def test_lists_scraped_files(self, fetcher, httpx_mock: HTTPXMock) -> None:
        """Test that the folder page is fetched and scraped."""
        httpx_mock.add_response(
            url=f"https://drive.google.com/drive/folders/{FOLDER_ID}",
            text=f'<div data-id="{ID_A}"><span>song.mp3</span></div>',
        )

        strategy = HtmlScrapeListingStrategy(fetcher)
        entries = await strategy.list(FOLDER_ID)

        assert strategy.is_available()
        assert [e.id for e in entries] == [ID_A]


class TestDriveApiListingStrategy:
    """Test the API-key strategy."""

    def test_unavailable_without_key(self, fetcher) -> None:
        """Test that a blank key disables the strategy."""
        assert not DriveApiListingStrategy(fetcher, None).is_available()
        assert not DriveApiListingStrategy(fetcher, "  ").is_available()

    async def test_follows_pagination(self, fetcher, httpx_mock: HTTPXMock) -> None:
        """Test that nextPageToken pages are all collected."""
        httpx_mock.add_response(
            json={
                "files": [
                    {"id": ID_A, "name": "a.mp3", "mimeType": "audio/mpeg", "size": "123"}
                ],
                "nextPageToken": "page-2",
            }
        )
        httpx_mock.add_response(
            json={"files": [{"id": ID_B, "name": "CD2", "mimeType": FOLDER_MIME_TYPE}]}
        )

        entries = await DriveApiListingStrategy(fetcher, "secret").list(FOLDER_ID)

        assert [e.id for e in entries] == [ID_A, ID_B]
        assert entries[0].size == 123
        assert entries[1].is_folder
        first, second = httpx_mock.get_requests()
        assert first.url.params["key"] == "secret"
        assert f"'{FOLDER_ID}' in parents" in first.url.params["q"]
        assert "pageToken" not in first.url.params
        assert second.url.params["pageToken"] == "page-2"

    async def test_invalid_json(self, fetcher, httpx_mock: HTTPXMock) -> None:
        """Test that a garbled API answer is an external error."""
        httpx_mock.add_response(text="not json")

        with pytest.raises(ExternalServiceError):
            await DriveApiListingStrategy(fetcher, "secret").list(FOLDER_ID)
