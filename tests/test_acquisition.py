"""
Tests for the acquisition module.
"""

import asyncio
import unittest
from dataclasses import replace

from snapsync.acquisition import DownloadInterception, SnapshotAcquisitionEngine
from snapsync.dom import Document, Element
from snapsync.errors import (
    AcquisitionTimeoutError,
    ActionNotFoundError,
    InterceptionError,
    TriggerNotFoundError,
)
from snapsync.models import AcquisitionState
from tests.host_page import BLOB_URL, FAST_TIMINGS, HostPage

ARCHIVE_BYTES = b"PK\x03\x04fake-archive"


class TestSnapshotAcquisitionEngine(unittest.IsolatedAsyncioTestCase):
    """Tests for the SnapshotAcquisitionEngine class."""

    def setUp(self):
        """Set up test fixtures."""
        self.fetched = []

    async def fetch(self, url):
        self.fetched.append(url)
        await asyncio.sleep(0)
        return ARCHIVE_BYTES

    def make_engine(self, page, fetch=None, timings=FAST_TIMINGS):
        return SnapshotAcquisitionEngine(page.document, fetch or self.fetch, timings=timings)

    async def test_acquire_from_status_menu(self):
        """Test acquisition through the project status dropdown and its Export submenu."""
        page = HostPage(layout="status")
        engine = self.make_engine(page)

        payload = await engine.acquire_snapshot_archive()

        self.assertEqual(payload, ARCHIVE_BYTES)
        self.assertEqual(self.fetched, [BLOB_URL])
        self.assertEqual(page.download_clicks, 1)
        # The browser never saw the download link click
        self.assertEqual(page.saved_downloads, 0)
        self.assertEqual(engine.session.state, AcquisitionState.RESOLVED)
        self.assertEqual(engine.session.history, [
            AcquisitionState.IDLE,
            AcquisitionState.LOCATING_TRIGGER,
            AcquisitionState.MENU_OPEN,
            AcquisitionState.LOCATING_ACTION,
            AcquisitionState.INTERCEPTING,
            AcquisitionState.RESOLVED,
        ])
        self.assertFalse(engine.in_flight)

    async def test_acquire_from_legacy_button(self):
        """Test acquisition through the dedicated Export button."""
        page = HostPage(layout="legacy")
        engine = self.make_engine(page)

        payload = await engine.acquire_snapshot_archive()

        self.assertEqual(payload, ARCHIVE_BYTES)
        self.assertEqual(page.trigger_activations, 1)
        self.assertEqual(page.capture_listener_count(), 0)

    async def test_menus_render_lazily(self):
        """Test that the submenu search retries until the menu shows up."""
        page = HostPage(layout="status", menu_delay=0.005)
        timings = replace(FAST_TIMINGS, submenu_backoff_ms=5)
        engine = self.make_engine(page, timings=timings)

        payload = await engine.acquire_snapshot_archive()

        self.assertEqual(payload, ARCHIVE_BYTES)

    async def test_menu_closed_after_success(self):
        """Test that the menu is dismissed with Escape."""
        page = HostPage(layout="status")
        engine = self.make_engine(page)

        await engine.acquire_snapshot_archive()

        self.assertEqual(page.open_menus(), [])
        self.assertEqual(page.outside_clicks, 0)

    async def test_menu_closed_by_outside_click(self):
        """Test the outside click fallback when Escape does not close the menu."""
        page = HostPage(layout="status", close_on_escape=False)
        engine = self.make_engine(page)

        payload = await engine.acquire_snapshot_archive()

        self.assertEqual(payload, ARCHIVE_BYTES)
        self.assertEqual(page.outside_clicks, 1)
        self.assertEqual(page.open_menus(), [])

    async def test_trigger_not_found(self):
        """Test failure when no strategy finds an export control."""
        page = HostPage(layout="none")
        engine = self.make_engine(page)

        with self.assertRaises(TriggerNotFoundError):
            await engine.acquire_snapshot_archive()

        self.assertEqual(engine.session.state, AcquisitionState.FAILED)
        self.assertIsInstance(engine.session.error, TriggerNotFoundError)
        self.assertEqual(page.capture_listener_count(), 0)
        self.assertFalse(engine.in_flight)

    async def test_action_not_found(self):
        """Test failure when the menu opens without a download action."""
        page = HostPage(layout="legacy", with_download_action=False)
        engine = self.make_engine(page)

        with self.assertRaises(ActionNotFoundError):
            await engine.acquire_snapshot_archive()

        self.assertEqual(engine.session.history[-2], AcquisitionState.LOCATING_ACTION)
        self.assertEqual(page.capture_listener_count(), 0)
        self.assertEqual(self.fetched, [])

    async def test_submenu_item_not_found(self):
        """Test failure when the status dropdown has no Export item."""
        page = HostPage(layout="status", with_export_item=False)
        engine = self.make_engine(page)

        with self.assertRaises(ActionNotFoundError):
            await engine.acquire_snapshot_archive()

        self.assertEqual(page.capture_listener_count(), 0)

    async def test_interception_error(self):
        """Test that a failing retrieval surfaces as InterceptionError with its cause."""
        page = HostPage(layout="status")

        async def failing_fetch(url):
            raise OSError("network down")

        engine = self.make_engine(page, fetch=failing_fetch)

        with self.assertRaises(InterceptionError) as ctx:
            await engine.acquire_snapshot_archive()

        self.assertIn("network down", str(ctx.exception))
        self.assertIsInstance(ctx.exception.__cause__, OSError)
        self.assertEqual(page.capture_listener_count(), 0)
        self.assertEqual(engine.session.state, AcquisitionState.FAILED)

    async def test_timeout_when_no_link_appears(self):
        """Test the session timeout when the download never starts."""
        page = HostPage(layout="status", creates_link=False)
        engine = self.make_engine(page, timings=replace(FAST_TIMINGS, timeout_ms=50))

        with self.assertRaises(AcquisitionTimeoutError):
            await engine.acquire_snapshot_archive()

        self.assertEqual(page.download_clicks, 1)
        self.assertEqual(page.capture_listener_count(), 0)
        self.assertIsInstance(engine.session.error, AcquisitionTimeoutError)
        self.assertFalse(engine.in_flight)

    async def test_timeout_cancels_slow_retrieval(self):
        """Test that a retrieval still running at the timeout is abandoned."""
        page = HostPage(layout="status")
        finished = []

        async def hanging_fetch(url):
            await asyncio.sleep(10)
            finished.append(url)
            return ARCHIVE_BYTES

        engine = self.make_engine(page, fetch=hanging_fetch, timings=replace(FAST_TIMINGS, timeout_ms=50))

        with self.assertRaises(AcquisitionTimeoutError):
            await engine.acquire_snapshot_archive()

        await asyncio.sleep(0.01)
        self.assertEqual(finished, [])
        self.assertEqual(page.capture_listener_count(), 0)

    async def test_concurrent_calls_share_one_session(self):
        """Test that overlapping calls resolve together from one attempt."""
        page = HostPage(layout="status")
        engine = self.make_engine(page)

        first, second = await asyncio.gather(
            engine.acquire_snapshot_archive(),
            engine.acquire_snapshot_archive()
        )

        self.assertEqual(first, ARCHIVE_BYTES)
        self.assertEqual(second, ARCHIVE_BYTES)
        self.assertEqual(page.trigger_activations, 1)
        self.assertEqual(len(self.fetched), 1)

    async def test_concurrent_calls_share_failure(self):
        """Test that overlapping calls reject together from one attempt."""
        page = HostPage(layout="legacy", with_download_action=False)
        engine = self.make_engine(page)

        results = await asyncio.gather(
            engine.acquire_snapshot_archive(),
            engine.acquire_snapshot_archive(),
            return_exceptions=True
        )

        self.assertIsInstance(results[0], ActionNotFoundError)
        self.assertIs(results[0], results[1])
        self.assertEqual(page.trigger_activations, 1)

    async def test_new_session_after_completion(self):
        """Test that a finished acquisition allows a fresh one."""
        page = HostPage(layout="status")
        engine = self.make_engine(page)

        await engine.acquire_snapshot_archive()
        await engine.acquire_snapshot_archive()

        self.assertEqual(page.trigger_activations, 2)
        self.assertEqual(len(self.fetched), 2)

    async def test_cancelled_caller_does_not_cancel_session(self):
        """Test that cancelling one waiting caller leaves the shared session running."""
        page = HostPage(layout="status")
        engine = self.make_engine(page)

        first = asyncio.ensure_future(engine.acquire_snapshot_archive())
        second = asyncio.ensure_future(engine.acquire_snapshot_archive())
        await asyncio.sleep(0)
        first.cancel()

        self.assertEqual(await second, ARCHIVE_BYTES)
        self.assertTrue(first.cancelled())


class TestDownloadInterception(unittest.IsolatedAsyncioTestCase):
    """Tests for the DownloadInterception class."""

    async def fetch(self, url):
        return b"data"

    async def test_install_and_release(self):
        """Test that the capture listener lives exactly as long as the context."""
        document = Document()
        result = asyncio.get_running_loop().create_future()

        with DownloadInterception(document, self.fetch, result):
            self.assertEqual(document.listener_count("click", capture=True), 1)

        self.assertEqual(document.listener_count("click", capture=True), 0)

    async def test_ignores_unrelated_clicks(self):
        """Test that clicks outside download elements pass through untouched."""
        document = Document()
        button = document.body.append_child(Element("button", text="Run"))
        result = asyncio.get_running_loop().create_future()

        with DownloadInterception(document, self.fetch, result):
            allowed = button.click()

        self.assertTrue(allowed)
        self.assertFalse(result.done())

    async def test_download_click_without_blob_link(self):
        """Test that a download click with no blob link is consumed and leaves the result pending."""
        document = Document()
        button = document.body.append_child(Element("button", {"download": ""}, text="Save"))
        clicks = []
        button.add_event_listener("click", clicks.append)
        result = asyncio.get_running_loop().create_future()

        with DownloadInterception(document, self.fetch, result):
            allowed = button.click()

        self.assertFalse(allowed)
        self.assertEqual(clicks, [])
        self.assertFalse(result.done())

    async def test_falls_back_to_document_blob_link(self):
        """Test that a download button without href resolves through the page's blob link."""
        document = Document()
        document.body.append_child(Element("a", {"download": "p.zip", "href": "blob:x/1"}))
        button = document.body.append_child(Element("button", {"download": ""}, text="Save"))
        result = asyncio.get_running_loop().create_future()
        urls = []

        async def fetch(url):
            urls.append(url)
            return b"zip"

        with DownloadInterception(document, fetch, result):
            allowed = button.click()
            payload = await result

        self.assertFalse(allowed)
        self.assertEqual(payload, b"zip")
        self.assertEqual(urls, ["blob:x/1"])


if __name__ == "__main__":
    unittest.main()
