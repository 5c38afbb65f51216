"""
Acquisition module for project snapshot sync.

This module drives the host page through its export menu and captures the
downloaded project archive before the browser saves it.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence

from snapsync.dom import Document, Element, dispatch_full_click, dispatch_hover, dispatch_key
from snapsync.errors import (
    AcquisitionError,
    AcquisitionTimeoutError,
    ActionNotFoundError,
    InterceptionError,
    TriggerNotFoundError,
)
from snapsync.locators import (
    DEFAULT_STRATEGIES,
    LocatorStrategy,
    find_download_action,
    find_open_menus,
    find_submenu_item,
    locate_trigger,
)
from snapsync.models import AcquisitionSession, AcquisitionState, TriggerControl

FetchBytes = Callable[[str], Awaitable[bytes]]


@dataclass
class AcquisitionTimings:
    """
    Delays and retry budgets of one acquisition, in milliseconds.

    The submenu and action searches use their own backoff and attempt counts;
    the host renders the two menus differently.
    """
    settle_delay_ms: int = 200
    submenu_backoff_ms: int = 150
    submenu_attempts: int = 4
    submenu_settle_ms: int = 250
    action_backoff_ms: int = 200
    action_attempts: int = 3
    timeout_ms: int = 10000
    dismiss_delay_ms: int = 300
    dismiss_fallback_ms: int = 100


async def _sleep_ms(ms: float):
    await asyncio.sleep(ms / 1000.0)


def _is_download_element(element: Element) -> bool:
    return element.tag_name in ('a', 'button') and element.has_attribute('download')


def _is_blob_link(element: Element) -> bool:
    return (element.tag_name == 'a'
            and element.has_attribute('download')
            and (element.get_attribute('href') or '').startswith('blob:'))


class DownloadInterception:
    """
    Capture-phase click listener that steals the next download.

    Installing registers the listener on the document; release removes it and
    cancels a retrieval that is still running. Use it as a context manager or
    call install() and release() explicitly.
    """

    def __init__(self, document: Document, fetch_bytes: FetchBytes, result: asyncio.Future):
        self.document = document
        self.fetch_bytes = fetch_bytes
        self.result = result
        self.active = False
        self._task: Optional[asyncio.Task] = None

    def install(self) -> "DownloadInterception":
        if not self.active:
            self.document.add_event_listener('click', self._on_click, capture=True)
            self.active = True
        return self

    def release(self):
        if self.active:
            self.document.remove_event_listener('click', self._on_click, capture=True)
            self.active = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def __enter__(self):
        return self.install()

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False

    def _blob_url_for(self, anchor: Element) -> Optional[str]:
        href = anchor.get_attribute('href') or ''
        if href.startswith('blob:'):
            return href
        link = self.document.find_first(_is_blob_link)
        return link.get_attribute('href') if link is not None else None

    def _on_click(self, event):
        if not self.active or self.result.done() or self._task is not None:
            return
        closest = getattr(event.target, 'closest', None)
        if closest is None:
            return
        anchor = closest(_is_download_element)
        if anchor is None:
            return

        # Keep the browser from saving the file. The click is consumed even if no
        # blob link turns up, and the session then ends by timeout.
        event.prevent_default()
        event.stop_propagation()

        blob_url = self._blob_url_for(anchor)
        if blob_url is None:
            print("Download element clicked but no blob link found")
            return
        self._task = asyncio.ensure_future(self._retrieve(blob_url))

    async def _retrieve(self, blob_url: str):
        try:
            payload = await self.fetch_bytes(blob_url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            print(f"Error intercepting download: {e}")
            if not self.result.done():
                error = InterceptionError(f"Failed to intercept download: {e}")
                error.__cause__ = e
                self.result.set_exception(error)
            return

        if not self.result.done():
            self.result.set_result(payload)


class SnapshotAcquisitionEngine:
    """
    Obtains the project archive from the host page.

    Only one acquisition runs at a time: callers arriving while one is pending
    share its outcome.
    """

    def __init__(self, document: Document, fetch_bytes: FetchBytes, timings: Optional[AcquisitionTimings] = None,
                 strategies: Optional[Sequence[LocatorStrategy]] = None):
        """
        Initialize the engine.

        Args:
            document: The host document to drive
            fetch_bytes: Coroutine function returning the bytes behind a blob URL
            timings: Delays and retry budgets, defaults to AcquisitionTimings()
            strategies: Locator strategies tried in order, defaults to DEFAULT_STRATEGIES
        """
        self.document = document
        self.fetch_bytes = fetch_bytes
        self.timings = timings or AcquisitionTimings()
        self.strategies: List[LocatorStrategy] = list(strategies if strategies is not None else DEFAULT_STRATEGIES)
        self.session: Optional[AcquisitionSession] = None
        self._pending: Optional[asyncio.Task] = None
        self._interception: Optional[DownloadInterception] = None

    @property
    def in_flight(self) -> bool:
        return self._pending is not None

    async def acquire_snapshot_archive(self) -> bytes:
        """
        Acquire the project archive.

        Returns:
            The raw archive bytes

        Raises:
            TriggerNotFoundError: No export control was found
            ActionNotFoundError: The download action never showed up
            InterceptionError: The payload could not be retrieved
            AcquisitionTimeoutError: Nothing was captured in time
        """
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._run_session())
        # A cancelled caller must not cancel the session others are waiting on
        return await asyncio.shield(self._pending)

    async def _run_session(self) -> bytes:
        session = AcquisitionSession()
        self.session = session
        result = asyncio.get_running_loop().create_future()
        timeout = self.timings.timeout_ms / 1000.0

        try:
            payload = await asyncio.wait_for(self._drive(session, result), timeout=timeout)
            session.advance(AcquisitionState.RESOLVED)
            print(f"Captured project archive ({len(payload)} bytes)")
            return payload
        except asyncio.TimeoutError as e:
            error = AcquisitionTimeoutError(f"Download timeout: no download link appeared after {timeout:g} seconds")
            session.fail(error)
            print(f"Error downloading project archive: {error}")
            raise error from e
        except AcquisitionError as e:
            session.fail(e)
            print(f"Error downloading project archive: {e}")
            raise
        except Exception as e:
            session.fail(e)
            raise
        finally:
            self._teardown(result)

    def _teardown(self, result: asyncio.Future):
        if self._interception is not None:
            self._interception.release()
            self._interception = None
        if not result.done():
            result.cancel()
        self._pending = None

    async def _drive(self, session: AcquisitionSession, result: asyncio.Future) -> bytes:
        session.advance(AcquisitionState.LOCATING_TRIGGER)
        control = locate_trigger(self.document, self.strategies)
        if control is None:
            raise TriggerNotFoundError("Export menu trigger not found (no locator strategy matched)")
        print(f"Found export trigger using {control.strategy}")

        await self._open_menu(control)
        session.advance(AcquisitionState.MENU_OPEN)
        if control.submenu_label:
            await self._enter_submenu(control.submenu_label)

        session.advance(AcquisitionState.LOCATING_ACTION)
        action = await self._locate_action()

        session.advance(AcquisitionState.INTERCEPTING)
        self._interception = DownloadInterception(self.document, self.fetch_bytes, result).install()
        print("Found download button, clicking...")
        action.click()
        await self._dismiss_menu()
        return await result

    async def _open_menu(self, control: TriggerControl):
        if control.activation == 'keyboard':
            dispatch_key(control.element, 'Enter')
        else:
            dispatch_full_click(control.element)
        await _sleep_ms(self.timings.settle_delay_ms)

    async def _enter_submenu(self, label: str):
        attempts = self.timings.submenu_attempts
        item = None
        for attempt in range(1, attempts + 1):
            print(f"Searching for {label} menu item (attempt {attempt}/{attempts})")
            await _sleep_ms(self.timings.submenu_backoff_ms * attempt)
            item = find_submenu_item(self.document, label)
            if item is not None:
                break

        if item is None:
            raise ActionNotFoundError(f"'{label}' menu item not found after {attempts} attempts")

        # Submenus open on hover; click as well in case that changes
        dispatch_hover(item)
        item.click()
        await _sleep_ms(self.timings.submenu_settle_ms)

    async def _locate_action(self) -> Element:
        attempts = self.timings.action_attempts
        for attempt in range(1, attempts + 1):
            wait_ms = self.timings.action_backoff_ms * attempt
            print(f"Waiting {wait_ms}ms for dropdown to appear (attempt {attempt}/{attempts})")
            await _sleep_ms(wait_ms)

            # Menus render lazily and get replaced, so rescan every time
            menus = find_open_menus(self.document)
            if not menus:
                continue
            action = find_download_action(menus)
            if action is not None:
                return action

        raise ActionNotFoundError(f"Download action not found after {attempts} attempts")

    async def _dismiss_menu(self):
        try:
            await _sleep_ms(self.timings.dismiss_delay_ms)
            dispatch_key(self.document, 'Escape')
            await _sleep_ms(self.timings.dismiss_fallback_ms)
            if find_open_menus(self.document):
                print("Dropdown still open, clicking outside to close it")
                self.document.body.click()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            print(f"Error while trying to close dropdown: {e}")
