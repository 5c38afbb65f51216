"""
Locator strategies for the host page's export controls.

The host application reshapes its header from time to time. Each strategy is a
pure function from the current document to an optional TriggerControl, and the
engine tries them in order, so supporting a new layout means adding a function
here.
"""

from typing import Callable, List, Optional, Sequence

from snapsync.dom import Document, Element
from snapsync.models import TriggerControl

LocatorStrategy = Callable[[Document], Optional[TriggerControl]]

EXPORT_ICON_CLASS = 'i-ph:export'
DOWNLOAD_ICON_CLASS = 'i-ph:download-simple'


def _is_menu_button(element: Element) -> bool:
    return element.tag_name == 'button' and element.get_attribute('aria-haspopup') == 'menu'


def _has_icon(element: Element, icon_class: str, exact: bool = True) -> bool:
    for descendant in element.iter_descendants():
        if exact and icon_class in descendant.class_list:
            return True
        if not exact and icon_class in (descendant.get_attribute('class') or ''):
            return True
    return False


def legacy_export_button(document: Document) -> Optional[TriggerControl]:
    """Dedicated "Export" menu button carrying the export icon."""
    for element in document.iter_elements():
        if (_is_menu_button(element)
                and 'Export' in element.text_content
                and _has_icon(element, EXPORT_ICON_CLASS)):
            return TriggerControl(element=element, strategy='legacy_export_button', activation='keyboard')
    return None


def _in_header_center(element: Element) -> bool:
    # Matches `.flex-1.select-text .flex.items-center.justify-center button`
    ancestors = list(element.ancestors())
    for i, ancestor in enumerate(ancestors):
        if ancestor.has_classes('flex', 'items-center', 'justify-center'):
            if any(outer.has_classes('flex-1', 'select-text') for outer in ancestors[i + 1:]):
                return True
    return False


def project_status_menu(document: Document) -> Optional[TriggerControl]:
    """Project status dropdown in the header center, with Export as a submenu."""
    for element in document.iter_elements():
        if _is_menu_button(element) and _in_header_center(element):
            return TriggerControl(
                element=element,
                strategy='project_status_menu',
                activation='pointer',
                submenu_label='export'
            )
    return None


DEFAULT_STRATEGIES: List[LocatorStrategy] = [legacy_export_button, project_status_menu]


def locate_trigger(document: Document, strategies: Sequence[LocatorStrategy]) -> Optional[TriggerControl]:
    """
    Run the strategies in order and return the first control found.

    Args:
        document: The host document
        strategies: Locator strategies, most specific first

    Returns:
        The located control, or None if no strategy matched
    """
    for strategy in strategies:
        control = strategy(document)
        if control is not None:
            return control
    return None


def _is_menu_item(element: Element) -> bool:
    return (element.get_attribute('role') == 'menuitem'
            or element.has_attribute('data-radix-collection-item'))


def find_submenu_item(document: Document, label: str) -> Optional[Element]:
    """Find a menu item whose text contains the label, case-insensitively."""
    label = label.lower()
    for element in document.iter_elements():
        if _is_menu_item(element) and label in element.text_content.lower():
            return element
    return None


def _is_open_menu(element: Element) -> bool:
    return element.get_attribute('role') == 'menu' or element.has_attribute('data-radix-menu-content')


def find_open_menus(document: Document) -> List[Element]:
    return document.find_all(_is_open_menu)


def is_download_action(element: Element) -> bool:
    if element.tag_name != 'button':
        return False
    if 'download' in element.text_content.lower():
        return True
    return _has_icon(element, DOWNLOAD_ICON_CLASS, exact=False)


def find_download_action(menus: Sequence[Element]) -> Optional[Element]:
    """
    Find the download button among open menus.

    Args:
        menus: The currently open menu containers

    Returns:
        The first button mentioning "download" or carrying the download icon
    """
    for menu in menus:
        for element in menu.iter_descendants():
            if is_download_action(element):
                return element
    return None
