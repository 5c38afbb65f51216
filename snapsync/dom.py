"""
Host document model for the acquisition engine.

The engine never talks to a browser directly. It drives a document made of
Element nodes with attributes, classes and text, dispatches DOM-style events
through them (capture, target and bubble phases) and listens on the document.
Embedders mirror the live page into this model, or hand the engine an object
with the same surface.
"""

from typing import Callable, Dict, Iterator, List, Optional, Tuple

Listener = Callable[["Event"], None]

CAPTURING_PHASE = 1
AT_TARGET = 2
BUBBLING_PHASE = 3


class Event:
    """A DOM-style event."""

    def __init__(self, type: str, bubbles: bool = True, cancelable: bool = True, key: Optional[str] = None):
        self.type = type
        self.bubbles = bubbles
        self.cancelable = cancelable
        self.key = key
        self.target = None
        self.current_target = None
        self.event_phase = 0
        self.default_prevented = False
        self.propagation_stopped = False

    def prevent_default(self):
        if self.cancelable:
            self.default_prevented = True

    def stop_propagation(self):
        self.propagation_stopped = True

    def __repr__(self):
        return f"Event({self.type!r})"


class _EventTarget:
    """Listener bookkeeping shared by elements and the document."""

    def __init__(self):
        self._listeners: Dict[Tuple[str, bool], List[Listener]] = {}

    def add_event_listener(self, type: str, listener: Listener, capture: bool = False):
        listeners = self._listeners.setdefault((type, capture), [])
        if listener not in listeners:
            listeners.append(listener)

    def remove_event_listener(self, type: str, listener: Listener, capture: bool = False):
        listeners = self._listeners.get((type, capture), [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, type: str, capture: bool = False) -> int:
        return len(self._listeners.get((type, capture), []))

    def _invoke(self, event: Event, capture: bool):
        event.current_target = self
        # Listeners may remove themselves while running
        for listener in list(self._listeners.get((event.type, capture), [])):
            listener(event)


class Element(_EventTarget):
    """
    A node of the host document.

    Attributes:
        tag_name: Lowercase tag name
        attributes: Attribute name -> value
        children: Child elements, in document order
        parent: The parent element or None for detached nodes and the body
    """

    def __init__(self, tag_name: str, attributes: Optional[Dict[str, str]] = None, text: str = "",
                 children: Optional[List["Element"]] = None):
        super().__init__()
        self.tag_name = tag_name.lower()
        self.attributes = dict(attributes or {})
        self.text = text
        self.children: List[Element] = []
        self.parent: Optional[Element] = None
        self.owner_document: Optional[Document] = None
        for child in children or []:
            self.append_child(child)

    def __repr__(self):
        return f"<{self.tag_name} {self.attributes}>"

    # Tree

    def append_child(self, child: "Element") -> "Element":
        if child.parent is not None:
            child.parent.remove_child(child)
        child.parent = self
        self.children.append(child)
        child._adopt(self.owner_document)
        return child

    def remove_child(self, child: "Element"):
        self.children.remove(child)
        child.parent = None
        child._adopt(None)

    def remove(self):
        if self.parent is not None:
            self.parent.remove_child(self)

    def _adopt(self, document: Optional["Document"]):
        self.owner_document = document
        for child in self.children:
            child._adopt(document)

    def iter_descendants(self) -> Iterator["Element"]:
        """Yield all descendants in document order, excluding the element itself."""
        for child in self.children:
            yield child
            yield from child.iter_descendants()

    def ancestors(self) -> Iterator["Element"]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def closest(self, predicate: Callable[["Element"], bool]) -> Optional["Element"]:
        """Return the element itself or its nearest ancestor matching the predicate."""
        if predicate(self):
            return self
        for ancestor in self.ancestors():
            if predicate(ancestor):
                return ancestor
        return None

    # Attributes and content

    def get_attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name)

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    def set_attribute(self, name: str, value: str):
        self.attributes[name] = value

    @property
    def class_list(self) -> List[str]:
        return self.attributes.get("class", "").split()

    def has_classes(self, *names: str) -> bool:
        classes = set(self.class_list)
        return all(name in classes for name in names)

    @property
    def text_content(self) -> str:
        return self.text + "".join(child.text_content for child in self.children)

    # Events

    def dispatch_event(self, event: Event) -> bool:
        """
        Dispatch an event with this element as target.

        Returns:
            False if a listener prevented the default action, True otherwise
        """
        event.target = self
        path: List[_EventTarget] = list(reversed(list(self.ancestors())))
        if self.owner_document is not None:
            path.insert(0, self.owner_document)

        event.event_phase = CAPTURING_PHASE
        for node in path:
            node._invoke(event, capture=True)
            if event.propagation_stopped:
                return not event.default_prevented

        event.event_phase = AT_TARGET
        self._invoke(event, capture=True)
        if not event.propagation_stopped:
            self._invoke(event, capture=False)

        if event.bubbles and not event.propagation_stopped:
            event.event_phase = BUBBLING_PHASE
            for node in reversed(path):
                node._invoke(event, capture=False)
                if event.propagation_stopped:
                    break

        event.current_target = None
        return not event.default_prevented

    def click(self) -> bool:
        return self.dispatch_event(Event("click"))


class Document(_EventTarget):
    """The root of the host document. Holds the body element."""

    def __init__(self, body: Optional[Element] = None):
        super().__init__()
        self.body = body or Element("body")
        self.body.parent = None
        self.body._adopt(self)

    def iter_elements(self) -> Iterator[Element]:
        """Yield the body and every element under it in document order."""
        yield self.body
        yield from self.body.iter_descendants()

    def find_all(self, predicate: Callable[[Element], bool]) -> List[Element]:
        return [element for element in self.iter_elements() if predicate(element)]

    def find_first(self, predicate: Callable[[Element], bool]) -> Optional[Element]:
        for element in self.iter_elements():
            if predicate(element):
                return element
        return None

    def dispatch_event(self, event: Event) -> bool:
        """Dispatch an event targeted at the document itself."""
        event.target = self
        event.event_phase = AT_TARGET
        self._invoke(event, capture=True)
        if not event.propagation_stopped:
            self._invoke(event, capture=False)
        event.current_target = None
        return not event.default_prevented


def dispatch_full_click(element: Element):
    """
    Simulate a complete user click on an element.

    Component libraries open menus on pointerdown rather than click, so the whole
    pointerdown, mousedown, pointerup, mouseup, click sequence is sent.
    """
    for event_type in ("pointerdown", "mousedown", "pointerup", "mouseup"):
        element.dispatch_event(Event(event_type))
    element.click()


def dispatch_hover(element: Element):
    element.dispatch_event(Event("pointerover"))
    element.dispatch_event(Event("mouseover"))


def dispatch_key(target, key: str):
    target.dispatch_event(Event("keydown", key=key))
