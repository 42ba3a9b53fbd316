"""
Event Binder: find contact-action elements and wire click tracking onto them.

Matches:
  - <a href="tel:...">     → phone_click, label = number
  - <a href="sms:...">     → sms_click,   label = number
  - <a href="mailto:...">  → email_click, label = address
  - any element with data-email="..." → email_click, label = attribute value

The href prefix is checked before the data-email marker. Handlers are bound in
the capture phase so they run before anything that might redirect, and they never
cancel the default action: the call / text / mail proceeds whatever happens to
tracking.

Works on an explicit element list. `Document.from_html` builds one from markup.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from html.parser import HTMLParser

import structlog

from leadtracker.core.attribution import PageAttribution
from leadtracker.core.events import EventType

logger = structlog.get_logger()

HREF_PREFIXES: tuple[tuple[str, EventType], ...] = (
    ("tel:", EventType.PHONE_CLICK),
    ("sms:", EventType.SMS_CLICK),
    ("mailto:", EventType.EMAIL_CLICK),
)
EMAIL_MARKER = "data-email"


@dataclass(eq=False)
class Element:
    """Minimal DOM element: tag, attributes, click listeners."""

    tag: str
    attributes: dict[str, str] = field(default_factory=dict)
    _capture: list[Callable] = field(default_factory=list, repr=False)
    _bubble: list[Callable] = field(default_factory=list, repr=False)

    def get_attribute(self, name: str) -> str | None:
        return self.attributes.get(name)

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    def set_attribute(self, name: str, value: str) -> None:
        self.attributes[name] = value

    def add_event_listener(self, event: str, handler: Callable, capture: bool = False) -> None:
        if event != "click":
            raise ValueError(f"Unsupported event: {event}")
        (self._capture if capture else self._bubble).append(handler)

    def click(self) -> None:
        """Fire a click: capture listeners first, then bubble listeners."""
        for handler in [*self._capture, *self._bubble]:
            handler(self)


class Document:
    """Flat list of elements, in document order."""

    def __init__(self, elements: Iterable[Element] = ()):
        self.elements: list[Element] = list(elements)

    @classmethod
    def from_html(cls, html: str) -> "Document":
        parser = _ElementCollector()
        parser.feed(html)
        parser.close()
        return cls(parser.elements)

    def find_by_name(self, name: str) -> Element | None:
        for el in self.elements:
            if el.get_attribute("name") == name:
                return el
        return None


class _ElementCollector(HTMLParser):
    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.elements: list[Element] = []

    def handle_starttag(self, tag, attrs):
        self.elements.append(Element(tag=tag, attributes={k: v or "" for k, v in attrs}))

    def handle_startendtag(self, tag, attrs):
        self.handle_starttag(tag, attrs)


@dataclass(frozen=True)
class ContactTarget:
    element: Element
    event_type: EventType
    event_label: str


def classify_element(el: Element) -> ContactTarget | None:
    marked = el.has_attribute(EMAIL_MARKER)
    if el.tag != "a" and not marked:
        return None

    # A marked element that also carries a contact href is classified by the href.
    href = el.get_attribute("href") or ""
    for prefix, event_type in HREF_PREFIXES:
        if href.startswith(prefix):
            return ContactTarget(el, event_type, href[len(prefix):])

    if marked:
        return ContactTarget(el, EventType.EMAIL_CLICK, el.get_attribute(EMAIL_MARKER) or "")
    return None


def collect_targets(elements: Iterable[Element]) -> list[ContactTarget]:
    """Every contact-action element, in document order."""
    targets = []
    for el in elements:
        target = classify_element(el)
        if target is not None:
            targets.append(target)
    return targets


def bind_targets(
    targets: Iterable[ContactTarget],
    attribution: PageAttribution,
    dispatch: Callable,
) -> list[ContactTarget]:
    """Attach a capture-phase click handler to each target.

    `dispatch` receives the TrackedEvent (normally DeliveryChannel.dispatch).
    """
    bound = []
    for target in targets:
        target.element.add_event_listener("click", _make_handler(target, attribution, dispatch), capture=True)
        bound.append(target)
    return bound


def _make_handler(target: ContactTarget, attribution: PageAttribution, dispatch: Callable) -> Callable:
    def on_click(_element: Element) -> None:
        event = attribution.to_event(target.event_type.value, target.event_label)
        try:
            dispatch(event)
        except Exception as e:
            # Never let tracking break the click itself.
            logger.error("click_dispatch_failed", event_type=event.event_type, error=str(e))

    return on_click
