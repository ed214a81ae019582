"""In-process document tree used as a host document for the engine.

Mirrors the slice of the browser DOM the engine touches: element attributes
and classes, inline style with priorities, selector queries, child-list
mutation observers, pointer enter/leave, and a computed style in which the
installed suppression rule takes part in the cascade.

The tree is a BeautifulSoup document; selectors are evaluated by soupsieve.
"""

from __future__ import annotations

import weakref
from dataclasses import dataclass
from typing import Any, Callable, Iterator

import soupsieve
from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString


_BLANK_DOCUMENT = "<html><head></head><body></body></html>"
_HIDDEN_TAGS = {"head", "style", "script", "template", "meta", "link", "title"}
_STYLE_DEFAULTS = {"opacity": "1", "pointer-events": "auto"}


class SelectorError(ValueError):
    """Raised when a selector cannot be evaluated, like a failing ``querySelectorAll``."""


def compile_selector(selector: str) -> soupsieve.SoupSieve:
    if not isinstance(selector, str) or not selector.strip():
        raise SelectorError("empty selector")
    try:
        return soupsieve.compile(selector)
    except soupsieve.SelectorSyntaxError as exc:
        raise SelectorError(f"{selector!r}: {exc}") from exc


def parse_inline_style(text: str) -> dict[str, tuple[str, str]]:
    out: dict[str, tuple[str, str]] = {}
    for chunk in str(text or "").split(";"):
        if ":" not in chunk:
            continue
        name, _, value = chunk.partition(":")
        name = name.strip().lower()
        value = value.strip()
        priority = ""
        if value.lower().endswith("!important"):
            value = value[: -len("!important")].strip()
            priority = "important"
        if name and value:
            out[name] = (value, priority)
    return out


def serialize_inline_style(style: dict[str, tuple[str, str]]) -> str:
    parts = []
    for name, (value, priority) in style.items():
        suffix = " !important" if priority else ""
        parts.append(f"{name}: {value}{suffix};")
    return " ".join(parts)


class Element(Tag):
    """Soup tag compared by identity.

    ``Tag`` hashes and compares by markup, which changes whenever the engine
    writes an attribute; elements key weak maps, so identity is required.
    """

    def __eq__(self, other: Any) -> bool:
        return self is other

    def __ne__(self, other: Any) -> bool:
        return self is not other

    __hash__ = object.__hash__

    @property
    def class_list(self) -> tuple[str, ...]:
        return tuple(str(self.attrs.get("class", "")).split())

    @property
    def inline_style(self) -> dict[str, tuple[str, str]]:
        return parse_inline_style(str(self.attrs.get("style", "")))

    def write_inline_style(self, style: dict[str, tuple[str, str]]) -> None:
        if style:
            self.attrs["style"] = serialize_inline_style(style)
        else:
            self.attrs.pop("style", None)

    def __repr__(self) -> str:
        ident = self.attrs.get("id")
        label = self.name + (f"#{ident}" if ident else "")
        label += "".join(f".{name}" for name in self.class_list)
        return f"<{label}>"


def _new_soup(markup: str) -> BeautifulSoup:
    # Attribute values stay plain strings; soupsieve splits ``class`` itself.
    return BeautifulSoup(
        markup,
        "html.parser",
        element_classes={Tag: Element},
        multi_valued_attributes=None,
    )


def _ancestors(element: Element, *, include_self: bool = False) -> Iterator[Element]:
    if include_self:
        yield element
    for node in element.parents:
        if isinstance(node, Element):
            yield node


def _own_text(element: Element) -> str:
    return "".join(str(child) for child in element.contents if isinstance(child, NavigableString))


@dataclass(frozen=True)
class Mutation:
    """One child-list change.

    ``candidate`` is set by hosts that already tested the added nodes against
    the observer's patterns; ``None`` leaves the test to the observer.
    """

    target: Any
    added_nodes: tuple[Any, ...] = ()
    removed_nodes: tuple[Any, ...] = ()
    candidate: bool | None = None


class _Observer:
    def __init__(self, root: Element, callback: Callable[[list[Mutation]], None]) -> None:
        self.root = root
        self.callback = callback
        self.active = True


class _PointerListener:
    def __init__(self, callback: Callable[[str, Element], None], selector: str | None) -> None:
        self.callback = callback
        self.selector = selector


class Document:
    """Host document with the primitives the engine calls on a page."""

    def __init__(self, soup: BeautifulSoup | None = None) -> None:
        self.soup = soup if soup is not None else _new_soup(_BLANK_DOCUMENT)
        self.document_element: Element = self.soup.find("html")
        self.head: Element = self.soup.find("head")
        self.body: Element = self.soup.find("body")
        self._rules: dict[str, Any] = {}
        self._observers: list[_Observer] = []
        self._pointer_listeners: list[_PointerListener] = []
        self._hovered: weakref.WeakSet[Element] = weakref.WeakSet()

    # -- tree construction -------------------------------------------------

    def create_element(
        self,
        tag: str,
        *,
        id: str | None = None,
        classes: tuple[str, ...] | list[str] = (),
        attributes: dict[str, str] | None = None,
        style: str | None = None,
    ) -> Element:
        element = self.soup.new_tag(str(tag).lower())
        for name, value in (attributes or {}).items():
            self.set_attribute(element, name, value)
        if id:
            self.set_attribute(element, "id", id)
        if classes:
            self.set_attribute(element, "class", " ".join(classes))
        if style:
            self.set_attribute(element, "style", style)
        return element

    def append_child(self, parent: Element, child: Element) -> Element:
        if child.parent is not None:
            self.remove(child)
        parent.append(child)
        self._notify(Mutation(target=parent, added_nodes=(child,)))
        return child

    def remove(self, element: Element) -> None:
        parent = element.parent
        if parent is None:
            return
        element.extract()
        self._notify(Mutation(target=parent, removed_nodes=(element,)))

    def is_connected(self, element: Any) -> bool:
        if not isinstance(element, Element):
            return False
        return any(node is self.document_element for node in _ancestors(element, include_self=True))

    # -- queries -----------------------------------------------------------

    def query_all(self, selector: str, root: Element | None = None) -> list[Element]:
        return compile_selector(selector).select(self.soup if root is None else root)

    def query_first(self, root: Element | None, selector: str) -> Element | None:
        return compile_selector(selector).select_one(self.soup if root is None else root)

    def matches(self, element: Element, selector: str) -> bool:
        return compile_selector(selector).match(element)

    def closest(self, element: Element, selector: str) -> Element | None:
        return compile_selector(selector).closest(element)

    # -- attributes and style ----------------------------------------------

    def has_class(self, element: Element, name: str) -> bool:
        return name in element.class_list

    def add_class(self, element: Element, name: str) -> None:
        if name not in element.class_list:
            self.set_attribute(element, "class", " ".join((*element.class_list, name)))

    def remove_class(self, element: Element, name: str) -> None:
        self.set_attribute(element, "class", " ".join(c for c in element.class_list if c != name))

    def get_attribute(self, element: Element, name: str) -> str | None:
        key = name.lower()
        if key == "style":
            style = element.inline_style
            return serialize_inline_style(style) if style else None
        value = element.attrs.get(key)
        return None if value is None else str(value)

    def set_attribute(self, element: Element, name: str, value: Any) -> None:
        key = name.lower()
        if key == "style":
            element.write_inline_style(parse_inline_style(str(value)))
            return
        element.attrs[key] = str(value)

    def remove_attribute(self, element: Element, name: str) -> None:
        element.attrs.pop(name.lower(), None)

    def get_inline_style(self, element: Element, prop: str) -> tuple[str, str] | None:
        return element.inline_style.get(prop.lower())

    def set_inline_style(self, element: Element, prop: str, value: str, priority: str = "") -> None:
        style = element.inline_style
        style[prop.lower()] = (str(value), "important" if priority else "")
        element.write_inline_style(style)

    def remove_inline_style(self, element: Element, prop: str) -> None:
        style = element.inline_style
        if style.pop(prop.lower(), None) is not None:
            element.write_inline_style(style)

    def computed_style(self, element: Element) -> dict[str, str]:
        inline = element.inline_style
        display = inline.get("display", ("", ""))[0]
        if not display:
            display = "none" if element.name in _HIDDEN_TAGS else "block"
        visibility = "visible"
        for node in _ancestors(element, include_self=True):
            value = node.inline_style.get("visibility")
            if value:
                visibility = value[0]
                break
        declarations: dict[str, str] = {}
        for rule in self._rules.values():
            declarations.update(rule.declarations_for(self, element) or {})
        style = {"display": display, "visibility": visibility}
        for prop, default in _STYLE_DEFAULTS.items():
            own = inline.get(prop)
            if own and own[1]:
                style[prop] = own[0]
            elif prop in declarations:
                style[prop] = declarations[prop]
            elif own:
                style[prop] = own[0]
            else:
                style[prop] = default
        return style

    # -- style rules -------------------------------------------------------

    def install_style(self, style_id: str, rule: Any) -> None:
        element = self.query_first(None, f"style#{style_id}")
        if element is None:
            element = self.create_element("style", id=style_id)
            self.append_child(self.head, element)
        element.clear()
        element.append(rule.css_text)
        self._rules[style_id] = rule

    def remove_style(self, style_id: str) -> None:
        self._rules.pop(style_id, None)
        element = self.query_first(None, f"style#{style_id}")
        if element is not None:
            self.remove(element)

    def style_text(self, style_id: str) -> str | None:
        element = self.query_first(None, f"style#{style_id}")
        return _own_text(element) if element is not None else None

    # -- observation -------------------------------------------------------

    def observe(
        self,
        root: Element,
        callback: Callable[[list[Mutation]], None],
        patterns: tuple[str, ...] = (),
    ) -> Callable[[], None]:
        # Added nodes are handed over as they are; the observer tests them itself.
        observer = _Observer(root, callback)
        self._observers.append(observer)

        def disconnect() -> None:
            observer.active = False
            if observer in self._observers:
                self._observers.remove(observer)

        return disconnect

    def _notify(self, mutation: Mutation) -> None:
        for observer in list(self._observers):
            if not observer.active:
                continue
            if any(node is observer.root for node in _ancestors(mutation.target, include_self=True)):
                observer.callback([mutation])

    # -- pointer -----------------------------------------------------------

    def add_pointer_listener(
        self,
        callback: Callable[[str, Element], None],
        selector: str | None = None,
    ) -> Callable[[], None]:
        listener = _PointerListener(callback, selector)
        self._pointer_listeners.append(listener)

        def remove() -> None:
            if listener in self._pointer_listeners:
                self._pointer_listeners.remove(listener)

        return remove

    def is_hovered(self, element: Element) -> bool:
        return element in self._hovered

    def pointer_enter(self, element: Element) -> None:
        for node in _ancestors(element, include_self=True):
            self._hovered.add(node)
        self._dispatch_pointer("enter", element)

    def pointer_leave(self, element: Element) -> None:
        for node in _ancestors(element, include_self=True):
            self._hovered.discard(node)
        self._dispatch_pointer("leave", element)

    def _dispatch_pointer(self, kind: str, element: Element) -> None:
        for listener in list(self._pointer_listeners):
            if listener.selector and not self.matches(element, listener.selector):
                continue
            listener.callback(kind, element)


def parse_html(markup: str) -> Document:
    """Parse saved page markup into a document with html, head and body."""
    parsed = _new_soup(markup)
    document = Document()
    html = parsed.find("html")
    head = parsed.find("head")
    body = parsed.find("body")
    for source, target in ((html, document.document_element), (head, document.head), (body, document.body)):
        if source is not None:
            target.attrs.update(source.attrs)
    if head is not None:
        _move_children(head, document.head)
    if body is not None:
        _move_children(body, document.body)
    else:
        _move_children(html if html is not None else parsed, document.body, skip=head)
    return document


def _move_children(source: Tag, target: Element, *, skip: Tag | None = None) -> None:
    for child in list(source.contents):
        if child is skip or isinstance(child, PreformattedString):
            continue
        target.append(child.extract())
