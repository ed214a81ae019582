"""Playwright page exposed through the engine's document primitives."""

from __future__ import annotations

import itertools
import weakref
from typing import Any, Callable

from dimmer.dom import Mutation, SelectorError


# Node registry shared by every script: id <-> element without keeping nodes alive.
# Observers and listeners push into window.__dimmerEvents; the engine loop drains it.
_REGISTRY_JS = """
  const reg = window.__dimmerRegistry || (window.__dimmerRegistry = {
    ids: new WeakMap(),
    refs: new Map(),
    gone: new FinalizationRegistry((id) => window.__dimmerRegistry.refs.delete(id)),
    next: 1,
    key(el) {
      let id = this.ids.get(el);
      if (!id) {
        id = this.next++;
        this.ids.set(el, id);
        this.refs.set(id, new WeakRef(el));
        this.gone.register(el, id);
      }
      return id;
    },
    get(id) {
      const ref = this.refs.get(id);
      const el = ref ? ref.deref() : undefined;
      if (!el) {
        this.refs.delete(id);
        return null;
      }
      return el;
    },
  });
  if (!window.__dimmerPushEvent) {
    window.__dimmerPushEvent = (event) => {
      const queue = window.__dimmerEvents || (window.__dimmerEvents = []);
      if (queue.length >= 500) queue.shift();
      queue.push(event);
    };
  }
"""


def _script(params: str, body: str) -> str:
    return f"({params}) => {{\n{_REGISTRY_JS}\n{body}\n}}"


_QUERY_ALL_JS = _script(
    "[selector, rootId]",
    """
  const scope = rootId ? reg.get(rootId) : document;
  if (!scope) return { ok: true, ids: [] };
  try {
    return { ok: true, ids: Array.from(scope.querySelectorAll(selector), (el) => reg.key(el)) };
  } catch (e) {
    return { ok: false, error: String((e && e.message) || e) };
  }
""",
)

_QUERY_FIRST_JS = _script(
    "[selector, rootId]",
    """
  const scope = rootId ? reg.get(rootId) : document;
  if (!scope) return { ok: true, id: 0 };
  try {
    const found = scope.querySelector(selector);
    return { ok: true, id: found ? reg.key(found) : 0 };
  } catch (e) {
    return { ok: false, error: String((e && e.message) || e) };
  }
""",
)

_MATCHES_JS = _script(
    "[id, selector, mode]",
    """
  const el = reg.get(id);
  if (!el) return { ok: true, value: mode === 'closest' ? 0 : false };
  try {
    if (mode === 'closest') {
      const found = el.closest(selector);
      return { ok: true, value: found ? reg.key(found) : 0 };
    }
    return { ok: true, value: el.matches(selector) };
  } catch (e) {
    return { ok: false, error: String((e && e.message) || e) };
  }
""",
)

_ELEMENT_OP_JS = _script(
    "[id, op, name, value, priority]",
    """
  const el = reg.get(id);
  if (!el) return null;
  switch (op) {
    case 'hasClass': return el.classList.contains(name);
    case 'getAttribute': return el.getAttribute(name);
    case 'setAttribute': el.setAttribute(name, value); return true;
    case 'removeAttribute': el.removeAttribute(name); return true;
    case 'getStyle': {
      const v = el.style.getPropertyValue(name);
      return v ? [v, el.style.getPropertyPriority(name) || ''] : null;
    }
    case 'setStyle': el.style.setProperty(name, value, priority || ''); return true;
    case 'removeStyle': el.style.removeProperty(name); return true;
    case 'computed': {
      const s = window.getComputedStyle(el);
      return {
        display: s.display,
        visibility: s.visibility,
        opacity: s.opacity,
        'pointer-events': s.pointerEvents,
      };
    }
    case 'connected': return el.isConnected;
    case 'hovered': return el.matches(':hover');
    default: return null;
  }
""",
)

_DOCUMENT_ELEMENT_JS = _script("", "  return reg.key(document.documentElement);")

_DETACHED_JS = _script(
    "[ids]",
    """
  return ids.filter((id) => {
    const el = reg.get(id);
    return !el || !el.isConnected;
  });
""",
)

_INSTALL_STYLE_JS = """
([styleId, cssText]) => {
  let style = document.getElementById(styleId);
  if (!style) {
    style = document.createElement('style');
    style.id = styleId;
    (document.head || document.documentElement).appendChild(style);
  }
  if (style.textContent !== cssText) style.textContent = cssText;
  return true;
}
"""

_REMOVE_STYLE_JS = """
([styleId]) => {
  const style = document.getElementById(styleId);
  if (style) style.remove();
  return true;
}
"""

_STYLE_TEXT_JS = """
([styleId]) => {
  const style = document.getElementById(styleId);
  return style ? style.textContent : null;
}
"""

_OBSERVE_JS = _script(
    "[rootId, token, patterns]",
    """
  const root = rootId ? reg.get(rootId) : document.documentElement;
  if (!root) return false;
  if (window.__dimmerObserver) window.__dimmerObserver.disconnect();
  const isCandidate = (node) => {
    if (!patterns.length) return true;
    for (const pattern of patterns) {
      try {
        if (node.matches(pattern) || node.querySelector(pattern)) return true;
      } catch (e) {
        // an invalid pattern only disqualifies itself
      }
    }
    return false;
  };
  const observer = new MutationObserver((records) => {
    for (const record of records) {
      for (const node of record.addedNodes) {
        if (node.nodeType === 1 && isCandidate(node)) {
          window.__dimmerPushEvent({ kind: 'mutation', token, candidate: true });
          return;
        }
      }
    }
  });
  observer.observe(root, { childList: true, subtree: true });
  window.__dimmerObserver = observer;
  return true;
""",
)

_DISCONNECT_JS = """
() => {
  if (window.__dimmerObserver) window.__dimmerObserver.disconnect();
  window.__dimmerObserver = null;
  return true;
}
"""

_POINTER_ON_JS = _script(
    "[selector]",
    """
  const prev = window.__dimmerPointerHandlers;
  if (prev) {
    document.removeEventListener('mouseenter', prev.enter, true);
    document.removeEventListener('mouseleave', prev.leave, true);
  }
  const handler = (type) => (event) => {
    const el = event.target;
    if (!el || el.nodeType !== 1) return;
    if (selector && !el.matches(selector)) return;
    window.__dimmerPushEvent({ kind: 'pointer', type, id: reg.key(el) });
  };
  const enter = handler('enter');
  const leave = handler('leave');
  document.addEventListener('mouseenter', enter, true);
  document.addEventListener('mouseleave', leave, true);
  window.__dimmerPointerHandlers = { enter, leave };
  return true;
""",
)

_POINTER_OFF_JS = """
() => {
  const prev = window.__dimmerPointerHandlers;
  if (prev) {
    document.removeEventListener('mouseenter', prev.enter, true);
    document.removeEventListener('mouseleave', prev.leave, true);
  }
  window.__dimmerPointerHandlers = null;
  return true;
}
"""

_DRAIN_EVENTS_JS = """
() => {
  const queue = window.__dimmerEvents || [];
  window.__dimmerEvents = [];
  return queue;
}
"""


class PageElement:
    """Proxy for one in-page element, identified by its registry id."""

    def __init__(self, node_id: int) -> None:
        self.node_id = int(node_id)

    def __repr__(self) -> str:
        return f"<PageElement {self.node_id}>"


class PageDocument:
    """Engine document primitives backed by a Playwright ``Page``.

    One proxy per in-page node. Proxies the engine has written to are pinned
    until their node leaves the tree (:meth:`release_detached`); all other
    proxies are held weakly. Mutation and pointer events wait in an in-page
    queue until the engine loop calls :meth:`dispatch_pending`.
    """

    def __init__(self, page: Any, *, log: Callable[[str], None] | None = None) -> None:
        self.page = page
        self._log = log
        self._elements: weakref.WeakValueDictionary[int, PageElement] = weakref.WeakValueDictionary()
        self._pinned: dict[int, PageElement] = {}
        self._tokens = itertools.count(1)
        self._observer_token = 0
        self._mutation_callback: Callable[[list[Mutation]], None] | None = None
        self._pointer_callback: Callable[[str, PageElement], None] | None = None

    # -- plumbing ----------------------------------------------------------

    def _evaluate(self, script: str, arg: Any = None, default: Any = None) -> Any:
        try:
            if arg is None:
                return self.page.evaluate(script)
            return self.page.evaluate(script, arg)
        except Exception as exc:
            if self._log:
                self._log(f"page evaluate failed: {str(exc).splitlines()[0] if str(exc) else exc!r}")
            return default

    def _wrap(self, node_id: Any) -> PageElement | None:
        try:
            key = int(node_id or 0)
        except (TypeError, ValueError):
            return None
        if key <= 0:
            return None
        element = self._pinned.get(key) or self._elements.get(key)
        if element is None:
            element = PageElement(key)
            self._elements[key] = element
        return element

    def _checked(self, result: Any, selector: str) -> dict[str, Any]:
        if not isinstance(result, dict):
            return {}
        if not result.get("ok", False):
            raise SelectorError(f"{selector!r}: {result.get('error', 'invalid selector')}")
        return result

    def _element_op(self, element: Any, op: str, name: str = "", value: str = "", priority: str = "") -> Any:
        if not isinstance(element, PageElement):
            return None
        return self._evaluate(_ELEMENT_OP_JS, [element.node_id, op, name, value, priority])

    def _pin(self, element: PageElement) -> None:
        self._pinned[element.node_id] = element

    def reset(self) -> None:
        """Forget proxies from a previous document (after a full navigation)."""
        self._elements = weakref.WeakValueDictionary()
        self._pinned.clear()
        self._observer_token = 0

    def release_detached(self) -> int:
        ids = list(self._pinned)
        if not ids:
            return 0
        detached = self._evaluate(_DETACHED_JS, [ids], default=[])
        released = 0
        for node_id in detached or []:
            if self._pinned.pop(int(node_id), None) is not None:
                released += 1
        return released

    # -- queries -----------------------------------------------------------

    @property
    def document_element(self) -> PageElement | None:
        return self._wrap(self._evaluate(_DOCUMENT_ELEMENT_JS, default=0))

    def query_all(self, selector: str, root: PageElement | None = None) -> list[PageElement]:
        root_id = root.node_id if isinstance(root, PageElement) else 0
        result = self._checked(self._evaluate(_QUERY_ALL_JS, [selector, root_id]), selector)
        out = []
        for node_id in result.get("ids") or []:
            element = self._wrap(node_id)
            if element is not None:
                out.append(element)
        return out

    def query_first(self, root: PageElement | None, selector: str) -> PageElement | None:
        root_id = root.node_id if isinstance(root, PageElement) else 0
        result = self._checked(self._evaluate(_QUERY_FIRST_JS, [selector, root_id]), selector)
        return self._wrap(result.get("id"))

    def matches(self, element: PageElement, selector: str) -> bool:
        result = self._checked(self._evaluate(_MATCHES_JS, [element.node_id, selector, "matches"]), selector)
        return bool(result.get("value", False))

    def closest(self, element: PageElement, selector: str) -> PageElement | None:
        result = self._checked(self._evaluate(_MATCHES_JS, [element.node_id, selector, "closest"]), selector)
        return self._wrap(result.get("value"))

    def is_connected(self, element: Any) -> bool:
        return bool(self._element_op(element, "connected"))

    def is_hovered(self, element: PageElement) -> bool:
        return bool(self._element_op(element, "hovered"))

    # -- attributes and style ----------------------------------------------

    def has_class(self, element: PageElement, name: str) -> bool:
        return bool(self._element_op(element, "hasClass", name))

    def get_attribute(self, element: PageElement, name: str) -> str | None:
        value = self._element_op(element, "getAttribute", name)
        return None if value is None else str(value)

    def set_attribute(self, element: PageElement, name: str, value: str) -> None:
        self._pin(element)
        self._element_op(element, "setAttribute", name, str(value))

    def remove_attribute(self, element: PageElement, name: str) -> None:
        self._element_op(element, "removeAttribute", name)

    def get_inline_style(self, element: PageElement, prop: str) -> tuple[str, str] | None:
        value = self._element_op(element, "getStyle", prop)
        if not isinstance(value, list) or len(value) != 2:
            return None
        return str(value[0]), str(value[1] or "")

    def set_inline_style(self, element: PageElement, prop: str, value: str, priority: str = "") -> None:
        self._pin(element)
        self._element_op(element, "setStyle", prop, str(value), "important" if priority else "")

    def remove_inline_style(self, element: PageElement, prop: str) -> None:
        self._element_op(element, "removeStyle", prop)

    def computed_style(self, element: PageElement) -> dict[str, str]:
        value = self._element_op(element, "computed")
        if not isinstance(value, dict):
            # Vanished element: report it as not rendered.
            return {"display": "none", "visibility": "hidden", "opacity": "1", "pointer-events": "auto"}
        return {str(k): str(v) for k, v in value.items()}

    # -- style rules -------------------------------------------------------

    def install_style(self, style_id: str, rule: Any) -> None:
        self._evaluate(_INSTALL_STYLE_JS, [style_id, rule.css_text])

    def remove_style(self, style_id: str) -> None:
        self._evaluate(_REMOVE_STYLE_JS, [style_id])

    def style_text(self, style_id: str) -> str | None:
        value = self._evaluate(_STYLE_TEXT_JS, [style_id])
        return None if value is None else str(value)

    # -- observation -------------------------------------------------------

    def observe(
        self,
        root: Any,
        callback: Callable[[list[Mutation]], None],
        patterns: tuple[str, ...] = (),
    ) -> Callable[[], None]:
        """Observe child-list changes under ``root``.

        Added nodes are tested against ``patterns`` inside the page; only a
        candidate flag crosses over, so nodes are never registered here.
        """
        token = next(self._tokens)
        self._observer_token = token
        self._mutation_callback = callback
        root_id = root.node_id if isinstance(root, PageElement) else 0
        self._evaluate(_OBSERVE_JS, [root_id, token, list(patterns)])

        def disconnect() -> None:
            if self._observer_token != token:
                return
            self._observer_token = 0
            self._mutation_callback = None
            self._evaluate(_DISCONNECT_JS)

        return disconnect

    def add_pointer_listener(
        self,
        callback: Callable[[str, PageElement], None],
        selector: str | None = None,
    ) -> Callable[[], None]:
        self._pointer_callback = callback
        self._evaluate(_POINTER_ON_JS, [selector or ""])

        def remove() -> None:
            if self._pointer_callback is not callback:
                return
            self._pointer_callback = None
            self._evaluate(_POINTER_OFF_JS)

        return remove

    def dispatch_pending(self) -> int:
        """Drain the in-page event queue and deliver it to the registered callbacks."""
        events = self._evaluate(_DRAIN_EVENTS_JS, default=[])
        if not isinstance(events, list):
            return 0
        delivered = 0
        for event in events:
            if not isinstance(event, dict):
                continue
            if event.get("kind") == "mutation":
                callback = self._mutation_callback
                if callback is None or event.get("token") != self._observer_token:
                    continue
                callback([Mutation(target=None, candidate=bool(event.get("candidate")))])
                delivered += 1
            elif event.get("kind") == "pointer":
                callback = self._pointer_callback
                element = self._wrap(event.get("id"))
                if callback is not None and element is not None:
                    callback(str(event.get("type")), element)
                    delivered += 1
        return delivered
