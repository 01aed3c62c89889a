"""Functions injected into the target document.

Each script is a JavaScript function expression. The host evaluates
`(<source>)(...args)` inside the tab and returns its (JSON) result, awaiting
promises. Selector-targeted scripts return `false` when the element is missing
so the executor can report a target-missing outcome instead of a fault.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class PageScript:
    name: str
    source: str


BODY_TEXT = PageScript(
    "body_text",
    r"""() => (document.body ? document.body.innerText : '')""",
)

ELEMENT_EXISTS = PageScript(
    "element_exists",
    r"""(selector) => !!document.querySelector(selector)""",
)

SCROLL_INTO_VIEW = PageScript(
    "scroll_into_view",
    r"""(selector) => {
        const el = document.querySelector(selector);
        if (!el) return false;
        el.scrollIntoView({ behavior: 'smooth', block: 'center', inline: 'center' });
        return true;
    }""",
)

OUTLINE = PageScript(
    "outline",
    r"""(selector, durationMs) => {
        const el = document.querySelector(selector);
        if (!el) return false;
        const previous = el.style.outline;
        el.style.outline = '3px solid #ff5a36';
        setTimeout(() => { el.style.outline = previous; }, durationMs);
        return true;
    }""",
)

CLICK = PageScript(
    "click",
    r"""(selector) => {
        const el = document.querySelector(selector);
        if (!el) return false;
        el.click();
        return true;
    }""",
)

FOCUS_AND_CLEAR = PageScript(
    "focus_and_clear",
    r"""(selector) => {
        const el = document.querySelector(selector);
        if (!el) return false;
        el.focus();
        if ('value' in el) {
            el.value = '';
        } else if (el.isContentEditable) {
            el.textContent = '';
        }
        return true;
    }""",
)

TYPE_CHAR = PageScript(
    "type_char",
    r"""(selector, ch) => {
        const el = document.querySelector(selector);
        if (!el) return false;
        const init = { key: ch, char: ch, bubbles: true, cancelable: true };
        el.dispatchEvent(new KeyboardEvent('keydown', init));
        el.dispatchEvent(new KeyboardEvent('keypress', init));
        if ('value' in el) {
            el.value += ch;
        } else if (el.isContentEditable) {
            el.textContent += ch;
        }
        el.dispatchEvent(new KeyboardEvent('keyup', init));
        el.dispatchEvent(new InputEvent('input', { data: ch, inputType: 'insertText', bubbles: true }));
        return true;
    }""",
)

FIRE_CHANGE = PageScript(
    "fire_change",
    r"""(selector) => {
        const el = document.querySelector(selector);
        if (!el) return false;
        el.dispatchEvent(new Event('change', { bubbles: true }));
        return true;
    }""",
)

HOVER = PageScript(
    "hover",
    r"""(selector) => {
        const el = document.querySelector(selector);
        if (!el) return false;
        const r = el.getBoundingClientRect();
        const init = { bubbles: true, cancelable: true, clientX: r.x + r.width / 2, clientY: r.y + r.height / 2 };
        el.dispatchEvent(new PointerEvent('pointerover', init));
        el.dispatchEvent(new PointerEvent('pointerenter', { ...init, bubbles: false }));
        el.dispatchEvent(new MouseEvent('mouseover', init));
        el.dispatchEvent(new MouseEvent('mouseenter', { ...init, bubbles: false }));
        return true;
    }""",
)

FOCUS_PROBE = PageScript(
    "focus_probe",
    r"""() => ({ visible: document.visibilityState === 'visible', focused: document.hasFocus() })""",
)

INTERACTIVE_ELEMENTS = PageScript(
    "interactive_elements",
    r"""(limit) => {
        const QUERY = 'a[href], button, input, select, textarea, [role=button], [onclick], [contenteditable=true]';
        const esc = (v) => (globalThis.CSS && CSS.escape ? CSS.escape(v) : String(v).replace(/[^a-zA-Z0-9_-]/g, (c) => `\\${c}`));
        const isVisible = (el) => {
            const r = el.getBoundingClientRect();
            if (r.width === 0 && r.height === 0) return false;
            const s = getComputedStyle(el);
            return s.visibility !== 'hidden' && s.display !== 'none';
        };
        const selectorFor = (el) => {
            if (el.id) return `#${esc(el.id)}`;
            const tag = el.tagName.toLowerCase();
            const name = el.getAttribute('name');
            if (name) {
                const candidate = `${tag}[name="${name.replace(/"/g, '\\"')}"]`;
                if (document.querySelectorAll(candidate).length === 1) return candidate;
            }
            const parts = [];
            let node = el;
            while (node && node.nodeType === 1 && node !== document.body) {
                if (node.id) { parts.unshift(`#${esc(node.id)}`); break; }
                const t = node.tagName.toLowerCase();
                let i = 1;
                for (let sib = node.previousElementSibling; sib; sib = sib.previousElementSibling) {
                    if (sib.tagName === node.tagName) i += 1;
                }
                parts.unshift(`${t}:nth-of-type(${i})`);
                node = node.parentElement;
            }
            return parts.join(' > ');
        };
        const out = [];
        for (const el of document.querySelectorAll(QUERY)) {
            if (out.length >= limit) break;
            if (!isVisible(el)) continue;
            const text = (el.innerText || el.value || el.getAttribute('aria-label') || el.getAttribute('placeholder') || '').trim();
            const item = { tag: el.tagName.toLowerCase(), selector: selectorFor(el), text: text.slice(0, 80) };
            if (el.type) item.type = String(el.type);
            if (el.href) item.href = String(el.href);
            out.push(item);
        }
        return { url: location.href, title: document.title, elements: out };
    }""",
)


__all__ = [
    "BODY_TEXT",
    "CLICK",
    "ELEMENT_EXISTS",
    "FIRE_CHANGE",
    "FOCUS_AND_CLEAR",
    "FOCUS_PROBE",
    "HOVER",
    "INTERACTIVE_ELEMENTS",
    "OUTLINE",
    "PageScript",
    "SCROLL_INTO_VIEW",
    "TYPE_CHAR",
]
