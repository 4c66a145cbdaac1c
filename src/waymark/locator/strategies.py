"""Turn a ``LocatorSpec`` into an ordered chain of resolution strategies.

Classification is purely syntactic and deterministic:

- a type hint yields exactly one targeted strategy;
- XPath-looking selectors (``//`` anywhere or a leading ``/``) try xpath
  then css;
- selectors with attribute brackets or combinators try css then xpath;
- ``#id``, ``.class`` and ``tag.class`` shapes also try css then xpath, with
  a text-partial match last since plain text such as ``v1.2`` looks the same;
- quoted strings try an exact text match, then a partial one;
- anything else is treated as human-readable text: text-partial, then css,
  then xpath as a last resort.
"""

from __future__ import annotations

import re

from waymark.models.locator import HintType, LocatorSpec, ResolutionStrategy, StrategyKind

_HINT_KINDS: dict[HintType, StrategyKind] = {
    HintType.CSS: StrategyKind.CSS,
    HintType.XPATH: StrategyKind.XPATH,
    HintType.TEXT: StrategyKind.TEXT_PARTIAL,
    HintType.ROLE: StrategyKind.ROLE,
    HintType.LABEL: StrategyKind.LABEL,
    HintType.PLACEHOLDER: StrategyKind.PLACEHOLDER,
}

_ID_OR_CLASS = re.compile(r"^[#.][A-Za-z_-]")
_TAG_QUALIFIED = re.compile(r"^[A-Za-z][\w-]*[.#:][\w-]")
_SIBLING_COMBINATOR = re.compile(r"\s[+~]\s")


def is_xpath(selector: str) -> bool:
    """Return True if *selector* should be tried as XPath first."""
    return "//" in selector or selector.startswith("/")


def _has_css_markers(selector: str) -> bool:
    return "[" in selector or ">" in selector or bool(_SIBLING_COMBINATOR.search(selector))


def is_css(selector: str) -> bool:
    """Return True if *selector* has the syntactic shape of a CSS selector."""
    if _has_css_markers(selector):
        return True
    return bool(_ID_OR_CLASS.match(selector) or _TAG_QUALIFIED.match(selector))


def _unquote(selector: str) -> str | None:
    if len(selector) >= 2 and selector[0] == selector[-1] and selector[0] in "\"'":
        return selector[1:-1]
    return None


def _data_strategy(selector: str) -> ResolutionStrategy:
    # ``data-qa=login`` targets an arbitrary data attribute; a bare value is a test id.
    if "=" in selector:
        name, _, value = selector.partition("=")
        value = value.strip().strip("\"'")
        return ResolutionStrategy(StrategyKind.ATTRIBUTE, f'[{name.strip()}="{value}"]')
    return ResolutionStrategy(StrategyKind.TESTID, selector)


def generate_strategies(spec: LocatorSpec) -> list[ResolutionStrategy]:
    """Return the ordered fallback chain for *spec*.

    Raises:
        ValueError: If the selector is empty or blank.
    """
    selector = spec.selector.strip()
    if not selector:
        raise ValueError("Locator selector must not be empty")

    if spec.hint_type is not None:
        if spec.hint_type == HintType.DATA:
            return [_data_strategy(selector)]
        return [ResolutionStrategy(_HINT_KINDS[spec.hint_type], selector)]

    if is_xpath(selector):
        return [
            ResolutionStrategy(StrategyKind.XPATH, selector),
            ResolutionStrategy(StrategyKind.CSS, selector),
        ]

    if is_css(selector):
        chain = [
            ResolutionStrategy(StrategyKind.CSS, selector),
            ResolutionStrategy(StrategyKind.XPATH, selector),
        ]
        if not _has_css_markers(selector):
            chain.append(ResolutionStrategy(StrategyKind.TEXT_PARTIAL, selector))
        return chain

    quoted = _unquote(selector)
    if quoted:
        return [
            ResolutionStrategy(StrategyKind.TEXT_EXACT, quoted),
            ResolutionStrategy(StrategyKind.TEXT_PARTIAL, quoted),
        ]

    return [
        ResolutionStrategy(StrategyKind.TEXT_PARTIAL, selector),
        ResolutionStrategy(StrategyKind.CSS, selector),
        ResolutionStrategy(StrategyKind.XPATH, selector),
    ]
