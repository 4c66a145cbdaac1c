"""Form filling and submission built on the resolver and coordinator."""

from __future__ import annotations

import json as _json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Sequence

from waymark.exceptions import ActionError, ElementNotFoundError, WaitTimeoutError
from waymark.locator.resolver import release_handle
from waymark.models.locator import HintType, LocatorSpec
from waymark.stability.coordinator import StabilityOptions

if TYPE_CHECKING:
    from waymark.browser.driver import BrowserDriver, ElementHandle
    from waymark.locator.resolver import SelectorResolver
    from waymark.settings.config import JourneySettings
    from waymark.stability.coordinator import StabilityCoordinator

logger = logging.getLogger(__name__)

# Fields are filled one keystroke-sensitive lookup at a time; keep it snappy.
_FIELD_LOOKUP_TIMEOUT_MS = 2_000
_PRE_FILL_STABILITY_TIMEOUT_MS = 3_000

_FALSY_STRINGS = frozenset({"", "0", "false", "no", "off"})

SUBMIT_FORM_JS = """(formSelector) => {
    const form = document.querySelector(formSelector);
    if (!form) return { success: false, error: `Form not found: ${formSelector}` };
    const button = form.querySelector('input[type="submit"], button[type="submit"], button:not([type])');
    if (button) {
        button.click();
    } else if (typeof form.requestSubmit === 'function') {
        form.requestSubmit();
    } else {
        form.submit();
    }
    return { success: true };
}"""

VALIDATION_ERRORS_JS = """(formSelector) => {
    const form = document.querySelector(formSelector);
    if (!form) return ['Form not found'];
    const errors = [];
    for (const el of form.querySelectorAll('input, select, textarea')) {
        if (!el.checkValidity()) {
            errors.push(el.validationMessage || `${el.name || el.id || el.type} is invalid`);
        }
    }
    return errors;
}"""


@dataclass
class FormFillResult:
    """Which fields were filled and which failed."""

    filled_fields: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


def _is_checked(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSY_STRINGS
    return bool(value)


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


def _as_files(value: Any) -> list[str]:
    paths = [value] if isinstance(value, (str, Path)) else list(value or [])
    files = [str(Path(p).expanduser()) for p in paths]
    missing = [p for p in files if not Path(p).is_file()]
    if not files or missing:
        raise ActionError(f"File(s) not found for upload: {', '.join(missing) or '(none given)'}")
    return files


class FormOperations:
    """Form interactions for one page."""

    def __init__(
        self,
        driver: BrowserDriver,
        resolver: SelectorResolver,
        coordinator: StabilityCoordinator,
        settings: JourneySettings | None = None,
    ) -> None:
        if settings is None:
            from waymark.settings import get_settings

            settings = get_settings().journey
        self.driver = driver
        self.resolver = resolver
        self.coordinator = coordinator
        self.settings = settings

    async def wait_for_form(self, form_selector: str, timeout_ms: int | None = None) -> None:
        """Wait until the form exists and is visible.

        Raises:
            ActionError: If the form is missing or never becomes visible.
        """
        timeout_ms = timeout_ms or self.settings.form_timeout_ms
        spec = LocatorSpec(selector=form_selector, hint_type=HintType.CSS, timeout_ms=timeout_ms, retry_count=0)
        try:
            async with self.resolver.acquire(spec) as handle:
                await handle.wait_for_state("visible", timeout_ms=timeout_ms)
        except (ElementNotFoundError, WaitTimeoutError) as exc:
            raise ActionError(f"Form not found or not visible: {form_selector}") from exc

    async def fill_form(self, form_selector: str, data: dict[str, Any]) -> FormFillResult:
        """Fill each field named in *data*.

        Waits for DOM quiescence first, then fills fields one at a time. Field
        failures are collected in the result rather than raised. A file input
        takes a path or a list of paths.
        """
        return await self._fill(form_selector, data, typing_delay_ms=None)

    async def fill_form_with_typing(
        self,
        form_selector: str,
        data: dict[str, Any],
        delay_ms: int | None = None,
    ) -> FormFillResult:
        """Like :meth:`fill_form`, but text fields are typed key by key.

        Each text field is cleared and then typed with *delay_ms* between
        keystrokes (``journey.typing_delay_ms`` by default), so per-key input
        handlers fire the way they do for a person typing.
        """
        if delay_ms is None:
            delay_ms = self.settings.typing_delay_ms
        return await self._fill(form_selector, data, typing_delay_ms=delay_ms)

    async def _fill(self, form_selector: str, data: dict[str, Any], *, typing_delay_ms: int | None) -> FormFillResult:
        async def _fill_all() -> FormFillResult:
            result = FormFillResult()
            for key, value in data.items():
                try:
                    await self._fill_field(form_selector, key, value, typing_delay_ms)
                except Exception as exc:
                    logger.debug("Field %s in %s failed: %s", key, form_selector, exc)
                    result.errors.append(f"Error filling field {key}: {exc}")
                else:
                    result.filled_fields.append(key)
            return result

        result = await self.coordinator.coordinate_action(
            _fill_all,
            stability=StabilityOptions(
                timeout_ms=_PRE_FILL_STABILITY_TIMEOUT_MS,
                check_network_idle=False,
                check_animations=False,
            ),
        )
        logger.info(
            "Filled %d/%d field(s) in %s",
            len(result.filled_fields),
            len(data),
            form_selector,
        )
        return result

    async def _fill_field(self, form_selector: str, key: str, value: Any, typing_delay_ms: int | None) -> None:
        name = _json.dumps(key)
        fast = LocatorSpec(
            selector=f"{form_selector} [name={name}]",
            hint_type=HintType.CSS,
            timeout_ms=_FIELD_LOOKUP_TIMEOUT_MS,
            retry_count=0,
        )
        handle = await self.resolver.locate_element(fast)
        if handle is not None:
            try:
                await self._apply_value(handle, value, typing_delay_ms)
            finally:
                await release_handle(handle)
            return

        composite = LocatorSpec(
            selector=", ".join(
                [
                    f"{form_selector} [name={name}]",
                    f"{form_selector} [id={name}]",
                    f"{form_selector} [placeholder*={name}]",
                ]
            ),
            hint_type=HintType.CSS,
            timeout_ms=self.settings.form_timeout_ms,
            retry_count=0,
        )
        async with self.resolver.acquire(composite) as handle:
            await self._apply_value(handle, value, typing_delay_ms)

    async def _apply_value(self, handle: ElementHandle, value: Any, typing_delay_ms: int | None = None) -> None:
        input_type = (await handle.get_attribute("type") or "").lower()
        tag = await handle.tag_name()
        if input_type == "checkbox":
            if _is_checked(value):
                await handle.check()
            else:
                await handle.uncheck()
        elif input_type == "radio":
            if _is_checked(value):
                await handle.check()
        elif tag == "select":
            await handle.select_option(_as_text(value))
        elif input_type == "file":
            await handle.set_input_files(_as_files(value), timeout_ms=self.settings.handle_action_timeout_ms)
        elif typing_delay_ms is not None:
            await handle.fill("")
            await handle.type(_as_text(value), delay_ms=typing_delay_ms)
        else:
            await handle.fill(_as_text(value))

    async def upload_file(
        self,
        file_selector: str,
        paths: str | Path | Sequence[str | Path],
        timeout_ms: int | None = None,
    ) -> None:
        """Attach one or more local files to a file input.

        Raises:
            ActionError: If the input cannot be found, is not a file input,
                or a file does not exist.
        """
        files = _as_files(paths)
        timeout_ms = timeout_ms or self.settings.form_timeout_ms
        spec = LocatorSpec(selector=file_selector, timeout_ms=timeout_ms, retry_count=0)
        try:
            async with self.resolver.acquire(spec) as handle:
                if (await handle.get_attribute("type") or "").lower() != "file":
                    raise ActionError(f"Not a file input: {file_selector}")
                await handle.set_input_files(files, timeout_ms=self.settings.handle_action_timeout_ms)
        except ElementNotFoundError as exc:
            raise ActionError(f"File input not found: {file_selector}") from exc
        logger.info("Uploaded %d file(s) to %s", len(files), file_selector)

    async def submit_form(
        self,
        form_selector: str,
        submit_selector: str | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        """Submit a form by clicking *submit_selector* or through the page.

        Raises:
            ActionError: If the form or submit control cannot be found.
        """
        timeout_ms = timeout_ms or self.settings.submit_timeout_ms
        if submit_selector:
            spec = LocatorSpec(selector=submit_selector, timeout_ms=timeout_ms, visibility_check=True, retry_count=0)
            try:
                async with self.resolver.acquire(spec) as handle:
                    await handle.click(timeout_ms=self.settings.handle_action_timeout_ms)
            except ElementNotFoundError as exc:
                raise ActionError(f"Submit control not found: {submit_selector}") from exc
            return

        outcome = await self.driver.evaluate(SUBMIT_FORM_JS, form_selector)
        if not outcome or not outcome.get("success"):
            error = (outcome or {}).get("error") or f"Could not submit {form_selector}"
            raise ActionError(error)

    async def wait_for_submission(self, timeout_ms: int | None = None) -> None:
        """Wait for the page to settle after submit. Never raises on timeout."""
        timeout_ms = timeout_ms or self.settings.submit_timeout_ms
        try:
            await self.coordinator.wait_for_stable_state(StabilityOptions(timeout_ms=timeout_ms))
        except WaitTimeoutError as exc:
            # Forms do not always navigate or re-render after submission.
            logger.debug("Post-submit stability wait ended: %s", exc)

    async def get_validation_errors(self, form_selector: str) -> list[str]:
        """Return the browser's constraint-validation messages for the form."""
        return list(await self.driver.evaluate(VALIDATION_ERRORS_JS, form_selector) or [])
