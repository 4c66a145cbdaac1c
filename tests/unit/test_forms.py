"""Unit tests for waymark.journey.forms — filling and submitting forms."""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.conftest import FakeDriver, FakeElement
from waymark.exceptions import ActionError
from waymark.journey.forms import SUBMIT_FORM_JS, VALIDATION_ERRORS_JS, FormOperations
from waymark.orchestrator import Orchestrator
from waymark.stability.signals import DOM_MUTATION_COUNT_JS

FORM = "form#signup"


@pytest.fixture()
def forms(orchestrator: Orchestrator) -> FormOperations:
    return orchestrator.forms


def _field(driver: FakeDriver, name: str, **kwargs) -> FakeElement:
    return driver.add_element(f'{FORM} [name="{name}"]', FakeElement(**kwargs))


class TestFillForm:
    """Per-field value application."""

    @pytest.mark.anyio
    async def test_text_fields(self, driver: FakeDriver, forms: FormOperations) -> None:
        email = _field(driver, "email")
        age = _field(driver, "age")
        result = await forms.fill_form(FORM, {"email": "a@b.test", "age": 42})
        assert result.success
        assert result.filled_fields == ["email", "age"]
        assert email.filled == ["a@b.test"]
        assert age.filled == ["42"]
        assert email.disposed == 1

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        ("value", "checked"),
        [(True, True), (False, False), ("yes", True), ("off", False), ("0", False), ("", False), (1, True)],
    )
    async def test_checkbox(self, driver: FakeDriver, forms: FormOperations, value: object, checked: bool) -> None:
        box = _field(driver, "terms", attributes={"type": "checkbox"})
        await forms.fill_form(FORM, {"terms": value})
        assert box.checked is checked

    @pytest.mark.anyio
    async def test_radio_only_checks(self, driver: FakeDriver, forms: FormOperations) -> None:
        radio = _field(driver, "plan", attributes={"type": "radio"})
        await forms.fill_form(FORM, {"plan": False})
        assert radio.checked is None
        await forms.fill_form(FORM, {"plan": "pro"})
        assert radio.checked is True

    @pytest.mark.anyio
    async def test_select(self, driver: FakeDriver, forms: FormOperations) -> None:
        country = _field(driver, "country", tag="select")
        await forms.fill_form(FORM, {"country": "NZ"})
        assert country.selected == ["NZ"]

    @pytest.mark.anyio
    async def test_file_input_receives_files(self, driver: FakeDriver, forms: FormOperations, tmp_path: Path) -> None:
        photo = tmp_path / "me.png"
        photo.write_bytes(b"png")
        avatar = _field(driver, "avatar", attributes={"type": "file"})
        result = await forms.fill_form(FORM, {"avatar": str(photo)})
        assert result.success
        assert avatar.files == [[str(photo)]]
        assert avatar.filled == []

    @pytest.mark.anyio
    async def test_missing_upload_file_is_reported(
        self, driver: FakeDriver, forms: FormOperations, tmp_path: Path
    ) -> None:
        avatar = _field(driver, "avatar", attributes={"type": "file"})
        result = await forms.fill_form(FORM, {"avatar": str(tmp_path / "absent.png")})
        assert not result.success
        assert result.errors[0].startswith("Error filling field avatar")
        assert avatar.files == []

    @pytest.mark.anyio
    async def test_falls_back_to_id_and_placeholder(self, driver: FakeDriver, forms: FormOperations) -> None:
        composite = f'{FORM} [name="nickname"], {FORM} [id="nickname"], {FORM} [placeholder*="nickname"]'
        field = driver.add_element(composite)
        result = await forms.fill_form(FORM, {"nickname": "wm"})
        assert result.success
        assert field.filled == ["wm"]

    @pytest.mark.anyio
    async def test_missing_field_collected_not_raised(self, driver: FakeDriver, forms: FormOperations) -> None:
        email = _field(driver, "email")
        result = await forms.fill_form(FORM, {"ghost": "x", "email": "a@b.test"})
        assert result.filled_fields == ["email"]
        assert len(result.errors) == 1
        assert email.filled == ["a@b.test"]

    @pytest.mark.anyio
    async def test_waits_for_dom_quiescence_first(self, driver: FakeDriver, forms: FormOperations) -> None:
        _field(driver, "email")
        await forms.fill_form(FORM, {"email": "a@b.test"})
        first_fill_probe = next(i for i, e in enumerate(driver.evaluations) if e[0] == DOM_MUTATION_COUNT_JS)
        assert first_fill_probe == 0


class TestTypingAndUploads:
    """Keystroke-by-keystroke filling and file inputs."""

    @pytest.mark.anyio
    async def test_typing_clears_then_types(self, driver: FakeDriver, forms: FormOperations) -> None:
        email = _field(driver, "email")
        terms = _field(driver, "terms", attributes={"type": "checkbox"})
        result = await forms.fill_form_with_typing(FORM, {"email": "a@b.test", "terms": True}, delay_ms=15)
        assert result.success
        assert email.filled == [""]
        assert email.typed == [("a@b.test", 15)]
        assert terms.checked is True
        assert terms.typed == []

    @pytest.mark.anyio
    async def test_typing_delay_defaults_to_settings(self, driver: FakeDriver, forms: FormOperations) -> None:
        email = _field(driver, "email")
        await forms.fill_form_with_typing(FORM, {"email": "x"})
        assert email.typed == [("x", forms.settings.typing_delay_ms)]

    @pytest.mark.anyio
    async def test_upload_file(self, driver: FakeDriver, forms: FormOperations, tmp_path: Path) -> None:
        files = [tmp_path / "a.pdf", tmp_path / "b.pdf"]
        for f in files:
            f.write_bytes(b"%PDF")
        upload = driver.add_element("#resume", FakeElement(attributes={"type": "file"}))
        await forms.upload_file("#resume", files)
        assert upload.files == [[str(f) for f in files]]
        assert upload.disposed == 1

    @pytest.mark.anyio
    async def test_upload_rejects_non_file_input(
        self, driver: FakeDriver, forms: FormOperations, tmp_path: Path
    ) -> None:
        doc = tmp_path / "a.txt"
        doc.write_text("x")
        text_input = driver.add_element("#name", FakeElement(attributes={"type": "text"}))
        with pytest.raises(ActionError, match="Not a file input"):
            await forms.upload_file("#name", doc)
        assert text_input.disposed == 1

    @pytest.mark.anyio
    async def test_upload_missing_input_or_file(self, forms: FormOperations, tmp_path: Path) -> None:
        doc = tmp_path / "a.txt"
        doc.write_text("x")
        with pytest.raises(ActionError, match="File input not found"):
            await forms.upload_file("#nope", doc, timeout_ms=30)
        with pytest.raises(ActionError, match="not found for upload"):
            await forms.upload_file("#nope", tmp_path / "ghost.txt")


class TestFormLifecycle:
    """Waiting for, submitting and inspecting forms."""

    @pytest.mark.anyio
    async def test_wait_for_form_missing(self, forms: FormOperations) -> None:
        with pytest.raises(ActionError, match="Form not found or not visible"):
            await forms.wait_for_form(FORM, 30)

    @pytest.mark.anyio
    async def test_wait_for_form_hidden(self, driver: FakeDriver, forms: FormOperations) -> None:
        form = driver.add_element(FORM, FakeElement(tag="form", visible=False))
        with pytest.raises(ActionError):
            await forms.wait_for_form(FORM, 30)
        assert form.disposed == 1

    @pytest.mark.anyio
    async def test_submit_through_page(self, driver: FakeDriver, forms: FormOperations) -> None:
        driver.results[SUBMIT_FORM_JS] = {"success": True}
        await forms.submit_form(FORM)
        assert (SUBMIT_FORM_JS, FORM) in driver.evaluations

    @pytest.mark.anyio
    async def test_submit_through_page_failure(self, driver: FakeDriver, forms: FormOperations) -> None:
        driver.results[SUBMIT_FORM_JS] = {"success": False, "error": f"Form not found: {FORM}"}
        with pytest.raises(ActionError, match="Form not found"):
            await forms.submit_form(FORM)

    @pytest.mark.anyio
    async def test_submit_control_missing(self, forms: FormOperations) -> None:
        with pytest.raises(ActionError, match="Submit control not found"):
            await forms.submit_form(FORM, "#send", timeout_ms=30)

    @pytest.mark.anyio
    async def test_wait_for_submission_tolerates_timeout(self, driver: FakeDriver, forms: FormOperations) -> None:
        driver.results[DOM_MUTATION_COUNT_JS] = 99
        await forms.wait_for_submission(30)

    @pytest.mark.anyio
    async def test_validation_errors(self, driver: FakeDriver, forms: FormOperations) -> None:
        driver.results[VALIDATION_ERRORS_JS] = ["Please fill out this field."]
        assert await forms.get_validation_errors(FORM) == ["Please fill out this field."]
        driver.results[VALIDATION_ERRORS_JS] = None
        assert await forms.get_validation_errors(FORM) == []
