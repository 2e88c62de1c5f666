"""SimplePractice appointment rescheduling via Playwright."""

import asyncio
import random
import re
from datetime import UTC, datetime
from typing import Optional

from playwright.async_api import Browser, Locator, Page, async_playwright

from app.core.config import Settings, settings
from app.core.logging import get_logger
from app.models.job import JobParams, RunnerOutcome

logger = get_logger(__name__)

DEFAULT_TIMEOUT_MS = 15_000
NAVIGATION_TIMEOUT_MS = 60_000
LOGIN_TIMEOUT_MS = 30_000
SAVE_SETTLE_MS = 3_000


class AppointmentNotFoundError(Exception):
    """Raised when the client has no appointment the job can act on."""

    pass


def date_display_variants(date_str: str) -> list[str]:
    """
    Spell an MM/DD/YYYY date the ways an appointment list might show it.

    Args:
        date_str: Date in MM/DD/YYYY format

    Returns:
        Distinct textual variants, most specific first
    """
    parsed = datetime.strptime(date_str, "%m/%d/%Y")
    variants = [
        date_str,
        f"{parsed.month}/{parsed.day}/{parsed.year}",
        f"{parsed.strftime('%b')} {parsed.day}, {parsed.year}",
        f"{parsed.strftime('%B')} {parsed.day}, {parsed.year}",
    ]
    return list(dict.fromkeys(variants))


def _step(label: str, **context) -> None:
    logger.info(f"[STEP] {label}", **context)


async def _human_delay(page: Page, min_ms: int = 300, max_ms: int = 600) -> None:
    await page.wait_for_timeout(random.randint(min_ms, max_ms))


async def _clear_and_type(page: Page, locator: Locator, value: str, char_delay: int = 100) -> None:
    """Select-all, erase, then type so the Ember form registers the change."""
    await locator.click(click_count=3)
    await _human_delay(page, 200, 400)
    await page.keyboard.press("Backspace")
    await _human_delay(page, 200, 400)
    await locator.press_sequentially(value, delay=char_delay)
    await _human_delay(page, 400, 600)


async def _is_visible(locator: Locator, timeout: int) -> bool:
    try:
        await locator.wait_for(state="visible", timeout=timeout)
        return True
    except Exception:
        return False


async def _login(page: Page, config: Settings, email: str, password: str) -> None:
    _step("Navigating to login page")
    await page.goto(config.sp_login_url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)

    email_field = page.get_by_role("textbox", name="Email")
    await email_field.wait_for(state="visible", timeout=LOGIN_TIMEOUT_MS)
    await _human_delay(page, 500, 800)

    accept_cookies = page.get_by_role("button", name="Accept")
    if await _is_visible(accept_cookies, 3_000):
        await accept_cookies.click()
        await _human_delay(page, 400, 600)

    _step("Signing in")
    await email_field.click()
    await _human_delay(page, 150, 300)
    await email_field.fill(email)
    await _human_delay(page, 200, 400)

    password_field = page.get_by_role("textbox", name="Password")
    await password_field.click()
    await _human_delay(page, 150, 300)
    await password_field.fill(password)
    await _human_delay(page, 200, 400)

    await page.get_by_role("button", name="Sign in").click()
    await page.wait_for_url(config.sp_secure_url_pattern, timeout=LOGIN_TIMEOUT_MS)
    _step("Login successful", url=page.url)
    await _human_delay(page, 600, 1000)


async def _open_client(page: Page, config: Settings, client_search: str) -> None:
    _step("Navigating to calendar")
    await page.goto(config.sp_calendar_url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)

    _step(f"Searching for client: {client_search}")
    search_trigger = page.locator('[id*="search-container"][id$="trigger"]')
    await search_trigger.wait_for(state="visible", timeout=DEFAULT_TIMEOUT_MS)
    await search_trigger.click()
    await _human_delay(page, 300, 500)

    search_input = page.get_by_role("textbox", name="Search clients")
    await search_input.wait_for(state="visible", timeout=10_000)
    await search_input.fill(client_search)
    await _human_delay(page, 1000, 1500)

    client_option = page.get_by_role("option").first
    await client_option.wait_for(state="visible", timeout=DEFAULT_TIMEOUT_MS)
    client_name = (await client_option.text_content() or "").strip()
    _step(f'Found client: "{client_name}"')
    await _human_delay(page, 300, 500)
    await client_option.click()
    await _human_delay(page, 600, 1000)


async def _open_appointment(
    page: Page, client_search: str, current_appointment_date: Optional[str]
) -> None:
    _step("Waiting for upcoming appointments")
    upcoming_header = page.get_by_text("Upcoming appointments")
    if not await _is_visible(upcoming_header, DEFAULT_TIMEOUT_MS):
        raise AppointmentNotFoundError(
            f'No upcoming appointments found for client "{client_search}".'
        )
    await _human_delay(page, 300, 500)

    appointment_links = page.locator("text=Upcoming appointments").locator(
        'xpath=following::a[contains(@id,"ember")]'
    )

    if current_appointment_date:
        variants = date_display_variants(current_appointment_date)
        pattern = re.compile("|".join(re.escape(variant) for variant in variants))
        appointment = appointment_links.filter(has_text=pattern).first
        if not await _is_visible(appointment, DEFAULT_TIMEOUT_MS):
            raise AppointmentNotFoundError(
                f"No upcoming appointment matching {current_appointment_date} "
                f'found for client "{client_search}".'
            )
        _step(f"Clicking upcoming appointment on {current_appointment_date}")
    else:
        appointment = appointment_links.first
        if not await _is_visible(appointment, DEFAULT_TIMEOUT_MS):
            raise AppointmentNotFoundError(
                f'No clickable appointment link found for client "{client_search}".'
            )
        _step("Clicking first upcoming appointment")

    await _human_delay(page, 300, 500)
    await appointment.click()


async def _update_appointment(page: Page, new_date: str, new_time: str) -> RunnerOutcome:
    _step("Waiting for appointment form")
    await page.wait_for_load_state("domcontentloaded")
    start_date_input = page.get_by_role("textbox", name=re.compile("start date", re.IGNORECASE))
    await start_date_input.wait_for(state="visible", timeout=DEFAULT_TIMEOUT_MS)
    # Ember must finish rendering the form before it accepts input
    await _human_delay(page, 2000, 2500)

    current_date = await start_date_input.input_value()
    _step(f'Setting start date: "{current_date}" -> "{new_date}"')
    await _clear_and_type(page, start_date_input, new_date)
    await start_date_input.press("Tab")
    await _human_delay(page, 600, 1000)

    # Tab from the start date lands on the start time field
    start_time_input = page.locator(":focus")
    try:
        current_time = await start_time_input.input_value()
    except Exception:
        current_time = ""
    _step(f'Setting start time: "{current_time}" -> "{new_time}"')

    await start_time_input.click(click_count=3)
    await _human_delay(page, 200, 400)
    await page.keyboard.press("Backspace")
    await _human_delay(page, 300, 500)
    await page.keyboard.type(new_time, delay=100)
    await _human_delay(page, 600, 1000)
    await page.keyboard.press("Tab")
    await _human_delay(page, 1000, 1500)

    save_button = page.get_by_role("button", name=re.compile("save", re.IGNORECASE))
    try:
        await save_button.wait_for(state="visible", timeout=5_000)
        save_enabled = await save_button.is_enabled()
    except Exception:
        save_enabled = False

    if not save_enabled:
        # Save stays disabled when nothing changed
        _step("Save button is disabled, appointment already at requested date/time")
        return RunnerOutcome(
            success=True,
            message=f"No changes needed. Appointment was already at {new_date} {new_time}",
        )

    _step("Clicking Save")
    await _human_delay(page, 300, 500)
    await save_button.click()

    if await _wait_for_save_confirmation(page, save_button):
        _step("Save confirmed")
        await _human_delay(page, 1000, 1500)
    else:
        # Save was already clicked; only the confirmation went unseen
        logger.warning(
            "Save button still enabled after saving, assuming the change was persisted",
            new_date=new_date,
            new_time=new_time,
        )
        await page.wait_for_timeout(SAVE_SETTLE_MS)

    return RunnerOutcome(
        success=True,
        message=f"Appointment rescheduled to {new_date} at {new_time}",
    )


async def _wait_for_save_confirmation(
    page: Page,
    save_button: Locator,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    poll_ms: int = 250,
) -> bool:
    """Poll until Ember disables Save again. Returns False if it never does."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_ms / 1000
    while await save_button.is_enabled():
        if loop.time() > deadline:
            return False
        await page.wait_for_timeout(poll_ms)
    return True


async def _capture_failure(page: Optional[Page], config: Settings, params: JobParams) -> None:
    artifacts_path = config.get_artifacts_path()
    if page is None or artifacts_path is None:
        return
    stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S")
    target = artifacts_path / f"reschedule-failure-{stamp}.png"
    try:
        await page.screenshot(path=str(target), full_page=True)
        logger.info(f"Saved failure screenshot to {target}", client_search=params.client_search)
    except Exception as e:
        logger.warning(f"Could not capture failure screenshot: {e}")


async def reschedule_appointment(params: JobParams, config: Settings = settings) -> RunnerOutcome:
    """
    Reschedule one upcoming appointment in SimplePractice.

    Launches a fresh headless Chromium, signs in with the configured
    credentials, finds the client, opens the appointment and changes its
    start date and time.

    Args:
        params: Job parameters from the queue
        config: Settings providing credentials and URLs

    Returns:
        RunnerOutcome; failures carry the raw error text for normalization
    """
    try:
        email, password = config.get_automation_credentials()
    except ValueError as e:
        logger.error(str(e))
        return RunnerOutcome(success=False, message=str(e))

    _step(
        "Starting reschedule",
        client_search=params.client_search,
        new_date=params.new_date,
        new_time=params.new_time,
        current_appointment_date=params.current_appointment_date,
    )

    browser: Optional[Browser] = None
    page: Optional[Page] = None
    async with async_playwright() as playwright:
        try:
            browser = await playwright.chromium.launch(headless=config.browser_headless)
            context = await browser.new_context()
            page = await context.new_page()
            page.set_default_timeout(DEFAULT_TIMEOUT_MS)
            page.set_default_navigation_timeout(NAVIGATION_TIMEOUT_MS)

            await _login(page, config, email, password)
            await _open_client(page, config, params.client_search)
            await _open_appointment(page, params.client_search, params.current_appointment_date)
            outcome = await _update_appointment(page, params.new_date, params.new_time)
            logger.info(outcome.message, client_search=params.client_search)
            return outcome

        except Exception as e:
            logger.error(f"Reschedule failed: {e}", client_search=params.client_search)
            await _capture_failure(page, config, params)
            return RunnerOutcome(success=False, message=str(e))

        finally:
            if browser is not None:
                try:
                    await browser.close()
                except Exception as e:
                    logger.warning(f"Error closing browser: {e}")


async def run_reschedule_job(params: JobParams) -> RunnerOutcome:
    """Queue-facing runner: one reschedule, capped at job_timeout_seconds."""
    try:
        return await asyncio.wait_for(
            reschedule_appointment(params),
            timeout=settings.job_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.error(
            f"Reschedule timed out after {settings.job_timeout_seconds:g}s",
            client_search=params.client_search,
        )
        return RunnerOutcome(
            success=False,
            message=f"Reschedule timed out after {settings.job_timeout_seconds:g} seconds",
        )
