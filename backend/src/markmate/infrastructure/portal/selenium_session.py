"""
Selenium Portal Session
Remote session against the assessment portal, driven by configured selectors
"""
import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

from loguru import logger
from selenium import webdriver
from selenium.common.exceptions import (
    StaleElementReferenceException,
    TimeoutException,
    WebDriverException,
)
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.common.by import By
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait
from webdriver_manager.chrome import ChromeDriverManager

from markmate.application.services.portal.interfaces import (
    Accepted,
    IRemoteSession,
    Outcome,
    Rejected,
    SessionHandle,
    TimedOut,
)
from markmate.core.config import Settings
from markmate.core.exceptions import AuthError, ConnectivityError, SessionRecoveryError
from markmate.domain.entities import CandidatePayload, PlaintextCredential

DriverFactory = Callable[[bool], WebDriver]

POLL_INTERVAL_SECONDS = 0.25
GENERIC_PORTAL_ERROR = "Portal reported an error"


@dataclass(frozen=True)
class PortalSelectors:
    """Where things are on the portal (CSS unless the name says XPath)"""

    login_url: str
    username: str
    password: str
    login_button: str
    logged_in: str
    login_error: str
    candidate_list: str
    candidate_row_xpath: str
    row_action: str
    upload_menu_xpath: str
    theory_input: str
    practical_input: str
    submit_xpath: str
    modal: str
    error: str
    success: Optional[str] = None
    batch_url_template: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "PortalSelectors":
        return cls(
            login_url=settings.PORTAL_LOGIN_URL,
            username=settings.PORTAL_USERNAME_SELECTOR,
            password=settings.PORTAL_PASSWORD_SELECTOR,
            login_button=settings.PORTAL_LOGIN_BUTTON_SELECTOR,
            logged_in=settings.PORTAL_LOGGED_IN_SELECTOR,
            login_error=settings.PORTAL_LOGIN_ERROR_SELECTOR,
            candidate_list=settings.PORTAL_CANDIDATE_LIST_SELECTOR,
            candidate_row_xpath=settings.PORTAL_CANDIDATE_ROW_XPATH,
            row_action=settings.PORTAL_ROW_ACTION_SELECTOR,
            upload_menu_xpath=settings.PORTAL_UPLOAD_MENU_XPATH,
            theory_input=settings.PORTAL_THEORY_INPUT_SELECTOR,
            practical_input=settings.PORTAL_PRACTICAL_INPUT_SELECTOR,
            submit_xpath=settings.PORTAL_SUBMIT_XPATH,
            modal=settings.PORTAL_MODAL_SELECTOR,
            error=settings.PORTAL_ERROR_SELECTOR,
            success=settings.PORTAL_SUCCESS_SELECTOR,
            batch_url_template=settings.PORTAL_BATCH_URL_TEMPLATE,
        )

    def candidate_row(self, external_id: str) -> str:
        return self.candidate_row_xpath.format(external_id=xpath_literal(external_id))


def xpath_literal(value: str) -> str:
    """Quote a string for use inside an XPath expression"""
    if "'" not in value:
        return f"'{value}'"
    if '"' not in value:
        return f'"{value}"'
    parts = value.split("'")
    return "concat(" + ", \"'\", ".join(f"'{part}'" for part in parts) + ")"


def chrome_driver_factory(headless: bool) -> WebDriver:
    """Initialize a Chrome driver"""
    options = webdriver.ChromeOptions()
    if headless:
        options.add_argument("--headless=new")
    options.add_argument("--no-sandbox")
    options.add_argument("--disable-dev-shm-usage")
    options.add_argument("--disable-gpu")
    options.add_argument("--window-size=1920,1080")

    try:
        return webdriver.Chrome(service=Service(ChromeDriverManager().install()), options=options)
    except Exception as e:
        logger.error(f"Failed to initialize Chrome driver: {e}")
        raise


def _visible_text(driver: WebDriver, css: str) -> Optional[str]:
    """Text of the first displayed match, None when nothing matching is displayed"""
    for element in driver.find_elements(By.CSS_SELECTOR, css):
        if element.is_displayed():
            return element.text.strip() or GENERIC_PORTAL_ERROR
    return None


def _any_displayed(driver: WebDriver, css: str) -> bool:
    return any(element.is_displayed() for element in driver.find_elements(By.CSS_SELECTOR, css))


class SeleniumPortalSession(IRemoteSession):
    """
    Browser-backed remote session.

    Every WebDriver call blocks, so each operation runs in a worker thread.
    One handle owns one driver; the handle is closed by quitting it.
    """

    def __init__(
        self,
        selectors: PortalSelectors,
        headless: bool = True,
        submit_timeout_seconds: float = 10.0,
        form_timeout_seconds: float = 20.0,
        page_load_timeout_seconds: float = 60.0,
        driver_factory: Optional[DriverFactory] = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
    ):
        self.selectors = selectors
        self.headless = headless
        self.submit_timeout_seconds = submit_timeout_seconds
        self.form_timeout_seconds = form_timeout_seconds
        self.page_load_timeout_seconds = page_load_timeout_seconds
        self.driver_factory = driver_factory or chrome_driver_factory
        self.poll_interval = poll_interval

    @classmethod
    def from_settings(cls, settings: Settings) -> "SeleniumPortalSession":
        return cls(
            PortalSelectors.from_settings(settings),
            headless=settings.SELENIUM_HEADLESS,
            submit_timeout_seconds=settings.SUBMIT_TIMEOUT_SECONDS,
            form_timeout_seconds=settings.SUBMIT_FORM_TIMEOUT_SECONDS,
            page_load_timeout_seconds=settings.SELENIUM_PAGE_LOAD_TIMEOUT_SECONDS,
        )

    # ------------------------------------------------------------------
    # IRemoteSession
    # ------------------------------------------------------------------

    async def open(self, credential: PlaintextCredential, portal_ref: Optional[str] = None) -> SessionHandle:
        abandoned = threading.Event()
        login = asyncio.ensure_future(asyncio.to_thread(self._login, credential, portal_ref, abandoned))
        try:
            driver = await asyncio.shield(login)
        except asyncio.CancelledError:
            # The login thread cannot be stopped; wait for it and quit whatever it started
            abandoned.set()
            logger.warning("Session open abandoned, waiting for the browser to shut down")
            driver = await self._settle(login)
            if driver is not None:
                await asyncio.to_thread(self._quit_quietly, driver)
            raise
        return SessionHandle(portal_ref=portal_ref, resource=driver)

    async def submit_item(self, handle: SessionHandle, payload: CandidatePayload) -> Outcome:
        driver = self._driver(handle)
        work = asyncio.ensure_future(asyncio.to_thread(self._submit, driver, payload))
        try:
            return await asyncio.shield(work)
        except asyncio.CancelledError:
            # A thread still driving the browser makes the session unusable: quitting
            # the driver ends that thread, and the closed handle fails any recovery
            logger.warning(f"Submission for {payload.external_id} abandoned, closing session {handle.session_id}")
            await self.close(handle)
            await self._settle(work)
            raise

    async def recover(self, handle: SessionHandle) -> None:
        try:
            driver = self._driver(handle)
        except ConnectivityError as e:
            raise SessionRecoveryError(str(e)) from e
        await asyncio.to_thread(self._back_to_list, driver)

    async def close(self, handle: SessionHandle) -> None:
        if handle.closed:
            return
        driver, handle.resource, handle.closed = handle.resource, None, True
        if driver is None:
            return
        try:
            await asyncio.to_thread(driver.quit)
        except Exception as e:
            logger.warning(f"Error quitting browser for {handle.session_id}: {e}")

    @staticmethod
    async def _settle(work: "asyncio.Future"):
        """Result of an abandoned thread once it finishes, None if it failed"""
        try:
            return await asyncio.shield(work)
        except Exception as e:
            logger.debug(f"Abandoned browser call ended with: {e}")
            return None

    # ------------------------------------------------------------------
    # Blocking helpers (run in threads)
    # ------------------------------------------------------------------

    def _driver(self, handle: SessionHandle) -> WebDriver:
        if handle.closed or handle.resource is None:
            raise ConnectivityError(f"Session {handle.session_id} is closed")
        return handle.resource

    def _wait(self, driver: WebDriver, timeout: float) -> WebDriverWait:
        return WebDriverWait(
            driver,
            timeout,
            poll_frequency=self.poll_interval,
            ignored_exceptions=(StaleElementReferenceException,),
        )

    def _login(
        self,
        credential: PlaintextCredential,
        portal_ref: Optional[str],
        abandoned: Optional[threading.Event] = None,
    ) -> WebDriver:
        s = self.selectors
        try:
            driver = self.driver_factory(self.headless)
        except Exception as e:
            raise ConnectivityError(f"Could not start browser: {e}") from e

        try:
            self._check_abandoned(abandoned)
            driver.set_page_load_timeout(self.page_load_timeout_seconds)
            logger.info(f"Logging in to portal as {credential.username}...")
            driver.get(s.login_url)

            wait = self._wait(driver, self.page_load_timeout_seconds)
            username_field = wait.until(EC.presence_of_element_located((By.CSS_SELECTOR, s.username)))
            username_field.clear()
            username_field.send_keys(credential.username)

            password_field = driver.find_element(By.CSS_SELECTOR, s.password)
            password_field.clear()
            password_field.send_keys(credential.password)

            driver.find_element(By.CSS_SELECTOR, s.login_button).click()

            state, detail = wait.until(self._login_state)
            if state == "error":
                raise AuthError(f"Portal rejected the credential: {detail}")
            logger.info("✅ Portal login successful")
            self._check_abandoned(abandoned)

            if s.batch_url_template and portal_ref:
                driver.get(s.batch_url_template.format(portal_ref=portal_ref))
            wait.until(EC.presence_of_element_located((By.CSS_SELECTOR, s.candidate_list)))
            logger.info(f"On candidate list for portal batch {portal_ref or 'N/A'}")
            return driver

        except (AuthError, ConnectivityError):
            self._quit_quietly(driver)
            raise
        except TimeoutException as e:
            self._quit_quietly(driver)
            raise ConnectivityError(
                f"Portal did not reach the expected page within {self.page_load_timeout_seconds:g}s"
            ) from e
        except WebDriverException as e:
            self._quit_quietly(driver)
            raise ConnectivityError(f"Browser error during login: {e.msg or type(e).__name__}") from e
        except Exception:
            self._quit_quietly(driver)
            raise

    @staticmethod
    def _check_abandoned(abandoned: Optional[threading.Event]) -> None:
        if abandoned is not None and abandoned.is_set():
            raise ConnectivityError("Session open was abandoned by the caller")

    def _login_state(self, driver: WebDriver):
        """Either the logged-in marker or a login error, False until one shows"""
        if _any_displayed(driver, self.selectors.logged_in):
            return "ok", None
        error_text = _visible_text(driver, self.selectors.login_error)
        if error_text:
            return "error", error_text
        return False

    def _submit(self, driver: WebDriver, payload: CandidatePayload) -> Outcome:
        s = self.selectors
        # Every form step shares one budget so the whole call stays bounded
        form_deadline = time.monotonic() + self.form_timeout_seconds

        def step_wait() -> WebDriverWait:
            return self._wait(driver, max(form_deadline - time.monotonic(), 0.0))

        try:
            row = step_wait().until(
                EC.presence_of_element_located((By.XPATH, s.candidate_row(payload.external_id)))
            )
        except TimeoutException:
            return Rejected(reason=f"Candidate {payload.external_id} not found in the portal list")

        try:
            row.find_element(By.CSS_SELECTOR, s.row_action).click()
            step_wait().until(EC.element_to_be_clickable((By.XPATH, s.upload_menu_xpath))).click()
            step_wait().until(EC.presence_of_element_located((By.CSS_SELECTOR, s.theory_input)))

            theory_inputs = driver.find_elements(By.CSS_SELECTOR, s.theory_input)
            practical_inputs = driver.find_elements(By.CSS_SELECTOR, s.practical_input)
            for i, mark in enumerate(payload.marks):
                if i < len(theory_inputs) and mark.theory_marks is not None:
                    theory_inputs[i].clear()
                    theory_inputs[i].send_keys(str(mark.theory_marks))
                if i < len(practical_inputs) and mark.practical_marks is not None:
                    practical_inputs[i].clear()
                    practical_inputs[i].send_keys(str(mark.practical_marks))

            step_wait().until(EC.element_to_be_clickable((By.XPATH, s.submit_xpath))).click()
        except TimeoutException:
            return Rejected(reason="Marks form did not become available")
        except WebDriverException as e:
            return Rejected(reason=f"Could not fill the marks form: {e.msg or type(e).__name__}")

        try:
            return self._wait(driver, self.submit_timeout_seconds).until(self._terminal_signal)
        except TimeoutException:
            return TimedOut(after_seconds=self.submit_timeout_seconds)

    def _terminal_signal(self, driver: WebDriver) -> Union[Outcome, bool]:
        """Accepted or Rejected once the portal settles, False while still waiting"""
        s = self.selectors
        error_text = _visible_text(driver, s.error)
        if error_text:
            return Rejected(reason=error_text)
        if s.success:
            return Accepted() if _any_displayed(driver, s.success) else False
        return Accepted() if not _any_displayed(driver, s.modal) else False

    def _back_to_list(self, driver: WebDriver) -> None:
        s = self.selectors
        try:
            if _any_displayed(driver, s.modal):
                driver.back()
            self._wait(driver, self.submit_timeout_seconds).until(
                EC.presence_of_element_located((By.CSS_SELECTOR, s.candidate_list))
            )
        except TimeoutException as e:
            raise SessionRecoveryError("Candidate list did not come back after a failed item") from e
        except WebDriverException as e:
            raise SessionRecoveryError(f"Browser error while recovering: {e.msg or type(e).__name__}") from e

    @staticmethod
    def _quit_quietly(driver: WebDriver) -> None:
        try:
            driver.quit()
        except Exception as e:
            logger.debug(f"Ignoring error while quitting browser: {e}")
