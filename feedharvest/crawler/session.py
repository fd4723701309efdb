"""
Session management for the feed browser.

``SessionManager`` owns the single browser session a harvester uses, plus the
validity flag and the cooldown timestamp that throttles renegotiation. Passive
health handling (``ensure_session`` / ``invalidate``) never logs in;
credential login is a separate, explicitly invoked state machine
(``SessionManager.login``).
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Tuple

from feedharvest.core.config import Config, DEFAULT_EMAIL_VERIFICATION_TEXT
from feedharvest.core.error_logger import ErrorLogger, get_error_logger
from feedharvest.core.error_models import ErrorComponent, ErrorSeverity, ErrorStage, ErrorType
from feedharvest.core.errors import SessionUnavailableError
from feedharvest.core.logging import get_logger
from feedharvest.crawler.browser import BrowserSession, PlaywrightBrowserSession
from feedharvest.crawler.detection import SubstringPattern, TextPattern
from feedharvest.crawler.page_scripts import BODY_TEXT_JS
from feedharvest.utils.url_utils import domain_of

logger = get_logger(__name__)

Launcher = Callable[[], Awaitable[BrowserSession]]


@dataclass
class SessionState:
    """Validity flag, last negotiation timestamp and the live browser (if any)."""
    valid: bool = False
    last_check: Optional[float] = None
    browser: Optional[BrowserSession] = None


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str = field(repr=False)


class LoginState(str, Enum):
    START = "start"
    NAVIGATE_HOME = "navigate_home"
    NAVIGATE_LOGIN = "navigate_login"
    ENTER_USERNAME = "enter_username"
    ENTER_USERNAME_CONFIRMATION = "enter_username_confirmation"
    ENTER_PASSWORD = "enter_password"
    SUBMIT = "submit"
    CHECK_PASSWORD_ACCEPTED = "check_password_accepted"
    CHECK_EMAIL_VERIFICATION = "check_email_verification"
    VALID = "valid"
    INVALID = "invalid"


@dataclass
class LoginSettings:
    """Where and how the login form is driven."""
    home_url: str = "https://twitter.com"
    login_url: str = "https://twitter.com/i/flow/login"
    username_selector: str = 'input[autocomplete="username"]'
    confirmation_selector: str = 'input[data-testid="ocfEnterTextTextInput"]'
    password_selector: str = 'input[name="password"]'
    selector_timeout_ms: int = 30_000
    confirmation_timeout_ms: int = 5_000
    observe_ms: int = 2_000
    email_verification: TextPattern = field(
        default_factory=lambda: SubstringPattern(DEFAULT_EMAIL_VERIFICATION_TEXT)
    )

    @classmethod
    def from_config(cls, config: Config) -> "LoginSettings":
        return cls(
            home_url=config.home_url,
            login_url=config.login_url,
            selector_timeout_ms=config.nav_timeout_ms,
            email_verification=SubstringPattern(config.email_verification_text),
        )


class LoginFlow:
    """
    One pass of the credential login state machine.

    Start -> NavigateHome -> NavigateLogin -> EnterUsername ->
    (EnterUsernameConfirmation) -> EnterPassword -> Submit ->
    CheckPasswordAccepted -> CheckEmailVerification -> Valid | Invalid
    """

    def __init__(self, browser: BrowserSession, credentials: Credentials, settings: LoginSettings):
        self.browser = browser
        self.credentials = credentials
        self.settings = settings
        self.state = LoginState.START
        self.history: List[LoginState] = [LoginState.START]

    def _enter(self, state: LoginState) -> None:
        self.state = state
        self.history.append(state)
        logger.info(f"Login step: {state.value}")

    async def _password_accepted(self, url_before: str) -> bool:
        # No explicit success signal: an unchanged URL after submit means rejection
        await self.browser.pause(self.settings.observe_ms)
        return self.browser.url != url_before

    async def _email_verification_required(self) -> bool:
        await self.browser.pause(self.settings.observe_ms)
        text = await self.browser.evaluate(BODY_TEXT_JS)
        return self.settings.email_verification.matches(text or "")

    async def run(self) -> LoginState:
        b, s, c = self.browser, self.settings, self.credentials

        self._enter(LoginState.NAVIGATE_HOME)
        await b.navigate(s.home_url)

        self._enter(LoginState.NAVIGATE_LOGIN)
        await b.navigate(s.login_url)

        self._enter(LoginState.ENTER_USERNAME)
        if not await b.wait_for(s.username_selector, s.selector_timeout_ms):
            logger.warning("Username field never appeared")
            return self.finish(False)
        await b.type(s.username_selector, c.username)
        await b.press_enter()

        if await b.wait_for(s.confirmation_selector, s.confirmation_timeout_ms, visible=True):
            self._enter(LoginState.ENTER_USERNAME_CONFIRMATION)
            await b.type(s.confirmation_selector, c.username)
            await b.press_enter()

        self._enter(LoginState.ENTER_PASSWORD)
        url_before = b.url
        if not await b.wait_for(s.password_selector, s.selector_timeout_ms):
            logger.warning("Password field never appeared")
            return self.finish(False)
        await b.type(s.password_selector, c.password)

        self._enter(LoginState.SUBMIT)
        await b.press_enter()

        self._enter(LoginState.CHECK_PASSWORD_ACCEPTED)
        if not await self._password_accepted(url_before):
            logger.warning("Password is incorrect")
            return self.finish(False)

        self._enter(LoginState.CHECK_EMAIL_VERIFICATION)
        if await self._email_verification_required():
            logger.warning("Email verification required")
            return self.finish(False)

        return self.finish(True)

    def finish(self, ok: bool) -> LoginState:
        self._enter(LoginState.VALID if ok else LoginState.INVALID)
        return self.state


class SessionManager:
    """
    Lazily negotiated browser session with a renegotiation cooldown.

    ``ensure_session`` is safe to call repeatedly: it is a no-op while the
    session is valid, reports "not yet" inside the cooldown window after the
    last negotiation attempt, and negotiates otherwise.
    """

    def __init__(
        self,
        launcher: Launcher,
        cooldown_s: float = 60.0,
        viewport: Tuple[int, int] = (1920, 25000),
        clock: Callable[[], float] = time.monotonic,
        error_logger: Optional[ErrorLogger] = None,
        domain: str = "twitter.com",
    ):
        """
        Args:
            launcher: Coroutine factory returning a fresh BrowserSession
            cooldown_s: Minimum seconds between negotiation attempts
            viewport: (width, height) set on every new session
            clock: Monotonic clock, injectable for tests
            error_logger: Structured error sink (default: global ErrorLogger)
            domain: Feed domain used in error records
        """
        self._launcher = launcher
        self._cooldown_s = cooldown_s
        self._viewport = viewport
        self._clock = clock
        self._error_logger = error_logger
        self._domain = domain
        self._state = SessionState()
        self._lock = asyncio.Lock()
        self.negotiations = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_valid(self) -> bool:
        return self._state.valid

    @property
    def browser(self) -> BrowserSession:
        if self._state.browser is None:
            raise SessionUnavailableError("no live browser session")
        return self._state.browser

    def _errors(self) -> ErrorLogger:
        if self._error_logger is None:
            self._error_logger = get_error_logger()
        return self._error_logger

    async def ensure_session(self) -> bool:
        """
        Make sure a usable session exists.

        Returns:
            True when the session is valid, False when still inside the
            cooldown after a recent attempt or when negotiation failed
        """
        if self._state.valid:
            return True

        async with self._lock:
            if self._state.valid:
                return True
            last = self._state.last_check
            if last is not None and self._clock() - last < self._cooldown_s:
                remaining = self._cooldown_s - (self._clock() - last)
                logger.debug(f"Session negotiation throttled ({remaining:.0f}s left)")
                return False
            return await self._negotiate()

    async def _negotiate(self) -> bool:
        self.negotiations += 1
        # Stamped before the attempt so a failure also starts the cooldown
        self._state.last_check = self._clock()
        await self._release_browser()

        logger.info("Negotiating new browser session")
        browser: Optional[BrowserSession] = None
        try:
            browser = await self._launcher()
            await browser.set_viewport(*self._viewport)
        except Exception as e:
            logger.error(f"Session negotiation failed: {e}")
            self._errors().log_exception(
                e,
                component=ErrorComponent.SESSION,
                stage=ErrorStage.NEGOTIATE_SESSION,
                domain=self._domain,
            )
            if browser is not None:
                await self._close_quietly(browser)
            self._state.valid = False
            return False

        self._state.browser = browser
        self._state.valid = True
        self._state.last_check = self._clock()
        logger.info("Session valid")
        return True

    async def invalidate(self, reason: str = "") -> None:
        """Mark the session invalid and release the browser."""
        if reason:
            logger.warning(f"Invalidating session: {reason}")
        self._state.valid = False
        await self._release_browser()

    async def _release_browser(self) -> None:
        browser, self._state.browser = self._state.browser, None
        if browser is not None:
            await self._close_quietly(browser)

    async def _close_quietly(self, browser: BrowserSession) -> None:
        try:
            await browser.close()
        except Exception as e:
            logger.warning(f"Browser close failed: {e}")
            self._errors().log_exception(
                e,
                component=ErrorComponent.SESSION,
                stage=ErrorStage.CLOSE_SESSION,
                domain=self._domain,
                severity=ErrorSeverity.WARNING,
            )

    async def login(self, credentials: Credentials, settings: Optional[LoginSettings] = None) -> LoginState:
        """
        Run the credential login state machine once.

        A browser is acquired first when none is live (ignoring the cooldown,
        since login is an explicit request). On Valid the session is marked
        valid and the cooldown timestamp refreshed; on Invalid the session is
        invalidated and no retry is attempted.
        """
        settings = settings or LoginSettings()
        async with self._lock:
            if self._state.browser is None and not await self._negotiate():
                return LoginState.INVALID

            flow = LoginFlow(self.browser, credentials, settings)
            try:
                result = await flow.run()
            except Exception as e:
                logger.error(f"Login aborted in step {flow.state.value}: {e}")
                self._errors().log_exception(
                    e,
                    component=ErrorComponent.SESSION,
                    stage=ErrorStage.LOGIN,
                    domain=self._domain,
                    metadata={"step": flow.state.value},
                )
                result = flow.finish(False)

            if result is LoginState.VALID:
                self._state.valid = True
                self._state.last_check = self._clock()
                logger.info("Login successful")
            else:
                self._errors().log_error(
                    component=ErrorComponent.SESSION,
                    stage=ErrorStage.LOGIN,
                    error_type=ErrorType.AUTH_ERROR,
                    domain=self._domain,
                    message="Login rejected",
                    severity=ErrorSeverity.WARNING,
                    metadata={"steps": [s.value for s in flow.history]},
                )
                self._state.valid = False
                await self._release_browser()
            return result


def make_session_manager(config: Config, error_logger: Optional[ErrorLogger] = None) -> SessionManager:
    """SessionManager launching Playwright chromium with the configured settings."""

    async def launcher() -> BrowserSession:
        return await PlaywrightBrowserSession.launch(headless=config.headless, user_agent=config.user_agent)

    return SessionManager(
        launcher,
        cooldown_s=config.session_cooldown_s,
        viewport=config.session_viewport,
        error_logger=error_logger,
        domain=domain_of(config.site_origin) or "unknown",
    )
