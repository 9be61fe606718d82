"""
Browser-driven console login with Playwright.

Signs in to the console (automatically with email/password, or by waiting
for the user to log in by hand) and captures the session cookies and tokens
the console API expects.
"""
import logging
import re
from typing import Any, Dict, List, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from dsl_export.auth.session import ConsoleAuth
from dsl_export.core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

LOGIN_TIMEOUT_MS = 60_000
INTERACTIVE_LOGIN_TIMEOUT_MS = 300_000

_APPS_URL = re.compile(r"/apps(?:[/?#]|$)")

EMAIL_SELECTOR = "#email"
PASSWORD_SELECTOR = "#password"


def get_auth_with_playwright(
    base_url: str,
    email: Optional[str] = None,
    password: Optional[str] = None,
    headless: bool = False,
    timeout_ms: Optional[int] = None,
) -> ConsoleAuth:
    """
    Log in to the console and return the captured credentials.

    Args:
        base_url: Console base URL
        email: Login email (interactive login when omitted)
        password: Login password (interactive login when omitted)
        headless: Run the browser headless (ignored for interactive login)
        timeout_ms: How long to wait for the app list page after login

    Returns:
        ConsoleAuth with cookie header, CSRF token and access token

    Raises:
        AuthenticationError: If the login flow does not complete
    """
    base_url = base_url.rstrip("/")
    interactive = not (email and password)
    if interactive and headless:
        logger.warning("No credentials given; opening a visible browser for manual login")
        headless = False
    if timeout_ms is None:
        timeout_ms = INTERACTIVE_LOGIN_TIMEOUT_MS if interactive else LOGIN_TIMEOUT_MS

    try:
        with sync_playwright() as playwright:
            browser = playwright.chromium.launch(headless=headless)
            try:
                context = browser.new_context()
                page = context.new_page()
                page.goto(f"{base_url}/signin")

                if interactive:
                    logger.info("Please log in to the console in the opened browser window...")
                else:
                    page.locator(EMAIL_SELECTOR).fill(email)
                    page.locator(PASSWORD_SELECTOR).fill(password)
                    page.locator(PASSWORD_SELECTOR).press("Enter")

                page.wait_for_url(_APPS_URL, timeout=timeout_ms)

                cookies = context.cookies(base_url)
                access_token = page.evaluate(
                    "() => window.localStorage.getItem('console_token')"
                )
            finally:
                browser.close()
    except PlaywrightTimeoutError as e:
        raise AuthenticationError(
            f"Login to {base_url} did not reach the app list within {timeout_ms} ms"
        ) from e
    except PlaywrightError as e:
        raise AuthenticationError(f"Browser login to {base_url} failed: {e}") from e

    auth = build_console_auth(cookies, access_token)
    if auth.is_empty:
        raise AuthenticationError(f"Login to {base_url} produced no session credentials")

    logger.info("Console login succeeded")
    return auth


def build_console_auth(cookies: List[Dict[str, Any]], access_token: Optional[str] = None) -> ConsoleAuth:
    """Build ConsoleAuth from Playwright cookie dicts and a stored token."""
    cookie_header = "; ".join(f"{c['name']}={c['value']}" for c in cookies)

    csrf_token = None
    for cookie in cookies:
        # Secure deployments prefix the name with __Host-
        if cookie["name"].endswith("csrf_token"):
            csrf_token = cookie["value"]
        if access_token is None and cookie["name"].endswith("access_token"):
            access_token = cookie["value"]

    return ConsoleAuth(
        cookies=cookie_header,
        csrf_token=csrf_token,
        access_token=access_token or None,
    )
