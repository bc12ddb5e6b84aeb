import logging
import time
import urllib.parse
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Optional

logger = logging.getLogger(__name__)

CLOSE_PAGE = (
    b"<html><body style='font-family: sans-serif; display: flex; align-items: center; height: 100vh;'>"
    b"<h1 style='margin: auto;'>You can close this page now.</h1>"
    b"</body></html>"
)


class _CallbackHandler(BaseHTTPRequestHandler):
    # Browsers preconnect sockets they may never use; an idle one must not
    # hold the single-threaded server past the wait deadline.
    timeout = 5

    def setup(self):
        deadline = getattr(self.server, "deadline", None)
        if deadline is not None:
            self.timeout = max(0.1, min(self.timeout, deadline - time.monotonic()))
        super().setup()

    def do_GET(self):
        server = self.server
        if urllib.parse.urlparse(self.path).path != server.callback_path:
            self.send_response(404)
            self.end_headers()
            return

        server.received_path = self.path
        self.send_response(200)
        self.send_header("Content-Type", "text/html")
        self.end_headers()
        self.wfile.write(CLOSE_PAGE)

    def log_message(self, format, *args):
        logger.debug("Callback server: " + format, *args)


class CallbackServer(HTTPServer):
    """One-shot listener for the OAuth redirect on the redirect URI's host and port."""

    def __init__(self, redirect_uri: str):
        parsed = urllib.parse.urlparse(redirect_uri)
        if not parsed.hostname or not parsed.port:
            raise OSError(f"Redirect URI {redirect_uri} has no explicit host and port to listen on")

        self.redirect_uri = redirect_uri
        self.callback_path = parsed.path or "/"
        self.received_path: Optional[str] = None
        self.deadline: Optional[float] = None
        super().__init__((parsed.hostname, parsed.port), _CallbackHandler)

    def wait_for_redirect(self, timeout: float) -> Optional[str]:
        """Block until the redirect arrives and return its full URL, or None on timeout.

        Requests for other paths (a browser asking for /favicon.ico) are
        answered with 404 and do not end the wait.
        """
        self.deadline = deadline = time.monotonic() + float(timeout)
        while self.received_path is None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.debug("Callback server timed out after %ss", timeout)
                return None
            self.timeout = remaining
            self.handle_request()

        parsed = urllib.parse.urlparse(self.redirect_uri)
        return f"{parsed.scheme}://{parsed.netloc}{self.received_path}"


def run_callback_server(redirect_uri: str, *, timeout: float) -> Optional[str]:
    """Serve exactly one OAuth redirect and return the full URL it was called with.

    Raises OSError when the port cannot be bound; returns None on timeout.
    """
    with CallbackServer(redirect_uri) as server:
        logger.debug("Listening for the OAuth redirect on %s", redirect_uri)
        return server.wait_for_redirect(timeout)
