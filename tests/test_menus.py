import sys
import types
import unittest
from dataclasses import dataclass
from pathlib import Path
from typing import Any

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import menus.auth_menu as auth_menu
import menus.selection_menu as selection_menu
from errors import AuthError
from menus.presenter import format_device, format_now_playing, format_playable, render_list
from spotify_api.auth import OAuthFlow, PKCEPair
from spotify_api.models import ContentType, Device, NowPlaying, Playable


@dataclass
class _Askable:
    value: Any

    def ask(self):
        return self.value


class _QuestionaryMock:
    """A minimal questionary stub that returns queued answers and captures args."""

    def __init__(self, *answers: Any):
        import questionary as _real_questionary

        self.Choice = _real_questionary.Choice
        self._queue = list(answers)
        self.messages = []
        self.last_select_choices = None

    def _pop(self) -> Any:
        if not self._queue:
            raise AssertionError("QuestionaryMock queue exhausted")
        return self._queue.pop(0)

    def select(self, message: str, choices: list):
        self.messages.append(message)
        self.last_select_choices = choices
        return _Askable(self._pop())

    def text(self, message: str):
        self.messages.append(message)
        return _Askable(self._pop())


class _PatchModuleAttr:
    """Context manager to temporarily patch module attributes."""

    def __init__(self, module: types.ModuleType, attr: str, value: Any):
        self.module = module
        self.attr = attr
        self.value = value
        self._old = None

    def __enter__(self):
        self._old = getattr(self.module, self.attr)
        setattr(self.module, self.attr, self.value)

    def __exit__(self, exc_type, exc, tb):
        setattr(self.module, self.attr, self._old)


class TestPresenter(unittest.TestCase):
    def test_now_playing(self):
        self.assertEqual(format_now_playing(None), "Nothing playing")
        self.assertEqual(format_now_playing(NowPlaying("Song", ["A", "B"])), "\"Song\" by A, B")
        self.assertEqual(format_now_playing(NowPlaying("Intro", [])), "\"Intro\"")

    def test_playable(self):
        self.assertEqual(
            format_playable(Playable(ContentType.TRACK, "Song", "spotify:track:1", ["A"])),
            "\"Song\" by A [Track]",
        )
        self.assertEqual(format_playable(Playable(ContentType.PLAYLIST, "Chill Mix", "spotify:playlist:1")), "Chill Mix [Playlist]")

    def test_device(self):
        self.assertEqual(format_device(Device("1", "Laptop", "Computer", True, 40)), "Laptop (Computer) [active] 40%")
        self.assertEqual(format_device(Device(None, "Speaker")), "Speaker")

    def test_render_list_aligns_numbers(self):
        lines = render_list([str(i) for i in range(10)], str).splitlines()
        self.assertEqual(lines[0], " 1. 0")
        self.assertEqual(lines[9], "10. 9")
        self.assertEqual(render_list([], str), "")


class TestSelectionMenu(unittest.TestCase):
    def test_returns_selected_item(self):
        q = _QuestionaryMock(1)
        with _PatchModuleAttr(selection_menu, "questionary", q):
            chosen = selection_menu.select_item("Pick", ["a", "b"], str.upper)

        self.assertEqual(chosen, "b")
        self.assertEqual([c.title for c in q.last_select_choices], ["A", "B"])

    def test_cancel_and_empty_return_none(self):
        q = _QuestionaryMock(None)
        with _PatchModuleAttr(selection_menu, "questionary", q):
            self.assertIsNone(selection_menu.select_item("Pick", ["a"], str))
            self.assertIsNone(selection_menu.select_item("Pick", [], str))


class FakeAuth:
    redirect_uri = "http://127.0.0.1:8080/callback"

    def __init__(self):
        self.exchanged = None

    def begin_oauth_flow(self, client_id, *, show_dialog=False):
        self.client_id = client_id
        return OAuthFlow(auth_url="https://accounts.spotify.com/authorize?x=1", pkce_pair=PKCEPair("verifier", "challenge"), state="S")

    def exchange_code_for_token(self, *, client_id, code, code_verifier):
        self.exchanged = (client_id, code, code_verifier)
        return "credentials"


class TestAuthMenu(unittest.TestCase):
    CONFIG = {"spotify_client_id": "", "open_browser": False, "callback_timeout": 1}

    def test_callback_redirect_is_exchanged(self):
        auth = FakeAuth()
        redirect = lambda uri, *, timeout: f"{uri}?code=CODE&state=S"

        with _PatchModuleAttr(auth_menu, "run_callback_server", redirect):
            creds = auth_menu.run_auth_flow(self.CONFIG, auth, client_id="cid")

        self.assertEqual(creds, "credentials")
        self.assertEqual(auth.exchanged, ("cid", "CODE", "verifier"))

    def test_asks_for_client_id_and_falls_back_to_paste(self):
        def unavailable(uri, *, timeout):
            raise OSError("address in use")

        auth = FakeAuth()
        q = _QuestionaryMock("  typed-id  ", "http://127.0.0.1:8080/callback?code=PASTED&state=S")

        with _PatchModuleAttr(auth_menu, "run_callback_server", unavailable), _PatchModuleAttr(auth_menu, "questionary", q):
            auth_menu.run_auth_flow(self.CONFIG, auth)

        self.assertEqual(auth.client_id, "typed-id")
        self.assertEqual(auth.exchanged, ("typed-id", "PASTED", "verifier"))
        self.assertEqual(len(q.messages), 2)

    def test_timeout_falls_back_to_paste(self):
        auth = FakeAuth()
        q = _QuestionaryMock("http://127.0.0.1:8080/callback?code=LATE&state=S")

        with _PatchModuleAttr(auth_menu, "run_callback_server", lambda uri, *, timeout: None), \
                _PatchModuleAttr(auth_menu, "questionary", q):
            auth_menu.run_auth_flow({**self.CONFIG, "spotify_client_id": "cfg-id"}, auth)

        self.assertEqual(auth.exchanged, ("cfg-id", "LATE", "verifier"))

    def test_empty_client_id_cancels(self):
        q = _QuestionaryMock("")
        with _PatchModuleAttr(auth_menu, "questionary", q):
            with self.assertRaises(AuthError):
                auth_menu.run_auth_flow(self.CONFIG, FakeAuth())

    def test_state_mismatch_is_rejected(self):
        auth = FakeAuth()
        redirect = lambda uri, *, timeout: f"{uri}?code=CODE&state=OTHER"
        with _PatchModuleAttr(auth_menu, "run_callback_server", redirect):
            with self.assertRaises(AuthError):
                auth_menu.run_auth_flow(self.CONFIG, auth, client_id="cid")
        self.assertIsNone(auth.exchanged)


if __name__ == "__main__":
    unittest.main(verbosity=2)
