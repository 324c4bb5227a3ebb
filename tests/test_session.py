import asyncio

import pytest

from site_builder.services.session import (
    ASSISTANT_CONFIRMATION,
    IMAGE_MARKER,
    SiteSession,
    UnsupportedAttachmentError,
    get_session,
    start_session,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"


def test_first_turn_coffee_shop(fake_openai):
    fake_openai.script(["<html>", "...", "</html>"])
    session = SiteSession()
    seen = []

    accepted = asyncio.run(session.submit("Landing page for a coffee shop", on_chunk=seen.append))

    assert accepted is True
    assert seen == ["<html>", "...", "</html>"]
    assert session.document == "<html>...</html>"
    assert [(t.role, t.text) for t in session.transcript] == [
        ("user", "Landing page for a coffee shop"),
        ("assistant", ASSISTANT_CONFIRMATION),
    ]
    assert session.busy is False
    assert session.has_started is True


def test_second_turn_resets_document_and_sends_context(fake_openai):
    fake_openai.script(["<html>", "...", "</html>"])
    fake_openai.script(["<html", " style=blue>", "...", "</html>"])
    session = SiteSession()
    asyncio.run(session.submit("Landing page for a coffee shop"))

    turn = session.begin_turn("Make the header blue")
    assert session.document == ""
    assert turn.base_document == "<html>...</html>"

    async def _consume():
        return [f async for f in session.run_turn(turn)]

    fragments = asyncio.run(_consume())

    assert fragments == ["<html", " style=blue>", "...", "</html>"]
    assert session.document == "<html style=blue>...</html>"
    assert len(session.transcript) == 4
    assert session.transcript[2].text == "Make the header blue"

    parts = fake_openai.calls[1]["messages"][1]["content"]
    assert "<html>...</html>" in parts[0]["text"]
    assert "User: Landing page for a coffee shop" in parts[1]["text"]
    assert "Make the header blue" not in parts[1]["text"]
    assert parts[-1]["text"].endswith("Make the header blue")


def test_document_is_prefix_while_streaming(fake_openai):
    fake_openai.script(["<html>", "<body>", "</body></html>"])
    session = SiteSession()
    observed = []

    async def _consume():
        turn = session.begin_turn("Page")
        async for _ in session.run_turn(turn):
            observed.append((session.document, session.busy))

    asyncio.run(_consume())

    assert observed == [
        ("<html>", True),
        ("<html><body>", True),
        ("<html><body></body></html>", True),
    ]
    assert session.busy is False


def test_empty_prompt_without_attachment_is_noop(fake_openai):
    session = SiteSession()

    assert asyncio.run(session.submit("   \n")) is False
    assert session.transcript == []
    assert session.busy is False
    assert fake_openai.calls == []


def test_submit_while_busy_is_noop(fake_openai):
    session = SiteSession()
    session.attach_image("image/png", PNG_BYTES)
    session.set_busy(True)

    assert session.begin_turn("Anything") is None
    assert session.transcript == []
    assert session.attachment is not None
    assert fake_openai.calls == []


def test_image_only_submission_is_accepted(fake_openai):
    fake_openai.script(["<html></html>"])
    session = SiteSession()
    session.attach_image("image/jpeg", b"\xff\xd8\xff", filename="ref.jpg")

    assert asyncio.run(session.submit("")) is True

    assert session.transcript[0].text == f"{IMAGE_MARKER} "
    assert session.attachment is None
    parts = fake_openai.calls[0]["messages"][1]["content"]
    assert parts[-1]["type"] == "image_url"
    assert parts[-1]["image_url"]["url"] == "data:image/jpeg;base64,/9j/"


def test_unsupported_attachment_leaves_state_alone():
    session = SiteSession()
    session.append_fragment("<html></html>")

    with pytest.raises(UnsupportedAttachmentError) as excinfo:
        session.attach_image("image/gif", b"GIF89a", filename="anim.gif")

    assert "PNG or JPEG" in str(excinfo.value)
    assert session.attachment is None
    assert session.transcript == []
    assert session.document == "<html></html>"


def test_attach_then_remove_has_no_marker(fake_openai):
    fake_openai.script(["<html></html>"])
    session = SiteSession()
    session.attach_image("image/png", PNG_BYTES)
    session.remove_attachment()

    asyncio.run(session.submit("Portfolio"))

    assert session.attachment is None
    assert session.transcript[0].text == "Portfolio"
    assert all(p["type"] == "text" for p in fake_openai.calls[0]["messages"][1]["content"])


def test_failed_turn_keeps_partial_output_and_unlocks(fake_openai):
    fake_openai.script(["<html>", "<body>"], error=RuntimeError("stream reset"))
    session = SiteSession()

    asyncio.run(session.submit("Blog"))

    assert session.document.startswith("<html><body>")
    assert "stream reset" in session.document
    assert session.transcript[-1].text == ASSISTANT_CONFIRMATION
    assert session.busy is False


def test_missing_key_turn(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    session = SiteSession()

    asyncio.run(session.submit("Blog"))

    assert session.document.startswith("<!-- Error: API Key is missing")
    assert session.busy is False
    assert len(session.transcript) == 2


def test_draft_is_used_and_cleared(fake_openai):
    fake_openai.script(["<html></html>"])
    session = SiteSession(draft="SaaS landing page")

    asyncio.run(session.submit())

    assert session.draft == ""
    assert session.transcript[0].text == "SaaS landing page"


def test_registry_lookup():
    session = start_session()
    assert get_session(session.session_id) is session
    with pytest.raises(KeyError):
        get_session("missing")


def test_background_turn_completes_when_reader_stops_early(fake_openai):
    fake_openai.script(["<html>", "<body>", "</body>", "</html>"])
    session = SiteSession()

    async def _run():
        turn = session.begin_turn("Landing page for a coffee shop")
        fragments = session.start_background_turn(turn)
        first = await fragments.get()
        # reader walks away; the turn must still finish on its own
        for _ in range(500):
            if not session.busy:
                break
            await asyncio.sleep(0.01)
        return first

    first = asyncio.run(_run())

    assert first == "<html>"
    assert session.document == "<html><body></body></html>"
    assert session.transcript[-1].text == ASSISTANT_CONFIRMATION
    assert session.busy is False
