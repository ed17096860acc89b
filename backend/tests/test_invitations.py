"""
Tests for invitation sending, templates and the Graph e-mail transport.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
import requests

from conftest import T0, FakeEmailSender, FixedClock, make_guest
from guestpass.core.exceptions import EmailSendError, GuestValidationError
from guestpass.models.email_template import DEFAULT_INVITATION_TEMPLATE, EmailTemplate
from guestpass.services.email import GraphEmailSender, LoggingEmailSender
from guestpass.services.invitations import InvitationService, TemplateStore, render_invitation

SENT_AT = T0 + timedelta(days=2)


@pytest.fixture
def seeded_store(store):
    store.create(make_guest(id="g1", email="one@example.com"))
    store.create(make_guest(id="g2", email="two@example.com"))
    store.create(make_guest(id="g3", email=""))
    return store


def test_send_marks_only_delivered_guests(seeded_store):
    sender = FakeEmailSender(fail_for={"two@example.com"})
    service = InvitationService(seeded_store, sender, clock=FixedClock(SENT_AT))

    report = service.send_invitations(["g1", "g2", "g3", "ghost", "g1"])

    assert report.sent == ["g1"]
    assert [f["guest_id"] for f in report.failed] == ["g2", "g3"]
    assert report.missing == ["ghost"]
    assert len(sender.sent) == 1

    assert seeded_store.get("g1").invitation_sent_at == SENT_AT
    assert seeded_store.get("g2").invitation_sent is False
    assert seeded_store.get("g3").invitation_sent is False


def test_transport_reporting_failure_is_not_recorded(seeded_store):
    sender = FakeEmailSender(reject_for={"one@example.com"})
    service = InvitationService(seeded_store, sender, clock=FixedClock(SENT_AT))

    report = service.send_invitations(["g1"])

    assert report.success_count == 0
    assert seeded_store.get("g1").invitation_sent is False


def test_reinvite_moves_timestamp(seeded_store, fake_sender):
    service = InvitationService(seeded_store, fake_sender, clock=FixedClock(SENT_AT))
    service.send_invitations(["g1"])
    service.clock = FixedClock(SENT_AT + timedelta(days=1))

    service.send_invitations(["g1"])

    assert seeded_store.get("g1").invitation_sent_at == SENT_AT + timedelta(days=1)
    assert len(fake_sender.sent) == 2


def test_render_fills_and_escapes_placeholders():
    template = EmailTemplate(
        subject="Welcome {name}",
        image_url="https://example.com/banner.png",
        body="<p>Dear {name} of {organization}, pass {pass_id}</p>",
    )
    guest = make_guest(name="Ali <b>", organization="Manta Air")

    subject, html = render_invitation(template, guest)

    assert subject == "Welcome Ali <b>"
    assert "Dear Ali &lt;b&gt; of Manta Air, pass pass-001" in html
    assert 'src="https://example.com/banner.png"' in html
    assert "/pass/pass-001" in html


def test_pass_email_requires_address(store, fake_sender):
    service = InvitationService(store, fake_sender)

    with pytest.raises(GuestValidationError):
        service.send_pass_email(make_guest(email=""))
    assert service.send_pass_email(make_guest()) is True
    assert "pass-001" in fake_sender.sent[0]["html"]


def test_template_store_defaults_and_saves(db_session):
    templates = TemplateStore(db_session)
    assert templates.get() == DEFAULT_INVITATION_TEMPLATE

    custom = EmailTemplate(subject="Gala night", image_url="", body="<p>Hi {name}</p>")
    templates.save(custom)

    assert TemplateStore(db_session).get() == custom
    with pytest.raises(GuestValidationError):
        templates.save(EmailTemplate(subject=" ", image_url="", body="x"))


def test_logging_sender_reports_success():
    assert LoggingEmailSender().send("a@example.com", "Hi", "<p>Hi</p>") is True


def _graph_sender(response=None, error=None):
    session = MagicMock()
    if error is not None:
        session.post.side_effect = error
    else:
        session.post.return_value = response
    return GraphEmailSender("token-123", api_url="https://graph.test/v1.0/", session=session), session


def test_graph_sender_posts_message():
    response = MagicMock()
    response.ok = True
    sender, session = _graph_sender(response)

    assert sender.send("guest@example.com", "Invite", "<p>Hi</p>") is True

    args, kwargs = session.post.call_args
    assert args[0] == "https://graph.test/v1.0/me/sendMail"
    assert kwargs["headers"]["Authorization"] == "Bearer token-123"
    assert kwargs["json"]["message"]["toRecipients"][0]["emailAddress"]["address"] == "guest@example.com"


def test_graph_sender_surfaces_api_error():
    response = MagicMock()
    response.ok = False
    response.status_code = 401
    response.json.return_value = {"error": {"message": "Access token has expired."}}
    sender, _ = _graph_sender(response)

    with pytest.raises(EmailSendError) as excinfo:
        sender.send("guest@example.com", "Invite", "<p>Hi</p>")

    assert str(excinfo.value) == "Access token has expired."
    assert excinfo.value.status_code == 401


def test_graph_sender_wraps_network_errors():
    sender, _ = _graph_sender(error=requests.ConnectionError("connection refused"))

    with pytest.raises(EmailSendError):
        sender.send("guest@example.com", "Invite", "<p>Hi</p>")


def test_graph_sender_requires_token():
    with pytest.raises(ValueError):
        GraphEmailSender("")
