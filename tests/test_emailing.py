import smtplib

import pytest

from utils.emailing import SmtpMailer, render_email


class RecordingSMTP:
    """Stands in for smtplib.SMTP / SMTP_SSL and records what the mailer does."""

    instances = []
    fail_on = None

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.calls = []
        RecordingSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.calls.append("quit")
        return False

    def _record(self, name, *args):
        if RecordingSMTP.fail_on == name:
            raise smtplib.SMTPException(f"{name} failed")
        self.calls.append((name,) + args)

    def starttls(self):
        self._record("starttls")

    def login(self, user, password):
        self._record("login", user, password)

    def sendmail(self, from_addr, to_addrs, message):
        self._record("sendmail", from_addr, to_addrs, message)


class RecordingSMTPSSL(RecordingSMTP):
    pass


@pytest.fixture
def transport(monkeypatch):
    RecordingSMTP.instances = []
    RecordingSMTP.fail_on = None
    monkeypatch.setattr("utils.emailing.smtplib.SMTP", RecordingSMTP)
    monkeypatch.setattr("utils.emailing.smtplib.SMTP_SSL", RecordingSMTPSSL)
    yield RecordingSMTP
    RecordingSMTP.fail_on = None


def _mailer(**overrides):
    settings = {
        "host": "smtp.mailhost.test",
        "port": 587,
        "user": "shop@mailhost.test",
        "password": "app-password",
        "mail_from": "orders@shop.example.com",
        "from_name": "CultivateNaturally",
        "timeout": 5,
    }
    settings.update(overrides)
    return SmtpMailer(**settings)


class TestIsConfigured:
    def test_complete_settings(self):
        assert _mailer().is_configured() is True

    @pytest.mark.parametrize("field", ["host", "user", "password"])
    def test_missing_field(self, field):
        assert _mailer(**{field: ""}).is_configured() is False

    def test_placeholder_host(self):
        assert _mailer(host="smtp.yourprovider.com").is_configured() is False


class TestBuildMessage:
    def test_headers_and_parts(self):
        msg = _mailer().build_message("buyer@example.com", "Your cart", "<p>Hi</p>", "Hi")

        assert msg.get_content_type() == "multipart/alternative"
        assert msg["From"] == "CultivateNaturally <orders@shop.example.com>"
        assert msg["To"] == "buyer@example.com"
        assert msg["Subject"] == "Your cart"
        assert msg["Message-ID"].endswith("@shop.example.com>")
        assert [part.get_content_type() for part in msg.get_payload()] == ["text/plain", "text/html"]

    def test_from_falls_back_to_user(self):
        msg = _mailer(mail_from="").build_message("buyer@example.com", "s", "<p>x</p>")
        assert msg["From"] == "CultivateNaturally <shop@mailhost.test>"
        assert "HTML-capable" in msg.get_payload()[0].get_payload(decode=True).decode()


class TestSend:
    def test_starttls_on_submission_port(self, transport):
        assert _mailer(port=587).send("buyer@example.com", "Your cart", "<p>Hi</p>", "Hi") is True

        [server] = transport.instances
        assert type(server) is RecordingSMTP
        assert (server.host, server.port, server.timeout) == ("smtp.mailhost.test", 587, 5)
        names = [c[0] if isinstance(c, tuple) else c for c in server.calls]
        assert names == ["starttls", "login", "sendmail", "quit"]
        assert server.calls[1] == ("login", "shop@mailhost.test", "app-password")
        sendmail = server.calls[2]
        assert sendmail[1] == "orders@shop.example.com"
        assert sendmail[2] == ["buyer@example.com"]
        assert "Subject: Your cart" in sendmail[3]

    def test_implicit_tls_on_465(self, transport):
        assert _mailer(port=465).send("buyer@example.com", "Your cart", "<p>Hi</p>") is True

        [server] = transport.instances
        assert type(server) is RecordingSMTPSSL
        names = [c[0] if isinstance(c, tuple) else c for c in server.calls]
        assert "starttls" not in names
        assert names == ["login", "sendmail", "quit"]

    @pytest.mark.parametrize("step", ["starttls", "login", "sendmail"])
    def test_transport_errors_return_false(self, transport, step):
        transport.fail_on = step
        assert _mailer().send("buyer@example.com", "Your cart", "<p>Hi</p>") is False

    def test_connection_error_returns_false(self, monkeypatch):
        def refuse(*args, **kwargs):
            raise ConnectionRefusedError("no route")

        monkeypatch.setattr("utils.emailing.smtplib.SMTP", refuse)
        assert _mailer().send("buyer@example.com", "Your cart", "<p>Hi</p>") is False

    def test_unconfigured_does_not_connect(self, transport):
        assert _mailer(password="").send("buyer@example.com", "Your cart", "<p>Hi</p>") is False
        assert transport.instances == []


def test_render_email_escapes_context():
    html = render_email(
        "abandoned_cart.html",
        first_name="Ada",
        intro=["<script>x</script>"],
        items=[],
        cart_url="https://shop.example.com/Cart.html",
        button_label="View cart",
    )
    assert "<script>x</script>" not in html
    assert "&lt;script&gt;" in html
