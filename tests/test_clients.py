import smtplib

import cloudinary.exceptions
import cloudinary.uploader
import pytest

from fishstore.errors import UpstreamServiceFailure
from fishstore.images import CloudinaryImageHost
from fishstore.mail import SmtpMailer


class RecordingConnection:
    def __init__(self):
        self.logins = []
        self.messages = []

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def login(self, username, password):
        self.logins.append((username, password))

    def send_message(self, message):
        self.messages.append(message)


def make_mailer(**kwargs):
    return SmtpMailer(
        host="smtp.example.test",
        username="shop@example.test",
        password="pw",
        sleep=lambda _: None,
        **kwargs,
    )


class TestSmtpMailer:
    def test_sends_multipart_message(self, monkeypatch):
        mailer = make_mailer()
        connection = RecordingConnection()
        monkeypatch.setattr(mailer, "_connect", lambda: connection)

        message_id = mailer.send("jane@example.com", "Hello", "plain body", html_body="<p>html body</p>")

        assert connection.logins == [("shop@example.test", "pw")]
        sent = connection.messages[0]
        assert sent["To"] == "jane@example.com"
        assert sent["Message-ID"] == message_id
        assert "FreshFish" in sent["From"]
        assert sent.get_body(("html",)).get_content().strip() == "<p>html body</p>"

    def test_retries_dropped_connections(self, monkeypatch):
        mailer = make_mailer()
        connection = RecordingConnection()
        attempts = []

        def connect():
            attempts.append(1)
            if len(attempts) == 1:
                raise smtplib.SMTPServerDisconnected("connection unexpectedly closed")
            return connection

        monkeypatch.setattr(mailer, "_connect", connect)

        mailer.send("jane@example.com", "Hello", "body")

        assert len(attempts) == 2
        assert len(connection.messages) == 1

    def test_rejection_is_an_upstream_failure(self, monkeypatch):
        mailer = make_mailer()
        attempts = []

        def connect():
            attempts.append(1)
            raise smtplib.SMTPAuthenticationError(535, b"bad credentials")

        monkeypatch.setattr(mailer, "_connect", connect)

        with pytest.raises(UpstreamServiceFailure):
            mailer.send("jane@example.com", "Hello", "body")

        assert len(attempts) == 1


class TestCloudinaryImageHost:
    def make_host(self):
        return CloudinaryImageHost("demo", "key", "secret", backoff_factor=0)

    def test_upload_passes_credentials_per_call(self, monkeypatch):
        calls = []

        def upload(data, **options):
            calls.append(options)
            return {"secure_url": "https://res.cloudinary.com/demo/x.jpg", "public_id": "fish-ecommerce/products/x"}

        monkeypatch.setattr(cloudinary.uploader, "upload", upload)

        image = self.make_host().upload(b"bytes", "x.jpg")

        assert image.url == "https://res.cloudinary.com/demo/x.jpg"
        assert image.public_id == "fish-ecommerce/products/x"
        assert calls[0]["cloud_name"] == "demo"
        assert calls[0]["api_secret"] == "secret"
        assert calls[0]["folder"] == "fish-ecommerce/products"

    def test_rate_limited_upload_is_retried(self, monkeypatch):
        calls = []

        def upload(data, **options):
            calls.append(1)
            if len(calls) < 3:
                raise cloudinary.exceptions.RateLimited("slow down")
            return {"secure_url": "https://res.cloudinary.com/demo/y.jpg", "public_id": "y"}

        monkeypatch.setattr(cloudinary.uploader, "upload", upload)

        assert self.make_host().upload(b"bytes", "y.jpg").public_id == "y"
        assert len(calls) == 3

    def test_persistent_failure_becomes_upstream_failure(self, monkeypatch):
        def destroy(public_id, **options):
            raise cloudinary.exceptions.GeneralError("boom")

        monkeypatch.setattr(cloudinary.uploader, "destroy", destroy)

        with pytest.raises(UpstreamServiceFailure) as excinfo:
            self.make_host().delete("fish-ecommerce/products/x")

        assert excinfo.value.status_code == 502
