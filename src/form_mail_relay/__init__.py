# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""HTTP relay that forwards website form submissions as outbound email.

This package receives two kinds of submissions and delivers them through a
single authenticated SMTP account:

- Contact messages (name, email, subject, message)
- Career applications with a PDF/DOC/DOCX resume attachment

Delivery keeps working when the provider refuses the requester's address as
sender: the message is sent once more from the service's own address, with
the requester kept as ``Reply-To``.

Example:
    Basic usage with the FastAPI application::

        from form_mail_relay.relay import FormMailRelay
        from form_mail_relay.api import create_app

        relay = FormMailRelay.from_settings(load_settings())
        app = create_app(relay, api_token="secret")
"""

__version__ = "0.1.0"
