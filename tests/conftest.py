# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
import pytest

from form_mail_relay.composer import MailComposer
from form_mail_relay.relay import FormMailRelay
from tests.helpers import SERVICE_ADDRESS, FakeTransport, quiet_logger


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def relay(transport):
    return FormMailRelay(
        transport,
        MailComposer(SERVICE_ADDRESS, "Site Relay"),
        fallback_address=SERVICE_ADDRESS,
        cleanup_interval=None,
        logger=quiet_logger(),
    )
