from __future__ import annotations

import io
import logging
import wave

import pytest

from dinedesk.client.notifications import CUES, AlertKind, LoggingNotifier, OrderAlert, synthesize_cue

from conftest import order_snapshot


@pytest.mark.parametrize("kind, seconds", [(AlertKind.new_order, 0.6), (AlertKind.kitchen_alert, 0.6)])
def test_cue_is_a_mono_16bit_wav(kind, seconds):
    with wave.open(io.BytesIO(synthesize_cue(kind, sample_rate=8000))) as wav:
        assert wav.getnchannels() == 1
        assert wav.getsampwidth() == 2
        assert wav.getframerate() == 8000
        assert wav.getnframes() == sum(int(8000 * step) for _, step in CUES[kind])
        assert wav.getnframes() / 8000 == pytest.approx(seconds, abs=0.01)


def test_alert_text_for_kitchen():
    alert = OrderAlert.for_order(AlertKind.kitchen_alert, order_snapshot(total=249.5), currency="$")
    assert alert.title == "Order Confirmed - Start Cooking!"
    assert alert.body == "Order from Asha - $249.5"
    assert alert.tag == "kitchen_alert"
    assert alert.order_id == "o-1"


def test_notifier_plays_cue_and_survives_audio_errors(caplog):
    played = []
    alert = OrderAlert.for_order(AlertKind.new_order, order_snapshot())

    LoggingNotifier(played.append).notify(alert)
    assert played and played[0][:4] == b"RIFF"

    def broken(_: bytes) -> None:
        raise OSError("no audio device")

    with caplog.at_level(logging.WARNING, logger="dinedesk.client.notifications"):
        LoggingNotifier(broken).notify(alert)
    assert "no audio device" in caplog.text
