"""Order alerts: a platform notification plus a short synthesized audio cue."""

from __future__ import annotations

import enum
import io
import logging
import math
import struct
import wave
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from .. import schemas

logger = logging.getLogger(__name__)

SAMPLE_RATE = 22050
VOLUME = 0.5

# (frequency Hz, seconds) steps
Tone = Tuple[float, float]


class AlertKind(str, enum.Enum):
    new_order = "new_order"
    kitchen_alert = "kitchen_alert"


CUES: Dict[AlertKind, Sequence[Tone]] = {
    AlertKind.new_order: ((523.0, 0.2), (659.0, 0.2), (784.0, 0.2)),
    AlertKind.kitchen_alert: ((900.0, 0.15), (700.0, 0.15), (900.0, 0.15), (700.0, 0.15)),
}


@dataclass(frozen=True)
class OrderAlert:
    kind: AlertKind
    order_id: str
    title: str
    body: str

    @property
    def tag(self) -> str:
        return self.kind.value

    @property
    def sticky(self) -> bool:
        # Kitchen alerts stay until dismissed.
        return self.kind == AlertKind.kitchen_alert

    @classmethod
    def for_order(cls, kind: AlertKind, order: schemas.OrderOut, currency: str = "₹") -> "OrderAlert":
        title = "New Order Received!" if kind == AlertKind.new_order else "Order Confirmed - Start Cooking!"
        return cls(
            kind=kind,
            order_id=order.id,
            title=title,
            body=f"Order from {order.customer_name} - {currency}{order.total_amount:g}",
        )


def synthesize_cue(kind: AlertKind, sample_rate: int = SAMPLE_RATE) -> bytes:
    """Render the tone sequence for ``kind`` as a mono 16-bit WAV file."""
    frames: List[bytes] = []
    for frequency, seconds in CUES[kind]:
        count = int(sample_rate * seconds)
        for n in range(count):
            # Linear fade out per step avoids clicks between tones.
            envelope = 1.0 - n / count
            sample = VOLUME * envelope * math.sin(2 * math.pi * frequency * n / sample_rate)
            frames.append(struct.pack("<h", int(sample * 32767)))

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(b"".join(frames))
    return buffer.getvalue()


class Notifier(Protocol):
    def notify(self, alert: OrderAlert) -> None:
        ...


SoundPlayer = Callable[[bytes], None]


class LoggingNotifier:
    def __init__(self, player: Optional[SoundPlayer] = None) -> None:
        self.player = player

    def notify(self, alert: OrderAlert) -> None:
        logger.info("Notify [%s] %s: %s (order=%s)", alert.tag, alert.title, alert.body, alert.order_id)
        if self.player is None:
            return
        try:
            self.player(synthesize_cue(alert.kind))
        except OSError as exc:
            logger.warning("Could not play %s cue: %s", alert.kind.value, exc)
