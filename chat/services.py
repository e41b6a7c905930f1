from __future__ import annotations

import random
import uuid

from django.db import transaction

from catalog.richtext import plain_text

from .models import ChatMessage

MAX_MESSAGE_LENGTH = 1000

WELCOME_MESSAGE = "¡Hola! 👋 Soy tu asistente de ElGuante. ¿En qué puedo ayudarte?"

# Checked in order; the first topic with a matching keyword wins.
KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("greeting", ("hola", "buenos", "buenas")),
    ("products", ("producto", "comprar", "venta")),
    ("shipping", ("envio", "envío", "delivery", "entrega")),
    ("payment", ("pago", "tarjeta", "efectivo", "mercado")),
    ("support", ("ayuda", "ayudame", "consulta")),
)

RESPONSES: dict[str, tuple[str, ...]] = {
    "greeting": (
        WELCOME_MESSAGE,
        "¡Hola! Bienvenido a ElGuante. ¿Qué necesitas?",
        "¡Hola! ¿Cómo puedo ayudarte hoy?",
    ),
    "products": (
        "Tenemos una amplia variedad de productos de limpieza y hogar. ¿Qué tipo de producto buscas?",
        "Ofrecemos productos de limpieza, higiene personal y artículos para el hogar. ¿Qué te interesa?",
        "Nuestra tienda tiene productos de limpieza, detergentes, jabones y mucho más. ¿Qué necesitas?",
    ),
    "shipping": (
        "Realizamos envíos a todo el país. Los tiempos de entrega varían según tu ubicación.",
        "Enviamos a domicilio en toda Argentina. El costo y el tiempo dependen de tu código postal.",
        "Ofrecemos delivery gratuito en compras superiores a $5000. Para otras zonas el costo se calcula automáticamente.",
    ),
    "payment": (
        "Aceptamos efectivo, tarjeta de crédito/débito, transferencia bancaria y MercadoPago.",
        "Podés pagar con tarjeta, efectivo, transferencia o link de pago. Todas las opciones son seguras.",
        "Múltiples formas de pago: efectivo, tarjeta, transferencia y MercadoPago con cuotas.",
    ),
    "support": (
        "Estoy aquí para ayudarte. ¿Qué necesitas saber?",
        "Puedo ayudarte con información sobre productos, envíos, pagos y más. ¿Qué te gustaría saber?",
        "¡Claro! Estoy para ayudarte con cualquier consulta sobre nuestros productos o servicios.",
    ),
    "default": (
        "Lo siento, no entendí tu pregunta. ¿Podés reformularla?",
        "Disculpá, no pude entenderte. ¿Podés ser más específico?",
        "No estoy seguro de entender. ¿Podés darme más detalles?",
    ),
}


class ChatError(ValueError):
    pass


def classify_message(text: str) -> str:
    lowered = (text or "").lower()
    for category, words in KEYWORDS:
        if any(w in lowered for w in words):
            return category
    return "default"


def bot_reply(text: str, *, rng: random.Random | None = None) -> tuple[str, str]:
    """Returns (category, reply)."""
    category = classify_message(text)
    choices = RESPONSES[category]
    return category, (rng or random).choice(choices)


def conversation_owner_id(conversation_id: uuid.UUID) -> int | None:
    return (
        ChatMessage.objects.filter(conversation_id=conversation_id, user__isnull=False)
        .values_list("user_id", flat=True)
        .first()
    )


def post_message(
    *, text: str, user=None, conversation_id: uuid.UUID | None = None, rng: random.Random | None = None
) -> tuple[ChatMessage, ChatMessage]:
    """Store the customer's message and the bot's answer in one conversation."""

    clean = plain_text(text, max_length=MAX_MESSAGE_LENGTH)
    if not clean:
        raise ChatError("Message cannot be empty")

    conversation_id = conversation_id or uuid.uuid4()
    owner_id = conversation_owner_id(conversation_id)
    if owner_id is not None and (user is None or user.pk != owner_id):
        raise ChatError("Conversation not found")

    category, reply = bot_reply(clean, rng=rng)
    with transaction.atomic():
        mine = ChatMessage.objects.create(
            conversation_id=conversation_id,
            sender=ChatMessage.Sender.USER,
            text=clean,
            user=user,
        )
        bot = ChatMessage.objects.create(
            conversation_id=conversation_id,
            sender=ChatMessage.Sender.BOT,
            text=reply,
            category=category,
        )
    return mine, bot


def conversation_messages(*, conversation_id: uuid.UUID, user=None) -> list[ChatMessage]:
    owner_id = conversation_owner_id(conversation_id)
    if owner_id is not None and (user is None or user.pk != owner_id):
        raise ChatError("Conversation not found")
    return list(ChatMessage.objects.filter(conversation_id=conversation_id).order_by("created_at", "id"))
