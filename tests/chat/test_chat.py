"""
Keyword chat bot.
"""

import random
import uuid

from django.test import SimpleTestCase, TestCase

from chat.models import ChatMessage
from chat.services import (
    RESPONSES,
    WELCOME_MESSAGE,
    ChatError,
    bot_reply,
    classify_message,
    conversation_messages,
    post_message,
)
from tests.factories import auth_headers, make_user


class ClassifyMessageTestCase(SimpleTestCase):
    def test_topics(self):
        cases = [
            ("Hola!", "greeting"),
            ("Quiero comprar detergente", "products"),
            ("¿Hacen envío a Córdoba?", "shipping"),
            ("¿Aceptan tarjeta?", "payment"),
            ("Necesito ayuda", "support"),
            ("qwerty", "default"),
        ]
        for text, expected in cases:
            with self.subTest(text=text):
                self.assertEqual(classify_message(text), expected)

    def test_first_matching_topic_wins(self):
        self.assertEqual(classify_message("Buenas, ¿cuánto sale el envío?"), "greeting")

    def test_reply_comes_from_topic(self):
        category, reply = bot_reply("pago con efectivo", rng=random.Random(1))

        self.assertEqual(category, "payment")
        self.assertIn(reply, RESPONSES["payment"])


class PostMessageTestCase(TestCase):
    def test_new_conversation_stores_both_messages(self):
        mine, bot = post_message(text="  Hola  ")

        self.assertEqual(mine.conversation_id, bot.conversation_id)
        self.assertEqual(mine.sender, ChatMessage.Sender.USER)
        self.assertEqual(mine.text, "Hola")
        self.assertEqual(bot.sender, ChatMessage.Sender.BOT)
        self.assertEqual(bot.category, "greeting")

    def test_empty_message(self):
        with self.assertRaisesMessage(ChatError, "Message cannot be empty"):
            post_message(text="   ")

    def test_ampersand_is_stored_verbatim(self):
        mine, _ = post_message(text="Guantes & pelotas")
        self.assertEqual(mine.text, "Guantes & pelotas")

    def test_conversation_of_another_user_is_hidden(self):
        owner = make_user()
        mine, _ = post_message(text="Hola", user=owner)

        with self.assertRaisesMessage(ChatError, "Conversation not found"):
            post_message(text="Hola", user=make_user(), conversation_id=mine.conversation_id)
        with self.assertRaisesMessage(ChatError, "Conversation not found"):
            conversation_messages(conversation_id=mine.conversation_id)

    def test_history_in_order(self):
        user = make_user()
        first, _ = post_message(text="Hola", user=user)
        post_message(text="Necesito ayuda", user=user, conversation_id=first.conversation_id)

        history = conversation_messages(conversation_id=first.conversation_id, user=user)

        self.assertEqual([m.sender for m in history], ["user", "bot", "user", "bot"])


class ChatApiTestCase(TestCase):
    def test_welcome(self):
        response = self.client.get("/api/chat/welcome")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"sender": "bot", "text": WELCOME_MESSAGE})

    def test_guest_message(self):
        response = self.client.post(
            "/api/chat/messages", data={"text": "¿Aceptan MercadoPago?"}, content_type="application/json"
        )

        body = response.json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(body["message"]["text"], "¿Aceptan MercadoPago?")
        self.assertEqual(body["reply"]["category"], "payment")
        self.assertEqual(body["reply"]["conversation_id"], body["conversation_id"])

    def test_empty_message_is_400(self):
        response = self.client.post("/api/chat/messages", data={"text": ""}, content_type="application/json")
        self.assertEqual(response.status_code, 400)

    def test_foreign_conversation_is_404(self):
        mine, _ = post_message(text="Hola", user=make_user())

        response = self.client.get(
            f"/api/chat/{mine.conversation_id}/messages", **auth_headers(make_user())
        )

        self.assertEqual(response.status_code, 404)

    def test_owner_reads_history(self):
        user = make_user()
        mine, _ = post_message(text="Hola", user=user)

        response = self.client.get(f"/api/chat/{mine.conversation_id}/messages", **auth_headers(user))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()), 2)

    def test_unknown_conversation_is_empty(self):
        response = self.client.get(f"/api/chat/{uuid.uuid4()}/messages")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), [])
