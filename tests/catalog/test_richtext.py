from django.test import SimpleTestCase

from catalog.richtext import description_to_markdown, plain_text


class PlainTextTestCase(SimpleTestCase):
    def test_tags_are_stripped_and_text_is_not_escaped(self):
        self.assertEqual(plain_text("  A & B <b>grande</b> "), "A & B grande")
        self.assertEqual(plain_text('Precio < $5000 "oferta"'), 'Precio < $5000 "oferta"')

    def test_max_length(self):
        self.assertEqual(plain_text("abcdef", max_length=3), "abc")
        self.assertEqual(plain_text(None), "")


class DescriptionToMarkdownTestCase(SimpleTestCase):
    def test_plain_text_is_kept(self):
        self.assertEqual(description_to_markdown("  Guante de látex  "), "Guante de látex")

    def test_html_becomes_markdown(self):
        md = description_to_markdown("<p>Guante <strong>reforzado</strong></p>")
        self.assertIn("**reforzado**", md)
