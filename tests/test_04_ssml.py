"""
Tests for the <speak> envelope helpers.

Tests cover:
- wrap_as_speech() idempotence, whitespace, normalization and escaping
- strip_speech_envelope() removes exactly one envelope
- convert_to_plain_text() say-as, break and entity handling
- escape_text() and pause_marker()
"""
from ssml_tts.utils.ssml import (
    convert_to_plain_text,
    escape_text,
    is_ssml,
    pause_marker,
    strip_speech_envelope,
    wrap_as_speech,
)


class TestWrapAsSpeech:
    def test_wraps_plain_text(self):
        assert wrap_as_speech("hello") == "<speak>hello</speak>"

    def test_idempotent(self):
        """Wrapping twice is the same as wrapping once."""
        once = wrap_as_speech("hello")
        assert wrap_as_speech(once) == once

    def test_collapses_whitespace(self):
        assert wrap_as_speech("  hello \n  world ") == "<speak>hello world</speak>"

    def test_normalizes_and_escapes_plain_text(self):
        assert wrap_as_speech("“hi” — there… & co") == '<speak>"hi" - there... &amp; co</speak>'

    def test_keeps_existing_attributes(self):
        ssml = '<speak version="1.1">Hi <break time="1s"/> there</speak>'
        assert wrap_as_speech(ssml) == ssml

    def test_empty(self):
        assert wrap_as_speech(None) == "<speak></speak>"


class TestIsSsml:
    def test_detects_envelope(self):
        assert is_ssml("<speak>x</speak>")
        assert is_ssml('  <speak xml:lang="en-GB">x</speak>')

    def test_plain_text(self):
        assert not is_ssml("speak to me")
        assert not is_ssml("<speaker>x</speaker>")
        assert not is_ssml("")
        assert not is_ssml(None)


class TestStripSpeechEnvelope:
    def test_strips_one_envelope(self):
        assert strip_speech_envelope("<speak>Hi <emphasis>you</emphasis></speak>") == "Hi <emphasis>you</emphasis>"

    def test_only_outer_envelope(self):
        assert strip_speech_envelope("<speak><speak>x</speak></speak>") == "<speak>x</speak>"

    def test_no_envelope_is_noop(self):
        assert strip_speech_envelope("plain text") == "plain text"
        assert strip_speech_envelope(None) == ""


class TestConvertToPlainText:
    def test_say_as_digits_joined(self):
        ssml = '<speak>Call <say-as interpret-as="telephone">555 01 23</say-as>.</speak>'
        assert convert_to_plain_text(ssml) == "Call 5550123."

    def test_break_becomes_space(self):
        assert convert_to_plain_text('<speak>One.<break time="600ms"/>Two.</speak>') == "One. Two."

    def test_tags_removed_and_entities_unescaped(self):
        ssml = "<speak><p><s>Fish &amp; chips</s></p> <emphasis>now</emphasis></speak>"
        assert convert_to_plain_text(ssml) == "Fish & chips now"

    def test_plain_text_passthrough(self):
        assert convert_to_plain_text("  just   text ") == "just text"


def test_escape_text():
    assert escape_text("a < b & c > d") == "a &lt; b &amp; c &gt; d"


def test_pause_marker():
    assert pause_marker(600) == '<break time="600ms"/>'
    assert pause_marker(250) == '<break time="250ms"/>'
