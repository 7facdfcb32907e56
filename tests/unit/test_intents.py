import pytest

from support_responder.agent.intents import DEFAULT_INTENTS, Intent, IntentMatcher, edit_distance
from support_responder.config import IntentConfig


def test_typo_matches_greeting() -> None:
    match = IntentMatcher().match("hlo")

    assert match is not None
    assert match.intent.name == "greeting"
    assert match.reply == DEFAULT_INTENTS[0].reply


def test_exact_triggers_match_their_intents() -> None:
    matcher = IntentMatcher()

    assert matcher.match("hi").intent.name == "greeting"
    assert matcher.match("Hi!").intent.name == "greeting"
    assert matcher.match("goodbye").intent.name == "farewell"
    assert matcher.match("thank you").intent.name == "thanks"


def test_long_tokens_tolerate_one_edit() -> None:
    matcher = IntentMatcher()

    assert matcher.match("thnks").intent.name == "thanks"
    assert matcher.match("greetngs").intent.name == "greeting"
    assert matcher.match("goodbye").score > matcher.match("goodbyee").score


@pytest.mark.parametrize("message", ["ship", "buy", "tax", "edit", "key", "help", "helo"])
def test_short_words_near_triggers_match_nothing(message) -> None:
    assert IntentMatcher().match(message) is None


def test_unrelated_messages_match_nothing() -> None:
    matcher = IntentMatcher()

    assert matcher.match("banana") is None
    assert matcher.match("what is your refund policy") is None
    assert matcher.match("hi, where is my order?") is None
    assert matcher.match("") is None
    assert matcher.match("?!") is None


def test_ties_keep_table_order() -> None:
    intents = (
        Intent(name="first", triggers=("ping",), reply="one"),
        Intent(name="second", triggers=("ping",), reply="two"),
    )

    assert IntentMatcher(intents).match("ping").intent.name == "first"


def test_edit_budget_is_configurable() -> None:
    strict = IntentMatcher(config=IntentConfig(max_edits=0))
    loose = IntentMatcher(config=IntentConfig(min_fuzzy_length=3))

    assert strict.match("hlo").intent.name == "greeting"
    assert strict.match("thnks") is None
    assert loose.match("helo").intent.name == "greeting"


def test_edit_distance() -> None:
    assert edit_distance("hello", "hello") == 0
    assert edit_distance("thnks", "thanks") == 1
    assert edit_distance("ship", "hi") == 2
